"""
Result types exchanged between the orchestrator and its callers
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class BatchResult(BaseModel):
    """Counters for one page of listings"""
    processed: int = 0
    created: int = 0
    updated: int = 0
    archived: int = 0
    errors: int = 0


class EnrichmentResult(BaseModel):
    """
    Outcome of one related-resource enrichment step.

    A failed step carries its error message instead of raising, so the
    remaining resource types still run.
    """
    resource: str
    requested: int = 0
    stored: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RunStats(BaseModel):
    """
    Summary returned by ExtractionOrchestrator.run().

    Counters are cumulative for the run, including earlier sessions of a
    continued run.
    """
    run_id: int
    status: str = "running"
    processed: int = 0
    created: int = 0
    updated: int = 0
    archived: int = 0
    errors: int = 0
    enrichment_errors: int = 0
    resume_cursor: Optional[str] = None
    enrichment_failures: List[Dict[str, Any]] = Field(default_factory=list)

    def add_batch(self, batch: BatchResult) -> None:
        self.processed += batch.processed
        self.created += batch.created
        self.updated += batch.updated
        self.archived += batch.archived
        self.errors += batch.errors

    def metrics(self) -> Dict[str, int]:
        """Counter columns as the run tracker stores them"""
        return {
            "listings_processed": self.processed,
            "listings_created": self.created,
            "listings_updated": self.updated,
            "listings_archived": self.archived,
            "errors_count": self.errors,
            "enrichment_errors_count": self.enrichment_errors,
        }

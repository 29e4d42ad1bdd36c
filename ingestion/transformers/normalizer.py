"""
Transform raw provider records into typed, validated rows
"""

from typing import Dict, Any, Optional, List, Callable, Mapping, Type, Union
from datetime import datetime
from pydantic import ValidationError
from schemas.normalized import (
    NormalizedRecord,
    NormalizedProperty,
    NormalizedMedia,
    NormalizedAgent,
    NormalizedOffice,
    NormalizedOpenHouse,
    ChangeLogEntry,
)
from ingestion.transformers.field_maps import (
    EntityKind,
    FieldMap,
    FIELD_MAPS,
    ARCHIVED_STATUSES,
    CHANGE_DETECTION_SKIP,
    PRICE_FIELDS,
    STATUS_FIELDS,
)
from models.base import ChangeType
from core.exceptions import NormalizationError
import json
import logging

logger = logging.getLogger(__name__)


RECORD_MODELS: Mapping[EntityKind, Type[NormalizedRecord]] = {
    EntityKind.PROPERTY: NormalizedProperty,
    EntityKind.MEDIA: NormalizedMedia,
    EntityKind.AGENT: NormalizedAgent,
    EntityKind.OFFICE: NormalizedOffice,
    EntityKind.OPEN_HOUSE: NormalizedOpenHouse,
}

# Entities that belong to a listing and take its key from the caller
LISTING_SCOPED = frozenset({EntityKind.MEDIA, EntityKind.OPEN_HOUSE})


class ListingNormalizer:
    """
    Map provider records onto local columns.

    Handles:
    - Field mapping through the declarative FIELD_MAPS tables
    - Value coercion (lists to JSON, booleans to 0/1, blank strings to None)
    - Type validation through the pydantic record schemas
    - Computed listing fields
    - Per-field change detection against a stored row

    No I/O. The clock is injectable so days-on-market is deterministic
    under test.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow):
        self.clock = clock

    def normalize(
        self,
        entity_kind: Union[EntityKind, str],
        raw: Dict[str, Any],
        listing_key: Optional[str] = None
    ) -> NormalizedRecord:
        """
        Normalize one provider record.

        Args:
            entity_kind: Which field map and schema to apply
            raw: Provider payload
            listing_key: Owning listing for media and open house records

        Returns:
            Validated record; only fields present in raw (plus computed
            fields whose inputs were present) are set

        Raises:
            NormalizationError: If a value cannot be coerced to its column type
        """
        kind = EntityKind(entity_kind)
        row = self.map_fields(raw, FIELD_MAPS[kind])

        if kind in LISTING_SCOPED and listing_key is not None:
            row["listing_key"] = listing_key

        record = self._validate(kind, row, raw)

        if kind is EntityKind.PROPERTY:
            derived = self._derive_property_fields(record, raw)
            record = self._validate(kind, {**row, **derived}, raw)

        return record

    def normalize_property(self, raw: Dict[str, Any]) -> NormalizedProperty:
        return self.normalize(EntityKind.PROPERTY, raw)

    def normalize_media(self, raw: Dict[str, Any], listing_key: str) -> NormalizedMedia:
        return self.normalize(EntityKind.MEDIA, raw, listing_key)

    def normalize_agent(self, raw: Dict[str, Any]) -> NormalizedAgent:
        return self.normalize(EntityKind.AGENT, raw)

    def normalize_office(self, raw: Dict[str, Any]) -> NormalizedOffice:
        return self.normalize(EntityKind.OFFICE, raw)

    def normalize_open_house(self, raw: Dict[str, Any], listing_key: str) -> NormalizedOpenHouse:
        return self.normalize(EntityKind.OPEN_HOUSE, raw, listing_key)

    def detect_changes(self, existing: Any, normalized: NormalizedRecord) -> List[ChangeLogEntry]:
        """
        Compare a stored row with a freshly normalized record.

        Only fields set on the normalized record that also exist on the
        stored row are compared. Values are compared by their string form,
        with None treated as the empty string.

        Args:
            existing: ORM instance, or a mapping of column values
            normalized: Record produced by normalize()
        """
        changes = []
        observed_at = self.clock()

        for field in type(normalized).model_fields:
            if field not in normalized.model_fields_set or field in CHANGE_DETECTION_SKIP:
                continue

            if isinstance(existing, Mapping):
                if field not in existing:
                    continue
                old_value = existing[field]
            else:
                if not hasattr(existing, field):
                    continue
                old_value = getattr(existing, field)

            new_value = getattr(normalized, field)

            if _as_text(old_value) != _as_text(new_value):
                changes.append(ChangeLogEntry(
                    field=field,
                    old_value=old_value,
                    new_value=new_value,
                    observed_at=observed_at,
                    change_type=self.classify_change(field),
                ))

        return changes

    @staticmethod
    def classify_change(field: str) -> str:
        if field in PRICE_FIELDS:
            return ChangeType.PRICE_CHANGE.value
        if field in STATUS_FIELDS:
            return ChangeType.STATUS_CHANGE.value
        return ChangeType.FIELD_CHANGE.value

    @staticmethod
    def is_archived_status(status: Optional[str]) -> bool:
        return status in ARCHIVED_STATUSES

    @staticmethod
    def map_fields(raw: Dict[str, Any], field_map: FieldMap) -> Dict[str, Any]:
        """
        Copy provider fields onto local names with value coercion.

        Fields absent from raw are left out of the result rather than
        set to None.
        """
        row = {}

        for local_field, provider_field in field_map:
            if provider_field not in raw:
                continue

            value = raw[provider_field]

            if isinstance(value, (list, dict)):
                row[local_field] = json.dumps(value, ensure_ascii=False)
            elif isinstance(value, bool):
                row[local_field] = 1 if value else 0
            elif isinstance(value, str):
                value = value.strip()
                row[local_field] = value or None
            else:
                row[local_field] = value

        return row

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(kind: EntityKind, row: Dict[str, Any], raw: Dict[str, Any]) -> NormalizedRecord:
        try:
            return RECORD_MODELS[kind].model_validate(row)
        except ValidationError as e:
            raise NormalizationError(
                f"Failed to normalize {kind.value} record",
                context={
                    "entity_kind": kind.value,
                    "listing_key": row.get("listing_key") or raw.get("ListingKey"),
                    "field_errors": [
                        {"field": ".".join(str(p) for p in err["loc"]), "error": err["msg"]}
                        for err in e.errors()
                    ],
                },
                original_exception=e
            )

    def _derive_property_fields(self, record: NormalizedProperty, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Computed columns; each is set only when its inputs were provided"""
        fields_set = record.model_fields_set
        derived: Dict[str, Any] = {}

        if "standard_status" in fields_set:
            derived["is_archived"] = 1 if self.is_archived_status(record.standard_status) else 0

        if "Media" in raw:
            derived["main_photo_url"] = _main_photo_url(raw["Media"])

        if "listing_contract_date" in fields_set:
            derived["days_on_market"] = self._days_on_market(record)

        if fields_set & {"list_price", "living_area"}:
            derived["price_per_sqft"] = _price_per_sqft(record.list_price, record.living_area)

        if "PetsAllowed" in raw:
            derived["pets_dogs_allowed"] = _pet_allowed(raw["PetsAllowed"], "Dogs")
            derived["pets_cats_allowed"] = _pet_allowed(raw["PetsAllowed"], "Cats")

        derived["extra_data"] = json.dumps(raw, ensure_ascii=False, default=str)

        return derived

    def _days_on_market(self, record: NormalizedProperty) -> Optional[int]:
        """Listing contract date to close date, or to today while on market"""
        start = record.listing_contract_date
        if start is None:
            return None

        end = record.close_date or self.clock().date()
        return max(0, (end - start).days)


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _main_photo_url(media: Any) -> Optional[str]:
    if not isinstance(media, list) or not media:
        return None

    first = media[0]
    if not isinstance(first, dict):
        return None

    url = first.get("MediaURL")
    if isinstance(url, str) and url.strip():
        return url.strip()
    return None


def _price_per_sqft(list_price: Optional[float], living_area: Optional[float]) -> Optional[float]:
    if list_price is None or living_area is None:
        return None
    if list_price <= 0 or living_area <= 0:
        return None
    return round(list_price / living_area, 2)


def _pet_allowed(pets: Any, pet_type: str) -> Optional[int]:
    """
    1 when pet_type is mentioned, 0 when it is not or pets are refused,
    None when there is no data.

    PetsAllowed arrives as a list (["Dogs OK", "Cats OK"]) or as a
    comma-separated string.
    """
    if pets is None:
        return None

    if isinstance(pets, str):
        pets = pets.split(",")

    if not isinstance(pets, list):
        return None

    entries = [str(p).strip() for p in pets if p is not None and str(p).strip()]
    if not entries:
        return None

    haystack = " ".join(entries)
    if "no pets" in haystack.lower() or haystack == "No":
        return 0

    return 1 if pet_type.lower() in haystack.lower() else 0

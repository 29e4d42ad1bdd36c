"""
Pydantic schemas for normalized provider records with validation
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Any
from datetime import date, datetime, timezone


def _to_naive_utc(value: Any) -> Any:
    """Store timestamps as naive UTC, matching the database columns"""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _date_part(value: Any) -> Any:
    """Accept full timestamps where the provider declares a date"""
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class NormalizedRecord(BaseModel):
    """
    Base for all normalized provider records.

    Only fields present in the provider payload are set; unset fields are
    neither written on upsert nor compared during change detection.
    """

    model_config = ConfigDict(
        extra="forbid",
        coerce_numbers_to_str=True,
    )

    def to_row(self) -> dict:
        """Column values for the fields that were actually provided"""
        return self.model_dump(exclude_unset=True)


class NormalizedProperty(NormalizedRecord):
    """
    Denormalized listing row.

    Groups mirror the provider's listing, detail, location and financial
    resources, followed by feature flags, feature lists and computed fields.
    """

    # Listing
    listing_key: Optional[str] = None
    listing_id: Optional[str] = None
    modification_timestamp: Optional[datetime] = None
    creation_timestamp: Optional[datetime] = None
    status_change_timestamp: Optional[datetime] = None
    close_date: Optional[date] = None
    purchase_contract_date: Optional[date] = None
    listing_contract_date: Optional[date] = None
    original_entry_timestamp: Optional[datetime] = None
    off_market_date: Optional[date] = None
    expiration_date: Optional[date] = None
    standard_status: Optional[str] = None
    mls_status: Optional[str] = None
    property_type: Optional[str] = None
    property_sub_type: Optional[str] = None
    structure_type: Optional[str] = None
    list_price: Optional[float] = None
    original_list_price: Optional[float] = None
    close_price: Optional[float] = None
    public_remarks: Optional[str] = None
    showing_instructions: Optional[str] = None
    contingency: Optional[str] = None
    photo_count: Optional[int] = None
    virtual_tour_url_unbranded: Optional[str] = None
    virtual_tour_url_branded: Optional[str] = None
    list_agent_mls_id: Optional[str] = None
    buyer_agent_mls_id: Optional[str] = None
    list_office_mls_id: Optional[str] = None
    buyer_office_mls_id: Optional[str] = None

    # Detail
    bedrooms_total: Optional[int] = None
    bathrooms_total: Optional[int] = None
    bathrooms_full: Optional[int] = None
    bathrooms_half: Optional[int] = None
    living_area: Optional[float] = None
    above_grade_finished_area: Optional[float] = None
    below_grade_finished_area: Optional[float] = None
    building_area_total: Optional[float] = None
    lot_size_acres: Optional[float] = None
    lot_size_square_feet: Optional[float] = None
    year_built: Optional[int] = None
    stories_total: Optional[int] = None
    garage_spaces: Optional[float] = None
    parking_total: Optional[float] = None
    fireplaces_total: Optional[int] = None
    rooms_total: Optional[int] = None

    # Location
    unparsed_address: Optional[str] = None
    street_number: Optional[str] = None
    street_dir_prefix: Optional[str] = None
    street_name: Optional[str] = None
    street_dir_suffix: Optional[str] = None
    unit_number: Optional[str] = None
    building_name: Optional[str] = None
    city: Optional[str] = None
    state_or_province: Optional[str] = None
    postal_code: Optional[str] = None
    county_or_parish: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    subdivision_name: Optional[str] = None
    elementary_school: Optional[str] = None
    middle_or_junior_school: Optional[str] = None
    high_school: Optional[str] = None
    school_district: Optional[str] = None

    # Financial
    tax_annual_amount: Optional[float] = None
    tax_year: Optional[int] = None
    tax_assessed_value: Optional[float] = None
    association_yn: Optional[int] = None
    association_fee: Optional[float] = None
    association_fee_frequency: Optional[str] = None
    mls_area_major: Optional[str] = None
    mls_area_minor: Optional[str] = None
    zoning: Optional[str] = None
    parcel_number: Optional[str] = None

    # Boolean flags (0/1)
    pool_private_yn: Optional[int] = None
    waterfront_yn: Optional[int] = None
    view_yn: Optional[int] = None
    spa_yn: Optional[int] = None
    fireplace_yn: Optional[int] = None
    cooling_yn: Optional[int] = None
    heating_yn: Optional[int] = None
    garage_yn: Optional[int] = None
    attached_garage_yn: Optional[int] = None
    senior_community_yn: Optional[int] = None
    home_warranty_yn: Optional[int] = None
    property_attached_yn: Optional[int] = None

    # Feature lists (JSON-encoded)
    basement: Optional[str] = None
    heating: Optional[str] = None
    cooling: Optional[str] = None
    construction_materials: Optional[str] = None
    roof: Optional[str] = None
    flooring: Optional[str] = None
    appliances: Optional[str] = None
    interior_features: Optional[str] = None
    exterior_features: Optional[str] = None
    parking_features: Optional[str] = None
    architectural_style: Optional[str] = None

    # Computed
    is_archived: Optional[int] = None
    main_photo_url: Optional[str] = None
    days_on_market: Optional[int] = None
    price_per_sqft: Optional[float] = None
    pets_dogs_allowed: Optional[int] = None
    pets_cats_allowed: Optional[int] = None
    extra_data: Optional[str] = None

    @field_validator(
        "modification_timestamp",
        "creation_timestamp",
        "status_change_timestamp",
        "original_entry_timestamp",
    )
    @classmethod
    def naive_utc(cls, v):
        return _to_naive_utc(v)

    @field_validator(
        "close_date",
        "purchase_contract_date",
        "listing_contract_date",
        "off_market_date",
        "expiration_date",
        mode="before",
    )
    @classmethod
    def date_only(cls, v):
        return _date_part(v)


class NormalizedMedia(NormalizedRecord):
    """One photo or document attached to a listing"""
    listing_key: Optional[str] = None
    media_key: Optional[str] = None
    media_url: Optional[str] = None
    media_category: Optional[str] = None
    order_index: Optional[int] = None


class NormalizedAgent(NormalizedRecord):
    """Provider Member record"""
    agent_mls_id: Optional[str] = None
    agent_key: Optional[str] = None
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    office_mls_id: Optional[str] = None
    state_license: Optional[str] = None
    designation: Optional[str] = None


class NormalizedOffice(NormalizedRecord):
    """Provider Office record"""
    office_mls_id: Optional[str] = None
    office_key: Optional[str] = None
    office_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state_or_province: Optional[str] = None
    postal_code: Optional[str] = None


class NormalizedOpenHouse(NormalizedRecord):
    """Scheduled open house for a listing"""
    listing_key: Optional[str] = None
    open_house_key: Optional[str] = None
    open_house_date: Optional[date] = None
    open_house_start_time: Optional[datetime] = None
    open_house_end_time: Optional[datetime] = None
    open_house_type: Optional[str] = None
    open_house_remarks: Optional[str] = None
    showing_agent_mls_id: Optional[str] = None

    @field_validator("open_house_start_time", "open_house_end_time")
    @classmethod
    def naive_utc(cls, v):
        return _to_naive_utc(v)

    @field_validator("open_house_date", mode="before")
    @classmethod
    def date_only(cls, v):
        return _date_part(v)


class ChangeLogEntry(BaseModel):
    """
    One changed field observed while re-ingesting an existing listing.

    Values are kept as they were read and normalized; persistence stores
    their string form.
    """
    field: str
    old_value: Any = None
    new_value: Any = None
    observed_at: datetime = Field(default_factory=datetime.utcnow)
    change_type: str = "field_change"

from sqlalchemy import (
    Column, String, Integer, SmallInteger, Float, Date, DateTime, Text, Index
)
from datetime import datetime
from models.base import Base, BigIntegerPK


class Property(Base):
    """
    Denormalized listing table.

    Schema Design Philosophy:
    - One row per provider listing, keyed by listing_key
    - Listing, detail, location and financial groups flattened into columns
    - Feature lists stored as JSON-encoded text
    - Computed columns (is_archived, main_photo_url, days_on_market,
      price_per_sqft) written by the normalizer, not by the database
    - extra_data keeps the full provider payload for unmapped fields
    """
    __tablename__ = "properties"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)

    # Listing
    listing_key = Column(String(128), nullable=False, unique=True, index=True)
    listing_id = Column(String(50), nullable=True, index=True)
    modification_timestamp = Column(DateTime, nullable=True, index=True)
    creation_timestamp = Column(DateTime, nullable=True)
    status_change_timestamp = Column(DateTime, nullable=True)
    close_date = Column(Date, nullable=True)
    purchase_contract_date = Column(Date, nullable=True)
    listing_contract_date = Column(Date, nullable=True)
    original_entry_timestamp = Column(DateTime, nullable=True)
    off_market_date = Column(Date, nullable=True)
    expiration_date = Column(Date, nullable=True)
    standard_status = Column(String(50), nullable=True, index=True)
    mls_status = Column(String(50), nullable=True)
    property_type = Column(String(50), nullable=True, index=True)
    property_sub_type = Column(String(50), nullable=True)
    structure_type = Column(String(100), nullable=True)
    list_price = Column(Float, nullable=True, index=True)
    original_list_price = Column(Float, nullable=True)
    close_price = Column(Float, nullable=True)
    public_remarks = Column(Text, nullable=True)
    showing_instructions = Column(Text, nullable=True)
    contingency = Column(Text, nullable=True)
    photo_count = Column(Integer, nullable=True)
    virtual_tour_url_unbranded = Column(String(2048), nullable=True)
    virtual_tour_url_branded = Column(String(2048), nullable=True)
    list_agent_mls_id = Column(String(50), nullable=True, index=True)
    buyer_agent_mls_id = Column(String(50), nullable=True)
    list_office_mls_id = Column(String(50), nullable=True, index=True)
    buyer_office_mls_id = Column(String(50), nullable=True)

    # Detail
    bedrooms_total = Column(Integer, nullable=True)
    bathrooms_total = Column(Integer, nullable=True)
    bathrooms_full = Column(Integer, nullable=True)
    bathrooms_half = Column(Integer, nullable=True)
    living_area = Column(Float, nullable=True)
    above_grade_finished_area = Column(Float, nullable=True)
    below_grade_finished_area = Column(Float, nullable=True)
    building_area_total = Column(Float, nullable=True)
    lot_size_acres = Column(Float, nullable=True)
    lot_size_square_feet = Column(Float, nullable=True)
    year_built = Column(Integer, nullable=True)
    stories_total = Column(Integer, nullable=True)
    garage_spaces = Column(Float, nullable=True)
    parking_total = Column(Float, nullable=True)
    fireplaces_total = Column(Integer, nullable=True)
    rooms_total = Column(Integer, nullable=True)

    # Location
    unparsed_address = Column(String(255), nullable=True)
    street_number = Column(String(20), nullable=True)
    street_dir_prefix = Column(String(10), nullable=True)
    street_name = Column(String(100), nullable=True)
    street_dir_suffix = Column(String(10), nullable=True)
    unit_number = Column(String(20), nullable=True)
    building_name = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True, index=True)
    state_or_province = Column(String(50), nullable=True)
    postal_code = Column(String(20), nullable=True, index=True)
    county_or_parish = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    subdivision_name = Column(String(100), nullable=True)
    elementary_school = Column(String(100), nullable=True)
    middle_or_junior_school = Column(String(100), nullable=True)
    high_school = Column(String(100), nullable=True)
    school_district = Column(String(100), nullable=True)

    # Financial
    tax_annual_amount = Column(Float, nullable=True)
    tax_year = Column(Integer, nullable=True)
    tax_assessed_value = Column(Float, nullable=True)
    association_yn = Column(SmallInteger, nullable=True)
    association_fee = Column(Float, nullable=True)
    association_fee_frequency = Column(String(50), nullable=True)
    mls_area_major = Column(String(100), nullable=True)
    mls_area_minor = Column(String(100), nullable=True)
    zoning = Column(String(50), nullable=True)
    parcel_number = Column(String(50), nullable=True)

    # Boolean flags
    pool_private_yn = Column(SmallInteger, nullable=True)
    waterfront_yn = Column(SmallInteger, nullable=True)
    view_yn = Column(SmallInteger, nullable=True)
    spa_yn = Column(SmallInteger, nullable=True)
    fireplace_yn = Column(SmallInteger, nullable=True)
    cooling_yn = Column(SmallInteger, nullable=True)
    heating_yn = Column(SmallInteger, nullable=True)
    garage_yn = Column(SmallInteger, nullable=True)
    attached_garage_yn = Column(SmallInteger, nullable=True)
    senior_community_yn = Column(SmallInteger, nullable=True)
    home_warranty_yn = Column(SmallInteger, nullable=True)
    property_attached_yn = Column(SmallInteger, nullable=True)

    # Feature lists
    basement = Column(Text, nullable=True)
    heating = Column(Text, nullable=True)
    cooling = Column(Text, nullable=True)
    construction_materials = Column(Text, nullable=True)
    roof = Column(Text, nullable=True)
    flooring = Column(Text, nullable=True)
    appliances = Column(Text, nullable=True)
    interior_features = Column(Text, nullable=True)
    exterior_features = Column(Text, nullable=True)
    parking_features = Column(Text, nullable=True)
    architectural_style = Column(Text, nullable=True)

    # Computed
    is_archived = Column(SmallInteger, nullable=False, default=0, index=True)
    main_photo_url = Column(String(2048), nullable=True)
    days_on_market = Column(Integer, nullable=True)
    price_per_sqft = Column(Float, nullable=True)
    pets_dogs_allowed = Column(SmallInteger, nullable=True)
    pets_cats_allowed = Column(SmallInteger, nullable=True)
    extra_data = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_property_status_archived", "standard_status", "is_archived"),
        Index("idx_property_city_price", "city", "list_price"),
    )

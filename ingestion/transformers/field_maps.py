"""
Declarative field maps between the RESO Web API and local columns.

Each map is an ordered tuple of ``(local_field, provider_field)`` pairs.
The tables are built once at import time and never mutated; ``FIELD_MAPS``
is a read-only view keyed by entity kind.
"""

from types import MappingProxyType
from typing import Mapping, Tuple
import enum


class EntityKind(str, enum.Enum):
    """Kinds of provider records the normalizer understands"""
    PROPERTY = "property"
    MEDIA = "media"
    AGENT = "agent"
    OFFICE = "office"
    OPEN_HOUSE = "open_house"


FieldMap = Tuple[Tuple[str, str], ...]


PROPERTY_FIELD_MAP: FieldMap = (
    # Listing
    ("listing_key", "ListingKey"),
    ("listing_id", "ListingId"),
    ("modification_timestamp", "ModificationTimestamp"),
    ("creation_timestamp", "CreationTimestamp"),
    ("status_change_timestamp", "StatusChangeTimestamp"),
    ("close_date", "CloseDate"),
    ("purchase_contract_date", "PurchaseContractDate"),
    ("listing_contract_date", "ListingContractDate"),
    ("original_entry_timestamp", "OriginalEntryTimestamp"),
    ("off_market_date", "OffMarketDate"),
    ("expiration_date", "ExpirationDate"),
    ("standard_status", "StandardStatus"),
    ("mls_status", "MlsStatus"),
    ("property_type", "PropertyType"),
    ("property_sub_type", "PropertySubType"),
    ("structure_type", "StructureType"),
    ("list_price", "ListPrice"),
    ("original_list_price", "OriginalListPrice"),
    ("close_price", "ClosePrice"),
    ("public_remarks", "PublicRemarks"),
    ("showing_instructions", "ShowingInstructions"),
    ("contingency", "Contingency"),
    ("photo_count", "PhotosCount"),
    ("virtual_tour_url_unbranded", "VirtualTourURLUnbranded"),
    ("virtual_tour_url_branded", "VirtualTourURLBranded"),
    ("list_agent_mls_id", "ListAgentMlsId"),
    ("buyer_agent_mls_id", "BuyerAgentMlsId"),
    ("list_office_mls_id", "ListOfficeMlsId"),
    ("buyer_office_mls_id", "BuyerOfficeMlsId"),

    # Detail
    ("bedrooms_total", "BedroomsTotal"),
    ("bathrooms_total", "BathroomsTotalInteger"),
    ("bathrooms_full", "BathroomsFull"),
    ("bathrooms_half", "BathroomsHalf"),
    ("living_area", "LivingArea"),
    ("above_grade_finished_area", "AboveGradeFinishedArea"),
    ("below_grade_finished_area", "BelowGradeFinishedArea"),
    ("building_area_total", "BuildingAreaTotal"),
    ("lot_size_acres", "LotSizeAcres"),
    ("lot_size_square_feet", "LotSizeSquareFeet"),
    ("year_built", "YearBuilt"),
    ("stories_total", "StoriesTotal"),
    ("garage_spaces", "GarageSpaces"),
    ("parking_total", "ParkingTotal"),
    ("fireplaces_total", "FireplacesTotal"),
    ("rooms_total", "RoomsTotal"),

    # Location
    ("unparsed_address", "UnparsedAddress"),
    ("street_number", "StreetNumber"),
    ("street_dir_prefix", "StreetDirPrefix"),
    ("street_name", "StreetName"),
    ("street_dir_suffix", "StreetDirSuffix"),
    ("unit_number", "UnitNumber"),
    ("building_name", "BuildingName"),
    ("city", "City"),
    ("state_or_province", "StateOrProvince"),
    ("postal_code", "PostalCode"),
    ("county_or_parish", "CountyOrParish"),
    ("latitude", "Latitude"),
    ("longitude", "Longitude"),
    ("subdivision_name", "SubdivisionName"),
    ("elementary_school", "ElementarySchool"),
    ("middle_or_junior_school", "MiddleOrJuniorSchool"),
    ("high_school", "HighSchool"),
    ("school_district", "SchoolDistrict"),

    # Financial
    ("tax_annual_amount", "TaxAnnualAmount"),
    ("tax_year", "TaxYear"),
    ("tax_assessed_value", "TaxAssessedValue"),
    ("association_yn", "AssociationYN"),
    ("association_fee", "AssociationFee"),
    ("association_fee_frequency", "AssociationFeeFrequency"),
    ("mls_area_major", "MLSAreaMajor"),
    ("mls_area_minor", "MLSAreaMinor"),
    ("zoning", "Zoning"),
    ("parcel_number", "ParcelNumber"),

    # Boolean flags
    ("pool_private_yn", "PoolPrivateYN"),
    ("waterfront_yn", "WaterfrontYN"),
    ("view_yn", "ViewYN"),
    ("spa_yn", "SpaYN"),
    ("fireplace_yn", "FireplaceYN"),
    ("cooling_yn", "CoolingYN"),
    ("heating_yn", "HeatingYN"),
    ("garage_yn", "GarageYN"),
    ("attached_garage_yn", "AttachedGarageYN"),
    ("senior_community_yn", "SeniorCommunityYN"),
    ("home_warranty_yn", "HomeWarrantyYN"),
    ("property_attached_yn", "PropertyAttachedYN"),

    # Feature lists (stored JSON-encoded)
    ("basement", "Basement"),
    ("heating", "Heating"),
    ("cooling", "Cooling"),
    ("construction_materials", "ConstructionMaterials"),
    ("roof", "Roof"),
    ("flooring", "Flooring"),
    ("appliances", "Appliances"),
    ("interior_features", "InteriorFeatures"),
    ("exterior_features", "ExteriorFeatures"),
    ("parking_features", "ParkingFeatures"),
    ("architectural_style", "ArchitecturalStyle"),
)

MEDIA_FIELD_MAP: FieldMap = (
    ("media_key", "MediaKey"),
    ("media_url", "MediaURL"),
    ("media_category", "MediaCategory"),
    ("order_index", "Order"),
)

AGENT_FIELD_MAP: FieldMap = (
    ("agent_mls_id", "MemberMlsId"),
    ("agent_key", "MemberKey"),
    ("full_name", "MemberFullName"),
    ("first_name", "MemberFirstName"),
    ("last_name", "MemberLastName"),
    ("email", "MemberEmail"),
    ("phone", "MemberDirectPhone"),
    ("office_mls_id", "OfficeMlsId"),
    ("state_license", "MemberStateLicense"),
    ("designation", "MemberDesignation"),
)

OFFICE_FIELD_MAP: FieldMap = (
    ("office_mls_id", "OfficeMlsId"),
    ("office_key", "OfficeKey"),
    ("office_name", "OfficeName"),
    ("phone", "OfficePhone"),
    ("address", "OfficeAddress1"),
    ("city", "OfficeCity"),
    ("state_or_province", "OfficeStateOrProvince"),
    ("postal_code", "OfficePostalCode"),
)

OPEN_HOUSE_FIELD_MAP: FieldMap = (
    ("open_house_key", "OpenHouseKey"),
    ("open_house_date", "OpenHouseDate"),
    ("open_house_start_time", "OpenHouseStartTime"),
    ("open_house_end_time", "OpenHouseEndTime"),
    ("open_house_type", "OpenHouseType"),
    ("open_house_remarks", "OpenHouseRemarks"),
    ("showing_agent_mls_id", "ShowingAgentMlsId"),
)

FIELD_MAPS: Mapping[EntityKind, FieldMap] = MappingProxyType({
    EntityKind.PROPERTY: PROPERTY_FIELD_MAP,
    EntityKind.MEDIA: MEDIA_FIELD_MAP,
    EntityKind.AGENT: AGENT_FIELD_MAP,
    EntityKind.OFFICE: OFFICE_FIELD_MAP,
    EntityKind.OPEN_HOUSE: OPEN_HOUSE_FIELD_MAP,
})

# Statuses that take a listing off the market
ARCHIVED_STATUSES = frozenset({
    "Closed",
    "Expired",
    "Withdrawn",
    "Canceled",
})

# Statuses pulled by both incremental and full syncs
SYNCED_STATUSES: Tuple[str, ...] = (
    "Active",
    "Pending",
    "Active Under Contract",
)

# Bookkeeping columns never reported as listing changes
CHANGE_DETECTION_SKIP = frozenset({
    "id",
    "created_at",
    "updated_at",
    "extra_data",
})

PRICE_FIELDS = frozenset({"list_price", "original_list_price", "close_price"})
STATUS_FIELDS = frozenset({"standard_status", "mls_status"})

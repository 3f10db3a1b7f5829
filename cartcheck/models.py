"""Data models for lookups and result rows."""
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

IDENTIFIER_PATTERN = re.compile(r"[0-9]{8,14}")


def normalize_identifier(value: str | None) -> str:
    """Trim an input identifier; None becomes an empty string."""
    return "" if value is None else value.strip()


def is_valid_identifier(value: str | None) -> bool:
    """True for an 8-14 digit numeric string."""
    if value is None:
        return False
    return IDENTIFIER_PATTERN.fullmatch(value.strip()) is not None


class SessionState(str, Enum):
    CREATED = "created"
    AUTHENTICATED = "authenticated"
    IN_USE = "in_use"
    INVALID = "invalid"
    CLOSED = "closed"


class Outcome(str, Enum):
    """Classified result of one search attempt."""

    OPENED = "opened"
    NO_PRODUCTS_FOUND = "no_products_found"
    BLOCKED = "blocked"
    LOGIN_REQUIRED = "login_required"
    MAINTENANCE = "maintenance"


class CartState(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    MISSING = "missing"


class CartVerdict(str, Enum):
    YES = "YES"
    NO = "NO"
    NA = "NA"


class Status(str, Enum):
    PRESENT = "ADD TO CART PRESENT"
    NOT_PRESENT = "ADD TO CART NOT PRESENT"
    NO_PRODUCTS_FOUND = "NO PRODUCT FOUND"
    BLOCKED = "BLOCKED"
    MAINTENANCE = "MAINTENANCE"
    FAILED = "FAILED"
    INVALID_FORMAT = "INVALID_UPC"


@dataclass(frozen=True)
class Batch:
    """Contiguous slice of identifiers owned by one session and one CSV."""

    number: int
    identifiers: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.identifiers)


class ProductFields(BaseModel):
    """Raw text captured from a product page. Every field is optional."""

    product_name: Optional[str] = None
    item_number: Optional[str] = None
    product_upc: Optional[str] = None
    vendor_item_number: Optional[str] = None
    case_pack: Optional[str] = None
    description: Optional[str] = None
    price: Optional[str] = None
    msrp_pricing: Optional[str] = None
    stock: Optional[str] = None
    out_of_stock: Optional[str] = None
    # Specification table
    brand_name: Optional[str] = None
    item_upc_ean: Optional[str] = None
    bullet_features: Optional[str] = None
    catalog_page_number: Optional[str] = None
    drop_ship_only: Optional[str] = None
    msrp_price: Optional[str] = None
    primary_color: Optional[str] = None
    prohibited_states: Optional[str] = None
    vendor_item_no: Optional[str] = None
    year_launched: Optional[str] = None
    prop65_applies: Optional[str] = None
    prop65_cancer_harm: Optional[str] = None
    prop65_reproductive_harm: Optional[str] = None

    class Config:
        frozen = True


# CSV header name -> ProductFields attribute, in output order
PRODUCT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("ProductName", "product_name"),
    ("ItemNumber", "item_number"),
    ("ProductUPC", "product_upc"),
    ("VendorItemNumber", "vendor_item_number"),
    ("CasePack", "case_pack"),
    ("ProductDetailDescription", "description"),
    ("ProductDetailPrice", "price"),
    ("MsrpPricing", "msrp_pricing"),
    ("Stock", "stock"),
    ("OutOfStock", "out_of_stock"),
    ("BrandName", "brand_name"),
    ("ItemUpcEanNumber", "item_upc_ean"),
    ("BulletFeatures", "bullet_features"),
    ("CatalogPageNumber", "catalog_page_number"),
    ("DropShipOnly", "drop_ship_only"),
    ("MsrpPrice", "msrp_price"),
    ("PrimaryColor", "primary_color"),
    ("ProhibitedStates", "prohibited_states"),
    ("VendorItemNo", "vendor_item_no"),
    ("YearLaunched", "year_launched"),
    ("Prop65Applies", "prop65_applies"),
    ("Prop65CancerHarm", "prop65_cancer_harm"),
    ("Prop65ReproductiveHarm", "prop65_reproductive_harm"),
)

CSV_HEADER: tuple[str, ...] = ("UPC", "AddToCart", "ProductURL", "Status", "Message") + tuple(
    name for name, _ in PRODUCT_COLUMNS
)


class ProductSnapshot(BaseModel):
    """Everything read from a product page in one extraction pass."""

    url: str = ""
    cart_state: CartState = CartState.MISSING
    out_of_stock: bool = False
    selection_required: bool = False
    fields: ProductFields = Field(default_factory=ProductFields)

    class Config:
        frozen = True


class ResultRecord(BaseModel):
    """One output row for one identifier's processing attempt."""

    identifier: str = Field(..., description="Normalized identifier (UPC)")
    add_to_cart: CartVerdict = Field(default=CartVerdict.NA)
    url: str = Field(default="", description="Page URL when the record was taken")
    status: Status
    message: str = ""
    product: ProductFields = Field(default_factory=ProductFields)
    screenshot: Optional[str] = Field(default=None, description="Diagnostic snapshot path, if captured")
    recorded_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True

    @property
    def is_success(self) -> bool:
        return self.status == Status.PRESENT

    def csv_row(self) -> list[Optional[str]]:
        """Values in CSV_HEADER order."""
        row: list[Optional[str]] = [
            self.identifier,
            self.add_to_cart.value,
            self.url,
            self.status.value,
            self.message,
        ]
        row.extend(getattr(self.product, attr) for _, attr in PRODUCT_COLUMNS)
        return row

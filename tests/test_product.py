"""Tests for product page extraction and record mapping."""
import asyncio

from cartcheck.models import CartState, CartVerdict, ProductFields, ProductSnapshot, Status
from cartcheck.search import product
from cartcheck.search.product import is_out_of_stock, read_product, snapshot_to_record
from cartcheck.site import locators
from fakes import FakeElement, FakePage, FakeSession

SPEC_ROWS = (
    '<tr class="properties-row"><th class="properties-label">Brand Name</th>'
    '<td class="properties-value">Acme</td></tr>'
    '<tr class="properties-row"><th class="properties-label">Case Pack</th>'
    '<td class="properties-value">24</td></tr>'
)


def _product_page(overrides=None):
    elements = {
        locators.PRODUCT_NAME: FakeElement("Claw Hammer"),
        locators.ITEM_NUMBER: FakeElement("KN-100"),
        locators.PRICE: FakeElement("$12.99"),
        locators.STOCK: FakeElement("25 in stock"),
        locators.ADD_TO_CART: FakeElement("Add to Cart"),
        locators.SPEC_TABLE_BODY: FakeElement(html=SPEC_ROWS),
    }
    elements.update(overrides or {})
    return FakePage(url="https://shop.test/p/hammer", elements={k: v for k, v in elements.items() if v is not None})


def _read(page):
    return asyncio.run(read_product(FakeSession(page=page)))


def test_read_enabled_product():
    snapshot = _read(_product_page())
    assert snapshot.cart_state == CartState.ENABLED
    assert snapshot.url == "https://shop.test/p/hammer"
    assert not snapshot.out_of_stock
    assert not snapshot.selection_required
    assert snapshot.fields.product_name == "Claw Hammer"
    assert snapshot.fields.item_number == "KN-100"
    assert snapshot.fields.price == "$12.99"
    assert snapshot.fields.brand_name == "Acme"
    assert snapshot.fields.case_pack == "24"


def test_price_fallback_and_header_case_pack(monkeypatch):
    """Blank customer price falls back; header case pack wins over the table."""
    monkeypatch.setattr(product, "PRICE_TIMEOUT", 0)
    page = _product_page(
        {
            locators.PRICE: FakeElement("  "),
            locators.PRICE_FALLBACK: FakeElement("$9.50"),
            locators.CASE_PACK: FakeElement("6"),
        }
    )
    snapshot = _read(page)
    assert snapshot.fields.price == "$9.50"
    assert snapshot.fields.case_pack == "6"


def test_disabled_button():
    page = _product_page({locators.ADD_TO_CART: FakeElement("Add to Cart", attrs={"aria-disabled": "true"})})
    assert _read(page).cart_state == CartState.DISABLED


def test_missing_button():
    page = _product_page({locators.ADD_TO_CART: None})
    assert _read(page).cart_state == CartState.MISSING


def test_variant_selector_requires_selection():
    page = _product_page({locators.VARIANT_SELECT: FakeElement()})
    assert _read(page).selection_required


def test_select_option_label_requires_selection():
    page = _product_page({locators.ADD_TO_CART: FakeElement("Select an option")})
    assert _read(page).selection_required


def test_out_of_stock_heuristic():
    assert is_out_of_stock(ProductFields(out_of_stock="Out of stock"))
    assert is_out_of_stock(ProductFields(stock="Out of Stock"))
    assert is_out_of_stock(ProductFields(stock="0 in stock"))
    assert not is_out_of_stock(ProductFields(stock="10 in stock"))
    assert not is_out_of_stock(ProductFields(stock="25 in stock"))
    assert not is_out_of_stock(ProductFields())


def test_snapshot_to_record_messages():
    """Verdict and message follow cart state, stock and selection."""
    cases = [
        (ProductSnapshot(cart_state=CartState.MISSING), Status.NOT_PRESENT, CartVerdict.NO, "Add to Cart button not displayed"),
        (ProductSnapshot(cart_state=CartState.ENABLED), Status.PRESENT, CartVerdict.YES, ""),
        (
            ProductSnapshot(cart_state=CartState.ENABLED, out_of_stock=True, selection_required=True),
            Status.PRESENT,
            CartVerdict.YES,
            "Out of stock indicator detected",
        ),
        (
            ProductSnapshot(cart_state=CartState.DISABLED, selection_required=True),
            Status.PRESENT,
            CartVerdict.YES,
            "Product requires selection before add to cart",
        ),
        (ProductSnapshot(cart_state=CartState.DISABLED), Status.PRESENT, CartVerdict.YES, "Add to Cart is present but disabled"),
    ]
    for snapshot, status, verdict, message in cases:
        record = snapshot_to_record("012345678912", snapshot)
        assert (record.status, record.add_to_cart, record.message) == (status, verdict, message)


class SpinnerSession(FakeSession):
    """The buy-box spinner stays visible for ``ticks`` checks; records the order of reads."""

    def __init__(self, page, ticks):
        super().__init__(page=page)
        self.ticks = ticks
        self.spinner_checks = 0
        self.events = []

    async def find_visible(self, locator, timeout=0):
        if locator == locators.BUY_BOX_SPINNER:
            self.spinner_checks += 1
            if self.spinner_checks <= self.ticks:
                return FakeElement()
            self.events.append("spinner gone")
            return None
        if locator == locators.PRICE:
            self.events.append("price")
        return await super().find_visible(locator, timeout)


def test_price_read_only_after_spinner_is_gone():
    """A still-loading buy box is waited out before anything is read."""
    session = SpinnerSession(_product_page(), ticks=2)
    snapshot = asyncio.run(read_product(session))

    assert session.spinner_checks == 3
    assert session.events[0] == "spinner gone"
    assert "price" in session.events
    assert snapshot.fields.price == "$12.99"
    assert snapshot.cart_state == CartState.ENABLED

"""Read Add-to-Cart state and product attributes from an opened product page."""
import logging
import re
from typing import Optional

from cartcheck.browser.base import BrowserSession
from cartcheck.browser.waits import safe_read_text, wait_absent, wait_text_not_empty
from cartcheck.errors import is_session_invalid
from cartcheck.models import (
    CartState,
    CartVerdict,
    ProductFields,
    ProductSnapshot,
    ResultRecord,
    Status,
)
from cartcheck.parse.spec_table import parse_spec_table, spec_fields
from cartcheck.site import locators

logger = logging.getLogger(__name__)

SPINNER_TIMEOUT = 10
PRICE_TIMEOUT = 8
STOCK_TIMEOUT = 4
NAME_TIMEOUT = 8
FIELD_TIMEOUT = 1

# "0 in stock" but not "10 in stock"
ZERO_COUNT = re.compile(r"(?<![\d.,])0(?![\d.,])")

MSG_CART_MISSING = "Add to Cart button not displayed"
MSG_OUT_OF_STOCK = "Out of stock indicator detected"
MSG_SELECTION_REQUIRED = "Product requires selection before add to cart"
MSG_CART_DISABLED = "Add to Cart is present but disabled"


async def read_product(session: BrowserSession) -> ProductSnapshot:
    """
    One extraction pass over the current product page.

    The buy box renders late: wait for its spinner to go away and for price
    and stock text before judging the button, otherwise a still-loading page
    reads as "not present". All waits are best effort.
    """
    if not await wait_absent(session, locators.BUY_BOX_SPINNER, SPINNER_TIMEOUT):
        logger.debug("Buy box spinner still visible, reading anyway")
    await wait_text_not_empty(session, locators.PRICE, PRICE_TIMEOUT)
    await wait_text_not_empty(session, locators.STOCK, STOCK_TIMEOUT)

    fields = await _capture_fields(session)
    cart_state, button_text = await _cart_state(session)

    return ProductSnapshot(
        url=await session.current_url(),
        cart_state=cart_state,
        out_of_stock=is_out_of_stock(fields),
        selection_required=await _selection_required(session, cart_state, button_text),
        fields=fields,
    )


async def _capture_fields(session: BrowserSession) -> ProductFields:
    values: dict[str, Optional[str]] = {
        "product_name": await safe_read_text(session, locators.PRODUCT_NAME, NAME_TIMEOUT),
        "item_number": await safe_read_text(session, locators.ITEM_NUMBER, FIELD_TIMEOUT),
        "product_upc": await safe_read_text(session, locators.PRODUCT_UPC, FIELD_TIMEOUT),
        "vendor_item_number": await safe_read_text(session, locators.VENDOR_ITEM_NUMBER, FIELD_TIMEOUT),
        "case_pack": await safe_read_text(session, locators.CASE_PACK, FIELD_TIMEOUT),
        "description": await safe_read_text(session, locators.DESCRIPTION, FIELD_TIMEOUT),
        "msrp_pricing": await safe_read_text(session, locators.MSRP_PRICING, FIELD_TIMEOUT),
        "stock": await safe_read_text(session, locators.STOCK, FIELD_TIMEOUT),
        "out_of_stock": await safe_read_text(session, locators.OUT_OF_STOCK, FIELD_TIMEOUT),
    }

    price = await safe_read_text(session, locators.PRICE, FIELD_TIMEOUT)
    if not price:
        price = await safe_read_text(session, locators.PRICE_FALLBACK, FIELD_TIMEOUT)
    values["price"] = price

    values.update(spec_fields(await _read_spec_table(session), values["case_pack"]))
    return ProductFields(**values)


async def _read_spec_table(session: BrowserSession) -> dict[str, str]:
    """Specification table rows, or empty if the page has none."""
    try:
        body = await session.find_visible(locators.SPEC_TABLE_BODY, FIELD_TIMEOUT)
        if body is None:
            return {}
        return parse_spec_table(await session.inner_html(body))
    except Exception as e:
        if is_session_invalid(e):
            raise
        logger.debug(f"Spec table not readable: {e}")
        return {}


async def _cart_state(session: BrowserSession) -> tuple[CartState, str]:
    """Add-to-Cart button state plus its label text."""
    try:
        button = await session.find_visible(locators.ADD_TO_CART)
        if button is None:
            return CartState.MISSING, ""

        aria_disabled = await session.get_attribute(button, "aria-disabled")
        disabled_attr = await session.get_attribute(button, "disabled")
        enabled = await session.is_enabled(button)
        text = await session.read_text(button) or ""

        if not enabled or (aria_disabled or "").lower() == "true" or disabled_attr is not None:
            return CartState.DISABLED, text
        return CartState.ENABLED, text
    except Exception as e:
        if is_session_invalid(e):
            raise
        logger.debug(f"Add to Cart state not readable: {e}")
        return CartState.MISSING, ""


async def _selection_required(session: BrowserSession, cart_state: CartState, button_text: str) -> bool:
    if cart_state == CartState.MISSING:
        return False
    label = button_text.lower()
    if "select" in label and "option" in label:
        return True
    try:
        selector = await session.find_visible(locators.VARIANT_SELECT)
        return selector is not None and await session.is_enabled(selector)
    except Exception as e:
        if is_session_invalid(e):
            raise
        logger.debug(f"Variant selector check failed: {e}")
        return False


def is_out_of_stock(fields: ProductFields) -> bool:
    """Out-of-stock label text present, or stock text reading as zero/out of stock."""
    if fields.out_of_stock and fields.out_of_stock.strip():
        return True
    if not fields.stock:
        return False
    stock = fields.stock.lower()
    return "out of stock" in stock or (ZERO_COUNT.search(stock) is not None and "stock" in stock)


def snapshot_to_record(identifier: str, snapshot: ProductSnapshot) -> ResultRecord:
    """Turn a product page reading into the result row for ``identifier``."""
    if snapshot.cart_state == CartState.MISSING:
        return ResultRecord(
            identifier=identifier,
            add_to_cart=CartVerdict.NO,
            url=snapshot.url,
            status=Status.NOT_PRESENT,
            message=MSG_CART_MISSING,
            product=snapshot.fields,
        )

    if snapshot.out_of_stock:
        message = MSG_OUT_OF_STOCK
    elif snapshot.selection_required:
        message = MSG_SELECTION_REQUIRED
    elif snapshot.cart_state == CartState.DISABLED:
        message = MSG_CART_DISABLED
    else:
        message = ""

    return ResultRecord(
        identifier=identifier,
        add_to_cart=CartVerdict.YES,
        url=snapshot.url,
        status=Status.PRESENT,
        message=message,
        product=snapshot.fields,
    )

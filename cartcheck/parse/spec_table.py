"""Parse the product specification table (label/value rows)."""
import logging
from selectolax.parser import HTMLParser

logger = logging.getLogger(__name__)

# Table label -> ProductFields attribute
SPEC_LABELS = {
    "Brand Name": "brand_name",
    "Item UPC/EAN Number": "item_upc_ean",
    "BulletFeatures": "bullet_features",
    "Catalog Page Number": "catalog_page_number",
    "Drop Ship Only": "drop_ship_only",
    "MSRP Price": "msrp_price",
    "Primary Color": "primary_color",
    "ProhibitedStates": "prohibited_states",
    "Vendor Item No.": "vendor_item_no",
    "Year Launched": "year_launched",
    "Case Pack": "case_pack",
    "Prop65Applies": "prop65_applies",
    "Prop65CancerHarm": "prop65_cancer_harm",
    "Prop65ReproductiveHarm": "prop65_reproductive_harm",
}


def parse_spec_table(html_content: str | None) -> dict[str, str]:
    """
    Extract ``{label: value}`` from ``tr.properties-row`` rows.

    Works on the table body's inner HTML or on a full page. Rows without a
    label cell are skipped; whitespace inside labels is collapsed.
    """
    if not html_content:
        return {}

    # A bare <tr> fragment gets dropped by the parser outside of a table
    if "<table" not in html_content:
        html_content = f"<table><tbody>{html_content}</tbody></table>"

    parser = HTMLParser(html_content)
    specs: dict[str, str] = {}
    for row in parser.css("tr.properties-row"):
        label_node = row.css_first("th.properties-label")
        value_node = row.css_first("td.properties-value")
        if label_node is None:
            continue
        label = " ".join(label_node.text().split())
        if not label:
            continue
        value = value_node.text().strip() if value_node is not None else ""
        specs[label] = value
    return specs


def spec_fields(specs: dict[str, str], case_pack: str | None = None) -> dict[str, str]:
    """
    Map parsed labels onto ProductFields attribute names.
    Case pack from the table only fills in when the header field was empty.
    """
    fields: dict[str, str] = {}
    for label, value in specs.items():
        attr = SPEC_LABELS.get(label)
        if attr is None:
            continue
        if attr == "case_pack" and case_pack:
            continue
        fields[attr] = value
    return fields

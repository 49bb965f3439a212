"""
Maps raw sheet rows (lists of cell strings) to catalog records.

Item rows are keyed by column A, the item group name, shaped like
`<category>.<company>.<model>`. Empty rows and `LineGap` separator rows are
skipped.
"""

import logging
from collections.abc import Collection, Sequence

from catalog_sync.models.catalog import FeatureRecord, Product

log = logging.getLogger(__name__)


def column_index(letters: str) -> int:
    """Converts a spreadsheet column name ('A', 'S', 'AF', 'EY') to a 0-based index."""
    index = 0
    for ch in letters.strip().upper():
        if not "A" <= ch <= "Z":
            raise ValueError(f"Invalid column name: {letters!r}")
        index = index * 26 + (ord(ch) - ord("A") + 1)
    if index == 0:
        raise ValueError("Column name cannot be empty.")
    return index - 1


COL_ID = column_index("A")
COL_PRICE = column_index("S")
COL_WARRANTY = column_index("T")
COL_ORDER = column_index("AF")
COL_FEATURE_KEYS = column_index("EY")

COL_FEATURE_KEY = column_index("A")
COL_FEATURE_LABEL = column_index("B")
COL_FEATURE_URL = column_index("C")

LINE_GAP = "linegap"


def _cell(row: Sequence[str], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def category_from_group_name(group_name: str) -> str:
    """Returns the first dot-separated segment, lower-cased."""
    return (group_name or "").strip().split(".")[0].lower()


def _parse_order(value: str) -> int | None:
    if not value:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def map_row_to_product(
    row: Sequence[str], allowed_categories: Collection[str] | None = None
) -> Product | None:
    """
    Maps one items-tab row to a Product, or None for rows that are not products.

    Args:
        row: The row's cells.
        allowed_categories: When given, rows of any other category are dropped.
    """
    group_name = _cell(row, COL_ID)
    if not group_name or group_name.lower() == LINE_GAP:
        return None

    category = category_from_group_name(group_name)
    if allowed_categories is not None and category not in allowed_categories:
        return None

    segments = group_name.split(".")
    return Product(
        id=group_name,
        image_filename=f"{group_name} (1).jpg",
        company=segments[1] if len(segments) > 1 else "",
        model=segments[2] if len(segments) > 2 else "",
        price=_cell(row, COL_PRICE),
        warranty=_cell(row, COL_WARRANTY),
        category=category,
        order=_parse_order(_cell(row, COL_ORDER)),
        feature_keys=_cell(row, COL_FEATURE_KEYS) or None,
    )


def map_rows_to_products(
    rows: Sequence[Sequence[str]], allowed_categories: Collection[str] | None = None
) -> list[Product]:
    """Maps item rows to products, preserving sheet order."""
    if allowed_categories is not None:
        allowed_categories = {c.lower() for c in allowed_categories}
    products = []
    for row in rows:
        if product := map_row_to_product(row, allowed_categories):
            products.append(product)
    log.debug(f"Mapped {len(products)} products from {len(rows)} rows.")
    return products


def map_rows_to_feature_records(rows: Sequence[Sequence[str]]) -> list[FeatureRecord]:
    """Column A = key, column B = label, column C = optional media reference."""
    records = []
    for row in rows:
        key = _cell(row, COL_FEATURE_KEY)
        if not key:
            continue
        records.append(
            FeatureRecord(
                key=key,
                label=_cell(row, COL_FEATURE_LABEL),
                url=_cell(row, COL_FEATURE_URL) or None,
            )
        )
    return records

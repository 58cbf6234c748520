"""Price list loading: delimited text -> annotated catalog items."""
from __future__ import annotations
import csv
import hashlib
import io
from pathlib import Path
from typing import Dict, List, Union

import pandas as pd
from loguru import logger

from repair_pricing.catalog.models import CatalogItem
from repair_pricing.catalog.price import extract_price
from repair_pricing.catalog.rules import derive_metadata, normalize_text
from repair_pricing.errors import CatalogParseError

DELIMITERS = (",", ";", "\t", "|")


def _detect_delimiter(header_line: str) -> str:
    counts = {d: header_line.count(d) for d in DELIMITERS}
    best = max(counts, key=counts.get)
    return best if counts[best] > 0 else ","


def make_item_id(raw_name: str, seen: Dict[str, int]) -> str:
    """Content-derived id: stable across reloads while the name is unchanged.

    Repeated names get a ``-2``, ``-3``... suffix in catalog order.
    """
    base = "item_" + hashlib.sha1(normalize_text(raw_name).encode("utf-8")).hexdigest()[:12]
    seen[base] = seen.get(base, 0) + 1
    return base if seen[base] == 1 else f"{base}-{seen[base]}"


def _read_table(text: str) -> pd.DataFrame:
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise CatalogParseError("Invalid price list: expected a header row and at least one data row")

    sep = _detect_delimiter(lines[0])
    n_cols = len(next(csv.reader([lines[0]], delimiter=sep)))

    def _trim(bad_line: List[str]) -> List[str]:
        logger.warning(f"Row has {len(bad_line)} fields, expected {n_cols}; extra fields dropped")
        return bad_line[:n_cols]

    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=_trim,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise CatalogParseError(f"Could not parse price list: {e}") from e

    df = df.fillna("")
    df.columns = [str(c).strip() for c in df.columns]
    if df.empty:
        raise CatalogParseError("Invalid price list: no data rows")
    return df


def load(source_text: str) -> List[CatalogItem]:
    """Parse a delimited price list into catalog items.

    The first row holds headers, the first column the product name and the
    second column a price candidate. Rows with an empty name are skipped.
    """
    text = (source_text or "").lstrip("\ufeff")
    df = _read_table(text)
    name_col = df.columns[0]

    items: List[CatalogItem] = []
    seen: Dict[str, int] = {}
    skipped = 0
    for position, row in enumerate(df.to_dict("records")):
        raw_name = str(row.get(name_col) or "").strip()
        if not raw_name:
            skipped += 1
            continue
        fields = {str(k): str(v if v is not None else "").strip() for k, v in row.items()}
        meta = derive_metadata(raw_name)
        items.append(CatalogItem(
            id=make_item_id(raw_name, seen),
            raw_name=raw_name,
            brand=meta.brand,
            device_model=meta.device_model,
            service_type=meta.service_type,
            quality_tier=meta.quality_tier,
            price=extract_price(fields),
            position=position,
            fields=fields,
        ))

    if not items:
        raise CatalogParseError(f"Invalid price list: column '{name_col}' is empty in every row")
    if skipped:
        logger.warning(f"Skipped {skipped} rows without a product name")

    priced = sum(1 for it in items if it.has_valid_price)
    logger.info(f"Loaded {len(items)} catalog items ({priced} with a valid price)")
    return items


def load_file(path: Union[str, Path]) -> List[CatalogItem]:
    path = Path(path)
    if not path.exists():
        raise CatalogParseError(f"Price list not found: {path}")
    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogParseError(f"Could not read price list {path}: {e}") from e
    logger.debug(f"Reading price list from {path}")
    return load(text)

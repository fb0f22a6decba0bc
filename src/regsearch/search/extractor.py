"""Results-table extraction.

Reads header and body cell text from the results table in one
``page.evaluate`` round trip, then maps headers to logical column names.
Markup is discarded; only whitespace-collapsed text survives.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING

from regsearch.models.search import SearchRecord

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger(__name__)

# Header text (lower-cased, whitespace-collapsed) → logical column name
COLUMN_ALIASES: dict[str, str] = {
    "cin": "registration_number",
    "llpin": "registration_number",
    "fcrn": "registration_number",
    "cin/fcrn/llpin/fllpin": "registration_number",
    "cin/llpin": "registration_number",
    "registration number": "registration_number",
    "company name": "entity_name",
    "llp name": "entity_name",
    "company/llp name": "entity_name",
    "name": "entity_name",
    "status": "status",
    "company status": "status",
    "llp status": "status",
    "date of incorporation": "incorporation_date",
    "state": "state",
    "roc": "roc",
}

_EXTRACT_TABLE_JS = """
(selector) => {
    const table = document.querySelector(selector);
    if (!table) return { headers: [], rows: [] };
    const text = (cell) => (cell.innerText || cell.textContent || '');

    let headerCells = Array.from(table.querySelectorAll('thead th'));
    if (!headerCells.length) {
        const first = table.querySelector('tr');
        if (first) headerCells = Array.from(first.querySelectorAll('th'));
    }
    const headers = headerCells.map(text);

    const rows = [];
    const headRows = [];
    table.querySelectorAll('tr').forEach(tr => {
        const cells = Array.from(tr.querySelectorAll('td')).map(text);
        if (!cells.length) return;
        (tr.closest('thead') ? headRows : rows).push(cells);
    });
    return { headers, rows, headRows };
}
"""

_WS_RE = re.compile(r"\s+")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def _normalize(text: str | None) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def column_name(header: str, position: int) -> str:
    """Map a header cell's text to its logical column name."""
    key = _normalize(header).lower()
    if not key:
        return f"column_{position}"
    if key in COLUMN_ALIASES:
        return COLUMN_ALIASES[key]
    return _SLUG_RE.sub("_", key).strip("_") or f"column_{position}"


def build_records(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> list[SearchRecord]:
    """Turn raw header/row text into records, in document order.

    Rows whose cells are all blank are skipped; extra cells beyond the
    header get positional names.
    """
    names = [column_name(h, i) for i, h in enumerate(headers)]
    records: list[SearchRecord] = []
    for row in rows:
        cells = [_normalize(c) for c in row]
        if not any(cells):
            continue
        record: SearchRecord = {}
        for i, value in enumerate(cells):
            name = names[i] if i < len(names) else f"column_{i}"
            if name in record:
                name = f"{name}_{i}"
            record[name] = value
        records.append(record)
    return records


def extract_results(page: Page, table_selector: str) -> list[SearchRecord]:
    """Extract the results table at *table_selector* as records.

    Headers come from ``<th>`` cells; a ``<thead>`` row built from ``<td>``
    cells stands in when there are none.  Rows inside ``<thead>`` are never
    records.  An empty table yields ``[]``.
    """
    raw = page.evaluate(_EXTRACT_TABLE_JS, table_selector) or {}
    headers = raw.get("headers") or []
    head_rows = raw.get("headRows") or []
    if not headers and head_rows:
        headers = head_rows[0]
    records = build_records(headers, raw.get("rows", []))
    logger.info("Extracted %d result record(s)", len(records))
    return records

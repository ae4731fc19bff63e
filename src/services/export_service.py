"""
Tabular export of parse results (XLSX / CSV).

``build_export_rows`` turns result rows into display rows; the writers only
serialise what they are given.
"""

from __future__ import annotations

import io
from typing import Iterable, Protocol

import pandas as pd

SHEET_NAME = "Trustpilot"
COUNT_NOT_FOUND = "not found"
NAME_MISSING = "—"
EMAIL_MISSING = "no email"

# header -> column width (characters)
EXPORT_COLUMNS: dict[str, int] = {
    "URL": 50,
    "Service name": 30,
    "Review count": 20,
    "Email": 35,
    "Status": 12,
    "Error": 40,
}

TERMINAL_STATUSES = ("completed", "failed")


class ExportableResult(Protocol):
    url: str
    service_name: str | None
    review_count: int | None
    email: str | None
    status: str
    error_message: str | None


def build_export_rows(results: Iterable[ExportableResult]) -> list[dict]:
    """One row per result, in the order given.

    A missing review count is rendered as the literal "not found" so it is
    never confused with a count of zero.
    """
    rows = []
    for result in results:
        rows.append(
            {
                "URL": result.url,
                "Service name": result.service_name or NAME_MISSING,
                "Review count": (
                    result.review_count if result.review_count is not None else COUNT_NOT_FOUND
                ),
                "Email": result.email or EMAIL_MISSING,
                "Status": result.status if result.status in TERMINAL_STATUSES else "in progress",
                "Error": result.error_message or "",
            }
        )
    return rows


def _frame(rows: list[dict]) -> pd.DataFrame:
    # object dtype keeps ints and "not found" side by side in one column
    return pd.DataFrame(rows, columns=list(EXPORT_COLUMNS), dtype=object)


def generate_xlsx(rows: list[dict]) -> bytes:
    """Serialise export rows into an XLSX workbook."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        _frame(rows).to_excel(writer, sheet_name=SHEET_NAME, index=False)
        sheet = writer.sheets[SHEET_NAME]
        for idx, width in enumerate(EXPORT_COLUMNS.values()):
            letter = chr(ord("A") + idx)
            sheet.column_dimensions[letter].width = width
        sheet.freeze_panes = "A2"
    return buf.getvalue()


def generate_csv(rows: list[dict]) -> bytes:
    """Serialise export rows as UTF-8 CSV (with BOM, so Excel detects the encoding)."""
    return _frame(rows).to_csv(index=False).encode("utf-8-sig")

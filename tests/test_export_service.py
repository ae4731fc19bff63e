"""Tests for export row building and spreadsheet serialisation."""

import io
from types import SimpleNamespace

import pandas as pd

from src.services.export_service import (
    COUNT_NOT_FOUND,
    EMAIL_MISSING,
    EXPORT_COLUMNS,
    NAME_MISSING,
    SHEET_NAME,
    build_export_rows,
    generate_csv,
    generate_xlsx,
)


def _result(**overrides):
    fields = dict(
        url="acme.com",
        service_name="Acme",
        review_count=42,
        email="hi@acme.com",
        status="completed",
        error_message=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestBuildExportRows:
    def test_completed_row(self):
        [row] = build_export_rows([_result()])

        assert row == {
            "URL": "acme.com",
            "Service name": "Acme",
            "Review count": 42,
            "Email": "hi@acme.com",
            "Status": "completed",
            "Error": "",
        }

    def test_missing_count_rendered_as_not_found(self):
        [row] = build_export_rows([_result(review_count=None)])
        assert row["Review count"] == COUNT_NOT_FOUND == "not found"

    def test_zero_count_kept(self):
        [row] = build_export_rows([_result(review_count=0)])
        assert row["Review count"] == 0

    def test_failed_row_carries_error(self):
        [row] = build_export_rows(
            [_result(status="failed", service_name=None, review_count=None, email=None,
                     error_message="Invalid URL")]
        )

        assert row["Status"] == "failed"
        assert row["Error"] == "Invalid URL"
        assert row["Service name"] == NAME_MISSING
        assert row["Email"] == EMAIL_MISSING

    def test_unfinished_row(self):
        [row] = build_export_rows([_result(status="processing")])
        assert row["Status"] == "in progress"

    def test_order_preserved(self):
        rows = build_export_rows([_result(url="b"), _result(url="a")])
        assert [r["URL"] for r in rows] == ["b", "a"]


class TestWriters:
    def test_xlsx_round_trip(self):
        rows = build_export_rows([_result(), _result(url="x.com", review_count=None)])

        content = generate_xlsx(rows)

        frame = pd.read_excel(io.BytesIO(content), sheet_name=SHEET_NAME)
        assert list(frame.columns) == list(EXPORT_COLUMNS)
        assert frame["Review count"].tolist() == [42, "not found"]

    def test_xlsx_empty(self):
        frame = pd.read_excel(io.BytesIO(generate_xlsx([])), sheet_name=SHEET_NAME)
        assert list(frame.columns) == list(EXPORT_COLUMNS)
        assert frame.empty

    def test_csv(self):
        content = generate_csv(build_export_rows([_result(review_count=None)]))

        text = content.decode("utf-8-sig")
        header, line = text.strip().splitlines()
        assert header == "URL,Service name,Review count,Email,Status,Error"
        assert line == "acme.com,Acme,not found,hi@acme.com,completed,"

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import cast

import pandas as pd
from dateutil import tz
from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from reptile_care.compliance import build_compliance_report
from reptile_care.excel_writer import (
    ExcelLayout,
    _format_sheet,
    report_rows,
    write_care_xlsx,
)
from reptile_care.model import DietSplit, SpeciesTarget
from reptile_care.storage import SQLiteStore


def test_write_care_xlsx_happy_path_and_formatting(tmp_path: Path) -> None:
    """Una fila por dia: Day, Date, Feed (g), Calcium, UVB (h), Weight (kg)."""
    df = pd.DataFrame(
        {
            "date": [
                pd.to_datetime("2025-06-09").date(),
                pd.to_datetime("2025-06-10").date(),
            ],
            "feed_grams": [35.0, 1200.0],
            "calcium_count": [1, 0],
            "uvb_hours": [12.0, 11.5],
            "weight_kg": [0.35, None],
        }
    )
    out = tmp_path / "nested" / "out.xlsx"
    write_care_xlsx(df, out, ExcelLayout())

    wb = load_workbook(out)
    assert wb.sheetnames == [ExcelLayout().daily_sheet]
    ws = cast(Worksheet, wb[ExcelLayout().daily_sheet])

    headers = [cell.value for cell in ws[1]]
    assert headers == ["Day", "Date", "Feed (g)", "Calcium", "UVB (h)", "Weight (kg)"]
    assert ws.cell(row=2, column=1).value == "Mon"
    assert ws.cell(row=3, column=1).value == "Tue"

    feed_col = headers.index("Feed (g)") + 1
    assert ws.cell(row=3, column=feed_col).value == 1200.0
    assert ws.cell(row=3, column=feed_col).number_format == "#,##0"
    uvb_col = headers.index("UVB (h)") + 1
    assert ws.cell(row=2, column=uvb_col).number_format == "0.0"

    assert ws.column_dimensions["A"].width == 6
    weight_letter = get_column_letter(headers.index("Weight (kg)") + 1)
    assert ws.column_dimensions[weight_letter].width == 12


def test_write_care_xlsx_with_report_sheet(
    tmp_path: Path, store: SQLiteStore, seed: Callable[..., SpeciesTarget]
) -> None:
    seed(
        photoperiod_hours_min=10.0,
        photoperiod_hours_max=14.0,
        diet_split=DietSplit(greens=0.8, insect=0.2),
        temp_ranges={"basking": (30.0, 35.0)},
    )
    start = datetime(2025, 6, 9, tzinfo=tz.UTC)
    report = build_compliance_report(store, "rex", start, datetime(2025, 6, 16, tzinfo=tz.UTC))

    rows = report_rows(report)
    assert list(rows.columns) == ["section", "metric", "actual", "target", "passed"]
    uvb = rows[rows["section"] == "uvb"].iloc[0]
    assert uvb["target"] == "70 - 98"
    assert not uvb["passed"]
    assert "basking (0 samples)" in set(rows["metric"])
    assert set(rows[rows["section"] == "diet"]["metric"]) == {"greens", "insect"}

    out = tmp_path / "report.xlsx"
    write_care_xlsx(pd.DataFrame(columns=["date"]), out, ExcelLayout(), report)
    wb = load_workbook(out)
    assert wb.sheetnames == ["Daily care", "Compliance"]
    ws = cast(Worksheet, wb["Compliance"])
    assert ws.cell(row=1, column=1).value == "section"
    assert ws.cell(row=1, column=1).font.bold is True
    assert ws.cell(row=2, column=1).value == "uvb"


def test_write_care_xlsx_with_none_date_fills_weekday_empty(tmp_path: Path) -> None:
    """Si hay fecha None, weekday se escribe vacio (no se lanza excepcion)."""
    df = pd.DataFrame(
        {
            "date": [pd.to_datetime("2025-06-09").date(), None],
            "feed_grams": [10.0, 20.0],
        }
    )
    out = tmp_path / "out.xlsx"
    write_care_xlsx(df, out, ExcelLayout())
    ws = load_workbook(out)[ExcelLayout().daily_sheet]
    assert ws.cell(row=2, column=1).value == "Mon"
    # Excel guarda celdas vacias como None
    assert ws.cell(row=3, column=1).value in ("", None)


def test_format_sheet_handles_missing_headers() -> None:
    wb = Workbook()
    ws = cast(Worksheet, wb.active)
    ws.append(["Solo"])
    ws.append([1])

    _format_sheet(ws, {"Feed (g)": 10}, {"UVB (h)": "0.0"})

    assert ws.cell(row=1, column=1).font.bold is True
    assert ws.cell(row=2, column=1).alignment.horizontal == "center"

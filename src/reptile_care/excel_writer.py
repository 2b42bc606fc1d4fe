"""Exportacion a Excel del resumen diario y del reporte de cumplimiento."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side

from reptile_care.compliance import ComplianceReport

_WEEKDAYS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_DAILY_HEADERS: dict[str, str] = {
    "weekday": "Day",
    "date": "Date",
    "feed_grams": "Feed (g)",
    "calcium_count": "Calcium",
    "uvb_hours": "UVB (h)",
    "weight_kg": "Weight (kg)",
}

_DAILY_WIDTHS: dict[str, int] = {
    "Day": 6,
    "Date": 12,
    "Feed (g)": 10,
    "Calcium": 9,
    "UVB (h)": 9,
    "Weight (kg)": 12,
}

_DAILY_FORMATS: dict[str, str] = {
    "Date": "dd/mm/yyyy",
    "Feed (g)": "#,##0",
    "Calcium": "0",
    "UVB (h)": "0.0",
    "Weight (kg)": "0.000",
}

_REPORT_COLUMNS = ["section", "metric", "actual", "target", "passed"]

_REPORT_WIDTHS: dict[str, int] = {
    "section": 14,
    "metric": 22,
    "actual": 14,
    "target": 18,
    "passed": 8,
}


@dataclass(frozen=True)
class ExcelLayout:
    """Sheet names of the care workbook."""

    daily_sheet: str = "Daily care"
    report_sheet: str = "Compliance"


def _weekday_label(value: object) -> str:
    """Etiqueta corta del dia; vacio si la fecha falta."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    stamp = pd.to_datetime(value, errors="coerce")
    if pd.isna(stamp):
        return ""
    return _WEEKDAYS[stamp.weekday()]


def _daily_export_frame(daily: pd.DataFrame) -> pd.DataFrame:
    export_df = daily.copy()
    if "date" in export_df.columns:
        export_df.insert(0, "weekday", export_df["date"].map(_weekday_label))
        export_df["date"] = pd.to_datetime(export_df["date"], errors="coerce")
    return export_df.rename(columns=_DAILY_HEADERS)


def _fmt_range(bounds: tuple[float, float] | None) -> str:
    if bounds is None:
        return ""
    return f"{bounds[0]:g} - {bounds[1]:g}"


def report_rows(report: ComplianceReport) -> pd.DataFrame:
    """Flatten a compliance report into one row per metric."""
    rows: list[dict[str, object]] = [
        {
            "section": "uvb",
            "metric": "hours",
            "actual": round(report.uvb.actual_hours, 2),
            "target": _fmt_range(report.uvb.target_hours_range),
            "passed": report.uvb.passed,
        },
        {
            "section": "supplements",
            "metric": "calcium_d3",
            "actual": report.supplements.d3_actual_count,
            "target": report.supplements.d3_rule or "",
            "passed": report.supplements.passed,
        },
        {
            "section": "supplements",
            "metric": "calcium_plain",
            "actual": report.supplements.plain_calcium_count,
            "target": "",
            "passed": None,
        },
        {
            "section": "supplements",
            "metric": "vitamin",
            "actual": report.supplements.vitamin_count,
            "target": "",
            "passed": None,
        },
    ]
    target_split = report.diet.target_split or {}
    categories = sorted(set(report.diet.actual_split) | set(target_split))
    for category in categories:
        target = target_split.get(category)
        rows.append(
            {
                "section": "diet",
                "metric": category,
                "actual": round(report.diet.actual_split.get(category, 0.0), 3),
                "target": "" if target is None else f"{target:g}",
                "passed": None,
            }
        )
    for zone in report.temps.per_zone:
        ratio = zone.in_range_ratio
        rows.append(
            {
                "section": "temperature",
                "metric": f"{zone.zone} ({zone.samples} samples)",
                "actual": None if ratio is None else round(ratio, 3),
                "target": _fmt_range(zone.range),
                "passed": None,
            }
        )
    for note in report.notes:
        rows.append(
            {"section": "note", "metric": note, "actual": None, "target": "", "passed": None}
        )
    return pd.DataFrame(rows, columns=_REPORT_COLUMNS)


def write_care_xlsx(
    daily: pd.DataFrame,
    out_path: Path,
    layout: ExcelLayout,
    report: ComplianceReport | None = None,
) -> None:
    """Write the daily summary (and optionally the compliance report) to XLSX.

    Args:
        daily: Output of ``daily_care_summary``.
        out_path: Output path for the XLSX file.
        layout: Sheet names.
        report: Compliance report to add as a second sheet.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)
    export_df = _daily_export_frame(daily)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.daily_sheet)
        _format_sheet(writer.book[layout.daily_sheet], _DAILY_WIDTHS, _DAILY_FORMATS)
        if report is not None:
            report_rows(report).to_excel(
                writer, index=False, sheet_name=layout.report_sheet
            )
            _format_sheet(writer.book[layout.report_sheet], _REPORT_WIDTHS, {})


def _format_sheet(
    ws: Any, widths: dict[str, int], formats: dict[str, str]
) -> None:
    """Bold bordered header, bordered centred body, widths and number formats.

    Args:
        ws: openpyxl worksheet.
        widths: Column width per header name.
        formats: Number format per header name.
    """
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = center
        cell.border = border
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = center
            cell.border = border

    col_index = {str(cell.value): cell.column_letter for cell in ws[1]}
    for header, width in widths.items():
        letter = col_index.get(header)
        if letter is not None:
            ws.column_dimensions[letter].width = width
    for header, fmt in formats.items():
        letter = col_index.get(header)
        if letter is None:
            continue
        for cell in ws[letter][1:]:
            cell.number_format = fmt

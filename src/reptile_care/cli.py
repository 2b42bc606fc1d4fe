"""CLI: estado de riesgo de una mascota y exportacion del reporte semanal."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from dateutil import tz

from reptile_care.compliance import ComplianceReport, build_compliance_report_for_week
from reptile_care.excel_writer import ExcelLayout, write_care_xlsx
from reptile_care.forecast import (
    RiskSegment,
    evaluate_next_24h_ambient_temp_from_samples,
    evaluate_next_24h_uvb_from_samples,
)
from reptile_care.model import FoodType
from reptile_care.nutrition import diet_summary, quick_check_food_type
from reptile_care.schedules import (
    evaluate_calcium_schedule,
    evaluate_feeding_schedule,
    evaluate_vitamin_d3_schedule,
)
from reptile_care.sources.open_meteo import ForecastPaths, OpenMeteoFileSource
from reptile_care.storage import SQLiteStore
from reptile_care.summary import daily_care_summary

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Reminders, 24h forecast risk and weekly compliance of a pet."
    )
    parser.add_argument(
        "--db",
        default=str(Path.cwd() / "reptile_care.sqlite3"),
        help="SQLite database (default: ./reptile_care.sqlite3).",
    )
    parser.add_argument(
        "--pet-id",
        default=None,
        help="Pet to evaluate (default: the saved current pet).",
    )
    parser.add_argument(
        "--forecast",
        default=None,
        help="Saved Open-Meteo hourly forecast JSON for the 24h risk check.",
    )
    parser.add_argument(
        "--week-of",
        default=None,
        help="Any date of the week to report (ISO, default: today).",
    )
    parser.add_argument(
        "--food",
        default=None,
        choices=[food.value for food in FoodType],
        help="Check whether a food group suits the pet's species.",
    )
    parser.add_argument(
        "--export",
        default=None,
        help="Directory for the XLSX export (default: saved export dir, if any).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser.parse_args()


def _segment_text(segment: RiskSegment) -> str:
    return f"{segment.from_hour}h-{segment.to_hour}h {segment.risk.value}"


def _print_report(report: ComplianceReport) -> None:
    print(
        f"Week {report.start:%Y-%m-%d} .. {report.end:%Y-%m-%d}: "
        f"UVB {report.uvb.actual_hours:.1f} h (pass={report.uvb.passed}), "
        f"D3 x{report.supplements.d3_actual_count} "
        f"(pass={report.supplements.passed})"
    )
    for zone in report.temps.per_zone:
        print(f"  {zone.zone}: in range {zone.in_range_ratio} ({zone.samples} samples)")
    for note in report.notes:
        print(f"  note: {note}")


def main() -> int:
    """Run the care CLI.

    Returns:
        Exit code (0 on success, 2 when no pet is selected).
    """
    ns = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = SQLiteStore(Path(ns.db).expanduser().resolve())
    config = store.load_config()
    pet_id = ns.pet_id or config.current_pet_id
    if not pet_id:
        print("No pet selected: use --pet-id")
        return 2
    if pet_id != config.current_pet_id:
        store.save_config(replace(config, current_pet_id=pet_id))

    zone = tz.gettz(config.timezone) or tz.UTC
    now = datetime.now(tz=zone)

    feeding = evaluate_feeding_schedule(store, pet_id, now)
    if feeding is not None:
        print(f"Feeding: {feeding.risk.value} (last: {feeding.last_feed_at})")
    calcium = evaluate_calcium_schedule(store, pet_id, now)
    if calcium is not None:
        print(
            f"Calcium: {calcium.risk.value} "
            f"(meals since last: {calcium.meals_since_last_calcium})"
        )
    vitamin = evaluate_vitamin_d3_schedule(store, pet_id, now)
    if vitamin is not None:
        print(f"Vitamin D3: {vitamin.risk.value} (last: {vitamin.last_vitamin_at})")

    summary = diet_summary(store, pet_id)
    if summary is not None:
        print(f"Diet: {summary}")
    if ns.food:
        check = quick_check_food_type(store, pet_id, FoodType(ns.food))
        print(f"Food {ns.food}: {'ok' if check.ok else 'avoid'} ({check.message})")

    if ns.forecast:
        source = OpenMeteoFileSource(ForecastPaths(file=Path(ns.forecast)))
        source.validate()
        forecast = source.load(now)
        temp = evaluate_next_24h_ambient_temp_from_samples(
            store,
            pet_id,
            forecast.temperature_samples(),
            datetime.now(tz=tz.tzlocal()),
        )
        if temp is not None and temp.should_warn:
            risky = [s for s in temp.segments if s.risk.value.startswith("too_")]
            print("Temperature: " + ", ".join(_segment_text(s) for s in risky))
        uvb = evaluate_next_24h_uvb_from_samples(
            store, pet_id, forecast.uv_samples()
        )
        if uvb is not None and uvb.should_warn:
            risky = [s for s in uvb.segments if s.risk.value.startswith("too_")]
            print("UVB: " + ", ".join(_segment_text(s) for s in risky))

    report = build_compliance_report_for_week(
        store, pet_id, ns.week_of or now, config.week_starts_on, zone
    )
    _print_report(report)

    export_dir = ns.export or config.export_dir
    if export_dir:
        events = store.list_events(pet_id, end=report.end)
        daily = daily_care_summary(events, zone)
        daily = daily[daily["date"] >= report.start.date()].reset_index(drop=True)
        out_path = (
            Path(export_dir).expanduser()
            / f"care_{pet_id}_{now:%Y-%m-%d_%H-%M-%S}.xlsx"
        )
        write_care_xlsx(daily, out_path, ExcelLayout(), report)
        logger.info("Exported %s", out_path)
        print(f"OK: Output: {out_path}")
    return 0

"""Agregados diarios de cuidado (alimento, calcio, UVB, peso) con pandas."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, tzinfo

import pandas as pd
from dateutil import tz

from reptile_care.model import CareLogEvent, CareLogType
from reptile_care.storage import CareStore

EVENT_COLUMNS = [
    "id",
    "pet_id",
    "type",
    "subtype",
    "value",
    "unit",
    "note",
    "at",
    "date",
]

DAILY_COLUMNS = [
    "date",
    "feed_grams",
    "calcium_count",
    "uvb_hours",
    "weight_kg",
]


def events_to_frame(
    events: Sequence[CareLogEvent], tzinfo: tzinfo | None = None
) -> pd.DataFrame:
    """Convert care events to a DataFrame ordered by ``at``.

    ``date`` is the local calendar day of the event in ``tzinfo`` (UTC by
    default).
    """
    zone = tzinfo or tz.UTC
    rows = [
        {
            "id": e.id,
            "pet_id": e.pet_id,
            "type": e.type.value,
            "subtype": e.subtype,
            "value": e.value,
            "unit": e.unit,
            "note": e.note,
            "at": e.at,
            "date": e.at.astimezone(zone).date(),
        }
        for e in events
    ]
    df = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    if df.empty:
        return df
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    return df.sort_values("at", kind="stable").reset_index(drop=True)


def uvb_intervals(
    events: Iterable[CareLogEvent], open_until: datetime | None = None
) -> list[tuple[datetime, datetime]]:
    """Pair ``uvb_on``/``uvb_off`` events into lit intervals.

    An ``off`` closes the ``on`` right before it, so a repeated ``on`` restarts
    the interval. An ``off`` with no open ``on`` is ignored. A trailing
    unmatched ``on`` is closed at ``open_until`` (dropped when None).
    """
    intervals: list[tuple[datetime, datetime]] = []
    on_since: datetime | None = None
    for event in sorted(events, key=lambda e: e.at):
        if event.type is CareLogType.UVB_ON:
            on_since = event.at
        elif event.type is CareLogType.UVB_OFF and on_since is not None:
            intervals.append((on_since, event.at))
            on_since = None
    if on_since is not None and open_until is not None and open_until > on_since:
        intervals.append((on_since, open_until))
    return intervals


def clipped_hours(
    intervals: Iterable[tuple[datetime, datetime]], start: datetime, end: datetime
) -> float:
    """Total hours of ``intervals`` that fall inside ``[start, end)``."""
    total = timedelta(0)
    for begin, finish in intervals:
        overlap = min(finish, end) - max(begin, start)
        if overlap > timedelta(0):
            total += overlap
    return total / timedelta(hours=1)


def daily_care_summary(
    events: Sequence[CareLogEvent], tzinfo: tzinfo | None = None
) -> pd.DataFrame:
    """Aggregate care events by local day.

    Columns: ``date``, ``feed_grams`` (sum of feed values), ``calcium_count``,
    ``uvb_hours`` (on/off pairs inside the day; an unmatched ``on`` is not
    counted) and ``weight_kg`` (latest weigh-in up to the end of that day).

    Args:
        events: Care events of one pet, any order.
        tzinfo: Zone defining day boundaries (UTC by default).

    Returns:
        One row per day with at least one event, ordered by date.
    """
    df = events_to_frame(events, tzinfo)
    if df.empty:
        return pd.DataFrame(columns=DAILY_COLUMNS)

    days = sorted(df["date"].unique())
    out = pd.DataFrame({"date": days})

    feeds = df[df["type"] == CareLogType.FEED.value]
    feed_grams = feeds.groupby("date")["value"].sum()
    out["feed_grams"] = out["date"].map(feed_grams).fillna(0.0).astype(float)

    calcium = df[df["type"] == CareLogType.CALCIUM.value]
    calcium_count = calcium.groupby("date").size()
    out["calcium_count"] = out["date"].map(calcium_count).fillna(0).astype(int)

    out["uvb_hours"] = [_uvb_hours_on_day(events, day, tzinfo) for day in days]
    out["weight_kg"] = _weights_by_day(df, days)
    return out[DAILY_COLUMNS]


def _uvb_hours_on_day(
    events: Sequence[CareLogEvent], day: date, tzinfo: tzinfo | None
) -> float:
    zone = tzinfo or tz.UTC
    start = datetime.combine(day, datetime.min.time()).replace(tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), datetime.min.time()).replace(
        tzinfo=zone
    )
    day_events = [
        e
        for e in events
        if e.type in (CareLogType.UVB_ON, CareLogType.UVB_OFF) and start <= e.at < end
    ]
    return clipped_hours(uvb_intervals(day_events), start, end)


def _weights_by_day(df: pd.DataFrame, days: list[date]) -> list[float | None]:
    """Ultimo peso registrado hasta el fin de cada dia (None si no hay)."""
    weighs = df[df["type"] == CareLogType.WEIGH.value].dropna(subset=["value"])
    out: list[float | None] = []
    for day in days:
        upto = weighs[weighs["date"] <= day]
        out.append(float(upto.iloc[-1]["value"]) if not upto.empty else None)
    return out


def latest_weight_before(
    store: CareStore, pet_id: str, until: datetime
) -> float | None:
    """Most recent weigh-in value strictly before ``until``."""
    event = store.latest_event(pet_id, CareLogType.WEIGH, before=until)
    if event is None:
        return None
    return event.value

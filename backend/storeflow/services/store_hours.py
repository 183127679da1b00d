"""Open/closed status derived from a store's weekly schedule."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Protocol
from zoneinfo import ZoneInfo

from storeflow.config import get_settings
from storeflow.schemas.stores import WEEKDAY_NAMES, NextOpeningOut, StoreStatusOut, WorkingHoursOut

MS_PER_MINUTE = 60_000
MS_PER_HOUR = 60 * MS_PER_MINUTE


class HoursEntry(Protocol):
    day_of_week: int
    open_time: Optional[str]
    close_time: Optional[str]
    is_closed: bool


@dataclass(frozen=True, slots=True)
class NextOpening:
    day_of_week: int
    day_name: str
    open_time: str
    days_ahead: int


@dataclass(frozen=True, slots=True)
class StoreStatus:
    is_active: bool
    is_open: bool
    today: Optional[HoursEntry]
    next_opening: Optional[NextOpening]


def store_local_now() -> datetime:
    return datetime.now(ZoneInfo(get_settings().store_timezone))


def day_of_week(moment: datetime) -> int:
    """Sunday=0 .. Saturday=6."""
    return (moment.weekday() + 1) % 7


def time_to_ms(value: str) -> int:
    """Milliseconds since midnight for an ``HH:MM`` (or ``HH:MM:SS``) string."""
    parts = [int(p) for p in value.split(":")]
    hours, minutes = parts[0], parts[1]
    seconds = parts[2] if len(parts) > 2 else 0
    return hours * MS_PER_HOUR + minutes * MS_PER_MINUTE + seconds * 1000


def _ms_since_midnight(moment: datetime) -> int:
    return (
        moment.hour * MS_PER_HOUR
        + moment.minute * MS_PER_MINUTE
        + moment.second * 1000
        + moment.microsecond // 1000
    )


def _has_hours(entry: Optional[HoursEntry]) -> bool:
    return entry is not None and not entry.is_closed and bool(entry.open_time) and bool(entry.close_time)


def compute_store_status(
    is_active: bool, working_hours: Iterable[HoursEntry], now: datetime
) -> StoreStatus:
    """Decide whether the store is open at ``now`` (store-local time).

    An inactive store is always closed. When closed, ``next_opening`` is the
    first later weekday (1-7 days ahead) that has hours defined.
    """
    by_day = {entry.day_of_week: entry for entry in working_hours}
    today_index = day_of_week(now)
    today = by_day.get(today_index)

    is_open = False
    if is_active and _has_hours(today):
        now_ms = _ms_since_midnight(now)
        is_open = time_to_ms(today.open_time) <= now_ms < time_to_ms(today.close_time)

    next_opening = None
    if not is_open:
        for days_ahead in range(1, 8):
            candidate_index = (today_index + days_ahead) % 7
            candidate = by_day.get(candidate_index)
            if _has_hours(candidate):
                next_opening = NextOpening(
                    day_of_week=candidate_index,
                    day_name=WEEKDAY_NAMES[candidate_index],
                    open_time=candidate.open_time,
                    days_ahead=days_ahead,
                )
                break

    return StoreStatus(is_active=is_active, is_open=is_open, today=today, next_opening=next_opening)


def status_out(status: StoreStatus, store_id=None) -> StoreStatusOut:
    return StoreStatusOut(
        store_id=store_id,
        is_active=status.is_active,
        is_open=status.is_open,
        today=WorkingHoursOut.model_validate(status.today) if status.today is not None else None,
        next_opening=(
            NextOpeningOut.model_validate(status.next_opening, from_attributes=True)
            if status.next_opening is not None
            else None
        ),
    )

# src/taskflow/scheduling/dates.py

"""
Day-granularity date helpers shared by the reminder engine, the quadrant
classifier and the calendar projector.

All comparisons strip time-of-day. Missing or malformed dates are treated as
absent: helpers return False / NONE instead of raising, so one bad record can
never break a scan or a calendar render.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

_ISO_DAY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

DateLike = date | datetime | str | None


class SegmentRole(StrEnum):
    START = "start"
    END = "end"
    MIDDLE = "middle"
    BOTH = "both"
    NONE = "none"


class CellKind(StrEnum):
    NOT_PRESENT = "not-present"
    POINT = "point"
    RANGE_START = "range-start"
    RANGE_MIDDLE = "range-middle"
    RANGE_END = "range-end"
    RANGE_START_AND_END = "range-start-and-end"


def parse_day(value: DateLike) -> date | None:
    """
    Parse a date-like value down to a calendar day.

    Accepts date, datetime, "YYYY-MM-DD" and ISO datetime strings
    ("2024-06-10T09:00:00Z" -> 2024-06-10). Anything else -> None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    raw = str(value).strip()
    if not raw:
        return None

    m = _ISO_DAY.match(raw)
    if not m:
        logger.debug("Malformed date ignored: %r", raw)
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        logger.debug("Malformed date ignored: %r", raw)
        return None


def _due_of(task: Any) -> date | None:
    return parse_day(getattr(task, "due_date", None))


def is_urgent(task: Any, reference: DateLike) -> bool:
    """Due today or earlier. Overdue counts as urgent; no due date never does."""
    due = _due_of(task)
    ref = parse_day(reference)
    if due is None or ref is None:
        return False
    return due <= ref


def is_day_in_range(day: DateLike, start_date: DateLike, due_date: DateLike) -> bool:
    """
    - neither date: False
    - due only: day == due
    - both: start <= day <= due (an inverted range contains no days)
    - start only: False
    """
    d = parse_day(day)
    if d is None:
        return False

    start = parse_day(start_date)
    due = parse_day(due_date)

    if due is None:
        return False
    if start is None:
        return d == due
    return start <= d <= due


def segment_role(day: DateLike, start_date: DateLike, due_date: DateLike) -> SegmentRole:
    """Visual position of a task bar inside one day cell."""
    if not is_day_in_range(day, start_date, due_date):
        return SegmentRole.NONE

    d = parse_day(day)
    start = parse_day(start_date)
    due = parse_day(due_date)

    if start is None or start == due:
        return SegmentRole.BOTH
    if d == start:
        return SegmentRole.START
    if d == due:
        return SegmentRole.END
    return SegmentRole.MIDDLE


def cell_kind(day: DateLike, start_date: DateLike, due_date: DateLike) -> CellKind:
    role = segment_role(day, start_date, due_date)
    if role == SegmentRole.NONE:
        return CellKind.NOT_PRESENT
    if role == SegmentRole.START:
        return CellKind.RANGE_START
    if role == SegmentRole.MIDDLE:
        return CellKind.RANGE_MIDDLE
    if role == SegmentRole.END:
        return CellKind.RANGE_END
    # BOTH: a single-day range vs. a due-only task.
    if parse_day(start_date) is None:
        return CellKind.POINT
    return CellKind.RANGE_START_AND_END

# tasks/recurrence.py
"""
Recurrence date expansion.

Pure calendar arithmetic: a RecurrenceRule plus an anchor date yields the
ordered sequence of following occurrences. Nothing here touches the
database, so results are deterministic and safe to cache.

Weekdays use 0=Sunday .. 6=Saturday and weeks start on Sunday.
"""

import calendar
import datetime
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

RECURRENCE_NONE = "none"
RECURRENCE_DAILY = "daily"
RECURRENCE_WEEKLY = "weekly"
RECURRENCE_MONTHLY = "monthly"
RECURRENCE_MONTHLY_WEEKDAY = "monthly_weekday"
RECURRENCE_MONTHLY_LAST_DAY = "monthly_last_day"
RECURRENCE_YEARLY = "yearly"

RECURRENCE_TYPES = (
    RECURRENCE_NONE,
    RECURRENCE_DAILY,
    RECURRENCE_WEEKLY,
    RECURRENCE_MONTHLY,
    RECURRENCE_MONTHLY_WEEKDAY,
    RECURRENCE_MONTHLY_LAST_DAY,
    RECURRENCE_YEARLY,
)

MONTHLY_TYPES = (
    RECURRENCE_MONTHLY,
    RECURRENCE_MONTHLY_WEEKDAY,
    RECURRENCE_MONTHLY_LAST_DAY,
)

# week_of_month value meaning "the last such weekday of the month"
LAST_WEEK_OF_MONTH = 5

# Upper bound for a single expansion
MAX_OCCURRENCES = 1000


@dataclass(frozen=True)
class RecurrenceRule:
    type: str = RECURRENCE_NONE
    interval: int = 1
    weekday: Optional[int] = None
    weekdays: Tuple[int, ...] = field(default_factory=tuple)
    month_day: Optional[int] = None
    week_of_month: Optional[int] = None
    end_date: Optional[datetime.date] = None
    completion_based: bool = False

    def __post_init__(self):
        if self.type not in RECURRENCE_TYPES:
            raise ValueError(f"Unknown recurrence type: {self.type!r}")
        if self.interval is None or int(self.interval) < 1:
            raise ValueError("Recurrence interval must be at least 1.")
        if self.weekday is not None and not 0 <= self.weekday <= 6:
            raise ValueError("Recurrence weekday must be between 0 (Sunday) and 6 (Saturday).")
        for day in self.weekdays:
            if not 0 <= int(day) <= 6:
                raise ValueError("Recurrence weekdays must be between 0 (Sunday) and 6 (Saturday).")
        if self.month_day is not None and not 1 <= self.month_day <= 31:
            raise ValueError("Recurrence day of month must be between 1 and 31.")
        if self.week_of_month is not None and not 1 <= self.week_of_month <= LAST_WEEK_OF_MONTH:
            raise ValueError("Recurrence week of month must be between 1 and 5.")
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "interval", int(self.interval))
        object.__setattr__(self, "weekdays", tuple(sorted({int(d) for d in self.weekdays})))

    @property
    def is_recurring(self) -> bool:
        return self.type != RECURRENCE_NONE

    def selected_weekdays(self) -> Tuple[int, ...]:
        if self.weekdays:
            return self.weekdays
        if self.weekday is not None:
            return (self.weekday,)
        return ()

    def cache_payload(self) -> dict:
        """Stable, JSON-serialisable representation (cache keys)."""
        return {
            "type": self.type,
            "interval": self.interval,
            "weekday": self.weekday,
            "weekdays": list(self.weekdays),
            "month_day": self.month_day,
            "week_of_month": self.week_of_month,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def sunday_weekday(day: datetime.date) -> int:
    """Weekday number with 0=Sunday."""
    return (day.weekday() + 1) % 7


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    total = year * 12 + (month - 1) + months
    return total // 12, total % 12 + 1


def nth_weekday_of_month(year: int, month: int, weekday: int, n: int) -> datetime.date:
    """
    The n-th given weekday (0=Sunday) of a month; n=5 is the last one.
    n in 1..4 always exists (the 4th occurrence is at most day 28).
    """
    if n >= LAST_WEEK_OF_MONTH:
        last = datetime.date(year, month, last_day_of_month(year, month))
        return last - datetime.timedelta(days=(sunday_weekday(last) - weekday) % 7)
    first = datetime.date(year, month, 1)
    offset = (weekday - sunday_weekday(first)) % 7
    return first + datetime.timedelta(days=offset + 7 * (n - 1))


def _clamped_date(year: int, month: int, day: int) -> datetime.date:
    return datetime.date(year, month, min(day, last_day_of_month(year, month)))


# ---------------------------------------------------------------------------
# Per-type candidates
# ---------------------------------------------------------------------------

def _next_weekly(rule: RecurrenceRule, from_date: datetime.date) -> datetime.date:
    days = rule.selected_weekdays()
    if not days:
        return from_date + datetime.timedelta(days=7 * rule.interval)

    current = sunday_weekday(from_date)
    later_this_week = [d for d in days if d > current]
    if later_this_week:
        return from_date + datetime.timedelta(days=later_this_week[0] - current)

    week_start = from_date - datetime.timedelta(days=current)
    return week_start + datetime.timedelta(days=7 * rule.interval + days[0])


def _monthly_candidate(rule: RecurrenceRule, anchor: datetime.date, offset: int) -> datetime.date:
    """Occurrence in the month `offset` months after the anchor's month."""
    year, month = add_months(anchor.year, anchor.month, offset)

    if rule.type == RECURRENCE_MONTHLY_LAST_DAY:
        return datetime.date(year, month, last_day_of_month(year, month))

    if rule.type == RECURRENCE_MONTHLY_WEEKDAY:
        weekday = rule.weekday if rule.weekday is not None else sunday_weekday(anchor)
        week = rule.week_of_month or ((anchor.day - 1) // 7 + 1)
        return nth_weekday_of_month(year, month, weekday, week)

    # Day-of-month rule. Always computed from the original day, so a series
    # anchored on the 31st goes 31 Jan, 28 Feb, 31 Mar instead of drifting.
    return _clamped_date(year, month, rule.month_day or anchor.day)


def _yearly_candidate(anchor: datetime.date, offset: int) -> datetime.date:
    return _clamped_date(anchor.year + offset, anchor.month, anchor.day)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def iter_occurrences(rule: RecurrenceRule, anchor: datetime.date) -> Iterator[datetime.date]:
    """
    Yield occurrences strictly after `anchor`, in increasing order, without
    applying end_date. The iterator is unbounded for recurring rules.
    """
    if not rule.is_recurring:
        return

    if rule.type == RECURRENCE_DAILY:
        current = anchor
        while True:
            current = current + datetime.timedelta(days=rule.interval)
            yield current

    elif rule.type == RECURRENCE_WEEKLY:
        current = anchor
        while True:
            current = _next_weekly(rule, current)
            yield current

    elif rule.type in MONTHLY_TYPES:
        # The anchor's own month counts when its occurrence is still ahead.
        offset = 0
        while True:
            candidate = _monthly_candidate(rule, anchor, offset)
            if candidate > anchor:
                yield candidate
            offset += rule.interval

    elif rule.type == RECURRENCE_YEARLY:
        offset = rule.interval
        while True:
            yield _yearly_candidate(anchor, offset)
            offset += rule.interval


def expand_occurrences(
    rule: RecurrenceRule,
    anchor: datetime.date,
    count: Optional[int] = None,
    until: Optional[datetime.date] = None,
) -> List[datetime.date]:
    """
    Ordered occurrences strictly after `anchor`.

    Stops after `count` dates, or at `until` / rule.end_date (both inclusive),
    whichever comes first. At least one bound is required. MAX_OCCURRENCES
    caps `count` only; date bounds are always expanded in full.
    """
    if count is not None and count < 0:
        raise ValueError("count must not be negative.")
    if count is None and until is None and rule.end_date is None:
        raise ValueError("expand_occurrences needs a count, an until date or a rule end date.")

    limit = None if count is None else min(count, MAX_OCCURRENCES)
    results: List[datetime.date] = []
    if limit == 0:
        return results

    for occurrence in iter_occurrences(rule, anchor):
        if rule.end_date is not None and occurrence > rule.end_date:
            break
        if until is not None and occurrence > until:
            break
        results.append(occurrence)
        if limit is not None and len(results) >= limit:
            break
    return results


def calculate_next_due_date(rule: RecurrenceRule, from_date: datetime.date) -> Optional[datetime.date]:
    """
    First occurrence strictly after `from_date`, or None when the rule does
    not repeat or the series has ended.
    """
    if not rule.is_recurring:
        return None
    occurrences = expand_occurrences(rule, from_date, count=1)
    return occurrences[0] if occurrences else None


def occurrences_in_window(
    rule: RecurrenceRule,
    series_start: datetime.date,
    window_start: datetime.date,
    window_end: datetime.date,
) -> List[datetime.date]:
    """
    Dates of the series (series_start followed by its expansion) falling
    within [window_start, window_end].
    """
    if window_end < window_start:
        return []

    results: List[datetime.date] = []
    if window_start <= series_start <= window_end and (rule.end_date is None or series_start <= rule.end_date):
        results.append(series_start)

    for occurrence in iter_occurrences(rule, series_start):
        if occurrence > window_end or (rule.end_date is not None and occurrence > rule.end_date):
            break
        if occurrence >= window_start:
            results.append(occurrence)
    return results


def rule_from_task(task) -> RecurrenceRule:
    """Build the rule stored on a task (template) row."""
    return RecurrenceRule(
        type=task.recurrence_type or RECURRENCE_NONE,
        interval=task.recurrence_interval or 1,
        weekday=task.recurrence_weekday,
        weekdays=tuple(task.recurrence_weekdays or ()),
        month_day=task.recurrence_month_day,
        week_of_month=task.recurrence_week_of_month,
        end_date=task.recurrence_end_date,
        completion_based=bool(task.completion_based),
    )

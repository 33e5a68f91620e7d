"""
Trip search helpers for the explore page and trip pages.

Everything here is a pure function over trip records (ORM rows or read
schemas, anything exposing the trip attributes). The input sequence is never
mutated and filtering keeps the relative order of the input.
"""
import calendar
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from schemas import BUDGET_OPTIONS, TripFilter

# months ahead covered by each rolling window
TIME_WINDOW_MONTHS = {
    "next-month": 1,
    "next-3-months": 3,
    "next-6-months": 6,
}
THIS_YEAR = "this-year"
FLEXIBLE = "flexible"

# suggested travelers shown on a trip page
MATCH_LIMIT = 4


def _add_months(day: date, months: int) -> date:
    """Same day N months later, clamped to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _as_date(value) -> Optional[date]:
    """Coerce a start date to a date; None when it cannot be read."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            return None
    return None


def time_window_range(period: Optional[str], now: Optional[datetime] = None):
    """
    Resolve a period to an inclusive (start, end) date range anchored at `now`.

    Returns None for `flexible`, empty and unknown periods (no constraint).
    """
    if not period or period == FLEXIBLE:
        return None
    today = (now or datetime.now()).date()
    if period in TIME_WINDOW_MONTHS:
        return today, _add_months(today, TIME_WINDOW_MONTHS[period])
    if period == THIS_YEAR:
        return today, date(today.year, 12, 31)
    return None


def _matches_destination(trip, term: str) -> bool:
    destination = (getattr(trip, "destination", None) or "").lower()
    title = (getattr(trip, "title", None) or "").lower()
    return term in destination or term in title


def _matches_interests(trip, wanted: set) -> bool:
    return bool(wanted.intersection(getattr(trip, "interests", None) or []))


def filter_trips(trips: Sequence, criteria: Optional[TripFilter] = None, now: Optional[datetime] = None) -> List:
    """
    Return the trips matching every active criterion of `criteria`.

    - destination: case-insensitive substring of destination or title
    - period: start date within the time window (lower edge inclusive);
      unreadable start dates never match an active window
    - budget: exact match
    - interests: match-any; an empty selection is no constraint
    """
    results = list(trips)
    if criteria is None:
        return results

    if criteria.destination:
        term = criteria.destination.strip().lower()
        if term:
            results = [t for t in results if _matches_destination(t, term)]

    window = time_window_range(criteria.period, now)
    if window is not None:
        start, end = window
        kept = []
        for trip in results:
            start_date = _as_date(getattr(trip, "start_date", None))
            if start_date is not None and start <= start_date <= end:
                kept.append(trip)
        results = kept

    if criteria.budget:
        results = [t for t in results if getattr(t, "budget", None) == criteria.budget]

    if criteria.interests:
        wanted = set(criteria.interests)
        results = [t for t in results if _matches_interests(t, wanted)]

    return results


def _budget_rank(trip) -> int:
    try:
        return BUDGET_OPTIONS.index(getattr(trip, "budget", None))
    except ValueError:
        return len(BUDGET_OPTIONS)


def sort_trips(trips: Iterable, order: Optional[str] = "newest") -> List:
    """Order trips for display. Unknown orders keep the input order."""
    trips = list(trips)
    if order == "newest":
        return sorted(trips, key=lambda t: t.created_at, reverse=True)
    if order == "soon":
        return sorted(trips, key=lambda t: _as_date(t.start_date) or date.max)
    if order == "budget-low":
        return sorted(trips, key=_budget_rank)
    if order == "budget-high":
        return sorted(trips, key=_budget_rank, reverse=True)
    return trips


def available_interests(trips: Iterable) -> List[str]:
    """Sorted union of the interests tagged on `trips`."""
    found = set()
    for trip in trips:
        found.update(getattr(trip, "interests", None) or [])
    return sorted(found)


def rank_matches(trip, profiles: Iterable, limit: int = MATCH_LIMIT) -> List:
    """
    Travelers to suggest on a trip's page: everyone except the host, those
    sharing the most of the trip's interests first. Ties keep the input order.
    """
    wanted = set(getattr(trip, "interests", None) or [])
    candidates = [p for p in profiles if p.id != trip.user_id]
    ranked = sorted(
        candidates,
        key=lambda p: len(wanted.intersection(getattr(p, "interests", None) or [])),
        reverse=True,
    )
    return ranked[:limit]

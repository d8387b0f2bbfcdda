"""Year -> month -> day navigation tree built from a flat spread list."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from .models import Spread
from .periods import DateLike, JournalCalendar, Period, start_of_day


@dataclass
class DayNode:
    """Leaf node: a day spread or a multiday spread."""
    spread: Spread

    @property
    def id(self) -> str:
        return self.spread.id

    def to_dict(self, calendar: JournalCalendar) -> dict:
        return {
            "id": self.id,
            "period": self.spread.period.value,
            "label": self.spread.display_label(calendar),
        }


@dataclass
class MonthNode:
    spread: Spread
    days: list[DayNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.spread.id

    def to_dict(self, calendar: JournalCalendar) -> dict:
        return {
            "id": self.id,
            "period": self.spread.period.value,
            "label": self.spread.display_label(calendar),
            "days": [d.to_dict(calendar) for d in self.days],
        }


@dataclass
class YearNode:
    spread: Spread
    months: list[MonthNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.spread.id

    def to_dict(self, calendar: JournalCalendar) -> dict:
        return {
            "id": self.id,
            "period": self.spread.period.value,
            "label": self.spread.display_label(calendar),
            "months": [m.to_dict(calendar) for m in self.months],
        }


class SpreadHierarchyOrganizer:
    """Organizes spreads into a year -> month -> day/multiday tree.

    Children are ordered chronologically. Day and multiday spreads share the
    leaf level of the month they start in, interleaved by start date. Month
    spreads without a year spread, and days without a month spread, have no
    place in the tree but still take part in initial selection.
    """

    def __init__(self, spreads: Sequence[Spread], calendar: JournalCalendar):
        self.calendar = calendar
        self._spreads = list(spreads)
        self.years = self._build()

    def _ym(self, spread: Spread) -> tuple[int, int]:
        local = self.calendar.localize(spread.start_date or spread.date)
        return local.year, local.month

    def _sort_key(self, spread: Spread) -> tuple:
        return (start_of_day(spread.start_date or spread.date, self.calendar), spread.id)

    def _of_period(self, period: Period) -> list[Spread]:
        return sorted(
            (s for s in self._spreads if s.period is period),
            key=self._sort_key,
        )

    def _build(self) -> list[YearNode]:
        months = self._of_period(Period.MONTH)
        leaves = sorted(
            (s for s in self._spreads if s.period in (Period.DAY, Period.MULTIDAY)),
            key=self._sort_key,
        )

        years = []
        for year_spread in self._of_period(Period.YEAR):
            year = self.calendar.localize(year_spread.date).year
            year_node = YearNode(spread=year_spread)
            for month_spread in months:
                if self._ym(month_spread)[0] != year:
                    continue
                month_key = self._ym(month_spread)
                month_node = MonthNode(
                    spread=month_spread,
                    days=[DayNode(spread=s) for s in leaves if self._ym(s) == month_key],
                )
                year_node.months.append(month_node)
            years.append(year_node)
        return years

    # ========== Initial Selection ==========

    def initial_selection(self, date: DateLike) -> Optional[Spread]:
        """Spread to select when opening the journal on `date`.

        Priority: day spread containing the date, then the best multiday
        spread containing it, then the month, then the year, else None.
        """
        for finder in (
            lambda: self._first_containing(Period.DAY, date),
            lambda: self.best_multiday_spread(date),
            lambda: self._first_containing(Period.MONTH, date),
            lambda: self._first_containing(Period.YEAR, date),
        ):
            found = finder()
            if found is not None:
                return found
        return None

    def _first_containing(self, period: Period, date: DateLike) -> Optional[Spread]:
        for spread in self._of_period(period):
            if spread.contains(date, self.calendar):
                return spread
        return None

    def best_multiday_spread(self, date: DateLike) -> Optional[Spread]:
        """Multiday spread containing `date` that wins the tie-break.

        Order: earliest start, earliest end, earliest creation, lowest id.
        The id comparison keeps the order total when spreads were created in
        the same instant.
        """
        candidates = [
            s for s in self._spreads
            if s.period is Period.MULTIDAY and s.contains(date, self.calendar)
        ]
        if not candidates:
            return None
        return min(
            candidates,
            key=lambda s: (
                start_of_day(s.start_date, self.calendar),
                start_of_day(s.end_date, self.calendar),
                s.created_date,
                s.id,
            ),
        )

    def to_dict(self) -> list[dict]:
        return [y.to_dict(self.calendar) for y in self.years]

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum

from payadmin_api.services.ledger_errors import ValidationError


class Cutoff(str, Enum):
    FIRST = "1st"
    SECOND = "2nd"


_LABELS = {
    "1st": Cutoff.FIRST, "first": Cutoff.FIRST, "1": Cutoff.FIRST,
    "2nd": Cutoff.SECOND, "second": Cutoff.SECOND, "2": Cutoff.SECOND,
}


def parse_cutoff(label) -> Cutoff:
    if isinstance(label, Cutoff):
        return label
    key = str(label or "").strip().lower()
    if key not in _LABELS:
        raise ValidationError(f"cutoff must be '1st' or '2nd' (got {label!r})")
    return _LABELS[key]


@dataclass(frozen=True)
class CutoffPeriod:
    year: int
    month: int
    cutoff: Cutoff

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1 if self.cutoff is Cutoff.FIRST else 16)

    @property
    def end(self) -> date:
        if self.cutoff is Cutoff.FIRST:
            return date(self.year, self.month, 15)
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def anchor_date(self) -> date:
        # new entries are stamped with the last day of their window
        return self.end

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    def as_dict(self) -> dict:
        return {
            "year": self.year,
            "month": self.month,
            "cutoff": self.cutoff.value,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "anchor_date": self.anchor_date.isoformat(),
        }


def _as_int(val, name: str) -> int:
    if isinstance(val, bool):
        raise ValidationError(f"{name} must be integer")
    try:
        return int(str(val).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be integer")


def resolve(year, month, cutoff) -> CutoffPeriod:
    """
    (year, month, cutoff label) -> CutoffPeriod.
      1st: [day 1 .. day 15], anchor 15
      2nd: [day 16 .. last day], anchor last day (28-31)
    """
    y = _as_int(year, "year")
    m = _as_int(month, "month")
    if not (1 <= m <= 12):
        raise ValidationError(f"month must be between 1 and 12 (got {m})")
    if not (1900 <= y <= 9999):
        raise ValidationError(f"year out of range (got {y})")
    return CutoffPeriod(y, m, parse_cutoff(cutoff))


def from_anchor(d: date, cutoff=None) -> CutoffPeriod:
    """Period owning a stored anchor/entry date; the cutoff is derived from the day when not given."""
    c = parse_cutoff(cutoff) if cutoff is not None else (Cutoff.FIRST if d.day <= 15 else Cutoff.SECOND)
    return CutoffPeriod(d.year, d.month, c)

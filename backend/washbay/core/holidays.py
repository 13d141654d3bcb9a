# backend/washbay/core/holidays.py
"""
Norwegian public holidays.

Movable feasts are derived from Easter Sunday, which is computed with the
anonymous Gregorian algorithm (Meeus/Jones/Butcher). Results are cached per year.
"""

from datetime import date, timedelta
from functools import lru_cache
from typing import Dict, Optional

FIXED_HOLIDAYS: Dict[tuple[int, int], str] = {
    (1, 1): "Første nyttårsdag",
    (5, 1): "Arbeidernes dag",
    (5, 17): "Grunnlovsdag",
    (12, 25): "Første juledag",
    (12, 26): "Andre juledag",
}

# Offsets in days relative to Easter Sunday
EASTER_RELATIVE_HOLIDAYS: Dict[int, str] = {
    -3: "Skjærtorsdag",
    -2: "Langfredag",
    0: "Første påskedag",
    1: "Andre påskedag",
    39: "Kristi himmelfartsdag",
    49: "Første pinsedag",
    50: "Andre pinsedag",
}


def easter_sunday(year: int) -> date:
    """Return Easter Sunday for a Gregorian calendar year."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7  # noqa: E741
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


@lru_cache(maxsize=64)
def _holidays_for_year(year: int) -> tuple[tuple[date, str], ...]:
    entries: Dict[date, str] = {
        date(year, month, day): name for (month, day), name in FIXED_HOLIDAYS.items()
    }
    easter = easter_sunday(year)
    for offset, name in EASTER_RELATIVE_HOLIDAYS.items():
        entries[easter + timedelta(days=offset)] = name
    return tuple(sorted(entries.items()))


def holidays_for_year(year: int) -> Dict[date, str]:
    """All public holidays in ``year`` keyed by date, in calendar order."""
    return dict(_holidays_for_year(year))


def holiday_name(day: date) -> Optional[str]:
    """Name of the public holiday falling on ``day``, or None."""
    return holidays_for_year(day.year).get(day)

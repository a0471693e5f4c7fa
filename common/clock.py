# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Time helpers. Ledgers take a `Clock` so tests can move time forward.
"""

import datetime
from typing import Callable

Clock = Callable[[], datetime.datetime]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)


def shift_years(moment: datetime.datetime, years: int) -> datetime.datetime:
    """Same calendar day `years` later (negative: earlier). 29th of February falls back to the 28th."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def start_of_day(moment: datetime.datetime) -> datetime.datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def unix_seconds(moment: datetime.datetime) -> int:
    return int(moment.timestamp())

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import datetime


class FakeClock:
    """Clock for ledgers which only moves when told to."""

    def __init__(self, now: datetime.datetime | None = None) -> None:
        self.now = now or datetime.datetime(2024, 6, 15, 10, 30, tzinfo=datetime.timezone.utc)

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        """Moves the clock forward, takes the arguments of `datetime.timedelta`."""
        self.now += datetime.timedelta(**kwargs)

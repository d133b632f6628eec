"""Selection of the next upcoming prayer. Pure functions, no I/O."""
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from .models import NextPrayer, PrayerEvent


def select_next(
    events: Sequence[PrayerEvent],
    now: datetime,
    following: Sequence[PrayerEvent] | None = None,
) -> NextPrayer | None:
    """
    Return the first event strictly after now.

    An event at exactly `now` has already started and is skipped. Once every
    event has passed, the first of `following` (the next day's events) is
    used; without it, the day's first event is carried over to tomorrow.
    Returns None only when there are no events at all.
    """
    for event in events:
        if event.time > now:
            return NextPrayer(event, event.time - now)

    for event in following or ():
        if event.time > now:
            return NextPrayer(event, event.time - now)

    if not events:
        return None

    candidate = events[0]
    while candidate.time <= now:
        candidate = candidate.shifted(1)
    return NextPrayer(candidate, candidate.time - now)

"""
Order timeline: append-only log of status changes, plus read-only views for display.
"""
from operator import attrgetter
from typing import Iterable

from app.models import TimelineEvent


def append(timeline: Iterable[TimelineEvent], event: TimelineEvent) -> tuple[TimelineEvent, ...]:
    """Return a new timeline with event at the end. Existing events are never touched."""
    return (*timeline, event)


def full_view(timeline: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Every event, newest first. Events with equal timestamps keep their recorded order."""
    return sorted(timeline, key=attrgetter("timestamp"), reverse=True)


def display_view(timeline: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """
    Newest first, keeping only the latest event per status.

    This is the storefront's historical rendering: a repeated status (e.g. a second
    "processing" note after a correction) is hidden. Prefer full_view for new consumers.
    """
    seen = set()
    view = []
    for event in full_view(timeline):
        if event.status in seen:
            continue
        seen.add(event.status)
        view.append(event)
    return view

"""Drain LND's offset-paginated forwarding history into one list"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Tuple, Union

from ..models.channel import ForwardingEvent
from .timewindow import TimeWindow

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10_000

# fetch_page(start_time, end_time, limit, offset) -> (events, next_offset)
PageFetcher = Callable[[int, int, int, int], Awaitable[Tuple[List[ForwardingEvent], int]]]


@dataclass(frozen=True)
class More:
    """A full page; the source may hold more events after ``cursor``"""
    events: List[ForwardingEvent]
    cursor: int


@dataclass(frozen=True)
class Done:
    """A short page, the last one"""
    events: List[ForwardingEvent]


PageStep = Union[More, Done]


def classify_page(events: List[ForwardingEvent],
                  next_offset: int,
                  page_size: int,
                  offset: int = 0) -> PageStep:
    """A page shorter than the requested size ends the collection.

    LND does not report whether more events exist, so a full page is
    followed by another request starting at the offset it returned. A full
    page whose returned offset does not move past the requested ``offset``
    also ends it, since asking again would return the same page.
    """
    if len(events) < page_size:
        return Done(events)
    if next_offset <= offset:
        logger.warning(f"Forwarding cursor did not advance past {offset} (got {next_offset}), "
                       f"stopping after {len(events)} events on this page")
        return Done(events)
    return More(events, next_offset)


async def collect_forwarding_events(fetch_page: PageFetcher,
                                    window: TimeWindow,
                                    page_size: int = DEFAULT_PAGE_SIZE) -> List[ForwardingEvent]:
    """
    Fetch every forwarding event in ``window``.

    Pages are requested one after another, each starting at the offset the
    previous page reported. Any fetch error propagates and discards the
    pages collected so far.
    """
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")

    collected: List[ForwardingEvent] = []
    offset = 0
    pages = 0

    while True:
        events, next_offset = await fetch_page(window.start_time, window.end_time, page_size, offset)
        pages += 1
        step = classify_page(events, next_offset, page_size, offset)
        collected.extend(step.events)
        logger.debug(f"Forwarding page {pages}: {len(step.events)} events at offset {offset}")

        if isinstance(step, Done):
            break
        offset = step.cursor

    logger.info(f"Collected {len(collected)} forwarding events in {pages} page(s) "
                f"for window {window.start_time}-{window.end_time}")
    return collected

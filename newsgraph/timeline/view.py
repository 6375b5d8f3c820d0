"""Time-axis placement of recently saved articles.

Unlike the graph views there is no simulation here: x comes from a linear
time scale and y from a deterministic per-index jitter around the axis
centre line.
"""
from __future__ import annotations

import math
import webbrowser
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from newsgraph.config import TimelineConfig
from newsgraph.contracts import TimelineArticle, TimelineResponse
from newsgraph.graph.model import truncate_label

EMPTY_MESSAGE = "no articles to show on the timeline"

MARGIN_TOP = 30.0
MARGIN_RIGHT = 30.0
MARGIN_BOTTOM = 40.0
MARGIN_LEFT = 30.0
JITTER_SPREAD = 0.35
ARTICLES_PER_TICK = 20
_DAY = timedelta(days=1)


@dataclass(frozen=True)
class TimelinePoint:
    """One article dot; coordinates are relative to the inner plot area."""

    article_id: str
    x: float
    y: float
    url: str
    saved_at: datetime
    tooltip: str


@dataclass(frozen=True)
class TimelineTick:
    x: float
    label: str


@dataclass(frozen=True)
class TimelineLayout:
    """Computed geometry of the timeline view."""

    width: float
    height: float
    inner_width: float
    inner_height: float
    domain: Optional[Tuple[datetime, datetime]]
    points: Tuple[TimelinePoint, ...]
    ticks: Tuple[TimelineTick, ...]
    empty_message: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.points

    @property
    def center_y(self) -> float:
        return self.inner_height / 2.0

    def point(self, article_id: str) -> TimelinePoint:
        for candidate in self.points:
            if candidate.article_id == article_id:
                return candidate
        raise KeyError(article_id)

    def click(self, article_id: str, open_url: Callable[[str], object] = webbrowser.open_new_tab) -> str:
        """Open the article behind a dot and return its URL."""

        url = self.point(article_id).url
        open_url(url)
        return url


def jitter_fraction(index: int) -> float:
    """Deterministic value in ``[0, 1)`` used to spread dots vertically."""

    return ((index * 2654435761) % 100) / 100.0


def timeline_tooltip(article: TimelineArticle, config: TimelineConfig) -> str:
    lines = [
        truncate_label(article.title, config.title_max_chars),
        f"{article.source or ''} · {article.saved_at:%Y-%m-%d}",
    ]
    keywords = article.keywords[: config.max_tooltip_keywords]
    if keywords:
        lines.append(", ".join(keywords))
    return "\n".join(lines)


def _as_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _day_ticks(start: datetime, end: datetime, step: int, scale: Callable[[datetime], float]) -> List[TimelineTick]:
    """Midnights inside ``[start, end]`` whose day of month is a multiple of ``step`` from the 1st."""

    ticks: List[TimelineTick] = []
    day = start.replace(hour=0, minute=0, second=0, microsecond=0)
    if day < start:
        day += _DAY
    while day <= end:
        if (day.day - 1) % step == 0:
            ticks.append(TimelineTick(x=scale(day), label=f"{day:%m/%d}"))
        day += _DAY
    return ticks


def build_timeline(response: TimelineResponse, config: Optional[TimelineConfig] = None) -> TimelineLayout:
    """Lay out the articles of a timeline response.

    Args:
        response: Decoded ``/bookmarks/timeline`` body.
        config: Layout constants; defaults apply when omitted.

    Returns:
        TimelineLayout: Dot positions, day ticks and tooltips. An empty
        response yields a layout with no points and ``empty_message`` set.
    """

    config = config or TimelineConfig()
    count = len(response.articles)
    width = max(config.min_width, count * config.px_per_article)
    height = config.height
    inner_width = width - MARGIN_LEFT - MARGIN_RIGHT
    inner_height = height - MARGIN_TOP - MARGIN_BOTTOM
    if not count:
        return TimelineLayout(
            width=width,
            height=height,
            inner_width=inner_width,
            inner_height=inner_height,
            domain=None,
            points=(),
            ticks=(),
            empty_message=EMPTY_MESSAGE,
        )

    moments = [_as_aware(article.saved_at) for article in response.articles]
    start = min(moments) - _DAY
    end = max(moments) + _DAY
    span = (end - start).total_seconds()

    def scale(moment: datetime) -> float:
        return (moment - start).total_seconds() / span * inner_width

    center_y = inner_height / 2.0
    jitter_range = inner_height * JITTER_SPREAD
    points = tuple(
        TimelinePoint(
            article_id=str(article.id),
            x=scale(moment),
            y=center_y + (jitter_fraction(index) - 0.5) * 2.0 * jitter_range,
            url=article.url,
            saved_at=moment,
            tooltip=timeline_tooltip(article, config),
        )
        for index, (article, moment) in enumerate(zip(response.articles, moments))
    )
    step = max(1, math.ceil(count / ARTICLES_PER_TICK))
    return TimelineLayout(
        width=width,
        height=height,
        inner_width=inner_width,
        inner_height=inner_height,
        domain=(start, end),
        points=points,
        ticks=tuple(_day_ticks(start, end, step, scale)),
    )


__all__ = [
    "EMPTY_MESSAGE",
    "TimelineLayout",
    "TimelinePoint",
    "TimelineTick",
    "build_timeline",
    "jitter_fraction",
    "timeline_tooltip",
]

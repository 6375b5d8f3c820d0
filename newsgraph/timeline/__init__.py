"""Timeline view of recently saved articles."""

from newsgraph.timeline.view import TimelineLayout, TimelinePoint, TimelineTick, build_timeline

__all__ = ["TimelineLayout", "TimelinePoint", "TimelineTick", "build_timeline"]

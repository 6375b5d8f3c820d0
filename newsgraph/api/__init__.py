"""HTTP access to the bookmarks backend."""

from newsgraph.api.client import BookmarksAPIClient, error_tag_from_response

__all__ = ["BookmarksAPIClient", "error_tag_from_response"]

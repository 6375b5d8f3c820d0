"""Keyword and article graph exploration for the news-curation reader."""

__version__ = "0.1.0"

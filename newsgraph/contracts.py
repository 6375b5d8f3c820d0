"""Immutable contracts for payloads returned by the bookmarks API."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _FrozenBaseModel(BaseModel):
    """Base model enforcing immutability after creation."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class KeywordRankItem(_FrozenBaseModel):
    """Entry in the ranked keyword list used to seed exploration."""

    keyword: str = Field(..., min_length=1)
    frequency: int = Field(0, ge=0)
    sentiment_score: float = Field(0.0, ge=-1.0, le=1.0)


class KeywordRankResponse(_FrozenBaseModel):
    """Response body of ``GET /bookmarks/keywords``."""

    total: int = Field(0, ge=0)
    keywords: List[KeywordRankItem] = Field(default_factory=list)


class KeywordNodePayload(_FrozenBaseModel):
    """Keyword node as emitted by the graph endpoints."""

    id: str = Field(..., min_length=1)
    keyword: str = Field(..., min_length=1)
    doc_frequency: int = Field(..., ge=0)
    bookmark_frequency: int = Field(..., ge=0)
    sentiment_score: float = Field(..., ge=-1.0, le=1.0)
    is_root: bool = False
    similarity_score: Optional[float] = Field(None, ge=0.0, le=1.0)


class ArticleNodePayload(_FrozenBaseModel):
    """Article node as emitted by the graph endpoints."""

    id: str = Field(..., min_length=1)
    title: str
    url: str = Field(..., min_length=1)


class EdgePayload(_FrozenBaseModel):
    """Typed, weighted relation between two node ids."""

    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    weight: float = Field(0.0, ge=0.0)

    @field_validator("type")
    @classmethod
    def _validate_type(cls, value: str) -> str:
        """Validate that the edge type is one the explorer knows how to lay out.

        Args:
            value: Raw edge type string from the server.

        Returns:
            str: The normalised edge type.

        Raises:
            ValueError: If the edge type is not recognised.
        """
        normalized = value.strip().lower()
        if normalized not in {"cooccurrence", "similarity", "has_keyword"}:
            raise ValueError(f"unsupported edge type: {value}")
        return normalized


class GraphPayload(_FrozenBaseModel):
    """Response body shared by the full and similarity graph endpoints."""

    keyword_nodes: List[KeywordNodePayload] = Field(default_factory=list)
    article_nodes: List[ArticleNodePayload] = Field(default_factory=list)
    edges: List[EdgePayload] = Field(default_factory=list)


class TimelineArticle(_FrozenBaseModel):
    """Saved article placed on the timeline axis."""

    id: int | str
    title: str
    url: str = Field(..., min_length=1)
    source: Optional[str] = None
    saved_at: datetime
    keywords: List[str] = Field(default_factory=list)


class TimelineResponse(_FrozenBaseModel):
    """Response body of ``GET /bookmarks/timeline``."""

    articles: List[TimelineArticle] = Field(default_factory=list)


__all__ = [
    "ArticleNodePayload",
    "EdgePayload",
    "GraphPayload",
    "KeywordNodePayload",
    "KeywordRankItem",
    "KeywordRankResponse",
    "TimelineArticle",
    "TimelineResponse",
]

"""
API Schemas

Pydantic models for the video library.

- Video is the stored record, persisted in the JSON data file as-is
- VideoCreate / VideoUpdate validate request bodies
- VideoQuery validates the query string of the listing endpoint
- VideosPage, VideoStats and TagCount are response payloads
"""

import re
from datetime import date, datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

VIDEO_ID_PATTERN = r"^v-\d{3,}$"
FRACTION = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing Z and any fraction length."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    value = FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", value)
    return datetime.fromisoformat(value)


class Video(BaseModel):
    """
    Videos collection schema
    Stored under the "videos" key of the data file
    """
    id: str = Field(..., pattern=VIDEO_ID_PATTERN, description="Video id, v-<number>")
    title: str = Field(..., min_length=1, description="Video title")
    thumbnail_url: str = Field(..., pattern=r"^https?://", description="Thumbnail image URL")
    created_at: str = Field(..., description="ISO-8601 creation timestamp")
    duration: Union[int, float] = Field(..., gt=0, description="Duration in seconds")
    views: int = Field(0, ge=0, description="View count")
    tags: List[str] = Field(default_factory=list, description="Tags, in insertion order")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title is required")
        return v

    @field_validator("created_at")
    @classmethod
    def created_at_is_iso(cls, v: str) -> str:
        try:
            parse_timestamp(v)
        except ValueError:
            raise ValueError("Invalid date format")
        return v


class VideoCreate(BaseModel):
    title: str = Field(..., min_length=1, description="Video title")
    tags: List[str] = Field(default_factory=list, description="Tags for filtering")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title is required")
        return v


class VideoUpdate(BaseModel):
    """Partial update; only title and tags can change."""
    title: Optional[str] = Field(None, min_length=1, description="New title")
    tags: Optional[List[str]] = Field(None, description="Replacement tag list")

    @field_validator("title", "tags", mode="before")
    @classmethod
    def not_null(cls, v):
        # absent keys are left alone; an explicit null is not a value
        if v is None:
            raise ValueError("Field may be omitted but not null")
        return v

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Title is required")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class VideoQuery(BaseModel):
    """Query string of GET /api/videos."""
    model_config = ConfigDict(populate_by_name=True)

    sort: Literal["created_at", "title", "views"] = "created_at"
    order: Literal["asc", "desc"] = "desc"
    search: Optional[str] = None
    tags: Optional[str] = Field(None, description="Comma-separated tags")
    date_from: Optional[str] = Field(None, alias="dateFrom", description="ISO date")
    date_to: Optional[str] = Field(None, alias="dateTo", description="ISO date")
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)

    @field_validator("sort", mode="before")
    @classmethod
    def normalize_sort(cls, v):
        # the dashboard historically sent camelCase
        if v == "createdAt":
            return "created_at"
        return v

    @field_validator("date_from", "date_to")
    @classmethod
    def iso_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            if re.fullmatch(r"\d{4}-\d{2}-\d{2}", v):
                date.fromisoformat(v)
            else:
                parse_timestamp(v)
        except ValueError:
            raise ValueError("Invalid date format")
        return v


class VideosPage(BaseModel):
    videos: List[Video]
    total: int
    page: int
    limit: int


class VideoStats(BaseModel):
    total: int
    total_views: int = Field(..., serialization_alias="totalViews")
    average_duration: float = Field(..., serialization_alias="averageDuration")


class TagCount(BaseModel):
    tag: str
    count: int

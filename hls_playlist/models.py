"""Request and response models for the playlist service."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class PlaylistRequest(BaseModel):
    """Request body carrying playlist text."""

    content: str = Field(..., description="Playlist text (UTF-8, no byte order mark)")
    kind: Optional[Literal["media", "master"]] = Field(
        None,
        description="Force the playlist kind instead of detecting it",
    )
    allowable_excess_duration: Optional[float] = Field(
        None,
        ge=0,
        allow_inf_nan=False,
        description="Seconds a segment may exceed the target duration (defaults to the server setting)",
    )

    @field_validator("content")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Ensure the playlist text is not blank."""
        if not v.strip():
            raise ValueError("Playlist content cannot be empty")
        return v


class PlaylistSummary(BaseModel):
    """Response for a parsed playlist."""

    kind: Literal["media", "master"] = Field(..., description="Detected or requested playlist kind")
    version: int = Field(..., description="Protocol version the playlist requires")
    target_duration: Optional[int] = Field(None, description="EXT-X-TARGETDURATION of a media playlist")
    segment_count: int = Field(0, description="Number of media segments")
    total_duration: float = Field(0.0, description="Sum of segment durations in seconds")
    variant_count: int = Field(0, description="Number of EXT-X-STREAM-INF variants")
    media_count: int = Field(0, description="Number of EXT-X-MEDIA renditions")
    unknown_tags: list[str] = Field(default_factory=list, description="Unrecognized tags, verbatim")
    canonical: str = Field(..., description="Playlist re-serialized in canonical form")

"""Custom exceptions for the playlist engine and the validation service."""

from typing import Optional

from fastapi import HTTPException, status


class PlaylistError(Exception):
    """Base class for every error raised while parsing or building a playlist."""

    def __init__(self, message: str, line: Optional[str] = None):
        self.message = message
        self.line = line
        super().__init__(message if line is None else f"{message}: {line!r}")


class InvalidInputError(PlaylistError):
    """Raised when playlist text is malformed or breaks a structural rule."""


class UnexpectedTagError(InvalidInputError):
    """Raised when a tag belongs to the other kind of playlist."""

    def __init__(self, line: str, playlist_kind: str):
        super().__init__(f"Tag is not allowed in a {playlist_kind} playlist", line)
        self.playlist_kind = playlist_kind


class BuilderError(PlaylistError):
    """Raised when explicit construction of a value violates its constraints."""

    def __init__(self, model: str, violations: list[str]):
        super().__init__(f"{model}: " + "; ".join(violations))
        self.model = model
        self.violations = violations


class PlaylistRejectedError(HTTPException):
    """Raised when a submitted playlist fails to parse or validate."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Playlist rejected: {message}",
        )


class PlaylistTooLargeError(HTTPException):
    """Raised when a submitted playlist exceeds the configured size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Playlist is {size} bytes, limit is {limit} bytes",
        )

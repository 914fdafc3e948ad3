"""Error types raised by the perspective engine."""

from __future__ import annotations


class PerspectiveEngineError(Exception):
    """Base class for engine errors."""


class NotFoundError(PerspectiveEngineError):
    """A requested perspective, project or action does not exist."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind.capitalize()} {key} not found")
        self.kind = kind
        self.key = key

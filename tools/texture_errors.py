"""Error types shared by the texture packing and splitting tools.

Three kinds of failure are distinguished:

- InvalidParameterError: a bad argument (non-positive size, malformed hex
  color, negative offset). Raised before any work starts.
- ResourceError: a file could not be read, decoded or written. Carries the
  failing unit and how many units were completed before it.
- PackingError: the packer could not place a frame. This is a bug, not a
  condition callers are expected to recover from.
"""
from __future__ import annotations


class TexturePackError(Exception):
    """Base class for all tool errors."""


class InvalidParameterError(TexturePackError, ValueError):
    """A caller-supplied parameter is out of range or malformed."""


class PackingError(TexturePackError):
    """The packing tree could not grow to fit a frame."""


class ResourceError(TexturePackError):
    """Reading, decoding or saving an image failed part way through."""

    def __init__(self, message: str, unit: str | int | None = None, completed: int = 0):
        self.unit = unit
        self.completed = completed
        if unit is not None:
            message = f"{message} (failed at {unit!r}; {completed} completed)"
        super().__init__(message)

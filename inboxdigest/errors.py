"""Exception types raised by inboxdigest.

Most of the pipeline is fail-soft (bad URLs, empty bodies, unknown senders degrade to
fewer results). These exceptions cover the cases that signal a broken contract.
"""

from __future__ import annotations


class InboxDigestError(Exception):
    """Base class for inboxdigest errors."""


class VectorLengthMismatchError(InboxDigestError, ValueError):
    """Two embedding vectors of different dimensionality were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vectors must have same length (got {left} and {right})")
        self.left = left
        self.right = right


class EmbeddingError(InboxDigestError):
    """The embedding provider failed or returned a malformed batch."""

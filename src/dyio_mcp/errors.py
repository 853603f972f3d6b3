"""Exception hierarchy for DyIO communication.

Every failure raised by the library derives from :class:`DyIOError`, so a
caller can abandon or retry a call and keep using the connection.
"""

from __future__ import annotations


class DyIOError(Exception):
    """Base class for all DyIO errors."""


class TransportError(DyIOError):
    """The serial link failed to open, read or write."""


class PeerSilentError(DyIOError):
    """No bytes arrived from the device within the read timeout."""


class ProtocolError(DyIOError):
    """The byte stream does not form a valid frame."""


class TruncatedError(ProtocolError):
    """A buffer is shorter than the structure being decoded."""


class DesyncError(ProtocolError):
    """Protocol version mismatch persisted after resynchronization."""


class ChecksumError(ProtocolError):
    """Header or payload checksum mismatch persisted after resynchronization."""

    def __init__(self, message: str, expected: int = 0, actual: int = 0) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ShortReplyError(ProtocolError):
    """A reply holds fewer bytes than the operation requires."""


class PayloadTooLargeError(DyIOError, ValueError):
    """Request data does not fit the one-byte length field."""

from __future__ import annotations


class DecodeError(ValueError):
    """Base class for everything that can go wrong while decoding a room."""

    kind = "decode_error"


class TruncatedResource(DecodeError):
    kind = "truncated_resource"


class UnexpectedEndOfStream(DecodeError):
    kind = "unexpected_end_of_stream"


class BufferOverflow(DecodeError):
    kind = "buffer_overflow"


class InvalidOffset(DecodeError):
    kind = "invalid_offset"

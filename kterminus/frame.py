"""Fixed 8-byte frame header.

Layout: session id (u32, big-endian), message type (u8),
payload length (u24, big-endian).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from kterminus.errors import PayloadTooLarge, UnknownMessageType
from kterminus.message import MessageType
from kterminus.session import SessionId

HEADER_SIZE = 8
MAX_PAYLOAD_SIZE = 0x00FF_FFFF

_LAYOUT = struct.Struct(">IBBH")


@dataclass(frozen=True)
class FrameHeader:
    """Routing and length information preceding each payload."""

    session_id: SessionId
    message_type: MessageType
    payload_length: int

    def encode(self) -> bytes:
        """Return the header's eight bytes."""
        if not 0 <= self.payload_length <= MAX_PAYLOAD_SIZE:
            raise PayloadTooLarge(self.payload_length, MAX_PAYLOAD_SIZE)
        return _LAYOUT.pack(
            int(self.session_id),
            int(self.message_type),
            self.payload_length >> 16,
            self.payload_length & 0xFFFF,
        )

    @classmethod
    def decode(cls, buffer: bytearray) -> FrameHeader | None:
        """Consume a header from the front of ``buffer``.

        Returns None, leaving the buffer untouched, if fewer than
        HEADER_SIZE bytes are available.
        """
        if len(buffer) < HEADER_SIZE:
            return None
        type_byte = buffer[4]
        message_type = MessageType.from_u8(type_byte)
        if message_type is None:
            raise UnknownMessageType(type_byte)
        session, _, high, low = _LAYOUT.unpack_from(buffer)
        del buffer[:HEADER_SIZE]
        return cls(SessionId(session), message_type, (high << 16) | low)
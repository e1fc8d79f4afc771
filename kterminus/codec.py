"""Framing of protocol messages over a byte stream."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from kterminus.errors import PayloadTooLarge
from kterminus.frame import MAX_PAYLOAD_SIZE, FrameHeader
from kterminus.message import Message, decode_message, encode_message, message_type_of
from kterminus.session import SessionId


@dataclass(frozen=True)
class Frame:
    """A message addressed to a session."""

    session_id: SessionId
    message: Message


class FrameCodec:
    """Stateful encoder/decoder for frames.

    Decoding consumes bytes from a ``bytearray`` and keeps a header whose
    payload has not fully arrived until the next call.
    """

    def __init__(self) -> None:
        self._pending_header: FrameHeader | None = None

    def encode(self, frame: Frame) -> bytes:
        """Return the header and payload bytes for ``frame``."""
        payload = encode_message(frame.message)
        if len(payload) > MAX_PAYLOAD_SIZE:
            raise PayloadTooLarge(len(payload), MAX_PAYLOAD_SIZE)
        header = FrameHeader(
            frame.session_id, message_type_of(frame.message), len(payload)
        )
        return header.encode() + payload

    def decode(self, buffer: bytearray) -> Frame | None:
        """Consume one frame from ``buffer``, or return None if incomplete."""
        header = self._pending_header
        self._pending_header = None
        if header is None:
            header = FrameHeader.decode(buffer)
            if header is None:
                return None

        length = header.payload_length
        if length > MAX_PAYLOAD_SIZE:
            raise PayloadTooLarge(length, MAX_PAYLOAD_SIZE)

        if len(buffer) < length:
            self._pending_header = header
            return None

        payload = bytes(buffer[:length])
        del buffer[:length]
        return Frame(header.session_id, decode_message(payload))

    def decode_all(self, buffer: bytearray) -> Iterator[Frame]:
        """Yield every complete frame available in ``buffer``."""
        while (frame := self.decode(buffer)) is not None:
            yield frame
from __future__ import annotations

import struct
from typing import BinaryIO

FIN_TEXT = 0x81
CLOSE_OPCODE = 0x88


def encode_text_frame(payload: str) -> bytes:
    """Build one unmasked, final text frame (server to client, RFC 6455 5.2)."""

    data = payload.encode("utf-8")
    length = len(data)
    header = bytearray([FIN_TEXT])
    if length <= 125:
        header.append(length)
    elif length <= 0xFFFF:
        header.append(126)
        header.extend(struct.pack("!H", length))
    else:
        header.append(127)
        header.extend(struct.pack("!Q", length))
    return bytes(header) + data


def send_text(stream: BinaryIO, payload: str) -> None:
    stream.write(encode_text_frame(payload))
    stream.flush()


def contains_close_opcode(chunk: bytes) -> bool:
    # Inbound frames are not parsed; a close byte anywhere ends the session.
    return CLOSE_OPCODE in chunk

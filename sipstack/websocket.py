"""WebSocket framing (RFC 6455) and a reference-counted WebSocket connection for SIP."""

from __future__ import annotations

import enum
import itertools
import logging
import os
import socket
import struct
import threading
from dataclasses import dataclass
from typing import BinaryIO, Optional, Union

from .transport import IDLE_CONNECTION, join_host_port

log = logging.getLogger(__name__)

# Subprotocol announced and accepted during the handshake.
WEBSOCKET_PROTOCOLS = ["sip"]

Message = Union[bytes, bytearray, object]


class Opcode(enum.IntEnum):
    """WebSocket frame opcodes."""

    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CLOSE = 0x8
    PING = 0x9
    PONG = 0xA


@dataclass
class Frame:
    """A decoded frame; ``payload`` is already unmasked."""

    opcode: int
    payload: bytes = b""
    fin: bool = True
    masked: bool = False
    mask: bytes = b""

    @property
    def is_control(self) -> bool:
        return bool(self.opcode & 0x8)


def _apply_mask(data: bytes, mask: bytes) -> bytes:
    return bytes(b ^ k for b, k in zip(data, itertools.cycle(mask)))


def encode_frame(
    payload: bytes,
    opcode: int = Opcode.TEXT,
    fin: bool = True,
    mask: Optional[bytes] = None,
) -> bytes:
    """Serialize one frame; ``mask`` is a 4-byte key for client-to-server frames."""
    if mask is not None and len(mask) != 4:
        raise ValueError("mask key must be 4 bytes")
    first = (0x80 if fin else 0) | (int(opcode) & 0x0F)
    mask_bit = 0x80 if mask is not None else 0
    length = len(payload)
    if length < 126:
        header = struct.pack("!BB", first, mask_bit | length)
    elif length <= 0xFFFF:
        header = struct.pack("!BBH", first, mask_bit | 126, length)
    else:
        header = struct.pack("!BBQ", first, mask_bit | 127, length)
    if mask is None:
        return header + bytes(payload)
    return header + bytes(mask) + _apply_mask(bytes(payload), mask)


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            raise EOFError("unexpected end of websocket stream")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_frame(stream: BinaryIO) -> Frame:
    """Read one frame from a binary stream; raises EOFError on a short read."""
    first, second = _read_exact(stream, 2)
    length = second & 0x7F
    if length == 126:
        (length,) = struct.unpack("!H", _read_exact(stream, 2))
    elif length == 127:
        (length,) = struct.unpack("!Q", _read_exact(stream, 8))
    masked = bool(second & 0x80)
    mask = _read_exact(stream, 4) if masked else b""
    payload = _read_exact(stream, length) if length else b""
    if masked:
        payload = _apply_mask(payload, mask)
    return Frame(
        opcode=first & 0x0F,
        payload=payload,
        fin=bool(first & 0x80),
        masked=masked,
        mask=mask,
    )


def _encode_msg(msg: Message) -> bytes:
    if isinstance(msg, (bytes, bytearray)):
        return bytes(msg)
    return str(msg).encode("utf-8")


class WSConnection:
    """A WebSocket over an already upgraded socket, shared by reference counting.

    Client-side connections mask every frame they send.
    """

    def __init__(
        self,
        sock: socket.socket,
        *,
        client_side: bool = False,
        refcount: int = 1 + IDLE_CONNECTION,
    ) -> None:
        self.sock = sock
        self.client_side = client_side
        self._reader = sock.makefile("rb")
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._refcount = refcount
        self._closed = False

    def _remote(self) -> str:
        try:
            host, port = self.sock.getpeername()[:2]
            return join_host_port(str(host), int(port))
        except (OSError, ValueError, TypeError):
            return "?"

    def local_addr(self) -> str:
        try:
            host, port = self.sock.getsockname()[:2]
            return join_host_port(str(host), int(port))
        except (OSError, ValueError, TypeError):
            return ""

    def ref(self, i: int) -> int:
        """Add ``i`` to the reference count and return the new count."""
        with self._lock:
            self._refcount += i
            count = self._refcount
        log.debug("WS reference increment ip=%s ref=%d", self._remote(), count)
        return count

    def _hard_close(self) -> None:
        with self._lock:
            if self._closed:
                raise OSError("use of closed network connection")
            self._closed = True
        self._reader.close()
        self.sock.close()

    def close(self) -> None:
        """Close regardless of references; closing twice raises OSError."""
        with self._lock:
            self._refcount = 0
        log.debug("WS doing hard close ip=%s", self._remote())
        self._hard_close()

    def try_close(self) -> int:
        """Drop one reference and close when none are left; returns the count left."""
        with self._lock:
            self._refcount -= 1
            count = self._refcount
        log.debug("WS reference decrement ip=%s ref=%d", self._remote(), count)
        if count > 0:
            return count
        if count < 0:
            log.warning("WS ref went negative ip=%s ref=%d", self._remote(), count)
            return 0
        log.debug("WS closing ip=%s ref=%d", self._remote(), count)
        self._hard_close()
        return count

    def read(self) -> bytes:
        """Read one text message, joining text frames until one has FIN set.

        Control frames are skipped and non-text data frames discarded. A close
        frame raises ConnectionError; end of stream returns what was gathered,
        which is empty when nothing was.
        """
        data = bytearray()
        while True:
            try:
                frame = read_frame(self._reader)
            except EOFError:
                return bytes(data)
            log.debug(
                "WS read frame <- %s opcode=%d len=%d",
                self._remote(),
                frame.opcode,
                len(frame.payload),
            )
            if frame.is_control:
                if frame.opcode == Opcode.CLOSE:
                    raise ConnectionError("websocket closed by peer")
                continue
            if not frame.opcode & Opcode.TEXT:
                continue
            data.extend(frame.payload)
            if frame.fin:
                return bytes(data)

    def write(self, data: bytes) -> int:
        """Send ``data`` as a single text frame; returns the payload length."""
        mask = os.urandom(4) if self.client_side else None
        wire = encode_frame(data, Opcode.TEXT, True, mask)
        with self._write_lock:
            self.sock.sendall(wire)
        return len(data)

    def write_msg(self, msg: Message) -> None:
        """Serialize ``msg`` and send it whole."""
        data = _encode_msg(msg)
        try:
            written = self.write(data)
        except OSError as exc:
            raise OSError(f"conn {self._remote()} write err={exc}") from exc
        if written == 0:
            raise OSError("wrote 0 bytes")
        if written != len(data):
            raise OSError("fail to write full message")
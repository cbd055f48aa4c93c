import io
import socket

import pytest

from sipstack.websocket import (
    Frame,
    Opcode,
    WSConnection,
    encode_frame,
    read_frame,
)


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    for s in (a, b):
        try:
            s.close()
        except OSError:
            pass


def test_encode_unmasked_hello_wire_bytes():
    assert encode_frame(b"Hello") == bytes([0x81, 0x05, 0x48, 0x65, 0x6C, 0x6C, 0x6F])


def test_encode_masked_hello_wire_bytes():
    wire = encode_frame(b"Hello", Opcode.TEXT, True, bytes([0x37, 0xFA, 0x21, 0x3D]))
    assert wire == bytes(
        [0x81, 0x85, 0x37, 0xFA, 0x21, 0x3D, 0x7F, 0x9F, 0x4D, 0x51, 0x58]
    )


def test_encode_rejects_bad_mask():
    with pytest.raises(ValueError):
        encode_frame(b"x", Opcode.TEXT, True, b"ab")


@pytest.mark.parametrize("size", [0, 1, 125, 126, 65535, 65536])
@pytest.mark.parametrize("mask", [None, b"\x01\x02\x03\x04"])
def test_frame_round_trip(size, mask):
    payload = bytes(i % 251 for i in range(size))
    frame = read_frame(io.BytesIO(encode_frame(payload, Opcode.BINARY, False, mask)))
    assert frame.payload == payload
    assert frame.opcode == Opcode.BINARY
    assert frame.fin is False
    assert frame.masked is (mask is not None)


def test_read_frame_short_stream_raises():
    wire = encode_frame(b"INVITE sip:bob@example.com SIP/2.0")
    with pytest.raises(EOFError):
        read_frame(io.BytesIO(wire[:-3]))


def test_frame_is_control():
    assert Frame(opcode=Opcode.PING).is_control
    assert not Frame(opcode=Opcode.TEXT).is_control


def test_client_write_is_masked_and_server_reads(pair):
    a, b = pair
    client = WSConnection(a, client_side=True)
    client.write_msg(b"OPTIONS sip:example.com SIP/2.0\r\n\r\n")
    raw = read_frame(b.makefile("rb"))
    assert raw.masked
    assert raw.payload == b"OPTIONS sip:example.com SIP/2.0\r\n\r\n"


def test_server_write_client_read(pair):
    a, b = pair
    server = WSConnection(a)
    client = WSConnection(b, client_side=True)
    assert server.write(b"SIP/2.0 200 OK") == len(b"SIP/2.0 200 OK")
    assert client.read() == b"SIP/2.0 200 OK"


def test_read_skips_control_and_binary_frames(pair):
    a, b = pair
    a.sendall(encode_frame(b"", Opcode.PING))
    a.sendall(encode_frame(b"\x00\x01", Opcode.BINARY))
    a.sendall(encode_frame(b"part1 ", Opcode.TEXT, False))
    a.sendall(encode_frame(b"part2", Opcode.TEXT, True))
    conn = WSConnection(b)
    assert conn.read() == b"part1 part2"


def test_read_close_frame_raises(pair):
    a, b = pair
    a.sendall(encode_frame(b"", Opcode.CLOSE))
    conn = WSConnection(b)
    with pytest.raises(ConnectionError):
        conn.read()


def test_read_eof_returns_empty(pair):
    a, b = pair
    a.close()
    conn = WSConnection(b)
    assert conn.read() == b""


def test_reference_counting_closes_at_zero(pair):
    a, _ = pair
    conn = WSConnection(a, refcount=1)
    assert conn.ref(1) == 2
    assert conn.try_close() == 1
    assert conn.try_close() == 0
    with pytest.raises(OSError):
        conn.close()


def test_negative_reference_reports_zero(pair):
    a, _ = pair
    conn = WSConnection(a, refcount=0)
    assert conn.try_close() == 0
    conn.close()
    with pytest.raises(OSError):
        conn.close()
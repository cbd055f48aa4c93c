import socket

import pytest

from sipstack.connections import (
    ConnRecorder,
    TCPConnection,
    UDPConnection,
    UDPMTUCongestionError,
    is_keepalive,
)
from sipstack.pool import ConnectionPool


@pytest.fixture
def tcp_pair():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    client = socket.create_connection(server.getsockname())
    peer, _ = server.accept()
    server.close()
    yield client, peer
    for s in (client, peer):
        s.close()


@pytest.fixture
def udp_pair():
    a = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    b = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    a.bind(("127.0.0.1", 0))
    b.bind(("127.0.0.1", 0))
    b.settimeout(2)
    yield a, b
    for s in (a, b):
        s.close()


def _addr(sock):
    host, port = sock.getsockname()[:2]
    return f"{host}:{port}"


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"\r\n", True),
        (b"\r\n\r\n", True),
        (b"INVITE", False),
        (b"\r\nA", False),
        (b"\r\n\r\n\r\n", False),
    ],
)
def test_is_keepalive(data, expected):
    assert is_keepalive(data) is expected


def test_recorder_records_messages_and_counts_refs():
    rec = ConnRecorder()
    rec.write_msg(b"one")
    rec.write_msg(b"two")
    assert rec.msgs == [b"one", b"two"]
    assert rec.ref(2) == 2
    assert rec.try_close() == 1
    assert rec.local_addr() is None


def test_tcp_write_msg_reaches_peer(tcp_pair):
    client, peer = tcp_pair
    peer.settimeout(2)
    conn = TCPConnection(client, refcount=1)
    peer_conn = TCPConnection(peer, refcount=1)
    conn.write_msg("OPTIONS sip:example.com SIP/2.0\r\n\r\n")
    assert peer_conn.read(1024) == b"OPTIONS sip:example.com SIP/2.0\r\n\r\n"


def test_tcp_read_returns_peer_data(tcp_pair):
    client, peer = tcp_pair
    conn = TCPConnection(client)
    peer.sendall(b"\r\n\r\n")
    assert conn.read(16) == b"\r\n\r\n"


def test_tcp_local_addr_matches_socket(tcp_pair):
    client, _ = tcp_pair
    conn = TCPConnection(client)
    assert conn.local_addr() == _addr(client)


def test_tcp_try_close_closes_at_zero(tcp_pair):
    client, _ = tcp_pair
    conn = TCPConnection(client, refcount=2)
    assert conn.try_close() == 1
    assert client.fileno() != -1
    assert conn.try_close() == 0
    assert client.fileno() == -1
    with pytest.raises(OSError):
        conn.close()


def test_tcp_negative_ref_reports_zero(tcp_pair):
    client, _ = tcp_pair
    conn = TCPConnection(client, refcount=0)
    assert conn.try_close() == 0
    assert client.fileno() != -1


def test_tcp_close_resets_ref(tcp_pair):
    client, _ = tcp_pair
    conn = TCPConnection(client, refcount=3)
    conn.close()
    assert conn.ref(0) == 0


def test_pool_returns_tcp_connection(tcp_pair):
    client, peer = tcp_pair
    pool = ConnectionPool()
    conn = TCPConnection(client)
    raddr = _addr(peer)
    pool.add(raddr, conn)
    assert pool.get(raddr) is conn
    assert conn.ref(0) == 2


def test_udp_write_msg_to_destination(udp_pair):
    a, b = udp_pair
    conn = UDPConnection(a, refcount=1)
    conn.write_msg(b"SIP/2.0 200 OK\r\n\r\n", _addr(b))
    data, sender = b.recvfrom(1024)
    assert data == b"SIP/2.0 200 OK\r\n\r\n"
    assert f"{sender[0]}:{sender[1]}" == conn.local_addr()


def test_udp_read_from_reports_sender(udp_pair):
    a, b = udp_pair
    a.settimeout(2)
    conn = UDPConnection(a)
    b.sendto(b"ping", a.getsockname())
    data, sender = conn.read_from()
    assert data == b"ping"
    assert sender == _addr(b)


def test_udp_write_to_returns_length(udp_pair):
    a, b = udp_pair
    conn = UDPConnection(a)
    payload = b"hello"
    assert conn.write_to(payload, _addr(b)) == len(payload)
    assert b.recv(64) == payload


def test_udp_mtu_limit(udp_pair):
    a, b = udp_pair
    conn = UDPConnection(a)
    conn.write_msg(b"x" * 1300, _addr(b))
    assert len(b.recv(2048)) == 1300
    with pytest.raises(UDPMTUCongestionError):
        conn.write_msg(b"x" * 1301, _addr(b))


def test_udp_invalid_destination(udp_pair):
    a, _ = udp_pair
    conn = UDPConnection(a)
    with pytest.raises(ValueError):
        conn.write_msg(b"data", "no-port-here")


def test_udp_listener_not_closed_by_refs(udp_pair):
    a, _ = udp_pair
    conn = UDPConnection(a, listener=True, refcount=1)
    assert conn.try_close() == 0
    conn.close()
    assert a.fileno() != -1


def test_udp_client_closed_at_zero_then_double_close_fails(udp_pair):
    a, _ = udp_pair
    conn = UDPConnection(a, refcount=1)
    assert conn.try_close() == 0
    assert a.fileno() == -1
    with pytest.raises(OSError):
        conn.close()


def test_udp_ref_adds_and_returns_count(udp_pair):
    a, _ = udp_pair
    conn = UDPConnection(a, refcount=1)
    assert conn.ref(2) == 3
    assert conn.ref(-1) == 2


def test_udp_pool_clear_closes_client_connection(udp_pair):
    a, _ = udp_pair
    pool = ConnectionPool()
    conn = UDPConnection(a, refcount=2)
    pool.add(conn.packet_addr, conn)
    pool.clear()
    assert len(pool) == 0
    assert a.fileno() == -1
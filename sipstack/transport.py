"""Transport constants and address helpers."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .utils import ascii_to_lower, ascii_to_upper

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

# -1: close after a single message; 0: close after transaction; 1: keep idle.
IDLE_CONNECTION = 1
TRANSPORT_BUFFER_READ_SIZE = 65535

MTU = 1500

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PROTOCOL = "UDP"

DEFAULT_UDP_PORT = 5060
DEFAULT_TCP_PORT = 5060
DEFAULT_TLS_PORT = 5061
DEFAULT_WS_PORT = 80
DEFAULT_WSS_PORT = 443

TRANSPORT_UDP = "UDP"
TRANSPORT_TCP = "TCP"
TRANSPORT_TLS = "TLS"
TRANSPORT_WS = "WS"
TRANSPORT_WSS = "WSS"

TRANSPORT_FIXED_LENGTH_MESSAGE = 0

_DEFAULT_PORTS = {
    "tls": DEFAULT_TLS_PORT,
    "tcp": DEFAULT_TCP_PORT,
    "udp": DEFAULT_UDP_PORT,
    "ws": DEFAULT_WS_PORT,
    "wss": DEFAULT_WSS_PORT,
}

_PORT_RE = re.compile(r"[+-]?[0-9]+")


def _parse_ip(host: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def join_host_port(host: str, port: int) -> str:
    """Combine host and port, bracketing IPv6 hosts."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _split_host_port(addr: str) -> Tuple[str, str]:
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise ValueError(f"address {addr}: missing ']' in address")
        rest = addr[end + 1 :]
        if not rest:
            raise ValueError(f"address {addr}: missing port in address")
        if not rest.startswith(":") or ":" in rest[1:]:
            raise ValueError(f"address {addr}: unexpected characters after ']'")
        host, port = addr[1:end], rest[1:]
    else:
        idx = addr.rfind(":")
        if idx < 0:
            raise ValueError(f"address {addr}: missing port in address")
        host, port = addr[:idx], addr[idx + 1 :]
        if ":" in host:
            raise ValueError(f"address {addr}: too many colons in address")
    if "[" in host or "]" in host:
        raise ValueError(f"address {addr}: unexpected bracket in address")
    return host, port


def parse_addr(addr: str) -> Tuple[str, int]:
    """Split ``host:port`` into host and integer port; raises ValueError."""
    host, port = _split_host_port(addr)
    if not _PORT_RE.fullmatch(port):
        raise ValueError(f"invalid port {port!r} in address {addr}")
    return host, int(port)


@dataclass
class Addr:
    """A resolved remote or local address; ``hostname`` keeps the name before resolving."""

    ip: Optional[IPAddress] = None
    port: int = 0
    hostname: str = ""

    @classmethod
    def parse(cls, addr: str) -> "Addr":
        host, port = parse_addr(addr)
        return cls(ip=_parse_ip(host), port=port, hostname=host)

    def copy(self) -> "Addr":
        return Addr(ip=self.ip, port=self.port, hostname=self.hostname)

    def __str__(self) -> str:
        host = self.hostname if self.ip is None else str(self.ip)
        return join_host_port(host, self.port)


def default_port(transport: str) -> int:
    """Default port of a transport; unknown transports get the TCP port."""
    return _DEFAULT_PORTS.get(ascii_to_lower(transport), DEFAULT_TCP_PORT)


def is_reliable(network: str) -> bool:
    """Every transport except UDP is reliable."""
    return network not in ("udp", "UDP")


def network_to_lower(network: str) -> str:
    return ascii_to_lower(network)


def network_to_upper(network: str) -> str:
    return ascii_to_upper(network)
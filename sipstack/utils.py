"""String, quoting and network-interface helpers used across the SIP stack."""

from __future__ import annotations

import ipaddress
import secrets
import socket
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

import psutil

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

LETTERS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

_TO_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)
_TO_UPPER = str.maketrans(
    "abcdefghijklmnopqrstuvwxyz", "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
)

_KNOWN_HEADERS = {
    "Via": "via",
    "via": "via",
    "From": "from",
    "from": "from",
    "To": "to",
    "to": "to",
    "Call-ID": "call-id",
    "call-id": "call-id",
    "Contact": "contact",
    "contact": "contact",
    "CSeq": "cseq",
    "CSEQ": "cseq",
    "cseq": "cseq",
    "Content-Type": "content-type",
    "content-type": "content-type",
    "Route": "route",
    "route": "route",
    "Record-Route": "record-route",
    "record-route": "record-route",
    "Max-Forwards": "max-forwards",
    "Timestamp": "timestamp",
    "timestamp": "timestamp",
}


@dataclass(frozen=True)
class Delimiter:
    """A pair of characters that quote text, such as ``"..."`` or ``<...>``."""

    start: str
    end: str


QUOTES_DELIM = Delimiter('"', '"')
ANGLES_DELIM = Delimiter("<", ">")


def random_string(n: int) -> str:
    """Return ``n`` random alphanumeric characters."""
    return "".join(secrets.choice(LETTERS) for _ in range(n))


def nonce(n: int) -> str:
    """Return a nonce of ``n`` random alphanumeric characters."""
    return "".join(secrets.choice(LETTERS) for _ in range(n))


def ascii_to_lower(s: str) -> str:
    """Lower-case ASCII letters only, leaving every other character intact."""
    return s.translate(_TO_LOWER)


def ascii_to_upper(s: str) -> str:
    """Upper-case ASCII letters only, leaving every other character intact."""
    return s.translate(_TO_UPPER)


def header_to_lower(s: str) -> str:
    """Lower-case a header name, with a fast path for common headers."""
    known = _KNOWN_HEADERS.get(s)
    if known is not None:
        return known
    return ascii_to_lower(s)


def uri_is_sip(s: str) -> bool:
    return s in ("sip", "SIP")


def uri_is_sips(s: str) -> bool:
    return s in ("sips", "SIPS")


def find_unescaped(text: str, target: str, *delims: Delimiter) -> int:
    """Index of the first ``target`` not enclosed in any of ``delims``, or -1."""
    return find_any_unescaped(text, target, *delims)


def find_any_unescaped(text: str, targets: str, *delims: Delimiter) -> int:
    """Index of the first of ``targets`` not enclosed in any of ``delims``, or -1."""
    end_chars = {d.start: d.end for d in delims}
    escaped = False
    end_escape = ""
    for idx, char in enumerate(text):
        if not escaped and char in targets:
            return idx
        if escaped:
            escaped = char != end_escape
        elif char in end_chars:
            end_escape = end_chars[char]
            escaped = True
    return -1


def _interface_ips(addrs: Iterable) -> Iterable[IPAddress]:
    for entry in addrs:
        if entry.family not in (socket.AF_INET, socket.AF_INET6):
            continue
        host = entry.address.split("%", 1)[0]
        try:
            yield ipaddress.ip_address(host)
        except ValueError:
            continue


def _select_ip(
    ips: Iterable[IPAddress], network: str, target: Optional[IPNetwork]
) -> Optional[IPAddress]:
    for ip in ips:
        if target is not None:
            if ip.version != target.version or ip not in target:
                continue
        elif ip.is_loopback:
            continue
        if network == "ip4" and ip.version != 4:
            continue
        if network == "ip6" and ip.version == 4:
            continue
        return ip
    return None


def resolve_interface_ip(
    interface: str, network: str, target: Optional[IPNetwork]
) -> Optional[IPAddress]:
    """Pick an address of ``interface`` matching ``network`` ("ip", "ip4", "ip6").

    With ``target`` only addresses inside that network qualify; without it
    loopback addresses are skipped. Returns None when nothing matches.
    """
    addrs = psutil.net_if_addrs().get(interface)
    if addrs is None:
        raise ValueError(f"unknown interface {interface!r}")
    return _select_ip(_interface_ips(addrs), network, target)


def resolve_interfaces_ip(
    network: str, target: Optional[IPNetwork]
) -> Tuple[IPAddress, str]:
    """Find an address on any interface that is up; returns (ip, interface name).

    Loopback interfaces are skipped unless ``target`` is itself a loopback network.
    """
    stats = psutil.net_if_stats()
    for name, addrs in psutil.net_if_addrs().items():
        stat = stats.get(name)
        if stat is None or not stat.isup:
            continue
        ips = list(_interface_ips(addrs))
        is_loopback = any(ip.is_loopback for ip in ips)
        if (
            is_loopback
            and target is not None
            and not target.network_address.is_loopback
        ):
            continue
        ip = _select_ip(ips, network, target)
        if ip is not None:
            return ip, name
    raise LookupError("no interface found on system")
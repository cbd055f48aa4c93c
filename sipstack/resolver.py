"""Resolving SIP destinations to IP addresses, directly or through DNS SRV records."""

from __future__ import annotations

import ipaddress
import logging
import random
import socket
import time
from typing import Callable, List, Optional, Union

import dns.exception
import dns.resolver

from .transport import Addr, network_to_lower

log = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
HostLookup = Callable[[str], List[str]]

SLOW_RESOLVE_SECONDS = 0.05


def _system_lookup(hostname: str) -> List[str]:
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise LookupError(f"lookup {hostname}: {exc}") from exc
    return list(dict.fromkeys(info[4][0] for info in infos))


def _as_ipv4(ip: IPAddress) -> Optional[ipaddress.IPv4Address]:
    if ip.version == 4:
        return ip
    return ip.ipv4_mapped


def _parse_ips(values: List[str]) -> List[IPAddress]:
    ips = []
    for value in values:
        try:
            ips.append(ipaddress.ip_address(value.split("%", 1)[0]))
        except ValueError:
            continue
    return ips


class Resolver:
    """Turns host names into addresses.

    By default an address lookup is tried first and SRV records are the
    fallback; ``prefer_srv`` reverses that order.
    """

    def __init__(
        self,
        prefer_srv: bool = False,
        dns_resolver: Optional[object] = None,
        host_lookup: Optional[HostLookup] = None,
    ) -> None:
        self.prefer_srv = prefer_srv
        self._dns = dns_resolver
        self._host_lookup = host_lookup or _system_lookup

    def _dns_resolver(self):
        if self._dns is None:
            self._dns = dns.resolver.Resolver()
        return self._dns

    def _lookup_ips(self, hostname: str) -> List[IPAddress]:
        return _parse_ips(self._host_lookup(hostname))

    def resolve_ip(self, hostname: str) -> IPAddress:
        """Resolve ``hostname``, preferring an IPv4 address; raises LookupError."""
        log.debug("DNS resolving host=%s", hostname)
        ips = self._lookup_ips(hostname)
        if not ips:
            raise LookupError("lookup ip addr did not return any ip addr")
        for ip in ips:
            v4 = _as_ipv4(ip)
            if v4 is not None:
                return v4
        return ips[0]

    def resolve_srv(self, network: str, hostname: str) -> Addr:
        """Resolve ``_sip._<proto>.<hostname>`` and the IP of the chosen target."""
        network = network_to_lower(network)
        if network in ("udp", "udp4", "udp6"):
            proto = "udp"
        elif network == "tls":
            proto = "tls"
        else:
            proto = "tcp"

        qname = f"_sip._{proto}.{hostname}"
        log.debug("Doing SRV lookup proto=%s host=%s", proto, hostname)
        try:
            records = list(self._dns_resolver().resolve(qname, "SRV"))
        except (dns.exception.DNSException, OSError, LookupError) as exc:
            raise LookupError(f"fail to lookup SRV for {hostname!r}: {exc}") from exc
        if not records:
            raise LookupError(f"fail to lookup SRV for {hostname!r}: no records")

        best = min(r.priority for r in records)
        candidates = [r for r in records if r.priority == best]
        weights = [r.weight for r in candidates]
        if sum(weights) > 0:
            record = random.choices(candidates, weights=weights)[0]
        else:
            record = candidates[0]

        target = str(record.target).rstrip(".")
        ips = self._lookup_ips(target)
        log.debug("SRV resolved ips=%s target=%s", ips, target)
        if not ips:
            raise LookupError(f"SRV resolving failed for {target!r}")
        return Addr(ip=ips[0], port=int(record.port), hostname=hostname)

    def resolve_addr(self, network: str, host: str) -> Addr:
        """Resolve ``host`` for ``network``; the port stays 0 unless SRV supplies one."""
        start = time.monotonic()
        try:
            if self.prefer_srv:
                try:
                    return self.resolve_srv(network, host)
                except LookupError as exc:
                    log.warning("Doing SRV lookup failed host=%s error=%s", host, exc)
                    return Addr(ip=self.resolve_ip(host), port=0, hostname=host)
            try:
                return Addr(ip=self.resolve_ip(host), port=0, hostname=host)
            except LookupError as exc:
                log.info(
                    "IP addr resolving failed, doing via dns SRV resolver... error=%s",
                    exc,
                )
                return self.resolve_srv(network, host)
        finally:
            elapsed = time.monotonic() - start
            if elapsed > SLOW_RESOLVE_SECONDS:
                log.warning("DNS resolution is slow dur=%.3fs", elapsed)
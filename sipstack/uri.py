"""SIP URI: ``scheme:user:password@host:port;params?headers``."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict


def _format_params(params: Dict[str, str], sep: str) -> str:
    return sep.join(f"{key}={value}" if value else key for key, value in params.items())


@dataclass
class Uri:
    """Parsed SIP URI. An empty scheme is written as ``sip``."""

    scheme: str = ""
    wildcard: bool = False
    hierarchical_slashes: bool = False
    user: str = ""
    password: str = ""
    host: str = ""
    port: int = 0
    uri_params: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    def _scheme(self) -> str:
        return self.scheme or "sip"

    def __str__(self) -> str:
        parts = [self._scheme(), ":"]
        if self.hierarchical_slashes:
            parts.append("//")
        if self.user:
            parts.append(self.user)
            if self.password:
                parts.append(":" + self.password)
            parts.append("@")
        parts.append(self.host)
        if self.port > 0:
            parts.append(f":{self.port}")
        if self.uri_params:
            parts.append(";" + _format_params(self.uri_params, ";"))
        if self.headers:
            parts.append("?" + _format_params(self.headers, "&"))
        return "".join(parts)

    def clone(self) -> "Uri":
        return replace(
            self, uri_params=dict(self.uri_params), headers=dict(self.headers)
        )

    def is_encrypted(self) -> bool:
        return self.scheme == "sips"

    def endpoint(self) -> str:
        """``user@host[:port]``."""
        addr = f"{self.user}@{self.host}"
        if self.port > 0:
            addr += f":{self.port}"
        return addr

    def addr(self) -> str:
        """The URI without params and headers: ``sip[s]:[user@]host[:port]``."""
        addr = self.host
        if self.user:
            addr = f"{self.user}@{addr}"
        if self.port > 0:
            addr += f":{self.port}"
        if self.is_encrypted():
            return "sips:" + addr
        return f"{self._scheme()}:{addr}"

    def host_port(self) -> str:
        return f"{self.host}:{self.port}"
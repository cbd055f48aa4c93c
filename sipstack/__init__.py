"""SIP building blocks: URIs, addresses, connections, transaction state tables and DNS resolution."""

__version__ = "0.1.0"
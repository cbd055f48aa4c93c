# sipstack

Building blocks for SIP user agents: URIs and addresses, reference-counted
connections, the transaction state tables of RFC 3261 and RFC 6026, and
resolution of SIP destinations through DNS.

## Modules

- `sipstack.uri`: the `Uri` dataclass (`scheme`, `wildcard`, `hierarchical_slashes`,
  `user`, `password`, `host`, `port`, `uri_params`, `headers`). `str(uri)` renders it,
  writing an empty scheme as `sip`. It also has `clone()`, `is_encrypted()`,
  `endpoint()` (`user@host[:port]`), `addr()` (`sip[s]:[user@]host[:port]`) and
  `host_port()`.
- `sipstack.transport`: the `Addr` dataclass (`ip`, `port`, `hostname`) with
  `Addr.parse("127.0.0.1:5060")`, `copy()` and `str()`; `parse_addr`, which raises
  `ValueError` on malformed input; `join_host_port`, which brackets IPv6 hosts;
  `default_port` (5060 for UDP/TCP, 5061 for TLS, 80 for WS, 443 for WSS, 5060 for
  anything else); `is_reliable` (everything but UDP); `network_to_lower` and
  `network_to_upper`; and transport constants such as `TRANSPORT_UDP`.
- `sipstack.utils`: ASCII-only case conversion (`ascii_to_lower`, `ascii_to_upper`,
  `header_to_lower`), `uri_is_sip` / `uri_is_sips`, random alphanumeric strings
  (`random_string`, `nonce`), quote-aware search (`find_unescaped`,
  `find_any_unescaped` with `Delimiter`, `QUOTES_DELIM`, `ANGLES_DELIM`), and local
  interface lookup (`resolve_interface_ip`, `resolve_interfaces_ip`), which uses psutil.
- `sipstack.fsm`: the `FsmInput` events and `fsm_string`, the client transaction
  table `client_transition(invite, state, event)` returning a `Transition` of
  `ClientState` and `ClientAction` (or `None` when the event is ignored), and
  `backoff_interval` for doubling retransmission timers with an optional cap.
- `sipstack.server_fsm`: `ServerState`, `ServerAction`, `ServerTransition`,
  `initial_server_state(invite)` and `server_transition(invite, state, event)`.
- `sipstack.pool`: the `Connection` protocol and a thread-safe `ConnectionPool`
  keyed by address (`add`, `add_if_not_exists`, `get`, `close_and_delete`, `delete`,
  `delete_multiple`, `clear`, `len()`).
- `sipstack.connections`: `TCPConnection` and `UDPConnection` over Python sockets,
  `ConnRecorder`, which keeps written messages in `msgs` instead of sending them,
  `is_keepalive` for CRLF keep-alives, and `UDPMTUCongestionError`, raised when a UDP
  message exceeds 1300 bytes.
- `sipstack.websocket`: RFC 6455 framing (`Opcode`, `Frame`, `encode_frame`,
  `read_frame`) and `WSConnection`, which sends messages as single text frames
  (masked on the client side) and reads text messages, skipping control frames.
- `sipstack.resolver`: `Resolver` with `resolve_ip` (prefers IPv4),
  `resolve_srv` (queries `_sip._udp`, `_sip._tcp` or `_sip._tls` records through
  dnspython) and `resolve_addr`, which tries an address lookup first and SRV second,
  or the other way round with `prefer_srv=True`. A custom `host_lookup` callable or
  DNS resolver can be passed in.

Messages given to `write_msg` may be `bytes` or any object; other objects are sent
as `str(msg)` encoded in UTF-8.

## Connections and references

Connections count their references. `ConnectionPool.get()` adds a reference and
the caller releases it with `try_close()`, which closes the socket once the count
reaches zero. `close()` closes at once whatever the count; closing a socket twice
raises `OSError`. UDP listener connections are never closed through `try_close()`.

## Example

```python
from sipstack.uri import Uri
from sipstack.transport import Addr, default_port
from sipstack.server_fsm import initial_server_state, server_transition
from sipstack.fsm import FsmInput

uri = Uri(user="alice", host="example.com", port=5060)
print(str(uri))            # sip:alice@example.com:5060
print(uri.host_port())     # example.com:5060

addr = Addr.parse("127.0.0.1:5060")
print(addr.port, default_port("tls"))   # 5060 5061

state = initial_server_state(invite=True)
step = server_transition(True, state, FsmInput.SERVER_INPUT_USER_2XX)
print(step.state, step.action)   # ServerState.ACCEPTED ServerAction.RESPOND_ACCEPT
```

## What it does not do

The package does not parse or build SIP messages, does not run transactions with
timers, and has no transport layer that listens for or dispatches incoming
traffic, no WebSocket handshake, no TLS transport, and no user agent, client or
server. The state machines are transition tables to be driven by your own code,
and the connections wrap sockets you open yourself. There is no command-line tool.

## Installing

```
pip install .
```

Run the tests with:

```
pip install .[test]
pytest
```
"""Server transaction states and transition table (RFC 3261 17.2, RFC 6026)."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .fsm import FsmInput


class ServerState(enum.Enum):
    """States of a server transaction."""

    TRYING = "trying"
    PROCEEDING = "proceeding"
    COMPLETED = "completed"
    CONFIRMED = "confirmed"
    ACCEPTED = "accepted"
    TERMINATED = "terminated"


class ServerAction(enum.Enum):
    """What a server transaction does when taking a transition.

    ``CANCEL`` answers the original request with 487 and is followed by a
    ``SERVER_INPUT_USER_300_PLUS`` event; ``RESPOND``, ``RESPOND_COMPLETE``,
    ``RESPOND_ACCEPT`` and ``FINAL`` send the last response and yield
    ``SERVER_INPUT_TRANSPORT_ERR`` when sending fails; ``TRANSPORT_ERROR``
    and ``TIMEOUT`` are followed by ``SERVER_INPUT_DELETE``.
    """

    RESPOND = "respond"
    RESPOND_COMPLETE = "respond_complete"
    RESPOND_ACCEPT = "respond_accept"
    PASSUP_ACK = "passup_ack"
    FINAL = "final"
    TRANSPORT_ERROR = "transport_error"
    TIMEOUT = "timeout"
    DELETE = "delete"
    CONFIRM = "confirm"
    CANCEL = "cancel"


@dataclass(frozen=True)
class ServerTransition:
    """The state a server transaction moves to and the action it runs."""

    state: ServerState
    action: ServerAction


_Table = Dict[Tuple[ServerState, FsmInput], ServerTransition]

_S = ServerState
_A = ServerAction
_I = FsmInput
_T = ServerTransition

_INVITE_TABLE: _Table = {
    (_S.PROCEEDING, _I.SERVER_INPUT_REQUEST): _T(_S.PROCEEDING, _A.RESPOND),
    (_S.PROCEEDING, _I.SERVER_INPUT_CANCEL): _T(_S.PROCEEDING, _A.CANCEL),
    (_S.PROCEEDING, _I.SERVER_INPUT_USER_1XX): _T(_S.PROCEEDING, _A.RESPOND),
    # RFC 6026 7.1: a 2xx moves the transaction to Accepted.
    (_S.PROCEEDING, _I.SERVER_INPUT_USER_2XX): _T(_S.ACCEPTED, _A.RESPOND_ACCEPT),
    (_S.PROCEEDING, _I.SERVER_INPUT_USER_300_PLUS): _T(_S.COMPLETED, _A.RESPOND_COMPLETE),
    (_S.PROCEEDING, _I.SERVER_INPUT_TRANSPORT_ERR): _T(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.COMPLETED, _I.SERVER_INPUT_REQUEST): _T(_S.COMPLETED, _A.RESPOND),
    (_S.COMPLETED, _I.SERVER_INPUT_ACK): _T(_S.CONFIRMED, _A.CONFIRM),
    (_S.COMPLETED, _I.SERVER_INPUT_TIMER_G): _T(_S.COMPLETED, _A.RESPOND_COMPLETE),
    (_S.COMPLETED, _I.SERVER_INPUT_TIMER_H): _T(_S.TERMINATED, _A.DELETE),
    (_S.COMPLETED, _I.SERVER_INPUT_TRANSPORT_ERR): _T(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.CONFIRMED, _I.SERVER_INPUT_TIMER_I): _T(_S.TERMINATED, _A.DELETE),
    (_S.ACCEPTED, _I.SERVER_INPUT_ACK): _T(_S.ACCEPTED, _A.PASSUP_ACK),
    # 2xx retransmissions from the user are passed to the transport as is.
    (_S.ACCEPTED, _I.SERVER_INPUT_USER_2XX): _T(_S.ACCEPTED, _A.RESPOND),
    (_S.ACCEPTED, _I.SERVER_INPUT_TIMER_L): _T(_S.TERMINATED, _A.DELETE),
    (_S.TERMINATED, _I.SERVER_INPUT_DELETE): _T(_S.TERMINATED, _A.DELETE),
}

_NON_INVITE_TABLE: _Table = {
    (_S.TRYING, _I.SERVER_INPUT_USER_1XX): _T(_S.PROCEEDING, _A.RESPOND),
    (_S.TRYING, _I.SERVER_INPUT_USER_2XX): _T(_S.COMPLETED, _A.FINAL),
    (_S.TRYING, _I.SERVER_INPUT_USER_300_PLUS): _T(_S.COMPLETED, _A.FINAL),
    (_S.TRYING, _I.SERVER_INPUT_TRANSPORT_ERR): _T(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.PROCEEDING, _I.SERVER_INPUT_REQUEST): _T(_S.PROCEEDING, _A.RESPOND),
    (_S.PROCEEDING, _I.SERVER_INPUT_USER_1XX): _T(_S.PROCEEDING, _A.RESPOND),
    (_S.PROCEEDING, _I.SERVER_INPUT_USER_2XX): _T(_S.COMPLETED, _A.FINAL),
    (_S.PROCEEDING, _I.SERVER_INPUT_USER_300_PLUS): _T(_S.COMPLETED, _A.FINAL),
    (_S.PROCEEDING, _I.SERVER_INPUT_TRANSPORT_ERR): _T(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.COMPLETED, _I.SERVER_INPUT_REQUEST): _T(_S.COMPLETED, _A.RESPOND),
    (_S.COMPLETED, _I.SERVER_INPUT_TIMER_J): _T(_S.TERMINATED, _A.DELETE),
    (_S.COMPLETED, _I.SERVER_INPUT_TRANSPORT_ERR): _T(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.TERMINATED, _I.SERVER_INPUT_DELETE): _T(_S.TERMINATED, _A.DELETE),
}


def initial_server_state(invite: bool) -> ServerState:
    """INVITE transactions start in Proceeding, all others in Trying."""
    return ServerState.PROCEEDING if invite else ServerState.TRYING


def server_transition(
    invite: bool, state: ServerState, event: FsmInput
) -> Optional[ServerTransition]:
    """Look up the server transaction transition; None means the event is ignored."""
    table = _INVITE_TABLE if invite else _NON_INVITE_TABLE
    return table.get((state, event))
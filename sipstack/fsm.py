"""Transaction state-machine inputs and the client transaction transition table."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

UNKNOWN_INPUT = "unknown transaction state"


class FsmInput(enum.IntEnum):
    """Events fed into server and client transaction state machines."""

    NONE = 0
    # Server transaction inputs
    SERVER_INPUT_REQUEST = 1
    SERVER_INPUT_ACK = 2
    SERVER_INPUT_CANCEL = 3
    SERVER_INPUT_USER_1XX = 4
    SERVER_INPUT_USER_2XX = 5
    SERVER_INPUT_USER_300_PLUS = 6
    SERVER_INPUT_TIMER_G = 7
    SERVER_INPUT_TIMER_H = 8
    SERVER_INPUT_TIMER_I = 9
    SERVER_INPUT_TIMER_J = 10
    SERVER_INPUT_TIMER_L = 11
    SERVER_INPUT_TRANSPORT_ERR = 12
    SERVER_INPUT_DELETE = 13
    # Client transaction inputs
    CLIENT_INPUT_1XX = 14
    CLIENT_INPUT_2XX = 15
    CLIENT_INPUT_300_PLUS = 16
    CLIENT_INPUT_TIMER_A = 17
    CLIENT_INPUT_TIMER_B = 18
    CLIENT_INPUT_TIMER_D = 19
    CLIENT_INPUT_TIMER_M = 20
    CLIENT_INPUT_TRANSPORT_ERR = 21
    CLIENT_INPUT_DELETE = 22

    def __str__(self) -> str:
        return self.name.lower()


def fsm_string(value: Union[FsmInput, int]) -> str:
    """Readable name of an FSM input, or ``"unknown transaction state"``."""
    try:
        return str(FsmInput(value))
    except ValueError:
        return UNKNOWN_INPUT


class ClientState(enum.Enum):
    """States of a client transaction (RFC 3261 17.1, RFC 6026)."""

    CALLING = "calling"
    PROCEEDING = "proceeding"
    COMPLETED = "completed"
    ACCEPTED = "accepted"
    TERMINATED = "terminated"


class ClientAction(enum.Enum):
    """What a client transaction does when entering a new state."""

    INVITE_RESEND = "invite_resend"
    RESEND = "resend"
    INVITE_PROCEEDING = "invite_proceeding"
    INVITE_FINAL = "invite_final"
    FINAL = "final"
    ACK_RESEND = "ack_resend"
    TRANSPORT_ERROR = "transport_error"
    TRANSPORT_ERROR_NO_DELETE = "transport_error_no_delete"
    TIMEOUT = "timeout"
    PASSUP = "passup"
    PASSUP_RETRANSMISSION = "passup_retransmission"
    PASSUP_ACCEPT = "passup_accept"
    DELETE = "delete"


@dataclass(frozen=True)
class Transition:
    """The state a transaction moves to and the action it runs on the way."""

    state: ClientState
    action: ClientAction


_Table = Dict[Tuple[ClientState, FsmInput], Transition]

_S = ClientState
_A = ClientAction
_I = FsmInput

_INVITE_TABLE: _Table = {
    (_S.CALLING, _I.CLIENT_INPUT_1XX): Transition(_S.PROCEEDING, _A.INVITE_PROCEEDING),
    (_S.CALLING, _I.CLIENT_INPUT_2XX): Transition(_S.ACCEPTED, _A.PASSUP_ACCEPT),
    (_S.CALLING, _I.CLIENT_INPUT_300_PLUS): Transition(_S.COMPLETED, _A.INVITE_FINAL),
    (_S.CALLING, _I.CLIENT_INPUT_TIMER_A): Transition(_S.CALLING, _A.INVITE_RESEND),
    (_S.CALLING, _I.CLIENT_INPUT_TIMER_B): Transition(_S.TERMINATED, _A.TIMEOUT),
    (_S.CALLING, _I.CLIENT_INPUT_TRANSPORT_ERR): Transition(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.PROCEEDING, _I.CLIENT_INPUT_1XX): Transition(_S.PROCEEDING, _A.PASSUP),
    (_S.PROCEEDING, _I.CLIENT_INPUT_2XX): Transition(_S.ACCEPTED, _A.PASSUP_ACCEPT),
    (_S.PROCEEDING, _I.CLIENT_INPUT_300_PLUS): Transition(_S.COMPLETED, _A.INVITE_FINAL),
    (_S.PROCEEDING, _I.CLIENT_INPUT_TIMER_B): Transition(_S.TERMINATED, _A.TIMEOUT),
    (_S.PROCEEDING, _I.CLIENT_INPUT_TRANSPORT_ERR): Transition(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.COMPLETED, _I.CLIENT_INPUT_300_PLUS): Transition(_S.COMPLETED, _A.ACK_RESEND),
    (_S.COMPLETED, _I.CLIENT_INPUT_TRANSPORT_ERR): Transition(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.COMPLETED, _I.CLIENT_INPUT_TIMER_D): Transition(_S.TERMINATED, _A.DELETE),
    # RFC 6026: 2xx retransmissions are absorbed in Accepted.
    (_S.ACCEPTED, _I.CLIENT_INPUT_2XX): Transition(_S.ACCEPTED, _A.PASSUP_RETRANSMISSION),
    (_S.ACCEPTED, _I.CLIENT_INPUT_TRANSPORT_ERR): Transition(_S.ACCEPTED, _A.TRANSPORT_ERROR_NO_DELETE),
    (_S.ACCEPTED, _I.CLIENT_INPUT_TIMER_M): Transition(_S.TERMINATED, _A.DELETE),
    (_S.TERMINATED, _I.CLIENT_INPUT_DELETE): Transition(_S.TERMINATED, _A.DELETE),
}

_NON_INVITE_TABLE: _Table = {
    (_S.CALLING, _I.CLIENT_INPUT_1XX): Transition(_S.PROCEEDING, _A.PASSUP),
    (_S.CALLING, _I.CLIENT_INPUT_2XX): Transition(_S.COMPLETED, _A.FINAL),
    (_S.CALLING, _I.CLIENT_INPUT_300_PLUS): Transition(_S.COMPLETED, _A.FINAL),
    (_S.CALLING, _I.CLIENT_INPUT_TIMER_A): Transition(_S.CALLING, _A.RESEND),
    (_S.CALLING, _I.CLIENT_INPUT_TIMER_B): Transition(_S.TERMINATED, _A.TIMEOUT),
    (_S.CALLING, _I.CLIENT_INPUT_TRANSPORT_ERR): Transition(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.PROCEEDING, _I.CLIENT_INPUT_1XX): Transition(_S.PROCEEDING, _A.PASSUP),
    (_S.PROCEEDING, _I.CLIENT_INPUT_2XX): Transition(_S.COMPLETED, _A.FINAL),
    (_S.PROCEEDING, _I.CLIENT_INPUT_300_PLUS): Transition(_S.COMPLETED, _A.FINAL),
    (_S.PROCEEDING, _I.CLIENT_INPUT_TIMER_A): Transition(_S.PROCEEDING, _A.RESEND),
    (_S.PROCEEDING, _I.CLIENT_INPUT_TIMER_B): Transition(_S.TERMINATED, _A.TIMEOUT),
    (_S.PROCEEDING, _I.CLIENT_INPUT_TRANSPORT_ERR): Transition(_S.TERMINATED, _A.TRANSPORT_ERROR),
    (_S.COMPLETED, _I.CLIENT_INPUT_DELETE): Transition(_S.TERMINATED, _A.DELETE),
    (_S.COMPLETED, _I.CLIENT_INPUT_TIMER_D): Transition(_S.TERMINATED, _A.DELETE),
    (_S.TERMINATED, _I.CLIENT_INPUT_DELETE): Transition(_S.TERMINATED, _A.DELETE),
}


def client_transition(
    invite: bool, state: ClientState, event: FsmInput
) -> Optional[Transition]:
    """Look up the client transaction transition; None means the event is ignored."""
    table = _INVITE_TABLE if invite else _NON_INVITE_TABLE
    return table.get((state, event))


def backoff_interval(current: float, cap: Optional[float] = None) -> float:
    """Double a retransmission interval, limited to ``cap`` when one is given.

    INVITE retransmissions (timer A) double without a limit; non-INVITE
    retransmissions are capped at T2.
    """
    doubled = current * 2
    if cap is not None and doubled > cap:
        return cap
    return doubled
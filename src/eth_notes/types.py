"""Type definitions and data models for the eth-notes client."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from eth_typing import ChecksumAddress
from web3 import Web3

NoteId = int
Wei = int


class Action(str, Enum):
    """Mutating actions accepted by the Notes contract."""

    CREATE = "create"
    SAVE = "save"
    START_EDIT = "startEdit"
    SAVE_EDIT = "saveEdit"
    DELETE = "delete"

    @property
    def fee_function(self) -> str | None:
        return _FEE_FUNCTIONS.get(self)

    @property
    def contract_function(self) -> str:
        return _CONTRACT_FUNCTIONS[self]


_FEE_FUNCTIONS = {
    Action.CREATE: "createNoteFee",
    Action.SAVE: "saveNoteFee",
    Action.START_EDIT: "editNoteFee",
    Action.SAVE_EDIT: "saveEditFee",
}

_CONTRACT_FUNCTIONS = {
    Action.CREATE: "createNote",
    Action.SAVE: "saveNote",
    Action.START_EDIT: "startEditNote",
    Action.SAVE_EDIT: "saveEditedNote",
    Action.DELETE: "deleteNote",
}


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class OperationStatus(Enum):
    QUOTED = "quoted"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    SUBMITTED = "submitted"
    SETTLED = "settled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.CANCELLED, OperationStatus.SETTLED, OperationStatus.FAILED)


@dataclass(frozen=True)
class Note:
    id: NoteId
    title: str
    content: str = ""


@dataclass(frozen=True)
class FeeQuote:
    """Fee required to accompany an action, valid until confirm/cancel."""

    action: Action
    amount: Wei
    note_id: NoteId | None = None

    @property
    def amount_ether(self) -> Decimal:
        return Decimal(Web3.from_wei(self.amount, "ether"))


@dataclass
class PendingOperation:
    """In-flight record for one action on one note."""

    key: NoteId | str
    action: Action
    note_id: NoteId | None = None
    status: OperationStatus = OperationStatus.QUOTED
    quote: FeeQuote | None = None
    tx_hash: str | None = None
    decision: asyncio.Future[bool] | None = field(default=None, repr=False)

    def transition(self, status: OperationStatus) -> None:
        self.status = status


@dataclass
class Session:
    state: SessionState = SessionState.DISCONNECTED
    account: ChecksumAddress | None = None
    signer: Any | None = None
    wallet_kind: str | None = None

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED and self.account is not None


@dataclass
class ContractHandle:
    """Contract instance plus the validity of the latest probe against it."""

    address: ChecksumAddress
    contract: Any
    bound_to: str
    valid: bool = False


@dataclass(frozen=True)
class WalletEvent:
    """Notification pushed by a wallet provider."""

    name: str
    payload: Any = None


ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"

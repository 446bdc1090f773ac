"""Exception hierarchy for the eth-notes client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .networks import Network
    from .types import Action


class NotesError(Exception):
    """Base exception for all eth-notes errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConnectivityError(NotesError):
    """Raised by the session and validity layers."""

    pass


class ProviderUnavailable(ConnectivityError):
    """Raised when the requested wallet kind is not installed."""

    def __init__(self, wallet_kind: str, details: dict | None = None):
        super().__init__(f"{wallet_kind} wallet is not available", details)
        self.wallet_kind = wallet_kind


class ConnectionRejected(ConnectivityError):
    """Raised when the wallet refuses or returns no accounts."""

    def __init__(self, wallet_kind: str, message: str | None = None, details: dict | None = None):
        super().__init__(message or f"{wallet_kind} wallet rejected the connection", details)
        self.wallet_kind = wallet_kind


class WrongNetwork(ConnectivityError):
    """Raised when the wallet is on a chain other than the contract's."""

    def __init__(
        self,
        required_network: Network,
        active_chain_id: int | None,
        details: dict | None = None,
    ):
        super().__init__(
            f"Notes contract lives on {required_network.name}; switch networks to continue",
            details,
        )
        self.required_network = required_network
        self.active_chain_id = active_chain_id


class ContractUnreachable(ConnectivityError):
    """Raised when the contract cannot be reached on the active chain."""

    def __init__(
        self,
        message: str = "Unable to reach the Notes contract on this network",
        address: str | None = None,
        chain_id: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.address = address
        self.chain_id = chain_id


class NotConnected(ConnectivityError):
    """Raised when an operation needs a signer but no session exists."""

    def __init__(self, message: str = "Connect a wallet first", details: dict | None = None):
        super().__init__(message, details)


class UnrecognizedChainError(ConnectivityError):
    """Raised by a wallet asked to switch to a chain it does not know (EIP-1193 4902)."""

    code = 4902

    def __init__(self, chain_id: int, details: dict | None = None):
        super().__init__(f"Unrecognized chain id {chain_id}", details)
        self.chain_id = chain_id


class ActionError(NotesError):
    """Raised for failures scoped to a single note action."""

    def __init__(
        self,
        message: str,
        action: Action | str | None = None,
        note_id: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.action = action
        self.note_id = note_id


class FeeFetchFailed(ActionError):
    """Raised when the fee for an action could not be read."""

    pass


class TransactionFailed(ActionError):
    """Raised when a submitted transaction is rejected, reverted or dropped."""

    def __init__(
        self,
        message: str,
        action: Action | str | None = None,
        note_id: int | None = None,
        tx_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, action=action, note_id=note_id, details=details)
        self.tx_hash = tx_hash


class OperationTimeout(TransactionFailed):
    """Raised when a bounded wait on the remote endpoint expires."""

    def __init__(
        self,
        message: str,
        stage: str,
        action: Action | str | None = None,
        note_id: int | None = None,
        tx_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, action=action, note_id=note_id, tx_hash=tx_hash, details=details)
        self.stage = stage


class OperationInProgress(ActionError):
    """Raised when a note already has an operation in flight."""

    pass


class QuoteExpired(ActionError):
    """Raised when the session changed between quoting and submitting."""

    pass


class NotesLoadFailed(ActionError):
    """Raised when the list of owned notes cannot be fetched."""

    pass


class ValidationError(NotesError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value

"""eth-notes - wallet-gated client for notes stored in an EVM contract.

The package detects which network hosts the Notes contract, manages the
wallet session, validates the contract before use and runs fee-priced
note actions while keeping an in-memory mirror of the user's notes.
"""

from .base import WalletProvider
from .cache import NoteCache, NoteLoader
from .client import NotesClient
from .evm.config import NotesClientConfig
from .exceptions import (
    ActionError,
    ConnectionRejected,
    ConnectivityError,
    ContractUnreachable,
    FeeFetchFailed,
    NotConnected,
    NotesError,
    NotesLoadFailed,
    OperationInProgress,
    OperationTimeout,
    ProviderUnavailable,
    QuoteExpired,
    TransactionFailed,
    UnrecognizedChainError,
    ValidationError,
    WrongNetwork,
)
from .networks import CATALOG, NativeCurrency, Network, find_network, get_network, network_label
from .precedence import ErrorBoard, resolve_error
from .types import (
    Action,
    FeeQuote,
    Note,
    NoteId,
    OperationStatus,
    PendingOperation,
    SessionState,
    WalletEvent,
)
from .utils import format_fee, parse_note_id, search_notes, shorten_address, sort_notes
from .wallet import LocalKeyWallet

__version__ = "0.1.0"

__all__ = [
    # Client and collaborators
    "NotesClient",
    "NotesClientConfig",
    "WalletProvider",
    "LocalKeyWallet",
    "NoteCache",
    "NoteLoader",
    # Networks
    "CATALOG",
    "Network",
    "NativeCurrency",
    "find_network",
    "get_network",
    "network_label",
    # Types and enums
    "Action",
    "FeeQuote",
    "Note",
    "NoteId",
    "OperationStatus",
    "PendingOperation",
    "SessionState",
    "WalletEvent",
    # Exceptions
    "NotesError",
    "ConnectivityError",
    "ProviderUnavailable",
    "ConnectionRejected",
    "WrongNetwork",
    "ContractUnreachable",
    "NotConnected",
    "UnrecognizedChainError",
    "ActionError",
    "FeeFetchFailed",
    "TransactionFailed",
    "OperationTimeout",
    "OperationInProgress",
    "QuoteExpired",
    "NotesLoadFailed",
    "ValidationError",
    # Error precedence
    "ErrorBoard",
    "resolve_error",
    # Utility functions
    "format_fee",
    "parse_note_id",
    "search_notes",
    "shorten_address",
    "sort_notes",
]

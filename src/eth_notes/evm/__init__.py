"""Session, validity and transaction layers on top of web3."""

from .config import NotesClientConfig
from .connections import SessionManager
from .detector import NetworkDetector
from .gate import ContractValidityGate
from .transactions import FeeGatedExecutor

__all__ = [
    "NotesClientConfig",
    "SessionManager",
    "NetworkDetector",
    "ContractValidityGate",
    "FeeGatedExecutor",
]

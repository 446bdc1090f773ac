"""Configuration containers for the eth-notes client."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv
from web3 import Web3
from web3.types import ChecksumAddress

from ..exceptions import ValidationError
from ..networks import CATALOG, Network

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_PROBE_TIMEOUT = 5.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_CONFIRMATIONS = 1
DEFAULT_WALLET = "local"


@dataclass(frozen=True)
class NotesClientConfig:
    """Aggregated configuration used to construct the notes client."""

    contract_address: ChecksumAddress
    networks: tuple[Network, ...] = CATALOG
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    confirmations: int = DEFAULT_CONFIRMATIONS
    default_wallet: str = DEFAULT_WALLET

    def __post_init__(self) -> None:
        if not self.networks:
            raise ValidationError("At least one network is required", field="networks")
        for name in ("request_timeout", "probe_timeout", "receipt_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ValidationError(f"{name} must be positive", field=name, value=value)
        if self.confirmations < 1:
            raise ValidationError(
                "confirmations must be at least 1", field="confirmations", value=self.confirmations
            )

    @classmethod
    def build(cls, contract_address: str, **kwargs) -> NotesClientConfig:
        """Checksum ``contract_address`` and build a config."""

        try:
            address = Web3.to_checksum_address(contract_address)
        except ValueError as exc:
            raise ValidationError(
                "Invalid contract address",
                field="contract_address",
                value=contract_address,
                details={"error": str(exc)},
            ) from exc
        return cls(contract_address=address, **kwargs)

    @classmethod
    def from_env(cls) -> NotesClientConfig:
        """Build a config from ``NOTES_*`` environment variables (``.env`` honoured)."""

        load_dotenv()

        address = os.getenv("NOTES_CONTRACT_ADDRESS")
        if not address:
            raise ValidationError(
                "NOTES_CONTRACT_ADDRESS not found in environment variables",
                field="contract_address",
            )

        return cls.build(
            address,
            request_timeout=_env_float("NOTES_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            probe_timeout=_env_float("NOTES_PROBE_TIMEOUT", DEFAULT_PROBE_TIMEOUT),
            receipt_timeout=_env_float("NOTES_RECEIPT_TIMEOUT", DEFAULT_RECEIPT_TIMEOUT),
            default_wallet=os.getenv("NOTES_DEFAULT_WALLET", DEFAULT_WALLET),
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be numeric", field=name, value=raw) from exc

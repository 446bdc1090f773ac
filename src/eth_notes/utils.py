"""Utility functions for the eth-notes client."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any

from hexbytes import HexBytes
from web3 import Web3

from .exceptions import ValidationError
from .types import Note

logger = logging.getLogger(__name__)


def format_fee(amount_wei: int, symbol: str = "ETH") -> str:
    """Render a wei amount the way the fee confirmation prompt shows it."""
    if amount_wei < 0:
        raise ValidationError("Fee cannot be negative", field="amount_wei", value=amount_wei)
    ether = Decimal(Web3.from_wei(amount_wei, "ether"))
    text = format(ether.normalize(), "f") if ether else "0"
    return f"{text} {symbol}"


def shorten_address(address: str | None, chars: int = 4) -> str:
    """``0x1234...abcd`` form used in account badges."""
    if not address:
        return ""
    if len(address) <= 2 + chars * 2:
        return address
    return f"{address[: 2 + chars]}...{address[-chars:]}"


def search_notes(notes: Iterable[Note], term: str) -> list[Note]:
    """Case-insensitive match on title or content."""
    needle = term.lower()
    return [
        note
        for note in notes
        if needle in note.title.lower() or needle in note.content.lower()
    ]


def sort_notes(notes: Iterable[Note], descending: bool = False) -> list[Note]:
    return sorted(notes, key=lambda note: note.title.casefold(), reverse=descending)


def parse_note_id(value: int | str) -> int:
    """Accept ids as ints or decimal/hex strings (route parameters)."""
    try:
        if isinstance(value, str):
            note_id = int(value, 16) if value.lower().startswith("0x") else int(value)
        else:
            note_id = int(value)
    except (ValueError, TypeError):
        raise ValidationError("Note id must be an integer", field="note_id", value=value)

    if note_id < 0:
        raise ValidationError("Note id cannot be negative", field="note_id", value=value)
    return note_id


async def close_provider(web3: Any) -> None:
    """Release the HTTP session cached by an ``AsyncWeb3`` provider."""
    if web3 is None:
        return
    try:
        await web3.provider.disconnect()
    except Exception as exc:
        logger.warning("Failed to close provider: %s", exc)


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt

"""Example: Connect a local key wallet and manage notes on the Notes contract."""

from __future__ import annotations

import asyncio
import logging

from dotenv import load_dotenv

from eth_notes import (
    LocalKeyWallet,
    NotesClient,
    NotesClientConfig,
    NotesError,
    format_fee,
    search_notes,
    shorten_address,
    sort_notes,
)
from eth_notes.types import FeeQuote

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

NOTE_TITLE = "Shopping list"
NOTE_BODY = "milk, eggs, bread"


async def confirm_fee(quote: FeeQuote) -> bool:
    """Prompt on stdin before paying a fee."""

    answer = await asyncio.to_thread(
        input, f"{quote.action.value} costs {format_fee(quote.amount)}. Proceed? [y/N] "
    )
    return answer.strip().lower() in {"y", "yes"}


async def main() -> None:
    config = NotesClientConfig.from_env()
    wallet = LocalKeyWallet.from_env(config.networks)

    async with NotesClient(config, [wallet], confirmer=confirm_fee) as client:
        if client.required_network is None:
            print(f"Notes contract {config.contract_address} not found on any supported network")
            return

        await client.connect(wallet.kind)
        if not client.contract_valid:
            required = client.required_network.name
            print(f"Wallet is on {client.network_label}; switching to {required}")
            await client.switch_to_required_network()

        print(f"Connected {shorten_address(client.account)} on {client.network_label}")
        for note in sort_notes(client.notes):
            print(f"  #{note.id} {note.title}")

        try:
            note_id = await client.create_with_content(NOTE_TITLE, NOTE_BODY)
        except NotesError as exc:
            print(f"Create failed: {exc}")
            return

        if note_id is None:
            print("Create cancelled")
            return

        print(f"Created note #{note_id}")
        if client.last_transaction and client.required_network:
            print(f"Explorer: {client.required_network.tx_url(client.last_transaction['tx_hash'])}")

        matches = search_notes(client.notes, "milk")
        print(f"{len(matches)} note(s) mention milk")


if __name__ == "__main__":
    asyncio.run(main())

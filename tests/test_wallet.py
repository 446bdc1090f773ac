"""Tests for the local private-key wallet."""

import asyncio

import pytest
from eth_account import Account

from eth_notes.exceptions import ConnectionRejected, UnrecognizedChainError, ValidationError
from eth_notes.networks import GOERLI, SEPOLIA
from eth_notes.types import ACCOUNTS_CHANGED, CHAIN_CHANGED, WalletEvent
from eth_notes.wallet import LocalKeyWallet

from ._fakes import ALPHA, NETWORKS

KEY_ONE = "0x" + "11" * 32
KEY_TWO = "0x" + "22" * 32
ADDRESS_ONE = Account.from_key(KEY_ONE).address
ADDRESS_TWO = Account.from_key(KEY_TWO).address


def test_request_accounts_returns_held_addresses():
    wallet = LocalKeyWallet([KEY_ONE, KEY_TWO], chain_id=SEPOLIA.chain_id)

    assert wallet.is_available()
    assert asyncio.run(wallet.request_accounts()) == [ADDRESS_ONE, ADDRESS_TWO]


def test_declining_wallet_rejects():
    wallet = LocalKeyWallet([KEY_ONE], chain_id=SEPOLIA.chain_id, approve=False)

    with pytest.raises(ConnectionRejected):
        asyncio.run(wallet.request_accounts())


def test_wallet_without_keys_is_unavailable():
    assert not LocalKeyWallet([], chain_id=SEPOLIA.chain_id).is_available()


def test_bad_key_rejected():
    with pytest.raises(ValidationError):
        LocalKeyWallet(["not-a-key"], chain_id=SEPOLIA.chain_id)


def test_unconfigured_chain_rejected():
    with pytest.raises(ValidationError):
        LocalKeyWallet([KEY_ONE], chain_id=1)


def test_signer_defaults_to_account():
    wallet = LocalKeyWallet([KEY_ONE], chain_id=SEPOLIA.chain_id)

    signer = wallet.signer(ADDRESS_ONE.lower())

    assert signer.eth.default_account == ADDRESS_ONE
    assert wallet.reader() is wallet.reader()

    with pytest.raises(ValidationError):
        wallet.signer(ADDRESS_TWO)


def test_switch_chain_emits_event():
    wallet = LocalKeyWallet([KEY_ONE], chain_id=SEPOLIA.chain_id)

    async def scenario():
        queue = wallet.subscribe()
        await wallet.switch_chain(SEPOLIA.chain_id_hex)
        await wallet.switch_chain(GOERLI.chain_id_hex)
        return queue

    queue = asyncio.run(scenario())

    assert asyncio.run(wallet.chain_id()) == GOERLI.chain_id
    assert wallet.network is GOERLI
    assert queue.qsize() == 1
    assert queue.get_nowait() == WalletEvent(CHAIN_CHANGED, GOERLI.chain_id_hex)


def test_unknown_chain_must_be_added_first():
    wallet = LocalKeyWallet([KEY_ONE], chain_id=SEPOLIA.chain_id)

    async def scenario():
        with pytest.raises(UnrecognizedChainError) as exc_info:
            await wallet.switch_chain(ALPHA.chain_id_hex)
        assert exc_info.value.code == 4902

        await wallet.add_chain(ALPHA.as_wallet_params())
        await wallet.switch_chain(ALPHA.chain_id_hex)

    asyncio.run(scenario())
    assert wallet.network == ALPHA


def test_select_account_and_lock_notify_subscribers():
    wallet = LocalKeyWallet([KEY_ONE, KEY_TWO], chain_id=ALPHA.chain_id, networks=NETWORKS)

    async def scenario():
        queue = wallet.subscribe()
        wallet.select_account(ADDRESS_TWO)
        wallet.lock()
        wallet.unsubscribe(queue)
        wallet.lock()
        return queue

    queue = asyncio.run(scenario())

    assert asyncio.run(wallet.request_accounts())[0] == ADDRESS_TWO
    assert queue.get_nowait() == WalletEvent(ACCOUNTS_CHANGED, [ADDRESS_TWO])
    assert queue.get_nowait() == WalletEvent(ACCOUNTS_CHANGED, [])
    assert queue.empty()
    assert wallet.subscriber_count == 0


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PRIVATE_KEY", KEY_ONE)
    monkeypatch.setenv("NOTES_RPC_CHAIN_ID", "5")

    wallet = LocalKeyWallet.from_env()

    assert wallet.network is GOERLI
    assert asyncio.run(wallet.request_accounts()) == [ADDRESS_ONE]


def test_from_env_requires_key(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PRIVATE_KEY", raising=False)

    with pytest.raises(ValidationError):
        LocalKeyWallet.from_env()


def test_aclose_releases_cached_readers(monkeypatch):
    wallet = LocalKeyWallet([KEY_ONE], chain_id=SEPOLIA.chain_id)
    reader = wallet.reader()
    closed = []

    async def record_disconnect():
        closed.append(reader)

    monkeypatch.setattr(reader.provider, "disconnect", record_disconnect)

    asyncio.run(wallet.aclose())

    assert closed == [reader]
    assert wallet.reader() is not reader

"""Notes client: the single owner of session, contract handle and note cache."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable, Mapping
from typing import Any, TypeVar

from web3.types import ChecksumAddress

from .base import WalletProvider
from .cache import NoteCache, NoteLoader
from .exceptions import ConnectivityError, ContractUnreachable, NotesError, ValidationError
from .evm.config import NotesClientConfig
from .evm.connections import SessionManager
from .evm.detector import NetworkDetector, Web3Factory, default_web3_factory
from .evm.gate import ContractValidityGate
from .evm.transactions import DEFAULT_POLL_INTERVAL, Confirmer, FeeGatedExecutor
from .networks import Network, network_label
from .precedence import ErrorBoard
from .types import FeeQuote, Note, NoteId, PendingOperation, SessionState, WalletEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NotesClient:
    """Coordinate wallet session, validity gate, fee-gated actions and cache.

    All state the presentation layer reads is exposed as properties; all
    mutation goes through the coroutine methods below.
    """

    def __init__(
        self,
        config: NotesClientConfig,
        wallets: Mapping[str, WalletProvider] | Iterable[WalletProvider],
        *,
        confirmer: Confirmer | None = None,
        web3_factory: Web3Factory = default_web3_factory,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if isinstance(wallets, Mapping):
            wallet_map = dict(wallets)
        else:
            wallet_map = {wallet.kind: wallet for wallet in wallets}

        self._config = config
        self._detector = NetworkDetector(
            config.networks,
            config.contract_address,
            probe_timeout=config.probe_timeout,
            web3_factory=web3_factory,
        )
        self._connections = SessionManager(
            config,
            wallet_map,
            on_chain_changed=self._handle_chain_changed,
            on_account_changed=self._handle_account_changed,
            web3_factory=web3_factory,
        )
        self._gate = ContractValidityGate(self._connections, request_timeout=config.request_timeout)
        self._cache = NoteCache()
        self._loader = NoteLoader(self._cache, request_timeout=config.request_timeout)
        self._executor = FeeGatedExecutor(
            self._connections,
            self._gate,
            self._cache,
            request_timeout=config.request_timeout,
            receipt_timeout=config.receipt_timeout,
            confirmations=config.confirmations,
            poll_interval=poll_interval,
            confirmer=confirmer,
        )
        self._errors = ErrorBoard()
        self._active_chain_id: int | None = None
        self._loads_in_flight = 0
        self._initializing = False
        self._reinit_waiters: list[asyncio.Future[None]] = []

    async def __aenter__(self) -> NotesClient:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # State for the presentation layer
    # ------------------------------------------------------------------
    @property
    def config(self) -> NotesClientConfig:
        return self._config

    @property
    def account(self) -> ChecksumAddress | None:
        return self._connections.account

    @property
    def session_state(self) -> SessionState:
        return self._connections.state

    @property
    def active_chain_id(self) -> int | None:
        return self._active_chain_id

    @property
    def network_label(self) -> str:
        return network_label(self._active_chain_id, self._config.networks)

    @property
    def contract_valid(self) -> bool:
        return self._gate.valid

    @property
    def required_network(self) -> Network | None:
        return self._gate.required_network

    @property
    def notes(self) -> list[Note]:
        return self._cache.notes

    def get_note(self, note_id: NoteId) -> Note | None:
        return self._cache.get(note_id)

    def is_editing(self, note_id: NoteId) -> bool:
        return self._executor.is_editing(note_id)

    @property
    def loading(self) -> bool:
        return (
            self._initializing
            or self._loads_in_flight > 0
            or self._executor.busy
            or self._connections.state is SessionState.CONNECTING
        )

    @property
    def error(self) -> Exception | str | None:
        return self._errors.resolve(contract_valid=self._gate.valid)

    @property
    def errors(self) -> ErrorBoard:
        return self._errors

    @property
    def pending_quotes(self) -> list[FeeQuote]:
        return self._executor.pending_quotes

    @property
    def pending_operations(self) -> list[PendingOperation]:
        return self._executor.pending_operations

    @property
    def last_transaction(self) -> dict[str, Any] | None:
        return self._executor.last_transaction

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    async def initialize(self) -> bool:
        """Detect the contract's network, bind a read-only handle and probe it."""

        self._initializing = True
        try:
            required = await self._detector.detect_contract_network()
            self._gate.required_network = required
            await self._connections.init_reader(required)
            return await self._revalidate()
        finally:
            self._initializing = False

    async def connect(self, wallet_kind: str | None = None) -> ChecksumAddress:
        kind = wallet_kind or self._config.default_wallet
        self._errors.connectivity = None
        try:
            account = await self._connections.connect(kind)
        except NotesError as exc:
            logger.error("Error connecting wallet: %s", exc)
            self._errors.connectivity = exc
            raise

        self._executor.reset()
        await self._cache.clear()
        if await self._revalidate():
            await self._load_quietly()
        return account

    async def disconnect(self) -> None:
        self._executor.reset()
        await self._connections.disconnect()
        await self._cache.clear()
        await self._revalidate()

    async def switch_to_required_network(self) -> None:
        """Move the wallet to the network hosting the contract."""

        required = self._gate.required_network
        if required is None:
            error = ContractUnreachable("The Notes contract was not found on any supported network")
            self._errors.connectivity = error
            raise error

        if await self._connections.active_chain_id() == required.chain_id:
            return

        waiter = self._next_reinitialization()
        subscribed = self._connections.has_subscription
        try:
            await self._connections.switch_network(required)
        except NotesError as exc:
            self._errors.connectivity = exc
            waiter.cancel()
            raise

        if subscribed:
            await waiter
        else:
            waiter.cancel()
            await self.reinitialize()

    async def reinitialize(self) -> None:
        """Tear everything down and rebuild it for the wallet's current chain."""

        kind = self._connections.session.wallet_kind
        try:
            self._executor.reset()
            await self._connections.disconnect()
            await self._cache.clear()
            self._gate.invalidate()
            await self.initialize()
            if kind is not None:
                try:
                    await self.connect(kind)
                except NotesError as exc:
                    logger.warning(
                        "Reconnect to %s wallet after chain change failed: %s", kind, exc
                    )
        finally:
            waiters, self._reinit_waiters = self._reinit_waiters, []
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(None)

    async def wait_reinitialized(self) -> None:
        """Suspend until the next reinitialization completes."""
        await self._next_reinitialization()

    async def close(self) -> None:
        self._executor.reset()
        await self._connections.aclose()

    def _next_reinitialization(self) -> asyncio.Future[None]:
        waiter = asyncio.get_running_loop().create_future()
        self._reinit_waiters.append(waiter)
        return waiter

    async def _revalidate(self) -> bool:
        valid = await self._gate.evaluate()
        self._active_chain_id = await self._connections.active_chain_id()
        self._errors.connectivity = self._gate.diagnostic
        return valid

    async def _handle_chain_changed(self, event: WalletEvent) -> None:
        await self.reinitialize()

    async def _handle_account_changed(self, event: WalletEvent) -> None:
        self._executor.reset()
        await self._cache.clear()
        if self._connections.is_connected():
            await self._load_quietly()
        else:
            await self._revalidate()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------
    async def load_notes(self) -> list[Note]:
        """Refresh the cache; a no-op without a valid contract and an account."""

        handle = self._connections.handle
        account = self._connections.account
        if not self._gate.valid or account is None or handle is None:
            logger.debug(
                "Skipping note load: contract_valid=%s account=%s", self._gate.valid, account
            )
            return self._cache.notes

        self._loads_in_flight += 1
        try:
            return await self._loader.load(handle, account)
        except NotesError as exc:
            self._errors.domain = exc
            raise
        finally:
            self._loads_in_flight -= 1

    async def _load_quietly(self) -> None:
        try:
            await self.load_notes()
        except NotesError as exc:
            logger.error("Error loading notes: %s", exc)

    async def create(self, title: str) -> NoteId | None:
        return await self._track(self._executor.create(title))

    async def create_with_content(self, title: str, content: str) -> NoteId | None:
        """Create a note, then save its body.

        Only the create fee is put up for confirmation; the follow-up save
        is quoted and paid without a second prompt.
        """

        note_id = await self.create(title)
        if note_id is not None and content:
            await self._track(self._executor.save(note_id, content, preapproved=True))
        return note_id

    async def save(self, note_id: NoteId, content: str) -> bool:
        return await self._track(self._executor.save(note_id, content))

    async def start_edit(self, note_id: NoteId) -> bool:
        return await self._track(self._executor.start_edit(note_id))

    async def save_edit(self, note_id: NoteId, title: str, content: str) -> bool:
        return await self._track(self._executor.save_edit(note_id, title, content))

    async def delete(self, note_id: NoteId) -> bool:
        return await self._track(self._executor.delete(note_id))

    def confirm(self, quote: FeeQuote | NoteId | str) -> None:
        self._executor.confirm(self._quote_key(quote))

    def cancel(self, quote: FeeQuote | NoteId | str) -> None:
        self._executor.cancel(self._quote_key(quote))

    async def wait_for_quote(self) -> FeeQuote:
        return await self._executor.wait_for_quote()

    def _quote_key(self, quote: FeeQuote | NoteId | str) -> NoteId | str:
        if isinstance(quote, FeeQuote):
            return self._executor.key_for(quote)
        return quote

    async def _track(self, action: Awaitable[T]) -> T:
        self._errors.domain = None
        try:
            return await action
        except ValidationError as exc:
            self._errors.local = exc
            raise
        except ConnectivityError as exc:
            # Refusals while the session or contract is unusable.
            self._errors.connectivity = exc
            raise
        except NotesError as exc:
            logger.error("Action failed: %s", exc)
            self._errors.domain = exc
            raise

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------
    def set_local_error(self, error: Exception | str | None) -> None:
        self._errors.local = error

    def clear_error(self) -> None:
        self._errors.clear_error()

"""Wallet session lifecycle and contract handle wiring."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from web3 import AsyncWeb3
from web3.types import ChecksumAddress

from ..abi import NotesContract_abi
from ..base import WalletProvider
from ..exceptions import (
    ConnectionRejected,
    NotConnected,
    OperationInProgress,
    ProviderUnavailable,
    UnrecognizedChainError,
)
from ..networks import Network
from ..types import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    ContractHandle,
    Session,
    SessionState,
    WalletEvent,
)
from ..utils import close_provider
from .config import NotesClientConfig
from .detector import Web3Factory, default_web3_factory

logger = logging.getLogger(__name__)

EventHook = Callable[[WalletEvent], Awaitable[None]]


class SessionManager:
    """Own the wallet session, the read-only provider and the contract handle.

    The session moves Disconnected -> Connecting -> Connected. While
    connected, a single watcher task consumes the wallet's notification
    queue; it is cancelled and the queue released on every teardown.
    """

    def __init__(
        self,
        config: NotesClientConfig,
        wallets: Mapping[str, WalletProvider],
        *,
        on_chain_changed: EventHook | None = None,
        on_account_changed: EventHook | None = None,
        web3_factory: Web3Factory = default_web3_factory,
    ) -> None:
        self.config = config
        self._wallets = dict(wallets)
        self._on_chain_changed = on_chain_changed
        self._on_account_changed = on_account_changed
        self._web3_factory = web3_factory

        self._session = Session()
        self._wallet: WalletProvider | None = None
        self._reader_wallet: WalletProvider | None = None
        self._reader: AsyncWeb3 | None = None
        self._owns_reader = False
        self._handle: ContractHandle | None = None
        self._subscription: asyncio.Queue[WalletEvent] | None = None
        self._watcher: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def account(self) -> ChecksumAddress | None:
        return self._session.account

    @property
    def wallet(self) -> WalletProvider | None:
        return self._wallet

    @property
    def handle(self) -> ContractHandle | None:
        return self._handle

    @property
    def has_subscription(self) -> bool:
        return self._subscription is not None

    @property
    def signer(self) -> AsyncWeb3:
        if self._session.signer is None or not self._session.is_connected:
            raise NotConnected()
        return self._session.signer

    def is_connected(self) -> bool:
        return self._session.is_connected

    async def active_chain_id(self) -> int | None:
        """Chain the user is currently on, or None when it cannot be read."""

        wallet = self._wallet or self._reader_wallet
        try:
            if wallet is not None:
                return await wallet.chain_id()
            if self._reader is not None:
                return await self._reader.eth.chain_id
        except Exception as exc:
            logger.warning("Unable to read active chain id: %s", exc)
        return None

    # ------------------------------------------------------------------
    # Read-only provider
    # ------------------------------------------------------------------
    async def init_reader(self, required_network: Network | None) -> ContractHandle | None:
        """Select the read-only provider and bind a contract handle to it.

        An installed wallet is preferred (its chain is what the user sees);
        otherwise the required network's first RPC url is used.
        """

        previous, owned = self._reader, self._owns_reader
        self._owns_reader = False
        wallet = self._preferred_wallet()
        if wallet is not None:
            self._reader_wallet = wallet
            self._reader = wallet.reader()
            logger.info("Using %s wallet as read-only provider", wallet.kind)
        elif required_network is not None:
            self._reader_wallet = None
            self._reader = self._web3_factory(required_network.rpc_url)
            self._owns_reader = True
            logger.info("Using %s RPC as read-only provider", required_network.name)
        else:
            self._reader_wallet = None
            self._reader = None
            self._handle = None
            logger.warning("No wallet installed and no network hosts the contract")

        if self._reader is not None:
            self._handle = self._build_handle(self._reader, bound_to="reader")
        if owned and previous is not self._reader:
            await close_provider(previous)
        return self._handle

    async def _release_reader(self) -> None:
        reader, self._reader = self._reader, None
        if self._owns_reader:
            self._owns_reader = False
            await close_provider(reader)

    def _preferred_wallet(self) -> WalletProvider | None:
        default = self._wallets.get(self.config.default_wallet)
        if default is not None and default.is_available():
            return default
        for wallet in self._wallets.values():
            if wallet.is_available():
                return wallet
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self, wallet_kind: str) -> ChecksumAddress:
        """Authorize ``wallet_kind`` and bind the contract handle to its signer."""

        if self._session.state is SessionState.CONNECTING:
            raise OperationInProgress("A wallet connection is already in progress")
        if self._session.state is SessionState.CONNECTED:
            logger.info("Replacing %s session with %s", self._session.wallet_kind, wallet_kind)
            await self.disconnect()

        wallet = self._wallets.get(wallet_kind)
        if wallet is None or not wallet.is_available():
            raise ProviderUnavailable(wallet_kind)

        self._session.state = SessionState.CONNECTING
        try:
            accounts = await wallet.request_accounts()
            if not accounts:
                raise ConnectionRejected(wallet_kind, f"{wallet_kind} wallet returned no accounts")
            account = AsyncWeb3.to_checksum_address(accounts[0])
            signer = wallet.signer(account)
        except (ConnectionRejected, asyncio.CancelledError):
            self._session = Session()
            raise
        except Exception as exc:
            self._session = Session()
            raise ConnectionRejected(
                wallet_kind, str(exc) or None, details={"error": str(exc)}
            ) from exc

        self._wallet = wallet
        self._session = Session(
            state=SessionState.CONNECTED,
            account=account,
            signer=signer,
            wallet_kind=wallet_kind,
        )
        self._handle = self._build_handle(signer, bound_to="signer")
        self._open_subscription(wallet)
        logger.info("Connected %s wallet account %s", wallet_kind, account)
        return account

    async def disconnect(self) -> None:
        """Drop the session and rebind the handle to the read-only provider."""

        self._release_subscription()
        signer = self._session.signer
        if self._session.state is not SessionState.DISCONNECTED:
            logger.info("Disconnected %s wallet", self._session.wallet_kind)
        self._session = Session()
        self._wallet = None
        if self._reader is not None:
            self._handle = self._build_handle(self._reader, bound_to="reader")
        else:
            self._handle = None
        await close_provider(signer)

    async def aclose(self) -> None:
        """Disconnect and release every provider, including the wallets'."""

        watcher = self._watcher
        await self.disconnect()
        await self._release_reader()
        self._handle = None
        for wallet in self._wallets.values():
            await wallet.aclose()
        if watcher is not None and watcher is not asyncio.current_task():
            try:
                await watcher
            except asyncio.CancelledError:
                pass

    async def switch_network(self, network: Network) -> None:
        """Ask the wallet to switch to ``network``, adding it first if unknown."""

        wallet = self._wallet or self._reader_wallet
        if wallet is None:
            raise NotConnected("No wallet available to switch networks")

        try:
            await wallet.switch_chain(network.chain_id_hex)
        except UnrecognizedChainError:
            logger.info("Wallet does not know %s; adding it", network.name)
            await wallet.add_chain(network.as_wallet_params())
            await wallet.switch_chain(network.chain_id_hex)

    # ------------------------------------------------------------------
    # Notification handling
    # ------------------------------------------------------------------
    def _open_subscription(self, wallet: WalletProvider) -> None:
        self._release_subscription()
        queue = wallet.subscribe()
        self._subscription = queue
        self._watcher = asyncio.create_task(self._watch(wallet, queue))

    def _release_subscription(self) -> None:
        watcher, self._watcher = self._watcher, None
        queue, self._subscription = self._subscription, None
        if queue is not None and self._wallet is not None:
            self._wallet.unsubscribe(queue)
        if watcher is not None and watcher is not asyncio.current_task():
            watcher.cancel()

    async def _watch(self, wallet: WalletProvider, queue: asyncio.Queue[WalletEvent]) -> None:
        while self._subscription is queue:
            event = await queue.get()
            if self._subscription is not queue:
                return

            try:
                if event.name == ACCOUNTS_CHANGED:
                    await self._handle_accounts_changed(event)
                elif event.name == CHAIN_CHANGED:
                    logger.info("Chain changed to %s; tearing down session", event.payload)
                    self._release_subscription()
                    if self._on_chain_changed is not None:
                        await self._on_chain_changed(event)
                    return
                else:
                    logger.debug("Ignoring %s event from %s wallet", event.name, wallet.kind)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Unexpected failure handling %s event", event.name)

    async def _handle_accounts_changed(self, event: WalletEvent) -> None:
        accounts: list[Any] = list(event.payload or [])
        if not accounts:
            logger.info("Wallet reported no accounts; disconnecting")
            await self.disconnect()
        else:
            account = AsyncWeb3.to_checksum_address(accounts[0])
            if account == self._session.account:
                return
            logger.info("Account switched from %s to %s", self._session.account, account)
            self._session.account = account
            if self._session.signer is not None:
                self._session.signer.eth.default_account = account

        if self._on_account_changed is not None:
            await self._on_account_changed(event)

    # ------------------------------------------------------------------
    # Internal wiring
    # ------------------------------------------------------------------
    def _build_handle(self, web3: AsyncWeb3, *, bound_to: str) -> ContractHandle:
        contract = web3.eth.contract(address=self.config.contract_address, abi=NotesContract_abi)
        return ContractHandle(
            address=self.config.contract_address,
            contract=contract,
            bound_to=bound_to,
        )

"""Local private-key wallet that behaves like an injected browser wallet."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from typing import Any, cast

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.middleware import SignAndSendRawMiddlewareBuilder

from .base import WalletProvider
from .exceptions import ConnectionRejected, UnrecognizedChainError, ValidationError
from .networks import CATALOG, NativeCurrency, Network
from .types import ACCOUNTS_CHANGED, CHAIN_CHANGED
from .utils import close_provider

logger = logging.getLogger(__name__)


class LocalKeyWallet(WalletProvider):
    """Sign with locally held keys over the active chain's first RPC url."""

    def __init__(
        self,
        private_keys: Sequence[str],
        *,
        chain_id: int,
        networks: Sequence[Network] = CATALOG,
        kind: str = "local",
        approve: bool = True,
    ) -> None:
        super().__init__()
        self.kind = kind
        self._approve = approve
        self._accounts: list[LocalAccount] = []
        for index, key in enumerate(private_keys):
            try:
                self._accounts.append(cast(LocalAccount, Account.from_key(key)))
            except Exception as exc:
                raise ValidationError(
                    "Failed to derive signer account from provided private key",
                    field="private_keys",
                    value=index,
                    details={"error": str(exc)},
                ) from exc

        self._networks: dict[int, Network] = {network.chain_id: network for network in networks}
        if chain_id not in self._networks:
            raise ValidationError(
                "Wallet chain is not configured", field="chain_id", value=chain_id
            )
        self._chain_id = chain_id
        self._readers: dict[int, AsyncWeb3] = {}

    @classmethod
    def from_env(cls, networks: Sequence[Network] = CATALOG) -> LocalKeyWallet:
        load_dotenv()

        private_key = os.getenv("PRIVATE_KEY")
        if not private_key:
            raise ValidationError(
                "PRIVATE_KEY not found in environment variables", field="private_key"
            )
        raw_chain = os.getenv("NOTES_RPC_CHAIN_ID", str(networks[0].chain_id))
        try:
            chain_id = int(raw_chain, 0)
        except ValueError as exc:
            raise ValidationError(
                "NOTES_RPC_CHAIN_ID must be an integer", field="chain_id", value=raw_chain
            ) from exc
        return cls([private_key], chain_id=chain_id, networks=networks)

    # ------------------------------------------------------------------
    # WalletProvider
    # ------------------------------------------------------------------
    def is_available(self) -> bool:
        return bool(self._accounts)

    async def request_accounts(self) -> list[str]:
        if not self._approve:
            raise ConnectionRejected(self.kind, "User rejected the request")
        return [account.address for account in self._accounts]

    async def chain_id(self) -> int:
        return self._chain_id

    @property
    def network(self) -> Network:
        return self._networks[self._chain_id]

    def reader(self) -> AsyncWeb3:
        reader = self._readers.get(self._chain_id)
        if reader is None:
            reader = AsyncWeb3(AsyncHTTPProvider(self.network.rpc_url))
            self._readers[self._chain_id] = reader
        return reader

    def signer(self, account: str) -> AsyncWeb3:
        local = self._account_for(account)
        web3 = AsyncWeb3(AsyncHTTPProvider(self.network.rpc_url))
        # Every held key can sign; default_account selects the sender.
        middleware = SignAndSendRawMiddlewareBuilder.build(self._accounts)  # type: ignore[arg-type]
        web3.middleware_onion.add(middleware)
        web3.eth.default_account = local.address
        return web3

    async def switch_chain(self, chain_id_hex: str) -> None:
        chain_id = int(chain_id_hex, 16)
        if chain_id not in self._networks:
            raise UnrecognizedChainError(chain_id)
        if chain_id == self._chain_id:
            return
        self._chain_id = chain_id
        logger.info("%s wallet switched to %s", self.kind, self.network.name)
        self.emit(CHAIN_CHANGED, chain_id_hex)

    async def add_chain(self, params: Mapping[str, Any]) -> None:
        network = network_from_params(params)
        self._networks[network.chain_id] = network
        logger.info("%s wallet added chain %s (%s)", self.kind, network.name, network.chain_id_hex)

    async def aclose(self) -> None:
        readers, self._readers = self._readers, {}
        for reader in readers.values():
            await close_provider(reader)

    # ------------------------------------------------------------------
    # Wallet-side user actions
    # ------------------------------------------------------------------
    def select_account(self, address: str) -> None:
        """Make ``address`` the active account, as a wallet UI would."""

        local = self._account_for(address)
        self._accounts.remove(local)
        self._accounts.insert(0, local)
        self.emit(ACCOUNTS_CHANGED, [local.address])

    def lock(self) -> None:
        self.emit(ACCOUNTS_CHANGED, [])

    def _account_for(self, address: str) -> LocalAccount:
        for account in self._accounts:
            if account.address.lower() == address.lower():
                return account
        raise ValidationError("Account is not held by this wallet", field="account", value=address)


def network_from_params(params: Mapping[str, Any]) -> Network:
    """Inverse of :meth:`Network.as_wallet_params`."""

    try:
        currency = params.get("nativeCurrency") or {}
        return Network(
            name=str(params["chainName"]),
            chain_id=int(str(params["chainId"]), 16),
            rpc_urls=tuple(params["rpcUrls"]),
            explorer_urls=tuple(params.get("blockExplorerUrls") or ()),
            native_currency=NativeCurrency(
                name=currency.get("name", "Ether"),
                symbol=currency.get("symbol", "ETH"),
                decimals=int(currency.get("decimals", 18)),
            ),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(
            "Malformed chain parameters",
            field="params",
            value=dict(params),
            details={"error": str(exc)},
        ) from exc

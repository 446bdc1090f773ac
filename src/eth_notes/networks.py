"""Static catalog of networks the Notes contract may be deployed on."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ValidationError


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int = 18


@dataclass(frozen=True)
class Network:
    """Immutable descriptor for a supported chain."""

    name: str
    chain_id: int
    rpc_urls: tuple[str, ...]
    explorer_urls: tuple[str, ...] = field(default_factory=tuple)
    native_currency: NativeCurrency = NativeCurrency("Ether", "ETH")

    @property
    def chain_id_hex(self) -> str:
        return hex(self.chain_id)

    @property
    def rpc_url(self) -> str:
        """First RPC endpoint; the one used for read-only probing."""
        return self.rpc_urls[0]

    def as_wallet_params(self) -> dict[str, Any]:
        """Return the parameter object for ``wallet_addEthereumChain``."""

        return {
            "chainId": self.chain_id_hex,
            "chainName": self.name,
            "nativeCurrency": {
                "name": self.native_currency.name,
                "symbol": self.native_currency.symbol,
                "decimals": self.native_currency.decimals,
            },
            "rpcUrls": list(self.rpc_urls),
            "blockExplorerUrls": list(self.explorer_urls),
        }

    def tx_url(self, tx_hash: str) -> str | None:
        if not self.explorer_urls:
            return None
        return f"{self.explorer_urls[0].rstrip('/')}/tx/{tx_hash}"


SEPOLIA = Network(
    name="Sepolia Testnet",
    chain_id=11155111,
    rpc_urls=("https://ethereum-sepolia-rpc.publicnode.com", "https://sepolia.infura.io/v3/"),
    explorer_urls=("https://sepolia.etherscan.io",),
    native_currency=NativeCurrency("Sepolia Ether", "SEP"),
)

GOERLI = Network(
    name="Goerli Testnet",
    chain_id=5,
    rpc_urls=("https://ethereum-goerli-rpc.publicnode.com", "https://goerli.infura.io/v3/"),
    explorer_urls=("https://goerli.etherscan.io",),
    native_currency=NativeCurrency("Goerli Ether", "ETH"),
)

HOLESKY = Network(
    name="Holesky Testnet",
    chain_id=17000,
    rpc_urls=("https://ethereum-holesky-rpc.publicnode.com",),
    explorer_urls=("https://holesky.etherscan.io",),
    native_currency=NativeCurrency("Holesky Ether", "ETH"),
)

# Declaration order is detection order.
CATALOG: tuple[Network, ...] = (SEPOLIA, GOERLI, HOLESKY)


def find_network(chain_id: int | None, catalog: Sequence[Network] = CATALOG) -> Network | None:
    if chain_id is None:
        return None
    for network in catalog:
        if network.chain_id == chain_id:
            return network
    return None


def get_network(chain_id: int, catalog: Sequence[Network] = CATALOG) -> Network:
    """Get a catalog entry by chain id.

    Raises:
        ValidationError: If the chain id is not in the catalog
    """
    network = find_network(chain_id, catalog)
    if network is None:
        raise ValidationError(f"Unknown chain id: {chain_id}", field="chain_id", value=chain_id)
    return network


def get_network_by_name(name: str, catalog: Sequence[Network] = CATALOG) -> Network:
    lowered = name.lower()
    for network in catalog:
        if network.name.lower() == lowered or network.name.lower().split()[0] == lowered:
            return network
    raise ValidationError(f"Unknown network: {name}", field="name", value=name)


def network_label(chain_id: int | None, catalog: Sequence[Network] = CATALOG) -> str:
    """Human readable label for the active chain."""
    if chain_id is None:
        return "unknown"
    network = find_network(chain_id, catalog)
    return network.name if network is not None else f"chain {chain_id}"

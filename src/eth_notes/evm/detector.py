"""Locate the catalog network that hosts the Notes contract."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.types import ChecksumAddress

from ..networks import Network
from ..utils import close_provider

logger = logging.getLogger(__name__)

Web3Factory = Callable[[str], AsyncWeb3]


def default_web3_factory(rpc_url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncHTTPProvider(rpc_url))


class NetworkDetector:
    """Probe each catalog entry, in order, for the contract's byte-code."""

    def __init__(
        self,
        networks: Sequence[Network],
        contract_address: ChecksumAddress,
        *,
        probe_timeout: float,
        web3_factory: Web3Factory = default_web3_factory,
    ) -> None:
        self._networks = tuple(networks)
        self._address = contract_address
        self._probe_timeout = probe_timeout
        self._web3_factory = web3_factory
        self._required: Network | None = None

    @property
    def required_network(self) -> Network | None:
        """Result of the most recent detection."""
        return self._required

    async def detect_contract_network(self) -> Network | None:
        self._required = None
        for network in self._networks:
            if await self.has_code(network):
                logger.info("Notes contract %s found on %s", self._address, network.name)
                self._required = network
                return network
        logger.warning("Notes contract %s not found on any configured network", self._address)
        return None

    async def has_code(self, network: Network) -> bool:
        """True when the contract address holds code on ``network``.

        An unreachable or slow endpoint counts as "no code".
        """
        web3 = self._web3_factory(network.rpc_url)
        try:
            code = await asyncio.wait_for(web3.eth.get_code(self._address), self._probe_timeout)
        except asyncio.TimeoutError:
            logger.warning("Probe of %s timed out after %.1fs", network.name, self._probe_timeout)
            return False
        except Exception as exc:
            logger.warning("Probe of %s failed: %s", network.name, exc)
            return False
        finally:
            await close_provider(web3)

        logger.debug("Probe of %s returned %d byte(s)", network.name, len(code or b""))
        return bool(code)

"""Contract validity probing."""

from __future__ import annotations

import asyncio
import logging

from ..exceptions import ConnectivityError, ContractUnreachable, WrongNetwork
from ..networks import Network
from ..types import ContractHandle
from .connections import SessionManager

logger = logging.getLogger(__name__)


class ContractValidityGate:
    """Track whether the current contract handle answers a read call.

    Validity is never sticky: every :meth:`evaluate` replaces the previous
    result, and a rebuilt handle starts out invalid until probed.
    """

    def __init__(self, connections: SessionManager, *, request_timeout: float) -> None:
        self._connections = connections
        self._request_timeout = request_timeout
        self._required: Network | None = None
        self._valid = False
        self._diagnostic: ConnectivityError | None = None
        self.probe_count = 0

    @property
    def valid(self) -> bool:
        handle = self._connections.handle
        return self._valid and handle is not None and handle.valid

    @property
    def diagnostic(self) -> ConnectivityError | None:
        return self._diagnostic

    @property
    def required_network(self) -> Network | None:
        return self._required

    @required_network.setter
    def required_network(self, network: Network | None) -> None:
        self._required = network

    def invalidate(self) -> None:
        self._valid = False
        self._diagnostic = None

    async def evaluate(self) -> bool:
        """Issue one side-effect free call and classify any failure."""

        handle = self._connections.handle
        self._valid = False
        if handle is None:
            self._diagnostic = await self._classify(None, "No provider available")
            return False

        self.probe_count += 1
        try:
            await asyncio.wait_for(self._probe(handle), self._request_timeout)
        except Exception as exc:
            logger.error("Contract validation failed: %s", exc)
            handle.valid = False
            self._diagnostic = await self._classify(handle, str(exc) or type(exc).__name__)
            return False

        handle.valid = True
        self._valid = True
        self._diagnostic = None
        logger.info("Notes contract %s validated (%s handle)", handle.address, handle.bound_to)
        return True

    def require_valid(self) -> None:
        if self.valid:
            return
        if self._diagnostic is not None:
            raise self._diagnostic
        raise ContractUnreachable("Contract has not been validated")

    async def _probe(self, handle: ContractHandle) -> None:
        account = self._connections.account
        function = handle.contract.functions.getUserNotes()
        if account is not None:
            await function.call({"from": account})
        else:
            await function.call()

    async def _classify(self, handle: ContractHandle | None, reason: str) -> ConnectivityError:
        active_chain_id = await self._connections.active_chain_id()
        required = self._required
        address = handle.address if handle is not None else None
        if required is not None and active_chain_id != required.chain_id:
            return WrongNetwork(
                required, active_chain_id, details={"error": reason, "address": address}
            )
        return ContractUnreachable(
            "Unable to connect to the Notes contract. Make sure you are on the correct network.",
            address=address,
            chain_id=active_chain_id,
            details={"error": reason},
        )

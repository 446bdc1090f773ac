"""Wallet provider interface consumed by the session layer."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from web3 import AsyncWeb3

from .types import WalletEvent

logger = logging.getLogger(__name__)


class WalletProvider(ABC):
    """Injected wallet (EIP-1193 style) as seen by the notes client.

    Notifications are delivered by message passing: every call to
    :meth:`subscribe` returns a fresh queue that receives each emitted
    :class:`WalletEvent` until it is handed back to :meth:`unsubscribe`.
    """

    kind: str = "wallet"

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WalletEvent]] = []

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    async def request_accounts(self) -> list[str]:
        pass

    @abstractmethod
    async def chain_id(self) -> int:
        pass

    @abstractmethod
    def reader(self) -> AsyncWeb3:
        pass

    @abstractmethod
    def signer(self, account: str) -> AsyncWeb3:
        pass

    @abstractmethod
    async def switch_chain(self, chain_id_hex: str) -> None:
        pass

    @abstractmethod
    async def add_chain(self, params: Mapping[str, Any]) -> None:
        pass

    async def aclose(self) -> None:
        """Release providers the wallet keeps for itself."""

    # ------------------------------------------------------------------
    # Notification channel
    # ------------------------------------------------------------------
    def subscribe(self) -> asyncio.Queue[WalletEvent]:
        queue: asyncio.Queue[WalletEvent] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[WalletEvent]) -> None:
        try:
            self._subscribers.remove(queue)
        except ValueError:
            logger.debug("Ignoring unsubscribe for unknown queue on %s wallet", self.kind)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, name: str, payload: Any = None) -> None:
        event = WalletEvent(name=name, payload=payload)
        logger.debug(
            "%s wallet emitting %s to %d subscriber(s)", self.kind, name, len(self._subscribers)
        )
        for queue in list(self._subscribers):
            queue.put_nowait(event)

"""Fee-gated transaction lifecycle for note actions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from hexbytes import HexBytes
from web3.exceptions import TimeExhausted
from web3.logs import DISCARD

from ..cache import NoteCache
from ..exceptions import (
    ActionError,
    FeeFetchFailed,
    NotConnected,
    OperationInProgress,
    OperationTimeout,
    QuoteExpired,
    TransactionFailed,
    ValidationError,
)
from ..types import (
    Action,
    ContractHandle,
    FeeQuote,
    Note,
    NoteId,
    OperationStatus,
    PendingOperation,
)
from ..utils import serialise_receipt
from .connections import SessionManager
from .gate import ContractValidityGate

logger = logging.getLogger(__name__)

Confirmer = Callable[[FeeQuote], Awaitable[bool]]

DEFAULT_POLL_INTERVAL = 2.0

T = TypeVar("T")


class FeeGatedExecutor:
    """Run quote -> confirm -> submit -> settle -> reconcile for each action.

    Only one operation may be in flight per note id. Creates have no id yet
    and are keyed individually, so they never block each other.
    """

    def __init__(
        self,
        connections: SessionManager,
        gate: ContractValidityGate,
        cache: NoteCache,
        *,
        request_timeout: float,
        receipt_timeout: float,
        confirmations: int = 1,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        confirmer: Confirmer | None = None,
    ) -> None:
        self._connections = connections
        self._gate = gate
        self._cache = cache
        self._request_timeout = request_timeout
        self._receipt_timeout = receipt_timeout
        self._confirmations = confirmations
        self._poll_interval = poll_interval
        self._confirmer = confirmer
        self._pending: dict[NoteId | str, PendingOperation] = {}
        self._editing: set[NoteId] = set()
        self._create_seq = 0
        self._quoted = asyncio.Event()
        self.last_transaction: dict[str, Any] | None = None

    # ------------------------------------------------------------------
    # State exposed to the presentation layer
    # ------------------------------------------------------------------
    @property
    def pending_operations(self) -> list[PendingOperation]:
        return list(self._pending.values())

    @property
    def pending_quotes(self) -> list[FeeQuote]:
        return [
            op.quote
            for op in self._pending.values()
            if op.status is OperationStatus.QUOTED and op.quote is not None
        ]

    @property
    def busy(self) -> bool:
        return bool(self._pending)

    def is_pending(self, key: NoteId | str) -> bool:
        return key in self._pending

    def is_editing(self, note_id: NoteId) -> bool:
        return note_id in self._editing

    def reset(self) -> None:
        """Forget edit unlocks and cancel every quote awaiting a decision.

        Called on every session teardown; a quote belongs to the session and
        chain it was fetched on.
        """
        self._editing.clear()
        for op in self._pending.values():
            decision = op.decision
            if op.status is OperationStatus.QUOTED and decision is not None and not decision.done():
                logger.info("Cancelling open %s quote for note %s", op.action.value, op.note_id)
                decision.set_result(False)

    async def wait_for_quote(self) -> FeeQuote:
        """Suspend until some operation is waiting on a confirm/cancel decision."""

        while not self.pending_quotes:
            self._quoted.clear()
            await self._quoted.wait()
        return self.pending_quotes[0]

    def confirm(self, key: NoteId | str) -> None:
        self._decide(key, True)

    def cancel(self, key: NoteId | str) -> None:
        self._decide(key, False)

    def key_for(self, quote: FeeQuote) -> NoteId | str:
        for key, op in self._pending.items():
            if op.quote is quote:
                return key
        raise ValidationError("Quote is no longer pending", field="quote", value=quote)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    async def create(self, title: str) -> NoteId | None:
        """Create a note; returns its id, or None when cancelled."""

        _require_title(title)

        async def reconcile(receipt: Any) -> NoteId | None:
            note_id = self._note_id_from_receipt(receipt)
            if note_id is None:
                logger.warning("createNote settled without a NoteCreated event")
                return None
            await self._cache.insert(Note(id=note_id, title=title, content=""))
            return note_id

        self._create_seq += 1
        key = f"create-{self._create_seq}"
        return await self._run(Action.CREATE, key, None, [title], reconcile)

    async def save(self, note_id: NoteId, content: str, *, preapproved: bool = False) -> bool:
        """Save note content; ``preapproved`` skips the confirm step."""

        async def reconcile(_receipt: Any) -> bool:
            await self._cache.patch(note_id, content=content)
            return True

        args = [note_id, content]
        result = await self._run(
            Action.SAVE, note_id, note_id, args, reconcile, preapproved=preapproved
        )
        return bool(result)

    async def start_edit(self, note_id: NoteId) -> bool:
        async def reconcile(_receipt: Any) -> bool:
            self._editing.add(note_id)
            return True

        return bool(await self._run(Action.START_EDIT, note_id, note_id, [note_id], reconcile))

    async def save_edit(self, note_id: NoteId, title: str, content: str) -> bool:
        _require_title(title)

        async def reconcile(_receipt: Any) -> bool:
            await self._cache.patch(note_id, title=title, content=content)
            self._editing.discard(note_id)
            return True

        args = [note_id, title, content]
        return bool(await self._run(Action.SAVE_EDIT, note_id, note_id, args, reconcile))

    async def delete(self, note_id: NoteId) -> bool:
        async def reconcile(_receipt: Any) -> bool:
            await self._cache.remove(note_id)
            self._editing.discard(note_id)
            return True

        return bool(await self._run(Action.DELETE, note_id, note_id, [note_id], reconcile))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def _run(
        self,
        action: Action,
        key: NoteId | str,
        note_id: NoteId | None,
        args: Sequence[Any],
        reconcile: Callable[[Any], Awaitable[T]],
        *,
        preapproved: bool = False,
    ) -> T | None:
        if key in self._pending:
            raise OperationInProgress(
                f"Another operation on note {key} is still in progress",
                action=action,
                note_id=note_id,
            )
        self._gate.require_valid()
        handle = self._connections.handle
        account = self._connections.account
        if not self._connections.is_connected() or handle is None:
            raise NotConnected()

        op = PendingOperation(key=key, action=action, note_id=note_id)
        self._pending[key] = op
        try:
            value = 0
            fee_function = action.fee_function
            if fee_function is not None:
                quote = await self._quote(action, fee_function, note_id, handle)
                op.quote = quote
                value = quote.amount
                if not preapproved and not await self._await_decision(op, quote):
                    op.transition(OperationStatus.CANCELLED)
                    logger.info("Cancelled %s for note %s", action.value, note_id)
                    return None
            self._require_current(op, handle, account)
            op.transition(OperationStatus.CONFIRMED)

            tx_hash = await self._submit(op, handle, args, value)
            op.tx_hash = tx_hash.to_0x_hex()
            op.transition(OperationStatus.SUBMITTED)

            receipt = await self._settle(op, tx_hash)
            op.transition(OperationStatus.SETTLED)
            # The key stays reserved until the cache reflects the settled state.
            return await reconcile(receipt)
        except ActionError:
            if op.status in (OperationStatus.CONFIRMED, OperationStatus.SUBMITTED):
                op.transition(OperationStatus.FAILED)
            raise
        finally:
            self._pending.pop(key, None)

    async def _quote(
        self,
        action: Action,
        fee_function: str,
        note_id: NoteId | None,
        handle: ContractHandle,
    ) -> FeeQuote:
        try:
            amount = await asyncio.wait_for(
                getattr(handle.contract.functions, fee_function)().call(), self._request_timeout
            )
        except asyncio.TimeoutError as exc:
            raise FeeFetchFailed(
                f"Timed out fetching {action.value} fee",
                action=action,
                note_id=note_id,
                details={"timeout": self._request_timeout},
            ) from exc
        except Exception as exc:
            logger.error("Error getting %s: %s", fee_function, exc)
            raise FeeFetchFailed(
                f"Failed to get {action.value} fee. "
                "The contract may not be accessible on this network.",
                action=action,
                note_id=note_id,
                details={"error": str(exc)},
            ) from exc

        quote = FeeQuote(action=action, amount=int(amount), note_id=note_id)
        logger.info("Quoted %s fee %s ETH", action.value, quote.amount_ether)
        return quote

    async def _await_decision(self, op: PendingOperation, quote: FeeQuote) -> bool:
        if self._confirmer is not None:
            return bool(await self._confirmer(quote))

        op.decision = asyncio.get_running_loop().create_future()
        self._quoted.set()
        return await op.decision

    def _decide(self, key: NoteId | str, accepted: bool) -> None:
        op = self._pending.get(key)
        if op is None or op.status is not OperationStatus.QUOTED:
            raise ValidationError("No quote awaiting a decision", field="key", value=key)
        if op.decision is not None and not op.decision.done():
            op.decision.set_result(accepted)

    def _require_current(
        self, op: PendingOperation, handle: ContractHandle, account: str | None
    ) -> None:
        """Refuse to submit when the session was rebuilt after quoting."""

        self._gate.require_valid()
        connections = self._connections
        if (
            connections.handle is not handle
            or connections.account != account
            or not connections.is_connected()
        ):
            raise QuoteExpired(
                f"Session changed before {op.action.value} was submitted; request a new quote",
                action=op.action,
                note_id=op.note_id,
            )

    async def _submit(
        self,
        op: PendingOperation,
        handle: ContractHandle,
        args: Sequence[Any],
        value: int,
    ) -> HexBytes:
        account = self._connections.account
        if account is None:
            raise NotConnected()

        function_name = op.action.contract_function
        contract_function = getattr(handle.contract.functions, function_name)(*args)
        logger.info("Dispatching %s via %s", op.action.value, function_name)

        try:
            tx_hash = await contract_function.transact({"from": account, "value": value})
        except Exception as exc:
            raise TransactionFailed(
                f"Failed to submit transaction for {op.action.value}: {exc}",
                action=op.action,
                note_id=op.note_id,
                details={"args": list(args), "error": str(exc)},
            ) from exc

        tx_hash = HexBytes(tx_hash)
        logger.info("Transaction sent for action=%s hash=%s", op.action.value, tx_hash.to_0x_hex())
        return tx_hash

    async def _settle(self, op: PendingOperation, tx_hash: HexBytes) -> Any:
        web3 = self._connections.signer
        try:
            receipt = await asyncio.wait_for(
                self._wait_for_finality(web3, tx_hash), self._receipt_timeout
            )
        except (asyncio.TimeoutError, TimeExhausted) as exc:
            raise OperationTimeout(
                f"Timed out waiting for {op.action.value} transaction to settle",
                stage="settle",
                action=op.action,
                note_id=op.note_id,
                tx_hash=op.tx_hash,
                details={"timeout": self._receipt_timeout},
            ) from exc
        except Exception as exc:
            raise TransactionFailed(
                f"Transaction for {op.action.value} was dropped: {exc}",
                action=op.action,
                note_id=op.note_id,
                tx_hash=op.tx_hash,
                details={"error": str(exc)},
            ) from exc

        if receipt.get("status", 0) != 1:
            raise TransactionFailed(
                f"Transaction for {op.action.value} reverted",
                action=op.action,
                note_id=op.note_id,
                tx_hash=op.tx_hash,
                details={"block_number": receipt.get("blockNumber")},
            )

        logger.info(
            "Transaction confirmed for action=%s hash=%s block=%s",
            op.action.value,
            op.tx_hash,
            receipt.get("blockNumber"),
        )
        self.last_transaction = {
            "tx_hash": op.tx_hash,
            "action": op.action.value,
            "note_id": op.note_id,
            "receipt": serialise_receipt(receipt),
            "block_number": receipt.get("blockNumber"),
        }
        return receipt

    async def _wait_for_finality(self, web3: Any, tx_hash: HexBytes) -> Any:
        receipt = await web3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._receipt_timeout
        )
        if self._confirmations > 1 and receipt.get("status", 0) == 1:
            target = receipt["blockNumber"] + self._confirmations - 1
            while await web3.eth.block_number < target:
                await asyncio.sleep(self._poll_interval)
        return receipt

    def _note_id_from_receipt(self, receipt: Any) -> NoteId | None:
        handle = self._connections.handle
        if handle is None:
            return None
        events = handle.contract.events.NoteCreated().process_receipt(receipt, errors=DISCARD)
        for event in events:
            return int(event["args"]["noteId"])
        return None


def _require_title(title: str) -> None:
    if not title or not title.strip():
        raise ValidationError("Please enter a title", field="title", value=title)

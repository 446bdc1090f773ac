"""In-memory stand-ins for web3, the Notes contract and an injected wallet."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from hexbytes import HexBytes
from web3 import Web3

from eth_notes.base import WalletProvider
from eth_notes.evm.config import NotesClientConfig
from eth_notes.exceptions import ConnectionRejected, UnrecognizedChainError
from eth_notes.networks import NativeCurrency, Network
from eth_notes.types import CHAIN_CHANGED

CONTRACT_ADDRESS = Web3.to_checksum_address("0x" + "ab" * 20)
ALICE = Web3.to_checksum_address("0x" + "a1" * 20)
BOB = Web3.to_checksum_address("0x" + "b0" * 20)

ALPHA = Network(
    name="Alpha Testnet",
    chain_id=101,
    rpc_urls=("https://alpha.example", "https://alpha-backup.example"),
    explorer_urls=("https://alpha.explorer",),
    native_currency=NativeCurrency("Alpha Ether", "AETH"),
)
BETA = Network(name="Beta Testnet", chain_id=202, rpc_urls=("https://beta.example",))
GAMMA = Network(name="Gamma Testnet", chain_id=303, rpc_urls=("https://gamma.example",))
NETWORKS = (ALPHA, BETA, GAMMA)

DEFAULT_FEES = {
    "createNoteFee": 1_000,
    "saveNoteFee": 2_000,
    "editNoteFee": 3_000,
    "saveEditFee": 4_000,
}


class FakeLedger:
    """Notes contract state plus knobs for injecting failures."""

    def __init__(self, fees: Mapping[str, int] | None = None) -> None:
        self.fees = dict(fees or DEFAULT_FEES)
        self.notes: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.transactions: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.receipts: dict[bytes, dict[str, Any]] = {}
        self.next_id = 1
        self.block = 100
        self.fail_reads: set[str] = set()
        self.fail_notes: set[int] = set()
        self.reject: set[str] = set()
        self.revert: set[str] = set()
        self.emit_events = True
        self.hold: asyncio.Event | None = None

    def seed(self, owner: str, title: str, content: str = "") -> int:
        note_id = self.next_id
        self.next_id += 1
        self.notes[note_id] = {"owner": owner, "title": title, "content": content}
        return note_id

    def call_count(self, name: str | None = None) -> int:
        return len([call for call in self.calls if name is None or call[0] == name])

    async def read(self, name: str, args: tuple[Any, ...], tx: Mapping[str, Any] | None) -> Any:
        self.calls.append((name, args))
        if name in self.fail_reads:
            raise RuntimeError(f"{name} reverted")
        if name == "getUserNotes":
            owner = (tx or {}).get("from")
            return [note_id for note_id, note in self.notes.items() if note["owner"] == owner]
        if name == "getNote":
            note_id = args[0]
            if note_id in self.fail_notes or note_id not in self.notes:
                raise RuntimeError(f"note {note_id} unavailable")
            note = self.notes[note_id]
            return [note["title"], note["content"]]
        if name in self.fees:
            return self.fees[name]
        raise AttributeError(name)

    async def write(self, name: str, args: tuple[Any, ...], tx: Mapping[str, Any]) -> HexBytes:
        self.transactions.append((name, args, dict(tx)))
        if name in self.reject:
            raise RuntimeError("User denied transaction signature")

        self.block += 1
        tx_hash = HexBytes(len(self.transactions).to_bytes(32, "big"))
        status = 0 if name in self.revert else 1
        logs: list[dict[str, Any]] = []
        if status == 1:
            logs = self._apply(name, args, tx)
        self.receipts[bytes(tx_hash)] = {
            "status": status,
            "blockNumber": self.block,
            "transactionHash": tx_hash,
            "logs": logs,
        }
        return tx_hash

    def _apply(
        self, name: str, args: tuple[Any, ...], tx: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        if name == "createNote":
            note_id = self.seed(tx["from"], args[0])
            return [{"noteId": note_id}] if self.emit_events else []
        if name == "saveNote":
            self.notes[args[0]]["content"] = args[1]
        elif name == "saveEditedNote":
            self.notes[args[0]].update(title=args[1], content=args[2])
        elif name == "deleteNote":
            self.notes.pop(args[0], None)
        return []

    async def receipt(self, tx_hash: bytes) -> dict[str, Any]:
        if self.hold is not None:
            await self.hold.wait()
        return self.receipts[bytes(tx_hash)]


class FakeCall:
    def __init__(self, ledger: FakeLedger | None, name: str, args: tuple[Any, ...]) -> None:
        self._ledger = ledger
        self._name = name
        self._args = args

    async def call(self, tx: Mapping[str, Any] | None = None) -> Any:
        if self._ledger is None:
            raise RuntimeError("execution reverted: no contract code")
        return await self._ledger.read(self._name, self._args, tx)

    async def transact(self, tx: Mapping[str, Any]) -> HexBytes:
        if self._ledger is None:
            raise RuntimeError("execution reverted: no contract code")
        return await self._ledger.write(self._name, self._args, tx)


class FakeFunctions:
    def __init__(self, ledger: FakeLedger | None) -> None:
        self._ledger = ledger

    def __getattr__(self, name: str) -> Any:
        return lambda *args: FakeCall(self._ledger, name, args)


class FakeNoteCreated:
    def process_receipt(self, receipt: Mapping[str, Any], errors: Any = None) -> list[dict]:
        return [{"args": {"noteId": log["noteId"]}} for log in receipt["logs"] if "noteId" in log]


class FakeContract:
    def __init__(self, ledger: FakeLedger | None, address: str) -> None:
        self.address = address
        self.functions = FakeFunctions(ledger)
        self.events = type("Events", (), {"NoteCreated": staticmethod(FakeNoteCreated)})()


@dataclass
class FakeChain:
    network: Network
    ledger: FakeLedger | None = None
    reachable: bool = True
    probe_delay: float = 0.0
    probes: int = 0

    @property
    def code(self) -> bytes:
        return b"\x60\x80\x60\x40" if self.ledger is not None else b""


class FakeEth:
    def __init__(self, chain: FakeChain) -> None:
        self._chain = chain
        self.default_account: str | None = None

    @property
    def chain_id(self) -> Any:
        async def _chain_id() -> int:
            return self._chain.network.chain_id

        return _chain_id()

    @property
    def block_number(self) -> Any:
        async def _block_number() -> int:
            return self._chain.ledger.block if self._chain.ledger is not None else 0

        return _block_number()

    async def get_code(self, address: str) -> bytes:
        self._chain.probes += 1
        if self._chain.probe_delay:
            await asyncio.sleep(self._chain.probe_delay)
        if not self._chain.reachable:
            raise ConnectionError(f"{self._chain.network.rpc_url} unreachable")
        return self._chain.code

    def contract(self, address: str, abi: Sequence[dict]) -> FakeContract:
        return FakeContract(self._chain.ledger, address)

    async def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: float) -> dict[str, Any]:
        assert self._chain.ledger is not None
        return await self._chain.ledger.receipt(tx_hash)


class FakeProvider:
    def __init__(self) -> None:
        self.disconnects = 0

    async def disconnect(self) -> None:
        self.disconnects += 1


class FakeWeb3:
    def __init__(self, chain: FakeChain) -> None:
        self.eth = FakeEth(chain)
        self.provider = FakeProvider()


class FakeWallet(WalletProvider):
    """Injected wallet bound to a set of fake chains."""

    def __init__(
        self,
        chains: Mapping[int, FakeChain],
        *,
        chain_id: int,
        accounts: Sequence[str] = (ALICE,),
        kind: str = "metamask",
        available: bool = True,
        reject: bool = False,
        known_chain_ids: Sequence[int] | None = None,
    ) -> None:
        super().__init__()
        self.kind = kind
        self.chains = dict(chains)
        self.current_chain_id = chain_id
        self.accounts = list(accounts)
        self.available = available
        self.reject = reject
        self.known_chain_ids = set(known_chain_ids if known_chain_ids is not None else chains)
        self.added: list[dict[str, Any]] = []
        self.account_requests = 0
        self.gate: asyncio.Event | None = None
        self.closed = 0

    def is_available(self) -> bool:
        return self.available

    async def request_accounts(self) -> list[str]:
        self.account_requests += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.reject:
            raise ConnectionRejected(self.kind, "User rejected the request")
        return list(self.accounts)

    async def chain_id(self) -> int:
        return self.current_chain_id

    def reader(self) -> FakeWeb3:  # type: ignore[override]
        return FakeWeb3(self.chains[self.current_chain_id])

    def signer(self, account: str) -> FakeWeb3:  # type: ignore[override]
        web3 = FakeWeb3(self.chains[self.current_chain_id])
        web3.eth.default_account = account
        return web3

    async def switch_chain(self, chain_id_hex: str) -> None:
        chain_id = int(chain_id_hex, 16)
        if chain_id not in self.known_chain_ids:
            raise UnrecognizedChainError(chain_id)
        if chain_id == self.current_chain_id:
            return
        self.current_chain_id = chain_id
        self.emit(CHAIN_CHANGED, chain_id_hex)

    async def add_chain(self, params: Mapping[str, Any]) -> None:
        self.added.append(dict(params))
        self.known_chain_ids.add(int(params["chainId"], 16))

    async def aclose(self) -> None:
        self.closed += 1


@dataclass
class World:
    """Chains keyed by id, with a web3 factory that resolves RPC urls."""

    chains: dict[int, FakeChain] = field(default_factory=dict)
    created: list[FakeWeb3] = field(default_factory=list)

    @classmethod
    def with_contract_on(cls, *chain_ids: int, ledger: FakeLedger | None = None) -> World:
        ledger = ledger or FakeLedger()
        chains = {
            network.chain_id: FakeChain(network, ledger if network.chain_id in chain_ids else None)
            for network in NETWORKS
        }
        return cls(chains)

    def ledger(self, chain_id: int) -> FakeLedger:
        ledger = self.chains[chain_id].ledger
        assert ledger is not None
        return ledger

    def web3_factory(self, rpc_url: str) -> FakeWeb3:
        for chain in self.chains.values():
            if rpc_url in chain.network.rpc_urls:
                web3 = FakeWeb3(chain)
                self.created.append(web3)
                return web3
        raise ConnectionError(f"no route to {rpc_url}")


def make_config(**overrides: Any) -> NotesClientConfig:
    params: dict[str, Any] = {
        "networks": NETWORKS,
        "request_timeout": 1.0,
        "probe_timeout": 0.5,
        "receipt_timeout": 1.0,
        "default_wallet": "metamask",
    }
    params.update(overrides)
    return NotesClientConfig.build(CONTRACT_ADDRESS, **params)


async def approve(_quote: Any) -> bool:
    return True


async def decline(_quote: Any) -> bool:
    return False


async def drain(rounds: int = 20) -> None:
    """Let queued callbacks and watcher tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def until(predicate: Any, rounds: int = 200) -> None:
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")

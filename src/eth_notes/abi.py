"""ABI fragment for the Notes contract."""

from __future__ import annotations


def _fee_view(name: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    }


NotesContract_abi: list[dict] = [
    {
        "type": "function",
        "name": "getUserNotes",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
    {
        "type": "function",
        "name": "getNote",
        "stateMutability": "view",
        "inputs": [{"name": "noteId", "type": "uint256"}],
        "outputs": [
            {"name": "title", "type": "string"},
            {"name": "content", "type": "string"},
        ],
    },
    _fee_view("createNoteFee"),
    _fee_view("saveNoteFee"),
    _fee_view("editNoteFee"),
    _fee_view("saveEditFee"),
    {
        "type": "function",
        "name": "createNote",
        "stateMutability": "payable",
        "inputs": [{"name": "title", "type": "string"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "saveNote",
        "stateMutability": "payable",
        "inputs": [
            {"name": "noteId", "type": "uint256"},
            {"name": "content", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "startEditNote",
        "stateMutability": "payable",
        "inputs": [{"name": "noteId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "saveEditedNote",
        "stateMutability": "payable",
        "inputs": [
            {"name": "noteId", "type": "uint256"},
            {"name": "title", "type": "string"},
            {"name": "content", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "deleteNote",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "noteId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "NoteCreated",
        "anonymous": False,
        "inputs": [
            {"name": "noteId", "type": "uint256", "indexed": True},
            {"name": "owner", "type": "address", "indexed": True},
            {"name": "title", "type": "string", "indexed": False},
        ],
    },
]

"""Pick the single error to display out of three overlapping sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeVar

E = TypeVar("E")


def resolve_error(
    local: E | None,
    domain: E | None,
    connectivity: E | None,
    *,
    contract_valid: bool,
) -> E | None:
    """Return local, else domain, else connectivity.

    The connectivity error is suppressed while the contract is invalid; that
    state has its own banner.
    """
    if local is not None:
        return local
    if domain is not None:
        return domain
    if contract_valid:
        return connectivity
    return None


@dataclass
class ErrorBoard:
    """Holds the three error sources; ``clear_error`` leaves connectivity alone."""

    local: Exception | str | None = None
    domain: Exception | str | None = None
    connectivity: Exception | str | None = None

    def resolve(self, *, contract_valid: bool) -> Exception | str | None:
        return resolve_error(
            self.local, self.domain, self.connectivity, contract_valid=contract_valid
        )

    def clear_error(self) -> None:
        self.local = None
        self.domain = None

"""Precondition checks raised at the regtree API boundary."""

from __future__ import annotations


class ContractError(ValueError):
    """Raised when caller-supplied data or an internal invariant is violated."""


def require(condition: bool, *parts: object) -> None:
    """Raise :class:`ContractError` built from ``parts`` unless ``condition`` holds."""

    if not condition:
        raise ContractError(" ".join(str(part) for part in parts))

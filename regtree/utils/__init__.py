"""Shared helpers for regtree."""

from .checks import ContractError, require

__all__ = ["ContractError", "require"]

"""Local outline store the sync engine writes into."""

from .store import (
    Block,
    BlockNotFoundError,
    BlockSpec,
    JsonOutlineStore,
    OutlineStore,
    OutlineStoreError,
    Page,
)

__all__ = [
    "Block",
    "BlockNotFoundError",
    "BlockSpec",
    "JsonOutlineStore",
    "OutlineStore",
    "OutlineStoreError",
    "Page",
]

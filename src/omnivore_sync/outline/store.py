"""Local outline store.

The sync engine only needs a small capability set from the outline it
writes into:

* get or create a page (the root container) by name,
* read the page's top-level blocks,
* update a block's content in place,
* insert one block as a child or sibling of another,
* insert a batch of nested blocks at once,
* find blocks whose content matches a phrase.

``OutlineStore`` is the protocol for that capability set.
``JsonOutlineStore`` implements it as an in-memory tree of ``Block``
objects that is persisted to a JSON file after every mutation.

Key design choices:

* **Atomic writes** -- ``flush()`` writes to a temp file then calls
  ``os.replace()`` so readers never see a half-written outline.
* **Blocks are never deleted** -- there is no delete operation.
* **Deterministic queries** -- ``query_blocks`` walks pages in creation
  order and blocks in pre-order, so "first match" is stable across runs.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from ..core.async_utils import run_sync

logger = logging.getLogger(__name__)


class OutlineStoreError(Exception):
    """Raised when the outline store cannot complete an operation."""


class BlockNotFoundError(OutlineStoreError):
    """Raised when a block handle does not resolve to a block."""


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


class BlockSpec(BaseModel):
    """An unsaved block subtree, used for batch insertion.

    Attributes:
        content: Block text (may contain ``key:: value`` property lines).
        properties: Structured properties stored alongside the text.
        children: Nested child blocks, in display order.
    """

    content: str
    properties: dict[str, str] = Field(default_factory=dict)
    children: list[BlockSpec] = Field(default_factory=list)

    model_config = {"frozen": True}


BlockSpec.model_rebuild()


@dataclass
class Block:
    """A stored outline node.  Parents exclusively own their children."""

    uuid: str
    content: str
    properties: dict[str, str] = field(default_factory=dict)
    children: list[Block] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "content": self.content,
            "properties": dict(self.properties),
            "children": [c.to_dict() for c in self.children],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Block:
        return cls(
            uuid=data["uuid"],
            content=data.get("content", ""),
            properties=dict(data.get("properties") or {}),
            children=[cls.from_dict(c) for c in data.get("children", [])],
        )

    def walk(self) -> Iterator[Block]:
        """Yield this block and all descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class Page:
    """A named root container holding top-level blocks."""

    uuid: str
    name: str
    blocks: list[Block] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class OutlineStore(Protocol):
    """Capability set the sync engine requires from an outline store."""

    name: str

    async def get_page(self, name: str) -> Page | None: ...

    async def create_page(self, name: str) -> Page: ...

    async def page_blocks(self, name: str) -> list[Block]: ...

    async def append_block(self, page_name: str, content: str) -> Block: ...

    async def update_block(self, block_uuid: str, content: str) -> None: ...

    async def insert_block(
        self,
        target_uuid: str,
        content: str,
        *,
        sibling: bool = False,
        before: bool = False,
        properties: dict[str, str] | None = None,
    ) -> Block: ...

    async def insert_batch(
        self,
        target_uuid: str,
        blocks: list[BlockSpec],
        *,
        sibling: bool = False,
        before: bool = False,
    ) -> list[Block]: ...

    async def query_blocks(
        self,
        text: str,
        *,
        within: str | None = None,
        exact: bool = False,
    ) -> list[Block]: ...


# ---------------------------------------------------------------------------
# JSON-file implementation
# ---------------------------------------------------------------------------


class JsonOutlineStore:
    """Outline store backed by a JSON file.

    Args:
        path: File the outline is persisted to.  ``None`` keeps the
            outline in memory only.
        name: Graph name.  Defaults to the name stored in the file, then
            the file stem, or ``"default"`` in memory.
    """

    def __init__(self, path: Path | None = None, name: str | None = None):
        self.path = path
        self._pages: dict[str, Page] = {}
        stored_name = None
        if path is not None and path.exists():
            stored_name = self._load(path)
        self.name = name or stored_name or (path.stem if path else "default")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self, path: Path) -> str | None:
        """Read pages from *path* and return the graph name stored there."""
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        for raw in data.get("pages", []):
            page = Page(
                uuid=raw["uuid"],
                name=raw["name"],
                blocks=[Block.from_dict(b) for b in raw.get("blocks", [])],
            )
            self._pages[page.name.lower()] = page
        logger.debug("Loaded outline %s with %d pages", path, len(self._pages))
        return data.get("name") or None

    def to_dict(self) -> dict:
        return {
            "version": 1,
            "name": self.name,
            "pages": [
                {
                    "uuid": page.uuid,
                    "name": page.name,
                    "blocks": [b.to_dict() for b in page.blocks],
                }
                for page in self._pages.values()
            ],
        }

    def flush(self) -> None:
        """Persist the outline to ``path`` atomically (no-op in memory)."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self.to_dict(), fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    async def _commit(self) -> None:
        await run_sync(self.flush)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def get_page(self, name: str) -> Page | None:
        return self._pages.get(name.lower())

    async def create_page(self, name: str) -> Page:
        existing = self._pages.get(name.lower())
        if existing is not None:
            return existing
        page = Page(uuid=_new_uuid(), name=name)
        self._pages[name.lower()] = page
        await self._commit()
        logger.info("Created page %s", name)
        return page

    async def page_blocks(self, name: str) -> list[Block]:
        page = self._pages.get(name.lower())
        if page is None:
            return []
        return list(page.blocks)

    async def append_block(self, page_name: str, content: str) -> Block:
        page = self._pages.get(page_name.lower())
        if page is None:
            raise OutlineStoreError(f"Page not found: {page_name}")
        block = Block(uuid=_new_uuid(), content=content)
        page.blocks.append(block)
        await self._commit()
        return block

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def get_block(self, block_uuid: str) -> Block:
        """Return the block with *block_uuid*.

        Raises:
            BlockNotFoundError: If no such block exists.
        """
        for block in self._iter_blocks():
            if block.uuid == block_uuid:
                return block
        raise BlockNotFoundError(f"Block not found: {block_uuid}")

    async def update_block(self, block_uuid: str, content: str) -> None:
        block = self.get_block(block_uuid)
        if block.content == content:
            return
        block.content = content
        await self._commit()

    async def insert_block(
        self,
        target_uuid: str,
        content: str,
        *,
        sibling: bool = False,
        before: bool = False,
        properties: dict[str, str] | None = None,
    ) -> Block:
        block = Block(
            uuid=_new_uuid(),
            content=content,
            properties=dict(properties or {}),
        )
        self._place(target_uuid, [block], sibling=sibling, before=before)
        await self._commit()
        return block

    async def insert_batch(
        self,
        target_uuid: str,
        blocks: list[BlockSpec],
        *,
        sibling: bool = False,
        before: bool = False,
    ) -> list[Block]:
        if not blocks:
            return []
        created = [_materialize(spec) for spec in blocks]
        self._place(target_uuid, created, sibling=sibling, before=before)
        await self._commit()
        return created

    async def query_blocks(
        self,
        text: str,
        *,
        within: str | None = None,
        exact: bool = False,
    ) -> list[Block]:
        if within is not None:
            root = self.get_block(within)
            candidates: Iterator[Block] = (
                b for child in root.children for b in child.walk()
            )
        else:
            candidates = self._iter_blocks()

        if exact:
            return [b for b in candidates if b.content == text]
        return [b for b in candidates if text in b.content]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _iter_blocks(self) -> Iterator[Block]:
        for page in self._pages.values():
            for block in page.blocks:
                yield from block.walk()

    def _find_container(
        self, block_uuid: str
    ) -> tuple[list[Block], int]:
        """Return ``(siblings, index)`` locating *block_uuid*."""
        for page in self._pages.values():
            found = _locate(page.blocks, block_uuid)
            if found is not None:
                return found
        raise BlockNotFoundError(f"Block not found: {block_uuid}")

    def _place(
        self,
        target_uuid: str,
        blocks: list[Block],
        *,
        sibling: bool,
        before: bool,
    ) -> None:
        if sibling:
            siblings, index = self._find_container(target_uuid)
            position = index if before else index + 1
            siblings[position:position] = blocks
            return
        target = self.get_block(target_uuid)
        if before:
            target.children[0:0] = blocks
        else:
            target.children.extend(blocks)


def _locate(
    blocks: list[Block], block_uuid: str
) -> tuple[list[Block], int] | None:
    for index, block in enumerate(blocks):
        if block.uuid == block_uuid:
            return blocks, index
        found = _locate(block.children, block_uuid)
        if found is not None:
            return found
    return None


def _materialize(spec: BlockSpec) -> Block:
    return Block(
        uuid=_new_uuid(),
        content=spec.content,
        properties=dict(spec.properties),
        children=[_materialize(c) for c in spec.children],
    )


def _new_uuid() -> str:
    return str(uuid.uuid4())

"""Lookup of document blocks by id."""

from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, Optional

from models import Block


class BlockIndex(Mapping):
    """Read-only mapping from block id to Block.

    Built once per render; duplicate ids resolve to the last occurrence.
    """

    def __init__(self, blocks: Optional[Dict[str, Block]] = None):
        self._blocks: Dict[str, Block] = dict(blocks or {})

    @classmethod
    def build(cls, blocks: Iterable[Block]) -> 'BlockIndex':
        mapping: Dict[str, Block] = {}
        for block in blocks:
            mapping[block.block_id] = block
        return cls(mapping)

    def __getitem__(self, block_id: str) -> Block:
        return self._blocks[block_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._blocks)

    def __len__(self) -> int:
        return len(self._blocks)

    def __repr__(self) -> str:
        return f"BlockIndex({len(self._blocks)} blocks)"

"""Blob store collaborator for receipt files.

The core only needs an opaque reference back for each stored file. The
local-disk store is what the service ships with; object storage can be
plugged in by implementing the same protocol.

References are allocated before anything is written so the receipt row
can be flushed first; the bytes are stored only once the row is accepted.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Protocol, runtime_checkable
from uuid import UUID, uuid4

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@runtime_checkable
class BlobStore(Protocol):
    """Protocol for receipt storage backends."""

    def reference_for(self, *, production_id: UUID, expense_id: UUID, filename: str) -> str:
        """Allocate a fresh opaque reference for a file."""
        ...

    async def put(self, reference: str, content: bytes, content_type: str | None = None) -> None:
        """Store the bytes under a reference from reference_for()."""
        ...


class LocalBlobStore:
    """Stores receipts below a root directory on local disk."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def reference_for(self, *, production_id: UUID, expense_id: UUID, filename: str) -> str:
        safe_name = _UNSAFE.sub("_", Path(filename).name) or "receipt"
        relative = Path(str(production_id)) / str(expense_id) / f"{uuid4().hex}-{safe_name}"
        return relative.as_posix()

    async def put(self, reference: str, content: bytes, content_type: str | None = None) -> None:
        await asyncio.to_thread(self._write, self.resolve(reference), content)

    def resolve(self, reference: str) -> Path:
        """Map a reference back to a file path."""
        return self.root / reference

    @staticmethod
    def _write(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

"""
Signature receipt storage.

The engine never reads stored files; it only writes the JSON receipt of an
e-signature and keeps the opaque key.  Receipt storage is best-effort:
``store_receipt_safely`` turns any failure into a ``NonFatalError`` so the
signature itself is never blocked by it.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from staffready.core.config import settings
from staffready.core.results import NonFatalError, SideEffectResult

logger = logging.getLogger(__name__)


class ReceiptStore(Protocol):
    async def store_receipt(self, key: str, data: bytes) -> None:
        """Persist *data* under *key*; raise on failure."""
        ...


class LocalReceiptStore:
    """Stores receipts as files below a base directory."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = Path(base_dir or settings.receipt_storage_dir)

    def _path_for(self, key: str) -> Path:
        path = (self.base_dir / key).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise ValueError(f"Receipt key escapes storage root: {key}")
        return path

    def _write(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as buffer:
            buffer.write(data)

    async def store_receipt(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write, key, data)


async def store_receipt_safely(
    store: ReceiptStore,
    key: str,
    data: bytes,
) -> SideEffectResult:
    """Store a receipt, reporting failure instead of raising it."""
    try:
        await store.store_receipt(key, data)
    except Exception as exc:
        logger.warning("Signature receipt upload failed for %s: %s", key, exc)
        return SideEffectResult.failure(
            NonFatalError.from_exception("store_receipt", key, exc)
        )
    return SideEffectResult.success(key)

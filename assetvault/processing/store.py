"""Boundary to the external asset record store.

The pipeline never owns asset rows. It calls out through :class:`AssetStore`
to record state transitions, extracted metadata and variants.
:class:`InMemoryAssetStore` backs tests and single-process use.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from assetvault.processing.jobs import AssetRecord, AssetVariant, ProcessingState


def new_asset_id() -> str:
    return uuid4().hex


@runtime_checkable
class AssetStore(Protocol):
    async def create_asset(self, record: AssetRecord) -> AssetRecord: ...

    async def get_asset(self, asset_id: str) -> AssetRecord | None: ...

    async def set_processing_state(
        self, asset_id: str, state: ProcessingState, error: str | None = None
    ) -> None: ...

    async def save_metadata(self, asset_id: str, metadata: dict[str, Any]) -> None: ...

    async def create_variant(self, variant: AssetVariant) -> AssetVariant: ...

    async def list_variants(self, asset_id: str) -> list[AssetVariant]: ...

    async def delete_variant(self, variant: AssetVariant) -> None: ...

    async def record_variant_errors(self, asset_id: str, errors: dict[str, str]) -> None: ...


class InMemoryAssetStore:
    """Dict-backed asset store."""

    def __init__(self) -> None:
        self._assets: dict[str, AssetRecord] = {}
        self._variants: dict[str, list[AssetVariant]] = {}
        self._lock = asyncio.Lock()

    async def create_asset(self, record: AssetRecord) -> AssetRecord:
        async with self._lock:
            self._assets[record.id] = record
            self._variants.setdefault(record.id, [])
        return record

    async def get_asset(self, asset_id: str) -> AssetRecord | None:
        return self._assets.get(asset_id)

    async def set_processing_state(
        self, asset_id: str, state: ProcessingState, error: str | None = None
    ) -> None:
        async with self._lock:
            record = self._assets[asset_id]
            record.state = state
            if error is not None:
                record.error = error

    async def save_metadata(self, asset_id: str, metadata: dict[str, Any]) -> None:
        async with self._lock:
            self._assets[asset_id].metadata.update(metadata)

    async def create_variant(self, variant: AssetVariant) -> AssetVariant:
        async with self._lock:
            self._variants.setdefault(variant.asset_id, []).append(variant)
        return variant

    async def list_variants(self, asset_id: str) -> list[AssetVariant]:
        return list(self._variants.get(asset_id, []))

    async def delete_variant(self, variant: AssetVariant) -> None:
        async with self._lock:
            variants = self._variants.get(variant.asset_id, [])
            if variant in variants:
                variants.remove(variant)

    async def record_variant_errors(self, asset_id: str, errors: dict[str, str]) -> None:
        async with self._lock:
            self._assets[asset_id].variant_errors.update(errors)

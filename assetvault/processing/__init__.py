"""Background metadata extraction and variant generation."""

from assetvault.processing.jobs import (
    AssetRecord,
    AssetType,
    AssetVariant,
    JobType,
    ProcessingJob,
    ProcessingState,
)
from assetvault.processing.orchestrator import AssetTracker, Orchestrator
from assetvault.processing.store import AssetStore, InMemoryAssetStore

__all__ = [
    "AssetRecord",
    "AssetStore",
    "AssetTracker",
    "AssetType",
    "AssetVariant",
    "InMemoryAssetStore",
    "JobType",
    "Orchestrator",
    "ProcessingJob",
    "ProcessingState",
]

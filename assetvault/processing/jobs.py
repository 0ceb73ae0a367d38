"""Processing job, state and variant types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from assetvault.lib.exceptions import PartialVariantFailure
from assetvault.lib.storage.base import LOCAL, BackendId

MODEL_3D_EXTENSIONS = (".glb", ".gltf", ".obj", ".fbx")


class AssetType(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    DOCUMENT = "DOCUMENT"
    MODEL_3D = "MODEL_3D"
    DESIGN = "DESIGN"
    OTHER = "OTHER"


class JobType(str, Enum):
    METADATA = "METADATA"
    THUMBNAIL = "THUMBNAIL"
    VARIANT_SET = "VARIANT_SET"
    PREVIEW_CLIP = "PREVIEW_CLIP"


class ProcessingState(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingState.COMPLETED, ProcessingState.FAILED)


MANDATORY_JOBS = frozenset({JobType.METADATA, JobType.THUMBNAIL})


def asset_type_for(mime_type: str, filename: str | None = None) -> AssetType:
    """Classify an upload by MIME type, with an extension check for 3D models."""
    mime_type = (mime_type or "").lower()
    if filename and filename.lower().endswith(MODEL_3D_EXTENSIONS):
        return AssetType.MODEL_3D
    if mime_type.startswith("image/"):
        return AssetType.IMAGE
    if mime_type.startswith("video/"):
        return AssetType.VIDEO
    if mime_type.startswith("audio/"):
        return AssetType.AUDIO
    if "pdf" in mime_type or mime_type.startswith("text/") or "officedocument" in mime_type:
        return AssetType.DOCUMENT
    if mime_type.startswith("model/") or "3d" in mime_type:
        return AssetType.MODEL_3D
    if any(tool in mime_type for tool in ("photoshop", "illustrator", "figma")):
        return AssetType.DESIGN
    return AssetType.OTHER


def jobs_for(asset_type: AssetType, video_preview: bool = True) -> list[JobType]:
    """METADATA always; THUMBNAIL for images and video; VARIANT_SET for images.

    Video assets also get a best-effort PREVIEW_CLIP unless disabled.
    """
    jobs = [JobType.METADATA]
    if asset_type in (AssetType.IMAGE, AssetType.VIDEO):
        jobs.append(JobType.THUMBNAIL)
    if asset_type is AssetType.IMAGE:
        jobs.append(JobType.VARIANT_SET)
    if asset_type is AssetType.VIDEO and video_preview:
        jobs.append(JobType.PREVIEW_CLIP)
    return jobs


@dataclass
class ProcessingJob:
    asset_id: str
    file_key: str
    mime_type: str
    job_type: JobType
    original_filename: str = ""
    backend: BackendId = LOCAL
    requested_variants: list[str] | None = None
    attempt: int = 0

    @property
    def asset_type(self) -> AssetType:
        return asset_type_for(self.mime_type, self.original_filename)

    @property
    def is_mandatory(self) -> bool:
        return self.job_type in MANDATORY_JOBS


@dataclass
class AssetVariant:
    """One stored derivative of an asset.

    ``variant_type`` is a display name and can repeat across jobs (a preset may
    be called THUMBNAIL or PREVIEW). ``job_type`` says which job produced it.
    """

    asset_id: str
    variant_type: str
    file_key: str
    backend: BackendId
    size: int
    format: str
    quality: int | None = None
    width: int | None = None
    height: int | None = None
    job_type: JobType | None = None


@dataclass
class VariantSetResult:
    """Outcome of a variant-set job: what was produced and what failed."""

    variants: list[AssetVariant] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.errors)

    def failure(self) -> PartialVariantFailure | None:
        return PartialVariantFailure(dict(self.errors)) if self.errors else None


@dataclass
class AssetRecord:
    """The slice of an asset row this pipeline reads and drives."""

    id: str
    file_key: str
    backend: BackendId
    filename: str
    mime_type: str
    size: int
    checksum: str
    state: ProcessingState = ProcessingState.PENDING
    metadata: dict[str, Any] = field(default_factory=dict)
    variant_errors: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def asset_type(self) -> AssetType:
        return asset_type_for(self.mime_type, self.filename)

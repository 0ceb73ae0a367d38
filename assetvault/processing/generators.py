"""Generators that turn an uploaded buffer into metadata and stored variants.

Pillow calls run in a worker thread; ffmpeg calls run as subprocesses. Every
call is bounded by ``timeout`` seconds. Outputs are persisted through the
storage manager and returned as :class:`AssetVariant` values for the caller
to record.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from assetvault.lib import imaging, probe
from assetvault.lib.exceptions import GeneratorTimeout
from assetvault.processing.jobs import (
    AssetType,
    AssetVariant,
    JobType,
    ProcessingJob,
    VariantSetResult,
)

if TYPE_CHECKING:
    from assetvault.config import VariantPreset
    from assetvault.lib.imaging import RenderedImage
    from assetvault.lib.storage.manager import StorageManager

logger = logging.getLogger(__name__)


async def _in_thread(func, *args, timeout: float):
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError:
        raise GeneratorTimeout(f"{func.__name__} exceeded {timeout:g}s") from None


def derived_filename(original: str, suffix: str, extension: str) -> str:
    """``derived_filename("My Photo.png", "preview", "jpg")`` → ``"My Photo-preview.jpg"``"""
    stem = PurePosixPath(original).stem or "file"
    return f"{stem}-{suffix}.{extension}"


async def _store_image(
    storage: StorageManager,
    job: ProcessingJob,
    rendered: RenderedImage,
    variant_type: str,
    prefix: str,
) -> AssetVariant:
    extension = "jpg" if rendered.format == "jpeg" else rendered.format
    result = await storage.upload(
        rendered.data,
        derived_filename(job.original_filename, variant_type.lower(), extension),
        rendered.content_type,
        prefix=prefix,
        metadata={"asset-id": job.asset_id, "variant": variant_type},
    )
    return AssetVariant(
        asset_id=job.asset_id,
        variant_type=variant_type,
        file_key=result.file_key,
        backend=result.backend,
        size=result.size,
        format=rendered.format,
        quality=rendered.quality,
        width=rendered.width,
        height=rendered.height,
        job_type=job.job_type,
    )


async def extract_metadata(data: bytes, asset_type: AssetType, timeout: float) -> dict[str, Any]:
    """Return metadata fields for the asset, or an empty dict when not applicable."""
    if asset_type is AssetType.IMAGE:
        meta = await _in_thread(imaging.extract_image_metadata, data, timeout=timeout)
    elif asset_type is AssetType.VIDEO:
        meta = await probe.extract_video_metadata(data, timeout=timeout)
    elif asset_type is AssetType.AUDIO:
        meta = await probe.extract_audio_metadata(data, timeout=timeout)
    else:
        return {}
    return {k: v for k, v in asdict(meta).items() if v is not None}


async def generate_thumbnail(
    storage: StorageManager,
    data: bytes,
    job: ProcessingJob,
    timeout: float,
) -> AssetVariant | None:
    """Cover-cropped 200x200 for images, a frame at 1s for video."""
    asset_type = job.asset_type
    if asset_type is AssetType.IMAGE:
        rendered = await _in_thread(imaging.cover_thumbnail, data, timeout=timeout)
        return await _store_image(storage, job, rendered, "THUMBNAIL", "thumbnails")

    if asset_type is AssetType.VIDEO:
        frame = await probe.video_thumbnail(data, timeout=timeout)
        meta = await _in_thread(imaging.extract_image_metadata, frame, timeout=timeout)
        rendered = imaging.RenderedImage(
            data=frame,
            width=meta.width,
            height=meta.height,
            format="jpeg",
            content_type="image/jpeg",
            quality=imaging.THUMBNAIL_QUALITY,
        )
        return await _store_image(storage, job, rendered, "THUMBNAIL", "thumbnails/video")

    return None


async def generate_variant_set(
    storage: StorageManager,
    data: bytes,
    job: ProcessingJob,
    presets: dict[str, VariantPreset],
    timeout: float,
) -> VariantSetResult:
    """Render each preset independently.

    A failing preset is logged and reported in ``errors``; the remaining
    presets are still rendered and stored.
    """
    result = VariantSetResult()
    names = job.requested_variants or list(presets)

    for name in names:
        preset = presets.get(name)
        if preset is None:
            result.errors[name] = "Unknown variant preset"
            continue
        try:
            rendered = await _in_thread(
                imaging.resize_to_fit,
                data,
                preset.width,
                preset.height,
                preset.quality,
                timeout=timeout,
            )
            variant = await _store_image(
                storage, job, rendered, name, f"variants/{name.lower()}"
            )
        except Exception as exc:
            logger.warning(
                "Variant %s failed for asset %s", name, job.asset_id, exc_info=True
            )
            result.errors[name] = str(exc) or type(exc).__name__
            continue
        result.variants.append(variant)

    return result


async def generate_video_preview(
    storage: StorageManager,
    data: bytes,
    job: ProcessingJob,
    timeout: float,
    duration: float = probe.PREVIEW_DURATION,
    start: float = 0.0,
) -> AssetVariant:
    """Short 720p clip for previewing without downloading the original."""
    clip = await probe.video_preview(data, start=start, duration=duration, timeout=timeout)
    width, height = probe.PREVIEW_SIZE
    result = await storage.upload(
        clip,
        derived_filename(job.original_filename, "preview", "mp4"),
        "video/mp4",
        prefix="previews/video",
        metadata={"asset-id": job.asset_id, "variant": "PREVIEW"},
    )
    return AssetVariant(
        asset_id=job.asset_id,
        variant_type="PREVIEW",
        file_key=result.file_key,
        backend=result.backend,
        size=result.size,
        format="mp4",
        width=width,
        height=height,
        job_type=JobType.PREVIEW_CLIP,
    )

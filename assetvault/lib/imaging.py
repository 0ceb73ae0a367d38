"""Image inspection and variant rendering using Pillow.

Everything here is a pure function over bytes. Callers run these in a worker
thread since Pillow work is CPU bound.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any, Callable

from PIL import Image, ImageOps
from PIL.ExifTags import GPS, IFD, Base

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (200, 200)
THUMBNAIL_QUALITY = 80

_FORMAT_TO_CONTENT_TYPE = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}

_ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa", "La"}


@dataclass
class ImageMetadata:
    width: int
    height: int
    format: str
    color_space: str | None = None
    has_alpha: bool = False
    orientation: int | None = None
    dpi: float | None = None
    camera: str | None = None
    lens: str | None = None
    iso: int | None = None
    aperture: float | None = None
    shutter_speed: str | None = None
    gps_lat: float | None = None
    gps_lng: float | None = None


@dataclass
class RenderedImage:
    """Encoded output of a resize operation."""

    data: bytes
    width: int
    height: int
    format: str
    content_type: str
    quality: int


def detect_image_content_type(data: bytes) -> str | None:
    """Detect image content type from magic bytes.

    Returns ``None`` if the data does not match a known image signature.
    """
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return None


def _field(name: str, parse: Callable[[], Any]) -> Any:
    """Parse one EXIF field; any failure means the field is absent."""
    try:
        return parse()
    except Exception:
        logger.debug("EXIF field %s could not be parsed", name, exc_info=True)
        return None


def _dms_to_degrees(dms, ref: str | None) -> float:
    degrees, minutes, seconds = (float(v) for v in dms)
    value = degrees + minutes / 60 + seconds / 3600
    if ref in ("S", "W"):
        value = -value
    return round(value, 6)


def _camera(exif) -> str | None:
    make = str(exif.get(Base.Make, "")).strip("\x00 ")
    model = str(exif.get(Base.Model, "")).strip("\x00 ")
    if make and model:
        return f"{make} {model}"
    return model or None


def _shutter_speed(value) -> str | None:
    if value is None:
        return None
    seconds = float(value)
    if 0 < seconds < 1:
        return f"1/{round(1 / seconds)}"
    return f"{seconds:g}"


def _parse_exif(img: Image.Image) -> dict[str, Any]:
    exif = img.getexif()
    if not exif:
        return {}

    details = _field("exif_ifd", lambda: exif.get_ifd(IFD.Exif)) or {}
    gps = _field("gps_ifd", lambda: exif.get_ifd(IFD.GPSInfo)) or {}

    fields: dict[str, Any] = {
        "orientation": _field("orientation", lambda: int(exif[Base.Orientation])),
        "camera": _field("camera", lambda: _camera(exif)),
        "lens": _field("lens", lambda: str(details[Base.LensModel]).strip("\x00 ") or None),
        "iso": _field("iso", lambda: int(details[Base.ISOSpeedRatings])),
        "aperture": _field("aperture", lambda: round(float(details[Base.FNumber]), 2)),
        "shutter_speed": _field("shutter_speed", lambda: _shutter_speed(details[Base.ExposureTime])),
        "gps_lat": _field(
            "gps_lat",
            lambda: _dms_to_degrees(gps[GPS.GPSLatitude], gps.get(GPS.GPSLatitudeRef)),
        ),
        "gps_lng": _field(
            "gps_lng",
            lambda: _dms_to_degrees(gps[GPS.GPSLongitude], gps.get(GPS.GPSLongitudeRef)),
        ),
    }
    return {k: v for k, v in fields.items() if v is not None}


def extract_image_metadata(data: bytes) -> ImageMetadata:
    """Read dimensions, colour information and best-effort EXIF fields."""
    img = Image.open(io.BytesIO(data))
    width, height = img.size

    dpi = img.info.get("dpi")
    exif_fields = _field("exif", lambda: _parse_exif(img)) or {}

    return ImageMetadata(
        width=width,
        height=height,
        format=(img.format or "unknown").lower(),
        color_space=img.mode,
        has_alpha=img.mode in _ALPHA_MODES or "transparency" in img.info,
        dpi=_field("dpi", lambda: float(dpi[0])) if dpi else None,
        **exif_fields,
    )


def _prepare(data: bytes) -> Image.Image:
    """Open, apply EXIF orientation, and flatten to RGB for JPEG output."""
    img = Image.open(io.BytesIO(data))
    img = ImageOps.exif_transpose(img)
    if img.mode in _ALPHA_MODES or img.mode == "P":
        img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.getchannel("A"))
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode(img: Image.Image, fmt: str, quality: int) -> RenderedImage:
    fmt = fmt.upper()
    buf = io.BytesIO()
    save_kwargs: dict = {}
    if fmt == "JPEG":
        save_kwargs["quality"] = quality
        save_kwargs["optimize"] = True
        save_kwargs["progressive"] = True
    elif fmt == "PNG":
        save_kwargs["optimize"] = True
    elif fmt == "WEBP":
        save_kwargs["quality"] = quality

    img.save(buf, format=fmt, **save_kwargs)
    width, height = img.size
    return RenderedImage(
        data=buf.getvalue(),
        width=width,
        height=height,
        format=fmt.lower(),
        content_type=_FORMAT_TO_CONTENT_TYPE.get(fmt, "application/octet-stream"),
        quality=quality,
    )


def cover_thumbnail(
    data: bytes,
    size: tuple[int, int] = THUMBNAIL_SIZE,
    quality: int = THUMBNAIL_QUALITY,
) -> RenderedImage:
    """Centre-crop and scale to exactly *size* as JPEG."""
    img = ImageOps.fit(_prepare(data), size, Image.LANCZOS, centering=(0.5, 0.5))
    return _encode(img, "JPEG", quality)


def resize_to_fit(
    data: bytes,
    max_width: int,
    max_height: int,
    quality: int = 85,
    fmt: str = "JPEG",
) -> RenderedImage:
    """Fit inside ``max_width`` x ``max_height`` preserving aspect ratio.

    Never upscales: smaller images are only re-encoded.
    """
    img = _prepare(data)
    img.thumbnail((max_width, max_height), Image.LANCZOS)
    return _encode(img, fmt, quality)


def optimize_image(
    data: bytes,
    max_width: int = 1920,
    max_height: int = 1920,
    quality: int = 85,
    fmt: str = "jpeg",
) -> bytes:
    """Re-encode an image for the web (jpeg, png or webp)."""
    if fmt.lower() not in ("jpeg", "png", "webp"):
        raise ValueError(f"Unsupported output format: {fmt}")
    if fmt.lower() == "jpeg":
        img = _prepare(data)
    else:
        img = ImageOps.exif_transpose(Image.open(io.BytesIO(data)))
    img.thumbnail((max_width, max_height), Image.LANCZOS)
    return _encode(img, fmt, quality).data

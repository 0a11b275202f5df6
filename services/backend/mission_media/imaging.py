"""Image transform engine: decode, resize, adjust contrast, encode.

All functions are pure and hold no shared state, so they are safe to call
concurrently from worker threads. Images are fully decoded in memory; peak
memory per call is proportional to the decoded pixel count.
"""
import io
import logging
from dataclasses import dataclass
from typing import Literal, Optional

from PIL import Image

from mission_media.errors import DecodeError, EncodeError, ImageProcessingError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_JPEG_QUALITY = 95

# Containers accepted on decode
DECODABLE_FORMATS = ["JPEG", "MPO", "PNG", "GIF", "WEBP", "BMP", "TIFF"]

# Containers the engine writes, with their media types
MEDIA_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
}

OutputFormat = Literal["jpeg", "source"]


@dataclass(frozen=True)
class TransformRequest:
    """Requested transform for one image delivery.

    A width or height of 0 means unset. A contrast of 0 is the identity.
    """

    width: int = 0
    height: int = 0
    contrast: float = 0.0

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError("width and height must be non-negative")

    @property
    def needs_resize(self) -> bool:
        return self.width > 0 or self.height > 0

    @property
    def needs_processing(self) -> bool:
        """Whether the image must be decoded at all."""
        return self.needs_resize or self.contrast != 0


@dataclass(frozen=True)
class EncodedImage:
    """Fully encoded output of a transform."""

    data: bytes
    format: str

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES[self.format]


def decode(data: bytes) -> tuple[Image.Image, str]:
    """Decode raster bytes, auto-detecting the container.

    Returns:
        The loaded image and its source format name (e.g. ``"JPEG"``).

    Raises:
        DecodeError: If the bytes are not a supported, decodable image.
    """
    try:
        image = Image.open(io.BytesIO(data), formats=DECODABLE_FORMATS)
        image.load()
    except Exception as e:
        logger.error(f"Failed to decode image ({len(data)} bytes): {e}")
        raise DecodeError() from e
    return image, image.format


def _normalize_mode(image: Image.Image) -> Image.Image:
    """Convert to a mode that resamples and maps per channel (L, RGB, RGBA)."""
    if image.mode in ("L", "RGB", "RGBA"):
        return image
    if image.mode in ("LA", "PA") or (image.mode == "P" and "transparency" in image.info):
        return image.convert("RGBA")
    return image.convert("RGB")


def target_size(source: tuple[int, int], width: int, height: int) -> tuple[int, int]:
    """Resolve requested dimensions against the source size.

    A zero dimension is derived from the other one so the source aspect
    ratio is preserved.
    """
    src_w, src_h = source
    if width <= 0:
        width = max(1, round(src_w * height / src_h))
    elif height <= 0:
        height = max(1, round(src_h * width / src_w))
    return width, height


def resize(image: Image.Image, width: int, height: int) -> Image.Image:
    """Resize with Lanczos resampling.

    Both dimensions set: exact size. One set: the other follows the
    aspect ratio. Neither set: the image is returned unchanged.
    """
    if width <= 0 and height <= 0:
        return image
    size = target_size(image.size, width, height)
    return _normalize_mode(image).resize(size, Image.Resampling.LANCZOS)


def _contrast_level(i: int, v: float) -> int:
    x = i / 255.0
    if 0 <= v <= 1:
        y = 0.5 + (x - 0.5) * v
    elif 1 < v < 2:
        y = 0.5 + (x - 0.5) / (2.0 - v)
    else:
        return 255 if i >= 128 else 0
    return int(min(max(y * 255.0, 0.0), 255.0) + 0.5)


def contrast_lut(amount: float) -> list[int]:
    """Build the 256-entry lookup table for a contrast percentage.

    The stretch is linear and centered on mid-gray: -100 flattens to gray,
    +100 thresholds to black/white.
    """
    v = (100.0 + amount) / 100.0
    return [_contrast_level(i, v) for i in range(256)]


def adjust_contrast(image: Image.Image, amount: float) -> Image.Image:
    """Apply a percentage contrast adjustment in [-100, 100].

    Out-of-range amounts are clamped. Zero returns the input image untouched.
    Alpha is preserved.
    """
    amount = min(max(amount, -100.0), 100.0)
    if amount == 0:
        return image

    image = _normalize_mode(image)
    lut = contrast_lut(amount)
    if image.mode == "L":
        return image.point(lut)
    if image.mode == "RGBA":
        return image.point(lut * 3 + list(range(256)))
    return image.point(lut * 3)


def encode(image: Image.Image, fmt: str, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode an image as JPEG or PNG.

    Raises:
        EncodeError: If the format is unsupported or encoding fails.
    """
    fmt = fmt.upper()
    if fmt == "JPG":
        fmt = "JPEG"
    if fmt not in MEDIA_TYPES:
        logger.error(f"Unsupported output format: {fmt}")
        raise EncodeError()

    buf = io.BytesIO()
    try:
        if fmt == "JPEG":
            if image.mode not in ("L", "RGB"):
                image = image.convert("RGB")
            image.save(buf, format="JPEG", quality=quality)
        else:
            image.save(buf, format="PNG")
    except Exception as e:
        logger.error(f"Failed to encode image as {fmt}: {e}")
        raise EncodeError() from e
    return buf.getvalue()


def output_format_for(source_format: str, policy: OutputFormat) -> str:
    """Pick the container to encode to under a deployment policy."""
    if policy == "source" and source_format in MEDIA_TYPES:
        return source_format
    return "JPEG"


def check_target_size(size: tuple[int, int], max_dimension: Optional[int]) -> None:
    """Reject a resolved resize target with a side above ``max_dimension``.

    Raises:
        ValidationError: If either side exceeds the limit.
    """
    if max_dimension is not None and max(size) > max_dimension:
        logger.warning(f"Rejected resize target {size[0]}x{size[1]}, limit is {max_dimension}")
        raise ValidationError(f"width and height must not exceed {max_dimension}")


def transform(
    data: bytes,
    request: TransformRequest,
    output_format: OutputFormat = "jpeg",
    quality: int = DEFAULT_JPEG_QUALITY,
    max_dimension: Optional[int] = None,
) -> EncodedImage:
    """Decode, resize, adjust contrast and re-encode an image.

    Resize runs before contrast. The result is fully encoded in memory.
    When ``max_dimension`` is set, the resize target is checked after the
    aspect ratio has filled in any unset side.

    Raises:
        DecodeError: If the source cannot be decoded.
        ValidationError: If the resize target exceeds ``max_dimension``.
        ImageProcessingError: If resizing or the contrast mapping fails.
        EncodeError: If the result cannot be encoded.
    """
    image, source_format = decode(data)
    if request.needs_resize:
        check_target_size(target_size(image.size, request.width, request.height), max_dimension)
    try:
        if request.needs_resize:
            image = resize(image, request.width, request.height)
        if request.contrast != 0:
            image = adjust_contrast(image, request.contrast)
    except Exception as e:
        logger.error(f"Failed to transform {source_format} image {image.mode} {image.size}: {e}")
        raise ImageProcessingError() from e

    fmt = output_format_for(source_format, output_format)
    return EncodedImage(data=encode(image, fmt, quality), format=fmt)

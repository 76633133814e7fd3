from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener
from typing import Optional, Sequence, Tuple
import cv2
import numpy as np
import io

from yingge.errors import DecodeFailure, InvalidInput, IoFailure

register_heif_opener()

OUTPUT_FORMATS = {
    "jpeg": ("JPEG", "jpg", "image/jpeg"),
    "jpg": ("JPEG", "jpg", "image/jpeg"),
    "png": ("PNG", "png", "image/png"),
}

def load_image(path) -> Image.Image:
    """Open and fully decode an image file."""
    try:
        with Image.open(path) as img:
            img.load()
            return img
    except (FileNotFoundError, PermissionError, IsADirectoryError) as e:
        raise IoFailure(f"Cannot read image {path}: {e}", where="image.load") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeFailure(f"Cannot decode image {path}: {e}", where="image.load") from e

def decode_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        return img
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeFailure(f"Cannot decode image: {e}", where="image.decode") from e

def output_format(fmt: str) -> Tuple[str, str, str]:
    """(Pillow format, file extension, mime type) for a requested output format."""
    try:
        return OUTPUT_FORMATS[fmt.lower()]
    except KeyError:
        raise InvalidInput(f"Unsupported output format: {fmt}", where="image.format")

def fit_within(width: int, height: int, max_width: Optional[int], max_height: Optional[int]) -> Tuple[int, int]:
    """Shrink-only fit: both bounds respected, aspect ratio kept, never upscales."""
    max_w = max_width if max_width is not None else width
    max_h = max_height if max_height is not None else height
    if max_w <= 0 or max_h <= 0:
        raise InvalidInput("Bounds must be positive", where="image.fit")
    if width <= max_w and height <= max_h:
        return width, height
    ratio = min(max_w / width, max_h / height)
    return max(1, int(width * ratio)), max(1, int(height * ratio))

class ImageProcessor:
    @staticmethod
    def compress(img: Image.Image, max_width: Optional[int] = None, max_height: Optional[int] = None) -> Image.Image:
        new_w, new_h = fit_within(img.width, img.height, max_width, max_height)
        if (new_w, new_h) == img.size:
            return img.copy()
        return img.resize((new_w, new_h), Image.Resampling.LANCZOS)

    @staticmethod
    def encode(img: Image.Image, fmt: str = "png", quality: int = 85) -> bytes:
        if not 1 <= quality <= 100:
            raise InvalidInput(f"Quality must be within 1..100, got {quality}", where="image.encode")
        pil_format, _, _ = output_format(fmt)

        img_byte_arr = io.BytesIO()
        if pil_format == "JPEG":
            # JPEG has no alpha channel
            img.convert("RGB").save(img_byte_arr, format="JPEG", quality=quality)
        else:
            if img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
                img = img.convert("RGBA")
            img.save(img_byte_arr, format="PNG")
        return img_byte_arr.getvalue()

    @staticmethod
    def remove_background_color_key(img: Image.Image, target_color: Sequence[int], tolerance: int) -> Image.Image:
        """Color-key matte.

        A pixel turns fully transparent iff each of its R, G and B channels is within
        ``tolerance`` of the target (per-channel box, not a Euclidean distance). Every
        other pixel is copied unchanged, alpha included.
        """
        if len(target_color) != 3 or any(not 0 <= c <= 255 for c in target_color):
            raise InvalidInput(f"Target color must be three 0..255 channels, got {target_color}", where="matte")
        if not 0 <= tolerance <= 255:
            raise InvalidInput(f"Tolerance must be within 0..255, got {tolerance}", where="matte")

        rgba = np.array(img.convert("RGBA"), dtype=np.uint8)
        target = np.array(target_color, dtype=np.int16)
        lower = np.clip(target - tolerance, 0, 255).astype(np.uint8)
        upper = np.clip(target + tolerance, 0, 255).astype(np.uint8)

        mask = cv2.inRange(np.ascontiguousarray(rgba[:, :, :3]), lower, upper)
        out = rgba.copy()
        out[mask > 0] = 0
        return Image.fromarray(out)

    @staticmethod
    def compress_for_ai(path, max_edge: int = 1536, quality: int = 85) -> Tuple[bytes, str]:
        """Downsized JPEG bytes for vision-model analysis, plus their mime type."""
        img = ImageProcessor.compress(load_image(path), max_edge, max_edge)
        return ImageProcessor.encode(img, "jpeg", quality), "image/jpeg"

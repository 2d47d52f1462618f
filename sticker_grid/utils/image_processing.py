import base64
import io
from typing import Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from sticker_grid.models.image_dimensions import ImageDimensions
from sticker_grid.utils.errors import DecodeError, EncodeError

OUTPUT_FORMAT = "PNG"
OUTPUT_MIME_TYPE = "image/png"
RESAMPLING_FILTER = Image.Resampling.LANCZOS
DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError)


def bytes2pil(byte_arr: bytes) -> Image.Image:
    """
    Fully decode a binary image
    Args:
        byte_arr: The binary image (png, jpeg, ...)

    Returns: The decoded PIL image

    Raises:
        DecodeError: The bytes are not a decodable image

    """
    try:
        image = Image.open(io.BytesIO(byte_arr))
        image.load()
    except DECODE_ERRORS as exc:
        raise DecodeError("Failed to decode image") from exc
    return image


def pil2bytes(image: Image.Image) -> bytes:
    img_byte_arr = io.BytesIO()
    try:
        image.save(img_byte_arr, format=OUTPUT_FORMAT)
    except (OSError, ValueError) as exc:
        raise EncodeError(f"Failed to encode image as {OUTPUT_FORMAT}") from exc
    return img_byte_arr.getvalue()


def np2pil(array: np.ndarray) -> Image.Image:
    return Image.fromarray(array)


def pil2np(image: Image.Image) -> np.ndarray:
    return np.array(image)


def bytes2data_uri(byte_arr: bytes, mime_type: str = OUTPUT_MIME_TYPE) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(byte_arr).decode('ascii')}"


def dimensions_of(byte_arr: bytes) -> ImageDimensions:
    """
    Read the intrinsic pixel size of a binary image. Only the image header is parsed, the payload is not modified.
    Args:
        byte_arr: The binary image

    Returns: The width and height in pixels

    Raises:
        DecodeError: The bytes are not a decodable image

    """
    try:
        with Image.open(io.BytesIO(byte_arr)) as image:
            width, height = image.size
    except DECODE_ERRORS as exc:
        raise DecodeError("Failed to read image dimensions") from exc
    return ImageDimensions(width=width, height=height)


def normalize_mode(image: Image.Image) -> Image.Image:
    """Convert to RGBA if the image carries any transparency, otherwise to RGB"""
    if image.mode in ("RGBA", "RGB"):
        return image
    if "A" in image.getbands() or "transparency" in image.info:
        return image.convert("RGBA")
    return image.convert("RGB")


def crop_cell(image: Image.Image, box: Tuple[int, int, int, int]) -> Image.Image:
    """
    Copy a rectangular region onto a freshly cleared canvas of the same mode
    Args:
        image: The (mode normalized) source image
        box: left, upper, right, lower

    Returns: An independent image of size (right - left, lower - upper)

    """
    left, upper, right, lower = box
    canvas = Image.new(image.mode, (right - left, lower - upper))
    canvas.paste(image.crop(box), (0, 0))
    return canvas


def resample(image: Image.Image, size: int) -> Image.Image:
    """Resize an image to size x size with a high quality filter"""
    return normalize_mode(image).resize((size, size), RESAMPLING_FILTER)


def resample_bytes(byte_arr: bytes, size: int) -> bytes:
    return pil2bytes(resample(bytes2pil(byte_arr), size))


def reencode_bytes(byte_arr: bytes, size: Optional[int] = None) -> bytes:
    """
    Decode an image of any supported format and encode it as PNG
    Args:
        byte_arr: The binary image
        size: If given, the result is resampled to size x size unless it already has that size

    Returns: The PNG encoded image

    """
    image = normalize_mode(bytes2pil(byte_arr))
    if size is not None and image.size != (size, size):
        image = resample(image, size)
    return pil2bytes(image)

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Image processing utilities for resizing and encoding."""

from awslabs.image_downloader_mcp_server.consts import MAX_QUALITY, PNG_MAX_COMPRESS_LEVEL
from awslabs.image_downloader_mcp_server.models.common import OutputCodec
from io import BytesIO
from loguru import logger
from PIL import Image
from typing import Any, Dict, Optional, Tuple


# Modes the JPEG encoder accepts without conversion
JPEG_MODES = ('L', 'RGB', 'CMYK')


def fit_within_box(
    size: Tuple[int, int],
    max_width: Optional[int] = None,
    max_height: Optional[int] = None
) -> Tuple[int, int]:
    """Compute the size that fits ``size`` inside a bounding box.

    The aspect ratio is preserved and the result is never larger than the
    original. A missing dimension does not constrain the result.

    Args:
        size: Original (width, height) in pixels.
        max_width: Maximum width, or None.
        max_height: Maximum height, or None.

    Returns:
        Tuple of (width, height) in pixels, each at least 1.

    Raises:
        ValueError: If a box dimension is not positive.
    """
    width, height = size
    if max_width is not None and max_width <= 0:
        raise ValueError(f"Target width must be positive: {max_width}")
    if max_height is not None and max_height <= 0:
        raise ValueError(f"Target height must be positive: {max_height}")

    scale = 1.0
    if max_width is not None:
        scale = min(scale, max_width / width)
    if max_height is not None:
        scale = min(scale, max_height / height)

    if scale >= 1.0:
        return width, height

    return max(1, round(width * scale)), max(1, round(height * scale))


def png_compress_level(quality: int) -> int:
    """Map a 1-100 quality onto PNG's 0-9 compression effort, rounding half up."""
    return int(quality / MAX_QUALITY * PNG_MAX_COMPRESS_LEVEL + 0.5)


def pillow_format_for_extension(extension: str) -> Optional[str]:
    """Return the Pillow format name that can write ``extension``, if any.

    Args:
        extension: File extension including the dot, e.g. '.png'.

    Returns:
        Pillow format name (e.g. 'PNG'), or None if Pillow cannot write it.
    """
    image_format = Image.registered_extensions().get(extension.lower())
    if image_format is None or image_format not in Image.SAVE:
        return None
    return image_format


def encode_options(codec: OutputCodec, quality: int) -> Dict[str, Any]:
    """Build encoder keyword arguments for ``codec``.

    Args:
        codec: Output codec.
        quality: Requested quality (1-100).

    Returns:
        Keyword arguments for ``Image.save``. Empty for OutputCodec.DEFAULT.
    """
    if codec in (OutputCodec.JPEG, OutputCodec.WEBP, OutputCodec.AVIF):
        return {'quality': quality}
    if codec == OutputCodec.PNG:
        return {'compress_level': png_compress_level(quality)}
    return {}


def resample_mode(image: Image.Image) -> Image.Image:
    """Convert palette and bilevel images so that resizing can filter them.

    Pillow resizes ``P`` and ``1`` images with nearest-neighbour sampling
    whatever filter is requested.
    """
    if image.mode == 'P':
        return image.convert('RGBA' if 'transparency' in image.info else 'RGB')
    if image.mode == 'PA':
        return image.convert('RGBA')
    if image.mode == '1':
        return image.convert('L')
    return image


def flatten_mode(image: Image.Image) -> Image.Image:
    """Convert an image to RGB, or RGBA when it carries transparency."""
    if image.mode in ('RGBA', 'LA', 'PA') or 'transparency' in image.info:
        return image.convert('RGBA')
    return image.convert('RGB')


def _save(image: Image.Image, image_format: str, options: Dict[str, Any]) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format=image_format, **options)
    return buffer.getvalue()


def encode_image(
    image: Image.Image,
    codec: OutputCodec,
    image_format: str,
    quality: int
) -> bytes:
    """Encode an image in memory.

    JPEG gets RGB input when its mode is not one JPEG can store, and PNG gets
    RGB input for CMYK sources. For the default codec, a mode the encoder
    rejects is flattened to RGB(A) and the encode is retried once.

    Args:
        image: Image to encode.
        codec: Output codec, selects the encoder options.
        image_format: Pillow format name to write.
        quality: Requested quality (1-100).

    Returns:
        Encoded image bytes.
    """
    if codec == OutputCodec.JPEG and image.mode not in JPEG_MODES:
        image = image.convert('RGB')
    elif codec == OutputCodec.PNG and image.mode == 'CMYK':
        image = image.convert('RGB')

    options = encode_options(codec, quality)
    if codec != OutputCodec.DEFAULT:
        return _save(image, image_format, options)

    try:
        return _save(image, image_format, options)
    except OSError as e:
        if 'cannot write mode' not in str(e):
            raise
        logger.bind(mode=image.mode, format=image_format).debug(
            f'{image_format} cannot store mode {image.mode}, converting'
        )
        return _save(flatten_mode(image), image_format, options)


def transcode_image_file(
    source_path: str,
    codec: OutputCodec,
    image_format: str,
    quality: int,
    max_width: Optional[int] = None,
    max_height: Optional[int] = None
) -> Tuple[bytes, Tuple[int, int], Tuple[int, int]]:
    """Decode, optionally shrink, and re-encode an image file.

    This is blocking Pillow work; async callers run it in a worker thread.

    Args:
        source_path: Image file to read.
        codec: Output codec.
        image_format: Pillow format name to write.
        quality: Requested quality (1-100).
        max_width: Bounding box width, or None.
        max_height: Bounding box height, or None.

    Returns:
        Tuple of (encoded bytes, original size, output size).

    Raises:
        FileNotFoundError: If the source does not exist.
        PIL.UnidentifiedImageError: If the source is not a readable image.
        OSError: If decoding or encoding fails.
    """
    with Image.open(source_path) as image:
        image.load()
        original_size = image.size

        output_size = original_size
        if max_width is not None or max_height is not None:
            output_size = fit_within_box(original_size, max_width, max_height)

        if output_size != original_size:
            resized = resample_mode(image).resize(output_size, Image.Resampling.LANCZOS)
            return encode_image(resized, codec, image_format, quality), original_size, output_size

        return encode_image(image, codec, image_format, quality), original_size, output_size

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
"""Image optimization service.

Re-encodes an image into the format implied by the destination extension,
optionally shrinking it to fit a bounding box. Output is written to a sibling
temp file and renamed into place, so a failure never leaves a partial
destination behind.
"""

import aiofiles
import aiofiles.os
import asyncio
import os
from awslabs.image_downloader_mcp_server.consts import (
    DEFAULT_OPTIMIZE_QUALITY,
    PARTIAL_FILE_SUFFIX,
)
from awslabs.image_downloader_mcp_server.models.common import OutputCodec, StorageRoot
from awslabs.image_downloader_mcp_server.models.image_models import OptimizeRequest
from awslabs.image_downloader_mcp_server.utils.file_utils import (
    ensure_parent_dir,
    remove_file_quietly,
)
from awslabs.image_downloader_mcp_server.utils.image_utils import (
    encode_options,
    pillow_format_for_extension,
    transcode_image_file,
)
from loguru import logger
from typing import Optional, Tuple


class TranscodeError(Exception):
    """Raised when an image cannot be decoded, encoded or written.

    Attributes:
        message: Human-readable error message.
        source_path: Image that was being transcoded.
    """
    def __init__(self, message: str, source_path: Optional[str] = None):
        """Initialize TranscodeError.

        Args:
            message: Human-readable error message.
            source_path: Image that was being transcoded.
        """
        self.message = message
        self.source_path = source_path
        super().__init__(message)


def resolve_output_codec(destination_path: str) -> Tuple[OutputCodec, str]:
    """Select the output codec from the destination file extension.

    Args:
        destination_path: Path whose extension (case-insensitive) selects the codec.

    Returns:
        Tuple of (codec, Pillow format name).

    Raises:
        TranscodeError: If the extension is missing or Pillow cannot write it.
    """
    extension = os.path.splitext(destination_path)[1].lower()
    if not extension:
        raise TranscodeError(f"Output path has no file extension: {destination_path}")

    image_format = pillow_format_for_extension(extension)
    if image_format is None:
        raise TranscodeError(f"Unsupported output extension: {extension}")

    return OutputCodec.from_extension(extension), image_format


class ImageTranscoder:
    """Optimizes images under a storage root.

    Attributes:
        storage_root: Root that relative source and destination paths are resolved against.
    """

    def __init__(self, storage_root: StorageRoot):
        """Initialize the transcoder.

        Args:
            storage_root: Root that relative paths are resolved against.
        """
        self.storage_root = storage_root

    async def transcode(
        self,
        source_path: str,
        destination_path: str,
        target_width: Optional[int] = None,
        target_height: Optional[int] = None,
        quality: int = DEFAULT_OPTIMIZE_QUALITY,
    ) -> str:
        """Re-encode ``source_path`` into ``destination_path``.

        Workflow:
        1. Validate parameters (handled by Pydantic model)
        2. Select the codec from the destination extension
        3. Decode, shrink to the bounding box and encode (in a worker thread)
        4. Write to a temp file and rename it over the destination

        Args:
            source_path: Image to read, absolute or relative to the storage root.
            destination_path: File to write, absolute or relative to the storage root.
            target_width: Maximum output width in pixels.
            target_height: Maximum output height in pixels.
            quality: Encoder quality (1-100, default 80).

        Returns:
            Absolute path of the written file.

        Raises:
            pydantic.ValidationError: If quality or dimensions are out of range.
            TranscodeError: On decode, encode or filesystem failures.
        """
        request = OptimizeRequest(
            source_path=source_path,
            destination_path=destination_path,
            target_width=target_width,
            target_height=target_height,
            quality=quality,
        )
        input_path = self.storage_root.resolve(request.source_path)
        output_path = self.storage_root.resolve(request.destination_path)

        codec, image_format = resolve_output_codec(output_path)
        if codec == OutputCodec.DEFAULT:
            logger.bind(path=output_path, format=image_format).warning(
                f'No encoder options for {image_format} output, using encoder defaults'
            )

        log = logger.bind(source=input_path, path=output_path, codec=codec.value)
        log.debug(
            f'Optimizing image: {input_path} -> {output_path} '
            f'({request.target_width}x{request.target_height}, quality: {request.quality})'
        )

        partial_path = output_path + PARTIAL_FILE_SUFFIX
        try:
            await ensure_parent_dir(output_path)

            encoded, original_size, output_size = await asyncio.to_thread(
                transcode_image_file,
                input_path,
                codec,
                image_format,
                request.quality,
                request.target_width,
                request.target_height,
            )

            async with aiofiles.open(partial_path, 'wb') as out_file:
                await out_file.write(encoded)
            await aiofiles.os.replace(partial_path, output_path)

        except Exception as e:
            await remove_file_quietly(partial_path)
            log.bind(error_type=type(e).__name__).error(f'Image optimization failed: {str(e)}')
            raise TranscodeError(str(e) or type(e).__name__, input_path) from e

        logger.info(
            f'Optimized image: {original_size[0]}x{original_size[1]} -> '
            f'{output_size[0]}x{output_size[1]} {codec.value}',
            extra={'bytes': len(encoded), 'options': encode_options(codec, request.quality)}
        )
        return output_path

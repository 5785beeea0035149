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
"""Filesystem helpers shared by the fetcher and the transcoder."""

import aiofiles.os
import os
from loguru import logger


async def ensure_parent_dir(file_path: str) -> str:
    """Create the parent directory of ``file_path`` if it does not exist.

    Safe to call when the directory already exists.

    Args:
        file_path: Path of a file that is about to be written.

    Returns:
        The parent directory path.
    """
    parent_dir = os.path.dirname(file_path) or '.'
    await aiofiles.os.makedirs(parent_dir, exist_ok=True)
    return parent_dir


async def remove_file_quietly(file_path: str) -> bool:
    """Best-effort removal of a partially written file.

    A missing file is not an error. Any other failure is logged and ignored so
    that it never masks the error that triggered the cleanup.

    Args:
        file_path: Path of the file to remove.

    Returns:
        True if a file was removed.
    """
    try:
        await aiofiles.os.remove(file_path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.bind(path=file_path, error_type=type(e).__name__).warning(
            f'Failed to remove partial file {file_path}: {str(e)}'
        )
        return False
    logger.debug(f'Removed partial file: {file_path}')
    return True

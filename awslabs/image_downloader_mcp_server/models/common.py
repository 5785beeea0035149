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
"""Common models and enums shared by the download, optimize and generation tools."""

import os
from awslabs.image_downloader_mcp_server.consts import DEFAULT_OUTPUT_DIR
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


class OutputCodec(str, Enum):
    """Encoders the optimizer can dispatch to.

    Attributes:
        JPEG: Lossy JPEG, encoded at the requested quality.
        PNG: Lossless PNG, quality mapped onto compression effort.
        WEBP: WebP, encoded at the requested quality.
        AVIF: AVIF, encoded at the requested quality.
        DEFAULT: Any other format Pillow can write, saved with default settings.
    """
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"
    DEFAULT = "default"

    @classmethod
    def from_extension(cls, extension: str) -> 'OutputCodec':
        """Map a file extension (with or without the dot, any case) to a codec."""
        ext = extension.lower().lstrip('.')
        if ext in ('jpg', 'jpeg'):
            return cls.JPEG
        if ext == 'png':
            return cls.PNG
        if ext == 'webp':
            return cls.WEBP
        if ext == 'avif':
            return cls.AVIF
        return cls.DEFAULT


class StorageRoot(BaseModel):
    """Directory that relative tool paths are resolved against.

    Components receive a StorageRoot at construction instead of relying on the
    process working directory.

    Attributes:
        path: Absolute path of the root directory.
    """
    model_config = ConfigDict(frozen=True)

    path: str

    @field_validator('path')
    @classmethod
    def normalize_path(cls, v: str) -> str:
        """Expand ``~`` and make the root absolute."""
        if not v:
            raise ValueError("Storage root path must not be empty")
        return os.path.abspath(os.path.expanduser(v))

    def resolve(self, path: str) -> str:
        """Resolve a tool-supplied path against this root.

        Args:
            path: Absolute path, or a path relative to the root.

        Returns:
            Normalized absolute path.
        """
        expanded = os.path.expanduser(path)
        if os.path.isabs(expanded):
            return os.path.normpath(expanded)
        return os.path.normpath(os.path.join(self.path, expanded))

    @property
    def output_dir(self) -> str:
        """Directory where generated images are saved."""
        return os.path.join(self.path, DEFAULT_OUTPUT_DIR)


class GeneratedImage(BaseModel):
    """Outcome for one image of a generation batch.

    Attributes:
        url: Transient URL returned by the provider.
        saved_path: Absolute path of the downloaded file, or None if the download failed.
        revised_prompt: Prompt as rewritten by the provider, if any.
        error: Failure marker when the image could not be saved.
    """
    url: Optional[str] = None
    saved_path: Optional[str] = None
    revised_prompt: Optional[str] = None
    error: Optional[str] = None


class ImageGenerationResponse(BaseModel):
    """Response of the generate_image tool.

    Attributes:
        status: 'success' when the provider call succeeded, even if some downloads failed.
        images: Per-image results in provider order.
    """
    status: str
    images: List[GeneratedImage] = Field(default_factory=list)


class FileOperationResponse(BaseModel):
    """Response of the download_image and optimize_image tools.

    Attributes:
        status: Status of the operation.
        file_path: Absolute path of the written file (serialized as ``filePath``).
    """
    model_config = ConfigDict(populate_by_name=True, serialize_by_alias=True)

    status: str
    file_path: str = Field(alias='filePath')

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
"""Pydantic models for image generation, download and optimization requests.

This module defines the data models and validation logic for the three tools
exposed by the server.
"""

from awslabs.image_downloader_mcp_server.consts import (
    DEFAULT_NUMBER_OF_IMAGES,
    DEFAULT_OPTIMIZE_QUALITY,
    MAX_NUMBER_OF_IMAGES,
    MAX_PROMPT_LENGTH,
    MAX_QUALITY,
    MIN_QUALITY,
)
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional


class ImageSize(str, Enum):
    """DALL-E output sizes.

    Attributes:
        SQUARE_256: 256x256 (dall-e-2 only).
        SQUARE_512: 512x512 (dall-e-2 only).
        SQUARE_1024: 1024x1024 square format.
        LANDSCAPE: 1792x1024 landscape format (dall-e-3).
        PORTRAIT: 1024x1792 portrait format (dall-e-3).
    """
    SQUARE_256 = "256x256"
    SQUARE_512 = "512x512"
    SQUARE_1024 = "1024x1024"
    LANDSCAPE = "1792x1024"
    PORTRAIT = "1024x1792"


class ImageQuality(str, Enum):
    """DALL-E quality options.

    Attributes:
        STANDARD: Default quality.
        HD: Finer detail and greater consistency (dall-e-3).
    """
    STANDARD = "standard"
    HD = "hd"


class ImageGenerationParams(BaseModel):
    """Parameters for text-to-image generation.

    Attributes:
        prompt: Text description of the image to generate (1-4000 characters).
        size: Output image size.
        quality: Output image quality.
        n: Number of images to generate (1-10).
    """
    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)
    size: ImageSize = ImageSize.SQUARE_1024
    quality: ImageQuality = ImageQuality.STANDARD
    n: int = Field(default=DEFAULT_NUMBER_OF_IMAGES, ge=1, le=MAX_NUMBER_OF_IMAGES)


class DownloadRequest(BaseModel):
    """A single download of ``source_url`` into ``destination_path``.

    The request is immutable; redirect handling tracks the current hop URL
    separately instead of rewriting ``source_url``.
    """
    model_config = ConfigDict(frozen=True)

    source_url: str = Field(..., min_length=1)
    destination_path: str = Field(..., min_length=1)


class OptimizeRequest(BaseModel):
    """Parameters for re-encoding and optionally shrinking an image.

    Attributes:
        source_path: Image to read.
        destination_path: File to write; its extension selects the output codec.
        target_width: Maximum output width in pixels.
        target_height: Maximum output height in pixels.
        quality: Encoder quality (1-100). For PNG it is mapped onto compression effort.
    """
    model_config = ConfigDict(frozen=True)

    source_path: str = Field(..., min_length=1)
    destination_path: str = Field(..., min_length=1)
    target_width: Optional[int] = Field(default=None, ge=1)
    target_height: Optional[int] = Field(default=None, ge=1)
    quality: int = Field(default=DEFAULT_OPTIMIZE_QUALITY, ge=MIN_QUALITY, le=MAX_QUALITY)

    @field_validator('quality', mode='before')
    @classmethod
    def default_quality(cls, v):
        """Treat an explicit None as the default quality."""
        if v is None:
            return DEFAULT_OPTIMIZE_QUALITY
        return v

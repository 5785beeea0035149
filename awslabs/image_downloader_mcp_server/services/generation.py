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
"""Text-to-image generation through the OpenAI Images API.

The provider returns short-lived URLs. Each one is downloaded into the
storage root; a failed download is reported on that image only and never
aborts the rest of the batch.
"""

import asyncio
import os
import time
from awslabs.image_downloader_mcp_server.consts import (
    DALLE_MODEL_ID,
    GENERATED_FILENAME_PREFIX,
)
from awslabs.image_downloader_mcp_server.models.common import (
    GeneratedImage,
    ImageGenerationResponse,
)
from awslabs.image_downloader_mcp_server.models.image_models import ImageGenerationParams
from awslabs.image_downloader_mcp_server.services.fetcher import FetchError, ImageFetcher
from loguru import logger
from openai import AsyncOpenAI, OpenAIError
from typing import Any, List


class ImageGenerationError(Exception):
    """Raised when the provider call fails or returns no images.

    Attributes:
        message: Human-readable error message.
    """
    def __init__(self, message: str):
        """Initialize ImageGenerationError.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)


async def request_images(
    params: ImageGenerationParams,
    openai_client: AsyncOpenAI,
    model: str = DALLE_MODEL_ID
) -> List[Any]:
    """Ask the provider for images and return its per-image results.

    Args:
        params: Validated generation parameters.
        openai_client: AsyncOpenAI client.
        model: Provider model ID.

    Returns:
        List of provider image objects, each with ``url`` and ``revised_prompt``.

    Raises:
        ImageGenerationError: On provider failures or an empty result.
    """
    logger.info(
        f'Sending image generation request to {model}',
        extra={
            'model': model,
            'size': params.size.value,
            'quality': params.quality.value,
            'n': params.n,
            'prompt_length': len(params.prompt)
        }
    )

    try:
        response = await openai_client.images.generate(
            model=model,
            prompt=params.prompt,
            n=params.n,
            size=params.size.value,
            quality=params.quality.value,
            response_format='url',
        )
    except OpenAIError as e:
        logger.bind(model=model, error_type=type(e).__name__).error(
            f'Image generation request failed: {str(e)}'
        )
        raise ImageGenerationError(f"Image generation failed: {str(e)}") from e

    images = list(response.data or [])
    if not images:
        raise ImageGenerationError("No images returned from the image generation API")
    return images


async def save_generated_image(
    image: Any,
    index: int,
    fetcher: ImageFetcher,
    output_dir: str,
    batch_id: int
) -> GeneratedImage:
    """Download one generated image, reporting failure inline instead of raising."""
    url = getattr(image, 'url', None)
    revised_prompt = getattr(image, 'revised_prompt', None)

    if not url:
        logger.warning(f'Image {index + 1} has no URL', extra={'index': index})
        return GeneratedImage(
            url=None,
            saved_path=None,
            revised_prompt=revised_prompt,
            error='Failed to download image: no URL returned',
        )

    image_path = os.path.join(output_dir, f'{GENERATED_FILENAME_PREFIX}_{batch_id}_{index}.png')
    try:
        saved_path = await fetcher.fetch(url, image_path)
    except FetchError as e:
        logger.bind(index=index, error_type=type(e).__name__).error(
            f'Error downloading image {index + 1}: {e.message}'
        )
        return GeneratedImage(
            url=url,
            saved_path=None,
            revised_prompt=revised_prompt,
            error=f'Failed to download image: {e.message}',
        )

    return GeneratedImage(url=url, saved_path=saved_path, revised_prompt=revised_prompt)


async def generate_images(
    params: ImageGenerationParams,
    openai_client: AsyncOpenAI,
    fetcher: ImageFetcher,
    output_dir: str,
    model: str = DALLE_MODEL_ID
) -> ImageGenerationResponse:
    """Generate images and download them into ``output_dir``.

    Workflow:
    1. Validate parameters (handled by Pydantic model)
    2. Request images from the provider
    3. Download every returned URL concurrently
    4. Return per-image results, including failed downloads

    Args:
        params: Validated generation parameters.
        openai_client: AsyncOpenAI client.
        fetcher: Fetcher used to download the provider URLs.
        output_dir: Directory the images are saved to.
        model: Provider model ID.

    Returns:
        ImageGenerationResponse with one entry per generated image.

    Raises:
        ImageGenerationError: If the provider call fails.
    """
    images = await request_images(params, openai_client, model)

    batch_id = time.time_ns() // 1_000_000
    results = await asyncio.gather(
        *(
            save_generated_image(image, index, fetcher, output_dir, batch_id)
            for index, image in enumerate(images)
        )
    )

    saved_count = sum(1 for result in results if result.saved_path is not None)
    logger.info(
        f'Generated {len(results)} image(s), saved {saved_count}',
        extra={'model': model, 'output_dir': output_dir}
    )
    return ImageGenerationResponse(status='success', images=list(results))

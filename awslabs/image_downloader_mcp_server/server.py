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
"""Image Downloader MCP Server implementation."""

import argparse
import os
import sys
from awslabs.image_downloader_mcp_server.consts import (
    DALLE_MODEL_ID,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_IMAGE_SIZE,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_NUMBER_OF_IMAGES,
    DEFAULT_OPTIMIZE_QUALITY,
    DEFAULT_PORT,
    DEFAULT_TRANSPORT,
    OPTIMIZE_INSTRUCTIONS,
    PROMPT_INSTRUCTIONS,
)
from awslabs.image_downloader_mcp_server.models.common import (
    FileOperationResponse,
    ImageGenerationResponse,
    StorageRoot,
)
from awslabs.image_downloader_mcp_server.models.image_models import (
    ImageGenerationParams,
    ImageQuality,
    ImageSize,
)
from awslabs.image_downloader_mcp_server.services.fetcher import ImageFetcher
from awslabs.image_downloader_mcp_server.services.generation import generate_images
from awslabs.image_downloader_mcp_server.services.transcoder import ImageTranscoder
from functools import lru_cache
from loguru import logger
from mcp.server.fastmcp import Context, FastMCP
from openai import AsyncOpenAI
from pydantic import Field
from typing import Optional


# Logging
logger.remove()
logger.add(sys.stderr, level=os.getenv('FASTMCP_LOG_LEVEL', 'WARNING'))


# Storage and download configuration
default_storage_root = StorageRoot(
    path=os.environ.get('IMAGE_DOWNLOADER_STORAGE_ROOT') or os.getcwd()
)
# 0 disables the timeout
fetch_timeout: Optional[float] = (
    float(os.environ.get('IMAGE_DOWNLOADER_FETCH_TIMEOUT', DEFAULT_FETCH_TIMEOUT)) or None
)
max_redirects: int = int(os.environ.get('IMAGE_DOWNLOADER_MAX_REDIRECTS', DEFAULT_MAX_REDIRECTS))
dalle_model: str = os.environ.get('DALLE_MODEL', DALLE_MODEL_ID)

logger.bind(
    fetch_timeout=fetch_timeout, max_redirects=max_redirects, model=dalle_model
).info(f'Image downloader configured with storage root: {default_storage_root.path}')


@lru_cache(maxsize=1)
def get_openai_client() -> AsyncOpenAI:
    """Create the OpenAI client on first use.

    The SDK reads OPENAI_API_KEY from the environment and raises if it is missing,
    so this is deferred until a generation tool is actually called.
    """
    client = AsyncOpenAI()
    logger.info('OpenAI client initialized', extra={'model': dalle_model})
    return client


def get_storage_root(workspace_dir: Optional[str] = None) -> StorageRoot:
    """Return the storage root for a tool call."""
    if workspace_dir:
        return StorageRoot(path=workspace_dir)
    return default_storage_root


def build_fetcher(storage_root: StorageRoot) -> ImageFetcher:
    """Create a fetcher with the configured timeout and redirect limit."""
    return ImageFetcher(storage_root, timeout=fetch_timeout, max_redirects=max_redirects)


def build_transcoder(storage_root: StorageRoot) -> ImageTranscoder:
    """Create a transcoder for the given storage root."""
    return ImageTranscoder(storage_root)


# Create the MCP server with detailed instructions
mcp = FastMCP(
    'awslabs-image-downloader-mcp-server',
    instructions=f"""
# DALL-E Image Generation and Download

This MCP server generates images with OpenAI DALL-E, downloads images from URLs and optimizes
image files for the web.

## Available Tools

- **generate_image**: Generate images from a text prompt and save them to the workspace.
- **download_image**: Download an image from a URL to a file.
- **optimize_image**: Resize and re-encode an image (JPEG, PNG, WebP, AVIF).

## Prompt Best Practices

{PROMPT_INSTRUCTIONS}

## Download and Optimization

{OPTIMIZE_INSTRUCTIONS}
""",
    dependencies=[
        'pydantic',
        'openai',
        'httpx',
        'aiofiles',
        'pillow',
    ],
)


@mcp.tool(name='generate_image')
async def mcp_generate_image(
    ctx: Context,
    prompt: str = Field(
        description='The text description of the image to generate (1-4000 characters)'
    ),
    size: ImageSize = Field(
        default=ImageSize(DEFAULT_IMAGE_SIZE),
        description='The size of the generated image ("1024x1024", "1792x1024" or "1024x1792")',
    ),
    quality: ImageQuality = Field(
        default=ImageQuality(DEFAULT_IMAGE_QUALITY),
        description='The quality of the generated image ("standard" or "hd")',
    ),
    n: int = Field(
        default=DEFAULT_NUMBER_OF_IMAGES,
        description='The number of images to generate (1-10; dall-e-3 supports only 1)',
    ),
    workspace_dir: Optional[str] = Field(
        default=None,
        description="""The current workspace directory where the images should be saved.
        Images are written to the images/ folder inside it.""",
    ),
) -> ImageGenerationResponse:
    """Generate images with DALL-E from a text prompt.

    The images are downloaded from the provider's temporary URLs into the
    workspace. A download that fails is reported on that image with
    saved_path set to null; the other images are still returned.

    ## Prompt Best Practices

    An effective prompt often includes short descriptions of:
    1. The subject
    2. The environment
    3. (optional) Lighting, framing and the visual style or medium

    Returns:
        ImageGenerationResponse: One entry per image with url, saved_path and revised_prompt.
    """
    logger.debug(f"MCP tool generate_image called with prompt: '{prompt[:30]}...', size: {size}")

    try:
        params = ImageGenerationParams(prompt=prompt, size=size, quality=quality, n=n)
        storage_root = get_storage_root(workspace_dir)

        return await generate_images(
            params=params,
            openai_client=get_openai_client(),
            fetcher=build_fetcher(storage_root),
            output_dir=storage_root.output_dir,
            model=dalle_model,
        )
    except Exception as e:
        logger.error(f'Error in mcp_generate_image: {str(e)}')
        await ctx.error(f'Error generating image: {str(e)}')
        raise


@mcp.tool(name='download_image')
async def mcp_download_image(
    ctx: Context,
    url: str = Field(description='The http(s) URL of the image to download'),
    output_path: str = Field(
        description='Where to save the image; relative paths are resolved against workspace_dir'
    ),
    workspace_dir: Optional[str] = Field(
        default=None,
        description='The current workspace directory used to resolve relative paths.',
    ),
) -> FileOperationResponse:
    """Download an image from a URL to a file.

    HTTP 301/302 redirects are followed. Missing directories are created.
    If the download fails, no partial file is left at output_path.

    Returns:
        FileOperationResponse: A response containing the saved file path.
    """
    logger.debug(f'MCP tool download_image called: {url} -> {output_path}')

    try:
        storage_root = get_storage_root(workspace_dir)
        file_path = await build_fetcher(storage_root).fetch(url, output_path)
        return FileOperationResponse(status='success', file_path=file_path)
    except Exception as e:
        logger.error(f'Error in mcp_download_image: {str(e)}')
        await ctx.error(f'Error downloading image: {str(e)}')
        raise


@mcp.tool(name='optimize_image')
async def mcp_optimize_image(
    ctx: Context,
    input_path: str = Field(description='The image file to optimize'),
    output_path: str = Field(
        description='Where to save the result; the extension selects the format (.jpg, .png, .webp, .avif)'
    ),
    width: Optional[int] = Field(
        default=None,
        description='Maximum width in pixels; aspect ratio is preserved and images are never enlarged',
    ),
    height: Optional[int] = Field(
        default=None,
        description='Maximum height in pixels; aspect ratio is preserved and images are never enlarged',
    ),
    quality: Optional[int] = Field(
        default=DEFAULT_OPTIMIZE_QUALITY,
        description='Encoder quality (1-100). For PNG this maps onto compression effort.',
    ),
    workspace_dir: Optional[str] = Field(
        default=None,
        description='The current workspace directory used to resolve relative paths.',
    ),
) -> FileOperationResponse:
    """Resize and re-encode an image file.

    The output format follows the output_path extension. When width and/or
    height are given, the image is shrunk to fit inside that box.

    Returns:
        FileOperationResponse: A response containing the optimized file path.
    """
    logger.debug(
        f'MCP tool optimize_image called: {input_path} -> {output_path} '
        f'({width}x{height}, quality: {quality})'
    )

    try:
        storage_root = get_storage_root(workspace_dir)
        file_path = await build_transcoder(storage_root).transcode(
            input_path,
            output_path,
            target_width=width,
            target_height=height,
            quality=DEFAULT_OPTIMIZE_QUALITY if quality is None else quality,
        )
        return FileOperationResponse(status='success', file_path=file_path)
    except Exception as e:
        logger.error(f'Error in mcp_optimize_image: {str(e)}')
        await ctx.error(f'Error optimizing image: {str(e)}')
        raise


def main():
    """Run the MCP server with CLI argument support."""
    parser = argparse.ArgumentParser(description='Image downloader MCP server')
    parser.add_argument(
        '--transport',
        choices=['stdio', 'sse', 'streamable-http'],
        default=os.environ.get('MCP_TRANSPORT', DEFAULT_TRANSPORT),
    )
    parser.add_argument('--host', default=os.environ.get('HOST', DEFAULT_HOST))
    parser.add_argument('--port', type=int, default=int(os.environ.get('PORT', DEFAULT_PORT)))
    args = parser.parse_args()

    mcp.settings.host = args.host
    mcp.settings.port = args.port

    logger.info(
        f'Starting image-downloader MCP server ({args.transport})',
        extra={'host': args.host, 'port': args.port}
    )
    mcp.run(transport=args.transport)


if __name__ == '__main__':
    main()

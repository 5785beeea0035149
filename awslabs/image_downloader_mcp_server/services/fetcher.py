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
"""Streaming image downloader.

This module downloads a URL to a file without buffering the body in memory.
Redirects are followed by hand so that the partial file of each redirecting
hop can be discarded, and any failure removes the destination file.
"""

import aiofiles
import httpx
from awslabs.image_downloader_mcp_server.consts import (
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_MAX_REDIRECTS,
    DOWNLOAD_CHUNK_SIZE,
    REDIRECT_STATUS_CODES,
    SUPPORTED_URL_SCHEMES,
)
from awslabs.image_downloader_mcp_server.models.common import StorageRoot
from awslabs.image_downloader_mcp_server.models.image_models import DownloadRequest
from awslabs.image_downloader_mcp_server.utils.file_utils import (
    ensure_parent_dir,
    remove_file_quietly,
)
from loguru import logger
from typing import Optional


class FetchError(Exception):
    """Raised when an image cannot be downloaded.

    Attributes:
        message: Human-readable error message.
        url: URL of the hop that failed, if known.
    """
    def __init__(self, message: str, url: Optional[str] = None):
        """Initialize FetchError.

        Args:
            message: Human-readable error message.
            url: URL of the hop that failed.
        """
        self.message = message
        self.url = url
        super().__init__(message)


class FetchTimeoutError(FetchError, TimeoutError):
    """Raised when the download does not complete within the configured timeout."""


class TooManyRedirectsError(FetchError):
    """Raised when a redirect chain is longer than the configured limit."""


class ImageFetcher:
    """Downloads URLs into files under a storage root.

    Attributes:
        storage_root: Root that relative destination paths are resolved against.
        timeout: Per-operation network timeout in seconds, or None for no timeout.
        max_redirects: Maximum number of 301/302 hops to follow.
    """

    def __init__(
        self,
        storage_root: StorageRoot,
        timeout: Optional[float] = DEFAULT_FETCH_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the fetcher.

        Args:
            storage_root: Root that relative destination paths are resolved against.
            timeout: Network timeout in seconds, or None to wait indefinitely.
            max_redirects: Maximum number of redirects to follow (>= 0).
            transport: Optional httpx transport, mainly for tests.
        """
        if max_redirects < 0:
            raise ValueError(f"max_redirects must be non-negative: {max_redirects}")
        self.storage_root = storage_root
        self.timeout = timeout
        self.max_redirects = max_redirects
        self._transport = transport

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=False,
        )

    async def fetch(self, source_url: str, destination_path: str) -> str:
        """Download ``source_url`` into ``destination_path``.

        Workflow:
        1. Resolve the destination and create its parent directory
        2. Request the URL, writing the body to the destination as it streams
        3. On 301/302, discard the partial file and repeat against ``Location``
        4. On any failure, remove the destination file and raise FetchError

        Args:
            source_url: http(s) URL to download.
            destination_path: Target file, absolute or relative to the storage root.

        Returns:
            Absolute path of the downloaded file.

        Raises:
            FetchError: On network, protocol or write failures.
            FetchTimeoutError: When the timeout expires.
            TooManyRedirectsError: When the redirect limit is exceeded.
        """
        request = DownloadRequest(source_url=source_url, destination_path=destination_path)
        output_path = self.storage_root.resolve(request.destination_path)

        log = logger.bind(url=request.source_url, path=output_path)
        log.debug(f'Downloading image: {request.source_url} -> {output_path}')

        try:
            await ensure_parent_dir(output_path)
            async with self._build_client() as client:
                final_url = await self._follow_redirects(client, request.source_url, output_path)

        except FetchError as e:
            await remove_file_quietly(output_path)
            log.bind(error_type=type(e).__name__).error(f'Image download failed: {e.message}')
            raise

        except httpx.TimeoutException as e:
            await remove_file_quietly(output_path)
            log.bind(timeout=self.timeout).error(
                f'Image download timed out after {self.timeout}s: {request.source_url}'
            )
            raise FetchTimeoutError(
                f"Timed out downloading {request.source_url}: {_describe(e)}",
                request.source_url,
            ) from e

        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            await remove_file_quietly(output_path)
            log.bind(error_type=type(e).__name__).error(f'Image download failed: {_describe(e)}')
            raise FetchError(_describe(e), request.source_url) from e

        except Exception as e:
            await remove_file_quietly(output_path)
            log.exception(f'Unexpected error downloading image: {request.source_url}')
            raise FetchError(f"Unexpected error: {_describe(e)}", request.source_url) from e

        log.bind(final_url=final_url).info(f'Downloaded image to: {output_path}')
        return output_path

    async def _follow_redirects(
        self, client: httpx.AsyncClient, source_url: str, output_path: str
    ) -> str:
        """Fetch hops until one is not a redirect; return the URL that was written."""
        current_url = source_url
        hops = 0
        while True:
            location = await self._fetch_hop(client, current_url, output_path)
            if location is None:
                return current_url

            # The redirect body was written to the destination; drop it before the next hop
            await remove_file_quietly(output_path)

            hops += 1
            if hops > self.max_redirects:
                raise TooManyRedirectsError(
                    f"Exceeded maximum of {self.max_redirects} redirects "
                    f"while downloading {source_url}",
                    current_url,
                )
            logger.bind(hop=hops).debug(f'Following redirect {hops}: {current_url} -> {location}')
            current_url = location

    async def _fetch_hop(
        self, client: httpx.AsyncClient, url: str, output_path: str
    ) -> Optional[str]:
        """Request ``url`` once.

        Returns:
            The absolute redirect target for a 301/302 response, otherwise None
            after the body has been written to ``output_path``.
        """
        if not url.lower().startswith(SUPPORTED_URL_SCHEMES):
            raise FetchError(f"Unsupported URL scheme: {url}", url)

        async with aiofiles.open(output_path, 'wb') as out_file:
            async with client.stream('GET', url) as response:
                if response.status_code in REDIRECT_STATUS_CODES:
                    location = response.headers.get('location')
                    if not location:
                        raise FetchError(
                            f"Redirect ({response.status_code}) without Location header from {url}",
                            url,
                        )
                    return str(response.url.join(location))

                if not response.is_success:
                    logger.bind(url=url, status_code=response.status_code).warning(
                        f'Writing body of non-success response ({response.status_code}) from {url}'
                    )

                bytes_written = 0
                async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                    await out_file.write(chunk)
                    bytes_written += len(chunk)

        logger.bind(url=url, bytes=bytes_written).debug(f'Streamed {bytes_written} bytes from {url}')
        return None


def _describe(error: Exception) -> str:
    """Return the error message, falling back to the exception type name."""
    return str(error) or type(error).__name__

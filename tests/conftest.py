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
"""Test fixtures for the image-downloader-mcp-server tests."""

import os
import pytest
from awslabs.image_downloader_mcp_server.models.common import StorageRoot
from PIL import Image
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def temp_workspace_dir(tmp_path):
    """Temporary workspace directory."""
    workspace_dir = tmp_path / 'workspace'
    workspace_dir.mkdir()
    return str(workspace_dir)


@pytest.fixture
def storage_root(temp_workspace_dir):
    """Storage root pointing at the temporary workspace."""
    return StorageRoot(path=temp_workspace_dir)


@pytest.fixture
def mock_context():
    """Mock MCP context with async reporting methods."""
    context = MagicMock()
    context.error = AsyncMock()
    context.info = AsyncMock()
    return context


@pytest.fixture
def sample_text_prompt():
    """Sample text prompt for image generation."""
    return 'A watercolor painting of a lighthouse on a cliff at dawn'


@pytest.fixture
def png_bytes():
    """1200 bytes standing in for a downloaded PNG body."""
    return b'\x89PNG\r\n\x1a\n' + bytes(range(256)) * 4 + b'\x00' * 168


def write_test_image(path, width=2000, height=1000, mode='RGB', color='blue', format=None):
    """Create an image file on disk and return its path."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    image = Image.new(mode, (width, height), color=color)
    image.save(path, format=format)
    return path


@pytest.fixture
def landscape_image(temp_workspace_dir):
    """2000x1000 PNG in the workspace."""
    return write_test_image(os.path.join(temp_workspace_dir, 'source', 'landscape.png'))


@pytest.fixture
def small_image(temp_workspace_dir):
    """300x200 PNG in the workspace."""
    return write_test_image(
        os.path.join(temp_workspace_dir, 'source', 'small.png'), width=300, height=200
    )


@pytest.fixture
def transparent_image(temp_workspace_dir):
    """RGBA PNG with a semi-transparent background."""
    return write_test_image(
        os.path.join(temp_workspace_dir, 'source', 'transparent.png'),
        width=400,
        height=400,
        mode='RGBA',
        color=(255, 0, 0, 128),
    )

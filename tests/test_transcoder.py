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
"""Tests for the image optimization service."""

import os
import pytest
from awslabs.image_downloader_mcp_server.models.common import OutputCodec
from awslabs.image_downloader_mcp_server.services.transcoder import (
    ImageTranscoder,
    TranscodeError,
    resolve_output_codec,
)
from PIL import Image, features
from pydantic import ValidationError
from unittest.mock import patch


def read_image_info(path):
    """Return (format, size, mode) of an image file."""
    with Image.open(path) as image:
        return image.format, image.size, image.mode


def write_striped_image(path, mode):
    """400x400 image of alternating 1px black and white columns."""
    image = Image.new(mode, (400, 400))
    if mode == 'P':
        image.putpalette([0, 0, 0, 255, 255, 255])
        white = 1
    else:
        white = 255
    image.putdata([white if x % 2 else 0 for _ in range(400) for x in range(400)])
    image.save(path)
    return path


def grey_pixel_count(path):
    """Number of pixels that are neither near-black nor near-white."""
    with Image.open(path) as image:
        histogram = image.convert('L').histogram()
    return sum(histogram[32:224])


class TestResolveOutputCodec:
    """Tests for the resolve_output_codec function."""

    @pytest.mark.parametrize(
        'path, codec, image_format',
        [
            ('out/a.jpg', OutputCodec.JPEG, 'JPEG'),
            ('out/a.JPEG', OutputCodec.JPEG, 'JPEG'),
            ('out/a.png', OutputCodec.PNG, 'PNG'),
            ('out/a.webp', OutputCodec.WEBP, 'WEBP'),
            ('out/a.bmp', OutputCodec.DEFAULT, 'BMP'),
            ('out/a.gif', OutputCodec.DEFAULT, 'GIF'),
        ],
    )
    def test_known_extensions(self, path, codec, image_format):
        """Test codec selection for extensions Pillow can write."""
        assert resolve_output_codec(path) == (codec, image_format)

    def test_unknown_extension(self):
        """Test that an extension Pillow cannot write is rejected."""
        with pytest.raises(TranscodeError, match='Unsupported output extension: .xyz'):
            resolve_output_codec('out/a.xyz')

    def test_missing_extension(self):
        """Test that a path without an extension is rejected."""
        with pytest.raises(TranscodeError, match='no file extension'):
            resolve_output_codec('out/image')


class TestTranscodeResize:
    """Tests for bounding-box resizing."""

    @pytest.mark.asyncio
    async def test_width_only_jpeg(self, storage_root, landscape_image):
        """Test 2000x1000 to width 500 as JPEG."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(
            landscape_image, 'out/landscape.jpg', target_width=500, quality=80
        )

        assert result == os.path.join(storage_root.path, 'out', 'landscape.jpg')
        image_format, size, _ = read_image_info(result)
        assert image_format == 'JPEG'
        assert size == (500, 250)

    @pytest.mark.asyncio
    async def test_height_only(self, storage_root, landscape_image):
        """Test that a height-only box scales the width proportionally."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(landscape_image, 'out/a.png', target_height=100)

        assert read_image_info(result)[1] == (200, 100)

    @pytest.mark.asyncio
    async def test_both_dimensions_fit_inside(self, storage_root, landscape_image):
        """Test that the result fits inside the box on the constraining axis."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(
            landscape_image, 'out/a.webp', target_width=400, target_height=400
        )

        image_format, size, _ = read_image_info(result)
        assert image_format == 'WEBP'
        assert size == (400, 200)

    @pytest.mark.asyncio
    async def test_no_upscaling(self, storage_root, small_image):
        """Test that a box larger than the image keeps the original size."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(
            small_image, 'out/small.jpg', target_width=3000, target_height=3000
        )

        assert read_image_info(result)[1] == (300, 200)

    @pytest.mark.asyncio
    async def test_no_resize_without_box(self, storage_root, landscape_image):
        """Test that omitting both dimensions keeps the original size."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(landscape_image, 'out/a.jpg')

        assert read_image_info(result)[1] == (2000, 1000)


class TestTranscodeFormats:
    """Tests for format-specific encoding."""

    @pytest.mark.asyncio
    async def test_png_quality_changes_effort_not_size(self, storage_root, landscape_image):
        """Test that PNG quality 100 and 10 produce the same dimensions."""
        transcoder = ImageTranscoder(storage_root)

        high = await transcoder.transcode(landscape_image, 'out/high.png', quality=100)
        low = await transcoder.transcode(landscape_image, 'out/low.png', quality=10)

        assert read_image_info(high)[:2] == ('PNG', (2000, 1000))
        assert read_image_info(low)[:2] == ('PNG', (2000, 1000))

    @pytest.mark.asyncio
    async def test_png_compress_level_passed_to_encoder(self, storage_root, small_image):
        """Test that PNG quality is mapped onto compress_level."""
        transcoder = ImageTranscoder(storage_root)

        with patch.object(Image.Image, 'save', autospec=True) as mock_save:
            await transcoder.transcode(small_image, 'out/a.png', quality=50)

        _, _, kwargs = mock_save.mock_calls[0]
        assert kwargs['format'] == 'PNG'
        assert kwargs['compress_level'] == 5

    @pytest.mark.asyncio
    async def test_jpeg_quality_passed_to_encoder(self, storage_root, small_image):
        """Test that JPEG quality is passed through."""
        transcoder = ImageTranscoder(storage_root)

        with patch.object(Image.Image, 'save', autospec=True) as mock_save:
            await transcoder.transcode(small_image, 'out/a.jpg', quality=35)

        _, _, kwargs = mock_save.mock_calls[0]
        assert kwargs == {'format': 'JPEG', 'quality': 35}

    @pytest.mark.asyncio
    async def test_lower_jpeg_quality_is_smaller(self, storage_root, temp_workspace_dir):
        """Test that JPEG quality affects the encoded size."""
        source = os.path.join(temp_workspace_dir, 'noise.png')
        Image.frombytes('RGB', (256, 256), os.urandom(256 * 256 * 3)).save(source)
        transcoder = ImageTranscoder(storage_root)

        high = await transcoder.transcode(source, 'out/high.jpg', quality=95)
        low = await transcoder.transcode(source, 'out/low.jpg', quality=10)

        assert os.path.getsize(low) < os.path.getsize(high)

    @pytest.mark.asyncio
    async def test_rgba_to_jpeg(self, storage_root, transparent_image):
        """Test that images with alpha are converted for JPEG output."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(transparent_image, 'out/a.jpg')

        image_format, _, mode = read_image_info(result)
        assert image_format == 'JPEG'
        assert mode == 'RGB'

    @pytest.mark.asyncio
    async def test_rgba_to_webp_keeps_alpha(self, storage_root, transparent_image):
        """Test that WebP output keeps transparency."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(transparent_image, 'out/a.webp', quality=90)

        assert read_image_info(result)[2] == 'RGBA'

    @pytest.mark.asyncio
    @pytest.mark.skipif(not features.check('avif'), reason='Pillow built without AVIF support')
    async def test_avif_output(self, storage_root, landscape_image):
        """Test AVIF output."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(
            landscape_image, 'out/a.avif', target_width=200, quality=60
        )

        assert read_image_info(result)[:2] == ('AVIF', (200, 100))

    @pytest.mark.asyncio
    async def test_default_codec_for_other_extensions(self, storage_root, landscape_image):
        """Test that other writable extensions use encoder defaults."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(landscape_image, 'out/a.bmp', target_width=100)

        assert read_image_info(result)[:2] == ('BMP', (100, 50))

    @pytest.mark.asyncio
    async def test_uppercase_extension(self, storage_root, landscape_image):
        """Test that extension matching is case-insensitive."""
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(landscape_image, 'out/A.JPG', target_width=100)

        assert read_image_info(result)[0] == 'JPEG'

    @pytest.mark.asyncio
    async def test_overwrites_existing_destination(self, storage_root, landscape_image):
        """Test that an existing destination is replaced."""
        destination = os.path.join(storage_root.path, 'a.png')
        with open(destination, 'wb') as f:
            f.write(b'stale')
        transcoder = ImageTranscoder(storage_root)

        await transcoder.transcode(landscape_image, destination, target_width=10)

        assert read_image_info(destination)[1] == (10, 5)
        assert not os.path.exists(destination + '.part')


class TestTranscodeColorModes:
    """Tests for sources whose mode the encoder or resampler cannot use directly."""

    @pytest.mark.asyncio
    async def test_cmyk_to_png(self, storage_root, temp_workspace_dir):
        """Test that CMYK sources are converted for PNG output."""
        source = os.path.join(temp_workspace_dir, 'print.tif')
        Image.new('CMYK', (200, 100), (255, 0, 0, 0)).save(source, format='TIFF')
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(source, 'out/print.png', target_width=50)

        assert read_image_info(result) == ('PNG', (50, 25), 'RGB')

    @pytest.mark.asyncio
    async def test_cmyk_to_png_without_resize(self, storage_root, temp_workspace_dir):
        """Test the CMYK conversion when no bounding box is given."""
        source = os.path.join(temp_workspace_dir, 'print.tif')
        Image.new('CMYK', (20, 10)).save(source, format='TIFF')
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(source, 'out/print.png')

        assert read_image_info(result) == ('PNG', (20, 10), 'RGB')

    @pytest.mark.asyncio
    async def test_cmyk_to_default_codec(self, storage_root, temp_workspace_dir):
        """Test that a mode BMP cannot store is flattened instead of failing."""
        source = os.path.join(temp_workspace_dir, 'print.tif')
        Image.new('CMYK', (200, 100)).save(source, format='TIFF')
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(source, 'out/print.bmp', target_width=50)

        assert read_image_info(result) == ('BMP', (50, 25), 'RGB')

    @pytest.mark.asyncio
    async def test_palette_source_resized_with_filtering(self, storage_root, temp_workspace_dir):
        """Test that palette images are averaged when shrunk, not point-sampled."""
        source = write_striped_image(os.path.join(temp_workspace_dir, 'stripes.png'), 'P')
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(source, 'out/stripes.png', target_width=100)

        assert read_image_info(result) == ('PNG', (100, 100), 'RGB')
        assert grey_pixel_count(result) > 0

    @pytest.mark.asyncio
    async def test_bilevel_source_resized_with_filtering(self, storage_root, temp_workspace_dir):
        """Test that 1-bit images are shrunk to greyscale."""
        source = write_striped_image(os.path.join(temp_workspace_dir, 'stripes.png'), '1')
        transcoder = ImageTranscoder(storage_root)

        result = await transcoder.transcode(source, 'out/stripes.png', target_width=100)

        assert read_image_info(result) == ('PNG', (100, 100), 'L')
        assert grey_pixel_count(result) > 0


class TestTranscodeFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_missing_source(self, storage_root):
        """Test that a missing source raises TranscodeError and writes nothing."""
        transcoder = ImageTranscoder(storage_root)
        destination = os.path.join(storage_root.path, 'out', 'a.jpg')

        with pytest.raises(TranscodeError) as exc_info:
            await transcoder.transcode('does/not/exist.png', destination)

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert exc_info.value.source_path == os.path.join(
            storage_root.path, 'does', 'not', 'exist.png'
        )
        assert not os.path.exists(destination)

    @pytest.mark.asyncio
    async def test_corrupt_source(self, storage_root, temp_workspace_dir):
        """Test that an undecodable source raises TranscodeError."""
        source = os.path.join(temp_workspace_dir, 'corrupt.png')
        with open(source, 'wb') as f:
            f.write(b'this is not an image')
        transcoder = ImageTranscoder(storage_root)
        destination = os.path.join(storage_root.path, 'out.png')

        with pytest.raises(TranscodeError, match='cannot identify image file'):
            await transcoder.transcode(source, destination)

        assert not os.path.exists(destination)
        assert not os.path.exists(destination + '.part')

    @pytest.mark.asyncio
    async def test_failure_keeps_existing_destination(self, storage_root, temp_workspace_dir):
        """Test that a failed transcode does not clobber an existing destination."""
        source = os.path.join(temp_workspace_dir, 'corrupt.png')
        with open(source, 'wb') as f:
            f.write(b'garbage')
        destination = os.path.join(storage_root.path, 'existing.png')
        with open(destination, 'wb') as f:
            f.write(b'previous result')
        transcoder = ImageTranscoder(storage_root)

        with pytest.raises(TranscodeError):
            await transcoder.transcode(source, destination)

        with open(destination, 'rb') as f:
            assert f.read() == b'previous result'

    @pytest.mark.asyncio
    async def test_unsupported_extension(self, storage_root, landscape_image):
        """Test that an unknown output extension is rejected before decoding."""
        transcoder = ImageTranscoder(storage_root)

        with patch(
            'awslabs.image_downloader_mcp_server.services.transcoder.transcode_image_file'
        ) as mock_transcode:
            with pytest.raises(TranscodeError, match='Unsupported output extension'):
                await transcoder.transcode(landscape_image, 'out/a.xyz')

        mock_transcode.assert_not_called()
        assert not os.path.exists(os.path.join(storage_root.path, 'out', 'a.xyz'))

    @pytest.mark.asyncio
    @pytest.mark.parametrize('quality', [0, 101, -5])
    async def test_quality_out_of_range(self, storage_root, landscape_image, quality):
        """Test that quality outside 1-100 is rejected."""
        transcoder = ImageTranscoder(storage_root)

        with pytest.raises(ValidationError):
            await transcoder.transcode(landscape_image, 'out/a.jpg', quality=quality)

    @pytest.mark.asyncio
    async def test_non_positive_dimensions(self, storage_root, landscape_image):
        """Test that zero width is rejected."""
        transcoder = ImageTranscoder(storage_root)

        with pytest.raises(ValidationError):
            await transcoder.transcode(landscape_image, 'out/a.jpg', target_width=0)

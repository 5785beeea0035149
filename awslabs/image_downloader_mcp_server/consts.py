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
# Constants
DALLE_MODEL_ID = 'dall-e-3'

# Image generation defaults
DEFAULT_IMAGE_SIZE = '1024x1024'
DEFAULT_IMAGE_QUALITY = 'standard'
DEFAULT_NUMBER_OF_IMAGES = 1
MAX_NUMBER_OF_IMAGES = 10
MAX_PROMPT_LENGTH = 4000
GENERATED_FILENAME_PREFIX = 'dalle'
DEFAULT_OUTPUT_DIR = 'images'  # Default directory inside the storage root

# Download defaults
DEFAULT_FETCH_TIMEOUT = 60.0  # Seconds; applies to connect, read, write and pool
DEFAULT_MAX_REDIRECTS = 10
DOWNLOAD_CHUNK_SIZE = 64 * 1024
REDIRECT_STATUS_CODES = (301, 302)
SUPPORTED_URL_SCHEMES = ('http://', 'https://')

# Optimization defaults
DEFAULT_OPTIMIZE_QUALITY = 80
MIN_QUALITY = 1
MAX_QUALITY = 100
PNG_MAX_COMPRESS_LEVEL = 9
PARTIAL_FILE_SUFFIX = '.part'

# Server defaults
DEFAULT_TRANSPORT = 'stdio'
DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 3000


# DALL-E Prompt Best Practices
PROMPT_INSTRUCTIONS = """
# DALL-E Prompting Best Practices

## General Guidelines

- Prompts may be up to 4000 characters for dall-e-3. Put the most important details first.
- Describe what should be in the image rather than what should not. DALL-E 3 has no negative prompt.
- dall-e-3 rewrites prompts for safety and detail. The rewritten text is returned as `revised_prompt`
  for each image; reuse it to reproduce or refine a result.

## Effective Prompt Structure

An effective prompt often includes short descriptions of:

1. The subject
2. The environment
3. (optional) The position or pose of the subject
4. (optional) Lighting description
5. (optional) Camera position/framing
6. (optional) The visual style or medium ("photo", "illustration", "painting", etc.)

## Size and Quality

- `size`: "1024x1024" (square), "1792x1024" (landscape) or "1024x1792" (portrait).
- `quality`: "standard" for drafts, "hd" for finer detail and more consistent results.
- dall-e-3 only generates one image per request; ask for `n=1`.

## Examples

- "realistic editorial photo of a teacher standing at a blackboard with a warm smile"
- "whimsical and ethereal soft-shaded story illustration: a woman in a large hat stands at the ship's railing looking out across the ocean"
- "drone view of a dark river winding through a stark Iceland landscape, cinematic quality"
"""


OPTIMIZE_INSTRUCTIONS = """
# Image Download and Optimization

- `download_image` streams a URL to a file, following HTTP 301/302 redirects.
  Relative paths are resolved against the workspace directory.
- `optimize_image` re-encodes an image and can shrink it to fit inside a width/height box.
  Images are never enlarged. The output format follows the output file extension:
  - `.jpg`/`.jpeg`: JPEG at `quality` (1-100)
  - `.png`: lossless PNG; `quality` maps onto compression effort 0-9
  - `.webp`: WebP at `quality`
  - `.avif`: AVIF at `quality`
  - other extensions Pillow can write (`.gif`, `.bmp`, `.tiff`, ...): default encoder settings
- Typical web asset: `optimize_image(input_path="images/hero.png", output_path="public/hero.webp", width=1200, quality=80)`
"""

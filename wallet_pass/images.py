# wallet_pass/images.py

"""
Pass Images

Helpers for putting icon, logo, strip and thumbnail images into a bundle.
Sources may be local files, raw bytes or http(s) URLs; every image is
flattened onto a white background and stored as PNG at the requested size,
plus an @2x variant at double size.
"""

import logging
import os
from io import BytesIO
from typing import Tuple, Union

import requests
from PIL import Image, UnidentifiedImageError

from wallet_pass.bundle import BundleStore
from wallet_pass.exceptions import TemplateReadError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10

# Point sizes for @1x images
ICON_SIZE = (29, 29)
LOGO_SIZE = (160, 50)
STRIP_SIZE = (320, 84)
THUMBNAIL_SIZE = (90, 90)

ImageSource = Union[str, bytes, os.PathLike]


def load_image_source(source: ImageSource) -> bytes:
    """
    Read image bytes from a path, raw bytes or an http(s) URL.

    Raises:
        TemplateReadError: File unreadable or the download failed
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)

    location = os.fspath(source)
    if location.startswith(('http://', 'https://')):
        try:
            response = requests.get(location, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Error fetching image from {location}: {e}")
            raise TemplateReadError(f"Can't download image {location}: {e}") from e
        return response.content

    try:
        with open(location, 'rb') as f:
            return f.read()
    except OSError as e:
        raise TemplateReadError(f"Can't read image {location}: {e.strerror or e}") from e


def prepare_image(data: bytes, size: Tuple[int, int]) -> bytes:
    """
    Convert image bytes to an RGB PNG of exactly `size` pixels.

    Raises:
        TemplateReadError: The data isn't an image Pillow can decode
    """
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise TemplateReadError(f"Unsupported or corrupt image data: {e}") from e

    # Flatten transparency onto white
    if img.mode in ('RGBA', 'LA', 'P'):
        background = Image.new('RGB', img.size, (255, 255, 255))
        if img.mode == 'P':
            img = img.convert('RGBA')
        if img.mode in ('RGBA', 'LA'):
            background.paste(img, mask=img.split()[-1])
        else:
            background.paste(img)
        img = background
    elif img.mode != 'RGB':
        img = img.convert('RGB')

    if img.size != tuple(size):
        img = img.resize(tuple(size), Image.Resampling.LANCZOS)

    output = BytesIO()
    img.save(output, format='PNG', optimize=True)
    return output.getvalue()


def add_image(bundle: BundleStore, name: str, source: ImageSource,
              size: Tuple[int, int], retina: bool = True):
    """
    Put `<name>.png` (and `<name>@2x.png`) into the bundle.

    Args:
        bundle: Target bundle
        name: Image name without extension, e.g. 'icon', 'en.lproj/logo'
        source: Path, bytes or URL
        size: @1x size in pixels
        retina: Also write the @2x variant
    """
    data = load_image_source(source)
    width, height = size

    bundle.put(f"{name}.png", prepare_image(data, (width, height)))
    if retina:
        bundle.put(f"{name}@2x.png", prepare_image(data, (width * 2, height * 2)))

    logger.debug(f"Added image {name} ({width}x{height}{', @2x' if retina else ''})")

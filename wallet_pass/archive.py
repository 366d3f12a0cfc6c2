# wallet_pass/archive.py

"""
Archiver

Writes a bundle as a deflate-compressed zip. Every bundle entry becomes one
archive member under its bundle path, with no directory entries and no common
prefix.

write_archive() never leaves a partial file at the destination: the zip is
written to a temporary file in the destination directory, synced and then
moved into place with os.replace().
"""

import logging
import os
import tempfile
import zipfile
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Union

from wallet_pass.bundle import BundleStore
from wallet_pass.exceptions import ArchiveWriteError, TemplateReadError

logger = logging.getLogger(__name__)

COMPRESSION = zipfile.ZIP_DEFLATED


def _write_members(bundle: BundleStore, stream: BinaryIO):
    with zipfile.ZipFile(stream, mode='w', compression=COMPRESSION) as archive:
        for path, data in bundle.entries():
            archive.writestr(path, data)


def archive_bytes(bundle: BundleStore) -> bytes:
    """Render the archive in memory."""
    buffer = BytesIO()
    _write_members(bundle, buffer)
    return buffer.getvalue()


def write_archive(bundle: BundleStore, output_path: Union[str, os.PathLike]) -> Path:
    """
    Write the bundle to output_path atomically.

    Args:
        bundle: Complete bundle, including manifest.json and signature
        output_path: Destination .pkpass file; replaced if it exists

    Returns:
        The destination path

    Raises:
        ArchiveWriteError: Destination directory missing or not writable,
            or writing the archive failed. An existing file at output_path
            is left untouched.
    """
    destination = Path(output_path)
    directory = destination.parent if str(destination.parent) else Path('.')

    try:
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{destination.name}.", suffix='.tmp', dir=directory
        )
    except OSError as e:
        logger.error(f"Can't create temporary archive in {directory}: {e}")
        raise ArchiveWriteError(f"Can't write to {directory}: {e.strerror or e}") from e

    replaced = False
    try:
        with os.fdopen(fd, 'wb') as stream:
            _write_members(bundle, stream)
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(temp_name, destination)
        replaced = True
    except (OSError, zipfile.LargeZipFile) as e:
        logger.error(f"Failed to write archive {destination}: {e}")
        raise ArchiveWriteError(f"Failed to write archive {destination}: {e}") from e
    finally:
        if not replaced and os.path.exists(temp_name):
            os.unlink(temp_name)

    logger.info(f"Wrote {destination} ({len(bundle)} members)")
    return destination


def read_archive(path: Union[str, os.PathLike]) -> BundleStore:
    """Load the members of an existing .pkpass into a bundle."""
    try:
        with zipfile.ZipFile(path) as archive:
            bundle = BundleStore()
            for info in archive.infolist():
                if info.is_dir():
                    continue
                bundle.put(info.filename, archive.read(info))
    except (OSError, zipfile.BadZipFile) as e:
        raise TemplateReadError(f"Can't read archive {path}: {e}") from e

    logger.debug(f"Read {len(bundle)} members from {path}")
    return bundle

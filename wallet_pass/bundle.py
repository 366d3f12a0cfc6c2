# wallet_pass/bundle.py

"""
Bundle Store

An ordered mapping of bundle member path to file bytes. A bundle is seeded
from a template directory (pass.json, images, *.lproj localization tables)
and then overlaid with generated documents before it is hashed, signed and
archived.

Paths are relative, forward-slash separated and never contain '..'.
"""

import json
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Any, Dict, ItemsView, Iterator, List, Mapping, Optional, Union

from wallet_pass.exceptions import InvalidBundlePath, TemplateReadError

logger = logging.getLogger(__name__)

PASS_FILENAME = 'pass.json'
MANIFEST_FILENAME = 'manifest.json'
SIGNATURE_FILENAME = 'signature'

# Files generated during signing; never hashed and never taken from a template
SIGNING_ARTIFACTS = frozenset({MANIFEST_FILENAME, SIGNATURE_FILENAME})

# OS-generated metadata that must not end up in a pass
IGNORED_FILENAMES = frozenset({'.DS_Store', 'Thumbs.db', 'desktop.ini'})
IGNORED_DIRECTORIES = frozenset({'__MACOSX', '.git', '.svn'})


def is_ignored(name: str) -> bool:
    """True for OS metadata files such as .DS_Store and AppleDouble '._' files."""
    return name in IGNORED_FILENAMES or name.startswith('._')


def normalize_path(path: Union[str, os.PathLike]) -> str:
    """
    Normalize a bundle member path.

    Backslashes become forward slashes and '.' segments are dropped.
    Absolute paths and '..' segments are rejected.
    """
    raw = os.fspath(path).replace('\\', '/')
    if not raw or raw.startswith('/') or (len(raw) > 1 and raw[1] == ':'):
        raise InvalidBundlePath(f"Bundle paths must be relative: {path!r}")

    parts = [part for part in raw.split('/') if part not in ('', '.')]
    if not parts:
        raise InvalidBundlePath(f"Bundle path is empty: {path!r}")
    if '..' in parts:
        raise InvalidBundlePath(f"Bundle paths must not contain '..': {path!r}")

    return str(PurePosixPath(*parts))


def encode_strings(mapping: Mapping[str, str]) -> bytes:
    """Render a pass.strings localization table."""
    def escape(value: str) -> str:
        return (
            value.replace('\\', '\\\\')
            .replace('"', '\\"')
            .replace('\n', '\\n')
        )

    lines = [f'"{escape(key)}" = "{escape(value)}";' for key, value in mapping.items()]
    return ('\n'.join(lines) + '\n').encode('utf-8')


class BundleStore:
    """Ordered path -> bytes mapping for the members of one pass."""

    def __init__(self, files: Optional[Mapping[str, bytes]] = None):
        self._files: Dict[str, bytes] = {}
        if files:
            for path, data in files.items():
                self.put(path, data)

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls, directory: Union[str, os.PathLike], force: bool = False) -> 'BundleStore':
        """
        Load every regular file below a template directory.

        Args:
            directory: Template directory
            force: Drop an existing manifest.json/signature instead of failing

        Returns:
            BundleStore keyed by path relative to the directory

        Raises:
            TemplateReadError: Directory missing, a file unreadable, or the
                template already contains signing artifacts (without force)
        """
        root = Path(directory)
        if not root.is_dir():
            raise TemplateReadError(f"Template directory not found: {root}")

        bundle = cls()
        skipped = 0

        def on_error(error: OSError):
            raise TemplateReadError(f"Can't read template directory {error.filename}: {error.strerror}")

        try:
            for current, dirnames, filenames in os.walk(root, onerror=on_error):
                dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRECTORIES)
                for filename in sorted(filenames):
                    file_path = Path(current) / filename
                    relative = file_path.relative_to(root).as_posix()

                    if is_ignored(filename):
                        logger.debug(f"Skipping OS metadata file {relative}")
                        skipped += 1
                        continue
                    if not file_path.is_file():
                        continue

                    if relative in SIGNING_ARTIFACTS:
                        if not force:
                            raise TemplateReadError(
                                f"{root} contains pass signing artifacts ({relative}) "
                                f"that need to be removed before signing"
                            )
                        logger.warning(f"Dropping existing {relative} from template {root}")
                        continue

                    bundle.put(relative, file_path.read_bytes())
        except OSError as e:
            raise TemplateReadError(f"Can't read template file {e.filename}: {e.strerror}")

        logger.info(f"Loaded {len(bundle)} files from template {root} ({skipped} skipped)")
        return bundle

    # =========================================================================
    # Mutation
    # =========================================================================

    def put(self, path: Union[str, os.PathLike], data: bytes) -> str:
        """Insert or overwrite a member; returns the normalized path."""
        if isinstance(data, str):
            data = data.encode('utf-8')
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"Bundle content for {path!r} must be bytes, got {type(data).__name__}")

        normalized = normalize_path(path)
        self._files[normalized] = bytes(data)
        return normalized

    def put_json(self, path: Union[str, os.PathLike], document: Any) -> str:
        data = json.dumps(document, indent=2, ensure_ascii=False).encode('utf-8')
        return self.put(path, data)

    def put_strings(self, locale: str, mapping: Mapping[str, str]) -> str:
        """Write <locale>.lproj/pass.strings."""
        if not locale or '/' in locale or locale in ('.', '..'):
            raise InvalidBundlePath(f"Invalid localization locale: {locale!r}")
        return self.put(f"{locale}.lproj/pass.strings", encode_strings(mapping))

    def remove(self, path: Union[str, os.PathLike]) -> bytes:
        return self._files.pop(normalize_path(path))

    def discard_signing_artifacts(self):
        for name in SIGNING_ARTIFACTS:
            self._files.pop(name, None)

    def copy(self) -> 'BundleStore':
        clone = type(self)()
        clone._files = dict(self._files)
        return clone

    # =========================================================================
    # Access
    # =========================================================================

    def get(self, path: Union[str, os.PathLike]) -> Optional[bytes]:
        return self._files.get(normalize_path(path))

    def __getitem__(self, path) -> bytes:
        return self._files[normalize_path(path)]

    def __contains__(self, path) -> bool:
        try:
            return normalize_path(path) in self._files
        except InvalidBundlePath:
            return False

    def __len__(self):
        return len(self._files)

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def paths(self) -> List[str]:
        return list(self._files)

    def entries(self) -> ItemsView[str, bytes]:
        """Lazy, restartable view of (path, bytes) pairs in insertion order."""
        return self._files.items()

    def locales(self) -> List[str]:
        found = []
        for path in self._files:
            head = path.split('/', 1)[0]
            if head.endswith('.lproj') and head[:-6] not in found:
                found.append(head[:-6])
        return found

    def total_size(self) -> int:
        return sum(len(data) for data in self._files.values())

    def __repr__(self):
        return f"BundleStore({len(self._files)} files, {self.total_size()} bytes)"

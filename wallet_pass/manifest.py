# wallet_pass/manifest.py

"""
Manifest Builder

manifest.json maps every bundle member (except the manifest and the
signature) to the hex SHA-1 digest of its bytes. The device recomputes these
hashes to detect tampering, so the manifest bytes that get signed must be the
exact bytes packaged in the archive.
"""

import hashlib
import json
import logging
from typing import Dict, Iterator, List, Mapping

from wallet_pass.bundle import SIGNING_ARTIFACTS, BundleStore

logger = logging.getLogger(__name__)

# Fixed by the pass format
HASH_ALGORITHM = 'sha1'


def hash_bytes(data: bytes) -> str:
    return hashlib.new(HASH_ALGORITHM, data).hexdigest()


class Manifest(Mapping[str, str]):
    """Read-only path -> hex digest mapping."""

    def __init__(self, hashes: Mapping[str, str]):
        self._hashes: Dict[str, str] = dict(hashes)

    def __getitem__(self, path: str) -> str:
        return self._hashes[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._hashes)

    def __len__(self) -> int:
        return len(self._hashes)

    def to_json(self) -> bytes:
        """Deterministic manifest.json bytes."""
        return json.dumps(self._hashes, indent=2, sort_keys=True).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'Manifest':
        hashes = json.loads(data.decode('utf-8'))
        if not isinstance(hashes, dict):
            raise ValueError("manifest.json must contain a JSON object")
        return cls(hashes)

    def mismatches(self, bundle: BundleStore) -> List[str]:
        """
        Compare against a bundle.

        Returns:
            Paths that are missing, unlisted, or whose content hash differs
        """
        problems = []
        for path, digest in self._hashes.items():
            data = bundle.get(path)
            if data is None:
                problems.append(path)
            elif hash_bytes(data) != digest:
                problems.append(path)
        for path in bundle:
            if path not in SIGNING_ARTIFACTS and path not in self._hashes:
                problems.append(path)
        return problems

    def __repr__(self):
        return f"Manifest({len(self._hashes)} entries)"


def build_manifest(bundle: BundleStore) -> Manifest:
    """Hash every bundle member except manifest.json and signature."""
    hashes: Dict[str, str] = {}
    for path, data in bundle.entries():
        if path in SIGNING_ARTIFACTS:
            continue
        hashes[path] = hash_bytes(data)
        logger.debug(f"Manifest entry {path}: {hashes[path]}")

    logger.info(f"Built manifest with {len(hashes)} entries")
    return Manifest(hashes)

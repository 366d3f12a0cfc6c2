# wallet_pass/exporter.py

"""
Export Pipeline

Turns a pass descriptor and a template bundle into a signed .pkpass file:

    1. validate the descriptor and write pass.json into the bundle
    2. build manifest.json over every member
    3. sign the exact manifest bytes and add the signature
    4. write the zip archive atomically

Each stage fails fast with its own PassError subclass. The caller's bundle is
never modified; the pipeline works on a copy.
"""

import logging
import os
from functools import partial
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional, Union

from cryptography import x509

from wallet_pass.archive import archive_bytes, read_archive, write_archive
from wallet_pass.bundle import (
    MANIFEST_FILENAME, PASS_FILENAME, SIGNATURE_FILENAME, BundleStore
)
from wallet_pass.exceptions import MissingPassAttribute, SignatureVerificationError
from wallet_pass.manifest import Manifest, build_manifest
from wallet_pass.models.descriptor import PassDescriptor
from wallet_pass.signing import (
    SigningCredentials, load_credentials, sign_manifest, verify_signature
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]
CredentialsLoader = Callable[[], SigningCredentials]


class PassExporter:
    """
    Signs and packages passes with credentials from a loader.

    The loader is called once per export and the credentials it returns are
    released as soon as the manifest is signed:

        loader = partial(load_credentials, 'pass.p12', 'secret', 'wwdr.pem')
        exporter = PassExporter(loader)
        exporter.export(descriptor, BundleStore.load('StoreCard.pass'), 'StoreCard.pkpass')
    """

    def __init__(self, credentials_loader: CredentialsLoader):
        self.credentials_loader = credentials_loader

    def sign_bundle(self, bundle: BundleStore) -> BundleStore:
        """
        Add manifest.json and signature to a copy of a bundle whose
        pass.json is already in place.
        """
        signed = bundle.copy()
        signed.discard_signing_artifacts()
        if PASS_FILENAME not in signed:
            raise MissingPassAttribute(f"Bundle has no {PASS_FILENAME}")

        manifest_bytes = build_manifest(signed).to_json()
        signed.put(MANIFEST_FILENAME, manifest_bytes)

        with self.credentials_loader() as credentials:
            signature = sign_manifest(manifest_bytes, credentials)
        signed.put(SIGNATURE_FILENAME, signature)
        return signed

    def prepare(self, descriptor: PassDescriptor, bundle: BundleStore) -> BundleStore:
        """Render pass.json from the descriptor, then sign."""
        descriptor.validate()

        staged = bundle.copy()
        staged.put(PASS_FILENAME, descriptor.to_json())
        logger.debug(f"Rendered {PASS_FILENAME} for serial {descriptor.serial_number}")
        return self.sign_bundle(staged)

    def export(self, descriptor: PassDescriptor, bundle: BundleStore,
               output_path: PathLike) -> Path:
        """
        Export a signed pass to a file.

        Returns:
            Path of the written .pkpass file
        """
        signed = self.prepare(descriptor, bundle)
        path = write_archive(signed, output_path)
        logger.info(
            f"Exported pass {descriptor.pass_type_identifier}/{descriptor.serial_number} to {path}"
        )
        return path

    def export_to_buffer(self, descriptor: PassDescriptor, bundle: BundleStore) -> BytesIO:
        """Export a signed pass into memory, e.g. for an HTTP response."""
        buffer = BytesIO(archive_bytes(self.prepare(descriptor, bundle)))
        buffer.seek(0)
        return buffer


def export_pass(descriptor: PassDescriptor, bundle: BundleStore, output_path: PathLike,
                keystore_path: PathLike, password: Optional[str],
                intermediate_path: PathLike) -> Path:
    """
    Export a signed pass using a PKCS#12 key-store.

    Args:
        descriptor: Pass descriptor rendered to pass.json
        bundle: Template bundle (images, localizations)
        output_path: Destination .pkpass file
        keystore_path: PKCS#12 file with the pass type certificate and key
        password: Key-store password
        intermediate_path: Apple WWDR intermediate certificate

    Returns:
        Path of the written .pkpass file
    """
    loader = partial(load_credentials, keystore_path, password, intermediate_path)
    return PassExporter(loader).export(descriptor, bundle, output_path)


def export_to_buffer(descriptor: PassDescriptor, bundle: BundleStore,
                     keystore_path: PathLike, password: Optional[str],
                     intermediate_path: PathLike) -> BytesIO:
    loader = partial(load_credentials, keystore_path, password, intermediate_path)
    return PassExporter(loader).export_to_buffer(descriptor, bundle)


def default_output_path(pass_dir: PathLike) -> Path:
    """'StoreCard.pass' -> 'StoreCard.pkpass' in the working directory."""
    stem = Path(pass_dir).stem or 'Pass'
    return Path(f"{stem}.pkpass")


def sign_directory(pass_dir: PathLike, output_path: Optional[PathLike],
                   keystore_path: PathLike, password: Optional[str],
                   intermediate_path: PathLike, force: bool = False) -> Path:
    """
    Sign a raw pass directory whose pass.json is used as-is.

    Args:
        pass_dir: Directory with pass.json and images
        output_path: Destination; defaults to '<directory stem>.pkpass'
        force: Ignore an existing manifest.json/signature in the directory
            instead of failing. The directory itself is never modified.

    Returns:
        Path of the written .pkpass file
    """
    bundle = BundleStore.load(pass_dir, force=force)
    destination = Path(output_path) if output_path else default_output_path(pass_dir)

    loader = partial(load_credentials, keystore_path, password, intermediate_path)
    signed = PassExporter(loader).sign_bundle(bundle)
    path = write_archive(signed, destination)
    logger.info(f"Signed pass directory {pass_dir} to {path}")
    return path


def verify_bundle(bundle: BundleStore,
                  certificate: Optional[x509.Certificate] = None) -> x509.Certificate:
    """
    Check a signed bundle: every manifest hash and the manifest signature.

    Returns:
        The signer certificate

    Raises:
        SignatureVerificationError: Missing signing artifacts, a member that
            doesn't match the manifest, or an invalid signature
    """
    manifest_bytes = bundle.get(MANIFEST_FILENAME)
    signature = bundle.get(SIGNATURE_FILENAME)
    if manifest_bytes is None or signature is None:
        raise SignatureVerificationError(
            f"Bundle must contain both {MANIFEST_FILENAME} and {SIGNATURE_FILENAME}"
        )

    try:
        manifest = Manifest.from_json(manifest_bytes)
    except ValueError as e:
        raise SignatureVerificationError(f"Malformed {MANIFEST_FILENAME}: {e}") from e

    mismatches = manifest.mismatches(bundle)
    if mismatches:
        raise SignatureVerificationError(
            f"Members don't match {MANIFEST_FILENAME}: {', '.join(sorted(mismatches))}"
        )

    return verify_signature(signature, manifest_bytes, certificate)


def verify_archive(path: PathLike,
                   certificate: Optional[x509.Certificate] = None) -> x509.Certificate:
    signer = verify_bundle(read_archive(path), certificate)
    logger.info(f"Verified {path}: signed by {signer.subject.rfc4514_string()}")
    return signer

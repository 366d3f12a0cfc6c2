"""
Apple Wallet Pass Builder

Builds signed .pkpass bundles from a template directory and an in-memory
pass descriptor: pass.json rendering, manifest hashing, detached PKCS#7
signing and zip packaging.
"""

from .models import (
    Field,
    FieldKind,
    DateStyle,
    NumberStyle,
    TextAlignment,
    DataDetector,
    Semantics,
    EventType,
    CurrencyAmount,
    SemanticLocation,
    PersonNameComponents,
    Seat,
    Barcode,
    BarcodeFormat,
    FieldGroup,
    StoreCard,
    Generic,
    EventTicket,
    Coupon,
    BoardingPass,
    PassStyle,
    TransitType,
    PassDescriptor,
)
from .bundle import BundleStore
from .manifest import Manifest, build_manifest
from .signing import (
    SigningCredentials,
    load_credentials,
    load_pem_credentials,
    sign_manifest,
    verify_signature
)
from .archive import write_archive, archive_bytes, read_archive
from .exporter import (
    PassExporter,
    export_pass,
    export_to_buffer,
    sign_directory,
    verify_archive
)
from .exceptions import (
    PassError,
    PassConfigurationError,
    InvalidFieldConfiguration,
    ConflictingStyle,
    MissingPassAttribute,
    InvalidBundlePath,
    CredentialError,
    CertificateLoadError,
    SigningError,
    SignatureVerificationError,
    BundleIOError,
    TemplateReadError,
    ArchiveWriteError
)

__version__ = '1.0.0'

__all__ = [
    'Field',
    'FieldKind',
    'DateStyle',
    'NumberStyle',
    'TextAlignment',
    'DataDetector',
    'Semantics',
    'EventType',
    'CurrencyAmount',
    'SemanticLocation',
    'PersonNameComponents',
    'Seat',
    'Barcode',
    'BarcodeFormat',
    'FieldGroup',
    'StoreCard',
    'Generic',
    'EventTicket',
    'Coupon',
    'BoardingPass',
    'PassStyle',
    'TransitType',
    'PassDescriptor',
    'BundleStore',
    'Manifest',
    'build_manifest',
    'SigningCredentials',
    'load_credentials',
    'load_pem_credentials',
    'sign_manifest',
    'verify_signature',
    'write_archive',
    'archive_bytes',
    'read_archive',
    'PassExporter',
    'export_pass',
    'export_to_buffer',
    'sign_directory',
    'verify_archive',
    'PassError',
    'PassConfigurationError',
    'InvalidFieldConfiguration',
    'ConflictingStyle',
    'MissingPassAttribute',
    'InvalidBundlePath',
    'CredentialError',
    'CertificateLoadError',
    'SigningError',
    'SignatureVerificationError',
    'BundleIOError',
    'TemplateReadError',
    'ArchiveWriteError',
]

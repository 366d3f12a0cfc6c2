# wallet_pass/exceptions.py

"""
Wallet Pass Exceptions

Every failure raised by the pass pipeline derives from PassError and falls in
one of three families so callers can tell them apart:

- PassConfigurationError: fixable by changing field or descriptor input
- CredentialError: fixable by supplying valid certificates
- BundleIOError: file-system problems reading templates or writing archives
"""


class PassError(Exception):
    """Base exception for wallet pass errors."""

    default_code = 'PASS_ERROR'

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code


class PassConfigurationError(PassError):
    """Raised when descriptor or field input is invalid."""
    default_code = 'INVALID_CONFIGURATION'


class InvalidFieldConfiguration(PassConfigurationError):
    """Raised when a field value and its format annotations don't match."""
    default_code = 'INVALID_FIELD_CONFIGURATION'


class ConflictingStyle(PassConfigurationError):
    """Raised when a second pass style is installed on a descriptor."""
    default_code = 'CONFLICTING_STYLE'


class MissingPassAttribute(PassConfigurationError):
    """Raised when a required descriptor attribute is empty at export time."""
    default_code = 'MISSING_PASS_ATTRIBUTE'


class InvalidBundlePath(PassConfigurationError):
    """Raised when a bundle member path is absolute or escapes the bundle."""
    default_code = 'INVALID_BUNDLE_PATH'


class CredentialError(PassError):
    """Base for certificate and signing failures."""
    default_code = 'CREDENTIAL_ERROR'


class CertificateLoadError(CredentialError):
    """Raised when a key-store or certificate can't be read or decrypted."""
    default_code = 'CERTIFICATE_LOAD_ERROR'


class SigningError(CredentialError):
    """Raised when the signing operation rejects the key/certificate pair."""
    default_code = 'SIGNING_ERROR'


class SignatureVerificationError(CredentialError):
    """Raised when a detached signature doesn't match its manifest."""
    default_code = 'SIGNATURE_VERIFICATION_ERROR'


class BundleIOError(PassError):
    """Base for template and archive I/O failures."""
    default_code = 'BUNDLE_IO_ERROR'


class TemplateReadError(BundleIOError):
    """Raised when the template directory is missing or unreadable."""
    default_code = 'TEMPLATE_READ_ERROR'


class ArchiveWriteError(BundleIOError):
    """Raised when the output archive can't be created, written or moved."""
    default_code = 'ARCHIVE_WRITE_ERROR'

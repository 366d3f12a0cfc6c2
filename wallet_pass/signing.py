# wallet_pass/signing.py

"""
Manifest Signing

Produces the `signature` member of a pass: a DER-encoded PKCS#7 (CMS)
SignedData structure over the exact manifest.json bytes, in detached mode, with
the pass type certificate and the Apple WWDR intermediate certificate
embedded.

Certificate material is loaded into a short-lived SigningCredentials value
that is handed to sign_manifest() and cleared afterwards; it is never kept on
the descriptor or the bundle.
"""

import hashlib
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from asn1crypto import cms
from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs7, pkcs12

from wallet_pass.exceptions import (
    CertificateLoadError, SignatureVerificationError, SigningError
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

SIGNATURE_HASH = hashes.SHA256

DIGEST_ALGORITHMS = {
    'sha1': hashes.SHA1,
    'sha224': hashes.SHA224,
    'sha256': hashes.SHA256,
    'sha384': hashes.SHA384,
    'sha512': hashes.SHA512,
}


@dataclass
class SigningCredentials:
    """
    Leaf certificate, its private key and the intermediate authority
    certificate, held only for the duration of a signing call.

    Use as a context manager so the key reference is dropped on exit:

        with load_credentials(p12_path, password, wwdr_path) as credentials:
            signature = sign_manifest(manifest_bytes, credentials)
    """
    certificate: Optional[x509.Certificate]
    private_key: Any = field(repr=False)
    intermediate: Optional[x509.Certificate]

    def __enter__(self) -> 'SigningCredentials':
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.clear()
        return False

    def clear(self):
        self.certificate = None
        self.private_key = None
        self.intermediate = None

    @property
    def is_cleared(self) -> bool:
        return self.private_key is None


# =============================================================================
# Loading
# =============================================================================

def _read_file(path: PathLike, what: str) -> bytes:
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise CertificateLoadError(f"Can't read {what} at {path}: {e.strerror or e}")


def load_certificate(path: PathLike, what: str = 'certificate') -> x509.Certificate:
    """Load an X.509 certificate in PEM or DER format."""
    data = _read_file(path, what)
    try:
        if b'-----BEGIN' in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise CertificateLoadError(f"Malformed {what} at {path}: {e}")


def load_credentials(keystore_path: PathLike, password: Optional[str],
                     intermediate_path: PathLike) -> SigningCredentials:
    """
    Load signing credentials from a password-protected PKCS#12 key-store.

    Args:
        keystore_path: .p12 file holding the pass type certificate and key
        password: Key-store password
        intermediate_path: Apple WWDR intermediate certificate (PEM or DER)

    Raises:
        CertificateLoadError: File unreadable, wrong password, or the
            key-store lacks a certificate or private key
    """
    data = _read_file(keystore_path, 'key-store')
    password_bytes = password.encode('utf-8') if password else None

    try:
        private_key, certificate, _additional = pkcs12.load_key_and_certificates(data, password_bytes)
    except ValueError as first_error:
        if password_bytes is not None:
            raise CertificateLoadError(
                f"Can't open key-store {keystore_path}: wrong password or malformed PKCS#12 data"
            ) from first_error
        # Some exporters encrypt with an empty password rather than none
        try:
            private_key, certificate, _additional = pkcs12.load_key_and_certificates(data, b'')
        except ValueError as e:
            raise CertificateLoadError(
                f"Can't open key-store {keystore_path}: a password is required or the data is malformed"
            ) from e
    except UnsupportedAlgorithm as e:
        raise CertificateLoadError(f"Key-store {keystore_path} uses an unsupported algorithm: {e}")

    if private_key is None or certificate is None:
        raise CertificateLoadError(
            f"Key-store {keystore_path} must contain both a certificate and its private key"
        )

    intermediate = load_certificate(intermediate_path, 'intermediate certificate')
    logger.info(f"Loaded signing certificate {certificate.subject.rfc4514_string()}")
    return SigningCredentials(certificate, private_key, intermediate)


def load_pem_credentials(certificate_path: PathLike, key_path: PathLike,
                         intermediate_path: PathLike,
                         key_password: Optional[str] = None) -> SigningCredentials:
    """Load signing credentials from a separate certificate and PEM key."""
    certificate = load_certificate(certificate_path, 'certificate')

    key_data = _read_file(key_path, 'private key')
    try:
        private_key = serialization.load_pem_private_key(
            key_data,
            password=key_password.encode('utf-8') if key_password else None,
        )
    except (ValueError, TypeError) as e:
        # TypeError: password given for an unencrypted key or missing for an encrypted one
        raise CertificateLoadError(f"Can't load private key {key_path}: {e}")
    except UnsupportedAlgorithm as e:
        raise CertificateLoadError(f"Private key {key_path} uses an unsupported algorithm: {e}")

    intermediate = load_certificate(intermediate_path, 'intermediate certificate')
    logger.info(f"Loaded signing certificate {certificate.subject.rfc4514_string()}")
    return SigningCredentials(certificate, private_key, intermediate)


# =============================================================================
# Signing
# =============================================================================

def _public_key_der(key) -> bytes:
    return key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def check_credentials(credentials: SigningCredentials):
    """
    Reject a key/certificate pair that can't produce a valid signature.

    Raises:
        SigningError: Credentials cleared, unsupported key type, key doesn't
            match the certificate, or the certificate forbids signing
    """
    if credentials.is_cleared or credentials.certificate is None or credentials.intermediate is None:
        raise SigningError("Signing credentials are incomplete or have already been released")

    key = credentials.private_key
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise SigningError(f"Unsupported private key type {type(key).__name__}; use RSA or EC")

    if _public_key_der(key.public_key()) != _public_key_der(credentials.certificate.public_key()):
        raise SigningError("Private key does not match the signing certificate")

    try:
        usage = credentials.certificate.extensions.get_extension_for_class(x509.KeyUsage).value
    except x509.ExtensionNotFound:
        usage = None
    if usage is not None and not usage.digital_signature:
        raise SigningError("Signing certificate is not allowed to create digital signatures")


def sign_manifest(manifest_bytes: bytes, credentials: SigningCredentials) -> bytes:
    """
    Create the detached PKCS#7 signature over manifest.json.

    Args:
        manifest_bytes: Exact manifest.json bytes that go into the archive
        credentials: Loaded signing credentials

    Returns:
        DER-encoded signature

    Raises:
        SigningError: The cryptographic operation rejected the credentials
    """
    check_credentials(credentials)

    try:
        signature = (
            pkcs7.PKCS7SignatureBuilder()
            .set_data(manifest_bytes)
            .add_signer(credentials.certificate, credentials.private_key, SIGNATURE_HASH())
            .add_certificate(credentials.intermediate)
            .sign(
                serialization.Encoding.DER,
                [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
            )
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        logger.error(f"PKCS#7 signing failed: {e}")
        raise SigningError(f"Failed to sign manifest: {e}") from e

    logger.info(
        f"Signed manifest ({len(manifest_bytes)} bytes) with "
        f"{credentials.certificate.subject.rfc4514_string()}"
    )
    return signature


# =============================================================================
# Verification
# =============================================================================

def _find_signer_certificate(signed_data, signer_info) -> x509.Certificate:
    sid = signer_info['sid']
    for choice in signed_data['certificates']:
        if choice.name != 'certificate':
            continue
        candidate = choice.chosen
        tbs = candidate['tbs_certificate']
        if sid.name == 'issuer_and_serial_number':
            issuer_serial = sid.chosen
            if (tbs['serial_number'].native == issuer_serial['serial_number'].native
                    and tbs['issuer'] == issuer_serial['issuer']):
                return x509.load_der_x509_certificate(candidate.dump())
        elif candidate.key_identifier == sid.chosen.native:
            return x509.load_der_x509_certificate(candidate.dump())
    raise SignatureVerificationError("Signer certificate is not embedded in the signature")


def verify_signature(signature: bytes, manifest_bytes: bytes,
                     certificate: Optional[x509.Certificate] = None) -> x509.Certificate:
    """
    Check a detached signature against manifest.json bytes.

    Verifies the messageDigest signed attribute against the manifest and the
    signer's signature over the signed attributes using the embedded leaf
    certificate's public key.

    Args:
        signature: DER-encoded PKCS#7 signature
        manifest_bytes: manifest.json bytes
        certificate: Expected signer certificate (optional)

    Returns:
        The signer certificate

    Raises:
        SignatureVerificationError: Malformed signature or any mismatch
    """
    try:
        content_info = cms.ContentInfo.load(signature)
        if content_info['content_type'].native != 'signed_data':
            raise SignatureVerificationError("Signature is not a PKCS#7 SignedData structure")

        signed_data = content_info['content']
        if signed_data['encap_content_info']['content'].native is not None:
            raise SignatureVerificationError("Signature is not detached; it embeds its content")

        signer_infos = signed_data['signer_infos']
        if len(signer_infos) != 1:
            raise SignatureVerificationError(f"Expected one signer, found {len(signer_infos)}")
        signer_info = signer_infos[0]

        signer_certificate = _find_signer_certificate(signed_data, signer_info)
        digest_name = signer_info['digest_algorithm']['algorithm'].native
        signed_attrs = signer_info['signed_attrs']
        signature_value = signer_info['signature'].native

        if digest_name not in DIGEST_ALGORITHMS:
            raise SignatureVerificationError(f"Unsupported digest algorithm {digest_name}")
        hash_algorithm = DIGEST_ALGORITHMS[digest_name]()

        if signed_attrs.native is None:
            signed_payload = manifest_bytes
        else:
            message_digest = None
            for attribute in signed_attrs:
                if attribute['type'].native == 'message_digest':
                    message_digest = attribute['values'][0].native
            expected = hashlib.new(digest_name, manifest_bytes).digest()
            if message_digest != expected:
                raise SignatureVerificationError("Manifest digest does not match the signature")
            # Signed attributes are signed as a SET OF, not as the [0] IMPLICIT field
            encoded = signed_attrs.dump()
            signed_payload = b'\x31' + encoded[1:]
    except SignatureVerificationError:
        raise
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise SignatureVerificationError(f"Malformed signature: {e}") from e

    if certificate is not None and certificate != signer_certificate:
        raise SignatureVerificationError("Signature was made with a different certificate")

    public_key = signer_certificate.public_key()
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature_value, signed_payload, padding.PKCS1v15(), hash_algorithm)
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature_value, signed_payload, ec.ECDSA(hash_algorithm))
        else:
            raise SignatureVerificationError(
                f"Unsupported signer key type {type(public_key).__name__}"
            )
    except InvalidSignature as e:
        raise SignatureVerificationError("Signature does not match the manifest") from e

    logger.debug(f"Verified signature by {signer_certificate.subject.rfc4514_string()}")
    return signer_certificate

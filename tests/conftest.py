"""
Pytest configuration and shared fixtures for all tests.

Signing material is generated once per session: a throwaway certificate
authority standing in for the Apple WWDR intermediate, and a pass type
certificate issued by it, exported both as a password-protected PKCS#12
key-store and as a PEM certificate/key pair.
"""
import json
from datetime import datetime, timedelta, timezone
from io import BytesIO
from types import SimpleNamespace

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from PIL import Image

from wallet_pass import Barcode, BarcodeFormat, Field, PassDescriptor
from wallet_pass.signing import SigningCredentials

KEYSTORE_PASSWORD = 'BKoP59ypG2K9'


def _name(common_name):
    return x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, 'Wallet Pass Tests'),
    ])


def _build_certificate(subject, issuer, public_key, signing_key, ca=False,
                       digital_signature=True):
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=digital_signature,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=ca,
                crl_sign=ca,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    )
    return builder.sign(signing_key, hashes.SHA256())


def _png_bytes(size=(29, 29), color=(200, 30, 30), mode='RGB'):
    buffer = BytesIO()
    Image.new(mode, size, color).save(buffer, format='PNG')
    return buffer.getvalue()


# =============================================================================
# SIGNING MATERIAL
# =============================================================================

@pytest.fixture(scope='session')
def signing_material(tmp_path_factory):
    """Generate CA, pass type certificate and key files for the test session."""
    directory = tmp_path_factory.mktemp('certs')

    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca_name = _name('Test WWDR Intermediate')
    ca_cert = _build_certificate(
        ca_name, ca_name, ca_key.public_key(), ca_key, ca=True, digital_signature=False
    )

    leaf_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    leaf_cert = _build_certificate(
        _name('Pass Type ID: pass.com.store.generic'), ca_name, leaf_key.public_key(), ca_key
    )

    wwdr_path = directory / 'wwdr.pem'
    wwdr_path.write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))

    wwdr_der_path = directory / 'wwdr.cer'
    wwdr_der_path.write_bytes(ca_cert.public_bytes(serialization.Encoding.DER))

    cert_path = directory / 'certificate.pem'
    cert_path.write_bytes(leaf_cert.public_bytes(serialization.Encoding.PEM))

    key_path = directory / 'key.pem'
    key_path.write_bytes(leaf_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ))

    p12_path = directory / 'cert.p12'
    p12_path.write_bytes(pkcs12.serialize_key_and_certificates(
        b'pass', leaf_key, leaf_cert, None,
        serialization.BestAvailableEncryption(KEYSTORE_PASSWORD.encode()),
    ))

    return SimpleNamespace(
        ca_cert=ca_cert,
        ca_key=ca_key,
        leaf_cert=leaf_cert,
        leaf_key=leaf_key,
        wwdr_path=wwdr_path,
        wwdr_der_path=wwdr_der_path,
        cert_path=cert_path,
        key_path=key_path,
        p12_path=p12_path,
        password=KEYSTORE_PASSWORD,
    )


@pytest.fixture(scope='session')
def ec_material(signing_material):
    """EC pass type certificate issued by the same test CA."""
    key = ec.generate_private_key(ec.SECP256R1())
    cert = _build_certificate(
        _name('Pass Type ID: pass.com.store.ec'),
        signing_material.ca_cert.subject,
        key.public_key(),
        signing_material.ca_key,
    )
    return SimpleNamespace(cert=cert, key=key)


@pytest.fixture
def credentials(signing_material):
    """Fresh in-memory credentials for one signing call."""
    return SigningCredentials(
        signing_material.leaf_cert,
        signing_material.leaf_key,
        signing_material.ca_cert,
    )


# =============================================================================
# TEMPLATES AND DESCRIPTORS
# =============================================================================

@pytest.fixture
def png_bytes():
    """Factory for small PNG images."""
    return _png_bytes


@pytest.fixture
def template_dir(tmp_path):
    """Template directory with a placeholder pass.json and one image."""
    directory = tmp_path / 'StoreCard.pass'
    directory.mkdir()
    (directory / 'pass.json').write_text(json.dumps({
        'formatVersion': 1,
        'description': 'placeholder',
        'organizationName': 'placeholder',
    }))
    (directory / 'icon.png').write_bytes(_png_bytes())
    return directory


@pytest.fixture
def store_card_template_dir(tmp_path):
    """Template whose placeholder pass.json already carries the store card layout."""
    directory = tmp_path / 'Seeded.pass'
    directory.mkdir()
    (directory / 'pass.json').write_text(json.dumps({
        'formatVersion': 1,
        'passTypeIdentifier': 'pass.com.placeholder',
        'teamIdentifier': 'PLACEHOLDER',
        'serialNumber': '0',
        'authenticationToken': 'sda8f6ffDFS798SFDfsfSdf',
        'organizationName': 'Test Store',
        'description': 'Store card',
        'backgroundColor': '#1a472a',
        'storeCard': {
            'primaryFields': [
                {'key': 'balance', 'label': 'balance', 'value': 13.37, 'currencyCode': 'EUR'},
            ],
        },
        'barcode': {
            'format': 'PKBarcodeFormatQR',
            'message': 'QR Code',
            'messageEncoding': 'iso-8859-1',
        },
    }))
    (directory / 'icon.png').write_bytes(_png_bytes())
    return directory


@pytest.fixture
def store_card_descriptor():
    """Store card with a EUR balance and a QR barcode."""
    descriptor = PassDescriptor(organization_name='Test Store', description='Store card')
    descriptor.set_pass_type_identifier('pass.com.store.generic')
    descriptor.set_team_identifier('ASDF1234ASDF')
    descriptor.set_serial_number('1234567890')
    descriptor.set_authentication_token('sda8f6ffDFS798SFDfsfSdf')

    card = descriptor.store_card()
    card.add_primary_field(Field.currency('balance', 13.37, 'EUR', label='balance'))

    descriptor.set_barcode(Barcode('QR Code', BarcodeFormat.QR))
    return descriptor

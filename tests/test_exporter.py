# test_exporter.py

"""
Export pipeline tests.

These tests verify:
- The end-to-end export of a store card from a template directory
- Fail-fast behavior: no output is written when a stage fails
- Atomic archive writes
- Signing raw pass directories and verifying signed archives
"""
import json
import zipfile

import pytest

from wallet_pass import (
    ArchiveWriteError, BundleStore, CertificateLoadError, ConflictingStyle,
    MissingPassAttribute, PassDescriptor, PassExporter, SignatureVerificationError,
    TemplateReadError, archive_bytes, export_pass, export_to_buffer, read_archive,
    sign_directory, verify_archive, write_archive
)
from wallet_pass.exporter import default_output_path, verify_bundle
from wallet_pass.manifest import hash_bytes


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def export_args(signing_material):
    """Key-store arguments for export_pass()."""
    return (
        signing_material.p12_path,
        signing_material.password,
        signing_material.wwdr_path,
    )


# =============================================================================
# END-TO-END TESTS
# =============================================================================

@pytest.mark.integration
class TestExportPass:
    """Test exporting a signed pass from a template."""

    def test_store_card_end_to_end(self, template_dir, store_card_descriptor, export_args, tmp_path):
        """
        GIVEN a template with a placeholder pass.json and one image
        WHEN a store card descriptor is exported with valid credentials
        THEN the archive holds the image, the new pass.json, the manifest and
            the signature, and the signature verifies against the manifest
        """
        output = tmp_path / 'StoreCard.pkpass'
        bundle = BundleStore.load(template_dir)

        result = export_pass(store_card_descriptor, bundle, output, *export_args)

        assert result == output
        with zipfile.ZipFile(output) as archive:
            assert sorted(archive.namelist()) == ['icon.png', 'manifest.json', 'pass.json', 'signature']
            assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in archive.infolist())

            document = json.loads(archive.read('pass.json'))
            manifest = json.loads(archive.read('manifest.json'))

            assert manifest == {
                'icon.png': hash_bytes(archive.read('icon.png')),
                'pass.json': hash_bytes(archive.read('pass.json')),
            }

        assert document['passTypeIdentifier'] == 'pass.com.store.generic'
        assert document['teamIdentifier'] == 'ASDF1234ASDF'
        assert document['serialNumber'] == '1234567890'
        assert document['storeCard']['primaryFields'] == [
            {'key': 'balance', 'label': 'balance', 'value': 13.37, 'currencyCode': 'EUR'}
        ]
        assert document['barcode'] == {
            'format': 'PKBarcodeFormatQR',
            'message': 'QR Code',
            'messageEncoding': 'iso-8859-1',
        }

        signer = verify_archive(output)
        assert signer.subject.rfc4514_string().startswith('O=Wallet Pass Tests')

    def test_descriptor_seeded_from_template(self, store_card_template_dir, export_args, tmp_path):
        """
        GIVEN a template whose pass.json carries placeholder identifiers
        WHEN the descriptor is loaded from the template, three identifiers are
            set and the pass is exported
        THEN the signed pass.json keeps every other template value
        """
        output = tmp_path / 'Seeded.pkpass'
        descriptor = PassDescriptor.from_path(store_card_template_dir)
        descriptor.set_pass_type_identifier('pass.com.store.generic')
        descriptor.set_team_identifier('ASDF1234ASDF')
        descriptor.set_serial_number('1234567890')

        export_pass(descriptor, BundleStore.load(store_card_template_dir), output, *export_args)

        with zipfile.ZipFile(output) as archive:
            document = json.loads(archive.read('pass.json'))
        assert document['serialNumber'] == '1234567890'
        assert document['authenticationToken'] == 'sda8f6ffDFS798SFDfsfSdf'
        assert document['organizationName'] == 'Test Store'
        assert document['storeCard']['primaryFields'][0]['currencyCode'] == 'EUR'
        assert verify_archive(output) is not None

    def test_caller_bundle_not_modified(self, template_dir, store_card_descriptor, export_args, tmp_path):
        bundle = BundleStore.load(template_dir)
        original = dict(bundle.entries())

        export_pass(store_card_descriptor, bundle, tmp_path / 'out.pkpass', *export_args)

        assert dict(bundle.entries()) == original

    def test_export_to_buffer(self, template_dir, store_card_descriptor, export_args):
        buffer = export_to_buffer(store_card_descriptor, BundleStore.load(template_dir), *export_args)

        with zipfile.ZipFile(buffer) as archive:
            assert 'signature' in archive.namelist()

    def test_pem_credentials_via_loader(self, template_dir, store_card_descriptor, signing_material, tmp_path):
        from wallet_pass import load_pem_credentials

        exporter = PassExporter(lambda: load_pem_credentials(
            signing_material.cert_path, signing_material.key_path, signing_material.wwdr_path
        ))

        output = exporter.export(store_card_descriptor, BundleStore.load(template_dir), tmp_path / 'pem.pkpass')

        assert verify_archive(output) == signing_material.leaf_cert

    def test_credentials_released_after_signing(self, template_dir, store_card_descriptor, credentials):
        exporter = PassExporter(lambda: credentials)

        exporter.prepare(store_card_descriptor, BundleStore.load(template_dir))

        assert credentials.is_cleared


# =============================================================================
# FAILURE TESTS
# =============================================================================

@pytest.mark.integration
class TestExportFailures:
    """Test that failing stages leave no output behind."""

    def test_conflicting_style_fails_before_io(self, mocker):
        """
        GIVEN a descriptor with a store card
        WHEN a coupon is installed
        THEN ConflictingStyle is raised before any credential or archive I/O
        """
        write = mocker.patch('wallet_pass.exporter.write_archive')
        load = mocker.patch('wallet_pass.exporter.load_credentials')

        descriptor = PassDescriptor(organization_name='Test Store', description='Store card')
        descriptor.store_card()
        with pytest.raises(ConflictingStyle):
            descriptor.coupon()

        write.assert_not_called()
        load.assert_not_called()

    def test_wrong_password_creates_no_output(self, template_dir, store_card_descriptor,
                                              signing_material, tmp_path):
        """
        GIVEN a key-store password that doesn't match the key-store
        WHEN exporting
        THEN CertificateLoadError is raised and the output path is not created
        """
        output = tmp_path / 'StoreCard.pkpass'

        with pytest.raises(CertificateLoadError):
            export_pass(
                store_card_descriptor, BundleStore.load(template_dir), output,
                signing_material.p12_path, 'wrong password', signing_material.wwdr_path,
            )

        assert not output.exists()
        assert list(tmp_path.glob('*.tmp')) == []

    def test_wrong_password_leaves_existing_output(self, template_dir, store_card_descriptor,
                                                   signing_material, tmp_path):
        output = tmp_path / 'StoreCard.pkpass'
        output.write_bytes(b'previous pass')

        with pytest.raises(CertificateLoadError):
            export_pass(
                store_card_descriptor, BundleStore.load(template_dir), output,
                signing_material.p12_path, 'wrong password', signing_material.wwdr_path,
            )

        assert output.read_bytes() == b'previous pass'

    def test_missing_authentication_token_rejected(self, template_dir, store_card_descriptor,
                                                   export_args, tmp_path):
        store_card_descriptor.set_authentication_token('')

        with pytest.raises(MissingPassAttribute) as exc_info:
            export_pass(store_card_descriptor, BundleStore.load(template_dir),
                        tmp_path / 'out.pkpass', *export_args)

        assert 'authenticationToken' in exc_info.value.message
        assert not (tmp_path / 'out.pkpass').exists()

    def test_incomplete_descriptor_rejected(self, template_dir, export_args, tmp_path):
        descriptor = PassDescriptor(organization_name='Test Store', description='Store card')
        descriptor.store_card()

        with pytest.raises(MissingPassAttribute):
            export_pass(descriptor, BundleStore.load(template_dir), tmp_path / 'out.pkpass', *export_args)

        assert not (tmp_path / 'out.pkpass').exists()


# =============================================================================
# ARCHIVE TESTS
# =============================================================================

@pytest.mark.unit
class TestArchive:
    """Test zip writing."""

    def test_members_have_no_directory_entries(self, tmp_path):
        bundle = BundleStore({'pass.json': b'{}', 'de.lproj/pass.strings': b'"a" = "b";'})

        write_archive(bundle, tmp_path / 'out.pkpass')

        with zipfile.ZipFile(tmp_path / 'out.pkpass') as archive:
            assert archive.namelist() == ['pass.json', 'de.lproj/pass.strings']

    def test_archive_bytes_matches_bundle(self):
        bundle = BundleStore({'pass.json': b'{}', 'icon.png': b'icon'})

        data = archive_bytes(bundle)

        assert data[:2] == b'PK'

    def test_read_archive(self, tmp_path):
        bundle = BundleStore({'pass.json': b'{}', 'icon.png': b'icon'})
        write_archive(bundle, tmp_path / 'out.pkpass')

        assert dict(read_archive(tmp_path / 'out.pkpass').entries()) == dict(bundle.entries())

    def test_read_archive_rejects_non_zip(self, tmp_path):
        path = tmp_path / 'out.pkpass'
        path.write_bytes(b'not a zip')

        with pytest.raises(TemplateReadError):
            read_archive(path)

    def test_missing_destination_directory(self, tmp_path):
        with pytest.raises(ArchiveWriteError):
            write_archive(BundleStore({'pass.json': b'{}'}), tmp_path / 'missing' / 'out.pkpass')

    def test_failed_write_cleans_up(self, tmp_path, mocker):
        """
        GIVEN an existing pass at the destination
        WHEN writing the archive fails midway
        THEN ArchiveWriteError is raised, the temp file is removed and the
            existing pass is untouched
        """
        output = tmp_path / 'out.pkpass'
        output.write_bytes(b'previous pass')
        mocker.patch('wallet_pass.archive.os.fsync', side_effect=OSError(28, 'No space left on device'))

        with pytest.raises(ArchiveWriteError):
            write_archive(BundleStore({'pass.json': b'{}'}), output)

        assert output.read_bytes() == b'previous pass'
        assert sorted(p.name for p in tmp_path.iterdir()) == ['out.pkpass']


# =============================================================================
# DIRECTORY SIGNING TESTS
# =============================================================================

@pytest.mark.integration
class TestSignDirectory:
    """Test signing a raw pass directory."""

    def test_sign_directory_uses_pass_json_as_is(self, template_dir, export_args, tmp_path):
        output = sign_directory(template_dir, tmp_path / 'raw.pkpass', *export_args)

        bundle = read_archive(output)
        assert bundle['pass.json'] == (template_dir / 'pass.json').read_bytes()
        verify_bundle(bundle)

    def test_existing_artifacts_need_force(self, template_dir, export_args, tmp_path):
        (template_dir / 'signature').write_bytes(b'old')

        with pytest.raises(TemplateReadError):
            sign_directory(template_dir, tmp_path / 'raw.pkpass', *export_args)

        output = sign_directory(template_dir, tmp_path / 'raw.pkpass', *export_args, force=True)
        verify_archive(output)

    def test_directory_without_pass_json(self, tmp_path, export_args, png_bytes):
        directory = tmp_path / 'Empty.pass'
        directory.mkdir()
        (directory / 'icon.png').write_bytes(png_bytes())

        with pytest.raises(MissingPassAttribute):
            sign_directory(directory, tmp_path / 'empty.pkpass', *export_args)

    def test_default_output_path(self):
        assert str(default_output_path('passes/StoreCard.pass')) == 'StoreCard.pkpass'


# =============================================================================
# VERIFICATION TESTS
# =============================================================================

@pytest.mark.integration
class TestVerifyBundle:
    """Test verification of signed bundles."""

    def test_tampered_member_detected(self, template_dir, export_args, tmp_path):
        output = sign_directory(template_dir, tmp_path / 'raw.pkpass', *export_args)
        bundle = read_archive(output)

        bundle.put('icon.png', b'replaced')

        with pytest.raises(SignatureVerificationError) as exc_info:
            verify_bundle(bundle)
        assert 'icon.png' in exc_info.value.message

    def test_unsigned_bundle_rejected(self):
        with pytest.raises(SignatureVerificationError):
            verify_bundle(BundleStore({'pass.json': b'{}'}))

# test_config.py

"""
Signing configuration tests.
"""
import pytest

from wallet_pass import CertificateLoadError, PassConfigurationError
from wallet_pass.config import SigningConfig

WALLET_VARIABLES = (
    'WALLET_TEAM_ID', 'WALLET_PASS_TYPE_ID', 'WALLET_P12_PATH', 'WALLET_P12_PASSWORD',
    'WALLET_CERT_PATH', 'WALLET_KEY_PATH', 'WALLET_KEY_PASSWORD', 'WALLET_WWDR_PATH',
    'WALLET_LOG_LEVEL',
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every WALLET_* variable for the test."""
    for name in WALLET_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestSigningConfig:
    """Test environment-driven configuration."""

    def test_reads_environment(self, clean_env, signing_material):
        clean_env.setenv('WALLET_TEAM_ID', 'ABCDE12345')
        clean_env.setenv('WALLET_P12_PATH', str(signing_material.p12_path))
        clean_env.setenv('WALLET_P12_PASSWORD', signing_material.password)
        clean_env.setenv('WALLET_WWDR_PATH', str(signing_material.wwdr_path))
        clean_env.setenv('WALLET_LOG_LEVEL', 'debug')

        config = SigningConfig()

        assert config.team_identifier == 'ABCDE12345'
        assert config.uses_keystore
        assert config.log_level == 'DEBUG'
        assert config.validate() is True

    def test_defaults(self, clean_env):
        config = SigningConfig()

        assert config.log_level == 'WARNING'
        assert config.keystore_path is None

    def test_all_problems_reported_together(self, clean_env, tmp_path):
        """
        GIVEN a short team identifier and missing certificate files
        WHEN validating
        THEN one PassConfigurationError lists every problem
        """
        clean_env.setenv('WALLET_TEAM_ID', 'SHORT')
        clean_env.setenv('WALLET_CERT_PATH', str(tmp_path / 'certificate.pem'))
        clean_env.setenv('WALLET_KEY_PATH', str(tmp_path / 'key.pem'))
        clean_env.setenv('WALLET_WWDR_PATH', str(tmp_path / 'wwdr.pem'))

        with pytest.raises(PassConfigurationError) as exc_info:
            SigningConfig().validate()

        message = exc_info.value.message
        assert 'Team identifier must be 10 characters, got 5' in message
        assert 'Certificate not found' in message
        assert 'Private Key not found' in message
        assert 'WWDR Certificate not found' in message

    def test_no_credentials_configured(self, clean_env):
        clean_env.setenv('WALLET_TEAM_ID', 'ABCDE12345')

        problems = SigningConfig().problems()

        assert 'Set WALLET_P12_PATH or WALLET_CERT_PATH and WALLET_KEY_PATH' in problems
        assert 'WWDR Certificate path is not set' in problems

    def test_load_keystore_credentials(self, clean_env, signing_material):
        clean_env.setenv('WALLET_TEAM_ID', 'ABCDE12345')
        clean_env.setenv('WALLET_P12_PATH', str(signing_material.p12_path))
        clean_env.setenv('WALLET_P12_PASSWORD', signing_material.password)
        clean_env.setenv('WALLET_WWDR_PATH', str(signing_material.wwdr_path))

        with SigningConfig().load_credentials() as credentials:
            assert credentials.certificate == signing_material.leaf_cert

    def test_load_pem_credentials(self, clean_env, signing_material):
        clean_env.setenv('WALLET_TEAM_ID', 'ABCDE12345')
        clean_env.setenv('WALLET_CERT_PATH', str(signing_material.cert_path))
        clean_env.setenv('WALLET_KEY_PATH', str(signing_material.key_path))
        clean_env.setenv('WALLET_WWDR_PATH', str(signing_material.wwdr_path))

        config = SigningConfig()

        assert not config.uses_keystore
        assert config.load_credentials().certificate == signing_material.leaf_cert

    def test_wrong_keystore_password(self, clean_env, signing_material):
        clean_env.setenv('WALLET_TEAM_ID', 'ABCDE12345')
        clean_env.setenv('WALLET_P12_PATH', str(signing_material.p12_path))
        clean_env.setenv('WALLET_P12_PASSWORD', 'wrong')
        clean_env.setenv('WALLET_WWDR_PATH', str(signing_material.wwdr_path))

        with pytest.raises(CertificateLoadError):
            SigningConfig().load_credentials()

    def test_repr_hides_password(self, clean_env, signing_material):
        clean_env.setenv('WALLET_P12_PATH', str(signing_material.p12_path))
        clean_env.setenv('WALLET_P12_PASSWORD', 'top-secret')

        assert 'top-secret' not in repr(SigningConfig())

# wallet_pass/config.py

"""
Signing Configuration

Certificate paths, passwords and identifiers come from the environment,
optionally seeded from a .env file:

    WALLET_TEAM_ID        10-character Apple team identifier
    WALLET_PASS_TYPE_ID   Pass type identifier (pass.com.example.membership)
    WALLET_P12_PATH       PKCS#12 key-store with certificate and key
    WALLET_P12_PASSWORD   Key-store password
    WALLET_CERT_PATH      PEM certificate (alternative to the key-store)
    WALLET_KEY_PATH       PEM private key (alternative to the key-store)
    WALLET_KEY_PASSWORD   Private key password
    WALLET_WWDR_PATH      Apple WWDR intermediate certificate
    WALLET_LOG_LEVEL      Logging level for the CLI (default WARNING)
"""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

from wallet_pass.exceptions import PassConfigurationError
from wallet_pass.signing import SigningCredentials, load_credentials, load_pem_credentials

load_dotenv()

logger = logging.getLogger(__name__)

TEAM_IDENTIFIER_LENGTH = 10


def get_env_variable(var_name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(var_name, default)
    return value if value != '' else default


class SigningConfig:
    """Configuration for signing passes, read from WALLET_* variables."""

    def __init__(self):
        self.team_identifier = get_env_variable('WALLET_TEAM_ID')
        self.pass_type_identifier = get_env_variable('WALLET_PASS_TYPE_ID')

        self.keystore_path = get_env_variable('WALLET_P12_PATH')
        self.keystore_password = get_env_variable('WALLET_P12_PASSWORD')

        self.certificate_path = get_env_variable('WALLET_CERT_PATH')
        self.key_path = get_env_variable('WALLET_KEY_PATH')
        self.key_password = get_env_variable('WALLET_KEY_PASSWORD')

        self.wwdr_path = get_env_variable('WALLET_WWDR_PATH')
        self.log_level = get_env_variable('WALLET_LOG_LEVEL', 'WARNING').upper()

    @property
    def uses_keystore(self) -> bool:
        return bool(self.keystore_path)

    def problems(self) -> List[str]:
        """Every configuration problem, not just the first one."""
        problems = []

        if not self.team_identifier:
            problems.append("WALLET_TEAM_ID is not set")
        elif len(self.team_identifier) != TEAM_IDENTIFIER_LENGTH:
            problems.append(
                f"Team identifier must be {TEAM_IDENTIFIER_LENGTH} characters, "
                f"got {len(self.team_identifier)}"
            )

        if self.uses_keystore:
            files = [('Key-store', self.keystore_path)]
        elif self.certificate_path or self.key_path:
            files = [('Certificate', self.certificate_path), ('Private Key', self.key_path)]
        else:
            files = []
            problems.append("Set WALLET_P12_PATH or WALLET_CERT_PATH and WALLET_KEY_PATH")
        files.append(('WWDR Certificate', self.wwdr_path))

        for name, path in files:
            if not path:
                problems.append(f"{name} path is not set")
            elif not os.path.exists(path):
                problems.append(f"{name} not found at {path}")

        return problems

    def validate(self) -> bool:
        problems = self.problems()
        if problems:
            raise PassConfigurationError(f"Wallet signing configuration errors: {'; '.join(problems)}")
        return True

    def load_credentials(self) -> SigningCredentials:
        """Key-store when configured, otherwise the PEM certificate/key pair."""
        self.validate()
        if self.uses_keystore:
            logger.debug(f"Loading signing credentials from key-store {self.keystore_path}")
            return load_credentials(self.keystore_path, self.keystore_password, self.wwdr_path)

        logger.debug(f"Loading signing credentials from {self.certificate_path}")
        return load_pem_credentials(
            self.certificate_path, self.key_path, self.wwdr_path, self.key_password
        )

    def __repr__(self):
        source = self.keystore_path if self.uses_keystore else self.certificate_path
        return f"SigningConfig(team_identifier={self.team_identifier!r}, credentials={source!r})"

"""
Local Secrets Vault

Encrypted storage for the sync credentials (SharePoint client secret,
datastore service key, database passwords). Values are kept in a single
Fernet-encrypted JSON file; the key is derived from a master key held in
the VAULT_MASTER_KEY environment variable (or a .key file in the vault dir).

vault_config() is a drop-in replacement for python-decouple's config():
it looks in the vault first and falls back to the environment / .env file.
"""

import base64
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from decouple import config as env_config, UndefinedValueError

logger = logging.getLogger(__name__)

VAULT_SALT = b'salesync-vault-2024'
KDF_ITERATIONS = 100000


def derive_fernet(master_key: str) -> Fernet:
    """Fernet cipher keyed by PBKDF2-SHA256 over the master key."""
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=VAULT_SALT, iterations=KDF_ITERATIONS)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(master_key.encode('utf-8'))))


class LocalSecretsVault:
    """
    One encrypted secrets file plus an audit log, both under vault_dir.

    Nothing is written to disk until the first set() or delete().

    Raises:
        ValueError: On construction when no master key is available
    """

    def __init__(self, vault_dir: str = ".vault", master_key_env: str = "VAULT_MASTER_KEY"):
        self.vault_dir = Path(vault_dir)
        self.master_key_env = master_key_env
        self.secrets_file = self.vault_dir / "secrets.enc"
        self.audit_log = self.vault_dir / "audit.log"

        self._fernet = derive_fernet(self._master_key())
        self._cache: Dict[str, Any] = {}

    def _master_key(self) -> str:
        from_env = os.environ.get(self.master_key_env)
        if from_env:
            return from_env

        key_file = self.vault_dir / ".key"
        if key_file.exists():
            return key_file.read_text(encoding='utf-8').strip()

        raise ValueError(
            f"Master key not found. Set {self.master_key_env} environment variable "
            f"or create {key_file}"
        )

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        """Decrypted value of key, or default when it is not stored."""
        if key not in self._cache:
            stored = self._read()
            if key not in stored:
                return default
            self._cache[key] = stored[key]
        return self._cache[key]

    def set(self, key: str, value: Any) -> None:
        """Encrypt and store value under key."""
        stored = self._read()
        stored[key] = value
        self._write(stored)
        self._cache[key] = value
        self._audit("SET", key)

    def delete(self, key: str) -> bool:
        """Remove key. Returns False if it was not stored."""
        stored = self._read()
        if key not in stored:
            return False
        del stored[key]
        self._write(stored)
        self._cache.pop(key, None)
        self._audit("DELETE", key)
        return True

    def list_keys(self) -> List[str]:
        return sorted(self._read())

    def _read(self) -> Dict[str, Any]:
        if not self.secrets_file.exists():
            return {}

        token = self.secrets_file.read_bytes()
        if not token:
            return {}

        try:
            return json.loads(self._fernet.decrypt(token).decode('utf-8'))
        except InvalidToken:
            logger.error(f"Cannot decrypt {self.secrets_file}: wrong master key?")
            return {}

    def _write(self, secrets: Dict[str, Any]) -> None:
        self.vault_dir.mkdir(parents=True, exist_ok=True)
        self.secrets_file.write_bytes(self._fernet.encrypt(json.dumps(secrets).encode('utf-8')))

        for path, mode in ((self.vault_dir, 0o700), (self.secrets_file, 0o600)):
            try:
                os.chmod(path, mode)
            except OSError:
                logger.warning(f"Could not restrict permissions on {path}")

    def _audit(self, operation: str, key: str) -> None:
        # Keys only; values never reach the log
        stamp = datetime.now(timezone.utc).isoformat()
        with open(self.audit_log, 'a', encoding='utf-8') as f:
            f.write(f"[{stamp}] {operation}: {key}\n")


_vault_instance: Optional[LocalSecretsVault] = None


def get_vault(vault_dir: Optional[str] = None) -> LocalSecretsVault:
    """
    Shared vault, created on first use in vault_dir (default: VAULT_DIR or ./.vault).

    Raises:
        ValueError: If the vault has no master key
    """
    global _vault_instance

    if _vault_instance is None:
        _vault_instance = LocalSecretsVault(vault_dir=vault_dir or os.environ.get('VAULT_DIR', '.vault'))
    return _vault_instance


def reset_vault() -> None:
    """Forget the shared vault so the next get_vault() rereads the environment."""
    global _vault_instance
    _vault_instance = None


def _cast_value(value: Any, cast: type) -> Any:
    if cast is bool and isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')
    return cast(value)


def vault_config(key: str, default: Any = None, cast: type = None) -> Any:
    """
    Read key from the vault, then from the environment / .env, else default.

    Without a master key the vault is skipped silently.
    """
    value = None
    try:
        value = get_vault().get(key)
    except ValueError:
        logger.debug(f"Vault not available, reading {key} from environment")

    if value is None:
        try:
            value = env_config(key)
        except UndefinedValueError:
            value = default

    if value is not None and cast is not None:
        value = _cast_value(value, cast)
    return value


def secure_config(key: str, default: Any = None, cast: type = None) -> Any:
    """Alias for vault_config, used for values that are secrets."""
    return vault_config(key, default, cast)

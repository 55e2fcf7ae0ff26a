"""
Credential storage for connectors.

Credentials live in ``~/.briefops/credentials/<connector-id>.env`` as simple
``KEY=value`` lines, written with owner-only permissions. Environment
variables always take precedence over the file.

Lookup order for an auth field ``accessToken`` on connector ``hubspot``:

1. env var ``HUBSPOT_ACCESS_TOKEN``
2. file entry ``HUBSPOT_ACCESS_TOKEN``
3. file entry ``accessToken``
"""
import os
import re
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

from briefops.core.config_loader import ConfigLoader
from briefops.utils.logger import LogCategory, get_logger

from .types import ConnectorDefinition

logger = get_logger(__name__, category=LogCategory.CREDENTIALS)

DIR_MODE = 0o700
FILE_MODE = 0o600
# Values safe to write unquoted
PLAIN_VALUE = re.compile(r"[\w.:/?&=@%+,~*!^-]*")


def sanitize_connector_id(connector_id: str) -> str:
    """
    Make a connector id safe to use as a file name.

    Path separators become ``-``, ``..`` sequences are removed and any other
    character outside ``[A-Za-z0-9_-]`` becomes ``-``.

    Raises:
        ValueError: If nothing usable is left.
    """
    safe = re.sub(r"[/\\]", "-", connector_id)
    safe = safe.replace("..", "")
    safe = re.sub(r"[^a-zA-Z0-9_-]", "-", safe).lower()
    if not safe.strip("-_"):
        raise ValueError(f"Connector id {connector_id!r} is empty after sanitization")
    return safe


def env_prefix(connector_id: str) -> str:
    return connector_id.upper().replace("-", "_")


def field_to_env_suffix(field_name: str) -> str:
    """camelCase -> SCREAMING_SNAKE_CASE (``accessToken`` -> ``ACCESS_TOKEN``)."""
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", field_name).upper()


def env_var_name(connector_id: str, field_name: str) -> str:
    return f"{env_prefix(connector_id)}_{field_to_env_suffix(field_name)}"


def format_env_line(key: str, value: str) -> str:
    """One ``KEY=value`` line; values dotenv would misread are single-quoted."""
    if PLAIN_VALUE.fullmatch(value):
        return f"{key}={value}\n"
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"{key}='{escaped}'\n"


class CredentialStore:
    """
    Reads and writes per-connector credential files.

    Example:
        >>> store = CredentialStore()
        >>> store.save_credentials("support-desk", {"SUPPORT_DESK_TOKEN": "xyz"})
        >>> store.resolve_credentials(connector)
        {'token': 'xyz'}
    """

    def __init__(self, root: Optional[Path] = None, config: Optional[ConfigLoader] = None):
        if root is None:
            root = (config or ConfigLoader()).get_credentials_dir()
        self.root = Path(root)

    def credentials_path(self, connector_id: str) -> Path:
        """Path of a connector's credential file, always inside ``root``."""
        path = self.root / f"{sanitize_connector_id(connector_id)}.env"
        if path.resolve().parent != self.root.resolve():
            raise ValueError(f"Refusing credential path outside {self.root}: {path}")
        return path

    def ensure_dir(self) -> None:
        """Create the credentials directory with owner-only permissions."""
        if not self.root.exists():
            self.root.mkdir(parents=True, mode=DIR_MODE)
            # mkdir's mode is filtered through the umask
            os.chmod(self.root, DIR_MODE)

    def save_credentials(self, connector_id: str, credentials: Dict[str, str]) -> Path:
        """
        Write credentials for a connector, replacing any existing file.

        Returns:
            Path of the written file
        """
        self.ensure_dir()
        path = self.credentials_path(connector_id)
        content = "".join(format_env_line(key, value) for key, value in credentials.items())

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(path, FILE_MODE)

        logger.info("credentials_saved", connector=connector_id, keys=sorted(credentials))
        return path

    def load_credentials(self, connector_id: str) -> Optional[Dict[str, str]]:
        """Load a connector's credential file, or None if there is none."""
        path = self.credentials_path(connector_id)
        if not path.exists():
            return None
        try:
            # Stored secrets are taken literally, no ${VAR} expansion
            values = dotenv_values(path, interpolate=False, encoding="utf-8")
        except OSError as e:
            logger.warning("credentials_unreadable", connector=connector_id, path=str(path), error=str(e))
            return None
        # A bare "KEY" line parses to None
        return {key: value for key, value in values.items() if value is not None}

    def delete_credentials(self, connector_id: str) -> bool:
        """Remove a connector's credential file. Returns False if absent."""
        path = self.credentials_path(connector_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info("credentials_deleted", connector=connector_id)
        return True

    def get_credential(self, connector_id: str, key: str) -> Optional[str]:
        """Look up one key: environment first, then the credential file."""
        value = os.environ.get(key)
        if value:
            return value
        stored = self.load_credentials(connector_id) or {}
        return stored.get(key) or None

    def resolve_credentials(self, connector: ConnectorDefinition) -> Dict[str, str]:
        """
        Resolve every auth field of a connector.

        Missing fields resolve to an empty string; required ones also log a
        warning. Template expansion later leaves their placeholders visible
        so the failure surfaces where the value is used.

        Args:
            connector: Connector whose ``auth.fields`` to resolve

        Returns:
            Mapping of field name to value
        """
        credentials: Dict[str, str] = {}
        if connector.auth is None or not connector.auth.fields:
            return credentials

        stored: Optional[Dict[str, str]] = None

        for field_name, auth_field in connector.auth.fields.items():
            var = env_var_name(connector.id, field_name)
            value = os.environ.get(var)

            if not value:
                if stored is None:
                    stored = self.load_credentials(connector.id) or {}
                value = stored.get(var) or stored.get(field_name)

            if value:
                credentials[field_name] = value
                continue

            credentials[field_name] = ""
            if auth_field.required:
                logger.warning(
                    "missing_credential",
                    connector=connector.id,
                    field=field_name,
                    env_var=var,
                )

        return credentials

"""
Saved database connection profile (``~/.db_config``).

The file holds ``KEY=VALUE`` lines:

    DB_TYPE=postgres
    DB_HOST=localhost
    DB_PORT=5432
    DB_USER=admin
    DB_PASSWORD=...        (only when no keyring backend is available)
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional

import keyring
from keyring.errors import KeyringError
from pydantic import BaseModel

from opskit.core.config import KEYRING_SERVICE
from opskit.core.exceptions import PreconditionError

logger = logging.getLogger(__name__)

PASSWORD_KEY = "db_password"


class DbType(str, Enum):
    """Supported database servers."""
    MYSQL = "mysql"
    POSTGRES = "postgres"

    @property
    def default_port(self) -> int:
        return 3306 if self is DbType.MYSQL else 5432

    @property
    def driver(self) -> str:
        return "mysql+pymysql" if self is DbType.MYSQL else "postgresql+psycopg2"

    @property
    def label(self) -> str:
        return "MySQL" if self is DbType.MYSQL else "PostgreSQL"


class DatabaseProfile(BaseModel):
    """Connection settings loaded once per invocation."""
    db_type: DbType
    host: str = "localhost"
    port: int
    user: str
    password: Optional[str] = None

    def with_type(self, db_type: DbType) -> "DatabaseProfile":
        """Same credentials against another server type (``db connect``)."""
        if db_type == self.db_type:
            return self
        port = self.port if self.port != self.db_type.default_port else db_type.default_port
        return self.model_copy(update={"db_type": db_type, "port": port})

    def password_env(self) -> Dict[str, str]:
        """Environment that hands the password to the command-line clients."""
        if not self.password:
            return {}
        if self.db_type is DbType.MYSQL:
            return {"MYSQL_PWD": self.password}
        return {"PGPASSWORD": self.password}


def parse_profile(lines: Iterable[str]) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` lines; comments and blank lines are ignored."""
    values: Dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        values[key.strip()] = value
    return values


def _keyring_password() -> Optional[str]:
    try:
        return keyring.get_password(KEYRING_SERVICE, PASSWORD_KEY)
    except KeyringError as e:
        logger.debug("Keyring unavailable: %s", e)
        return None


def load_profile(path: Path) -> DatabaseProfile:
    """
    Load the saved profile.

    The password comes from ``DB_PASSWORD`` in the environment, then the
    keyring, then the file itself.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise PreconditionError("No configuration found. Run: opskit db setup")

    with open(path, "r", encoding="utf-8") as f:
        values = parse_profile(f)

    try:
        db_type = DbType(values.get("DB_TYPE", ""))
    except ValueError:
        raise PreconditionError(f"Unsupported database type in {path}: {values.get('DB_TYPE')!r}")

    port_value = values.get("DB_PORT") or str(db_type.default_port)
    if not port_value.isdigit():
        raise PreconditionError(f"Invalid DB_PORT in {path}: {port_value!r}")

    password = os.environ.get("DB_PASSWORD") or _keyring_password() or values.get("DB_PASSWORD") or None
    return DatabaseProfile(
        db_type=db_type,
        host=values.get("DB_HOST") or "localhost",
        port=int(port_value),
        user=values.get("DB_USER", ""),
        password=password,
    )


def save_profile(profile: DatabaseProfile, path: Path, use_keyring: bool = True) -> bool:
    """
    Write the profile with mode 0600.

    Returns:
        True when the password went to the keyring instead of the file.
    """
    path = Path(path).expanduser()
    stored_in_keyring = False
    if use_keyring and profile.password:
        try:
            keyring.set_password(KEYRING_SERVICE, PASSWORD_KEY, profile.password)
            stored_in_keyring = True
        except KeyringError as e:
            logger.info("Keyring unavailable, storing password in %s: %s", path, e)

    lines = [
        f"DB_TYPE={profile.db_type.value}",
        f"DB_HOST={profile.host}",
        f"DB_PORT={profile.port}",
        f"DB_USER={profile.user}",
    ]
    if profile.password and not stored_in_keyring:
        lines.append(f"DB_PASSWORD={profile.password}")

    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    os.chmod(path, 0o600)
    return stored_in_keyring

"""Discovery of the databases declared in the configuration mapping."""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

from sqlalchemy.engine import URL

DATABASE_NAME_SUFFIXES = ("_DATABASE", "_DB_NAME")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = "5432"
DEFAULT_USER = "root"
DEFAULT_PASSWORD = ""

ADMIN_DATABASE = "postgres"


@dataclass(frozen=True)
class DatabaseProfile:
    """Resolved connection parameters for one database to provision."""

    name: str
    host: str
    port: str
    user: str
    password: str

    def url(self, database: str = ADMIN_DATABASE) -> URL:
        """SQLAlchemy URL for *database* on this profile's server."""
        return URL.create(
            "postgresql+asyncpg",
            username=self.user or None,
            password=self.password or None,
            host=self.host,
            port=int(self.port),
            database=database,
        )


def global_defaults(env: Mapping[str, str]) -> Dict[str, str]:
    """The DB_* connection values every profile falls back to."""
    return {
        "host": env.get("DB_HOST", DEFAULT_HOST),
        "port": env.get("DB_PORT", DEFAULT_PORT),
        "user": env.get("DB_USERNAME", DEFAULT_USER),
        "password": env.get("DB_PASSWORD", DEFAULT_PASSWORD),
    }


def _strip_suffix(key: str):
    for suffix in DATABASE_NAME_SUFFIXES:
        if key.endswith(suffix):
            return key[: -len(suffix)]
    return None


def discover_databases(env: Mapping[str, str]) -> Dict[str, DatabaseProfile]:
    """Map every declared database name to its provisioning profile.

    A key ending in ``_DATABASE`` or ``_DB_NAME`` declares a database; its
    prefix selects ``{prefix}_HOST``, ``{prefix}_PORT``, ``{prefix}_USERNAME``
    and ``{prefix}_PASSWORD``. Profiles for the same name collapse to the last
    one seen.
    """
    defaults = global_defaults(env)
    databases: Dict[str, DatabaseProfile] = {}
    for key, value in env.items():
        prefix = _strip_suffix(key)
        if prefix is None or not value:
            continue
        databases[value] = DatabaseProfile(
            name=value,
            host=env.get(f"{prefix}_HOST", defaults["host"]),
            port=env.get(f"{prefix}_PORT", defaults["port"]),
            user=env.get(f"{prefix}_USERNAME", defaults["user"]),
            password=env.get(f"{prefix}_PASSWORD", defaults["password"]),
        )
    return databases


def endpoints(profiles: Mapping[str, DatabaseProfile]) -> List[Tuple[str, int]]:
    """Distinct (host, port) pairs in discovery order."""
    seen: List[Tuple[str, int]] = []
    for profile in profiles.values():
        try:
            endpoint = (profile.host, int(profile.port))
        except ValueError:
            continue
        if endpoint not in seen:
            seen.append(endpoint)
    return seen

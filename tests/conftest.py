"""Shared fixtures for bootstrap tests.

Provides a fake SQLAlchemy async engine, subprocess result factories and a
throw-away project directory.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from upms_bootstrap.config import Settings


def make_result(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    """Create a mock subprocess.CompletedProcess."""
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


# ---------------------------------------------------------------------------
# Fake database server
# ---------------------------------------------------------------------------

class FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):
        return self._value


class FakeConnection:
    def __init__(self, server: "FakeServer", engine: "FakeEngine"):
        self.server = server
        self.engine = engine

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, statement, params=None):
        sql = str(statement)
        self.server.statements.append((self.engine.url.host, sql, params))
        if "FROM pg_database" in sql:
            return FakeResult(1 if params["name"] in self.server.existing else None)
        if sql.startswith("CREATE DATABASE"):
            name = sql[len("CREATE DATABASE "):].strip('"')
            self.server.existing.add(name)
        return FakeResult(None)


class FakeEngine:
    def __init__(self, server: "FakeServer", url, kwargs):
        self.server = server
        self.url = url
        self.kwargs = kwargs
        self.disposed = False

    def connect(self):
        if self.url.host in self.server.unreachable:
            raise ConnectionRefusedError(f"connection to {self.url.host} refused")
        return FakeConnection(self.server, self)

    async def dispose(self):
        self.disposed = True


class FakeServer:
    """Records every engine and statement instead of talking to PostgreSQL."""

    def __init__(self, existing=(), unreachable=()):
        self.existing = set(existing)
        self.unreachable = set(unreachable)
        self.engines = []
        self.statements = []

    def engine_factory(self, url, **kwargs):
        engine = FakeEngine(self, url, kwargs)
        self.engines.append(engine)
        return engine

    def created(self):
        return [sql for _, sql, _ in self.statements if sql.startswith("CREATE DATABASE")]


@pytest.fixture
def fake_server():
    return FakeServer()


# ---------------------------------------------------------------------------
# Project directory
# ---------------------------------------------------------------------------

@pytest.fixture
def project(tmp_path):
    """Project directory with a .env.example template and a vendor/ folder."""
    root = tmp_path / "upms"
    root.mkdir()
    (root / "vendor").mkdir()
    (root / ".env.example").write_text(
        "APP_NAME=UPMS\n"
        "DB_HOST=127.0.0.1\n"
        "DB_PORT=5432\n"
        "DB_DATABASE=upms\n"
        "DB_USERNAME=upms\n"
        "DB_PASSWORD=secret\n"
    )
    return root


@pytest.fixture
def settings_factory(project):
    """Factory for Settings pointing at the temporary project."""
    def _factory(**overrides):
        values = {
            "project_path": str(project),
            "backup_dir": str(project / "db_backup"),
            "db_ready_timeout": 1.0,
            "db_ready_max_interval": 0.01,
            "server_health_timeout": 1.0,
        }
        values.update(overrides)
        return Settings(**values)
    return _factory

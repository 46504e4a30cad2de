"""Create any configured database that does not exist yet."""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from upms_bootstrap.profiles import ADMIN_DATABASE, DatabaseProfile

logger = logging.getLogger(__name__)

EXISTS_QUERY = text("SELECT 1 FROM pg_database WHERE datname = :name")

STATUS_EXISTS = "exists"
STATUS_CREATED = "created"
STATUS_FAILED = "failed"


def quote_identifier(name: str) -> str:
    """Quote a PostgreSQL identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


@dataclass
class ProvisionResult:
    name: str
    status: str
    error: Optional[str] = None


class DatabaseProvisioner:
    """Check each profile's database against pg_database and create it when absent.

    Failures are per database: a connection or query error is logged and the
    next profile is processed. The existence check and the CREATE are not
    wrapped in a transaction (CREATE DATABASE cannot run inside one), so two
    concurrent provisioners may race.
    """

    def __init__(self, engine_factory: Callable[..., AsyncEngine] = create_async_engine):
        self.engine_factory = engine_factory

    def _create_engine(self, profile: DatabaseProfile) -> AsyncEngine:
        return self.engine_factory(
            profile.url(ADMIN_DATABASE),
            isolation_level="AUTOCOMMIT",
            poolclass=NullPool,
        )

    async def provision(self, profiles: Iterable[DatabaseProfile]) -> List[ProvisionResult]:
        results = []
        for profile in profiles:
            if not profile.name:
                continue
            results.append(await self.provision_one(profile))
        return results

    async def provision_one(self, profile: DatabaseProfile) -> ProvisionResult:
        logger.info("Checking database: %s (%s:%s)", profile.name, profile.host, profile.port)
        engine = None
        try:
            engine = self._create_engine(profile)
            async with engine.connect() as conn:
                result = await conn.execute(EXISTS_QUERY, {"name": profile.name})
                if result.scalar() is not None:
                    logger.info("Database %s exists.", profile.name)
                    return ProvisionResult(profile.name, STATUS_EXISTS)

                logger.info("Creating database %s...", profile.name)
                await conn.execute(text(f"CREATE DATABASE {quote_identifier(profile.name)}"))
                logger.info("✓ Database %s created.", profile.name)
                return ProvisionResult(profile.name, STATUS_CREATED)
        except Exception as e:
            logger.error("Error provisioning database %s: %s", profile.name, e)
            return ProvisionResult(profile.name, STATUS_FAILED, str(e))
        finally:
            if engine is not None:
                await engine.dispose()

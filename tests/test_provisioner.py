"""Tests for creating missing databases (fake engine, no PostgreSQL needed)."""

from sqlalchemy.pool import NullPool

from upms_bootstrap.profiles import DatabaseProfile, discover_databases
from upms_bootstrap.provisioner import (
    STATUS_CREATED,
    STATUS_EXISTS,
    STATUS_FAILED,
    DatabaseProvisioner,
    quote_identifier,
)


def _profile(name: str, host: str = "db") -> DatabaseProfile:
    return DatabaseProfile(name, host, "5432", "root", "secret")


async def test_absent_database_is_created_once(fake_server):
    provisioner = DatabaseProvisioner(engine_factory=fake_server.engine_factory)

    results = await provisioner.provision([_profile("upms")])

    assert [(r.name, r.status) for r in results] == [("upms", STATUS_CREATED)]
    assert fake_server.created() == ['CREATE DATABASE "upms"']


async def test_existing_database_is_not_created(fake_server):
    fake_server.existing.add("upms")
    provisioner = DatabaseProvisioner(engine_factory=fake_server.engine_factory)

    results = await provisioner.provision([_profile("upms")])

    assert results[0].status == STATUS_EXISTS
    assert fake_server.created() == []


async def test_second_run_is_idempotent(fake_server):
    provisioner = DatabaseProvisioner(engine_factory=fake_server.engine_factory)

    await provisioner.provision([_profile("upms")])
    results = await provisioner.provision([_profile("upms")])

    assert results[0].status == STATUS_EXISTS
    assert len(fake_server.created()) == 1


async def test_existence_query_is_parameterized(fake_server):
    provisioner = DatabaseProvisioner(engine_factory=fake_server.engine_factory)

    await provisioner.provision([_profile("upms")])

    host, sql, params = fake_server.statements[0]
    assert "SELECT 1 FROM pg_database WHERE datname = :name" == sql
    assert params == {"name": "upms"}


async def test_engine_uses_admin_database_and_autocommit(fake_server):
    provisioner = DatabaseProvisioner(engine_factory=fake_server.engine_factory)

    await provisioner.provision([_profile("reports", host="dbhost2")])

    engine = fake_server.engines[0]
    assert engine.url.host == "dbhost2"
    assert engine.url.database == "postgres"
    assert engine.kwargs["isolation_level"] == "AUTOCOMMIT"
    assert engine.kwargs["poolclass"] is NullPool
    assert engine.disposed is True


async def test_failure_for_one_database_does_not_stop_the_batch(fake_server):
    fake_server.unreachable.add("down")
    provisioner = DatabaseProvisioner(engine_factory=fake_server.engine_factory)

    results = await provisioner.provision([
        _profile("first", host="down"),
        _profile("second", host="db"),
    ])

    assert [(r.name, r.status) for r in results] == [
        ("first", STATUS_FAILED),
        ("second", STATUS_CREATED),
    ]
    assert "refused" in results[0].error
    assert all(engine.disposed for engine in fake_server.engines)


async def test_invalid_port_is_reported_as_failure(fake_server):
    provisioner = DatabaseProvisioner(engine_factory=fake_server.engine_factory)

    results = await provisioner.provision([DatabaseProfile("upms", "db", "abc", "root", "")])

    assert results[0].status == STATUS_FAILED
    assert fake_server.engines == []


async def test_scenario_attempts_each_discovered_database(fake_server):
    env = {
        "UPMS_DATABASE": "upms",
        "REPORT_DATABASE": "reports",
        "REPORT_HOST": "dbhost2",
    }
    provisioner = DatabaseProvisioner(engine_factory=fake_server.engine_factory)

    results = await provisioner.provision(discover_databases(env).values())

    assert [r.name for r in results] == ["upms", "reports"]
    assert [(e.url.host, e.url.port, e.url.username) for e in fake_server.engines] == [
        ("127.0.0.1", 5432, "root"),
        ("dbhost2", 5432, "root"),
    ]


def test_quote_identifier_doubles_embedded_quotes():
    assert quote_identifier("upms") == '"upms"'
    assert quote_identifier('we"ird') == '"we""ird"'

"""Tests for the artisan command wrapper."""

from unittest.mock import MagicMock, patch

from upms_bootstrap.artisan import Artisan, php_quote


def _make_result(returncode: int = 0) -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    return result


def test_migrate_runs_forced_migration():
    artisan = Artisan(cwd="/upms")
    with patch("upms_bootstrap.artisan.subprocess.run", return_value=_make_result(0)) as mock_run:
        assert artisan.migrate() is True
    mock_run.assert_called_once_with(["php", "artisan", "migrate", "--force"], cwd="/upms")


def test_generate_key():
    with patch("upms_bootstrap.artisan.subprocess.run", return_value=_make_result(0)) as mock_run:
        assert Artisan().generate_key() is True
    assert mock_run.call_args[0][0] == ["php", "artisan", "key:generate", "--force"]


def test_failure_is_reported_as_false():
    with patch("upms_bootstrap.artisan.subprocess.run", return_value=_make_result(1)):
        assert Artisan().migrate() is False


def test_missing_php_is_reported_as_false():
    with patch("upms_bootstrap.artisan.subprocess.run", side_effect=FileNotFoundError("php")):
        assert Artisan().migrate() is False


def test_reset_passwords_updates_every_user():
    with patch("upms_bootstrap.artisan.subprocess.run", return_value=_make_result(0)) as mock_run:
        assert Artisan().reset_passwords("password") is True

    cmd = mock_run.call_args[0][0]
    assert cmd[:3] == ["php", "artisan", "tinker"]
    script = cmd[3]
    assert script.startswith("--execute=echo \\App\\Models\\User::query()->update([")
    assert "'password' => bcrypt('password')" in script
    assert "'password_expires_at' => null" in script


def test_php_quote_escapes_quotes_and_backslashes():
    assert php_quote("pa'ss") == "'pa\\'ss'"
    assert php_quote("a\\b") == "'a\\\\b'"


def test_serve_command():
    assert Artisan().serve_command("0.0.0.0", 80) == [
        "php", "artisan", "serve", "--host", "0.0.0.0", "--port", "80",
    ]

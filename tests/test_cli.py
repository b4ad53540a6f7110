"""
Maintenance CLI argument handling.
"""
from unittest.mock import AsyncMock

import pytest

from tubehub.cli import maintenance


@pytest.fixture
def purge(monkeypatch):
    purge = AsyncMock(return_value=[])
    monkeypatch.setattr(maintenance, "run_purge", purge)
    monkeypatch.setattr(maintenance, "setup_logging", lambda **kwargs: None)
    return purge


def test_purge_arguments(purge):
    assert maintenance.main(["purge-stale-uploads", "--older-than-seconds", "7200", "--dry-run"]) == 0

    purge.assert_awaited_once_with(7200, True, True)


def test_purge_default_age_covers_upload_window(purge):
    settings = maintenance.get_settings()

    maintenance.main(["purge-stale-uploads", "--no-cancel"])

    purge.assert_awaited_once_with(
        settings.upload_url_ttl_seconds + settings.stale_upload_grace_seconds, False, False
    )


def test_no_command_prints_help(purge, capsys):
    assert maintenance.main([]) == 0

    assert "purge-stale-uploads" in capsys.readouterr().out
    purge.assert_not_awaited()

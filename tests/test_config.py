"""Tests for settings loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from labledger.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("STORE_URL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.success_display_s == 2.0
        assert settings.error_display_s == 3.0
        assert settings.info_display_s == 3.0
        assert not settings.store_configured

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("STORE_URL", "http://gateway.test/rpc")
        monkeypatch.setenv("READ_RETRIES", "5")
        settings = Settings(_env_file=None)
        assert settings.store_configured
        assert settings.read_retries == 5

    @pytest.mark.parametrize("field", ["read_retries", "success_display_s", "store_timeout_s"])
    def test_rejects_negative(self, field):
        with pytest.raises(ValidationError, match="must be >= 0"):
            Settings(_env_file=None, **{field: -1})

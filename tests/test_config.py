"""Unit tests for core/config.py -- Settings loading and limit validation."""

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_defaults(monkeypatch):
    for var in ("PORT", "BCRYPT_ROUNDS", "SESSION_MAX_AGE", "MAX_UPLOAD_BYTES"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings(_env_file=None)
    assert settings.port == 3000
    assert settings.bcrypt_rounds == 12
    assert settings.session_max_age == 3600
    assert settings.max_upload_bytes == 5 * 1024 * 1024
    assert settings.secure_cookies is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("SECURE_COOKIES", "true")
    settings = Settings(_env_file=None)
    assert settings.port == 8080
    assert settings.secure_cookies is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"bcrypt_rounds": 3},
        {"bcrypt_rounds": 32},
        {"session_max_age": 0},
        {"max_upload_bytes": -1},
    ],
)
def test_out_of_range_limits_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)

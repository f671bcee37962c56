import pytest

from imgate.config import DEFAULT_ALLOWED_TYPES, Config


def test_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    config = Config.from_environment()
    assert config.auth_token is None
    assert config.url_prefix == "/rest"
    assert config.allowed_types == DEFAULT_ALLOWED_TYPES
    assert config.rate_limit_max_requests == 20
    assert config.global_rate_limit_max_requests == 100
    assert config.rate_limit_fail_open is True


def test_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("IMGATE_AUTH_TOKEN", "s3cret")
    monkeypatch.setenv("IMGATE_PUBLIC_BASE_URL", "https://cdn.example.com/")
    monkeypatch.setenv("IMGATE_ALLOWED_TYPES", "image/png=png, image/heic")
    monkeypatch.setenv("IMGATE_GLOBAL_RATE_LIMIT_MAX_REQUESTS", "0")
    monkeypatch.setenv("IMGATE_RATE_LIMIT_FAIL_OPEN", "no")
    config = Config.from_environment()
    assert config.auth_token == "s3cret"
    assert config.public_base_url == "https://cdn.example.com"
    assert config.allowed_types == {"image/png": "png", "image/heic": "heic"}
    assert config.global_rate_limit_max_requests == 0
    assert config.rate_limit_fail_open is False


def test_env_file(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    # registers the variable so the value loaded from .env is undone afterwards
    monkeypatch.setenv("IMGATE_REDIS_DSN", "")
    monkeypatch.delenv("IMGATE_REDIS_DSN")
    (tmp_path / ".env").write_text('# local\nIMGATE_REDIS_DSN="redis://cache:6379"\n')
    config = Config.from_environment()
    assert config.redis_dsn == "redis://cache:6379"

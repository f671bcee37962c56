from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

ENV_FILE = Path(".env")
ENV_PREFIX = "IMGATE_"

DEFAULT_ALLOWED_TYPES: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/bmp": "bmp",
    "image/x-icon": "ico",
    "image/avif": "avif",
    "image/tiff": "tiff",
}


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _env(name: str) -> str | None:
    return os.environ.get(ENV_PREFIX + name) or None


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_types(value: str | None) -> dict[str, str]:
    """`image/png=png,image/jpeg=jpg`; a bare mime type uses its subtype as extension."""
    if not value:
        return dict(DEFAULT_ALLOWED_TYPES)
    types = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        mime, _, ext = item.partition("=")
        types[mime.strip()] = ext.strip() or mime.split("/")[-1]
    return types


@dataclass
class Config:
    auth_token: str | None = None
    url_prefix: str = "/rest"
    public_base_url: str = ""
    allowed_types: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALLOWED_TYPES))
    max_upload_bytes: int = 20 * 1024 * 1024
    cache_control: str | None = "public, max-age=31536000"
    client_ip_header: str = "CF-Connecting-IP"
    rate_limit_max_requests: int = 20
    rate_limit_window: float = 60
    global_rate_limit_max_requests: int = 100
    rate_limit_fail_open: bool = True
    redis_dsn: str | None = None
    s3_bucket: str | None = None
    s3_region: str = "us-east-1"
    s3_access_key_id: str | None = None
    s3_access_key_secret: str | None = None
    s3_endpoint: str | None = None
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> Config:
        _load_env_file()
        return cls(
            auth_token=_env("AUTH_TOKEN"),
            url_prefix=(_env("URL_PREFIX") or cls.url_prefix).rstrip("/"),
            public_base_url=(_env("PUBLIC_BASE_URL") or cls.public_base_url).rstrip("/"),
            allowed_types=_as_types(_env("ALLOWED_TYPES")),
            max_upload_bytes=int(_env("MAX_UPLOAD_BYTES") or cls.max_upload_bytes),
            cache_control=_env("CACHE_CONTROL") or cls.cache_control,
            client_ip_header=_env("CLIENT_IP_HEADER") or cls.client_ip_header,
            rate_limit_max_requests=int(
                _env("RATE_LIMIT_MAX_REQUESTS") or cls.rate_limit_max_requests
            ),
            rate_limit_window=float(_env("RATE_LIMIT_WINDOW") or cls.rate_limit_window),
            global_rate_limit_max_requests=int(
                _env("GLOBAL_RATE_LIMIT_MAX_REQUESTS") or cls.global_rate_limit_max_requests
            ),
            rate_limit_fail_open=_as_bool(_env("RATE_LIMIT_FAIL_OPEN"), cls.rate_limit_fail_open),
            redis_dsn=_env("REDIS_DSN"),
            s3_bucket=_env("S3_BUCKET"),
            s3_region=_env("S3_REGION") or cls.s3_region,
            s3_access_key_id=_env("S3_ACCESS_KEY_ID"),
            s3_access_key_secret=_env("S3_ACCESS_KEY_SECRET"),
            s3_endpoint=_env("S3_ENDPOINT"),
            host=_env("HOST") or cls.host,
            port=int(_env("PORT") or cls.port),
            log_level=_env("LOG_LEVEL") or cls.log_level,
        )

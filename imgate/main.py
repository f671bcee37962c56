import logging
from contextlib import AsyncExitStack

import anyio
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from imgate.api import gateway_error_handler, request_validation_handler, router
from imgate.config import Config
from imgate.depends import bind
from imgate.errors import GatewayError
from imgate.logging_config import setup_logging
from imgate.ratelimit import CounterStore, RateLimiter, Throttle, global_key, per_client_key
from imgate.storage import StorageBackend

logger = logging.getLogger(__name__)


def make_throttle(counters: CounterStore, config: Config) -> Throttle:
    limiters = [
        RateLimiter(
            counters,
            max_requests=config.rate_limit_max_requests,
            window=config.rate_limit_window,
            key=per_client_key,
            fail_open=config.rate_limit_fail_open,
        )
    ]
    if config.global_rate_limit_max_requests > 0:
        limiters.append(
            RateLimiter(
                counters,
                max_requests=config.global_rate_limit_max_requests,
                window=config.rate_limit_window,
                key=global_key,
                fail_open=config.rate_limit_fail_open,
            )
        )
    return Throttle(limiters)


def make_app(
    storage: StorageBackend,
    counters: CounterStore,
    config: Config,
) -> FastAPI:
    app = FastAPI()
    app.include_router(router, prefix=config.url_prefix)
    app.add_exception_handler(GatewayError, gateway_error_handler)  # type: ignore
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore
    bind(app, StorageBackend, storage)
    bind(app, Throttle, make_throttle(counters, config))
    bind(app, Config, config)
    return app


async def main() -> None:
    import uvicorn

    from imgate.ratelimit.memory import MemoryCounterStore
    from imgate.ratelimit.redis import RedisCounterStore
    from imgate.storage.memory import InMemoryBackend
    from imgate.storage.s3 import S3Storage

    config = Config.from_environment()
    setup_logging(config.log_level)

    async with AsyncExitStack() as stack:
        counters: CounterStore
        if config.redis_dsn:
            counters = await stack.enter_async_context(RedisCounterStore.connect(config.redis_dsn))
        else:
            logger.warning("no redis configured, rate limits are per process")
            counters = MemoryCounterStore()
        fs: StorageBackend
        if config.s3_bucket:
            fs = await stack.enter_async_context(
                S3Storage.connect(
                    bucket=config.s3_bucket,
                    access_key_id=config.s3_access_key_id or "",
                    access_key_secret=config.s3_access_key_secret or "",
                    region=config.s3_region,
                    endpoint=config.s3_endpoint,
                )
            )
        else:
            logger.warning("no bucket configured, objects are kept in memory")
            fs = InMemoryBackend()
        app = make_app(fs, counters, config)

        server = uvicorn.Server(
            uvicorn.Config(app, host=config.host, port=config.port, log_config=None)
        )
        await server.serve()


def run() -> None:
    anyio.run(main)


if __name__ == "__main__":
    run()

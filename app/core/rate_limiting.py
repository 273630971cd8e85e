from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from redis.asyncio import Redis

from app.core.config import settings
from app.core.custom_logging import logger


async def init_redis(app: FastAPI) -> None:
    redis = Redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    await FastAPILimiter.init(redis)
    app.state.redis = redis
    logger.info(f"Rate limiter connected to {settings.REDIS_URL}")


async def close_redis(app: FastAPI) -> None:
    if FastAPILimiter.redis is not None:
        await FastAPILimiter.close()


# Windows are per client IP; exceeding one is a 429, nothing is queued
global_rate_limit = RateLimiter(times=settings.GLOBAL_RATE_LIMIT_TIMES, minutes=1)
auth_rate_limit = RateLimiter(
    times=settings.AUTH_RATE_LIMIT_TIMES, minutes=settings.AUTH_RATE_LIMIT_MINUTES
)
upload_rate_limit = RateLimiter(
    times=settings.UPLOAD_RATE_LIMIT_TIMES, minutes=settings.UPLOAD_RATE_LIMIT_MINUTES
)

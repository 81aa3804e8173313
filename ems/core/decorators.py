# ems/core/decorators.py
import asyncio
import functools
import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


def _find_request(args, kwargs) -> Optional[Request]:
    for value in list(args) + list(kwargs.values()):
        if isinstance(value, Request):
            return value
    return None


def log_execution_time(func):
    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = await func(*args, **kwargs)
            elapsed = time.time() - start_time
            logger.info(f"{func.__name__} took {elapsed:.4f}s")
            return result
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(f"{func.__name__} failed after {elapsed:.4f}s: {str(e)}")
            raise

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
            elapsed = time.time() - start_time
            logger.info(f"{func.__name__} took {elapsed:.4f}s")
            return result
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(f"{func.__name__} failed after {elapsed:.4f}s: {str(e)}")
            raise

    return async_wrapper if asyncio.iscoroutinefunction(func) else sync_wrapper


def log_requests(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        request = _find_request(args, kwargs)
        request_id = datetime.now().strftime("%Y%m%d%H%M%S%f")

        if request:
            client_ip = request.client.host if request.client else "unknown"
            logger.info(f"REQ {request_id}: {request.method} {request.url} from {client_ip}")
        else:
            logger.info(f"FUNC {request_id}: {func.__name__} called")

        start_time = time.time()
        try:
            result = await func(*args, **kwargs)
            elapsed = time.time() - start_time
            logger.info(f"DONE {request_id}: completed in {elapsed:.4f}s")
            return result
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(f"FAIL {request_id}: error after {elapsed:.4f}s - {str(e)}")
            raise

    return wrapper


def rate_limit(calls=60, period=60):
    cache = {}
    global_cache = []

    def decorator(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            nonlocal global_cache
            request = _find_request(args, kwargs)
            current_time = time.time()

            # Keep only timestamps within the rate limit period
            global_cache = [ts for ts in global_cache if current_time - ts < period]

            if request and request.client:
                client_ip = request.client.host
                history = [ts for ts in cache.get(client_ip, []) if current_time - ts < period]

                if len(history) >= calls:
                    logger.warning(f"Client rate limit exceeded: {client_ip} ({len(history)} requests in {period}s)")
                    raise HTTPException(
                        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                        detail=f"Too many requests. Try again in {period} seconds."
                    )

                history.append(current_time)
                cache[client_ip] = history
            else:
                # No client address: fall back to a looser process-wide limit
                if len(global_cache) >= calls * 10:
                    logger.warning(f"Global rate limit exceeded: {len(global_cache)} requests in {period}s")
                    raise HTTPException(
                        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                        detail=f"Server busy. Try again in {period} seconds."
                    )

                global_cache.append(current_time)

            return await func(*args, **kwargs)

        return async_wrapper

    return decorator

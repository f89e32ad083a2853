import asyncio
import functools
import logging
import time

from translation_pipeline.metrics import JOB_DURATION, JOB_FAILURE, JOB_SUCCESS

logger = logging.getLogger(__name__)


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


def _record_outcome(job_name: str, started: float, succeeded: bool) -> None:
    JOB_DURATION.labels(job_name=job_name).observe(time.monotonic() - started)
    counter = JOB_SUCCESS if succeeded else JOB_FAILURE
    counter.labels(job_name=job_name).inc()


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    retry_on: tuple[type[Exception], ...] = (Exception,),
):
    """Retry a scheduled async job with exponential backoff.

    Only exceptions in ``retry_on`` are retried; anything else ends the run on
    the first attempt. A run that never succeeds is logged, counted as a
    failure and returns None so the scheduler simply tries again next interval.
    """
    def decorator(func):
        job_name = func.__name__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.monotonic()
            for attempt in range(1, max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                except retry_on as e:
                    if attempt == max_attempts:
                        logger.error(
                            "Job %s failed after %d attempts: %s", job_name, max_attempts, e,
                            exc_info=True,
                        )
                        break
                    delay = _backoff_delay(attempt, base_delay, max_delay)
                    logger.warning(
                        "Job %s failed (attempt %d/%d): %s. Retrying in %.1fs",
                        job_name, attempt, max_attempts, e, delay,
                    )
                    await asyncio.sleep(delay)
                except Exception as e:
                    logger.error("Job %s failed with non-retryable error: %s", job_name, e, exc_info=True)
                    break
                else:
                    _record_outcome(job_name, started, succeeded=True)
                    return result

            _record_outcome(job_name, started, succeeded=False)
            return None
        return wrapper
    return decorator

# storefront/utils/retry.py
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)
import redis


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def lock_wait_retry(timeout: float):
    # lock zajety (False) -> ponawiamy az sie zwolni albo minie timeout, wtedy False
    # wyjatki (RedisError) nie sa tu ponawiane, leca dalej
    return retry(
        stop=stop_after_delay(timeout),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_result(lambda acquired: not acquired),
        retry_error_callback=lambda retry_state: False,
    )

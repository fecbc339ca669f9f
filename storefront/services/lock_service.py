import redis
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje atomowo przez lua, skrypt dziala jako jedna nieprzerywalna operacja
#nie mozna wcisnac sie miedzy GET a DEL


class LockService:
    """
    -krotka blokada produktu na czas sprawdzenia dostepnosci i zapisu rezerwacji
    -zwalnianie locka tylko przez wlasciciela (token)
    -atomowosc przy pomocy lua
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def product_key(product_id: int) -> str:
        return f"product:{product_id}:reserve"

    @redis_retry()
    def acquire_product_lock(self, product_id: int, token: str, ttl: int) -> bool:
        key = self.product_key(product_id)
        logger.info(f"Acquire lock {key} for {token}")
        #SET product:1:reserve "order:7" NX EX 10
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True, #tylko jesli klucz nie istnieje
                ex=ttl, #wygasa sam, nawet jak proces padnie
            )
        )

    @redis_retry()
    def release_product_lock(self, product_id: int, token: str) -> bool:
        key = self.product_key(product_id)
        logger.info(f"Release lock {key} for {token}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

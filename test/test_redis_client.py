"""
Webhook idempotency: SET NX against the client passed in, off when no redis URL is configured.
"""
from order_tracker.redis_client import check_idempotency, get_redis


class FakeRedis:
    def __init__(self) -> None:
        self.keys: dict[str, int] = {}

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None):
        if nx and key in self.keys:
            return None
        self.keys[key] = ex
        return True


async def test_no_url_means_no_client() -> None:
    assert await get_redis(None) is None
    assert await get_redis("") is None


async def test_without_redis_nothing_is_a_duplicate() -> None:
    assert await check_idempotency(None, "idempotency:payment:txn-1:approved", 60) is False


async def test_second_claim_is_a_duplicate() -> None:
    r = FakeRedis()
    assert await check_idempotency(r, "idempotency:shipment:TRK-1:shipped", 60) is False
    assert await check_idempotency(r, "idempotency:shipment:TRK-1:shipped", 60) is True
    assert r.keys == {"idempotency:shipment:TRK-1:shipped": 60}

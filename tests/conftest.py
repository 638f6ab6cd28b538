from datetime import date

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from snapdash.cache.store import SnapshotStore
from snapdash.warehouse.reader import WarehouseReader
from snapdash.warehouse.stores import StoreDirectory
from snapdash.warehouse.tables import metadata, sale_daily, stock_daily, stock_monthly

AS_OF = date(2025, 11, 14)

P1 = "MK24F0TS01"
P2 = "MK24F0JP02"
P3 = "MK23F0TS03"
P4 = "MK21F0CP04"
P5 = "MK24S0TS05"
P6 = "MK25F0TS06"


class FakeRedis:
    """In-memory stand-in for the async Redis commands the store uses."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.ttls: dict[str, int] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple] = []

    def fail(self, *commands: str) -> None:
        self.failing.update(commands)

    def _check(self, command: str, *args) -> None:
        self.calls.append((command, *args))
        if command in self.failing:
            raise RedisConnectionError(f"{command} refused")

    async def get(self, key):
        self._check("get", key)
        return self.values.get(key)

    async def set(self, key, value, ex=None):
        self._check("set", key)
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def sadd(self, key, *members):
        self._check("sadd", key)
        bucket = self.sets.setdefault(key, set())
        added = len(set(members) - bucket)
        bucket.update(members)
        return added

    async def smembers(self, key):
        self._check("smembers", key)
        return set(self.sets.get(key, set()))

    async def expire(self, key, seconds):
        self._check("expire", key)
        if key not in self.values and key not in self.sets:
            return False
        self.ttls[key] = seconds
        return True

    async def ttl(self, key):
        self._check("ttl", key)
        return self.ttls.get(key, -2)

    async def delete(self, *keys):
        self._check("delete", *keys)
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def aclose(self):
        return None

    def exists(self, key) -> bool:
        return key in self.values or key in self.sets


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def store(fake_redis):
    return SnapshotStore(fake_redis, prefix="test")


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def stores():
    return StoreDirectory({"HKMC": {"M": ["M01", "WHM"], "X": ["X01"]}})


def _stock(stock_dt, prdt_cd, sesn, amount, shop="M01", brand="M"):
    return {"stock_dt": stock_dt, "brd_cd": brand, "local_shop_cd": shop, "sesn": sesn, "prdt_cd": prdt_cd, "tag_stock_amt": amount}


def _sale(sale_dt, prdt_cd, sesn, tag, act, shop="M01", brand="M"):
    return {"sale_dt": sale_dt, "brd_cd": brand, "local_shop_cd": shop, "sesn": sesn, "prdt_cd": prdt_cd, "tag_sale_amt": tag, "act_sale_amt": act}


@pytest.fixture()
def seeded_engine(engine):
    base_dt = date(2025, 8, 31)
    curr_dt = date(2025, 11, 15)
    prev_dt = date(2025, 11, 1)
    with engine.begin() as conn:
        conn.execute(stock_daily.insert(), [
            _stock(base_dt, P1, "24F", 1000),
            _stock(base_dt, P2, "24F", 500),
            _stock(base_dt, P3, "23F", 400),
            _stock(base_dt, P4, "21F", 300),
            _stock(base_dt, P5, "24S", 999),
            _stock(base_dt, P6, "25F", 100),
            _stock(curr_dt, P1, "24F", 800),
            _stock(curr_dt, P1, "24F", 200, shop="WHM", brand="I"),
            _stock(curr_dt, P1, "24F", 5000, shop="M99"),
            _stock(curr_dt, P3, "23F", 400),
            _stock(curr_dt, P4, "21F", 1000),
            _stock(curr_dt, P5, "24S", 999),
            _stock(curr_dt, P6, "25F", 50),
            _stock(curr_dt, "MK99X0TS07", "X9", 70),
            _stock(prev_dt, P1, "24F", 1100),
            _stock(prev_dt, P3, "23F", 400),
            _stock(date(2024, 11, 15), "MK23F0TS08", "23F", 600),
            _stock(date(2024, 11, 15), P1, "24F", 700),
        ])
        conn.execute(stock_monthly.insert(), [
            {"yyyymm": "202508", "brd_cd": "M", "local_shop_cd": "M01", "sesn": "24F", "prdt_cd": P1, "tag_stock_amt": 900},
            {"yyyymm": "202508", "brd_cd": "M", "local_shop_cd": "M01", "sesn": "23F", "prdt_cd": P3, "tag_stock_amt": 400},
            {"yyyymm": "202410", "brd_cd": "M", "local_shop_cd": "M01", "sesn": "23F", "prdt_cd": "MK23F0TS08", "tag_stock_amt": 500},
        ])
        conn.execute(sale_daily.insert(), [
            _sale(date(2025, 9, 10), P1, "24F", 300, 240),
            _sale(date(2025, 11, 10), P1, "24F", 100, 80),
            _sale(date(2025, 10, 5), P2, "24F", 500, 250),
            _sale(date(2025, 11, 12), P4, "21F", 2, 2),
            _sale(date(2025, 11, 12), P6, "25F", 40, 40),
            _sale(date(2025, 8, 20), P1, "24F", 999, 999),
        ])
    return engine


@pytest.fixture()
def reader(seeded_engine, stores):
    return WarehouseReader(seeded_engine, stores)

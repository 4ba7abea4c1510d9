from __future__ import annotations

import asyncio

from common.db import DBManager
from forwarder.state import ForwardRecord, RoutingTable


async def test_claim_is_first_come_only():
    record = ForwardRecord()

    assert await record.claim(10) is True
    assert await record.claim(10) is False
    assert await record.claim(11) is True
    assert len(record) == 2


async def test_concurrent_claims_admit_one():
    record = ForwardRecord()

    results = await asyncio.gather(*(record.claim(5) for _ in range(20)))

    assert results.count(True) == 1


async def test_route_set_and_get(routes):
    assert await routes.get(1) is None

    await routes.set(1, 100)
    await routes.set(1, 200)
    await routes.set(2, 300)

    assert await routes.get(1) == 200
    assert await routes.get(2) == 300
    assert routes.snapshot() == {1: 200, 2: 300}


async def test_routes_survive_restart(tmp_path):
    path = str(tmp_path / "routes.db")
    first = DBManager(path, init_schema=True)
    await RoutingTable(first).set(7, 123456789012345678)
    first.close()

    second = DBManager(path, init_schema=True)
    table = RoutingTable(second)
    assert await table.get(7) is None

    assert await table.load_all() == 1
    assert await table.get(7) == 123456789012345678
    second.close()

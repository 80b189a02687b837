from scripts.seed_data import seed


async def test_seed_is_idempotent(storage):
    created = await seed(storage)
    assert set(created) == {"ubs", "disease"}
    assert created["disease"].name == "Sífilis Congênita"

    assert await seed(storage) == {}
    assert len(await storage.list_ubs()) == 1
    assert len(await storage.list_diseases()) == 1

"""
Integration tests for the /ws realtime channel.
"""

import pytest

pytestmark = pytest.mark.integration


@pytest.fixture
def levelup_for_alex(client):
    async def build():
        await client.post("/api/player-stats", json={"id": "1", "name": "Alex"})
        await client.post("/api/player-stats", json={"id": "2", "name": "Sam"})
        await client.post("/api/player-stats", json={"id": "1", "exp": 100})

    return build


async def test_connect_replays_unacknowledged(client, levelup_for_alex):
    await levelup_for_alex()

    async with client.ws_connect("/ws?playerId=2") as ws:
        frame = await ws.receive_json(timeout=5)

    assert frame["event"] == "notification"
    assert frame["data"]["type"] == "levelup"
    assert frame["data"]["playerName"] == "Alex"
    assert frame["data"]["level"] == 2


async def test_mutations_broadcast_data_changed(client, levelup_for_alex):
    await levelup_for_alex()

    async with client.ws_connect("/ws?playerId=2") as ws:
        await ws.receive_json(timeout=5)

        response = await client.post("/api/tasks", json={"title": "Mop", "player": "2"})
        assert response.status == 200

        assert await ws.receive_json(timeout=5) == {"event": "dataChanged"}


async def test_new_notification_is_pushed_live(client, levelup_for_alex):
    await levelup_for_alex()

    async with client.ws_connect("/ws?playerId=2") as ws:
        await ws.receive_json(timeout=5)

        await client.post("/api/player-stats", json={"id": "2", "exp": 100})

        frames = [await ws.receive_json(timeout=5) for _ in range(3)]

    notifications = [f for f in frames if f["event"] == "notification"]
    assert [n["data"]["playerId"] for n in notifications] == ["2"]
    assert {"event": "dataChanged"} in frames


async def test_seen_over_the_socket(client, container, levelup_for_alex):
    await levelup_for_alex()
    await client.patch("/api/notifications/seen", json={"playerId": "1"})

    async with client.ws_connect("/ws?playerId=2") as ws:
        await ws.receive_json(timeout=5)

        await ws.send_json({"type": "seen", "playerId": "2"})

        frames = []
        while not any(f.get("event") == "seen" for f in frames):
            frames.append(await ws.receive_json(timeout=5))

    assert {"event": "seen", "removed": 1} in frames
    assert container.notifications.list_all() == []

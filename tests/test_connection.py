from types import SimpleNamespace

from peerflex.database import connection


class RecordingClient:
    instances = []

    def __init__(self, url, **kwargs):
        self.url = url
        self.kwargs = kwargs
        self.closed = False
        RecordingClient.instances.append(self)

    def __getitem__(self, name):
        return SimpleNamespace(name=name)

    def close(self):
        self.closed = True


async def test_client_returns_timezone_aware_datetimes(monkeypatch):
    RecordingClient.instances.clear()
    monkeypatch.setattr(connection, "AsyncIOMotorClient", RecordingClient)

    db = await connection.connect_to_mongo("mongodb://example:27017", "peerflex_tz")

    [client] = RecordingClient.instances
    assert client.url == "mongodb://example:27017"
    assert client.kwargs["tz_aware"] is True
    assert db.name == "peerflex_tz"
    assert connection.get_database() is db

    await connection.close_mongo_connection()
    assert client.closed is True

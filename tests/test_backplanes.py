"""Redis and Google Pub/Sub backplanes route broadcasts into the local registry."""
import asyncio
import json

import pytest

from taskhub.services.gcloud_pub_sub import GooglePubSubService
from taskhub.services.redis_pub_sub import AsyncRedisPubSubService, log_listener_exit

pytestmark = pytest.mark.asyncio


class FakeRedis:
    def __init__(self):
        self.published = []

    async def publish(self, channel, message):
        self.published.append((channel, message))


class TestRedis:
    async def test_publish_uses_room_channel(self, manager):
        service = AsyncRedisPubSubService(manager)
        service.client = FakeRedis()

        await service.publish("r1", "typing", "abc", exclude="abc")

        [(channel, raw)] = service.client.published
        assert channel == "room:r1"
        assert json.loads(raw) == {"room": "r1", "event": "typing", "data": "abc", "exclude": "abc"}

    async def test_route_delivers_locally(self, manager, connect, drain):
        a = await connect()
        b = await connect()
        manager.join(a, "r1")
        manager.join(b, "r1")
        service = AsyncRedisPubSubService(manager)

        delivered = service.route(json.dumps({"room": "r1", "event": "typing", "data": a.id, "exclude": a.id}))

        assert delivered == 1
        assert drain(a) == []
        assert drain(b) == [{"event": "typing", "data": a.id}]

    async def test_route_ignores_incomplete_message(self, manager):
        service = AsyncRedisPubSubService(manager)
        assert service.route(json.dumps({"data": "x"})) == 0

    async def test_url(self, manager):
        assert AsyncRedisPubSubService(manager, host="h", port=1).url == "redis://h:1"
        assert AsyncRedisPubSubService(manager, host="h", port=1, access_key="k", ssl=True).url == "rediss://:k@h:1"

    async def test_listener_crash_is_logged(self, caplog):
        async def listen():
            raise ConnectionError("connection reset")

        task = asyncio.create_task(listen())
        task.add_done_callback(log_listener_exit)
        await asyncio.wait([task])
        await asyncio.sleep(0)

        assert "Redis listener stopped" in caplog.text
        assert "connection reset" in caplog.text

    async def test_cancelled_listener_is_quiet(self, caplog):
        task = asyncio.create_task(asyncio.sleep(10))
        task.add_done_callback(log_listener_exit)
        task.cancel()
        await asyncio.wait([task])
        await asyncio.sleep(0)

        assert "Redis listener" not in caplog.text


class FakeFuture:
    def __init__(self, error=None):
        self.cancelled = False
        self.error = error

    def result(self):
        if self.error is not None:
            raise self.error
        return "msg-1"

    def cancel(self):
        self.cancelled = True


class FakePublisher:
    def __init__(self, error=None):
        self.published = []
        self.resumed = []
        self.error = error

    def topic_path(self, project, topic):
        return f"projects/{project}/topics/{topic}"

    def publish(self, topic_path, data, **attrs):
        self.published.append((topic_path, data, attrs))
        return FakeFuture(self.error)

    def resume_publish(self, topic_path, ordering_key):
        self.resumed.append((topic_path, ordering_key))


class FakeSubscriber:
    def __init__(self):
        self.callback = None
        self.closed = False
        self.future = FakeFuture()

    def subscription_path(self, project, subscription):
        return f"projects/{project}/subscriptions/{subscription}"

    def subscribe(self, path, callback):
        self.callback = callback
        return self.future

    def close(self):
        self.closed = True


class FakeMessage:
    def __init__(self, data: bytes):
        self.data = data
        self.acked = False
        self.nacked = False

    def ack(self):
        self.acked = True

    def nack(self):
        self.nacked = True


class TestGooglePubSub:
    @pytest.fixture
    def service(self, manager):
        return GooglePubSubService(
            manager, "proj", "rooms", "rooms-instance-1",
            publisher=FakePublisher(), subscriber=FakeSubscriber(),
        )

    async def test_publish(self, service):
        await service.publish("r1", "chat:message", {"message": "hi"})

        [(path, data, attrs)] = service.publisher.published
        assert path == "projects/proj/topics/rooms"
        assert attrs == {"room": "r1", "ordering_key": "r1"}
        assert json.loads(data) == {"room": "r1", "event": "chat:message", "data": {"message": "hi"}, "exclude": None}

    async def test_callback_delivers_on_loop(self, service, manager, connect, drain):
        conn = await connect()
        manager.join(conn, "r1")
        service.start(asyncio.get_running_loop())
        message = FakeMessage(json.dumps({"room": "r1", "event": "typing", "data": "x"}).encode())

        await asyncio.to_thread(service.subscriber.callback, message)
        for _ in range(10):
            if not conn.outbox.empty():
                break
            await asyncio.sleep(0.01)

        assert message.acked
        assert drain(conn) == [{"event": "typing", "data": "x"}]

    async def test_bad_message_is_nacked(self, service):
        service.start(asyncio.get_running_loop())
        message = FakeMessage(b"not json")
        service.subscriber.callback(message)
        assert message.nacked

    async def test_shutdown(self, service):
        service.start(asyncio.get_running_loop())
        service.shutdown()
        assert service.subscriber.future.cancelled
        assert service.subscriber.closed

    async def test_failed_publish_resumes_ordering_key(self, manager):
        service = GooglePubSubService(
            manager, "proj", "rooms", "rooms-instance-1",
            publisher=FakePublisher(error=RuntimeError("deadline exceeded")), subscriber=FakeSubscriber(),
        )

        with pytest.raises(RuntimeError):
            await service.publish("r1", "typing", "x")

        assert service.publisher.resumed == [("projects/proj/topics/rooms", "r1")]

    async def test_room_messages_keep_publish_order(self, service, manager, connect, drain):
        conn = await connect()
        manager.join(conn, "r1")
        service.start(asyncio.get_running_loop())

        for n in range(3):
            message = FakeMessage(json.dumps({"room": "r1", "event": "chat:message", "data": n}).encode())
            await asyncio.to_thread(service.subscriber.callback, message)
        for _ in range(10):
            if conn.outbox.qsize() == 3:
                break
            await asyncio.sleep(0.01)

        assert [frame["data"] for frame in drain(conn)] == [0, 1, 2]

    async def test_delivery_failure_is_logged(self, service, manager, caplog, monkeypatch):
        def broken_deliver(*args):
            raise KeyError("boom")

        monkeypatch.setattr(manager, "deliver", broken_deliver)
        service.start(asyncio.get_running_loop())
        message = FakeMessage(json.dumps({"room": "r1", "event": "typing", "data": "x"}).encode())

        await asyncio.to_thread(service.subscriber.callback, message)
        for _ in range(10):
            if "Error delivering Pub/Sub message" in caplog.text:
                break
            await asyncio.sleep(0.01)

        assert message.acked
        assert "Error delivering Pub/Sub message" in caplog.text

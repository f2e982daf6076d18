import json

import httpx
import pytest

from edupro.core.events import ChangeFeed
from edupro.notifications.sender import ExpoPushSender, NullSender, notify


class FailingSender:
    async def send(self, tokens, title, body, route_hint=None) -> None:
        raise RuntimeError("boom")


async def test_expo_sender_posts_one_message_per_token() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"status": "ok"}, {"status": "ok"}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sender = ExpoPushSender(endpoint="https://push.test/send", client=client)
        delivered = await notify(sender, ["tok-a", "tok-b", "tok-a", None], "Hello", "World", route_hint="home")

    assert delivered == 2
    assert captured["url"] == "https://push.test/send"
    assert [m["to"] for m in captured["body"]] == ["tok-a", "tok-b"]
    assert captured["body"][0]["data"] == {"route": "home"}


async def test_notify_swallows_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sender = ExpoPushSender(endpoint="https://push.test/send", client=client)
        assert await notify(sender, ["tok-a"], "Hello", "World") == 0

    assert await notify(FailingSender(), ["tok-a"], "Hello", "World") == 0


async def test_notify_skips_empty_token_lists() -> None:
    assert await notify(FailingSender(), [None, ""], "Hello", "World") == 0
    assert await notify(NullSender(), ["tok-a"], "Hello", "World") == 1


async def test_change_feed_fan_out_and_cleanup() -> None:
    feed = ChangeFeed()
    async with feed.subscribe("user:1") as a, feed.subscribe("user:1") as b:
        assert feed.subscriber_count("user:1") == 2
        assert feed.publish("user:1", {"status": "ACTIVE"}) == 2
        assert a.get_nowait() == {"status": "ACTIVE"}
        assert b.get_nowait() == {"status": "ACTIVE"}
    assert feed.subscriber_count("user:1") == 0
    assert feed.topic_count() == 0
    assert feed.publish("user:1", {"status": "BLOCKED"}) == 0


async def test_change_feed_drops_oldest_when_full() -> None:
    feed = ChangeFeed(max_queue_size=2)
    async with feed.subscribe("poll:1") as queue:
        for n in range(3):
            feed.publish("poll:1", {"n": n})
        assert queue.get_nowait() == {"n": 1}
        assert queue.get_nowait() == {"n": 2}


@pytest.mark.parametrize("route_hint,data", [(None, {}), ("homework", {"route": "homework"})])
def test_expo_message_shape(route_hint, data) -> None:
    sender = ExpoPushSender(endpoint="https://push.test/send")
    [message] = sender._messages(["tok"], "T", "B", route_hint)
    assert message["data"] == data
    assert message["sound"] == "default"


async def test_expo_sender_splits_large_fan_out() -> None:
    sizes = []

    def handler(request: httpx.Request) -> httpx.Response:
        sizes.append(len(json.loads(request.content)))
        return httpx.Response(200, json={"data": []})

    tokens = [f"ExponentPushToken[{n}]" for n in range(250)]
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sender = ExpoPushSender(endpoint="https://push.test/send", client=client)
        assert await notify(sender, tokens, "Homework", "New homework for grade 10") == 250

    assert sizes == [100, 100, 50]


async def test_failed_chunk_does_not_stop_the_rest() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content)[0]["to"])
        if len(seen) == 1:
            return httpx.Response(500)
        return httpx.Response(200, json={"data": []})

    tokens = [f"tok-{n}" for n in range(150)]
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sender = ExpoPushSender(endpoint="https://push.test/send", client=client)
        await sender.send(tokens, "Homework", "Checked")

    assert seen == ["tok-0", "tok-100"]

import json

import httpx
import respx

from notifier import DISCORD_API, Notifier

PAYLOAD = {"embeds": [{"title": "Hello"}]}


@respx.mock
async def test_notify_channel():
    route = respx.post(f"{DISCORD_API}/channels/123/messages").mock(return_value=httpx.Response(200, json={}))
    notifier = Notifier("bot-token")

    assert await notifier.notify_channel("123", PAYLOAD) is True

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bot bot-token"
    assert json.loads(request.content) == PAYLOAD
    await notifier.aclose()


@respx.mock
async def test_notify_channel_failure_returns_false():
    respx.post(f"{DISCORD_API}/channels/123/messages").mock(return_value=httpx.Response(403))
    notifier = Notifier("bot-token")
    assert await notifier.notify_channel("123", PAYLOAD) is False
    await notifier.aclose()


@respx.mock
async def test_notify_user_opens_dm_channel():
    open_dm = respx.post(f"{DISCORD_API}/users/@me/channels").mock(
        return_value=httpx.Response(200, json={"id": "dm-9"})
    )
    send = respx.post(f"{DISCORD_API}/channels/dm-9/messages").mock(return_value=httpx.Response(200, json={}))
    notifier = Notifier("bot-token")

    assert await notifier.notify_user("42", PAYLOAD) is True

    assert json.loads(open_dm.calls.last.request.content) == {"recipient_id": "42"}
    assert send.called
    await notifier.aclose()


@respx.mock
async def test_notify_user_with_dms_closed():
    respx.post(f"{DISCORD_API}/users/@me/channels").mock(return_value=httpx.Response(200, json={"id": "dm-9"}))
    respx.post(f"{DISCORD_API}/channels/dm-9/messages").mock(return_value=httpx.Response(403))
    notifier = Notifier("bot-token")
    assert await notifier.notify_user("42", PAYLOAD) is False
    await notifier.aclose()


async def test_no_token_sends_nothing():
    notifier = Notifier("")
    assert await notifier.notify_channel("123", PAYLOAD) is False
    assert await notifier.notify_user("42", PAYLOAD) is False

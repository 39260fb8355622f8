import httpx
import pytest

from app.core.errors import ProviderError
from app.services.backend_client import BackendApiClient, unwrap_envelope


def test_unwrap_envelopes():
    assert unwrap_envelope([1, 2]) == [1, 2]
    assert unwrap_envelope({"success": True, "data": {"a": 1}}) == {"a": 1}
    assert unwrap_envelope({"error": False, "msg": "ok", "data": {"b": 2}}) == {"b": 2}
    assert unwrap_envelope({"sessionId": "cs_1", "url": "u"}) == {"sessionId": "cs_1", "url": "u"}


def test_unwrap_error_envelopes():
    with pytest.raises(ProviderError) as excinfo:
        unwrap_envelope({"error": True, "msg": "Invalid phone", "data": None})
    assert excinfo.value.message == "Invalid phone"
    with pytest.raises(ProviderError):
        unwrap_envelope({"success": False, "data": None, "message": "nope"})


def _client(handler):
    return BackendApiClient("http://backend.test/", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_non_2xx_maps_to_provider_error():
    client = _client(lambda request: httpx.Response(404, json={"message": "missing"}))
    with pytest.raises(ProviderError) as excinfo:
        await client.get_user_subscriptions("user-1")
    assert excinfo.value.message == "API Error: 404 - Not Found"
    assert excinfo.value.upstream_status == 404
    await client.aclose()


@pytest.mark.asyncio
async def test_timeout_maps_to_provider_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    client = _client(handler)
    with pytest.raises(ProviderError) as excinfo:
        await client.get_user_payments("user-1")
    assert "did not respond" in excinfo.value.message
    await client.aclose()


@pytest.mark.asyncio
async def test_connection_error_maps_to_provider_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(ProviderError) as excinfo:
        await client.get_user_payments("user-1")
    assert "unreachable" in excinfo.value.message
    await client.aclose()


@pytest.mark.asyncio
async def test_active_subscriptions_filter_and_history():
    subs = [
        {"_id": "s1", "userId": "u", "planName": "Starter", "status": "canceled",
         "startDate": "2024-01-01T00:00:00Z", "endDate": "2024-02-01T00:00:00Z", "billingCycle": "monthly"},
        {"_id": "s2", "userId": "u", "planName": "Builder", "status": "active",
         "startDate": "2024-02-01T00:00:00Z", "endDate": "2024-03-01T00:00:00Z", "billingCycle": "monthly"},
    ]

    def handler(request):
        if request.url.path == "/subscriptions/user/u":
            return httpx.Response(200, json={"success": True, "data": subs})
        return httpx.Response(200, json=[{"_id": "p1", "userId": "u", "amount": 999, "status": "SUCCESS"}])

    client = _client(handler)
    active = await client.get_user_active_subscriptions("u")
    history = await client.get_user_payments("u")
    await client.aclose()

    assert [s.id for s in active] == ["s2"]
    assert history[0].id == "p1"
    assert history[0].amount == 999

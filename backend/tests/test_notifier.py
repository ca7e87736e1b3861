"""
Tests for email rendering and delivery through the Resend API.
"""

import httpx
import pytest

from marketplace.services.notifier import ResendNotifier, render


def test_render_escapes_fields():
    subject, html = render("booking_requested", {
        "confirmation_code": "BK-ABC123",
        "service": "<script>x</script>",
        "date": "2026-03-12",
        "time": "10:00",
    })
    assert subject == "New booking BK-ABC123"
    assert "&lt;script&gt;" in html
    assert "<script>" not in html


@pytest.mark.asyncio
async def test_resend_payload():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": "email-1"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = ResendNotifier(api_key="re_test", sender="Marketplace <hi@example.com>", client=client)
    await notifier.notify("business_welcome", "owner@example.com", {"name": "Sol"})
    await notifier.close()

    [request] = requests
    assert request.headers["Authorization"] == "Bearer re_test"
    body = request.read().decode()
    assert "owner@example.com" in body
    assert "Welcome to the marketplace, Sol!" in body


@pytest.mark.asyncio
async def test_resend_failure_is_swallowed():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    notifier = ResendNotifier(api_key="re_test", sender="hi@example.com", client=client)

    await notifier.notify("business_welcome", "owner@example.com", {"name": "Sol"})
    await notifier.close()


@pytest.mark.asyncio
async def test_missing_template_field_is_swallowed():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    notifier = ResendNotifier(api_key="re_test", sender="hi@example.com", client=client)

    await notifier.notify("booking_confirmed", "ana@example.com", {"confirmation_code": "BK-ABC123"})
    await notifier.close()

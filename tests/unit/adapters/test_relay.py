"""
Tests for the chat relay and HTTP API in `adapters/relay/`.

Covers:
- Health-aware chat payload construction
- Verbatim forwarding of body and Authorization header
- Upstream error mapping (status carried through, network errors as 500)
- API routes: root, chat hint, chat relay, assessment, charts
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest
from fastapi.testclient import TestClient

from adapters.relay.app import CHAT_METHOD_HINT, ROOT_MESSAGE, create_app
from adapters.relay.chat import (
    NO_DATA_NOTE,
    SYSTEM_PROMPT,
    ChatRelay,
    Medication,
    build_chat_request,
    enrich_message,
)
from adapters.storage.history import DeviceSnapshot
from healthdash.config import AppConfig, RelayConfig
from healthdash.domain.errors import UpstreamRelayError

UPSTREAM_URL = "https://llm.example/v1/chat/completions"
COMPLETION = {"choices": [{"message": {"role": "assistant", "content": "Drink water."}}]}
PAYLOAD = {"model": "deepseek-chat", "messages": [{"role": "user", "content": "Hello"}]}


def make_relay(handler: Callable[[httpx.Request], httpx.Response]) -> ChatRelay:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatRelay(RelayConfig(upstream_url=UPSTREAM_URL), client=client)


def snapshot() -> DeviceSnapshot:
    return DeviceSnapshot(
        reading={
            "bloodPressure": {"systolic": 138, "diastolic": 86, "pulse": 77},
            "temperature": {"value": 36.9, "location": "腋下"},
        },
        measured_at={"bloodPressure": "10/18 08:00", "temperature": "10/18 08:05"},
        last_update=datetime(2026, 10, 18, 8, 5, tzinfo=UTC),
        total_records=2,
        device_records=2,
    )


class TestChatPayload:
    def test_enriched_message_lists_readings_and_active_medications(self) -> None:
        medications = [
            Medication(name="Amlodipine", dosage="5 mg", time="08:00", frequency="daily"),
            {"name": "Vitamin D", "dosage": "1000 IU", "time": "09:00", "frequency": "weekly"},
            {"name": "Old prescription", "status": "stopped"},
        ]

        message = enrich_message("How am I doing?", snapshot(), medications)

        assert message.startswith("How am I doing?\n\nMy health data:")
        assert "- Blood pressure: 138/86 mmHg, pulse 77 bpm (10/18 08:00)" in message
        assert "- Body temperature: 36.9°C (腋下, 10/18 08:05)" in message
        assert "Blood oxygen" not in message
        assert "- Amlodipine: 5 mg, 08:00, daily" in message
        assert "- Vitamin D: 1000 IU, 09:00, weekly" in message
        assert "Old prescription" not in message
        assert "Data updated: 2026-10-18T08:05:00+00:00" in message

    def test_no_data_adds_entry_reminder(self) -> None:
        assert enrich_message("Hi") == f"Hi\n\n{NO_DATA_NOTE}"

    def test_build_chat_request(self) -> None:
        request = build_chat_request("Hi", snapshot(), model="deepseek-reasoner")

        assert request.model == "deepseek-reasoner"
        assert [m.role for m in request.messages] == ["system", "user"]
        assert request.messages[0].content == SYSTEM_PROMPT
        assert "My health data:" in request.messages[1].content


class TestChatRelay:
    @pytest.mark.asyncio
    async def test_forwards_body_and_authorization_verbatim(self) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["authorization"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=COMPLETION)

        relay = make_relay(handler)

        result = await relay.forward(PAYLOAD, "Bearer sk-user")

        assert result == COMPLETION
        assert seen == {"url": UPSTREAM_URL, "authorization": "Bearer sk-user", "body": PAYLOAD}

    @pytest.mark.asyncio
    async def test_upstream_error_status_is_carried_through(self) -> None:
        relay = make_relay(
            lambda request: httpx.Response(401, json={"error": {"message": "bad key"}})
        )

        with pytest.raises(UpstreamRelayError) as excinfo:
            await relay.forward(PAYLOAD, "Bearer wrong")

        assert excinfo.value.status_code == 401
        assert excinfo.value.detail == {"error": {"message": "bad key"}}

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self) -> None:
        relay = make_relay(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(UpstreamRelayError) as excinfo:
            await relay.forward(PAYLOAD)

        assert excinfo.value.status_code == 502
        assert excinfo.value.detail == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_network_error_is_500(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        relay = make_relay(handler)

        with pytest.raises(UpstreamRelayError) as excinfo:
            await relay.forward(PAYLOAD)

        assert excinfo.value.status_code == 500
        assert "connection refused" in str(excinfo.value.detail)

    @pytest.mark.asyncio
    async def test_non_json_success_body_is_502(self) -> None:
        relay = make_relay(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(UpstreamRelayError) as excinfo:
            await relay.forward(PAYLOAD)

        assert excinfo.value.status_code == 502
        assert excinfo.value.detail == "<html>oops</html>"

    @pytest.mark.asyncio
    async def test_no_retry(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, json={"message": "busy"})

        relay = make_relay(handler)

        with pytest.raises(UpstreamRelayError):
            await relay.forward(PAYLOAD)

        assert len(calls) == 1


@pytest.fixture
def upstream_status() -> dict[str, int]:
    return {"status": 200}


@pytest.fixture
def client(upstream_status: dict[str, int]) -> TestClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if upstream_status["status"] != 200:
            return httpx.Response(upstream_status["status"], json={"message": "quota exceeded"})
        auth = request.headers.get("authorization")
        return httpx.Response(200, json={**COMPLETION, "auth": auth})

    app = create_app(config=AppConfig(), relay=make_relay(handler))
    return TestClient(app)


class TestAPI:
    def test_root(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": ROOT_MESSAGE}

    def test_chat_get_is_method_not_allowed(self, client: TestClient) -> None:
        response = client.get("/api/chat")

        assert response.status_code == 405
        assert response.json() == {"ok": False, "message": CHAT_METHOD_HINT}

    def test_chat_relays_upstream_json(self, client: TestClient) -> None:
        response = client.post("/api/chat", json=PAYLOAD, headers={"Authorization": "Bearer k"})

        assert response.status_code == 200
        assert response.json()["choices"] == COMPLETION["choices"]
        assert response.json()["auth"] == "Bearer k"

    def test_chat_upstream_failure(
        self, client: TestClient, upstream_status: dict[str, int]
    ) -> None:
        upstream_status["status"] = 429

        response = client.post("/api/chat", json=PAYLOAD)

        assert response.status_code == 429
        body = response.json()
        assert body["message"] == "Error proxying to upstream chat API"
        assert body["error"] == {"message": "quota exceeded"}

    def test_chat_upstream_html_reply(self) -> None:
        relay = make_relay(lambda request: httpx.Response(200, text="<html>oops</html>"))
        client = TestClient(create_app(config=AppConfig(), relay=relay))

        response = client.post("/api/chat", json=PAYLOAD)

        assert response.status_code == 502
        assert response.json() == {
            "message": "Error proxying to upstream chat API",
            "error": "<html>oops</html>",
        }

    def test_chat_rejects_non_json(self, client: TestClient) -> None:
        response = client.post(
            "/api/chat", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400

    def test_assessment(self, client: TestClient) -> None:
        response = client.post(
            "/api/assessment", json={"bloodPressure": {"systolic": 185, "diastolic": 115}}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["basicVitalSigns"]["bloodPressure"]["category"] == "stage3_hypertension"
        assert body["compositeScore"]["breakdown"]["bloodOxygenPerfusion"] is None

    def test_assessment_rejects_malformed_reading(self, client: TestClient) -> None:
        response = client.post("/api/assessment", json={"spO2": {"percent": "high"}})

        assert response.status_code == 422
        assert response.json()["message"] == "Invalid reading"
        assert "spO2.percent" in response.json()["error"]

    def test_charts(self, client: TestClient) -> None:
        response = client.post(
            "/api/charts",
            json={
                "records": [
                    {"timestamp": "t1", "bloodPressure": {"systolic": 130, "diastolic": 85}},
                    {"timestamp": "t2", "heartRate": 88},
                ],
                "dailyRecords": [{"date": "2026-10-17", "heartRate": 70}],
                "days": 30,
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["vitalSigns"]) == 6
        assert len(body["report"]) == 7
        systolic = body["vitalSigns"][0]["data"]["datasets"][0]
        assert systolic["data"] == [130.0, None]
        assert body["vitalSigns"][0]["options"]["animation"] == {"duration": 250}

    def test_charts_reject_unsupported_period(self, client: TestClient) -> None:
        response = client.post("/api/charts", json={"records": [], "days": 14})

        assert response.status_code == 422
        assert "report period" in response.json()["error"]

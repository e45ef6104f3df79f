"""
Chat relay: builds health-aware chat payloads and forwards them upstream.

The relay is a pass-through. The request body and the caller's
Authorization header go to the upstream chat-completions endpoint verbatim;
the upstream JSON comes back unchanged. No retries, no caching.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Literal

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from adapters.storage.history import DeviceSnapshot
from healthdash.config import RelayConfig, get_config
from healthdash.domain.errors import UpstreamRelayError

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a professional health-management assistant for senior users. "
    "Give professional, personalized health advice based on the user's health data."
)

NO_DATA_NOTE = (
    "Note: I have not recorded any health data yet. "
    "Please remind me to record it with the device entry feature."
)

FREQUENCY_TEXT = {
    "daily": "daily",
    "weekly": "weekly",
    "monthly": "monthly",
    "custom": "custom schedule",
}


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Body of a chat-completions call."""

    model: str
    messages: list[ChatMessage] = Field(min_length=1)


class Medication(BaseModel):
    """One entry of the dashboard's medication list."""

    model_config = ConfigDict(extra="ignore")

    name: str
    dosage: str = ""
    time: str = ""
    frequency: str = "daily"
    status: str = "active"


def _health_lines(snapshot: DeviceSnapshot) -> list[str]:
    reading = snapshot.reading
    lines = []
    if bp := reading.get("bloodPressure"):
        lines.append(
            f"- Blood pressure: {bp.get('systolic')}/{bp.get('diastolic')} mmHg, "
            f"pulse {bp.get('pulse')} bpm ({snapshot.measured_at.get('bloodPressure')})"
        )
    if spo2 := reading.get("spO2"):
        lines.append(
            f"- Blood oxygen: {spo2.get('percent')}%, PI {spo2.get('pi')}%, "
            f"PR {spo2.get('pr')} bpm ({snapshot.measured_at.get('spO2')})"
        )
    if temperature := reading.get("temperature"):
        lines.append(
            f"- Body temperature: {temperature.get('value')}°C "
            f"({temperature.get('location')}, {snapshot.measured_at.get('temperature')})"
        )
    return lines


def _medication_lines(medications: Iterable[Medication]) -> list[str]:
    return [
        f"- {m.name}: {m.dosage}, {m.time}, {FREQUENCY_TEXT.get(m.frequency, m.frequency)}"
        for m in medications
        if m.status == "active"
    ]


def enrich_message(
    user_message: str,
    snapshot: DeviceSnapshot | None = None,
    medications: Iterable[Medication | Mapping[str, Any]] = (),
) -> str:
    """Append the user's latest health data and active medications to their message."""
    snapshot = snapshot or DeviceSnapshot()
    meds = [m if isinstance(m, Medication) else Medication.model_validate(m) for m in medications]

    if not snapshot.has_data():
        return f"{user_message}\n\n{NO_DATA_NOTE}"

    parts = [user_message, "", "My health data:", *_health_lines(snapshot)]
    if med_lines := _medication_lines(meds):
        parts += ["", "Medications I am taking:", *med_lines]
    if snapshot.last_update is not None:
        parts += ["", f"Data updated: {snapshot.last_update.isoformat()}"]
    return "\n".join(parts)


def build_chat_request(
    user_message: str,
    snapshot: DeviceSnapshot | None = None,
    medications: Iterable[Medication | Mapping[str, Any]] = (),
    model: str | None = None,
) -> ChatRequest:
    return ChatRequest(
        model=model or get_config().relay.default_model,
        messages=[
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=enrich_message(user_message, snapshot, medications)),
        ],
    )


class ChatRelay:
    """
    Forwards chat payloads to the upstream chat-completions API.

    The httpx client is injectable so tests can swap in a mock transport.
    """

    def __init__(
        self, config: RelayConfig | None = None, client: httpx.AsyncClient | None = None
    ) -> None:
        self.config = config or get_config().relay
        self._client = client
        self._owns_client = client is None
        self.logger = logger.bind(component="chat_relay", upstream=self.config.upstream_url)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def forward(
        self, payload: Mapping[str, Any], authorization: str | None = None
    ) -> dict[str, Any]:
        """
        POST ``payload`` upstream and return the upstream JSON.

        Raises:
            UpstreamRelayError: Upstream answered with an error status (carried
                through), could not be reached (500), or replied with a body that
                is not JSON (502).
        """
        headers = {"Content-Type": "application/json"}
        if authorization:
            headers["Authorization"] = authorization

        try:
            response = await self.client.post(
                self.config.upstream_url, json=dict(payload), headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            self.logger.warning(
                "relay_upstream_failed", status_code=e.response.status_code, detail=detail
            )
            raise UpstreamRelayError(
                "Error proxying to upstream chat API",
                status_code=e.response.status_code,
                detail=detail,
            ) from e
        except httpx.HTTPError as e:
            self.logger.error("relay_upstream_failed", status_code=500, detail=str(e))
            raise UpstreamRelayError(
                "Error proxying to upstream chat API", status_code=500, detail=str(e)
            ) from e

        try:
            return response.json()
        except ValueError as e:
            self.logger.warning(
                "relay_upstream_invalid_json", status_code=response.status_code, body=response.text
            )
            raise UpstreamRelayError(
                "Error proxying to upstream chat API", status_code=502, detail=response.text
            ) from e

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _error_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text

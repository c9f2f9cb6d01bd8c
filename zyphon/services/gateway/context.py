"""Per-request gateway state."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from zyphon.models.api_key import ApiKey
from zyphon.models.settings import GatewaySettings
from zyphon.services.gateway.capabilities import Capability


class GatewayStage(StrEnum):
    """Where a request is in the gateway state machine.

    RECEIVED -> AUTHENTICATED -> AUTHORIZED -> RATE_CHECKED -> VALIDATED
    -> EXECUTED -> RESPONDED. REJECTED is terminal and reachable from any
    stage before EXECUTED; FAILED means the capability itself failed.
    """

    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    AUTHORIZED = "authorized"
    RATE_CHECKED = "rate_checked"
    VALIDATED = "validated"
    EXECUTED = "executed"
    RESPONDED = "responded"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class GatewayContext:
    capability: Capability
    request_id: str
    ip: str
    user_agent: str
    settings: GatewaySettings
    started_at: float = field(default_factory=time.monotonic)
    stage: GatewayStage = GatewayStage.RECEIVED
    key: ApiKey | None = None

    @property
    def key_prefix(self) -> str | None:
        return self.key.key_prefix if self.key is not None else None

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


@dataclass
class Outcome:
    """What a capability produced: the response ``data`` and audit metadata."""

    data: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)

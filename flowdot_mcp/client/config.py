"""Configuration for the FlowDot HTTP client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Settings:
    """Immutable settings loaded from environment variables."""

    api_token: str = field(repr=False)
    hub_url: str = "https://flowdot.ai"
    timeout: int = 120
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Settings:
        api_token = os.getenv("FLOWDOT_API_TOKEN", "")
        hub_url = os.getenv("FLOWDOT_HUB_URL", "https://flowdot.ai").rstrip("/")
        timeout = int(os.getenv("FLOWDOT_TIMEOUT", "120"))
        log_level = os.getenv("FLOWDOT_LOG_LEVEL", "WARNING").upper()
        return cls(
            api_token=api_token,
            hub_url=hub_url,
            timeout=timeout,
            log_level=log_level,
        )

    @property
    def base_url(self) -> str:
        return f"{self.hub_url}/api/mcp/v1"

    @property
    def headers(self) -> dict[str, str]:
        h: dict[str, str] = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_token:
            h["Authorization"] = f"Bearer {self.api_token}"
        return h

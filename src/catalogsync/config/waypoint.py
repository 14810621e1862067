"""Waypoint catalog source configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_WAYPOINT_BASE_URL: Final[str] = "https://gamecms-hacs-origin.svc.halowaypoint.com/hi/"
DEFAULT_ECONOMY_BASE_URL: Final[str] = "https://economy.svc.halowaypoint.com/hi/"
SPARTAN_TOKEN_HEADER: Final[str] = "X-343-Authorization-Spartan"
CLEARANCE_HEADER: Final[str] = "343-Clearance"


@dataclass(frozen=True, slots=True)
class WaypointConfig:
    resilience: ResilienceConfig
    spartan_token: str
    clearance: str
    economy_base_url: str = DEFAULT_ECONOMY_BASE_URL
    player_id: str | None = None

    def auth_headers(self) -> dict[str, str]:
        return {SPARTAN_TOKEN_HEADER: self.spartan_token, CLEARANCE_HEADER: self.clearance}


def get_waypoint_config() -> WaypointConfig:
    values = require_env_vars(("WAYPOINT_SPARTAN_TOKEN", "WAYPOINT_CLEARANCE"))
    base_url = os.getenv("WAYPOINT_BASE_URL") or DEFAULT_WAYPOINT_BASE_URL

    resilience = ResilienceConfig(
        name="waypoint",
        base_url=base_url,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        retry=RetryPolicy(total=3),
        default_headers={"Accept": "application/json"},
    )

    return WaypointConfig(
        resilience=resilience,
        spartan_token=values["WAYPOINT_SPARTAN_TOKEN"],
        clearance=values["WAYPOINT_CLEARANCE"],
        economy_base_url=os.getenv("WAYPOINT_ECONOMY_BASE_URL") or DEFAULT_ECONOMY_BASE_URL,
        player_id=os.getenv("WAYPOINT_PLAYER_ID") or None,
    )

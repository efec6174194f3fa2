"""Schema for serialized audit reports."""

from __future__ import annotations

from typing import Any

import voluptuous as vol

_SEVERITY = vol.In(["low", "medium", "high"])
_SCORE = vol.All(int, vol.Range(min=0, max=100))
_COUNT = vol.All(int, vol.Range(min=0))

REPORT_SCHEMA = vol.Schema(
    {
        vol.Required("healthScore"): _SCORE,
        vol.Required("riskLevel"): _SEVERITY,
        vol.Required("issues"): [
            {
                vol.Required("code"): str,
                vol.Required("severity"): _SEVERITY,
                vol.Required("message"): str,
            }
        ],
        vol.Required("stats"): {
            vol.Required("pendingAI"): _COUNT,
            vol.Required("voteAnomalies"): _COUNT,
            vol.Required("staleProfiles"): _COUNT,
            vol.Required("governanceStability"): _SCORE,
            vol.Required("projectedStability"): _SCORE,
            vol.Required("healthDrift"): vol.Any(int, None),
            vol.Required("stateHealth"): [
                {vol.Required("state"): str, vol.Required("healthScore"): _SCORE}
            ],
        },
        vol.Required("generatedAt"): str,
        vol.Optional("unassessed", default=list): [str],
    }
)


def validate_report(payload: dict[str, Any]) -> dict[str, Any]:
    """Validate and return a report payload using the canonical schema."""
    return REPORT_SCHEMA(payload)

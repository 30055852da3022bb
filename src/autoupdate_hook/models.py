"""Data models for update outcomes and ``podman auto-update`` reports.

All models are plain dataclasses. None of them is stored: an outcome lives
exactly as long as the request that produced it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from autoupdate_hook.logging import get_logger

log = get_logger("autoupdate_hook.models")

# ------------------------------------------------------------------
# Update outcome
# ------------------------------------------------------------------


class UpdateStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class UpdateOutcome:
    """Result of one invocation of the auto-update command.

    ``exit_code`` is None when the process never ran to completion (it could
    not be started, or it was killed on timeout); ``error`` then describes
    what went wrong.
    """

    status: UpdateStatus
    output: str = ""
    exit_code: int | None = None
    error: str | None = None
    duration_seconds: float = 0.0

    @classmethod
    def succeeded(cls, output: str, duration_seconds: float = 0.0) -> UpdateOutcome:
        return cls(
            status=UpdateStatus.SUCCEEDED,
            output=output,
            exit_code=0,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def failed(
        cls,
        output: str = "",
        exit_code: int | None = None,
        error: str | None = None,
        duration_seconds: float = 0.0,
    ) -> UpdateOutcome:
        return cls(
            status=UpdateStatus.FAILED,
            output=output,
            exit_code=exit_code,
            error=error,
            duration_seconds=duration_seconds,
        )

    @property
    def ok(self) -> bool:
        return self.status is UpdateStatus.SUCCEEDED

    @property
    def http_status(self) -> int:
        return 200 if self.ok else 500

    @property
    def body(self) -> str:
        """Response body: the command's own output, or the failure description."""
        if self.output:
            return self.output
        return self.error or ""

    def records(self) -> list[AutoUpdateRecord]:
        return parse_report(self.output)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "exit_code": self.exit_code,
            "error": self.error,
            "duration_seconds": self.duration_seconds,
        }


# ------------------------------------------------------------------
# podman auto-update --format json
# ------------------------------------------------------------------


@dataclass(frozen=True)
class AutoUpdateRecord:
    """One container evaluated by ``podman auto-update``."""

    unit: str
    container: str
    image: str
    container_name: str
    container_id: str
    policy: str
    updated: str  # "false", "true", "pending", "rolled back" or "failed"

    @property
    def changed(self) -> bool:
        return self.updated in ("true", "pending")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AutoUpdateRecord:
        return cls(
            unit=str(data.get("Unit", "")),
            container=str(data.get("Container", "")),
            image=str(data.get("Image", "")),
            container_name=str(data.get("ContainerName", "")),
            container_id=str(data.get("ContainerID", "")),
            policy=str(data.get("Policy", "")),
            updated=str(data.get("Updated", "")).lower(),
        )


def parse_report(output: str) -> list[AutoUpdateRecord]:
    """Parse JSON-formatted auto-update output.

    Output that is not a JSON array (table format, an error message, or
    nothing at all) yields an empty list rather than an error: the raw text
    is still relayed to the caller.
    """
    text = output.strip()
    if not text.startswith("["):
        return []
    try:
        rows = json.loads(text)
    except json.JSONDecodeError:
        log.warning("auto_update_report_unparseable", length=len(text))
        return []
    return [AutoUpdateRecord.from_dict(row) for row in rows if isinstance(row, dict)]

"""Tests for autoupdate_hook.models — outcomes and report parsing."""

from __future__ import annotations

import json

from autoupdate_hook.models import (
    AutoUpdateRecord,
    UpdateOutcome,
    UpdateStatus,
    parse_report,
)

_REPORT = [
    {
        "Unit": "container-web.service",
        "Container": "4bbd8a8c0f5e (web)",
        "ContainerName": "web",
        "ContainerID": "4bbd8a8c0f5e",
        "Image": "ghcr.io/example/web:latest",
        "Policy": "registry",
        "Updated": "pending",
    },
    {
        "Unit": "container-db.service",
        "Container": "9a1c2b3d4e5f (db)",
        "ContainerName": "db",
        "ContainerID": "9a1c2b3d4e5f",
        "Image": "docker.io/library/postgres:16",
        "Policy": "registry",
        "Updated": "false",
    },
]


class TestUpdateOutcome:
    """Tests for UpdateOutcome."""

    def test_success_maps_to_200_with_output(self) -> None:
        outcome = UpdateOutcome.succeeded("ok\n", duration_seconds=1.5)
        assert outcome.status is UpdateStatus.SUCCEEDED
        assert outcome.ok is True
        assert outcome.http_status == 200
        assert outcome.body == "ok\n"
        assert outcome.exit_code == 0

    def test_success_with_empty_output(self) -> None:
        outcome = UpdateOutcome.succeeded("")
        assert outcome.http_status == 200
        assert outcome.body == ""

    def test_failure_prefers_command_output(self) -> None:
        outcome = UpdateOutcome.failed(output="boom\n", exit_code=1, error="podman failed")
        assert outcome.ok is False
        assert outcome.http_status == 500
        assert outcome.body == "boom\n"

    def test_failure_without_output_uses_error(self) -> None:
        outcome = UpdateOutcome.failed(error="failed to start podman: No such file or directory")
        assert outcome.http_status == 500
        assert outcome.body == "failed to start podman: No such file or directory"
        assert outcome.exit_code is None

    def test_to_dict(self) -> None:
        outcome = UpdateOutcome.failed(output="x", exit_code=2, error="e", duration_seconds=0.1)
        assert outcome.to_dict() == {
            "status": "failed",
            "exit_code": 2,
            "error": "e",
            "duration_seconds": 0.1,
        }

    def test_records_parsed_from_output(self) -> None:
        outcome = UpdateOutcome.succeeded(json.dumps(_REPORT))
        records = outcome.records()
        assert [r.container_name for r in records] == ["web", "db"]


class TestParseReport:
    """Tests for parse_report()."""

    def test_parses_json_array(self) -> None:
        records = parse_report(json.dumps(_REPORT))
        assert records[0] == AutoUpdateRecord(
            unit="container-web.service",
            container="4bbd8a8c0f5e (web)",
            image="ghcr.io/example/web:latest",
            container_name="web",
            container_id="4bbd8a8c0f5e",
            policy="registry",
            updated="pending",
        )
        assert records[0].changed is True
        assert records[1].changed is False

    def test_table_output_yields_nothing(self) -> None:
        table = "UNIT  CONTAINER  IMAGE  POLICY  UPDATED\n"
        assert parse_report(table) == []

    def test_empty_output(self) -> None:
        assert parse_report("") == []

    def test_truncated_json(self) -> None:
        assert parse_report('[{"Unit": "x"') == []

    def test_non_object_rows_skipped(self) -> None:
        assert parse_report('[1, "two", {"Unit": "u", "Updated": "True"}]') == [
            AutoUpdateRecord(
                unit="u",
                container="",
                image="",
                container_name="",
                container_id="",
                policy="",
                updated="true",
            )
        ]

    def test_null_report(self) -> None:
        assert parse_report("null") == []

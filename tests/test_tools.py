"""Tests for the record management CLI."""
from __future__ import annotations

import json

import pytest

from introbot.models import Action, RecordKind
from introbot.tools import manage_records, sync_commands
from introbot.forms import token_from_custom_id

from conftest import intro_values, make_actor


@pytest.mark.asyncio
async def test_summary_and_show(service, state, capsys):
    actor = make_actor()
    form = service.open_form(actor, RecordKind.INTRODUCTION, Action.CREATE)
    key = service.resolve_form(token_from_custom_id(form.custom_id))
    await service.submit_introduction(actor, key, intro_values())

    manage_records.main(["--db", str(state.db_path), "summary", "--json"])
    summary = json.loads(capsys.readouterr().out)
    assert summary == {"introductions": 1, "link_sets": 0, "pending_forms": 0}

    manage_records.main(["--db", str(state.db_path), "show", "42"])
    out = capsys.readouterr().out
    assert "introduction: Alice (3x weekly, N1)" in out
    assert "link set: none" in out


def test_purge_forms(state, capsys):
    state.stash_form_state({"action": "create"})
    manage_records.main(["--db", str(state.db_path), "purge-forms", "--max-age-hours", "1", "--json"])
    assert json.loads(capsys.readouterr().out) == {"purged": 0, "max_age_hours": 1.0}


def test_show_unknown_member_as_json(state, capsys):
    manage_records.main(["--db", str(state.db_path), "show", "7", "--json"])
    assert json.loads(capsys.readouterr().out) == {"introduction": None, "link_set": None}


def test_sync_commands_parser_defaults(monkeypatch):
    monkeypatch.delenv("INTROBOT_DB", raising=False)
    args = sync_commands.build_parser().parse_args(["--guild", "5"])
    assert args.guild == 5
    assert str(args.db) == "introbot.db"


def test_telemetry_report(telemetry, capsys):
    telemetry.track_command("self", "42", "1", success=True)
    telemetry.track_command("self", "43", "1", success=False)
    telemetry.track_error("ExternalOperationFailed", command="submit_introduction")
    telemetry.track_system_event("guide_created", source="guide", reason="no guide in history")
    telemetry.flush()

    manage_records.main(["telemetry", "--telemetry-db", str(telemetry.db_path), "--json"])
    report = json.loads(capsys.readouterr().out)
    assert report["commands"]["self"]["usage_count"] == 2
    assert report["commands"]["self"]["unique_members"] == 2
    assert report["errors"] == {"ExternalOperationFailed": 1}
    assert report["system_events"][0]["event"] == "guide_created"

    manage_records.main(["telemetry", "--telemetry-db", str(telemetry.db_path)])
    out = capsys.readouterr().out
    assert "/self: 2 uses, 50% ok, 2 members" in out
    assert "guide_created (no guide in history)" in out

"""Inspect stored records and telemetry, and clean up form state."""
from __future__ import annotations

import argparse
import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List

from ..config import get_settings
from ..models import RecordKind
from ..state import BoardState
from ..telemetry import TelemetryCollector


def _load_state(db_path: Path) -> BoardState:
    return BoardState(db_path)


def cmd_summary(args: argparse.Namespace) -> None:
    state = _load_state(args.db)
    summary = state.summary()
    if args.json:
        print(json.dumps(summary, indent=2))
        return
    print(f"Introductions: {summary['introductions']}")
    print(f"Link sets: {summary['link_sets']}")
    print(f"Pending forms: {summary['pending_forms']}")


def cmd_show(args: argparse.Namespace) -> None:
    state = _load_state(args.db)
    records: Dict[str, Any] = {}
    for kind in RecordKind:
        record = state.store_for(kind).get(args.owner)
        records[kind.value] = record.to_dict() if record is not None else None
    if args.json:
        print(json.dumps(records, indent=2))
        return

    lines: List[str] = [f"Member {args.owner}"]
    intro = records[RecordKind.INTRODUCTION.value]
    if intro is None:
        lines.append("  introduction: none")
    else:
        lines.append(f"  introduction: {intro['name']} ({intro['course']}, {intro['cohort']})")
        lines.append(f"    posted {intro['created_at']}, updated {intro['updated_at']}")
    link_set = records[RecordKind.LINK_SET.value]
    if link_set is None:
        lines.append("  link set: none")
    else:
        lines.append(f"  link set: {len(link_set['urls'])} links")
        for url in link_set["urls"]:
            lines.append(f"    - {url}")
    print("\n".join(lines))


def cmd_purge_forms(args: argparse.Namespace) -> None:
    state = _load_state(args.db)
    max_age = args.max_age_hours
    if max_age is None:
        max_age = get_settings().form_state_max_age_hours
    purged = state.purge_form_state(timedelta(hours=max_age))
    if args.json:
        print(json.dumps({"purged": purged, "max_age_hours": max_age}))
        return
    print(f"Purged {purged} form state entries older than {max_age:g}h.")


def cmd_telemetry(args: argparse.Namespace) -> None:
    report = TelemetryCollector(args.telemetry_db).health_report(hours=args.hours)
    if args.json:
        print(json.dumps(report, indent=2))
        return

    lines: List[str] = [f"Telemetry for the last {args.hours:g}h"]
    lines.append("Commands:")
    if not report["commands"]:
        lines.append("  none")
    for name, stats in report["commands"].items():
        lines.append(
            f"  /{name}: {stats['usage_count']} uses, "
            f"{stats['success_rate']:.0%} ok, {stats['unique_members']} members"
        )
    lines.append("Errors:")
    if not report["errors"]:
        lines.append("  none")
    for name, count in report["errors"].items():
        lines.append(f"  {name}: {count}")
    lines.append("Recent events:")
    for event in report["system_events"]:
        reason = f" ({event['reason']})" if event["reason"] else ""
        lines.append(f"  {event['timestamp']} {event['event']}{reason}")
    print("\n".join(lines))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage stored introduction board records.")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path("introbot.db"),
        help="Path to the board SQLite database (default: introbot.db).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    summary = subparsers.add_parser("summary", help="Count stored records and pending forms.")
    summary.add_argument("--json", action="store_true", help="Output JSON for automation.")
    summary.set_defaults(func=cmd_summary)

    show = subparsers.add_parser("show", help="Show one member's records.")
    show.add_argument("owner", help="Discord user id of the member.")
    show.add_argument("--json", action="store_true", help="Output JSON for automation.")
    show.set_defaults(func=cmd_show)

    purge = subparsers.add_parser("purge-forms", help="Discard abandoned form state.")
    purge.add_argument(
        "--max-age-hours",
        type=float,
        default=None,
        help="Age threshold (default: maintenance.form_state_max_age_hours).",
    )
    purge.add_argument("--json", action="store_true", help="Emit JSON output.")
    purge.set_defaults(func=cmd_purge_forms)

    telemetry = subparsers.add_parser("telemetry", help="Report command usage, errors and events.")
    telemetry.add_argument(
        "--telemetry-db",
        type=Path,
        default=Path(os.environ.get("INTROBOT_TELEMETRY_DB", "telemetry.db")),
        help="Path to the telemetry SQLite database (default: telemetry.db).",
    )
    telemetry.add_argument(
        "--hours", type=float, default=24, help="Report window in hours (default: 24)."
    )
    telemetry.add_argument("--json", action="store_true", help="Output JSON for automation.")
    telemetry.set_defaults(func=cmd_telemetry)

    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()

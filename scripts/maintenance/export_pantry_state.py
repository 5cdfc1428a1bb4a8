#!/usr/bin/env python3
"""Utility to export the persisted pantry state as a JSON backup or ledger CSV."""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Sequence

from pantry.common import DEFAULT_STATE_KEY, ServiceSettings, dispose_engines
from pantry.tracker_service.app.exports import export_state_json, export_transactions_csv
from pantry.tracker_service.app.store import build_state_store


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export the pantry state from its durable store")
    parser.add_argument(
        "--state-path",
        type=Path,
        default=Path(os.getenv("PANTRY_STATE_PATH", "./data/pantry_state.json")),
        help="JSON state file to read (default: %(default)s or PANTRY_STATE_PATH)",
    )
    parser.add_argument(
        "--database-url",
        default=os.getenv("PANTRY_DATABASE_URL"),
        help="Read from this database instead of the state file (default: PANTRY_DATABASE_URL)",
    )
    parser.add_argument(
        "--state-key",
        default=os.getenv("PANTRY_STATE_KEY", DEFAULT_STATE_KEY),
        help="Row key of the state blob in the database (default: %(default)s or PANTRY_STATE_KEY)",
    )
    parser.add_argument(
        "--format",
        choices=("json", "csv"),
        default="json",
        help="json writes a full backup, csv writes one row per ledger line (default: %(default)s)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination file; the export goes to stdout when omitted",
    )
    return parser.parse_args(argv)


def run_export(args: argparse.Namespace) -> tuple[str, dict[str, object]]:
    settings = ServiceSettings(
        state_path=str(args.state_path),
        database_url=args.database_url or None,
        state_key=args.state_key,
    )
    store = build_state_store(settings)
    try:
        state = store.load()
    finally:
        store.close()
        dispose_engines()

    content = export_state_json(state) if args.format == "json" else export_transactions_csv(state)
    report: dict[str, object] = {
        "format": args.format,
        "source": "database" if settings.database_url else str(args.state_path.resolve()),
        "inventory": len(state.inventory),
        "clients": len(state.clients),
        "transactions": len(state.transactions),
        "bytes": len(content.encode("utf-8")),
    }
    return content, report


def main(argv: Sequence[str] | None = None) -> None:
    try:
        args = parse_args(argv)
        content, report = run_export(args)
        if args.output is None:
            sys.stdout.write(content)
            print(json.dumps(report, sort_keys=True), file=sys.stderr)
        else:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(content, encoding="utf-8")
            report["output"] = str(args.output.resolve())
            print(json.dumps(report, indent=2, sort_keys=True))
        exit_code = 0
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        exit_code = 1
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any

logging.basicConfig(
    stream=sys.stderr,
    level=getattr(logging, os.getenv("SHOT_STACK_LOG_LEVEL", "WARNING").upper(), logging.WARNING),
)

from shot_stack.api import analyze, reanalyze, recent, show
from shot_stack.config import StackConfig


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Screenshot understanding CLI")
    sub = parser.add_subparsers(dest="cmd", required=True)

    analyze_cmd = sub.add_parser("analyze", help="Analyze screenshot files or folders")
    analyze_cmd.add_argument("paths", nargs="+", help="Image files or directories")
    analyze_cmd.add_argument("--force", action="store_true", help="Ignore memoized results")
    analyze_cmd.add_argument("--image-id", default=None, help="Stable identity for a single image")
    analyze_cmd.add_argument("--no-store", action="store_true", help="Do not persist results")
    analyze_cmd.add_argument("--json", action="store_true", help="Print full result records")
    analyze_cmd.add_argument("--table", action="store_true", help="Render a summary table")

    re_cmd = sub.add_parser("reanalyze", help="Re-run analysis for one screenshot, replacing the stored result")
    re_cmd.add_argument("path", help="Image file")
    re_cmd.add_argument("--image-id", default=None)
    re_cmd.add_argument("--no-store", action="store_true")
    re_cmd.add_argument("--table", action="store_true")

    show_cmd = sub.add_parser("show", help="Print a stored result")
    show_cmd.add_argument("image_id", help="Image identity")

    list_cmd = sub.add_parser("list", help="List recently stored results")
    list_cmd.add_argument("-n", "--limit", type=int, default=20)
    list_cmd.add_argument("--table", action="store_true")

    return parser.parse_args()


def render_table(rows: list[dict[str, Any]], title: str = "Screenshots") -> None:
    from rich.console import Console
    from rich.table import Table

    table = Table(title=title)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Image", style="magenta")
    table.add_column("Type", style="bold")
    table.add_column("Title")
    table.add_column("Confidence", justify="right")
    for i, row in enumerate(rows, start=1):
        table.add_row(
            str(i),
            str(row.get("image_id", ""))[:12],
            str(row.get("type") or row.get("screenshot_type") or "-"),
            str(row.get("title") or "-"),
            f"{float(row.get('confidence') or 0.0):.2f}",
        )
    Console().print(table)


def main() -> None:
    args = parse_args()
    cfg = StackConfig()

    if args.cmd == "analyze":
        out = analyze(args.paths, force=args.force, image_id=args.image_id, store=not args.no_store, cfg=cfg)
        if args.table:
            render_table(out["results"])
            return
        if not args.json:
            out = {k: v for k, v in out.items() if k != "details"}
    elif args.cmd == "reanalyze":
        out = reanalyze(args.path, image_id=args.image_id, store=not args.no_store, cfg=cfg)
        if args.table:
            render_table(out["results"])
            return
    elif args.cmd == "show":
        out = show(args.image_id, cfg)
        if out is None:
            raise SystemExit(f"No stored result for {args.image_id}")
    elif args.cmd == "list":
        out = recent(max(1, args.limit), cfg)
        if args.table:
            render_table(out, title="Stored results")
            return
    else:
        raise SystemExit(f"Unknown command: {args.cmd}")

    print(json.dumps(out, ensure_ascii=False, indent=2, default=str))


if __name__ == "__main__":
    main()

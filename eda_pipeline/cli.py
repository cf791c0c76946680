"""Command-line interface for the cleaning / aggregation pipeline.

Usage (examples):
    python -m eda_pipeline.cli flights.csv --config flights.json
    python -m eda_pipeline.cli ufo.csv --config ufo.json --null-tokens --json
    python -m eda_pipeline.cli flights.csv --config by_carrier.json \
        --chart delays.png --x carrier --y avg_delay --html delays.html

The CLI prints a concise human-readable summary by default; use --json for
the full payload.
"""

from __future__ import annotations

import argparse
import json
import logging
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

from .cleaning_utils import NULL_TOKENS
from .config import PipelineConfig
from .errors import PipelineError
from .pipeline import run_processing_pipeline
from .rendering import ChartSpec, TableDisplay, render_chart, render_table_html


def _summarize(result: Dict[str, Any]) -> str:
    table = result["table"]
    report = result["report"]
    cols = list(table.columns)
    preview_cols = cols[:8]
    more = "" if len(cols) <= 8 else f" (+{len(cols)-8} more)"
    removed = "  ".join(f"{stage}={n}" for stage, n in report.removed.items())
    lines = [
        f"Rows: {report.rows_in} -> {report.rows_out}  Columns: {len(cols)}",
        f"Columns: {', '.join(preview_cols)}{more}",
        f"Removed: {removed}",
    ]
    if report.partitions is not None:
        lines.append(f"Partitions: {report.partitions}")
    failures = {k: v for k, v in report.coercion_failures.items() if v}
    if failures:
        lines.append(f"Coercion failures: {failures}")
    if result["null_token_mappings"]:
        lines.append(f"Null tokens mapped: {result['null_token_mappings']}")
    profile = result.get("profile")
    if profile:
        for name in cols[:3]:
            c = profile["columns"][name]
            lines.append(
                f"  - {name}: type={c['type']} missing%={c['missing_percentage']:.2f} "
                f"unique%={c['unique_percentage']:.2f}"
            )
    return "\n".join(lines)


def _payload(result: Dict[str, Any], sample_size: int) -> Dict[str, Any]:
    table = result["table"]
    return {
        "schema": {name: t.value for name, t in table.schema.items()},
        "rows": table.to_records()[:sample_size],
        "report": result["report"].to_dict(),
        "null_token_mappings": result["null_token_mappings"],
        "profile": result["profile"],
        "config": result["config"].to_dict(),
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Clean, deduplicate and summarize a CSV or Excel file."
    )
    parser.add_argument("file", help="Path to input CSV or Excel file")
    parser.add_argument("--config", help="JSON pipeline configuration")
    parser.add_argument(
        "--null-tokens",
        action="store_true",
        help="Treat common null tokens ('', 'NA', 'n/a', '#N/A', ...) as missing",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=10,
        help="Rows included in the JSON payload (default: 10)",
    )
    parser.add_argument(
        "--no-profile", action="store_true", help="Skip column profiling"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print full JSON payload to stdout (in addition to summary)",
    )
    parser.add_argument(
        "--output",
        help="Optional path to write full JSON payload (pretty-printed)",
    )
    parser.add_argument("--html", help="Write the final table as styled HTML")
    parser.add_argument("--caption", help="Caption for --html")
    parser.add_argument("--chart", help="Write a chart image of --y against --x")
    parser.add_argument("--x", help="Chart x column")
    parser.add_argument("--y", help="Chart y column")
    parser.add_argument(
        "--kind", choices=["bar", "line", "scatter"], default="bar", help="Chart kind"
    )
    parser.add_argument(
        "--suppress-warnings",
        action="store_true",
        help="Suppress runtime warnings (e.g., date parsing).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    path = Path(args.file)
    if not path.exists():
        raise SystemExit(f"File not found: {path}")
    if args.chart and not (args.x and args.y):
        parser.error("--chart needs --x and --y")

    if args.suppress_warnings:
        # Target common noisy warnings we expect
        warnings.filterwarnings(
            "ignore", message="Could not infer format", category=UserWarning
        )
        warnings.filterwarnings(
            "ignore",
            message="Parsing dates involving a day of month",
            category=DeprecationWarning,
        )

    try:
        config = PipelineConfig.from_json_file(args.config) if args.config else None
        result = run_processing_pipeline(
            path,
            config=config,
            null_tokens=NULL_TOKENS if args.null_tokens else None,
            profile=not args.no_profile,
        )
        if args.html:
            render_table_html(
                result["table"], TableDisplay(caption=args.caption), args.html
            )
        if args.chart:
            render_chart(
                result["table"],
                ChartSpec(x=args.x, y=args.y, kind=args.kind, title=args.caption),
                args.chart,
            )
    except PipelineError as exc:
        raise SystemExit(f"error: {exc}") from exc

    print(_summarize(result))

    payload = _payload(result, args.sample_size)
    if args.json:
        print("\n=== JSON Payload ===")
        print(json.dumps(payload, indent=2, default=str))

    if args.output:
        out_path = Path(args.output)
        out_path.write_text(
            json.dumps(payload, indent=2, default=str), encoding="utf-8"
        )
        print(f"\nSaved JSON payload to {out_path}")


if __name__ == "__main__":  # pragma: no cover
    main()

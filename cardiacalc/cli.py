"""
Command-line front end for the calculators.

Usage:
    cardiacalc list
    cardiacalc info ckd_epi_gfr
    cardiacalc run bmi weight=70 height=175
    cardiacalc run bmi weight=154:lb height=5.75:ft --json
    cardiacalc run adjusted_body_weight actual_weight=140 height=175 sex=male
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from .formatting import DISCLAIMER
from .tools import calc_info, execute_calc, format_calc_info, list_calculators

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_COMPUTABLE = 1
EXIT_INVALID = 2


def parse_assignments(pairs: List[str]) -> Dict[str, Any]:
    """Turn ``key=value`` / ``key=value:unit`` arguments into execute_calc variables."""
    variables: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"expected key=value, got {pair!r}")
        value, colon, unit = raw.partition(":")
        variables[key.strip()] = {"value": value, "unit": unit} if colon else value
    return variables


def _cmd_list(args: argparse.Namespace) -> int:
    for calc in list_calculators():
        print(f"{calc['id']:<22} {calc['title']}")
    return EXIT_OK


def _cmd_info(args: argparse.Namespace) -> int:
    try:
        info = calc_info(args.calc_id)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_INVALID
    print(info.model_dump_json(indent=2) if args.json else format_calc_info(info))
    return EXIT_OK


def _cmd_run(args: argparse.Namespace) -> int:
    try:
        variables = parse_assignments(args.assignments)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_INVALID

    result = execute_calc(args.calc_id, variables)
    if args.json:
        print(result.model_dump_json(indent=2))
    elif result.status == "ok":
        interpretation = result.outputs["interpretation"]
        print(result.outputs["display"])
        print(f"{interpretation['label']}: {interpretation['display_text']}")
    elif result.status == "not_computable":
        print(f"Not computable: {result.message}")
    else:
        for msg in result.error_messages():
            print(msg, file=sys.stderr)
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    if not args.json and not args.quiet:
        print(f"\n{DISCLAIMER}")

    return {"ok": EXIT_OK, "not_computable": EXIT_NOT_COMPUTABLE}.get(result.status, EXIT_INVALID)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cardiacalc", description="Clinical biometric calculators")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List available calculators")
    p_list.set_defaults(func=_cmd_list)

    p_info = sub.add_parser("info", help="Show the inputs a calculator takes")
    p_info.add_argument("calc_id")
    p_info.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    p_info.set_defaults(func=_cmd_info)

    p_run = sub.add_parser("run", help="Run a calculator")
    p_run.add_argument("calc_id")
    p_run.add_argument("assignments", nargs="*", metavar="key=value[:unit]")
    p_run.add_argument("--json", action="store_true", help="Emit the full result as JSON")
    p_run.add_argument("--quiet", "-q", action="store_true", help="Omit the disclaimer")
    p_run.set_defaults(func=_cmd_run)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

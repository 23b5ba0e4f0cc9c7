"""
Command line runner for megaverse reconciliation.

Usage:
    python -m megaverse.runner --candidate-id <id>
    python -m megaverse.runner --dry-run --show-grid
    python -m megaverse.runner --clear --concurrency 3
"""
from __future__ import annotations

import argparse
import logging
import sys
import traceback
from typing import Optional

from dotenv import load_dotenv

from megaverse.utils import errors
from megaverse.utils.cli import (
    apply_env_vars_to_args,
    build_reconciler,
    configure_args,
    configure_logging,
    print_grids,
    print_report,
    resolve_settings,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile the megaverse map with its goal"
    )
    configure_args(parser)
    return parser


def run(cli_args: Optional[list] = None) -> int:
    """Parse arguments, reconcile once, and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(cli_args)
    args = apply_env_vars_to_args(args)

    configure_logging(args)

    settings = resolve_settings(args)
    reconciler = build_reconciler(settings, candidate_id=args.candidate_id)
    try:
        plan = reconciler.plan(clear=args.clear)
        if args.show_grid:
            print_grids(plan)
        report = reconciler.reconcile(dry_run=args.dry_run, plan=plan)
    finally:
        reconciler.client.close()

    print_report(report, json_output=args.json)
    return 0 if report.failures == 0 else 1


def main_cli(cli_args: Optional[list] = None) -> None:
    load_dotenv()
    try:
        exit_code = run(cli_args)
    except Exception as e:
        trace = traceback.format_exc()
        payload = errors.build_error_payload(e, context={"phase": "cli"}, trace=trace)
        print(errors.format_user_message(payload), file=sys.stderr)
        logger.debug(trace)
        raise SystemExit(1)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main_cli()

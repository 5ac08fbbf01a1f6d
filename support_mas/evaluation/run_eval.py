"""
CLI entry point for running the judge harness against the offline graph.

Usage:
    python -m support_mas.evaluation.run_eval --verbose
    python -m support_mas.evaluation.run_eval --report judge_report.txt

Exits with status 1 when the total score is below TARGET_TOTAL_SCORE.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from support_mas.config import settings
from support_mas.evaluation.judge import JudgeHarness, format_report

logger = logging.getLogger(__name__)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Score the support orchestrator against the judge requirement suites."
    )
    parser.add_argument(
        "--report",
        type=str,
        default=None,
        help="Path to write the judge report (default: stdout).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Include per-scenario results and debug logging.",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    report = asyncio.run(JudgeHarness().run())
    output = format_report(report, verbose=args.verbose)

    if args.report:
        report_path = Path(args.report)
        report_path.write_text(output, encoding="utf-8")
        logger.info("Report written to %s", report_path)
    else:
        sys.stdout.write(output + "\n")

    target = settings.evaluation.target_total_score
    if report.total_score < target:
        logger.error("Total score %.1f%% is below target %.0f%%", report.total_score * 100, target * 100)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Command line interface for slotscope.

Reads compiler build-info artifacts (or the latest build-info of a Foundry
project) and reports the storage layout and call graph of every contract.
"""

import argparse
import os
import sys
from typing import List, Optional

import structlog

from .analysis.contract_analyzer import ContractAnalyzer, RunResult
from .artifacts import AstCache, resolve_artifact_path
from .config import DEFAULT_IGNORE_PREFIXES, AnalysisOptions
from .errors import SlotscopeError
from .serialization import OUTPUT_FORMATS, export_results
from .utils.log import configure_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slotscope",
        description="Solidity storage layout and call graph analyzer",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="Build-info JSON file(s), or a Foundry project root whose latest build-info is used",
    )
    parser.add_argument(
        "--file",
        help="Only analyze the contracts declared in this source file",
    )

    # Analysis options
    parser.add_argument(
        "--include-all",
        action="store_true",
        help="Also use pure/view functions as call graph roots",
    )
    parser.add_argument(
        "--include-deps",
        action="store_true",
        help="Expand calls into dependencies under ignored paths",
    )
    parser.add_argument(
        "--no-static",
        action="store_true",
        help="Do not report calls to pure/view functions as high-level",
    )
    parser.add_argument(
        "--include-low-level",
        action="store_true",
        help="Add raw call/send/transfer sites to call trees as leaves",
    )
    parser.add_argument(
        "--ignore",
        action="append",
        metavar="PREFIX",
        help=f"Source path prefix to ignore (repeatable; default: {', '.join(DEFAULT_IGNORE_PREFIXES)})",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of threads used to analyze contracts",
    )

    # Output options
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="summary",
        help="Output format",
    )
    parser.add_argument(
        "--output", "-o",
        help="Write results to this file instead of stdout",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit log events as JSON lines",
    )
    return parser


def options_from_args(args: argparse.Namespace) -> AnalysisOptions:
    options = AnalysisOptions(
        include_all=args.include_all,
        include_deps=args.include_deps,
        no_static=args.no_static,
        include_low_level=args.include_low_level,
        workers=args.workers,
    )
    if args.ignore:
        options.ignore_prefixes = list(args.ignore)
    return options


def run(args: argparse.Namespace, cache: Optional[AstCache] = None) -> RunResult:
    """
    Analyze every artifact named on the command line.

    Results of several artifacts are concatenated in argument order.

    Raises:
        ArtifactError: If an artifact cannot be found or read
    """
    cache = cache or AstCache()
    analyzer = ContractAnalyzer(options_from_args(args))
    combined = RunResult()

    for path in args.paths:
        artifact = resolve_artifact_path(path)
        units = cache.get(artifact)
        if args.file:
            root = path if os.path.isdir(path) else os.getcwd()
            result = analyzer.analyze_file(units, args.file, root)
        else:
            result = analyzer.analyze_source_units(units)
        combined.summary.succeeded.extend(result.summary.succeeded)
        combined.summary.skipped.extend(result.summary.skipped)
        combined.summary.failed.extend(result.summary.failed)
        combined.reports.extend(result.reports)
    return combined


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments and run the analysis.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.workers < 1:
        parser.error("--workers must be at least 1")

    configure_logging("DEBUG" if args.verbose else "INFO", json_output=args.log_json)

    try:
        result = run(args)
        text = export_results(result, args.format, args.output)
        if not args.output:
            print(text)
        return 0

    except KeyboardInterrupt:
        logger.info("Analysis interrupted by user")
        return 130  # Standard exit code for Ctrl+C

    except (SlotscopeError, OSError) as e:
        logger.error("Analysis failed", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())

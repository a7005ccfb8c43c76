"""
Command-Line Interface for the PostgreSQL dump anonymizer.

This module provides the command-line interface for the anonymization tool.

Usage:
    pg-anonymize -c rules.yaml -i dump.sql -o anonymized.sql
    pg-anonymize -c rules.yaml -i dump.sql -o anonymized.sql --seed 42
    pg-anonymize --run-config run.json --verbose
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from pg_anonymizer import __version__
from pg_anonymizer.config import Config, create_default_config, merge_configs
from pg_anonymizer.logging_config import setup_logging
from pg_anonymizer.main import AnonymizationPipeline


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="pg-anonymize",
        description="Anonymize the COPY data of PostgreSQL plain-text dump files.",
        epilog="Example: pg-anonymize -c config.yaml -i dump.sql -o out.sql",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Input/Output
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="YAML configuration file with the anonymization rules",
        metavar="FILE",
    )

    parser.add_argument(
        "-i", "--input",
        type=Path,
        help="Input PostgreSQL dump file (plain SQL)",
        metavar="FILE",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file for the anonymized dump",
        metavar="FILE",
    )

    parser.add_argument(
        "--run-config",
        type=Path,
        help=(
            "Run configuration file (JSON); command-line options take precedence "
            "unless they equal their defaults"
        ),
        metavar="FILE",
    )

    # Processing options
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducible RAND/PICK output",
        metavar="N",
    )

    parser.add_argument(
        "--encoding",
        default="utf-8",
        help="Dump encoding (default: utf-8)",
    )

    parser.add_argument(
        "--default-schema",
        default="public",
        help="Schema assumed for unqualified table names (default: public)",
        metavar="NAME",
    )

    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite an existing output file",
    )

    parser.add_argument(
        "--report",
        type=Path,
        help="Write a JSON report of the run",
        metavar="FILE",
    )

    # Output options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress normal output",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write log messages to this file",
        metavar="FILE",
    )

    return parser


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = create_parser()
    return parser.parse_args(args)


def args_to_config(args: argparse.Namespace) -> Config:
    """Convert parsed arguments to Config object."""
    config = create_default_config()

    config.rules_file = args.config
    config.input_file = args.input
    config.output_file = args.output
    config.seed = args.seed
    config.encoding = args.encoding
    config.default_schema = args.default_schema
    config.overwrite = args.overwrite
    config.report_file = args.report
    config.verbose = args.verbose
    config.quiet = args.quiet
    config.log_file = args.log_file

    if args.verbose:
        config.log_level = "DEBUG"
    elif args.quiet:
        config.log_level = "WARNING"

    # Command-line args override the run config file
    if args.run_config and args.run_config.exists():
        file_config = Config.load_from_file(args.run_config)
        config = merge_configs(file_config, config)

    return config


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Args:
        args: Command-line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    parsed = parse_args(args)
    config = args_to_config(parsed)

    setup_logging(level=config.log_level, log_file=config.log_file, verbose=config.verbose)

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Configuration error: {error}", file=sys.stderr)
        create_parser().print_usage(sys.stderr)
        return 1

    if not config.quiet:
        print(f"PG Anonymizer v{__version__}")
        print(f"Config File: {config.rules_file}")
        print(f"Input File:  {config.input_file}")
        print(f"Output File: {config.output_file}")
        print()

    result = AnonymizationPipeline(config).run()

    if not result.success:
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        print("Processing failed.", file=sys.stderr)
        return 1

    if not config.quiet:
        print(result.report.to_text())

    return 0


if __name__ == "__main__":
    sys.exit(main())

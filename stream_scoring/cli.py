#!/usr/bin/env python3
"""
Command-line interface for stream scoring.
Scores data files with saved models and inspects field mappings.
"""

import argparse
import logging
import sys
import warnings
from typing import List, Optional

from tabulate import tabulate

from . import __version__
from .config import load_config
from .exceptions import ScoringError
from .inference import prediction_summary, read_table, save_predictions, score_dataframe
from .mapping import find_mappings, mapping_report
from .model_io import load_model
from .schema import SourceRowSchema


def setup_logging(verbose: int = 1, log_file: Optional[str] = None):
    """Configure logging for the application."""
    log_level = {
        0: logging.WARNING,
        1: logging.INFO,
        2: logging.DEBUG
    }.get(verbose, logging.DEBUG if verbose > 2 else logging.INFO)

    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format=format_str,
        handlers=handlers
    )

    # sklearn feature-name warnings are noise when scoring
    warnings.filterwarnings('ignore', category=UserWarning)
    warnings.filterwarnings('ignore', category=FutureWarning)


logger = logging.getLogger(__name__)


def score_cmd(args):
    """Score a data file with a saved model."""
    logger.info("=" * 80)
    logger.info(f"STREAM SCORING - v{__version__}")
    logger.info("=" * 80)

    overrides = {
        "model_file": args.model,
        "model_field": args.model_field,
        "batch_size": args.batch_size,
        "missing_prediction_marker": args.marker,
        "saved_model_file": args.save_updated,
    }
    if args.probabilities:
        overrides["output_probabilities"] = True
    if args.update:
        # incremental updates only happen when rows are scored one at a time
        overrides["update_incremental_model"] = True
        overrides["batch_scoring"] = False

    try:
        config = load_config(args.config, **overrides)
        df = read_table(args.data)
        scored = score_dataframe(df, config=config)
    except (ScoringError, OSError, ValueError) as e:
        logger.error(f"Scoring failed: {e}")
        if args.debug:
            raise
        sys.exit(1)

    prediction_columns = list(scored.columns[len(df.columns):])

    if args.output:
        save_predictions(scored, args.output)
        for column, stats in prediction_summary(scored, prediction_columns).items():
            logger.info(f"{column}: {stats}")
    else:
        print(tabulate(scored.head(args.head), headers="keys", tablefmt="grid", showindex=False))
        if len(scored) > args.head:
            print(f"... ({len(scored) - args.head} more rows)")

    logger.info(f"Scoring completed: {len(scored)} rows")


def mapping_cmd(args):
    """Show how model attributes map onto the fields of a data file."""
    try:
        model = load_model(args.model)
        df = read_table(args.data)
    except (ScoringError, OSError, ValueError) as e:
        logger.error(f"Failed to load inputs: {e}")
        if args.debug:
            raise
        sys.exit(1)

    row_schema = SourceRowSchema.from_dataframe(df)
    mapping = find_mappings(model.header, row_schema)
    report = mapping_report(model.header, row_schema, mapping)

    table_data = [
        [entry["attribute"], entry["attribute_kind"], entry["field"],
         entry["field_kind"], entry["status"]]
        for entry in report
    ]
    headers = ["Attribute", "Kind", "Field", "Field kind", "Status"]
    print(tabulate(table_data, headers=headers, tablefmt="grid"))

    unusable = sum(1 for entry in report if entry["status"] != "ok")
    if unusable:
        print(f"\n{unusable} of {len(report)} attributes will be treated as missing")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='stream-score',
        description=f'Stream scoring v{__version__} - apply saved models to rows of data',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Score a CSV file and print the first rows
  %(prog)s score --model model.joblib --data data.csv

  # Write class probabilities to a file
  %(prog)s score --model model.joblib --data data.csv --probabilities --output scored.csv

  # Update an incremental model while scoring and save it
  %(prog)s score --model model.joblib --data data.csv --update --save-updated updated.joblib

  # Check which attributes the data file can supply
  %(prog)s mapping --model model.joblib --data data.csv
        """
    )

    parser.add_argument('--version', action='version', version=f'stream-scoring {__version__}')
    parser.add_argument('--verbose', '-v', action='count', default=1,
                        help='Increase verbosity (can be repeated)')
    parser.add_argument('--quiet', '-q', action='store_true',
                        help='Only log warnings and errors')
    parser.add_argument('--log-file', help='Log to file')
    parser.add_argument('--debug', action='store_true',
                        help='Re-raise errors with full tracebacks')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    score_parser = subparsers.add_parser('score', help='Score a data file')
    score_parser.add_argument('--model', help='Path to saved model')
    score_parser.add_argument('--model-field', help='Field holding a model path for each row')
    score_parser.add_argument('--data', required=True, help='Path to data to score')
    score_parser.add_argument('--output', help='Output file path (if not specified, prints to console)')
    score_parser.add_argument('--config', help='Path to configuration YAML file')
    score_parser.add_argument('--probabilities', action='store_true',
                              help='Output a probability per class or cluster')
    score_parser.add_argument('--batch-size', help='Rows per batch for batch-capable models')
    score_parser.add_argument('--marker', help='Value written when no prediction can be made')
    score_parser.add_argument('--update', action='store_true',
                              help='Update an incremental model with rows whose target is present')
    score_parser.add_argument('--save-updated', help='Where to save the updated model')
    score_parser.add_argument('--head', type=int, default=20,
                              help='Rows to print when no output file is given')

    mapping_parser = subparsers.add_parser('mapping', help='Show the attribute to field mapping')
    mapping_parser.add_argument('--model', required=True, help='Path to saved model')
    mapping_parser.add_argument('--data', required=True, help='Path to data file')

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, args.log_file)

    if args.command == 'score':
        if not (args.model or args.model_field or args.config):
            parser.error("score needs --model, --model-field or --config")
        score_cmd(args)
    elif args.command == 'mapping':
        mapping_cmd(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

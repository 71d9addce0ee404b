#!/usr/bin/env python3
"""
SQL Dump Converter - CLI Entry Point
====================================
Converts a .sql or .sql.gz dump into CSV, JSON lines or XLSX files, without
loading it into a database:
- Summary of the tables found (no other arguments)
- A single table (--table)
- Every table, one file each (--all-tables)
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from . import __version__
from .config import ConfigLoader
from .converter import DumpConverter
from .exceptions import ConfigurationError, SqlDumpError
from .models import ConversionOutcome, ConversionSettings, OutputFormat
from .utils import log_conversion_result, setup_logging


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog='sqldump-to-csv',
        description='SQL Dump Converter - Export tables of a SQL dump to CSV, JSON or XLSX'
    )
    parser.add_argument(
        'sql_dump',
        help='Path to a .sql or .sql.gz file'
    )
    parser.add_argument(
        'out_file',
        nargs='?',
        help='Path to a destination .csv, .json or .xlsx file (or folder with --all-tables)'
    )
    parser.add_argument(
        '--out-format',
        choices=[f.value for f in OutputFormat],
        help='Output format (default: from the out-file extension)'
    )
    selection = parser.add_mutually_exclusive_group()
    selection.add_argument(
        '--table',
        help='Name of the table to export'
    )
    selection.add_argument(
        '--all-tables',
        action='store_true',
        help='Export all the tables, each one to a separate file'
    )
    parser.add_argument(
        '-c', '--config',
        help='Path to an optional YAML configuration file'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    args = parser.parse_args(argv)

    # Load configuration
    try:
        config = ConfigLoader(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file '{args.config}' not found", file=sys.stderr)
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    log_settings = dict(config.get_logging_settings())
    if args.verbose:
        log_settings['level'] = 'DEBUG'
    setup_logging(log_settings)

    if not Path(args.sql_dump).is_file():
        print(f"Error: Cannot find '{args.sql_dump}'.", file=sys.stderr)
        sys.exit(1)

    try:
        settings = ConversionSettings.from_configs(
            {
                'dump_path': args.sql_dump,
                'output_path': args.out_file,
                'out_format': args.out_format,
                'table': args.table,
                'all_tables': args.all_tables,
            },
            config.get_input_settings(),
            config.get_output_settings()
        )
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Run conversion
    try:
        result = DumpConverter(settings).run()
    except (SqlDumpError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        sys.exit(1)

    log_conversion_result(result)

    if result.outcome is ConversionOutcome.UNKNOWN_TABLE:
        print(
            f"Unable to find table {settings.table}. Use sqldump-to-csv \"{settings.dump_path}\" "
            f"(with no other args) to see a list of tables that were found.",
            file=sys.stderr
        )
    elif result.outcome is ConversionOutcome.EMPTY_DUMP:
        print("No tables were found.", file=sys.stderr)

    if result.exit_status:
        sys.exit(result.exit_status)


if __name__ == '__main__':
    main()

#!/usr/bin/env python3
"""
CSV Report Exporter

Reads JSON produced by the Jira or GitLab fetch helpers and writes CSV.

Usage:
    python jira_fetch.py sprint 123 | python csv_export.py jira-sprint
    python gitlab_fetch.py mrs mygroup/myproject | python csv_export.py gitlab-mrs
    python csv_export.py jira-sprint --file data.json --out report.csv
"""

import argparse
import json
import logging
import sys
from typing import Any, Iterable, List, Optional, Sequence

from cli_utils import ArgumentParser, setup_logging
from metrics_errors import InputError, MetricsError, UsageError
from normalizers import ReportFormat

logger = logging.getLogger(__name__)

QUOTE_TRIGGERS = (',', '"', '\n')


def escape_csv(value: Any) -> str:
    """Render one cell, quoting it when it holds a comma, quote or newline."""
    if value is None:
        return ''
    if isinstance(value, bool):
        text = 'true' if value else 'false'
    else:
        text = str(value)
    if any(trigger in text for trigger in QUOTE_TRIGGERS):
        return '"' + text.replace('"', '""') + '"'
    return text


def csv_line(values: Iterable[Any]) -> str:
    return ','.join(escape_csv(value) for value in values)


def render_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """
    Serialize a header and rows into CSV text.

    Rows are separated by a single newline with no trailing newline; the
    header is emitted even when there are no rows.
    """
    lines = [csv_line(headers)]
    for index, row in enumerate(rows):
        if len(row) != len(headers):
            raise ValueError(f"Row {index} has {len(row)} cells, expected {len(headers)}")
        lines.append(csv_line(row))
    return '\n'.join(lines)


def build_report(report_format: ReportFormat, data: Any) -> str:
    """Turn fetch-helper JSON into CSV text for the given format."""
    rows = report_format.rows(data)
    logger.debug("Built %d %s rows", len(rows), report_format.value)
    return render_csv(report_format.headers, rows)


def read_input(input_file: Optional[str] = None) -> Any:
    """Read and parse the JSON document from a file or from stdin."""
    if input_file:
        try:
            with open(input_file, 'r', encoding='utf-8') as f:
                raw_json = f.read()
        except OSError as e:
            raise InputError(f"Cannot read {input_file}: {e.strerror or e}")
        except UnicodeDecodeError as e:
            raise InputError(f"Input is not valid UTF-8: {e}")
    else:
        try:
            raw_json = sys.stdin.buffer.read().decode('utf-8')
        except UnicodeDecodeError as e:
            raise InputError(f"Input is not valid UTF-8: {e}")

    if not raw_json.strip():
        raise InputError('No input data. Pipe JSON from a fetch helper or use --file.')

    try:
        return json.loads(raw_json)
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid JSON input: {e}")


def export(format_name: str, input_file: Optional[str] = None, output_file: Optional[str] = None) -> str:
    """Run one export; returns the CSV text."""
    report_format = ReportFormat.from_name(format_name)
    data = read_input(input_file)
    csv_text = build_report(report_format, data)
    row_count = len(report_format.records(data)) + 1

    if output_file:
        with open(output_file, 'w', encoding='utf-8', newline='') as f:
            f.write(csv_text)
        print(f"CSV written to {output_file} ({row_count} rows)")
    else:
        print(csv_text)

    return csv_text


def build_parser() -> argparse.ArgumentParser:
    valid = ', '.join(ReportFormat.names())
    parser = ArgumentParser(
        prog='csv_export.py',
        description='Export Jira sprint or GitLab merge request JSON as CSV',
        usage=f"%(prog)s <{valid}> [--file input.json] [--out output.csv]",
    )
    parser.add_argument('format', nargs='?', help=f"Report format: {valid}")
    parser.add_argument('--file', help='Input JSON file (default: read stdin)')
    parser.add_argument('--out', help='Output CSV file (default: write stdout)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging on stderr')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
        setup_logging(args.verbose)
        if not args.format:
            valid = ', '.join(ReportFormat.names())
            raise UsageError(f"Usage: csv_export.py <{valid}> [--file input.json] [--out output.csv]")
        export(args.format, args.file, args.out)
    except (MetricsError, OSError) as e:
        print(str(e), file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

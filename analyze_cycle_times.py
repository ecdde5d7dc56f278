#!/usr/bin/env python3
"""
Statistical Analysis of Cycle Times

Analyzes a jira-sprint or gitlab-mrs CSV written by csv_export.py, with
outlier removal using statistical methods. Rows without a cycle time are
ignored.
"""

import argparse
import sys
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from cli_utils import ArgumentParser, setup_logging
from metrics_errors import InputError, MetricsError

CYCLE_TIME_COLUMN = 'Cycle Time (hours)'
ACTOR_COLUMNS = ('Assignee', 'Author')
KEY_COLUMNS = ('Issue Key', 'MR IID')
TITLE_COLUMNS = ('Summary', 'Title')


def _first_present(df: pd.DataFrame, candidates) -> Optional[str]:
    for column in candidates:
        if column in df.columns:
            return column
    return None


class CycleTimeAnalyzer:
    def __init__(self, df: pd.DataFrame):
        """Initialize the analyzer with exported report data."""
        if CYCLE_TIME_COLUMN not in df.columns:
            raise InputError(f"Missing '{CYCLE_TIME_COLUMN}' column; export the data with csv_export.py first")

        hours = pd.to_numeric(df[CYCLE_TIME_COLUMN], errors='coerce')
        self.df = df.assign(**{CYCLE_TIME_COLUMN: hours}).dropna(subset=[CYCLE_TIME_COLUMN])
        self.skipped = len(df) - len(self.df)
        self.actor_column = _first_present(df, ACTOR_COLUMNS)
        self.key_column = _first_present(df, KEY_COLUMNS)
        self.title_column = _first_present(df, TITLE_COLUMNS)

    @classmethod
    def from_csv(cls, csv_file: str) -> 'CycleTimeAnalyzer':
        try:
            df = pd.read_csv(csv_file)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise InputError(f"Error loading CSV file: {e}")
        analyzer = cls(df)
        print(f"Loaded {len(analyzer.df)} records with a cycle time from {csv_file} "
              f"({analyzer.skipped} without)")
        return analyzer

    def remove_outliers_iqr(self) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Remove outliers using Interquartile Range (IQR) method."""
        column = self.df[CYCLE_TIME_COLUMN]
        q1 = column.quantile(0.25)
        q3 = column.quantile(0.75)
        iqr = q3 - q1

        # 1.5 * IQR fences
        lower_bound = q1 - 1.5 * iqr
        upper_bound = q3 + 1.5 * iqr

        mask = (column >= lower_bound) & (column <= upper_bound)
        clean_data, outliers = self.df[mask], self.df[~mask]

        print(f"\nIQR Method Results:")
        print(f"Q1 (25th percentile): {q1:.1f} hours")
        print(f"Q3 (75th percentile): {q3:.1f} hours")
        print(f"IQR: {iqr:.1f} hours")
        print(f"Lower bound: {lower_bound:.1f} hours")
        print(f"Upper bound: {upper_bound:.1f} hours")
        self._print_removed(outliers)

        return clean_data, outliers

    def remove_outliers_zscore(self, threshold: float = 3.0) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Remove outliers using Z-score method."""
        column = self.df[CYCLE_TIME_COLUMN]
        mean = column.mean()
        std = column.std()

        if not std or np.isnan(std):
            z_scores = pd.Series(0.0, index=column.index)
        else:
            z_scores = np.abs((column - mean) / std)

        mask = z_scores <= threshold
        clean_data, outliers = self.df[mask], self.df[~mask]

        print(f"\nZ-Score Method Results (threshold={threshold}):")
        print(f"Mean: {mean:.1f} hours")
        print(f"Standard deviation: {std:.1f} hours")
        self._print_removed(outliers)

        return clean_data, outliers

    def remove_outliers_percentile(self, lower: float = 5, upper: float = 95) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Remove outliers using percentile method."""
        column = self.df[CYCLE_TIME_COLUMN]
        lower_bound = column.quantile(lower / 100)
        upper_bound = column.quantile(upper / 100)

        mask = (column >= lower_bound) & (column <= upper_bound)
        clean_data, outliers = self.df[mask], self.df[~mask]

        print(f"\nPercentile Method Results ({lower}th-{upper}th percentile):")
        print(f"Lower bound ({lower}th percentile): {lower_bound:.1f} hours")
        print(f"Upper bound ({upper}th percentile): {upper_bound:.1f} hours")
        self._print_removed(outliers)

        return clean_data, outliers

    def _print_removed(self, outliers: pd.DataFrame) -> None:
        share = len(outliers) / len(self.df) * 100 if len(self.df) else 0.0
        print(f"Outliers removed: {len(outliers)} ({share:.1f}%)")

    def calculate_statistics(self, data: pd.DataFrame, label: str = "") -> Dict:
        """Calculate summary statistics for the data, in hours."""
        cycle_times = data[CYCLE_TIME_COLUMN]
        q25 = cycle_times.quantile(0.25)
        q75 = cycle_times.quantile(0.75)

        stats = {
            'count': len(data),
            'mean': cycle_times.mean(),
            'median': cycle_times.median(),
            'std': cycle_times.std(),
            'min': cycle_times.min(),
            'max': cycle_times.max(),
            'q25': q25,
            'q75': q75,
            'iqr': q75 - q25,
            'skewness': cycle_times.skew(),
            'kurtosis': cycle_times.kurtosis(),
        }

        print(f"\n{label} Statistics:")
        print(f"Count: {stats['count']}")
        print(f"Mean: {stats['mean']:.1f} hours ({stats['mean'] / 24:.1f} days)")
        print(f"Median: {stats['median']:.1f} hours ({stats['median'] / 24:.1f} days)")
        print(f"Standard Deviation: {stats['std']:.1f} hours")
        print(f"Min: {stats['min']:.1f} hours")
        print(f"Max: {stats['max']:.1f} hours")
        print(f"25th Percentile: {stats['q25']:.1f} hours")
        print(f"75th Percentile: {stats['q75']:.1f} hours")
        print(f"IQR: {stats['iqr']:.1f} hours")
        print(f"Skewness: {stats['skewness']:.2f} (0=normal, >1=right-skewed)")
        print(f"Kurtosis: {stats['kurtosis']:.2f} (0=normal distribution)")

        return stats

    def analyze_by_actor(self, data: pd.DataFrame, top_n: int = 10) -> Optional[pd.DataFrame]:
        """Cycle time per assignee (Jira) or author (GitLab)."""
        if self.actor_column is None or data.empty:
            return None

        print(f"\n--- Analysis by {self.actor_column} (Top {top_n}) ---")
        actor_stats = data.groupby(self.actor_column)[CYCLE_TIME_COLUMN].agg([
            'count', 'mean', 'median', 'std'
        ]).round(1)

        top_actors = actor_stats.sort_values('count', ascending=False).head(top_n)
        print(top_actors)
        return top_actors

    def identify_extreme_outliers(self, outliers: pd.DataFrame) -> None:
        """Show the longest cycle times among the removed outliers."""
        if len(outliers) == 0:
            print("\nNo outliers to analyze.")
            return

        print(f"\n--- Analysis of {len(outliers)} Outliers ---")
        print("Top 10 longest cycle times (outliers):")
        for _, row in outliers.nlargest(10, CYCLE_TIME_COLUMN).iterrows():
            key = row[self.key_column] if self.key_column else '?'
            title = str(row[self.title_column])[:60] if self.title_column else ''
            print(f"{key}: {row[CYCLE_TIME_COLUMN]:.1f} hours - {title}")

    def generate_summary_report(self, original_stats: Dict, clean_stats: Dict, method: str) -> None:
        """Compare original vs cleaned data."""
        print(f"\n{'=' * 60}")
        print(f"SUMMARY REPORT - {method}")
        print(f"{'=' * 60}")

        print(f"Original Data:")
        print(f"  Records: {original_stats['count']}")
        print(f"  Mean cycle time: {original_stats['mean']:.1f} hours")
        print(f"  Median cycle time: {original_stats['median']:.1f} hours")

        print(f"\nCleaned Data (outliers removed):")
        print(f"  Records: {clean_stats['count']}")
        print(f"  Mean cycle time: {clean_stats['mean']:.1f} hours")
        print(f"  Median cycle time: {clean_stats['median']:.1f} hours")

        if original_stats['count']:
            print(f"  Data points retained: {clean_stats['count'] / original_stats['count'] * 100:.1f}%")

        print(f"\nRecommended Team Cycle Time: {clean_stats['median']:.1f} hours (median)")
        print(f"Typical Range: {clean_stats['q25']:.1f} - {clean_stats['q75']:.1f} hours (IQR)")


def build_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(prog='analyze_cycle_times.py', description='Analyze exported cycle times with outlier removal')
    parser.add_argument('csv_file', help='CSV written by csv_export.py')
    parser.add_argument('--method', choices=['iqr', 'zscore', 'percentile', 'all'],
                        default='iqr', help='Outlier removal method')
    parser.add_argument('--zscore-threshold', type=float, default=3.0,
                        help='Z-score threshold for outlier removal')
    parser.add_argument('--percentile-lower', type=float, default=5,
                        help='Lower percentile for outlier removal')
    parser.add_argument('--percentile-upper', type=float, default=95,
                        help='Upper percentile for outlier removal')
    parser.add_argument('--verbose', action='store_true', help='Debug logging on stderr')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = build_parser().parse_args(argv)
        setup_logging(args.verbose)
        analyzer = CycleTimeAnalyzer.from_csv(args.csv_file)
    except MetricsError as e:
        print(str(e), file=sys.stderr)
        return 1

    if analyzer.df.empty:
        print("No records with a cycle time to analyze.")
        return 0

    original_stats = analyzer.calculate_statistics(analyzer.df, "Original Data")
    methods = ['iqr', 'zscore', 'percentile'] if args.method == 'all' else [args.method]

    for method in methods:
        print(f"\n{'=' * 80}")
        print(f"ANALYZING WITH {method.upper()} METHOD")
        print(f"{'=' * 80}")

        if method == 'iqr':
            clean_data, outliers = analyzer.remove_outliers_iqr()
        elif method == 'zscore':
            clean_data, outliers = analyzer.remove_outliers_zscore(threshold=args.zscore_threshold)
        else:
            clean_data, outliers = analyzer.remove_outliers_percentile(
                lower=args.percentile_lower, upper=args.percentile_upper
            )

        clean_stats = analyzer.calculate_statistics(clean_data, f"Cleaned Data ({method.upper()})")
        analyzer.analyze_by_actor(clean_data)
        analyzer.identify_extreme_outliers(outliers)
        analyzer.generate_summary_report(original_stats, clean_stats, method.upper())

    return 0


if __name__ == '__main__':
    sys.exit(main())

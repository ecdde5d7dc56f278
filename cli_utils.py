"""Command-line plumbing shared by the eng-metrics scripts."""

import argparse
import logging
import sys

from metrics_errors import UsageError


class ArgumentParser(argparse.ArgumentParser):
    """argparse parser that raises UsageError instead of exiting with status 2."""

    def error(self, message):
        raise UsageError(f"{self.prog}: {message}")


def setup_logging(verbose: bool = False) -> None:
    """Log to stderr so stdout stays clean for JSON and CSV output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

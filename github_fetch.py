#!/usr/bin/env python3
"""
GitHub REST API fetch helper

Usage:
    python github_fetch.py prs <owner> <repo>     recent closed pull requests

GITHUB_TOKEN is optional; without it requests count against the anonymous
rate limit.
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional
from urllib.parse import quote

import requests

from cli_utils import ArgumentParser, setup_logging
from metrics_config import MetricsConfig, load_config
from metrics_errors import MetricsError, UsageError
from normalizers import format_pr
from rest_client import RestClient

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 30
USER_AGENT = 'eng-metrics'


class GitHubClient(RestClient):
    service = 'GitHub'

    def __init__(self, config: MetricsConfig, session: Optional[requests.Session] = None):
        headers = {
            'Accept': 'application/vnd.github+json',
            'User-Agent': USER_AGENT,
        }
        if config.github_token:
            headers['Authorization'] = f"Bearer {config.github_token}"
        super().__init__(config.github_api_url, headers=headers, session=session)

    def closed_prs(self, owner: str, repo: str, per_page: int = DEFAULT_PER_PAGE) -> List[Dict]:
        """Recently updated closed pull requests, merged or not."""
        prs = self.get(
            f"/repos/{quote(str(owner), safe='')}/{quote(str(repo), safe='')}/pulls",
            params={'state': 'closed', 'per_page': per_page, 'sort': 'updated', 'direction': 'desc'},
        )
        logger.info("Fetched %d closed PRs for %s/%s", len(prs), owner, repo)
        return [format_pr(pr) for pr in prs]


def build_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(prog='github_fetch.py', description='Fetch GitHub pull requests as JSON')
    parser.add_argument('--env-file', default='.env', help='dotenv file with credentials (default: .env)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging on stderr')
    subparsers = parser.add_subparsers(dest='mode', metavar='<prs>')

    prs = subparsers.add_parser('prs', help='List recent closed PRs')
    prs.add_argument('owner')
    prs.add_argument('repo')
    prs.add_argument('--per-page', type=int, default=DEFAULT_PER_PAGE)

    return parser


def run(args: argparse.Namespace, config: MetricsConfig, session: Optional[requests.Session] = None) -> Dict:
    if args.mode != 'prs':
        raise UsageError('Usage: github_fetch.py prs <owner> <repo>')

    prs = GitHubClient(config, session=session).closed_prs(args.owner, args.repo, args.per_page)
    return {'total': len(prs), 'pull_requests': prs}


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = build_parser().parse_args(argv)
        setup_logging(args.verbose)
        result = run(args, load_config(args.env_file))
        print(json.dumps(result, indent=2))
    except requests.exceptions.RequestException as e:
        print(f"Error connecting to GitHub: {e}", file=sys.stderr)
        return 1
    except MetricsError as e:
        print(str(e), file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

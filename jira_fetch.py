#!/usr/bin/env python3
"""
Jira REST API v2 fetch helper (Bearer auth)

Usage:
    python jira_fetch.py issue DMIB-1234
    python jira_fetch.py jql "project = ABC AND sprint = 123"
    python jira_fetch.py sprint 123

Prints JSON: a single flattened issue, or {"total": n, "issues": [...]}.
Needs JIRA_BASE_URL and JIRA_BEARER_TOKEN (environment or .env).
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
from normalizers import format_issue
from rest_client import RestClient

logger = logging.getLogger(__name__)

ISSUE_FIELDS = ['summary', 'status', 'assignee', 'created', 'resolutiondate', 'statuscategorychangedate']
DEFAULT_MAX_RESULTS = 100


class JiraClient(RestClient):
    service = 'Jira'

    def __init__(self, config: MetricsConfig, session: Optional[requests.Session] = None):
        """Initialize the Jira client from configuration."""
        base_url = config.require('jira_base_url')
        token = config.require('jira_bearer_token')
        super().__init__(
            base_url,
            headers={
                'Authorization': f"Bearer {token}",
                'Content-Type': 'application/json',
                'Accept': 'application/json',
            },
            session=session,
        )

    def get_issue(self, issue_key: str) -> Dict:
        """Get a single issue, flattened."""
        issue = self.get(
            f"/rest/api/2/issue/{quote(issue_key, safe='')}",
            params={'fields': ','.join(ISSUE_FIELDS)},
        )
        return format_issue(issue)

    def search(self, jql: str, max_results: int = DEFAULT_MAX_RESULTS) -> Dict:
        """Run a JQL search; returns {"total", "issues"}."""
        logger.info("Searching Jira with JQL: %s", jql)
        result = self.post('/rest/api/2/search', {
            'jql': jql,
            'fields': ISSUE_FIELDS,
            'maxResults': max_results,
        })
        issues = [format_issue(issue) for issue in result.get('issues') or []]
        logger.info("Found %d issues (total %s)", len(issues), result.get('total'))
        return {'total': result.get('total'), 'issues': issues}

    def sprint(self, sprint_id) -> Dict:
        """All issues of a sprint, most recently updated first."""
        return self.search(f"sprint = {sprint_id} ORDER BY updated DESC")

    def active_sprint(self, board_id: int) -> Optional[Dict]:
        """The board's first active sprint, or None."""
        sprints = self.active_sprints(board_id)
        return sprints[0] if sprints else None

    def active_sprints(self, board_id: int) -> List[Dict]:
        result = self.get(f"/rest/agile/1.0/board/{board_id}/sprint", params={'state': 'active'})
        return result.get('values') or []

    def sprint_issues(self, board_id: int, sprint_id: int, max_results: int = DEFAULT_MAX_RESULTS) -> List[Dict]:
        """Issues of one sprint on one board, flattened."""
        result = self.get(
            f"/rest/agile/1.0/board/{board_id}/sprint/{sprint_id}/issue",
            params={'fields': ','.join(ISSUE_FIELDS), 'maxResults': max_results},
        )
        return [format_issue(issue) for issue in result.get('issues') or []]


def build_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(prog='jira_fetch.py', description='Fetch Jira issues as JSON')
    parser.add_argument('--env-file', default='.env', help='dotenv file with credentials (default: .env)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging on stderr')
    subparsers = parser.add_subparsers(dest='mode', metavar='<issue|jql|sprint>')

    issue = subparsers.add_parser('issue', help='Fetch a single issue')
    issue.add_argument('key', help='Issue key, e.g. ABC-123')

    jql = subparsers.add_parser('jql', help='Run a JQL search')
    jql.add_argument('query', nargs='+', help='JQL query')
    jql.add_argument('--max-results', type=int, default=DEFAULT_MAX_RESULTS)

    sprint = subparsers.add_parser('sprint', help='Fetch all issues of a sprint')
    sprint.add_argument('sprint_id', help='Sprint id')

    return parser


def run(args: argparse.Namespace, config: MetricsConfig, session: Optional[requests.Session] = None) -> Dict:
    if not args.mode:
        raise UsageError('Usage: jira_fetch.py <issue|jql|sprint> <value>')

    client = JiraClient(config, session=session)
    if args.mode == 'issue':
        return client.get_issue(args.key)
    if args.mode == 'jql':
        query = ' '.join(args.query).strip()
        if not query:
            raise UsageError('Usage: jira_fetch.py jql "<JQL>"')
        return client.search(query, args.max_results)
    if args.mode == 'sprint':
        return client.sprint(args.sprint_id)

    raise UsageError(f"Unknown mode: {args.mode}")


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = build_parser().parse_args(argv)
        setup_logging(args.verbose)
        result = run(args, load_config(args.env_file))
        print(json.dumps(result, indent=2))
    except requests.exceptions.RequestException as e:
        print(f"Error connecting to Jira: {e}", file=sys.stderr)
        return 1
    except MetricsError as e:
        print(str(e), file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
"""
GitLab REST API v4 fetch helper (Personal Access Token auth)

Usage:
    python gitlab_fetch.py mrs <project-id-or-path>                 list recent merged MRs
    python gitlab_fetch.py mr <project-id-or-path> <mr-iid>         get a single MR
    python gitlab_fetch.py comment <project-id-or-path> <mr-iid> "text"   add a note to an MR

Needs GITLAB_BASE_URL and GITLAB_TOKEN (environment or .env).
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional, Union
from urllib.parse import quote

import requests

from cli_utils import ArgumentParser, setup_logging
from metrics_config import MetricsConfig, load_config
from metrics_errors import MetricsError, UsageError
from normalizers import format_mr
from rest_client import RestClient

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 30


def encode_project(project: Union[str, int]) -> str:
    """Numeric ids pass through; paths like "group/project" are URL-encoded."""
    project = str(project)
    if project.isdigit():
        return project
    return quote(project, safe='')


class GitLabClient(RestClient):
    service = 'GitLab'

    def __init__(self, config: MetricsConfig, session: Optional[requests.Session] = None):
        """Initialize the GitLab client from configuration."""
        base_url = config.require('gitlab_base_url')
        token = config.require('gitlab_token')
        super().__init__(
            f"{base_url}/api/v4",
            headers={'PRIVATE-TOKEN': token, 'Content-Type': 'application/json'},
            session=session,
        )

    def merged_mrs(self, project: Union[str, int], per_page: int = DEFAULT_PER_PAGE) -> Dict:
        """Most recently updated merged MRs; returns {"total", "merge_requests"}."""
        mrs = self.get(
            f"/projects/{encode_project(project)}/merge_requests",
            params={'state': 'merged', 'order_by': 'updated_at', 'sort': 'desc', 'per_page': per_page},
        )
        formatted = [format_mr(mr) for mr in mrs]
        logger.info("Fetched %d merged MRs for %s", len(formatted), project)
        return {'total': len(formatted), 'merge_requests': formatted}

    def get_mr(self, project: Union[str, int], mr_iid: Union[str, int]) -> Dict:
        return format_mr(self.get(f"/projects/{encode_project(project)}/merge_requests/{mr_iid}"))

    def add_comment(self, project: Union[str, int], mr_iid: Union[str, int], body: str) -> Dict:
        """Add a note to a merge request."""
        note = self.post(f"/projects/{encode_project(project)}/merge_requests/{mr_iid}/notes", {'body': body})
        return {'id': note.get('id'), 'body': note.get('body'), 'created_at': note.get('created_at')}


def build_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(prog='gitlab_fetch.py', description='Fetch GitLab merge requests as JSON')
    parser.add_argument('--env-file', default='.env', help='dotenv file with credentials (default: .env)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging on stderr')
    subparsers = parser.add_subparsers(dest='mode', metavar='<mrs|mr|comment>')

    mrs = subparsers.add_parser('mrs', help='List recent merged MRs')
    mrs.add_argument('project', help='Project id or path')
    mrs.add_argument('--per-page', type=int, default=DEFAULT_PER_PAGE)

    mr = subparsers.add_parser('mr', help='Get a single MR')
    mr.add_argument('project', help='Project id or path')
    mr.add_argument('iid', help='MR iid')

    comment = subparsers.add_parser('comment', help='Add a note to an MR')
    comment.add_argument('project', help='Project id or path')
    comment.add_argument('iid', help='MR iid')
    comment.add_argument('text', nargs='+', help='Comment text')

    return parser


def run(args: argparse.Namespace, config: MetricsConfig, session: Optional[requests.Session] = None) -> Dict:
    if not args.mode:
        raise UsageError('Usage: gitlab_fetch.py <mrs|mr|comment> <args...>')

    client = GitLabClient(config, session=session)
    if args.mode == 'mrs':
        return client.merged_mrs(args.project, args.per_page)
    if args.mode == 'mr':
        return client.get_mr(args.project, args.iid)
    if args.mode == 'comment':
        body = ' '.join(args.text).strip()
        if not body:
            raise UsageError('Usage: gitlab_fetch.py comment <project-id-or-path> <mr-iid> "comment text"')
        return client.add_comment(args.project, args.iid, body)

    raise UsageError(f"Unknown mode: {args.mode}")


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = build_parser().parse_args(argv)
        setup_logging(args.verbose)
        result = run(args, load_config(args.env_file))
        print(json.dumps(result, indent=2))
    except requests.exceptions.RequestException as e:
        print(f"Error connecting to GitLab: {e}", file=sys.stderr)
        return 1
    except MetricsError as e:
        print(str(e), file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

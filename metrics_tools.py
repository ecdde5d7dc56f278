"""
Engineering metrics tools for the chat assistant.

Every tool takes the shared MetricsConfig plus its own keyword arguments and
returns Markdown text. Failures (missing credentials, API errors, network
errors) come back as a readable sentence instead of an exception so the
model can relay them.
"""

import inspect
import logging
from typing import Callable, Dict, List, Optional

import requests

from csv_export import build_report
from cycle_time import calc_cycle_time_hours, format_hours, jira_cycle_time_hours, summarize_hours
from github_fetch import GitHubClient
from gitlab_fetch import GitLabClient
from jira_fetch import JiraClient
from metrics_config import MetricsConfig
from metrics_errors import ConfigError, MetricsError
from normalizers import ReportFormat

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


def pr_stats(config: MetricsConfig, owner: str, repo: str, session: Optional[requests.Session] = None) -> str:
    """Open-to-merge cycle time of a GitHub repository's recent pull requests."""
    try:
        prs = GitHubClient(config, session=session).closed_prs(owner, repo)
    except (MetricsError, requests.exceptions.RequestException) as e:
        return f"Error fetching PR stats: {e}"

    merged = [pr for pr in prs if pr.get('merged_at')]
    timed = []
    for pr in merged:
        hours = calc_cycle_time_hours(pr.get('created_at'), pr.get('merged_at'))
        if hours is not None:
            timed.append((pr, hours))
    summary = summarize_hours(hours for _, hours in timed)

    lines = [
        f"## PR Statistics for {owner}/{repo}",
        '',
        f"- **Total PRs fetched (recent closed):** {len(prs)}",
        f"- **Merged PRs:** {len(merged)}",
        f"- **Average cycle time (open → merge):** {summary.average:.1f} hours",
        '',
        '### Recent Merged PRs',
    ]
    for pr, hours in timed[:RECENT_LIMIT]:
        lines.append(f"- #{pr['number']} \"{pr['title']}\" by @{pr['author']}: {hours:.1f}h cycle time")

    return '\n'.join(lines)


def merge_request_stats(config: MetricsConfig, project: str, session: Optional[requests.Session] = None) -> str:
    """Open-to-merge cycle time of a GitLab project's recent merged MRs."""
    try:
        mrs = GitLabClient(config, session=session).merged_mrs(project)['merge_requests']
    except (MetricsError, requests.exceptions.RequestException) as e:
        return f"Error fetching MR stats: {e}"

    timed = []
    for mr in mrs:
        hours = calc_cycle_time_hours(mr.get('created_at'), mr.get('merged_at'))
        if hours is not None:
            timed.append((mr, hours))
    summary = summarize_hours(hours for _, hours in timed)

    lines = [
        f"## MR Statistics for {project}",
        '',
        f"- **Merged MRs fetched:** {len(mrs)}",
        f"- **Average cycle time (open → merge):** {summary.average:.1f} hours",
        f"- **Min cycle time:** {format_hours(summary.minimum)}",
        f"- **Max cycle time:** {format_hours(summary.maximum)}",
        '',
        '### Recent Merged MRs',
    ]
    for mr, hours in timed[:RECENT_LIMIT]:
        lines.append(f"- !{mr['iid']} \"{mr['title']}\" by @{mr['author']}: {hours:.1f}h cycle time")

    return '\n'.join(lines)


def merge_request_comment(config: MetricsConfig, project: str, mr_iid: int, body: str,
                          session: Optional[requests.Session] = None) -> str:
    """Post a note on a GitLab merge request."""
    if not str(body).strip():
        return 'Comment body is empty; nothing was posted.'

    try:
        note = GitLabClient(config, session=session).add_comment(project, mr_iid, str(body))
    except (MetricsError, requests.exceptions.RequestException) as e:
        return f"Error adding MR comment: {e}"

    return f"Comment {note['id']} added to !{mr_iid} in {project}."


def _resolve_sprint(client: JiraClient, board_id: int, sprint_id: Optional[int],
                    squad: Optional[str] = None):
    """Returns (sprint_id, sprint_name), or (None, None) when no active sprint matches."""
    if sprint_id:
        return sprint_id, f"Sprint {sprint_id}"

    sprints = client.active_sprints(board_id)
    if squad:
        sprints = [s for s in sprints if squad.lower() in (s.get('name') or '').lower()]
    if not sprints:
        return None, None

    sprint = sprints[0]
    return sprint['id'], sprint.get('name') or f"Sprint {sprint['id']}"


def _no_sprint_message(board_id: int, squad: Optional[str]) -> str:
    if squad:
        return f"No active sprint matching squad '{squad}' found for board {board_id}."
    return f"No active sprint found for board {board_id}. Try providing a specific sprintId."


def sprint_cycle_time(config: MetricsConfig, board_id: int, sprint_id: Optional[int] = None,
                      session: Optional[requests.Session] = None) -> str:
    """
    Cycle time of the resolved issues in a sprint.

    Without a sprint id the board's active sprint is used. Issues whose
    cycle time cannot be computed are left out of the statistics.
    """
    try:
        client = JiraClient(config, session=session)
    except ConfigError as e:
        return str(e)

    try:
        resolved_id, sprint_name = _resolve_sprint(client, board_id, sprint_id)
        if resolved_id is None:
            return _no_sprint_message(board_id, None)
        issues = client.sprint_issues(board_id, resolved_id)
    except (MetricsError, requests.exceptions.RequestException) as e:
        return f"Error fetching Jira sprint data: {e}"

    resolved = [issue for issue in issues if issue.get('resolutiondate')]
    timed = []
    for issue in resolved:
        hours = jira_cycle_time_hours(issue, rounded=False)
        if hours is not None:
            timed.append((issue, hours))
    timed.sort(key=lambda pair: pair[1], reverse=True)
    summary = summarize_hours(hours for _, hours in timed)

    lines = [
        f"## Sprint Cycle Time: {sprint_name}",
        '',
        f"- **Total issues in sprint:** {len(issues)}",
        f"- **Resolved issues:** {len(resolved)}",
        f"- **Average cycle time:** {format_hours(summary.average)}",
        f"- **Min cycle time:** {format_hours(summary.minimum)}",
        f"- **Max cycle time:** {format_hours(summary.maximum)}",
        '',
        '### Resolved Issues',
    ]
    for issue, hours in timed:
        lines.append(f"- {issue['key']} \"{issue['summary']}\" ({issue['assignee']}): {format_hours(hours)}")

    return '\n'.join(lines)


def sprint_csv(config: MetricsConfig, board_id: int, sprint_id: Optional[int] = None,
               squad: Optional[str] = None, session: Optional[requests.Session] = None) -> str:
    """
    A sprint's issues as jira-sprint CSV, ready to paste into a spreadsheet.

    squad narrows the board's active sprints to those whose name contains
    it (case-insensitive).
    """
    try:
        client = JiraClient(config, session=session)
    except ConfigError as e:
        return str(e)

    try:
        resolved_id, sprint_name = _resolve_sprint(client, board_id, sprint_id, squad)
        if resolved_id is None:
            return _no_sprint_message(board_id, squad)
        issues = client.sprint_issues(board_id, resolved_id)
    except (MetricsError, requests.exceptions.RequestException) as e:
        return f"Error exporting Jira sprint data: {e}"

    csv_text = build_report(ReportFormat.JIRA_SPRINT, {'issues': issues})
    return f"### {sprint_name} ({len(issues)} issues)\n\n```csv\n{csv_text}\n```"


TOOL_IMPLS: Dict[str, Callable[..., str]] = {
    'get_pr_stats': pr_stats,
    'get_mr_stats': merge_request_stats,
    'add_mr_comment': merge_request_comment,
    'get_sprint_cycle_time': sprint_cycle_time,
    'export_sprint_csv': sprint_csv,
}

TOOL_SCHEMAS: List[Dict] = [
    {
        'type': 'function',
        'function': {
            'name': 'get_pr_stats',
            'description': 'Pull request cycle time (open to merge) for a GitHub repository.',
            'parameters': {
                'type': 'object',
                'properties': {
                    'owner': {'type': 'string', 'description': 'Repository owner or organization'},
                    'repo': {'type': 'string', 'description': 'Repository name'},
                },
                'required': ['owner', 'repo'],
            },
        },
    },
    {
        'type': 'function',
        'function': {
            'name': 'get_mr_stats',
            'description': 'Merge request cycle time (open to merge) for a GitLab project.',
            'parameters': {
                'type': 'object',
                'properties': {
                    'project': {'type': 'string', 'description': 'Project id or path, e.g. group/project'},
                },
                'required': ['project'],
            },
        },
    },
    {
        'type': 'function',
        'function': {
            'name': 'add_mr_comment',
            'description': 'Post a comment on a GitLab merge request.',
            'parameters': {
                'type': 'object',
                'properties': {
                    'project': {'type': 'string', 'description': 'Project id or path, e.g. group/project'},
                    'mr_iid': {'type': 'integer', 'description': 'Merge request IID within the project'},
                    'body': {'type': 'string', 'description': 'Comment text (Markdown)'},
                },
                'required': ['project', 'mr_iid', 'body'],
            },
        },
    },
    {
        'type': 'function',
        'function': {
            'name': 'get_sprint_cycle_time',
            'description': 'Cycle time (In Progress to Done) of resolved issues in a Jira sprint.',
            'parameters': {
                'type': 'object',
                'properties': {
                    'board_id': {'type': 'integer', 'description': 'Jira board id'},
                    'sprint_id': {'type': 'integer', 'description': 'Sprint id; omit for the active sprint'},
                },
                'required': ['board_id'],
            },
        },
    },
    {
        'type': 'function',
        'function': {
            'name': 'export_sprint_csv',
            'description': 'Export a Jira sprint as CSV, optionally picking the active sprint of one squad.',
            'parameters': {
                'type': 'object',
                'properties': {
                    'board_id': {'type': 'integer', 'description': 'Jira board id'},
                    'sprint_id': {'type': 'integer', 'description': 'Sprint id; omit for the active sprint'},
                    'squad': {'type': 'string', 'description': 'Squad name matched against sprint names'},
                },
                'required': ['board_id'],
            },
        },
    },
]


def invoke_tool(name: str, arguments: Dict, config: MetricsConfig) -> str:
    """Run one tool by name; unknown tools, bad arguments and failures are reported as text."""
    impl = TOOL_IMPLS.get(name)
    if impl is None:
        return f"Unknown tool: {name}"

    arguments = {key: value for key, value in (arguments or {}).items() if key != 'session'}
    try:
        inspect.signature(impl).bind(config, **arguments)
    except TypeError as e:
        return f"Invalid arguments for {name}: {e}"

    logger.info("Invoking tool: %s %s", name, arguments)
    try:
        return impl(config, **arguments)
    except Exception as e:
        logger.exception("Tool %s failed", name)
        return f"Error running {name}: {e}"

"""
Record normalization for Jira issues, GitLab merge requests and GitHub pull
requests, plus the report formats the CSV exporter understands.

The format_* functions flatten a raw REST payload into the record shape the
fetch helpers print. ReportFormat turns those flat records into CSV rows;
each format's header and row cells come from the same ordered column list.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from cycle_time import calc_cycle_time_hours, jira_cycle_time_hours
from metrics_errors import InputError, UsageError


def _nested(value: Any, key: str) -> Optional[Any]:
    """value[key] when value is an object, the value itself when already flat."""
    if isinstance(value, dict):
        return value.get(key)
    return value


def format_issue(issue: Dict) -> Dict:
    """Flatten a Jira REST issue."""
    fields = issue.get('fields') or {}
    return {
        'key': issue.get('key'),
        'summary': fields.get('summary'),
        'status': _nested(fields.get('status'), 'name'),
        'assignee': _nested(fields.get('assignee'), 'displayName') or 'Unassigned',
        'created': fields.get('created'),
        'resolutiondate': fields.get('resolutiondate'),
        'statuscategorychangedate': fields.get('statuscategorychangedate'),
    }


def format_mr(mr: Dict) -> Dict:
    """Flatten a GitLab merge request."""
    return {
        'iid': mr.get('iid'),
        'title': mr.get('title'),
        'state': mr.get('state'),
        'author': _nested(mr.get('author'), 'username') or 'unknown',
        'created_at': mr.get('created_at'),
        'merged_at': mr.get('merged_at'),
        'web_url': mr.get('web_url'),
    }


def format_pr(pr: Dict) -> Dict:
    """Flatten a GitHub pull request."""
    return {
        'number': pr.get('number'),
        'title': pr.get('title'),
        'author': _nested(pr.get('user'), 'login') or 'unknown',
        'state': pr.get('state'),
        'created_at': pr.get('created_at'),
        'merged_at': pr.get('merged_at'),
        'closed_at': pr.get('closed_at'),
        'html_url': pr.get('html_url'),
    }


def _as_flat_issue(record: Dict) -> Dict:
    # Raw API issues carry their data under "fields"
    return format_issue(record) if 'fields' in record else record


@dataclass(frozen=True)
class Column:
    header: str
    value: Callable[[Dict], Any]


JIRA_SPRINT_COLUMNS: Tuple[Column, ...] = (
    Column('Issue Key', lambda issue: issue.get('key')),
    Column('Summary', lambda issue: issue.get('summary')),
    Column('Status', lambda issue: _nested(issue.get('status'), 'name')),
    Column('Assignee', lambda issue: _nested(issue.get('assignee'), 'displayName')),
    Column('Created', lambda issue: issue.get('created')),
    Column('Resolution Date', lambda issue: issue.get('resolutiondate') or ''),
    Column('Cycle Time (hours)', jira_cycle_time_hours),
)

GITLAB_MRS_COLUMNS: Tuple[Column, ...] = (
    Column('MR IID', lambda mr: mr.get('iid')),
    Column('Title', lambda mr: mr.get('title')),
    Column('Author', lambda mr: _nested(mr.get('author'), 'username')),
    Column('State', lambda mr: mr.get('state')),
    Column('Created', lambda mr: mr.get('created_at')),
    Column('Merged', lambda mr: mr.get('merged_at') or ''),
    Column('Cycle Time (hours)', lambda mr: calc_cycle_time_hours(mr.get('created_at'), mr.get('merged_at'))),
    Column('URL', lambda mr: mr.get('web_url') or ''),
)


class ReportFormat(Enum):
    JIRA_SPRINT = 'jira-sprint'
    GITLAB_MRS = 'gitlab-mrs'

    @classmethod
    def names(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def from_name(cls, name: Optional[str]) -> 'ReportFormat':
        """Look up a format by its command-line name."""
        for member in cls:
            if member.value == name:
                return member
        valid = ', '.join(cls.names())
        raise UsageError(f"Unknown format '{name}'. Valid formats: {valid}")

    @property
    def columns(self) -> Tuple[Column, ...]:
        if self is ReportFormat.JIRA_SPRINT:
            return JIRA_SPRINT_COLUMNS
        return GITLAB_MRS_COLUMNS

    @property
    def records_key(self) -> str:
        if self is ReportFormat.JIRA_SPRINT:
            return 'issues'
        return 'merge_requests'

    @property
    def identity_key(self) -> str:
        if self is ReportFormat.JIRA_SPRINT:
            return 'key'
        return 'iid'

    @property
    def headers(self) -> List[str]:
        return [column.header for column in self.columns]

    def records(self, data: Any) -> List[Dict]:
        """
        Pull the records out of a fetch helper's JSON output.

        Accepts the {total, issues|merge_requests} envelope, a bare list, or
        a single record as printed by `issue` / `mr`.
        """
        if isinstance(data, list):
            records = data
        elif isinstance(data, dict):
            if self.records_key in data:
                records = data[self.records_key] or []
            elif self.identity_key in data:
                records = [data]
            else:
                records = []
        else:
            raise InputError(f"Expected a JSON object or array, got {type(data).__name__}")

        records = [record for record in records if isinstance(record, dict)]
        if self is ReportFormat.JIRA_SPRINT:
            records = [_as_flat_issue(record) for record in records]
        return records

    def row(self, record: Dict) -> List[Any]:
        return [column.value(record) for column in self.columns]

    def rows(self, data: Any) -> List[List[Any]]:
        return [self.row(record) for record in self.records(data)]

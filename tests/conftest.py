import json
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from metrics_config import MetricsConfig  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        return self._payload


class FakeSession:
    """Stands in for requests.Session: routes (METHOD, path suffix) to canned responses."""

    def __init__(self, routes=None):
        self.headers = {}
        self.routes = routes or {}
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        for (route_method, suffix), response in self.routes.items():
            if route_method == method and url.endswith(suffix):
                return response
        return FakeResponse(404, text=f'no route for {method} {url}')


@pytest.fixture
def config():
    return MetricsConfig(
        jira_base_url='https://jira.example.com',
        jira_bearer_token='jira-token',
        gitlab_base_url='https://gitlab.example.com',
        gitlab_token='gitlab-token',
        github_token='github-token',
        openai_api_key='sk-test',
    )


@pytest.fixture
def raw_jira_issue():
    return {
        'key': 'AB-1',
        'fields': {
            'summary': 'Fix bug',
            'status': {'name': 'Done'},
            'assignee': {'displayName': 'Jane Doe'},
            'created': '2024-01-01T00:00:00.000+0000',
            'resolutiondate': '2024-01-03T00:00:00.000+0000',
            'statuscategorychangedate': '2024-01-02T00:00:00.000+0000',
        },
    }


@pytest.fixture
def raw_gitlab_mr():
    return {
        'iid': 42,
        'title': 'Add login, logout',
        'state': 'merged',
        'author': {'username': 'jdoe'},
        'created_at': '2024-03-01T09:00:00.000Z',
        'merged_at': '2024-03-01T10:00:00.000Z',
        'web_url': 'https://gitlab.example.com/acme/api/-/merge_requests/42',
    }

from conftest import FakeResponse, FakeSession
from metrics_config import MetricsConfig
from metrics_tools import (
    TOOL_IMPLS,
    TOOL_SCHEMAS,
    invoke_tool,
    merge_request_comment,
    merge_request_stats,
    pr_stats,
    sprint_csv,
    sprint_cycle_time,
)


def _issue(key, summary, created, resolved=None, started=None, assignee='Jane Doe'):
    return {
        'key': key,
        'fields': {
            'summary': summary,
            'status': {'name': 'Done' if resolved else 'In Progress'},
            'assignee': {'displayName': assignee} if assignee else None,
            'created': created,
            'resolutiondate': resolved,
            'statuscategorychangedate': started,
        },
    }


def _sprint_session(sprints, issues, sprint_id=55):
    return FakeSession({
        ('GET', '/rest/agile/1.0/board/7/sprint'): FakeResponse(payload={'values': sprints}),
        ('GET', f'/rest/agile/1.0/board/7/sprint/{sprint_id}/issue'): FakeResponse(payload={'issues': issues}),
    })


SPRINT_ISSUES = [
    _issue('AB-1', 'Quick fix', '2024-01-01T00:00:00Z', resolved='2024-01-01T05:00:00Z'),
    _issue('AB-2', 'Big feature', '2024-01-01T00:00:00Z', resolved='2024-01-04T00:00:00Z',
           started='2024-01-02T00:00:00Z', assignee=None),
    _issue('AB-3', 'Still going', '2024-01-01T00:00:00Z'),
    # resolved before work "started": not computable, left out
    _issue('AB-4', 'Backdated', '2024-01-01T00:00:00Z', resolved='2024-01-01T00:00:00Z'),
]


def test_sprint_cycle_time_active_sprint(config):
    session = _sprint_session([{'id': 55, 'name': 'Core Sprint 12'}], SPRINT_ISSUES)

    text = sprint_cycle_time(config, board_id=7, session=session)

    assert '## Sprint Cycle Time: Core Sprint 12' in text
    assert '**Total issues in sprint:** 4' in text
    assert '**Resolved issues:** 3' in text
    assert '**Min cycle time:** 5.0h' in text
    assert '**Max cycle time:** 2.0d' in text
    assert '**Average cycle time:** 1.1d' in text
    # longest first
    assert text.index('AB-2') < text.index('AB-1')
    assert '(Unassigned)' in text
    assert 'AB-4' not in text


def test_sprint_cycle_time_explicit_sprint(config):
    session = FakeSession({
        ('GET', '/rest/agile/1.0/board/7/sprint/99/issue'): FakeResponse(payload={'issues': []}),
    })

    text = sprint_cycle_time(config, board_id=7, sprint_id=99, session=session)

    assert 'Sprint 99' in text
    assert '**Average cycle time:** 0.0h' in text
    assert len(session.calls) == 1


def test_sprint_cycle_time_no_active_sprint(config):
    session = _sprint_session([], [])
    text = sprint_cycle_time(config, board_id=7, session=session)
    assert text.startswith('No active sprint found for board 7')


def test_sprint_cycle_time_missing_config():
    assert sprint_cycle_time(MetricsConfig(), board_id=7).startswith('Missing JIRA_BASE_URL')


def test_sprint_cycle_time_api_error(config):
    session = FakeSession({('GET', '/rest/agile/1.0/board/7/sprint'): FakeResponse(403, text='Forbidden')})
    text = sprint_cycle_time(config, board_id=7, session=session)
    assert text == 'Error fetching Jira sprint data: Jira API error 403: Forbidden'


def test_sprint_csv_filters_by_squad(config):
    sprints = [{'id': 54, 'name': 'Payments Sprint 3'}, {'id': 55, 'name': 'Core Sprint 12'}]
    session = _sprint_session(sprints, SPRINT_ISSUES[:1])

    text = sprint_csv(config, board_id=7, squad='core', session=session)

    assert text.startswith('### Core Sprint 12 (1 issues)')
    assert 'Issue Key,Summary,Status,Assignee,Created,Resolution Date,Cycle Time (hours)' in text
    assert 'AB-1,Quick fix,Done,Jane Doe,2024-01-01T00:00:00Z,2024-01-01T05:00:00Z,5.0' in text


def test_sprint_csv_unknown_squad(config):
    session = _sprint_session([{'id': 55, 'name': 'Core Sprint 12'}], [])
    assert "matching squad 'mobile'" in sprint_csv(config, board_id=7, squad='mobile', session=session)


def test_pr_stats(config):
    session = FakeSession({('GET', '/repos/acme/api/pulls'): FakeResponse(payload=[
        {'number': 1, 'title': 'Fast', 'user': {'login': 'a'}, 'state': 'closed',
         'created_at': '2024-01-01T00:00:00Z', 'merged_at': '2024-01-01T02:00:00Z'},
        {'number': 2, 'title': 'Slow', 'user': {'login': 'b'}, 'state': 'closed',
         'created_at': '2024-01-01T00:00:00Z', 'merged_at': '2024-01-01T06:00:00Z'},
        {'number': 3, 'title': 'Abandoned', 'user': {'login': 'c'}, 'state': 'closed',
         'created_at': '2024-01-01T00:00:00Z', 'merged_at': None},
    ])})

    text = pr_stats(config, 'acme', 'api', session=session)

    assert '**Total PRs fetched (recent closed):** 3' in text
    assert '**Merged PRs:** 2' in text
    assert '**Average cycle time (open → merge):** 4.0 hours' in text
    assert '- #1 "Fast" by @a: 2.0h cycle time' in text
    assert 'Abandoned' not in text


def test_pr_stats_error(config):
    session = FakeSession({('GET', '/pulls'): FakeResponse(500, text='boom')})
    assert pr_stats(config, 'acme', 'api', session=session) == 'Error fetching PR stats: GitHub API error 500: boom'


def test_merge_request_stats(config, raw_gitlab_mr):
    session = FakeSession({('GET', '/merge_requests'): FakeResponse(payload=[raw_gitlab_mr])})

    text = merge_request_stats(config, 'acme/api', session=session)

    assert '**Merged MRs fetched:** 1' in text
    assert '!42 "Add login, logout" by @jdoe: 1.0h cycle time' in text


def test_registry_matches_schemas():
    assert sorted(TOOL_IMPLS) == sorted(schema['function']['name'] for schema in TOOL_SCHEMAS)


def test_invoke_unknown_tool(config):
    assert invoke_tool('get_weather', {}, config) == 'Unknown tool: get_weather'


def test_invoke_bad_arguments(config):
    assert invoke_tool('get_pr_stats', {'owner': 'acme'}, config).startswith('Invalid arguments for get_pr_stats')


def test_invoke_tool_runs_implementation(config, monkeypatch):
    monkeypatch.setitem(TOOL_IMPLS, 'get_pr_stats', lambda cfg, owner, repo: f'{owner}/{repo}')
    assert invoke_tool('get_pr_stats', {'owner': 'acme', 'repo': 'api'}, config) == 'acme/api'


def test_pr_stats_numeric_owner(config):
    session = FakeSession({('GET', '/repos/123/api/pulls'): FakeResponse(payload=[])})

    text = pr_stats(config, 123, 'api', session=session)

    assert text.startswith('## PR Statistics for 123/api')
    assert session.calls[0]['url'].endswith('/repos/123/api/pulls')


def test_invoke_tool_numeric_owner_returns_text(config, monkeypatch):
    session = FakeSession({('GET', '/repos/123/api/pulls'): FakeResponse(payload=[])})
    monkeypatch.setattr('rest_client.requests.Session', lambda: session)

    text = invoke_tool('get_pr_stats', {'owner': 123, 'repo': 'api'}, config)

    assert text.startswith('## PR Statistics for 123/api')


def test_invoke_tool_reports_unexpected_failure(config, monkeypatch):
    def broken(cfg, owner, repo):
        raise RuntimeError('boom')

    monkeypatch.setitem(TOOL_IMPLS, 'get_pr_stats', broken)

    assert invoke_tool('get_pr_stats', {'owner': 'acme', 'repo': 'api'}, config) == 'Error running get_pr_stats: boom'


def test_merge_request_comment(config):
    session = FakeSession({
        ('POST', '/merge_requests/4/notes'): FakeResponse(
            201, payload={'id': 9, 'body': 'Nice work', 'created_at': '2024-03-02T00:00:00Z'}),
    })

    text = merge_request_comment(config, 'acme/api', 4, 'Nice work', session=session)

    assert text == 'Comment 9 added to !4 in acme/api.'
    assert session.calls[0]['json'] == {'body': 'Nice work'}


def test_merge_request_comment_empty_body(config):
    session = FakeSession()
    assert merge_request_comment(config, 'acme/api', 4, '  ', session=session).startswith('Comment body is empty')
    assert session.calls == []


def test_merge_request_comment_error(config):
    session = FakeSession({('POST', '/notes'): FakeResponse(403, text='Forbidden')})
    text = merge_request_comment(config, 'acme/api', 4, 'Nice work', session=session)
    assert text == 'Error adding MR comment: GitLab API error 403: Forbidden'


def test_sprint_statistics_use_unrounded_hours(config):
    # 1.05h and 1.04h: rounding each first would average 1.1h
    issues = [
        _issue('AB-1', 'Slightly long', '2024-01-01T00:00:00Z', resolved='2024-01-01T01:03:00Z'),
        _issue('AB-2', 'Slightly short', '2024-01-01T00:00:00Z', resolved='2024-01-01T01:02:24Z'),
    ]
    session = _sprint_session([{'id': 55, 'name': 'Core Sprint 12'}], issues)

    text = sprint_cycle_time(config, board_id=7, session=session)

    assert '**Average cycle time:** 1.0h' in text
    assert '**Min cycle time:** 1.0h' in text
    assert '**Max cycle time:** 1.1h' in text
    assert '- AB-1 "Slightly long" (Jane Doe): 1.1h' in text

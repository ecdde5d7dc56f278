import pytest

from metrics_config import MetricsConfig, load_config, load_env_file
from metrics_errors import ConfigError


def test_load_env_file(tmp_path):
    env = tmp_path / '.env'
    env.write_text(
        '# Jira\n'
        'JIRA_BASE_URL=https://jira.example.com/\n'
        '\n'
        'JIRA_BEARER_TOKEN="quoted token"\n'
        "GITLAB_TOKEN='single'\n"
        'NOT A PAIR\n'
        'OPENAI_MODEL = gpt-test \n',
        encoding='utf-8',
    )

    assert load_env_file(str(env)) == {
        'JIRA_BASE_URL': 'https://jira.example.com/',
        'JIRA_BEARER_TOKEN': 'quoted token',
        'GITLAB_TOKEN': 'single',
        'OPENAI_MODEL': 'gpt-test',
    }


def test_load_env_file_missing(tmp_path):
    assert load_env_file(str(tmp_path / 'absent.env')) == {}


def test_environment_wins_over_file(tmp_path):
    env = tmp_path / '.env'
    env.write_text('GITLAB_TOKEN=from-file\nGITLAB_BASE_URL=https://gitlab.example.com/\n', encoding='utf-8')

    config = load_config(str(env), environ={'GITLAB_TOKEN': 'from-env', 'JIRA_BASE_URL': ''})

    assert config.gitlab_token == 'from-env'
    assert config.gitlab_base_url == 'https://gitlab.example.com'
    assert config.jira_base_url is None


def test_defaults(tmp_path):
    config = load_config(str(tmp_path / 'absent.env'), environ={})
    assert config.github_api_url == 'https://api.github.com'
    assert config.openai_model == 'gpt-4o-mini'


def test_require_names_missing_variable():
    with pytest.raises(ConfigError) as excinfo:
        MetricsConfig().require('jira_bearer_token')
    assert excinfo.value.variable == 'JIRA_BEARER_TOKEN'
    assert 'Missing JIRA_BEARER_TOKEN' in str(excinfo.value)


def test_require_returns_value():
    assert MetricsConfig(gitlab_token='abc').require('gitlab_token') == 'abc'

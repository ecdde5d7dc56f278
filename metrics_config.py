"""
Configuration for the eng-metrics helpers.

Values come from the process environment, optionally filled in from a local
.env file (see .env.example). The resulting MetricsConfig is built once at
start-up and handed to every client that needs credentials.
"""

import os
from dataclasses import dataclass, fields
from typing import Dict, Mapping, Optional

from metrics_errors import ConfigError


DEFAULT_GITHUB_API_URL = 'https://api.github.com'
DEFAULT_OPENAI_MODEL = 'gpt-4o-mini'

# MetricsConfig field -> environment variable
ENV_VARS = {
    'jira_base_url': 'JIRA_BASE_URL',
    'jira_bearer_token': 'JIRA_BEARER_TOKEN',
    'gitlab_base_url': 'GITLAB_BASE_URL',
    'gitlab_token': 'GITLAB_TOKEN',
    'github_token': 'GITHUB_TOKEN',
    'github_api_url': 'GITHUB_API_URL',
    'openai_api_key': 'OPENAI_API_KEY',
    'openai_base_url': 'OPENAI_BASE_URL',
    'openai_model': 'OPENAI_MODEL',
}


@dataclass(frozen=True)
class MetricsConfig:
    jira_base_url: Optional[str] = None
    jira_bearer_token: Optional[str] = None
    gitlab_base_url: Optional[str] = None
    gitlab_token: Optional[str] = None
    github_token: Optional[str] = None
    github_api_url: str = DEFAULT_GITHUB_API_URL
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL

    def require(self, name: str) -> str:
        """Return a setting or raise ConfigError naming its variable."""
        value = getattr(self, name)
        if not value:
            raise ConfigError(ENV_VARS[name])
        return value


def load_env_file(env_path: str = '.env') -> Dict[str, str]:
    """Load KEY=VALUE pairs from a .env file."""
    env_vars = {}

    if not os.path.exists(env_path):
        return env_vars

    with open(env_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                value = value.strip()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                    value = value[1:-1]
                env_vars[key.strip()] = value

    return env_vars


def load_config(env_path: str = '.env', environ: Optional[Mapping[str, str]] = None) -> MetricsConfig:
    """
    Build the configuration from the environment.

    The .env file only supplies variables the environment leaves unset or
    empty. Base URLs lose their trailing slash.
    """
    environ = os.environ if environ is None else environ
    file_vars = load_env_file(env_path)

    values = {}
    for field in fields(MetricsConfig):
        variable = ENV_VARS[field.name]
        value = (environ.get(variable) or file_vars.get(variable) or '').strip()
        if not value:
            continue
        if field.name.endswith('_url'):
            value = value.rstrip('/')
        values[field.name] = value

    return MetricsConfig(**values)

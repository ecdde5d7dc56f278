"""Thin requests wrapper shared by the Jira, GitLab and GitHub helpers."""

import logging
from typing import Any, Dict, Optional

import requests

from metrics_errors import ApiError

logger = logging.getLogger(__name__)


class RestClient:
    """
    One requests.Session bound to an API base URL.

    Requests are issued one at a time with no retries; any non-2xx
    response raises ApiError carrying the status code and response body.
    """

    service = 'REST'

    def __init__(self, base_url: str, headers: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.session.headers.update(headers or {})

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s %s", self.service, method, url)

        response = self.session.request(method, url, **kwargs)
        if not response.ok:
            raise ApiError(self.service, response.status_code, response.text)
        return response.json()

    def get(self, path: str, params: Optional[Dict] = None) -> Any:
        return self._request('GET', path, params=params)

    def post(self, path: str, payload: Dict) -> Any:
        return self._request('POST', path, json=payload)

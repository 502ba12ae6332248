# tracker.py
from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"


class TrackerError(Exception):
    """Raised when the issue search request fails."""
    pass


class IssueItem(BaseModel):
    html_url: str
    title: str = ""
    state: str = "open"


class IssueSearchResponse(BaseModel):
    total_count: int = 0
    items: List[IssueItem] = Field(default_factory=list)


class IssueTracker:
    """
    Looks up open GitHub issues that mention a project and version.

    `find_open_issue()` never raises: any lookup failure means "no known
    issue", so a real failure is never hidden by a flaky network.
    """

    def __init__(self, repo: str, *, base_url: str = GITHUB_API, timeout: float = 10.0, token: Optional[str] = None):
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token

    def _search_url(self, name: str, version: str) -> str:
        query = f"repo:{self.repo} is:issue is:open {name} {version}"
        params = urllib.parse.urlencode({"q": query, "per_page": 1})
        return f"{self.base_url}/search/issues?{params}"

    def search(self, name: str, version: str) -> IssueSearchResponse:
        """
        Run the search query.

        Raises:
            TrackerError: on HTTP, network or decoding failures
        """
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        req = urllib.request.Request(self._search_url(name, version), headers=headers, method="GET")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            raise TrackerError(f"Issue search failed: {e.code} {e.reason}")
        except urllib.error.URLError as e:
            raise TrackerError(f"Network error: {e.reason}")
        except OSError as e:
            raise TrackerError(f"Network error: {e}")

        try:
            return IssueSearchResponse.model_validate(json.loads(body))
        except (json.JSONDecodeError, ValidationError) as e:
            raise TrackerError(f"Invalid search response: {e}")

    def find_open_issue(self, name: str, version: str) -> Optional[str]:
        """URL of an open issue for (name, version), or None."""
        try:
            result = self.search(name, version)
        except TrackerError as e:
            logger.warning("issue lookup for %s %s failed: %s", name, version, e)
            return None
        if result.total_count > 0 and result.items:
            return result.items[0].html_url
        return None

"""
HTTP client for the blockboard API, as used by the dashboard frontend.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlencode

import requests


class BlockboardClient:
    def __init__(
        self,
        api_url: str,
        token: str | None = None,
        session: requests.Session | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.session.request(
            method, f"{self.api_url}{path}", json=json, headers=headers
        )
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def list_dashboards(self) -> list[dict]:
        return self._request("GET", "/dashboards")

    def create_dashboard(self, name: Optional[str] = None) -> dict:
        payload = {"name": name} if name is not None else {}
        return self._request("POST", "/dashboards", json=payload)

    def rename_dashboard(self, dashboard_id: int, name: str) -> dict:
        return self._request("PUT", f"/dashboards/{dashboard_id}", json={"name": name})

    def delete_dashboard(self, dashboard_id: int) -> None:
        self._request("DELETE", f"/dashboards/{dashboard_id}")

    def get_dashboard(self, dashboard_id: int) -> dict:
        """Public read: the dashboard with its blocks."""
        return self._request("GET", f"/dashboards/{dashboard_id}")

    def add_block(self, dashboard_id: int, block_type: str, settings: dict) -> dict:
        return self._request(
            "POST",
            f"/dashboards/{dashboard_id}/blocks",
            json={"type": block_type, "settings": settings},
        )

    def delete_block(self, block_id: int) -> None:
        self._request("DELETE", f"/blocks/{block_id}")

    def list_accesses(self) -> list[dict]:
        return self._request("GET", "/accesses")

    def github_login_url(self) -> str:
        """Where to send the browser to connect a GitHub account."""
        return f"{self.api_url}/auth/github?{urlencode({'state': self.token or ''})}"

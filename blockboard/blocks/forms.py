"""
Setup renderer shared by every block type: pick a GitHub repository.
"""

from __future__ import annotations

from blockboard.blocks.fetchers import GitHubFetcher


class SearchRepoForm:
    def __init__(self, github: GitHubFetcher | None = None):
        self.github = github or GitHubFetcher()

    def search(self, query: str, limit: int = 10) -> list[dict]:
        """Repositories matching ``query``, reduced to what the form lists."""
        query = query.strip()
        if not query:
            return []
        return [
            {
                "full_name": item["full_name"],
                "description": item.get("description"),
                "stargazers_count": item.get("stargazers_count", 0),
            }
            for item in self.github.search_repositories(query, limit=limit)
        ]

    @staticmethod
    def settings_for(repository: dict) -> dict:
        return {"repository": {"full_name": repository["full_name"]}}

    def submit(self, block_type: str, repository: dict) -> dict:
        """Payload for ``POST /dashboards/{id}/blocks``."""
        return {"type": block_type, "settings": self.settings_for(repository)}

"""
Display renderers for the dashboard blocks.

A renderer turns a block's stored settings into a ``MetricView``: a
title, a value and its unit. In preview mode (the "add block" flow) the
value is a fixed placeholder and nothing is fetched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from blockboard.blocks.fetchers import GitHubFetcher, NpmFetcher, load

PREVIEW_VALUE = 1234


@dataclass
class BlockContext:
    """Fetchers available to renderers."""

    github: GitHubFetcher = field(default_factory=GitHubFetcher)
    npm: NpmFetcher = field(default_factory=NpmFetcher)


@dataclass
class MetricView:
    title: str
    value: Any = None
    unit: str = ""
    badges: list[str] = field(default_factory=list)
    loading: bool = False
    error: Optional[Exception] = None


def repository_name(settings: dict) -> str:
    return settings["repository"]["full_name"]


class SimpleMetricBlock:
    title = ""
    unit = ""

    def fetch(self, settings: dict, context: BlockContext) -> Any:
        raise NotImplementedError

    def badges(self, settings: dict) -> list[str]:
        return [repository_name(settings)]

    def render(
        self,
        settings: dict,
        context: BlockContext | None = None,
        is_preview: bool = False,
    ) -> MetricView:
        if is_preview:
            return MetricView(title=self.title, value=PREVIEW_VALUE, unit=self.unit)

        context = context or BlockContext()
        resource = load(lambda: self.fetch(settings, context))
        return MetricView(
            title=self.title,
            value=resource.data,
            unit=self.unit,
            badges=self.badges(settings),
            loading=resource.loading,
            error=resource.error,
        )


class GithubStarBlock(SimpleMetricBlock):
    title = "Github Stars"
    unit = "stars"

    def fetch(self, settings: dict, context: BlockContext) -> int:
        return context.github.star_count(repository_name(settings))


class GithubIssueBlock(SimpleMetricBlock):
    title = "Open Issues"
    unit = "issues"

    def fetch(self, settings: dict, context: BlockContext) -> int:
        return context.github.open_issue_count(repository_name(settings))


class GithubPullRequestBlock(SimpleMetricBlock):
    title = "Open Pull Requests"
    unit = "PRs"

    def fetch(self, settings: dict, context: BlockContext) -> int:
        return context.github.open_pull_request_count(repository_name(settings))


class NpmDownloadBlock(SimpleMetricBlock):
    title = "NPM Downloads"
    unit = "downloads"

    @staticmethod
    def package_name(settings: dict) -> str:
        # Blocks only store a repository; the package is named after it.
        if settings.get("package"):
            return settings["package"]
        return repository_name(settings).split("/")[-1]

    def badges(self, settings: dict) -> list[str]:
        return [self.package_name(settings)]

    def fetch(self, settings: dict, context: BlockContext) -> int:
        return context.npm.downloads(self.package_name(settings))

"""
Registry of block types, keyed by the ``type`` string stored on each block.
"""

from __future__ import annotations

from dataclasses import dataclass

from blockboard.blocks.display import (
    GithubIssueBlock,
    GithubPullRequestBlock,
    GithubStarBlock,
    NpmDownloadBlock,
    SimpleMetricBlock,
)
from blockboard.blocks.forms import SearchRepoForm


class UnknownBlockTypeError(LookupError):
    def __init__(self, block_type: str):
        super().__init__(f"unknown block type: {block_type!r}")
        self.block_type = block_type


@dataclass(frozen=True)
class RegisteredBlock:
    type: str
    name: str
    description: str
    display: type[SimpleMetricBlock]
    setup: type[SearchRepoForm]


_REGISTRY: tuple[RegisteredBlock, ...] = (
    RegisteredBlock(
        type="github-star",
        name="Github Star",
        description="See all your Github stars evolution over time on one repository",
        display=GithubStarBlock,
        setup=SearchRepoForm,
    ),
    RegisteredBlock(
        type="github-issue",
        name="Github Issue",
        description="See how many issues are open at the moment on one repository",
        display=GithubIssueBlock,
        setup=SearchRepoForm,
    ),
    RegisteredBlock(
        type="github-pr",
        name="Github PR",
        description="See how many PR are open at the moment on one repository",
        display=GithubPullRequestBlock,
        setup=SearchRepoForm,
    ),
    RegisteredBlock(
        type="npm-download",
        name="NPM Download",
        description="All NPM downloads informations",
        display=NpmDownloadBlock,
        setup=SearchRepoForm,
    ),
)

_BY_TYPE = {block.type: block for block in _REGISTRY}


def block_types() -> list[RegisteredBlock]:
    return list(_REGISTRY)


def resolve(block_type: str) -> RegisteredBlock:
    try:
        return _BY_TYPE[block_type]
    except KeyError:
        raise UnknownBlockTypeError(block_type) from None

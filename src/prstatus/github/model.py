from datetime import datetime
from typing import Any, Dict, List, Optional

import pydantic


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(populate_by_name=True)


class Actor(Model):
    login: Optional[str] = None


class Owner(Model):
    login: str


class Repository(Model):
    name: str
    owner: Owner


class Review(Model):
    state: str
    author: Optional[Actor] = None


class ReviewConnection(Model):
    nodes: Optional[List[Optional[Review]]] = None


class CheckRun(Model):
    name: str
    status: Optional[str] = None
    conclusion: Optional[str] = None
    details_url: Optional[str] = pydantic.Field(None, alias="detailsUrl")

    @property
    def is_completed(self) -> bool:
        return (self.status or "").upper() == "COMPLETED"

    @property
    def is_success(self) -> bool:
        return self.is_completed and (self.conclusion or "").upper() == "SUCCESS"


class StatusContext(Model):
    context: str
    state: Optional[str] = None
    target_url: Optional[str] = pydantic.Field(None, alias="targetUrl")


class ContextConnection(Model):
    # CheckRun and StatusContext nodes are told apart by their keys
    nodes: Optional[List[Optional[Dict[str, Any]]]] = None


class StatusCheckRollup(Model):
    state: Optional[str] = None
    contexts: Optional[ContextConnection] = None


class Commit(Model):
    status_check_rollup: Optional[StatusCheckRollup] = pydantic.Field(
        None, alias="statusCheckRollup"
    )


class CommitNode(Model):
    commit: Optional[Commit] = None


class CommitConnection(Model):
    nodes: Optional[List[Optional[CommitNode]]] = None


class PullRequestNode(Model):
    number: int
    title: str
    url: str
    is_draft: Optional[bool] = pydantic.Field(None, alias="isDraft")
    updated_at: Optional[datetime] = pydantic.Field(None, alias="updatedAt")
    repository: Repository
    review_decision: Optional[str] = pydantic.Field(None, alias="reviewDecision")
    reviews: Optional[ReviewConnection] = None
    commits: Optional[CommitConnection] = None

    @property
    def head_commit(self) -> Optional[Commit]:
        if self.commits is None or not self.commits.nodes:
            return None
        node = self.commits.nodes[0]
        if node is None:
            return None
        return node.commit

    @property
    def rollup(self) -> Optional[StatusCheckRollup]:
        commit = self.head_commit
        if commit is None:
            return None
        return commit.status_check_rollup


class PullRequestConnection(Model):
    nodes: Optional[List[Optional[Dict[str, Any]]]] = None


class Viewer(Model):
    pull_requests: Optional[PullRequestConnection] = pydantic.Field(
        None, alias="pullRequests"
    )


class ViewerPullRequests(Model):
    viewer: Optional[Viewer] = None

    @property
    def nodes(self) -> List[Dict[str, Any]]:
        if self.viewer is None or self.viewer.pull_requests is None:
            return []
        return [n for n in self.viewer.pull_requests.nodes or [] if n is not None]

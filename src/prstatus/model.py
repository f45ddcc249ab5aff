from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

import pydantic


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", frozen=True)


class ReviewDecision(str, Enum):
    approved = "APPROVED"
    changes_requested = "CHANGES_REQUESTED"
    review_required = "REVIEW_REQUIRED"


class CiStatus(str, Enum):
    success = "success"
    failure = "failure"
    pending = "pending"
    none = "none"


class CheckStatus(str, Enum):
    success = "success"
    failure = "failure"
    pending = "pending"


class NotificationReason(str, Enum):
    review_requested = "review_requested"
    mention = "mention"
    comment = "comment"
    assign = "assign"
    state_change = "state_change"


class Category(str, Enum):
    approved = "approved"
    changes_requested = "changesRequested"
    review_required = "reviewRequired"
    draft = "draft"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    Category.approved: "Approved",
    Category.changes_requested: "Changes Requested",
    Category.review_required: "Review Required",
    Category.draft: "Draft",
}


class RepositoryName(Model):
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class Check(Model):
    name: str
    status: CheckStatus
    url: Optional[str] = None


class PullRequest(Model):
    number: int
    repository: RepositoryName
    url: str
    title: str
    is_draft: bool = False
    updated_at: Optional[datetime] = None
    review_decision: Optional[str] = None
    reviewers: Dict[str, str] = pydantic.Field(default_factory=dict)
    ci_status: CiStatus = CiStatus.none
    checks: List[Check] = pydantic.Field(default_factory=list)

    def __str__(self) -> str:
        return f"PR({self.repository.full_name}#{self.number})"


class CategoryBuckets(Model):
    approved: List[PullRequest] = pydantic.Field(default_factory=list)
    changes_requested: List[PullRequest] = pydantic.Field(default_factory=list)
    review_required: List[PullRequest] = pydantic.Field(default_factory=list)
    draft: List[PullRequest] = pydantic.Field(default_factory=list)

    def bucket(self, category: Category) -> List[PullRequest]:
        return getattr(self, category.name)

    def items(self) -> Iterator[Tuple[Category, List[PullRequest]]]:
        for category in Category:
            yield category, self.bucket(category)

    def counts(self) -> Dict[Category, int]:
        return {category: len(prs) for category, prs in self.items()}

    def all(self) -> List[PullRequest]:
        return [pr for _, prs in self.items() for pr in prs]

    @property
    def total(self) -> int:
        return sum(self.counts().values())


class Unchanged(Enum):
    UNCHANGED = "unchanged"

    def __repr__(self) -> str:
        return "UNCHANGED"


# returned by a conditional notification fetch answered with 304
UNCHANGED = Unchanged.UNCHANGED

from dataclasses import dataclass
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from prstatus.github.model import (
    CheckRun,
    PullRequestNode,
    Review,
    StatusCheckRollup,
    StatusContext,
    ViewerPullRequests,
)
from prstatus.model import (
    CategoryBuckets,
    Check,
    CheckStatus,
    CiStatus,
    PullRequest,
    RepositoryName,
    ReviewDecision,
)

logger = logging.getLogger("prstatus")


PR_QUERY = """query {
  viewer {
    pullRequests(first: 100, states: OPEN, orderBy: {field: UPDATED_AT, direction: DESC}) {
      nodes {
        number
        title
        url
        isDraft
        updatedAt
        repository { name, owner { login } }
        reviewDecision
        reviews(last: 10) { nodes { state, author { login } } }
        commits(last: 1) {
          nodes {
            commit {
              statusCheckRollup {
                state
                contexts(first: 30) {
                  nodes {
                    ... on CheckRun { name, status, conclusion, detailsUrl }
                    ... on StatusContext { context, state, targetUrl }
                  }
                }
              }
            }
          }
        }
      }
    }
  }
}"""


@dataclass(frozen=True)
class PullRequestResult:
    buckets: CategoryBuckets
    all_prs: List[PullRequest]


def is_check_run(context: Mapping[str, Any]) -> bool:
    return "conclusion" in context or "status" in context


def check_from_context(context: Mapping[str, Any]) -> Check:
    if is_check_run(context):
        cr = CheckRun.model_validate(context)
        if cr.is_success:
            status = CheckStatus.success
        elif cr.is_completed:
            status = CheckStatus.failure
        else:
            status = CheckStatus.pending
        return Check(name=cr.name, status=status, url=cr.details_url)

    sc = StatusContext.model_validate(context)
    state = (sc.state or "").upper()
    if state == "SUCCESS":
        status = CheckStatus.success
    elif state in ("FAILURE", "ERROR"):
        status = CheckStatus.failure
    else:
        status = CheckStatus.pending
    return Check(name=sc.context, status=status, url=sc.target_url)


def ci_status_from_rollup(rollup: Optional[StatusCheckRollup]) -> CiStatus:
    if rollup is None:
        return CiStatus.none
    state = (rollup.state or "").upper()
    if state == "SUCCESS":
        return CiStatus.success
    if state in ("FAILURE", "ERROR"):
        return CiStatus.failure
    return CiStatus.pending


def latest_review_states(reviews: Iterable[Optional[Review]]) -> Dict[str, str]:
    """
    Collapse a review list to one state per author.

    GitHub does not guarantee chronological order inside the ``last: N`` page,
    so the entry appearing last in the list wins.
    """
    states: Dict[str, str] = {}
    for review in reviews:
        if review is None or review.author is None or not review.author.login:
            continue
        states[review.author.login] = review.state
    return states


def normalize_pull_request(raw: Mapping[str, Any]) -> PullRequest:
    node = PullRequestNode.model_validate(raw)
    rollup = node.rollup

    contexts: List[Mapping[str, Any]] = []
    if rollup is not None and rollup.contexts is not None:
        contexts = [c for c in (rollup.contexts.nodes or []) if c]

    reviews = []
    if node.reviews is not None:
        reviews = node.reviews.nodes or []

    return PullRequest(
        number=node.number,
        repository=RepositoryName(
            owner=node.repository.owner.login, name=node.repository.name
        ),
        url=node.url,
        title=node.title,
        is_draft=bool(node.is_draft),
        updated_at=node.updated_at,
        review_decision=node.review_decision,
        reviewers=latest_review_states(reviews),
        ci_status=ci_status_from_rollup(rollup),
        checks=[check_from_context(c) for c in contexts],
    )


def classify(prs: Iterable[PullRequest]) -> CategoryBuckets:
    approved = []
    changes_requested = []
    review_required = []
    draft = []

    for pr in prs:
        if pr.is_draft:
            draft.append(pr)
        elif pr.review_decision == ReviewDecision.approved.value:
            approved.append(pr)
        elif pr.review_decision == ReviewDecision.changes_requested.value:
            changes_requested.append(pr)
        else:
            review_required.append(pr)

    return CategoryBuckets(
        approved=approved,
        changes_requested=changes_requested,
        review_required=review_required,
        draft=draft,
    )


def process_pull_requests(data: Optional[Mapping[str, Any]]) -> PullRequestResult:
    """
    Normalize and classify the ``data`` member of a pull request query.

    Raises :class:`pydantic.ValidationError` when the envelope or a node does
    not have the expected shape.
    """
    envelope = ViewerPullRequests.model_validate(data or {})
    prs = [normalize_pull_request(n) for n in envelope.nodes]
    logger.debug("Normalized %d pull requests", len(prs))
    return PullRequestResult(buckets=classify(prs), all_prs=prs)

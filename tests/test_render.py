from datetime import datetime, timedelta, timezone

from prstatus.github import classify
from prstatus.model import CiStatus, PullRequest, RepositoryName
from prstatus.poller import ViewModel, ViewStatus
from prstatus.poller.types import ErrorKind
from prstatus.render import render_view

NOW = datetime(2026, 2, 17, 12, 0, tzinfo=timezone.utc)


def _pr(number, **kwargs) -> PullRequest:
    return PullRequest(
        number=number,
        repository=RepositoryName(owner="org", name="widgets"),
        url=f"https://github.com/org/widgets/pull/{number}",
        title=f"Change {number}",
        updated_at=NOW - timedelta(hours=3),
        **kwargs,
    )


def test_render_populated_view():
    buckets = classify(
        [
            _pr(1, review_decision="APPROVED", ci_status=CiStatus.success),
            _pr(
                2,
                review_decision="CHANGES_REQUESTED",
                ci_status=CiStatus.failure,
                reviewers={"alice": "CHANGES_REQUESTED", "bob": "COMMENTED"},
            ),
            _pr(3, is_draft=True),
        ]
    )
    view = ViewModel(status=ViewStatus.populated, buckets=buckets, badge_count=120)

    text = render_view(view, now=NOW)

    assert "Approved (1)" in text
    assert "Changes Requested (1)" in text
    assert "Draft (1)" in text
    assert "Review Required" not in text
    assert "#2 Change 2" in text
    assert "alice" in text and "bob" in text
    assert "3 hours ago" in text
    assert "99+ unread notifications" in text
    assert "✅" in text
    assert "❌" in text
    assert ":x:" not in text


def test_render_empty_buckets():
    view = ViewModel(status=ViewStatus.populated, buckets=classify([]))
    text = render_view(view, now=NOW)
    assert "No open PRs" in text
    assert "notifications" not in text


def test_render_states_without_buckets():
    assert "Loading" in render_view(ViewModel(status=ViewStatus.loading), now=NOW)
    assert "No token configured" in render_view(
        ViewModel(status=ViewStatus.unconfigured), now=NOW
    )
    error = ViewModel(
        status=ViewStatus.error,
        error_kind=ErrorKind.auth,
        message="Authentication failed: Bad credentials",
    )
    assert "Authentication failed" in render_view(error, now=NOW)


def test_render_error_keeps_cached_buckets():
    view = ViewModel(
        status=ViewStatus.error,
        error_kind=ErrorKind.auth,
        message="Authentication failed",
        buckets=classify([_pr(1, review_decision="APPROVED")]),
    )
    text = render_view(view, now=NOW)
    assert "Authentication failed" in text
    assert "Approved (1)" in text

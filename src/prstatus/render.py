from datetime import datetime, timezone
from typing import List, Optional

import emoji
import humanize
from tabulate import tabulate

from prstatus import config
from prstatus.model import Category, CiStatus, PullRequest
from prstatus.poller.types import ViewModel, ViewStatus

CI_ICONS = {
    CiStatus.success: ":white_check_mark:",
    CiStatus.failure: ":x:",
    CiStatus.pending: ":hourglass_flowing_sand:",
    CiStatus.none: ":white_large_square:",
}

REVIEW_ICONS = {
    "APPROVED": ":white_check_mark:",
    "CHANGES_REQUESTED": ":x:",
    "COMMENTED": ":speech_balloon:",
    "PENDING": ":hourglass_flowing_sand:",
    "DISMISSED": ":heavy_minus_sign:",
}

CATEGORY_ICONS = {
    Category.approved: CI_ICONS[CiStatus.success],
    Category.changes_requested: CI_ICONS[CiStatus.failure],
    Category.review_required: CI_ICONS[CiStatus.pending],
    Category.draft: ":memo:",
}


def _emojize(text: str) -> str:
    return emoji.emojize(text, language="alias")


def _reviewers(pr: PullRequest) -> str:
    return " ".join(
        f"{REVIEW_ICONS.get(state, ':grey_question:')}{login}"
        for login, state in pr.reviewers.items()
    )


def _age(pr: PullRequest, now: datetime) -> str:
    if pr.updated_at is None:
        return ""
    updated_at = pr.updated_at
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return humanize.naturaltime(now - updated_at)


def render_pull_requests(prs: List[PullRequest], now: datetime) -> str:
    rows = [
        (
            CI_ICONS[pr.ci_status],
            pr.repository.name,
            f"#{pr.number} {pr.title}",
            _reviewers(pr),
            _age(pr, now),
        )
        for pr in prs
    ]
    return tabulate(
        rows,
        headers=("CI", "Repo", "Pull request", "Reviews", "Updated"),
        tablefmt="github",
    )


def render_view(view: ViewModel, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    lines = []

    if view.status == ViewStatus.loading:
        lines.append("Loading...")
    elif view.status == ViewStatus.unconfigured:
        lines.append(
            f"No token configured, set {config.TOKEN_ENV_VAR} "
            "or pass --token"
        )
    elif view.status == ViewStatus.error:
        lines.append(view.message or "Error")

    if view.buckets is not None and view.status != ViewStatus.unconfigured:
        if view.buckets.total == 0:
            lines.append("No open PRs")
        for category, prs in view.buckets.items():
            if len(prs) == 0:
                continue
            lines.append("")
            lines.append(f"{CATEGORY_ICONS[category]} {category.label} ({len(prs)})")
            lines.append(render_pull_requests(prs, now))

    if view.badge_visible:
        lines.append("")
        lines.append(f":bell: {view.badge_text} unread notifications")

    return _emojize("\n".join(lines))

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import aiohttp
from gidgethub import sansio
import pydantic

from prstatus import config
from prstatus.exceptions import AuthError, GraphQLError, TransportError
from prstatus.github import PR_QUERY, PullRequestResult, process_pull_requests
from prstatus.metric import record_api_call
from prstatus.model import UNCHANGED, NotificationReason, Unchanged

logger = logging.getLogger("prstatus")

Response = Tuple[int, Dict[str, str], bytes]


def _snippet(body: bytes, limit: int = 200) -> str:
    return body.decode("utf-8", errors="replace")[:limit]


def _decode_json(body: bytes, url: str) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TransportError(f"Invalid JSON from {url}: {e}") from e


def count_notifications(
    notifications: Iterable[Mapping[str, Any]],
    enabled_reasons: Iterable[Union[NotificationReason, str]],
) -> int:
    reasons = {
        r.value if isinstance(r, NotificationReason) else str(r)
        for r in enabled_reasons
    }
    notifications = list(notifications)
    if not reasons:
        return len(notifications)
    return sum(1 for n in notifications if n.get("reason") in reasons)


class GitHubClient:
    session: Optional[aiohttp.ClientSession]
    last_modified: Optional[str]
    call_count: int

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        requester: str = config.USER_AGENT,
        graphql_url: str = config.GITHUB_GRAPHQL_URL,
        notifications_url: str = config.GITHUB_NOTIFICATIONS_URL,
    ):
        self.session = session
        self._owns_session = session is None
        self.requester = requester
        self.graphql_url = graphql_url
        self.notifications_url = notifications_url
        # Last-Modified of the last successful notification poll
        self.last_modified = None
        self.call_count = 0

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            logger.debug("Creating aiohttp session")
            self.session = aiohttp.ClientSession()
        return self.session

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            logger.debug("Closing aiohttp session")
            await self.session.close()
        self.session = None

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        *,
        endpoint: str,
        body: Optional[Mapping[str, Any]] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
    ) -> Response:
        headers = sansio.create_headers(self.requester, accept="application/json")
        headers["authorization"] = f"Bearer {token}"
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["content-type"] = "application/json"
        if extra_headers:
            headers.update(extra_headers)

        self.call_count += 1
        record_api_call(endpoint)
        logger.debug("%s %s", method, url)

        try:
            async with self._get_session().request(
                method, url, headers=headers, data=data
            ) as response:
                status = response.status
                response_headers = {k.lower(): v for k, v in response.headers.items()}
                content = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {url} failed: {e!r}") from e

        rate_limit = sansio.RateLimit.from_http(response_headers)
        if rate_limit is not None:
            logger.debug(
                "Rate limit: %d/%d remaining", rate_limit.remaining, rate_limit.limit
            )

        return status, response_headers, content

    async def fetch_pull_requests(self, token: str) -> PullRequestResult:
        status, _, content = await self._request(
            "POST",
            self.graphql_url,
            token,
            endpoint="graphql",
            body={"query": PR_QUERY},
        )

        if status in (401, 403):
            raise AuthError(
                f"GitHub API {status}: {_snippet(content)}", status_code=status
            )
        if not 200 <= status < 300:
            raise TransportError(
                f"GitHub API {status}: {_snippet(content)}", status_code=status
            )

        payload = _decode_json(content, self.graphql_url)
        if not isinstance(payload, dict):
            raise TransportError(f"Unexpected GraphQL payload: {_snippet(content)}")

        errors = payload.get("errors")
        if errors:
            first = errors[0]
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise GraphQLError(f"GraphQL error: {message}", errors=errors)

        try:
            return process_pull_requests(payload.get("data"))
        except pydantic.ValidationError as e:
            raise TransportError(f"Malformed pull request data: {e}") from e

    async def fetch_notifications(
        self,
        token: str,
        enabled_reasons: Iterable[Union[NotificationReason, str]] = (),
    ) -> Union[int, Unchanged]:
        extra_headers = {}
        if self.last_modified is not None:
            extra_headers["if-modified-since"] = self.last_modified

        status, headers, content = await self._request(
            "GET",
            self.notifications_url,
            token,
            endpoint="notifications",
            extra_headers=extra_headers,
        )

        if status == 304:
            logger.debug("Notifications not modified since %s", self.last_modified)
            return UNCHANGED

        if not 200 <= status < 300:
            raise TransportError(
                f"GitHub API {status}: {_snippet(content)}", status_code=status
            )

        notifications = _decode_json(content, self.notifications_url)
        if not isinstance(notifications, list):
            raise TransportError(
                f"Unexpected notifications payload: {_snippet(content)}"
            )
        if not all(isinstance(n, dict) for n in notifications):
            raise TransportError(
                f"Unexpected notification entry: {_snippet(content)}"
            )

        last_modified = headers.get("last-modified")
        if last_modified:
            self.last_modified = last_modified

        count = count_notifications(notifications, enabled_reasons)
        logger.debug(
            "%d of %d notifications match the filter", count, len(notifications)
        )
        return count

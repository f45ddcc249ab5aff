import json
from types import SimpleNamespace

import aiohttp
import pytest

from prstatus.exceptions import AuthError, GraphQLError, TransportError
from prstatus.github import PR_QUERY
from prstatus.github.api import GitHubClient, count_notifications
from prstatus.model import UNCHANGED, NotificationReason
from prstatus.poller import PollScheduler, Preferences, ViewStatus
from prstatus.token_store import MemoryTokenStore


class _FakeResponse:
    def __init__(self, status: int, body=b"", headers=None):
        self.status = status
        if not isinstance(body, bytes):
            body = json.dumps(body).encode("utf-8")
        self._body = body
        self.headers = headers or {}

    async def read(self) -> bytes:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, method, url, headers=None, data=None):
        self.requests.append(
            SimpleNamespace(method=method, url=url, headers=dict(headers), data=data)
        )
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


def _graphql_data(*nodes) -> dict:
    return {"data": {"viewer": {"pullRequests": {"nodes": list(nodes)}}}}


def _node(number: int, **overrides) -> dict:
    node = {
        "number": number,
        "title": f"PR {number}",
        "url": f"https://github.com/org/repo/pull/{number}",
        "isDraft": False,
        "updatedAt": "2026-02-17T10:00:00Z",
        "repository": {"name": "repo", "owner": {"login": "org"}},
        "reviewDecision": None,
        "reviews": {"nodes": []},
        "commits": {"nodes": []},
    }
    node.update(overrides)
    return node


@pytest.mark.asyncio
async def test_fetch_pull_requests_sends_graphql_query():
    session = _FakeSession(_FakeResponse(200, _graphql_data()))
    client = GitHubClient(session, graphql_url="https://gh/graphql")

    await client.fetch_pull_requests("secret")

    (request,) = session.requests
    assert request.method == "POST"
    assert request.url == "https://gh/graphql"
    assert request.headers["authorization"] == "Bearer secret"
    assert request.headers["accept"] == "application/json"
    assert "user-agent" in request.headers
    body = json.loads(request.data)
    assert body == {"query": PR_QUERY}
    assert client.call_count == 1


@pytest.mark.asyncio
async def test_fetch_pull_requests_classifies():
    session = _FakeSession(
        _FakeResponse(
            200,
            _graphql_data(
                _node(1, reviewDecision="APPROVED"),
                _node(2, isDraft=True),
                _node(3, reviewDecision="CHANGES_REQUESTED"),
                _node(4),
            ),
        )
    )
    client = GitHubClient(session)

    result = await client.fetch_pull_requests("secret")

    assert [pr.number for pr in result.all_prs] == [1, 2, 3, 4]
    assert [pr.number for pr in result.buckets.approved] == [1]
    assert [pr.number for pr in result.buckets.draft] == [2]
    assert [pr.number for pr in result.buckets.changes_requested] == [3]
    assert [pr.number for pr in result.buckets.review_required] == [4]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_fetch_pull_requests_auth_error(status):
    session = _FakeSession(_FakeResponse(status, b'{"message": "Bad credentials"}'))
    client = GitHubClient(session)

    with pytest.raises(AuthError) as excinfo:
        await client.fetch_pull_requests("secret")
    assert excinfo.value.status_code == status
    assert "Bad credentials" in str(excinfo.value)


@pytest.mark.asyncio
async def test_fetch_pull_requests_graphql_error_carries_first_message():
    session = _FakeSession(
        _FakeResponse(
            200,
            {
                "data": None,
                "errors": [{"message": "Field 'foo' doesn't exist"}, {"message": "x"}],
            },
        )
    )
    client = GitHubClient(session)

    with pytest.raises(GraphQLError) as excinfo:
        await client.fetch_pull_requests("secret")
    assert "Field 'foo' doesn't exist" in str(excinfo.value)
    assert len(excinfo.value.errors) == 2


@pytest.mark.asyncio
async def test_fetch_pull_requests_empty_errors_array_is_success():
    payload = _graphql_data(_node(1))
    payload["errors"] = []
    client = GitHubClient(_FakeSession(_FakeResponse(200, payload)))

    result = await client.fetch_pull_requests("secret")
    assert len(result.all_prs) == 1


@pytest.mark.asyncio
async def test_fetch_pull_requests_server_error():
    client = GitHubClient(_FakeSession(_FakeResponse(502, b"Bad gateway")))

    with pytest.raises(TransportError) as excinfo:
        await client.fetch_pull_requests("secret")
    assert excinfo.value.status_code == 502
    assert "502" in str(excinfo.value)


@pytest.mark.asyncio
async def test_fetch_pull_requests_network_failure():
    client = GitHubClient(
        _FakeSession(aiohttp.ClientConnectionError("connection refused"))
    )

    with pytest.raises(TransportError):
        await client.fetch_pull_requests("secret")


@pytest.mark.asyncio
async def test_fetch_pull_requests_invalid_json():
    client = GitHubClient(_FakeSession(_FakeResponse(200, b"<html>")))

    with pytest.raises(TransportError):
        await client.fetch_pull_requests("secret")


@pytest.mark.asyncio
async def test_fetch_pull_requests_malformed_node():
    client = GitHubClient(
        _FakeSession(_FakeResponse(200, _graphql_data({"title": "no number"})))
    )

    with pytest.raises(TransportError):
        await client.fetch_pull_requests("secret")


@pytest.mark.asyncio
async def test_fetch_notifications_counts_filtered_reasons():
    notifications = [
        {"reason": "mention"},
        {"reason": "review_requested"},
        {"reason": "review_requested"},
    ]
    session = _FakeSession(_FakeResponse(200, notifications))
    client = GitHubClient(session, notifications_url="https://gh/notifications")

    count = await client.fetch_notifications(
        "secret", {NotificationReason.review_requested}
    )

    assert count == 2
    (request,) = session.requests
    assert request.method == "GET"
    assert request.url == "https://gh/notifications"
    assert request.headers["authorization"] == "Bearer secret"
    assert "if-modified-since" not in request.headers


@pytest.mark.asyncio
async def test_fetch_notifications_empty_filter_counts_everything():
    notifications = [{"reason": "mention"}, {"reason": "subscribed"}]
    client = GitHubClient(_FakeSession(_FakeResponse(200, notifications)))

    assert await client.fetch_notifications("secret", []) == 2


@pytest.mark.asyncio
async def test_fetch_notifications_conditional_fetch():
    stamp = "Tue, 17 Feb 2026 10:00:00 GMT"
    session = _FakeSession(
        _FakeResponse(200, [{"reason": "mention"}], headers={"Last-Modified": stamp}),
        _FakeResponse(304),
    )
    client = GitHubClient(session)

    assert await client.fetch_notifications("secret", ["mention"]) == 1
    assert client.last_modified == stamp

    assert await client.fetch_notifications("secret", ["mention"]) is UNCHANGED
    assert session.requests[1].headers["if-modified-since"] == stamp
    assert client.last_modified == stamp


@pytest.mark.asyncio
async def test_fetch_notifications_keeps_token_when_header_missing():
    session = _FakeSession(
        _FakeResponse(200, [], headers={"Last-Modified": "first"}),
        _FakeResponse(200, [{"reason": "mention"}]),
    )
    client = GitHubClient(session)

    await client.fetch_notifications("secret", [])
    assert await client.fetch_notifications("secret", []) == 1
    assert client.last_modified == "first"


@pytest.mark.asyncio
async def test_fetch_notifications_error_does_not_touch_token():
    session = _FakeSession(
        _FakeResponse(200, [], headers={"Last-Modified": "first"}),
        _FakeResponse(500, b"boom", headers={"Last-Modified": "second"}),
    )
    client = GitHubClient(session)

    await client.fetch_notifications("secret", [])
    with pytest.raises(TransportError):
        await client.fetch_notifications("secret", [])
    assert client.last_modified == "first"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 404, 500])
async def test_fetch_notifications_non_success_is_transport_error(status):
    client = GitHubClient(_FakeSession(_FakeResponse(status, b"{}")))

    with pytest.raises(TransportError) as excinfo:
        await client.fetch_notifications("secret", [])
    assert excinfo.value.status_code == status


@pytest.mark.asyncio
async def test_fetch_notifications_unexpected_payload():
    client = GitHubClient(_FakeSession(_FakeResponse(200, {"message": "nope"})))

    with pytest.raises(TransportError):
        await client.fetch_notifications("secret", [])


@pytest.mark.asyncio
async def test_close_only_closes_owned_session():
    session = _FakeSession()
    client = GitHubClient(session)
    await client.close()
    assert not session.closed


def test_count_notifications_accepts_strings_and_enums():
    notifications = [{"reason": "assign"}, {"reason": "comment"}, {}]
    assert count_notifications(notifications, ["assign"]) == 1
    assert count_notifications(notifications, [NotificationReason.comment]) == 1
    assert count_notifications(notifications, []) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data",
    [
        "oops",
        {"viewer": "oops"},
        {"viewer": {"pullRequests": ["x"]}},
        _graphql_data("x")["data"],
    ],
)
async def test_fetch_pull_requests_malformed_envelope(data):
    client = GitHubClient(_FakeSession(_FakeResponse(200, {"data": data})))

    with pytest.raises(TransportError, match="Malformed"):
        await client.fetch_pull_requests("secret")


@pytest.mark.asyncio
async def test_fetch_notifications_rejects_non_object_entries():
    session = _FakeSession(
        _FakeResponse(
            200,
            [{"reason": "mention"}, "not-an-object"],
            headers={"Last-Modified": "Tue, 17 Feb 2026 10:00:00 GMT"},
        )
    )
    client = GitHubClient(session)

    with pytest.raises(TransportError):
        await client.fetch_notifications("secret", [])
    assert client.last_modified is None


@pytest.mark.asyncio
async def test_malformed_bodies_are_contained_by_refresh_cycle():
    session = _FakeSession(
        _FakeResponse(200, _graphql_data(_node(1))),
        _FakeResponse(200, [{"reason": "mention"}]),
        _FakeResponse(200, {"data": "oops"}),
        _FakeResponse(200, ["not-an-object"]),
    )
    scheduler = PollScheduler(
        client=GitHubClient(session),
        token_store=MemoryTokenStore("secret"),
        preferences=Preferences(notification_filters=["mention"]),
    )

    view = await scheduler.refresh()
    assert view.status == ViewStatus.populated
    assert view.badge_count == 1

    view = await scheduler.refresh()
    assert view.status == ViewStatus.populated
    assert view.buckets.total == 1
    assert view.badge_count == 1
    await scheduler.stop()

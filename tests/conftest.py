"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import base64
import hashlib
import json
from typing import Callable, Optional

import httpx
import pytest

from app.core.config import GitHubSettings


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


class FakeGitHubRepo:
    """In-memory stand-in for one file behind the GitHub contents API."""

    def __init__(self) -> None:
        self.content: Optional[bytes] = None
        self.sha: Optional[str] = None
        self.requests: list[httpx.Request] = []
        self.put_bodies: list[dict] = []
        self.before_put: Optional[Callable[["FakeGitHubRepo"], None]] = None

    def seed(self, mapping: dict) -> None:
        self.write(json.dumps(mapping, indent=2).encode("utf-8"))

    def write(self, content: bytes) -> None:
        self.content = content
        self.sha = hashlib.sha1(content).hexdigest()

    def stored_mapping(self) -> dict:
        assert self.content is not None
        return json.loads(self.content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            if self.content is None:
                return httpx.Response(404, json={"message": "Not Found"})
            encoded = base64.b64encode(self.content).decode("ascii")
            wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60))
            return httpx.Response(
                200, json={"sha": self.sha, "content": wrapped + "\n", "encoding": "base64"}
            )

        body = json.loads(request.content)
        self.put_bodies.append(body)
        if self.before_put is not None:
            hook, self.before_put = self.before_put, None
            hook(self)
        supplied = body.get("sha")
        if self.content is not None and supplied is None:
            return httpx.Response(
                422, json={"message": "Invalid request.\n\n\"sha\" wasn't supplied."}
            )
        if self.content is not None and supplied != self.sha:
            return httpx.Response(
                409, json={"message": f"tokens.json does not match {supplied}"}
            )
        created = self.content is None
        self.write(base64.b64decode(body["content"]))
        return httpx.Response(
            201 if created else 200,
            json={"content": {"sha": self.sha, "path": "tokens.json"}, "commit": {}},
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def github_repo() -> FakeGitHubRepo:
    return FakeGitHubRepo()


@pytest.fixture
def github_settings() -> GitHubSettings:
    return GitHubSettings(
        GITHUB_TOKEN="gh-test-token",
        GITHUB_USERNAME="octo",
        DATA_REPO="strava-data",
        DATA_FILE="tokens.json",
        GITHUB_BRANCH="main",
    )

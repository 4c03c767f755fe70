"""Shared fixtures: a fake target that echoes one query parameter."""

import html
from collections.abc import Awaitable, Callable
from urllib.parse import unquote

import httpx
import pytest

from common.models import HttpRequest, HttpResponse

HTML = "text/html; charset=utf-8"


def query_value(request: HttpRequest, key: str) -> str:
    """Decoded value of one query parameter, as a server would see it."""
    for chunk in request.get_query().split("&"):
        name, _, value = chunk.partition("=")
        if name == key:
            return unquote(value)
    return ""


def make_response(
    body: str = "",
    status: int = 200,
    content_type: str | None = HTML,
    headers: dict[str, str] | None = None,
) -> HttpResponse:
    merged = dict(headers or {})
    if content_type is not None:
        merged["Content-Type"] = content_type
    return HttpResponse(status_code=status, headers=httpx.Headers(merged), text=body)


class EchoServer:
    """
    Sender that renders the ``q`` parameter into a body template.

    Attributes:
        sent: Every request received, in order
    """

    def __init__(
        self,
        template: str = "<p>{value}</p>",
        key: str = "q",
        escape: bool = False,
        content_type: str | None = HTML,
        header: str | None = None,
    ) -> None:
        self.template = template
        self.key = key
        self.escape = escape
        self.content_type = content_type
        self.header = header
        self.sent: list[HttpRequest] = []

    def render(self, request: HttpRequest) -> HttpResponse:
        value = query_value(request, self.key)
        shown = html.escape(value) if self.escape else value
        headers = {}
        if self.header:
            headers[self.header] = "/next?q=" + value.replace("\r", "").replace("\n", "")
        return make_response(
            self.template.format(value=shown), content_type=self.content_type, headers=headers
        )

    async def __call__(self, request: HttpRequest) -> HttpResponse:
        self.sent.append(request)
        return self.render(request)


@pytest.fixture
def echo_server() -> Callable[..., EchoServer]:
    return EchoServer


@pytest.fixture
def failing_sender() -> Callable[[HttpRequest], Awaitable[HttpResponse]]:
    async def send(request: HttpRequest) -> HttpResponse:
        raise httpx.ConnectError("connection refused")

    return send

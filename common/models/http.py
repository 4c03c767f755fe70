"""HTTP Models - Request/response snapshots and the capabilities the scanner needs."""

import copy
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

import httpx


class RequestSpec(Protocol):
    """Mutable request capability used by the probing code."""

    def get_method(self) -> str: ...
    def get_host(self) -> str: ...
    def get_path(self) -> str: ...
    def get_tls(self) -> bool: ...
    def get_query(self) -> str: ...
    def set_query(self, query: str) -> None: ...
    def get_header(self, name: str) -> list[str] | None: ...
    def set_header(self, name: str, value: str) -> None: ...
    def get_body(self) -> str: ...
    def set_body(self, body: str) -> None: ...
    def clone(self) -> "RequestSpec": ...


class ResponseSpec(Protocol):
    """Read-only response capability."""

    def get_code(self) -> int: ...
    def get_header(self, name: str) -> list[str] | None: ...
    def get_headers(self) -> dict[str, list[str]]: ...
    def get_body(self) -> str: ...


@dataclass
class HttpRequest:
    """Plain request snapshot, convertible to and from httpx."""

    method: str = "GET"
    host: str = ""
    path: str = "/"
    query: str = ""
    tls: bool = True
    port: int | None = None
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: str = ""

    @classmethod
    def from_url(
        cls,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str = "",
    ) -> "HttpRequest":
        """Build a request from an absolute URL."""
        parsed = httpx.URL(url)
        default_port = 443 if parsed.scheme == "https" else 80
        return cls(
            method=method.upper(),
            host=parsed.host,
            path=parsed.path or "/",
            query=parsed.query.decode("ascii"),
            tls=parsed.scheme == "https",
            port=parsed.port if parsed.port not in (None, default_port) else None,
            headers=httpx.Headers(headers or {}),
            body=body,
        )

    @property
    def url(self) -> str:
        scheme = "https" if self.tls else "http"
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        query = f"?{self.query}" if self.query else ""
        return f"{scheme}://{netloc}{self.path}{query}"

    def get_method(self) -> str:
        return self.method

    def get_host(self) -> str:
        return self.host

    def get_path(self) -> str:
        return self.path

    def get_tls(self) -> bool:
        return self.tls

    def get_query(self) -> str:
        return self.query

    def set_query(self, query: str) -> None:
        self.query = query

    def get_header(self, name: str) -> list[str] | None:
        values = self.headers.get_list(name)
        return values or None

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def get_body(self) -> str:
        return self.body

    def set_body(self, body: str) -> None:
        self.body = body

    def clone(self) -> "HttpRequest":
        cloned = copy.copy(self)
        cloned.headers = self.headers.copy()
        return cloned

    def to_httpx(self) -> httpx.Request:
        """Convert to an httpx request."""
        # Content-Length is recomputed by httpx for the mutated body
        headers = [
            (name, value)
            for name, value in self.headers.multi_items()
            if name.lower() != "content-length"
        ]
        return httpx.Request(
            self.method,
            httpx.URL(self.url),
            headers=headers,
            content=self.body.encode("utf-8") if self.body else None,
        )


@dataclass
class HttpResponse:
    """Plain response snapshot."""

    status_code: int = 200
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    text: str = ""

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "HttpResponse":
        """Build a snapshot from an httpx response."""
        return cls(
            status_code=response.status_code,
            headers=httpx.Headers(response.headers.multi_items()),
            text=response.text,
        )

    def get_code(self) -> int:
        return self.status_code

    def get_header(self, name: str) -> list[str] | None:
        values = self.headers.get_list(name)
        return values or None

    def get_headers(self) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = {}
        for name, value in self.headers.multi_items():
            grouped.setdefault(name.lower(), []).append(value)
        return grouped

    def get_body(self) -> str:
        return self.text


# Injected "send request" capability
Sender = Callable[[RequestSpec], Awaitable[ResponseSpec]]

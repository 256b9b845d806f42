"""HTTP client abstraction for the release host.

This module provides:
- HttpClient: Protocol for the HTTP verbs the GitHub adapter needs
- RealHttpClient: urllib implementation with token auth
- MockHttpClient: canned responses for tests
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from kdeploy import __version__
from kdeploy.core.result import Err, Ok, Result

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = [
    "HttpClient",
    "RealHttpClient",
    "MockHttpClient",
    "HttpError",
    "DEFAULT_TIMEOUT_SECONDS",
]

DEFAULT_TIMEOUT_SECONDS = 30.0
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    """HTTP operations used by the GitHub release host."""

    def get_json(self, url: str) -> Result[object, HttpError]: ...

    def get_bytes(self, url: str, *, accept: str | None = None) -> Result[bytes, HttpError]: ...

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
        *,
        accept: str | None = None,
    ) -> Result[Path, HttpError]:
        """Stream URL into ``dest``, calling ``progress(received, total)`` per chunk."""
        ...

    def post_json(self, url: str, payload: Mapping[str, object]) -> Result[object, HttpError]: ...

    def post_bytes(
        self,
        url: str,
        data: bytes,
        *,
        content_type: str,
        timeout: float | None = None,
    ) -> Result[object, HttpError]: ...

    def delete(self, url: str) -> Result[None, HttpError]: ...


def _decode_json(url: str, body: bytes) -> Result[object, HttpError]:
    if not body:
        return Ok(None)
    try:
        return Ok(json.loads(body.decode("utf-8")))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))


def _as_http_error(url: str, exc: Exception) -> HttpError:
    match exc:
        case urllib.error.HTTPError():
            return HttpError(url=url, status=exc.code, message=str(exc.reason))
        case urllib.error.URLError():
            return HttpError(url=url, status=0, message=str(exc.reason))
        case TimeoutError():
            return HttpError(url=url, status=0, message="Request timed out")
        case _:
            return HttpError(url=url, status=0, message=str(exc))


class RealHttpClient:
    """Real HTTP client using urllib.

    Every request carries the ``Authorization: token ...`` header when a token
    is set, but redirected requests do not. Non-2xx responses and transport
    failures become ``HttpError``.
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = f"kdeploy/{__version__}",
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._token = token
        self._ssl_context = ssl.create_default_context()

    def _build(
        self,
        url: str,
        *,
        method: str = "GET",
        data: bytes | None = None,
        accept: str | None = None,
        content_type: str | None = None,
    ) -> urllib.request.Request:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": accept or "application/vnd.github+json",
        }
        if content_type:
            headers["Content-Type"] = content_type
        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        if self._token:
            # Asset downloads redirect to a storage host; the token must not follow
            req.add_unredirected_header("Authorization", f"token {self._token}")
        return req

    def _send(
        self, req: urllib.request.Request, *, timeout: float | None = None
    ) -> Result[bytes, HttpError]:
        url = req.full_url
        try:
            with urllib.request.urlopen(
                req,
                timeout=timeout or self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except (urllib.error.URLError, TimeoutError, ValueError, OSError) as e:
            return Err(_as_http_error(url, e))

    def get_json(self, url: str) -> Result[object, HttpError]:
        result = self._send(self._build(url))
        if isinstance(result, Err):
            return result
        return _decode_json(url, result.value)

    def get_bytes(self, url: str, *, accept: str | None = None) -> Result[bytes, HttpError]:
        return self._send(self._build(url, accept=accept))

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
        *,
        accept: str | None = None,
    ) -> Result[Path, HttpError]:
        req = self._build(url, accept=accept)
        try:
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                total = int(response.headers.get("Content-Length", 0))
                received = 0
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(dest, "wb") as f:
                    while True:
                        chunk = response.read(_CHUNK_SIZE)
                        if not chunk:
                            break
                        f.write(chunk)
                        received += len(chunk)
                        if progress:
                            progress(received, total)
                return Ok(dest)
        except (urllib.error.URLError, TimeoutError, ValueError, OSError) as e:
            dest.unlink(missing_ok=True)
            return Err(_as_http_error(url, e))

    def post_json(self, url: str, payload: Mapping[str, object]) -> Result[object, HttpError]:
        body = json.dumps(dict(payload)).encode("utf-8")
        result = self._send(
            self._build(url, method="POST", data=body, content_type="application/json")
        )
        if isinstance(result, Err):
            return result
        return _decode_json(url, result.value)

    def post_bytes(
        self,
        url: str,
        data: bytes,
        *,
        content_type: str,
        timeout: float | None = None,
    ) -> Result[object, HttpError]:
        req = self._build(url, method="POST", data=data, content_type=content_type)
        result = self._send(req, timeout=timeout)
        if isinstance(result, Err):
            return result
        return _decode_json(url, result.value)

    def delete(self, url: str) -> Result[None, HttpError]:
        result = self._send(self._build(url, method="DELETE"))
        if isinstance(result, Err):
            return result
        return Ok(None)


class MockHttpClient:
    """Mock HTTP client for testing.

    Responses are keyed by exact URL. Unknown URLs answer 404.

    Usage:
        client = MockHttpClient()
        client.set_json("https://api.github.com/repos/o/r/releases", [])
        result = client.get_json("https://api.github.com/repos/o/r/releases")
        assert result == Ok([])
    """

    def __init__(self) -> None:
        self._json: dict[str, object | HttpError] = {}
        self._bytes: dict[str, bytes | HttpError] = {}
        self._posts: dict[str, object | HttpError] = {}
        self._deletes: dict[str, None | HttpError] = {}
        self.calls: list[tuple[str, str]] = []
        self.sent: list[tuple[str, bytes]] = []

    def set_json(self, url: str, response: object | HttpError) -> None:
        self._json[url] = response

    def set_bytes(self, url: str, response: bytes | HttpError) -> None:
        """Set the body served by both ``get_bytes`` and ``download``."""
        self._bytes[url] = response

    def set_post(self, url: str, response: object | HttpError) -> None:
        """Set the JSON answer for ``post_json`` and ``post_bytes``."""
        self._posts[url] = response

    def set_delete(self, url: str, response: None | HttpError = None) -> None:
        self._deletes[url] = response

    def _missing(self, url: str) -> Err[HttpError]:
        return Err(HttpError(url=url, status=404, message="Not found (mock)"))

    def get_json(self, url: str) -> Result[object, HttpError]:
        self.calls.append(("get_json", url))
        if url not in self._json:
            return self._missing(url)
        response = self._json[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def get_bytes(self, url: str, *, accept: str | None = None) -> Result[bytes, HttpError]:
        self.calls.append(("get_bytes", url))
        if url not in self._bytes:
            return self._missing(url)
        response = self._bytes[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
        *,
        accept: str | None = None,
    ) -> Result[Path, HttpError]:
        self.calls.append(("download", url))
        if url not in self._bytes:
            return self._missing(url)
        response = self._bytes[url]
        if isinstance(response, HttpError):
            return Err(response)

        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(response)
        if progress:
            progress(len(response), len(response))
        return Ok(dest)

    def _post(self, url: str) -> Result[object, HttpError]:
        if url not in self._posts:
            return self._missing(url)
        response = self._posts[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def post_json(self, url: str, payload: Mapping[str, object]) -> Result[object, HttpError]:
        self.calls.append(("post_json", url))
        self.sent.append((url, json.dumps(dict(payload), sort_keys=True).encode("utf-8")))
        return self._post(url)

    def post_bytes(
        self,
        url: str,
        data: bytes,
        *,
        content_type: str,
        timeout: float | None = None,
    ) -> Result[object, HttpError]:
        self.calls.append(("post_bytes", url))
        self.sent.append((url, data))
        return self._post(url)

    def delete(self, url: str) -> Result[None, HttpError]:
        self.calls.append(("delete", url))
        if url not in self._deletes:
            return self._missing(url)
        response = self._deletes[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(None)

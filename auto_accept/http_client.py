from __future__ import annotations

import json
import ssl
import urllib.parse
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import HTTPSHandler, Request, build_opener

from .config import AutoAcceptConfig

USER_AGENT = "auto-accept/1.0"


class HttpClientError(Exception):
    pass


def _check_scheme(url: str) -> None:
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise HttpClientError("Only http/https are supported")


def _open(req: Request, *, timeout: float, max_bytes: int) -> tuple[int, str]:
    try:
        ctx = ssl.create_default_context()
        opener = build_opener(HTTPSHandler(context=ctx))
        with opener.open(req, timeout=timeout) as resp:
            body = resp.read(max_bytes + 1)
            if len(body) > max_bytes:
                raise HttpClientError(f"Response exceeded {max_bytes} bytes")
            return int(resp.status), body.decode(errors="replace")
    except HTTPError as exc:
        raise HttpClientError(f"HTTP {exc.code} from {req.full_url}") from exc
    except (TimeoutError, URLError, OSError) as exc:
        raise HttpClientError(str(exc)) from exc


def _decode_json(status: int, body: str) -> dict[str, Any]:
    if status < 200 or status >= 300:
        raise HttpClientError(f"Request failed with status {status}")
    if not body.strip():
        return {}
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise HttpClientError("Response was not valid JSON") from exc
    if not isinstance(data, dict):
        raise HttpClientError("Response JSON was not an object")
    return data


def http_get_json(url: str, config: AutoAcceptConfig, *, timeout: float | None = None) -> dict[str, Any]:
    _check_scheme(url)
    req = Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/json"})
    status, body = _open(req, timeout=timeout or config.http_timeout, max_bytes=config.http_max_bytes)
    return _decode_json(status, body)


def http_post_json(
    url: str, payload: dict[str, Any], config: AutoAcceptConfig, *, timeout: float | None = None
) -> dict[str, Any]:
    _check_scheme(url)
    data = json.dumps(payload or {}, ensure_ascii=False).encode("utf-8")
    req = Request(
        url,
        data=data,
        method="POST",
        headers={
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
            "Content-Length": str(len(data)),
        },
    )
    status, body = _open(req, timeout=timeout or config.http_timeout, max_bytes=config.http_max_bytes)
    return _decode_json(status, body)


def http_get_json_list(url: str, *, timeout: float = 2.0) -> Any:
    """Fetch a CDP discovery document (`/json/list`, `/json/version`)."""
    req = Request(url, headers={"User-Agent": USER_AGENT})
    status, body = _open(req, timeout=timeout, max_bytes=4_000_000)
    if status < 200 or status >= 300:
        raise HttpClientError(f"CDP discovery failed with status {status}")
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise HttpClientError("CDP discovery returned invalid JSON") from exc

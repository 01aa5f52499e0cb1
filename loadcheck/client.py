"""
HTTP access to the target service.

:class:`TargetClient` wraps any ``requests.Session``-compatible object
(Locust's ``HttpSession`` during a run, a plain ``requests.Session`` in
tests and in the pre-run health check) and turns every request into an
:class:`Outcome`.  Transport errors, timeouts and non-JSON bodies never
escape as exceptions; scenarios decide what to record from the outcome.

Also provides the pre-run health check (the only fatal error in a run)
and resolution of authentication header material.

Key Concepts Demonstrated:
- Bounded per-request timeouts so no simulated client blocks forever
- Lenient JSON parsing that tolerates HTML error pages and empty bodies
- Request naming for Locust statistics grouping
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import requests

from loadcheck import metrics
from loadcheck.exceptions import SetupError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "loadcheck/1.0",
}


def safe_json(response: Any) -> dict[str, Any]:
    """
    Return response JSON as dict, or an empty dict if parsing fails.

    Targets under load return non-JSON bodies (proxy error pages, empty
    5xx responses).  Using this wrapper keeps ``ValueError`` out of the
    scenario code, where it would abort the simulated client.
    """
    try:
        data = response.json()
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data
    return {}


@dataclass
class Outcome:
    """
    Result of one request against the target.

    Attributes:
        status: HTTP status code, or ``0`` when no response was received.
        latency_ms: Wall time spent on the request.
        body: Parsed JSON object (``{}`` when the body is not a JSON object).
        text: Raw response body.
        error: Transport error description, if any.
    """

    status: int
    latency_ms: float
    body: dict[str, Any] = field(default_factory=dict)
    text: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def envelope_ok(self) -> bool:
        """True when the body is a ``{success: true, ...}`` envelope."""
        return self.body.get("success") is True

    @property
    def data(self) -> Any:
        return self.body.get("data")


class TargetClient:
    """
    Issue requests against the target's base URL.

    Args:
        session: ``requests.Session`` or Locust ``HttpSession``.
        base_url: Root URL of the target, e.g. ``http://localhost:4000``.
        timeout: Default per-request timeout in seconds.
        headers: Extra headers (authentication) sent with every request.
        label_requests: Pass ``name=`` through to the session so Locust
            groups statistics by endpoint template instead of raw URL.
    """

    def __init__(
        self,
        session: Any,
        base_url: str,
        *,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        label_requests: bool = False,
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self.label_requests = label_requests

    def url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    def request(
        self,
        method: str,
        path: str,
        *,
        name: str | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> Outcome:
        """Send one request and return its :class:`Outcome`; never raises for I/O errors."""
        extra: dict[str, Any] = {}
        if self.label_requests:
            extra["name"] = name or path

        start = time.perf_counter()
        try:
            response = self.session.request(
                method,
                self.url(path),
                headers=self.headers,
                timeout=timeout or self.timeout,
                **extra,
                **kwargs,
            )
        except requests.RequestException as exc:
            latency_ms = (time.perf_counter() - start) * 1000.0
            logger.debug("%s %s failed: %s", method, path, exc)
            return Outcome(status=0, latency_ms=latency_ms, error=str(exc))
        latency_ms = (time.perf_counter() - start) * 1000.0

        # Locust's HttpSession swallows transport errors and reports them
        # as a response with status 0 and an ``error`` attribute.
        error = getattr(response, "error", None)
        status = int(getattr(response, "status_code", 0) or 0)
        return Outcome(
            status=status,
            latency_ms=latency_ms,
            body=safe_json(response) if status else {},
            text=(response.text or "") if status else "",
            error=str(error) if error else None,
        )

    def get(self, path: str, **kwargs: Any) -> Outcome:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Outcome:
        return self.request("POST", path, **kwargs)


def check_target_health(base_url: str, *, timeout: float = 5.0, session: Any = None) -> dict[str, Any]:
    """
    Verify the target is healthy before any stage begins.

    Returns:
        The parsed health body.

    Raises:
        SetupError: If the health endpoint is unreachable or not 200.
    """
    http = session or requests.Session()
    url = urljoin(base_url.rstrip("/") + "/", "api/health")
    try:
        response = http.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise SetupError(base_url, str(exc)) from exc

    if response.status_code != 200:
        raise SetupError(base_url, f"health check returned {response.status_code}")

    body = safe_json(response)
    logger.info("Target %s is healthy: %s", base_url, body.get("status", "unknown"))
    return body


def wait_for_target_healthy(base_url: str, timeout: float = 60, interval: float = 1) -> dict[str, Any]:
    """Poll the health endpoint until it answers 200 or *timeout* elapses."""
    deadline = time.time() + timeout
    last_error: SetupError | None = None
    while time.time() < deadline:
        try:
            return check_target_health(base_url, timeout=min(interval * 2, 5))
        except SetupError as exc:
            last_error = exc
        time.sleep(interval)
    raise last_error or SetupError(base_url, f"not healthy after {timeout}s")


def auth_header(token: str) -> dict[str, str]:
    """Bearer-token header for targets behind token auth."""
    return {"Authorization": f"Bearer {token}"}


def sso_login(
    login_url: str,
    username: str,
    password: str,
    *,
    timeout: float = 10.0,
    session: Any = None,
) -> tuple[str, float]:
    """
    Log in through an SSO endpoint and collect the cookies it sets.

    Returns:
        ``(cookie_header, elapsed_ms)``.  The cookie header is empty when
        the login failed or set no cookies; the caller decides whether to
        continue unauthenticated.
    """
    http = session or requests.Session()
    start = time.perf_counter()
    try:
        response = http.post(
            login_url,
            json={"username": username, "password": password},
            timeout=timeout,
            allow_redirects=True,
        )
    except requests.RequestException as exc:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.error("SSO login to %s failed: %s", login_url, exc)
        return "", elapsed_ms
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    if response.status_code not in (200, 302):
        logger.error("SSO login to %s failed with status %s", login_url, response.status_code)
        return "", elapsed_ms

    cookies = http.cookies.get_dict()
    if not cookies:
        logger.error("SSO login succeeded but no cookies were set")
        return "", elapsed_ms
    return "; ".join(f"{key}={value}" for key, value in cookies.items()), elapsed_ms


def resolve_auth_headers(
    *,
    cookie: str = "",
    token: str = "",
    login_url: str = "",
    username: str = "",
    password: str = "",
    registry: Any = None,
) -> dict[str, str]:
    """
    Turn configured auth material into request headers.

    Precedence: an explicit cookie, then SSO auto-login (when a login URL
    and credentials are configured), then a bearer token.  SSO login time
    is recorded into the ``sso_auth_time`` trend when a registry is given.
    """
    headers: dict[str, str] = {}
    if not cookie and login_url and username and password:
        cookie, elapsed_ms = sso_login(login_url, username, password)
        if registry is not None:
            registry.trend(metrics.SSO_AUTH_TIME).add(elapsed_ms)
        if not cookie:
            logger.warning("SSO login failed; continuing without authentication")

    if cookie:
        headers["Cookie"] = cookie
    if token:
        headers.update(auth_header(token))
    return headers

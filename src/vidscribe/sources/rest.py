"""Shared httpx plumbing for the REST-backed providers."""

from __future__ import annotations

import httpx

from vidscribe.sources.base import FatalInput, Outcome, TransientFailure

USER_AGENT = "vidscribe/0.4"


def make_client(timeout_seconds: float, **kwargs) -> httpx.Client:
    """Client with call-scoped timeouts; expiry surfaces as httpx.TimeoutException."""
    return httpx.Client(
        timeout=httpx.Timeout(timeout_seconds, connect=min(10.0, timeout_seconds)),
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
        **kwargs,
    )


def outcome_for_status(response: httpx.Response, service: str) -> Outcome | None:
    """Map an unsuccessful HTTP status to an Outcome; None for 2xx."""
    status = response.status_code
    if response.is_success:
        return None
    if status == 429:
        return TransientFailure(f"{service} rate limit exceeded (429)")
    if status >= 500:
        return TransientFailure(f"{service} server error ({status})")
    if status in (401, 403):
        return FatalInput(f"{service} rejected credentials or access ({status})")
    if status == 404:
        return FatalInput(f"{service} resource not found (404)")
    return FatalInput(f"{service} request rejected ({status}): {response.text[:200]}")


def outcome_for_exception(exc: httpx.HTTPError, service: str) -> Outcome:
    if isinstance(exc, httpx.TimeoutException):
        return TransientFailure(f"{service} request timed out")
    if isinstance(exc, httpx.TransportError):
        return TransientFailure(f"{service} network error: {exc}")
    return FatalInput(f"{service} request failed: {exc}")

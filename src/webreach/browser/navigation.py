"""Resilient page navigation with wait-strategy fallback and abort recovery.

Many sites never reach ``networkidle`` because of persistent connections or
long-polling analytics.  ``resilient_goto`` tries ``networkidle`` first and
falls back to ``load`` then ``domcontentloaded`` on timeout.

Redirect chains and client-side routers frequently abort the original
navigation (``net::ERR_ABORTED``) even though the page ends up loaded.  An
abort is therefore not a failure until the final URL has been checked.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Literal

from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from webreach.exceptions import NavigationAborted

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger(__name__)

# Playwright error substrings that indicate non-retryable navigation failures.
_NON_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_SSL_PROTOCOL_ERROR",
    "ERR_CERT_AUTHORITY_INVALID",
    "ERR_CERT_COMMON_NAME_INVALID",
    "ERR_ADDRESS_UNREACHABLE",
    "ERR_INTERNET_DISCONNECTED",
)

_ABORTED = "ERR_ABORTED"
ABORT_SETTLE_S = 0.5

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["networkidle", "load", "domcontentloaded"]


def normalize_url(url: str) -> str:
    """Prefix ``https://`` when *url* carries no scheme."""
    url = url.strip()
    if not url:
        raise ValueError("URL must not be empty")
    if url.startswith(("http://", "https://", "about:", "file://", "data:")):
        return url
    return f"https://{url}"


def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "networkidle",
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Navigate to *url* and return the final URL.

    Tries *wait_until* first (default ``networkidle``).  If that times out,
    retries with progressively less strict strategies using the same timeout
    for each attempt.  When the navigation is aborted, waits briefly and
    accepts whatever the page settled on, unless that is ``about:blank``.

    Args:
        page: Playwright page instance.
        url: Target URL; ``https://`` is assumed when no scheme is given.
        timeout_ms: Timeout per attempt in milliseconds.
        wait_until: Preferred initial wait strategy.
        sleep: Sleep function (injectable for tests).

    Returns:
        The page URL after navigation.

    Raises:
        NavigationAborted: Non-retryable network failure, or an abort whose
            final URL never settled.
        PlaywrightTimeout: If all fallback strategies time out.
    """
    target = normalize_url(url)
    strategies = _build_fallback_chain(wait_until)

    last_error: PlaywrightTimeout | None = None
    for strategy in strategies:
        try:
            logger.debug("goto %s (wait_until=%s, timeout=%dms)", target, strategy, timeout_ms)
            page.goto(target, wait_until=strategy, timeout=timeout_ms)
            return page.url
        except PlaywrightError as exc:
            error_msg = str(exc)
            if _ABORTED in error_msg:
                return _recover_aborted(page, target, exc, sleep)
            for pattern in _NON_RETRYABLE_ERRORS:
                if pattern in error_msg:
                    reason = pattern.replace("ERR_", "").replace("_", " ").lower()
                    logger.warning("Navigation to %s failed (non-retryable): %s", target, pattern)
                    raise NavigationAborted(target, reason) from exc
            if isinstance(exc, PlaywrightTimeout):
                logger.warning(
                    "Navigation to %s timed out with wait_until=%s; retrying with weaker strategy",
                    target,
                    strategy,
                )
                last_error = exc
            else:
                raise

    raise last_error  # type: ignore[misc]


def _recover_aborted(page: Page, target: str, exc: PlaywrightError, sleep: Callable[[float], None]) -> str:
    sleep(ABORT_SETTLE_S)
    final_url = page.url
    if final_url and final_url != "about:blank":
        logger.info("Navigation to %s aborted but settled on %s", target, final_url)
        return final_url
    logger.warning("Navigation to %s aborted and the page stayed blank", target)
    raise NavigationAborted(target, "aborted before any document loaded") from exc


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*.

    If *preferred* is in the default chain, returns from that point onward.
    Otherwise returns ``[preferred]`` followed by the full default chain.
    """
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]

"""
HTTP fetching module for the tracker.
Fetches one Scholar profile page and returns the raw body.
No retries here; a failed profile is skipped for the cycle by the orchestrator.
"""

import time
from urllib.parse import urlparse

import requests

from scholar.core import (
    USER_AGENT, ACCEPT, ACCEPT_LANGUAGE, REQUEST_TIMEOUT, BROTLI_AVAILABLE, logger
)
from scholar.errors import InvalidURL, NetworkError, InvalidResponse

# Interstitials served with a 200 status when the source decides we are a bot
BLOCK_MARKERS = (
    "unusual traffic",
    "not a robot",
    "solve the captcha",
    "our systems have detected",
    "/sorry/index",
)

# Present on every rendered profile page
PROFILE_MARKERS = ("gsc_rsb", "gsc_prf")


def build_headers():
    """Browser-like request headers."""
    return {
        "User-Agent": USER_AGENT,
        "Accept": ACCEPT,
        "Accept-Language": ACCEPT_LANGUAGE,
        "Accept-Encoding": "gzip, deflate, br" if BROTLI_AVAILABLE else "gzip, deflate",
    }


def looks_like_block_page(html, final_url=None):
    """
    A redirect to the /sorry/ endpoint is always a block. Otherwise a page is blocked
    only when it carries no profile markup and mentions a captcha marker.
    """
    if isinstance(final_url, str) and "/sorry/" in final_url:
        return True
    text = html.lower()
    if any(marker in text for marker in PROFILE_MARKERS):
        return False
    return "captcha" in text or any(marker in text for marker in BLOCK_MARKERS)


def fetch(url, timeout=REQUEST_TIMEOUT, session=None):
    """
    Fetch a profile page.
    Returns the response body as bytes, guaranteed to decode as UTF-8.
    Raises InvalidURL, NetworkError (timeout, connection, non-200, blocked) or InvalidResponse.
    """
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidURL(detail=str(url))

    http = session or requests
    start_time = time.time()
    try:
        r = http.get(
            url,
            timeout=timeout,
            headers=build_headers(),
            allow_redirects=True,
        )
    except requests.exceptions.Timeout as e:
        raise NetworkError(detail=f"timeout after {timeout}s") from e
    except requests.exceptions.RequestException as e:
        raise NetworkError(detail=str(e)) from e

    fetch_time_ms = int((time.time() - start_time) * 1000)
    logger.info(
        f"[FETCH] {url} -> HTTP {r.status_code} ({len(r.content)} bytes, {fetch_time_ms}ms)",
        extra={'context': 'fetcher'},
    )

    if r.status_code != 200:
        raise NetworkError(detail=f"HTTP {r.status_code}")

    body = r.content
    try:
        html = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidResponse(detail="body is not valid UTF-8") from e

    if looks_like_block_page(html, getattr(r, "url", None)):
        raise NetworkError(detail="request was blocked by the source (captcha page)")

    logger.debug(f"[FETCH] HTML preview: {html[:500]!r}", extra={'context': 'fetcher'})
    return body

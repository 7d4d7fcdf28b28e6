"""HTTP fetcher for the GitHub API and raw file host.

All network I/O against the document host goes through a single Fetcher
instance shared across tool calls. The Fetcher receives an httpx.AsyncClient
via constructor injection; the lifespan owns the client lifecycle.
"""

from __future__ import annotations

import ipaddress
import json
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin, urlparse

import httpx
import structlog

from openstax_mcp import __version__
from openstax_mcp.errors import ErrorCode, OpenStaxError

if TYPE_CHECKING:
    from openstax_mcp.config import GitHubSettings

log = structlog.get_logger()

GITHUB_JSON_ACCEPT = "application/vnd.github.v3+json"

PRIVATE_NETWORKS: list[ipaddress.IPv4Network | ipaddress.IPv6Network] = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
]


def build_http_client(timeout_seconds: float = 30.0) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(timeout_seconds),
        headers={"User-Agent": f"openstax-mcp/{__version__}"},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


def _base_domain(hostname: str) -> str:
    """Return the last two DNS labels: ``'api.github.com'`` → ``'github.com'``."""
    parts = hostname.rstrip(".").split(".")
    return ".".join(parts[-2:]) if len(parts) >= 2 else hostname


def build_allowlist(settings: GitHubSettings) -> frozenset[str]:
    """Base domains the fetcher may contact, derived from the configured hosts."""
    base_domains: set[str] = set()
    for url in (settings.api_url, settings.raw_url):
        hostname = urlparse(url).hostname or ""
        if hostname:
            base_domains.add(_base_domain(hostname))
    return frozenset(base_domains)


def is_url_allowed(url: str, allowlist: frozenset[str]) -> bool:
    """Check whether a URL is permitted by the allowlist.

    Private IP ranges are blocked unconditionally, regardless of allowlist.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    hostname = parsed.hostname or ""

    try:
        addr = ipaddress.ip_address(hostname)
        if any(addr in net for net in PRIVATE_NETWORKS):
            return False
    except ValueError:
        pass  # hostname is a domain name, not an IP, so proceed to allowlist check

    return _base_domain(hostname) in allowlist


class Fetcher:
    """Fetches GitHub API listings and raw files with per-hop host validation."""

    def __init__(self, client: httpx.AsyncClient, settings: GitHubSettings) -> None:
        self._client = client
        self._settings = settings
        self._allowlist = build_allowlist(settings)
        self._api_host = urlparse(settings.api_url).hostname

    async def fetch_json(self, url: str) -> Any:
        """Fetch a GitHub API URL and decode its JSON body."""
        text = await self.fetch_text(url, accept=GITHUB_JSON_ACCEPT)
        try:
            return json.loads(text)
        except ValueError as exc:
            raise OpenStaxError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"Invalid JSON returned by {url}",
                suggestion="The GitHub API may be temporarily unavailable.",
                recoverable=True,
            ) from exc

    async def fetch_text(
        self,
        url: str,
        *,
        accept: str | None = None,
        max_redirects: int = 3,  # Implementation detail, not part of FetcherProtocol
    ) -> str:
        """Fetch a URL, following redirects only within the allowlist.

        Returns the response text on success. Raises OpenStaxError on disallowed
        hosts, network errors, and non-2xx responses. Never retries.
        """
        current_url = url

        try:
            for hop in range(max_redirects + 1):
                if not is_url_allowed(current_url, self._allowlist):
                    log.warning("fetch_blocked", url=current_url, reason="not_in_allowlist")
                    raise OpenStaxError(
                        code=ErrorCode.URL_NOT_ALLOWED,
                        message=f"URL not in allowlist: {current_url}",
                        suggestion="Only the configured GitHub hosts may be contacted.",
                    )

                response = await self._client.get(
                    current_url, headers=self._headers_for(current_url, accept)
                )

                if response.is_redirect and "location" in response.headers:
                    if hop == max_redirects:
                        raise OpenStaxError(
                            code=ErrorCode.UPSTREAM_FETCH_FAILED,
                            message=f"Too many redirects fetching {url}",
                            suggestion="The upstream URL has an unusually long redirect chain.",
                        )
                    current_url = urljoin(current_url, response.headers["location"])
                    continue

                if not response.is_success:
                    if response.status_code == 404:
                        raise OpenStaxError(
                            code=ErrorCode.UPSTREAM_NOT_FOUND,
                            message=f"HTTP 404 fetching {url}",
                            suggestion="Check the textbook and module ids.",
                        )
                    raise OpenStaxError(
                        code=ErrorCode.UPSTREAM_FETCH_FAILED,
                        message=f"HTTP {response.status_code} fetching {url}",
                        suggestion="GitHub may be rate limiting or temporarily unavailable.",
                        recoverable=True,
                    )

                log.info(
                    "fetch_complete",
                    url=url,
                    status_code=response.status_code,
                    content_length=len(response.text),
                )
                return response.text

        except OpenStaxError:
            raise
        except httpx.HTTPError as exc:
            raise OpenStaxError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
                suggestion="GitHub may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        # Unreachable but satisfies the type checker
        raise OpenStaxError(
            code=ErrorCode.UPSTREAM_FETCH_FAILED,
            message="Redirect loop",
        )

    def _headers_for(self, url: str, accept: str | None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if accept:
            headers["Accept"] = accept
        # The token is only ever sent to the API host, never to redirect targets.
        if self._settings.token and urlparse(url).hostname == self._api_host:
            headers["Authorization"] = f"Bearer {self._settings.token}"
        return headers

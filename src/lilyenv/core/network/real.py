"""Production network implementation using requests."""

import logging
from pathlib import Path
from typing import Any

import requests

from lilyenv import __version__
from lilyenv.core.catalog import CatalogEntry, ReleaseAsset, build_catalog
from lilyenv.core.errors import CatalogUnavailable, DownloadFailed
from lilyenv.core.network.abc import Network

logger = logging.getLogger(__name__)

GITHUB_REPO = "astral-sh/python-build-standalone"
RELEASES_URL = f"https://api.github.com/repos/{GITHUB_REPO}/releases"
# Older releases use archive names without a release tag separator
OLDEST_RELEASE = "2022-02-26T00:00:00Z"
CHUNK_SIZE = 1 << 20


def _asset_from_json(data: dict[str, Any]) -> ReleaseAsset:
    digest = data.get("digest") or ""
    sha256 = digest.removeprefix("sha256:") if digest.startswith("sha256:") else None
    return ReleaseAsset(
        name=data["name"],
        url=data["browser_download_url"],
        sha256=sha256,
        size=data.get("size"),
    )


class RealNetwork(Network):
    """Fetches python-build-standalone releases from the GitHub API."""

    def __init__(
        self,
        *,
        timeout: float,
        releases: int,
        token: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._timeout = timeout
        self._releases = releases
        self._token = token
        self._session = session if session is not None else requests.Session()
        self._session.headers["User-Agent"] = f"lilyenv/{__version__}"

    def _api_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def fetch_catalog(self, platform: str) -> list[CatalogEntry]:
        logger.debug("Fetching %d releases of %s", self._releases, GITHUB_REPO)
        try:
            response = self._session.get(
                RELEASES_URL,
                params={"per_page": self._releases},
                headers=self._api_headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise CatalogUnavailable(f"Could not fetch the list of Python builds: {e}") from e

        if response.status_code in (403, 429):
            raise CatalogUnavailable(
                "GitHub rate limit reached while listing Python builds.\n"
                "Set GITHUB_TOKEN (or github_token in the lilyenv config) and retry."
            )
        if not response.ok:
            raise CatalogUnavailable(
                f"Could not fetch the list of Python builds: HTTP {response.status_code}"
            )

        try:
            releases = response.json()
            assets = [
                _asset_from_json(asset)
                for release in releases
                if release.get("created_at", "") > OLDEST_RELEASE
                for asset in release.get("assets", [])
            ]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CatalogUnavailable(f"Unexpected response listing Python builds: {e}") from e

        return build_catalog(assets, platform)

    def download(self, url: str, destination: Path) -> None:
        logger.debug("Downloading %s to %s", url, destination)
        try:
            with self._session.get(url, stream=True, timeout=self._timeout) as response:
                response.raise_for_status()
                with destination.open("wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        f.write(chunk)
        except requests.RequestException as e:
            raise DownloadFailed(f"Failed to fetch {url}: {e}") from e

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

import humanfriendly
import requests
import requests.adapters

from rocky_wsl.context import Ask
from rocky_wsl.errors import FetchFailure

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveAsset:
    url: str
    local_path: Path
    exists: bool
    overwrite_consent: bool | None = None


@dataclass(frozen=True)
class AssetReady:
    asset: ArchiveAsset
    downloaded: bool

    ok = True


@dataclass(frozen=True)
class DownloadError:
    asset: ArchiveAsset
    reason: str

    ok = False


FetchResult = AssetReady | DownloadError


class Fetcher:
    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        retry_strategy = requests.adapters.Retry(
            total=10,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
        )
        adapter = requests.adapters.HTTPAdapter(max_retries=retry_strategy)
        self.session = requests.Session()
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def fetch_to(self, url: str, path: Path) -> None:
        """Download url to path, replacing whatever is there only once the download completes."""
        if self.dry_run:
            _LOGGER.info("Would fetch %s to %s but in dry-run mode", url, path)
            return

        _LOGGER.debug("Fetching %s", url)
        request = self.session.get(url, stream=True, allow_redirects=True)
        if not request.ok:
            _LOGGER.error("Failed to fetch %s: %s", url, request)
            raise FetchFailure(f"Fetch failure for {url}: {request}")

        fetched = 0
        length = int(request.headers.get("content-length", 0))
        _LOGGER.info("Fetching %s (%s)", url, humanfriendly.format_size(length, binary=True) if length else "unknown size")
        report_every_secs = 5
        report_time = time.time() + report_every_secs
        partial = path.with_name(path.name + ".part")
        try:
            with partial.open("wb") as fd:
                for chunk in request.iter_content(chunk_size=4 * 1024 * 1024):
                    fd.write(chunk)
                    fetched += len(chunk)
                    now = time.time()
                    if now >= report_time:
                        if length != 0:
                            _LOGGER.info("%.1f%% of %s...", 100.0 * fetched / length, url)
                        report_time = now + report_every_secs
            os.replace(partial, path)
        finally:
            partial.unlink(missing_ok=True)
        _LOGGER.info("100%% of %s (%s)", url, humanfriendly.format_size(fetched, binary=True))


def fetch_asset(fetcher: Fetcher, url: str, local_path: Path, ask: Ask) -> FetchResult:
    """Make sure the archive at url is available at local_path.

    An existing copy is kept unless the operator answers exactly "y". Download
    problems are reported in the returned DownloadError, never raised.
    """
    asset = ArchiveAsset(url=url, local_path=local_path, exists=local_path.exists())
    if asset.exists:
        answer = ask(f"{local_path} already exists. Overwrite it? (y/n)")
        asset = ArchiveAsset(url=url, local_path=local_path, exists=True, overwrite_consent=answer.strip() == "y")
        if not asset.overwrite_consent:
            _LOGGER.info("Keeping existing %s", local_path)
            return AssetReady(asset=asset, downloaded=False)
        _LOGGER.info("Overwriting existing %s", local_path)

    try:
        fetcher.fetch_to(url, local_path)
    except (FetchFailure, requests.RequestException, OSError) as e:
        _LOGGER.warning("Download of %s failed: %s", url, e)
        return DownloadError(asset=asset, reason=str(e))
    return AssetReady(asset=asset, downloaded=True)

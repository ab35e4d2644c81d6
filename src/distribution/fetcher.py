"""
HTTP fetching with content verification.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Optional

import httpx

from src.catalog.models import compute_file_hash
from .config import DistributionConfig
from .exceptions import DownloadError, IntegrityError

logger = logging.getLogger(__name__)


class Fetcher:
    """
    Downloads files over HTTP and verifies them against expected hashes.

    The underlying httpx client is shared by all threads using the fetcher.

    Usage:
        with Fetcher(config=config) as fetcher:
            fetcher.fetch_with_verification(url, dest, sha1)
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        config: Optional[DistributionConfig] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            client: HTTP client to use (a new one is created if omitted)
            config: Distribution configuration
        """
        self.config = config or DistributionConfig()
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=self.config.http_timeout,
            follow_redirects=True,
        )

    def get_json(self, url: str) -> Any:
        """
        GET a URL and decode its JSON body.

        Raises:
            DownloadError: On transport errors or non-2xx responses
        """
        try:
            response = self._client.get(url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                f"GET {url} failed: HTTP {e.response.status_code}",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(f"GET {url} failed: {e}", url=url) from e

    def fetch_with_verification(
        self,
        url: str,
        dest: Path,
        expected_hash: Optional[str] = None,
        algorithm: str = "sha1",
    ) -> bool:
        """
        Download a file unless an acceptable copy already exists.

        An existing destination is kept, without any network traffic, when
        no hash is expected or its hash matches. Otherwise the body is
        streamed to ``<dest>.part``, verified, then renamed into place.

        Args:
            url: Source URL
            dest: Destination path
            expected_hash: Expected hex digest, if known
            algorithm: Hash algorithm of expected_hash

        Returns:
            True if a download happened, False if the existing file was kept

        Raises:
            IntegrityError: If the downloaded content does not match
            DownloadError: On transport errors or non-2xx responses
        """
        dest = Path(dest)
        expected = expected_hash.lower() if expected_hash else None

        if dest.is_file():
            if expected is None:
                return False
            if compute_file_hash(dest, algorithm) == expected:
                return False
            logger.info(f"Existing file {dest.name} does not match expected hash, downloading again")

        dest.parent.mkdir(parents=True, exist_ok=True)
        part = dest.with_name(dest.name + ".part")
        hasher = hashlib.new(algorithm)

        try:
            with self._client.stream("GET", url) as response:
                response.raise_for_status()
                with open(part, "wb") as f:
                    for chunk in response.iter_bytes():
                        hasher.update(chunk)
                        f.write(chunk)
        except httpx.HTTPStatusError as e:
            part.unlink(missing_ok=True)
            raise DownloadError(
                f"Download of {url} failed: HTTP {e.response.status_code}",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            part.unlink(missing_ok=True)
            raise DownloadError(f"Download of {url} failed: {e}", url=url) from e

        actual = hasher.hexdigest()
        if expected is not None and actual != expected:
            part.unlink(missing_ok=True)
            raise IntegrityError(dest, expected, actual)

        os.replace(part, dest)
        logger.debug(f"Downloaded {url} -> {dest}")
        return True

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

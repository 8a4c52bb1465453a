"""
Dataset download.

Fetches the free LITE editions of the shipped datasets into the data
directory, in the layout the loader expects. Each vendor needs a download
credential; datasets whose credential is not configured are skipped.
"""

import os
import shutil
import logging
import tarfile
import zipfile
from pathlib import Path
from typing import BinaryIO, Dict, Optional

import requests

from ..config import config
from ..security import security
from .ip2location import IP2LOCATION_IPV6_PATH, IP2LOCATION_PATH, IP2PROXY_IPV6_PATH, IP2PROXY_PATH
from .maxmind import ASN_DB_NAME, CITY_DB_NAME

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 16

# edition id -> file name in the data directory
MAXMIND_EDITIONS = {
    'GeoLite2-City': CITY_DB_NAME,
    'GeoLite2-ASN': ASN_DB_NAME,
}

# download file code -> path relative to the data directory
IP2LOCATION_FILES = {
    'PX12LITECSV': IP2PROXY_PATH,
    'DB11LITECSV': IP2LOCATION_PATH,
    'PX12LITECSVIPV6': IP2PROXY_IPV6_PATH,
    'DB11LITECSVIPV6': IP2LOCATION_IPV6_PATH,
}


class DatasetFetchError(Exception):
    """A dataset archive could not be downloaded or unpacked."""


class DatasetFetcher:
    """Downloads and installs dataset files."""

    def __init__(self, data_dir: Optional[Path] = None, timeout: Optional[float] = None):
        """
        Initialize the fetcher.

        Args:
            data_dir: Destination directory (default: configured data dir)
            timeout: Per-request timeout in seconds (default: configured)
        """
        self.data_dir = Path(data_dir) if data_dir is not None else config.get_data_dir()
        self.timeout = timeout if timeout is not None else config.get_request_timeout()
        self.headers = {'User-Agent': 'ipgate/3.0'}

    def fetch_all(self) -> Dict[str, bool]:
        """
        Download every dataset whose credential is configured.

        Returns:
            Dataset name -> True if it was downloaded and installed
        """
        outcome: Dict[str, bool] = {}

        license_key = config.get_api_key('maxmind')
        for edition in MAXMIND_EDITIONS:
            if not license_key:
                logger.info(f"MaxMind license key not configured; skipping {edition}")
                outcome[edition] = False
                continue
            outcome[edition] = self._attempt(edition, lambda e=edition: self.fetch_maxmind(e, license_key))

        token = config.get_api_key('ip2location')
        for file_code in IP2LOCATION_FILES:
            if not token:
                logger.info(f"IP2Location token not configured; skipping {file_code}")
                outcome[file_code] = False
                continue
            outcome[file_code] = self._attempt(file_code, lambda c=file_code: self.fetch_ip2location(c, token))

        return outcome

    def _attempt(self, name: str, fetch) -> bool:
        try:
            path = fetch()
        except (DatasetFetchError, requests.exceptions.RequestException, OSError) as e:
            logger.error(f"Failed to fetch {name}: {security.sanitize_error_message(str(e), '')}")
            return False
        logger.info(f"{name} installed at {path}")
        return True

    def fetch_maxmind(self, edition: str, license_key: str) -> Path:
        """
        Download a GeoLite2 edition and install its .mmdb file.

        Args:
            edition: Edition id, e.g. 'GeoLite2-City'
            license_key: MaxMind license key

        Returns:
            Path of the installed database

        Raises:
            DatasetFetchError: If the archive is invalid or holds no database
        """
        url = self._endpoint('maxmind')
        params = {'edition_id': edition, 'license_key': license_key, 'suffix': 'tar.gz'}
        archive_path = self._archive_path(edition)

        try:
            self._download(url, params, archive_path)
            try:
                with tarfile.open(archive_path, mode='r:gz') as archive:
                    for member in archive:
                        if not (member.isfile() and member.name.endswith('.mmdb')):
                            continue
                        extracted = archive.extractfile(member)
                        if extracted is None:
                            continue
                        with extracted:
                            return self._install(MAXMIND_EDITIONS[edition], extracted)
            except tarfile.TarError as e:
                raise DatasetFetchError(f"{edition}: invalid archive ({e})") from e
        finally:
            self._discard(archive_path)

        raise DatasetFetchError(f"{edition}: archive holds no .mmdb file")

    def fetch_ip2location(self, file_code: str, token: str) -> Path:
        """
        Download an IP2Location LITE CSV archive and install the CSV.

        Args:
            file_code: Download code, e.g. 'DB11LITECSV'
            token: IP2Location download token

        Returns:
            Path of the installed CSV file

        Raises:
            DatasetFetchError: If the service refused the download or the
                archive holds no CSV
        """
        url = self._endpoint('ip2location')
        relative_path = IP2LOCATION_FILES[file_code]
        expected_name = Path(relative_path).name.upper()
        archive_path = self._archive_path(file_code)

        try:
            self._download(url, {'token': token, 'file': file_code}, archive_path)

            # Refusals come back as a short plain-text body with status 200
            with open(archive_path, 'rb') as handle:
                head = handle.read(100)
            if not head.startswith(b'PK'):
                message = head.decode('utf-8', errors='replace').strip()
                raise DatasetFetchError(f"{file_code}: download refused ({message})")

            try:
                with zipfile.ZipFile(archive_path) as archive:
                    for info in archive.infolist():
                        if Path(info.filename).name.upper() == expected_name:
                            with archive.open(info) as member:
                                return self._install(relative_path, member)
            except zipfile.BadZipFile as e:
                raise DatasetFetchError(f"{file_code}: invalid archive ({e})") from e
        finally:
            self._discard(archive_path)

        raise DatasetFetchError(f"{file_code}: archive holds no {expected_name}")

    def _endpoint(self, service: str) -> str:
        url = config.get_endpoint_url(service)
        if not url:
            raise DatasetFetchError(f"No secure endpoint available for {service}")
        return url

    def _archive_path(self, name: str) -> Path:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir / f".{name}.download"

    def _download(self, url: str, params: Dict[str, str], destination: Path) -> None:
        """Stream a response body to destination."""
        with requests.get(url, params=params, headers=self.headers,
                          timeout=self.timeout, stream=True) as response:
            response.raise_for_status()
            with open(destination, 'wb') as handle:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    handle.write(chunk)

    def _install(self, relative_path: str, source: BinaryIO) -> Path:
        """Copy source under the data directory, replacing any previous file atomically."""
        target = self.data_dir / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        temporary = target.with_name(target.name + '.part')
        try:
            with open(temporary, 'wb') as handle:
                shutil.copyfileobj(source, handle, CHUNK_SIZE)
            os.replace(temporary, target)
        finally:
            self._discard(temporary)
        return target

    @staticmethod
    def _discard(path: Path) -> None:
        if path.exists():
            path.unlink()

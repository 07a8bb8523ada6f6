# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Thin client for the Store submission REST API.

Key Features:

- **Retrying session** - Transient failures on idempotent requests are
  retried with exponential backoff by the session's adapter
- **Bearer auth** - Every API request asks the token provider for a
  (cached) access token
- **Paged reads** - Collection endpoints are followed through @nextLink
  and their ``value`` arrays concatenated
- **Blob upload** - Payload archives are PUT to the submission's
  fileUploadUrl as a block blob

All HTTP and decoding failures are raised as NetworkError.

Example:
    ```python
    from storepkgtool.store import StoreClient, TokenProvider

    client = StoreClient(
        "https://manage.devcenter.microsoft.com/v1.0/my/",
        TokenProvider(),
    )
    app = client.invoke_api("GET", "applications/9NBLGGH4R315")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from storepkgtool import __version__
from storepkgtool.exceptions import NetworkError
from storepkgtool.logging import get_global_logger

DEFAULT_TIMEOUT = 60
UPLOAD_TIMEOUT = 3600
BLOB_API_VERSION = "2019-12-12"


class AccessTokenSource(Protocol):
    def get_token(self) -> str: ...


def make_session() -> requests.Session:
    """
    Create a requests.Session with retry/backoff defaults.

    - Retries on common transient status codes.
    - Applies exponential backoff.
    - Only idempotent methods are retried; a retried POST could create a
      second submission.
    """
    s = requests.Session()
    retries = Retry(
        total=5,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD", "PUT", "DELETE"),
        raise_on_status=False,
    )
    s.headers.update({"User-Agent": f"storepkgtool/{__version__}"})
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


class StoreClient:
    """Calls the Store submission API on behalf of one account."""

    def __init__(
        self,
        base_url: str,
        token_provider: AccessTokenSource,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.token_provider = token_provider
        self.session = session or make_session()

    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token_provider.get_token()}",
            "Content-Type": "application/json",
        }

    def invoke_api(self, method: str, path: str, body: Any = None) -> Any:
        """Call one API endpoint and return its decoded JSON (or None).

        Args:
            method: HTTP method.
            path: Path relative to the API base URL.
            body: JSON-serializable request body.

        Raises:
            NetworkError: On connection failures, non-2xx responses or an
                undecodable response body.
        """
        logger = get_global_logger()
        url = self._url(path)
        logger.verbose("API", f"{method} {url}")

        try:
            response = self.session.request(
                method, url, headers=self._headers(), json=body, timeout=DEFAULT_TIMEOUT
            )
            response.raise_for_status()
        except requests.HTTPError as err:
            detail = err.response.text[:500] if err.response is not None else ""
            raise NetworkError(f"{method} {path} failed: {err} {detail}".rstrip()) from err
        except requests.RequestException as err:
            raise NetworkError(f"{method} {path} failed: {err}") from err

        logger.debug("API", f"{response.status_code} {response.reason}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as err:
            raise NetworkError(f"{method} {path}: response is not JSON") from err

    def invoke_api_paged(self, path: str) -> list[Any]:
        """GET a collection endpoint, following @nextLink across pages."""
        items: list[Any] = []
        next_path: str | None = path
        while next_path:
            page = self.invoke_api("GET", next_path) or {}
            items.extend(page.get("value", []))
            next_path = page.get("@nextLink")
        return items

    def upload_file(self, local_path: Path, destination_uri: str) -> None:
        """Upload a file to a blob URL (SAS-signed, so no bearer token).

        Raises:
            NetworkError: If the upload fails.
        """
        logger = get_global_logger()
        local_path = Path(local_path)
        size = local_path.stat().st_size
        logger.verbose("API", f"Uploading {local_path.name} ({size} bytes)")

        headers = {
            "x-ms-blob-type": "BlockBlob",
            "x-ms-version": BLOB_API_VERSION,
            "Content-Length": str(size),
        }
        try:
            with local_path.open("rb") as f:
                response = self.session.put(
                    destination_uri, data=f, headers=headers, timeout=UPLOAD_TIMEOUT
                )
            response.raise_for_status()
        except requests.RequestException as err:
            raise NetworkError(f"Upload of {local_path.name} failed: {err}") from err

        logger.verbose("API", f"Upload complete: {response.status_code}")

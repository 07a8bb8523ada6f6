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

"""Access tokens for the Store submission API.

Credentials are read from STOREPKG_* environment variables (optionally from
a .env file). Tenant and client id can also come from the config's store
section; the client secret only ever comes from the environment or an
interactive prompt.
"""

from __future__ import annotations

import getpass
import os
import time

from dotenv import load_dotenv
import requests

from storepkgtool.exceptions import ConfigError, NetworkError

TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
STORE_SCOPE = "https://manage.devcenter.microsoft.com/.default"


class TokenProvider:
    """
    Manages a cached client-credentials access token for the Store API,
    refreshed automatically when it is about to expire.
    """

    def __init__(
        self,
        tenant_id: str | None = None,
        client_id: str | None = None,
        *,
        env_prefix: str = "STOREPKG_",
        refresh_margin: int = 60,
        session: requests.Session | None = None,
    ) -> None:
        """
        :param tenant_id: Azure AD tenant; falls back to <prefix>TENANT_ID.
        :param client_id: App registration id; falls back to <prefix>CLIENT_ID.
        :param env_prefix: Prefix used for environment variables.
        :param refresh_margin: Seconds before real expiry when we proactively refresh.
        :param session: HTTP session for the token request.
        """
        load_dotenv()
        self.env_prefix = env_prefix
        self.refresh_margin = refresh_margin
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._session = session or requests.Session()
        self._token: str | None = None
        self._token_expires_at: int | None = None  # UNIX epoch

    def _env(self, key: str) -> str:
        full_key = f"{self.env_prefix}{key}"
        value = os.getenv(full_key)
        if value is None:
            raise ConfigError(f"Missing required environment variable: {full_key}")
        return value

    def get_tenant_id(self) -> str:
        return self._tenant_id or self._env("TENANT_ID")

    def get_client_id(self) -> str:
        return self._client_id or self._env("CLIENT_ID")

    def get_client_secret(self) -> str:
        try:
            return self._env("CLIENT_SECRET")
        except ConfigError:
            return getpass.getpass("Enter your client secret: ")

    def _token_expired(self) -> bool:
        if self._token is None or self._token_expires_at is None:
            return True
        return time.time() >= (self._token_expires_at - self.refresh_margin)

    def _fetch_token(self) -> None:
        url = TOKEN_URL.format(tenant=self.get_tenant_id())
        data = {
            "client_id": self.get_client_id(),
            "client_secret": self.get_client_secret(),
            "grant_type": "client_credentials",
            "scope": STORE_SCOPE,
        }

        try:
            response = self._session.post(url, data=data, timeout=30)
            response.raise_for_status()
            token_data = response.json()
        except (requests.RequestException, ValueError) as err:
            raise NetworkError(f"Failed to obtain an access token: {err}") from err

        self._token = token_data["access_token"]
        expires_in = int(token_data.get("expires_in", 0))
        self._token_expires_at = int(time.time()) + expires_in

    def get_token(self) -> str:
        """
        Returns a valid access token, refreshing it when necessary.
        """
        if self._token_expired():
            self._fetch_token()
        return self._token  # type: ignore[return-value]

"""Sprout Social API client.

Read-only access to profile and post analytics for the brand's connected
profiles. Authenticates with a static API token when one is configured, else
exchanges OAuth client credentials for a short-lived token held in an
injected TokenCache. Rate-limited requests (429) are retried with
exponential backoff; every other failure raises SproutAPIError.
"""

import asyncio
import base64
import binascii
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx

from config import Settings, get_settings
from schemas.sprout import SproutPostRow, SproutProfile, SproutProfileAnalyticsRow
from services.token_cache import MemoryTokenCache, TokenCache

logger = logging.getLogger(__name__)

MAX_RETRIES = 5
INITIAL_BACKOFF_SECONDS = 1.0
TOKEN_EXPIRY_MARGIN_SECONDS = 60
PROFILE_BATCH_SIZE = 2  # 2 profiles x 365 days stays under the 1000-row page limit
PROFILE_PAGE_LIMIT = 1000
POST_PAGE_LIMIT = 50
REPORTING_TIMEZONE = "Africa/Johannesburg"


class SproutAPIError(Exception):
    """Upstream call failed or returned an unusable response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SproutClient:
    """Async client for the Sprout Social v1 API."""

    def __init__(
        self,
        settings: Settings | None = None,
        token_cache: TokenCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.sprout_base_url.rstrip("/")
        self._api_key = self.settings.sprout_api_key
        self._client_id = self.settings.sprout_client_id
        self._client_secret = self.settings.sprout_client_secret
        self._customer_id = self.settings.sprout_customer_id
        self._token_cache = token_cache or MemoryTokenCache()
        self._sleep = sleep
        self._http = httpx.AsyncClient(timeout=60, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "SproutClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def is_configured(self) -> bool:
        """True if there are enough credentials to make API calls."""
        return bool(self._api_key) or bool(self._client_id and self._client_secret)

    # --- Auth ---

    @property
    def _token_key(self) -> str:
        return f"sprout:oauth:{self._client_id}"

    async def _exchange_oauth_token(self) -> dict:
        response = await self._http.post(
            self.settings.sprout_token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
        )
        if response.status_code != 200:
            raise SproutAPIError(
                f"OAuth token exchange failed: {response.status_code} {response.text}",
                response.status_code,
            )
        return response.json()

    async def get_access_token(self) -> str:
        """Bearer token for API calls. The static key wins over OAuth."""
        if self._api_key:
            return self._api_key
        if not (self._client_id and self._client_secret):
            raise SproutAPIError("No Sprout API credentials configured")

        cached = await self._token_cache.get(self._token_key)
        if cached:
            return cached

        logger.info("Exchanging Sprout OAuth credentials for access token")
        result = await self._exchange_oauth_token()
        token = result["access_token"]
        expires_in = int(result.get("expires_in", 0))
        await self._token_cache.set(self._token_key, token, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        logger.info(f"Sprout OAuth token obtained, expires in {expires_in}s")
        return token

    def _customer_id_from_key(self) -> str | None:
        """Static keys are base64 of "<customer_id>|..."; None if this one isn't."""
        try:
            decoded = base64.b64decode(self._api_key, validate=False).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None
        first = decoded.split("|")[0]
        return first if first.isdigit() else None

    async def get_customer_id(self) -> str:
        """Customer id from settings, the API key, or discovery via /metadata/client."""
        if self._customer_id:
            return self._customer_id

        if self._api_key:
            decoded = self._customer_id_from_key()
            if decoded:
                self._customer_id = decoded
                logger.info(f"Sprout customer ID decoded from token: {decoded}")
                return decoded

        logger.info("Discovering Sprout customer ID via API")
        token = await self.get_access_token()
        response = await self._http.get(
            f"{self.base_url}/metadata/client",
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        if response.status_code != 200:
            raise SproutAPIError(
                f"Failed to discover customer ID: {response.status_code} {response.text}",
                response.status_code,
            )
        customers = response.json().get("data") or []
        if not customers:
            raise SproutAPIError("No customers found for this API token")

        self._customer_id = str(customers[0]["customer_id"])
        logger.info(f"Discovered Sprout customer ID: {self._customer_id} ({customers[0].get('name')})")
        return self._customer_id

    # --- Requests ---

    async def request(self, method: str, path: str, body: dict | None = None) -> dict:
        """Call ``{base}/{customer_id}{path}``, retrying 429s with exponential backoff."""
        customer_id = await self.get_customer_id()
        token = await self.get_access_token()
        url = f"{self.base_url}/{customer_id}{path}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        retries = 0
        while True:
            response = await self._http.request(method, url, headers=headers, json=body)
            if response.status_code == 429 and retries < MAX_RETRIES:
                backoff = INITIAL_BACKOFF_SECONDS * 2 ** retries
                retries += 1
                logger.warning(f"Sprout rate limited. Retrying in {backoff:.0f}s (attempt {retries}/{MAX_RETRIES})")
                await self._sleep(backoff)
                continue
            if response.is_error:
                raise SproutAPIError(
                    f"Sprout API error {response.status_code}: {response.text}",
                    response.status_code,
                )
            return response.json()

    async def get_profiles(self) -> list[SproutProfile]:
        data = await self.request("GET", "/metadata/customer")
        return [SproutProfile.model_validate(p) for p in data.get("data") or []]

    async def get_profile_analytics(
        self,
        profile_ids: Sequence[int],
        start_date: str,
        end_date: str,
        metrics: Sequence[str],
        page: int = 1,
        limit: int = PROFILE_PAGE_LIMIT,
    ) -> dict:
        return await self.request("POST", "/analytics/profiles", {
            "filters": [
                f"customer_profile_id.eq({','.join(str(i) for i in profile_ids)})",
                f"reporting_period.in({start_date}...{end_date})",
            ],
            "metrics": list(metrics),
            "dimensions": ["customer_profile_id", "reporting_period.by(day)"],
            "page": page,
            "limit": limit,
        })

    async def get_all_profile_analytics(
        self,
        profile_ids: Sequence[int],
        start_date: str,
        end_date: str,
        metrics: Sequence[str],
    ) -> list[SproutProfileAnalyticsRow]:
        """Every daily row for the profiles, fetched in small profile batches, all pages."""
        rows: list[SproutProfileAnalyticsRow] = []
        batches = [profile_ids[i:i + PROFILE_BATCH_SIZE] for i in range(0, len(profile_ids), PROFILE_BATCH_SIZE)]

        for batch_index, batch in enumerate(batches, start=1):
            page = total_pages = 1
            while page <= total_pages:
                response = await self.get_profile_analytics(batch, start_date, end_date, metrics, page)
                rows.extend(SproutProfileAnalyticsRow.model_validate(r) for r in response.get("data") or [])
                total_pages = (response.get("paging") or {}).get("total_pages", 1)
                logger.info(
                    f"Profile analytics batch {batch_index}/{len(batches)}, "
                    f"page {page}/{total_pages} ({len(rows)} total rows)"
                )
                page += 1
        return rows

    async def get_post_analytics(
        self,
        profile_ids: Sequence[int],
        start_date: str,
        end_date: str,
        metrics: Sequence[str],
        fields: Sequence[str],
        page: int = 1,
        limit: int = POST_PAGE_LIMIT,
        sort: Sequence[str] | None = None,
    ) -> dict:
        body = {
            "filters": [
                f"customer_profile_id.eq({','.join(str(i) for i in profile_ids)})",
                f"created_time.in({start_date}T00:00:00..{end_date}T23:59:59)",
            ],
            "metrics": list(metrics),
            "fields": list(fields),
            "page": page,
            "limit": limit,
            "timezone": REPORTING_TIMEZONE,
        }
        if sort:
            body["sort"] = list(sort)
        return await self.request("POST", "/analytics/posts", body)

    async def get_all_post_analytics(
        self,
        profile_ids: Sequence[int],
        start_date: str,
        end_date: str,
        metrics: Sequence[str],
        fields: Sequence[str],
        sort: Sequence[str] | None = None,
    ) -> list[SproutPostRow]:
        posts: list[SproutPostRow] = []
        page = total_pages = 1
        while page <= total_pages:
            response = await self.get_post_analytics(
                profile_ids, start_date, end_date, metrics, fields, page, sort=sort
            )
            posts.extend(SproutPostRow.model_validate(p) for p in response.get("data") or [])
            total_pages = (response.get("paging") or {}).get("total_pages", 1)
            logger.info(f"Post analytics page {page}/{total_pages} ({len(posts)} total posts)")
            page += 1
        return posts

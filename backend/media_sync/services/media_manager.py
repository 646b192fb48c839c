import httpx
from typing import Any, Dict, Iterator, Optional
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential
import logging

from media_sync.core.exceptions import RemoteApiError

logger = logging.getLogger(__name__)

LIVE = "https://media.services.pbs.org/api/v1/"
STAGING = "https://media-staging.services.pbs.org/api/v1/"


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


def resolve_base_uri(base_uri: Optional[str]) -> str:
    if base_uri == "live":
        return LIVE
    if base_uri == "staging" or not base_uri:
        return STAGING
    return base_uri.rstrip("/") + "/"


class MediaManagerClient:
    """
    Minimal PBS Media Manager API client.

    List endpoints are JSON:API documents; they are followed through
    `links.next` and yielded one raw item at a time.
    """

    def __init__(self, key: str, secret: str, base_uri: str = "staging", timeout: float = 60.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.key = key
        self.secret = secret
        self.base_uri = resolve_base_uri(base_uri)
        self._client = httpx.Client(
            base_url=self.base_uri,
            auth=(key or "", secret or ""),
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def is_configured(self) -> bool:
        return bool(self.key and self.secret and self.base_uri)

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    def _request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = self._client.get(endpoint, params=params)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error for {endpoint}: {e}")
            raise
        except httpx.TransportError as e:
            logger.error(f"Error fetching {endpoint}: {e}")
            raise

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            return self._request(endpoint, params).json()
        except httpx.HTTPStatusError as e:
            raise RemoteApiError(
                f"Media Manager request to {endpoint} failed",
                status_code=e.response.status_code,
                detail=_error_detail(e.response),
            ) from e

    def _list(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        page = self._get(endpoint, params)
        while True:
            for item in page.get("data") or []:
                yield item
            next_url = (page.get("links") or {}).get("next")
            if not next_url:
                break
            # The next link carries the full query string already.
            page = self._get(next_url)

    def _get_one(self, endpoint: str) -> Optional[Dict[str, Any]]:
        try:
            return self._get(endpoint).get("data")
        except RemoteApiError as e:
            if e.status_code == 404:
                return None
            raise

    def list_shows(self, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        return self._list("shows/", params)

    def list_assets(self, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        return self._list("assets/", params)

    def get_show(self, guid: str) -> Optional[Dict[str, Any]]:
        return self._get_one(f"shows/{guid}/")

    def get_asset(self, guid: str) -> Optional[Dict[str, Any]]:
        return self._get_one(f"assets/{guid}/")

    def test_connection(self) -> str:
        """Sends a test query to the API and returns an error or "OK"."""
        try:
            self._get("genres/")
        except RemoteApiError as e:
            return e.detail or str(e)
        except httpx.TransportError as e:
            return str(e)
        return "OK"


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return str(body)


def client_from_settings(settings) -> MediaManagerClient:
    return MediaManagerClient(
        settings.MM_API_KEY,
        settings.MM_API_SECRET,
        base_uri=settings.MM_BASE_URI,
        timeout=settings.MM_REQUEST_TIMEOUT,
    )

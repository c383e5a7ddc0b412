"""Local search client for the Naver Local Search API."""
import re
import time
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from config import (
    NAVER_CLIENT_ID,
    NAVER_CLIENT_SECRET,
    NAVER_LOCAL_SEARCH_URL,
    DEFAULT_REGION,
    SEARCH_TIMEOUT_SECONDS,
    USER_AGENT,
)
from models.venue import VerifiedVenue

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


def strip_markup(text: Optional[str]) -> str:
    """Remove every <...> span from text and trim surrounding whitespace."""
    if not text:
        return ""
    return _TAG_RE.sub("", text).strip()


@dataclass
class SearchError:
    """Structured error from local search operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LocalSearchError(Exception):
    """Custom exception for local search failures with structured error information."""

    def __init__(self, error: SearchError):
        self.error = error
        super().__init__(error.message)


class LocalSearchClient:
    """
    Client for the Naver Local Search API.

    The generic `search` path fails closed and returns an empty list on any
    failure. The category methods (restaurants, accommodations, local) raise
    LocalSearchError so the HTTP layer can report the failure.
    """

    RESTAURANT_QUALIFIER = "맛집"
    ACCOMMODATION_QUALIFIER = "숙소 호텔"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        region: str = DEFAULT_REGION,
        base_url: str = NAVER_LOCAL_SEARCH_URL,
        timeout: float = SEARCH_TIMEOUT_SECONDS
    ):
        """
        Initialize the local search client.

        Missing credentials are not fatal: the client degrades to returning
        empty results (generic path) or raising NOT_CONFIGURED (category path).

        Args:
            client_id: Naver client id (defaults to NAVER_CLIENT_ID from environment)
            client_secret: Naver client secret (defaults to NAVER_CLIENT_SECRET from environment)
            region: Region prefixed to every query
            base_url: Local search endpoint
            timeout: Default request timeout in seconds
        """
        self.client_id = client_id if client_id is not None else NAVER_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else NAVER_CLIENT_SECRET
        self.region = region
        self.base_url = base_url
        self.timeout = timeout

        if self.is_configured():
            logger.info(f"LocalSearchClient initialized (region={self.region})")
        else:
            logger.warning(
                "Naver API credentials not configured; local search will return no results. "
                "Set NAVER_CLIENT_ID and NAVER_CLIENT_SECRET to enable it."
            )

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def build_query(self, query: str, region: Optional[str] = None, qualifier: str = "") -> str:
        """Compose "<region> <query>[ <qualifier>]"; the region is always a prefix."""
        parts = [region or self.region, query.strip()]
        if qualifier:
            parts.append(qualifier)
        return " ".join(parts)

    def search(
        self,
        query: str,
        max_results: int = 5,
        region: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> List[VerifiedVenue]:
        """
        Search venues for a keyword, failing closed.

        Args:
            query: Entity or free-text query
            max_results: Number of items to request
            region: Region override (defaults to the client's region)
            timeout: Request timeout override in seconds

        Returns:
            Verified venues, or an empty list when not configured or on any failure
        """
        if not self.is_configured():
            logger.warning("Naver API not configured, returning empty results")
            return []

        search_query = self.build_query(query, region)
        try:
            return self._request(search_query, max_results, timeout)
        except LocalSearchError as e:
            logger.warning(
                f"Local search failed for '{search_query}' ({e.error.code}), returning empty results"
            )
            return []

    def search_restaurants(
        self,
        query: str,
        location: Optional[str] = None,
        display: int = 10
    ) -> List[VerifiedVenue]:
        """Search restaurants; raises LocalSearchError on failure."""
        return self._category_search(query, location, display, self.RESTAURANT_QUALIFIER)

    def search_accommodations(
        self,
        query: str,
        location: Optional[str] = None,
        display: int = 10
    ) -> List[VerifiedVenue]:
        """Search accommodations; raises LocalSearchError on failure."""
        return self._category_search(query, location, display, self.ACCOMMODATION_QUALIFIER)

    def search_local(
        self,
        query: str,
        location: Optional[str] = None,
        display: int = 15
    ) -> List[VerifiedVenue]:
        """Search general places; raises LocalSearchError on failure."""
        return self._category_search(query, location, display, "")

    def _category_search(
        self,
        query: str,
        location: Optional[str],
        display: int,
        qualifier: str
    ) -> List[VerifiedVenue]:
        if not self.is_configured():
            raise LocalSearchError(SearchError(
                code="NOT_CONFIGURED",
                message="Naver API credentials not configured",
                details={"query": query}
            ))

        search_query = self.build_query(query, location, qualifier)
        venues = self._request(search_query, display)
        logger.info(f"Found {len(venues)} places for query: {search_query}")
        return venues

    def _request(
        self,
        search_query: str,
        display: int,
        timeout: Optional[float] = None
    ) -> List[VerifiedVenue]:
        """
        Issue one local search request and map the items to venues.

        Raises:
            LocalSearchError: Classified failure (auth, rate limit, network, ...)
        """
        timeout = timeout if timeout is not None else self.timeout
        headers = {
            "X-Naver-Client-Id": self.client_id,
            "X-Naver-Client-Secret": self.client_secret,
            "User-Agent": USER_AGENT,
        }
        params = {
            "query": search_query,
            "display": display,
            "start": 1,
            "sort": "random",
        }

        start_time = time.time()
        logger.info(f"Searching Naver API for: \"{search_query}\" (max: {display})")

        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.get(self.base_url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise self._failure(
                "TIMEOUT_ERROR", f"Request timed out after {timeout}s", search_query, start_time, e
            )
        except httpx.TransportError as e:
            raise self._failure(
                "NETWORK_ERROR", "Network error - no response received", search_query, start_time, e
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise self._failure(
                "REQUEST_ERROR", "Request could not be sent", search_query, start_time, e
            )

        if response.status_code == 401:
            raise self._failure(
                "AUTHENTICATION_ERROR",
                "Naver API authentication failed. Check NAVER_CLIENT_ID and NAVER_CLIENT_SECRET",
                search_query, start_time, status_code=401
            )

        if response.status_code == 429:
            raise self._failure(
                "RATE_LIMIT_ERROR", "Naver API rate limit exceeded",
                search_query, start_time, status_code=429
            )

        if response.status_code != 200:
            raise self._failure(
                "API_ERROR",
                f"Naver API request failed with status {response.status_code}: {response.text}",
                search_query, start_time, status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise self._failure(
                "MALFORMED_RESPONSE", "Naver API returned a non-JSON body", search_query, start_time, e
            )

        items = data.get("items") if isinstance(data, dict) else None
        if not items:
            logger.info(f"No results found for query: {search_query}")
            return []

        venues = [self._to_venue(item) for item in items]
        logger.info(
            f"Naver API returned {len(venues)} items (total: {data.get('total', 0)}) "
            f"for '{search_query}' in {int((time.time() - start_time) * 1000)}ms"
        )
        return venues

    @staticmethod
    def _to_venue(item: Dict[str, Any]) -> VerifiedVenue:
        return VerifiedVenue(
            title=strip_markup(item.get("title")),
            category=strip_markup(item.get("category")),
            description=strip_markup(item.get("description")),
            phone=item.get("telephone") or "",
            address=item.get("address") or "",
            road_address=item.get("roadAddress") or "",
            map_x=str(item.get("mapx") or ""),
            map_y=str(item.get("mapy") or ""),
            link=item.get("link") or "",
        )

    @staticmethod
    def _failure(
        code: str,
        message: str,
        search_query: str,
        start_time: float,
        original: Optional[Exception] = None,
        status_code: Optional[int] = None
    ) -> LocalSearchError:
        """Log a classified failure and build the exception to raise."""
        details: Dict[str, Any] = {
            "query": search_query,
            "latency_ms": int((time.time() - start_time) * 1000),
        }
        if status_code is not None:
            details["status_code"] = status_code
        if original is not None:
            details["original_error"] = str(original)
            details["error_type"] = type(original).__name__

        logger.error(
            f"Naver API error ({code}): {message}",
            extra={"error_code": code, "error_details": details}
        )
        return LocalSearchError(SearchError(code=code, message=message, details=details))

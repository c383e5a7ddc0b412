"""Verification fan-out: look up each extracted entity against local search."""
import logging
import time
from typing import List, Optional, Sequence, Union

from config import MAX_VENUES, RESULTS_PER_ENTITY, VERIFICATION_TIMEOUT_SECONDS
from models.venue import ExtractedEntity, VerifiedVenue
from services.local_search_client import LocalSearchClient

logger = logging.getLogger(__name__)


class VerificationFanOut:
    """Issue one local search per entity and collect the partial results."""

    def __init__(
        self,
        search_client: LocalSearchClient,
        results_per_entity: int = RESULTS_PER_ENTITY,
        max_venues: int = MAX_VENUES,
        timeout: float = VERIFICATION_TIMEOUT_SECONDS
    ):
        """
        Initialize the fan-out.

        Args:
            search_client: Client used for each entity lookup
            results_per_entity: Venues requested per entity
            max_venues: Global cap on the concatenated result list
            timeout: Per-lookup timeout in seconds
        """
        self.search_client = search_client
        self.results_per_entity = results_per_entity
        self.max_venues = max_venues
        self.timeout = timeout

    def verify(
        self,
        entities: Sequence[Union[str, ExtractedEntity]],
        deadline: Optional[float] = None
    ) -> List[VerifiedVenue]:
        """
        Look up entities sequentially in scan order.

        A failed lookup is logged and skipped; the remaining entities are
        still processed. Results are concatenated in entity order and cut to
        max_venues. Identical venues found for different entities are kept.

        Args:
            entities: Entity strings or ExtractedEntity objects
            deadline: time.monotonic() value after which no further lookups start

        Returns:
            Verified venues, at most max_venues long
        """
        venues: List[VerifiedVenue] = []

        for entity in entities:
            keyword = entity.text if isinstance(entity, ExtractedEntity) else entity

            timeout = self.timeout
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f"Turn budget spent, skipping lookup for '{keyword}' and the rest")
                    break
                timeout = min(timeout, remaining)

            try:
                results = self.search_client.search(
                    keyword,
                    max_results=self.results_per_entity,
                    timeout=timeout
                )
            except Exception as e:
                logger.warning(f"Search failed for keyword '{keyword}': {e}")
                continue

            venues.extend(results[:self.results_per_entity])

        if len(venues) > self.max_venues:
            logger.debug(f"Truncating {len(venues)} venues to {self.max_venues}")

        verified = venues[:self.max_venues]
        logger.info(f"Verified {len(verified)} venues for {len(entities)} entities")
        return verified

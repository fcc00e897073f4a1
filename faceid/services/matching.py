"""Nearest-neighbour matching of face descriptors against registered identities."""
from typing import List, Optional, Sequence

import numpy as np

from faceid.core.config import settings
from faceid.core.logging import get_logger
from faceid.domain.entities.identity import Descriptor, Identity
from faceid.domain.value_objects.outcomes import MatchResult, MatchStatus

logger = get_logger(__name__)


class EuclideanMatcher:
    """Linear-scan matcher over Euclidean distance.

    Selection policy: the candidate with the strictly smallest distance wins;
    on ties the candidate that comes first in ``candidates`` wins. Stores list
    identities in insertion order, so the earliest identity wins. The tie rule
    is a policy choice, not something correctness depends on.

    The best candidate is accepted iff its distance is ``<= threshold``.

    The matcher is pure: it never mutates its inputs and has no side effects
    besides logging, so it is safe to share between concurrent requests.

    Example:
        ```python
        matcher = EuclideanMatcher(threshold=0.5)
        registered = await store.find_by_role(Role.REGISTERED)
        result = matcher.match(descriptor, registered)
        if result.matched:
            print(result.identity.id, result.distance)
        ```
    """

    def __init__(self, threshold: Optional[float] = None) -> None:
        """Initialize the matcher.

        Args:
            threshold: Maximum accepted distance, defaults to settings.MATCH_THRESHOLD
        """
        self.threshold = settings.MATCH_THRESHOLD if threshold is None else threshold
        if self.threshold < 0:
            raise ValueError("Match threshold must be non-negative")

    @staticmethod
    def distance(a: Descriptor, b: Descriptor) -> float:
        """Euclidean distance between two descriptors."""
        return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))

    def match(
        self,
        query: Descriptor,
        candidates: Sequence[Identity],
        threshold: Optional[float] = None,
    ) -> MatchResult:
        """Find the closest candidate and apply the acceptance threshold.

        Args:
            query: Descriptor to resolve
            candidates: Registered identities to scan, in insertion order
            threshold: Per-call override of the acceptance threshold

        Returns:
            MatchResult with the accepted identity, or NO_MATCH
        """
        limit = self.threshold if threshold is None else threshold
        query = np.asarray(query, dtype=np.float64)

        usable: List[Identity] = []
        for candidate in candidates:
            if candidate.descriptor.shape != query.shape:
                logger.warning(
                    "Skipping candidate with incompatible descriptor",
                    identity_id=candidate.id,
                    expected_dim=int(query.shape[0]),
                    actual_dim=int(candidate.descriptor.shape[0]),
                )
                continue
            usable.append(candidate)

        if not usable:
            return MatchResult(status=MatchStatus.NO_MATCH)

        matrix = np.stack([candidate.descriptor for candidate in usable])
        distances = np.linalg.norm(matrix - query, axis=1)
        # argmin returns the first index among equal minima
        best = int(np.argmin(distances))
        best_distance = float(distances[best])

        if best_distance <= limit:
            return MatchResult(
                status=MatchStatus.MATCHED,
                identity=usable[best],
                distance=best_distance,
            )
        return MatchResult(status=MatchStatus.NO_MATCH, distance=best_distance)

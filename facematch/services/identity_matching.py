"""Identity matching service for assigning a face embedding to an identity."""
import math
from typing import List, Optional

import numpy as np

from facematch.core.config import settings
from facematch.core.exceptions import InvalidEmbeddingError, MatchComputationError
from facematch.core.logging import get_logger
from facematch.domain.entities.face import Identity
from facematch.domain.interfaces.storage.identity_store import IdentityStore
from facematch.domain.value_objects.recognition import MatchDecision
from facematch.services.aggregation import representative_embedding
from facematch.services.id_allocation import IdAllocator, format_identity_id

logger = get_logger(__name__)

UNIDENTIFIED_IDENTITY = "unidentified"


class IdentityMatcher:
    """Decides whether an embedding belongs to a known identity of its namespace.

    The closest identity is found by Euclidean distance to each identity's
    representative embedding. The acceptance radius grows with the number
    of samples the closest identity holds, because its representative gets
    more stable as evidence accumulates:

    - 1 sample: 0.45
    - 2-3 samples: 0.50
    - 4+ samples: 0.55

    Example:
        ```python
        matcher = IdentityMatcher(identity_store)
        decision = await matcher.match(embedding, namespace="wedding-2024")
        if decision.is_new_identity:
            ...
        ```
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        id_allocator: Optional[IdAllocator] = None,
        embedding_dim: Optional[int] = None,
        failure_policy: Optional[str] = None,
    ) -> None:
        """Initialize the identity matcher.

        Args:
            identity_store: Store holding the identities of every namespace
            id_allocator: Allocator for new identifiers
            embedding_dim: Expected embedding length, defaults to settings
            failure_policy: "hash" or "unidentified", defaults to settings
        """
        self._identity_store = identity_store
        self._id_allocator = id_allocator or IdAllocator(identity_store)
        self.embedding_dim = embedding_dim or settings.EMBEDDING_DIM
        self.failure_policy = failure_policy or settings.MATCH_FAILURE_POLICY

    @staticmethod
    def select_threshold(sample_count: int) -> float:
        """Match radius for an identity holding `sample_count` samples."""
        if sample_count <= 1:
            return settings.THRESHOLD_SINGLE_SAMPLE
        if sample_count <= 3:
            return settings.THRESHOLD_FEW_SAMPLES
        return settings.THRESHOLD_MANY_SAMPLES

    def validate_embedding(self, embedding: np.ndarray) -> np.ndarray:
        """Check the embedding length and values.

        Raises:
            InvalidEmbeddingError: If the embedding is malformed
        """
        try:
            vector = np.asarray(embedding, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidEmbeddingError(f"Embedding is not numeric: {e}") from e

        if vector.ndim != 1 or vector.shape[0] != self.embedding_dim:
            raise InvalidEmbeddingError(
                "Embedding has the wrong shape",
                details={"shape": list(vector.shape), "expected": self.embedding_dim},
            )
        if not np.all(np.isfinite(vector)):
            raise InvalidEmbeddingError("Embedding contains non-finite values")
        return vector

    async def match(self, embedding: np.ndarray, namespace: Optional[str] = None) -> MatchDecision:
        """Match an embedding against the identities currently in a namespace.

        Args:
            embedding: Face embedding to assign
            namespace: Event identifier, None for the global namespace

        Returns:
            MatchDecision naming the matched identity, or a freshly allocated
            identifier when the embedding starts a new identity

        Raises:
            InvalidEmbeddingError: If the query embedding is malformed
            IdentityStoreError: If the namespace cannot be read
        """
        vector = self.validate_embedding(embedding)
        identities = await self._identity_store.list_identities(namespace)
        return self.match_against(vector, identities, namespace)

    def match_against(
        self,
        embedding: np.ndarray,
        identities: List[Identity],
        namespace: Optional[str] = None,
    ) -> MatchDecision:
        """Match an embedding against an already fetched namespace snapshot.

        Identities whose representative is unusable (no samples, samples of
        another length, non-finite values) are skipped with a warning; the
        rest of the namespace is still matched. New ids are allocated
        against every identity, usable or not.
        """
        vector = self.validate_embedding(embedding)

        best_identity: Optional[Identity] = None
        best_distance = math.inf
        for identity in identities:
            distance = self._distance_to(vector, identity, namespace)
            if distance is not None and distance < best_distance:
                best_distance = distance
                best_identity = identity

        if best_identity is None:
            identity_id = self._id_allocator.allocate_from(namespace, identities)
            logger.info(
                "No comparable identity in namespace",
                identity_id=identity_id,
                namespace=namespace,
                known_identities=len(identities)
            )
            return MatchDecision(identity_id=identity_id, distance=None, is_new_identity=True)

        sample_count = best_identity.sample_count
        threshold = self.select_threshold(sample_count)

        if best_distance < threshold:
            logger.info(
                "Matched existing identity",
                identity_id=best_identity.identity_id,
                namespace=namespace,
                distance=round(best_distance, 4),
                threshold=threshold,
                samples=sample_count,
            )
            return MatchDecision(
                identity_id=best_identity.identity_id,
                distance=best_distance,
                is_new_identity=False,
                threshold=threshold,
                sample_count=sample_count,
            )

        identity_id = self._id_allocator.allocate_from(namespace, identities)
        logger.info(
            "New identity detected",
            identity_id=identity_id,
            namespace=namespace,
            best_distance=round(best_distance, 4),
            threshold=threshold,
        )
        return MatchDecision(
            identity_id=identity_id,
            distance=best_distance,
            is_new_identity=True,
            threshold=threshold,
            sample_count=sample_count,
        )

    def _distance_to(
        self,
        vector: np.ndarray,
        identity: Identity,
        namespace: Optional[str],
    ) -> Optional[float]:
        """Distance to an identity's representative, or None when it cannot be compared."""
        try:
            reference = representative_embedding(identity)
        except MatchComputationError as e:
            logger.warning(
                "Skipping identity without a usable representative",
                identity_id=identity.identity_id,
                namespace=namespace,
                error=str(e)
            )
            return None

        if reference.shape != vector.shape:
            logger.warning(
                "Skipping identity with samples of a different length",
                identity_id=identity.identity_id,
                namespace=namespace,
                length=int(reference.shape[0]),
                expected=int(vector.shape[0])
            )
            return None

        distance = float(np.linalg.norm(vector - reference))
        if not math.isfinite(distance):
            logger.warning(
                "Skipping identity with a non-finite distance",
                identity_id=identity.identity_id,
                namespace=namespace
            )
            return None
        return distance

    def fallback_decision(self, embedding: np.ndarray, namespace: Optional[str] = None) -> MatchDecision:
        """Label a face whose match could not be computed.

        The "hash" policy sums the finite embedding values and takes the floor
        modulo a small constant. Unrelated faces can collide on that id. The
        "unidentified" policy reports a fixed sentinel instead.
        """
        if self.failure_policy == "unidentified":
            return MatchDecision(identity_id=UNIDENTIFIED_IDENTITY, is_new_identity=False, is_fallback=True)

        try:
            values = np.asarray(embedding, dtype=np.float64).ravel()
        except (TypeError, ValueError):
            values = np.zeros(0)
        total = float(np.sum(values[np.isfinite(values)]))
        bucket = math.floor(total % settings.MATCH_FALLBACK_MODULUS)

        return MatchDecision(
            identity_id=format_identity_id(bucket, namespace),
            is_new_identity=False,
            is_fallback=True,
        )

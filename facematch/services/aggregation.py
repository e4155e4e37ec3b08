"""Representative embeddings for identities.

The representative is recomputed from the full sample history on every read;
no running mean is kept in the store.
"""
from typing import Sequence

import numpy as np

from facematch.core.exceptions import MatchComputationError
from facematch.domain.entities.face import Identity


def representative_of(samples: Sequence[np.ndarray]) -> np.ndarray:
    """Element-wise mean of the samples, or the sample itself when there is one.

    Raises:
        MatchComputationError: If there are no samples or their lengths differ
    """
    if not samples:
        raise MatchComputationError("Cannot compute a representative without samples")
    if len(samples) == 1:
        return samples[0]

    lengths = {len(sample) for sample in samples}
    if len(lengths) != 1:
        raise MatchComputationError(
            "Samples have inconsistent lengths",
            details={"lengths": sorted(lengths)},
        )
    return np.mean(np.stack(samples), axis=0)


def representative_embedding(identity: Identity) -> np.ndarray:
    """Representative embedding used to compare new faces against an identity."""
    try:
        return representative_of(identity.samples)
    except MatchComputationError as e:
        raise MatchComputationError(
            f"Cannot compute representative for {identity.identity_id}: {e}",
            details={"identity_id": identity.identity_id, **e.details},
        ) from e

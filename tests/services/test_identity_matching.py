"""Tests for the identity matcher."""
import numpy as np
import pytest

from conftest import DIM, axis, vector
from facematch.core.exceptions import IdentityStoreError, InvalidEmbeddingError
from facematch.services.identity_matching import UNIDENTIFIED_IDENTITY, IdentityMatcher


@pytest.fixture
def matcher(identity_store):
    return IdentityMatcher(identity_store, failure_policy="hash")


def near(index: int, distance: float) -> np.ndarray:
    """Embedding at exactly `distance` from axis(index)."""
    return vector((index, 1.0), (index + 1, distance))


class TestThresholdSelection:
    """Test suite for adaptive match thresholds."""

    @pytest.mark.parametrize("samples,expected", [
        (1, 0.45),
        (2, 0.50),
        (3, 0.50),
        (4, 0.55),
        (12, 0.55),
    ])
    def test_threshold_grows_with_samples(self, samples, expected):
        assert IdentityMatcher.select_threshold(samples) == pytest.approx(expected)


class TestIdentityMatcher:
    """Test suite for matching embeddings against a namespace."""

    async def test_empty_namespace_allocates_first_identity(self, matcher):
        """Should start a new identity when the namespace is empty."""
        decision = await matcher.match(axis(0))

        assert decision.is_new_identity
        assert decision.identity_id == "person_1"
        assert decision.distance is None

    async def test_matches_closest_identity(self, matcher, identity_store):
        """Should pick the identity with the smallest distance."""
        identity_store.seed("person_1", [axis(0)])
        identity_store.seed("person_2", [axis(2)])

        decision = await matcher.match(near(2, 0.1))

        assert not decision.is_new_identity
        assert decision.identity_id == "person_2"
        assert decision.distance == pytest.approx(0.1)
        assert decision.threshold == pytest.approx(0.45)

    async def test_distance_beyond_threshold_starts_new_identity(self, matcher, identity_store):
        """Should allocate a new id when the closest identity is too far."""
        identity_store.seed("person_1", [axis(0)])

        decision = await matcher.match(near(0, 0.47))

        assert decision.is_new_identity
        assert decision.identity_id == "person_2"
        assert decision.distance == pytest.approx(0.47)

    async def test_distance_equal_to_threshold_is_not_a_match(self, matcher, identity_store):
        """Should require the distance to be strictly below the threshold."""
        identity_store.seed("person_1", [axis(0)])

        decision = await matcher.match(near(0, 0.45))

        assert decision.is_new_identity

    async def test_more_samples_widen_the_radius(self, matcher, identity_store):
        """Should accept at 0.47 for an identity with two samples."""
        identity_store.seed("person_1", [axis(0), axis(0)])

        decision = await matcher.match(near(0, 0.47))

        assert not decision.is_new_identity
        assert decision.identity_id == "person_1"
        assert decision.sample_count == 2
        assert decision.threshold == pytest.approx(0.50)

    async def test_many_samples_radius(self, matcher, identity_store):
        """Should accept below 0.55 and reject above it with four samples."""
        identity_store.seed("person_1", [axis(0)] * 4)

        assert not (await matcher.match(near(0, 0.47))).is_new_identity
        assert not (await matcher.match(near(0, 0.53))).is_new_identity
        assert (await matcher.match(near(0, 0.56))).is_new_identity

    async def test_compares_against_sample_mean(self, matcher, identity_store):
        """Should measure distance to the mean of the samples, not to any one sample."""
        identity_store.seed("person_1", [axis(0), axis(1)])

        # The midpoint is ~0.707 from each sample but 0 from the mean
        decision = await matcher.match(vector((0, 0.5), (1, 0.5)))

        assert not decision.is_new_identity
        assert decision.distance == pytest.approx(0.0)

    async def test_namespaces_are_isolated(self, matcher, identity_store):
        """Should never match an identity from another namespace."""
        identity_store.seed("a_person_1", [axis(0)], namespace="a")

        decision = await matcher.match(axis(0), namespace="b")

        assert decision.is_new_identity
        assert decision.identity_id == "b_person_1"

    async def test_store_errors_propagate(self, matcher, identity_store):
        """Should surface identity store failures to the caller."""
        identity_store.fail["list"] = 1

        with pytest.raises(IdentityStoreError):
            await matcher.match(axis(0))

    @pytest.mark.parametrize("embedding", [
        np.zeros(64),
        np.zeros((2, 64)),
        np.array([np.nan] + [0.0] * (DIM - 1)),
        np.array([np.inf] + [0.0] * (DIM - 1)),
    ])
    async def test_invalid_embedding_rejected(self, matcher, embedding):
        """Should reject embeddings of the wrong shape or with non-finite values."""
        with pytest.raises(InvalidEmbeddingError):
            await matcher.match(embedding)

    async def test_malformed_identity_does_not_block_namespace(self, matcher, identity_store):
        """Should skip an identity with samples of another length and match the rest."""
        identity_store.seed("person_1", [axis(0)])
        identity_store.seed("person_2", [np.zeros(64)])

        matched = await matcher.match(axis(0))
        new = await matcher.match(axis(7))

        assert (matched.identity_id, matched.is_new_identity) == ("person_1", False)
        assert (new.identity_id, new.is_new_identity) == ("person_3", True)

    async def test_only_malformed_identities_start_new_identity(self, matcher, identity_store):
        """Should allocate past unusable identities instead of reusing their ids."""
        identity_store.seed("person_1", [np.zeros(64)])
        identity_store.seed("person_2", [])

        decision = await matcher.match(axis(0))

        assert decision.is_new_identity
        assert decision.identity_id == "person_3"
        assert decision.distance is None


class TestFallbackDecision:
    """Test suite for labelling faces whose match failed."""

    def test_hash_fallback_uses_floored_sum(self, identity_store):
        matcher = IdentityMatcher(identity_store, failure_policy="hash")

        decision = matcher.fallback_decision(vector((0, 4.0), (1, 3.3)))

        assert decision.identity_id == "person_2"
        assert decision.is_fallback
        assert not decision.is_new_identity

    def test_hash_fallback_is_namespaced_and_ignores_non_finite(self, identity_store):
        matcher = IdentityMatcher(identity_store, failure_policy="hash")

        decision = matcher.fallback_decision(np.array([1.0, np.nan, 2.5, np.inf]), namespace="ev")

        assert decision.identity_id == "ev_person_3"

    def test_hash_fallback_negative_sum_stays_in_range(self, identity_store):
        matcher = IdentityMatcher(identity_store, failure_policy="hash")

        decision = matcher.fallback_decision(np.array([-1.5]))

        assert decision.identity_id == "person_3"

    def test_unidentified_policy(self, identity_store):
        matcher = IdentityMatcher(identity_store, failure_policy="unidentified")

        decision = matcher.fallback_decision(axis(0), namespace="ev")

        assert decision.identity_id == UNIDENTIFIED_IDENTITY
        assert decision.is_fallback

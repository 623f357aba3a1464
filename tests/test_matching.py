import math

import numpy as np
import pytest

from attendance_matcher.exceptions import DimensionMismatch, InvalidThreshold
from attendance_matcher.recognition.embedding import Identity, ReferenceSet
from attendance_matcher.recognition.matching import (
    Matched,
    NoMatch,
    NoMatchReason,
    best_distances,
    euclidean_distance,
    faces_match,
    match,
)

ALICE = Identity('alice', 'Alice')
BOB = Identity('bob', 'Bob')


def test_empty_reference_set_never_matches():
    result = match([0.3, 0.4], ReferenceSet(), 0.6)

    assert result == NoMatch(reason=NoMatchReason.EMPTY_REFERENCE_SET)
    assert result.distance is None
    assert not result.matched


@pytest.mark.parametrize('vector', [[0.0, 0.0], [0.1, -0.7, 3.5], list(np.linspace(-1, 1, 128))])
def test_self_match_distance_is_zero(vector):
    reference = ReferenceSet.from_pairs([(ALICE, vector)])

    assert match(vector, reference, 0.6) == Matched(ALICE, 0.0)


def test_accepts_below_threshold():
    probe = [0.0, 0.0]
    stored = [0.3, 0.4]
    reference = ReferenceSet.from_pairs([(ALICE, stored)])

    result = match(probe, reference, 0.6)

    assert isinstance(result, Matched)
    assert result.identity == ALICE
    assert result.distance == pytest.approx(0.5)


def test_rejects_at_or_above_threshold():
    reference = ReferenceSet.from_pairs([(ALICE, [3.0, 4.0])])

    at_threshold = match([0.0, 0.0], reference, 5.0)
    above_threshold = match([0.0, 0.0], reference, 4.9)

    assert at_threshold == NoMatch(NoMatchReason.ABOVE_THRESHOLD, 5.0)
    assert above_threshold.reason is NoMatchReason.ABOVE_THRESHOLD


def test_concrete_closest_identity_wins():
    reference = ReferenceSet.from_pairs([(ALICE, [0, 0]), (BOB, [1, 1])])

    assert match([0, 0], reference, 0.6) == Matched(ALICE, 0.0)


def test_concrete_far_identity_is_rejected():
    reference = ReferenceSet.from_pairs([(ALICE, [1, 1])])

    result = match([0, 0], reference, 0.6)

    assert isinstance(result, NoMatch)
    assert result.reason is NoMatchReason.ABOVE_THRESHOLD
    assert result.distance == pytest.approx(math.sqrt(2))


def test_identity_distance_is_min_over_its_embeddings():
    probe = [0.0, 0.0]
    a1, a2, b1 = [0.5, 0.5], [0.1, 0.0], [0.0, 0.3]
    reference = ReferenceSet.from_identities([
        (ALICE, [a1, a2]),
        (BOB, [b1]),
    ])

    result = match(probe, reference, 0.6)

    assert result == Matched(ALICE, pytest.approx(0.1))


def test_second_sample_rescues_identity_whose_first_sample_is_far():
    reference = ReferenceSet.from_identities([
        (ALICE, [[5.0, 5.0], [0.2, 0.0]]),
    ])

    assert match([0.0, 0.0], reference, 0.6).matched


def test_exact_tie_goes_to_first_in_traversal_order():
    probe = [0.0, 0.0]
    forward = ReferenceSet.from_pairs([(ALICE, [0.3, 0.0]), (BOB, [0.0, 0.3])])
    backward = ReferenceSet.from_pairs([(BOB, [0.0, 0.3]), (ALICE, [0.3, 0.0])])

    for _ in range(20):
        assert match(probe, forward, 0.6).identity == ALICE
        assert match(probe, backward, 0.6).identity == BOB


def test_tie_between_duplicates_of_same_identity_is_harmless():
    reference = ReferenceSet.from_pairs([(ALICE, [0.1, 0.1]), (ALICE, [0.1, 0.1])])

    assert match([0.0, 0.0], reference, 0.6).identity == ALICE


def test_dimension_mismatch_is_raised_not_truncated():
    reference = ReferenceSet.from_pairs([(ALICE, [0.0, 0.0]), (BOB, [0.0, 0.0, 0.0])])

    with pytest.raises(DimensionMismatch) as exc_info:
        match([0.0, 0.0], reference, 0.6)

    assert exc_info.value.identity_id == 'bob'
    assert exc_info.value.expected == 2
    assert exc_info.value.actual == 3


@pytest.mark.parametrize('threshold', [-0.01, -1, float('nan'), float('inf'), 'abc'])
def test_invalid_threshold(threshold):
    reference = ReferenceSet.from_pairs([(ALICE, [0.0, 0.0])])

    with pytest.raises(InvalidThreshold):
        match([0.0, 0.0], reference, threshold)


def test_invalid_threshold_checked_even_for_empty_reference_set():
    with pytest.raises(InvalidThreshold):
        match([0.0, 0.0], ReferenceSet(), -1)


def test_zero_threshold_rejects_even_exact_match():
    reference = ReferenceSet.from_pairs([(ALICE, [0.0, 0.0])])

    assert match([0.0, 0.0], reference, 0.0).reason is NoMatchReason.ABOVE_THRESHOLD


def test_match_does_not_modify_inputs():
    probe = np.array([0.2, 0.2])
    reference = ReferenceSet.from_pairs([(ALICE, [0.0, 0.0])])

    match(probe, reference, 0.6)

    assert probe.tolist() == [0.2, 0.2]
    assert reference.entries[0].embedding.tolist() == [0.0, 0.0]


def test_random_pairs_follow_threshold_rule():
    rng = np.random.RandomState(42)
    for _ in range(50):
        e1, e2 = rng.uniform(-0.5, 0.5, size=(2, 8))
        threshold = rng.uniform(0.1, 2.0)
        d = float(np.linalg.norm(e1 - e2))
        result = match(e1, ReferenceSet.from_pairs([(ALICE, e2)]), threshold)

        if d < threshold:
            assert result == Matched(ALICE, pytest.approx(d))
        else:
            assert isinstance(result, NoMatch)


def test_euclidean_distance_and_faces_match():
    assert euclidean_distance([0, 0], [3, 4]) == pytest.approx(5.0)
    assert faces_match([0, 0], [0.3, 0.4], 0.6)
    assert not faces_match([0, 0], [3, 4])

    with pytest.raises(DimensionMismatch):
        euclidean_distance([0, 0], [0, 0, 0])


def test_best_distances_reports_min_per_identity_in_order():
    reference = ReferenceSet.from_pairs([
        (BOB, [1.0, 0.0]),
        (ALICE, [2.0, 0.0]),
        (BOB, [0.5, 0.0]),
    ])

    result = best_distances([0.0, 0.0], reference)

    assert [(i.identity_id, d) for i, d in result] == [
        ('bob', pytest.approx(0.5)),
        ('alice', pytest.approx(2.0)),
    ]
    assert best_distances([0.0, 0.0], ReferenceSet()) == []


@pytest.mark.parametrize('probe', [[float('nan'), 0.0], [0.0, float('inf')]])
def test_non_finite_probe_is_rejected(probe):
    reference = ReferenceSet.from_pairs([(ALICE, [0.0, 0.0])])

    with pytest.raises(ValueError, match='non-finite'):
        match(probe, reference, 0.6)

import pytest

from synchro.domain.synchronicity.scoring import calculate_sync_score


@pytest.mark.parametrize(
    "distance,minutes,frequency,expected",
    [
        (80, 2, None, 1.0),
        (80, 2, 0.9, 1.0),
        (250, 10, None, 0.8),
        (450, 30, None, 0.6),
        (450, 30, 0.6, 0.7),
        (450, 30, 0.5, 0.6),
        (600, 60, None, 0.5),
    ],
)
def test_score_components(distance, minutes, frequency, expected):
    assert calculate_sync_score(distance, minutes, frequency) == pytest.approx(expected)


def test_score_stays_within_bounds():
    for distance in (0, 99, 100, 299, 300, 499, 500, 5000):
        for minutes in (0, 4.9, 5, 14.9, 15, 120):
            for frequency in (None, 0.0, 0.51, 1.0):
                score = calculate_sync_score(distance, minutes, frequency)
                assert 0.5 <= score <= 1.0


def test_boundary_score_is_exact():
    # 0.5 + 0.1 + 0.1 must not drift below the 0.7 lobby threshold
    assert calculate_sync_score(450, 10, None) == 0.7

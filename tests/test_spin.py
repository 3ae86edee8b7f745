"""
Test the spin preview sequence
"""

import random

from artist_raffle.spin import spin_sequence


def test_frames_come_from_the_pool():
    frames = spin_sequence([3, 4, 5], length=12, rng=random.Random(3))
    assert len(frames) == 12
    assert set(frames) <= {3, 4, 5}


def test_lands_on_the_winner():
    frames = spin_sequence([3, 4, 5], length=5, rng=random.Random(3), land_on=4)
    assert len(frames) == 6
    assert frames[-1] == 4


def test_empty_pool():
    assert spin_sequence([]) == []
    assert spin_sequence([], land_on=9) == [9]


def test_does_not_touch_the_global_random_state():
    random.seed(99)
    expected = random.random()

    random.seed(99)
    spin_sequence([1, 2, 3], length=50)
    assert random.random() == expected

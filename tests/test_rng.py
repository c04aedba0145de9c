import pytest

from tactica.combat.rng import rng01, rng_int, rng_pick


class TestRng01:
    def test_same_seed_and_label_repeat(self):
        assert rng01(42, "turn:1:crit") == rng01(42, "turn:1:crit")

    def test_label_changes_value(self):
        assert rng01(42, "a") != rng01(42, "b")

    def test_seed_changes_value(self):
        assert rng01(1, "a") != rng01(2, "a")

    def test_range(self):
        for i in range(200):
            value = rng01(7, f"sample:{i}")
            assert 0.0 <= value < 1.0


class TestRngInt:
    def test_inclusive_bounds(self):
        seen = {rng_int(3, f"d6:{i}", 1, 6) for i in range(300)}
        assert seen == {1, 2, 3, 4, 5, 6}

    def test_reversed_bounds(self):
        assert rng_int(9, "x", 6, 1) == rng_int(9, "x", 1, 6)

    def test_degenerate_range(self):
        assert rng_int(9, "x", 4, 4) == 4


class TestPick:
    def test_pick_is_deterministic(self):
        items = ["a", "b", "c"]
        assert rng_pick(5, "pick", items) == rng_pick(5, "pick", items)

    def test_pick_empty_raises(self):
        with pytest.raises(ValueError):
            rng_pick(5, "pick", [])

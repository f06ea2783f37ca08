"""
Tests for session code allocation.
"""

import random

from ..session.codes import CODE_MAX, CODE_MIN, allocate_code


class ScriptedRandom:
    """Returns a fixed sequence of integers from randint."""

    def __init__(self, values):
        self._values = list(values)
        self.calls = 0

    def randint(self, a, b):
        self.calls += 1
        return self._values.pop(0)


class TestAllocateCode:
    """Tests for allocate_code."""

    def test_six_digits_without_leading_zero(self):
        """Codes are 6-digit numeric strings in 100000-999999."""
        rng = random.Random(1)
        for _ in range(200):
            code = allocate_code(set(), rng=rng)
            assert len(code) == 6
            assert code.isdigit()
            assert code[0] != "0"
            assert CODE_MIN <= int(code) <= CODE_MAX

    def test_never_returns_an_existing_code(self):
        """1000 draws against a growing exclusion set never collide."""
        rng = random.Random(7)
        existing: set[str] = set()
        for _ in range(1000):
            code = allocate_code(existing, rng=rng)
            assert code not in existing
            existing.add(code)
        assert len(existing) == 1000

    def test_retries_until_free(self):
        """Taken codes are skipped until a free one comes up."""
        rng = ScriptedRandom([111111, 222222, 333333])
        code = allocate_code({"111111", "222222"}, rng=rng)

        assert code == "333333"
        assert rng.calls == 3

    def test_works_without_explicit_rng(self):
        """Default random source is used when none is given."""
        code = allocate_code({"123456"})
        assert code != "123456"
        assert len(code) == 6

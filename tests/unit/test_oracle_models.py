"""Unit tests for combining validation outcomes."""

from __future__ import annotations

import pytest

from nickel_customs.oracle import (
    Diagnostic,
    Errored,
    Failed,
    Passed,
    ValidationOutcome,
    merge_outcomes,
)

_A = Diagnostic(path="pkg/a.ncl", line=2, message="type mismatch")
_B = Diagnostic(path="pkg/b.ncl", line=1, message="unbound identifier")


class TestMergeOutcomes:
    """The worse outcome wins; like outcomes combine."""

    @pytest.mark.parametrize(
        ("first", "second", "expected"),
        [
            (Passed("pkg"), Passed("pkg"), Passed("pkg")),
            (Passed("pkg"), Failed("pkg", (_A,)), Failed("pkg", (_A,))),
            (Failed("pkg", (_A,)), Passed("pkg"), Failed("pkg", (_A,))),
            (Failed("pkg", (_A,)), Errored("pkg", "t"), Errored("pkg", "t")),
            (Errored("pkg", "t"), Passed("pkg"), Errored("pkg", "t")),
        ],
        ids=["pass-pass", "pass-fail", "fail-pass", "fail-error", "error-pass"],
    )
    def test_worse_outcome_wins(
        self,
        first: ValidationOutcome,
        second: ValidationOutcome,
        expected: ValidationOutcome,
    ) -> None:
        """Errors outrank failures, which outrank passes."""
        assert merge_outcomes(first, second) == expected

    def test_failures_union_their_diagnostics(self) -> None:
        """Two failures keep every distinct diagnostic, in report order."""
        merged = merge_outcomes(Failed("pkg", (_B, _A)), Failed("pkg", (_A,)))
        assert merged == Failed("pkg", (_A, _B))

    def test_errors_keep_both_reasons(self) -> None:
        """Distinct error reasons are joined; identical ones are not repeated."""
        assert merge_outcomes(Errored("pkg", "timeout"), Errored("pkg", "crash")) == (
            Errored("pkg", "timeout; crash")
        )
        assert merge_outcomes(Errored("pkg", "timeout"), Errored("pkg", "timeout")) == (
            Errored("pkg", "timeout")
        )

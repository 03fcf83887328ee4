# tests/test_differ.py

"""Tests for the line-set differ and its significance heuristic."""

import unittest

from src.filters.differ import (
    compare_snapshots,
    determine_significance,
    format_diff_for_analysis,
    generate_change_summary,
)
from src.models.change import significance_rank


def _lines(n: int, prefix: str = "line") -> str:
    return "\n".join(f"{prefix} {i}" for i in range(n))


def _replace(n: int, changed: int) -> str:
    """*n* lines where the first *changed* ones differ from _lines(n)."""
    return "\n".join(
        f"new {i}" if i < changed else f"line {i}" for i in range(n)
    )


class TestCompareSnapshots(unittest.TestCase):
    """Structural properties of compare_snapshots."""

    def test_identical_text_has_no_changes(self) -> None:
        """Comparing a text with itself yields nothing."""
        text = _lines(10)
        diff = compare_snapshots(text, text)
        self.assertFalse(diff.has_changes)
        self.assertEqual(diff.change_ratio, 0)

    def test_empty_inputs(self) -> None:
        """Two empty texts are safe and unchanged."""
        diff = compare_snapshots("", "")
        self.assertFalse(diff.has_changes)
        self.assertEqual(diff.change_ratio, 0)
        self.assertEqual(determine_significance(diff), "none")

    def test_symmetry(self) -> None:
        """Swapping inputs swaps added and removed."""
        a = "alpha\nbeta\ngamma"
        b = "beta\ndelta\nepsilon"
        forward = compare_snapshots(a, b)
        backward = compare_snapshots(b, a)
        self.assertEqual(forward.added, backward.removed)
        self.assertEqual(forward.removed, backward.added)

    def test_added_and_removed_lines(self) -> None:
        """Distinct lines are reported in first-seen order."""
        diff = compare_snapshots("a\nb\nc", "a\nc\nd\ne")
        self.assertEqual(diff.added, ["d", "e"])
        self.assertEqual(diff.removed, ["b"])
        self.assertEqual(diff.total_old_lines, 3)
        self.assertEqual(diff.total_new_lines, 4)

    def test_reordering_ignored(self) -> None:
        """Line order does not count as a change."""
        diff = compare_snapshots("a\nb\nc", "c\nb\na")
        self.assertFalse(diff.has_changes)

    def test_duplicates_ignored(self) -> None:
        """Repeating an existing line is not a change."""
        diff = compare_snapshots("a\nb", "a\nb\nb\na")
        self.assertFalse(diff.has_changes)

    def test_whitespace_lines_skipped(self) -> None:
        """Blank and padded lines are normalised before comparing."""
        diff = compare_snapshots("a\n\n  b  ", "a\nb\n   \n")
        self.assertFalse(diff.has_changes)

    def test_ratio_uses_longer_side(self) -> None:
        """The denominator is the larger line count."""
        diff = compare_snapshots("", _lines(4))
        self.assertEqual(diff.added_count, 4)
        self.assertEqual(diff.change_ratio, 1.0)


class TestDetermineSignificance(unittest.TestCase):
    """Tiering of diffs into significance levels."""

    def test_low(self) -> None:
        """One line changed out of 100 is low."""
        diff = compare_snapshots(_lines(100), _replace(100, 1))
        self.assertEqual(determine_significance(diff), "low")

    def test_medium_by_ratio(self) -> None:
        """One line changed out of 10 (20%) is medium."""
        diff = compare_snapshots(_lines(10), _replace(10, 1))
        self.assertEqual(determine_significance(diff), "medium")

    def test_medium_by_line_count(self) -> None:
        """More than 20 changed lines is medium even at a low ratio."""
        diff = compare_snapshots(_lines(300), _replace(300, 11))
        self.assertLessEqual(diff.change_ratio, 0.10)
        self.assertEqual(determine_significance(diff), "medium")

    def test_high(self) -> None:
        """Two lines changed out of 10 (40%) is high."""
        diff = compare_snapshots(_lines(10), _replace(10, 2))
        self.assertEqual(determine_significance(diff), "high")

    def test_monotonic_in_changed_lines(self) -> None:
        """More changed lines never lowers the tier."""
        for total in (10, 50, 300):
            previous = 0
            for changed in range(total + 1):
                diff = compare_snapshots(
                    _lines(total), _replace(total, changed),
                )
                rank = significance_rank(determine_significance(diff))
                with self.subTest(total=total, changed=changed):
                    self.assertGreaterEqual(rank, previous)
                previous = rank


class TestSummaries(unittest.TestCase):
    """Human readable renderings of a diff."""

    def test_summary_counts(self) -> None:
        """Summary lists counts and the percentage."""
        diff = compare_snapshots(_lines(10), _replace(10, 1))
        self.assertEqual(
            generate_change_summary(diff),
            "1 line(s) added, 1 line(s) removed, (20.0% change)",
        )

    def test_summary_added_only(self) -> None:
        """Only the non-zero side is mentioned."""
        diff = compare_snapshots("a", "a\nb")
        self.assertEqual(
            generate_change_summary(diff),
            "1 line(s) added, (50.0% change)",
        )

    def test_summary_no_changes(self) -> None:
        """An empty diff has a fixed message."""
        diff = compare_snapshots("a", "a")
        self.assertEqual(generate_change_summary(diff), "No changes detected.")

    def test_analysis_excerpt_truncated(self) -> None:
        """Long diffs are capped with a remainder note."""
        diff = compare_snapshots("", _lines(8))
        excerpt = format_diff_for_analysis(diff, max_lines=5)
        self.assertIn("ADDED CONTENT:", excerpt)
        self.assertIn("+ line 0", excerpt)
        self.assertNotIn("+ line 5", excerpt)
        self.assertIn("... and 3 more lines added", excerpt)
        self.assertNotIn("REMOVED CONTENT:", excerpt)

    def test_analysis_excerpt_removed(self) -> None:
        """Removed lines are prefixed with a minus."""
        diff = compare_snapshots("gone\nstay", "stay")
        self.assertIn("- gone", format_diff_for_analysis(diff))


if __name__ == "__main__":
    unittest.main()

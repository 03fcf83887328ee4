# src/filters/differ.py

"""Line-set diff between two normalised page texts."""

from dataclasses import dataclass, field

# Significance cut-offs on the change ratio
HIGH_RATIO = 0.30
MEDIUM_RATIO = 0.10
MEDIUM_LINE_COUNT = 20


@dataclass(frozen=True)
class DiffResult:
    """Lines added and removed between two snapshots.

    ``added`` and ``removed`` hold distinct lines in first-seen
    order. Line order and repetition within a side are ignored.
    """

    added: list[str] = field(default_factory=lambda: list[str]())
    removed: list[str] = field(default_factory=lambda: list[str]())
    total_old_lines: int = 0
    total_new_lines: int = 0

    @property
    def added_count(self) -> int:
        """Number of distinct lines only present in the new text."""
        return len(self.added)

    @property
    def removed_count(self) -> int:
        """Number of distinct lines only present in the old text."""
        return len(self.removed)

    @property
    def change_ratio(self) -> float:
        """Changed lines relative to the longer side (never divides by 0)."""
        return (self.added_count + self.removed_count) / max(
            self.total_old_lines, self.total_new_lines, 1
        )

    @property
    def has_changes(self) -> bool:
        """True when any line was added or removed."""
        return bool(self.added or self.removed)


def _lines(text: str) -> list[str]:
    stripped = (line.strip() for line in text.split("\n"))
    return [line for line in stripped if line]


def _distinct(lines: list[str], exclude: set[str]) -> list[str]:
    return list(dict.fromkeys(ln for ln in lines if ln not in exclude))


def compare_snapshots(old_text: str, new_text: str) -> DiffResult:
    """Compute the line-set difference between *old_text* and *new_text*."""
    old_lines = _lines(old_text)
    new_lines = _lines(new_text)
    old_set = set(old_lines)
    new_set = set(new_lines)

    return DiffResult(
        added=_distinct(new_lines, old_set),
        removed=_distinct(old_lines, new_set),
        total_old_lines=len(old_lines),
        total_new_lines=len(new_lines),
    )


def determine_significance(diff: DiffResult) -> str:
    """Map a diff to ``none``/``low``/``medium``/``high``."""
    if not diff.has_changes:
        return "none"
    if diff.change_ratio > HIGH_RATIO:
        return "high"
    if diff.change_ratio > MEDIUM_RATIO:
        return "medium"
    if diff.added_count + diff.removed_count > MEDIUM_LINE_COUNT:
        return "medium"
    return "low"


def generate_change_summary(diff: DiffResult) -> str:
    """One-line human readable description of *diff*."""
    if not diff.has_changes:
        return "No changes detected."

    parts: list[str] = []
    if diff.added_count:
        parts.append(f"{diff.added_count} line(s) added")
    if diff.removed_count:
        parts.append(f"{diff.removed_count} line(s) removed")
    parts.append(f"({diff.change_ratio * 100:.1f}% change)")
    return ", ".join(parts)


def format_diff_for_analysis(diff: DiffResult, max_lines: int = 50) -> str:
    """Render a bounded ``+``/``-`` excerpt of the diff for the analyzer."""
    sections: list[str] = []

    if diff.added:
        sections.append("ADDED CONTENT:")
        sections.append(
            "\n".join(f"+ {line}" for line in diff.added[:max_lines])
        )
        if diff.added_count > max_lines:
            sections.append(
                f"... and {diff.added_count - max_lines} more lines added"
            )

    if diff.removed:
        sections.append("\nREMOVED CONTENT:")
        sections.append(
            "\n".join(f"- {line}" for line in diff.removed[:max_lines])
        )
        if diff.removed_count > max_lines:
            sections.append(
                f"... and {diff.removed_count - max_lines} more lines removed"
            )

    return "\n".join(sections)

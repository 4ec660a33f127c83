"""Remove marked regions from source text."""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from .config import MarkerSet
from .errors import UnbalancedMarkerError
from .scanner import MarkerIssue, Region, find_issues, scan

logger = logging.getLogger(__name__)

# Three line breaks with only whitespace between them: two or more blank lines.
BLANK_RUN = re.compile(r"\n\s*\n\s*\n")


@dataclass
class StripResult:
    """Outcome of one strip call."""

    text: str
    changed: bool
    regions: list[Region] = field(default_factory=list)
    issues: list[MarkerIssue] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return len(self.regions)


def collapse_blank_lines(text: str) -> str:
    """Collapse every run of two or more blank lines into one."""
    return BLANK_RUN.sub("\n\n", text)


def remove_regions(text: str, regions: list[Region]) -> str:
    """Delete the given non-overlapping regions from text."""
    pieces = []
    position = 0
    for region in sorted(regions, key=lambda r: r.start):
        pieces.append(text[position : region.start])
        position = region.end
    pieces.append(text[position:])
    return "".join(pieces)


def strip(
    text: str,
    markers: MarkerSet | None = None,
    families: Iterable[MarkerSet] = (),
    strict: bool = False,
) -> StripResult:
    """Remove every region of the given marker families.

    The default MarkerSet is scanned first, then each family in order. Scan
    generations repeat until one finds nothing, so stripping the output again
    never changes it. Unchanged input is returned as the very same string.

    Args:
        text: Source text
        markers: Default family; ``MarkerSet()`` when omitted
        families: Additional active families
        strict: Raise UnbalancedMarkerError instead of stripping when
            markers do not pair up

    Returns:
        StripResult with the new text, whether anything changed, the
        regions removed (offsets refer to the text each scan saw) and any
        marker issues found
    """
    marker_sets = [markers or MarkerSet(), *families]

    issues: list[MarkerIssue] = []
    for marker_set in marker_sets:
        issues.extend(find_issues(text, marker_set))
    for issue in issues:
        logger.warning("Unbalanced removal marker at %s", issue)
    if strict and issues:
        raise UnbalancedMarkerError(issues)

    removed: list[Region] = []
    current = text
    generation = 0
    while True:
        found_any = False
        for marker_set in marker_sets:
            regions = scan(current, marker_set)
            if not regions:
                continue
            found_any = True
            removed.extend(regions)
            current = remove_regions(current, regions)
        if not found_any:
            break
        generation += 1
        logger.debug("Scan generation %d removed %d region(s) in total", generation, len(removed))

    if not removed:
        return StripResult(text=text, changed=False, issues=issues)

    return StripResult(text=collapse_blank_lines(current), changed=True, regions=removed, issues=issues)

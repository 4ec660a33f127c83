"""Locate removal regions in source text.

Three region syntaxes are recognised, tried in priority order:

1. block pairs   ``/* START */ ... /* END */``
2. line pairs    ``// START`` ... ``// END`` (body lines need no prefix)
3. line markers  any line containing ``// MARKER``; the whole line goes

End markers are matched lazily: a start marker pairs with the first end
marker after it. Nesting is not supported; ``find_issues`` reports the
places where lazy pairing would not line up with the author's intent.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from .config import MarkerSet

logger = logging.getLogger(__name__)

# Filler for ranges claimed by a higher tier. Line breaks are kept so that
# line-anchored patterns still see the same lines.
MASK = "\x00"


class RegionKind(str, Enum):
    """Syntax a region was matched with."""

    BLOCK_PAIR = "block_pair"
    LINE_PAIR = "line_pair"
    LINE_MARKER = "line_marker"


class IssueKind(str, Enum):
    """Ways markers can fail to pair up."""

    UNTERMINATED = "unterminated"  # start with no later end
    NESTED = "nested"  # second start before the first is closed
    ORPHAN_END = "orphan_end"  # end with no open start


@dataclass(frozen=True)
class Region:
    """A located match, valid for one version of one text."""

    kind: RegionKind
    start: int
    end: int
    body: str

    def __str__(self):
        return f"{self.kind.value} [{self.start}:{self.end}]"


@dataclass(frozen=True)
class MarkerIssue:
    """A marker that does not pair up with its counterpart."""

    kind: IssueKind
    syntax: str  # "block" or "line"
    token: str
    offset: int
    line: int

    def __str__(self):
        comment = "/* */" if self.syntax == "block" else "//"
        return f"line {self.line}: {self.kind.value.replace('_', ' ')} {comment} marker {self.token!r}"


def block_comment(token: str) -> str:
    """Pattern for ``/* token */`` with optional inner whitespace."""
    return rf"/\*\s*{re.escape(token)}\s*\*/"


def line_comment(token: str) -> str:
    """Pattern for ``// token`` with optional spaces or tabs."""
    return rf"//[ \t]*{re.escape(token)}"


def compile_patterns(markers: MarkerSet) -> list[tuple[RegionKind, re.Pattern]]:
    """Compile the three tiers for one MarkerSet, highest priority first."""
    return [
        (
            RegionKind.BLOCK_PAIR,
            re.compile(block_comment(markers.block_start) + r".*?" + block_comment(markers.block_end), re.DOTALL),
        ),
        (
            RegionKind.LINE_PAIR,
            re.compile(line_comment(markers.line_start) + r".*?" + line_comment(markers.line_end), re.DOTALL),
        ),
        (
            RegionKind.LINE_MARKER,
            re.compile(r"^.*" + line_comment(markers.line_marker) + r".*(?:\n|\Z)", re.MULTILINE),
        ),
    ]


def line_number(text: str, offset: int) -> int:
    """1-based line number of an offset."""
    return text.count("\n", 0, offset) + 1


def _line_bounds(text: str, start: int, end: int) -> tuple[int, int]:
    """Widen a span to whole lines, including the final line break."""
    start = text.rfind("\n", 0, start) + 1
    if end == 0 or text[end - 1] != "\n":
        newline = text.find("\n", end)
        end = len(text) if newline == -1 else newline + 1
    return start, end


def _mask(text: str, spans: list[tuple[int, int, RegionKind]]) -> str:
    chars = list(text)
    for start, end, _ in spans:
        for i in range(start, end):
            if chars[i] != "\n":
                chars[i] = MASK
    return "".join(chars)


def _claim(
    claimed: list[tuple[int, int, RegionKind]], text: str, start: int, end: int, kind: RegionKind
) -> None:
    """Add a match, absorbing every claimed span it overlaps."""
    while True:
        if kind is RegionKind.LINE_MARKER:
            start, end = _line_bounds(text, start, end)
        overlapping = [span for span in claimed if span[0] < end and start < span[1]]
        if not overlapping:
            break
        for span in overlapping:
            claimed.remove(span)
        start = min([start] + [span[0] for span in overlapping])
        end = max([end] + [span[1] for span in overlapping])
    claimed.append((start, end, kind))


def scan(text: str, markers: MarkerSet) -> list[Region]:
    """Find every region of one marker family.

    Regions come back ordered and non-overlapping. A lower tier cannot start
    or end inside a range claimed by a higher one; when it encloses or shares
    a line with a claimed range, the two merge into one region of the lower
    tier's kind.
    """
    claimed: list[tuple[int, int, RegionKind]] = []
    searchable = text

    for kind, pattern in compile_patterns(markers):
        matches = [match.span() for match in pattern.finditer(searchable)]
        if matches:
            logger.debug("Found %d %s region(s)", len(matches), kind.value)
        for start, end in matches:
            _claim(claimed, text, start, end, kind)
        if claimed:
            searchable = _mask(text, claimed)

    return [Region(kind, start, end, text[start:end]) for start, end, kind in sorted(claimed)]


def _token_positions(text: str, start_pattern: str, end_pattern: str) -> list[tuple[int, str, int]]:
    """Start/end marker occurrences ordered by offset.

    When one token is a prefix of the other, both patterns can hit the same
    offset; the longer match wins.
    """
    positions: dict[int, tuple[str, int]] = {}
    for role, pattern in (("start", start_pattern), ("end", end_pattern)):
        for match in re.finditer(pattern, text):
            length = match.end() - match.start()
            if match.start() not in positions or positions[match.start()][1] < length:
                positions[match.start()] = (role, length)
    return [(offset, role, length) for offset, (role, length) in sorted(positions.items())]


def _pair_issues(text: str, syntax: str, start_token: str, end_token: str, pattern_for) -> list[MarkerIssue]:
    issues = []
    open_at = None
    for offset, role, _ in _token_positions(text, pattern_for(start_token), pattern_for(end_token)):
        if role == "start":
            if open_at is None:
                open_at = offset
            else:
                issues.append(MarkerIssue(IssueKind.NESTED, syntax, start_token, offset, line_number(text, offset)))
        elif open_at is None:
            issues.append(MarkerIssue(IssueKind.ORPHAN_END, syntax, end_token, offset, line_number(text, offset)))
        else:
            open_at = None

    if open_at is not None:
        issues.append(MarkerIssue(IssueKind.UNTERMINATED, syntax, start_token, open_at, line_number(text, open_at)))
    return issues


def find_issues(text: str, markers: MarkerSet) -> list[MarkerIssue]:
    """Report markers of one family that do not pair up.

    Line-pair markers inside a block region are ignored since the block
    removes them anyway.
    """
    issues = _pair_issues(text, "block", markers.block_start, markers.block_end, block_comment)

    block_pattern = compile_patterns(markers)[0][1]
    blocks = [(m.start(), m.end(), RegionKind.BLOCK_PAIR) for m in block_pattern.finditer(text)]
    searchable = _mask(text, blocks) if blocks else text
    issues.extend(_pair_issues(searchable, "line", markers.line_start, markers.line_end, line_comment))

    return sorted(issues, key=lambda issue: issue.offset)

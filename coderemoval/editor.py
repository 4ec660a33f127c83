"""Selection-driven marker editing.

Every operation takes the document text and a selection and returns an
``EditOutcome``. When the outcome carries an ``Edit``, the host applies it
as one replacement so its own undo history sees a single change. Nothing
here raises for "nothing to do"; those cases come back as ``noop`` or
``failed`` outcomes with a message for the user.
"""

import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
from typing import Callable, Optional

from .config import CommentStyle, FormattingOptions, MarkerConfig, MarkerSet
from .errors import ConfigurationError
from .scanner import block_comment, line_comment

logger = logging.getLogger(__name__)

NO_SELECTION = "No text selected"
NO_DOCUMENT = "No active document"
NOT_A_REMOVAL_BLOCK = "Selected text does not appear to be a removal block"

# /* A */ body /* B */ where neither marker contains a comment terminator.
REMOVAL_BLOCK = re.compile(
    r"/\*\s*((?:(?!\*/).)+?)\s*\*/(.*?)/\*\s*((?:(?!\*/).)+?)\s*\*/",
    re.DOTALL,
)
LINE_BREAK_RUN = re.compile(r"\r?\n\s*")


class Status(str, Enum):
    """What an operation did to the document."""

    APPLIED = "applied"
    NOOP = "noop"
    FAILED = "failed"


@dataclass(frozen=True)
class Selection:
    """A span of the document, as character offsets (end exclusive)."""

    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < 0:
            raise ValueError(f"Selection offsets must not be negative: {self.start}:{self.end}")
        if self.start > self.end:
            start, end = self.end, self.start
            object.__setattr__(self, "start", start)
            object.__setattr__(self, "end", end)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    @classmethod
    def cursor(cls, offset: int) -> "Selection":
        return cls(offset, offset)

    @classmethod
    def from_lines(cls, text: str, first: int, last: Optional[int] = None) -> "Selection":
        """Select whole lines, 1-based and inclusive, without the final line break."""
        lines = text.split("\n")
        last = first if last is None else last
        if not 1 <= first <= last <= len(lines):
            raise ValueError(f"Line range {first}:{last} outside document of {len(lines)} line(s)")
        start = sum(len(line) + 1 for line in lines[: first - 1])
        end = sum(len(line) + 1 for line in lines[:last]) - 1
        if lines[last - 1].endswith("\r"):
            end -= 1
        return cls(start, end)


@dataclass
class Document:
    """An open document: its text and the current selection."""

    text: str
    selection: Selection

    @property
    def selected_text(self) -> str:
        return self.text[self.selection.start : self.selection.end]

    def apply(self, outcome: "EditOutcome") -> None:
        """Apply an outcome's edit in place and move the selection over it."""
        if outcome.edit is None:
            return
        self.text = outcome.edit.apply(self.text)
        self.selection = Selection(outcome.edit.start, outcome.edit.start + len(outcome.edit.replacement))


@dataclass(frozen=True)
class Edit:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str

    def apply(self, text: str) -> str:
        return text[: self.start] + self.replacement + text[self.end :]


@dataclass(frozen=True)
class EditOutcome:
    """Result of one editing command."""

    status: Status
    message: str
    edit: Optional[Edit] = None
    level: str = "info"

    @property
    def applied(self) -> bool:
        return self.status is Status.APPLIED

    def apply(self, text: str) -> str:
        """The document text after this outcome."""
        return self.edit.apply(text) if self.edit is not None else text


def _applied(edit: Edit, message: str) -> EditOutcome:
    logger.debug("%s: replacing [%d:%d] with %d chars", message, edit.start, edit.end, len(edit.replacement))
    return EditOutcome(Status.APPLIED, message, edit)


def _warning(message: str, status: Status = Status.NOOP) -> EditOutcome:
    return EditOutcome(status, message, level="warning")


def line_start(text: str, offset: int) -> int:
    return text.rfind("\n", 0, offset) + 1


def line_end(text: str, offset: int) -> int:
    newline = text.find("\n", offset)
    return len(text) if newline == -1 else newline


def line_break(text: str) -> str:
    """The document's line ending: CRLF if it uses any, else LF."""
    return "\r\n" if "\r\n" in text else "\n"


def indentation(line: str) -> str:
    """Leading whitespace of a line."""
    return line[: len(line) - len(line.lstrip(" \t"))]


def comment_pair(start_token: str, end_token: str, style: CommentStyle, use_spacing: bool) -> tuple[str, str]:
    """Start and end comments, e.g. ``/* START */`` or ``//START``."""
    spacing = " " if use_spacing else ""
    if style is CommentStyle.BLOCK:
        return f"/*{spacing}{start_token}{spacing}*/", f"/*{spacing}{end_token}{spacing}*/"
    return f"//{spacing}{start_token}", f"//{spacing}{end_token}"


def collapse_lines(text: str) -> str:
    """Join lines with single spaces, dropping the indentation after each break."""
    return LINE_BREAK_RUN.sub(" ", text).strip()


def wrap(
    text: str,
    selection: Selection,
    markers: MarkerSet,
    formatting: FormattingOptions,
    style: Optional[CommentStyle] = None,
    inline: bool = False,
) -> EditOutcome:
    """Insert a removal region around the selection.

    Block mode puts the start and end comments on their own lines at the
    indentation of the selection's first line. Inline mode collapses the
    selection to one line between block comments.

    Args:
        text: Document text
        selection: Span to wrap; an empty selection is a no-op
        markers: Family whose tokens are written
        formatting: Spacing, indentation and line break options
        style: Comment syntax; ``formatting.default_style`` when omitted
        inline: Collapse onto one line (always block comment syntax)
    """
    start, end = selection.start, selection.end
    selected = text[start:end]
    if not selected:
        return _warning(NO_SELECTION)

    if inline:
        open_comment, close_comment = comment_pair(
            markers.block_start, markers.block_end, CommentStyle.BLOCK, formatting.use_spacing
        )
        replacement = f"{open_comment} {collapse_lines(selected)} {close_comment}"
        return _applied(Edit(start, end, replacement), "Code wrapped inline with removal comments")

    style = style or formatting.default_style
    if style is CommentStyle.BLOCK:
        open_comment, close_comment = comment_pair(
            markers.block_start, markers.block_end, style, formatting.use_spacing
        )
    else:
        open_comment, close_comment = comment_pair(markers.line_start, markers.line_end, style, formatting.use_spacing)

    first_line_start = line_start(text, start)
    first_line = text[first_line_start : line_end(text, first_line_start)]
    indent = indentation(first_line) if formatting.preserve_indentation else ""

    # Only indentation before the selection: take it into the replaced span.
    prefix = text[first_line_start:start]
    if not prefix.strip():
        start = first_line_start
        prefix = ""

    newline = line_break(text)
    # A selection ending between CR and LF leaves the CR with the line break.
    if text[end - 1 : end + 1] == "\r\n":
        end -= 1

    body = text[start:end]
    trailer = ""
    if body.endswith("\n"):
        trailer = "\r\n" if body.endswith("\r\n") else "\n"
        body = body[: -len(trailer)]
    else:
        rest = text[end : line_end(text, end)]
        if rest.strip() and formatting.add_empty_lines:
            end += len(rest) - len(rest.lstrip(" \t"))
            trailer = newline + indent

    lead = ""
    if prefix and formatting.add_empty_lines:
        start -= len(prefix) - len(prefix.rstrip(" \t"))
        lead = newline
    replacement = f"{lead}{indent}{open_comment}{newline}{body}{newline}{indent}{close_comment}{trailer}"
    return _applied(Edit(start, end, replacement), f"Code wrapped with {style.value} removal comments")


def mark_lines(text: str, selection: Selection, markers: MarkerSet, formatting: FormattingOptions) -> EditOutcome:
    """Append the line marker to every line the selection touches.

    An empty selection marks the cursor line. A multi-line selection that
    ends at column 0 does not touch that last line.
    """
    end = selection.end
    if not selection.is_empty and end > selection.start and text[end - 1 : end] == "\n":
        end -= 1
    span_start = line_start(text, selection.start)
    span_end = line_end(text, max(end, selection.start))

    spacing = " " if formatting.use_spacing else ""
    marker = f"{spacing}//{spacing}{markers.line_marker}"
    already_marked = re.compile(line_comment(markers.line_marker))

    lines = text[span_start:span_end].split("\n")
    marked = []
    for line in lines:
        if already_marked.search(line):
            marked.append(line)
        elif line.endswith("\r"):
            marked.append(line[:-1] + marker + "\r")
        else:
            marked.append(line + marker)

    if marked == lines:
        return EditOutcome(Status.NOOP, "Line(s) already marked for removal")
    return _applied(Edit(span_start, span_end, "\n".join(marked)), "Line(s) marked for removal")


def erase_markers(
    text: str, selection: Selection, tokens: list[str], formatting: FormattingOptions
) -> EditOutcome:
    """Remove every known marker comment from the selection, keeping the code.

    Lines left empty are dropped and the rest are trimmed. With
    ``preserve_indentation`` a kept line keeps its leading whitespace.

    A selection that opens with a line break after code (as ``wrap`` leaves
    a mid-line selection) is joined back onto that line with one space, and
    so is code following its closing line break.
    """
    selected = text[selection.start : selection.end]
    if not selected:
        return _warning(NO_SELECTION)

    cleaned = selected
    removed = 0
    # Longest first, so BUILD_REMOVE never eats the front of BUILD_REMOVE_START.
    for token in sorted(tokens, key=len, reverse=True):
        for pattern in (block_comment(token), line_comment(token)):
            cleaned, count = re.subn(pattern + r"[ \t]*", "", cleaned)
            removed += count

    if not removed:
        return EditOutcome(Status.NOOP, "No removal markers found in selection")

    kept = []
    for line in cleaned.split("\n"):
        if not line.strip():
            continue
        kept.append(line.rstrip() if formatting.preserve_indentation else line.strip())

    newline = line_break(text)
    replacement = newline.join(kept)

    before = text[line_start(text, selection.start) : selection.start]
    after = text[selection.end : line_end(text, selection.end)]
    rejoin = bool(kept) and bool(before.strip()) and selected[:1] in ("\r", "\n")
    if rejoin:
        replacement = " " + replacement.lstrip()
    if rejoin and after.strip() and selected.rstrip(" \t").endswith("\n"):
        replacement += " "
    elif selected.endswith("\n") and kept:
        replacement += newline
    return _applied(Edit(selection.start, selection.end, replacement), "Removal markers cleaned up")


def convert_to_inline(
    text: str,
    selection: Selection,
    pairs: list[tuple[str, str]],
    formatting: FormattingOptions,
) -> EditOutcome:
    """Rewrite a ``/* START */ ... /* END */`` selection onto a single line.

    The selection must consist of exactly one block region whose markers are
    a configured start/end pair; otherwise the outcome is ``failed`` and the
    document is left alone.
    """
    selected = text[selection.start : selection.end]
    if not selected:
        return _warning(NO_SELECTION)

    match = REMOVAL_BLOCK.fullmatch(selected.strip())
    if not match or (match.group(1), match.group(3)) not in pairs:
        return _warning(NOT_A_REMOVAL_BLOCK, Status.FAILED)

    start_token, body, end_token = match.groups()
    # Two blocks and the code between them are not one region.
    tokens = {token for pair in pairs for token in pair}
    if any(re.search(block_comment(token), body) for token in tokens):
        return _warning(NOT_A_REMOVAL_BLOCK, Status.FAILED)

    open_comment, close_comment = comment_pair(start_token, end_token, CommentStyle.BLOCK, formatting.use_spacing)
    content = collapse_lines(body)
    inline = f"{open_comment} {content} {close_comment}" if content else f"{open_comment} {close_comment}"

    stripped_start = len(selected) - len(selected.lstrip())
    leading = selected[:stripped_start]
    trailing = selected[len(selected.rstrip()) :]
    return _applied(
        Edit(selection.start, selection.end, leading + inline + trailing),
        "Converted to inline format",
    )


Command = Callable[[Document, MarkerConfig], EditOutcome]


def _wrap_command(
    family: str, message: str, style: Optional[CommentStyle], inline: bool, document: Document, config: MarkerConfig
) -> EditOutcome:
    outcome = wrap(document.text, document.selection, config.family(family), config.formatting, style, inline)
    return replace(outcome, message=message) if outcome.applied else outcome


def _quick_wrap(document: Document, config: MarkerConfig) -> EditOutcome:
    if config.formatting.default_style is CommentStyle.BLOCK:
        return COMMANDS["wrap-block"](document, config)
    return COMMANDS["wrap-line"](document, config)


def _mark_line(document: Document, config: MarkerConfig) -> EditOutcome:
    return mark_lines(document.text, document.selection, config.markers, config.formatting)


def _erase_markers(document: Document, config: MarkerConfig) -> EditOutcome:
    return erase_markers(document.text, document.selection, config.all_tokens(), config.formatting)


def _convert_to_inline(document: Document, config: MarkerConfig) -> EditOutcome:
    return convert_to_inline(document.text, document.selection, list(config.pairs().values()), config.formatting)


COMMANDS: dict[str, Command] = {
    "wrap-block": partial(
        _wrap_command, "default", "Code wrapped with multi-line removal comments", CommentStyle.BLOCK, False
    ),
    "wrap-line": partial(
        _wrap_command, "default", "Code wrapped with single-line removal comments", CommentStyle.LINE, False
    ),
    "wrap-inline": partial(_wrap_command, "default", "Code wrapped inline with removal comments", None, True),
    "wrap-production": partial(
        _wrap_command, "production", "Code marked as production-only", CommentStyle.BLOCK, False
    ),
    "wrap-development": partial(
        _wrap_command, "development", "Code marked as development-only", CommentStyle.BLOCK, False
    ),
    "wrap-test": partial(_wrap_command, "test", "Code marked as test-only", CommentStyle.BLOCK, False),
    "wrap-debug": partial(_wrap_command, "debug", "Code wrapped as debug block", CommentStyle.BLOCK, False),
    "quick-wrap": _quick_wrap,
    "mark-line": _mark_line,
    "erase-markers": _erase_markers,
    "convert-to-inline": _convert_to_inline,
}


def run_command(name: str, document: Optional[Document], config: Optional[MarkerConfig] = None) -> EditOutcome:
    """Run a named editing command against the active document."""
    try:
        command = COMMANDS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown command {name!r} (expected one of {', '.join(COMMANDS)})") from None

    if document is None:
        return _warning(NO_DOCUMENT)
    return command(document, config or MarkerConfig.default())

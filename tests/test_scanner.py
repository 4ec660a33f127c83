"""Tests for region scanning and marker balance checks."""

from coderemoval.config import MarkerSet
from coderemoval.scanner import IssueKind, RegionKind, find_issues, scan


def test_block_pair():
    """Test a block pair spans from its start comment to its end comment."""
    text = "a\n/* BUILD_REMOVE_START */\nx();\n/* BUILD_REMOVE_END */\nb"
    regions = scan(text, MarkerSet())

    assert len(regions) == 1
    region = regions[0]
    assert region.kind is RegionKind.BLOCK_PAIR
    assert region.body.startswith("/* BUILD_REMOVE_START */")
    assert region.body.endswith("/* BUILD_REMOVE_END */")
    assert text[region.start : region.end] == region.body


def test_block_pair_is_lazy():
    """Test a start marker pairs with the first end marker after it."""
    text = (
        "/* BUILD_REMOVE_START */ a(); /* BUILD_REMOVE_END */ keep(); "
        "/* BUILD_REMOVE_START */ b(); /* BUILD_REMOVE_END */"
    )
    regions = scan(text, MarkerSet())

    assert len(regions) == 2
    assert all("keep" not in region.body for region in regions)
    assert regions[0].end <= regions[1].start


def test_block_pair_tolerates_spacing():
    """Test whitespace inside the comment delimiters is optional."""
    text = "/*BUILD_REMOVE_START*/x();/*   BUILD_REMOVE_END   */"
    regions = scan(text, MarkerSet())

    assert len(regions) == 1
    assert regions[0].start == 0
    assert regions[0].end == len(text)


def test_line_pair_spans_uncommented_body():
    """Test a line pair covers body lines that carry no comment prefix."""
    text = "keep1\n// BUILD_REMOVE_START\nremove1();\nremove2();\n// BUILD_REMOVE_END\nkeep2"
    regions = scan(text, MarkerSet())

    assert [region.kind for region in regions] == [RegionKind.LINE_PAIR]
    assert "remove1();" in regions[0].body
    assert "remove2();" in regions[0].body
    assert "keep" not in regions[0].body


def test_line_marker_takes_whole_line():
    """Test a line marker region is the entire line with its line break."""
    text = "a(); // BUILD_REMOVE\nb();"
    regions = scan(text, MarkerSet())

    assert len(regions) == 1
    assert regions[0].kind is RegionKind.LINE_MARKER
    assert regions[0].body == "a(); // BUILD_REMOVE\n"
    assert regions[0].start == 0


def test_block_pair_claims_before_line_marker():
    """Test a line marker inside a block region does not produce a second region."""
    text = "/* BUILD_REMOVE_START */ x(); // BUILD_REMOVE /* BUILD_REMOVE_END */\nkeep();"
    regions = scan(text, MarkerSet())

    assert [region.kind for region in regions] == [RegionKind.BLOCK_PAIR]


def test_line_marker_absorbs_block_on_its_line():
    """Test a marked line sharing a line with a block region merges with it."""
    text = (
        "foo();\n"
        "/* BUILD_REMOVE_START */\n"
        "x();\n"
        "/* BUILD_REMOVE_END */ y(); // BUILD_REMOVE\n"
        "keep();"
    )
    regions = scan(text, MarkerSet())

    assert len(regions) == 1
    assert regions[0].kind is RegionKind.LINE_MARKER
    assert text[: regions[0].start] == "foo();\n"
    assert text[regions[0].end :] == "keep();"


def test_markers_are_matched_literally():
    """Test regex metacharacters in tokens are escaped."""
    markers = MarkerSet(
        block_start="STRIP(",
        block_end="STRIP)",
        line_start="STRIP(",
        line_end="STRIP)",
        line_marker="STRIP.",
    )

    assert scan("a(); // STRIPX\nb();", markers) == []
    assert len(scan("/* STRIP( */ x(); /* STRIP) */", markers)) == 1


def test_no_match_is_empty_list():
    """Test text without markers yields no regions."""
    assert scan("const a = 1;\n// regular comment\n", MarkerSet()) == []


def test_unterminated_start_is_reported():
    """Test a start without an end is left alone and flagged."""
    text = "/* BUILD_REMOVE_START */\nx();"

    assert scan(text, MarkerSet()) == []
    issues = find_issues(text, MarkerSet())
    assert len(issues) == 1
    assert issues[0].kind is IssueKind.UNTERMINATED
    assert issues[0].syntax == "block"
    assert issues[0].line == 1


def test_nested_and_orphan_markers_are_reported():
    """Test nesting reports the inner start and the leftover end."""
    text = (
        "/* BUILD_REMOVE_START */ a();\n"
        "/* BUILD_REMOVE_START */ b();\n"
        "/* BUILD_REMOVE_END */ c();\n"
        "/* BUILD_REMOVE_END */"
    )
    issues = find_issues(text, MarkerSet())

    assert [issue.kind for issue in issues] == [IssueKind.NESTED, IssueKind.ORPHAN_END]
    assert [issue.line for issue in issues] == [2, 4]


def test_line_markers_inside_block_are_not_reported():
    """Test a line-pair start swallowed by a block region is not an issue."""
    text = "/* BUILD_REMOVE_START */\n// BUILD_REMOVE_START\n/* BUILD_REMOVE_END */"

    assert find_issues(text, MarkerSet()) == []


def test_balanced_markers_have_no_issues():
    """Test properly paired markers are clean."""
    text = "// BUILD_REMOVE_START\nx();\n// BUILD_REMOVE_END\n/* BUILD_REMOVE_START */ y(); /* BUILD_REMOVE_END */"

    assert find_issues(text, MarkerSet()) == []

"""Tests for the task document section algebra."""

from taskflow.core.constants import VERIFY_STEPS_PLACEHOLDER
from taskflow.core.task_doc import (
    default_task_doc,
    doc_changed,
    ensure_doc_sections,
    extract_doc_section,
    extract_task_doc,
    is_verify_steps_filled,
    list_doc_sections,
    merge_task_doc,
    normalize_section_name,
    normalize_task_doc,
    set_markdown_section,
    split_combined_heading_lines,
)


class TestNormalizeTaskDoc:
    """Test cases for normalize_task_doc."""

    def test_blank_input(self):
        """Blank documents normalize to an empty string."""
        assert normalize_task_doc("") == ""
        assert normalize_task_doc("\n\n  \n") == ""

    def test_text_without_headings_is_only_trimmed(self):
        """Text without sections is returned as-is apart from edge newlines."""
        assert normalize_task_doc("\n\nsome notes\n  indented\n\n") == "some notes\n  indented"

    def test_repeated_headings_are_merged(self):
        """A repeated heading merges into the first, separated by a blank line."""
        doc = "## Summary\nA\n## Plan\nB\n## summary\nC"
        assert normalize_task_doc(doc) == "## Summary\n\nA\n\nC\n\n## Plan\n\nB"

    def test_blank_runs_collapse(self):
        """Runs of blank lines inside a section collapse to one."""
        doc = "## Scope\n\n\n\nline one\n\n\n\nline two\n\n\n"
        assert normalize_task_doc(doc) == "## Scope\n\nline one\n\nline two"

    def test_fenced_blocks_are_kept_verbatim(self):
        """Blank lines inside code fences are not touched."""
        doc = "## Plan\ntext\n```\n# comment\n\n\nkeep\n```\nafter"
        result = normalize_task_doc(doc)
        assert "```\n# comment\n\n\nkeep\n```" in result
        assert "text\n\n```" in result
        assert "```\n\nafter" in result
        assert list_doc_sections(result) == ["Plan"]

    def test_is_idempotent(self):
        """Normalizing twice gives the same result."""
        doc = "## Summary\n\n\nA\n## Plan ## Risks\nnone\n## summary\nB\n"
        once = normalize_task_doc(doc)
        assert normalize_task_doc(once) == once

    def test_crlf_input(self):
        """Windows line endings are normalized."""
        assert normalize_task_doc("## Summary\r\nA\r\n") == "## Summary\n\nA"

    def test_fenced_headings_stay_in_their_section(self):
        """Heading-like lines inside a fence are code, not sections."""
        doc = "## Summary\n## Context\n```\n## Alpha ## Beta\n## Context\n```"
        once = normalize_task_doc(doc)
        assert "```\n## Alpha ## Beta\n## Context\n```" in once
        assert list_doc_sections(once) == ["Summary", "Context"]
        assert normalize_task_doc(once) == once


class TestSplitCombinedHeadingLines:
    """Test cases for split_combined_heading_lines."""

    def test_splits_headings_on_one_line(self):
        """Several headings on one line become one line each."""
        assert split_combined_heading_lines("## Summary ## Plan") == ["## Summary", "## Plan"]

    def test_leaves_inline_markers_alone(self):
        """Only lines starting with a heading marker are split."""
        assert split_combined_heading_lines("see ## Summary ## Plan") == ["see ## Summary ## Plan"]

    def test_leaves_fenced_lines_alone(self):
        """Lines inside code fences are not split."""
        text = "```\n## a ## b\n```"
        assert split_combined_heading_lines(text) == ["```", "## a ## b", "```"]


class TestEnsureDocSections:
    """Test cases for ensure_doc_sections."""

    def test_empty_doc_gets_all_sections(self):
        """An empty doc becomes the list of required headings."""
        assert ensure_doc_sections("", ["Summary", "Plan"]) == "## Summary\n\n## Plan\n"

    def test_appends_missing_sections_in_order(self):
        """Missing sections are appended empty after existing ones."""
        result = ensure_doc_sections("## Summary\n\nHello", ["Summary", "Plan", "Risks"])
        assert result == "## Summary\n\nHello\n\n## Plan\n\n\n## Risks\n"
        assert list_doc_sections(result) == ["Summary", "Plan", "Risks"]

    def test_matching_is_case_insensitive(self):
        """A differently-cased heading satisfies the requirement."""
        result = ensure_doc_sections("## verify  steps\n\nrun it", ["Verify Steps"])
        assert list_doc_sections(result) == ["verify  steps"]


class TestSetMarkdownSection:
    """Test cases for set_markdown_section."""

    def test_replaces_existing_section(self):
        """The section body is replaced up to the next heading."""
        body = "## Summary\n\nOld\n\n## Plan\n\nP\n"
        result = set_markdown_section(body, "Summary", "New")
        assert "Old" not in result
        assert result.startswith("## Summary\n\nNew\n\n## Plan\n\nP\n")

    def test_appends_missing_section(self):
        """A missing section is appended at the end."""
        result = set_markdown_section("## Summary\n\nS", "Plan", "Do it")
        assert extract_doc_section(result, "Plan") == "Do it"
        assert extract_doc_section(result, "Summary") == "S"
        assert result.endswith("\n")

    def test_heading_must_match_exactly(self):
        """A heading differing in case is not replaced."""
        result = set_markdown_section("## plan\n\nold\n", "Plan", "new")
        assert "## plan\n\nold" in result
        assert result.count("## Plan") == 1


class TestExtractDocSection:
    """Test cases for extract_doc_section."""

    def test_returns_body(self):
        """The body of the first matching section is returned trimmed."""
        doc = "## Summary\n\nIntro\n\n## Verify Steps\n\n- run tests\n\n## Risks\n\nnone"
        assert extract_doc_section(doc, "verify steps") == "- run tests"

    def test_missing_section(self):
        """None is returned when the section is absent."""
        assert extract_doc_section("## Summary\n\nIntro", "Plan") is None

    def test_empty_section(self):
        """An empty section yields an empty string."""
        assert extract_doc_section("## Plan\n\n## Risks\n\nx", "Plan") == ""


class TestTaskDocRegion:
    """Test cases for extract_task_doc and merge_task_doc."""

    def test_extract_stops_at_auto_summary(self):
        """The generated summary block is not part of the doc."""
        body = "Preamble\n\n## Summary\n\nIntro\n\n## Changes Summary (auto)\n\n- generated"
        assert extract_task_doc(body) == "## Summary\n\nIntro"

    def test_extract_without_summary(self):
        """Bodies without a Summary heading have no doc region."""
        assert extract_task_doc("## Plan\n\nx") == ""
        assert extract_task_doc("") == ""

    def test_merge_keeps_prefix_and_auto_block(self):
        """Merging replaces only the doc region."""
        body = "Preamble\n\n## Summary\n\nOld\n\n## Changes Summary (auto)\n\n- generated\n"
        merged = merge_task_doc(body, "## Summary\n\nNew\n\n## Plan\n\nSteps")
        assert merged.startswith("Preamble\n\n## Summary\n\nNew")
        assert "Old" not in merged
        assert merged.endswith("## Changes Summary (auto)\n\n- generated\n")

    def test_merge_with_empty_doc_keeps_body(self):
        """An empty doc leaves the body unchanged."""
        assert merge_task_doc("body text", "") == "body text"


class TestDocHelpers:
    """Test cases for small doc helpers."""

    def test_normalize_section_name(self):
        """Section names compare case- and whitespace-insensitively."""
        assert normalize_section_name("  Verify   Steps ") == "verify steps"

    def test_doc_changed_ignores_trailing_whitespace(self):
        """Trailing whitespace differences are not changes."""
        assert not doc_changed("## Plan\n\nx  \n", "## Plan\n\nx")
        assert doc_changed("## Plan\n\nx", "## Plan\n\ny")

    def test_verify_steps_filled(self):
        """Empty or placeholder Verify Steps are not filled."""
        assert not is_verify_steps_filled(None)
        assert not is_verify_steps_filled("   ")
        assert not is_verify_steps_filled(VERIFY_STEPS_PLACEHOLDER)
        assert is_verify_steps_filled("Run: pytest -q")

    def test_default_task_doc(self):
        """The default doc carries every required section and the placeholders."""
        doc = default_task_doc(["Summary", "Plan"])
        assert list_doc_sections(doc) == ["Summary", "Plan", "Verify Steps", "Verification"]
        assert extract_doc_section(doc, "Verify Steps") == VERIFY_STEPS_PLACEHOLDER
        assert "<!-- BEGIN VERIFICATION RESULTS -->" in extract_doc_section(doc, "Verification")


class TestFencedHeadings:
    """Section lookups skip over fenced code blocks."""

    DOC = "## Plan\n```\n## Notes\nnot a heading\n```\nstep one\n\n## Notes\nreal notes\n"

    def test_extract_ignores_fenced_heading(self):
        """The fenced line neither ends Plan nor starts Notes."""
        plan = extract_doc_section(self.DOC, "Plan")
        assert plan.startswith("```\n## Notes")
        assert plan.endswith("step one")
        assert extract_doc_section(self.DOC, "Notes") == "real notes"

    def test_set_section_replaces_through_fence(self):
        """Replacing a section swallows its fenced block and keeps the next section."""
        updated = set_markdown_section(self.DOC, "Plan", "new plan")
        assert "not a heading" not in updated
        assert "## Notes\nreal notes" in updated
        assert extract_doc_section(updated, "Plan") == "new plan"

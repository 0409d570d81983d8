"""Tests for ChangeTracker diffing and applying."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.constants import CONTENT_START_INDEX
from multibuffer.core.exceptions import (
    ApplyError,
    ChangeTrackerStateError,
    FormatVersionError,
    PartialApplyError,
    StructuralEditError,
)
from multibuffer.core.models import ReplaceOptions, SearchOptions, TextDocument
from multibuffer.providers import FilesystemWorkspace
from multibuffer.services.change_tracker import ChangeTracker, TrackerState, extract_content
from multibuffer.services.excerpt_builder import build_excerpts
from multibuffer.services.matcher import Matcher
from multibuffer.services.result_formatter import ResultFormatter


def render(documents: list[TextDocument], options: SearchOptions, replace: bool = False):
    matcher = Matcher(options)
    before, after = options.context_values()
    excerpts_by_file = {}
    by_path = {}
    for doc in documents:
        excerpts = build_excerpts(doc, matcher.find_in_lines(doc.lines), before, after)
        if excerpts:
            excerpts_by_file[doc.path] = excerpts
            by_path[doc.path] = doc
    replace_options = options if replace else None
    return ResultFormatter().format_search_results(
        excerpts_by_file, by_path, options, replace_options
    )


def edit_line(content: str, aggregate_line: int, new_text: str) -> str:
    lines = content.split("\n")
    lines[aggregate_line] = lines[aggregate_line][:CONTENT_START_INDEX] + new_text
    return "\n".join(lines)


def memory_workspace(documents: dict[Path, TextDocument]) -> MagicMock:
    """Workspace mock serving documents from memory and recording writes."""
    workspace = MagicMock()

    async def read_document(path):
        return documents[path]

    workspace.read_document = AsyncMock(side_effect=read_document)
    workspace.write_lines = AsyncMock()
    return workspace


class TestExtractContent:
    def test_strips_gutter_and_whitespace(self):
        assert extract_content("     3     value = 1  ") == "value = 1"

    def test_short_line(self):
        assert extract_content("") == ""


class TestComputeChanges:
    """Tests for diffing edited aggregate text."""

    def setup_method(self):
        self.doc = TextDocument.from_text(
            Path("/ws/a.py"), "def f():\n    foo = 1\n    return foo\n"
        )
        self.options = SearchOptions(query="foo", context_lines=1)
        self.formatted = render([self.doc], self.options)
        self.tracker = ChangeTracker()
        self.tracker.initialize(self.formatted.content, self.formatted.mapping)

    def test_round_trip_without_edits_is_empty(self):
        changes = self.tracker.compute_changes(self.formatted.content, self.formatted.mapping)
        assert changes.is_empty
        assert changes.change_count == 0
        assert self.tracker.state is TrackerState.DIFFED

    def test_edit_of_match_line(self):
        # Aggregate lines: 4 "def f():", 5 "foo = 1", 6 "return foo"
        edited = edit_line(self.formatted.content, 5, "  bar = 1")
        changes = self.tracker.compute_changes(edited, self.formatted.mapping)

        assert changes.file_count == 1
        assert changes.change_count == 1
        change = changes.files[self.doc.path].changes[0]
        assert change.source_line == 1
        assert change.new_text == "bar = 1"
        assert change.original_text == "foo = 1"
        assert change.aggregate_line == 5
        assert changes.files[self.doc.path].expected_line_count == 3

    def test_whitespace_only_edit_is_not_a_change(self):
        edited = edit_line(self.formatted.content, 5, "        foo = 1   ")
        assert self.tracker.compute_changes(edited, self.formatted.mapping).is_empty

    def test_context_line_edits_are_ignored(self):
        edited = edit_line(self.formatted.content, 4, "def g():")
        assert self.tracker.compute_changes(edited, self.formatted.mapping).is_empty

    def test_added_line_is_structural(self):
        edited = self.formatted.content + "extra\n"
        with pytest.raises(StructuralEditError):
            self.tracker.compute_changes(edited, self.formatted.mapping)

    def test_recompute_after_diff(self):
        self.tracker.compute_changes(self.formatted.content)
        edited = edit_line(self.formatted.content, 6, "    return bar")
        changes = self.tracker.compute_changes(edited)
        assert changes.change_count == 1

    def test_format_version_mismatch(self):
        with pytest.raises(FormatVersionError):
            self.tracker.compute_changes(self.formatted.content, format_version=99)


class TestTrackerState:
    """Tests for the tracker lifecycle."""

    def test_compute_before_initialize(self):
        with pytest.raises(ChangeTrackerStateError):
            ChangeTracker().compute_changes("")

    def test_double_initialize(self):
        formatted = render([], SearchOptions(query="x"))
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping)
        with pytest.raises(ChangeTrackerStateError):
            tracker.initialize(formatted.content, formatted.mapping)

    @pytest.mark.asyncio
    async def test_apply_before_diff(self):
        formatted = render([], SearchOptions(query="x"))
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping)
        change_set = MagicMock()
        with pytest.raises(ChangeTrackerStateError):
            await tracker.apply_changes(change_set, MagicMock())

    def test_discard(self):
        formatted = render([], SearchOptions(query="x"))
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping)
        tracker.discard()
        assert tracker.state is TrackerState.DISCARDED
        with pytest.raises(ChangeTrackerStateError):
            tracker.compute_changes(formatted.content)
        with pytest.raises(ChangeTrackerStateError):
            tracker.discard()

    def test_compute_without_mapping(self):
        formatted = render([], SearchOptions(query="x"))
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping)
        tracker._mapping = None
        with pytest.raises(ChangeTrackerStateError, match="no aggregate mapping"):
            tracker.compute_changes(formatted.content)

    def test_initialize_version_mismatch(self):
        formatted = render([], SearchOptions(query="x"))
        with pytest.raises(FormatVersionError):
            ChangeTracker().initialize(formatted.content, formatted.mapping, format_version=2)


class TestReplaceBaseline:
    """Tests for replace documents, whose baseline is the source text."""

    def test_unedited_replace_document_yields_substitutions(self):
        doc = TextDocument.from_text(Path("/ws/a.txt"), "    Foo and foo\nnothing\n")
        options = ReplaceOptions(query="foo", replacement="bar", context_lines=0)
        formatted = render([doc], options, replace=True)

        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping, source_baseline=True)
        changes = tracker.compute_changes(formatted.content, formatted.mapping)

        change = changes.files[doc.path].changes[0]
        assert change.source_line == 0
        assert change.original_text == "Foo and foo"
        assert change.new_text == "bar and bar"


class TestApplyChanges:
    """Tests for committing change sets."""

    @pytest.mark.asyncio
    async def test_indentation_taken_from_disk(self):
        doc = TextDocument.from_text(Path("/ws/a.py"), "x = 1\n    foo()\n")
        formatted = render([doc], SearchOptions(query="foo", context_lines=0))
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping)
        changes = tracker.compute_changes(edit_line(formatted.content, 4, "bar()"))

        # The file was re-indented on disk after the search
        on_disk = TextDocument.from_text(doc.path, "x = 1\n\tfoo()\n")
        workspace = memory_workspace({doc.path: on_disk})
        report = await tracker.apply_changes(changes, workspace)

        workspace.write_lines.assert_awaited_once_with(doc.path, {1: "\tbar()"}, 2)
        assert report.succeeded == [doc.path]
        assert report.change_count == 1
        assert report.is_success
        assert tracker.state is TrackerState.APPLIED

    @pytest.mark.asyncio
    async def test_partial_failure_reported(self):
        docs = {
            Path("/ws/a.txt"): TextDocument.from_text(Path("/ws/a.txt"), "foo\n"),
            Path("/ws/b.txt"): TextDocument.from_text(Path("/ws/b.txt"), "foo\n"),
        }
        formatted = render(list(docs.values()), ReplaceOptions(query="foo", replacement="bar"), True)
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping, source_baseline=True)
        changes = tracker.compute_changes(formatted.content)

        workspace = memory_workspace(docs)

        async def write_lines(path, replacements, expected_line_count=None):
            if path.name == "a.txt":
                raise ApplyError(path, "permission denied")

        workspace.write_lines = AsyncMock(side_effect=write_lines)
        report = await tracker.apply_changes(changes, workspace)

        assert report.succeeded == [Path("/ws/b.txt")]
        assert report.failed == {Path("/ws/a.txt"): "permission denied"}
        assert report.is_partial
        assert not report.is_success
        with pytest.raises(PartialApplyError) as exc_info:
            report.raise_for_failures()
        assert exc_info.value.succeeded == [Path("/ws/b.txt")]

    @pytest.mark.asyncio
    async def test_raw_io_error_fails_only_that_file(self):
        paths = [Path("/ws/a.txt"), Path("/ws/b.txt"), Path("/ws/c.txt")]
        docs = {p: TextDocument.from_text(p, "foo\n") for p in paths}
        formatted = render(list(docs.values()), ReplaceOptions(query="foo", replacement="bar"), True)
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping, source_baseline=True)
        changes = tracker.compute_changes(formatted.content)

        workspace = memory_workspace(docs)

        async def write_lines(path, replacements, expected_line_count=None):
            if path.name == "b.txt":
                raise PermissionError(13, "Permission denied")
            if path.name == "c.txt":
                raise UnicodeEncodeError("ascii", "é", 0, 1, "ordinal not in range")

        workspace.write_lines = AsyncMock(side_effect=write_lines)
        report = await tracker.apply_changes(changes, workspace)

        assert report.succeeded == [paths[0]]
        assert set(report.failed) == {paths[1], paths[2]}
        assert "Permission denied" in report.failed[paths[1]]
        assert report.is_partial
        assert tracker.state is TrackerState.APPLIED

    @pytest.mark.asyncio
    async def test_line_removed_on_disk_fails_that_file(self):
        doc = TextDocument.from_text(Path("/ws/a.txt"), "a\nb\nfoo\n")
        formatted = render([doc], ReplaceOptions(query="foo", replacement="bar"), True)
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping, source_baseline=True)
        changes = tracker.compute_changes(formatted.content)

        workspace = memory_workspace({doc.path: TextDocument.from_text(doc.path, "a\n")})
        report = await tracker.apply_changes(changes, workspace)

        assert doc.path in report.failed
        assert "no longer exists" in report.failed[doc.path]
        workspace.write_lines.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancelled_before_apply_touches_nothing(self):
        doc = TextDocument.from_text(Path("/ws/a.txt"), "foo\n")
        formatted = render([doc], ReplaceOptions(query="foo", replacement="bar"), True)
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping, source_baseline=True)
        changes = tracker.compute_changes(formatted.content)

        token = CancellationToken()
        token.cancel()
        workspace = memory_workspace({doc.path: doc})
        report = await tracker.apply_changes(changes, workspace, token)

        assert report.cancelled
        assert report.skipped == [doc.path]
        assert report.succeeded == []
        workspace.write_lines.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_between_files_keeps_saved_files(self):
        paths = [Path("/ws/a.txt"), Path("/ws/b.txt")]
        docs = {p: TextDocument.from_text(p, "foo\n") for p in paths}
        formatted = render(list(docs.values()), ReplaceOptions(query="foo", replacement="bar"), True)
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping, source_baseline=True)
        changes = tracker.compute_changes(formatted.content)

        token = CancellationToken()
        workspace = memory_workspace(docs)

        async def write_lines(path, replacements, expected_line_count=None):
            token.cancel()

        workspace.write_lines = AsyncMock(side_effect=write_lines)
        report = await tracker.apply_changes(changes, workspace, token)

        assert report.succeeded == [paths[0]]
        assert report.skipped == [paths[1]]
        assert report.cancelled
        assert report.is_partial


class TestRoundTripOnDisk:
    """End-to-end apply against the filesystem."""

    @pytest.mark.asyncio
    async def test_replace_preserves_indentation(self, make_workspace):
        root = make_workspace({"a.py": "if x:\n    Foo and foo\n"})
        workspace = FilesystemWorkspace(root)
        path = root / "a.py"
        doc = await workspace.read_document(path)
        options = ReplaceOptions(query="foo", replacement="bar", context_lines=0)
        formatted = render([doc], options, replace=True)

        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping, source_baseline=True)
        report = await tracker.apply_changes(tracker.compute_changes(formatted.content), workspace)

        assert report.is_success
        assert path.read_text() == "if x:\n    bar and bar\n"

    @pytest.mark.asyncio
    async def test_recompute_after_apply_is_empty(self, make_workspace):
        root = make_workspace({"a.py": "a = foo\nb = foo\n"})
        workspace = FilesystemWorkspace(root)
        path = root / "a.py"
        options = SearchOptions(query="= ", context_lines=0)

        doc = await workspace.read_document(path)
        formatted = render([doc], options)
        tracker = ChangeTracker()
        tracker.initialize(formatted.content, formatted.mapping)
        edited = edit_line(formatted.content, 4, "a = bar")
        await tracker.apply_changes(tracker.compute_changes(edited), workspace)

        updated = await workspace.read_document(path)
        formatted_again = render([updated], options)
        fresh = ChangeTracker()
        fresh.initialize(formatted_again.content, formatted_again.mapping)
        assert fresh.compute_changes(formatted_again.content).is_empty
        assert updated.lines == ("a = bar", "b = foo")

"""Tests for SearchService workspace scans."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.exceptions import (
    EmptyQueryError,
    ExcerptConstructionError,
    InvalidPatternError,
    OperationCancelledError,
    WorkspaceReadError,
)
from multibuffer.core.models import SearchOptions
from multibuffer.providers import FilesystemWorkspace
from multibuffer.services import search_service as search_module
from multibuffer.services.matcher import Matcher
from multibuffer.services.search_service import SearchService


@pytest.fixture
def sample_workspace(make_workspace):
    return make_workspace(
        {
            "a.txt": "foo\nbar\nfoo\n",
            "src/b.py": "x = 1\nprint(foo)\n",
            "src/c.py": "nothing here\n",
        }
    )


class TestSearchWorkspace:
    """Tests for SearchService.search_workspace."""

    @pytest.mark.asyncio
    async def test_finds_matches_in_enumeration_order(self, sample_workspace):
        service = SearchService(FilesystemWorkspace(sample_workspace))
        result = await service.search_workspace(SearchOptions(query="foo", context_lines=0))

        assert list(result.excerpts_by_file) == [
            sample_workspace / "a.txt",
            sample_workspace / "src/b.py",
        ]
        assert result.match_count == 3
        assert result.excerpt_count == 3
        assert result.file_count == 2
        assert not result.truncated
        assert not result.issues
        assert set(result.documents) == set(result.excerpts_by_file)

    @pytest.mark.asyncio
    async def test_no_matches(self, sample_workspace):
        service = SearchService(FilesystemWorkspace(sample_workspace))
        result = await service.search_workspace(SearchOptions(query="absent"))
        assert result.is_empty
        assert result.match_count == 0

    @pytest.mark.asyncio
    async def test_binary_and_undecodable_files_are_skipped(self, make_workspace):
        root = make_workspace({"good.txt": "foo\n"})
        (root / "blob.bin").write_bytes(b"foo\x00\x01")
        (root / "latin.txt").write_bytes(b"foo caf\xe9\n")

        service = SearchService(FilesystemWorkspace(root))
        result = await service.search_workspace(SearchOptions(query="foo"))

        assert list(result.excerpts_by_file) == [root / "good.txt"]
        issues = {issue.path.name: issue for issue in result.issues}
        assert set(issues) == {"blob.bin", "latin.txt"}
        assert issues["blob.bin"].kind == "read"
        assert "binary" in issues["blob.bin"].message

    @pytest.mark.asyncio
    async def test_max_results_is_a_global_budget(self, make_workspace):
        root = make_workspace({"a.txt": "foo\nfoo\n", "b.txt": "foo\nfoo\n", "c.txt": "foo\n"})
        service = SearchService(FilesystemWorkspace(root))
        result = await service.search_workspace(
            SearchOptions(query="foo", context_lines=0, max_results=3)
        )

        assert result.match_count == 3
        assert result.match_counts == {root / "a.txt": 2, root / "b.txt": 1}
        assert result.truncated

    @pytest.mark.asyncio
    async def test_include_and_exclude(self, sample_workspace):
        service = SearchService(FilesystemWorkspace(sample_workspace))
        result = await service.search_workspace(
            SearchOptions(query="foo", include_pattern="*.py")
        )
        assert list(result.excerpts_by_file) == [sample_workspace / "src/b.py"]

        result = await service.search_workspace(
            SearchOptions(query="foo", exclude_pattern="src/")
        )
        assert list(result.excerpts_by_file) == [sample_workspace / "a.txt"]

    @pytest.mark.asyncio
    async def test_input_errors_fail_before_enumeration(self):
        workspace = MagicMock()
        workspace.find_files = AsyncMock(return_value=[])
        service = SearchService(workspace)

        with pytest.raises(EmptyQueryError):
            await service.search_workspace(SearchOptions(query=""))
        with pytest.raises(InvalidPatternError):
            await service.search_workspace(SearchOptions(query="[", is_regex=True))
        workspace.find_files.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation_discards_results(self, sample_workspace):
        service = SearchService(FilesystemWorkspace(sample_workspace))
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError, match="Search cancelled"):
            await service.search_workspace(SearchOptions(query="foo"), token)

    @pytest.mark.asyncio
    async def test_construction_failure_omits_file(self, make_workspace, monkeypatch):
        root = make_workspace({"a.txt": "foo\n", "b.txt": "foo\n"})
        service = SearchService(FilesystemWorkspace(root))
        original = search_module.build_excerpts

        def failing_build(document, spans, before, after):
            if document.path.name == "a.txt":
                raise ExcerptConstructionError("broken")
            return original(document, spans, before, after)

        monkeypatch.setattr(search_module, "build_excerpts", failing_build)
        result = await service.search_workspace(SearchOptions(query="foo"))

        assert list(result.excerpts_by_file) == [root / "b.txt"]
        assert [(i.path.name, i.kind) for i in result.issues] == [("a.txt", "construction")]


class TestSearchFile:
    """Tests for SearchService.search_file."""

    @pytest.mark.asyncio
    async def test_search_file_returns_snapshot(self, sample_workspace):
        service = SearchService(FilesystemWorkspace(sample_workspace))
        options = SearchOptions(query="foo", context_lines=1)
        file_result = await service.search_file(
            sample_workspace / "a.txt", Matcher(options), options
        )
        assert file_result.match_count == 2
        assert len(file_result.excerpts) == 1
        assert file_result.document.lines == ("foo", "bar", "foo")

    @pytest.mark.asyncio
    async def test_missing_file_raises_read_error(self, tmp_path):
        service = SearchService(FilesystemWorkspace(tmp_path))
        options = SearchOptions(query="foo")
        with pytest.raises(WorkspaceReadError):
            await service.search_file(Path(tmp_path / "missing.txt"), Matcher(options), options)

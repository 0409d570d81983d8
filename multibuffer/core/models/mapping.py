"""Aggregate mapping: joins aggregate lines, excerpt ids and file groupings."""

from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from multibuffer.core.exceptions import MappingConsistencyError

from .excerpt import Excerpt


@dataclass
class ValidationResult:
    """Outcome of validate_mapping()."""

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class AggregateMapping:
    """Bidirectional index built once per search/replace.

    Attributes:
        line_to_excerpt: 0-based aggregate line -> excerpt, for match lines only
        excerpts_by_id: Canonical registry of placed excerpts
        excerpts_by_file: File -> excerpts in aggregate order
        source_text_by_line: Aggregate match line -> original source line text
    """

    line_to_excerpt: dict[int, Excerpt] = field(default_factory=dict)
    excerpts_by_id: dict[str, Excerpt] = field(default_factory=dict)
    excerpts_by_file: dict[Path, list[Excerpt]] = field(default_factory=dict)
    source_text_by_line: dict[int, str] = field(default_factory=dict)

    @property
    def excerpt_count(self) -> int:
        return len(self.excerpts_by_id)

    @property
    def file_count(self) -> int:
        return len(self.excerpts_by_file)

    def excerpt_at(self, aggregate_line: int) -> Excerpt | None:
        """Return the excerpt whose emitted block contains aggregate_line."""
        excerpt = self.line_to_excerpt.get(aggregate_line)
        if excerpt is not None:
            return excerpt
        for candidate in self.excerpts_by_id.values():
            if candidate.aggregate_range and candidate.aggregate_range.contains(
                aggregate_line
            ):
                return candidate
        return None

    def validate(self) -> ValidationResult:
        return validate_mapping(self)

    def assert_valid(self) -> None:
        """Raise MappingConsistencyError if validation finds any problem."""
        result = validate_mapping(self)
        if not result.is_valid:
            raise MappingConsistencyError(result.errors)


def validate_mapping(mapping: AggregateMapping) -> ValidationResult:
    """Check that the three maps of an AggregateMapping agree.

    Every excerpt reachable from line_to_excerpt or excerpts_by_file must be in
    excerpts_by_id, every registered excerpt must be reachable, and the file
    grouping must match excerpts_by_id grouped by file.
    """
    result = ValidationResult()
    referenced: set[str] = set()

    for line, excerpt in mapping.line_to_excerpt.items():
        referenced.add(excerpt.id)
        if excerpt.id not in mapping.excerpts_by_id:
            result.errors.append(
                f"Excerpt {excerpt.id} at line {line} not found in excerpts map"
            )
        if excerpt.aggregate_range is None or not excerpt.aggregate_range.contains(line):
            result.errors.append(
                f"Excerpt {excerpt.id} is mapped at line {line} outside its aggregate range"
            )

    actual_by_file: dict[Path, set[str]] = {}
    for file_path, file_excerpts in mapping.excerpts_by_file.items():
        ids = set()
        for excerpt in file_excerpts:
            referenced.add(excerpt.id)
            ids.add(excerpt.id)
            if excerpt.id not in mapping.excerpts_by_id:
                result.errors.append(
                    f"Excerpt {excerpt.id} for file {file_path} not found in excerpts map"
                )
            if excerpt.file_path != file_path:
                result.errors.append(
                    f"Excerpt {excerpt.id} is grouped under {file_path} "
                    f"but belongs to {excerpt.file_path}"
                )
        actual_by_file[file_path] = ids

    expected_by_file: dict[Path, set[str]] = defaultdict(set)
    for excerpt_id, excerpt in mapping.excerpts_by_id.items():
        if excerpt_id != excerpt.id:
            result.errors.append(f"Excerpt {excerpt.id} is registered under id {excerpt_id}")
        if excerpt_id not in referenced:
            result.errors.append(
                f"Excerpt {excerpt_id} exists in excerpts map but is not referenced "
                f"in lineToExcerpt or excerptsByFile"
            )
        expected_by_file[excerpt.file_path].add(excerpt_id)

    for file_path, expected_ids in expected_by_file.items():
        missing = expected_ids - actual_by_file.get(file_path, set())
        for excerpt_id in sorted(missing):
            result.errors.append(
                f"Excerpt {excerpt_id} for file {file_path} missing from excerptsByFile"
            )
    for file_path in actual_by_file:
        if file_path not in expected_by_file:
            result.errors.append(f"File {file_path} has no registered excerpts")

    return result

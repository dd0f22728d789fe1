"""
Condition evaluator.

Evaluates an AST against an immutable snapshot of the game state and
returns a boolean.

Absence semantics:
- A missing file makes its predicate false; it is never an error.
- A missing version compares lower than any given version.
- Only an existing data path that cannot be listed, or an existing file
  that cannot be read, raises EvaluationError.
"""

import logging
import zlib
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union, cast

from .ast import (
    ActiveNode,
    ActivePatternNode,
    AndNode,
    AstNode,
    ChecksumNode,
    DescriptionContainsNode,
    FilenameVersionNode,
    FileNode,
    FilePatternNode,
    FileSizeNode,
    IsExecutableNode,
    IsMasterNode,
    ManyActiveNode,
    ManyNode,
    NotNode,
    OrNode,
    PathPattern,
    ProductVersionNode,
    ReadableNode,
    VersionNode,
)
from .errors import ConditionError, EvaluationError
from .filesystem import list_directory, read_file, resolve_path, split_relative_path
from .pe import read_executable_versions
from .plugin import PluginHeader, extract_version, is_master_file, read_plugin_header
from .state import StateSnapshot, name_key
from .version import compare_versions

logger = logging.getLogger("loot_conditions.evaluator")

# file("LOOT") refers to the running application and is always installed.
LOOT_PATH = "LOOT"


def path_key(path: str) -> str:
    """Case-insensitive key for a path relative to the data paths."""
    return "/".join(split_relative_path(path)).casefold()


def file_name(path: str) -> str:
    parts = split_relative_path(path)
    return parts[-1] if parts else ""


@dataclass
class EvaluationContext:
    """Evaluation context: the state snapshot and per-evaluation memo."""

    snapshot: StateSnapshot
    """Snapshot of the game state to evaluate against."""

    source: Optional[str] = None
    """Source condition for error reporting."""

    computed_crcs: Dict[str, int] = field(default_factory=dict)
    """Checksums computed from files during this evaluation, by path key."""


@dataclass
class EvaluationResult:
    """Result of condition evaluation."""

    value: bool
    """The evaluated value; False if evaluation failed."""

    success: bool
    """Whether evaluation succeeded."""

    error: Optional[str] = None
    """Error message if evaluation failed."""


class Evaluator:
    """Evaluates an AST node against a state snapshot."""

    def __init__(self, context: EvaluationContext):
        self._context = context
        self._snapshot = context.snapshot
        self._game = context.snapshot.game
        self._fs = context.snapshot.fs
        self._source = context.source or ""

    def evaluate(self, node: AstNode) -> bool:
        """
        Evaluates an AST node and returns its truth value.

        And/Or/Not are walked with an explicit stack of (node, next child)
        pairs, short-circuiting as soon as a compound's value is known.
        """
        pending: List[Tuple[AstNode, int]] = []
        current: Optional[AstNode] = node
        value = False

        while True:
            if current is not None:
                node_type = current.type
                if node_type == "Not":
                    pending.append((current, 1))
                    current = cast(NotNode, current).operand
                    continue

                if node_type in ("And", "Or"):
                    children = cast(Union[AndNode, OrNode], current).children
                    if children:
                        pending.append((current, 1))
                        current = children[0]
                        continue
                    # Empty and is vacuously true, empty or is false.
                    value = node_type == "And"
                else:
                    value = self._evaluate_predicate(current)
                current = None

            if not pending:
                return value

            parent, index = pending.pop()
            if parent.type == "Not":
                value = not value
                continue

            children = cast(Union[AndNode, OrNode], parent).children
            decided = value if parent.type == "Or" else not value
            if decided or index == len(children):
                continue
            pending.append((parent, index + 1))
            current = children[index]

    def _evaluate_predicate(self, node: AstNode) -> bool:
        node_type = node.type

        if node_type == "File":
            return self._evaluate_file(cast(FileNode, node).path)

        if node_type == "FilePattern":
            return self._count_files(cast(FilePatternNode, node).pattern, 1) >= 1

        if node_type == "FileSize":
            n = cast(FileSizeNode, node)
            return self._evaluate_file_size(n.path, n.size)

        if node_type == "Readable":
            return self._evaluate_readable(cast(ReadableNode, node).path)

        if node_type == "IsExecutable":
            return self._evaluate_is_executable(cast(IsExecutableNode, node).path)

        if node_type == "Active":
            name = cast(ActiveNode, node).name
            return name_key(name) in self._snapshot.active_plugin_keys

        if node_type == "ActivePattern":
            pattern = cast(ActivePatternNode, node).pattern
            return self._count_active(pattern, 1) >= 1

        if node_type == "IsMaster":
            return self._evaluate_is_master(cast(IsMasterNode, node).path)

        if node_type == "Many":
            return self._count_files(cast(ManyNode, node).pattern, 2) > 1

        if node_type == "ManyActive":
            return self._count_active(cast(ManyActiveNode, node).pattern, 2) > 1

        if node_type == "Checksum":
            n = cast(ChecksumNode, node)
            return self._evaluate_checksum(n.path, n.crc)

        if node_type == "Version":
            n = cast(VersionNode, node)
            return compare_versions(self._file_version(n.path), n.operator, n.version)

        if node_type == "ProductVersion":
            n = cast(ProductVersionNode, node)
            return compare_versions(
                self._product_version(n.path), n.operator, n.version
            )

        if node_type == "FilenameVersion":
            return self._evaluate_filename_version(cast(FilenameVersionNode, node))

        if node_type == "DescriptionContains":
            n = cast(DescriptionContainsNode, node)
            return self._evaluate_description_contains(n)

        raise EvaluationError(
            f"Unknown condition node: {node_type}", node.position, self._source
        )

    # ============================================================
    # Resolution Helpers
    # ============================================================

    def _resolve(self, path: str) -> Optional[str]:
        return resolve_path(self._fs, self._game, self._snapshot.data_paths, path)

    def _resolve_file(self, path: str) -> Optional[str]:
        """Resolves a path that must name a regular file."""
        resolved = self._resolve(path)
        if resolved is None:
            return None
        info = self._fs.stat(resolved)
        if info is None or not info.is_file:
            return None
        return resolved

    def _matching_names(self, pattern: PathPattern) -> Iterable[str]:
        """Yields distinct entry names matching a pattern, ghosts unmasked."""
        seen = set()
        for entry in list_directory(self._fs, self._snapshot.data_paths, pattern.parent):
            name = self._game.normalise_file_name(entry)
            key = name.casefold()
            if key in seen or not pattern.matches(name):
                continue
            seen.add(key)
            yield name

    def _count_files(self, pattern: PathPattern, limit: int) -> int:
        count = 0
        for _ in self._matching_names(pattern):
            count += 1
            if count >= limit:
                break
        return count

    def _count_active(self, pattern: PathPattern, limit: int) -> int:
        count = 0
        for name in self._snapshot.active_plugins:
            if pattern.matches(name):
                count += 1
                if count >= limit:
                    break
        return count

    def _plugin_header(self, path: str) -> Optional[PluginHeader]:
        """Reads the header of a plugin file; None if it is not one."""
        name = self._game.normalise_file_name(file_name(path))
        if not self._game.is_plugin_name(name):
            return None
        resolved = self._resolve_file(path)
        if resolved is None:
            return None
        return read_plugin_header(self._fs, resolved, self._game)

    # ============================================================
    # Predicates
    # ============================================================

    def _evaluate_file(self, path: str) -> bool:
        if path == LOOT_PATH:
            return True
        return self._resolve(path) is not None

    def _evaluate_file_size(self, path: str, size: int) -> bool:
        resolved = self._resolve_file(path)
        if resolved is None:
            return False
        info = self._fs.stat(resolved)
        return info is not None and info.size == size

    def _evaluate_readable(self, path: str) -> bool:
        resolved = self._resolve(path)
        return resolved is not None and self._fs.is_readable(resolved)

    def _evaluate_is_executable(self, path: str) -> bool:
        resolved = self._resolve_file(path)
        if resolved is None:
            return False
        return read_executable_versions(self._fs, resolved) is not None

    def _evaluate_is_master(self, path: str) -> bool:
        header = self._plugin_header(path)
        if header is None:
            return False
        return is_master_file(header, file_name(path), self._game)

    def _evaluate_checksum(self, path: str, crc: int) -> bool:
        actual = self._snapshot.crc_cache.get(name_key(file_name(path)))
        if actual is None:
            actual = self._computed_crc(path)
        return actual is not None and actual == crc

    def _computed_crc(self, path: str) -> Optional[int]:
        key = path_key(path)
        actual = self._snapshot.computed_crcs.get(key)
        if actual is None:
            actual = self._context.computed_crcs.get(key)
        if actual is not None:
            return actual

        resolved = self._resolve_file(path)
        if resolved is None:
            return None

        actual = zlib.crc32(read_file(self._fs, resolved)) & 0xFFFFFFFF
        self._context.computed_crcs[key] = actual
        logger.debug("checksum_computed", extra={"path": resolved, "crc": f"{actual:08X}"})
        return actual

    def _file_version(self, path: str) -> Optional[str]:
        name = self._game.normalise_file_name(file_name(path))
        override = self._snapshot.plugin_versions.get(name_key(name))
        if override is not None:
            return override

        if self._game.is_plugin_name(name):
            header = self._plugin_header(path)
            return extract_version(header.description) if header else None

        resolved = self._resolve_file(path)
        if resolved is None:
            return None
        versions = read_executable_versions(self._fs, resolved)
        return versions.file_version if versions else None

    def _product_version(self, path: str) -> Optional[str]:
        resolved = self._resolve_file(path)
        if resolved is None:
            return None
        versions = read_executable_versions(self._fs, resolved)
        return versions.product_version if versions else None

    def _evaluate_filename_version(self, node: FilenameVersionNode) -> bool:
        for name in self._matching_names(node.pattern):
            match = node.pattern.regex.fullmatch(name)
            captured = match.group(1) if match else None
            if captured is not None and compare_versions(
                captured, node.operator, node.version
            ):
                return True
        return False

    def _evaluate_description_contains(self, node: DescriptionContainsNode) -> bool:
        header = self._plugin_header(node.path)
        if header is None or header.description is None:
            return False
        return node.regex.search(header.description) is not None


def evaluate(ast: AstNode, context: EvaluationContext) -> EvaluationResult:
    """
    Evaluates an AST against a context and returns the result.

    Args:
        ast: The AST to evaluate
        context: The evaluation context holding the state snapshot

    Returns:
        The evaluation result with value and success status
    """
    try:
        evaluator = Evaluator(context)
        value = evaluator.evaluate(ast)
        return EvaluationResult(value=value, success=True)
    except ConditionError as error:
        return EvaluationResult(value=False, success=False, error=str(error))


"""
Abstract Syntax Tree (AST) node types for the condition language.

The AST is produced by the parser and consumed by the evaluator. Every
predicate carries literal arguments that were validated at parse time.
"""

import re
from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Literal, Sequence, Union

# ============================================================
# Operator Types
# ============================================================


class ComparisonOperator(Enum):
    """Version comparison operators, valued by their DSL token."""

    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    GREATER_THAN = ">"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN_OR_EQUAL = ">="

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PathPattern:
    """
    A path whose final segment is a regular expression.

    `parent` is the directory part relative to the data path ("." when the
    pattern has none), `source` is the final segment as written and `regex`
    its compiled case-insensitive form. Names must match the whole regex.
    """

    parent: str
    source: str
    regex: "re.Pattern[str]"

    def matches(self, name: str) -> bool:
        return self.regex.fullmatch(name) is not None

    def __str__(self) -> str:
        if self.parent == ".":
            return self.source
        return f"{self.parent}/{self.source}"


# ============================================================
# AST Node Types
# ============================================================


@dataclass(frozen=True)
class AstNodeBase(ABC):
    """Base class for all AST nodes."""

    position: int
    """Position in source condition (for error reporting)."""


@dataclass(frozen=True)
class AndNode(AstNodeBase):
    """Conjunction; true when every child is true."""

    children: Sequence["AstNode"]

    @property
    def type(self) -> Literal["And"]:
        return "And"


@dataclass(frozen=True)
class OrNode(AstNodeBase):
    """Disjunction; true when any child is true."""

    children: Sequence["AstNode"]

    @property
    def type(self) -> Literal["Or"]:
        return "Or"


@dataclass(frozen=True)
class NotNode(AstNodeBase):
    """Negation of a single operand."""

    operand: "AstNode"

    @property
    def type(self) -> Literal["Not"]:
        return "Not"


@dataclass(frozen=True)
class FileNode(AstNodeBase):
    """file("path"): the path exists."""

    path: str

    @property
    def type(self) -> Literal["File"]:
        return "File"


@dataclass(frozen=True)
class FilePatternNode(AstNodeBase):
    """file("dir/regex"): at least one entry matches."""

    pattern: PathPattern

    @property
    def type(self) -> Literal["FilePattern"]:
        return "FilePattern"


@dataclass(frozen=True)
class FileSizeNode(AstNodeBase):
    """file_size("path", N)"""

    path: str
    size: int

    @property
    def type(self) -> Literal["FileSize"]:
        return "FileSize"


@dataclass(frozen=True)
class ReadableNode(AstNodeBase):
    """readable("path")"""

    path: str

    @property
    def type(self) -> Literal["Readable"]:
        return "Readable"


@dataclass(frozen=True)
class IsExecutableNode(AstNodeBase):
    """is_executable("path")"""

    path: str

    @property
    def type(self) -> Literal["IsExecutable"]:
        return "IsExecutable"


@dataclass(frozen=True)
class ActiveNode(AstNodeBase):
    """active("name"): the plugin is in the active set."""

    name: str

    @property
    def type(self) -> Literal["Active"]:
        return "Active"


@dataclass(frozen=True)
class ActivePatternNode(AstNodeBase):
    """active("regex"): any active plugin matches."""

    pattern: PathPattern

    @property
    def type(self) -> Literal["ActivePattern"]:
        return "ActivePattern"


@dataclass(frozen=True)
class IsMasterNode(AstNodeBase):
    """is_master("path")"""

    path: str

    @property
    def type(self) -> Literal["IsMaster"]:
        return "IsMaster"


@dataclass(frozen=True)
class ManyNode(AstNodeBase):
    """many("dir/regex"): more than one installed file matches."""

    pattern: PathPattern

    @property
    def type(self) -> Literal["Many"]:
        return "Many"


@dataclass(frozen=True)
class ManyActiveNode(AstNodeBase):
    """many_active("regex"): more than one active plugin matches."""

    pattern: PathPattern

    @property
    def type(self) -> Literal["ManyActive"]:
        return "ManyActive"


@dataclass(frozen=True)
class ChecksumNode(AstNodeBase):
    """checksum("path", CRC)"""

    path: str
    crc: int

    @property
    def type(self) -> Literal["Checksum"]:
        return "Checksum"


@dataclass(frozen=True)
class VersionNode(AstNodeBase):
    """version("path", "version", operator)"""

    path: str
    version: str
    operator: ComparisonOperator

    @property
    def type(self) -> Literal["Version"]:
        return "Version"


@dataclass(frozen=True)
class ProductVersionNode(AstNodeBase):
    """product_version("path", "version", operator)"""

    path: str
    version: str
    operator: ComparisonOperator

    @property
    def type(self) -> Literal["ProductVersion"]:
        return "ProductVersion"


@dataclass(frozen=True)
class FilenameVersionNode(AstNodeBase):
    """filename_version("dir/regex", "version", operator)"""

    pattern: PathPattern
    version: str
    operator: ComparisonOperator

    @property
    def type(self) -> Literal["FilenameVersion"]:
        return "FilenameVersion"


@dataclass(frozen=True)
class DescriptionContainsNode(AstNodeBase):
    """description_contains("path", "regex")"""

    path: str
    regex: "re.Pattern[str]"

    @property
    def type(self) -> Literal["DescriptionContains"]:
        return "DescriptionContains"


# Union type for all AST nodes
AstNode = Union[
    AndNode,
    OrNode,
    NotNode,
    FileNode,
    FilePatternNode,
    FileSizeNode,
    ReadableNode,
    IsExecutableNode,
    ActiveNode,
    ActivePatternNode,
    IsMasterNode,
    ManyNode,
    ManyActiveNode,
    ChecksumNode,
    VersionNode,
    ProductVersionNode,
    FilenameVersionNode,
    DescriptionContainsNode,
]


# ============================================================
# AST Utilities
# ============================================================


def _quote(text: object) -> str:
    return '"' + str(text).replace('"', '\\"') + '"'


def format_condition(node: AstNode) -> str:
    """Renders an AST back into canonical condition text."""
    if isinstance(node, OrNode):
        return " or ".join(format_condition(c) for c in node.children)

    if isinstance(node, AndNode):
        return " and ".join(
            f"({format_condition(c)})" if isinstance(c, OrNode) else format_condition(c)
            for c in node.children
        )

    if isinstance(node, NotNode):
        if isinstance(node.operand, (AndNode, OrNode)):
            return f"not ({format_condition(node.operand)})"
        return f"not {format_condition(node.operand)}"

    if isinstance(node, (FileNode, FilePatternNode)):
        target = node.path if isinstance(node, FileNode) else node.pattern
        return f"file({_quote(target)})"

    if isinstance(node, FileSizeNode):
        return f"file_size({_quote(node.path)}, {node.size})"

    if isinstance(node, ReadableNode):
        return f"readable({_quote(node.path)})"

    if isinstance(node, IsExecutableNode):
        return f"is_executable({_quote(node.path)})"

    if isinstance(node, ActiveNode):
        return f"active({_quote(node.name)})"

    if isinstance(node, ActivePatternNode):
        return f"active({_quote(node.pattern)})"

    if isinstance(node, IsMasterNode):
        return f"is_master({_quote(node.path)})"

    if isinstance(node, ManyNode):
        return f"many({_quote(node.pattern)})"

    if isinstance(node, ManyActiveNode):
        return f"many_active({_quote(node.pattern)})"

    if isinstance(node, ChecksumNode):
        return f"checksum({_quote(node.path)}, {node.crc:02X})"

    if isinstance(node, VersionNode):
        return f"version({_quote(node.path)}, {_quote(node.version)}, {node.operator})"

    if isinstance(node, ProductVersionNode):
        return (
            f"product_version({_quote(node.path)}, "
            f"{_quote(node.version)}, {node.operator})"
        )

    if isinstance(node, FilenameVersionNode):
        return (
            f"filename_version({_quote(node.pattern)}, "
            f"{_quote(node.version)}, {node.operator})"
        )

    if isinstance(node, DescriptionContainsNode):
        return (
            f"description_contains({_quote(node.path)}, "
            f"{_quote(node.regex.pattern)})"
        )

    raise ValueError(f"Unknown node: {node!r}")

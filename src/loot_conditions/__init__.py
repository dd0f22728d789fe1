"""
Condition interpreter for game plugin metadata.

This package parses and evaluates the boolean condition language used by
load order tools to decide whether a rule applies to an installed game.
The status-code host boundary lives in ``loot_conditions.interface``.
"""

# Core types and utilities
from .ast import (
    ActiveNode,
    ActivePatternNode,
    AndNode,
    AstNode,
    AstNodeBase,
    ChecksumNode,
    ComparisonOperator,
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
    format_condition,
)
from .cache import CacheInfo, ConditionCache

# Configuration
from .config import SessionConfig, load_session_config, parse_session_config
from .errors import (
    ConditionError,
    EvaluationError,
    InvalidArgumentError,
    ParseError,
    TokenizerError,
)

# Evaluator
from .evaluator import (
    EvaluationContext,
    EvaluationResult,
    Evaluator,
    evaluate,
)
from .filesystem import FileKind, FileStat, FileSystem, LocalFileSystem
from .games import GameType

# Parser
from .parser import (
    Parser,
    parse,
)
from .session import Session
from .state import GameState, StateSnapshot

# Tokenizer
from .tokenizer import (
    Token,
    Tokenizer,
    TokenType,
    tokenize,
)
from .version import Version, compare_versions

__all__ = [
    # AST types
    "AstNode",
    "AstNodeBase",
    "AndNode",
    "OrNode",
    "NotNode",
    "FileNode",
    "FilePatternNode",
    "FileSizeNode",
    "ReadableNode",
    "IsExecutableNode",
    "ActiveNode",
    "ActivePatternNode",
    "IsMasterNode",
    "ManyNode",
    "ManyActiveNode",
    "ChecksumNode",
    "VersionNode",
    "ProductVersionNode",
    "FilenameVersionNode",
    "DescriptionContainsNode",
    "ComparisonOperator",
    "PathPattern",
    "format_condition",
    # Errors
    "ConditionError",
    "TokenizerError",
    "ParseError",
    "EvaluationError",
    "InvalidArgumentError",
    # Tokenizer
    "Token",
    "TokenType",
    "Tokenizer",
    "tokenize",
    # Parser
    "Parser",
    "parse",
    # Evaluator
    "EvaluationContext",
    "EvaluationResult",
    "Evaluator",
    "evaluate",
    # Versions
    "Version",
    "compare_versions",
    # Games and files
    "GameType",
    "FileSystem",
    "FileKind",
    "FileStat",
    "LocalFileSystem",
    # State
    "GameState",
    "StateSnapshot",
    "ConditionCache",
    "CacheInfo",
    "Session",
    # Configuration
    "SessionConfig",
    "load_session_config",
    "parse_session_config",
]

"""
Pseudo-semantic version parsing and comparison.

Version strings found in plugin descriptions and executable resources are
loosely formatted, so parsing never fails:

- Anything after the first ``+`` is build metadata and is ignored.
- Release ids precede the first ``-``, space, ``:`` or ``_`` and are
  separated by ``.`` or ``,``. Strings shaped like ``0, 2, 0, 12`` are all
  release ids.
- Pre-release ids follow, separated by ``.``, ``-``, space, ``:`` or ``_``.
- Ids that are wholly numeric compare as integers, others compare
  case-insensitively as text. A text release id is compared against a
  numeric one by its leading digits, and is greater when those are equal.
- Missing trailing release ids are zero, and an empty string equals ``0``.
- A version without pre-release ids is greater than the same release with
  them.
"""

import functools
import re
from typing import List, Optional, Tuple, Union

from .ast import ComparisonOperator

MAX_U32 = 0xFFFFFFFF

_U32 = re.compile(r"\+?[0-9]+")
_COMMA_SEPARATED = re.compile(r"\d+, \d+, \d+, \d+")
_RELEASE_SEPARATOR = re.compile(r"[-:_ ]")
_RELEASE_ID_SEPARATOR = re.compile(r"[.,]")
_PRE_RELEASE_ID_SEPARATOR = re.compile(r"[.\-:_ ]")

ReleaseId = Union[int, str]
PreReleaseId = Tuple[int, Union[int, str]]


def _parse_u32(text: str) -> Optional[int]:
    text = text.strip()
    if not _U32.fullmatch(text):
        return None
    value = int(text)
    return value if value <= MAX_U32 else None


def _release_id(text: str) -> ReleaseId:
    number = _parse_u32(text)
    return text.lower() if number is None else number


def _pre_release_id(text: str) -> PreReleaseId:
    # Numeric ids sort before text ids.
    number = _parse_u32(text)
    return (1, text.lower()) if number is None else (0, number)


def _leading_number(text: str) -> Tuple[Optional[int], bool]:
    """Returns the value of the leading digits and whether anything follows."""
    end = 0
    while end < len(text) and "0" <= text[end] <= "9":
        end += 1

    if end == 0:
        return None, True
    return _parse_u32(text[:end]), end < len(text)


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def _compare_number_to_text(number: int, text: str) -> int:
    leading, has_remainder = _leading_number(text)
    if leading is None:
        return -1
    if number != leading:
        return _sign(number - leading)
    return -1 if has_remainder else 0


def _compare_release_ids(lhs: ReleaseId, rhs: ReleaseId) -> int:
    if isinstance(lhs, int) and isinstance(rhs, int):
        return _sign(lhs - rhs)
    if isinstance(lhs, str) and isinstance(rhs, str):
        return (lhs > rhs) - (lhs < rhs)
    if isinstance(lhs, int):
        return _compare_number_to_text(lhs, rhs)
    return -_compare_number_to_text(rhs, lhs)


def _trim_metadata(text: str) -> str:
    if not text:
        return "0"
    return text.split("+", 1)[0]


def _split_version_string(text: str) -> Tuple[str, str]:
    if _COMMA_SEPARATED.search(text):
        return text, ""

    parts = _RELEASE_SEPARATOR.split(text, maxsplit=1)
    if len(parts) == 1:
        return text, ""
    return parts[0], parts[1]


def _split_terminator(text: str) -> List[str]:
    parts = _PRE_RELEASE_ID_SEPARATOR.split(text)
    if parts and parts[-1] == "":
        parts.pop()
    return parts


@functools.total_ordering
class Version:
    """A parsed version string. Construction never fails."""

    def __init__(self, text: str):
        self.text = text
        release, pre_release = _split_version_string(_trim_metadata(text))
        self.release_ids: List[ReleaseId] = [
            _release_id(part) for part in _RELEASE_ID_SEPARATOR.split(release)
        ]
        self.pre_release_ids: List[PreReleaseId] = [
            _pre_release_id(part) for part in _split_terminator(pre_release)
        ]

    def compare(self, other: "Version") -> int:
        """Returns -1, 0 or 1 as this version is less than, equal to or greater than `other`."""
        lhs, rhs = list(self.release_ids), list(other.release_ids)
        length = max(len(lhs), len(rhs))
        lhs.extend([0] * (length - len(lhs)))
        rhs.extend([0] * (length - len(rhs)))

        for left, right in zip(lhs, rhs):
            result = _compare_release_ids(left, right)
            if result != 0:
                return result

        if not self.pre_release_ids and other.pre_release_ids:
            return 1
        if self.pre_release_ids and not other.pre_release_ids:
            return -1

        lhs_pre, rhs_pre = self.pre_release_ids, other.pre_release_ids
        return (lhs_pre > rhs_pre) - (lhs_pre < rhs_pre)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Version({self.text!r})"

    def __str__(self) -> str:
        return self.text


def compare_versions(
    actual: Optional[Union[str, Version]],
    operator: ComparisonOperator,
    given: Union[str, Version],
) -> bool:
    """
    Applies a comparison operator to an actual and a given version.

    An absent actual version is lower than every given version, so only
    ``!=``, ``<`` and ``<=`` hold for it.
    """
    if actual is None:
        return operator in (
            ComparisonOperator.NOT_EQUAL,
            ComparisonOperator.LESS_THAN,
            ComparisonOperator.LESS_THAN_OR_EQUAL,
        )

    if isinstance(actual, str):
        actual = Version(actual)
    if isinstance(given, str):
        given = Version(given)

    result = actual.compare(given)
    if operator == ComparisonOperator.EQUAL:
        return result == 0
    if operator == ComparisonOperator.NOT_EQUAL:
        return result != 0
    if operator == ComparisonOperator.LESS_THAN:
        return result < 0
    if operator == ComparisonOperator.GREATER_THAN:
        return result > 0
    if operator == ComparisonOperator.LESS_THAN_OR_EQUAL:
        return result <= 0
    return result >= 0

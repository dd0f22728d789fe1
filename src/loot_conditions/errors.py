"""
Error types for the condition interpreter.

All condition errors extend ConditionError for consistent handling.
"""

from typing import Optional


class ConditionError(Exception):
    """
    Base error class for all condition-related errors.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.position = position
        self.expression = expression

    def format_with_context(self) -> str:
        """
        Returns a formatted error message with position context.
        """
        if self.expression is None or self.position is None:
            return self.message

        pointer = " " * self.position + "^"
        return f"{self.message}\n  {self.expression}\n  {pointer}"


class ParseError(ConditionError):
    """
    Error thrown during parsing (syntax analysis).

    The message always embeds the full expression text so that it is
    self-contained once detached from the exception.
    """

    def __init__(
        self,
        detail: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        if expression is None:
            message = detail
        elif position is None:
            message = (
                f'An error was encountered while parsing the expression '
                f'"{_escape(expression)}": {detail}'
            )
        else:
            message = (
                f'An error was encountered while parsing the expression '
                f'"{_escape(expression)}": {detail} at position {position}'
            )
        super().__init__(message, position, expression)
        self.detail = detail


class TokenizerError(ParseError):
    """
    Error thrown during tokenization (lexical analysis).
    """

    pass


class EvaluationError(ConditionError):
    """
    Error thrown during evaluation when the environment prevents an answer.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        path: Optional[str] = None,
    ):
        super().__init__(message, position, expression)
        self.path = path


class InvalidArgumentError(ConditionError):
    """
    Error thrown when a state mutation receives inconsistent arguments.
    """

    pass


def _escape(text: str) -> str:
    return text.replace('"', '\\"')

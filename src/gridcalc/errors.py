"""Error types for references, formula parsing and evaluation."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class InvalidReference(FormulaError):
    """Malformed cell address or column label.

    Attributes:
        text: The offending token.
    """

    def __init__(self, text: str, message: str | None = None) -> None:
        self.text = text
        super().__init__(message or f"Invalid cell reference: {text!r}")


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaFunctionError(FormulaError):
    """Unknown function, wrong number of arguments, or bad argument value.

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


# In-band cell values for failed and circular evaluations.
ERROR = "#ERROR!"
CIRCULAR = "#CIRCULAR!"
ERROR_TOKENS = frozenset({ERROR, CIRCULAR})


# Everything the evaluator contains as an in-band ``#ERROR!`` value.
ENGINE_ERRORS: tuple[type[BaseException], ...] = (
    FormulaError,
    ZeroDivisionError,
    OverflowError,
    TypeError,
    ValueError,
    RecursionError,
)

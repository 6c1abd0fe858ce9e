"""Lark-based parser for the arithmetic/text expression sublanguage.

Expressions reach this parser after cell substitution, so they hold only
literals, operators and function calls:

- Numbers (``3``, ``2.5``, ``.5``, ``1e-5``), double-quoted strings with
  ``\\"`` and ``\\\\`` escapes, ``TRUE`` / ``FALSE``
- Arithmetic, text concatenation (``&``), comparisons, postfix percent
- Function calls ``NAME(arg, ...)``
"""

from __future__ import annotations

from lark import Lark, Tree

from gridcalc.errors import FormulaParseError

# LALR(1) grammar.
# Operator precedence (lowest to highest):
#   1. Comparison: > < >= <= = <>
#   2. Concatenation: &
#   3. Addition/subtraction: + -
#   4. Multiplication/division: * /
#   5. Unary plus/minus: + -
#   6. Exponentiation: ^ (right-associative)
#   7. Postfix percent: %  (3% = 0.03)
#   8. Atoms: number, bool, string, function call, parenthesized expr
GRAMMAR = r"""
start: expr

?expr: comparison

?comparison: concat
    | comparison ">" concat   -> gt
    | comparison "<" concat   -> lt
    | comparison ">=" concat  -> gte
    | comparison "<=" concat  -> lte
    | comparison "=" concat   -> eq
    | comparison "<>" concat  -> neq

?concat: addition
    | concat "&" addition  -> join

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos

?exponentiation: postfix
    | postfix "^" unary  -> pow

?postfix: atom
    | postfix "%"  -> percent

?atom: NUMBER                   -> number
    | BOOL                      -> boolean
    | ESCAPED_STRING            -> string
    | NAME "(" args ")"         -> func_call
    | NAME                      -> name_ref
    | "(" expr ")"

args: expr ("," expr)*
    |

BOOL.2: "TRUE" | "FALSE"

NAME.1: /[A-Za-z_][A-Za-z0-9_]*/

%import common.NUMBER
%import common.ESCAPED_STRING
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


def parse_expression(text: str) -> Tree:
    """Parse an expression body (no leading ``=``) into a Lark Tree.

    Args:
        text: The expression, e.g. ``"5 + 3 * (2 - 1)"``.

    Returns:
        A Lark parse tree.

    Raises:
        FormulaParseError: If the expression has invalid syntax.
    """
    text = text.strip()
    if not text:
        raise FormulaParseError("Empty expression", position=0)
    try:
        return _parser.parse(text)
    except Exception as exc:
        pos = getattr(exc, "column", None)
        raise FormulaParseError(str(exc), position=pos) from exc


def parse_formula(text: str) -> Tree:
    """Parse a full formula string (must start with ``=``).

    Raises:
        FormulaParseError: If the text is not a formula or has invalid syntax.
    """
    text = text.strip()
    if not text.startswith("="):
        raise FormulaParseError("Formula must start with '='", position=0)
    return parse_expression(text[1:])

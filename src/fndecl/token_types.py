"""
Token Types for fndecl

Shared between lexer and parser to avoid circular dependencies.
"""

from dataclasses import dataclass
from enum import Enum, auto


class TT(Enum):
    """Token Types - mirrors grammar terminals"""

    # Grouping
    LPAR = auto()
    RPAR = auto()
    LBRACE = auto()
    RBRACE = auto()

    # Absolute value bar
    PIPE = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    CARET = auto()
    BANG = auto()
    PERCENT = auto()

    # Comparison (clauses only)
    EQUAL = auto()
    GT = auto()
    GTE = auto()
    LT = auto()
    LTE = auto()

    # Punctuation
    COMMA = auto()
    UNDERSCORE = auto()  # function variant subscript

    # Literals
    NUMBER = auto()
    FUNCTION = auto()
    CONSTANT = auto()
    IDENT = auto()

    # Parser-side end marker, never emitted by the lexer
    EOF = auto()


COMPARISON_TYPES = frozenset({TT.EQUAL, TT.GT, TT.GTE, TT.LT, TT.LTE})


@dataclass(frozen=True)
class Tok:
    """Token with position info"""

    type: TT
    lexeme: str
    pos: int = 0

    def describe(self) -> str:
        if self.type is TT.EOF:
            return "end of input"
        return f"'{self.lexeme}' at position {self.pos}"

    def __repr__(self):
        return f"Tok({self.type.name}, {self.lexeme!r}, {self.pos})"

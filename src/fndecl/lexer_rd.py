"""
Lexer for fndecl - Recursive Descent Parser

Tokenizes a function declaration such as ``f(x)={x>=0}x^2+sin(x)``.

Features:
- Single-pass tokenization, one character of lookahead
- Reserved words come from the bound library (functions and constants)
- Letter runs that are not reserved split into one identifier per letter,
  so ``xy`` reads as ``x*y``
"""

import logging
from typing import List, Optional

from .token_types import TT, Tok
from .stdlib import standard_library
from .types import FnDeclError, Library

logger = logging.getLogger(__name__)

# ============================================================================
# Lexer Implementation
# ============================================================================

class LexError(FnDeclError):
    """Lexical analysis error"""

    def __init__(self, message: str, char: Optional[str] = None, pos: Optional[int] = None):
        self.message = message
        self.char = char
        self.pos = pos
        super().__init__(f"{message} at position {pos}" if pos is not None else message)


class Lexer:
    """
    fndecl lexer.

    The library is consulted only for its reserved names; the lexer never
    looks at the callables themselves.
    """

    SINGLE_CHAR = {
        '(': TT.LPAR,
        ')': TT.RPAR,
        '{': TT.LBRACE,
        '}': TT.RBRACE,
        '|': TT.PIPE,
        '+': TT.PLUS,
        '-': TT.MINUS,
        '*': TT.STAR,
        '/': TT.SLASH,
        '^': TT.CARET,
        '!': TT.BANG,
        '%': TT.PERCENT,
        '=': TT.EQUAL,
        ',': TT.COMMA,
        '_': TT.UNDERSCORE,
    }

    # '>' and '<' optionally absorb a following '='
    COMPARISONS = {
        '>': (TT.GT, TT.GTE),
        '<': (TT.LT, TT.LTE),
    }

    WHITESPACE = (' ', '\t', '\r', '\n')

    def __init__(self, source: str, library: Library):
        self.source = source
        self.pos = 0
        self.start = 0
        self.tokens: List[Tok] = []

        self.reserved_functions = library.function_names()
        self.reserved_constants = library.constant_names()

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """Tokenize entire source, return token list"""
        while self.pos < len(self.source):
            self.start = self.pos
            self.scan_token()

        logger.debug("scanned %d tokens from %r", len(self.tokens), self.source)
        return self.tokens

    def scan_token(self):
        """Scan next token"""
        ch = self.advance()

        if ch in self.WHITESPACE:
            return

        if ch in self.SINGLE_CHAR:
            self.emit(self.SINGLE_CHAR[ch])
            return

        if ch in self.COMPARISONS:
            plain, with_equal = self.COMPARISONS[ch]
            self.emit(with_equal if self.match('=') else plain)
            return

        if is_digit(ch):
            self.scan_number()
            return

        if is_letter(ch):
            self.scan_word()
            return

        raise LexError(f"Unexpected character '{ch}'", ch, self.start)

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_number(self):
        """Scan number literal: digits with an optional fractional part"""
        while is_digit(self.peek()):
            self.advance()

        if self.peek() == '.':
            self.advance()
            if not is_digit(self.peek()):
                raise LexError("Expected fractional part after radix point", '.', self.pos - 1)
            while is_digit(self.peek()):
                self.advance()

        self.emit(TT.NUMBER)

    def scan_word(self):
        """Scan a letter run: reserved function, reserved constant, or identifiers"""
        while is_letter(self.peek()):
            self.advance()

        word = self.source[self.start:self.pos]

        if word in self.reserved_functions:
            self.emit(TT.FUNCTION)
            return

        if word in self.reserved_constants:
            self.emit(TT.CONSTANT)
            return

        # Unreserved run: implicit product of single-letter identifiers
        for offset, letter in enumerate(word):
            self.tokens.append(Tok(TT.IDENT, letter, self.start + offset))

    # ========================================================================
    # Utilities
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self) -> str:
        """Consume and return the current character"""
        ch = self.peek()
        self.pos += 1
        return ch

    def match(self, expected: str) -> bool:
        """Consume the current character if it equals expected"""
        if self.peek() != expected:
            return False
        self.pos += 1
        return True

    def emit(self, token_type: TT):
        """Emit a token spanning start..pos"""
        self.tokens.append(Tok(token_type, self.source[self.start:self.pos], self.start))


def is_digit(ch: str) -> bool:
    return '0' <= ch <= '9'


def is_letter(ch: str) -> bool:
    return ('a' <= ch <= 'z') or ('A' <= ch <= 'Z')


def tokenize(source: str, library: Optional[Library] = None) -> List[Tok]:
    """Convenience function to tokenize source against a library"""
    if library is None:
        library = standard_library()

    lexer = Lexer(source, library)
    return lexer.tokenize()

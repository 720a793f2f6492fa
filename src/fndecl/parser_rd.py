"""
Recursive Descent Parser for fndecl

Structure:
- Lexer: Token stream from source (lexer_rd)
- Parser: Recursive descent, one method per precedence level
- AST: Frozen node classes from tree.py

Grammar (lowest to highest precedence):

    declaration -> IDENT "(" [IDENT ("," IDENT)*] ")" "=" [clauses] expression [clauses]
        clauses -> "{" logical ("," logical)* "}"
        logical -> expression (cmp expression)+
     expression -> term
           term -> factor (("+" | "-") factor)*
         factor -> exponent ((("*" | "/" | "%") | <implicit>) exponent)*
       exponent -> negative ("^" exponent)?
       negative -> "-" negative | factorial
      factorial -> primary "!"*
        primary -> NUMBER | IDENT | CONSTANT
                 | "(" expression ")" | "|" expression "|"
                 | FUNCTION ("_" primary)? "(" [expression ("," expression)*] ")"

Absolute value bars are both openers and closers, and an operand directly
followed by another operand multiplies. Together that makes ``|a|b|c|``
ambiguous. The parser resolves it without backtracking by keeping one count
per nesting level (``abs_stack``): how many absolute value groupings are open
at that level. A bar after an operand closes the innermost one; only a bar
closing a grouping nested inside another at the same level may not be
followed by a new operand. A fresh level is pushed for each
parenthesised group, function argument, exponent operand and explicit
``*``/``/``/``%`` operand, so bars only compete with bars at the same depth.
"""

import logging
from typing import List, Optional

from .token_types import COMPARISON_TYPES, TT, Tok
from .types import FnDeclError, Library
from . import tree as ast

logger = logging.getLogger(__name__)

# ============================================================================
# Parser
# ============================================================================

class ParseError(FnDeclError):
    """Parse error with position info"""
    def __init__(self, message: str, token: Optional[Tok] = None):
        self.message = message
        self.token = token
        super().__init__(
            f"{message} (got {token.describe()})" if token else message
        )


# Tokens that may start an exponent right after a complete operand
IMPLICIT_MUL_STARTS = frozenset({TT.NUMBER, TT.IDENT, TT.CONSTANT, TT.LPAR, TT.FUNCTION})

# Tokens before a '|' that make it open a nested grouping at the same level
NESTED_ABS_PRECEDERS = frozenset({TT.PIPE, TT.PLUS, TT.MINUS})

AMBIGUOUS_ABS = "nested absolute value requires explicit '*'"


class Parser:
    """
    Recursive descent parser for fndecl.

    Expression precedence (lowest to highest):
    1. clause comparison (>, >=, <, <=, =), chained
    2. add (+, -)
    3. mul (*, /, %, implicit)
    4. pow (^), right associative
    5. negation (-)
    6. factorial (!), postfix
    7. primary (literals, groups, absolute value, calls)
    """

    def __init__(self, tokens: List[Tok]):
        self.tokens = tokens
        self.pos = 0
        self.current = tokens[0] if tokens else self._eof()
        # One count per nesting level: abs groupings open here
        self.abs_stack: List[int] = []

    # ========================================================================
    # Token Navigation
    # ========================================================================

    def _eof(self) -> Tok:
        end = self.tokens[-1].pos + len(self.tokens[-1].lexeme) if self.tokens else 0
        return Tok(TT.EOF, '', end)

    def peek(self, offset: int = 0) -> Tok:
        """Look at a token relative to the current one"""
        idx = self.pos + offset
        if 0 <= idx < len(self.tokens):
            return self.tokens[idx]
        return self._eof()

    def previous(self) -> Tok:
        return self.peek(-1)

    def advance(self) -> Tok:
        """Consume current token and move to next"""
        prev = self.current
        if self.pos < len(self.tokens):
            self.pos += 1
        self.current = self.peek()
        return prev

    def rewind(self) -> None:
        """Step back one token"""
        self.pos -= 1
        self.current = self.peek()

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def match(self, *types: TT) -> bool:
        """Check and consume if current token matches"""
        if self.check(*types):
            self.advance()
            return True
        return False

    def expect(self, token_type: TT, message: str) -> Tok:
        """Consume token of expected type or raise error"""
        if not self.check(token_type):
            raise ParseError(message, self.current)
        return self.advance()

    # ========================================================================
    # Absolute Value Levels
    # ========================================================================

    def push_level(self) -> None:
        self.abs_stack.append(0)

    def pop_level(self) -> None:
        self.abs_stack.pop()

    def abs_depth(self) -> int:
        return self.abs_stack[-1]

    def enter_abs(self) -> None:
        self.abs_stack[-1] += 1

    def exit_abs(self) -> None:
        self.abs_stack[-1] -= 1

    def nested(self, parse_fn):
        """Run parse_fn on a fresh nesting level"""
        self.push_level()
        try:
            return parse_fn()
        finally:
            self.pop_level()

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> ast.FnDecl:
        """Parse a whole declaration and require the stream to end there"""
        decl = self.parse_declaration()

        if not self.check(TT.EOF):
            raise ParseError("Unexpected tokens after declaration", self.current)

        logger.debug("parsed declaration %s with %d clause(s)", decl.name, len(decl.clauses))
        return decl

    def parse_declaration(self) -> ast.FnDecl:
        ident = self.expect(TT.IDENT, "Expected function identifier")
        self.expect(TT.LPAR, "Expected '(' after function identifier")

        params: List[Tok] = []
        if not self.check(TT.RPAR):
            params.append(self.expect(TT.IDENT, "Expected function parameter name or closing parenthesis"))
            while self.match(TT.COMMA):
                params.append(self.expect(TT.IDENT, "Expected function parameter name after comma"))

        seen = set()
        for param in params:
            if param.lexeme in seen:
                raise ParseError(f"Duplicate parameter '{param.lexeme}'", param)
            seen.add(param.lexeme)

        self.expect(TT.RPAR, "Expected ')' after function parameter list")
        self.expect(TT.EQUAL, "Expected '=' after function signature")

        clauses: List[ast.LogicalExpr] = []
        if self.check(TT.LBRACE):
            clauses.extend(self.parse_clauses())

        body = self.nested(self.parse_expr)

        if self.check(TT.LBRACE):
            clauses.extend(self.parse_clauses())

        return ast.FnDecl(ident, tuple(params), body, tuple(clauses))

    # ========================================================================
    # Guard Clauses
    # ========================================================================

    def parse_clauses(self) -> List[ast.LogicalExpr]:
        """Parse a clause block: { logical (, logical)* }"""
        self.expect(TT.LBRACE, "Expected '{' to open clause block")

        clauses = [self.parse_logical()]
        while self.match(TT.COMMA):
            clauses.append(self.parse_logical())

        self.expect(TT.RBRACE, "Expected '}' after clauses")
        return clauses

    def parse_logical(self) -> ast.LogicalExpr:
        """Parse a chained comparison: a < b <= c nests as ((a < b) <= c)"""
        left = self.nested(self.parse_expr)

        if not self.check(*COMPARISON_TYPES):
            raise ParseError("Expected comparison operator in clause", self.current)

        node: Optional[ast.LogicalExpr] = None
        while self.check(*COMPARISON_TYPES):
            op = self.advance()
            right = self.nested(self.parse_expr)
            node = ast.LogicalExpr(node if node is not None else left, op, right)

        return node

    # ========================================================================
    # Expressions
    # ========================================================================

    def parse_expr(self) -> ast.Expr:
        return self.parse_term()

    def parse_term(self) -> ast.Expr:
        """Parse addition/subtraction: left associative"""
        left = self.parse_factor()

        while self.check(TT.PLUS, TT.MINUS):
            op = self.advance()
            right = self.parse_factor()
            left = ast.Binary(left, op, right)

        return left

    def parse_factor(self) -> ast.Expr:
        """Parse explicit and implicit multiplication, division, modulo"""
        left = self.parse_exponent()

        while True:
            if self.check(TT.STAR, TT.SLASH, TT.PERCENT):
                op = self.advance()
                right = self.nested(self.parse_exponent)
                left = ast.Binary(left, op, right)
                continue

            if self.check(*IMPLICIT_MUL_STARTS) or (self.check(TT.PIPE) and self.pipe_starts_operand()):
                # Re-enter exponent under a synthetic '*'
                star = Tok(TT.STAR, '*', self.current.pos)
                left = ast.Binary(left, star, self.parse_exponent())
                continue

            return left

    def pipe_starts_operand(self) -> bool:
        """
        Decide what a '|' right after a complete operand means.

        With no grouping open at this level it opens one, which multiplies
        implicitly (``2|x|``). Otherwise it closes the innermost grouping, and
        an operand may follow (``|x|x``). The exception is a bar closing a
        grouping nested inside another at the same level: in ``||2|3|`` the
        middle bar could close ``|2|`` or open a third grouping, and telling
        them apart needs more lookahead than the grammar allows.
        """
        depth = self.abs_depth()
        if depth == 0:
            return True

        if depth > 1 and self.peek(1).type in IMPLICIT_MUL_STARTS:
            raise ParseError(AMBIGUOUS_ABS, self.current)

        return False

    def parse_exponent(self) -> ast.Expr:
        """Parse exponentiation (right associative)"""
        base = self.parse_negative()

        if self.check(TT.CARET):
            op = self.advance()
            exp = self.nested(self.parse_exponent)
            return ast.Binary(base, op, exp)

        return base

    def parse_negative(self) -> ast.Expr:
        if self.check(TT.MINUS):
            op = self.advance()
            return ast.Unary(op, self.parse_negative())

        return self.parse_factorial()

    def parse_factorial(self) -> ast.Expr:
        """Parse postfix '!' (any count, left associative)"""
        expr = self.parse_primary()

        while self.check(TT.BANG):
            op = self.advance()
            expr = ast.Unary(op, expr)

        return expr

    def parse_primary(self) -> ast.Expr:
        if self.check(TT.NUMBER, TT.IDENT, TT.CONSTANT):
            return ast.Literal(self.advance())

        if self.match(TT.LPAR):
            inner = self.nested(self.parse_expr)
            self.expect(TT.RPAR, "Expected ')' to close grouping")
            return ast.Grouping(inner)

        if self.check(TT.PIPE):
            return self.parse_abs()

        if self.check(TT.FUNCTION):
            return self.parse_call()

        if self.check(TT.EOF):
            raise ParseError("Unexpected end of input", self.current)
        raise ParseError("Unexpected token", self.current)

    def parse_abs(self) -> ast.AbsGrouping:
        """
        Parse |expression|.

        Opening while a grouping is already open at this level is only allowed
        where no operand precedes the bar (``|-|x||``, ``||a|+|b||``).
        """
        bar = self.advance()

        # Token two back from the cursor is the one before this bar
        if self.abs_depth() > 0 and self.peek(-2).type not in NESTED_ABS_PRECEDERS:
            raise ParseError(AMBIGUOUS_ABS, bar)

        self.enter_abs()
        inner = self.parse_expr()
        self.expect(TT.PIPE, "Expected '|' to close absolute value")
        self.exit_abs()
        return ast.AbsGrouping(inner)

    def parse_call(self) -> ast.FnCall:
        """Parse FUNCTION [_ primary] ( args )"""
        ident = self.advance()

        variant: Optional[ast.Expr] = None
        if self.match(TT.UNDERSCORE):
            variant = self.nested(self.parse_primary)

        self.expect(TT.LPAR, f"Expected '(' after function '{ident.lexeme}'")

        args: List[ast.Expr] = []
        if not self.check(TT.RPAR):
            args.append(self.nested(self.parse_expr))
            while self.match(TT.COMMA):
                args.append(self.nested(self.parse_expr))

        self.expect(TT.RPAR, "Expected ')' after function arguments")
        return ast.FnCall(ident, variant, tuple(args))


# ============================================================================
# Entry Points
# ============================================================================

def parse(tokens: List[Tok]) -> ast.FnDecl:
    """Parse a token list into a declaration"""
    return Parser(tokens).parse()


def parse_source(source: str, library: Optional[Library] = None) -> ast.FnDecl:
    """
    Tokenize and parse a declaration.

    Args:
        source: Declaration text, e.g. ``f(x)=|x|{x<10}``
        library: Library whose names are reserved (default: standard library)
    """
    from .lexer_rd import tokenize

    return parse(tokenize(source, library))


# ============================================================================
# Main - AST dump
# ============================================================================

if __name__ == '__main__':
    import sys

    source = sys.argv[1] if len(sys.argv) > 1 else sys.stdin.read()

    try:
        print(ast.as_tree(parse_source(source)).pretty())
    except FnDeclError as e:
        print(f"Parse error: {e}", file=sys.stderr)
        sys.exit(1)

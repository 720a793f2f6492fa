"""AST node types produced by the parser and consumed by the code generator.

Nodes are frozen dataclasses holding tuples, so a parsed declaration can be
kept on the compiled function without anyone mutating it afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from lark import Token, Tree
from typing_extensions import TypeAlias, assert_never

from .token_types import Tok


@dataclass(frozen=True)
class Literal:
    token: Tok


@dataclass(frozen=True)
class Grouping:
    inner: Expr


@dataclass(frozen=True)
class AbsGrouping:
    inner: Expr


@dataclass(frozen=True)
class FnCall:
    ident: Tok
    variant: Optional[Expr]
    args: Tuple[Expr, ...]


@dataclass(frozen=True)
class Unary:
    operator: Tok
    inner: Expr


@dataclass(frozen=True)
class Binary:
    left: Expr
    operator: Tok
    right: Expr


Expr: TypeAlias = Union[Literal, Grouping, AbsGrouping, FnCall, Unary, Binary]


@dataclass(frozen=True)
class LogicalExpr:
    """Comparison link in a guard clause; chains nest to the left."""

    left: Union[Expr, LogicalExpr]
    operator: Tok
    right: Expr

    def links(self) -> Tuple[Tuple[Expr, ...], Tuple[Tok, ...]]:
        """Flatten ``a < b <= c`` into operands (a, b, c) and operators (<, <=)."""
        if isinstance(self.left, LogicalExpr):
            operands, operators = self.left.links()
        else:
            operands, operators = (self.left,), ()
        return operands + (self.right,), operators + (self.operator,)


@dataclass(frozen=True)
class FnDecl:
    ident: Tok
    params: Tuple[Tok, ...]
    body: Expr
    clauses: Tuple[LogicalExpr, ...] = ()

    @property
    def name(self) -> str:
        return self.ident.lexeme

    @property
    def param_names(self) -> Tuple[str, ...]:
        return tuple(tok.lexeme for tok in self.params)


Node: TypeAlias = Union[Expr, LogicalExpr, FnDecl]

# ---------- lark dump ----------

def _token(tok: Tok) -> Token:
    return Token(tok.type.name, tok.lexeme, start_pos=tok.pos)


def as_tree(node: Node) -> Tree:
    """Mirror an AST as a lark Tree, mainly for ``Tree.pretty()``."""
    match node:
        case FnDecl(ident=ident, params=params, body=body, clauses=clauses):
            children = [
                _token(ident),
                Tree('params', [_token(p) for p in params]),
                Tree('body', [as_tree(body)]),
            ]
            if clauses:
                children.append(Tree('clauses', [as_tree(c) for c in clauses]))
            return Tree('fndecl', children)
        case LogicalExpr(left=left, operator=op, right=right):
            return Tree('logical', [as_tree(left), _token(op), as_tree(right)])
        case Literal(token=tok):
            return Tree('literal', [_token(tok)])
        case Grouping(inner=inner):
            return Tree('group', [as_tree(inner)])
        case AbsGrouping(inner=inner):
            return Tree('abs', [as_tree(inner)])
        case FnCall(ident=ident, variant=variant, args=args):
            children = [_token(ident)]
            if variant is not None:
                children.append(Tree('variant', [as_tree(variant)]))
            children.append(Tree('args', [as_tree(a) for a in args]))
            return Tree('call', children)
        case Unary(operator=op, inner=inner):
            return Tree('unary', [_token(op), as_tree(inner)])
        case Binary(left=left, operator=op, right=right):
            return Tree('binary', [as_tree(left), _token(op), as_tree(right)])
        case _:
            assert_never(node)


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield node and every node below it, parents first."""
    yield node
    match node:
        case FnDecl(body=body, clauses=clauses):
            yield from iter_nodes(body)
            for clause in clauses:
                yield from iter_nodes(clause)
        case LogicalExpr(left=left, right=right) | Binary(left=left, right=right):
            yield from iter_nodes(left)
            yield from iter_nodes(right)
        case Grouping(inner=inner) | AbsGrouping(inner=inner) | Unary(inner=inner):
            yield from iter_nodes(inner)
        case FnCall(variant=variant, args=args):
            if variant is not None:
                yield from iter_nodes(variant)
            for arg in args:
                yield from iter_nodes(arg)
        case Literal():
            pass
        case _:
            assert_never(node)

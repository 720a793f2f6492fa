from __future__ import annotations

from typing import List, Tuple

import pytest

from tests.support.harness import TT, ParseError, parse_decl
from fndecl.parser_rd import parse
from fndecl.tree import (
    AbsGrouping,
    Binary,
    FnCall,
    FnDecl,
    Grouping,
    Literal,
    LogicalExpr,
    Unary,
    as_tree,
)

PARSER_GRAMMAR_CASES: List[Tuple[str, str]] = [
    ("identity", "f(x)=x"),
    ("no-params", "f()=2"),
    ("many-params", "f(x,y,z)=x+y+z"),
    ("spaces", "f ( x , y ) = x * y"),
    ("implicit-mul-idents", "f(x,y)=xy"),
    ("implicit-mul-number", "f(x)=2x"),
    ("implicit-mul-group", "f(x)=2(x+1)"),
    ("implicit-mul-call", "f(x)=2sin(x)"),
    ("implicit-mul-constant", "f(x)=2pi x"),
    ("group-then-group", "f(x)=(x+1)(x-1)"),
    ("power-right", "f(x)=x^2^3"),
    ("negative-power", "f(x)=2^-x"),
    ("double-negative", "f(x)=--x"),
    ("factorial-chain", "f(x)=x!!"),
    ("modulo", "f(x)=x%3"),
    ("variant-number", "f(x)=log_10(x)"),
    ("variant-constant", "f(x)=log_e(x)"),
    ("variant-group", "f(x)=log_(1+1)(x)"),
    ("empty-args", "f()=random()"),
    ("multi-args", "f(x,y)=max(x,y,1)"),
    ("clause-after", "f(x)=x^2{x>=0}"),
    ("clause-before", "f(x)={x>=0}x^2+sin(x)"),
    ("clause-chain", "f(x)={0<=x<=10}x"),
    ("clause-list", "f(x,y)=x{x>0,y<1}"),
    ("clause-both-sides", "f(x)={x>0}x{x<5}"),
    ("clause-equal", "f(x)=x{x=1}"),
    ("abs-simple", "f(x)=|x|"),
    ("abs-negated-inner", "f(x)=|-|x||"),
    ("abs-sum-of-abs", "f(a,b)=||a|+|b||"),
    ("abs-times-abs", "f(x,y)=|x||y|"),
    ("number-times-abs", "f(x)=2|x|"),
    ("abs-in-parens", "f(x)=|(|x|)|"),
    ("abs-explicit-star", "f(x)=|2*|x||"),
    ("abs-factorial", "f(x)=|x|!"),
    ("abs-power", "f(x)=|x|^|x|"),
    ("abs-in-clause", "f(x)=x{|x|<1}"),
    ("abs-function-arg", "f(x)=|sin(|x|)|"),
    ("abs-then-ident", "f(x)=|x|x"),
    ("abs-then-call", "f(x)=|x|sin(x)"),
    ("abs-then-group", "f(x)=|x|(x)"),
    ("abs-then-number", "f(x)=|x|2"),
    ("nested-abs-then-ident", "f(x)=||x|-1|x"),
]

PARSER_ERROR_CASES: List[Tuple[str, str, str]] = [
    ("missing-name", "(x)=x", "Expected function identifier"),
    ("missing-lpar", "f x)=x", "Expected '('"),
    ("missing-equal", "f(x) x", "Expected '='"),
    ("bad-param", "f(1)=x", "parameter name"),
    ("trailing-comma-param", "f(x,)=x", "parameter name after comma"),
    ("duplicate-param", "f(x,x)=x", "Duplicate parameter"),
    ("empty-body", "f(x)=", "end of input"),
    ("dangling-operator", "f(x)=x+", "end of input"),
    ("unclosed-group", "f(x)=(x", "Expected ')'"),
    ("unclosed-abs", "f(x)=|x", "Expected '|'"),
    ("function-without-parens", "f(x)=sin x", "Expected '('"),
    ("unclosed-call", "f(x)=sin(x", "Expected ')'"),
    ("trailing-tokens", "f(x)=x)", "Unexpected tokens after declaration"),
    ("second-declaration", "f(x)=x{x>0}{x<1}x", "Unexpected tokens after declaration"),
    ("clause-without-comparison", "f(x)=x{x}", "Expected comparison"),
    ("unclosed-clause", "f(x)=x{x>0", "Expected '}'"),
    ("empty-clause", "f(x)=x{}", "Unexpected token"),
    ("comparison-in-body", "f(x)=x>0", "Unexpected tokens after declaration"),
    ("abs-trailing-bars-never-close", "f(x)=|2|3||", "end of input"),
    ("abs-ambiguous-nested", "f(x)=||2|3|", "explicit '*'"),
    ("abs-nested-then-call", "f(x)=||x|sin(x)|", "explicit '*'"),
    ("empty-abs", "f(x)=||", "end of input"),
    ("no-tokens", "", "Expected function identifier"),
]


@pytest.mark.parametrize(
    "source",
    [pytest.param(code, id=name) for name, code in PARSER_GRAMMAR_CASES],
)
def test_parser_accepts(source: str) -> None:
    decl = parse_decl(source)
    assert isinstance(decl, FnDecl)


@pytest.mark.parametrize(
    "source, message",
    [pytest.param(code, msg, id=name) for name, code, msg in PARSER_ERROR_CASES],
)
def test_parser_rejects(source: str, message: str) -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_decl(source)
    assert message in str(exc_info.value)


def _lit(node: object) -> str:
    assert isinstance(node, Literal), f"expected Literal, got {node!r}"
    return node.token.lexeme


def test_declaration_parts() -> None:
    decl = parse_decl("g(a,b)=a")
    assert decl.name == "g"
    assert decl.param_names == ("a", "b")
    assert decl.clauses == ()
    assert _lit(decl.body) == "a"


def test_term_is_left_associative() -> None:
    body = parse_decl("f(x,y,z)=x-y+z").body
    assert isinstance(body, Binary) and body.operator.type is TT.PLUS
    assert isinstance(body.left, Binary) and body.left.operator.type is TT.MINUS
    assert _lit(body.left.left) == "x"
    assert _lit(body.left.right) == "y"
    assert _lit(body.right) == "z"


def test_power_is_right_associative() -> None:
    body = parse_decl("f(x)=x^2^3").body
    assert isinstance(body, Binary) and body.operator.type is TT.CARET
    assert _lit(body.left) == "x"
    assert isinstance(body.right, Binary) and body.right.operator.type is TT.CARET


def test_multiplication_binds_tighter_than_addition() -> None:
    body = parse_decl("f(x)=1+2*x").body
    assert isinstance(body, Binary) and body.operator.type is TT.PLUS
    assert isinstance(body.right, Binary) and body.right.operator.type is TT.STAR


def test_implicit_multiplication_uses_synthetic_star() -> None:
    body = parse_decl("f(x,y)=xy").body
    assert isinstance(body, Binary)
    assert body.operator.type is TT.STAR
    assert body.operator.lexeme == "*"
    assert (_lit(body.left), _lit(body.right)) == ("x", "y")


def test_implicit_multiplication_binds_like_explicit() -> None:
    body = parse_decl("f(x)=2x^2").body
    assert isinstance(body, Binary) and body.operator.type is TT.STAR
    assert _lit(body.left) == "2"
    assert isinstance(body.right, Binary) and body.right.operator.type is TT.CARET


def test_negation_applies_before_power() -> None:
    body = parse_decl("f(x)=-x^2").body
    assert isinstance(body, Binary) and body.operator.type is TT.CARET
    assert isinstance(body.left, Unary) and body.left.operator.type is TT.MINUS


def test_factorial_nests_left() -> None:
    body = parse_decl("f(x)=x!!").body
    assert isinstance(body, Unary) and body.operator.type is TT.BANG
    assert isinstance(body.inner, Unary) and body.inner.operator.type is TT.BANG
    assert _lit(body.inner.inner) == "x"


def test_grouping_node() -> None:
    body = parse_decl("f(x)=(x)").body
    assert isinstance(body, Grouping)
    assert _lit(body.inner) == "x"


def test_function_call_with_variant() -> None:
    body = parse_decl("f(x)=log_10(x)").body
    assert isinstance(body, FnCall)
    assert body.ident.lexeme == "log"
    assert _lit(body.variant) == "10"
    assert [_lit(a) for a in body.args] == ["x"]


def test_function_call_without_variant() -> None:
    body = parse_decl("f(x,y)=max(x,y)").body
    assert isinstance(body, FnCall)
    assert body.variant is None
    assert len(body.args) == 2


def test_chained_clause_nests_left() -> None:
    decl = parse_decl("f(x)={0<=x<10}x")
    (clause,) = decl.clauses
    assert isinstance(clause, LogicalExpr)
    assert clause.operator.type is TT.LT
    assert isinstance(clause.left, LogicalExpr)
    assert clause.left.operator.type is TT.LTE
    operands, operators = clause.links()
    assert [_lit(o) for o in operands] == ["0", "x", "10"]
    assert [o.lexeme for o in operators] == ["<=", "<"]


def test_clauses_keep_source_order_on_both_sides() -> None:
    decl = parse_decl("f(x)={x>0}x{x<5,x=2}")
    assert [c.operator.lexeme for c in decl.clauses] == [">", "<", "="]


def test_nested_abs_structure() -> None:
    body = parse_decl("f(x)=|-|x||").body
    assert isinstance(body, AbsGrouping)
    assert isinstance(body.inner, Unary)
    assert isinstance(body.inner.inner, AbsGrouping)
    assert _lit(body.inner.inner.inner) == "x"


def test_sum_of_abs_inside_abs() -> None:
    body = parse_decl("f(a,b)=||a|+|b||").body
    assert isinstance(body, AbsGrouping)
    inner = body.inner
    assert isinstance(inner, Binary) and inner.operator.type is TT.PLUS
    assert isinstance(inner.left, AbsGrouping)
    assert isinstance(inner.right, AbsGrouping)


def test_adjacent_abs_groups_multiply() -> None:
    body = parse_decl("f(x,y)=|x||y|").body
    assert isinstance(body, Binary) and body.operator.type is TT.STAR
    assert isinstance(body.left, AbsGrouping)
    assert isinstance(body.right, AbsGrouping)


def test_parse_accepts_token_list() -> None:
    from fndecl.lexer_rd import tokenize

    decl = parse(tokenize("f(x)=x+1"))
    assert isinstance(decl.body, Binary)


def test_ast_is_immutable() -> None:
    decl = parse_decl("f(x)=x")
    with pytest.raises(AttributeError):
        decl.body = decl.body  # type: ignore[misc]


def test_lark_dump_mirrors_declaration() -> None:
    tree = as_tree(parse_decl("f(x)=|x|{x<1}"))
    assert tree.data == "fndecl"
    labels = [getattr(ch, "data", None) for ch in tree.children]
    assert labels == [None, "params", "body", "clauses"]
    body = tree.children[2].children[0]
    assert body.data == "abs"
    assert "literal" in tree.pretty()


def test_operand_after_closed_abs_multiplies() -> None:
    body = parse_decl("f(x)=|x|sin(x)").body
    assert isinstance(body, Binary) and body.operator.type is TT.STAR
    assert isinstance(body.left, AbsGrouping)
    assert isinstance(body.right, FnCall)


def test_outer_abs_closes_before_trailing_operand() -> None:
    body = parse_decl("f(x)=||x|-1|x").body
    assert isinstance(body, Binary) and body.operator.type is TT.STAR
    assert isinstance(body.left, AbsGrouping)
    inner = body.left.inner
    assert isinstance(inner, Binary) and inner.operator.type is TT.MINUS
    assert isinstance(inner.left, AbsGrouping)
    assert _lit(body.right) == "x"

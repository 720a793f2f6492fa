"""
Code generator: turns a parsed FnDecl into a callable bound to one Library.

A single walk over the AST produces, for every node, the Python source text
it stands for and a closure evaluating it. The closures are what run; the
text is kept on the compiled function for inspection. Every lookup against
the library happens here, so a declaration that compiles never fails on a
missing name when called.
"""

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from typing_extensions import assert_never

from .token_types import TT
from .tree import (
    AbsGrouping,
    Binary,
    Expr,
    FnCall,
    FnDecl,
    Grouping,
    Literal,
    LogicalExpr,
    Unary,
    as_tree,
    iter_nodes,
)
from .stdlib import standard_library
from .types import FnDeclError, LibFunction, Library, Number, has_variants, strip_variant

logger = logging.getLogger(__name__)

Args = Sequence[Number]
Evaluator = Callable[[Args], Number]

NO_RESULT = None

# operator token -> (library opcode, native rendering, native callable)
BINARY_OPS: Dict[TT, Tuple[str, str, Callable[[Number, Number], Number]]] = {
    TT.PLUS: ("add", "+", operator.add),
    TT.MINUS: ("sub", "-", operator.sub),
    TT.STAR: ("mul", "*", operator.mul),
    TT.SLASH: ("div", "/", operator.truediv),
    TT.CARET: ("pow", "**", operator.pow),
    TT.PERCENT: ("mod", "%", operator.mod),
}

COMPARISONS: Dict[TT, Tuple[str, Callable[[Number, Number], bool]]] = {
    TT.EQUAL: ("==", operator.eq),
    TT.GT: (">", operator.gt),
    TT.GTE: (">=", operator.ge),
    TT.LT: ("<", operator.lt),
    TT.LTE: ("<=", operator.le),
}

FACTORIAL_FUNCTIONS = ("fac", "factorial")


class CompileError(FnDeclError):
    """Declaration refers to something the bound library cannot provide"""

    def __init__(self, message: str, symbol: Optional[str] = None):
        self.message = message
        self.symbol = symbol
        super().__init__(message)


class Emitted(NamedTuple):
    source: str
    evaluate: Evaluator


@dataclass(frozen=True)
class CompiledFunction:
    """
    A compiled declaration.

    Call it with one number per parameter, in declaration order. Returns
    ``None`` when a guard clause rejects the arguments.
    """

    name: str
    params: Tuple[str, ...]
    source: str
    ast: FnDecl
    _impl: Evaluator = field(repr=False, compare=False)

    def __call__(self, *args: Number) -> Optional[Number]:
        if len(args) != len(self.params):
            raise TypeError(
                f"{self.name}() takes {len(self.params)} positional argument(s) but {len(args)} were given"
            )
        return self._impl(args)

    def __str__(self) -> str:
        return self.source

    def pretty(self) -> str:
        return as_tree(self.ast).pretty()


# ============================================================================
# Expression emission
# ============================================================================

class ExprEmitter:
    def __init__(self, library: Library, params: Sequence[str], letters: Optional[Dict[int, str]] = None):
        self.library = library
        self.param_index = {name: idx for idx, name in enumerate(params)}
        # source position -> identifier letter, for naming whole unreserved words
        self.letters = letters or {}

        # canonical name -> {takes variant: library key}
        self.function_keys: Dict[str, Dict[bool, str]] = {}
        for key in library.functions:
            self.function_keys.setdefault(strip_variant(key), {})[has_variants(key)] = key

    def emit(self, node: Expr) -> Emitted:
        match node:
            case Literal():
                return self.emit_literal(node)
            case Grouping():
                return self.emit_grouping(node)
            case AbsGrouping():
                return self.emit_abs(node)
            case FnCall():
                return self.emit_call(node)
            case Unary():
                return self.emit_unary(node)
            case Binary():
                return self.emit_binary(node)
            case _:
                assert_never(node)

    def emit_literal(self, node: Literal) -> Emitted:
        tok = node.token
        lexeme = tok.lexeme

        if tok.type is TT.IDENT:
            if lexeme not in self.param_index:
                raise self.undefined_identifier(tok.lexeme, tok.pos)
            return Emitted(lexeme, operator.itemgetter(self.param_index[lexeme]))

        if tok.type is TT.NUMBER:
            value = float(lexeme)
            return Emitted(lexeme, lambda args: value)

        if tok.type is TT.CONSTANT:
            if lexeme not in self.library.constants:
                raise CompileError(f"undefined constant '{lexeme}'", lexeme)
            value = self.library.constants[lexeme]
            return Emitted(f"lib.constants[{lexeme!r}]", lambda args: value)

        raise CompileError(f"unexpected literal token {tok.type.name}", lexeme)

    def undefined_identifier(self, lexeme: str, pos: int) -> CompileError:
        """
        The scanner splits an unreserved word like ``zz`` into one identifier
        per letter. Rebuild the word from adjacent positions so the error
        names what the user typed.
        """
        start = end = pos
        while start - 1 in self.letters:
            start -= 1
        while end + 1 in self.letters:
            end += 1
        word = "".join(self.letters[p] for p in range(start, end + 1)) or lexeme

        if len(word) > 1 and not any(ch in self.param_index for ch in word):
            return CompileError(f"undefined identifier '{word}'", word)
        if len(word) > 1:
            return CompileError(f"undefined identifier '{lexeme}' in '{word}'", lexeme)
        return CompileError(f"undefined identifier '{lexeme}'", lexeme)

    def emit_grouping(self, node: Grouping) -> Emitted:
        inner = self.emit(node.inner)
        return Emitted(f"({inner.source})", inner.evaluate)

    def emit_abs(self, node: AbsGrouping) -> Emitted:
        inner = self.emit(node.inner)

        op = self.library.operation("abs")
        if op is not None:
            return self._apply("lib.operations['abs']", op, [inner])

        entry = self.library.functions.get("abs")
        if entry is not None:
            return self._apply("lib.functions['abs']", entry.fn, [inner])

        return self._apply("abs", abs, [inner])

    def emit_call(self, node: FnCall) -> Emitted:
        name = node.ident.lexeme
        keys = self.function_keys.get(name)
        if not keys:
            raise CompileError(f"undefined function '{name}'", name)

        wants_variant = node.variant is not None
        if wants_variant not in keys:
            if wants_variant:
                raise CompileError(f"function '{name}' does not accept a variant", name)
            raise CompileError(f"function '{name}' requires a variant subscript ({name}_...)", name)

        key = keys[wants_variant]
        entry: LibFunction = self.library.functions[key]

        if entry.arity != 0 and entry.arity != len(node.args):
            raise CompileError(
                f"function '{name}' expects {entry.arity} argument(s), got {len(node.args)}", name
            )

        args = [self.emit(arg) for arg in node.args]
        if node.variant is not None:
            args.append(self.emit(node.variant))

        return self._apply(f"lib.functions[{key!r}]", entry.fn, args)

    def emit_unary(self, node: Unary) -> Emitted:
        inner = self.emit(node.inner)

        if node.operator.type is TT.BANG:
            op = self.library.operation("fac")
            if op is not None:
                return self._apply("lib.operations['fac']", op, [inner])
            for name in FACTORIAL_FUNCTIONS:
                entry = self.library.functions.get(name)
                if entry is not None:
                    return self._apply(f"lib.functions[{name!r}]", entry.fn, [inner])
            raise CompileError("factorial operator behavior is undefined", "!")

        if node.operator.type is TT.MINUS:
            op = self.library.operation("neg")
            if op is not None:
                return self._apply("lib.operations['neg']", op, [inner])
            evaluate = inner.evaluate
            return Emitted(f"(-{inner.source})", lambda args: -evaluate(args))

        raise CompileError(f"no semantics for unary operator '{node.operator.lexeme}'", node.operator.lexeme)

    def emit_binary(self, node: Binary) -> Emitted:
        left = self.emit(node.left)
        right = self.emit(node.right)

        entry = BINARY_OPS.get(node.operator.type)
        if entry is None:
            raise CompileError(f"no semantics for operator '{node.operator.lexeme}'", node.operator.lexeme)
        opcode, symbol, native = entry

        op = self.library.operation(opcode)
        if op is not None:
            return self._apply(f"lib.operations[{opcode!r}]", op, [left, right])

        lhs, rhs = left.evaluate, right.evaluate
        return Emitted(f"{left.source} {symbol} {right.source}", lambda args: native(lhs(args), rhs(args)))

    def emit_clause(self, clause: LogicalExpr) -> Emitted:
        """Chained comparison with mathematical meaning: each operand evaluated once"""
        operands, operators = clause.links()
        emitted = [self.emit(operand) for operand in operands]

        parts = [emitted[0].source]
        comparators: List[Callable[[Number, Number], bool]] = []
        for op_tok, operand in zip(operators, emitted[1:]):
            symbol, compare = COMPARISONS[op_tok.type]
            parts.append(f"{symbol} {operand.source}")
            comparators.append(compare)

        evaluators = [e.evaluate for e in emitted]

        def check(args: Args) -> bool:
            left = evaluators[0](args)
            for compare, right_fn in zip(comparators, evaluators[1:]):
                right = right_fn(args)
                if not compare(left, right):
                    return False
                left = right
            return True

        return Emitted(" ".join(parts), check)

    def _apply(self, callee: str, fn: Callable[..., Number], args: List[Emitted]) -> Emitted:
        rendered = ", ".join(arg.source for arg in args)
        evaluators = [arg.evaluate for arg in args]
        return Emitted(f"{callee}({rendered})", lambda a: fn(*[e(a) for e in evaluators]))


# ============================================================================
# Declaration compilation
# ============================================================================

def compile_decl(decl: FnDecl, library: Optional[Library] = None) -> CompiledFunction:
    """Compile a declaration against a library (default: standard library)"""
    if library is None:
        library = standard_library()

    params = decl.param_names
    letters = {
        node.token.pos: node.token.lexeme
        for node in iter_nodes(decl)
        if isinstance(node, Literal) and node.token.type is TT.IDENT
    }
    emitter = ExprEmitter(library, params, letters)

    body = emitter.emit(decl.body)
    clauses = [emitter.emit_clause(clause) for clause in decl.clauses]

    source = _render(decl.name, params, body, clauses)
    impl = _guarded(body.evaluate, [c.evaluate for c in clauses]) if clauses else body.evaluate

    logger.debug("compiled %s(%s) with %d clause(s)", decl.name, ", ".join(params), len(clauses))
    return CompiledFunction(decl.name, params, source, decl, impl)


def _guarded(body: Evaluator, clauses: List[Evaluator]) -> Callable[[Args], Optional[Number]]:
    def run(args: Args) -> Optional[Number]:
        for clause in clauses:
            if not clause(args):
                return NO_RESULT
        return body(args)

    return run


def _render(name: str, params: Sequence[str], body: Emitted, clauses: List[Emitted]) -> str:
    lines = [f"def {name}({', '.join(params)}):"]

    if not clauses:
        lines.append(f"    return {body.source}")
        return "\n".join(lines)

    if len(clauses) == 1:
        condition = clauses[0].source
    else:
        condition = " and ".join(f"({c.source})" for c in clauses)

    lines.append(f"    if {condition}:")
    lines.append(f"        return {body.source}")
    lines.append(f"    return {NO_RESULT!r}")
    return "\n".join(lines)

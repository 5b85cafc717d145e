from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import LarkError, UnexpectedInput, VisitError

from .ast import (
    ArrayExpression,
    AssignmentExpression,
    BinaryExpression,
    BlockStatement,
    BreakStatement,
    CallExpression,
    ConditionalExpression,
    ContinueStatement,
    EmptyStatement,
    ExpressionStatement,
    ForInStatement,
    ForOfStatement,
    ForStatement,
    FunctionDeclaration,
    Identifier,
    IfStatement,
    Literal,
    LogicalExpression,
    MemberExpression,
    Node,
    Program,
    ReturnStatement,
    ThrowStatement,
    UnaryExpression,
    UpdateExpression,
    VariableDeclaration,
    VariableDeclarator,
)
from .exceptions import ParseError

logger = logging.getLogger(__name__)

GRAMMAR_FILE = Path(__file__).with_name("expr_grammar.lark")

_RADIX_PREFIXES = {"0x": 16, "0b": 2, "0o": 8}


@lru_cache(maxsize=1)
def _build_parser() -> Lark:
    return Lark(
        GRAMMAR_FILE.read_text(),
        parser="earley",
        start="program",
        propagate_positions=True,
        maybe_placeholders=False,
        ambiguity="resolve",
    )


class _AstXform(Transformer):
    def __init__(self, text: str):
        super().__init__()
        self._text = text
        self._lines = text.splitlines()

    # Helpers -----------------------------------------------------------------
    def _slice(self, meta) -> str:
        return self._text[meta.start_pos : meta.end_pos]

    def _line_text(self, line: int) -> str:
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return ""

    def _pos(self, meta) -> dict:
        if getattr(meta, "empty", True):
            return {}
        return {"line": meta.line, "column": meta.column, "source": self._slice(meta).strip()}

    def _tok_pos(self, tok: Token) -> dict:
        return {"line": tok.line, "column": tok.column, "source": tok.value}

    def _error(self, node: Node, message: str) -> None:
        raise ParseError(
            message,
            line=node.line,
            column=node.column,
            line_text=self._line_text(node.line) if node.line is not None else None,
        )

    def _assign_target(self, node: Node, what: str) -> Node:
        if isinstance(node, (Identifier, MemberExpression)):
            return node
        self._error(node, f"Invalid {what} target")
        return node

    # Program structure -------------------------------------------------------
    @v_args(meta=True)
    def program(self, meta, items: List[Any]) -> Program:
        return Program(body=list(items), **self._pos(meta))

    @v_args(meta=True)
    def block(self, meta, items: List[Any]) -> BlockStatement:
        return BlockStatement(body=list(items), **self._pos(meta))

    @v_args(meta=True)
    def empty_stmt(self, meta, _items) -> EmptyStatement:
        return EmptyStatement(**self._pos(meta))

    @v_args(meta=True)
    def expr_stmt(self, meta, items) -> ExpressionStatement:
        return ExpressionStatement(expression=items[0], **self._pos(meta))

    @v_args(meta=True)
    def return_stmt(self, meta, items) -> ReturnStatement:
        argument = items[0] if items else None
        return ReturnStatement(argument=argument, **self._pos(meta))

    @v_args(meta=True)
    def throw_stmt(self, meta, items) -> ThrowStatement:
        return ThrowStatement(argument=items[0], **self._pos(meta))

    @v_args(meta=True)
    def break_stmt(self, meta, _items) -> BreakStatement:
        return BreakStatement(**self._pos(meta))

    @v_args(meta=True)
    def continue_stmt(self, meta, _items) -> ContinueStatement:
        return ContinueStatement(**self._pos(meta))

    # Declarations ------------------------------------------------------------
    @v_args(meta=True)
    def var_decl(self, meta, items) -> VariableDeclaration:
        return VariableDeclaration(declarations=list(items), kind="var", **self._pos(meta))

    @v_args(meta=True)
    def declarator(self, meta, items) -> VariableDeclarator:
        name_tok: Token = items[0]
        init = items[1] if len(items) > 1 else None
        ident = Identifier(name=name_tok.value, **self._tok_pos(name_tok))
        return VariableDeclarator(id=ident, init=init, **self._pos(meta))

    def params(self, items) -> List[Identifier]:
        return [Identifier(name=tok.value, **self._tok_pos(tok)) for tok in items]

    @v_args(meta=True)
    def function_decl(self, meta, items) -> FunctionDeclaration:
        name_tok: Token = items[0]
        params: List[Identifier] = items[1] if len(items) > 2 else []
        body: BlockStatement = items[-1]
        seen = set()
        for param in params:
            if param.name in seen:
                self._error(param, f"Duplicate parameter name '{param.name}'")
            seen.add(param.name)
        return FunctionDeclaration(
            id=Identifier(name=name_tok.value, **self._tok_pos(name_tok)),
            params=params,
            body=body,
            **self._pos(meta),
        )

    # Control flow ------------------------------------------------------------
    @v_args(meta=True)
    def if_stmt(self, meta, items) -> IfStatement:
        alternate = items[2] if len(items) > 2 else None
        return IfStatement(test=items[0], consequent=items[1], alternate=alternate, **self._pos(meta))

    def for_init(self, items):
        return items[0] if items else None

    def for_test(self, items):
        return items[0] if items else None

    def for_update(self, items):
        return items[0] if items else None

    @v_args(meta=True)
    def for_stmt(self, meta, items) -> ForStatement:
        init, test, update, body = items
        return ForStatement(init=init, test=test, update=update, body=body, **self._pos(meta))

    @v_args(meta=True)
    def for_left_var(self, meta, items) -> VariableDeclaration:
        name_tok: Token = items[0]
        ident = Identifier(name=name_tok.value, **self._tok_pos(name_tok))
        declarator = VariableDeclarator(id=ident, init=None, **self._tok_pos(name_tok))
        return VariableDeclaration(declarations=[declarator], kind="var", **self._pos(meta))

    def for_left_ident(self, items) -> Identifier:
        name_tok: Token = items[0]
        return Identifier(name=name_tok.value, **self._tok_pos(name_tok))

    @v_args(meta=True)
    def for_in_stmt(self, meta, items) -> ForInStatement:
        left, right, body = items
        return ForInStatement(left=left, right=right, body=body, **self._pos(meta))

    @v_args(meta=True)
    def for_of_stmt(self, meta, items) -> ForOfStatement:
        left, right, body = items
        return ForOfStatement(left=left, right=right, body=body, **self._pos(meta))

    # Expressions -------------------------------------------------------------
    @v_args(meta=True)
    def assign(self, meta, items) -> AssignmentExpression:
        target, op_tok, value = items
        self._assign_target(target, "assignment")
        return AssignmentExpression(operator=op_tok.value, left=target, right=value, **self._pos(meta))

    @v_args(meta=True)
    def conditional(self, meta, items) -> ConditionalExpression:
        test, consequent, alternate = items
        return ConditionalExpression(
            test=test, consequent=consequent, alternate=alternate, **self._pos(meta)
        )

    @v_args(meta=True)
    def logical(self, meta, items) -> LogicalExpression:
        left, op_tok, right = items
        return LogicalExpression(operator=op_tok.value, left=left, right=right, **self._pos(meta))

    @v_args(meta=True)
    def binary(self, meta, items) -> BinaryExpression:
        left, op_tok, right = items
        return BinaryExpression(operator=op_tok.value, left=left, right=right, **self._pos(meta))

    @v_args(meta=True)
    def unary(self, meta, items) -> UnaryExpression:
        op_tok, argument = items
        return UnaryExpression(operator=op_tok.value, argument=argument, prefix=True, **self._pos(meta))

    @v_args(meta=True)
    def prefix_update(self, meta, items) -> UpdateExpression:
        op_tok, argument = items
        self._assign_target(argument, "prefix operation")
        return UpdateExpression(operator=op_tok.value, argument=argument, prefix=True, **self._pos(meta))

    @v_args(meta=True)
    def postfix_update(self, meta, items) -> UpdateExpression:
        argument, op_tok = items
        self._assign_target(argument, "postfix operation")
        return UpdateExpression(operator=op_tok.value, argument=argument, prefix=False, **self._pos(meta))

    def args(self, items) -> List[Any]:
        return list(items)

    @v_args(meta=True)
    def call(self, meta, items) -> CallExpression:
        callee = items[0]
        arguments = items[1] if len(items) > 1 else []
        return CallExpression(callee=callee, arguments=arguments, **self._pos(meta))

    @v_args(meta=True)
    def member(self, meta, items) -> MemberExpression:
        obj, name_tok = items
        prop = Identifier(name=name_tok.value, **self._tok_pos(name_tok))
        return MemberExpression(object=obj, property=prop, computed=False, **self._pos(meta))

    @v_args(meta=True)
    def index(self, meta, items) -> MemberExpression:
        obj, prop = items
        return MemberExpression(object=obj, property=prop, computed=True, **self._pos(meta))

    def elements(self, items) -> List[Any]:
        return list(items)

    @v_args(meta=True)
    def array(self, meta, items) -> ArrayExpression:
        elements = items[0] if items else []
        return ArrayExpression(elements=elements, **self._pos(meta))

    def number(self, items) -> Literal:
        tok: Token = items[0]
        text = tok.value
        radix = _RADIX_PREFIXES.get(text[:2].lower())
        value = float(int(text[2:], radix)) if radix else float(text)
        return Literal(value=value, **self._tok_pos(tok))

    @v_args(meta=True)
    def true(self, meta, _items) -> Literal:
        return Literal(value=1.0, **self._pos(meta))

    @v_args(meta=True)
    def false(self, meta, _items) -> Literal:
        return Literal(value=0.0, **self._pos(meta))

    def ident(self, items) -> Identifier:
        tok: Token = items[0]
        return Identifier(name=tok.value, **self._tok_pos(tok))


def _check_jumps(node: Any, in_loop: bool, lines: List[str]) -> None:
    """Reject ``break``/``continue`` that have no enclosing loop."""
    if isinstance(node, (BreakStatement, ContinueStatement)) and not in_loop:
        keyword = "break" if isinstance(node, BreakStatement) else "continue"
        line_text: Optional[str] = None
        if node.line is not None and 1 <= node.line <= len(lines):
            line_text = lines[node.line - 1]
        raise ParseError(
            f"Illegal {keyword} statement outside of a loop",
            line=node.line,
            column=node.column,
            line_text=line_text,
        )
    if isinstance(node, FunctionDeclaration):
        _check_jumps(node.body, False, lines)
        return
    if isinstance(node, (ForStatement, ForInStatement, ForOfStatement)):
        _check_jumps(node.body, True, lines)
        return
    if isinstance(node, (Program, BlockStatement)):
        for child in node.body:
            _check_jumps(child, in_loop, lines)
    elif isinstance(node, IfStatement):
        _check_jumps(node.consequent, in_loop, lines)
        if node.alternate is not None:
            _check_jumps(node.alternate, in_loop, lines)


def parse_program(text: str) -> Program:
    parser = _build_parser()
    lines = text.splitlines()
    try:
        tree = parser.parse(text)
    except UnexpectedInput as exc:
        line = getattr(exc, "line", None) or 1
        column = getattr(exc, "column", None) or 1
        line_text = lines[line - 1] if 1 <= line <= len(lines) else ""
        raise ParseError(
            "Syntax error while parsing program",
            line=line,
            column=column,
            line_text=line_text,
        ) from exc
    except LarkError as exc:  # pragma: no cover - defensive
        raise ParseError(str(exc)) from exc
    try:
        program = _AstXform(text).transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, ParseError):
            raise exc.orig_exc from None
        raise
    _check_jumps(program, False, lines)
    logger.debug("parsed program with %d top-level statements", len(program.body))
    return program

import pytest

from vexpr.core.ast import (
    AssignmentExpression,
    BinaryExpression,
    BlockStatement,
    CallExpression,
    ConditionalExpression,
    ExpressionStatement,
    ForInStatement,
    ForOfStatement,
    ForStatement,
    FunctionDeclaration,
    Identifier,
    IfStatement,
    Literal,
    MemberExpression,
    UnaryExpression,
    UpdateExpression,
    VariableDeclaration,
)
from vexpr.core.exceptions import ParseError
from vexpr.core.parser import parse_program


def _expr(src: str):
    program = parse_program(src)
    assert len(program.body) == 1
    stmt = program.body[0]
    assert isinstance(stmt, ExpressionStatement)
    return stmt.expression


def test_precedence_and_associativity():
    expr = _expr("1 + 2 * 3")
    assert isinstance(expr, BinaryExpression)
    assert expr.operator == "+"
    assert isinstance(expr.right, BinaryExpression) and expr.right.operator == "*"

    power = _expr("2 ** 3 ** 3")
    assert power.operator == "**"
    assert isinstance(power.left, Literal) and power.left.value == 2.0
    assert isinstance(power.right, BinaryExpression) and power.right.operator == "**"

    minus = _expr("10 - 4 - 3")
    assert isinstance(minus.left, BinaryExpression)
    assert minus.right.value == 3.0


def test_number_literal_radixes():
    assert _expr("0x1F").value == 31.0
    assert _expr("0b101").value == 5.0
    assert _expr("0o17").value == 15.0
    assert _expr("1.5e3").value == 1500.0
    assert _expr(".25").value == 0.25
    assert _expr("true").value == 1.0
    assert _expr("false").value == 0.0


def test_members_calls_and_updates():
    member = _expr("a[a.length - 2]")
    assert isinstance(member, MemberExpression) and member.computed
    inner = member.property.left
    assert isinstance(inner, MemberExpression) and not inner.computed
    assert inner.property.name == "length"

    call = _expr("hypot(1, arange(3))")
    assert isinstance(call, CallExpression)
    assert isinstance(call.callee, Identifier) and call.callee.name == "hypot"
    assert len(call.arguments) == 2

    post = _expr("i++")
    assert isinstance(post, UpdateExpression) and not post.prefix
    pre = _expr("--i")
    assert isinstance(pre, UpdateExpression) and pre.prefix and pre.operator == "--"


def test_assignment_is_right_associative():
    expr = _expr("a = b += 2")
    assert isinstance(expr, AssignmentExpression) and expr.operator == "="
    assert isinstance(expr.right, AssignmentExpression) and expr.right.operator == "+="


def test_conditional_and_unary():
    expr = _expr("a ? -b : !c")
    assert isinstance(expr, ConditionalExpression)
    assert isinstance(expr.consequent, UnaryExpression) and expr.consequent.operator == "-"
    assert isinstance(expr.alternate, UnaryExpression) and expr.alternate.operator == "!"


def test_statements_shape():
    src = """
    var x = 1, y;
    function f(a, b) { return a + b; }
    if (x) { y = 2 } else y = 3;
    for (var i = 0; i < 3; ++i) x += i;
    for (k in v) x;
    for (var e of v) x;
    x
    """
    body = parse_program(src).body
    kinds = [type(node) for node in body]
    assert kinds == [
        VariableDeclaration,
        FunctionDeclaration,
        IfStatement,
        ForStatement,
        ForInStatement,
        ForOfStatement,
        ExpressionStatement,
    ]
    decl = body[0]
    assert [d.id.name for d in decl.declarations] == ["x", "y"]
    assert decl.declarations[1].init is None
    fn = body[1]
    assert fn.id.name == "f"
    assert [p.name for p in fn.params] == ["a", "b"]
    assert isinstance(fn.body, BlockStatement)
    assert isinstance(body[3].init, VariableDeclaration)
    assert isinstance(body[4].left, Identifier)
    assert isinstance(body[5].left, VariableDeclaration)


def test_empty_for_clauses():
    loop = parse_program("for (;;) break;").body[0]
    assert isinstance(loop, ForStatement)
    assert loop.init is None and loop.test is None and loop.update is None


def test_comments_are_ignored():
    program = parse_program("// leading\nx = 1; /* block\ncomment */ x")
    assert len(program.body) == 2


def test_nodes_carry_positions():
    program = parse_program("a = 1;\nb = a + 2")
    second = program.body[1]
    assert second.line == 2
    assert second.expression.source == "b = a + 2"


@pytest.mark.parametrize("src", ["const = 42", "let = 42", "var = 1", "1 +", "a = (1", "f(,)"])
def test_syntax_errors(src):
    with pytest.raises(ParseError):
        parse_program(src)


def test_line_breaks_do_not_terminate_statements():
    with pytest.raises(ParseError):
        parse_program("x = 1\nx + 1")
    prog = parse_program("x = 1;\nx + 1")
    assert len(prog.body) == 2


def test_parse_error_reports_location():
    with pytest.raises(ParseError) as info:
        parse_program("x = 1;\ny = * 2")
    assert info.value.line == 2
    assert "line 2" in str(info.value)


def test_invalid_assignment_targets_rejected():
    with pytest.raises(ParseError):
        parse_program("1 = 2")
    with pytest.raises(ParseError):
        parse_program("(a + b)++")


def test_duplicate_parameters_rejected():
    with pytest.raises(ParseError, match="Duplicate parameter"):
        parse_program("function f(a, a) { return a; }")


@pytest.mark.parametrize("src", ["break", "x = 1; continue;", "function f() { break; }"])
def test_jumps_outside_loops_rejected(src):
    with pytest.raises(ParseError, match="outside of a loop"):
        parse_program(src)


def test_jumps_inside_loops_accepted():
    parse_program("for (;;) { if (1) { break; } else continue; }")

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

# NOTE: Node shapes follow the ESTree layout so that any parser producing
# that layout can feed the evaluator. The evaluator treats every node as
# read-only; compound assignment builds transient nodes instead of
# rewriting the tree.


@dataclass
class Node:
    line: Optional[int] = None
    column: Optional[int] = None
    source: Optional[str] = None


# Expressions -----------------------------------------------------------------


@dataclass
class Literal(Node):
    value: float = 0.0


@dataclass
class Identifier(Node):
    name: str = ""


@dataclass
class BinaryExpression(Node):
    operator: str = ""
    left: "Expression" = None  # type: ignore
    right: "Expression" = None  # type: ignore


@dataclass
class LogicalExpression(Node):
    operator: str = ""  # "&&" | "||"
    left: "Expression" = None  # type: ignore
    right: "Expression" = None  # type: ignore


@dataclass
class UnaryExpression(Node):
    operator: str = ""
    argument: "Expression" = None  # type: ignore
    prefix: bool = True


@dataclass
class ConditionalExpression(Node):
    test: "Expression" = None  # type: ignore
    consequent: "Expression" = None  # type: ignore
    alternate: "Expression" = None  # type: ignore


@dataclass
class CallExpression(Node):
    callee: "Expression" = None  # type: ignore
    arguments: List["Expression"] = field(default_factory=list)


@dataclass
class MemberExpression(Node):
    object: "Expression" = None  # type: ignore
    property: "Expression" = None  # type: ignore
    computed: bool = False


@dataclass
class AssignmentExpression(Node):
    operator: str = "="
    left: "Expression" = None  # type: ignore
    right: "Expression" = None  # type: ignore


@dataclass
class UpdateExpression(Node):
    operator: str = ""  # "++" | "--"
    argument: "Expression" = None  # type: ignore
    prefix: bool = False


@dataclass
class ArrayExpression(Node):
    elements: List["Expression"] = field(default_factory=list)


Expression = Union[
    Literal,
    Identifier,
    BinaryExpression,
    LogicalExpression,
    UnaryExpression,
    ConditionalExpression,
    CallExpression,
    MemberExpression,
    AssignmentExpression,
    UpdateExpression,
    ArrayExpression,
]


# Statements ------------------------------------------------------------------


@dataclass
class ExpressionStatement(Node):
    expression: Expression = None  # type: ignore


@dataclass
class BlockStatement(Node):
    body: List["Statement"] = field(default_factory=list)


@dataclass
class EmptyStatement(Node):
    pass


@dataclass
class VariableDeclarator(Node):
    id: Identifier = None  # type: ignore
    init: Optional[Expression] = None


@dataclass
class VariableDeclaration(Node):
    declarations: List[VariableDeclarator] = field(default_factory=list)
    kind: str = "var"


@dataclass
class FunctionDeclaration(Node):
    id: Identifier = None  # type: ignore
    params: List[Identifier] = field(default_factory=list)
    body: BlockStatement = None  # type: ignore


@dataclass
class ReturnStatement(Node):
    argument: Optional[Expression] = None


@dataclass
class ThrowStatement(Node):
    argument: Expression = None  # type: ignore


@dataclass
class IfStatement(Node):
    test: Expression = None  # type: ignore
    consequent: "Statement" = None  # type: ignore
    alternate: Optional["Statement"] = None


@dataclass
class ForStatement(Node):
    init: Optional[Union[VariableDeclaration, Expression]] = None
    test: Optional[Expression] = None
    update: Optional[Expression] = None
    body: "Statement" = None  # type: ignore


@dataclass
class ForInStatement(Node):
    left: Union[VariableDeclaration, Identifier] = None  # type: ignore
    right: Expression = None  # type: ignore
    body: "Statement" = None  # type: ignore


@dataclass
class ForOfStatement(Node):
    left: Union[VariableDeclaration, Identifier] = None  # type: ignore
    right: Expression = None  # type: ignore
    body: "Statement" = None  # type: ignore


@dataclass
class BreakStatement(Node):
    pass


@dataclass
class ContinueStatement(Node):
    pass


Statement = Union[
    ExpressionStatement,
    BlockStatement,
    EmptyStatement,
    VariableDeclaration,
    FunctionDeclaration,
    ReturnStatement,
    ThrowStatement,
    IfStatement,
    ForStatement,
    ForInStatement,
    ForOfStatement,
    BreakStatement,
    ContinueStatement,
]


@dataclass
class Program(Node):
    body: List[Statement] = field(default_factory=list)

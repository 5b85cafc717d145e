from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

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
)
from .builtins import Builtin
from .exceptions import (
    EvaluationError,
    IncompleteProgram,
    IndexOutOfRange,
    InvalidArrayElement,
    InvalidAssignmentTarget,
    IterationLimitExceeded,
    LengthMismatch,
    NotANumber,
    NotAVector,
    NotCallable,
    NotIterable,
    UndefinedReference,
    UnimplementedOperator,
    UserThrow,
)
from .scope import FunctionValue, Scope, is_function
from .values import (
    BINARY_OPERATORS,
    Numeric,
    apply_binary,
    apply_unary,
    as_numeric,
    broadcast_call,
    check_lengths,
    is_truthy,
    is_vector,
    select,
    truth_mask,
)


@dataclass(frozen=True)
class EvaluationConfig:
    """
    Switches shared by single-shot, incremental and template evaluation.

    * ``seed`` seeds the per-call random generator behind ``random()``;
      ``None`` draws fresh entropy on every call.
    * ``max_loop_iterations`` caps the iterations of any single loop
      statement. The language has no timeout of its own, so hosts running
      untrusted formulas should set it.
    * ``isolate_bindings`` copies the caller's bindings (and their vector
      buffers) before evaluation. By default bindings are used by reference
      and indexed writes land in the caller's arrays.
    """

    seed: Optional[int] = None
    max_loop_iterations: Optional[int] = None
    isolate_bindings: bool = False

    def normalized(self) -> "EvaluationConfig":
        seed = self.seed
        if seed is not None:
            seed = int(seed)
            if seed < 0:
                raise ValueError("seed must be non-negative when provided")
        cap = self.max_loop_iterations
        if cap is not None:
            cap = int(cap)
            if cap <= 0:
                raise ValueError("max_loop_iterations must be positive when provided")
        return replace(
            self,
            seed=seed,
            max_loop_iterations=cap,
            isolate_bindings=bool(self.isolate_bindings),
        )

    def make_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)


class _ControlSignal(Exception):
    """Non-error unwinding used by return/break/continue."""


class ReturnSignal(_ControlSignal):
    def __init__(self, value: Any):
        super().__init__()
        self.value = value


class BreakSignal(_ControlSignal):
    pass


class ContinueSignal(_ControlSignal):
    pass


VECTOR_PROPERTIES: Dict[str, Callable[[np.ndarray], float]] = {
    "length": lambda vec: float(vec.shape[0]),
}

UPDATE_OPERATORS = {"++": "+", "--": "-"}


def _describe(node: Node) -> str:
    if isinstance(node, Identifier):
        return node.name
    return node.source or type(node).__name__


def _element_index(vec: np.ndarray, index: float) -> int:
    """Resolve a scalar index; negative values count back from the end."""
    size = vec.shape[0]
    if not math.isfinite(index) or index != int(index):
        raise IndexOutOfRange(f"Invalid vector index {index!r}")
    position = int(index)
    if position < 0:
        position += size
    if not 0 <= position < size:
        raise IndexOutOfRange(f"Index {int(index)} out of range for vector of length {size}")
    return position


class Evaluator:
    """Tree-walking evaluator over a two-tier scope.

    Expressions return a ``Numeric`` (calls may also hand back a function
    value); statements return their completion value or ``None`` when they
    produce none. ``return``, ``break`` and ``continue`` unwind as control
    signals, so a ``return`` nested in any number of blocks or loops leaves
    the whole function.
    """

    def __init__(self, config: Optional[EvaluationConfig] = None):
        self.config = (config or EvaluationConfig()).normalized()

    # Programs ----------------------------------------------------------------
    def run(self, program: Program, scope: Scope) -> Numeric:
        try:
            result = self._run_statements(program.body, scope)
        except ReturnSignal as signal:
            result = signal.value
        if result is None:
            raise IncompleteProgram("Program did not produce a value")
        if is_function(result):
            raise IncompleteProgram("Program evaluated to a function instead of a number")
        return result

    def _run_statements(self, statements: Sequence[Node], scope: Scope) -> Any:
        result = None
        for statement in statements:
            value = self.execute(statement, scope)
            if value is not None:
                result = value
        return result

    # Dispatch ----------------------------------------------------------------
    def evaluate(self, node: Node, scope: Scope) -> Any:
        handler = _EXPRESSION_HANDLERS.get(type(node))
        if handler is None:
            raise UnimplementedOperator(type(node).__name__, "expression node")
        try:
            return handler(self, node, scope)
        except EvaluationError as exc:
            exc.attach_location(node.line, node.column)
            raise

    def execute(self, node: Node, scope: Scope) -> Any:
        handler = _STATEMENT_HANDLERS.get(type(node))
        if handler is None:
            raise UnimplementedOperator(type(node).__name__, "statement node")
        try:
            return handler(self, node, scope)
        except EvaluationError as exc:
            exc.attach_location(node.line, node.column)
            raise

    def _numeric(self, node: Node, scope: Scope) -> Numeric:
        value = self.evaluate(node, scope)
        if is_function(value):
            raise NotANumber(f"{_describe(node)} is a function, not a number")
        return value

    # Expressions -------------------------------------------------------------
    def _eval_literal(self, node: Literal, scope: Scope) -> Numeric:
        return float(node.value)

    def _eval_identifier(self, node: Identifier, scope: Scope) -> Numeric:
        value = scope.lookup(node.name)
        if is_function(value):
            raise NotANumber(f"{node.name} is a function, not a number")
        return as_numeric(value)

    def _eval_binary(self, node: BinaryExpression, scope: Scope) -> Numeric:
        left = self._numeric(node.left, scope)
        right = self._numeric(node.right, scope)
        return apply_binary(node.operator, left, right)

    def _eval_logical(self, node: LogicalExpression, scope: Scope) -> Numeric:
        left = self._numeric(node.left, scope)
        if node.operator == "&&":
            return self._numeric(node.right, scope) if is_truthy(left) else left
        if node.operator == "||":
            return left if is_truthy(left) else self._numeric(node.right, scope)
        raise UnimplementedOperator(node.operator, "logical operator")

    def _eval_unary(self, node: UnaryExpression, scope: Scope) -> Numeric:
        return apply_unary(node.operator, self._numeric(node.argument, scope))

    def _eval_conditional(self, node: ConditionalExpression, scope: Scope) -> Numeric:
        test = self._numeric(node.test, scope)
        if not is_vector(test):
            # a scalar test picks one branch; the other is never evaluated
            branch = node.consequent if is_truthy(test) else node.alternate
            return self._numeric(branch, scope)
        consequent = self._numeric(node.consequent, scope)
        alternate = self._numeric(node.alternate, scope)
        return select(test, consequent, alternate)

    def _eval_array(self, node: ArrayExpression, scope: Scope) -> np.ndarray:
        values: List[float] = []
        for element in node.elements:
            value = self._numeric(element, scope)
            if is_vector(value):
                raise InvalidArrayElement("Array literal elements must be scalars")
            values.append(value)
        return np.array(values, dtype=np.float64)

    def _eval_member(self, node: MemberExpression, scope: Scope) -> Numeric:
        obj = self._numeric(node.object, scope)
        if not node.computed:
            name = node.property.name
            if not is_vector(obj):
                raise NotAVector(f"Cannot read property '{name}' of a scalar")
            getter = VECTOR_PROPERTIES.get(name)
            if getter is None:
                raise UndefinedReference(name, f"Vectors have no property '{name}'")
            return getter(obj)
        index = self._numeric(node.property, scope)
        if not is_vector(obj):
            raise NotAVector(f"Cannot index into scalar {_describe(node.object)}")
        if is_vector(index):
            check_lengths(obj, index, context="mask and indexed vector")
            return obj[truth_mask(index)]
        return float(obj[_element_index(obj, index)])

    def _eval_call(self, node: CallExpression, scope: Scope) -> Any:
        if isinstance(node.callee, Identifier):
            callee = scope.lookup(node.callee.name)
        else:
            callee = self.evaluate(node.callee, scope)
        if not is_function(callee):
            raise NotCallable(f"{_describe(node.callee)} is not a function")
        args = [self._numeric(arg, scope) for arg in node.arguments]
        return self.invoke(callee, args, scope)

    def _eval_assignment(self, node: AssignmentExpression, scope: Scope) -> Any:
        if node.operator == "=":
            value = self.evaluate(node.right, scope)
            return self._store(self._resolve(node.left, scope), value, scope)
        op = node.operator[:-1]
        if not node.operator.endswith("=") or op not in BINARY_OPERATORS:
            raise UnimplementedOperator(node.operator, "assignment operator")
        # compound forms read and write through one resolved target
        ref = self._resolve(node.left, scope)
        current = self._load(ref, scope)
        value = apply_binary(op, current, self._numeric(node.right, scope))
        return self._store(ref, value, scope)

    def _eval_update(self, node: UpdateExpression, scope: Scope) -> Numeric:
        op = UPDATE_OPERATORS.get(node.operator)
        if op is None:
            raise UnimplementedOperator(node.operator, "update operator")
        ref = self._resolve(node.argument, scope)
        old = self._load(ref, scope)
        new = apply_binary(op, old, 1.0)
        self._store(ref, new, scope)
        return new if node.prefix else old

    # Assignment targets ------------------------------------------------------
    def _resolve(self, target: Node, scope: Scope) -> Tuple[Node, Optional[np.ndarray], Any]:
        """Evaluate a target's object and index once; identifiers resolve lazily."""
        if isinstance(target, Identifier):
            return target, None, None
        if not isinstance(target, MemberExpression) or not target.computed:
            raise InvalidAssignmentTarget(f"Cannot assign to {_describe(target)}")
        obj = self._numeric(target.object, scope)
        if not is_vector(obj):
            raise InvalidAssignmentTarget(f"Cannot assign to an element of scalar {_describe(target.object)}")
        return target, obj, self._numeric(target.property, scope)

    def _load(self, ref: Tuple[Node, Optional[np.ndarray], Any], scope: Scope) -> Numeric:
        target, obj, index = ref
        if obj is None:
            return self._eval_identifier(target, scope)
        if is_vector(index):
            check_lengths(obj, index, context="mask and indexed vector")
            return obj[truth_mask(index)]
        return float(obj[_element_index(obj, index)])

    def _store(self, ref: Tuple[Node, Optional[np.ndarray], Any], value: Any, scope: Scope) -> Any:
        target, obj, index = ref
        if obj is None:
            scope.assign(target.name, value)
            return value
        if is_function(value):
            raise InvalidAssignmentTarget("Cannot store a function in a vector element")
        if is_vector(index):
            check_lengths(obj, index, context="mask and indexed vector")
            mask = truth_mask(index)
            if is_vector(value):
                selected = int(np.count_nonzero(mask))
                if value.shape[0] < selected:
                    raise LengthMismatch(selected, value.shape[0], "mask selection and assigned values")
                obj[mask] = value[:selected]
            else:
                obj[mask] = value
            return value
        if is_vector(value):
            raise InvalidAssignmentTarget("Cannot store a vector in a single element")
        obj[_element_index(obj, index)] = value
        return value

    # Calls -------------------------------------------------------------------
    def invoke(self, fn: Any, args: List[Any], scope: Scope) -> Any:
        if isinstance(fn, Builtin) and fn.vectorized:
            check_lengths(*args, context="call arguments")
            return fn(*args)
        if not any(is_vector(arg) for arg in args):
            return self._call_once(fn, args, scope)
        return broadcast_call(lambda *items: self._call_once(fn, list(items), scope), args)

    def _call_once(self, fn: Any, args: List[Any], scope: Scope) -> Any:
        if isinstance(fn, FunctionValue):
            return self._call_function(fn, args, scope)
        result = fn(*args)
        if isinstance(result, FunctionValue):
            return result
        if result is None:
            raise NotANumber(f"{getattr(fn, '__name__', 'host function')} returned no value")
        return as_numeric(result)

    def _call_function(self, fn: FunctionValue, args: List[Any], scope: Scope) -> Any:
        frame: Dict[str, Any] = dict(fn.captured)
        frame[fn.name] = fn
        for position, param in enumerate(fn.params):
            frame[param] = args[position] if position < len(args) else math.nan
        try:
            result = self._run_statements(fn.body.body, scope.child(frame))
        except ReturnSignal as signal:
            result = signal.value
        if result is None:
            raise NotANumber(f"Function {fn.name} did not produce a value")
        return result

    # Statements --------------------------------------------------------------
    def _exec_expression(self, node: ExpressionStatement, scope: Scope) -> Any:
        return self.evaluate(node.expression, scope)

    def _exec_block(self, node: BlockStatement, scope: Scope) -> Any:
        return self._run_statements(node.body, scope)

    def _exec_empty(self, node: EmptyStatement, scope: Scope) -> None:
        return None

    def _exec_var(self, node: VariableDeclaration, scope: Scope) -> None:
        for declarator in node.declarations:
            name = declarator.id.name
            if declarator.init is not None:
                scope.declare(name, self.evaluate(declarator.init, scope))
            elif name not in scope.locals:
                scope.declare(name, math.nan)
        return None

    def _exec_function(self, node: FunctionDeclaration, scope: Scope) -> FunctionValue:
        fn = FunctionValue(
            name=node.id.name,
            params=tuple(param.name for param in node.params),
            body=node.body,
            captured=dict(scope.locals),
        )
        scope.declare(fn.name, fn)
        return fn

    def _exec_return(self, node: ReturnStatement, scope: Scope) -> None:
        value = self.evaluate(node.argument, scope) if node.argument is not None else None
        raise ReturnSignal(value)

    def _exec_throw(self, node: ThrowStatement, scope: Scope) -> None:
        raise UserThrow(self._numeric(node.argument, scope))

    def _exec_break(self, node: BreakStatement, scope: Scope) -> None:
        raise BreakSignal()

    def _exec_continue(self, node: ContinueStatement, scope: Scope) -> None:
        raise ContinueSignal()

    def _exec_if(self, node: IfStatement, scope: Scope) -> Any:
        if is_truthy(self._numeric(node.test, scope)):
            return self.execute(node.consequent, scope)
        if node.alternate is not None:
            return self.execute(node.alternate, scope)
        return None

    def _exec_for(self, node: ForStatement, scope: Scope) -> Any:
        if isinstance(node.init, VariableDeclaration):
            self.execute(node.init, scope)
        elif node.init is not None:
            self.evaluate(node.init, scope)
        result = None
        iterations = 0
        while node.test is None or is_truthy(self._numeric(node.test, scope)):
            iterations += 1
            self._check_iterations(iterations)
            try:
                value = self.execute(node.body, scope)
            except BreakSignal:
                break
            except ContinueSignal:
                value = None
            if value is not None:
                result = value
            if node.update is not None:
                self.evaluate(node.update, scope)
        return result

    def _exec_for_in(self, node: ForInStatement, scope: Scope) -> Any:
        collection = self._numeric(node.right, scope)
        size = collection.shape[0] if is_vector(collection) else 0
        return self._iterate(node, (float(position) for position in range(size)), scope)

    def _exec_for_of(self, node: ForOfStatement, scope: Scope) -> Any:
        collection = self._numeric(node.right, scope)
        if not is_vector(collection):
            raise NotIterable(f"{_describe(node.right)} is a scalar and cannot be iterated")
        size = collection.shape[0]
        return self._iterate(node, (float(collection[position]) for position in range(size)), scope)

    def _iterate(self, node: Any, items: Iterable[float], scope: Scope) -> Any:
        result = None
        for iterations, item in enumerate(items, start=1):
            self._check_iterations(iterations)
            if isinstance(node.left, VariableDeclaration):
                scope.declare(node.left.declarations[0].id.name, item)
            else:
                scope.assign(node.left.name, item)
            try:
                value = self.execute(node.body, scope)
            except BreakSignal:
                break
            except ContinueSignal:
                continue
            if value is not None:
                result = value
        return result

    def _check_iterations(self, iterations: int) -> None:
        cap = self.config.max_loop_iterations
        if cap is not None and iterations > cap:
            raise IterationLimitExceeded(cap)


_EXPRESSION_HANDLERS: Dict[type, Callable[[Evaluator, Any, Scope], Any]] = {
    Literal: Evaluator._eval_literal,
    Identifier: Evaluator._eval_identifier,
    BinaryExpression: Evaluator._eval_binary,
    LogicalExpression: Evaluator._eval_logical,
    UnaryExpression: Evaluator._eval_unary,
    ConditionalExpression: Evaluator._eval_conditional,
    CallExpression: Evaluator._eval_call,
    MemberExpression: Evaluator._eval_member,
    AssignmentExpression: Evaluator._eval_assignment,
    UpdateExpression: Evaluator._eval_update,
    ArrayExpression: Evaluator._eval_array,
}

_STATEMENT_HANDLERS: Dict[type, Callable[[Evaluator, Any, Scope], Any]] = {
    ExpressionStatement: Evaluator._exec_expression,
    BlockStatement: Evaluator._exec_block,
    EmptyStatement: Evaluator._exec_empty,
    VariableDeclaration: Evaluator._exec_var,
    FunctionDeclaration: Evaluator._exec_function,
    ReturnStatement: Evaluator._exec_return,
    ThrowStatement: Evaluator._exec_throw,
    BreakStatement: Evaluator._exec_break,
    ContinueStatement: Evaluator._exec_continue,
    IfStatement: Evaluator._exec_if,
    ForStatement: Evaluator._exec_for,
    ForInStatement: Evaluator._exec_for_in,
    ForOfStatement: Evaluator._exec_for_of,
}

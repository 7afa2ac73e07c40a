"""Arithmetic calculator tool."""

from __future__ import annotations

import ast
import math
import operator
from typing import Any, Callable

from turnstream.ai.tools.base import Tool
from turnstream.errors import ToolInvocationError

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}
_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "round": round,
    "sqrt": math.sqrt,
    "log": math.log,
    "exp": math.exp,
}
_CONSTANTS = {"pi": math.pi, "e": math.e}
MAX_EXPONENT = 1000


def _eval(node: ast.AST) -> Any:
    if isinstance(node, ast.Expression):
        return _eval(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval(node.left), _eval(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval(node.operand))
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and not node.keywords
    ):
        return _FUNCTIONS[node.func.id](*(_eval(a) for a in node.args))
    raise ValueError(f"unsupported expression: {ast.dump(node)[:60]}")


def evaluate(expression: str) -> int | float:
    tree = ast.parse(expression.replace("^", "**"), mode="eval")
    return _eval(tree)


class CalculatorTool(Tool):
    """Evaluate arithmetic expressions without executing arbitrary code."""

    input_key = "expression"

    @property
    def name(self) -> str:
        return "calculator"

    @property
    def description(self) -> str:
        return "Useful for arithmetic. Input should be a math expression such as 2+2 or sqrt(16)*3."

    async def _run(self, tool_input: str) -> str:
        try:
            result = evaluate(tool_input.strip())
        except (SyntaxError, ValueError, TypeError, ZeroDivisionError, OverflowError) as e:
            raise ToolInvocationError(self.name, f"cannot evaluate {tool_input!r}: {e}") from e
        if isinstance(result, float) and result.is_integer():
            result = int(result)
        return str(result)

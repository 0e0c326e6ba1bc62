"""
Utilities module for the Monkey interpreter
Error value builders and helpers shared by the evaluator and the built-ins
"""

from typing import Any, Dict, List, Optional, Callable
import operator

from values import (
  make_error,
  make_integer,
  make_boolean,
  type_name,
)


# ==================== ERROR VALUE BUILDERS ====================

def type_mismatch_error(left: Dict, op: str, right: Dict) -> Dict:
  """
  Error for an infix operator applied to operands of different types

  Examples:
    type_mismatch_error(5, "+", true) -> ERROR "type mismatch: INTEGER + BOOLEAN"
  """
  return make_error(f"type mismatch: {type_name(left)} {op} {type_name(right)}")


def unknown_infix_operator_error(left: Dict, op: str, right: Dict) -> Dict:
  return make_error(f"unknown operator: {type_name(left)} {op} {type_name(right)}")


def unknown_prefix_operator_error(op: str, right: Dict) -> Dict:
  return make_error(f"unknown operator: {op}{type_name(right)}")


def identifier_not_found_error(name: str) -> Dict:
  return make_error(f"identifier not found: {name}")


def not_a_function_error(value: Dict) -> Dict:
  return make_error(f"not a function: {type_name(value)}")


def unusable_hash_key_error(value: Dict) -> Dict:
  return make_error(f"unusable as hash key: {type_name(value)}")


def index_not_supported_error(left: Dict, index: Dict) -> Dict:
  return make_error(f"index operator not supported: {type_name(left)}[{type_name(index)}]")


def arity_error(expected: int, got: int) -> Dict:
  """
  Generate arity mismatch error

  Args:
    expected: Expected number of arguments
    got: Actual number of arguments

  Returns:
    ERROR value with formatted message
  """
  return make_error(f"wrong number of arguments. got={got}, want={expected}")


def argument_type_error(func_name: str, actual: Dict) -> Dict:
  """
  Generate unsupported-argument error for a built-in

  Args:
    func_name: Built-in function name
    actual: Offending argument value

  Returns:
    ERROR value with formatted message
  """
  return make_error(f"argument to `{func_name}` not supported, got {type_name(actual)}")


# ==================== VALIDATION UTILITIES ====================

def validate_function_args(
  func_name: str,
  args: List[Dict],
  expected_types: List[Optional[str]]
) -> Optional[Dict]:
  """
  Validate built-in arguments against expected types

  Args:
    func_name: Function name for error messages
    args: List of argument values
    expected_types: Expected type name per position (None accepts any type)

  Returns:
    ERROR value describing the first problem, or None when the arguments are valid
  """
  if len(args) != len(expected_types):
    return arity_error(len(expected_types), len(args))

  for arg, expected in zip(args, expected_types):
    if expected is not None and type_name(arg) != expected:
      return argument_type_error(func_name, arg)
  return None


def dispatch_by_type(
  value: Dict,
  handlers: Dict[str, Callable[[Dict], Any]],
  default_handler: Optional[Callable[[Dict], Any]] = None
) -> Any:
  """
  Generic type-based dispatch

  Args:
    value: Value dict with 'type' field
    handlers: Map of type names to handler functions
    default_handler: Fallback handler

  Returns:
    Result of calling the appropriate handler

  Raises:
    ValueError if no handler found and no default

  Examples:
    dispatch_by_type(
      {"type": "INTEGER", "value": 42},
      {"INTEGER": lambda v: v['value'] * 2}
    ) -> 84
  """
  handler = handlers.get(type_name(value), default_handler)
  if handler is None:
    raise ValueError(f"No handler for type: {type_name(value)}")
  return handler(value)


# ==================== BINARY OPERATION FACTORIES ====================

def truncating_div(x: int, y: int) -> int:
  """Integer division rounding toward zero"""
  quotient = abs(x) // abs(y)
  return quotient if (x < 0) == (y < 0) else -quotient


def binary_arithmetic_op(op: Callable[[int, int], int]) -> Callable[[Dict, Dict], Dict]:
  """
  Factory for INTEGER arithmetic with 64-bit wrap-around

  Examples:
    add = binary_arithmetic_op(operator.add)
    add(make_integer(1), make_integer(2)) -> INTEGER 3
  """
  def arithmetic(x: Dict, y: Dict) -> Dict:
    return make_integer(op(x['value'], y['value']))

  return arithmetic


def binary_comparison_op(op: Callable[[Any, Any], bool]) -> Callable[[Dict, Dict], Dict]:
  """Factory for comparisons producing the shared BOOLEAN values"""
  def comparison(x: Dict, y: Dict) -> Dict:
    return make_boolean(op(x['value'], y['value']))

  return comparison


def integer_division(x: Dict, y: Dict) -> Dict:
  if y['value'] == 0:
    return make_error("division by zero")
  return make_integer(truncating_div(x['value'], y['value']))


INTEGER_OPERATORS: Dict[str, Callable[[Dict, Dict], Dict]] = {
  '+': binary_arithmetic_op(operator.add),
  '-': binary_arithmetic_op(operator.sub),
  '*': binary_arithmetic_op(operator.mul),
  '/': integer_division,
  '<': binary_comparison_op(operator.lt),
  '>': binary_comparison_op(operator.gt),
  '==': binary_comparison_op(operator.eq),
  '!=': binary_comparison_op(operator.ne),
}

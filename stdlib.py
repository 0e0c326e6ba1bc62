"""
Monkey Standard Library
Built-in functions and the registry the evaluator resolves them from
"""

from typing import Dict, Callable, List, Mapping, Optional, TextIO
from types import MappingProxyType
import sys

from values import (
  ARRAY,
  STRING,
  NULL,
  make_integer,
  make_array,
  make_builtin_function,
  printable,
)
from utilities import (
  validate_function_args,
  argument_type_error,
  dispatch_by_type,
)


# ============================================================================
# COLLECTION FUNCTIONS
# ============================================================================

def monkey_len(args: List[Dict]) -> Dict:
  """Length of a string (characters) or an array (elements)"""
  error = validate_function_args("len", args, [None])
  if error:
    return error
  return dispatch_by_type(
      args[0],
      {
          STRING: lambda v: make_integer(len(v['value'])),
          ARRAY: lambda v: make_integer(len(v['value'])),
      },
      lambda v: argument_type_error("len", v)
  )


def monkey_first(args: List[Dict]) -> Dict:
  """First element of an array, NULL when empty"""
  error = validate_function_args("first", args, [ARRAY])
  if error:
    return error
  elements = args[0]['value']
  return elements[0] if elements else NULL


def monkey_last(args: List[Dict]) -> Dict:
  """Last element of an array, NULL when empty"""
  error = validate_function_args("last", args, [ARRAY])
  if error:
    return error
  elements = args[0]['value']
  return elements[-1] if elements else NULL


def monkey_rest(args: List[Dict]) -> Dict:
  """New array without the first element, NULL when empty"""
  error = validate_function_args("rest", args, [ARRAY])
  if error:
    return error
  elements = args[0]['value']
  if not elements:
    return NULL
  return make_array(elements[1:])


def monkey_push(args: List[Dict]) -> Dict:
  """New array with the value appended; the argument array is not modified"""
  error = validate_function_args("push", args, [ARRAY, None])
  if error:
    return error
  return make_array(args[0]['value'] + [args[1]])


# ============================================================================
# OUTPUT FUNCTIONS
# ============================================================================

def make_puts(output: Optional[TextIO] = None) -> Callable[[List[Dict]], Dict]:
  """Build puts bound to an output stream (stdout when None)"""
  def monkey_puts(args: List[Dict]) -> Dict:
    stream = output if output is not None else sys.stdout
    for arg in args:
      print(printable(arg), file=stream)
    return NULL

  return monkey_puts


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

def make_builtin_registry(output: Optional[TextIO] = None) -> Mapping[str, Dict]:
  """Build the read-only table of built-in functions"""
  return MappingProxyType({
      "len": make_builtin_function("len", monkey_len),
      "first": make_builtin_function("first", monkey_first),
      "last": make_builtin_function("last", monkey_last),
      "rest": make_builtin_function("rest", monkey_rest),
      "push": make_builtin_function("push", monkey_push),
      "puts": make_builtin_function("puts", make_puts(output)),
  })


# Default registry writing to stdout
BUILTIN_FUNCTIONS: Mapping[str, Dict] = make_builtin_registry()


def list_builtin_functions() -> List[str]:
  """List all available built-in functions"""
  return list(BUILTIN_FUNCTIONS.keys())

"""
Monkey Interpreter - tree-walking evaluator
Runtime errors are ERROR values checked after every sub-evaluation
"""

from typing import Any, Dict, List, Optional, Callable, Mapping, Tuple

from ast_nodes import (
  Node, Program, LetStatement, ReturnStatement, ExpressionStatement, BlockStatement,
  Identifier, IntegerLiteral, StringLiteral, BooleanLiteral, PrefixExpression,
  InfixExpression, IfExpression, FunctionLiteral, CallExpression, ArrayLiteral,
  HashLiteral, IndexExpression
)
from values import (
  INTEGER, STRING, ARRAY, HASH, FUNCTION, BUILTIN,
  NULL,
  make_integer,
  make_string,
  make_boolean,
  make_array,
  make_hash,
  make_function,
  make_return_value,
  is_error,
  is_abrupt,
  is_return_value,
  is_truthy,
  is_hashable,
  hash_key,
  values_equal,
)
from utilities import (
  INTEGER_OPERATORS,
  type_mismatch_error,
  unknown_infix_operator_error,
  unknown_prefix_operator_error,
  identifier_not_found_error,
  not_a_function_error,
  unusable_hash_key_error,
  index_not_supported_error,
  arity_error,
)
from stdlib import BUILTIN_FUNCTIONS
from parsing import parse_source_or_raise


# ============================================================================
# EXECUTION CONTEXT
# ============================================================================

def make_execution_context(builtins: Optional[Mapping[str, Dict]] = None) -> Dict:
  """Create an execution context carrying the built-in registry"""
  return {
      'builtins': builtins if builtins is not None else BUILTIN_FUNCTIONS
  }


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create a runtime environment; parent is the lexically enclosing scope"""
  return {
      'parent': parent,
      'bindings': bindings if bindings is not None else {}
  }


def env_bind_value(env: Dict, name: str, value: Dict) -> Dict:
  """Bind name in this environment only and return the value"""
  env['bindings'][name] = value
  return value


def env_lookup_value(env: Dict, name: str) -> Optional[Dict]:
  """Look up a value in the environment chain"""
  while env is not None:
    if name in env['bindings']:
      return env['bindings'][name]
    env = env['parent']
  return None


def extend_function_env(func: Dict, args: List[Dict]) -> Dict:
  """New call scope enclosed by the function's closure, parameters bound"""
  return make_runtime_env(func['closure_env'], dict(zip(func['params'], args)))


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_ast(node: Node, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Dict:
  """
  Evaluate an AST node against an environment and return its value.
  ERROR and RETURN_VALUE results are returned unchanged for the caller to propagate.
  """
  if context is None:
    context = make_execution_context()

  if debug:
    print(f"Evaluating: {type(node).__name__}")

  evaluator = NODE_EVALUATORS.get(type(node))
  if evaluator is None:
    raise TypeError(f"Cannot evaluate node of type {type(node).__name__}")
  return evaluator(node, env, debug, context)


def eval_program(program: Program, env: Dict, debug: bool = False, context: Optional[Dict] = None) -> Dict:
  """Evaluate top-level statements; a top-level return ends the program"""
  result, _ = eval_program_completion(program, env, debug, context)
  return result


def eval_program_completion(program: Program, env: Dict, debug: bool = False,
                            context: Optional[Dict] = None) -> Tuple[Dict, bool]:
  """
  Evaluate top-level statements, also reporting whether every statement ran.
  The flag is False when a return or an ERROR ended the program early.
  """
  result = NULL
  for statement in program.statements:
    result = eval_ast(statement, env, debug, context)
    if is_return_value(result):
      return result['value'], False
    if is_error(result):
      return result, False
  return result, True


def eval_block_statement(node: BlockStatement, env: Dict, debug: bool, context: Dict) -> Dict:
  """Evaluate statements in order, stopping at the first RETURN_VALUE or ERROR"""
  result = NULL
  for statement in node.statements:
    result = eval_ast(statement, env, debug, context)
    if is_abrupt(result):
      return result
  return result


def eval_expression_statement(node: ExpressionStatement, env: Dict, debug: bool, context: Dict) -> Dict:
  return eval_ast(node.expression, env, debug, context)


def eval_let_statement(node: LetStatement, env: Dict, debug: bool, context: Dict) -> Dict:
  """Evaluate value binding and bind in the current environment"""
  value = eval_ast(node.value, env, debug, context)
  if is_abrupt(value):
    return value
  env_bind_value(env, node.name.name, value)
  return NULL


def eval_return_statement(node: ReturnStatement, env: Dict, debug: bool, context: Dict) -> Dict:
  if node.value is None:
    return make_return_value(NULL)
  value = eval_ast(node.value, env, debug, context)
  if is_abrupt(value):
    return value
  return make_return_value(value)


def eval_integer_literal(node: IntegerLiteral, env: Dict, debug: bool, context: Dict) -> Dict:
  return make_integer(node.value)


def eval_string_literal(node: StringLiteral, env: Dict, debug: bool, context: Dict) -> Dict:
  return make_string(node.value)


def eval_boolean_literal(node: BooleanLiteral, env: Dict, debug: bool, context: Dict) -> Dict:
  return make_boolean(node.value)


def eval_identifier(node: Identifier, env: Dict, debug: bool, context: Dict) -> Dict:
  """Evaluate identifier: scopes first, then built-ins"""
  value = env_lookup_value(env, node.name)
  if value is not None:
    return value

  builtin = context['builtins'].get(node.name)
  if builtin is not None:
    return builtin

  return identifier_not_found_error(node.name)


def eval_prefix_expression(node: PrefixExpression, env: Dict, debug: bool, context: Dict) -> Dict:
  right = eval_ast(node.right, env, debug, context)
  if is_abrupt(right):
    return right

  if node.operator == '!':
    return make_boolean(not is_truthy(right))
  if node.operator == '-' and right['type'] == INTEGER:
    return make_integer(-right['value'])
  return unknown_prefix_operator_error(node.operator, right)


def eval_infix_expression(node: InfixExpression, env: Dict, debug: bool, context: Dict) -> Dict:
  left = eval_ast(node.left, env, debug, context)
  if is_abrupt(left):
    return left
  right = eval_ast(node.right, env, debug, context)
  if is_abrupt(right):
    return right
  return apply_infix_operator(node.operator, left, right)


def apply_infix_operator(op: str, left: Dict, right: Dict) -> Dict:
  """Apply a binary operator to two evaluated operands"""
  if left['type'] == INTEGER and right['type'] == INTEGER:
    handler = INTEGER_OPERATORS.get(op)
    if handler is None:
      return unknown_infix_operator_error(left, op, right)
    return handler(left, right)

  if left['type'] == STRING and right['type'] == STRING:
    if op == '+':
      return make_string(left['value'] + right['value'])
    if op == '==':
      return make_boolean(left['value'] == right['value'])
    if op == '!=':
      return make_boolean(left['value'] != right['value'])
    return unknown_infix_operator_error(left, op, right)

  if op == '==':
    return make_boolean(values_equal(left, right))
  if op == '!=':
    return make_boolean(not values_equal(left, right))

  if left['type'] != right['type']:
    return type_mismatch_error(left, op, right)
  return unknown_infix_operator_error(left, op, right)


def eval_if_expression(node: IfExpression, env: Dict, debug: bool, context: Dict) -> Dict:
  condition = eval_ast(node.condition, env, debug, context)
  if is_abrupt(condition):
    return condition

  if is_truthy(condition):
    return eval_ast(node.consequence, env, debug, context)
  elif node.alternative is not None:
    return eval_ast(node.alternative, env, debug, context)
  return NULL


def eval_function_literal(node: FunctionLiteral, env: Dict, debug: bool, context: Dict) -> Dict:
  """Create function value capturing the current environment"""
  return make_function([p.name for p in node.parameters], node.body, env)


def eval_expressions(nodes: Any, env: Dict, debug: bool, context: Dict) -> Tuple[List[Dict], Optional[Dict]]:
  """Evaluate left to right. Returns (values, None), or ([], first ERROR or RETURN_VALUE)"""
  results = []
  for node in nodes:
    value = eval_ast(node, env, debug, context)
    if is_abrupt(value):
      return [], value
    results.append(value)
  return results, None


def eval_call_expression(node: CallExpression, env: Dict, debug: bool, context: Dict) -> Dict:
  function = eval_ast(node.function, env, debug, context)
  if is_abrupt(function):
    return function

  args, abrupt = eval_expressions(node.arguments, env, debug, context)
  if abrupt:
    return abrupt

  return apply_function(function, args, debug, context)


def apply_function(function: Dict, args: List[Dict], debug: bool = False, context: Optional[Dict] = None) -> Dict:
  """Call a FUNCTION or BUILTIN value with evaluated arguments"""
  if context is None:
    context = make_execution_context()

  if function['type'] == FUNCTION:
    if len(args) != len(function['params']):
      return arity_error(len(function['params']), len(args))
    call_env = extend_function_env(function, args)
    result = eval_ast(function['body'], call_env, debug, context)
    if is_return_value(result):
      return result['value']
    return result

  if function['type'] == BUILTIN:
    if debug:
      print(f"Calling builtin: {function['name']}")
    return function['func'](args)

  return not_a_function_error(function)


def eval_array_literal(node: ArrayLiteral, env: Dict, debug: bool, context: Dict) -> Dict:
  elements, abrupt = eval_expressions(node.elements, env, debug, context)
  if abrupt:
    return abrupt
  return make_array(elements)


def eval_hash_literal(node: HashLiteral, env: Dict, debug: bool, context: Dict) -> Dict:
  pairs = {}
  for key_node, value_node in node.pairs:
    key = eval_ast(key_node, env, debug, context)
    if is_abrupt(key):
      return key
    if not is_hashable(key):
      return unusable_hash_key_error(key)

    value = eval_ast(value_node, env, debug, context)
    if is_abrupt(value):
      return value

    pairs[hash_key(key)] = (key, value)

  return make_hash(pairs)


def eval_index_expression(node: IndexExpression, env: Dict, debug: bool, context: Dict) -> Dict:
  left = eval_ast(node.left, env, debug, context)
  if is_abrupt(left):
    return left
  index = eval_ast(node.index, env, debug, context)
  if is_abrupt(index):
    return index
  return apply_index(left, index)


def apply_index(left: Dict, index: Dict) -> Dict:
  """Index an ARRAY or HASH; absent elements are NULL, never errors"""
  if left['type'] == ARRAY and index['type'] == INTEGER:
    elements = left['value']
    position = index['value']
    if position < 0 or position >= len(elements):
      return NULL
    return elements[position]

  if left['type'] == HASH:
    if not is_hashable(index):
      return unusable_hash_key_error(index)
    pair = left['value'].get(hash_key(index))
    return pair[1] if pair is not None else NULL

  return index_not_supported_error(left, index)


NODE_EVALUATORS: Dict[type, Callable[[Any, Dict, bool, Dict], Dict]] = {
  BlockStatement: eval_block_statement,
  ExpressionStatement: eval_expression_statement,
  LetStatement: eval_let_statement,
  ReturnStatement: eval_return_statement,
  IntegerLiteral: eval_integer_literal,
  StringLiteral: eval_string_literal,
  BooleanLiteral: eval_boolean_literal,
  Identifier: eval_identifier,
  PrefixExpression: eval_prefix_expression,
  InfixExpression: eval_infix_expression,
  IfExpression: eval_if_expression,
  FunctionLiteral: eval_function_literal,
  CallExpression: eval_call_expression,
  ArrayLiteral: eval_array_literal,
  HashLiteral: eval_hash_literal,
  IndexExpression: eval_index_expression,
  Program: eval_program,
}


# ============================================================================
# SOURCE EVALUATION
# ============================================================================

def run_source(source: str, env: Optional[Dict] = None, debug: bool = False,
               context: Optional[Dict] = None, filename: str = "<input>") -> Dict:
  """Parse and evaluate source text.

  Raises MonkeyParseError when the source has syntax errors; runtime errors
  come back as ERROR values.
  """
  program = parse_source_or_raise(source, filename, debug)
  if env is None:
    env = make_runtime_env()
  return eval_program(program, env, debug, context)


# ============================================================================
# FACTORY FUNCTIONS (for main.py)
# ============================================================================

class Interpreter:
  """Evaluation session owning one root environment"""

  def __init__(self, debug: bool = False, builtins: Optional[Mapping[str, Dict]] = None):
    self.debug = debug
    self.context = make_execution_context(builtins)
    self.global_env = make_runtime_env()

  def interpret_program(self, program: Program) -> Dict:
    return eval_program(program, self.global_env, self.debug, self.context)

  def interpret_program_completion(self, program: Program) -> Tuple[Dict, bool]:
    return eval_program_completion(program, self.global_env, self.debug, self.context)

  def interpret_source(self, source: str, filename: str = "<input>") -> Dict:
    return run_source(source, self.global_env, self.debug, self.context, filename)

  def reset(self) -> None:
    """Drop every user binding"""
    self.global_env = make_runtime_env()

  def user_bindings(self) -> Dict[str, Dict]:
    return dict(self.global_env['bindings'])


def create_interpreter(debug: bool = False, builtins: Optional[Mapping[str, Dict]] = None) -> Interpreter:
  """Factory function returning an interpreter"""
  return Interpreter(debug=debug, builtins=builtins)


def create_debug_interpreter() -> Interpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)

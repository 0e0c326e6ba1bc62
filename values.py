"""
Monkey runtime values
Tagged dictionaries built only through the constructor functions below
"""

from typing import Any, Dict, List, Optional, Callable, Tuple


# ============================================================================
# TYPE NAMES
# ============================================================================

INTEGER = "INTEGER"
STRING = "STRING"
BOOLEAN = "BOOLEAN"
NULL_TYPE = "NULL"
ARRAY = "ARRAY"
HASH = "HASH"
FUNCTION = "FUNCTION"
BUILTIN = "BUILTIN"
RETURN_VALUE = "RETURN_VALUE"
ERROR = "ERROR"

HASHABLE_TYPES = frozenset({INTEGER, STRING, BOOLEAN})

_INT64_RANGE = 2 ** 64
_INT64_MIN = -(2 ** 63)


# ============================================================================
# CONSTRUCTORS
# ============================================================================

def make_value(value: Any, type_name: str) -> Dict:
  """Create a runtime value"""
  return {
      'value': value,
      'type': type_name
  }


TRUE = make_value(True, BOOLEAN)
FALSE = make_value(False, BOOLEAN)
NULL = make_value(None, NULL_TYPE)


def wrap_int64(value: int) -> int:
  """Two's complement wrap of a Python int into the signed 64-bit range"""
  return (value - _INT64_MIN) % _INT64_RANGE + _INT64_MIN


def make_integer(value: int) -> Dict:
  return make_value(wrap_int64(value), INTEGER)


def make_string(value: str) -> Dict:
  return make_value(value, STRING)


def make_boolean(value: bool) -> Dict:
  """Booleans are the shared TRUE/FALSE values"""
  return TRUE if value else FALSE


def make_array(elements: List[Dict]) -> Dict:
  return make_value(elements, ARRAY)


def make_hash(pairs: Dict[Tuple[str, Any], Tuple[Dict, Dict]]) -> Dict:
  """Create a hash value from {hash_key: (key_value, value)}"""
  return make_value(pairs, HASH)


def make_function(params: List[str], body: Any, closure_env: Dict) -> Dict:
  """Create a function value with closure"""
  return {
      'type': FUNCTION,
      'params': params,
      'body': body,
      'closure_env': closure_env
  }


def make_builtin_function(name: str, func: Callable[[List[Dict]], Dict]) -> Dict:
  """Create a built-in function value"""
  return {
      'type': BUILTIN,
      'name': name,
      'func': func
  }


def make_return_value(value: Dict) -> Dict:
  return make_value(value, RETURN_VALUE)


def make_error(message: str) -> Dict:
  return {
      'type': ERROR,
      'message': message
  }


# ============================================================================
# PREDICATES
# ============================================================================

def type_name(value: Dict) -> str:
  return value['type']


def is_error(value: Optional[Dict]) -> bool:
  return value is not None and value['type'] == ERROR


def is_return_value(value: Dict) -> bool:
  return value['type'] == RETURN_VALUE


def is_abrupt(value: Dict) -> bool:
  """ERROR and RETURN_VALUE stop the enclosing evaluation and travel upward unchanged"""
  return value['type'] == ERROR or value['type'] == RETURN_VALUE


def is_truthy(value: Dict) -> bool:
  """NULL and false are falsy, everything else is truthy"""
  if value['type'] == NULL_TYPE:
    return False
  if value['type'] == BOOLEAN:
    return value['value']
  return True


def is_hashable(value: Dict) -> bool:
  return value['type'] in HASHABLE_TYPES


def hash_key(value: Dict) -> Tuple[str, Any]:
  """Key under which a hashable value is stored in a HASH"""
  return (value['type'], value['value'])


def values_equal(left: Dict, right: Dict) -> bool:
  """Equality used by == and !=.

  Hashable values and NULL compare by type and content; arrays, hashes and
  functions compare by identity.
  """
  if left['type'] != right['type']:
    return False
  if left['type'] in HASHABLE_TYPES or left['type'] == NULL_TYPE:
    return left['value'] == right['value']
  return left is right


# ============================================================================
# DISPLAY
# ============================================================================

def inspect(value: Dict) -> str:
  """Canonical display text of a value, as echoed by the REPL"""
  value_type = value['type']
  if value_type == INTEGER:
    return str(value['value'])
  elif value_type == STRING:
    return f'"{value["value"]}"'
  elif value_type == BOOLEAN:
    return "true" if value['value'] else "false"
  elif value_type == NULL_TYPE:
    return "null"
  elif value_type == ARRAY:
    return "[" + ", ".join(inspect(e) for e in value['value']) + "]"
  elif value_type == HASH:
    pairs = [f"{inspect(k)}: {inspect(v)}" for k, v in value['value'].values()]
    return "{" + ", ".join(pairs) + "}"
  elif value_type == FUNCTION:
    return f"fn({', '.join(value['params'])}) {value['body']}"
  elif value_type == BUILTIN:
    return f"builtin function {value['name']}"
  elif value_type == RETURN_VALUE:
    return inspect(value['value'])
  elif value_type == ERROR:
    return f"ERROR: {value['message']}"
  return f"<{value_type}>"


def printable(value: Dict) -> str:
  """Text written by puts: strings unquoted, everything else as inspect"""
  if value['type'] == STRING:
    return value['value']
  return inspect(value)

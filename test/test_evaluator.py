"""
Evaluation tests for the Monkey interpreter
Tests arithmetic, conditionals, returns, error values, closures and collections
"""

import pytest
from parsing import parse
from interpreter import (
  eval_program, eval_program_completion, eval_ast, make_runtime_env, env_bind_value, env_lookup_value,
  run_source, create_interpreter, create_debug_interpreter
)
from error_handling import MonkeyParseError
from values import (
  TRUE, FALSE, NULL, INTEGER, STRING, ARRAY, HASH, FUNCTION, ERROR,
  make_integer, make_string, inspect, is_error
)


def error_message(value):
  assert value['type'] == ERROR, f"expected an error, got {inspect(value)}"
  return value['message']


class TestLiteralsAndArithmetic:
  """Test integer, boolean and string expressions"""

  @pytest.mark.parametrize("source,expected", [
      ("5", 5),
      ("-10", -10),
      ("5 + 5 + 5 + 5 - 10", 10),
      ("2 * 2 * 2 * 2 * 2", 32),
      ("5 + 5 * 2", 15),
      ("50 / 2 * 2 + 10", 60),
      ("2 * (5 + 10)", 30),
      ("(5 + 10 * 2 + 15 / 3) * 2 + -10", 50),
      ("-7 / 2", -3),
      ("7 / -2", -3),
  ])
  def test_integer_expressions(self, run, source, expected):
    result = run(source)
    assert result['type'] == INTEGER
    assert result['value'] == expected

  def test_integers_wrap_at_64_bits(self, run):
    assert run("9223372036854775807 + 1")['value'] == -2 ** 63
    assert run("-9223372036854775807 - 2")['value'] == 2 ** 63 - 1

  def test_division_by_zero_is_an_error(self, run):
    assert error_message(run("10 / 0")) == "division by zero"

  @pytest.mark.parametrize("source,expected", [
      ("true", TRUE),
      ("false", FALSE),
      ("1 < 2", TRUE),
      ("1 > 2", FALSE),
      ("1 == 1", TRUE),
      ("1 != 1", FALSE),
      ("true == true", TRUE),
      ("true != false", TRUE),
      ("(1 < 2) == true", TRUE),
      ("(1 > 2) == true", FALSE),
      ("10 > 5 == true", TRUE),
      ('"a" == "a"', TRUE),
      ('"a" != "b"', TRUE),
      ('1 == "1"', FALSE),
      ("1 != true", TRUE),
  ])
  def test_boolean_expressions(self, run, source, expected):
    assert run(source) is expected

  @pytest.mark.parametrize("source,expected", [
      ("!true", FALSE),
      ("!false", TRUE),
      ("!5", FALSE),
      ("!!true", TRUE),
      ("!!5", TRUE),
      ('!""', FALSE),
      ("![]", FALSE),
  ])
  def test_bang_operator(self, run, source, expected):
    assert run(source) is expected

  def test_string_concatenation(self, run):
    result = run('"Hello" + " " + "World!"')
    assert result['type'] == STRING
    assert result['value'] == "Hello World!"


class TestConditionalsAndReturn:
  """Test if/else and early return"""

  @pytest.mark.parametrize("source,expected", [
      ("if (true) { 10 }", 10),
      ("if (1) { 10 }", 10),
      ("if (1 < 2) { 10 }", 10),
      ("if (1 > 2) { 10 } else { 20 }", 20),
      ("if (1 < 2) { 10 } else { 20 }", 10),
      ('if ("") { 10 } else { 20 }', 10),
  ])
  def test_if_else(self, run, source, expected):
    assert run(source)['value'] == expected

  def test_if_without_alternative_is_null(self, run):
    assert run("if (false) { 10 }") is NULL
    assert run("if (1 > 2) { 10 }") is NULL

  def test_null_condition_is_falsy(self, run):
    assert run("if (if (false) { 1 }) { 10 } else { 20 }")['value'] == 20

  @pytest.mark.parametrize("source,expected", [
      ("return 10;", 10),
      ("return 10; 9;", 10),
      ("return 2 * 5; 9;", 10),
      ("9; return 2 * 5; 9;", 10),
      ("if (true) { return 10; 1; } return 1;", 10),
      ("if (10 > 1) { if (10 > 1) { return 10; } return 1; }", 10),
      ("let f = fn(x) { return x; x + 10; }; f(10);", 10),
      ("let f = fn(x) { let result = x + 10; return result; return 10; }; f(10);", 20),
  ])
  def test_return_statements(self, run, source, expected):
    assert run(source)['value'] == expected

  @pytest.mark.parametrize("source", [
      "let f = fn() { let x = if (true) { return 5; }; x * 2 }; f()",
      "let f = fn() { 1 + if (true) { return 5; } }; f()",
      "let f = fn() { if (true) { return 5; } * 2 }; f()",
      "let f = fn() { -if (true) { return 5; } }; f()",
      "let g = fn(x) { x }; let f = fn() { g(if (true) { return 5; }) * 2 }; f()",
      "let f = fn() { [1, if (true) { return 5; }] }; f()",
      'let f = fn() { {"a": if (true) { return 5; }} }; f()',
      "let f = fn() { [1, 2][if (true) { return 5; }] }; f()",
      "let f = fn() { if (if (true) { return 5; }) { 1 } else { 2 } }; f()",
  ])
  def test_return_inside_expression_leaves_the_function(self, run, source):
    assert run(source)['value'] == 5

  def test_return_inside_top_level_let_ends_program(self):
    program, _ = parse("let x = if (true) { return 5; }; 99")
    env = make_runtime_env()
    assert eval_program(program, env)['value'] == 5
    assert env_lookup_value(env, "x") is None

  @pytest.mark.parametrize("source,expected,completed", [
      ("let a = 1; a + 1", 2, True),
      ("return 3; let b = 4;", 3, False),
      ("let b = nope;", None, False),
  ])
  def test_program_completion(self, source, expected, completed):
    program, _ = parse(source)
    result, ran_all = eval_program_completion(program, make_runtime_env())
    assert result.get('value') == expected
    assert ran_all is completed

  def test_bare_return_yields_null(self, run):
    assert run("let f = fn() { return; 5 }; f()") is NULL

  def test_return_inside_function_does_not_end_program(self, run):
    assert run("let f = fn() { return 1; }; f(); 2")['value'] == 2

  def test_empty_program_is_null(self, run):
    assert run("") is NULL

  def test_let_evaluates_to_null(self, run):
    assert run("let a = 5;") is NULL


class TestErrorValues:
  """Test runtime errors and their propagation"""

  @pytest.mark.parametrize("source,expected", [
      ("5 + true;", "type mismatch: INTEGER + BOOLEAN"),
      ("5 + true; 5;", "type mismatch: INTEGER + BOOLEAN"),
      ("-true", "unknown operator: -BOOLEAN"),
      ("true + false;", "unknown operator: BOOLEAN + BOOLEAN"),
      ("5; true + false; 5", "unknown operator: BOOLEAN + BOOLEAN"),
      ("if (10 > 1) { true + false; }", "unknown operator: BOOLEAN + BOOLEAN"),
      ("if (10 > 1) { if (10 > 1) { return true + false; } return 1; }",
       "unknown operator: BOOLEAN + BOOLEAN"),
      ("foobar", "identifier not found: foobar"),
      ('"Hello" - "World"', "unknown operator: STRING - STRING"),
      ('"a" < "b"', "unknown operator: STRING < STRING"),
      ('{"name": "Monkey"}[fn(x) { x }];', "unusable as hash key: FUNCTION"),
      ("{[1]: 2}", "unusable as hash key: ARRAY"),
      ("5(1)", "not a function: INTEGER"),
      ("1[0]", "index operator not supported: INTEGER[INTEGER]"),
      ('[1, 2]["a"]', "index operator not supported: ARRAY[STRING]"),
  ])
  def test_error_messages(self, run, source, expected):
    assert error_message(run(source)) == expected

  def test_error_stops_argument_evaluation(self, run, output):
    result = run('let f = fn(a, b) { a }; f(puts("first"), missing, puts("never"))')
    assert error_message(result) == "identifier not found: missing"
    assert output.getvalue() == "first\n"

  def test_error_stops_program(self, run, output):
    result = run('puts("a"); 1 + true; puts("b");')
    assert is_error(result)
    assert output.getvalue() == "a\n"

  def test_error_in_let_does_not_bind(self):
    env = make_runtime_env()
    program, _ = parse("let x = y;")
    assert is_error(eval_program(program, env))
    assert env_lookup_value(env, "x") is None

  def test_error_inside_array_and_hash_literals(self, run):
    assert error_message(run("[1, nope, 3]")) == "identifier not found: nope"
    assert error_message(run('{"a": nope}')) == "identifier not found: nope"


class TestFunctionsAndClosures:
  """Test function values, calls and captured environments"""

  def test_function_value(self, run):
    result = run("fn(x) { x + 2; };")
    assert result['type'] == FUNCTION
    assert result['params'] == ["x"]
    assert str(result['body']) == "{ (x + 2) }"

  @pytest.mark.parametrize("source,expected", [
      ("let identity = fn(x) { x; }; identity(5);", 5),
      ("let identity = fn(x) { return x; }; identity(5);", 5),
      ("let double = fn(x) { x * 2; }; double(5);", 10),
      ("let add = fn(x, y) { x + y; }; add(5, 5);", 10),
      ("let add = fn(x, y) { x + y; }; add(5 + 5, add(5, 5));", 20),
      ("fn(x) { x; }(5)", 5),
  ])
  def test_function_application(self, run, source, expected):
    assert run(source)['value'] == expected

  def test_closures(self, run):
    source = "let newAdder = fn(x) { fn(y) { x + y }; }; let addTwo = newAdder(2); addTwo(3);"
    assert run(source)['value'] == 5

  def test_closures_capture_their_own_scope(self, run):
    source = """
    let newAdder = fn(x) { fn(y) { x + y } };
    let addOne = newAdder(1);
    let addTen = newAdder(10);
    addOne(1) + addTen(1)
    """
    assert run(source)['value'] == 13

  def test_recursive_function(self, run):
    source = """
    let fib = fn(n) { if (n < 2) { n } else { fib(n - 1) + fib(n - 2) } };
    fib(15)
    """
    assert run(source)['value'] == 610

  def test_higher_order_functions(self, run):
    source = """
    let map = fn(arr, f) {
      let iter = fn(arr, acc) {
        if (len(arr) == 0) { acc } else { iter(rest(arr), push(acc, f(first(arr)))) }
      };
      iter(arr, []);
    };
    map([1, 2, 3], fn(x) { x * 2 })
    """
    assert inspect(run(source)) == "[2, 4, 6]"

  def test_let_in_function_does_not_leak(self, run):
    source = "let x = 1; let f = fn() { let x = 2; x }; f() + x"
    assert run(source)['value'] == 3

  def test_parameters_shadow_outer_bindings(self, run):
    assert run("let x = 10; let f = fn(x) { x }; f(1) + x")['value'] == 11

  @pytest.mark.parametrize("source,expected", [
      ("fn(x) { x }()", "wrong number of arguments. got=0, want=1"),
      ("fn(x) { x }(1, 2)", "wrong number of arguments. got=2, want=1"),
      ("let add = fn(a, b) { a + b }; add(1)", "wrong number of arguments. got=1, want=2"),
  ])
  def test_arity_mismatch_is_an_error(self, run, source, expected):
    assert error_message(run(source)) == expected


class TestArraysAndHashes:
  """Test collection literals and indexing"""

  def test_array_literal(self, run):
    result = run("[1, 2 * 2, 3 + 3]")
    assert result['type'] == ARRAY
    assert [e['value'] for e in result['value']] == [1, 4, 6]

  @pytest.mark.parametrize("source,expected", [
      ("[1, 2, 3][0]", 1),
      ("[1, 2, 3][2]", 3),
      ("let i = 0; [1][i];", 1),
      ("[1, 2, 3][1 + 1];", 3),
      ("let myArray = [1, 2, 3]; myArray[2];", 3),
      ("let myArray = [1, 2, 3]; myArray[0] + myArray[1] + myArray[2];", 6),
  ])
  def test_array_index(self, run, source, expected):
    assert run(source)['value'] == expected

  @pytest.mark.parametrize("source", ["[1, 2, 3][3]", "[1, 2, 3][-1]", "[][0]"])
  def test_array_index_out_of_range_is_null(self, run, source):
    assert run(source) is NULL

  def test_hash_literal(self, run):
    source = """
    let two = "two";
    {"one": 10 - 9, two: 1 + 1, "thr" + "ee": 6 / 2, 4: 4, true: 5, false: 6}
    """
    result = run(source)
    assert result['type'] == HASH
    pairs = {k['value']: v['value'] for k, v in result['value'].values()}
    assert pairs == {"one": 1, "two": 2, "three": 3, 4: 4, True: 5, False: 6}

  def test_hash_keys_keep_types_apart(self, run):
    assert run('{1: "int", true: "bool"}[1]')['value'] == "int"
    assert run('{1: "int", true: "bool"}[true]')['value'] == "bool"

  @pytest.mark.parametrize("source,expected", [
      ('{"foo": 5}["foo"]', 5),
      ('let key = "foo"; {"foo": 5}[key]', 5),
      ("{5: 5}[5]", 5),
      ("{true: 5}[true]", 5),
      ("{false: 5}[false]", 5),
  ])
  def test_hash_index(self, run, source, expected):
    assert run(source)['value'] == expected

  def test_missing_hash_key_is_null(self, run):
    assert run('{"foo": 5}["bar"]') is NULL
    assert run('{}["foo"]') is NULL

  def test_later_duplicate_key_wins(self, run):
    assert run('{"a": 1, "a": 2}["a"]')['value'] == 2


class TestEnvironments:
  """Test environment handling and evaluation sessions"""

  def test_bindings_are_visible_to_later_statements(self, run):
    assert run("let a = 5; let b = a; let c = a + b + 5; c;")['value'] == 15

  def test_predefined_bindings(self):
    env = make_runtime_env()
    env_bind_value(env, "answer", make_integer(42))
    program, _ = parse("answer + 1")
    assert eval_program(program, env)['value'] == 43

  def test_child_scope_reads_parent(self):
    parent = make_runtime_env()
    env_bind_value(parent, "x", make_string("outer"))
    child = make_runtime_env(parent)
    env_bind_value(child, "y", make_integer(1))
    assert env_lookup_value(child, "x")['value'] == "outer"
    assert env_lookup_value(parent, "y") is None

  def test_same_program_same_result_in_fresh_environments(self):
    program, _ = parse("""
    let counter = fn(n) { if (n == 0) { 0 } else { 1 + counter(n - 1) } };
    let items = push([1, 2], counter(5));
    len(items) + last(items)
    """)
    first = eval_program(program, make_runtime_env())
    second = eval_program(program, make_runtime_env())
    assert first['value'] == second['value'] == 8

  def test_bindings_shadow_builtins(self, run):
    assert run("let len = fn(x) { 99 }; len([1])")['value'] == 99

  def test_builtins_resolve_without_bindings(self, run):
    assert inspect(run("len")) == "builtin function len"

  def test_run_source_raises_on_syntax_errors(self):
    with pytest.raises(MonkeyParseError) as excinfo:
      run_source("let = 1;\nlet x 2;")
    assert len(excinfo.value.messages) == 2

  def test_run_source_with_shared_env(self):
    env = make_runtime_env()
    run_source("let x = 2;", env)
    assert run_source("x * 21", env)['value'] == 42

  def test_interpreter_keeps_bindings_between_inputs(self):
    interpreter = create_interpreter()
    interpreter.interpret_source("let greeting = \"hi\";")
    assert interpreter.interpret_source("greeting + \"!\"")['value'] == "hi!"
    assert list(interpreter.user_bindings()) == ["greeting"]

  def test_interpreter_reset(self):
    interpreter = create_interpreter()
    interpreter.interpret_source("let x = 1;")
    interpreter.reset()
    assert error_message(interpreter.interpret_source("x")) == "identifier not found: x"

  def test_debug_interpreter_prints_trace(self, capsys):
    create_debug_interpreter().interpret_source("1 + 2")
    out = capsys.readouterr().out
    assert "Evaluating: InfixExpression" in out
    assert "Evaluating: IntegerLiteral" in out

  def test_eval_ast_rejects_unknown_nodes(self):
    with pytest.raises(TypeError):
      eval_ast(object(), make_runtime_env())

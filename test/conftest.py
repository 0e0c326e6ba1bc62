"""
Test configuration for the Monkey interpreter tests
"""

import io
import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser, parse
from interpreter import create_interpreter, make_runtime_env, eval_program, make_execution_context
from stdlib import make_builtin_registry


@pytest.fixture
def parser():
  """Provide a fresh source parser"""
  return create_parser()


@pytest.fixture
def interpreter():
  """Provide an interpreter with an empty root environment"""
  return create_interpreter()


@pytest.fixture
def output():
  """In-memory stream that puts writes to"""
  return io.StringIO()


@pytest.fixture
def run(output):
  """Parse and evaluate a program in a fresh environment, failing on syntax errors"""
  context = make_execution_context(make_builtin_registry(output))

  def _run(source):
    program, errors = parse(source)
    assert errors == [], f"unexpected parse errors: {errors}"
    return eval_program(program, make_runtime_env(), context=context)

  return _run

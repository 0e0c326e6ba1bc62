"""
Monkey Programming Language - Main Entry Point
Runs .monkey scripts or an interactive REPL on top of the tree-walking interpreter
"""

import sys
import argparse
import threading
from pathlib import Path
from typing import Optional, Dict, Tuple
import os

import pykka

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from ast_nodes import LetStatement, pretty_print_ast
from parsing import create_parser, create_debug_parser, parse_source_or_raise, KEYWORDS
from interpreter import create_interpreter, env_lookup_value
from error_handling import MonkeyParseError, MonkeyRuntimeError, format_parse_error, attach_context
from stdlib import list_builtin_functions
from values import NULL, inspect, is_error

VERSION = "Monkey v0.3.0 (Tree-walking Interpreter)"

SCRIPT_SUFFIX = ".monkey"

HISTORY_FILE = os.path.expanduser("~/.monkey_history")

# Deep Monkey recursion needs a deeper Python stack than the defaults
RECURSION_LIMIT = 20000
EVALUATION_STACK_SIZE = 256 * 1024 * 1024


# ============================================================================
# EVALUATION SESSION (Using Pykka)
# ============================================================================

class MonkeySession(pykka.ThreadingActor):
  """Actor owning one interpreter and its root environment"""

  use_daemon_thread = True

  def __init__(self, debug: bool = False):
    super().__init__()
    self.interpreter = create_interpreter(debug)

  def evaluate(self, source: str, filename: str = "<input>") -> Tuple[Dict, Optional[str]]:
    """Evaluate source, returning the result and the name bound by a trailing let"""
    program = parse_source_or_raise(source, filename, self.interpreter.debug)
    result, completed = self.interpreter.interpret_program_completion(program)

    bound_name = None
    if completed and program.statements and isinstance(program.statements[-1], LetStatement):
      bound_name = program.statements[-1].name.name
    return result, bound_name

  def lookup(self, name: str) -> Optional[Dict]:
    return env_lookup_value(self.interpreter.global_env, name)

  def bindings(self) -> Dict[str, Dict]:
    return self.interpreter.user_bindings()

  def reset(self) -> None:
    self.interpreter.reset()


def start_session(debug: bool = False) -> pykka.ActorRef:
  """Start a session actor on a thread with a large stack"""
  # The limit is process wide; the actor thread alone gets the deeper stack
  if sys.getrecursionlimit() < RECURSION_LIMIT:
    sys.setrecursionlimit(RECURSION_LIMIT)

  try:
    previous_stack_size = threading.stack_size(EVALUATION_STACK_SIZE)
  except (ValueError, RuntimeError) as e:
    print(f"Warning: could not enlarge the evaluation stack ({e}); deep recursion may fail early")
    return MonkeySession.start(debug=debug)

  try:
    return MonkeySession.start(debug=debug)
  finally:
    threading.stack_size(previous_stack_size)


def evaluate_in_session(session: pykka.ActorRef, source: str, filename: str = "<input>",
                        timeout: Optional[float] = None) -> Tuple[Dict, Optional[str]]:
  """Evaluate in the session actor, waiting at most timeout seconds"""
  return session.proxy().evaluate(source, filename).get(timeout=timeout)


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='Monkey Programming Language - tree-walking interpreter',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.monkey             # Run a Monkey script
  %(prog)s -i                        # Interactive mode
  %(prog)s --tokens script.monkey    # Show the token stream
  %(prog)s --parse script.monkey     # Parse and show the AST
  %(prog)s --debug script.monkey     # Run with debug output
  %(prog)s --timeout 5 script.monkey # Give up after 5 seconds
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Monkey script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Tokenize file and show the tokens (for debugging)'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show the AST (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--timeout',
      type=float,
      default=None,
      metavar='SECONDS',
      help='Abandon an evaluation that runs longer than this'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def read_script(script_path: str) -> str:
  """Read a script file, rejecting anything that is not a .monkey file"""
  if Path(script_path).suffix != SCRIPT_SUFFIX:
    raise ValueError(f"Script '{script_path}' must have the {SCRIPT_SUFFIX} extension")
  with open(script_path, 'r', encoding='utf-8') as f:
    return f.read()


def print_parse_errors(error: MonkeyParseError) -> None:
  print(f"Parse errors in '{error.filename}':")
  for record in error.errors:
    print(format_parse_error(attach_context(record, error.source_text)))


def tokenize_file(script_path: str, debug: bool = False) -> None:
  """Tokenize a Monkey script file and show the tokens"""
  parser = create_debug_parser() if debug else create_parser()
  source = read_script(script_path)
  for token in parser.tokenize(source, script_path):
    print(f"{token.span.start_line:4d}:{token.span.start_col:<4d} {token}")


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse a Monkey script file and show the AST"""
  source = read_script(script_path)
  print(f"Parsing {script_path}...")
  program = parse_source_or_raise(source, script_path, debug)
  print(f"\nParsed {len(program.statements)} statements:")
  print("=" * 50)
  print(pretty_print_ast(program))


def run_script_file(script_path: str, debug: bool = False, timeout: Optional[float] = None) -> None:
  """Run a Monkey script file and print the final value"""
  session = start_session(debug)
  try:
    if debug:
      print(f"Running {script_path}...")
    source = read_script(script_path)
    result, _ = evaluate_in_session(session, source, script_path, timeout)
    if is_error(result):
      raise MonkeyRuntimeError(result['message'], script_path)
    print(inspect(result))
  finally:
    session.stop(block=False)


def handle_script(args: argparse.Namespace) -> None:
  """Dispatch a script operation and turn failures into an exit status"""
  script_path = args.script
  try:
    if args.tokens:
      tokenize_file(script_path, debug=args.debug)
    elif args.parse:
      parse_file(script_path, debug=args.debug)
    else:
      run_script_file(script_path, debug=args.debug, timeout=args.timeout)

  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found")
    print(f"  Hint: Check the file path and make sure the file exists")
    sys.exit(1)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'")
    print(f"  Hint: Make sure you have read permissions for this file")
    sys.exit(1)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")
    sys.exit(1)
  except ValueError as e:
    print(f"Error: {e}")
    sys.exit(1)
  except MonkeyParseError as e:
    print_parse_errors(e)
    sys.exit(1)
  except MonkeyRuntimeError as e:
    print(f"\n{'='*70}")
    print(f"Runtime Error in '{e.filename}'")
    print(f"{'='*70}")
    print(f"\nERROR: {e.message}")
    print(f"\n{'='*70}\n")
    sys.exit(1)
  except pykka.Timeout:
    print(f"Error: Evaluation of '{script_path}' exceeded {args.timeout} seconds and was abandoned")
    sys.exit(1)
  except RecursionError:
    print(f"Error: Evaluation of '{script_path}' exhausted the stack (unbounded recursion?)")
    sys.exit(1)
  except Exception as e:
    print(f"Unexpected error while executing '{script_path}': {e}")
    if args.debug:
      import traceback
      traceback.print_exc()
    sys.exit(1)


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

REPL_COMMANDS = [":tokens", ":parse", ":env", ":reset", ":help", "exit"]


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  try:
    readline.read_history_file(HISTORY_FILE)
  except (FileNotFoundError, PermissionError, OSError):
    pass  # First time, no history yet, or permission denied

  readline.set_history_length(1000)

  completions = sorted(KEYWORDS) + list_builtin_functions() + REPL_COMMANDS

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(save_history)


def save_history() -> None:
  try:
    readline.write_history_file(HISTORY_FILE)
  except OSError:
    pass  # History is best effort


def truncate(text: str, width: int = 60) -> str:
  if len(text) > width:
    return text[:width - 3] + "..."
  return text


def print_help() -> None:
  print("REPL Commands:")
  print("  :tokens <src>     - Show the token stream")
  print("  :parse <src>      - Show the parsed AST")
  print("  :env              - Show current bindings")
  print("  :reset            - Forget all bindings")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language features:")
  print("  let x = 5;                      - Binding")
  print("  let add = fn(a, b) { a + b };   - Function literal")
  print("  add(1, 2)                       - Call")
  print("  if (x > 1) { x } else { 0 }     - Conditional")
  print("  [1, 2, 3][0]  {\"a\": 1}[\"a\"]     - Arrays and hashes")
  print(f"  Built-ins: {', '.join(list_builtin_functions())}")


def run_interactive_mode(debug: bool = False, timeout: Optional[float] = None) -> None:
  """Run Monkey in interactive mode; bindings persist between inputs"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  parser = create_debug_parser() if debug else create_parser()
  session = start_session(debug)

  while True:
    try:
      code = input(">> ")

      if code.strip() == "exit":
        break

      if not code.strip():
        continue

      if code.startswith(":tokens "):
        for token in parser.tokenize(code[len(":tokens "):]):
          print(f"  {token}")
        continue

      if code.startswith(":parse "):
        try:
          program = parse_source_or_raise(code[len(":parse "):], "<input>", debug)
          print(pretty_print_ast(program))
        except MonkeyParseError as e:
          for message in e.messages:
            print(f"Parse error: {message}")
        continue

      if code.strip() == ":env":
        print("Current environment:")
        bindings = session.proxy().bindings().get()
        if bindings:
          for name, value in bindings.items():
            print(f"  {name} = {truncate(inspect(value))}")
        else:
          print("  (no user-defined bindings)")
        continue

      if code.strip() == ":reset":
        session.proxy().reset().get()
        print("Environment cleared")
        continue

      if code.strip() == ":help":
        print_help()
        continue

      try:
        result, bound_name = evaluate_in_session(session, code, "<input>", timeout)
        if is_error(result):
          print(inspect(result))
        elif bound_name is not None:
          value = session.proxy().lookup(bound_name).get()
          if value is not None:
            print(f"Bound: {bound_name} = {truncate(inspect(value))}")
        elif result is not NULL:
          print(inspect(result))
      except MonkeyParseError as e:
        for message in e.messages:
          print(f"Parse error: {message}")
      except pykka.Timeout:
        print(f"Evaluation exceeded {timeout} seconds and was abandoned; starting a fresh session")
        session.stop(block=False)
        session = start_session(debug)
      except RecursionError:
        print("Evaluation exhausted the stack (unbounded recursion?)")

    except KeyboardInterrupt:
      print("\nGoodbye!")
      break
    except EOFError:
      print("\nGoodbye!")
      break
    except Exception as e:
      print(f"Unexpected error: {e}")
      if debug:
        import traceback
        traceback.print_exc()
      print("  Hint: If this keeps happening, try :reset or use --debug for more details")

  session.stop(block=False)


def show_language_info() -> None:
  """Show Monkey language information"""
  print("Monkey Programming Language")
  print("=" * 50)
  print("A small dynamically typed language with:")
  print("• Integers, strings, booleans, arrays and hashes")
  print("• First-class functions and closures")
  print("• if/else expressions and early return")
  print(f"• Built-ins: {', '.join(list_builtin_functions())}")
  print()


def main() -> None:
  """Main entry point for Monkey"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args()

  if len(sys.argv) == 1:
    show_language_info()
    print("Starting interactive mode...")
    print("Use 'monkey --help' for command line options")
    print()
    run_interactive_mode(debug=False)
    return

  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist")
      sys.exit(1)
    handle_script(args)

  elif args.interactive:
    run_interactive_mode(debug=args.debug, timeout=args.timeout)

  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()

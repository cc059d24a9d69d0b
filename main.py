"""
Bella Programming Language - Main Entry Point
A small expression language with variables, functions, arrays and while loops
"""

import sys
import argparse
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List
import os

# Readline gives the REPL history and tab completion where available
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from parsing import create_parser, create_debug_parser, pretty_print_cst, KEYWORDS
from error_handling import BellaParseError
from semantics import create_analyzer, create_debug_analyzer, BellaSemanticsError, pretty_print_ast
from interpreter import (
    create_interpreter, create_debug_interpreter, make_state, env_visible_bindings
)
from stdlib import bella_show, list_builtin_functions
from utilities import BellaRuntimeError

VERSION = 'Bella v1.0.0'
HISTORY_FILE = "~/.bella_history"
REPL_FILENAME = "<repl>"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='bella',
      description='Bella Programming Language - a tiny tree-walking interpreter',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.bella            # Run a Bella script
  %(prog)s -i                      # Interactive mode
  %(prog)s --parse script.bella    # Show the concrete syntax tree
  %(prog)s --analyze script.bella  # Show the abstract syntax tree
  %(prog)s --debug script.bella    # Trace every stage while running
  timeout 5 %(prog)s script.bella  # Bound a loop that may never end
        """
  )

  parser.add_argument('script', nargs='?', help='Bella script file to execute')
  parser.add_argument('-i', '--interactive', action='store_true',
                      help='Start the interactive interpreter')
  parser.add_argument('--parse', action='store_true',
                      help='Only parse the script and print its CST')
  parser.add_argument('--analyze', action='store_true',
                      help='Parse and analyze the script and print its AST')
  parser.add_argument('--debug', action='store_true',
                      help='Print traces from the parser, analyzer and interpreter')
  parser.add_argument('--version', action='version', version=VERSION)

  return parser


def create_pipeline(debug: bool = False) -> Dict:
  """The three stages every mode runs through"""
  if debug:
    return {
        'parser': create_debug_parser(),
        'analyzer': create_debug_analyzer(),
        'interpreter': create_debug_interpreter(),
    }
  return {
      'parser': create_parser(),
      'analyzer': create_analyzer(),
      'interpreter': create_interpreter(),
  }


# ============================================================================
# REPORTING
# ============================================================================

def print_outputs(outputs: List[Dict]) -> None:
  for value in outputs:
    print(bella_show(value))


def print_runtime_error(e: BellaRuntimeError, script_path: str, source_lines: List[str]) -> None:
  """Report a runtime error with whatever location information it carries"""
  rule = '=' * 70
  print(f"\n{rule}\nRuntime Error in '{script_path}'\n{rule}")
  print(f"\nError: {type(e).__name__}: {e.message}")

  if e.span:
    print(f"\nLocation: {e.span}")
    if 0 < e.span.line <= len(source_lines):
      print(f"\nSource:\n  {source_lines[e.span.line - 1]}")
      print(f"  {' ' * (e.span.column - 1)}^")

  print(f"\n{rule}\n")


@contextmanager
def reported_failures(script_path: str, debug: bool = False):
  """Turn any failure of a script command into a message and exit status 1"""
  try:
    yield
  except BellaParseError as e:
    print(f"Parse error in '{script_path}': {e}")
    sys.exit(1)
  except BellaSemanticsError as e:
    print(f"Semantic analysis error in '{script_path}': {e}")
    sys.exit(1)
  except RecursionError:
    print(f"Runtime Error in '{script_path}': maximum recursion depth exceeded")
    print("  Hint: Check for a function that calls itself without reaching a base case")
    sys.exit(1)
  except Exception as e:
    print(f"Unexpected error while running '{script_path}': {e}")
    if debug:
      import traceback
      traceback.print_exc()
    sys.exit(1)


# ============================================================================
# SCRIPT COMMANDS
# ============================================================================

def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse a Bella script file and show the CST"""
  with reported_failures(script_path, debug):
    cst = create_pipeline(debug)['parser'].parse_file(script_path)
    print(f"Parsed {len(cst.children)} top-level statements from {script_path}:")
    print("=" * 50)
    print(pretty_print_cst(cst))


def analyze_file(script_path: str, debug: bool = False) -> None:
  """Parse and analyze a Bella script file and show the AST"""
  with reported_failures(script_path, debug):
    pipeline = create_pipeline(debug)
    program = pipeline['analyzer'].analyze(pipeline['parser'].parse_file(script_path))
    print(f"Analyzed {len(program['value']['children'])} top-level statements from {script_path}:")
    print("=" * 50)
    print(pretty_print_ast(program))


def run_script_file(script_path: str, debug: bool = False) -> None:
  """Run a Bella script file and print its output, one value per line"""
  with reported_failures(script_path, debug):
    pipeline = create_pipeline(debug)
    program = pipeline['analyzer'].analyze(pipeline['parser'].parse_file(script_path))
    if debug:
      print(f"Analyzed {len(program['value']['children'])} statements")

    try:
      outputs = pipeline['interpreter'].interpret(program)
    except BellaRuntimeError as e:
      # Whatever was printed before the failure is still shown
      print_outputs(e.output or [])
      source_lines = Path(script_path).read_text(encoding='utf-8').split('\n')
      print_runtime_error(e, script_path, source_lines)
      sys.exit(1)

    print_outputs(outputs)


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # no history yet

  readline.set_history_length(1000)
  completions = list(KEYWORDS) + list_builtin_functions() + list(REPL_COMMANDS) + ["exit."]

  def completer(text, state):
    options = [word for word in completions if word.startswith(text)]
    return options[state] if state < len(options) else None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(readline.write_history_file, history_file)


def is_statement_source(code: str) -> bool:
  """Statements end in ';' or a closing brace; anything else is an expression"""
  return code.rstrip().endswith((';', '}'))


def repl_parse(argument: str, pipeline: Dict, session_env: Dict) -> None:
  parser = pipeline['parser']
  if is_statement_source(argument):
    cst = parser.parse_string(argument, REPL_FILENAME)
  else:
    cst = parser.parse_expression(argument, REPL_FILENAME)
  print(pretty_print_cst(cst))


def repl_env(argument: str, pipeline: Dict, session_env: Dict) -> None:
  print("Current environment:")
  for name, binding in sorted(env_visible_bindings(session_env).items()):
    shown = bella_show(binding['value'])
    if len(shown) > 60:
      shown = shown[:57] + "..."
    print(f"  {name} = {shown}  [{binding['access']}]")


def repl_help(argument: str, pipeline: Dict, session_env: Dict) -> None:
  print("REPL Commands:")
  for name, (_, usage) in REPL_COMMANDS.items():
    print(f"  {usage:<18}- {name[1:]}")
  print("  exit.             - leave the REPL")
  print()
  print("Language features:")
  print("  let x = 5;                    - Variable declaration")
  print("  x = x + 1;                    - Assignment")
  print("  function f(a, b) = a * b;     - Function declaration")
  print("  print f(x, 2);                - Print a value")
  print("  while x < 10 { x = x + 1; }   - Loop")
  print("  x > 2 ? 1 : 0                 - Evaluate an expression")
  print("  [1, 2, 3][0]                  - Arrays and subscripts")


# command -> (handler, usage)
REPL_COMMANDS = {
    ":parse": (repl_parse, ":parse <src>"),
    ":env": (repl_env, ":env"),
    ":help": (repl_help, ":help"),
}


def run_repl_line(code: str, pipeline: Dict, session_env: Dict) -> Dict:
  """Run one line of input and return the environment the session continues with"""
  parser, analyzer, interpreter = pipeline['parser'], pipeline['analyzer'], pipeline['interpreter']

  if is_statement_source(code):
    program = analyzer.analyze(parser.parse_string(code, REPL_FILENAME))
    state = interpreter.execute(program, make_state(session_env))
    print_outputs(state['output'])
    return state['env']

  expression = analyzer.analyze_expression(parser.parse_expression(code, REPL_FILENAME))
  print(f"=> {bella_show(interpreter.evaluate(expression, session_env))}")
  return session_env


def run_interactive_mode(debug: bool = False) -> None:
  """Run Bella interactively; declarations persist from one line to the next"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit.' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()
  pipeline = create_pipeline(debug)
  session_env = pipeline['interpreter'].initial_state()['env']

  while True:
    try:
      code = input("bella> ").strip()
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    if code == "exit.":
      break
    if not code:
      continue

    command, _, argument = code.partition(' ')
    try:
      if command in REPL_COMMANDS:
        handler, _ = REPL_COMMANDS[command]
        handler(argument, pipeline, session_env)
      else:
        session_env = run_repl_line(code, pipeline, session_env)
    except BellaParseError as e:
      print(e)
    except BellaSemanticsError as e:
      print(f"Semantic error: {e}")
    except BellaRuntimeError as e:
      # A failed line leaves the session environment as it was
      print_outputs(e.output or [])
      print(f"\nRuntime Error:\n  {type(e).__name__}: {e.message}")
      if e.span:
        print(f"  Location: {e.span}\n  Source: {e.span.text}")
      print()
    except RecursionError:
      print("Runtime Error: maximum recursion depth exceeded")


def show_language_info() -> None:
  """Show Bella language information"""
  print("Bella Programming Language")
  print("=" * 50)
  print("A small language with:")
  print("• Numbers, booleans and arrays")
  print("• Variables and single-expression functions")
  print("• Conditional expressions and while loops")
  print(f"• Built-ins: {', '.join(list_builtin_functions())}")
  print()


def main() -> None:
  """Main entry point for Bella"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args()

  # Bare `bella` drops straight into the REPL
  if len(sys.argv) == 1:
    show_language_info()
    run_interactive_mode()
    return

  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist")
      sys.exit(1)

    if args.parse:
      parse_file(args.script, debug=args.debug)
    elif args.analyze:
      analyze_file(args.script, debug=args.debug)
    else:
      run_script_file(args.script, debug=args.debug)

  elif args.interactive:
    run_interactive_mode(debug=args.debug)

  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()

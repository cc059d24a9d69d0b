"""
Bella Interpreter - Pure Functional Style
No classes, only pure functions and immutable data structures
The environment and the output sequence are threaded through execution,
never mutated in place
"""

from typing import Dict, List, Optional, Tuple
import math
import sys

from stdlib import (
    make_number,
    make_boolean,
    make_array,
    make_user_function,
    is_truthy,
    call_builtin,
    ARITHMETIC_OPERATORS,
    RELATIONAL_OPERATORS,
    LOGICAL_OPERATORS,
    BUILTIN_FUNCTIONS,
    BUILTIN_CONSTANTS,
)
from utilities import (
    BellaRuntimeError,
    require_type,
    validate_arity,
    undeclared_error,
    redeclared_error,
    read_only_error,
    not_callable_error,
    not_an_array_error,
    invalid_subscript_error,
)


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

READ_ONLY = 'RO'
READ_WRITE = 'RW'


def make_binding(value: Dict, access: str = READ_WRITE) -> Dict:
  """Create an immutable binding: a value plus its mutability tag"""
  return {
      'value': value,
      'access': access
  }


def make_runtime_env(parent: Optional[Dict] = None, bindings: Optional[Dict] = None) -> Dict:
  """Create an immutable runtime environment"""
  return {
      'parent': parent,
      'bindings': bindings or {}
  }


def make_state(env: Dict, output: Tuple[Dict, ...] = ()) -> Dict:
  """Create an execution state: the current environment and the output so far"""
  return {
      'env': env,
      'output': tuple(output)
  }


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def env_lookup_binding(env: Dict, name: str) -> Optional[Dict]:
  """Look up a binding in the environment chain"""
  while env is not None:
    if name in env['bindings']:
      return env['bindings'][name]
    env = env['parent']
  return None


def env_lookup_value(env: Dict, name: str) -> Dict:
  """Look up the value bound to name, failing if it was never declared"""
  binding = env_lookup_binding(env, name)
  if binding is None:
    raise undeclared_error(name)
  return binding['value']


def env_declare(env: Dict, name: str, value: Dict, access: str = READ_WRITE) -> Dict:
  """Return new environment with name declared in the innermost frame"""
  if name in env['bindings']:
    raise redeclared_error(name)
  return {
      **env,
      'bindings': {**env['bindings'], name: make_binding(value, access)}
  }


def env_assign(env: Dict, name: str, value: Dict) -> Dict:
  """Return new environment where the existing binding for name holds value"""
  # Frames between env and the one holding name, innermost first
  skipped = []
  frame = env
  while name not in frame['bindings']:
    if frame['parent'] is None:
      raise undeclared_error(name)
    skipped.append(frame)
    frame = frame['parent']

  if frame['bindings'][name]['access'] != READ_WRITE:
    raise read_only_error(name)
  result = {
      **frame,
      'bindings': {**frame['bindings'], name: make_binding(value, READ_WRITE)}
  }
  for inner in reversed(skipped):
    result = {**inner, 'parent': result}
  return result


def env_extend_for_call(env: Dict, bindings: Dict[str, Dict]) -> Dict:
  """New frame of read-only parameter bindings on top of env"""
  return make_runtime_env(env, {
      name: make_binding(value, READ_ONLY) for name, value in bindings.items()
  })


def env_visible_bindings(env: Dict) -> Dict[str, Dict]:
  """Flatten the chain into the bindings visible from env (inner frames win)"""
  visible = {}
  while env is not None:
    for name, binding in env['bindings'].items():
      visible.setdefault(name, binding)
    env = env['parent']
  return visible


def create_builtin_runtime_env() -> Dict:
  """Create runtime environment with the read-only built-ins"""
  env = make_runtime_env()

  for name, value in BUILTIN_CONSTANTS.items():
    env = env_declare(env, name, value, READ_ONLY)

  for name, func in BUILTIN_FUNCTIONS.items():
    env = env_declare(env, name, func, READ_ONLY)

  return env


# ============================================================================
# EXPRESSION EVALUATION
# ============================================================================

def eval_expression(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """
  Evaluate an expression AST node to a value.
  Expressions never change the environment, so only the value is returned.
  """
  node_type = ast_node['type']

  if debug:
    print(f"Evaluating: {node_type}")

  handler = EXPRESSION_HANDLERS.get(node_type)
  if handler is None:
    raise BellaRuntimeError(f"Unknown expression type: {node_type}")

  try:
    return handler(ast_node, env, debug)
  except BellaRuntimeError as e:
    # The innermost node that failed knows the most precise location
    if e.span is None:
      e.span = ast_node.get('span')
    raise


def eval_numeral(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate number literal"""
  return make_number(ast_node['value'])


def eval_boolean(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate boolean literal"""
  return make_boolean(ast_node['value'])


def eval_identifier(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate identifier by looking up in environment"""
  return env_lookup_value(env, ast_node['value'])


def eval_unary(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate prefix operation"""
  op = ast_node['value']['op']
  operand = eval_expression(ast_node['value']['operand'], env, debug)

  if op == '-':
    return make_number(-require_type(op, operand, "Num"))
  elif op == '!':
    return make_boolean(not require_type(op, operand, "Bool"))
  raise BellaRuntimeError(f"Unknown operator: {op}")


# operator table -> (operand type, result constructor)
BINARY_OPERATOR_GROUPS = [
    (ARITHMETIC_OPERATORS, "Num", make_number),
    (RELATIONAL_OPERATORS, "Num", make_boolean),
    (LOGICAL_OPERATORS, "Bool", make_boolean),
]


def eval_binary(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate binary operation; both operands are evaluated, left first"""
  value_dict = ast_node['value']
  op = value_dict['op']

  left_val = eval_expression(value_dict['left'], env, debug)
  right_val = eval_expression(value_dict['right'], env, debug)

  for operators, operand_type, make_result in BINARY_OPERATOR_GROUPS:
    if op in operators:
      x = require_type(op, left_val, operand_type)
      y = require_type(op, right_val, operand_type)
      return make_result(operators[op](x, y))

  raise BellaRuntimeError(f"Unknown operator: {op}")


def eval_conditional(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate test ? consequent : alternate, touching only the taken branch"""
  value_dict = ast_node['value']
  test_val = eval_expression(value_dict['test'], env, debug)

  if is_truthy(test_val):
    return eval_expression(value_dict['consequent'], env, debug)
  return eval_expression(value_dict['alternate'], env, debug)


def eval_array(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate array literal"""
  elements = [eval_expression(child, env, debug) for child in ast_node['children']]
  return make_array(elements)


def eval_subscript(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate array[index] with 0-based integer indices"""
  value_dict = ast_node['value']
  array_val = eval_expression(value_dict['array'], env, debug)
  index_val = eval_expression(value_dict['index'], env, debug)

  if array_val['type'] != "Array":
    raise not_an_array_error(array_val)
  index = require_type('[]', index_val, "Num")

  elements = array_val['value']
  if not (math.isfinite(index) and index.is_integer() and 0 <= index < len(elements)):
    raise invalid_subscript_error(index, len(elements))
  return elements[int(index)]


def eval_call(ast_node: Dict, env: Dict, debug: bool = False) -> Dict:
  """Evaluate function application"""
  value_dict = ast_node['value']
  callee = value_dict['callee']

  func_val = env_lookup_value(env, callee)
  args = [eval_expression(arg, env, debug) for arg in value_dict['args']]

  if func_val['type'] == "BuiltinFunction":
    return call_builtin(func_val, args)
  elif func_val['type'] == "Function":
    return apply_user_function(callee, func_val, args, env, debug)
  raise not_callable_error(callee, func_val)


def apply_user_function(name: str, func_val: Dict, args: List[Dict], env: Dict,
                        debug: bool = False) -> Dict:
  """
  Bind parameters on top of the caller's environment and evaluate the body.

  Free identifiers in the body therefore resolve against the call site,
  not against the scope the function was declared in.
  """
  params = func_val['value']['params']
  validate_arity(name, args, len(params))

  call_env = env_extend_for_call(env, dict(zip(params, args)))
  if debug:
    print(f"Calling {name} with {len(args)} argument(s)")
  return eval_expression(func_val['value']['body'], call_env, debug)


EXPRESSION_HANDLERS = {
    "NUMERAL": eval_numeral,
    "BOOLEAN": eval_boolean,
    "IDENTIFIER": eval_identifier,
    "UNARY": eval_unary,
    "BINARY": eval_binary,
    "CONDITIONAL": eval_conditional,
    "ARRAY": eval_array,
    "SUBSCRIPT": eval_subscript,
    "CALL": eval_call,
}


# ============================================================================
# STATEMENT EXECUTION
# ============================================================================

def exec_statement(ast_node: Dict, state: Dict, debug: bool = False) -> Dict:
  """
  Execute a statement AST node against (env, output) and return the new state.
  This is a pure function: the incoming state is never modified.
  """
  node_type = ast_node['type']

  if debug:
    print(f"Executing: {node_type}")

  handler = STATEMENT_HANDLERS.get(node_type)
  if handler is None:
    raise BellaRuntimeError(f"Unknown statement type: {node_type}")

  try:
    return handler(ast_node, state, debug)
  except BellaRuntimeError as e:
    if e.span is None:
      e.span = ast_node.get('span')
    if e.output is None:
      e.output = list(state['output'])
    raise


def exec_var_decl(ast_node: Dict, state: Dict, debug: bool = False) -> Dict:
  """Evaluate the initializer and declare a read-write variable"""
  value_dict = ast_node['value']
  value = eval_expression(value_dict['initializer'], state['env'], debug)
  new_env = env_declare(state['env'], value_dict['name'], value, READ_WRITE)
  return make_state(new_env, state['output'])


def exec_function_def(ast_node: Dict, state: Dict, debug: bool = False) -> Dict:
  """Declare a user function; its body is kept unevaluated"""
  value_dict = ast_node['value']
  func_val = make_user_function(value_dict['params'], value_dict['body'])
  new_env = env_declare(state['env'], value_dict['name'], func_val, READ_WRITE)
  return make_state(new_env, state['output'])


def exec_assignment(ast_node: Dict, state: Dict, debug: bool = False) -> Dict:
  """Evaluate the expression and rebind an existing read-write name"""
  value_dict = ast_node['value']
  value = eval_expression(value_dict['expression'], state['env'], debug)
  new_env = env_assign(state['env'], value_dict['name'], value)
  return make_state(new_env, state['output'])


def exec_print(ast_node: Dict, state: Dict, debug: bool = False) -> Dict:
  """Append the value of the expression to the output"""
  value = eval_expression(ast_node['value']['expression'], state['env'], debug)
  return make_state(state['env'], state['output'] + (value,))


def exec_while(ast_node: Dict, state: Dict, debug: bool = False) -> Dict:
  """
  Run the body while the test is truthy.

  Each round sees the state left by the previous one, including any
  declarations made in the body; the loop opens no scope of its own.
  """
  value_dict = ast_node['value']
  test = value_dict['test']
  body = value_dict['body']

  while is_truthy(eval_expression(test, state['env'], debug)):
    state = exec_block(body, state, debug)
  return state


def exec_block(ast_node: Dict, state: Dict, debug: bool = False) -> Dict:
  """Execute statements in order, threading the state through"""
  for statement in ast_node['children']:
    state = exec_statement(statement, state, debug)
  return state


STATEMENT_HANDLERS = {
    "VAR_DECL": exec_var_decl,
    "FUNCTION_DEF": exec_function_def,
    "ASSIGNMENT": exec_assignment,
    "PRINT": exec_print,
    "WHILE": exec_while,
    "BLOCK": exec_block,
}


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

# Every Bella call level costs several Python frames
RECURSION_LIMIT = 10000


def ensure_recursion_limit() -> None:
  if sys.getrecursionlimit() < RECURSION_LIMIT:
    sys.setrecursionlimit(RECURSION_LIMIT)


def exec_program(program: Dict, state: Optional[Dict] = None, debug: bool = False) -> Dict:
  """
  Execute a PROGRAM node and return the final state.
  A fresh state seeded with the built-ins is used unless one is supplied.
  """
  ensure_recursion_limit()
  if state is None:
    state = make_state(create_builtin_runtime_env())
  return exec_block(program['value'], state, debug)


def interpret(program: Dict, debug: bool = False) -> List[Dict]:
  """Run a program and return everything it printed, in order"""
  return list(exec_program(program, debug=debug)['output'])


# ============================================================================
# FACTORY FUNCTIONS (for main.py)
# ============================================================================

def create_interpreter(debug: bool = False):
  """Factory function returning an interpreter"""
  def run(program: Dict) -> List[Dict]:
    return interpret(program, debug)

  def execute(program: Dict, state: Dict) -> Dict:
    return exec_program(program, state, debug)

  def evaluate(expression: Dict, env: Dict) -> Dict:
    ensure_recursion_limit()
    return eval_expression(expression, env, debug)

  def initial_state() -> Dict:
    return make_state(create_builtin_runtime_env())

  return type('Interpreter', (), {
      'interpret': staticmethod(run),
      'execute': staticmethod(execute),
      'evaluate': staticmethod(evaluate),
      'initial_state': staticmethod(initial_state),
  })()


def create_debug_interpreter():
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)

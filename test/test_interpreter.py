"""
Interpreter tests for Bella
Programs are built directly from AST constructors so evaluation is tested
independently of the parser
"""

import math
import pytest

from semantics import (
    make_numeral as num,
    make_boolean as boolean,
    make_identifier as ident,
    make_unary,
    make_binary,
    make_conditional,
    make_array,
    make_subscript,
    make_call,
    make_var_decl,
    make_function_decl,
    make_assignment,
    make_print,
    make_while,
    make_block,
    make_program,
    make_ast_node,
)
from interpreter import (
    READ_ONLY,
    READ_WRITE,
    make_runtime_env,
    make_state,
    env_lookup_value,
    env_lookup_binding,
    env_declare,
    env_assign,
    env_extend_for_call,
    env_visible_bindings,
    create_builtin_runtime_env,
    eval_expression,
    exec_statement,
    interpret,
    create_interpreter,
    create_debug_interpreter,
)
from stdlib import make_number, make_boolean
from conftest import unwrap_value
from utilities import (
    BellaRuntimeError,
    UndeclaredIdentifier,
    RedeclaredIdentifier,
    ReadOnlyViolation,
    TypeMismatch,
    WrongArity,
    NotCallable,
    NotAnArray,
    InvalidSubscript,
)


def program(*statements):
  return make_program(make_block(list(statements)))


def run(*statements):
  return unwrap_value(interpret(program(*statements)))


@pytest.fixture
def env():
  return create_builtin_runtime_env()


class TestEnvironment:
  """Test the persistent environment operations"""

  def test_declare_then_lookup(self):
    env = env_declare(make_runtime_env(), 'x', make_number(1))
    assert env_lookup_value(env, 'x') == make_number(1)

  def test_declare_does_not_modify_original(self):
    original = make_runtime_env()
    env_declare(original, 'x', make_number(1))
    assert env_lookup_binding(original, 'x') is None

  def test_redeclare_in_same_frame(self):
    env = env_declare(make_runtime_env(), 'x', make_number(1))
    with pytest.raises(RedeclaredIdentifier):
      env_declare(env, 'x', make_number(2))

  def test_declare_shadows_in_inner_frame(self):
    outer = env_declare(make_runtime_env(), 'x', make_number(1))
    inner = env_declare(make_runtime_env(outer), 'x', make_number(2))
    assert env_lookup_value(inner, 'x') == make_number(2)
    assert env_lookup_value(outer, 'x') == make_number(1)

  def test_lookup_undeclared(self):
    with pytest.raises(UndeclaredIdentifier, match="'nope'"):
      env_lookup_value(make_runtime_env(), 'nope')

  def test_assign_read_write(self):
    env = env_declare(make_runtime_env(), 'x', make_number(1))
    assert env_lookup_value(env_assign(env, 'x', make_number(5)), 'x') == make_number(5)
    assert env_lookup_value(env, 'x') == make_number(1)

  def test_assign_read_only(self):
    env = env_declare(make_runtime_env(), 'x', make_number(1), READ_ONLY)
    with pytest.raises(ReadOnlyViolation):
      env_assign(env, 'x', make_number(2))

  def test_assign_undeclared(self):
    with pytest.raises(UndeclaredIdentifier):
      env_assign(make_runtime_env(), 'x', make_number(2))

  def test_assign_through_call_frame(self):
    outer = env_declare(make_runtime_env(), 'x', make_number(1))
    inner = env_extend_for_call(outer, {'y': make_number(2)})
    updated = env_assign(inner, 'x', make_number(9))
    assert env_lookup_value(updated, 'x') == make_number(9)
    assert env_lookup_value(updated, 'y') == make_number(2)
    assert env_lookup_value(inner, 'x') == make_number(1)

  def test_long_frame_chain(self):
    env = env_declare(make_runtime_env(), 'x', make_number(1))
    for depth in range(5000):
      env = env_extend_for_call(env, {'n': make_number(depth)})
    updated = env_assign(env, 'x', make_number(2))
    assert env_lookup_value(updated, 'x') == make_number(2)
    assert env_lookup_value(updated, 'n') == make_number(4999)
    assert env_visible_bindings(updated)['n']['value'] == make_number(4999)

  def test_call_frame_bindings_are_read_only(self):
    inner = env_extend_for_call(make_runtime_env(), {'a': make_number(1)})
    assert env_lookup_binding(inner, 'a')['access'] == READ_ONLY
    with pytest.raises(ReadOnlyViolation):
      env_assign(inner, 'a', make_number(2))

  def test_builtins_are_read_only(self, env):
    for name in ['pi', 'sqrt', 'sin', 'cos', 'ln', 'exp', 'hypot']:
      assert env_lookup_binding(env, name)['access'] == READ_ONLY

  def test_user_declarations_share_builtin_frame(self, env):
    with pytest.raises(RedeclaredIdentifier):
      env_declare(env, 'pi', make_number(3))
    assert env_lookup_binding(env_declare(env, 'x', make_number(3)), 'x')['access'] == READ_WRITE


class TestLiterals:
  """Test literal and identifier evaluation"""

  @pytest.mark.parametrize("n", [0, 1, 2.5, 1e10, 123456789])
  def test_numerals_evaluate_to_themselves(self, env, n):
    assert eval_expression(num(n), env) == make_number(n)

  def test_booleans(self, env):
    assert eval_expression(boolean(True), env) == make_boolean(True)
    assert eval_expression(boolean(False), env) == make_boolean(False)

  def test_pi(self, env):
    assert eval_expression(ident('pi'), env)['value'] == math.pi

  def test_undeclared_identifier(self, env):
    with pytest.raises(UndeclaredIdentifier):
      eval_expression(ident('x'), env)

  def test_expression_evaluation_is_idempotent(self, env):
    expr = make_binary('*', make_call('sqrt', [num(16)]), make_subscript(
        make_array([num(1), num(2)]), num(1)))
    assert eval_expression(expr, env) == eval_expression(expr, env)
    assert eval_expression(expr, env) == make_number(8)


class TestOperators:
  """Test unary and binary operator kind rules"""

  def test_negation(self, env):
    assert eval_expression(make_unary('-', num(3)), env) == make_number(-3)

  def test_not(self, env):
    assert eval_expression(make_unary('!', boolean(True)), env) == make_boolean(False)

  def test_negate_boolean_fails(self, env):
    with pytest.raises(TypeMismatch, match="'-' requires a number, got a boolean"):
      eval_expression(make_unary('-', boolean(True)), env)

  def test_not_number_fails(self, env):
    with pytest.raises(TypeMismatch):
      eval_expression(make_unary('!', num(1)), env)

  @pytest.mark.parametrize("op,x,y,expected", [
      ('+', 2, 3, 5),
      ('-', 2, 3, -1),
      ('*', 2, 3, 6),
      ('/', 3, 2, 1.5),
      ('%', 7, 3, 1),
      ('%', -7, 3, -1),
      ('**', 2, 10, 1024),
  ])
  def test_arithmetic(self, env, op, x, y, expected):
    assert eval_expression(make_binary(op, num(x), num(y)), env) == make_number(expected)

  @pytest.mark.parametrize("op,x,y,expected", [
      ('<', 1, 2, True),
      ('<=', 2, 2, True),
      ('==', 2, 3, False),
      ('!=', 2, 3, True),
      ('>=', 1, 2, False),
      ('>', 3, 2, True),
  ])
  def test_relational(self, env, op, x, y, expected):
    assert eval_expression(make_binary(op, num(x), num(y)), env) == make_boolean(expected)

  @pytest.mark.parametrize("op,x,y,expected", [
      ('&&', True, False, False),
      ('&&', True, True, True),
      ('||', False, True, True),
      ('||', False, False, False),
  ])
  def test_logical(self, env, op, x, y, expected):
    assert eval_expression(make_binary(op, boolean(x), boolean(y)), env) == make_boolean(expected)

  @pytest.mark.parametrize("op", ['+', '<', '=='])
  def test_number_operators_reject_booleans(self, env, op):
    with pytest.raises(TypeMismatch):
      eval_expression(make_binary(op, num(1), boolean(True)), env)

  def test_logical_operators_reject_numbers(self, env):
    with pytest.raises(TypeMismatch, match="'&&' requires a boolean, got a number"):
      eval_expression(make_binary('&&', boolean(True), num(1)), env)

  def test_arrays_are_not_numbers(self, env):
    with pytest.raises(TypeMismatch):
      eval_expression(make_binary('+', make_array([]), num(1)), env)

  def test_both_operands_are_evaluated(self, env):
    with pytest.raises(UndeclaredIdentifier):
      eval_expression(make_binary('&&', boolean(False), ident('missing')), env)


class TestNumericEdgeCases:
  """Division by zero and overflow follow IEEE-754 rather than raising"""

  def value_of(self, env, expr):
    return eval_expression(expr, env)['value']

  def test_divide_by_zero(self, env):
    assert self.value_of(env, make_binary('/', num(1), num(0))) == math.inf
    assert self.value_of(env, make_binary('/', make_unary('-', num(1)), num(0))) == -math.inf
    assert math.isnan(self.value_of(env, make_binary('/', num(0), num(0))))

  def test_modulo_by_zero(self, env):
    assert math.isnan(self.value_of(env, make_binary('%', num(5), num(0))))

  def test_power_overflow(self, env):
    assert self.value_of(env, make_binary('**', num(10), num(400))) == math.inf

  def test_math_domain(self, env):
    assert math.isnan(self.value_of(env, make_call('sqrt', [make_unary('-', num(1))])))
    assert self.value_of(env, make_call('ln', [num(0)])) == -math.inf


class TestConditional:
  """Test that exactly one branch of a conditional is evaluated"""

  def test_true_branch_only(self, env):
    expr = make_conditional(boolean(True), num(1), ident('missing'))
    assert eval_expression(expr, env) == make_number(1)

  def test_false_branch_only(self, env):
    expr = make_conditional(boolean(False), ident('missing'), num(2))
    assert eval_expression(expr, env) == make_number(2)

  def test_numeric_test(self, env):
    assert eval_expression(make_conditional(num(0), num(1), num(2)), env) == make_number(2)
    assert eval_expression(make_conditional(num(5), num(1), num(2)), env) == make_number(1)

  def test_array_test_is_truthy(self, env):
    expr = make_conditional(make_array([]), num(1), num(2))
    assert eval_expression(expr, env) == make_number(1)


class TestArrays:
  """Test array literals and subscripts"""

  @pytest.fixture
  def items(self):
    return make_array([num(10), num(20), num(30)])

  def test_array_literal(self, env, items):
    assert unwrap_value(eval_expression(items, env)) == [10, 20, 30]

  def test_empty_array(self, env):
    assert unwrap_value(eval_expression(make_array([]), env)) == []

  def test_subscript(self, env, items):
    assert eval_expression(make_subscript(items, num(1)), env) == make_number(20)

  @pytest.mark.parametrize("index", [3, 1.5, 100])
  def test_invalid_subscript(self, env, items, index):
    with pytest.raises(InvalidSubscript):
      eval_expression(make_subscript(items, num(index)), env)

  def test_negative_subscript(self, env, items):
    with pytest.raises(InvalidSubscript):
      eval_expression(make_subscript(items, make_unary('-', num(1))), env)

  def test_subscript_non_array(self, env):
    with pytest.raises(NotAnArray):
      eval_expression(make_subscript(num(5), num(0)), env)

  def test_subscript_with_boolean(self, env, items):
    with pytest.raises(TypeMismatch):
      eval_expression(make_subscript(items, boolean(True)), env)


class TestCalls:
  """Test built-in and user function calls"""

  def test_builtin_call(self, env):
    assert eval_expression(make_call('sqrt', [num(16)]), env) == make_number(4)
    assert eval_expression(make_call('hypot', [num(3), num(4)]), env) == make_number(5)

  def test_builtin_wrong_arity(self, env):
    with pytest.raises(WrongArity, match="sqrt requires 1 argument, got 0"):
      eval_expression(make_call('sqrt', []), env)

  def test_builtin_wrong_kind(self, env):
    with pytest.raises(TypeMismatch):
      eval_expression(make_call('sin', [boolean(True)]), env)

  def test_call_non_function(self, env):
    with pytest.raises(NotCallable):
      eval_expression(make_call('pi', []), env)

  def test_call_undeclared(self, env):
    with pytest.raises(UndeclaredIdentifier):
      eval_expression(make_call('f', []), env)

  def test_user_function_wrong_arity(self):
    with pytest.raises(WrongArity):
      run(make_function_decl('f', ['x'], ident('x')),
          make_print(make_call('f', [num(1), num(2)])))

  def test_parameter_shadows_global(self):
    # let z = 100; function h(z) = 1 + z; print h(2); print z;
    assert run(
        make_var_decl('z', num(100)),
        make_function_decl('h', ['z'], make_binary('+', num(1), ident('z'))),
        make_print(make_call('h', [num(2)])),
        make_print(ident('z')),
    ) == [3, 100]

  def test_free_variable_resolves_at_call_site(self):
    assert run(
        make_var_decl('y', num(1)),
        make_function_decl('f', [], ident('y')),
        make_function_decl('g', ['y'], make_call('f', [])),
        make_print(make_call('g', [num(42)])),
        make_print(make_call('f', [])),
    ) == [42, 1]

  def test_recursion(self):
    fact_body = make_conditional(
        make_binary('<=', ident('n'), num(1)),
        num(1),
        make_binary('*', ident('n'), make_call('fact', [make_binary('-', ident('n'), num(1))])))
    assert run(
        make_function_decl('fact', ['n'], fact_body),
        make_print(make_call('fact', [num(5)])),
    ) == [120]

  def test_deep_recursion(self):
    count_body = make_conditional(
        make_binary('==', ident('n'), num(0)),
        num(0),
        make_binary('+', num(1), make_call('count', [make_binary('-', ident('n'), num(1))])))
    assert run(
        make_function_decl('count', ['n'], count_body),
        make_print(make_call('count', [num(500)])),
    ) == [500]


class TestStatements:
  """Test statement execution and state threading"""

  def test_declaration_and_print(self):
    assert run(make_var_decl('x', num(7)), make_print(ident('x'))) == [7]

  def test_while_loop(self):
    assert run(
        make_var_decl('x', num(0)),
        make_while(make_binary('<', ident('x'), num(3)), make_block([
            make_print(ident('x')),
            make_assignment('x', make_binary('+', ident('x'), num(1))),
        ])),
    ) == [0, 1, 2]

  def test_while_false_never_runs_body(self):
    assert run(make_while(boolean(False), make_block([make_print(ident('missing'))]))) == []

  def test_declaration_in_loop_body_fails_second_time(self):
    with pytest.raises(RedeclaredIdentifier) as exc_info:
      run(
          make_var_decl('i', num(0)),
          make_while(make_binary('<', ident('i'), num(2)), make_block([
              make_var_decl('t', ident('i')),
              make_print(ident('t')),
              make_assignment('i', make_binary('+', ident('i'), num(1))),
          ])),
      )
    assert unwrap_value(exc_info.value.output) == [0]

  def test_subscript_of_literal(self):
    assert run(make_print(make_subscript(
        make_array([num(1), num(2), num(3)]), num(1)))) == [2]

  def test_assign_builtin(self):
    with pytest.raises(ReadOnlyViolation):
      run(make_assignment('pi', num(3)))

  def test_redeclare_builtin(self):
    with pytest.raises(RedeclaredIdentifier):
      run(make_var_decl('pi', num(3)))

  def test_redeclare_variable(self):
    with pytest.raises(RedeclaredIdentifier):
      run(make_var_decl('x', num(1)), make_function_decl('x', [], num(2)))

  def test_functions_are_reassignable(self):
    assert run(
        make_function_decl('f', ['x'], ident('x')),
        make_assignment('f', num(3)),
        make_print(ident('f')),
    ) == [3]

  def test_assign_undeclared(self):
    with pytest.raises(UndeclaredIdentifier):
      run(make_assignment('x', num(1)))

  def test_error_carries_partial_output(self):
    with pytest.raises(UndeclaredIdentifier) as exc_info:
      run(make_print(num(1)), make_print(num(2)), make_print(ident('x')), make_print(num(3)))
    assert unwrap_value(exc_info.value.output) == [1, 2]

  def test_statement_does_not_modify_state(self, env):
    state = make_state(env)
    new_state = exec_statement(make_var_decl('x', num(1)), state)
    assert env_lookup_binding(state['env'], 'x') is None
    assert env_lookup_value(new_state['env'], 'x') == make_number(1)

  def test_print_appends_output(self, env):
    state = exec_statement(make_print(num(1)), make_state(env))
    state = exec_statement(make_print(num(2)), state)
    assert unwrap_value(state['output']) == [1, 2]

  def test_interpret_is_repeatable(self):
    prog = program(make_var_decl('x', num(1)), make_print(ident('x')))
    assert interpret(prog) == interpret(prog)

  def test_unknown_statement(self, env):
    with pytest.raises(BellaRuntimeError, match="Unknown statement type"):
      exec_statement(make_ast_node("RETURN"), make_state(env))

  def test_unknown_expression(self, env):
    with pytest.raises(BellaRuntimeError, match="Unknown expression type"):
      eval_expression(make_ast_node("LAMBDA"), env)


class TestInterpreterFactory:
  """Test the interpreter objects used by the command line driver"""

  def test_interpret(self):
    interpreter = create_interpreter()
    assert unwrap_value(interpreter.interpret(program(make_print(num(4))))) == [4]

  def test_execute_keeps_environment(self):
    interpreter = create_interpreter()
    state = interpreter.execute(program(make_var_decl('x', num(2))), interpreter.initial_state())
    state = interpreter.execute(program(make_print(ident('x'))), make_state(state['env']))
    assert unwrap_value(state['output']) == [2]

  def test_evaluate(self):
    interpreter = create_interpreter()
    env = interpreter.initial_state()['env']
    assert interpreter.evaluate(make_call('sqrt', [num(9)]), env) == make_number(3)

  def test_debug_tracing(self, capsys):
    interpreter = create_debug_interpreter()
    interpreter.interpret(program(make_print(make_binary('+', num(1), num(2)))))
    captured = capsys.readouterr().out
    assert "Executing: PRINT" in captured
    assert "Evaluating: BINARY" in captured
    assert "Evaluating: NUMERAL" in captured

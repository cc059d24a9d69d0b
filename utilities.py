"""
Utilities module for the Bella interpreter
Runtime error hierarchy and the helpers that build error messages
"""

from typing import Any, Dict, List, Optional


# ==================== RUNTIME ERRORS ====================

class BellaRuntimeError(Exception):
  """Base class for every error raised while evaluating a Bella program"""

  def __init__(self, message: str, span: Optional[Any] = None):
    self.message = message
    self.span = span
    # Output printed before the failing statement, filled in by the executor
    self.output: Optional[List[Dict]] = None
    super().__init__(message)

  def __str__(self) -> str:
    if self.span:
      return f"{self.message} (at {self.span})"
    return self.message


class UndeclaredIdentifier(BellaRuntimeError):
  """Lookup, assignment or call of a name with no binding"""


class RedeclaredIdentifier(BellaRuntimeError):
  """Declaration of a name already bound in the declaring scope"""


class ReadOnlyViolation(BellaRuntimeError):
  """Assignment to a read-only binding (built-ins, parameters)"""


class TypeMismatch(BellaRuntimeError):
  """Operator or subscript applied to a value of the wrong kind"""


class WrongArity(BellaRuntimeError):
  """Function or built-in called with the wrong number of arguments"""


class NotCallable(BellaRuntimeError):
  """Call target is not a function"""


class NotAnArray(BellaRuntimeError):
  """Subscript applied to something other than an array"""


class InvalidSubscript(BellaRuntimeError):
  """Subscript out of range or not a non-negative integer"""


# ==================== VALUE INSPECTION ====================

def describe_value(val: Dict) -> str:
  """Human readable kind of a runtime value, used in error messages"""
  kinds = {
      'Num': 'a number',
      'Bool': 'a boolean',
      'Array': 'an array',
      'BuiltinFunction': 'a built-in function',
      'Function': 'a function',
  }
  return kinds.get(val.get('type'), val.get('type', 'Unknown'))


# ==================== ERROR MESSAGE BUILDERS ====================

def undeclared_error(name: str) -> UndeclaredIdentifier:
  return UndeclaredIdentifier(f"Identifier '{name}' has not been declared")


def redeclared_error(name: str) -> RedeclaredIdentifier:
  return RedeclaredIdentifier(f"Identifier '{name}' has already been declared")


def read_only_error(name: str) -> ReadOnlyViolation:
  return ReadOnlyViolation(f"Cannot assign to read-only identifier '{name}'")


def type_mismatch_error(op: str, expected: str, actual: Dict) -> TypeMismatch:
  """
  Generate type mismatch error

  Args:
    op: Operator (or construct) that rejected the operand
    expected: Expected kind, e.g. "a number"
    actual: Actual value dict

  Returns:
    TypeMismatch with formatted message
  """
  return TypeMismatch(
    f"Operator '{op}' requires {expected}, got {describe_value(actual)}"
  )


def arity_error(func_name: str, expected: int, got: int) -> WrongArity:
  """
  Generate arity mismatch error

  Args:
    func_name: Function name
    expected: Expected number of arguments
    got: Actual number of arguments

  Returns:
    WrongArity with formatted message
  """
  plural = "argument" if expected == 1 else "arguments"
  return WrongArity(
    f"{func_name} requires {expected} {plural}, got {got}"
  )


def not_callable_error(name: str, actual: Dict) -> NotCallable:
  return NotCallable(f"'{name}' is {describe_value(actual)}, not a function")


def not_an_array_error(actual: Dict) -> NotAnArray:
  return NotAnArray(f"Cannot subscript {describe_value(actual)}")


def invalid_subscript_error(index: float, length: int) -> InvalidSubscript:
  return InvalidSubscript(
    f"Subscript {index!r} is not a valid index for an array of length {length}"
  )


# ==================== VALIDATION UTILITIES ====================

def require_type(op: str, value: Dict, expected_type: str) -> Any:
  """
  Check a value has the given type tag and return its payload

  Raises:
    TypeMismatch if the tag differs
  """
  if value.get('type') != expected_type:
    expected = describe_value({'type': expected_type})
    raise type_mismatch_error(op, expected, value)
  return value['value']


def validate_arity(func_name: str, args: List[Any], expected: int) -> None:
  """
  Validate the number of arguments passed to a function

  Raises:
    WrongArity if the count is wrong
  """
  if len(args) != expected:
    raise arity_error(func_name, expected, len(args))

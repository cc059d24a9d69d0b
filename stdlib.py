"""
Bella Standard Library
Runtime values, arithmetic on IEEE doubles, and the built-in math functions
Pure functional style using immutable dictionaries
"""

from typing import Dict, Callable, Any, List, Sequence
import math
import operator
from decimal import Decimal
from utilities import require_type, validate_arity


# ============================================================================
# VALUE CONSTRUCTORS
# ============================================================================

def make_value(value: Any, type_name: str = "Unknown") -> Dict:
  """Create an immutable runtime value"""
  return {
      'value': value,
      'type': type_name
  }


def make_number(n: float) -> Dict:
  return make_value(float(n), "Num")


def make_boolean(b: bool) -> Dict:
  return make_value(bool(b), "Bool")


def make_array(elements: Sequence[Dict]) -> Dict:
  """Arrays hold already evaluated value dicts"""
  return make_value(tuple(elements), "Array")


def make_builtin_function(name: str, func: Callable, arity: int) -> Dict:
  """Create a built-in function value"""
  return make_value({
      'name': name,
      'func': func,
      'arity': arity
  }, "BuiltinFunction")


def make_user_function(params: List[str], body: Dict) -> Dict:
  """Create a user function value; the body stays unevaluated"""
  return make_value({
      'params': tuple(params),
      'body': body
  }, "Function")


def is_truthy(value: Dict) -> bool:
  """Truthiness used by conditional expressions and while loops"""
  if value['type'] == "Bool":
    return value['value']
  if value['type'] == "Num":
    return value['value'] != 0 and not math.isnan(value['value'])
  return True


# ============================================================================
# ARITHMETIC (IEEE-754 semantics: no ZeroDivisionError, no OverflowError)
# ============================================================================

def ieee_div(x: float, y: float) -> float:
  if y == 0:
    if x == 0 or math.isnan(x):
      return math.nan
    return math.copysign(math.inf, x) * math.copysign(1.0, y)
  return x / y


def ieee_mod(x: float, y: float) -> float:
  """Remainder with the sign of the dividend"""
  if y == 0 or math.isinf(x) or math.isnan(x) or math.isnan(y):
    return math.nan
  if math.isinf(y):
    return x
  return math.fmod(x, y)


def is_odd_integer(y: float) -> bool:
  return math.isfinite(y) and y == int(y) and int(y) % 2 == 1


def ieee_pow(x: float, y: float) -> float:
  # 1 ** NaN and 1 ** Infinity are NaN, not 1
  if math.isnan(y) or (abs(x) == 1 and math.isinf(y)):
    return math.nan
  try:
    result = x ** y
  except ZeroDivisionError:
    # 0 ** negative keeps the sign of a negative zero only for odd exponents
    return math.copysign(math.inf, x) if is_odd_integer(y) else math.inf
  except OverflowError:
    return -math.inf if x < 0 and is_odd_integer(y) else math.inf
  if isinstance(result, complex):
    # negative base with fractional exponent
    return math.nan
  return result


ARITHMETIC_OPERATORS: Dict[str, Callable[[float, float], float]] = {
    '+': operator.add,
    '-': operator.sub,
    '*': operator.mul,
    '/': ieee_div,
    '%': ieee_mod,
    '**': ieee_pow,
}

RELATIONAL_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    '<': operator.lt,
    '<=': operator.le,
    '==': operator.eq,
    '!=': operator.ne,
    '>=': operator.ge,
    '>': operator.gt,
}

LOGICAL_OPERATORS: Dict[str, Callable[[bool, bool], bool]] = {
    '&&': lambda x, y: x and y,
    '||': lambda x, y: x or y,
}


# ============================================================================
# MATH FUNCTIONS
# ============================================================================

def bella_sqrt(x: Dict) -> Dict:
  n = x['value']
  return make_number(math.sqrt(n) if n >= 0 else math.nan)


def bella_sin(x: Dict) -> Dict:
  n = x['value']
  return make_number(math.nan if math.isinf(n) else math.sin(n))


def bella_cos(x: Dict) -> Dict:
  n = x['value']
  return make_number(math.nan if math.isinf(n) else math.cos(n))


def bella_ln(x: Dict) -> Dict:
  n = x['value']
  if n == 0:
    return make_number(-math.inf)
  if n < 0:
    return make_number(math.nan)
  return make_number(math.log(n))


def bella_exp(x: Dict) -> Dict:
  try:
    return make_number(math.exp(x['value']))
  except OverflowError:
    return make_number(math.inf)


def bella_hypot(x: Dict, y: Dict) -> Dict:
  return make_number(math.hypot(x['value'], y['value']))


def numeric_only(name: str, func: Callable) -> Callable:
  """Wrap a math function so that it rejects non-number arguments"""

  def checked(*args: Dict) -> Dict:
    for arg in args:
      require_type(name, arg, "Num")
    return func(*args)

  return checked


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

BUILTIN_FUNCTIONS: Dict[str, Dict] = {
    "sqrt": make_builtin_function("sqrt", numeric_only("sqrt", bella_sqrt), 1),
    "sin": make_builtin_function("sin", numeric_only("sin", bella_sin), 1),
    "cos": make_builtin_function("cos", numeric_only("cos", bella_cos), 1),
    "ln": make_builtin_function("ln", numeric_only("ln", bella_ln), 1),
    "exp": make_builtin_function("exp", numeric_only("exp", bella_exp), 1),
    "hypot": make_builtin_function("hypot", numeric_only("hypot", bella_hypot), 2),
}

BUILTIN_CONSTANTS: Dict[str, Dict] = {
    "pi": make_number(math.pi),
}


def call_builtin(builtin: Dict, args: List[Dict]) -> Dict:
  """Invoke a built-in function value after checking its arity"""
  entry = builtin['value']
  validate_arity(entry['name'], args, entry['arity'])
  return entry['func'](*args)


def list_builtin_functions() -> List[str]:
  """List all available built-in names"""
  return list(BUILTIN_CONSTANTS.keys()) + list(BUILTIN_FUNCTIONS.keys())


# ============================================================================
# PRINTING
# ============================================================================

def format_number(n: float) -> str:
  """
  Print a number the way JavaScript does: shortest round-trip digits,
  plain decimals for exponents in (-7, 21), otherwise 1.5e+21 / 1e-7
  """
  if math.isnan(n):
    return "NaN"
  if math.isinf(n):
    return "Infinity" if n > 0 else "-Infinity"
  if n == 0:
    return "0"

  sign = "-" if n < 0 else ""
  # repr gives the shortest digit string that round-trips
  _, digit_tuple, exponent = Decimal(repr(abs(n))).normalize().as_tuple()
  digits = "".join(map(str, digit_tuple))
  k = len(digits)
  point = exponent + k  # value is 0.digits * 10 ** point

  if k <= point <= 21:
    text = digits + "0" * (point - k)
  elif 0 < point <= 21:
    text = digits[:point] + "." + digits[point:]
  elif -6 < point <= 0:
    text = "0." + "0" * -point + digits
  else:
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    text = f"{mantissa}e{'+' if point > 0 else '-'}{abs(point - 1)}"
  return sign + text


def bella_show(value: Dict) -> str:
  """Convert value to its printed representation"""
  if value['type'] == "Num":
    return format_number(value['value'])
  elif value['type'] == "Bool":
    return "true" if value['value'] else "false"
  elif value['type'] == "Array":
    return "[" + ", ".join(bella_show(elem) for elem in value['value']) + "]"
  elif value['type'] == "BuiltinFunction":
    return f"<builtin {value['value']['name']}>"
  elif value['type'] == "Function":
    return f"<function({', '.join(value['value']['params'])})>"
  return f"<{value['type']}>"

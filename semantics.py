"""
Bella Semantics Analysis - Pure Functional Style
Turns the parser's CST into the AST consumed by the interpreter
No classes except the error type, only pure functions and immutable data structures
"""

from typing import Any, Dict, List, Optional
from parsing import CSTNode, SourceSpan


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_ast_node(node_type: str, value: Any = None, children: Optional[List[Dict]] = None,
                  span: Optional[SourceSpan] = None) -> Dict:
  """Create an immutable AST node dictionary"""
  return {
      'type': node_type,
      'value': value,
      'children': children or [],
      'span': span
  }


# ============================================================================
# AST CONSTRUCTORS
# ============================================================================

def make_numeral(n: float, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("NUMERAL", float(n), span=span)


def make_boolean(b: bool, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("BOOLEAN", bool(b), span=span)


def make_identifier(name: str, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("IDENTIFIER", name, span=span)


def make_unary(op: str, operand: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("UNARY", {'op': op, 'operand': operand}, span=span)


def make_binary(op: str, left: Dict, right: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("BINARY", {'op': op, 'left': left, 'right': right}, span=span)


def make_conditional(test: Dict, consequent: Dict, alternate: Dict,
                     span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("CONDITIONAL", {
      'test': test,
      'consequent': consequent,
      'alternate': alternate
  }, span=span)


def make_array(elements: List[Dict], span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("ARRAY", None, list(elements), span)


def make_subscript(array: Dict, index: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("SUBSCRIPT", {'array': array, 'index': index}, span=span)


def make_call(callee: str, args: List[Dict], span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("CALL", {'callee': callee, 'args': list(args)}, span=span)


def make_var_decl(name: str, initializer: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("VAR_DECL", {'name': name, 'initializer': initializer}, span=span)


def make_function_decl(name: str, params: List[str], body: Dict,
                       span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("FUNCTION_DEF", {
      'name': name,
      'params': list(params),
      'body': body
  }, span=span)


def make_assignment(name: str, expression: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("ASSIGNMENT", {'name': name, 'expression': expression}, span=span)


def make_print(expression: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("PRINT", {'expression': expression}, span=span)


def make_while(test: Dict, body: Dict, span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("WHILE", {'test': test, 'body': body}, span=span)


def make_block(statements: List[Dict], span: Optional[SourceSpan] = None) -> Dict:
  return make_ast_node("BLOCK", None, list(statements), span)


def make_program(block: Dict) -> Dict:
  return make_ast_node("PROGRAM", block, span=block.get('span'))


# ============================================================================
# CST ANALYSIS
# ============================================================================

def analyze_numeral(cst_node: CSTNode, debug: bool = False) -> Dict:
  return make_numeral(float(cst_node.value), cst_node.span)


def analyze_boolean(cst_node: CSTNode, debug: bool = False) -> Dict:
  return make_boolean(cst_node.value == "true", cst_node.span)


def analyze_identifier(cst_node: CSTNode, debug: bool = False) -> Dict:
  return make_identifier(cst_node.value, cst_node.span)


def analyze_unary(cst_node: CSTNode, debug: bool = False) -> Dict:
  operand = analyze_cst_node(cst_node.children[0], debug)
  return make_unary(cst_node.value, operand, cst_node.span)


def analyze_binary(cst_node: CSTNode, debug: bool = False) -> Dict:
  left, right = [analyze_cst_node(child, debug) for child in cst_node.children]
  return make_binary(cst_node.value, left, right, cst_node.span)


def analyze_conditional(cst_node: CSTNode, debug: bool = False) -> Dict:
  test, consequent, alternate = [analyze_cst_node(child, debug) for child in cst_node.children]
  return make_conditional(test, consequent, alternate, cst_node.span)


def analyze_array(cst_node: CSTNode, debug: bool = False) -> Dict:
  elements = [analyze_cst_node(child, debug) for child in cst_node.children]
  return make_array(elements, cst_node.span)


def analyze_subscript(cst_node: CSTNode, debug: bool = False) -> Dict:
  array, index = [analyze_cst_node(child, debug) for child in cst_node.children]
  return make_subscript(array, index, cst_node.span)


def analyze_call(cst_node: CSTNode, debug: bool = False) -> Dict:
  args = [analyze_cst_node(child, debug) for child in cst_node.children]
  return make_call(cst_node.value, args, cst_node.span)


def analyze_var_decl(cst_node: CSTNode, debug: bool = False) -> Dict:
  initializer = analyze_cst_node(cst_node.children[0], debug)
  return make_var_decl(cst_node.value, initializer, cst_node.span)


def analyze_function_def(cst_node: CSTNode, debug: bool = False) -> Dict:
  """Analyze function definition"""
  name = cst_node.value['name']
  params = cst_node.value['params']

  seen = set()
  for param in params:
    if param in seen:
      raise BellaSemanticsError(
          f"Duplicate parameter '{param}' in function '{name}'", cst_node.span)
    seen.add(param)

  body = analyze_cst_node(cst_node.children[0], debug)
  return make_function_decl(name, params, body, cst_node.span)


def analyze_assignment(cst_node: CSTNode, debug: bool = False) -> Dict:
  expression = analyze_cst_node(cst_node.children[0], debug)
  return make_assignment(cst_node.value, expression, cst_node.span)


def analyze_print(cst_node: CSTNode, debug: bool = False) -> Dict:
  expression = analyze_cst_node(cst_node.children[0], debug)
  return make_print(expression, cst_node.span)


def analyze_while(cst_node: CSTNode, debug: bool = False) -> Dict:
  test = analyze_cst_node(cst_node.children[0], debug)
  body = analyze_cst_node(cst_node.children[1], debug)
  return make_while(test, body, cst_node.span)


def analyze_block(cst_node: CSTNode, debug: bool = False) -> Dict:
  statements = [analyze_cst_node(child, debug) for child in cst_node.children]
  return make_block(statements, cst_node.span)


def analyze_program(cst_node: CSTNode, debug: bool = False) -> Dict:
  """Analyze a PROGRAM node; the top-level statements form the program's block"""
  statements = [analyze_cst_node(child, debug) for child in cst_node.children]
  return make_program(make_block(statements, cst_node.span))


CST_HANDLERS = {
    "NUMERAL": analyze_numeral,
    "BOOLEAN": analyze_boolean,
    "IDENTIFIER": analyze_identifier,
    "UNARY": analyze_unary,
    "BINARY": analyze_binary,
    "CONDITIONAL": analyze_conditional,
    "ARRAY": analyze_array,
    "SUBSCRIPT": analyze_subscript,
    "CALL": analyze_call,
    "VAR_DECL": analyze_var_decl,
    "FUNCTION_DEF": analyze_function_def,
    "ASSIGNMENT": analyze_assignment,
    "PRINT": analyze_print,
    "WHILE": analyze_while,
    "BLOCK": analyze_block,
    "PROGRAM": analyze_program,
}


def analyze_cst_node(cst_node: CSTNode, debug: bool = False) -> Dict:
  """Analyze a single CST node and return AST node"""
  if debug:
    print(f"Analyzing CST node: {cst_node.type} with value: {cst_node.value}")

  handler = CST_HANDLERS.get(cst_node.type)
  if handler is None:
    raise BellaSemanticsError(f"Unknown syntax node: {cst_node.type}", cst_node.span)
  return handler(cst_node, debug)


def is_ast_node(x: Any) -> bool:
  return isinstance(x, dict) and 'type' in x and 'children' in x


def pretty_print_ast(ast_node: Any, indent: int = 0) -> str:
  """Pretty print an AST node (or a field of one) for debugging"""
  pad = "  " * indent
  if not isinstance(ast_node, dict):
    return f"{pad}{ast_node!r}\n"

  result = f"{pad}{ast_node['type']}"
  value = ast_node['value']
  if is_ast_node(value):
    result += "\n" + pretty_print_ast(value, indent + 1)
  elif isinstance(value, dict):
    result += "\n"
    for key, field_value in value.items():
      if is_ast_node(field_value):
        result += f"{pad}  {key}:\n" + pretty_print_ast(field_value, indent + 2)
      elif isinstance(field_value, list) and field_value and is_ast_node(field_value[0]):
        result += f"{pad}  {key}:\n"
        result += "".join(pretty_print_ast(item, indent + 2) for item in field_value)
      else:
        result += f"{pad}  {key}: {field_value!r}\n"
  elif value is not None:
    result += f"({value!r})\n"
  else:
    result += "\n"

  for child in ast_node['children']:
    result += pretty_print_ast(child, indent + 1)
  return result


# ============================================================================
# ERRORS
# ============================================================================

class BellaSemanticsError(Exception):
  """Bella semantics analysis error"""

  def __init__(self, message: str, span: Optional[SourceSpan] = None):
    self.message = message
    self.span = span
    super().__init__(self._format_error())

  def _format_error(self) -> str:
    if self.span:
      return f"Semantics error at {self.span}: {self.message}"
    return f"Semantics error: {self.message}"


# ============================================================================
# FACTORY FUNCTIONS (for main.py)
# ============================================================================

def create_analyzer(debug: bool = False):
  """Factory function returning an analyzer"""
  def analyze(cst_node: CSTNode) -> Dict:
    if cst_node.type != "PROGRAM":
      raise BellaSemanticsError(f"Expected a program, got {cst_node.type}", cst_node.span)
    return analyze_cst_node(cst_node, debug)

  def analyze_expression(cst_node: CSTNode) -> Dict:
    return analyze_cst_node(cst_node, debug)

  return type('Analyzer', (), {
      'analyze': staticmethod(analyze),
      'analyze_expression': staticmethod(analyze_expression),
  })()


def create_debug_analyzer():
  """Factory function returning a debug analyzer"""
  return create_analyzer(debug=True)

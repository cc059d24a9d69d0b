"""
Bella Programming Language Parser
pyparsing grammar producing a CST with source spans
"""

from typing import List, Any, Optional
from dataclasses import dataclass, field

# Import pyparsing with error handling
try:
    from pyparsing import (
        Regex, Keyword, MatchFirst, Forward, Group, Suppress, ZeroOrMore, Opt,
        DelimitedList, StringEnd, ParserElement, ParseBaseException,
        ParseResults, infix_notation, OpAssoc, one_of, dbl_slash_comment,
        lineno, col, line,
    )
    # Enable packrat parsing for performance
    ParserElement.enable_packrat()
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from error_handling import BellaParseError


@dataclass(frozen=True)
class SourceSpan:
    """Source location of a CST node"""
    filename: str
    line: int
    column: int
    text: str = ""

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


@dataclass(frozen=True)
class CSTNode:
    """Concrete Syntax Tree node preserving source information"""
    type: str
    value: Any
    children: List['CSTNode'] = field(default_factory=list)
    span: Optional[SourceSpan] = None

    def __str__(self) -> str:
        if self.children:
            children_str = ", ".join(str(child) for child in self.children)
            return f"{self.type}({self.value}, [{children_str}])"
        return f"{self.type}({self.value})"


KEYWORDS = ("let", "function", "print", "while", "true", "false")


class BellaGrammar:
    """Bella grammar definition using pyparsing"""

    def __init__(self, filename: str = "<input>"):
        self.filename = filename
        self._setup_grammar()

    def _span(self, source: str, loc: int) -> SourceSpan:
        return SourceSpan(self.filename, lineno(loc, source), col(loc, source), line(loc, source).strip())

    def _setup_grammar(self):
        """Setup the Bella grammar"""

        expression = Forward()
        statement = Forward()

        # Keywords
        let_kw = Keyword("let")
        function_kw = Keyword("function")
        print_kw = Keyword("print")
        while_kw = Keyword("while")
        true_kw = Keyword("true")
        false_kw = Keyword("false")
        any_keyword = MatchFirst([Keyword(kw) for kw in KEYWORDS])

        identifier = ~any_keyword + Regex(r"[A-Za-z][A-Za-z0-9_]*")

        # Literals
        numeral = Regex(r"\d+(?:\.\d+)?(?:[Ee][+-]?\d+)?").set_parse_action(
            lambda s, loc, t: CSTNode("NUMERAL", t[0], [], self._span(s, loc)))
        boolean = (true_kw | false_kw).set_parse_action(
            lambda s, loc, t: CSTNode("BOOLEAN", t[0], [], self._span(s, loc)))
        variable = identifier.copy().set_parse_action(
            lambda s, loc, t: CSTNode("IDENTIFIER", t[0], [], self._span(s, loc)))

        # Calls name their callee directly: f(x, y)
        call = (
            identifier + Suppress("(") + Group(Opt(DelimitedList(expression))) + Suppress(")")
        ).set_parse_action(
            lambda s, loc, t: CSTNode("CALL", t[0], list(t[1]), self._span(s, loc)))

        array_literal = (
            Suppress("[") + Opt(DelimitedList(expression)) + Suppress("]")
        ).set_parse_action(
            lambda s, loc, t: CSTNode("ARRAY", None, list(t), self._span(s, loc)))

        parenthesized = Suppress("(") + expression + Suppress(")")

        primary = numeral | boolean | call | variable | parenthesized | array_literal

        # Postfix subscripts: a[0][1]
        subscript = Group(Suppress("[") + expression + Suppress("]"))

        def fold_subscripts(source: str, loc: int, tokens: ParseResults):
            node = tokens[0]
            for index in tokens[1:]:
                node = CSTNode("SUBSCRIPT", None, [node, index[0]], self._span(source, loc))
            return node

        postfix = (primary + ZeroOrMore(subscript)).set_parse_action(fold_subscripts)

        # Operator precedence, tightest first
        def fold_left(source: str, loc: int, tokens: ParseResults) -> CSTNode:
            items = tokens[0]
            node = items[0]
            for i in range(1, len(items), 2):
                node = CSTNode("BINARY", items[i], [node, items[i + 1]], self._span(source, loc))
            return node

        def fold_right(source: str, loc: int, tokens: ParseResults) -> CSTNode:
            items = tokens[0]
            node = items[-1]
            for i in range(len(items) - 2, 0, -2):
                node = CSTNode("BINARY", items[i], [items[i - 1], node], self._span(source, loc))
            return node

        def make_unary(source: str, loc: int, tokens: ParseResults) -> CSTNode:
            op, operand = tokens[0]
            return CSTNode("UNARY", op, [operand], self._span(source, loc))

        def make_conditional(source: str, loc: int, tokens: ParseResults) -> CSTNode:
            test, _, consequent, _, alternate = tokens[0]
            return CSTNode("CONDITIONAL", None, [test, consequent, alternate], self._span(source, loc))

        expression <<= infix_notation(postfix, [
            (one_of("- !"), 1, OpAssoc.RIGHT, make_unary),
            (Regex(r"\*\*"), 2, OpAssoc.RIGHT, fold_right),
            (Regex(r"\*(?!\*)|/|%"), 2, OpAssoc.LEFT, fold_left),
            (one_of("+ -"), 2, OpAssoc.LEFT, fold_left),
            (one_of("<= < == != >= >"), 2, OpAssoc.LEFT, fold_left),
            ("&&", 2, OpAssoc.LEFT, fold_left),
            ("||", 2, OpAssoc.LEFT, fold_left),
            (("?", ":"), 3, OpAssoc.RIGHT, make_conditional),
        ])

        # Statements; after a leading keyword any failure is a syntax error
        block = (
            Suppress("{") + ZeroOrMore(statement) + Suppress("}")
        ).set_parse_action(
            lambda s, loc, t: CSTNode("BLOCK", None, list(t), self._span(s, loc)))

        variable_declaration = (
            Suppress(let_kw) - identifier - Suppress("=") - expression - Suppress(";")
        ).set_parse_action(
            lambda s, loc, t: CSTNode("VAR_DECL", t[0], [t[1]], self._span(s, loc)))

        parameters = Group(Opt(DelimitedList(identifier)))
        function_declaration = (
            Suppress(function_kw) - identifier -
            Suppress("(") - parameters - Suppress(")") -
            Suppress("=") - expression - Suppress(";")
        ).set_parse_action(
            lambda s, loc, t: CSTNode("FUNCTION_DEF", {"name": t[0], "params": list(t[1])},
                                    [t[2]], self._span(s, loc)))

        assignment = (
            identifier + Suppress("=") + expression + Suppress(";")
        ).set_parse_action(
            lambda s, loc, t: CSTNode("ASSIGNMENT", t[0], [t[1]], self._span(s, loc)))

        print_statement = (
            Suppress(print_kw) - expression - Suppress(";")
        ).set_parse_action(
            lambda s, loc, t: CSTNode("PRINT", None, [t[0]], self._span(s, loc)))

        while_statement = (
            Suppress(while_kw) - expression - block
        ).set_parse_action(
            lambda s, loc, t: CSTNode("WHILE", None, [t[0], t[1]], self._span(s, loc)))

        statement <<= (
            variable_declaration |
            function_declaration |
            print_statement |
            while_statement |
            assignment
        )

        program = (ZeroOrMore(statement) + StringEnd()).set_parse_action(
            lambda s, loc, t: CSTNode("PROGRAM", None, list(t), self._span(s, 0)))
        program.ignore(dbl_slash_comment)

        # Store the main parsers
        self.program = program
        self.statement = statement
        self.block = block
        self.expression = expression
        self.identifier = identifier

    def parse_program(self, text: str) -> CSTNode:
        """Parse a complete Bella program"""
        try:
            return self.program.parse_string(text, parse_all=True)[0]
        except ParseBaseException as e:
            raise BellaParseError.from_exception(e)

    def parse_expression(self, text: str) -> CSTNode:
        """Parse a single Bella expression"""
        try:
            return self.expression.parse_string(text, parse_all=True)[0]
        except ParseBaseException as e:
            raise BellaParseError.from_exception(e)


class BellaParser:
    """Main Bella parser"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def parse_file(self, filepath: str) -> CSTNode:
        """Parse a Bella source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise BellaParseError(f"File not found: {filepath}")
        except UnicodeDecodeError as e:
            raise BellaParseError(f"Cannot decode file {filepath}: {e}")
        return self.parse_string(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> CSTNode:
        """Parse Bella source code from string"""
        cst = BellaGrammar(filename).parse_program(text)
        if self.debug:
            print(f"Parsed {len(cst.children)} statements from {filename}")
        return cst

    def parse_expression(self, text: str, filename: str = "<input>") -> CSTNode:
        """Parse a single Bella expression"""
        return BellaGrammar(filename).parse_expression(text)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> BellaParser:
    """Create a Bella parser"""
    return BellaParser(debug=debug)


def create_debug_parser() -> BellaParser:
    """Create a Bella parser with debug enabled"""
    return BellaParser(debug=True)


def pretty_print_cst(cst: CSTNode, indent: int = 0) -> str:
    """Pretty print a CST node for debugging"""
    result = "  " * indent + f"{cst.type}"
    if cst.value is not None:
        result += f"({repr(cst.value)})"
    result += "\n"

    for child in cst.children:
        result += pretty_print_cst(child, indent + 1)

    return result

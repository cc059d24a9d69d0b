"""
Syntax error reporting for Bella
Turns pyparsing failures into a BellaParseError carrying a source excerpt,
the text that was found and hints for common mistakes
"""

from typing import Dict, List, Optional
from pyparsing import ParseBaseException
import re


EXCERPT_RADIUS = 2
FOUND_WIDTH = 12

# (pattern matched against the failing line, hint)
LINE_HINTS = [
    (r"\s*(fun|func|fn|def)\b", "Functions are declared with 'function name(params) = expression;'"),
    (r"\s*(var|const)\b", "Variables are declared with 'let name = expression;'"),
    (r"\s*(if|else|return|for)\b", "Bella has no if/else/return/for; use 'test ? a : b' and 'while'"),
]


# ============================================================================
# SYNTAX REPORTS (Immutable Dictionaries)
# ============================================================================

def make_syntax_report(message: str, location: int = 0, line: int = 0, column: int = 0,
                       expected: Optional[List[str]] = None, found: Optional[str] = None,
                       excerpt: Optional[str] = None, hints: Optional[List[str]] = None) -> Dict:
    return {
        'message': message,
        'location': location,
        'line': line,
        'column': column,
        'expected': list(expected or []),
        'found': found,
        'excerpt': excerpt,
        'hints': list(hints or []),
    }


def render_syntax_report(report: Dict) -> str:
    """Render a report the way the command line shows it"""
    # Reports without a position (missing file, bad encoding) are one line
    if not report['line']:
        return f"Parse error: {report['message']}"

    parts = [
        f"Parse error at line {report['line']}, column {report['column']}:",
        f"  {report['message']}",
    ]
    if report['expected']:
        parts.append(f"  Expected: {' or '.join(report['expected'])}")
    if report['found']:
        parts.append(f"  Got: {report['found']}")
    if report['excerpt']:
        parts.append("  Context:")
        parts.append(report['excerpt'])
    if report['hints']:
        parts.append("  Suggestions:")
        parts.extend(f"    - {hint}" for hint in report['hints'])
    return '\n'.join(parts) + '\n'


# ============================================================================
# REPORT CONSTRUCTION
# ============================================================================

def source_excerpt(source_text: str, line_num: int, col_num: int, radius: int = EXCERPT_RADIUS) -> str:
    """Numbered lines around line_num with a caret under col_num"""
    lines = source_text.split('\n')
    first = max(1, line_num - radius)
    last = min(len(lines), line_num + radius)

    rendered = []
    for number in range(first, last + 1):
        rendered.append(f"{number:4d}: {lines[number - 1]}")
        if number == line_num:
            rendered.append(" " * (5 + col_num) + "^ Error here")
    return '\n'.join(rendered)


def found_text(source_text: str, loc: int) -> str:
    """Describe the text starting at loc, up to the end of its line"""
    if loc >= len(source_text):
        return "end of input"
    rest = source_text[loc:].split('\n', 1)[0]
    token = rest[:FOUND_WIDTH].strip()
    return f"'{token}'" if token else "end of line"


def expected_tokens(exc: ParseBaseException) -> List[str]:
    match = re.match(r"Expected\s+(.+)", exc.msg or "")
    return [match.group(1)] if match else []


def suggest_fixes(source_text: str, line_num: int, found: str, expected: List[str]) -> List[str]:
    """Hints for mistakes people coming from other languages tend to make"""
    lines = source_text.split('\n')
    current = lines[line_num - 1] if 0 < line_num <= len(lines) else ""
    previous = lines[line_num - 2].rstrip() if 1 < line_num <= len(lines) else ""

    hints = [hint for pattern, hint in LINE_HINTS if re.match(pattern, current)]

    if previous and not previous.endswith((';', '{', '}')) and not previous.lstrip().startswith('//'):
        hints.insert(0, "Statements end with ';' - the previous line may be missing one")

    if re.match(r"\s*while\b", current) and '{' not in current:
        hints.append("A while loop body must be a block in braces: while test { ... }")

    if found.startswith("'==") or any("'='" in token for token in expected):
        hints.append("Use '=' for declarations and assignment, '==' for comparison")

    return hints


def report_from_exception(exc: ParseBaseException) -> Dict:
    """Build a syntax report from a pyparsing failure"""
    # pstr is the text pyparsing actually scanned (tabs already expanded)
    source_text = exc.pstr
    expected = expected_tokens(exc)
    found = found_text(source_text, exc.loc)

    return make_syntax_report(
        exc.msg,
        location=exc.loc,
        line=exc.lineno,
        column=exc.column,
        expected=expected,
        found=found,
        excerpt=source_excerpt(source_text, exc.lineno, exc.column),
        hints=suggest_fixes(source_text, exc.lineno, found, expected),
    )


# ============================================================================
# EXCEPTION CLASS
# ============================================================================

class BellaParseError(Exception):
    """Syntax error in Bella source text"""

    def __init__(self, message: str, report: Optional[Dict] = None):
        self.message = message
        self.report = report or make_syntax_report(message)
        self.line = self.report['line']
        self.column = self.report['column']
        super().__init__(message)

    @classmethod
    def from_exception(cls, exc: ParseBaseException) -> 'BellaParseError':
        report = report_from_exception(exc)
        return cls(report['message'], report)

    def __str__(self) -> str:
        return render_syntax_report(self.report)

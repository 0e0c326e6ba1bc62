"""
Error handling for the Monkey parser and front end
Parse error records, source context rendering and host exceptions
"""

from typing import List, Optional, Dict
from dataclasses import dataclass


@dataclass(frozen=True)
class SourceSpan:
    """Source location information for tokens and AST nodes"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_parse_error(
    message: str,
    line: int,
    column: int,
    expected: Optional[List[str]] = None,
    got: Optional[str] = None,
    context: Optional[str] = None
) -> Dict:
    """Create an immutable parse error structure"""
    return {
        'message': message,
        'line': line,
        'column': column,
        'expected': expected or [],
        'got': got,
        'context': context,
    }


def format_parse_error(error: Dict) -> str:
    """Format parse error as a multi-line report"""
    error_msg = f"Parse error at line {error['line']}, column {error['column']}:\n"
    error_msg += f"  {error['message']}\n"

    if error['expected']:
        error_msg += f"  Expected: {', '.join(error['expected'])}\n"

    if error['got']:
        error_msg += f"  Got: {error['got']}\n"

    if error['context']:
        error_msg += f"  Context:\n{error['context']}\n"

    return error_msg


def short_parse_error(error: Dict) -> str:
    """One-line form of a parse error, as reported by the parser"""
    return f"line {error['line']}, column {error['column']}: {error['message']}"


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:  # Error line
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^ Error here")

    return '\n'.join(context_parts)


def attach_context(error: Dict, source_text: str) -> Dict:
    """Return a copy of the error with source context filled in"""
    return {**error, 'context': get_context_lines(source_text, error['line'], error['column'])}


# ============================================================================
# HOST EXCEPTIONS
# ============================================================================

class MonkeyParseError(Exception):
    """Raised by front-end helpers when a program has syntax errors"""
    def __init__(self, errors: List[Dict], source_text: str = "", filename: str = "<input>"):
        self.errors = errors
        self.source_text = source_text
        self.filename = filename
        self.messages = [short_parse_error(e) for e in errors]
        super().__init__("; ".join(self.messages))

    def __str__(self) -> str:
        if not self.source_text:
            return "\n".join(self.messages)
        return "".join(format_parse_error(attach_context(e, self.source_text)) for e in self.errors)


class MonkeyRuntimeError(Exception):
    """Raised by the front end when a program evaluates to an error value"""
    def __init__(self, message: str, filename: str = "<input>"):
        self.message = message
        self.filename = filename
        super().__init__(message)

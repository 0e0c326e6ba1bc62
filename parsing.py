"""
Monkey Programming Language Parser
Tokenizer built on pyparsing scanners and a Pratt (precedence climbing) parser
"""

from typing import List, Dict, Any, Tuple, Optional, Callable
from dataclasses import dataclass

from pyparsing import (
    Word, alphas, alphanums, nums, Regex, MatchFirst, ParserElement, one_of, lineno, col
)

from ast_nodes import (
    Program, Statement, Expression, LetStatement, ReturnStatement, ExpressionStatement,
    BlockStatement, Identifier, IntegerLiteral, StringLiteral, BooleanLiteral,
    PrefixExpression, InfixExpression, IfExpression, FunctionLiteral, CallExpression,
    ArrayLiteral, HashLiteral, IndexExpression
)
from error_handling import SourceSpan, MonkeyParseError, make_parse_error, short_parse_error


KEYWORDS = frozenset({'let', 'fn', 'if', 'else', 'return', 'true', 'false'})

OPERATORS = ['==', '!=', '=', '!', '+', '-', '*', '/', '<', '>']

DELIMITERS = [',', ';', ':', '(', ')', '{', '}', '[', ']']

# Token types whose literal text selects the parse rule
LITERAL_KEYED_TYPES = frozenset({'OPERATOR', 'DELIMITER', 'KEYWORD'})

INT64_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class Token:
    """Monkey token with source information"""
    type: str
    value: Any
    span: SourceSpan

    def __str__(self) -> str:
        return f"{self.type}({self.value})"

    @property
    def key(self) -> str:
        """Lookup key used by the parser's rule tables"""
        return self.value if self.type in LITERAL_KEYED_TYPES else self.type


# ============================================================================
# LEXER
# ============================================================================

class MonkeyLexer:
    """Monkey lexer producing one token per next_token() call"""

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self._setup_token_patterns()
        self._scanner = self.token_pattern.scan_string(source)
        self._finished = False

    def _setup_token_patterns(self):
        """Setup all token patterns, highest priority first"""

        # Strings have no escape processing; an unterminated one swallows the rest of the input
        self.string_pattern = Regex(r'"[^"]*"').set_parse_action(self._token_action("STRING"))
        self.unterminated_string_pattern = Regex(r'"[^"]*').set_parse_action(self._token_action("ILLEGAL"))

        self.integer_pattern = Word(nums).set_parse_action(self._token_action("INTEGER"))

        self.identifier_pattern = Word(alphas + "_", alphanums + "_").set_parse_action(self._word_action)

        # one_of orders alternatives so that '==' wins over '='
        self.operator_pattern = one_of(OPERATORS).set_parse_action(self._token_action("OPERATOR"))
        self.delimiter_pattern = one_of(DELIMITERS).set_parse_action(self._token_action("DELIMITER"))

        # Anything else; only space, tab, CR and LF separate tokens, so other
        # whitespace such as form feed or NBSP is illegal too
        self.illegal_pattern = Regex(r"[^ \t\r\n]").set_parse_action(self._token_action("ILLEGAL"))

        self.token_pattern: ParserElement = MatchFirst([
            self.string_pattern,
            self.unterminated_string_pattern,
            self.integer_pattern,
            self.identifier_pattern,
            self.operator_pattern,
            self.delimiter_pattern,
            self.illegal_pattern,
        ]).parse_with_tabs()

    def _make_span(self, start: int, text: str) -> SourceSpan:
        end = start + len(text)
        return SourceSpan(
            self.filename,
            lineno(start, self.source), col(start, self.source),
            lineno(end, self.source), col(end, self.source),
            text
        )

    def _token_action(self, token_type: str) -> Callable:
        def action(s, loc, toks):
            text = toks[0]
            value = text[1:-1] if token_type == "STRING" else text
            return Token(token_type, value, self._make_span(loc, text))
        return action

    def _word_action(self, s, loc, toks):
        text = toks[0]
        token_type = "KEYWORD" if text in KEYWORDS else "IDENTIFIER"
        return Token(token_type, text, self._make_span(loc, text))

    def next_token(self) -> Token:
        """Return the next token; EOF is returned forever once input is exhausted"""
        if not self._finished:
            try:
                tokens, _start, _end = next(self._scanner)
                return tokens[0]
            except StopIteration:
                self._finished = True
        return Token("EOF", "", self._make_span(len(self.source), ""))

    def tokenize(self) -> List[Token]:
        """Collect the remaining tokens, including the final EOF"""
        tokens = []
        while True:
            token = self.next_token()
            tokens.append(token)
            if token.type == "EOF":
                return tokens


def tokenize(source: str, filename: str = "<input>") -> List[Token]:
    """Tokenize Monkey source code"""
    return MonkeyLexer(source, filename).tokenize()


def describe_token(token: Token) -> str:
    """Human readable token description for error messages"""
    if token.type == "EOF":
        return "end of input"
    if token.type == "IDENTIFIER":
        return f"identifier '{token.value}'"
    if token.type == "INTEGER":
        return f"integer {token.value}"
    if token.type == "STRING":
        return f'string "{token.value}"'
    return f"'{token.value}'"


def describe_key(key: str) -> str:
    if key == "IDENTIFIER":
        return "identifier"
    return f"'{key}'"


# ============================================================================
# PARSER
# ============================================================================

class MonkeySyntaxError(Exception):
    """Internal signal that the current statement could not be parsed"""
    def __init__(self, error: Dict):
        self.error = error
        super().__init__(error['message'])


# Precedence levels, lowest to highest
LOWEST, EQUALS, LESSGREATER, SUM, PRODUCT, PREFIX, CALL, INDEX = range(1, 9)

PRECEDENCES = {
    '==': EQUALS, '!=': EQUALS,
    '<': LESSGREATER, '>': LESSGREATER,
    '+': SUM, '-': SUM,
    '*': PRODUCT, '/': PRODUCT,
    '(': CALL,
    '[': INDEX,
}

# Keywords that can only begin a statement; recovery stops in front of them
STATEMENT_KEYWORDS = frozenset({'let', 'return'})


class MonkeyParser:
    """Pratt parser turning a token stream into a Program"""

    def __init__(self, lexer: MonkeyLexer, debug: bool = False):
        self.lexer = lexer
        self.debug = debug
        self.error_records: List[Dict] = []
        self.cur_token: Optional[Token] = None
        self.peek_token: Optional[Token] = None

        self.prefix_parse_fns: Dict[str, Callable[[], Expression]] = {
            'IDENTIFIER': self.parse_identifier,
            'INTEGER': self.parse_integer_literal,
            'STRING': self.parse_string_literal,
            'true': self.parse_boolean,
            'false': self.parse_boolean,
            '!': self.parse_prefix_expression,
            '-': self.parse_prefix_expression,
            '(': self.parse_grouped_expression,
            'if': self.parse_if_expression,
            'fn': self.parse_function_literal,
            '[': self.parse_array_literal,
            '{': self.parse_hash_literal,
        }
        self.infix_parse_fns: Dict[str, Callable[[Expression], Expression]] = {
            op: self.parse_infix_expression for op in ('+', '-', '*', '/', '==', '!=', '<', '>')
        }
        self.infix_parse_fns['('] = self.parse_call_expression
        self.infix_parse_fns['['] = self.parse_index_expression

        self.next_token()
        self.next_token()

    @property
    def errors(self) -> List[str]:
        """Ordered one-line error messages"""
        return [short_parse_error(e) for e in self.error_records]

    # ------------------------------------------------------------------
    # token helpers
    # ------------------------------------------------------------------

    def next_token(self) -> Token:
        self.cur_token = self.peek_token
        self.peek_token = self.lexer.next_token()
        return self.cur_token

    def cur_token_is(self, key: str) -> bool:
        return self.cur_token.key == key

    def peek_token_is(self, key: str) -> bool:
        return self.peek_token.key == key

    def peek_precedence(self) -> int:
        return PRECEDENCES.get(self.peek_token.key, LOWEST)

    def cur_precedence(self) -> int:
        return PRECEDENCES.get(self.cur_token.key, LOWEST)

    def _fail(self, message: str, token: Token, expected: Optional[List[str]] = None):
        raise MonkeySyntaxError(make_parse_error(
            message,
            token.span.start_line,
            token.span.start_col,
            expected=expected,
            got=describe_token(token)
        ))

    def expect_peek(self, key: str) -> Token:
        """Advance if the next token matches, otherwise fail naming both tokens"""
        if self.peek_token_is(key):
            return self.next_token()
        if self.peek_token.type == "ILLEGAL":
            self._fail(f"illegal token '{self.peek_token.value}'", self.peek_token)
        self._fail(
            f"expected next token to be {describe_key(key)}, got {describe_token(self.peek_token)} instead",
            self.peek_token,
            expected=[describe_key(key)]
        )

    # ------------------------------------------------------------------
    # statements
    # ------------------------------------------------------------------

    def parse_program(self) -> Program:
        """Parse every statement, collecting errors instead of stopping"""
        start = self.cur_token
        statements: List[Statement] = []
        while self.cur_token.type != "EOF":
            statement = self._parse_statement_or_recover(in_block=False)
            if statement is not None:
                statements.append(statement)
            self.next_token()
        return Program(tuple(statements), span=start.span)

    def _parse_statement_or_recover(self, in_block: bool) -> Optional[Statement]:
        try:
            return self.parse_statement()
        except MonkeySyntaxError as e:
            if self.debug:
                print(f"Syntax error: {short_parse_error(e.error)}")
            self.error_records.append(e.error)
            self._synchronize(in_block)
            return None

    def _synchronize(self, in_block: bool) -> None:
        """Skip to the end of the broken statement.

        Stops on a ';' or in front of a statement keyword at the current
        nesting depth. Inside a block a '}' at that depth is the block's own
        closing brace, so recovery stops on it and leaves it for the caller.
        """
        depth = 0
        while self.cur_token.type != "EOF":
            key = self.cur_token.key
            if key == '{':
                depth += 1
            elif key == '}':
                if depth == 0 and in_block:
                    return
                depth = max(depth - 1, 0)
            elif key == ';' and depth == 0:
                return
            if depth == 0 and self.peek_token.key in STATEMENT_KEYWORDS:
                return
            if depth == 0 and in_block and self.peek_token_is('}'):
                return
            self.next_token()

    def parse_statement(self) -> Statement:
        if self.debug:
            print(f"Parsing statement at {self.cur_token.span}: {self.cur_token}")

        if self.cur_token_is('let'):
            return self.parse_let_statement()
        elif self.cur_token_is('return'):
            return self.parse_return_statement()
        return self.parse_expression_statement()

    def parse_let_statement(self) -> LetStatement:
        token = self.cur_token
        name_token = self.expect_peek('IDENTIFIER')
        name = Identifier(name_token.value, span=name_token.span)
        self.expect_peek('=')
        self.next_token()
        value = self.parse_expression(LOWEST)
        if self.peek_token_is(';'):
            self.next_token()
        return LetStatement(name, value, span=token.span)

    def parse_return_statement(self) -> ReturnStatement:
        token = self.cur_token
        if self.peek_token_is(';') or self.peek_token_is('}') or self.peek_token.type == "EOF":
            if self.peek_token_is(';'):
                self.next_token()
            return ReturnStatement(None, span=token.span)

        self.next_token()
        value = self.parse_expression(LOWEST)
        if self.peek_token_is(';'):
            self.next_token()
        return ReturnStatement(value, span=token.span)

    def parse_expression_statement(self) -> ExpressionStatement:
        token = self.cur_token
        expression = self.parse_expression(LOWEST)
        if self.peek_token_is(';'):
            self.next_token()
        return ExpressionStatement(expression, span=token.span)

    def parse_block_statement(self) -> BlockStatement:
        """Parse '{ statements }'; cur_token is the opening brace"""
        token = self.cur_token
        statements: List[Statement] = []
        self.next_token()

        while not self.cur_token_is('}'):
            if self.cur_token.type == "EOF":
                self._fail("expected '}' to close block, got end of input instead",
                           self.cur_token, expected=["'}'"])
            statement = self._parse_statement_or_recover(in_block=True)
            if statement is not None:
                statements.append(statement)
            elif self.cur_token_is('}'):
                break
            self.next_token()

        return BlockStatement(tuple(statements), span=token.span)

    # ------------------------------------------------------------------
    # expressions
    # ------------------------------------------------------------------

    def parse_expression(self, precedence: int) -> Expression:
        prefix = self.prefix_parse_fns.get(self.cur_token.key)
        if prefix is None:
            if self.cur_token.type == "ILLEGAL":
                self._fail(f"illegal token '{self.cur_token.value}'", self.cur_token)
            self._fail(f"no prefix parse function for {describe_token(self.cur_token)} found",
                       self.cur_token)
        left = prefix()

        while not self.peek_token_is(';') and precedence < self.peek_precedence():
            infix = self.infix_parse_fns.get(self.peek_token.key)
            if infix is None:
                return left
            self.next_token()
            left = infix(left)

        return left

    def parse_identifier(self) -> Identifier:
        return Identifier(self.cur_token.value, span=self.cur_token.span)

    def parse_integer_literal(self) -> IntegerLiteral:
        text = self.cur_token.value
        value = int(text)
        if value > INT64_MAX:
            self._fail(f'could not parse "{text}" as integer', self.cur_token)
        return IntegerLiteral(value, span=self.cur_token.span)

    def parse_string_literal(self) -> StringLiteral:
        return StringLiteral(self.cur_token.value, span=self.cur_token.span)

    def parse_boolean(self) -> BooleanLiteral:
        return BooleanLiteral(self.cur_token_is('true'), span=self.cur_token.span)

    def parse_prefix_expression(self) -> PrefixExpression:
        token = self.cur_token
        self.next_token()
        right = self.parse_expression(PREFIX)
        return PrefixExpression(token.value, right, span=token.span)

    def parse_infix_expression(self, left: Expression) -> InfixExpression:
        token = self.cur_token
        precedence = self.cur_precedence()
        self.next_token()
        right = self.parse_expression(precedence)
        return InfixExpression(left, token.value, right, span=token.span)

    def parse_grouped_expression(self) -> Expression:
        self.next_token()
        expression = self.parse_expression(LOWEST)
        self.expect_peek(')')
        return expression

    def parse_if_expression(self) -> IfExpression:
        token = self.cur_token
        self.expect_peek('(')
        self.next_token()
        condition = self.parse_expression(LOWEST)
        self.expect_peek(')')
        self.expect_peek('{')
        consequence = self.parse_block_statement()

        alternative = None
        if self.peek_token_is('else'):
            self.next_token()
            self.expect_peek('{')
            alternative = self.parse_block_statement()

        return IfExpression(condition, consequence, alternative, span=token.span)

    def parse_function_literal(self) -> FunctionLiteral:
        token = self.cur_token
        self.expect_peek('(')
        parameters = self.parse_function_parameters()
        self.expect_peek('{')
        body = self.parse_block_statement()
        return FunctionLiteral(parameters, body, span=token.span)

    def parse_function_parameters(self) -> Tuple[Identifier, ...]:
        parameters: List[Identifier] = []
        if self.peek_token_is(')'):
            self.next_token()
            return ()

        name_token = self.expect_peek('IDENTIFIER')
        parameters.append(Identifier(name_token.value, span=name_token.span))
        while self.peek_token_is(','):
            self.next_token()
            name_token = self.expect_peek('IDENTIFIER')
            parameters.append(Identifier(name_token.value, span=name_token.span))

        self.expect_peek(')')
        return tuple(parameters)

    def parse_call_expression(self, function: Expression) -> CallExpression:
        token = self.cur_token
        arguments = self.parse_expression_list(')')
        return CallExpression(function, arguments, span=token.span)

    def parse_index_expression(self, left: Expression) -> IndexExpression:
        token = self.cur_token
        self.next_token()
        index = self.parse_expression(LOWEST)
        self.expect_peek(']')
        return IndexExpression(left, index, span=token.span)

    def parse_array_literal(self) -> ArrayLiteral:
        token = self.cur_token
        elements = self.parse_expression_list(']')
        return ArrayLiteral(elements, span=token.span)

    def parse_expression_list(self, end: str) -> Tuple[Expression, ...]:
        """Comma separated expressions up to the closing delimiter"""
        items: List[Expression] = []
        if self.peek_token_is(end):
            self.next_token()
            return ()

        self.next_token()
        items.append(self.parse_expression(LOWEST))
        while self.peek_token_is(','):
            self.next_token()
            self.next_token()
            items.append(self.parse_expression(LOWEST))

        self.expect_peek(end)
        return tuple(items)

    def parse_hash_literal(self) -> HashLiteral:
        token = self.cur_token
        pairs: List[Tuple[Expression, Expression]] = []

        while not self.peek_token_is('}'):
            self.next_token()
            key = self.parse_expression(LOWEST)
            self.expect_peek(':')
            self.next_token()
            value = self.parse_expression(LOWEST)
            pairs.append((key, value))
            if not self.peek_token_is('}'):
                self.expect_peek(',')

        self.expect_peek('}')
        return HashLiteral(tuple(pairs), span=token.span)


# ============================================================================
# FRONT-END FACADE
# ============================================================================

class SourceParser:
    """Main Monkey parser combining lexer and Pratt parser"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def parse_string(self, text: str, filename: str = "<input>") -> Tuple[Program, List[Dict]]:
        """Parse source text, returning the program and detailed error records"""
        parser = MonkeyParser(MonkeyLexer(text, filename), debug=self.debug)
        program = parser.parse_program()
        if self.debug:
            print(f"Parsed {len(program.statements)} statements, {len(parser.error_records)} errors")
        return program, parser.error_records

    def parse_file(self, filepath: str) -> Tuple[Program, List[Dict]]:
        """Parse a Monkey source file"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_string(content, filepath)

    def tokenize(self, text: str, filename: str = "<input>") -> List[Token]:
        """Tokenize Monkey source code"""
        return tokenize(text, filename)


def parse(source: str, filename: str = "<input>", debug: bool = False) -> Tuple[Program, List[str]]:
    """Parse source text into (Program, ordered error messages)"""
    parser = MonkeyParser(MonkeyLexer(source, filename), debug=debug)
    program = parser.parse_program()
    return program, parser.errors


def parse_source_or_raise(source: str, filename: str = "<input>", debug: bool = False) -> Program:
    """Parse source text, raising MonkeyParseError if there were any syntax errors"""
    program, error_records = SourceParser(debug).parse_string(source, filename)
    if error_records:
        raise MonkeyParseError(error_records, source, filename)
    return program


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> SourceParser:
    """Create a Monkey parser"""
    return SourceParser(debug=debug)


def create_debug_parser() -> SourceParser:
    """Create a Monkey parser with debug enabled"""
    return SourceParser(debug=True)

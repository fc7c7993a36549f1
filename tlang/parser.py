"""tlang Parser — recursive descent with precedence climbing for binary operators.

The parser holds exactly one token of lookahead (`current`). Every parse
method either returns a node or raises ParseError; it never skips tokens to
recover. Resynchronisation is the evaluation loop's job.

Grammar:
  toplevel   ::= 'fn' prototype expression
               | 'import' prototype
               | expression
  prototype  ::= ident '(' ident* ')'
  expression ::= primary (binop primary)*
  primary    ::= number | ident | ident '(' (expression (',' expression)*)? ')'
               | '(' expression ')'
               | 'if' expression 'then' expression 'else' expression
"""

from __future__ import annotations

from tlang.lexer import Lexer, Token, TokenType
from tlang.ast_nodes import (
    Expr, NumberLiteral, VariableRef, BinaryOp, Call, Conditional,
    Prototype, FunctionDefinition, ANONYMOUS_NAME,
)
from tlang.errors import ParseError, SourceLocation, syntax_error

# Higher binds tighter.
BINOP_PRECEDENCE: dict[str, int] = {
    "<": 10,
    ">": 10,
    "=": 10,
    "+": 20,
    "-": 20,
    "*": 40,
    "/": 40,
}


class Parser:
    """Recursive-descent parser over a Lexer."""

    def __init__(self, lexer: Lexer):
        self.lexer = lexer
        self.current: Token = Token(TokenType.EOF, "", SourceLocation(1, 1, lexer.filename))

    def next_token(self) -> Token:
        self.current = self.lexer.next_token()
        return self.current

    def skip_token(self) -> Token:
        """Drop the lookahead token. Used to resynchronise after an error."""
        dropped = self.current
        self.next_token()
        return dropped

    def _error(self, message: str) -> ParseError:
        return ParseError(syntax_error(message, self.current.location))

    def _expect_char(self, ch: str, message: str) -> Token:
        tok = self.current
        if not tok.is_char(ch):
            raise self._error(f"{message}, got {tok.describe()}")
        self.next_token()
        return tok

    def _expect(self, tt: TokenType, message: str) -> Token:
        tok = self.current
        if tok.type != tt:
            raise self._error(f"{message}, got {tok.describe()}")
        self.next_token()
        return tok

    def _precedence(self) -> int:
        tok = self.current
        if tok.type != TokenType.CHAR:
            return -1
        return BINOP_PRECEDENCE.get(tok.value, -1)

    # -------------------------------------------------------------------
    # Primary expressions
    # -------------------------------------------------------------------

    def parse_primary(self) -> Expr:
        tok = self.current
        if tok.type == TokenType.IDENT:
            return self.parse_identifier_expr()
        if tok.type == TokenType.NUMBER:
            self.next_token()
            return NumberLiteral(value=tok.number, location=tok.location)
        if tok.is_char("("):
            return self.parse_paren_expr()
        if tok.type == TokenType.IF:
            return self.parse_conditional()
        raise self._error(f"Unexpected token {tok.describe()} when expecting an expression")

    def parse_identifier_expr(self) -> Expr:
        tok = self._expect(TokenType.IDENT, "Expected identifier")
        if not self.current.is_char("("):
            return VariableRef(name=tok.value, location=tok.location)

        self.next_token()  # '('
        args: list[Expr] = []
        if not self.current.is_char(")"):
            while True:
                args.append(self.parse_expression())
                if self.current.is_char(")"):
                    break
                if not self.current.is_char(","):
                    raise self._error(
                        f"Expected ')' or ',' in argument list, got {self.current.describe()}"
                    )
                self.next_token()
        self.next_token()  # ')'
        return Call(callee=tok.value, args=args, location=tok.location)

    def parse_paren_expr(self) -> Expr:
        self._expect_char("(", "Expected '('")
        expr = self.parse_expression()
        self._expect_char(")", "Expected ')'")
        return expr

    def parse_conditional(self) -> Conditional:
        loc = self.current.location
        self._expect(TokenType.IF, "Expected 'if'")
        condition = self.parse_expression()
        self._expect(TokenType.THEN, "Expected 'then' after condition")
        then_branch = self.parse_expression()
        self._expect(TokenType.ELSE, "Expected 'else' branch")
        else_branch = self.parse_expression()
        return Conditional(
            condition=condition, then_branch=then_branch,
            else_branch=else_branch, location=loc,
        )

    # -------------------------------------------------------------------
    # Expressions (precedence climbing)
    # -------------------------------------------------------------------

    def parse_expression(self) -> Expr:
        lhs = self.parse_primary()
        return self.parse_binop_rhs(0, lhs)

    def parse_binop_rhs(self, min_prec: int, lhs: Expr) -> Expr:
        while True:
            tok_prec = self._precedence()
            if tok_prec < min_prec:
                return lhs

            op = self.current
            self.next_token()
            rhs = self.parse_primary()

            # A tighter operator to the right takes rhs as its own left side.
            if tok_prec < self._precedence():
                rhs = self.parse_binop_rhs(tok_prec + 1, rhs)

            lhs = BinaryOp(op=op.value, left=lhs, right=rhs, location=op.location)

    # -------------------------------------------------------------------
    # Top-level constructs
    # -------------------------------------------------------------------

    def parse_prototype(self) -> Prototype:
        name_tok = self._expect(TokenType.IDENT, "Expected function name in prototype")
        if not self.current.is_char("("):
            raise self._error(f"Expected '(' in prototype, got {self.current.describe()}")

        params: list[str] = []
        while self.next_token().type == TokenType.IDENT:
            params.append(self.current.value)

        self._expect_char(")", "Expected ')' in prototype")
        return Prototype(name=name_tok.value, params=params, location=name_tok.location)

    def parse_function_definition(self) -> FunctionDefinition:
        loc = self.current.location
        self._expect(TokenType.FN, "Expected 'fn'")
        proto = self.parse_prototype()
        body = self.parse_expression()
        return FunctionDefinition(proto=proto, body=body, location=loc)

    def parse_import(self) -> Prototype:
        self._expect(TokenType.IMPORT, "Expected 'import'")
        return self.parse_prototype()

    def parse_top_level_expression(self) -> FunctionDefinition:
        loc = self.current.location
        body = self.parse_expression()
        proto = Prototype(name=ANONYMOUS_NAME, params=[], location=loc)
        return FunctionDefinition(proto=proto, body=body, location=loc)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_expression(source: str, filename: str = "<string>") -> Expr:
    """Parse a single expression from a string."""
    parser = Parser(Lexer.from_source(source, filename))
    parser.next_token()
    return parser.parse_expression()

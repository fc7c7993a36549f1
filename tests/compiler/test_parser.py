"""tlang Parser Tests — precedence climbing, calls, conditionals, prototypes."""

import pytest

from tlang.ast_nodes import (
    NumberLiteral, VariableRef, BinaryOp, Call, Conditional,
    Prototype, FunctionDefinition, ANONYMOUS_NAME,
)
from tlang.errors import ParseError, ErrorKind
from tlang.lexer import Lexer, TokenType
from tlang.parser import Parser, parse_expression


def parser_for(source):
    parser = Parser(Lexer.from_source(source))
    parser.next_token()
    return parser


def shape(node):
    """Render an expression tree as a fully parenthesized string."""
    if isinstance(node, NumberLiteral):
        return f"{node.value:g}"
    if isinstance(node, VariableRef):
        return node.name
    if isinstance(node, BinaryOp):
        return f"({shape(node.left)}{node.op}{shape(node.right)})"
    if isinstance(node, Call):
        return f"{node.callee}[{','.join(shape(a) for a in node.args)}]"
    if isinstance(node, Conditional):
        return f"if {shape(node.condition)} then {shape(node.then_branch)} else {shape(node.else_branch)}"
    raise TypeError(node)


class TestPrecedence:
    """Binding powers: comparisons 10, additive 20, multiplicative 40."""

    @pytest.mark.parametrize("source,expected", [
        ("1+2*3", "(1+(2*3))"),
        ("(1+2)*3", "((1+2)*3)"),
        ("10-2-3", "((10-2)-3)"),
        ("8/4/2", "((8/4)/2)"),
        ("2*3<10", "((2*3)<10)"),
        ("a<b+c*d", "(a<(b+(c*d)))"),
        ("a*b+c*d", "((a*b)+(c*d))"),
        ("a+b*c-d", "((a+(b*c))-d)"),
        ("a=b<c", "((a=b)<c)"),
    ])
    def test_grouping(self, source, expected):
        assert shape(parse_expression(source)) == expected

    def test_unknown_operator_ends_expression(self):
        parser = parser_for("1+2 % 3")
        expr = parser.parse_expression()
        assert shape(expr) == "(1+2)"
        assert parser.current.is_char("%")

    def test_operator_location(self):
        expr = parse_expression("1 + 2")
        assert expr.location.column == 3


class TestPrimary:
    """Literals, variables, calls and parenthesized expressions."""

    def test_number(self):
        expr = parse_expression("4.5")
        assert isinstance(expr, NumberLiteral)
        assert expr.value == 4.5

    def test_variable(self):
        expr = parse_expression("x")
        assert isinstance(expr, VariableRef)
        assert expr.name == "x"

    def test_call_without_arguments(self):
        expr = parse_expression("f()")
        assert isinstance(expr, Call)
        assert expr.callee == "f"
        assert expr.args == []

    def test_call_arguments_are_full_expressions(self):
        assert shape(parse_expression("f(a+1, g(b), 2*c)")) == "f[(a+1),g[b],(2*c)]"

    def test_trailing_comma_is_error(self):
        with pytest.raises(ParseError):
            parse_expression("f(a,)")

    def test_missing_close_paren_in_call(self):
        with pytest.raises(ParseError, match="Expected '\\)' or ','"):
            parse_expression("f(a b)")

    def test_unbalanced_paren(self):
        with pytest.raises(ParseError, match="Expected '\\)'"):
            parse_expression("(1+2")

    def test_unexpected_token(self):
        with pytest.raises(ParseError) as exc_info:
            parse_expression(")")
        assert exc_info.value.error.kind == ErrorKind.SYNTAX_ERROR
        assert exc_info.value.error.location.column == 1

    def test_stray_decimal_point_is_rejected(self):
        parser = parser_for("1.2.3")
        expr = parser.parse_expression()
        assert expr.value == 1.2
        with pytest.raises(ParseError):
            parser.parse_expression()


class TestConditional:
    """`if c then a else b` requires all three parts."""

    def test_shape(self):
        expr = parse_expression("if x < 3 then 1 else f(x)")
        assert isinstance(expr, Conditional)
        assert shape(expr) == "if (x<3) then 1 else f[x]"

    def test_conditional_as_operand(self):
        assert shape(parse_expression("1 + if a then b else c")) == "(1+if a then b else c)"

    def test_missing_else_is_syntax_error(self):
        with pytest.raises(ParseError, match="else") as exc_info:
            parse_expression("if 1 then 10")
        assert exc_info.value.error.kind == ErrorKind.SYNTAX_ERROR

    def test_missing_then_is_syntax_error(self):
        with pytest.raises(ParseError, match="then"):
            parse_expression("if 1 10 else 20")


class TestPrototypes:
    """Prototypes: name, '(', whitespace-separated parameters, ')'."""

    def test_definition(self):
        defn = parser_for("fn add(a b) a+b").parse_function_definition()
        assert isinstance(defn, FunctionDefinition)
        assert defn.name == "add"
        assert defn.proto.params == ["a", "b"]
        assert defn.proto.arity == 2
        assert shape(defn.body) == "(a+b)"
        assert not defn.is_anonymous

    def test_no_parameters(self):
        defn = parser_for("fn one() 1").parse_function_definition()
        assert defn.proto.params == []

    def test_duplicate_parameters_are_kept(self):
        proto = parser_for("import f(x x)").parse_import()
        assert proto.params == ["x", "x"]

    def test_import(self):
        proto = parser_for("import sin(x)").parse_import()
        assert isinstance(proto, Prototype)
        assert str(proto) == "sin(x)"

    def test_missing_name(self):
        with pytest.raises(ParseError, match="function name"):
            parser_for("fn (x) x").parse_function_definition()

    def test_missing_open_paren(self):
        with pytest.raises(ParseError, match="'\\('"):
            parser_for("fn f x) x").parse_function_definition()

    def test_comma_between_parameters_is_error(self):
        with pytest.raises(ParseError, match="'\\)'"):
            parser_for("fn f(a, b) a").parse_function_definition()

    def test_missing_body(self):
        with pytest.raises(ParseError):
            parser_for("fn f(x)").parse_function_definition()


class TestTopLevel:
    """Bare expressions are wrapped as anonymous zero-parameter functions."""

    def test_wrapped_under_reserved_name(self):
        defn = parser_for("1+2").parse_top_level_expression()
        assert defn.name == ANONYMOUS_NAME
        assert defn.is_anonymous
        assert defn.proto.params == []

    def test_parser_leaves_following_token(self):
        parser = parser_for("1+2; fn")
        parser.parse_top_level_expression()
        assert parser.current.is_char(";")
        parser.skip_token()
        assert parser.current.type == TokenType.FN

"""tlang REPL Tests — end-to-end sessions executing real machine code.

Each test runs a whole program through the evaluation loop and inspects the
outcome recorded for every construct.
"""

import io
import json

import pytest

from tlang.ast_nodes import ANONYMOUS_NAME
from tlang.config import TlangConfig
from tlang.errors import ErrorKind
from tlang.repl import Repl, OutcomeKind, evaluate


def run(source, **config):
    config.setdefault("show_prompt", False)
    return evaluate(source, TlangConfig(**config))


def values(outcomes):
    return [o.value for o in outcomes if o.kind == OutcomeKind.VALUE]


def kinds(outcomes):
    return [o.kind for o in outcomes]


def errors(outcomes):
    return [o.error for o in outcomes if o.kind == OutcomeKind.ERROR]


class TestArithmetic:
    """Precedence and associativity survive all the way to execution."""

    @pytest.mark.parametrize("source,expected", [
        ("1+2*3", 7.0),
        ("(1+2)*3", 9.0),
        ("10-2-3", 5.0),
        ("2*3<10", 1.0),
        ("2*3>10", 0.0),
        ("4=4", 1.0),
        ("1/4", 0.25),
        ("1 # comment\n+2", 3.0),
    ])
    def test_expression_value(self, source, expected):
        assert values(run(source)) == [expected]

    def test_unoptimized(self):
        assert values(run("1+2*3", opt_level=0)) == [7.0]


class TestFunctions:
    """Named functions stay callable for the rest of the session."""

    def test_define_and_call(self):
        outcomes = run("fn sq(x) x*x; sq(5)")
        assert kinds(outcomes) == [OutcomeKind.DEFINITION, OutcomeKind.VALUE]
        assert outcomes[0].name == "sq"
        assert values(outcomes) == [25.0]

    def test_wrong_arity_is_reported_not_fatal(self):
        outcomes = run("fn sq(x) x*x; sq(1,2); sq(3)")
        errs = errors(outcomes)
        assert len(errs) == 1
        assert errs[0].kind == ErrorKind.SEMANTIC_ERROR
        assert values(outcomes) == [9.0]

    def test_functions_calling_functions(self):
        source = "fn sq(x) x*x; fn sumsq(a b) sq(a) + sq(b); sumsq(3, 4)"
        assert values(run(source)) == [25.0]

    def test_recursion(self):
        source = "fn fib(n) if n < 2 then n else fib(n-1) + fib(n-2); fib(10)"
        assert values(run(source)) == [55.0]

    def test_duplicate_parameter_resolves_to_last(self):
        assert values(run("fn pick(x x) x; pick(1, 2)")) == [2.0]

    def test_redefinition_replaces_function(self):
        source = "fn bump(x) x+1; bump(1); fn bump(x) x+2; bump(1)"
        assert values(run(source)) == [2.0, 3.0]

    def test_failed_definition_is_not_callable(self):
        outcomes = run("fn broken(x) y; broken(1)")
        assert values(outcomes) == []
        assert [e.kind for e in errors(outcomes)] == [
            ErrorKind.SEMANTIC_ERROR, ErrorKind.SEMANTIC_ERROR,
        ]
        assert "Unknown function referenced 'broken'" in errors(outcomes)[1].message

    def test_failed_redefinition_keeps_wider_signature(self):
        outcomes = run("fn add(x y) x+y; fn add(x) z; add(1); add(1, 2)")
        errs = errors(outcomes)
        assert len(errs) == 2
        assert "Unknown variable name 'z'" in errs[0].message
        assert errs[1].details == {"name": "add", "expected": 2, "actual": 1}
        assert values(outcomes) == [3.0]

    def test_failed_redefinition_keeps_narrower_signature(self):
        outcomes = run("fn ident(x) x; fn ident(x y) z; ident(1, 2); ident(5)")
        errs = errors(outcomes)
        assert len(errs) == 2
        assert errs[1].details == {"name": "ident", "expected": 1, "actual": 2}
        assert values(outcomes) == [5.0]

    def test_failed_definition_restores_import(self):
        source = "import twice(a); fn twice(a b) c; fn twice(a) a * 2; twice(4)"
        assert values(run(source)) == [8.0]


class TestImports:
    """Imports declare external or forward functions."""

    def test_forward_reference(self):
        source = """
import twice(a);
fn plusone(x) twice(x) + 1;
fn twice(a) a * 2;
plusone(3)
"""
        outcomes = run(source)
        assert kinds(outcomes) == [
            OutcomeKind.IMPORT, OutcomeKind.DEFINITION,
            OutcomeKind.DEFINITION, OutcomeKind.VALUE,
        ]
        assert values(outcomes) == [7.0]

    def test_call_before_definition_is_unresolved(self):
        outcomes = run("import twice(a); twice(1); fn twice(a) a * 2; twice(1)")
        errs = errors(outcomes)
        assert len(errs) == 1
        assert "Unresolved external function 'twice'" in errs[0].message
        assert values(outcomes) == [2.0]

    def test_host_math_library(self):
        assert values(run("import sin(x); sin(0)")) == [0.0]

    def test_never_defined_import(self):
        outcomes = run("import nowhere(x); nowhere(1)")
        assert values(outcomes) == []
        assert errors(outcomes)[0].details == {"name": "nowhere"}


class TestConditionals:
    """if/then/else is an expression."""

    @pytest.mark.parametrize("source,expected", [
        ("if 1 then 10 else 20", 10.0),
        ("if 0 then 10 else 20", 20.0),
        ("if 2 < 1 then 10 else 20", 20.0),
        ("5 + if 1 then 1 else 2", 6.0),
    ])
    def test_value(self, source, expected):
        assert values(run(source)) == [expected]

    def test_missing_else_is_syntax_error(self):
        outcomes = run("if 1 then 10; 5")
        assert errors(outcomes)[0].kind == ErrorKind.SYNTAX_ERROR
        assert values(outcomes) == [5.0]


class TestDisposability:
    """Top-level expressions never outlive their own evaluation."""

    def test_consecutive_expressions(self):
        assert values(run("1; 2; 3")) == [1.0, 2.0, 3.0]

    def test_named_functions_undisturbed(self):
        assert values(run("fn sq(x) x*x; 1; 2; sq(3); sq(4)")) == [1.0, 2.0, 9.0, 16.0]

    def test_anonymous_function_removed(self):
        with Repl(io.StringIO("fn sq(x) x*x; sq(2)"), TlangConfig(show_prompt=False)) as repl:
            repl.run()
            assert ANONYMOUS_NAME not in repl.state.prototypes
            assert ANONYMOUS_NAME not in repl.engine.resident_symbols
            assert "sq" in repl.engine.resident_symbols


class TestRecovery:
    """Errors never end the session."""

    def test_codegen_error_keeps_next_token(self):
        outcomes = run("fn f(x) y 3")
        assert kinds(outcomes) == [OutcomeKind.ERROR, OutcomeKind.VALUE]
        assert values(outcomes) == [3.0]

    def test_syntax_error_drops_one_token(self):
        outcomes = run("fn (x) 4")
        assert [e.kind for e in errors(outcomes)] == [
            ErrorKind.SYNTAX_ERROR, ErrorKind.SEMANTIC_ERROR, ErrorKind.SYNTAX_ERROR,
        ]
        assert values(outcomes) == [4.0]

    def test_semicolons_are_ignored(self):
        assert values(run(";;; 1 ;;")) == [1.0]

    def test_exit_stops_session(self):
        outcomes = run("1; exit; 2")
        assert kinds(outcomes) == [OutcomeKind.VALUE, OutcomeKind.EXIT]

    def test_empty_input(self):
        assert run("") == []


class TestSession:
    """Repl.evaluate feeds more input to a live session."""

    def test_incremental_evaluation(self):
        with Repl(io.StringIO(""), TlangConfig(show_prompt=False)) as repl:
            assert kinds(repl.evaluate("fn sq(x) x*x")) == [OutcomeKind.DEFINITION]
            assert values(repl.evaluate("sq(4)")) == [16.0]
            assert len(repl.outcomes) == 2


class TestTranscript:
    """What a user actually sees."""

    def test_text_output(self):
        out = io.StringIO()
        config = TlangConfig(color="never")
        evaluate("fn sq(x) x*x; sq(3); exit", config, out=out)
        text = out.getvalue()
        assert text.startswith("tlang > ")
        assert "Read function definition: sq" in text
        assert "Evaluated to 9.000000" in text
        assert text.rstrip().endswith("exiting...")

    def test_error_output(self):
        out = io.StringIO()
        evaluate("fn f(x) y", TlangConfig(show_prompt=False, color="never"), out=out)
        assert "error: [semantic_error]" in out.getvalue()
        assert "Unknown variable name 'y'" in out.getvalue()

    def test_dump_ir(self):
        outcomes = run("fn sq(x) x*x", dump_ir=True)
        assert "define double @sq(double %x)" in outcomes[0].ir

    def test_dump_on_exit(self):
        out = io.StringIO()
        config = TlangConfig(show_prompt=False, dump_on_exit=True, color="never")
        evaluate("fn sq(x) x*x; fn cube(x) x*x*x", config, out=out)
        text = out.getvalue()
        assert "define double @sq(double %x)" in text
        assert "define double @cube(double %x)" in text

    def test_dump_on_exit_skips_unpublished(self):
        out = io.StringIO()
        config = TlangConfig(show_prompt=False, dump_on_exit=True, color="never")
        evaluate("fn sq(x) x*x; import later(x); fn waits(x) later(x)", config, out=out)
        text = out.getvalue()
        assert "define double @sq(double %x)" in text
        assert "@waits" not in text

    def test_json_output(self):
        out = io.StringIO()
        config = TlangConfig(output_format="json")
        evaluate("fn sq(x) x*x; sq(3); sq(1,2)", config, out=out)
        records = [json.loads(line) for line in out.getvalue().splitlines()]
        assert records[0] == {"kind": "definition", "name": "sq"}
        assert records[1] == {"kind": "value", "value": 9.0}
        assert records[2]["kind"] == "error"
        assert records[2]["error"]["kind"] == "semantic_error"

"""
Unit tests for the tree query library (psce.checks.utils).

Tests demonstrate positive matches, negative matches, and edge cases.
"""
import pytest

from helpers import all_descendants, first_descendant, last_descendant, parse

from psce.checks.utils import (
    first_ancestor,
    first_ancestor_of_kind,
    first_child,
    get_class_symbol_from_def,
    get_function_symbol_from_def,
    get_symbol_from_tree,
    has_descendant,
    name_from_expression,
    non_tuple_parameters,
    non_whitespace_tokens,
    positional_parameters,
    tokens,
    top_level_function_defs,
)
from psce.parser import lex
from psce.symbols import IllegalStateError, SymbolKind
from psce.tree import (
    WHITESPACE_TOKEN_TYPES,
    FunctionDef,
    Kind,
    Name,
    Parameter,
    ParameterList,
    Token,
    TokenType,
    TupleParameter,
)


def is_kind(kind):
    return lambda t: t.kind == kind


def is_name(value):
    return lambda t: isinstance(t, Name) and t.name == value


def last_function(*lines):
    return last_descendant(parse(*lines), is_kind(Kind.FUNCDEF))


# ---------------------------------------------------------------------------
# Ancestors
# ---------------------------------------------------------------------------

class TestAncestors:

    def test_first_ancestor_of_kind(self):
        root = parse(
            "class A:",
            "  def foo(): pass",
        )
        assert first_ancestor_of_kind(root, Kind.CLASSDEF) is None

        class_def = root.statements[0]
        assert first_ancestor_of_kind(class_def, Kind.FILE_INPUT, Kind.CLASSDEF) is root

        func_def = class_def.body[0]
        assert first_ancestor_of_kind(func_def, Kind.FILE_INPUT) is root
        assert first_ancestor_of_kind(func_def, Kind.CLASSDEF) is class_def

    def test_root_has_no_ancestor_for_any_kind(self):
        root = parse("x = 1")
        assert first_ancestor_of_kind(root, *Kind) is None
        assert first_ancestor(root, lambda t: True) is None

    def test_nearest_of_nested_same_kind(self):
        root = parse(
            "while True:",
            "  while True:",
            "    pass",
        )
        outer_while = root.statements[0]
        inner_while = outer_while.body[0]
        pass_statement = inner_while.body[0]

        assert pass_statement.kind == Kind.PASS_STMT
        assert first_ancestor_of_kind(pass_statement, Kind.WHILE_STMT) is inner_while
        assert first_ancestor_of_kind(inner_while, Kind.WHILE_STMT) is outer_while

    def test_node_itself_is_not_an_ancestor(self):
        root = parse("while True:\n  pass")
        outer_while = root.statements[0]
        assert first_ancestor_of_kind(outer_while, Kind.WHILE_STMT) is None

    def test_first_ancestor_with_predicate(self):
        root = parse(
            "def outer():",
            "  def inner():",
            "    pass",
        )
        outer_function = root.statements[0]
        inner_function = outer_function.body[0]
        pass_statement = inner_function.body[0]

        def is_outer_function(tree):
            return isinstance(tree, FunctionDef) and tree.name.name == "outer"

        assert first_ancestor(pass_statement, is_outer_function) is outer_function
        assert first_ancestor(pass_statement, lambda t: t.kind == Kind.IF_STMT) is None


# ---------------------------------------------------------------------------
# Descendants
# ---------------------------------------------------------------------------

class TestDescendants:

    def test_has_descendant(self):
        root = parse(
            "class A:",
            "  def foo(): pass",
        )
        assert has_descendant(root, is_kind(Kind.PASS_STMT))
        assert has_descendant(root, is_name("foo"))
        assert not has_descendant(root, is_name("bar"))
        assert not has_descendant(root, is_kind(Kind.IF_STMT))

    def test_has_descendant_stays_in_subtree(self):
        root = parse(
            "def f():",
            "  x = 1",
            "def g():",
            "  y = 2",
        )
        f = root.statements[0]
        assert has_descendant(f, is_name("x"))
        assert not has_descendant(f, is_name("y"))
        assert has_descendant(root, is_name("y"))

    def test_has_descendant_excludes_node_itself(self):
        root = parse("def f(): pass")
        f = root.statements[0]
        assert not has_descendant(f, lambda t: t is f)

    def test_first_child(self):
        root = parse("def f(): pass")
        f = root.statements[0]
        assert first_child(f, is_kind(Kind.NAME)) is f.name
        assert first_child(f, is_kind(Kind.IF_STMT)) is None


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class TestTokens:

    def test_tokens_of_file_are_the_whole_token_stream(self):
        source = "if foo:\n  pass"
        root = parse(source)

        expected = [(t.type, t.value, t.start) for t in lex(source)]
        assert [(t.type, t.value, t.start) for t in tokens(root)] == expected
        assert tokens(root)[-1].type == TokenType.ENDMARKER

    def test_tokens_of_a_token(self):
        root = parse("if foo:\n  pass")
        last = tokens(root)[-1]
        assert tokens(last) == [last]

    def test_tokens_are_concatenation_of_children(self):
        root = parse(
            "def f(a, b=1):",
            "    if a:",
            "        return b  # comment",
            "    return [x for x in a]",
        )
        f = root.statements[0]
        from_children = []
        for child in f.children:
            from_children.extend(tokens(child))
        assert tokens(f) == from_children

    def test_non_whitespace_tokens(self):
        root = parse("if foo:\n  pass")
        if_statement = root.statements[0]

        result = non_whitespace_tokens(if_statement)

        for token in result:
            assert token.type not in WHITESPACE_TOKEN_TYPES
        assert len(result) == 4
        assert [t.value for t in result] == ["if", "foo", ":", "pass"]

    def test_non_whitespace_tokens_only_drops_layout(self):
        source = "def f():\n    x = 1\n    return x\n"
        root = parse(source)
        all_tokens = tokens(root)
        kept = non_whitespace_tokens(root)
        assert kept == [t for t in all_tokens if t.type not in WHITESPACE_TOKEN_TYPES]
        assert any(t.type == TokenType.INDENT for t in all_tokens)
        assert any(t.type == TokenType.DEDENT for t in all_tokens)


# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------

class TestSymbols:

    def test_get_symbol_from_tree(self):
        assert get_symbol_from_tree(None) is None

        root = parse(
            "x = 42",
            "x",
        )
        expression = last_descendant(root, is_name("x"))
        assert get_symbol_from_tree(expression) is expression.symbol
        assert expression.symbol is not None
        assert expression.symbol.name == "x"

        root = parse("foo()")
        call = last_descendant(root, is_kind(Kind.CALL_EXPR))
        assert get_symbol_from_tree(call) is None

    def test_get_class_symbol_from_def(self):
        root = parse(
            "class A:",
            "  def foo(): pass",
        )
        class_def = last_descendant(root, is_kind(Kind.CLASSDEF))
        symbol_a = class_def.name.symbol

        assert symbol_a is not None
        assert symbol_a.kind == SymbolKind.CLASS
        assert get_class_symbol_from_def(class_def) is symbol_a
        assert get_class_symbol_from_def(None) is None

    def test_get_class_symbol_from_def_reassigned(self):
        root = parse(
            "class A:",
            "    pass",
            "A = 42",
        )
        class_def = last_descendant(root, is_kind(Kind.CLASSDEF))
        assert get_class_symbol_from_def(class_def) is None

    def test_get_class_symbol_from_def_without_symbols(self):
        root = parse("class A:\n  def foo(): pass", with_symbols=False)
        class_def = last_descendant(root, is_kind(Kind.CLASSDEF))
        with pytest.raises(IllegalStateError):
            get_class_symbol_from_def(class_def)

    def test_get_function_symbol_from_def(self):
        function_def = last_function("def foo(): pass")
        symbol_foo = function_def.name.symbol

        assert symbol_foo.kind == SymbolKind.FUNCTION
        assert get_function_symbol_from_def(function_def) is symbol_foo
        assert get_function_symbol_from_def(None) is None

    def test_get_function_symbol_from_def_reassigned(self):
        function_def = last_function(
            "def foo():",
            "    pass",
            "foo = 42",
        )
        assert get_function_symbol_from_def(function_def) is None

    def test_get_function_symbol_from_def_redefined_as_function(self):
        function_def = last_function(
            "def foo(): pass",
            "def foo(): return 1",
        )
        symbol = get_function_symbol_from_def(function_def)
        assert symbol is not None
        assert len(symbol.binding_usages()) == 2

    def test_get_function_symbol_from_def_without_symbols(self):
        root = parse("def foo(): pass", with_symbols=False)
        function_def = last_descendant(root, is_kind(Kind.FUNCDEF))
        with pytest.raises(IllegalStateError):
            get_function_symbol_from_def(function_def)

    def test_name_from_expression(self):
        root = parse("os.path.join(a, b)")
        call = first_descendant(root, is_kind(Kind.CALL_EXPR))
        callee = first_child(call, lambda t: not isinstance(t, Token))
        assert name_from_expression(callee) == "os.path.join"
        assert name_from_expression(first_descendant(root, is_name("a"))) == "a"
        assert name_from_expression(call) is None
        assert name_from_expression(None) is None


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

def parameter_names(parameters):
    return [p.name.name if p.name is not None else p.star_token.value for p in parameters]


class TestParameters:

    def test_non_tuple_parameters(self):
        function_def = last_function("def foo(): pass")
        assert non_tuple_parameters(function_def) == []

        function_def = last_function("def foo(param1, param2): pass")
        assert non_tuple_parameters(function_def) == function_def.parameters.non_tuple()
        assert parameter_names(non_tuple_parameters(function_def)) == ["param1", "param2"]

    def test_positional_parameters_empty(self):
        function_def = last_function("def foo(): pass")
        assert positional_parameters(function_def) == []

    def test_positional_parameters_plain(self):
        function_def = last_function("def foo(param1, param2): pass")
        assert positional_parameters(function_def) == function_def.parameters.all()

    def test_positional_parameters_with_star_args(self):
        function_def = last_function("def foo(param1, *param2): pass")
        assert positional_parameters(function_def) == function_def.parameters.all()
        assert function_def.parameters.all()[1].star_token.value == "*"

    def test_positional_parameters_stop_at_keyword_only_marker(self):
        function_def = last_function("def foo(param1, param2, *, kw1, kw2): pass")
        parameters = function_def.parameters.all()
        assert parameter_names(parameters) == ["param1", "param2", "*", "kw1", "kw2"]
        assert parameters[2].is_keyword_only_marker
        assert positional_parameters(function_def) == parameters[0:2]

    def test_positional_parameters_skip_positional_only_marker(self):
        function_def = last_function("def foo(param1, /, param2, *, kw1, kw2): pass")
        parameters = function_def.parameters.all()
        assert parameters[1].is_positional_only_marker
        assert positional_parameters(function_def) == [parameters[0], parameters[2]]

    def test_positional_parameters_with_defaults_and_annotations(self):
        function_def = last_function("def foo(a: int = 1, /, b=2 * 3, *, k=4, **kw): pass")
        parameters = function_def.parameters.all()
        assert parameter_names(parameters) == ["a", "/", "b", "*", "k", "kw"]
        assert parameters[5].star_token.value == "**"
        assert parameter_names(positional_parameters(function_def)) == ["a", "b"]

    def test_positional_parameters_with_tuple_parameter(self):
        # Tuple parameters only exist in legacy syntax, so build the tree by hand.
        star = Token(TokenType.OP, "*", 1, 12, 1, 13, index=0)
        entries = [
            TupleParameter([Parameter(Name("param1")), Parameter(Name("param2"))]),
            Parameter(None, star),
            Parameter(Name("kw1")),
        ]
        function_def = FunctionDef(Name("foo"), ParameterList(entries), [])

        assert positional_parameters(function_def) == []
        assert non_tuple_parameters(function_def) == entries[1:]

    def test_lambda_parameters(self):
        root = parse("f = lambda a, *, b: a + b")
        lambda_expression = first_descendant(root, is_kind(Kind.LAMBDA))
        assert parameter_names(lambda_expression.parameters.all()) == ["a", "*", "b"]


# ---------------------------------------------------------------------------
# Class bodies
# ---------------------------------------------------------------------------

class TestTopLevelFunctionDefs:

    def test_descends_into_conditional_branches(self):
        root = parse(
            "class A:",
            "    x = True",
            "    def foo(self): pass",
            "    if x:",
            "        def bar(self, x): return 1",
            "    else:",
            "        def baz(self, x, y): return x + y",
        )
        class_def = last_descendant(root, is_kind(Kind.CLASSDEF))
        function_defs = all_descendants(root, is_kind(Kind.FUNCDEF))

        result = top_level_function_defs(class_def)
        assert len(function_defs) == 3
        assert all(f in result for f in function_defs)

    def test_stops_at_nested_scopes(self):
        root = parse(
            "class A:",
            "    x = True",
            "    def foo(self):",
            "        def foo2(x, y): return x + y",
            "        return foo2(1, 1)",
            "    class B:",
            "        def bar(self): pass",
        )
        class_def = first_child(root, is_kind(Kind.CLASSDEF))
        foo_def = last_descendant(
            root, lambda t: isinstance(t, FunctionDef) and t.name.name == "foo"
        )
        assert top_level_function_defs(class_def) == [foo_def]

    def test_deeply_nested_conditionals(self):
        root = parse(
            "class A:",
            "    if x:",
            "        if y:",
            "            def deep(self): pass",
            "    try:",
            "        def guarded(self): pass",
            "    except ImportError:",
            "        pass",
        )
        class_def = root.statements[0]
        names = [f.name.name for f in top_level_function_defs(class_def)]
        assert names == ["deep", "guarded"]

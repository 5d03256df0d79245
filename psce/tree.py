"""
Syntax tree node model.

The tree is built once per file by psce.parser and is read-only afterwards.
Every node knows its kind, its ordered children and its parent. Tokens are
leaf nodes, so the tokens of any node are the in-order concatenation of the
tokens of its children.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterator, List, Optional, Tuple


class Kind(Enum):
    FILE_INPUT = "file_input"
    TOKEN = "token"
    NAME = "name"

    FUNCDEF = "funcdef"
    CLASSDEF = "classdef"
    PARAMETER_LIST = "parameter_list"
    PARAMETER = "parameter"
    TUPLE_PARAMETER = "tuple_parameter"
    LAMBDA = "lambda"

    IF_STMT = "if_stmt"
    ELSE_CLAUSE = "else_clause"
    WHILE_STMT = "while_stmt"
    FOR_STMT = "for_stmt"
    TRY_STMT = "try_stmt"
    EXCEPT_CLAUSE = "except_clause"
    FINALLY_CLAUSE = "finally_clause"
    WITH_STMT = "with_stmt"
    WITH_ITEM = "with_item"
    MATCH_STMT = "match_stmt"
    CASE_BLOCK = "case_block"

    RAISE_STMT = "raise_stmt"
    RETURN_STMT = "return_stmt"
    PASS_STMT = "pass_stmt"
    BREAK_STMT = "break_stmt"
    CONTINUE_STMT = "continue_stmt"
    DEL_STMT = "del_stmt"
    ASSERT_STMT = "assert_stmt"
    GLOBAL_STMT = "global_stmt"
    NONLOCAL_STMT = "nonlocal_stmt"
    IMPORT_NAME = "import_name"
    IMPORT_FROM = "import_from"
    ALIASED_NAME = "aliased_name"
    ASSIGNMENT_STMT = "assignment_stmt"
    ANNOTATED_ASSIGNMENT = "annotated_assignment"
    COMPOUND_ASSIGNMENT = "compound_assignment"
    EXPRESSION_STMT = "expression_stmt"

    CALL_EXPR = "call_expr"
    ARGUMENT = "argument"
    QUALIFIED_EXPR = "qualified_expr"
    SUBSCRIPTION = "subscription"
    SLICE_ITEM = "slice_item"
    STARRED_EXPR = "starred_expr"
    CONDITIONAL_EXPR = "conditional_expr"
    ASSIGNMENT_EXPRESSION = "assignment_expression"
    AWAIT = "await"
    YIELD_EXPR = "yield_expr"
    BINARY_EXPR = "binary_expr"
    UNARY_EXPR = "unary_expr"
    COMPARISON = "comparison"
    LITERAL = "literal"
    STRING_LITERAL = "string_literal"
    TUPLE = "tuple"
    LIST_LITERAL = "list_literal"
    SET_LITERAL = "set_literal"
    DICTIONARY_LITERAL = "dictionary_literal"
    LIST_COMPREHENSION = "list_comprehension"
    SET_COMPREHENSION = "set_comprehension"
    DICT_COMPREHENSION = "dict_comprehension"
    GENERATOR_EXPR = "generator_expr"
    COMP_FOR = "comp_for"

    STATEMENT = "statement"
    EXPRESSION = "expression"


class TokenType(Enum):
    NAME = "name"
    KEYWORD = "keyword"
    NUMBER = "number"
    STRING = "string"
    OP = "op"
    NEWLINE = "newline"
    INDENT = "indent"
    DEDENT = "dedent"
    ENDMARKER = "endmarker"
    OTHER = "other"


# Layout-only token types; they carry no syntax of their own.
WHITESPACE_TOKEN_TYPES = frozenset({TokenType.NEWLINE, TokenType.INDENT, TokenType.DEDENT})


class Node:
    """
    Base tree node.

    Children and parent are assigned once by the tree builder through
    _freeze(); nothing else writes to a node.
    """

    __slots__ = ("kind", "_children", "_parent")

    def __init__(self, kind: Kind):
        self.kind = kind
        self._children: Tuple["Node", ...] = ()
        self._parent: Optional["Node"] = None

    @property
    def children(self) -> Tuple["Node", ...]:
        return self._children

    @property
    def parent(self) -> Optional["Node"]:
        return self._parent

    def is_kind(self, *kinds: Kind) -> bool:
        return self.kind in kinds

    def first_token(self) -> Optional["Token"]:
        node = self
        while not isinstance(node, Token):
            if not node._children:
                return None
            node = node._children[0]
        return node

    def _freeze(self, children: List["Node"]) -> None:
        self._children = tuple(children)
        for child in self._children:
            child._parent = self

    def __repr__(self) -> str:
        first = self.first_token()
        where = f" {first.line}:{first.column}" if first is not None else ""
        return f"<{type(self).__name__} {self.kind.value}{where}>"


class Token(Node):
    """A lexical token. Tokens are the leaves of the tree."""

    __slots__ = ("type", "value", "line", "column", "end_line", "end_column", "index", "trivia")

    def __init__(
        self,
        type: TokenType,
        value: str,
        line: int,
        column: int,
        end_line: int,
        end_column: int,
        index: int,
        trivia: Tuple[str, ...] = (),
    ):
        super().__init__(Kind.TOKEN)
        self.type = type
        self.value = value
        self.line = line
        self.column = column
        self.end_line = end_line
        self.end_column = end_column
        self.index = index  # position in the file's token stream
        self.trivia = trivia  # comments preceding the token

    @property
    def start(self) -> Tuple[int, int]:
        return (self.line, self.column)

    @property
    def end(self) -> Tuple[int, int]:
        return (self.end_line, self.end_column)

    def first_token(self) -> "Token":
        return self

    def __repr__(self) -> str:
        return f"<Token {self.type.value} {self.value!r} {self.line}:{self.column}>"


# Capability mixins

class HasSymbol(ABC):
    """Mixin for nodes that may carry a resolved symbol."""

    __slots__ = ()

    @property
    @abstractmethod
    def symbol(self):
        ...


class Name(HasSymbol, Node):
    __slots__ = ("name", "is_binding", "_symbol")

    def __init__(self, name: str, is_binding: bool = False):
        super().__init__(Kind.NAME)
        self.name = name
        self.is_binding = is_binding
        self._symbol = None

    @property
    def symbol(self):
        return self._symbol

    def _bind(self, symbol) -> None:
        self._symbol = symbol

    @property
    def token(self) -> Token:
        return self._children[0]


class FileInput(Node):
    __slots__ = ("statements", "docstring")

    def __init__(self, statements: List[Node], docstring: Optional[str] = None):
        super().__init__(Kind.FILE_INPUT)
        self.statements = tuple(statements)
        self.docstring = docstring


class Parameter(Node):
    """
    A function or lambda parameter.

    Nameless parameters are markers: star_token "*" separates keyword-only
    parameters, star_token "/" closes positional-only ones.
    """

    __slots__ = ("name", "star_token", "annotation", "default_value")

    def __init__(
        self,
        name: Optional[Name],
        star_token: Optional[Token] = None,
        annotation: Optional[Node] = None,
        default_value: Optional[Node] = None,
    ):
        super().__init__(Kind.PARAMETER)
        self.name = name
        self.star_token = star_token
        self.annotation = annotation
        self.default_value = default_value

    @property
    def is_keyword_only_marker(self) -> bool:
        return self.name is None and self.star_token is not None and self.star_token.value == "*"

    @property
    def is_positional_only_marker(self) -> bool:
        return self.name is None and self.star_token is not None and self.star_token.value == "/"


class TupleParameter(Node):
    """Legacy destructuring parameter: def f((a, b)): ..."""

    __slots__ = ("parameters",)

    def __init__(self, parameters: List[Node]):
        super().__init__(Kind.TUPLE_PARAMETER)
        self.parameters = tuple(parameters)


class ParameterList(Node):
    __slots__ = ("_parameters",)

    def __init__(self, parameters: List[Node]):
        super().__init__(Kind.PARAMETER_LIST)
        self._parameters = tuple(parameters)

    def all(self) -> List[Node]:
        return list(self._parameters)

    def non_tuple(self) -> List[Parameter]:
        return [p for p in self._parameters if isinstance(p, Parameter)]


class FunctionDef(Node):
    __slots__ = ("name", "parameters", "return_annotation", "body", "decorators", "is_async")

    def __init__(
        self,
        name: Name,
        parameters: Optional[ParameterList],
        body: List[Node],
        decorators: List[Node] = (),
        return_annotation: Optional[Node] = None,
        is_async: bool = False,
    ):
        super().__init__(Kind.FUNCDEF)
        self.name = name
        self.parameters = parameters
        self.body = tuple(body)
        self.decorators = tuple(decorators)
        self.return_annotation = return_annotation
        self.is_async = is_async


class ClassDef(Node):
    __slots__ = ("name", "arguments", "body", "decorators")

    def __init__(
        self,
        name: Name,
        arguments: List[Node],
        body: List[Node],
        decorators: List[Node] = (),
    ):
        super().__init__(Kind.CLASSDEF)
        self.name = name
        self.arguments = tuple(arguments)
        self.body = tuple(body)
        self.decorators = tuple(decorators)


class LambdaExpression(Node):
    __slots__ = ("parameters", "expression")

    def __init__(self, parameters: Optional[ParameterList], expression: Node):
        super().__init__(Kind.LAMBDA)
        self.parameters = parameters
        self.expression = expression


class RaiseStatement(Node):
    __slots__ = ("expressions", "from_expression")

    def __init__(self, expressions: List[Node], from_expression: Optional[Node] = None):
        super().__init__(Kind.RAISE_STMT)
        self.expressions = tuple(expressions)
        self.from_expression = from_expression

    @property
    def raise_keyword(self) -> Token:
        return self.first_token()


class ElseClause(Node):
    __slots__ = ("keyword", "body")

    def __init__(self, keyword: Token, body: List[Node]):
        super().__init__(Kind.ELSE_CLAUSE)
        self.keyword = keyword
        self.body = tuple(body)


class FinallyClause(Node):
    __slots__ = ("keyword", "body")

    def __init__(self, keyword: Token, body: List[Node]):
        super().__init__(Kind.FINALLY_CLAUSE)
        self.keyword = keyword
        self.body = tuple(body)


class ExceptClause(Node):
    __slots__ = ("exception", "exception_instance", "body", "is_star")

    def __init__(
        self,
        exception: Optional[Node],
        exception_instance: Optional[Name],
        body: List[Node],
        is_star: bool = False,
    ):
        super().__init__(Kind.EXCEPT_CLAUSE)
        self.exception = exception
        self.exception_instance = exception_instance
        self.body = tuple(body)
        self.is_star = is_star


class TryStatement(Node):
    __slots__ = ("body", "except_clauses", "else_clause", "finally_clause")

    def __init__(
        self,
        body: List[Node],
        except_clauses: List[ExceptClause],
        else_clause: Optional[ElseClause],
        finally_clause: Optional[FinallyClause],
    ):
        super().__init__(Kind.TRY_STMT)
        self.body = tuple(body)
        self.except_clauses = tuple(except_clauses)
        self.else_clause = else_clause
        self.finally_clause = finally_clause


class IfStatement(Node):
    """An if statement. An elif is an IfStatement nested in elif_branch."""

    __slots__ = ("condition", "body", "elif_branch", "else_clause")

    def __init__(
        self,
        condition: Node,
        body: List[Node],
        elif_branch: Optional["IfStatement"] = None,
        else_clause: Optional[ElseClause] = None,
    ):
        super().__init__(Kind.IF_STMT)
        self.condition = condition
        self.body = tuple(body)
        self.elif_branch = elif_branch
        self.else_clause = else_clause


class LoopStatement(Node):
    """while and for loops; for loops also carry target and iterable."""

    __slots__ = ("condition", "target", "iterable", "body", "else_clause", "is_async")

    def __init__(
        self,
        kind: Kind,
        body: List[Node],
        else_clause: Optional[ElseClause] = None,
        condition: Optional[Node] = None,
        target: Optional[Node] = None,
        iterable: Optional[Node] = None,
        is_async: bool = False,
    ):
        super().__init__(kind)
        self.condition = condition
        self.target = target
        self.iterable = iterable
        self.body = tuple(body)
        self.else_clause = else_clause
        self.is_async = is_async


class ScopeDeclaration(Node):
    """global / nonlocal statement."""

    __slots__ = ("names",)

    def __init__(self, kind: Kind, names: List[Name]):
        super().__init__(kind)
        self.names = tuple(names)


def walk(node: Node) -> Iterator[Node]:
    """Pre-order iteration over node and all of its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))

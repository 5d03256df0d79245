"""
Tree construction.

Builds the psce node model from Python source text:
- structure comes from the standard library ast module
- tokens come from tokenize, so every token of the file (including
  NEWLINE / INDENT / DEDENT) ends up exactly once in the tree
- nodes the ast module has no object for (finally / else clauses,
  parameter lists, parameter markers, defined names) are synthesized from
  the token stream

Symbol resolution runs afterwards unless with_symbols=False.
"""
import ast
import io
import keyword
import logging
import tokenize
from bisect import bisect_left
from itertools import islice
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .symbols import resolve_symbols
from .tree import (
    ClassDef,
    ElseClause,
    ExceptClause,
    FileInput,
    FinallyClause,
    FunctionDef,
    IfStatement,
    Kind,
    LambdaExpression,
    LoopStatement,
    Name,
    Node,
    Parameter,
    ParameterList,
    RaiseStatement,
    ScopeDeclaration,
    Token,
    TokenType,
    TryStatement,
)

logger = logging.getLogger(__name__)

Position = Tuple[int, int]
Span = Tuple[Position, Position]


_TOKEN_TYPES = {
    tokenize.NAME: TokenType.NAME,
    tokenize.NUMBER: TokenType.NUMBER,
    tokenize.STRING: TokenType.STRING,
    tokenize.OP: TokenType.OP,
    tokenize.NEWLINE: TokenType.NEWLINE,
    tokenize.INDENT: TokenType.INDENT,
    tokenize.DEDENT: TokenType.DEDENT,
    tokenize.ENDMARKER: TokenType.ENDMARKER,
}

_KINDS = {
    ast.Assign: Kind.ASSIGNMENT_STMT,
    ast.AnnAssign: Kind.ANNOTATED_ASSIGNMENT,
    ast.AugAssign: Kind.COMPOUND_ASSIGNMENT,
    ast.Expr: Kind.EXPRESSION_STMT,
    ast.Return: Kind.RETURN_STMT,
    ast.Pass: Kind.PASS_STMT,
    ast.Break: Kind.BREAK_STMT,
    ast.Continue: Kind.CONTINUE_STMT,
    ast.Delete: Kind.DEL_STMT,
    ast.Assert: Kind.ASSERT_STMT,
    ast.Import: Kind.IMPORT_NAME,
    ast.ImportFrom: Kind.IMPORT_FROM,
    ast.With: Kind.WITH_STMT,
    ast.AsyncWith: Kind.WITH_STMT,
    ast.withitem: Kind.WITH_ITEM,
    ast.Match: Kind.MATCH_STMT,
    ast.match_case: Kind.CASE_BLOCK,
    ast.Call: Kind.CALL_EXPR,
    ast.keyword: Kind.ARGUMENT,
    ast.Attribute: Kind.QUALIFIED_EXPR,
    ast.Subscript: Kind.SUBSCRIPTION,
    ast.Slice: Kind.SLICE_ITEM,
    ast.Starred: Kind.STARRED_EXPR,
    ast.IfExp: Kind.CONDITIONAL_EXPR,
    ast.NamedExpr: Kind.ASSIGNMENT_EXPRESSION,
    ast.Await: Kind.AWAIT,
    ast.Yield: Kind.YIELD_EXPR,
    ast.YieldFrom: Kind.YIELD_EXPR,
    ast.BinOp: Kind.BINARY_EXPR,
    ast.BoolOp: Kind.BINARY_EXPR,
    ast.UnaryOp: Kind.UNARY_EXPR,
    ast.Compare: Kind.COMPARISON,
    ast.Tuple: Kind.TUPLE,
    ast.List: Kind.LIST_LITERAL,
    ast.Set: Kind.SET_LITERAL,
    ast.Dict: Kind.DICTIONARY_LITERAL,
    ast.ListComp: Kind.LIST_COMPREHENSION,
    ast.SetComp: Kind.SET_COMPREHENSION,
    ast.DictComp: Kind.DICT_COMPREHENSION,
    ast.GeneratorExp: Kind.GENERATOR_EXPR,
    ast.comprehension: Kind.COMP_FOR,
    ast.JoinedStr: Kind.STRING_LITERAL,
}

# ast objects that are pure markers, their text is carried by plain tokens
_SKIPPED = (ast.expr_context, ast.operator, ast.boolop, ast.unaryop, ast.cmpop)

Child = Union[Node, None]


def lex(source: str) -> List[Token]:
    """
    Tokenize source into psce tokens.

    Comments become trivia of the following token; non-logical line
    breaks are dropped.
    """
    tokens: List[Token] = []
    trivia: List[str] = []

    for tok in tokenize.generate_tokens(io.StringIO(source).readline):
        if tok.type == tokenize.COMMENT:
            trivia.append(tok.string)
            continue
        if tok.type in (tokenize.NL, tokenize.ENCODING):
            continue
        if tok.type == tokenize.ERRORTOKEN and tok.string.isspace():
            continue

        if tok.type == tokenize.NAME and keyword.iskeyword(tok.string):
            token_type = TokenType.KEYWORD
        elif tokenize.tok_name[tok.type].startswith(("FSTRING", "TSTRING")):
            token_type = TokenType.STRING
        else:
            token_type = _TOKEN_TYPES.get(tok.type, TokenType.OTHER)

        tokens.append(Token(
            type=token_type,
            value=tok.string,
            line=tok.start[0],
            column=tok.start[1],
            end_line=tok.end[0],
            end_column=tok.end[1],
            index=len(tokens),
            trivia=tuple(trivia),
        ))
        trivia = []

    return tokens


def _is_zero_width(token: Token) -> bool:
    return token.start == token.end


class TreeBuilder(ast.NodeVisitor):
    """
    Converts one ast.Module into a FileInput.

    Conversion happens in two steps: visiting the ast builds the nodes and
    records their source span, then _attach() distributes the token stream
    over the nodes by position and freezes every node's children.
    """

    def __init__(self, source: str):
        self._lines = io.StringIO(source).readlines()
        self._tokens = lex(source)
        self._starts = [t.start for t in self._tokens]
        self._spans: Dict[int, Span] = {}
        self._pending: Dict[int, List[Node]] = {}

    def build(self, module: ast.Module) -> FileInput:
        statements = self._visit_all(module.body)
        root = FileInput(statements, ast.get_docstring(module, clean=False))
        self._pending[id(root)] = statements
        self._attach(root, 0, len(self._tokens))
        return root

    # Positions and token lookup

    def _position(self, lineno: int, col_offset: int) -> Position:
        """ast columns are UTF-8 byte offsets, token columns are characters."""
        if not 0 < lineno <= len(self._lines):
            return (lineno, col_offset)
        line = self._lines[lineno - 1]
        if line.isascii():
            return (lineno, col_offset)
        prefix = line.encode("utf-8")[:col_offset]
        return (lineno, len(prefix.decode("utf-8", errors="ignore")))

    def _ast_span(self, node: ast.AST) -> Optional[Span]:
        if getattr(node, "lineno", None) is None or getattr(node, "end_lineno", None) is None:
            return None
        return (
            self._position(node.lineno, node.col_offset),
            self._position(node.end_lineno, node.end_col_offset),
        )

    def _span_of(self, node: Node) -> Span:
        if isinstance(node, Token):
            return (node.start, node.end)
        return self._spans[id(node)]

    def _first_index(self, position: Position) -> int:
        return bisect_left(self._starts, position)

    def _token_at(self, position: Position) -> Optional[Token]:
        i = self._first_index(position)
        while i < len(self._tokens) and self._tokens[i].start == position:
            if not _is_zero_width(self._tokens[i]):
                return self._tokens[i]
            i += 1
        return None

    def _name_token_after(self, position: Position, value: str) -> Optional[Token]:
        for token in islice(self._tokens, self._first_index(position), None):
            if token.type == TokenType.NAME and token.value == value:
                return token
        return None

    def _op_token_after(self, position: Position, value: str) -> Optional[Token]:
        for token in islice(self._tokens, self._first_index(position), None):
            if token.type == TokenType.OP and token.value == value:
                return token
        return None

    def _keyword_between(self, start: Position, end: Position, value: str) -> Optional[Token]:
        i = self._first_index(start)
        while i < len(self._tokens) and self._tokens[i].start < end:
            token = self._tokens[i]
            if token.type == TokenType.KEYWORD and token.value == value:
                return token
            i += 1
        return None

    # Node construction

    def _finish(self, result: Node, node: Optional[ast.AST], children: Sequence[Child]) -> Optional[Node]:
        """Record span and pending children of result; None when it covers no source."""
        children = [c for c in children if c is not None]
        spans = [self._span_of(c) for c in children]
        own = self._ast_span(node) if node is not None else None
        if own is not None:
            spans.append(own)
        if not spans:
            return None
        self._spans[id(result)] = (min(s for s, _ in spans), max(e for _, e in spans))
        self._pending[id(result)] = sorted(children, key=lambda c: self._span_of(c)[0])
        return result

    def _visit_all(self, nodes: Sequence[ast.AST]) -> List[Node]:
        converted = (self.visit(n) for n in nodes)
        return [c for c in converted if c is not None]

    def _visit_optional(self, node: Optional[ast.AST]) -> Optional[Node]:
        return self.visit(node) if node is not None else None

    def _name(self, value: str, token: Optional[Token], is_binding: bool = False) -> Optional[Name]:
        if token is None:
            logger.debug("no token found for name %r", value)
            return None
        return self._finish(Name(value, is_binding), None, [token])

    def _else_clause(self, statements: List[ast.stmt], after: Position) -> Optional[ElseClause]:
        body = self._visit_all(statements)
        if not body:
            return None
        keyword_token = self._keyword_between(after, self._span_of(body[0])[0], "else")
        return self._finish(ElseClause(keyword_token, body), None, [keyword_token] + body)

    def generic_visit(self, node: ast.AST) -> Optional[Node]:
        if isinstance(node, ast.stmt):
            kind = _KINDS.get(type(node), Kind.STATEMENT)
        else:
            kind = _KINDS.get(type(node), Kind.EXPRESSION)
        if isinstance(node, ast.JoinedStr):
            # f-string internals are not reliably positioned on older interpreters
            return self._finish(Node(kind), node, [])
        children = self._visit_all([
            c for c in ast.iter_child_nodes(node) if not isinstance(c, _SKIPPED)
        ])
        return self._finish(Node(kind), node, children)

    def visit_Constant(self, node: ast.Constant) -> Optional[Node]:
        if isinstance(node.value, (str, bytes)):
            return self._finish(Node(Kind.STRING_LITERAL), node, [])
        return self._finish(Node(Kind.LITERAL), node, [])

    def visit_Name(self, node: ast.Name) -> Optional[Node]:
        token = self._token_at(self._ast_span(node)[0])
        result = Name(node.id, is_binding=isinstance(node.ctx, ast.Store))
        return self._finish(result, node, [token])

    def visit_alias(self, node: ast.alias) -> Optional[Node]:
        span = self._ast_span(node)
        name = None
        if node.name != "*" and span is not None:
            if node.asname is not None:
                # last match: "import a as a" names the module first
                candidates = [
                    t for t in self._tokens[self._first_index(span[0]):self._first_index(span[1])]
                    if t.type == TokenType.NAME and t.value == node.asname
                ]
                token = candidates[-1] if candidates else None
                name = self._name(node.asname, token, is_binding=True)
            else:
                bound = node.name.split(".")[0]
                name = self._name(bound, self._token_at(span[0]), is_binding=True)
        return self._finish(Node(Kind.ALIASED_NAME), node, [name])

    def _scope_declaration(self, node: ast.AST, kind: Kind) -> Optional[Node]:
        start, end = self._ast_span(node)
        names = [
            self._name(t.value, t)
            for t in self._tokens[self._first_index(start):self._first_index(end)]
            if t.type == TokenType.NAME and t.value in node.names
        ]
        names = [n for n in names if n is not None]
        return self._finish(ScopeDeclaration(kind, names), node, names)

    def visit_Global(self, node: ast.Global) -> Optional[Node]:
        return self._scope_declaration(node, Kind.GLOBAL_STMT)

    def visit_Nonlocal(self, node: ast.Nonlocal) -> Optional[Node]:
        return self._scope_declaration(node, Kind.NONLOCAL_STMT)

    # Definitions

    def _parameter(self, arg: ast.arg, default: Optional[ast.expr], star: bool = False) -> Optional[Node]:
        start = self._ast_span(arg)[0]
        name_token = self._token_at(start)
        star_token = None
        if star and name_token is not None and name_token.index > 0:
            previous = self._tokens[name_token.index - 1]
            if previous.value in ("*", "**"):
                star_token = previous
        name = self._name(arg.arg, name_token, is_binding=True)
        annotation = self._visit_optional(arg.annotation)
        default_value = self._visit_optional(default)
        result = Parameter(name, star_token, annotation, default_value)
        return self._finish(result, arg, [star_token, name, annotation, default_value])

    def _marker(self, token: Optional[Token]) -> Optional[Node]:
        if token is None:
            return None
        return self._finish(Parameter(None, token), None, [token])

    def _parameter_list(self, args: ast.arguments, after: Position) -> Optional[ParameterList]:
        entries: List[Node] = []
        cursor = after

        def add(entry: Optional[Node]) -> None:
            nonlocal cursor
            if entry is not None:
                entries.append(entry)
                cursor = self._span_of(entry)[1]

        positional = list(args.posonlyargs) + list(args.args)
        defaults = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
        for i, (arg, default) in enumerate(zip(positional, defaults)):
            add(self._parameter(arg, default))
            if i == len(args.posonlyargs) - 1:
                add(self._marker(self._op_token_after(cursor, "/")))

        if args.vararg is not None:
            add(self._parameter(args.vararg, None, star=True))
        elif args.kwonlyargs:
            add(self._marker(self._op_token_after(cursor, "*")))

        for arg, default in zip(args.kwonlyargs, args.kw_defaults):
            add(self._parameter(arg, default))

        if args.kwarg is not None:
            add(self._parameter(args.kwarg, None, star=True))

        if not entries:
            return None
        return self._finish(ParameterList(entries), None, entries)

    def _at_tokens(self, decorators: List[Node]) -> List[Token]:
        result = []
        for decorator in decorators:
            i = self._first_index(self._span_of(decorator)[0])
            if i > 0 and self._tokens[i - 1].value == "@":
                result.append(self._tokens[i - 1])
        return result

    def visit_FunctionDef(self, node: ast.FunctionDef, is_async: bool = False) -> Optional[Node]:
        decorators = self._visit_all(node.decorator_list)
        start = self._ast_span(node)[0]
        name_token = self._name_token_after(start, node.name)
        name = self._name(node.name, name_token, is_binding=True)
        # children are attached later, so the name token is kept aside
        parameters = self._parameter_list(node.args, name_token.end if name_token else start)
        returns = self._visit_optional(node.returns)
        body = self._visit_all(node.body)
        result = FunctionDef(name, parameters, body, decorators, returns, is_async)
        return self._finish(
            result, node, self._at_tokens(decorators) + decorators + [name, parameters, returns] + body,
        )

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> Optional[Node]:
        return self.visit_FunctionDef(node, is_async=True)

    def visit_ClassDef(self, node: ast.ClassDef) -> Optional[Node]:
        decorators = self._visit_all(node.decorator_list)
        start = self._ast_span(node)[0]
        name = self._name(node.name, self._name_token_after(start, node.name), is_binding=True)
        arguments = self._visit_all(list(node.bases) + list(node.keywords))
        body = self._visit_all(node.body)
        result = ClassDef(name, arguments, body, decorators)
        return self._finish(result, node, self._at_tokens(decorators) + decorators + [name] + arguments + body)

    def visit_Lambda(self, node: ast.Lambda) -> Optional[Node]:
        parameters = self._parameter_list(node.args, self._ast_span(node)[0])
        expression = self.visit(node.body)
        result = LambdaExpression(parameters, expression)
        return self._finish(result, node, [parameters, expression])

    # Statements

    def visit_Raise(self, node: ast.Raise) -> Optional[Node]:
        expressions = self._visit_all([node.exc] if node.exc is not None else [])
        cause = self._visit_optional(node.cause)
        result = RaiseStatement(expressions, cause)
        return self._finish(result, node, expressions + [cause])

    def visit_If(self, node: ast.If) -> Optional[Node]:
        condition = self.visit(node.test)
        body = self._visit_all(node.body)
        elif_branch = None
        else_clause = None
        if node.orelse:
            body_end = self._span_of(body[-1])[1]
            first = self._ast_span(node.orelse[0])[0]
            is_elif = (
                len(node.orelse) == 1
                and isinstance(node.orelse[0], ast.If)
                and self._keyword_between(body_end, first, "else") is None
            )
            if is_elif:
                elif_branch = self.visit_If(node.orelse[0])
            else:
                else_clause = self._else_clause(node.orelse, body_end)
        result = IfStatement(condition, body, elif_branch, else_clause)
        return self._finish(result, node, [condition] + body + [elif_branch, else_clause])

    def visit_While(self, node: ast.While) -> Optional[Node]:
        condition = self.visit(node.test)
        body = self._visit_all(node.body)
        else_clause = self._else_clause(node.orelse, self._span_of(body[-1])[1]) if node.orelse else None
        result = LoopStatement(Kind.WHILE_STMT, body, else_clause, condition=condition)
        return self._finish(result, node, [condition] + body + [else_clause])

    def visit_For(self, node: ast.For, is_async: bool = False) -> Optional[Node]:
        target = self.visit(node.target)
        iterable = self.visit(node.iter)
        body = self._visit_all(node.body)
        else_clause = self._else_clause(node.orelse, self._span_of(body[-1])[1]) if node.orelse else None
        result = LoopStatement(
            Kind.FOR_STMT, body, else_clause, target=target, iterable=iterable, is_async=is_async,
        )
        return self._finish(result, node, [target, iterable] + body + [else_clause])

    def visit_AsyncFor(self, node: ast.AsyncFor) -> Optional[Node]:
        return self.visit_For(node, is_async=True)

    def _except_clause(self, handler: ast.ExceptHandler, is_star: bool) -> Optional[Node]:
        exception = self._visit_optional(handler.type)
        instance = None
        if handler.name is not None and exception is not None:
            token = self._name_token_after(self._span_of(exception)[1], handler.name)
            instance = self._name(handler.name, token, is_binding=True)
        body = self._visit_all(handler.body)
        result = ExceptClause(exception, instance, body, is_star)
        return self._finish(result, handler, [exception, instance] + body)

    def visit_Try(self, node: ast.Try, is_star: bool = False) -> Optional[Node]:
        body = self._visit_all(node.body)
        handlers = [self._except_clause(h, is_star) for h in node.handlers]
        handlers = [h for h in handlers if h is not None]
        cursor = self._span_of((handlers or body)[-1])[1]

        else_clause = None
        if node.orelse:
            else_clause = self._else_clause(node.orelse, cursor)
            if else_clause is not None:
                cursor = self._span_of(else_clause)[1]

        finally_clause = None
        finally_body = self._visit_all(node.finalbody)
        if finally_body:
            keyword_token = self._keyword_between(cursor, self._span_of(finally_body[0])[0], "finally")
            finally_clause = self._finish(
                FinallyClause(keyword_token, finally_body), None, [keyword_token] + finally_body,
            )

        result = TryStatement(body, handlers, else_clause, finally_clause)
        return self._finish(result, node, body + handlers + [else_clause, finally_clause])

    def visit_TryStar(self, node: ast.AST) -> Optional[Node]:
        return self.visit_Try(node, is_star=True)

    # Token distribution

    def _attach(self, node: Node, lo: int, hi: int) -> None:
        """Give node the tokens [lo, hi) of the stream, delegating sub-spans to its children."""
        tokens = self._tokens
        children: List[Node] = []
        i = lo
        for child in self._pending.pop(id(node), ()):
            if isinstance(child, Token):
                if not i <= child.index < hi:
                    continue
                children.extend(tokens[i:child.index])
                children.append(child)
                i = child.index + 1
                continue

            start, end = self._spans[id(child)]
            j = i
            while j < hi and tokens[j].start < start:
                j += 1
            # layout tokens sitting exactly where the child starts belong to the parent
            while j < hi and tokens[j].start == start and _is_zero_width(tokens[j]):
                j += 1
            k = j
            while k < hi and tokens[k].start < end:
                k += 1

            children.extend(tokens[i:j])
            self._attach(child, j, k)
            children.append(child)
            i = k

        children.extend(tokens[i:hi])
        node._freeze(children)


def parse(source: str, filename: str = "<string>", with_symbols: bool = True) -> FileInput:
    """
    Parse Python source into a FileInput tree.

    Raises SyntaxError (or ValueError for null bytes on older interpreters)
    when the source is not valid Python.
    """
    module = ast.parse(source, filename=filename)
    file_input = TreeBuilder(source).build(module)
    if with_symbols:
        resolve_symbols(file_input)
    logger.debug("built tree for %s (symbols=%s)", filename, with_symbols)
    return file_input

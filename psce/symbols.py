"""
Symbol resolution.

Binds every Name of a tree to the Symbol it refers to, following Python's
scoping rules: module, function (including lambdas and comprehensions) and
class scopes, with global / nonlocal declarations. Names that resolve to
nothing (builtins, undefined names) keep symbol None.

Runs once, right after tree construction, and is skipped entirely when the
tree is built with with_symbols=False.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .tree import (
    ClassDef,
    ExceptClause,
    FileInput,
    FunctionDef,
    Kind,
    LambdaExpression,
    Name,
    Node,
    Parameter,
    ParameterList,
    ScopeDeclaration,
    Token,
    TupleParameter,
)

logger = logging.getLogger(__name__)


class IllegalStateError(RuntimeError):
    """A query needs symbols but the tree was built without them."""


class SymbolKind(Enum):
    FUNCTION = "function"
    CLASS = "class"
    OTHER = "other"


class UsageKind(Enum):
    FUNC_DECLARATION = "func_declaration"
    CLASS_DECLARATION = "class_declaration"
    PARAMETER = "parameter"
    IMPORT = "import"
    EXCEPTION_INSTANCE = "exception_instance"
    BINDING = "binding"
    GLOBAL_DECLARATION = "global_declaration"
    OTHER = "other"


@dataclass(frozen=True)
class Usage:
    node: Name
    kind: UsageKind

    @property
    def is_binding_usage(self) -> bool:
        return self.kind not in (UsageKind.OTHER, UsageKind.GLOBAL_DECLARATION)


@dataclass(eq=False)
class Symbol:
    """A name binding: the declaration(s) of a name in one scope and every usage."""

    name: str
    kind: SymbolKind = SymbolKind.OTHER
    usages: List[Usage] = field(default_factory=list)

    def binding_usages(self) -> List[Usage]:
        return [u for u in self.usages if u.is_binding_usage]


_SCOPE_KINDS = frozenset({
    Kind.LIST_COMPREHENSION,
    Kind.SET_COMPREHENSION,
    Kind.DICT_COMPREHENSION,
    Kind.GENERATOR_EXPR,
})


class _Scope:
    def __init__(self, node: Node, parent: Optional["_Scope"], is_class: bool = False):
        self.node = node
        self.parent = parent
        self.is_class = is_class
        self.bindings: Dict[str, List[Usage]] = {}
        self.globals: Set[str] = set()
        self.nonlocals: Set[str] = set()
        self.symbols: Dict[str, Symbol] = {}

    def add_binding(self, name: Name, kind: UsageKind) -> None:
        self.bindings.setdefault(name.name, []).append(Usage(name, kind))

    def declares(self, name: str) -> bool:
        return name in self.bindings or name in self.globals or name in self.nonlocals


def _symbol_kind(usages: List[Usage]) -> SymbolKind:
    kinds = {u.kind for u in usages if u.is_binding_usage}
    if kinds == {UsageKind.FUNC_DECLARATION}:
        return SymbolKind.FUNCTION
    if kinds == {UsageKind.CLASS_DECLARATION}:
        return SymbolKind.CLASS
    return SymbolKind.OTHER


def _source_order(usage: Usage) -> int:
    token = usage.node.first_token()
    return token.index if token is not None else -1


class SymbolTableBuilder:
    """Resolves the names of one FileInput. Use resolve_symbols() instead of calling directly."""

    def __init__(self, file_input: FileInput):
        self._root = file_input
        self._module = _Scope(file_input, None)
        self._scopes: List[_Scope] = [self._module]
        self._reads: List[Tuple[Name, _Scope]] = []
        self._declarations: List[Tuple[Name, _Scope]] = []

    def build(self) -> None:
        self._collect()
        self._create_symbols()
        self._resolve_reads()

    # Pass 1: scopes, bindings and reads

    def _new_scope(self, node: Node, parent: _Scope, is_class: bool = False) -> _Scope:
        scope = _Scope(node, parent, is_class)
        self._scopes.append(scope)
        return scope

    def _collect(self) -> None:
        stack: List[Tuple[Node, _Scope]] = [(self._root, self._module)]
        while stack:
            node, scope = stack.pop()
            pending: List[Tuple[Optional[Node], _Scope]] = []

            if isinstance(node, Token):
                continue

            if isinstance(node, FunctionDef):
                scope.add_binding(node.name, UsageKind.FUNC_DECLARATION)
                inner = self._new_scope(node, scope)
                pending.extend((d, scope) for d in node.decorators)
                pending.extend(self._parameters(node.parameters, inner, scope))
                pending.append((node.return_annotation, scope))
                pending.extend((s, inner) for s in node.body)

            elif isinstance(node, ClassDef):
                scope.add_binding(node.name, UsageKind.CLASS_DECLARATION)
                inner = self._new_scope(node, scope, is_class=True)
                pending.extend((d, scope) for d in node.decorators)
                pending.extend((a, scope) for a in node.arguments)
                pending.extend((s, inner) for s in node.body)

            elif isinstance(node, LambdaExpression):
                inner = self._new_scope(node, scope)
                pending.extend(self._parameters(node.parameters, inner, scope))
                pending.append((node.expression, inner))

            elif node.kind in _SCOPE_KINDS:
                inner = self._new_scope(node, scope)
                pending.extend((c, inner) for c in node.children)

            elif isinstance(node, ScopeDeclaration):
                target = scope.globals if node.kind == Kind.GLOBAL_STMT else scope.nonlocals
                for name in node.names:
                    target.add(name.name)
                    self._declarations.append((name, scope))

            elif isinstance(node, ExceptClause):
                if node.exception_instance is not None:
                    scope.add_binding(node.exception_instance, UsageKind.EXCEPTION_INSTANCE)
                pending.append((node.exception, scope))
                pending.extend((s, scope) for s in node.body)

            elif isinstance(node, Name):
                if not node.is_binding:
                    self._reads.append((node, scope))
                elif node.parent is not None and node.parent.kind == Kind.ALIASED_NAME:
                    scope.add_binding(node, UsageKind.IMPORT)
                else:
                    scope.add_binding(node, UsageKind.BINDING)

            else:
                pending.extend((c, scope) for c in node.children)

            # Reverse so that the stack pops in source order.
            stack.extend((n, s) for n, s in reversed(pending) if n is not None)

    @staticmethod
    def _parameters(
        parameters: Optional[ParameterList],
        inner: _Scope,
        outer: _Scope,
    ) -> List[Tuple[Optional[Node], _Scope]]:
        """Bind parameter names in the function scope; defaults and annotations belong outside."""
        pending: List[Tuple[Optional[Node], _Scope]] = []
        if parameters is None:
            return pending
        todo = parameters.all()
        while todo:
            parameter = todo.pop(0)
            if isinstance(parameter, TupleParameter):
                todo[:0] = list(parameter.parameters)
            elif isinstance(parameter, Parameter):
                if parameter.name is not None:
                    inner.add_binding(parameter.name, UsageKind.PARAMETER)
                pending.append((parameter.annotation, outer))
                pending.append((parameter.default_value, outer))
        return pending

    # Pass 2: one Symbol per (scope, name)

    def _binding_target(self, scope: _Scope, name: str) -> _Scope:
        if name in scope.globals:
            return self._module
        if name in scope.nonlocals:
            enclosing = scope.parent
            while enclosing is not None and enclosing is not self._module:
                if not enclosing.is_class and enclosing.declares(name):
                    return self._binding_target(enclosing, name)
                enclosing = enclosing.parent
            logger.debug("nonlocal %r has no enclosing binding", name)
        return scope

    def _create_symbols(self) -> None:
        merged: Dict[Tuple[int, str], List[Usage]] = {}
        owners: Dict[int, _Scope] = {}
        for scope in self._scopes:
            for name, usages in scope.bindings.items():
                target = self._binding_target(scope, name)
                owners[id(target)] = target
                merged.setdefault((id(target), name), []).extend(usages)

        for (scope_id, name), usages in merged.items():
            usages.sort(key=_source_order)
            symbol = Symbol(name=name, kind=_symbol_kind(usages), usages=list(usages))
            owners[scope_id].symbols[name] = symbol
            for usage in usages:
                usage.node._bind(symbol)

        for name, scope in self._declarations:
            symbol = self._binding_target(scope, name.name).symbols.get(name.name)
            if symbol is not None:
                symbol.usages.append(Usage(name, UsageKind.GLOBAL_DECLARATION))
                name._bind(symbol)

    # Pass 3: reads

    def _lookup(self, scope: _Scope, name: str) -> Optional[Symbol]:
        candidate: Optional[_Scope] = scope
        while candidate is not None:
            if candidate is scope or not candidate.is_class:
                if candidate.declares(name):
                    return self._binding_target(candidate, name).symbols.get(name)
            candidate = candidate.parent
        return None

    def _resolve_reads(self) -> None:
        for name, scope in self._reads:
            symbol = self._lookup(scope, name.name)
            if symbol is not None:
                symbol.usages.append(Usage(name, UsageKind.OTHER))
                name._bind(symbol)


def resolve_symbols(file_input: FileInput) -> None:
    """Attach symbols to every resolvable Name of file_input."""
    SymbolTableBuilder(file_input).build()

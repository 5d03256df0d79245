"""
Stateless tree query functions.

These are pure helpers over the psce node model, shared by every check.
Nothing here mutates the tree or keeps state between calls; every walk is
iterative.
"""
from typing import Callable, List, Optional

from ..symbols import IllegalStateError, Symbol, SymbolKind
from ..tree import (
    WHITESPACE_TOKEN_TYPES,
    ClassDef,
    FunctionDef,
    HasSymbol,
    Kind,
    Name,
    Node,
    Parameter,
    Token,
    TokenType,
    TupleParameter,
)

Predicate = Callable[[Node], bool]


# Ancestor / descendant search

def first_ancestor_of_kind(node: Node, *kinds: Kind) -> Optional[Node]:
    """
    Return the nearest strict ancestor whose kind is one of kinds.

    Passing scope kinds (CLASSDEF, FUNCDEF) alongside the wanted kind bounds
    the search to the current scope: the caller checks which kind was hit.
    """
    current = node.parent
    while current is not None:
        if current.kind in kinds:
            return current
        current = current.parent
    return None


def first_ancestor(node: Node, predicate: Predicate) -> Optional[Node]:
    """Return the nearest strict ancestor matching predicate."""
    current = node.parent
    while current is not None:
        if predicate(current):
            return current
        current = current.parent
    return None


def has_descendant(node: Node, predicate: Predicate) -> bool:
    """Check whether any node strictly below node matches predicate."""
    stack = list(node.children)
    while stack:
        current = stack.pop()
        if predicate(current):
            return True
        stack.extend(current.children)
    return False


def descendants(node: Node, predicate: Predicate) -> List[Node]:
    """All strict descendants matching predicate, in pre-order."""
    found = []
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        if predicate(current):
            found.append(current)
        stack.extend(reversed(current.children))
    return found


def first_child(node: Node, predicate: Predicate) -> Optional[Node]:
    for child in node.children:
        if predicate(child):
            return child
    return None


# Tokens

def tokens(node: Node) -> List[Token]:
    """
    Leaf tokens of node in source order.

    For a token this is the token itself.
    """
    if isinstance(node, Token):
        return [node]
    result = []
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        if isinstance(current, Token):
            result.append(current)
        else:
            stack.extend(reversed(current.children))
    return result


def non_whitespace_tokens(node: Node) -> List[Token]:
    """tokens(node) without NEWLINE, INDENT and DEDENT."""
    return [t for t in tokens(node) if t.type not in WHITESPACE_TOKEN_TYPES]


# Symbols

def get_symbol_from_tree(node: Optional[Node]) -> Optional[Symbol]:
    if isinstance(node, HasSymbol):
        return node.symbol
    return None


def _symbol_from_def(name: Name, expected: SymbolKind) -> Optional[Symbol]:
    symbol = name.symbol
    if symbol is None:
        raise IllegalStateError(f"No symbol for {expected.value} {name.name!r}: tree built without symbols")
    # Rebinding the name to anything else makes the definition ambiguous.
    if symbol.kind != expected:
        return None
    return symbol


def get_class_symbol_from_def(class_def: Optional[ClassDef]) -> Optional[Symbol]:
    """
    Symbol bound to the name of class_def.

    Returns None when the name is also bound to something other than a class
    in the same scope. Raises IllegalStateError if the tree was built without
    symbol resolution.
    """
    if class_def is None:
        return None
    return _symbol_from_def(class_def.name, SymbolKind.CLASS)


def get_function_symbol_from_def(function_def: Optional[FunctionDef]) -> Optional[Symbol]:
    """
    Symbol bound to the name of function_def.

    Returns None when the name is also bound to something other than a
    function in the same scope. Raises IllegalStateError if the tree was
    built without symbol resolution.
    """
    if function_def is None:
        return None
    return _symbol_from_def(function_def.name, SymbolKind.FUNCTION)


def name_from_expression(expression: Optional[Node]) -> Optional[str]:
    """
    Dotted name of a Name or attribute chain, e.g. "os.path.join".

    Returns None for anything else (calls, subscripts, literals).
    """
    parts = []
    current = expression
    while current is not None and current.kind == Kind.QUALIFIED_EXPR:
        # children: object, ".", attribute token
        last = current.children[-1]
        if not isinstance(last, Token) or last.type != TokenType.NAME:
            return None
        parts.append(last.value)
        current = first_child(current, lambda c: not isinstance(c, Token))
    if not isinstance(current, Name):
        return None
    parts.append(current.name)
    return ".".join(reversed(parts))


# Parameters

def non_tuple_parameters(function_def: FunctionDef) -> List[Parameter]:
    if function_def.parameters is None:
        return []
    return function_def.parameters.non_tuple()


def positional_parameters(function_def: FunctionDef) -> List[Parameter]:
    """
    Parameters that can be passed by position.

    Stops at the keyword-only marker "*" and skips the positional-only
    marker "/". A tuple parameter makes slots ambiguous, so the result is
    then empty.
    """
    if function_def.parameters is None:
        return []
    entries = function_def.parameters.all()
    if any(isinstance(p, TupleParameter) for p in entries):
        return []

    result = []
    for parameter in entries:
        if parameter.is_keyword_only_marker:
            break
        if parameter.is_positional_only_marker:
            continue
        result.append(parameter)
    return result


# Conditional blocks are walked at any nesting depth.
_SCOPE_KINDS = (Kind.FUNCDEF, Kind.CLASSDEF)


def top_level_function_defs(class_def: ClassDef) -> List[FunctionDef]:
    """
    Methods defined directly in the class body.

    Descends through non-scoping statements (if/else, try, loops, with) but
    never into a nested function or class.
    """
    result = []
    stack = list(reversed(class_def.body))
    while stack:
        current = stack.pop()
        if isinstance(current, FunctionDef):
            result.append(current)
        elif current.kind not in _SCOPE_KINDS and not isinstance(current, Token):
            stack.extend(reversed(current.children))
    return result

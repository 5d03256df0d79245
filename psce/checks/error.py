"""
Error handling checks.

Detects misuse of exception handling constructs.

IMPORTANT: Decisions are structural only (which constructs enclose the
node), never flow-sensitive.
"""
from ..tree import FunctionDef, Kind, Node, RaiseStatement
from . import Registry, SubscriptionCheck, SubscriptionContext
from .utils import first_ancestor, first_ancestor_of_kind

MESSAGE = "Refactor this code so that any active exception raises naturally."


def _is_exit_method(node: Node) -> bool:
    return isinstance(node, FunctionDef) and node.name.name == "__exit__"


def is_within_except_clause(raise_statement: RaiseStatement) -> bool:
    """
    Check if the raise re-raises the exception being handled.

    The search stops at the enclosing function or class: an except clause
    outside of it handles a different exception context.
    """
    ancestor = first_ancestor_of_kind(raise_statement, Kind.EXCEPT_CLAUSE, Kind.CLASSDEF, Kind.FUNCDEF)
    return ancestor is not None and ancestor.kind == Kind.EXCEPT_CLAUSE


def is_within_exit_function(raise_statement: RaiseStatement) -> bool:
    """__exit__ methods may legitimately re-raise whatever is active."""
    return first_ancestor(raise_statement, _is_exit_method) is not None


def is_within_finally_clause(raise_statement: RaiseStatement) -> bool:
    ancestor = first_ancestor_of_kind(raise_statement, Kind.FINALLY_CLAUSE, Kind.CLASSDEF, Kind.FUNCDEF)
    return ancestor is not None and ancestor.kind == Kind.FINALLY_CLAUSE


class BareRaiseInFinallyCheck(SubscriptionCheck):
    """
    Flag a bare "raise" in a finally block.

    VIOLATION PATTERN: inside finally there may be no active exception, and
    when there is one, it propagates anyway once the block ends.

    Matches:
    - try: ... finally: raise

    Does not match:
    - raise with an exception expression
    - a bare raise inside an except clause (also when that try sits in finally)
    - a bare raise inside an __exit__ method
    - a bare raise in a function or class defined inside the finally block
    """

    key = "bare-raise-in-finally"
    legacy_key = "S5704"

    def initialize(self, context: Registry) -> None:
        context.register_syntax_node_consumer(Kind.RAISE_STMT, self._check_raise)

    @staticmethod
    def _check_raise(ctx: SubscriptionContext) -> None:
        raise_statement = ctx.syntax_node
        if raise_statement.expressions:
            return
        if is_within_except_clause(raise_statement) or is_within_exit_function(raise_statement):
            return
        if is_within_finally_clause(raise_statement):
            ctx.add_issue(raise_statement.raise_keyword, MESSAGE)

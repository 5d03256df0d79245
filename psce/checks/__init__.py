"""
Subscription Check Interfaces

A check answers one question about one kind of node: "Is this node an issue?"

Design principles:
- A check registers consumers for the node kinds it cares about, once
- The orchestrator walks each tree once and calls every consumer
  registered for the kind of the visited node
- Consumers are built from the stateless helpers in checks.utils
- Consumers report through the context they receive, never by returning

Ambiguity handling:
- If uncertain, do not report
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Protocol

from ..data_structures import Issue
from ..tree import Kind, Node


@dataclass(frozen=True)
class SubscriptionContext:
    """
    What a consumer gets for each matching node.

    Issues are appended to the shared per-file issue list.
    """
    syntax_node: Node
    file_path: str
    rule_key: str
    issues: List[Issue] = field(default_factory=list, repr=False)

    def add_issue(self, node: Node, message: str) -> None:
        token = node.first_token()
        line, column = (token.line, token.column) if token is not None else (0, 0)
        self.issues.append(Issue(
            rule_key=self.rule_key,
            file_path=self.file_path,
            line=line,
            column=column,
            message=message,
        ))


# Consumer type signature
Consumer = Callable[[SubscriptionContext], None]


class Registry(Protocol):
    def register_syntax_node_consumer(self, kind: Kind, consumer: Consumer) -> None:
        ...


class SubscriptionCheck(ABC):
    """Base class for checks. Subclasses set key and register in initialize()."""

    key: str = ""

    @abstractmethod
    def initialize(self, context: Registry) -> None:
        ...


# Import all checks
from .error import BareRaiseInFinallyCheck

ALL_CHECKS = [
    BareRaiseInFinallyCheck,
]

__all__ = [
    'SubscriptionContext',
    'Consumer',
    'Registry',
    'SubscriptionCheck',
    'BareRaiseInFinallyCheck',
    'ALL_CHECKS',
]

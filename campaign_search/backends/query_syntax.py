"""Prefilter query grammar shared by the lexical backends.

The engine writes prefilter queries in a small FTS-style language:

- whitespace-separated terms, a trailing ``*`` marks a prefix term
- ``AND`` / ``OR`` keywords; juxtaposed terms are implicitly AND'ed
- ``OR`` binds looser than ``AND``; parentheses group

``parse`` builds a tiny AST that each backend renders in its own dialect
(PostgreSQL ``tsquery``, OpenSearch ``query_string``) or evaluates directly
(in-memory store). Malformed input raises ``LexicalQuerySyntaxError``.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Tuple, Union

from .base import LexicalQuerySyntaxError

_TOKEN = re.compile(r"\(|\)|[^\s()]+")


@dataclass(frozen=True)
class Term:
    text: str
    prefix: bool = False


@dataclass(frozen=True)
class And:
    children: Tuple["Node", ...]


@dataclass(frozen=True)
class Or:
    children: Tuple["Node", ...]


Node = Union[Term, And, Or]


class _Parser:
    def __init__(self, query: str):
        self.query = query
        self.tokens: List[str] = _TOKEN.findall(query)
        self.pos = 0

    def _peek(self) -> str:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else ""

    def _error(self, message: str) -> LexicalQuerySyntaxError:
        return LexicalQuerySyntaxError(f"{message} in prefilter query {self.query!r}")

    def parse(self) -> Node:
        if not self.tokens:
            raise self._error("empty query")
        node = self._or_expr()
        if self.pos != len(self.tokens):
            raise self._error(f"unexpected {self._peek()!r}")
        return node

    def _or_expr(self) -> Node:
        children = [self._and_expr()]
        while self._peek() == "OR":
            self.pos += 1
            children.append(self._and_expr())
        return children[0] if len(children) == 1 else Or(tuple(children))

    def _and_expr(self) -> Node:
        children = [self._primary()]
        while True:
            token = self._peek()
            if token == "AND":
                self.pos += 1
                children.append(self._primary())
            elif token and token not in ("OR", ")"):
                children.append(self._primary())
            else:
                break
        return children[0] if len(children) == 1 else And(tuple(children))

    def _primary(self) -> Node:
        token = self._peek()
        if not token:
            raise self._error("dangling operator")
        if token in ("AND", "OR", ")"):
            raise self._error(f"unexpected {token!r}")
        self.pos += 1
        if token == "(":
            node = self._or_expr()
            if self._peek() != ")":
                raise self._error("unbalanced parentheses")
            self.pos += 1
            return node

        prefix = token.endswith("*")
        text = token[:-1] if prefix else token
        if not text or "*" in text:
            raise self._error(f"invalid term {token!r}")
        return Term(text=text, prefix=prefix)


def parse(query: str) -> Node:
    """Parse a prefilter query into an AST."""
    return _Parser(query).parse()


def render(node: Node, term: Callable[[Term], str], and_op: str, or_op: str) -> str:
    """Render an AST with a backend-specific term formatter and operators."""
    if isinstance(node, Term):
        return term(node)
    op = and_op if isinstance(node, And) else or_op
    return "(" + op.join(render(child, term, and_op, or_op) for child in node.children) + ")"


def evaluate(node: Node, matches: Callable[[Term], bool]) -> bool:
    """Evaluate an AST against a per-term predicate."""
    if isinstance(node, Term):
        return matches(node)
    if isinstance(node, And):
        return all(evaluate(child, matches) for child in node.children)
    return any(evaluate(child, matches) for child in node.children)


def terms(node: Node) -> List[Term]:
    """Every term of the AST, left to right."""
    if isinstance(node, Term):
        return [node]
    collected: List[Term] = []
    for child in node.children:
        collected.extend(terms(child))
    return collected

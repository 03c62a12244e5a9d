"""Newick reader built on an explicit ancestor stack.

The reader never recurses, so arbitrarily deep nesting only costs list
entries. Parsed trees are returned as immutable :class:`Clade` values.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DELIMITERS = frozenset("(),:;")
TOKEN_PATTERN = re.compile(r"\s*([(),:;])\s*")
DEFAULT_NAME_PREFIX = "Node_"
NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class TreeParseError(RuntimeError):
    """Raised when a tree file cannot be turned into a tree."""


class MalformedTreeError(TreeParseError):
    """Raised when Newick text does not follow the Newick grammar."""


@dataclass(frozen=True, eq=False, repr=False)
class Clade:
    """A node of a parsed tree; children keep their left-to-right source order."""

    name: str
    branch_length: Optional[float] = None
    children: tuple["Clade", ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def __repr__(self) -> str:
        return (
            f"Clade(name={self.name!r}, branch_length={self.branch_length!r}, "
            f"children={len(self.children)})"
        )


@dataclass(eq=False)
class _Draft:
    name: Optional[str] = None
    branch_length: Optional[float] = None
    children: list["_Draft"] = field(default_factory=list)


def tokenize(text: str) -> list[str]:
    """Split Newick text on its delimiters, keeping the delimiters as tokens."""

    return [token for token in TOKEN_PATTERN.split(text.strip()) if token]


class NewickParser:
    """Single-use parser state: the cursor, the ancestor stack and the name counter.

    Unlabelled nodes are named ``<prefix><n>`` when the cursor leaves them, with
    ``n`` counting up from 1 for the lifetime of the parser instance.
    """

    def __init__(self, name_prefix: str = DEFAULT_NAME_PREFIX) -> None:
        self.name_prefix = name_prefix
        self._counter = 0

    def parse(self, text: str) -> Clade:
        tokens = tokenize(text)
        if not tokens:
            raise MalformedTreeError("Empty Newick string.")

        root = _Draft()
        current = root
        ancestors: list[_Draft] = []
        previous: Optional[str] = None
        terminated = False

        for index, token in enumerate(tokens):
            if terminated:
                raise MalformedTreeError(
                    f"Unexpected content after ';' at token {index}: {token!r}"
                )
            if previous == ":" and token in DELIMITERS:
                raise MalformedTreeError(
                    f"Missing branch length after ':' at token {index}."
                )

            if token == "(":
                if previous not in (None, "(", ","):
                    raise MalformedTreeError(
                        f"Unexpected '(' after {previous!r} at token {index}."
                    )
                child = _Draft()
                current.children.append(child)
                ancestors.append(current)
                current = child
            elif token == ",":
                if not ancestors:
                    raise MalformedTreeError(
                        f"Sibling separator outside parentheses at token {index}."
                    )
                self._finish(current)
                current = _Draft()
                ancestors[-1].children.append(current)
            elif token == ")":
                if not ancestors:
                    raise MalformedTreeError(f"Unbalanced ')' at token {index}.")
                self._finish(current)
                current = ancestors.pop()
            elif token == ":":
                if current.branch_length is not None:
                    raise MalformedTreeError(
                        f"Second branch length for one node at token {index}."
                    )
            elif token == ";":
                if ancestors:
                    raise MalformedTreeError(
                        f"Unbalanced parentheses: {len(ancestors)} unclosed '(' before ';'."
                    )
                self._finish(current)
                terminated = True
            elif previous == ":":
                current.branch_length = _parse_branch_length(token, index)
            elif previous in (None, "(", ")", ","):
                current.name = token
            else:
                raise MalformedTreeError(f"Unexpected token {token!r} at token {index}.")
            previous = token

        if previous == ":":
            raise MalformedTreeError("Missing branch length after trailing ':'.")
        if ancestors:
            raise MalformedTreeError(
                f"Unbalanced parentheses: {len(ancestors)} unclosed '(' at end of input."
            )
        if not terminated:
            raise MalformedTreeError("Newick string must end with ';'.")

        tree = _freeze(root)
        logger.debug(
            "Parsed Newick tree",
            extra={"tokens": len(tokens), "synthesized_names": self._counter},
        )
        return tree

    def _finish(self, draft: _Draft) -> None:
        if draft.name is None:
            self._counter += 1
            draft.name = f"{self.name_prefix}{self._counter}"


def _parse_branch_length(token: str, index: int) -> float:
    # float() alone would also take "1_0", "inf" and "nan".
    if NUMBER_PATTERN.fullmatch(token) is None:
        raise MalformedTreeError(
            f"Branch length {token!r} at token {index} is not a number."
        )
    value = float(token)
    if not math.isfinite(value) or value < 0:
        raise MalformedTreeError(
            f"Branch length {token!r} at token {index} must be a finite non-negative number."
        )
    return value


def _freeze(root: _Draft) -> Clade:
    # Post-order over an explicit stack; children are frozen before their parent.
    frozen: dict[_Draft, Clade] = {}
    stack: list[tuple[_Draft, bool]] = [(root, False)]
    while stack:
        draft, expanded = stack.pop()
        if expanded:
            frozen[draft] = Clade(
                name=draft.name or "",
                branch_length=draft.branch_length,
                children=tuple(frozen.pop(child) for child in draft.children),
            )
            continue
        stack.append((draft, True))
        for child in reversed(draft.children):
            stack.append((child, False))
    return frozen[root]


def parse(text: str) -> Clade:
    """Parse one Newick tree, raising :class:`MalformedTreeError` on bad input."""

    return NewickParser().parse(text)


def parse_file(tree_path: Path) -> Clade:
    tree_path = Path(tree_path)
    if not tree_path.exists():
        raise FileNotFoundError(f"Tree file not found: {tree_path}")
    try:
        text = tree_path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.exception("Failed to read tree file", extra={"tree_path": str(tree_path)})
        raise TreeParseError(f"Failed to read tree file: {exc}") from exc
    return parse(text)

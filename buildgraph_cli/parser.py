"""Reference extraction: which known units does a unit mention?

Two interchangeable strategies share one contract: given a unit's content
and the names of every known unit, return a *superset* of the units it
depends on.  False positives only cost an extra rebuild; false negatives
would leave stale artifacts behind.

- :class:`LexicalExtractor` scans lines for import declarations and bare
  name occurrences.  Language-agnostic and trades precision for recall.
- :class:`TreeSitterExtractor` parses the unit with Tree-sitter and collects
  type names from declarations, signatures, and call receivers.
"""

from __future__ import annotations

import importlib
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Set

from tree_sitter import Language, Parser as TSParser

from .errors import ConfigError, ExtractionError

logger = logging.getLogger(__name__)

_IMPORT_RE = re.compile(r"^(?:import|from)\s+")
_IDENT_RE = re.compile(r"[A-Za-z_$][\w$]*")


# ===================================================================
# Abstract Extractor Interface
# ===================================================================

class ReferenceExtractor(ABC):
    """Abstract base class for all reference extraction strategies."""

    name: str = ""

    @abstractmethod
    def extract(self, content: str, unit_name: str, known: Set[str]) -> Set[str]:
        """Return the names in *known* that *content* references.

        *unit_name* itself is never part of the result.

        Raises:
            ExtractionError: the unit cannot be scanned or parsed.
        """
        ...


# ===================================================================
# Syntax-light scanning
# ===================================================================

class LexicalExtractor(ReferenceExtractor):
    """Line-oriented scanner.

    Import-like lines contribute every dotted segment that names a known
    unit (so ``import static pkg.Util.helper;`` still yields ``Util``).
    Any other line contributes each known name it contains as a substring.
    """

    name = "lexical"

    def extract(self, content: str, unit_name: str, known: Set[str]) -> Set[str]:
        others = known - {unit_name}
        found: Set[str] = set()
        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line:
                continue
            if _IMPORT_RE.match(line):
                found.update(tok for tok in _IDENT_RE.findall(line) if tok in others)
                continue
            for candidate in others:
                if candidate in line:
                    found.add(candidate)
        return found


def mentions_identifier(content: str, name: str) -> bool:
    """True if *name* occurs in *content* as a whole identifier, not inside a longer one."""
    pattern = rf"(?<![\w$]){re.escape(name)}(?![\w$])"
    return re.search(pattern, content) is not None


# ===================================================================
# Structure-aware scanning (Tree-sitter)
# ===================================================================

# Map unit suffix -> module that provides the tree-sitter Language
_GRAMMAR_MODULES: Dict[str, str] = {
    ".java": "tree_sitter_java",
}


class TreeSitterExtractor(ReferenceExtractor):
    """Structure-aware extractor built on Tree-sitter.

    Collects every type name in the syntax tree (field types, return and
    parameter types, generic arguments, locals, supertypes, ``new``
    expressions), annotation names, the receivers of ``Name.method()`` calls,
    ``Name.FIELD`` accesses and ``Name::method`` references, the last segment
    of qualified names such as ``pkg.Name``, plus each segment of import
    declarations.  Names are then filtered to known units.
    """

    name = "structural"

    # Node kinds whose first identifier child is a possible unit reference
    _RECEIVER_KINDS = {"method_invocation", "field_access", "method_reference"}
    _ANNOTATION_KINDS = {"annotation", "marker_annotation"}
    # Qualified node kind -> field holding its trailing identifier
    _QUALIFIED_KINDS = {"field_access": "field", "scoped_identifier": "name"}

    def __init__(self, unit_suffix: str = ".java") -> None:
        mod_name = _GRAMMAR_MODULES.get(unit_suffix)
        if mod_name is None:
            raise ConfigError(
                f"No Tree-sitter grammar for '{unit_suffix}' units; use the lexical extractor"
            )
        mod = importlib.import_module(mod_name)
        self._parser = TSParser(Language(mod.language()))
        logger.debug("Loaded tree-sitter grammar %s", mod_name)

    def extract(self, content: str, unit_name: str, known: Set[str]) -> Set[str]:
        tree = self._parser.parse(content.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            line = _first_error_line(root)
            raise ExtractionError(unit_name, f"syntax error near line {line}")

        names = set(self._collect_names(root))
        return (names & known) - {unit_name}

    def _collect_names(self, root: Any) -> Iterator[str]:
        stack: List[Any] = [root]
        while stack:
            node = stack.pop()
            kind = node.type
            if kind == "type_identifier":
                yield _text(node)
            elif kind == "import_declaration":
                yield from _IDENT_RE.findall(_text(node))
                continue
            elif kind in self._ANNOTATION_KINDS:
                name = node.child_by_field_name("name")
                if name is not None and name.type == "identifier":
                    yield _text(name)
            if kind in self._RECEIVER_KINDS:
                receiver = node.child_by_field_name("object")
                if receiver is None and node.named_child_count:
                    receiver = node.named_children[0]
                if receiver is not None and receiver.type == "identifier":
                    yield _text(receiver)
            if kind in self._QUALIFIED_KINDS:
                # Last segment of p.Util / p.Limits.MAX / @p.Audited
                tail = node.child_by_field_name(self._QUALIFIED_KINDS[kind])
                if tail is not None and tail.type == "identifier":
                    yield _text(tail)
            stack.extend(node.children)


def _text(node: Any) -> str:
    return node.text.decode("utf-8")


def _first_error_line(root: Any) -> int:
    stack: List[Any] = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        stack.extend(reversed(node.children))
    return root.start_point[0] + 1


# ===================================================================
# Selection
# ===================================================================

def get_extractor(name: str, unit_suffix: str = ".java") -> ReferenceExtractor:
    """Return the extractor registered under *name*."""
    if name == LexicalExtractor.name:
        return LexicalExtractor()
    if name == TreeSitterExtractor.name:
        return TreeSitterExtractor(unit_suffix)
    raise ConfigError(f"Unknown extractor '{name}'")


def available_extractors() -> Iterable[str]:
    return (LexicalExtractor.name, TreeSitterExtractor.name)

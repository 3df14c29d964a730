"""Tree-sitter parsing for JavaScript / TypeScript sources.

One :class:`SourceParser` owns a tree-sitter parser per grammar and turns a
file into the three things the engine needs from it:

- function and class declarations (with methods and source spans),
- module references (``import ... from`` and ``require(...)``),
- identifier call sites, each tagged with the innermost enclosing scope.

Syntax errors are reported as :class:`~codemap.errors.SourceParseError` so
callers can decide whether a file still counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Parser as TSParser

from .errors import SourceParseError
from .models import ClassEntry, EdgeType, FunctionEntry, LineRange, MethodEntry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

_FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
# "function" is the pre-0.21 tree-sitter-javascript name for function_expression
_FUNCTION_EXPRESSIONS = {"function_expression", "function", "generator_function"}
_ARROW_FUNCTIONS = {"arrow_function"}
_CLASS_DECLARATIONS = {"class_declaration", "abstract_class_declaration"}
_CLASS_EXPRESSIONS = {"class"}

ANONYMOUS = "anonymous"
UNNAMED_PARAM = "unnamed"


# ===================================================================
# Parse results
# ===================================================================

@dataclass
class ModuleReference:
    """A module specifier and whether it came from ``import`` or ``require``."""

    specifier: str
    kind: EdgeType
    line: int


@dataclass
class Scope:
    """An enclosing function-like scope.

    ``name`` is None for scopes that cannot be attributed (anonymous
    callbacks, IIFEs, unnamed methods).
    """

    kind: str
    name: Optional[str]
    class_name: Optional[str] = None

    @property
    def is_named(self) -> bool:
        if self.name is None:
            return False
        if self.kind == "method":
            return self.class_name is not None
        return True


@dataclass
class CallSite:
    callee: str
    scope: Optional[Scope]
    line: int


@dataclass
class ParsedSource:
    path: str
    language: str
    source_bytes: bytes
    root: Any

    def text(self, node: Any) -> str:
        return self.source_bytes[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


# ===================================================================
# Parser
# ===================================================================

class SourceParser:
    """Error-checking tree-sitter front end for the JS/TS family."""

    _GRAMMARS: Dict[str, Any] = {
        "javascript": tree_sitter_javascript.language,
        "typescript": tree_sitter_typescript.language_typescript,
        "tsx": tree_sitter_typescript.language_tsx,
    }

    def __init__(self) -> None:
        self._parsers: Dict[str, TSParser] = {}

    @staticmethod
    def language_for(path: str | Path) -> Optional[str]:
        return LANGUAGE_MAP.get(Path(path).suffix.lower())

    def supports(self, path: str | Path) -> bool:
        return self.language_for(path) is not None

    def _get_parser(self, language: str) -> TSParser:
        parser = self._parsers.get(language)
        if parser is None:
            parser = TSParser(Language(self._GRAMMARS[language]()))
            self._parsers[language] = parser
            logger.debug("Loaded tree-sitter grammar for %s", language)
        return parser

    def parse(self, path: str | Path, source: str) -> ParsedSource:
        """Parse *source*; raise :class:`SourceParseError` on syntax errors.

        Files with an extension outside :data:`LANGUAGE_MAP` are parsed with
        the TypeScript grammar, which accepts plain JavaScript as well.
        """
        language = self.language_for(path) or "typescript"
        source_bytes = source.encode("utf-8")
        tree = self._get_parser(language).parse(source_bytes)
        if tree.root_node.has_error:
            line = _first_error_line(tree.root_node)
            raise SourceParseError(f"{path}: syntax error near line {line}")
        return ParsedSource(
            path=str(path),
            language=language,
            source_bytes=source_bytes,
            root=tree.root_node,
        )

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def extract_definitions(
        self,
        parsed: ParsedSource,
    ) -> Tuple[List[FunctionEntry], List[ClassEntry]]:
        """Return every function and class declaration in document order."""
        functions: List[FunctionEntry] = []
        classes: List[ClassEntry] = []

        for node, entering in _walk(parsed.root):
            if not entering:
                continue
            if node.type in _FUNCTION_DECLARATIONS or (
                node.type in _FUNCTION_EXPRESSIONS and _is_default_export(node)
            ):
                functions.append(FunctionEntry(
                    name=_declared_name(parsed, node),
                    params=_param_names(parsed, node.child_by_field_name("parameters")),
                    loc=_line_range(node),
                    code=parsed.text(node),
                    file_path=parsed.path,
                ))
            elif node.type in _CLASS_DECLARATIONS or (
                node.type in _CLASS_EXPRESSIONS and _is_default_export(node)
            ):
                classes.append(ClassEntry(
                    name=_declared_name(parsed, node),
                    methods=_class_methods(parsed, node),
                    loc=_line_range(node),
                    code=parsed.text(node),
                    file_path=parsed.path,
                ))
        return functions, classes

    # ------------------------------------------------------------------
    # Imports / requires
    # ------------------------------------------------------------------

    def extract_module_references(self, parsed: ParsedSource) -> List[ModuleReference]:
        references: List[ModuleReference] = []
        for node, entering in _walk(parsed.root):
            if not entering:
                continue
            if node.type == "import_statement":
                source = node.child_by_field_name("source")
                if source is not None and source.type == "string":
                    references.append(ModuleReference(
                        specifier=_string_value(parsed, source),
                        kind=EdgeType.IMPORTS,
                        line=node.start_point[0] + 1,
                    ))
            elif node.type == "call_expression":
                specifier = _require_specifier(parsed, node)
                if specifier is not None:
                    references.append(ModuleReference(
                        specifier=specifier,
                        kind=EdgeType.REQUIRES,
                        line=node.start_point[0] + 1,
                    ))
        return references

    # ------------------------------------------------------------------
    # Call sites
    # ------------------------------------------------------------------

    def extract_call_sites(self, parsed: ParsedSource) -> List[CallSite]:
        """Collect ``name(...)`` calls with their innermost enclosing scope.

        Scopes are tracked on an explicit stack during a single pass, so
        attribution never walks back up the tree.
        """
        calls: List[CallSite] = []
        scopes: List[Scope] = []
        class_names: List[Optional[str]] = []

        for node, entering in _walk(parsed.root):
            node_type = node.type
            if node_type in _CLASS_DECLARATIONS or node_type in _CLASS_EXPRESSIONS:
                if entering:
                    name_node = node.child_by_field_name("name")
                    class_names.append(parsed.text(name_node) if name_node is not None else None)
                else:
                    class_names.pop()
                continue

            scope = None
            if entering:
                scope = _scope_for(parsed, node, class_names[-1] if class_names else None)
            if scope is not None:
                scopes.append(scope)
                continue
            if not entering:
                if _opens_scope(node):
                    scopes.pop()
                continue

            if node_type == "call_expression":
                function = node.child_by_field_name("function")
                if function is not None and function.type == "identifier":
                    calls.append(CallSite(
                        callee=parsed.text(function),
                        scope=scopes[-1] if scopes else None,
                        line=node.start_point[0] + 1,
                    ))
        return calls


# ===================================================================
# Helpers
# ===================================================================

def _walk(root: Any) -> Iterator[Tuple[Any, bool]]:
    """Yield ``(node, entering)`` pairs for named nodes in document order.

    Iterative so deeply nested sources cannot exhaust the recursion limit.
    """
    stack: List[Tuple[Any, bool]] = [(root, True)]
    while stack:
        node, entering = stack.pop()
        yield node, entering
        if entering:
            stack.append((node, False))
            for child in reversed(node.named_children):
                stack.append((child, True))


def _first_error_line(root: Any) -> int:
    for node, entering in _walk(root):
        if entering and (node.type == "ERROR" or node.is_missing):
            return node.start_point[0] + 1
    return root.start_point[0] + 1


def _line_range(node: Any) -> LineRange:
    return LineRange(start=node.start_point[0] + 1, end=node.end_point[0] + 1)


def _is_default_export(node: Any) -> bool:
    parent = node.parent
    return parent is not None and parent.type == "export_statement"


def _declared_name(parsed: ParsedSource, node: Any) -> str:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return ANONYMOUS
    return parsed.text(name_node) or ANONYMOUS


def _param_names(parsed: ParsedSource, params_node: Any) -> List[str]:
    if params_node is None:
        return []
    names: List[str] = []
    for param in params_node.named_children:
        if param.type == "comment":
            continue
        if param.type == "identifier":
            names.append(parsed.text(param))
        elif param.type in ("required_parameter", "optional_parameter"):
            # TypeScript wraps each parameter; defaults keep no name
            pattern = param.child_by_field_name("pattern")
            if (
                pattern is not None
                and pattern.type in ("identifier", "this")
                and param.child_by_field_name("value") is None
            ):
                names.append(parsed.text(pattern))
            else:
                names.append(UNNAMED_PARAM)
        else:
            names.append(UNNAMED_PARAM)
    return names


def _method_name(parsed: ParsedSource, method: Any) -> Optional[str]:
    """Name of a class method; None for ``#private`` methods."""
    name_node = method.child_by_field_name("name")
    if name_node is None:
        return ANONYMOUS
    if name_node.type == "private_property_identifier":
        return None
    if name_node.type == "property_identifier":
        return parsed.text(name_node)
    if name_node.type == "string":
        return _string_value(parsed, name_node) or ANONYMOUS
    return ANONYMOUS


def _class_methods(parsed: ParsedSource, class_node: Any) -> List[MethodEntry]:
    body = class_node.child_by_field_name("body")
    if body is None:
        return []
    methods: List[MethodEntry] = []
    for member in body.named_children:
        if member.type != "method_definition":
            continue
        name = _method_name(parsed, member)
        if name is None:
            continue
        methods.append(MethodEntry(
            name=name,
            params=_param_names(parsed, member.child_by_field_name("parameters")),
            loc=_line_range(member),
        ))
    return methods


def _string_value(parsed: ParsedSource, string_node: Any) -> str:
    raw = parsed.text(string_node)
    if len(raw) >= 2 and raw[0] in "'\"" and raw[-1] == raw[0]:
        return raw[1:-1]
    return raw


def _require_specifier(parsed: ParsedSource, call: Any) -> Optional[str]:
    function = call.child_by_field_name("function")
    if function is None or function.type != "identifier" or parsed.text(function) != "require":
        return None
    arguments = call.child_by_field_name("arguments")
    if arguments is None or arguments.type != "arguments":
        return None
    args = [a for a in arguments.named_children if a.type != "comment"]
    if not args or args[0].type != "string":
        return None
    return _string_value(parsed, args[0])


def _opens_scope(node: Any) -> bool:
    return (
        node.type in _FUNCTION_DECLARATIONS
        or node.type in _FUNCTION_EXPRESSIONS
        or node.type in _ARROW_FUNCTIONS
        or node.type == "method_definition"
    )


def _scope_for(parsed: ParsedSource, node: Any, class_name: Optional[str]) -> Optional[Scope]:
    """Build the scope a function-like *node* opens, or None if it opens none."""
    node_type = node.type
    if node_type in _FUNCTION_DECLARATIONS:
        name_node = node.child_by_field_name("name")
        return Scope("function", parsed.text(name_node) if name_node is not None else None)
    if node_type in _FUNCTION_EXPRESSIONS or node_type in _ARROW_FUNCTIONS:
        return Scope("function", _bound_variable_name(parsed, node))
    if node_type == "method_definition":
        name = _method_name(parsed, node)
        if name == ANONYMOUS:
            name = None
        return Scope("method", name, class_name)
    return None


def _bound_variable_name(parsed: ParsedSource, node: Any) -> Optional[str]:
    """``const name = () => ...`` gives ``name``; anything else is anonymous."""
    parent = node.parent
    if parent is None or parent.type != "variable_declarator":
        return None
    value = parent.child_by_field_name("value")
    if value is None or (value.start_byte, value.end_byte) != (node.start_byte, node.end_byte):
        return None
    name_node = parent.child_by_field_name("name")
    if name_node is None or name_node.type != "identifier":
        return None
    return parsed.text(name_node)


__all__ = [
    "LANGUAGE_MAP",
    "CallSite",
    "ModuleReference",
    "ParsedSource",
    "Scope",
    "SourceParser",
]

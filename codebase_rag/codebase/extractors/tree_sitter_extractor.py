# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tree-sitter symbol extraction for JavaScript and TypeScript.

Language-specific knowledge lives in the query tables below; the
extraction loop itself is language-agnostic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Sequence, Tuple

from tree_sitter import QueryCursor

from codebase_rag.codebase.extractors.base import (
    ColumnMapper,
    ExtractedSymbol,
    ExtractionResult,
    SymbolExtractor,
    Use,
)
from codebase_rag.codebase.extractors.tree_sitter_manager import (
    get_language,
    get_parser,
    get_query,
)
from codebase_rag.codebase.models import SourceFile, SourceRange, SymbolKind
from codebase_rag.errors import ParseError

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)


@dataclass
class QueryPattern:
    """Single tree-sitter query capturing @name and @def for one symbol kind."""

    kind: SymbolKind
    query: str


@dataclass
class LanguageQueries:
    """Queries and node types describing one language."""

    symbols: List[QueryPattern] = field(default_factory=list)
    calls: List[str] = field(default_factory=list)
    class_nodes: Tuple[str, ...] = ()
    function_nodes: Tuple[str, ...] = ()


_JS_CALLS = [
    "(call_expression function: (identifier) @callee)",
    """(call_expression
        function: (member_expression
            object: (_) @object
            property: (property_identifier) @callee) @expr)""",
    "(new_expression constructor: (identifier) @callee)",
]

_JS_FUNCTION_NODES = (
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "arrow_function",
    "method_definition",
)

JAVASCRIPT_QUERIES = LanguageQueries(
    symbols=[
        QueryPattern(SymbolKind.CLASS, "(class_declaration name: (identifier) @name) @def"),
        QueryPattern(SymbolKind.FUNCTION, "(function_declaration name: (identifier) @name) @def"),
        QueryPattern(
            SymbolKind.FUNCTION,
            "(generator_function_declaration name: (identifier) @name) @def",
        ),
        QueryPattern(
            SymbolKind.METHOD, "(method_definition name: (property_identifier) @name) @def"
        ),
        QueryPattern(SymbolKind.VARIABLE, "(variable_declarator name: (identifier) @name) @def"),
    ],
    calls=_JS_CALLS,
    class_nodes=("class_declaration", "class"),
    function_nodes=_JS_FUNCTION_NODES,
)

TYPESCRIPT_QUERIES = LanguageQueries(
    symbols=[
        QueryPattern(SymbolKind.CLASS, "(class_declaration name: (type_identifier) @name) @def"),
        QueryPattern(
            SymbolKind.CLASS, "(abstract_class_declaration name: (type_identifier) @name) @def"
        ),
        QueryPattern(SymbolKind.FUNCTION, "(function_declaration name: (identifier) @name) @def"),
        QueryPattern(
            SymbolKind.FUNCTION,
            "(generator_function_declaration name: (identifier) @name) @def",
        ),
        QueryPattern(
            SymbolKind.METHOD, "(method_definition name: (property_identifier) @name) @def"
        ),
        QueryPattern(
            SymbolKind.INTERFACE, "(interface_declaration name: (type_identifier) @name) @def"
        ),
        QueryPattern(SymbolKind.ENUM, "(enum_declaration name: (identifier) @name) @def"),
        QueryPattern(
            SymbolKind.TYPE_ALIAS, "(type_alias_declaration name: (type_identifier) @name) @def"
        ),
        QueryPattern(SymbolKind.VARIABLE, "(variable_declarator name: (identifier) @name) @def"),
    ],
    calls=_JS_CALLS,
    class_nodes=("class_declaration", "abstract_class_declaration", "class"),
    function_nodes=_JS_FUNCTION_NODES,
)

LANGUAGE_QUERIES: Dict[str, LanguageQueries] = {
    "javascript": JAVASCRIPT_QUERIES,
    "typescript": TYPESCRIPT_QUERIES,
    "tsx": TYPESCRIPT_QUERIES,
}


def _text(node: "Node") -> str:
    return node.text.decode("utf-8", errors="ignore") if node.text else ""


def _node_range(node: "Node", columns: ColumnMapper) -> SourceRange:
    return columns.range(
        node.start_point[0], node.start_point[1], node.end_point[0], node.end_point[1]
    )


def _iter_nodes(node: "Node") -> Iterator["Node"]:
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _first_error(root: "Node") -> Optional["Node"]:
    for node in _iter_nodes(root):
        if node.type == "ERROR" or node.is_missing:
            return node
    return None


def _strip_quotes(text: str) -> str:
    return text.strip().strip("'\"`")


@dataclass
class _ImportTable:
    # local name -> (module specifier, exported name)
    names: Dict[str, Tuple[str, str]] = field(default_factory=dict)
    # namespace alias -> module specifier
    namespaces: Dict[str, str] = field(default_factory=dict)


class TreeSitterExtractor(SymbolExtractor):
    """Extracts declarations and call sites using tree-sitter queries.

    Grammars are loaded lazily; ``check_available`` raises
    ExtractorUnavailableError when a grammar package is not installed.
    """

    def __init__(self, languages: Sequence[str] = ("javascript", "typescript", "tsx")):
        unknown = [lang for lang in languages if lang not in LANGUAGE_QUERIES]
        if unknown:
            raise ValueError(f"No tree-sitter queries defined for: {', '.join(unknown)}")
        self.languages = tuple(languages)

    def check_available(self, language: str) -> None:
        get_language(language)

    def _captures(self, language: str, query_src: str, root: "Node"):
        query = get_query(language, query_src)
        return QueryCursor(query).matches(root)

    def _enclosing(self, node: "Node", node_types: Tuple[str, ...]) -> Optional["Node"]:
        parent = node.parent
        while parent is not None:
            if parent.type in node_types:
                return parent
            parent = parent.parent
        return None

    def _enclosing_class_name(self, node: "Node", queries: LanguageQueries) -> Optional[str]:
        class_node = self._enclosing(node, queries.class_nodes)
        if class_node is None:
            return None
        name_node = class_node.child_by_field_name("name")
        return _text(name_node) if name_node is not None else None

    def _collect_imports(self, root: "Node") -> _ImportTable:
        table = _ImportTable()
        for statement in root.children:
            if statement.type != "import_statement":
                continue
            source_node = statement.child_by_field_name("source")
            if source_node is None:
                continue
            specifier = _strip_quotes(_text(source_node))
            for clause in statement.children:
                if clause.type != "import_clause":
                    continue
                for child in clause.children:
                    if child.type == "identifier":
                        local = _text(child)
                        table.names[local] = (specifier, local)
                    elif child.type == "namespace_import":
                        for ident in child.children:
                            if ident.type == "identifier":
                                table.namespaces[_text(ident)] = specifier
                    elif child.type == "named_imports":
                        for spec in child.children:
                            if spec.type != "import_specifier":
                                continue
                            name_node = spec.child_by_field_name("name")
                            alias_node = spec.child_by_field_name("alias")
                            if name_node is None:
                                continue
                            exported = _text(name_node)
                            local = _text(alias_node) if alias_node is not None else exported
                            table.names[local] = (specifier, exported)
        return table

    def _extract_symbols(
        self, language: str, queries: LanguageQueries, root: "Node", columns: ColumnMapper
    ) -> List[ExtractedSymbol]:
        symbols: List[ExtractedSymbol] = []
        seen = set()
        for pattern in queries.symbols:
            for _, captures in self._captures(language, pattern.query, root):
                name_nodes = captures.get("name", [])
                def_nodes = captures.get("def", [])
                if not name_nodes or not def_nodes:
                    continue
                name_node, def_node = name_nodes[0], def_nodes[0]
                if pattern.kind == SymbolKind.VARIABLE and self._enclosing(
                    def_node, queries.function_nodes
                ):
                    continue  # locals are not indexed
                key = (def_node.start_point, _text(name_node))
                if key in seen:
                    continue
                seen.add(key)
                symbols.append(
                    ExtractedSymbol(
                        name=_text(name_node),
                        kind=pattern.kind,
                        range=_node_range(def_node, columns),
                        container=self._enclosing_class_name(def_node, queries),
                    )
                )
        symbols.sort(key=lambda s: s.range.start.as_tuple())
        return symbols

    def _extract_uses(
        self,
        source: SourceFile,
        language: str,
        queries: LanguageQueries,
        root: "Node",
        imports: _ImportTable,
        columns: ColumnMapper,
    ) -> List[Use]:
        uses: List[Use] = []
        for query_src in queries.calls:
            for _, captures in self._captures(language, query_src, root):
                callee_nodes = captures.get("callee", [])
                if not callee_nodes:
                    continue
                callee = callee_nodes[0]
                name = _text(callee)
                object_nodes = captures.get("object", [])
                expr_nodes = captures.get("expr", [])
                span = _node_range(expr_nodes[0] if expr_nodes else callee, columns)

                use = Use(file_path=source.path, range=span, name=name)
                if object_nodes:
                    owner = object_nodes[0]
                    owner_text = _text(owner)
                    if owner.type == "this":
                        use.container = self._enclosing_class_name(callee, queries)
                    elif owner.type == "identifier" and owner_text in imports.namespaces:
                        use.module = imports.namespaces[owner_text]
                elif name in imports.names:
                    use.module, use.name = imports.names[name]

                if use.module is not None and not use.module.startswith("."):
                    use.external = True  # bare specifier, e.g. "react"
                uses.append(use)
        uses.sort(key=lambda u: u.range.start.as_tuple())
        return uses

    def extract(self, source: SourceFile) -> ExtractionResult:
        language = source.language
        queries = LANGUAGE_QUERIES.get(language)
        if queries is None or language not in self.languages:
            raise ValueError(f"{self!r} cannot extract language '{language}'")

        parser = get_parser(language)
        tree = parser.parse(source.content.encode("utf-8"))
        root = tree.root_node

        if root.has_error:
            error_node = _first_error(root)
            line = error_node.start_point[0] + 1 if error_node is not None else None
            return ExtractionResult.failed(ParseError(source.path, "syntax error", line=line))

        imports = self._collect_imports(root)
        columns = ColumnMapper(source.content)
        symbols = self._extract_symbols(language, queries, root, columns)
        uses = self._extract_uses(source, language, queries, root, imports, columns)
        logger.debug(
            f"Extracted {len(symbols)} symbols and {len(uses)} uses from {source.path}"
        )
        return ExtractionResult(symbols=symbols, uses=uses)

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

"""Python symbol extraction using the standard library ``ast`` module."""

import ast
import builtins
import logging
from typing import Dict, List, Optional, Set, Tuple, Union

from codebase_rag.codebase.extractors.base import (
    ColumnMapper,
    ExtractedSymbol,
    ExtractionResult,
    SymbolExtractor,
    Use,
)
from codebase_rag.codebase.models import SourceFile, SourceRange, SymbolKind
from codebase_rag.errors import ParseError

logger = logging.getLogger(__name__)

_BUILTIN_NAMES: Set[str] = set(dir(builtins))

_ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}
_INTERFACE_BASES = {"Protocol", "ABC"}

_FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


def _node_range(node: ast.AST, columns: ColumnMapper) -> SourceRange:
    end_lineno = getattr(node, "end_lineno", None) or node.lineno
    end_col = getattr(node, "end_col_offset", None)
    if end_col is None:
        end_col = node.col_offset
    return columns.range(node.lineno - 1, node.col_offset, end_lineno - 1, end_col)


def _base_name(expr: ast.expr) -> Optional[str]:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    if isinstance(expr, ast.Subscript):  # Generic[T], Protocol[T]
        return _base_name(expr.value)
    return None


class SymbolVisitor(ast.NodeVisitor):
    """AST visitor collecting declarations, imports and call sites."""

    def __init__(self, file_path: str, columns: ColumnMapper):
        self.file_path = file_path
        self.columns = columns
        self.symbols: List[ExtractedSymbol] = []
        self.uses: List[Use] = []
        # local name -> (module, original name) for `from m import x as y`
        self.from_imports: Dict[str, Tuple[str, str]] = {}
        # local alias -> module for `import m` / `import m as y`
        self.module_aliases: Dict[str, str] = {}
        self.current_class: Optional[str] = None
        self._function_depth = 0

    def _add_symbol(self, name: str, kind: SymbolKind, node: ast.AST) -> None:
        self.symbols.append(
            ExtractedSymbol(
                name=name,
                kind=kind,
                range=_node_range(node, self.columns),
                container=self.current_class,
            )
        )

    def _add_use(
        self,
        node: ast.AST,
        name: str,
        module: Optional[str] = None,
        container: Optional[str] = None,
    ) -> None:
        self.uses.append(
            Use(
                file_path=self.file_path,
                range=_node_range(node, self.columns),
                name=name,
                module=module,
                container=container,
            )
        )

    def _use_for_name(self, node: ast.AST, local_name: str) -> None:
        if local_name in self.from_imports:
            module, original = self.from_imports[local_name]
            self._add_use(node, original, module=module)
        else:
            self._add_use(node, local_name)

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.asname:
                self.module_aliases[alias.asname] = alias.name
            else:
                # `import a.b` binds `a`; attribute chains are resolved from the root
                root = alias.name.split(".")[0]
                self.module_aliases[root] = root

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        module = "." * (node.level or 0) + (node.module or "")
        for alias in node.names:
            if alias.name == "*":
                continue
            self.from_imports[alias.asname or alias.name] = (module, alias.name)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        base_names = [b for b in (_base_name(base) for base in node.bases) if b]
        if self._function_depth == 0:
            kind = SymbolKind.CLASS
            if _ENUM_BASES.intersection(base_names):
                kind = SymbolKind.ENUM
            elif _INTERFACE_BASES.intersection(base_names):
                kind = SymbolKind.INTERFACE
            self._add_symbol(node.name, kind, node)

        for base in node.bases:
            target = base.value if isinstance(base, ast.Subscript) else base
            self._visit_reference_expr(target)
        for decorator in node.decorator_list:
            self.visit(decorator)

        old_class = self.current_class
        self.current_class = node.name
        for stmt in node.body:
            self.visit(stmt)
        self.current_class = old_class

    def _visit_function(self, node: _FunctionNode) -> None:
        if self._function_depth == 0:
            kind = SymbolKind.METHOD if self.current_class else SymbolKind.FUNCTION
            self._add_symbol(node.name, kind, node)

        for decorator in node.decorator_list:
            self.visit(decorator)
        for default in list(node.args.defaults) + [
            d for d in node.args.kw_defaults if d is not None
        ]:
            self.visit(default)

        self._function_depth += 1
        for stmt in node.body:
            self.visit(stmt)
        self._function_depth -= 1

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def visit_Assign(self, node: ast.Assign) -> None:
        if self._function_depth == 0:
            for target in node.targets:
                for name_node in self._target_names(target):
                    self._add_symbol(name_node.id, SymbolKind.VARIABLE, node)
        self.generic_visit(node)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        if self._function_depth == 0 and isinstance(node.target, ast.Name):
            kind = SymbolKind.VARIABLE
            if _base_name(node.annotation) == "TypeAlias":
                kind = SymbolKind.TYPE_ALIAS
            self._add_symbol(node.target.id, kind, node)
        if node.value is not None:
            self.visit(node.value)

    def visit_TypeAlias(self, node: ast.AST) -> None:
        # Python 3.12+ `type X = ...`
        name = getattr(node, "name", None)
        if self._function_depth == 0 and isinstance(name, ast.Name):
            self._add_symbol(name.id, SymbolKind.TYPE_ALIAS, node)
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        self._visit_reference_expr(node.func)
        for arg in node.args:
            self.visit(arg)
        for keyword in node.keywords:
            self.visit(keyword.value)
        if isinstance(node.func, ast.Attribute):
            self.visit(node.func.value)

    def _visit_reference_expr(self, func: ast.expr) -> None:
        """Record a use for a callee or base-class expression."""
        if isinstance(func, ast.Name):
            self._use_for_name(func, func.id)
        elif isinstance(func, ast.Attribute):
            owner = func.value
            if isinstance(owner, ast.Name):
                if owner.id in ("self", "cls") and self.current_class:
                    self._add_use(func, func.attr, container=self.current_class)
                elif owner.id in self.module_aliases:
                    self._add_use(func, func.attr, module=self.module_aliases[owner.id])
                elif owner.id in self.from_imports:
                    module, original = self.from_imports[owner.id]
                    separator = "" if module.endswith(".") else "."
                    self._add_use(func, func.attr, module=f"{module}{separator}{original}")
                else:
                    self._add_use(func, func.attr)
            else:
                dotted = self._dotted_name(func)
                if dotted and dotted.split(".")[0] in self.module_aliases:
                    root, _, rest = dotted.partition(".")
                    module_path, _, attr = rest.rpartition(".")
                    base = self.module_aliases[root]
                    module = f"{base}.{module_path}" if module_path else base
                    self._add_use(func, attr, module=module)
                else:
                    self._add_use(func, func.attr)

    @staticmethod
    def _dotted_name(expr: ast.expr) -> Optional[str]:
        parts = []
        while isinstance(expr, ast.Attribute):
            parts.append(expr.attr)
            expr = expr.value
        if isinstance(expr, ast.Name):
            parts.append(expr.id)
            return ".".join(reversed(parts))
        return None

    @staticmethod
    def _target_names(target: ast.expr) -> List[ast.Name]:
        if isinstance(target, ast.Name):
            return [target]
        if isinstance(target, (ast.Tuple, ast.List)):
            names = []
            for element in target.elts:
                names.extend(SymbolVisitor._target_names(element))
            return names
        return []


class PythonAstExtractor(SymbolExtractor):
    """Extracts Python declarations and call sites with ``ast``.

    Only module-level and class-level declarations are recorded; locals
    inside function bodies are not indexed. Uses are recorded everywhere.
    Columns are character offsets; ``ast`` byte offsets are converted.
    """

    languages = ("python",)

    def extract(self, source: SourceFile) -> ExtractionResult:
        try:
            tree = ast.parse(source.content, filename=source.path)
        except SyntaxError as e:
            return ExtractionResult.failed(
                ParseError(source.path, e.msg or "invalid syntax", line=e.lineno)
            )
        except ValueError as e:
            # e.g. source code string cannot contain null bytes
            return ExtractionResult.failed(ParseError(source.path, str(e)))

        visitor = SymbolVisitor(source.path, ColumnMapper(source.content))
        visitor.visit(tree)

        declared = {s.name for s in visitor.symbols}
        for use in visitor.uses:
            if (
                use.module is None
                and use.container is None
                and use.name in _BUILTIN_NAMES
                and use.name not in declared
                and use.name not in visitor.from_imports
            ):
                use.external = True

        logger.debug(
            f"Extracted {len(visitor.symbols)} symbols and {len(visitor.uses)} uses "
            f"from {source.path}"
        )
        return ExtractionResult(symbols=visitor.symbols, uses=visitor.uses)

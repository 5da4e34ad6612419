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

"""Resolve uses to declaration handles with import-aware name heuristics."""

from __future__ import annotations

import posixpath
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence

from codebase_rag.codebase.extractors.base import Use
from codebase_rag.codebase.models import FileIndexEntry, Symbol, SymbolHandle, SymbolKind

_SCRIPT_EXTENSIONS = (".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs")
_SOURCE_DIR_PREFIXES = ("src", "lib")


def module_name_for(relative_path: PurePosixPath) -> Optional[str]:
    """Map a root-relative Python file path to its dotted module name.

    Example:
        >>> module_name_for(PurePosixPath("pkg/mod.py"))
        'pkg.mod'
        >>> module_name_for(PurePosixPath("pkg/__init__.py"))
        'pkg'
    """
    if relative_path.suffix not in (".py", ".pyw"):
        return None
    parts = list(relative_path.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts) if parts else None


class SymbolResolver:
    """Name table over one index generation.

    Lookup order for a use:
    1. Import hint (module) -> declaration in that module's file
    2. Receiver class (self.x / this.x) -> member of that class in the same file
    3. Bare name -> same-file declaration, then project-wide declaration
    """

    def __init__(self, roots: Sequence[Path] = ()) -> None:
        self.roots = [Path(r).resolve() for r in roots]
        # name -> handles, ordered by file path then position
        self._index: Dict[str, List[SymbolHandle]] = {}
        self._symbols: Dict[SymbolHandle, Symbol] = {}
        self._by_file: Dict[str, List[Symbol]] = {}
        # dotted module name -> file path
        self._modules: Dict[str, str] = {}
        # file path -> dotted module name
        self._module_names: Dict[str, str] = {}

    def ingest(self, entries: Iterable[FileIndexEntry]) -> None:
        """Ingest every symbol of a freshly built generation."""
        for entry in sorted(entries, key=lambda e: e.path):
            self._by_file[entry.path] = list(entry.symbols)
            for symbol in entry.symbols:
                self._symbols[symbol.handle] = symbol
                self._index.setdefault(symbol.name, []).append(symbol.handle)
            self._register_module(entry.path)

    def _register_module(self, path: str) -> None:
        for root in self.roots:
            try:
                rel = PurePosixPath(Path(path).relative_to(root).as_posix())
            except ValueError:
                continue
            module = module_name_for(rel)
            if module is None:
                return
            self._modules.setdefault(module, path)
            self._module_names.setdefault(path, module)
            head, _, rest = module.partition(".")
            if head in _SOURCE_DIR_PREFIXES and rest:
                self._modules.setdefault(rest, path)
            return

    def has_file(self, path: str) -> bool:
        return path in self._by_file

    def module_file(self, module: str, from_file: str) -> Optional[str]:
        """Find the project file providing a module, or None if it is out of tree."""
        if "/" in module:
            return self._script_module_file(module, from_file)
        if module.startswith("."):
            module = self._absolute_module(module, from_file)
            if not module:
                return None
        return self._modules.get(module)

    def _absolute_module(self, module: str, from_file: str) -> Optional[str]:
        level = len(module) - len(module.lstrip("."))
        remainder = module[level:]
        current = self._module_of(from_file)
        if current is None:
            return None
        package = current.split(".")
        if not from_file.endswith("__init__.py"):
            package = package[:-1]
        if level - 1 > len(package):
            return None
        if level > 1:
            package = package[: len(package) - (level - 1)]
        parts = package + ([remainder] if remainder else [])
        return ".".join(p for p in parts if p)

    def _module_of(self, path: str) -> Optional[str]:
        return self._module_names.get(path)

    def _script_module_file(self, specifier: str, from_file: str) -> Optional[str]:
        if not specifier.startswith("."):
            return None
        base = posixpath.normpath(
            posixpath.join(PurePosixPath(Path(from_file).as_posix()).parent.as_posix(), specifier)
        )
        candidates = [base]
        candidates.extend(base + ext for ext in _SCRIPT_EXTENSIONS)
        candidates.extend(posixpath.join(base, "index" + ext) for ext in _SCRIPT_EXTENSIONS)
        for candidate in candidates:
            if candidate in self._by_file:
                return candidate
            native = str(Path(candidate))
            if native in self._by_file:
                return native
        return None

    def _pick(self, symbols: List[Symbol]) -> Optional[SymbolHandle]:
        if not symbols:
            return None
        top_level = [s for s in symbols if s.container is None]
        return (top_level or symbols)[0].handle

    def resolve(self, use: Use) -> Optional[SymbolHandle]:
        """Resolve a use to a handle, or None if no project declaration matches."""
        if use.module is not None:
            return self._resolve_imported(use)

        same_file = [s for s in self._by_file.get(use.file_path, []) if s.name == use.name]

        if use.container is not None:
            members = [s for s in same_file if s.container == use.container]
            if members:
                return members[0].handle
            return None

        local = self._pick(same_file)
        if local is not None:
            return local

        candidates = [self._symbols[h] for h in self._index.get(use.name, [])]
        preferred = [s for s in candidates if s.kind != SymbolKind.METHOD]
        chosen = preferred or candidates
        return chosen[0].handle if chosen else None

    def _resolve_imported(self, use: Use) -> Optional[SymbolHandle]:
        module = use.module or ""
        target_file = self.module_file(module, use.file_path)
        if target_file is not None:
            in_module = [s for s in self._by_file.get(target_file, []) if s.name == use.name]
            handle = self._pick(in_module)
            if handle is not None:
                return handle
            # Packages often re-export; fall back to a unique project-wide match
            candidates = self._index.get(use.name, [])
            return candidates[0] if len(candidates) == 1 else None

        # `from pkg.mod import Cls; Cls.create()` -> member of Cls in pkg.mod
        parent, _, owner = module.rpartition(".")
        if parent and "/" not in module:
            parent_file = self.module_file(parent, use.file_path)
            if parent_file is not None:
                members = [
                    s
                    for s in self._by_file.get(parent_file, [])
                    if s.name == use.name and s.container == owner
                ]
                return members[0].handle if members else None
        return None

    def is_external(self, use: Use) -> bool:
        """True when the use targets code outside the project."""
        if use.external:
            return True
        if use.declaration is not None:
            return not self.has_file(use.declaration.file_path)
        if use.module is None:
            return False
        if self.module_file(use.module, use.file_path) is not None:
            return False
        parent = use.module.rpartition(".")[0]
        if parent and "/" not in use.module:
            return self.module_file(parent, use.file_path) is None
        return True

# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for use -> declaration resolution."""

from pathlib import Path, PurePosixPath

import pytest

from codebase_rag.codebase.extractors.base import DeclarationSite, Use
from codebase_rag.codebase.models import (
    FileIndexEntry,
    Position,
    SourceRange,
    Symbol,
    SymbolKind,
)
from codebase_rag.codebase.reference_resolver import ReferenceResolver
from codebase_rag.codebase.symbol_resolver import SymbolResolver, module_name_for
from codebase_rag.errors import StaleGenerationError

ROOT = Path("/proj")
USE_RANGE = SourceRange.from_coords(5, 4, 5, 12)


def _entry(rel, symbols, generation=1):
    path = str(ROOT / rel)
    return FileIndexEntry(
        path=path,
        language="python",
        generation=generation,
        symbols=[
            Symbol(
                name=name,
                kind=kind,
                file_path=path,
                range=SourceRange.from_coords(line, 0, line + 1, 0),
                slot=slot,
                container=container,
            )
            for slot, (name, kind, line, container) in enumerate(symbols)
        ],
    )


@pytest.fixture
def entries():
    items = [
        _entry(
            "pkg/util.py",
            [
                ("helper", SymbolKind.FUNCTION, 0, None),
                ("Parser", SymbolKind.CLASS, 3, None),
                ("parse", SymbolKind.METHOD, 4, "Parser"),
            ],
        ),
        _entry("pkg/other.py", [("helper", SymbolKind.FUNCTION, 0, None)]),
        _entry(
            "pkg/main.py",
            [("run", SymbolKind.FUNCTION, 0, None), ("step", SymbolKind.FUNCTION, 3, None)],
        ),
        _entry("pkg/__init__.py", []),
    ]
    return {e.path: e for e in items}


def _use(name, rel="pkg/main.py", **kwargs):
    return Use(file_path=str(ROOT / rel), range=USE_RANGE, name=name, **kwargs)


class TestModuleNames:
    @pytest.mark.parametrize(
        "rel, module",
        [
            ("pkg/mod.py", "pkg.mod"),
            ("pkg/__init__.py", "pkg"),
            ("top.py", "top"),
            ("web/app.ts", None),
        ],
    )
    def test_module_name_for(self, rel, module):
        assert module_name_for(PurePosixPath(rel)) == module


class TestSymbolResolver:
    """Hint-driven lookup."""

    def _resolver(self, entries):
        resolver = SymbolResolver([ROOT])
        resolver.ingest(entries.values())
        return resolver

    def test_import_hint_picks_the_module_file(self, entries):
        handle = self._resolver(entries).resolve(_use("helper", module="pkg.other"))

        assert handle.file_path == str(ROOT / "pkg/other.py")

    def test_relative_import(self, entries):
        handle = self._resolver(entries).resolve(_use("helper", module=".other"))

        assert handle.file_path == str(ROOT / "pkg/other.py")

    def test_same_file_wins_without_hint(self, entries):
        handle = self._resolver(entries).resolve(_use("step"))

        assert handle.file_path == str(ROOT / "pkg/main.py")
        assert handle.slot == 1

    def test_ambiguous_name_resolves_to_first_file_in_sorted_order(self, entries):
        handle = self._resolver(entries).resolve(_use("helper"))

        assert handle.file_path == str(ROOT / "pkg/other.py")

    def test_class_member_through_imported_class(self, entries):
        handle = self._resolver(entries).resolve(_use("parse", module="pkg.util.Parser"))

        assert handle.file_path == str(ROOT / "pkg/util.py")
        assert handle.slot == 2

    def test_receiver_hint(self, entries):
        use = _use("parse", rel="pkg/util.py", container="Parser")

        assert self._resolver(entries).resolve(use).slot == 2

    def test_external_module(self, entries):
        resolver = self._resolver(entries)

        assert resolver.is_external(_use("get", module="requests"))
        assert not resolver.is_external(_use("helper", module="pkg.util"))


class TestReferenceResolver:
    """Whole-pass resolution and bookkeeping."""

    def test_references_are_attached_to_targets(self, entries):
        stats = ReferenceResolver([ROOT]).resolve_all(
            [_use("helper", module="pkg.util")], entries, generation=1
        )

        target = entries[str(ROOT / "pkg/util.py")].symbols[0]
        assert stats.resolved == 1
        assert len(target.references) == 1
        reference = target.references[0]
        assert reference.file_path == str(ROOT / "pkg/main.py")
        assert reference.range == USE_RANGE
        assert reference.target == target.handle

    def test_drop_counts(self, entries):
        uses = [
            _use("print", external=True),
            _use("get", module="requests"),
            _use("nowhere"),
            _use("helper", declaration=DeclarationSite("/elsewhere/lib.py", Position(line=0, character=0))),
        ]

        stats = ReferenceResolver([ROOT]).resolve_all(uses, entries, generation=1)

        assert stats.resolved == 0
        assert stats.dropped_external == 3
        assert stats.dropped_unresolved == 1
        assert stats.total == 4

    def test_precise_declaration_site(self, entries):
        util = str(ROOT / "pkg/util.py")
        use = _use("whatever", declaration=DeclarationSite(util, Position(line=3, character=0)))

        ReferenceResolver([ROOT]).resolve_all([use], entries, generation=1)

        assert len(entries[util].symbols[1].references) == 1

    def test_other_generation_is_rejected(self, entries):
        with pytest.raises(StaleGenerationError):
            ReferenceResolver([ROOT]).resolve_all([], entries, generation=2)

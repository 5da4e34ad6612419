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

"""Candidate file enumeration across one or more roots."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from codebase_rag.codebase.ignore_patterns import IgnoreFilter

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    """Files found under all roots plus failures keyed by root or directory."""

    files: List[Path] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


def _is_within_root(path: Path, root: Path) -> bool:
    """Return True when the resolved path stays within the resolved root."""
    try:
        path.resolve().relative_to(root)
    except (ValueError, OSError):
        return False
    return True


def _walk_root(root: Path, ignore_filter: IgnoreFilter, errors: Dict[str, str]) -> List[Path]:
    found: List[Path] = []

    def _record(err: OSError) -> None:
        # An unreadable directory is skipped; the rest of the root is still walked
        failed = err.filename or str(root)
        errors[str(failed)] = str(err)
        logger.warning(f"Could not list {failed}: {err}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_record):
        current = Path(dirpath)
        # Prune ignored directories in place so os.walk does not descend
        dirnames[:] = sorted(
            d for d in dirnames if not ignore_filter.should_ignore(current / d, is_dir=True)
        )
        for name in filenames:
            path = current / name
            if ignore_filter.should_ignore(path):
                continue
            if path.is_symlink() and not _is_within_root(path, root):
                logger.debug(f"Skipping symlink escaping root: {path}")
                continue
            if not path.is_file():
                continue
            found.append(path)
    return found


def discover(
    roots: Iterable[Union[str, Path]],
    ignore_filters: Optional[Dict[Path, IgnoreFilter]] = None,
    extra_patterns: Optional[List[str]] = None,
    ignore_file_name: str = ".ragignore",
) -> DiscoveryResult:
    """Enumerate candidate source files under the given roots.

    I/O failures are recorded per root or directory and never abort
    discovery of the remaining roots or sibling directories.

    Args:
        roots: Root directories to scan
        ignore_filters: Optional pre-built filter per resolved root
        extra_patterns: Additional ignore patterns for filters built here
        ignore_file_name: Project-local ignore file name for filters built here

    Returns:
        DiscoveryResult with absolute, sorted, de-duplicated file paths
    """
    result = DiscoveryResult()
    seen = set()

    for raw_root in roots:
        root = Path(raw_root).resolve()
        if not root.exists():
            result.errors[str(root)] = "root does not exist"
            logger.warning(f"Discovery root does not exist: {root}")
            continue
        if not root.is_dir():
            result.errors[str(root)] = "root is not a directory"
            logger.warning(f"Discovery root is not a directory: {root}")
            continue

        ignore_filter = (ignore_filters or {}).get(root) or IgnoreFilter(
            root, extra_patterns=extra_patterns, ignore_file_name=ignore_file_name
        )

        try:
            files = _walk_root(root, ignore_filter, result.errors)
        except OSError as e:
            result.errors[str(root)] = str(e)
            logger.warning(f"Discovery failed for root {root}: {e}")
            continue

        for path in files:
            if path not in seen:
                seen.add(path)
                result.files.append(path)

        logger.debug(f"Discovered {len(files)} files under {root}")

    result.files.sort()
    return result

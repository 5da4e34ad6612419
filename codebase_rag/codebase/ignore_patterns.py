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

"""Ignore patterns and path filtering for codebase indexing.

A path participates in indexing unless:
1. Its extension is a known binary format (always excluded)
2. It matches a built-in default pattern (build output, VCS dirs, logs)
3. It matches a pattern from the project-local ignore file (``.ragignore``)

Patterns use gitignore syntax and are compiled with ``pathspec``.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Set

import pathspec

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILE = ".ragignore"

# Default patterns (gitignore syntax)
DEFAULT_IGNORE_PATTERNS: List[str] = [
    # Version control
    ".git/",
    ".hg/",
    ".svn/",
    # Node.js
    "node_modules/",
    # Build outputs
    "dist/",
    "out/",
    "build/",
    "target/",
    "*.egg-info/",
    # Python
    "__pycache__/",
    "venv/",
    ".venv/",
    # Coverage
    "coverage/",
    "htmlcov/",
    # Third party / vendor
    "vendor/",
    "third_party/",
    # Logs
    "*.log",
]

BINARY_EXTENSIONS: Set[str] = {
    # Images
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".bmp",
    ".ico",
    ".webp",
    # Audio / video
    ".mp3",
    ".wav",
    ".ogg",
    ".mp4",
    ".avi",
    ".mov",
    ".wmv",
    # Archives
    ".zip",
    ".rar",
    ".7z",
    ".gz",
    ".tar",
    # Documents
    ".pdf",
    ".doc",
    ".docx",
    ".xls",
    ".xlsx",
    ".ppt",
    ".pptx",
    # Executables and compiled artifacts
    ".exe",
    ".dll",
    ".so",
    ".dylib",
    ".pyc",
    ".class",
    ".o",
    ".a",
    # Fonts
    ".woff",
    ".woff2",
    ".ttf",
}


def is_binary_path(path: Path) -> bool:
    """Check if a path has a binary file extension.

    Example:
        >>> is_binary_path(Path("assets/logo.PNG"))
        True
        >>> is_binary_path(Path("src/main.py"))
        False
    """
    return path.suffix.lower() in BINARY_EXTENSIONS


def parse_ignore_lines(lines: Iterable[str]) -> List[str]:
    """Strip comments and blank lines from ignore file content."""
    patterns = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)
    return patterns


def load_ignore_file(path: Path) -> List[str]:
    """Load patterns from an ignore file. Missing or unreadable files yield no patterns."""
    if not path.is_file():
        return []
    try:
        return parse_ignore_lines(path.read_text(encoding="utf-8").splitlines())
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read ignore file {path}: {e}")
        return []


class IgnoreFilter:
    """Decides whether a path under a root participates in indexing."""

    def __init__(
        self,
        root: Path,
        extra_patterns: Optional[Iterable[str]] = None,
        ignore_file_name: str = DEFAULT_IGNORE_FILE,
        use_defaults: bool = True,
    ):
        """Initialize the filter.

        Args:
            root: Project root; patterns are matched relative to it
            extra_patterns: Additional gitignore-style patterns
            ignore_file_name: Name of the project-local ignore file under root
            use_defaults: Include DEFAULT_IGNORE_PATTERNS
        """
        self.root = Path(root).resolve()
        self.patterns: List[str] = []
        if use_defaults:
            self.patterns.extend(DEFAULT_IGNORE_PATTERNS)
        if extra_patterns:
            self.patterns.extend(parse_ignore_lines(extra_patterns))

        self.ignore_file = self.root / ignore_file_name
        project_patterns = load_ignore_file(self.ignore_file)
        if project_patterns:
            logger.debug(f"Loaded {len(project_patterns)} patterns from {self.ignore_file}")
        self.patterns.extend(project_patterns)

        self._spec = pathspec.PathSpec.from_lines("gitignore", self.patterns)

    def _relative(self, path: Path) -> Optional[str]:
        try:
            return Path(path).resolve().relative_to(self.root).as_posix()
        except (ValueError, OSError):
            return None

    def should_ignore(self, path: Path, is_dir: bool = False) -> bool:
        """Check if a path should be excluded from indexing.

        Args:
            path: Absolute or root-relative path
            is_dir: Whether the path is a directory (directory patterns need a trailing slash)

        Returns:
            True if the path is binary or matches an ignore pattern
        """
        path = Path(path)
        if not path.is_absolute():
            path = self.root / path

        if not is_dir and is_binary_path(path):
            return True

        rel = self._relative(path)
        if rel is None or rel == ".":
            return False
        if is_dir:
            rel = rel + "/"
        return self._spec.match_file(rel)

    def __repr__(self) -> str:
        return f"IgnoreFilter(root={self.root}, patterns={len(self.patterns)})"

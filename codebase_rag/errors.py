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

"""Exception types raised by the indexing and retrieval engine.

Policy summary:
- ConfigurationError: fatal to a full build (store cleared, error surfaced)
- ParseError: recorded on the failing file's entry, build continues
- EmbeddingError: logged, the entity simply has no embedding
- DimensionMismatchError: the single comparison is skipped and logged
- StaleGenerationError: a reference targeted a generation that is no longer installed
"""

from typing import Optional


class CodebaseRAGError(Exception):
    """Base class for all codebase_rag errors."""


class ConfigurationError(CodebaseRAGError):
    """No valid project root or configuration is available."""


class ParseError(CodebaseRAGError):
    """A symbol extractor failed on a single file."""

    def __init__(self, file_path: str, message: str, line: Optional[int] = None):
        self.file_path = file_path
        self.message = message
        self.line = line
        location = f"{file_path}:{line}" if line is not None else file_path
        super().__init__(f"{location}: {message}")


class EmbeddingError(CodebaseRAGError):
    """An embedding provider call failed, timed out, or returned a bad vector."""


class DimensionMismatchError(CodebaseRAGError, ValueError):
    """Two vectors of different dimensionality were compared."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Cannot compare vectors of dimension {left} and {right}")


class StaleGenerationError(CodebaseRAGError):
    """A symbol handle was resolved against an index generation that is not installed."""

    def __init__(self, requested: int, current: int):
        self.requested = requested
        self.current = current
        super().__init__(f"Index generation {requested} is stale (current generation: {current})")


class ExtractorUnavailableError(CodebaseRAGError):
    """A symbol extractor cannot run (e.g. its grammar package is not installed)."""

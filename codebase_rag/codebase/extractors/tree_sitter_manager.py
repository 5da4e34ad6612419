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

"""Grammar loading and parser caching for tree-sitter based extraction."""

import importlib
from typing import Dict, Tuple

from tree_sitter import Language, Parser, Query

from codebase_rag.errors import ExtractorUnavailableError

# Language package mapping for tree-sitter 0.25+
# Format: "language_name": ("module_name", "function_name")
LANGUAGE_MODULES: Dict[str, Tuple[str, str]] = {
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
}

_language_cache: Dict[str, Language] = {}
_parser_cache: Dict[str, Parser] = {}
_query_cache: Dict[Tuple[str, str], Query] = {}


def get_language(language: str) -> Language:
    """Load a tree-sitter Language from its pre-compiled grammar package.

    Raises:
        ExtractorUnavailableError: If the language is unknown or its package is missing
    """
    if language in _language_cache:
        return _language_cache[language]

    module_info = LANGUAGE_MODULES.get(language)
    if not module_info:
        raise ExtractorUnavailableError(f"Unsupported language for tree-sitter: {language}")

    module_name, func_name = module_info
    try:
        language_module = importlib.import_module(module_name)
    except ImportError as e:
        raise ExtractorUnavailableError(
            f"Language package '{module_name}' not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        ) from e

    lang_func = getattr(language_module, func_name, None)
    if lang_func is None:
        raise ExtractorUnavailableError(
            f"Language module '{module_name}' does not have function '{func_name}'"
        )

    lang_obj = lang_func()
    # Grammar packages return a PyCapsule that must be wrapped
    lang = lang_obj if isinstance(lang_obj, Language) else Language(lang_obj)
    _language_cache[language] = lang
    return lang


def get_parser(language: str) -> Parser:
    """Return a cached Parser initialized with the specified language."""
    if language in _parser_cache:
        return _parser_cache[language]

    parser = Parser(get_language(language))
    _parser_cache[language] = parser
    return parser


def get_query(language: str, query_src: str) -> Query:
    """Compile (and cache) a query for a language."""
    key = (language, query_src)
    if key not in _query_cache:
        _query_cache[key] = Query(get_language(language), query_src)
    return _query_cache[key]

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

"""Cosine similarity ranking over in-memory embeddings."""

import logging
import math
from typing import Iterable, List, Sequence, Tuple

from codebase_rag.codebase.models import SimilarityResult
from codebase_rag.errors import DimensionMismatchError

logger = logging.getLogger(__name__)


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors have different lengths
    """
    if len(vec_a) != len(vec_b):
        raise DimensionMismatchError(len(vec_a), len(vec_b))

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def search(
    query: Sequence[float],
    candidates: Iterable[Tuple[SimilarityResult, Sequence[float]]],
    top_n: int = 5,
    min_similarity: float = 0.7,
) -> List[SimilarityResult]:
    """Rank candidates by similarity to ``query``.

    Args:
        query: Query vector
        candidates: (result template, vector) pairs; the template's score is ignored
        top_n: Maximum number of results
        min_similarity: Results scoring below this are dropped

    Returns:
        Results sorted by descending score
    """
    if top_n <= 0:
        return []

    scored: List[SimilarityResult] = []
    for template, vector in candidates:
        try:
            score = cosine_similarity(query, vector)
        except DimensionMismatchError as e:
            logger.warning(f"Skipping {template.label}: {e}")
            continue
        if score >= min_similarity:
            scored.append(template.model_copy(update={"score": score}))

    scored.sort(key=lambda r: r.score, reverse=True)
    return scored[:top_n]

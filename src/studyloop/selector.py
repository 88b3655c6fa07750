"""Session content selection (30-50-20).

候補を習熟度でバケット分けし、各バケットからランダムに非復元抽出する。
不足分は残りの候補から weakness に補充する。
"""

from __future__ import annotations

import random
from typing import Mapping, Optional, Sequence, TypeVar

from .common import round_half_up
from .models.session import Expression, SessionContent


CONTENT_RATIO = {
    "success": 0.3,
    "weakness": 0.5,
    "expansion": 0.2,
}
SUCCESS_THRESHOLD = 80
WEAKNESS_THRESHOLD = 30

T = TypeVar("T")


def _make_rng(rng: Optional[random.Random], seed: Optional[int]) -> random.Random:
    if rng is not None:
        return rng
    return random.Random(seed)


def shuffled(items: Sequence[T], rng: random.Random) -> list[T]:
    result = list(items)
    rng.shuffle(result)
    return result


def bucket_targets(target_count: int) -> tuple[int, int, int]:
    """(success, weakness, expansion) sizes; expansion absorbs rounding."""
    success = round_half_up(target_count * CONTENT_RATIO["success"])
    weakness = round_half_up(target_count * CONTENT_RATIO["weakness"])
    expansion = max(0, target_count - success - weakness)
    return success, weakness, expansion


def classify(proficiency: Optional[float]) -> str:
    if proficiency is None or proficiency < WEAKNESS_THRESHOLD:
        return "expansion"
    if proficiency >= SUCCESS_THRESHOLD:
        return "success"
    return "weakness"


def select_content(
    candidates: Sequence[Expression],
    target_count: int,
    proficiency: Optional[Mapping[str, float]] = None,
    *,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
) -> SessionContent:
    """Pick up to `target_count` candidates split by proficiency bucket.

    Returns exactly `min(target_count, len(candidates))` items; an undersized
    pool is never an error.
    """
    rng = _make_rng(rng, seed)
    target_count = max(0, target_count)
    proficiency = proficiency or {}

    buckets: dict[str, list[Expression]] = {"success": [], "weakness": [], "expansion": []}
    for expression in candidates:
        buckets[classify(proficiency.get(expression.id))].append(expression)

    success_n, weakness_n, expansion_n = bucket_targets(target_count)
    content = SessionContent(
        success=shuffled(buckets["success"], rng)[:success_n],
        weakness=shuffled(buckets["weakness"], rng)[:weakness_n],
        expansion=shuffled(buckets["expansion"], rng)[:expansion_n],
    )

    shortage = target_count - content.total
    if shortage > 0:
        selected_ids = {e.id for e in content.flatten()}
        remaining = [e for e in candidates if e.id not in selected_ids]
        content.weakness.extend(shuffled(remaining, rng)[:shortage])

    return content


def flatten_and_shuffle(content: SessionContent, rng: Optional[random.Random] = None) -> list[Expression]:
    """Final cross-bucket shuffle so display order hides the bucket."""
    return shuffled(content.flatten(), rng or random.Random())

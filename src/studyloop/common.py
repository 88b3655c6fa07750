from __future__ import annotations

import math
from typing import Any


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (2.5 -> 3).

    組み込みの round() は偶数丸めのため、バケット件数やスコアが
    意図より小さくなる。件数・日数・スコアは常にこちらで丸める。"""

    return int(math.floor(value + 0.5))


def normalize_non_negative_int(value: Any) -> int:
    """与えられた値を非負整数に正規化する。

    UI から負の経過時間などが渡されても記録を壊さないよう、ゼロ以上に矯正する。"""

    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        return 0
    return ivalue if ivalue >= 0 else 0

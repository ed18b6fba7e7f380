import logging
from dataclasses import asdict, dataclass
from typing import Iterable, Optional, Sequence, Tuple

from app.models.section import SCORE_GROUP_MATH, SCORE_GROUP_READING_WRITING
from app.utils.sat_conversion import SAT_CONVERSION_TABLE, SAT_FLOOR_SCORE

logger = logging.getLogger(__name__)

ConversionRow = Tuple[int, Optional[int], Optional[int]]

_GROUP_COLUMNS = {SCORE_GROUP_READING_WRITING: 1, SCORE_GROUP_MATH: 2}


@dataclass(frozen=True)
class ScaledScoreResult:
    rw_raw: int
    math_raw: int
    rw_scaled: int
    math_scaled: int
    total: int

    def as_details(self) -> dict:
        """Shape stored on PracticeTestAttempt.sat_score_details."""
        return {
            "raw_rw": self.rw_raw,
            "raw_math": self.math_raw,
            "reading_writing_scaled": self.rw_scaled,
            "math_scaled": self.math_scaled,
            "total": self.total,
        }

    def to_dict(self) -> dict:
        return asdict(self)


def lookup_scaled_score(
    table: Iterable[ConversionRow],
    raw: int,
    group: str,
    floor: int = SAT_FLOOR_SCORE,
) -> int:
    """
    Exact-match lookup of ``raw`` in ``table`` for one score group.
    A missing row, or a row with no value for the group, yields ``floor``.
    """
    column = _GROUP_COLUMNS.get(group)
    if column is None:
        raise ValueError(f"Unknown score group '{group}'")

    for row in table:
        if row[0] == raw:
            scaled = row[column]
            if not scaled:
                logger.warning(
                    f"Conversion row for raw score {raw} has no {group} value, using floor {floor}"
                )
                return floor
            return scaled

    logger.warning(
        f"No conversion entry for raw score {raw} ({group}), using floor {floor}"
    )
    return floor


def convert(
    rw_raw: int,
    math_raw: int,
    table: Sequence[ConversionRow] = SAT_CONVERSION_TABLE,
    floor: int = SAT_FLOOR_SCORE,
) -> ScaledScoreResult:
    rw_scaled = lookup_scaled_score(table, rw_raw, SCORE_GROUP_READING_WRITING, floor)
    math_scaled = lookup_scaled_score(table, math_raw, SCORE_GROUP_MATH, floor)
    return ScaledScoreResult(
        rw_raw=rw_raw,
        math_raw=math_raw,
        rw_scaled=rw_scaled,
        math_scaled=math_scaled,
        total=rw_scaled + math_scaled,
    )

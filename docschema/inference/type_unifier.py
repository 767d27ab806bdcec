"""
Type unification.

Resolves the set of labels observed for one field into a single
recommended column type. The highest-priority label present wins,
regardless of how often each label was seen.
"""

from typing import Iterable, List, Optional, Sequence

from docschema.config.settings import Settings, get_settings
from docschema.inference.type_classifier import SqlType


class TypeUnifier:
    """Fixed total-order priority merge of type labels."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        string_length_buckets: Optional[Sequence[int]] = None,
    ):
        settings = settings or get_settings()
        buckets = sorted(set(string_length_buckets or settings.string_length_buckets))
        self.priority: List[str] = self.build_priority(buckets)
        self._rank = {label: index for index, label in enumerate(self.priority)}

    @staticmethod
    def build_priority(string_length_buckets: Sequence[int]) -> List[str]:
        """
        Priority list, most specific first.

        Identifiers, then temporal types, then decimals (widest scale first),
        then integers (widest first), then bit, then bounded strings in
        ascending length, with NVARCHAR(MAX) as the catch-all.
        """
        decimals = [label for _, label in reversed(SqlType.DECIMAL_TIERS)]
        decimals.append(SqlType.DECIMAL_INTEGRAL)
        return [
            SqlType.UNIQUEIDENTIFIER,
            SqlType.DATETIME2,
            SqlType.DATE,
            *decimals,
            SqlType.BIGINT,
            SqlType.INT,
            SqlType.SMALLINT,
            SqlType.TINYINT,
            SqlType.BIT,
            *[SqlType.nvarchar(length) for length in string_length_buckets],
            SqlType.TEXT,
        ]

    def unify(self, labels: Iterable[str]) -> str:
        """
        Pick the recommended type for a set of observed labels.

        NULL and unknown labels carry no type information; a set holding
        nothing else resolves to the catch-all.
        """
        best_rank = None
        for label in labels:
            rank = self._rank.get(label)
            if rank is not None and (best_rank is None or rank < best_rank):
                best_rank = rank

        if best_rank is None:
            return SqlType.TEXT
        return self.priority[best_rank]

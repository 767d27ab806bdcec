"""
Scalar type classification.

Maps one scalar document value to a SQL Server column type label using
the value's content: string patterns, numeric magnitude and the number
of fractional digits in the literal.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

from docschema.config.settings import Settings, get_settings
from docschema.inference.document import JsonKind, JsonNode


class SqlType:
    """Closed set of type labels produced by the classifier."""
    UNIQUEIDENTIFIER = "UNIQUEIDENTIFIER"
    DATETIME2 = "DATETIME2"
    DATE = "DATE"
    BIGINT = "BIGINT"
    INT = "INT"
    SMALLINT = "SMALLINT"
    TINYINT = "TINYINT"
    BIT = "BIT"
    NULL = "NULL"
    TEXT = "NVARCHAR(MAX)"

    DECIMAL_DEFAULT = "DECIMAL(18,2)"
    # Integral values too wide for BIGINT
    DECIMAL_INTEGRAL = "DECIMAL(38,0)"
    # (max fractional digits, label), checked in order
    DECIMAL_TIERS = (
        (2, "DECIMAL(18,2)"),
        (4, "DECIMAL(18,4)"),
        (None, "DECIMAL(18,6)"),
    )

    @staticmethod
    def nvarchar(length: int) -> str:
        return f"NVARCHAR({length})"


INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1


class TypeClassifier:
    """
    Pure scalar-to-label classifier.

    Identical input always yields the identical label; nothing is raised
    for malformed values.
    """

    UUID_PATTERN = re.compile(
        r'^\{?[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}\}?$',
        re.IGNORECASE
    )

    # Only plausible calendar shapes are tried, so bare numbers never parse as dates
    DATE_SHAPE = re.compile(r'^\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}')

    DATETIME_FORMATS = [
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%dT%H:%M:%S.%fZ",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d %H:%M",
        "%m/%d/%Y %H:%M:%S",
        "%m/%d/%Y %I:%M:%S %p",
        "%d/%m/%Y %H:%M:%S",
    ]

    DATE_FORMATS = [
        "%Y-%m-%d",
        "%Y/%m/%d",
        "%m/%d/%Y",
        "%d/%m/%Y",
        "%d-%m-%Y",
        "%m-%d-%Y",
        "%d.%m.%Y",
    ]

    def __init__(
        self,
        settings: Optional[Settings] = None,
        string_length_buckets: Optional[Sequence[int]] = None,
    ):
        settings = settings or get_settings()
        buckets = string_length_buckets or settings.string_length_buckets
        self.string_length_buckets: List[int] = sorted(set(buckets))

    @property
    def string_labels(self) -> List[str]:
        """Bounded string labels in ascending length order."""
        return [SqlType.nvarchar(length) for length in self.string_length_buckets]

    def classify(self, node: JsonNode) -> str:
        """
        Classify one scalar node.

        Args:
            node: A NULL, BOOLEAN, NUMBER or STRING node

        Returns:
            SQL type label
        """
        if node.kind == JsonKind.NULL:
            return SqlType.NULL
        if node.kind == JsonKind.BOOLEAN:
            return SqlType.BIT
        if node.kind == JsonKind.NUMBER:
            return self.classify_number(node.value)
        if node.kind == JsonKind.STRING:
            if node.malformed:
                return SqlType.TEXT
            return self.classify_string(node.value)
        # Containers are never classified as scalars
        return SqlType.TEXT

    def classify_string(self, value: str) -> str:
        if not value:
            return self.string_labels[0] if self.string_labels else SqlType.TEXT

        stripped = value.strip()
        if self._is_datetime(stripped):
            return SqlType.DATETIME2
        if self._is_date(stripped):
            return SqlType.DATE
        if self.UUID_PATTERN.match(stripped):
            return SqlType.UNIQUEIDENTIFIER

        return self.bucket_length(len(value))

    def bucket_length(self, length: int) -> str:
        """Smallest bounded string label that holds `length` characters."""
        for threshold in self.string_length_buckets:
            if length <= threshold:
                return SqlType.nvarchar(threshold)
        return SqlType.TEXT

    def classify_number(self, literal: str) -> str:
        try:
            number = Decimal(literal)
        except (InvalidOperation, TypeError, ValueError):
            return SqlType.DECIMAL_DEFAULT

        if not number.is_finite():
            return SqlType.DECIMAL_DEFAULT

        exponent = number.as_tuple().exponent
        is_integral_literal = exponent >= 0

        if is_integral_literal:
            # 10**19 exceeds BIGINT; never expand huge exponents into ints
            if number.adjusted() >= 19:
                return SqlType.DECIMAL_INTEGRAL
            integer = int(number)
            if INT32_MIN <= integer <= INT32_MAX:
                if -128 <= integer <= 127:
                    return SqlType.TINYINT
                if -32768 <= integer <= 32767:
                    return SqlType.SMALLINT
                return SqlType.INT
            if INT64_MIN <= integer <= INT64_MAX:
                return SqlType.BIGINT
            return SqlType.DECIMAL_INTEGRAL

        scale = -exponent
        for max_scale, label in SqlType.DECIMAL_TIERS:
            if max_scale is None or scale <= max_scale:
                return label
        return SqlType.DECIMAL_DEFAULT

    def _is_datetime(self, value: str) -> bool:
        if not self.DATE_SHAPE.match(value):
            return False
        # Date-only strings are handled by _is_date
        if len(value) <= 10:
            return False
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
            return True
        except ValueError:
            pass
        for fmt in self.DATETIME_FORMATS:
            try:
                datetime.strptime(value, fmt)
                return True
            except ValueError:
                continue
        return False

    def _is_date(self, value: str) -> bool:
        if not self.DATE_SHAPE.match(value):
            return False
        for fmt in self.DATE_FORMATS:
            try:
                datetime.strptime(value, fmt)
                return True
            except ValueError:
                continue
        return False

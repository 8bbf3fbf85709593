"""Value types shared by the validation pipeline.

Every object here is immutable and built fresh per call. Enums are closed
string-valued sets so they serialize straight into JSON payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class OperationKind(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    DDL = "DDL"
    UNKNOWN = "UNKNOWN"


class RiskLevel(str, Enum):
    """Ordered severity: SAFE < MODERATE < HIGH < CRITICAL."""

    SAFE = "safe"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_RISK_ORDER = (RiskLevel.SAFE, RiskLevel.MODERATE, RiskLevel.HIGH, RiskLevel.CRITICAL)


class EstimatedRows(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    ALL = "all"
    UNKNOWN = "unknown"


class Role(str, Enum):
    """Caller access tier. Values match the wire names used by the UI."""

    PRIVILEGED = "creator"
    RESTRICTED = "user"

    @classmethod
    def parse(cls, value: Any, strict: bool = False) -> "Role":
        """
        Resolve a role from an enum member, wire value, or member name.
        Unrecognized values fall back to RESTRICTED unless strict=True.
        """
        if isinstance(value, Role):
            return value
        text = str(value or "").strip().lower()
        for role in cls:
            if text in (role.value, role.name.lower()):
                return role
        if strict:
            raise ValueError(f"Unknown role: {value!r}")
        return cls.RESTRICTED


def _parse_nullable(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().upper() in {"YES", "TRUE", "Y", "1"}


@dataclass(frozen=True)
class SchemaColumn:
    name: str
    data_type: str = ""
    nullable: bool = True

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SchemaColumn":
        """Accept both Python field names and information_schema-style keys."""
        name = payload.get("name", payload.get("column_name", ""))
        data_type = payload.get("data_type", payload.get("dataType", ""))
        raw_nullable = payload.get("nullable", payload.get("is_nullable", True))
        return cls(
            name=str(name),
            data_type=str(data_type or ""),
            nullable=_parse_nullable(raw_nullable),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_name": self.name,
            "data_type": self.data_type,
            "is_nullable": "YES" if self.nullable else "NO",
        }


@dataclass(frozen=True)
class SchemaTable:
    name: str
    columns: tuple[SchemaColumn, ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SchemaTable":
        name = payload.get("name", payload.get("table_name", ""))
        columns = tuple(
            col if isinstance(col, SchemaColumn) else SchemaColumn.from_dict(col)
            for col in payload.get("columns") or []
        )
        return cls(name=str(name), columns=columns)

    def column_names(self) -> list[str]:
        return [col.name.lower() for col in self.columns]

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.name,
            "columns": [col.to_dict() for col in self.columns],
        }


@dataclass(frozen=True)
class OperationAnalysis:
    kind: OperationKind
    risk: RiskLevel
    tables: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()
    estimated_rows: EstimatedRows = EstimatedRows.UNKNOWN
    warnings: tuple[str, ...] = ()
    requires_confirmation: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_type": self.kind.value,
            "risk_level": self.risk.value,
            "affected_tables": list(self.tables),
            "affected_columns": list(self.columns),
            "estimated_rows": self.estimated_rows.value,
            "warnings": list(self.warnings),
            "requires_confirmation": self.requires_confirmation,
        }


@dataclass(frozen=True)
class ValidationResult:
    """
    Verdict of one validate() call.

    sanitized_sql and analysis are set iff valid; reason is set iff not valid.
    checks_performed lists the gate checks in the order they ran.
    """

    valid: bool
    reason: Optional[str] = None
    sanitized_sql: Optional[str] = None
    analysis: Optional[OperationAnalysis] = None
    checks_performed: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.valid:
            if self.reason is not None:
                raise ValueError("A valid result cannot carry a rejection reason.")
            if self.sanitized_sql is None or self.analysis is None:
                raise ValueError("A valid result needs sanitized_sql and analysis.")
        else:
            if not self.reason:
                raise ValueError("A rejected result needs a reason.")
            if self.sanitized_sql is not None or self.analysis is not None:
                raise ValueError("A rejected result cannot carry sanitized_sql or analysis.")

    @classmethod
    def accept(
        cls,
        sanitized_sql: str,
        analysis: OperationAnalysis,
        checks_performed: tuple[str, ...] = (),
    ) -> "ValidationResult":
        return cls(
            valid=True,
            sanitized_sql=sanitized_sql,
            analysis=analysis,
            checks_performed=tuple(checks_performed),
        )

    @classmethod
    def reject(cls, reason: str, checks_performed: tuple[str, ...] = ()) -> "ValidationResult":
        return cls(valid=False, reason=reason, checks_performed=tuple(checks_performed))

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.valid,
            "reason": self.reason,
            "sanitized_sql": self.sanitized_sql,
            "operation_analysis": self.analysis.to_dict() if self.analysis else None,
            "checks_performed": list(self.checks_performed),
        }

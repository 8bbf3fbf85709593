"""Access policy tables consumed by the SQL guard."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from prismsql.core.models import OperationKind, Role

DML_OPERATIONS = (
    OperationKind.SELECT,
    OperationKind.INSERT,
    OperationKind.UPDATE,
    OperationKind.DELETE,
)


def _default_role_permissions() -> Mapping[Role, frozenset[OperationKind]]:
    # Both tiers currently share the full DML set.
    return {
        Role.PRIVILEGED: frozenset(DML_OPERATIONS),
        Role.RESTRICTED: frozenset(DML_OPERATIONS),
    }


@dataclass(frozen=True)
class AccessPolicy:
    ddl_keywords: tuple[str, ...] = ("DROP", "ALTER", "TRUNCATE", "CREATE", "GRANT", "REVOKE")
    ddl_objects: tuple[str, ...] = ("TABLE", "INDEX", "VIEW", "DATABASE")
    blocked_patterns: tuple[str, ...] = (
        "INTO OUTFILE",
        "INTO DUMPFILE",
        "LOAD_FILE",
        "EXECUTE",
        "EXEC",
    )
    role_permissions: Mapping[Role, frozenset[OperationKind]] = field(
        default_factory=_default_role_permissions
    )
    fallback_operations: frozenset[OperationKind] = frozenset({OperationKind.SELECT})
    column_skip_list: frozenset[str] = frozenset(
        {"count", "sum", "avg", "max", "min", "now", "current_timestamp", "id"}
    )
    allowlist_roles: frozenset[Role] = frozenset({Role.RESTRICTED})
    column_hint_size: int = 5

    def allowed_operations(self, role: Role) -> list[OperationKind]:
        """Allowed kinds for a role, in pipeline order."""
        allowed = self.role_permissions.get(role, self.fallback_operations)
        return [kind for kind in OperationKind if kind in allowed]

    def allowlist_applies(self, role: Role) -> bool:
        return role in self.allowlist_roles

    @classmethod
    def read_only_restricted(cls) -> "AccessPolicy":
        """Variant where the restricted tier may only read."""
        permissions = _default_role_permissions()
        return cls(
            role_permissions={
                Role.PRIVILEGED: permissions[Role.PRIVILEGED],
                Role.RESTRICTED: frozenset({OperationKind.SELECT}),
            }
        )


DEFAULT_ACCESS_POLICY = AccessPolicy()

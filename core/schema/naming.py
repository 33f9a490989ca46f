# ============================================================================
# NAMING STRATEGIES
# ============================================================================
# STATUS: Core - Deterministic constraint and index names
# PURPOSE: Name primary keys, uniques, indices, foreign keys, checks, exclusions
# CREATED: 14 OCT 2026
# ============================================================================
"""
Naming Strategies

Constraint and index names must be deterministic: the same table and column
set always yields the same name, so a second run finds nothing to change.
The rename cascade also relies on this, since only objects whose name still
equals the generated name for the old table are renamed.

DefaultNamingStrategy produces readable names (PK_user_id) and falls back
to a digest when the readable form exceeds the identifier limit.
HashedNamingStrategy always produces fixed-width digest names.

Usage:
    naming = DefaultNamingStrategy()
    naming.primary_key_name("user", ["id"])       # "PK_user_id"
    naming.index_name("post", ["title"])          # "IDX_post_title"
"""

import hashlib
from typing import Optional, Sequence, Union

# PostgreSQL NAMEDATALEN - 1
MAX_IDENTIFIER_LENGTH = 63


def sha1(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


class NamingStrategy:
    """Base class; subclasses implement the name builders."""

    def get_table_name(self, table_or_name: Union[str, object]) -> str:
        """Bare table name, without schema or database."""
        name = table_or_name if isinstance(table_or_name, str) else table_or_name.name
        return name.split(".")[-1]

    def _key(self, table_or_name, column_names: Sequence[str]) -> str:
        table_name = self.get_table_name(table_or_name).replace(".", "_")
        return f"{table_name}_{'_'.join(sorted(column_names))}"

    def primary_key_name(self, table_or_name, column_names: Sequence[str]) -> str:
        raise NotImplementedError

    def unique_constraint_name(self, table_or_name, column_names: Sequence[str]) -> str:
        raise NotImplementedError

    def index_name(self, table_or_name, column_names: Sequence[str], where: Optional[str] = None) -> str:
        raise NotImplementedError

    def foreign_key_name(
        self,
        table_or_name,
        column_names: Sequence[str],
        referenced_table_path: Optional[str] = None,
        referenced_column_names: Optional[Sequence[str]] = None,
    ) -> str:
        raise NotImplementedError

    def check_constraint_name(self, table_or_name, expression: str, is_enum: bool = False) -> str:
        raise NotImplementedError

    def exclusion_constraint_name(self, table_or_name, expression: str) -> str:
        raise NotImplementedError


class HashedNamingStrategy(NamingStrategy):
    """Fixed-width names: prefix plus a sha1 digest of table and columns."""

    def primary_key_name(self, table_or_name, column_names):
        return "PK_" + sha1(self._key(table_or_name, column_names))[:27]

    def unique_constraint_name(self, table_or_name, column_names):
        return "UQ_" + sha1(self._key(table_or_name, column_names))[:27]

    def index_name(self, table_or_name, column_names, where=None):
        key = self._key(table_or_name, column_names)
        if where:
            key += f"_{where}"
        return "IDX_" + sha1(key)[:26]

    def foreign_key_name(self, table_or_name, column_names, referenced_table_path=None, referenced_column_names=None):
        return "FK_" + sha1(self._key(table_or_name, column_names))[:27]

    def check_constraint_name(self, table_or_name, expression, is_enum=False):
        table_name = self.get_table_name(table_or_name).replace(".", "_")
        name = "CHK_" + sha1(f"{table_name}_{expression}")[:26]
        return f"{name}_ENUM" if is_enum else name

    def exclusion_constraint_name(self, table_or_name, expression):
        table_name = self.get_table_name(table_or_name).replace(".", "_")
        return "XCL_" + sha1(f"{table_name}_{expression}")[:26]


class DefaultNamingStrategy(NamingStrategy):
    """
    Readable names: {PREFIX}_{table}_{columns}.

    Columns are sorted so the name depends on the column set only.
    Names longer than max_length become {PREFIX}_{digest}. Check and
    exclusion names use a short digest of the expression.
    """

    def __init__(self, max_length: int = MAX_IDENTIFIER_LENGTH):
        self.max_length = max_length

    def _fit(self, prefix: str, readable: str, key: str) -> str:
        name = f"{prefix}_{readable}"
        if len(name) <= self.max_length:
            return name
        return f"{prefix}_{sha1(key)[:min(27, self.max_length - len(prefix) - 1)]}"

    def primary_key_name(self, table_or_name, column_names):
        key = self._key(table_or_name, column_names)
        return self._fit("PK", key, key)

    def unique_constraint_name(self, table_or_name, column_names):
        key = self._key(table_or_name, column_names)
        return self._fit("UQ", key, key)

    def index_name(self, table_or_name, column_names, where=None):
        key = self._key(table_or_name, column_names)
        if where:
            return self._fit("IDX", f"{key}_{sha1(where)[:8]}", f"{key}_{where}")
        return self._fit("IDX", key, key)

    def foreign_key_name(self, table_or_name, column_names, referenced_table_path=None, referenced_column_names=None):
        key = self._key(table_or_name, column_names)
        return self._fit("FK", key, key)

    def check_constraint_name(self, table_or_name, expression, is_enum=False):
        table_name = self.get_table_name(table_or_name).replace(".", "_")
        key = f"{table_name}_{expression}"
        name = self._fit("CHK", f"{table_name}_{sha1(key)[:10]}", key)
        return f"{name}_ENUM" if is_enum else name

    def exclusion_constraint_name(self, table_or_name, expression):
        table_name = self.get_table_name(table_or_name).replace(".", "_")
        key = f"{table_name}_{expression}"
        return self._fit("XCL", f"{table_name}_{sha1(key)[:10]}", key)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "MAX_IDENTIFIER_LENGTH",
    "NamingStrategy",
    "DefaultNamingStrategy",
    "HashedNamingStrategy",
    "sha1",
]

# ============================================================================
# SCHEMA BUILDER
# ============================================================================
# STATUS: Infrastructure - Declared model to live schema synchronization
# PURPOSE: Diff entities against the catalog and apply DDL in a safe order
# CREATED: 14 OCT 2026
# ============================================================================
"""
Schema Builder

Brings the database in line with the declared entities. Every step reads
the runner's table cache and calls one runner operation per change, so the
cache always describes the schema as it is after the previous step.

Step order matters. Objects that would block a change are dropped first
(views, foreign keys, indices, checks, exclusions, composite uniques),
then tables and columns are created, dropped and altered, and finally the
dropped or new dependent objects are recreated.

Usage:
    builder = SchemaBuilder(driver, entities)

    plan = await builder.log()       # SqlInMemory, nothing executed
    for query in plan.up_queries:
        print(query.query)

    await builder.build()            # executes in one transaction
"""

from typing import List, Optional, Sequence

from core.config.defaults import TransactionMode
from core.logging import ComponentType, get_logger, log_context
from core.metadata.entity import EntityMetadata
from core.schema.column import TableColumn
from core.schema.constraints import (
    TableCheck,
    TableExclusion,
    TableForeignKey,
    TableIndex,
    TableUnique,
)
from core.schema.ddl_utils import SqlInMemory
from core.schema.table import Table
from core.schema.view import View

logger = get_logger(__name__, ComponentType.SCHEMA_BUILDER)


class SchemaBuilder:
    """
    Synchronizes declared entities with the connected database.

    Args:
        driver: Connected PostgresDriver (after_connect() already run)
        entities: Declared tables and views; unnamed constraints are named
            with the driver's naming strategy
    """

    def __init__(self, driver, entities: Sequence[EntityMetadata]):
        self.driver = driver
        self.entities = [entity.with_names(driver.naming_strategy) for entity in entities]
        self.query_runner = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def build(self) -> None:
        """
        Apply every pending change.

        Runs inside one transaction unless transaction_mode is "none". On
        failure the transaction is rolled back and the original error is
        re-raised.
        """
        self.query_runner = self.driver.create_query_runner("master")
        use_transaction = self.driver.options.sync.transaction_mode != TransactionMode.NONE.value

        with log_context(runner_id=self.query_runner.runner_id, operation="schema_build"):
            if use_transaction:
                await self.query_runner.start_transaction()
            try:
                await self.create_metadata_table_if_necessary()
                await self.query_runner.get_tables(self.get_table_paths())
                await self.query_runner.get_views([])
                await self.execute_schema_sync_operations_in_proper_order()

                if use_transaction:
                    await self.query_runner.commit_transaction()
            except Exception:
                if use_transaction:
                    try:
                        await self.query_runner.rollback_transaction()
                    except Exception as rollback_error:
                        # The original error is the one worth surfacing
                        logger.warning(f"rollback after failed schema build also failed: {rollback_error}")
                raise
            finally:
                await self.query_runner.release()

    async def log(self) -> SqlInMemory:
        """
        Compute the pending changes without executing them.

        Returns:
            SqlInMemory with the up statements and their down counterparts
        """
        self.query_runner = self.driver.create_query_runner("master")
        try:
            await self.query_runner.get_tables(self.get_table_paths())
            await self.query_runner.get_views([])
            self.query_runner.enable_sql_memory()
            await self.create_metadata_table_if_necessary()
            await self.execute_schema_sync_operations_in_proper_order()
            return self.query_runner.get_memory_sql()
        finally:
            # get_memory_sql() hands out the recorded object; disabling swaps in a fresh one
            self.query_runner.disable_sql_memory()
            await self.query_runner.release()

    # =========================================================================
    # ENTITY SELECTION
    # =========================================================================

    @property
    def table_entities(self) -> List[EntityMetadata]:
        return [entity for entity in self.entities if not entity.is_view]

    @property
    def view_entities(self) -> List[EntityMetadata]:
        return [entity for entity in self.entities if entity.is_view]

    def get_table_path(self, target) -> str:
        return self.driver.get_table_path(target)

    def get_table_paths(self) -> List[str]:
        return [self.get_table_path(entity) for entity in self.table_entities]

    def find_loaded_table(self, entity: EntityMetadata) -> Optional[Table]:
        return self.query_runner.find_loaded_table(entity)

    def find_loaded_view(self, entity: EntityMetadata) -> Optional[View]:
        return self.query_runner.find_loaded_view(entity)

    def _log(self, message: str) -> None:
        self.driver.query_logger.log_schema_build(message)

    def _table_column(self, column, entity: EntityMetadata) -> TableColumn:
        return TableColumn.create(column, self.driver, self.driver.normalize_is_unique(column, entity))

    # =========================================================================
    # ORDERED OPERATIONS
    # =========================================================================

    async def execute_schema_sync_operations_in_proper_order(self) -> None:
        await self.drop_old_views()
        await self.drop_old_foreign_keys()
        await self.drop_old_indices()
        await self.drop_old_checks()
        await self.drop_old_exclusions()
        await self.drop_composite_unique_constraints()
        await self.rename_columns()
        await self.change_table_comment()
        await self.create_new_tables()
        await self.drop_removed_columns()
        await self.add_new_columns()
        await self.update_primary_keys()
        await self.update_exist_columns()
        await self.create_new_indices()
        await self.create_new_checks()
        await self.create_new_exclusions()
        await self.create_composite_unique_constraints()
        await self.create_foreign_keys()
        await self.create_views()
        await self.create_new_view_indices()

    async def drop_old_views(self) -> None:
        """Drop views whose definition changed; create_views() recreates them."""
        for entity in self.view_entities:
            view = self.find_loaded_view(entity)
            if view is None or view.get_expression() == entity.get_expression():
                continue
            self._log(f"dropping an old view: {view.name}")
            await self.query_runner.drop_view(view)

    async def drop_old_foreign_keys(self) -> None:
        """Drop foreign keys that are no longer declared or whose actions changed."""
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue

            to_drop = []
            for table_fk in table.foreign_keys:
                declared = next(
                    (
                        fk for fk in entity.foreign_keys
                        if fk.name == table_fk.name
                        and self.get_table_path(table_fk) == self.get_table_path(fk)
                    ),
                    None,
                )
                if (
                    declared is None
                    or (declared.on_delete and declared.on_delete != table_fk.on_delete)
                    or (declared.on_update and declared.on_update != table_fk.on_update)
                ):
                    to_drop.append(table_fk)

            if not to_drop:
                continue
            self._log(f"dropping old foreign keys of {table.name}: {', '.join(fk.name for fk in to_drop)}")
            await self.query_runner.drop_foreign_keys(table, to_drop)

    @staticmethod
    def _index_changed(declared, table_index: TableIndex) -> bool:
        if declared is None:
            return True
        if not declared.synchronize:
            return False
        if declared.is_unique != table_index.is_unique or declared.is_spatial != table_index.is_spatial:
            return True
        return sorted(declared.columns) != sorted(table_index.column_names)

    async def drop_old_indices(self) -> None:
        """Drop indices that are no longer declared or no longer match, on tables and materialized views."""
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            for table_index in list(table.indices):
                declared = next((i for i in entity.indices if i.name == table_index.name), None)
                if self._index_changed(declared, table_index):
                    self._log(f'dropping an index: "{table_index.name}" from table {table.name}')
                    await self.query_runner.drop_index(table, table_index)

        for entity in self.view_entities:
            view = self.find_loaded_view(entity)
            if view is None:
                continue
            for view_index in list(view.indices):
                declared = next((i for i in entity.indices if i.name == view_index.name), None)
                if self._index_changed(declared, view_index):
                    self._log(f'dropping an index: "{view_index.name}" from view {view.name}')
                    await self.query_runner.drop_view_index(view, view_index)

    async def drop_old_checks(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            declared_names = {check.name for check in entity.checks}
            old_checks = [check for check in table.checks if check.name not in declared_names]
            if not old_checks:
                continue
            self._log(f"dropping old check constraint: {', '.join(c.name for c in old_checks)} from table {table.name}")
            await self.query_runner.drop_check_constraints(table, old_checks)

    async def drop_old_exclusions(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            declared_names = {exclusion.name for exclusion in entity.exclusions}
            old_exclusions = [e for e in table.exclusions if e.name not in declared_names]
            if not old_exclusions:
                continue
            self._log(f"dropping old exclusion constraint: {', '.join(e.name for e in old_exclusions)} from table {table.name}")
            await self.query_runner.drop_exclusion_constraints(table, old_exclusions)

    async def drop_composite_unique_constraints(self) -> None:
        """Drop multi-column uniques that are no longer declared; single-column ones follow the column."""
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            declared_names = {unique.name for unique in entity.uniques}
            composite = [
                unique for unique in table.uniques
                if len(unique.column_names) > 1 and unique.name not in declared_names
            ]
            if not composite:
                continue
            self._log(f"dropping old unique constraint: {', '.join(u.name for u in composite)} from table {table.name}")
            await self.query_runner.drop_unique_constraints(table, composite)

    async def rename_columns(self) -> None:
        """
        Detect a single renamed column and rename it instead of drop + add.

        Applies only when the column counts match and exactly one column on
        each side has no counterpart with the same name, type, nullability
        and uniqueness.
        """
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None or len(entity.columns) != len(table.columns):
                continue

            def same(column, table_column) -> bool:
                return (
                    table_column.name == column.name
                    and table_column.type == self.driver.normalize_type(column)
                    and table_column.is_nullable == column.is_nullable
                    and table_column.is_unique == self.driver.normalize_is_unique(column, entity)
                )

            renamed_declared = [c for c in entity.columns if not any(same(c, tc) for tc in table.columns)]
            renamed_table = [tc for tc in table.columns if not any(same(c, tc) for c in entity.columns)]
            if len(renamed_declared) != 1 or len(renamed_table) != 1:
                continue
            if renamed_declared[0].name == renamed_table[0].name:
                continue

            renamed_column = renamed_table[0].clone()
            renamed_column.name = renamed_declared[0].name
            self._log(f'renaming column "{renamed_table[0].name}" in "{table.name}" to "{renamed_column.name}"')
            await self.query_runner.rename_column(table, renamed_table[0], renamed_column)

    async def change_table_comment(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            await self.query_runner.change_table_comment(table, entity.comment)

    async def create_new_tables(self) -> None:
        for entity in self.table_entities:
            if self.find_loaded_table(entity) is not None:
                continue
            self._log(f"creating a new table: {self.get_table_path(entity)}")
            table = Table.create(entity, self.driver)
            await self.query_runner.create_table(table, if_not_exist=False, create_foreign_keys=False)

    async def drop_removed_columns(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            declared_names = {column.name for column in entity.columns}
            dropped = [column for column in table.columns if column.name not in declared_names]
            if not dropped:
                continue
            self._log(f"columns dropped in {table.name}: {', '.join(c.name for c in dropped)}")
            await self.query_runner.drop_columns(table, dropped)

    async def add_new_columns(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            existing = {column.name for column in table.columns}
            new_columns = [self._table_column(c, entity) for c in entity.columns if c.name not in existing]
            if not new_columns:
                continue
            self._log(f"new columns added: {', '.join(c.name for c in new_columns)}")
            await self.query_runner.add_columns(table, new_columns)

    async def update_primary_keys(self) -> None:
        """Rebuild composite primary keys whose column count changed."""
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            declared = entity.primary_columns
            if len(table.primary_columns) != len(declared) and len(declared) > 1:
                self._log(f"updating primary key of {table.name}: {', '.join(c.name for c in declared)}")
                await self.query_runner.update_primary_keys(
                    table, [self._table_column(c, entity) for c in declared]
                )

    async def update_exist_columns(self) -> None:
        """
        Alter columns whose definition changed.

        Foreign keys, composite indices and composite uniques touching a
        changed column are dropped first; later steps recreate them.
        """
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            changed = self.driver.find_changed_columns(table.columns, entity)
            if not changed:
                continue

            table_path = self.get_table_path(entity)
            for column in changed:
                await self.drop_column_referenced_foreign_keys(table_path, column.name)
            for column in changed:
                await self.drop_column_composite_indices(table_path, column.name)
            for column in changed:
                await self.drop_column_composite_uniques(table_path, column.name)

            table = self.find_loaded_table(entity)
            pairs = [
                (table.find_column_by_name(column.name), self._table_column(column, entity))
                for column in changed
            ]
            self._log(f'columns changed in "{table.name}". updating: {", ".join(c.name for c in changed)}')
            await self.query_runner.change_columns(table, pairs)

    async def create_new_indices(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            existing = {index.name for index in table.indices}
            new_indices = [
                TableIndex.create(index) for index in entity.indices
                if index.synchronize and index.name not in existing
            ]
            if not new_indices:
                continue
            self._log(f"adding new indices {', '.join(i.name for i in new_indices)} in table {table.name}")
            await self.query_runner.create_indices(table, new_indices)

    async def create_new_view_indices(self) -> None:
        for entity in self.view_entities:
            view = self.find_loaded_view(entity)
            if view is None:
                continue
            existing = {index.name for index in view.indices}
            new_indices = [
                TableIndex.create(index) for index in entity.indices
                if index.synchronize and index.name not in existing
            ]
            if not new_indices:
                continue
            self._log(f"adding new indices {', '.join(i.name for i in new_indices)} in view {view.name}")
            await self.query_runner.create_view_indices(view, new_indices)

    async def create_new_checks(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            existing = {check.name for check in table.checks}
            new_checks = [TableCheck.create(c) for c in entity.checks if c.name not in existing]
            if not new_checks:
                continue
            self._log(f"adding new check constraints: {', '.join(c.name for c in new_checks)} in table {table.name}")
            await self.query_runner.create_check_constraints(table, new_checks)

    async def create_new_exclusions(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            existing = {exclusion.name for exclusion in table.exclusions}
            new_exclusions = [TableExclusion.create(e) for e in entity.exclusions if e.name not in existing]
            if not new_exclusions:
                continue
            self._log(f"adding new exclusion constraints: {', '.join(e.name for e in new_exclusions)} in table {table.name}")
            await self.query_runner.create_exclusion_constraints(table, new_exclusions)

    async def create_composite_unique_constraints(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            existing = {unique.name for unique in table.uniques}
            composite = [
                TableUnique.create(unique) for unique in entity.uniques
                if len(unique.columns) > 1 and unique.name not in existing
            ]
            if not composite:
                continue
            self._log(f"adding new unique constraints: {', '.join(u.name for u in composite)} in table {table.name}")
            await self.query_runner.create_unique_constraints(table, composite)

    async def create_foreign_keys(self) -> None:
        for entity in self.table_entities:
            table = self.find_loaded_table(entity)
            if table is None:
                continue
            new_keys = [
                fk for fk in entity.foreign_keys
                if not any(
                    table_fk.name == fk.name and self.get_table_path(table_fk) == self.get_table_path(fk)
                    for table_fk in table.foreign_keys
                )
            ]
            if not new_keys:
                continue
            self._log(f"creating foreign keys: {', '.join(fk.name for fk in new_keys)} on table {table.name}")
            await self.query_runner.create_foreign_keys(
                table, [TableForeignKey.create(fk, self.driver) for fk in new_keys]
            )

    async def create_views(self) -> None:
        for entity in self.view_entities:
            view = self.find_loaded_view(entity)
            if view is not None and view.get_expression() == entity.get_expression():
                continue
            self._log(f"creating a new view: {self.get_table_path(entity)}")
            await self.query_runner.create_view(View.create(entity, self.driver), sync_with_metadata=True)

    # =========================================================================
    # DEPENDENT OBJECT CLEANUP
    # =========================================================================

    async def drop_column_referenced_foreign_keys(self, table_path: str, column_name: str) -> None:
        """Drop the table's own foreign key on column_name and every foreign key referencing it."""
        table = self.query_runner.loaded_tables.get(table_path)
        if table is None:
            return

        targets = []
        own = next((fk for fk in table.foreign_keys if column_name in fk.column_names), None)
        if own is not None:
            targets.append((table, [own]))

        for loaded_table in list(self.query_runner.loaded_tables.values()):
            depending = [
                fk for fk in loaded_table.foreign_keys
                if self.get_table_path(fk) == table_path
                and column_name in fk.referenced_column_names
                and fk is not own
            ]
            if depending:
                targets.append((loaded_table, depending))

        for target_table, foreign_keys in targets:
            self._log(f"dropping related foreign keys of {target_table.name}: {', '.join(fk.name for fk in foreign_keys)}")
            await self.query_runner.drop_foreign_keys(target_table, foreign_keys)

    async def drop_column_composite_indices(self, table_path: str, column_name: str) -> None:
        table = self.query_runner.loaded_tables.get(table_path)
        if table is None:
            return
        related = [i for i in table.indices if len(i.column_names) > 1 and column_name in i.column_names]
        if not related:
            return
        self._log(f"dropping related indices of \"{table_path}\".\"{column_name}\": {', '.join(i.name for i in related)}")
        await self.query_runner.drop_indices(table, related)

    async def drop_column_composite_uniques(self, table_path: str, column_name: str) -> None:
        table = self.query_runner.loaded_tables.get(table_path)
        if table is None:
            return
        related = [u for u in table.uniques if len(u.column_names) > 1 and column_name in u.column_names]
        if not related:
            return
        self._log(f"dropping related unique constraints of \"{table_path}\".\"{column_name}\": {', '.join(u.name for u in related)}")
        await self.query_runner.drop_unique_constraints(table, related)

    # =========================================================================
    # METADATA TABLE
    # =========================================================================

    async def create_metadata_table_if_necessary(self) -> None:
        """Create the metadata table when views or STORED generated columns are declared."""
        needed = bool(self.view_entities) or any(
            column.generated_type == "STORED"
            for entity in self.table_entities
            for column in entity.columns
        )
        if not needed:
            return

        varchar = self.driver.normalize_type(self.driver.mapped_data_types["metadata_type"])
        text = self.driver.normalize_type(self.driver.mapped_data_types["metadata_value"])
        table = Table(
            name=self.driver.build_table_name(
                self.driver.options.sync.metadata_table_name, self.driver.schema, self.driver.database
            ),
            database=self.driver.database,
            schema=self.driver.schema,
            columns=[
                TableColumn(name="type", type=varchar, is_nullable=False),
                TableColumn(name="database", type=varchar, is_nullable=True),
                TableColumn(name="schema", type=varchar, is_nullable=True),
                TableColumn(name="table", type=varchar, is_nullable=True),
                TableColumn(name="name", type=varchar, is_nullable=True),
                TableColumn(name="value", type=text, is_nullable=True),
            ],
        )
        await self.query_runner.create_table(table, if_not_exist=True)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["SchemaBuilder"]

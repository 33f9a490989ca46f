# ============================================================================
# DATABASE INITIALIZER - SCHEMA SYNCHRONIZATION
# ============================================================================
# STATUS: Infrastructure - Synchronization orchestrator
# PURPOSE: Connect, plan, apply and verify a schema sync with step results
# CREATED: 14 OCT 2026
# ============================================================================
"""
DatabaseInitializer - declared model to live schema in one call.

Workflow:
1. Connect (open pools, resolve database/schema, install extensions)
2. Ensure the target schema exists
3. Plan (SchemaBuilder.log(): statements without executing them)
4. Build (SchemaBuilder.build(): one transaction)
5. Verify (plan again; an in-sync database yields no statements)

Entities may be EntityMetadata instances or Pydantic models carrying
__sql_* metadata (see core.metadata.model_reader).

Usage:
    # Async
    initializer = DatabaseInitializer()
    result = await initializer.synchronize([User, Post])

    # Sync (for scripts/CLI)
    result = synchronize_database([User, Post], dry_run=True)
    for statement in result.plan:
        print(statement)
"""

import asyncio
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from core.config.connection import PostgresConnectionOptions
from core.logging import ComponentType, get_logger
from core.metadata.entity import EntityMetadata
from core.metadata.model_reader import entity_from_model
from core.schema.ddl_utils import SqlInMemory
from infrastructure.postgres_driver import PostgresDriver
from infrastructure.schema_builder import SchemaBuilder

logger = get_logger(__name__, ComponentType.INITIALIZER)


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class StepResult:
    """Result of a single synchronization step."""
    name: str
    status: str  # 'success', 'failed', 'skipped'
    message: str = ""
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InitializationResult:
    """Complete result of a synchronization run."""
    target: str
    schema: Optional[str]
    timestamp: str
    dry_run: bool
    success: bool
    steps: List[StepResult] = field(default_factory=list)
    plan: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "target": self.target,
            "schema": self.schema,
            "timestamp": self.timestamp,
            "dry_run": self.dry_run,
            "success": self.success,
            "steps": [
                {
                    "name": s.name,
                    "status": s.status,
                    "message": s.message,
                    "error": s.error,
                    "details": s.details,
                }
                for s in self.steps
            ],
            "plan": self.plan,
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": {
                "total_steps": len(self.steps),
                "successful": len([s for s in self.steps if s.status == "success"]),
                "failed": len([s for s in self.steps if s.status == "failed"]),
                "skipped": len([s for s in self.steps if s.status == "skipped"]),
                "statements": len(self.plan),
            },
        }


def render_statements(sql: SqlInMemory) -> List[str]:
    """Up statements as text, with parameters appended when present."""
    rendered = []
    for query in sql.up_queries:
        if query.parameters:
            rendered.append(f"{query.query} -- PARAMETERS: {list(query.parameters)}")
        else:
            rendered.append(query.query)
    return rendered


# ============================================================================
# DATABASE INITIALIZER
# ============================================================================

class DatabaseInitializer:
    """
    Schema synchronization orchestrator.

    Every step reports a StepResult; a failed step stops the run and the
    driver is always disconnected afterwards.

    Args:
        options: Connection options (default: from environment)
        driver: Pre-built driver, mainly for tests
    """

    def __init__(
        self,
        options: Optional[PostgresConnectionOptions] = None,
        driver: Optional[PostgresDriver] = None,
    ):
        self.options = options or (driver.options if driver else PostgresConnectionOptions.from_env())
        self._driver = driver

        logger.info(f"DatabaseInitializer created for {self.options.safe_conninfo}")

    @property
    def driver(self) -> PostgresDriver:
        """Get driver (lazy initialization)."""
        if self._driver is None:
            self._driver = PostgresDriver(self.options)
        return self._driver

    @staticmethod
    def to_entities(models: Sequence[Any]) -> List[EntityMetadata]:
        """Accept EntityMetadata or Pydantic models with __sql_* metadata."""
        entities = []
        for model in models:
            if isinstance(model, EntityMetadata):
                entities.append(model)
            elif isinstance(model, type) and issubclass(model, BaseModel):
                entities.append(entity_from_model(model))
            else:
                raise TypeError(f"Cannot synchronize {model!r}: expected EntityMetadata or a Pydantic model")
        return entities

    # ========================================================================
    # SYNCHRONIZE
    # ========================================================================

    async def synchronize(self, models: Sequence[Any], dry_run: bool = False) -> InitializationResult:
        """
        Synchronize the database with the declared model.

        Args:
            models: EntityMetadata instances or Pydantic models
            dry_run: If True, compute the plan but execute nothing

        Returns:
            InitializationResult with detailed step results
        """
        result = InitializationResult(
            target=self.options.safe_conninfo,
            schema=self.options.schema,
            timestamp=datetime.now(timezone.utc).isoformat(),
            dry_run=dry_run,
            success=False,
        )

        logger.info("=" * 70)
        logger.info("SCHEMA SYNCHRONIZATION")
        logger.info(f"   Target: {self.options.safe_conninfo}")
        logger.info(f"   Mode: {'DRY RUN' if dry_run else 'EXECUTE'}")
        logger.info("=" * 70)

        try:
            entities = self.to_entities(models)

            step = await self._connect(entities)
            result.steps.append(step)
            if step.status == "failed":
                result.errors.append(f"Connection failed: {step.error}")
                return self._finish(result)
            result.schema = self.driver.schema

            step = await self._ensure_schema(dry_run)
            result.steps.append(step)
            if step.status == "failed":
                result.errors.append(f"Schema creation failed: {step.error}")
                return self._finish(result)

            step = await self._plan(entities)
            result.steps.append(step)
            if step.status == "failed":
                result.errors.append(f"Planning failed: {step.error}")
                return self._finish(result)
            result.plan = step.details.get("statements", [])

            if dry_run:
                result.steps.append(StepResult(name="build", status="skipped", message="[DRY RUN] Nothing executed"))
            elif not result.plan:
                result.steps.append(StepResult(name="build", status="skipped", message="Schema already in sync"))
            else:
                step = await self._build(entities)
                result.steps.append(step)
                if step.status == "failed":
                    result.errors.append(f"Build failed: {step.error}")
                    return self._finish(result)

                step = await self._verify(entities)
                result.steps.append(step)
                if step.status == "failed":
                    result.warnings.append(f"Verification issue: {step.error}")

            # Verification problems are warnings, not failures
            critical_failures = [s for s in result.steps if s.status == "failed" and s.name != "verify"]
            result.success = len(critical_failures) == 0

        except Exception as e:
            logger.error(f"Synchronization failed: {e}")
            logger.error(traceback.format_exc())
            result.errors.append(str(e))
            result.success = False

        finally:
            await self.driver.disconnect()

        return self._finish(result)

    def _finish(self, result: InitializationResult) -> InitializationResult:
        summary = result.to_dict()["summary"]
        logger.info("=" * 70)
        logger.info(f"SYNCHRONIZATION {'COMPLETE' if result.success else 'FAILED'}")
        logger.info(f"   Steps: {summary['successful']} succeeded, {summary['failed']} failed")
        logger.info(f"   Statements: {summary['statements']}")
        if result.errors:
            logger.warning(f"   Errors: {result.errors}")
        logger.info("=" * 70)
        return result

    # ========================================================================
    # STEPS
    # ========================================================================

    async def _connect(self, entities: Sequence[EntityMetadata]) -> StepResult:
        step = StepResult(name="connect", status="pending")
        logger.info("Step: Connecting...")

        try:
            await self.driver.connect()
            await self.driver.after_connect(entities)

            step.status = "success"
            step.message = f"Connected to {self.driver.database}"
            step.details = {
                "database": self.driver.database,
                "schema": self.driver.schema,
                "version": self.driver.version,
                "replicas": len(self.driver.slaves),
            }

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Connection failed: {e}"
            logger.error(f"Connection failed: {e}")

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    async def _ensure_schema(self, dry_run: bool) -> StepResult:
        step = StepResult(name="ensure_schema", status="pending")
        schema = self.driver.schema
        logger.info(f"Step: Ensuring schema {schema} exists...")

        runner = self.driver.create_query_runner("master")
        try:
            if await runner.has_schema(schema):
                step.status = "skipped"
                step.message = f"Schema {schema} exists"
            elif dry_run:
                step.status = "skipped"
                step.message = f"[DRY RUN] Would create schema {schema}"
            else:
                await runner.create_schema(schema, if_not_exist=True)
                step.status = "success"
                step.message = f"Created schema {schema}"
            step.details = {"schema": schema}

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Schema check failed: {e}"
            logger.error(f"Schema check failed: {e}")

        finally:
            await runner.release()

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    async def _plan(self, entities: Sequence[EntityMetadata]) -> StepResult:
        step = StepResult(name="plan", status="pending")
        logger.info(f"Step: Planning changes for {len(entities)} entities...")

        try:
            sql = await SchemaBuilder(self.driver, entities).log()
            statements = render_statements(sql)

            for i, statement in enumerate(statements[:10], 1):
                logger.info(f"   [{i}] {statement[:80]}")
            if len(statements) > 10:
                logger.info(f"   ... and {len(statements) - 10} more statements")

            step.status = "success"
            step.message = f"{len(statements)} statements pending"
            step.details = {"statements": statements, "statements_count": len(statements)}

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Planning failed: {e}"
            logger.error(f"Planning failed: {e}")
            logger.error(traceback.format_exc())

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    async def _build(self, entities: Sequence[EntityMetadata]) -> StepResult:
        step = StepResult(name="build", status="pending")
        logger.info("Step: Applying changes...")

        try:
            await SchemaBuilder(self.driver, entities).build()
            step.status = "success"
            step.message = "Schema synchronized"

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Build failed: {e}"
            logger.error(f"Build failed: {e}")
            logger.error(traceback.format_exc())

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    async def _verify(self, entities: Sequence[EntityMetadata]) -> StepResult:
        step = StepResult(name="verify", status="pending")
        logger.info("Step: Verifying schema is in sync...")

        try:
            remaining = render_statements(await SchemaBuilder(self.driver, entities).log())
            if remaining:
                step.status = "failed"
                step.error = f"{len(remaining)} statements still pending after build"
                step.message = "Schema not in sync"
            else:
                step.status = "success"
                step.message = "Schema in sync"
            step.details = {"remaining": remaining}

        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Verification failed: {e}"

        logger.info(f"   Result: {step.status} - {step.message}")
        return step


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

async def synchronize_database_async(
    models: Sequence[Any],
    dry_run: bool = False,
    options: Optional[PostgresConnectionOptions] = None,
) -> InitializationResult:
    """Synchronize the database with the declared model (async)."""
    initializer = DatabaseInitializer(options)
    return await initializer.synchronize(models, dry_run=dry_run)


def synchronize_database(
    models: Sequence[Any],
    dry_run: bool = False,
    options: Optional[PostgresConnectionOptions] = None,
) -> InitializationResult:
    """
    Synchronize the database with the declared model.

    Convenience function for deployment scripts.
    """
    return asyncio.run(synchronize_database_async(models, dry_run=dry_run, options=options))


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    'DatabaseInitializer',
    'InitializationResult',
    'StepResult',
    'render_statements',
    'synchronize_database',
    'synchronize_database_async',
]

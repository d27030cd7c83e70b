"""
Access to SQL Server Migration DAG

This DAG performs a one-off migration of an Access database into SQL Server:
1. Optionally drop every user table in SQL Server
2. Read table and column metadata from Access and create the tables
3. Load every Access table into memory and bulk load it into SQL Server
4. Verify SQL Server contents against the loaded data

Loading, transfer and verification share one in-memory cache, so they run
inside a single task. Continuous synchronization is not part of this DAG; it
runs in a long-lived process through access_mssql_sync.sync_controller.
"""

from airflow.sdk import dag, task
from airflow.models.param import Param
from pendulum import datetime
from datetime import timedelta
from typing import Any, Dict
import logging

from access_mssql_sync.data_transfer import DataTransfer, full_migration
from access_mssql_sync.ddl_generator import DDLGenerator, migrate_schema
from access_mssql_sync.schema_extractor import SchemaExtractor
from access_mssql_sync.snapshot_loader import SnapshotLoader
from access_mssql_sync.table_cache import SnapshotCache
from access_mssql_sync.table_config import TableRegistry
from access_mssql_sync.validation import MigrationValidator, generate_verification_report

logger = logging.getLogger(__name__)


@dag(
    dag_id="access_to_mssql_migration",
    start_date=datetime(2025, 1, 1),
    schedule=None,
    catchup=False,
    max_active_runs=1,
    is_paused_upon_creation=False,
    doc_md=__doc__,
    default_args={
        "owner": "data-team",
        "retries": 1,
        "retry_delay": timedelta(seconds=30),
    },
    params={
        "source_conn_id": Param(
            default="access_source",
            type="string",
            description="Access connection ID"
        ),
        "target_conn_id": Param(
            default="mssql_target",
            type="string",
            description="SQL Server connection ID"
        ),
        "drop_existing_tables": Param(
            default=False,
            type="boolean",
            description="Drop every user table in SQL Server before creating tables"
        ),
        "verify_tables": Param(
            default=True,
            type="boolean",
            description="Verify SQL Server contents against the loaded data"
        ),
    },
    tags=["migration", "access", "mssql"],
)
def access_to_mssql_migration():
    """Migrate schema and data from Access to SQL Server."""

    @task
    def drop_existing_tables(**context) -> int:
        """Drop all user tables in SQL Server when requested."""
        params = context["params"]
        if not params["drop_existing_tables"]:
            logger.info("Keeping existing SQL Server tables")
            return 0

        result = DDLGenerator(params["target_conn_id"]).drop_all_tables()
        if result["failed"]:
            logger.warning(f"Could not drop tables: {list(result['failed'])}")
        return len(result["dropped"])

    @task
    def create_target_tables(dropped_count: int, **context) -> Dict[str, Any]:
        """Create SQL Server tables from Access metadata, one table at a time."""
        params = context["params"]

        result = migrate_schema(
            SchemaExtractor(params["source_conn_id"]),
            DDLGenerator(params["target_conn_id"]),
            TableRegistry(),
        )

        context["ti"].xcom_push(key="created_tables", value=result["created"])
        return result

    @task
    def migrate_data(schema_result: Dict[str, Any], **context) -> Dict[str, Any]:
        """Load Access tables into memory, transfer them and verify the result."""
        params = context["params"]

        cache = SnapshotCache()
        registry = TableRegistry()
        loader = SnapshotLoader(params["source_conn_id"], cache, registry)
        transfer = DataTransfer(params["target_conn_id"], cache, registry)

        result = full_migration(loader, transfer)
        summary = {
            "loaded": result["load"]["loaded"],
            "load_failed": result["load"]["failed"],
            "transferred": result["transfer"]["transferred"],
            "skipped": result["transfer"]["skipped"],
            "transfer_failed": result["transfer"]["failed"],
        }

        if params["verify_tables"]:
            validator = MigrationValidator(params["target_conn_id"], cache, registry)
            verification = validator.verify_all()
            logger.info("\n" + generate_verification_report(list(verification["reports"].values())))
            summary["inconsistent_tables"] = verification["inconsistent_tables"]

        return summary

    @task
    def log_migration_summary(summary: Dict[str, Any], **context) -> str:
        """Log summary of the migration."""
        message = (
            f"Migration complete: {len(summary['transferred'])} tables transferred, "
            f"{len(summary['skipped'])} skipped, "
            f"{len(summary['load_failed']) + len(summary['transfer_failed'])} failed"
        )
        logger.info(message)

        for table_name, rows in summary["transferred"].items():
            logger.info(f"  {table_name}: {rows:,} rows")

        inconsistent = summary.get("inconsistent_tables")
        if inconsistent:
            logger.warning(f"Inconsistent tables: {', '.join(inconsistent)}")

        return message

    # Task flow
    dropped = drop_existing_tables()
    schema_result = create_target_tables(dropped)
    summary = migrate_data(schema_result)
    log_migration_summary(summary)


# Instantiate
access_to_mssql_migration()

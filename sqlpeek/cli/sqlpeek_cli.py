#!/usr/bin/env python3
"""
CLI for previewing generated SQL and running it against configured datastores
"""

import asyncio
import click
import logging
import sys
from typing import Optional

import yaml

from ..benchmark.benchmark_runner import benchmark_query, validate_run_count, validate_sql
from ..config.config_loader import ConfigLoader
from ..config.config_serializer import ConfigSerializer
from ..config.global_config_loader import load_global_config
from ..core.errors import BenchmarkAbortedError, SqlPeekError
from ..ddl.ddl_builder import build_alter_preview_ddl, build_create_table, build_drop_table, build_preview_ddl
from ..dialect.type_mapper import resolve_database_type
from ..utils.sql_builder import build_preview_sql
from ..utils.sql_formatter import format_sql, get_query_type, is_valid_sql, split_statements


class SqlPeekCLI:
    """Command-line interface over the SQL builders and datastores"""

    def __init__(self, global_config, datastores_path: Optional[str] = None):
        self.global_config = global_config
        self.datastores_path = datastores_path or global_config.storage.datastores_path
        self._data_storage = None
        self.logger = logging.getLogger(__name__)

    def _resolve_dialect(self, dialect: Optional[str]):
        return resolve_database_type(dialect or self.global_config.defaults.database_type)

    def _get_datastore(self, name: str):
        if self._data_storage is None:
            self._data_storage = ConfigLoader.load_datastores_from_yaml(self.datastores_path)
            self.logger.info(f"Loaded {len(self._data_storage.datastores)} datastores from {self.datastores_path}")

        declaration = self._data_storage.get_datastore(name)
        if declaration is None:
            raise click.ClickException(f"Datastore '{name}' not found in {self.datastores_path}")
        return declaration.create_datastore()

    def preview_ddl(self, file_path: str, dialect: Optional[str], pretty: bool) -> int:
        try:
            definition = ConfigLoader.load_table_definition_from_yaml(file_path)
            sql = build_preview_ddl(definition, self._resolve_dialect(dialect))
            click.echo(format_sql(sql) if pretty else sql)
            return 0
        except SqlPeekError as e:
            click.echo(f"Error: {e}", err=True)
            return 1

    def preview_alter(self, file_path: str, dialect: Optional[str]) -> int:
        try:
            batch = ConfigLoader.load_alter_batch_from_yaml(file_path)
            for statement in build_alter_preview_ddl(batch, self._resolve_dialect(dialect)):
                click.echo(statement)
            return 0
        except SqlPeekError as e:
            click.echo(f"Error: {e}", err=True)
            return 1

    def preview_edits(self, file_path: str, dialect: Optional[str]) -> int:
        try:
            batch = ConfigLoader.load_edit_batch_from_yaml(file_path)
            db_type = self._resolve_dialect(dialect)
            for operation in batch.operations:
                preview = build_preview_sql(operation, batch.context, db_type)
                click.echo(f"-- {preview.operation_id}")
                click.echo(preview.sql)
            return 0
        except SqlPeekError as e:
            click.echo(f"Error: {e}", err=True)
            return 1

    def list_datastores(self) -> int:
        data_storage = ConfigLoader.load_datastores_from_yaml(self.datastores_path)
        if not data_storage.datastores:
            click.echo("No datastores configured")
            return 0

        click.echo(f"\nConfigured datastores ({self.datastores_path}):")
        for name, store in data_storage.datastores.items():
            description = f" - {store.description}" if store.description else ""
            click.echo(f"  {name} [{store.type.value}]{description}")

        errors = ConfigLoader.validate_datastores_config(data_storage)
        for error in errors:
            click.echo(f"  ! {error}", err=True)
        return 1 if errors else 0

    async def create_table(self, file_path: str, datastore_name: str, assume_yes: bool) -> int:
        datastore = self._get_datastore(datastore_name)
        try:
            definition = ConfigLoader.load_table_definition_from_yaml(file_path)
            query = build_create_table(definition, datastore.db_type)
        except SqlPeekError as e:
            click.echo(f"Error: {e}", err=True)
            return 1

        click.echo(query.sql)
        if not assume_yes and not click.confirm(f"Execute on '{datastore_name}'?"):
            return 1

        async with datastore:
            await datastore.query(query.sql)
        click.echo(f"Created table {definition.name}")
        return 0

    async def drop_table(self, table: str, datastore_name: str, schema: Optional[str],
                         cascade: bool, if_exists: bool, assume_yes: bool) -> int:
        datastore = self._get_datastore(datastore_name)
        try:
            query = build_drop_table(schema, table, cascade, datastore.db_type, if_exists=if_exists)
        except SqlPeekError as e:
            click.echo(f"Error: {e}", err=True)
            return 1

        click.echo(query.sql)
        if not assume_yes and not click.confirm(f"Execute on '{datastore_name}'?"):
            return 1

        async with datastore:
            await datastore.query(query.sql)
        click.echo(f"Dropped table {table}")
        return 0

    async def describe_table(self, table: str, datastore_name: str, schema: Optional[str]) -> int:
        datastore = self._get_datastore(datastore_name)
        async with datastore:
            definition = await datastore.get_table_definition(schema, table)

        data = ConfigSerializer.table_definition_to_dict(definition)
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))
        click.echo(build_preview_ddl(definition, datastore.db_type))
        return 0

    async def run_query(self, sql: str, datastore_name: str) -> int:
        statements = split_statements(sql)
        for statement in statements:
            if not is_valid_sql(statement):
                click.echo(f"Warning: does not look like SQL: {statement[:60]}", err=True)

        datastore = self._get_datastore(datastore_name)
        async with datastore:
            result = await datastore.query_multiple(sql)

        for index, (statement, query_result) in enumerate(zip(statements, result.results), start=1):
            label = get_query_type(statement) or "statement"
            click.echo(
                f"\n{index}. {label}: {query_result.row_count} rows ({query_result.duration_ms:.2f} ms)"
            )
            if query_result.columns:
                click.echo(" | ".join(query_result.columns))
                for row in query_result.rows:
                    click.echo(" | ".join(str(row.get(column)) for column in query_result.columns))
        click.echo(f"\nTotal: {result.total_duration_ms:.2f} ms")
        return 0

    async def benchmark(self, sql: str, datastore_name: str, runs: int) -> int:
        try:
            validate_sql(sql)
            validate_run_count(runs)
        except SqlPeekError as e:
            click.echo(f"Error: {e}", err=True)
            return 1

        datastore = self._get_datastore(datastore_name)
        settings = self.global_config.benchmark
        try:
            async with datastore:
                result = await benchmark_query(
                    datastore, sql, runs,
                    telemetry_sample_size=settings.telemetry_sample_size,
                    execution_ratio=settings.execution_ratio
                )
        except BenchmarkAbortedError as e:
            click.echo(f"Error: {e}", err=True)
            if e.partial_result is not None:
                click.echo(f"\nPartial benchmark: {e.completed_runs} of {runs} runs completed on '{datastore_name}'")
                self._print_benchmark(e.partial_result)
            return 1

        click.echo(f"\nBenchmark: {result.run_count} runs on '{datastore_name}'")
        self._print_benchmark(result)
        return 0

    def _print_benchmark(self, result):
        stats = result.stats
        click.echo(f"  min    {stats.min:10.3f} ms")
        click.echo(f"  avg    {stats.avg:10.3f} ms")
        click.echo(f"  p90    {stats.p90:10.3f} ms")
        click.echo(f"  p95    {stats.p95:10.3f} ms")
        click.echo(f"  p99    {stats.p99:10.3f} ms")
        click.echo(f"  max    {stats.max:10.3f} ms")
        click.echo(f"  stddev {stats.std_dev:10.3f} ms")
        for name, phase in result.phase_stats.items():
            click.echo(f"  {name}: avg {phase.avg:.3f} ms, p95 {phase.p95:.3f} ms")


@click.group()
@click.option('--global-config', default=None, help='Path to global config YAML')
@click.option('--datastores', 'datastores_path', default=None,
              help='Path to datastores YAML (defaults to storage.datastores_path)')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
              help='Set the logging level')
@click.pass_context
def cli(ctx, global_config, datastores_path, log_level):
    """sqlpeek - generate, preview and run SQL across database dialects"""
    global_cfg = load_global_config(global_config)

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, (log_level or global_cfg.logging.level).upper()),
        format=global_cfg.logging.format,
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    ctx.ensure_object(dict)
    ctx.obj['global_config'] = global_cfg
    ctx.obj['cli'] = SqlPeekCLI(global_cfg, datastores_path)


@cli.command('preview-ddl')
@click.argument('file_path', type=click.Path(exists=True))
@click.option('--dialect', help='Target database type (defaults to defaults.database_type)')
@click.option('--pretty', is_flag=True, help='Reformat the statement')
@click.pass_context
def preview_ddl(ctx, file_path, dialect, pretty):
    """Print the CREATE TABLE statement for a table definition YAML"""
    sys.exit(ctx.obj['cli'].preview_ddl(file_path, dialect, pretty))


@cli.command('preview-alter')
@click.argument('file_path', type=click.Path(exists=True))
@click.option('--dialect', help='Target database type')
@click.pass_context
def preview_alter(ctx, file_path, dialect):
    """Print the ALTER statements for an alter batch YAML"""
    sys.exit(ctx.obj['cli'].preview_alter(file_path, dialect))


@cli.command('preview-edits')
@click.argument('file_path', type=click.Path(exists=True))
@click.option('--dialect', help='Target database type')
@click.pass_context
def preview_edits(ctx, file_path, dialect):
    """Print the INSERT/UPDATE/DELETE statements for an edit batch YAML"""
    sys.exit(ctx.obj['cli'].preview_edits(file_path, dialect))


@cli.command()
@click.pass_context
def datastores(ctx):
    """List configured datastores"""
    sys.exit(ctx.obj['cli'].list_datastores())


@cli.command('create-table')
@click.argument('file_path', type=click.Path(exists=True))
@click.option('--datastore', required=True, help='Datastore name')
@click.option('--yes', 'assume_yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def create_table(ctx, file_path, datastore, assume_yes):
    """Create a table from a table definition YAML"""
    sys.exit(asyncio.run(ctx.obj['cli'].create_table(file_path, datastore, assume_yes)))


@cli.command('drop-table')
@click.argument('table')
@click.option('--datastore', required=True, help='Datastore name')
@click.option('--schema', help='Schema name')
@click.option('--cascade', is_flag=True, help='Drop dependent objects (PostgreSQL only)')
@click.option('--if-exists', is_flag=True, help='Do not fail when the table is missing')
@click.option('--yes', 'assume_yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def drop_table(ctx, table, datastore, schema, cascade, if_exists, assume_yes):
    """Drop a table"""
    sys.exit(asyncio.run(ctx.obj['cli'].drop_table(table, datastore, schema, cascade, if_exists, assume_yes)))


@cli.command()
@click.argument('table')
@click.option('--datastore', required=True, help='Datastore name')
@click.option('--schema', help='Schema name')
@click.pass_context
def describe(ctx, table, datastore, schema):
    """Read a table definition from the database catalog"""
    sys.exit(asyncio.run(ctx.obj['cli'].describe_table(table, datastore, schema)))


@cli.command()
@click.argument('sql')
@click.option('--datastore', required=True, help='Datastore name')
@click.pass_context
def query(ctx, sql, datastore):
    """Run one or more SQL statements"""
    sys.exit(asyncio.run(ctx.obj['cli'].run_query(sql, datastore)))


@cli.command()
@click.option('--datastore', required=True, help='Datastore name')
@click.option('--sql', required=True, help='Query to benchmark')
@click.option('--runs', default=10, type=int, help='Number of runs (1-500)')
@click.pass_context
def benchmark(ctx, datastore, sql, runs):
    """Run a query repeatedly and print latency statistics"""
    sys.exit(asyncio.run(ctx.obj['cli'].benchmark(sql, datastore, runs)))


@cli.command()
@click.option('--host', default=None, help='Host to bind to')
@click.option('--port', default=None, type=int, help='Port to bind to')
@click.pass_context
def serve(ctx, host, port):
    """Start the HTTP API server"""
    from ..api.main import run_server
    from ..api.state import app_state

    global_cfg = ctx.obj['global_config']
    app_state['global_config'] = global_cfg
    run_server(host=host, port=port, log_level=global_cfg.logging.level)


if __name__ == "__main__":
    cli()

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import typer
from rich.console import Console

from mongo_toolbox import __version__
from mongo_toolbox.config import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_MAX_CONCURRENCY,
    EnvConfig,
    load_runtime_config,
    write_default_config,
)
from mongo_toolbox.db import get_motor_client, init_odm
from mongo_toolbox.exceptions import ToolboxError
from mongo_toolbox.inputs import coerce_ids, load_id_list, parse_value
from mongo_toolbox.logging_config import setup_logging
from mongo_toolbox.models import OperationRun
from mongo_toolbox.operations import (
    add_field_to_all_documents,
    convert_field_type,
    convert_number_to_string,
    delete_documents,
    delete_field_from_all_documents,
    rename_collection,
    replace_values_where,
)
from mongo_toolbox.reporting import print_json, print_operation_summary


app = typer.Typer(no_args_is_help=True, help="Bulk mutation helpers for MongoDB collections")
console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default INFO)"),
) -> None:
    setup_logging(log_level or EnvConfig().log_level or "INFO")


def _resolve(uri: Optional[str], db: Optional[str], concurrency: Optional[int]) -> Tuple[str, str, int]:
    if uri and db:
        return uri, db, concurrency or DEFAULT_MAX_CONCURRENCY

    config = load_runtime_config()
    return uri or config.mongodb_uri, db or config.default_db, concurrency or config.max_concurrency


def _execute(run: Callable[[], Awaitable[None]]) -> None:
    try:
        asyncio.run(run())
    except ToolboxError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)


async def _store_run(
    mongodb_uri: str,
    database: str,
    operation: str,
    collection: str,
    parameters: Dict[str, Any],
    affected: List[Any],
    dry_run: bool,
    failures: Optional[List[Dict[str, Any]]] = None,
) -> None:
    odm_client = await init_odm(mongodb_uri, database)
    run = OperationRun(
        operation=operation,
        database=database,
        collection=collection,
        parameters=parameters,
        affected_count=len(affected),
        failures=failures or [],
        dry_run=dry_run,
    )
    await run.insert()
    odm_client.close()


def _report(operation: str, collection: str, affected: List[Any], dry_run: bool) -> None:
    print_json({"operation": operation, "collection": collection, "dry_run": dry_run, "affected": affected})
    print_operation_summary(operation, collection, affected, dry_run)


@app.command()
def version() -> None:
    console.print(f"Mongo Toolbox v{__version__}")


@app.command()
def init(path: Optional[Path] = typer.Option(None, "--path", help="Path for config file")) -> None:
    config_path = path or DEFAULT_CONFIG_PATH
    if config_path.exists():
        console.print(f"Config already exists at {config_path}")
        raise typer.Exit(code=0)

    write_default_config(config_path)
    console.print(f"Created config at {config_path}")


@app.command("add-field")
def add_field(
    collection: str = typer.Option(..., "--collection", help="Collection name"),
    field: str = typer.Option(..., "--field", help="Field to add"),
    value: str = typer.Option(..., "--value", help="Value to set (JSON, or plain string)"),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB URI"),
    db: Optional[str] = typer.Option(None, "--db", help="Database name"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max concurrent writes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write changes"),
    store: bool = typer.Option(False, "--store", help="Record the run via Beanie ODM"),
) -> None:
    """Add a field to every document that does not have it."""
    async def _run() -> None:
        mongodb_uri, default_db, limit = _resolve(uri, db, concurrency)
        parsed = parse_value(value)
        client = get_motor_client(mongodb_uri)
        try:
            affected = await add_field_to_all_documents(
                client, default_db, collection, field, parsed, max_concurrency=limit, dry_run=dry_run
            )
        finally:
            client.close()

        if store:
            await _store_run(
                mongodb_uri, default_db, "add_field", collection,
                {"field": field, "value": parsed}, affected, dry_run,
            )
        _report("add_field", collection, affected, dry_run)

    _execute(_run)


@app.command("convert-type")
def convert_type(
    collection: str = typer.Option(..., "--collection", help="Collection name"),
    field: str = typer.Option(..., "--field", help="Field to convert"),
    from_type: str = typer.Option(..., "--from", help="Current type: null, absent, string, integer, float, number, boolean, array, object"),
    to_type: str = typer.Option(..., "--to", help="Target type: string, number, integer, float, boolean, array, object"),
    new_value: Optional[str] = typer.Option(None, "--new-value", help="Value to set (JSON); defaults to the type's zero-value"),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB URI"),
    db: Optional[str] = typer.Option(None, "--db", help="Database name"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max concurrent writes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write changes"),
    store: bool = typer.Option(False, "--store", help="Record the run via Beanie ODM"),
) -> None:
    """Replace values of one type with a value of another type."""
    async def _run() -> None:
        mongodb_uri, default_db, limit = _resolve(uri, db, concurrency)
        parsed = parse_value(new_value)
        client = get_motor_client(mongodb_uri)
        try:
            affected = await convert_field_type(
                client, default_db, collection, field, from_type, to_type, parsed, max_concurrency=limit, dry_run=dry_run
            )
        finally:
            client.close()

        if store:
            await _store_run(
                mongodb_uri, default_db, "convert_type", collection,
                {"field": field, "from": from_type, "to": to_type, "new_value": parsed}, affected, dry_run,
            )
        _report("convert_type", collection, affected, dry_run)

    _execute(_run)


@app.command("delete-docs")
def delete_docs(
    collection: str = typer.Option(..., "--collection", help="Collection name"),
    ids: Optional[List[str]] = typer.Option(None, "--id", help="Document id (repeatable)"),
    ids_file: Optional[Path] = typer.Option(None, "--ids-file", exists=True, dir_okay=False, readable=True, help="YAML/JSON file with a list of ids"),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB URI"),
    db: Optional[str] = typer.Option(None, "--db", help="Database name"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max concurrent writes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write changes"),
    store: bool = typer.Option(False, "--store", help="Record the run via Beanie ODM"),
) -> None:
    """Delete documents by id."""
    if not ids and not ids_file:
        console.print("[red]Provide at least one --id or an --ids-file.[/red]")
        raise typer.Exit(code=2)

    async def _run() -> None:
        mongodb_uri, default_db, limit = _resolve(uri, db, concurrency)
        if ids_file:
            id_list = load_id_list(ids_file)
            if ids and isinstance(id_list, list):
                id_list = id_list + coerce_ids(ids)
        else:
            id_list = coerce_ids(ids)

        client = get_motor_client(mongodb_uri)
        try:
            affected = await delete_documents(client, default_db, collection, id_list, max_concurrency=limit, dry_run=dry_run)
        finally:
            client.close()

        if store:
            await _store_run(
                mongodb_uri, default_db, "delete_documents", collection,
                {"ids": [str(doc_id) for doc_id in id_list]}, affected, dry_run,
            )
        _report("delete_documents", collection, affected, dry_run)

    _execute(_run)


@app.command("delete-field")
def delete_field(
    collection: str = typer.Option(..., "--collection", help="Collection name"),
    field: str = typer.Option(..., "--field", help="Field to remove"),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB URI"),
    db: Optional[str] = typer.Option(None, "--db", help="Database name"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max concurrent writes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write changes"),
    store: bool = typer.Option(False, "--store", help="Record the run via Beanie ODM"),
) -> None:
    """Remove a field from every document."""
    async def _run() -> None:
        mongodb_uri, default_db, limit = _resolve(uri, db, concurrency)
        client = get_motor_client(mongodb_uri)
        try:
            affected = await delete_field_from_all_documents(
                client, default_db, collection, field, max_concurrency=limit, dry_run=dry_run
            )
        finally:
            client.close()

        if store:
            await _store_run(
                mongodb_uri, default_db, "delete_field", collection, {"field": field}, affected, dry_run
            )
        _report("delete_field", collection, affected, dry_run)

    _execute(_run)


@app.command("replace-where")
def replace_where(
    collection: str = typer.Option(..., "--collection", help="Collection name"),
    field: str = typer.Option(..., "--field", help="Field to filter on and replace"),
    operator: str = typer.Option("==", "--op", help="<, <=, ==, !=, >=, >, in, not-in, array-contains, array-contains-any"),
    value: str = typer.Option(..., "--value", help="Comparison value (JSON, or plain string)"),
    new_value: str = typer.Option(..., "--new-value", help="Replacement value (JSON, or plain string)"),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB URI"),
    db: Optional[str] = typer.Option(None, "--db", help="Database name"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max concurrent writes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write changes"),
    store: bool = typer.Option(False, "--store", help="Record the run via Beanie ODM"),
) -> None:
    """Replace a field's value on every document matching a filter."""
    async def _run() -> None:
        mongodb_uri, default_db, limit = _resolve(uri, db, concurrency)
        compare_to = parse_value(value)
        replacement = parse_value(new_value)
        client = get_motor_client(mongodb_uri)
        try:
            affected = await replace_values_where(
                client, default_db, collection, field, operator, compare_to, replacement, max_concurrency=limit, dry_run=dry_run
            )
        finally:
            client.close()

        if store:
            await _store_run(
                mongodb_uri, default_db, "replace_where", collection,
                {"field": field, "op": operator, "value": compare_to, "new_value": replacement},
                affected, dry_run,
            )
        _report("replace_where", collection, affected, dry_run)

    _execute(_run)


@app.command("rename-collection")
def rename(
    current_name: str = typer.Option(..., "--from", help="Current collection name"),
    new_name: str = typer.Option(..., "--to", help="New collection name"),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB URI"),
    db: Optional[str] = typer.Option(None, "--db", help="Database name"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max concurrent writes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write changes"),
    store: bool = typer.Option(False, "--store", help="Record the run via Beanie ODM"),
) -> None:
    """Copy every document to a new collection, then delete the copied ones."""
    async def _run() -> None:
        mongodb_uri, default_db, limit = _resolve(uri, db, concurrency)
        client = get_motor_client(mongodb_uri)
        try:
            report = await rename_collection(client, default_db, current_name, new_name, max_concurrency=limit, dry_run=dry_run)
        finally:
            client.close()

        failures = [
            {"phase": "copy", **failure.model_dump()} for failure in report.copy_failures
        ] + [
            {"phase": "delete", **failure.model_dump()} for failure in report.delete_failures
        ]
        if store:
            await _store_run(
                mongodb_uri, default_db, "rename_collection", current_name,
                {"to": new_name}, report.moved, dry_run, failures,
            )

        print_json({"dry_run": dry_run, **report.model_dump()})
        print_operation_summary("rename_collection", current_name, report.moved, dry_run, failures)

        if not report.succeeded:
            raise typer.Exit(code=1)

    _execute(_run)


@app.command("number-to-string")
def number_to_string(
    collection: str = typer.Option(..., "--collection", help="Collection name"),
    field: str = typer.Option(..., "--field", help="Field to convert"),
    uri: Optional[str] = typer.Option(None, "--uri", help="MongoDB URI"),
    db: Optional[str] = typer.Option(None, "--db", help="Database name"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, help="Max concurrent writes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write changes"),
    store: bool = typer.Option(False, "--store", help="Record the run via Beanie ODM"),
) -> None:
    """Rewrite numeric values of a field as strings."""
    async def _run() -> None:
        mongodb_uri, default_db, limit = _resolve(uri, db, concurrency)
        client = get_motor_client(mongodb_uri)
        try:
            affected = await convert_number_to_string(client, default_db, collection, field, max_concurrency=limit, dry_run=dry_run)
        finally:
            client.close()

        if store:
            await _store_run(
                mongodb_uri, default_db, "number_to_string", collection, {"field": field}, affected, dry_run
            )
        _report("number_to_string", collection, affected, dry_run)

    _execute(_run)

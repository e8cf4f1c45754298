from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from mongo_toolbox.config import DEFAULT_MAX_CONCURRENCY
from mongo_toolbox.exceptions import InvalidArgumentError
from mongo_toolbox.models import DocumentFailure, RenameReport
from mongo_toolbox.values import initial_value, lookup, matches_type, source_kinds

logger = logging.getLogger(__name__)

COMPARISON_OPERATORS: Dict[str, str] = {
    "<": "$lt",
    "<=": "$lte",
    "==": "$eq",
    "!=": "$ne",
    ">=": "$gte",
    ">": "$gt",
    "in": "$in",
    "not-in": "$nin",
}
ARRAY_OPERATORS = ("array-contains", "array-contains-any")
LIST_VALUED_OPERATORS = ("in", "not-in", "array-contains-any")


async def bounded_gather(aws: Iterable[Awaitable[Any]], limit: int = DEFAULT_MAX_CONCURRENCY) -> List[Any]:
    """Await all awaitables with at most ``limit`` of them in flight.

    Every awaitable settles before this returns. The first exception raised,
    in submission order, is then re-raised to the caller.
    """
    if limit < 1:
        raise InvalidArgumentError("max_concurrency must be at least 1")

    semaphore = asyncio.Semaphore(limit)

    async def run_with_semaphore(aw: Awaitable[Any]) -> Any:
        async with semaphore:
            return await aw

    tasks = [run_with_semaphore(aw) for aw in aws]
    if not tasks:
        return []

    results = await asyncio.gather(*tasks, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


def build_filter(field: str, operator: str, value: Any) -> Dict[str, Any]:
    """Translate a comparison operator into a MongoDB query filter."""
    if operator in LIST_VALUED_OPERATORS and not isinstance(value, (list, tuple)):
        raise InvalidArgumentError(f"Operator '{operator}' requires a list value")

    if operator == "array-contains":
        return {field: {"$elemMatch": {"$eq": value}}}
    if operator == "array-contains-any":
        return {field: {"$elemMatch": {"$in": list(value)}}}

    mongo_op = COMPARISON_OPERATORS.get(operator)
    if mongo_op is None:
        supported = ", ".join([*COMPARISON_OPERATORS, *ARRAY_OPERATORS])
        raise InvalidArgumentError(f"Unsupported comparison operator '{operator}'. Supported: {supported}")
    if mongo_op in ("$in", "$nin"):
        value = list(value)
    if mongo_op in ("$ne", "$nin"):
        # Mongo's negations also match documents missing the field
        return {field: {"$exists": True, mongo_op: value}}
    return {field: {mongo_op: value}}


async def _collect_ids(coll, query: Dict[str, Any]) -> List[Any]:
    return [doc["_id"] async for doc in coll.find(query, projection=["_id"])]


async def _set_field(coll, doc_id: Any, field: str, value: Any) -> Any:
    logger.debug("Setting %s on %s", field, doc_id)
    await coll.update_one({"_id": doc_id}, {"$set": {field: value}})
    return doc_id


async def _unset_field(coll, doc_id: Any, field: str) -> Any:
    logger.debug("Removing %s from %s", field, doc_id)
    await coll.update_one({"_id": doc_id}, {"$unset": {field: ""}})
    return doc_id


async def add_field_to_all_documents(
    client: AsyncIOMotorClient,
    database: str,
    collection: str,
    field: str,
    value: Any,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    dry_run: bool = False,
) -> List[Any]:
    """Set ``field`` to ``value`` on every document where the field is absent.

    A field that is present with a null or falsy value counts as present.
    """
    coll = client[database][collection]
    targets = await _collect_ids(coll, {field: {"$exists": False}})
    logger.info("%s.%s: %d documents missing '%s'", database, collection, len(targets), field)

    if not dry_run:
        await bounded_gather((_set_field(coll, doc_id, field, value) for doc_id in targets), max_concurrency)
    return targets


async def convert_field_type(
    client: AsyncIOMotorClient,
    database: str,
    collection: str,
    field: str,
    from_type: str,
    to_type: str,
    new_value: Any = None,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    dry_run: bool = False,
) -> List[Any]:
    """Replace the value of ``field`` wherever it currently holds ``from_type``.

    The replacement is ``new_value``, or the zero-value of ``to_type`` when
    no value is given.
    """
    source_kinds(from_type)
    zero_value = initial_value(to_type)
    replacement = new_value if new_value is not None else zero_value

    coll = client[database][collection]
    targets: List[Any] = []
    scanned = 0
    async for doc in coll.find({}, projection=[field]):
        scanned += 1
        if matches_type(lookup(doc, field), from_type):
            targets.append(doc["_id"])

    logger.info(
        "%s.%s: %d of %d documents have '%s' of type %s",
        database,
        collection,
        len(targets),
        scanned,
        field,
        from_type,
    )

    if not dry_run:
        # each write gets its own copy so mutable zero-values are not shared
        await bounded_gather(
            (_set_field(coll, doc_id, field, _fresh(replacement)) for doc_id in targets),
            max_concurrency,
        )
    return targets


def _fresh(value: Any) -> Any:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    return value


async def delete_documents(
    client: AsyncIOMotorClient,
    database: str,
    collection: str,
    ids: Sequence[Any],
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    dry_run: bool = False,
) -> List[Any]:
    """Delete each document named in ``ids`` and return those actually removed."""
    if not isinstance(ids, (list, tuple)):
        raise InvalidArgumentError("Parameter ids must be a list of document identifiers.")

    coll = client[database][collection]

    if dry_run:
        existing = set(await _collect_ids(coll, {"_id": {"$in": list(ids)}}))
        return [doc_id for doc_id in ids if doc_id in existing]

    async def _delete(doc_id: Any) -> bool:
        result = await coll.delete_one({"_id": doc_id})
        return result.deleted_count > 0

    outcomes = await bounded_gather((_delete(doc_id) for doc_id in ids), max_concurrency)
    deleted = [doc_id for doc_id, removed in zip(ids, outcomes) if removed]
    logger.info("%s.%s: deleted %d of %d requested documents", database, collection, len(deleted), len(ids))
    return deleted


async def delete_field_from_all_documents(
    client: AsyncIOMotorClient,
    database: str,
    collection: str,
    field: str,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    dry_run: bool = False,
) -> List[Any]:
    coll = client[database][collection]
    targets = await _collect_ids(coll, {field: {"$exists": True}})
    logger.info("%s.%s: %d documents have '%s'", database, collection, len(targets), field)

    if not dry_run:
        await bounded_gather((_unset_field(coll, doc_id, field) for doc_id in targets), max_concurrency)
    return targets


async def replace_values_where(
    client: AsyncIOMotorClient,
    database: str,
    collection: str,
    field: str,
    operator: str,
    value: Any,
    new_value: Any,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    dry_run: bool = False,
) -> List[Any]:
    """Set ``field`` to ``new_value`` on every document matching ``field <operator> value``."""
    query = build_filter(field, operator, value)
    coll = client[database][collection]
    targets = await _collect_ids(coll, query)
    logger.info("%s.%s: snapshot size %d", database, collection, len(targets))

    if not dry_run:
        await bounded_gather((_set_field(coll, doc_id, field, new_value) for doc_id in targets), max_concurrency)
        logger.info("%s.%s: updated %d documents", database, collection, len(targets))
    return targets


async def rename_collection(
    client: AsyncIOMotorClient,
    database: str,
    current_name: str,
    new_name: str,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    dry_run: bool = False,
) -> RenameReport:
    """Move every document from ``current_name`` to ``new_name``.

    Documents are copied first; only documents whose copy succeeded are then
    deleted from the source. Per-document driver errors are logged and
    reported on the returned RenameReport rather than raised.
    """
    if not current_name or not new_name:
        raise InvalidArgumentError("Both collection names are required.")
    if current_name == new_name:
        raise InvalidArgumentError("New collection name must differ from the current one.")

    db = client[database]
    source = db[current_name]
    target = db[new_name]
    report = RenameReport(source=current_name, target=new_name)

    documents = [doc async for doc in source.find({})]
    logger.info("%s.%s: %d documents to move to %s", database, current_name, len(documents), new_name)

    if dry_run:
        report.moved = [doc["_id"] for doc in documents]
        return report

    async def _copy(doc: Dict[str, Any]) -> Optional[Any]:
        try:
            await target.replace_one({"_id": doc["_id"]}, doc, upsert=True)
        except PyMongoError as e:
            logger.error("Failed to copy %s to %s: %s", doc["_id"], new_name, e)
            report.copy_failures.append(DocumentFailure(document_id=doc["_id"], error=str(e)))
            return None
        return doc["_id"]

    async def _delete(doc_id: Any) -> Optional[Any]:
        try:
            await source.delete_one({"_id": doc_id})
        except PyMongoError as e:
            logger.error("Failed to delete %s from %s: %s", doc_id, current_name, e)
            report.delete_failures.append(DocumentFailure(document_id=doc_id, error=str(e)))
            return None
        return doc_id

    copied = [doc_id for doc_id in await bounded_gather((_copy(doc) for doc in documents), max_concurrency) if doc_id is not None]
    removed = await bounded_gather((_delete(doc_id) for doc_id in copied), max_concurrency)
    report.moved = [doc_id for doc_id in removed if doc_id is not None]

    logger.info(
        "%s: moved %d documents to %s (%d copy failures, %d delete failures)",
        current_name,
        len(report.moved),
        new_name,
        len(report.copy_failures),
        len(report.delete_failures),
    )
    return report


async def convert_number_to_string(
    client: AsyncIOMotorClient,
    database: str,
    collection: str,
    field: str,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    dry_run: bool = False,
) -> List[Any]:
    """Rewrite numeric values of ``field`` as strings.

    Zero, numeric or the string "0", becomes the empty string.
    """
    coll = client[database][collection]
    writes: List[tuple] = []
    async for doc in coll.find({}, projection=[field]):
        current = lookup(doc, field)
        if current == "0" or (matches_type(current, "number") and current == 0):
            writes.append((doc["_id"], ""))
        elif matches_type(current, "number"):
            writes.append((doc["_id"], _number_to_string(current)))

    logger.info("%s.%s: %d numeric values of '%s' to convert", database, collection, len(writes), field)

    if not dry_run:
        await bounded_gather((_set_field(coll, doc_id, field, text) for doc_id, text in writes), max_concurrency)
    return [doc_id for doc_id, _ in writes]


def _number_to_string(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

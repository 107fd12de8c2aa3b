"""OData path and query builders for the Web API.

Metadata lives under ``EntityDefinitions``; records live under each entity's
collection name (the pluralized route segment, e.g. ``accounts``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from lookupscope.core.types import EntityMetadata, RawRecord
from lookupscope.diagnostics.translator import describe
from lookupscope.exceptions import ApiRequestError

if TYPE_CHECKING:
    from lookupscope.core.client import WebApiClient

logger = logging.getLogger(__name__)

ENTITY_SELECT = "LogicalName,PrimaryIdAttribute,PrimaryNameAttribute,LogicalCollectionName,DisplayName"
LOOKUP_CAST = "Microsoft.Dynamics.CRM.LookupAttributeMetadata"


def entity_definition_path(logical_name: str) -> str:
    """Path of one entity's definition."""
    return f"EntityDefinitions(LogicalName='{logical_name}')"


def lookup_attribute_path(entity_name: str, attribute_name: str) -> str:
    """Path of one attribute cast to lookup metadata (yields its Targets)."""
    return (
        f"{entity_definition_path(entity_name)}"
        f"/Attributes(LogicalName='{attribute_name}')/{LOOKUP_CAST}"
    )


def lookup_attributes_path(entity_name: str) -> str:
    """Path of all lookup attributes of an entity."""
    return f"{entity_definition_path(entity_name)}/Attributes/{LOOKUP_CAST}"


def collection_name_guess(logical_name: str) -> str:
    """Best-effort plural route segment when metadata is not at hand."""
    if logical_name.endswith("s"):
        return logical_name
    if logical_name.endswith("y") and logical_name[-2:-1] not in "aeiou":
        return f"{logical_name[:-1]}ies"
    return f"{logical_name}s"


def build_relationship_filter(lookup_column: str, parent_id: str) -> str:
    """Build a ``$filter`` matching children of one parent record.

    GUIDs are compared unquoted, e.g. ``_parentcustomerid_value eq 0000...``.
    """
    return f"{lookup_column} eq {parent_id.strip('{}')}"


def build_record_query(
    collection_name: str,
    select: list[str] | None = None,
    filter: str | None = None,
    top: int | None = None,
    order_by: str | None = None,
) -> tuple[str, dict[str, str]]:
    """Build the path and query parameters of a record query.

    Args:
        collection_name: Entity collection (route segment)
        select: Columns for $select (all columns when omitted)
        filter: OData $filter expression
        top: Maximum number of rows ($top), ignored unless positive
        order_by: OData $orderby expression

    Returns:
        Tuple of (path, params)
    """
    params: dict[str, str] = {}
    if select:
        params["$select"] = ",".join(select)
    if filter:
        params["$filter"] = filter
    if top is not None and top > 0:
        params["$top"] = str(top)
    if order_by:
        params["$orderby"] = order_by
    return collection_name, params


async def fetch_records(
    client: WebApiClient,
    metadata: EntityMetadata,
    select: list[str] | None = None,
    filter: str | None = None,
    top: int | None = None,
) -> list[RawRecord]:
    """Fetch raw records of an entity.

    Raises:
        ApiRequestError: If the service answers with a non-success status
    """
    path, params = build_record_query(metadata.collection_name, select, filter, top)
    response = await client.get(path, params=params)
    if not response.is_success:
        report = describe(response, str(response.request.url))
        logger.error(report.render())
        raise ApiRequestError(report)

    body: dict[str, Any] = response.json()
    records = body.get("value") or []
    logger.info(f"Fetched {len(records)} {metadata.logical_name} records")
    return records

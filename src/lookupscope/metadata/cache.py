"""Metadata cache for entity and lookup attribute definitions.

Entity schemas rarely change during a debugging session, so successful fetches
are kept for the lifetime of the cache object. Concurrent callers asking for
the same uncached key share one outbound request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol, TypeVar

import httpx

from lookupscope.core.client import WebApiClient
from lookupscope.core.query import (
    ENTITY_SELECT,
    entity_definition_path,
    lookup_attribute_path,
    lookup_attributes_path,
)
from lookupscope.core.types import EntityMetadata, LookupAttribute
from lookupscope.diagnostics.translator import describe
from lookupscope.exceptions import MetadataFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MetadataSource(Protocol):
    """Anything that can answer schema questions for discovery and normalization."""

    async def get_entity_metadata(self, logical_name: str) -> EntityMetadata: ...

    async def get_lookup_attribute(
        self, entity_name: str, attribute_name: str
    ) -> LookupAttribute | None: ...

    async def get_lookup_attributes(self, entity_name: str) -> list[LookupAttribute] | None: ...


class MetadataCache:
    """Fetches and memoizes schema descriptors from the Web API.

    Lookup attribute answers distinguish "no lookup metadata" (``None``) from
    "lookup with zero declared targets" (``targets == []``).
    """

    def __init__(self, client: WebApiClient) -> None:
        """Initialize the cache.

        Args:
            client: Web API client used for outbound requests
        """
        self._client = client
        self._entities: dict[str, EntityMetadata] = {}
        self._lookups: dict[tuple[str, str], LookupAttribute | None] = {}
        self._lookup_lists: dict[str, list[LookupAttribute]] = {}
        self._pending: dict[tuple[str, ...], asyncio.Future[Any]] = {}
        self.fetch_count = 0

    async def _coalesce(self, key: tuple[str, ...], fetch: Callable[[], Awaitable[T]]) -> T:
        """Run ``fetch`` unless a fetch for ``key`` is already in flight.

        The fetch runs in its own task and every caller, the first included,
        awaits it through ``asyncio.shield``: cancelling one caller (e.g. a
        ``wait_for`` timeout) never cancels the fetch other callers share.
        The pending entry is dropped once the fetch settles.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(fetch())
            self._pending[key] = task
            task.add_done_callback(lambda done: self._settle(key, done))
        return await asyncio.shield(task)

    def _settle(self, key: tuple[str, ...], task: asyncio.Future[Any]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled():
            # Mark retrieved so a failure nobody awaited is not reported at GC time
            task.exception()

    async def _get(self, path: str, params: dict[str, str] | None = None) -> httpx.Response:
        self.fetch_count += 1
        return await self._client.get(path, params=params)

    async def get_entity_metadata(self, logical_name: str) -> EntityMetadata:
        """Get an entity's schema descriptor.

        Args:
            logical_name: Entity logical name (e.g. "account")

        Returns:
            EntityMetadata with primary id/name attributes and collection name

        Raises:
            MetadataFetchError: If the endpoint fails or returns a malformed body
        """
        cached = self._entities.get(logical_name)
        if cached is not None:
            logger.debug(f"Using cached metadata for {logical_name}")
            return cached
        return await self._coalesce(
            ("entity", logical_name), lambda: self._fetch_entity(logical_name)
        )

    async def _fetch_entity(self, logical_name: str) -> EntityMetadata:
        logger.info(f"Fetching metadata for entity: {logical_name}")
        path = entity_definition_path(logical_name)
        try:
            response = await self._get(path, {"$select": ENTITY_SELECT})
        except httpx.HTTPError as e:
            logger.error(f"Metadata request for {logical_name} failed: {e}")
            raise MetadataFetchError(logical_name, f"request failed: {e}") from e

        if not response.is_success:
            report = describe(response, path)
            logger.error(report.render())
            raise MetadataFetchError(
                logical_name, f"HTTP {report.status_code} {report.status_text}", report
            )

        try:
            body = response.json()
        except ValueError as e:
            raise MetadataFetchError(logical_name, "response body is not valid JSON") from e
        if not isinstance(body, dict):
            raise MetadataFetchError(logical_name, "response body is not a JSON object")

        try:
            metadata = EntityMetadata.from_api(body)
        except ValueError as e:
            raise MetadataFetchError(logical_name, f"malformed metadata, {e}") from e

        self._entities[logical_name] = metadata
        logger.info(
            f"Fetched metadata for {logical_name}: "
            f"PrimaryIdAttribute={metadata.primary_id_attribute}, "
            f"PrimaryNameAttribute={metadata.primary_name_attribute}"
        )
        return metadata

    async def get_lookup_attribute(
        self, entity_name: str, attribute_name: str
    ) -> LookupAttribute | None:
        """Get one lookup attribute with its declared targets.

        Returns:
            The attribute (targets may be empty), or None when the attribute is
            not a lookup or its metadata could not be fetched
        """
        key = (entity_name, attribute_name)
        if key in self._lookups:
            return self._lookups[key]
        listed = self._lookup_lists.get(entity_name)
        if listed is not None:
            return next((a for a in listed if a.logical_name == attribute_name), None)
        return await self._coalesce(
            ("lookup", entity_name, attribute_name),
            lambda: self._fetch_lookup(entity_name, attribute_name),
        )

    async def _fetch_lookup(self, entity_name: str, attribute_name: str) -> LookupAttribute | None:
        path = lookup_attribute_path(entity_name, attribute_name)
        try:
            response = await self._get(path, {"$select": "LogicalName,Targets,DisplayName"})
        except httpx.HTTPError as e:
            logger.warning(f"Could not get targets for {entity_name}.{attribute_name}: {e}")
            return None

        if response.status_code == 404:
            logger.debug(f"{entity_name}.{attribute_name} is not a lookup attribute")
            self._lookups[(entity_name, attribute_name)] = None
            return None
        if not response.is_success:
            logger.warning(
                f"Could not get targets for {entity_name}.{attribute_name}:\n"
                f"{describe(response, path).render()}"
            )
            return None

        try:
            attribute = LookupAttribute.from_api(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Malformed lookup metadata for {entity_name}.{attribute_name}: {e}")
            return None

        if not attribute.targets:
            logger.warning(f"No targets for {entity_name}.{attribute_name} - might be polymorphic")
        self._lookups[(entity_name, attribute_name)] = attribute
        return attribute

    async def get_lookup_attributes(self, entity_name: str) -> list[LookupAttribute] | None:
        """Get every readable lookup attribute of an entity in one request.

        Returns:
            The attributes, or None when the listing could not be fetched
        """
        if entity_name in self._lookup_lists:
            return list(self._lookup_lists[entity_name])
        return await self._coalesce(
            ("lookups", entity_name), lambda: self._fetch_lookup_list(entity_name)
        )

    async def _fetch_lookup_list(self, entity_name: str) -> list[LookupAttribute] | None:
        path = lookup_attributes_path(entity_name)
        params = {
            "$select": "LogicalName,DisplayName,AttributeType,Targets",
            "$filter": "IsValidForRead eq true",
        }
        try:
            response = await self._get(path, params)
        except httpx.HTTPError as e:
            logger.warning(f"Could not list lookup attributes for {entity_name}: {e}")
            return None

        if not response.is_success:
            logger.warning(
                f"Could not list lookup attributes for {entity_name}:\n"
                f"{describe(response, path).render()}"
            )
            return None

        try:
            values = response.json().get("value") or []
            attributes = [LookupAttribute.from_api(item) for item in values]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Malformed lookup attribute listing for {entity_name}: {e}")
            return None

        self._lookup_lists[entity_name] = attributes
        for attribute in attributes:
            self._lookups[(entity_name, attribute.logical_name)] = attribute
        logger.info(f"Fetched {len(attributes)} lookup attributes for {entity_name}")
        return list(attributes)

    async def get_many(self, logical_names: Iterable[str]) -> dict[str, EntityMetadata]:
        """Fetch several entities concurrently, skipping failures.

        Returns:
            Mapping of logical name to metadata for every entity that succeeded
        """
        names = list(dict.fromkeys(logical_names))
        results = await asyncio.gather(
            *(self.get_entity_metadata(name) for name in names), return_exceptions=True
        )
        found: dict[str, EntityMetadata] = {}
        for name, result in zip(names, results, strict=True):
            if isinstance(result, MetadataFetchError):
                logger.warning(result.message)
            elif isinstance(result, BaseException):
                raise result
            else:
                found[name] = result
        return found

    def cached_entities(self) -> dict[str, EntityMetadata]:
        """Return a copy of every cached entity descriptor."""
        return dict(self._entities)

    def clear(self) -> None:
        """Forget every cached answer (in-flight fetches are unaffected)."""
        self._entities.clear()
        self._lookups.clear()
        self._lookup_lists.clear()

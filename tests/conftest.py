"""Shared test fixtures for LookupScope."""

import asyncio
import re
from typing import Any

import httpx
import pytest

from lookupscope.core.client import WebApiClient
from lookupscope.core.config import ClientConfig
from lookupscope.core.types import EntityMetadata
from lookupscope.metadata.cache import MetadataCache

API_PREFIX = "/api/data/v9.2/"
LOOKUP_CAST = "Microsoft.Dynamics.CRM.LookupAttributeMetadata"

ENTITY_PATH = re.compile(r"^EntityDefinitions\(LogicalName='(?P<entity>[^']+)'\)$")
LOOKUP_LIST_PATH = re.compile(
    rf"^EntityDefinitions\(LogicalName='(?P<entity>[^']+)'\)/Attributes/{re.escape(LOOKUP_CAST)}$"
)
LOOKUP_PATH = re.compile(
    r"^EntityDefinitions\(LogicalName='(?P<entity>[^']+)'\)"
    rf"/Attributes\(LogicalName='(?P<attribute>[^']+)'\)/{re.escape(LOOKUP_CAST)}$"
)


def entity_body(
    logical_name: str,
    primary_id: str,
    primary_name: str,
    collection: str,
    display_name: str | None = None,
) -> dict[str, Any]:
    """Build an EntityDefinitions response body."""
    return {
        "LogicalName": logical_name,
        "PrimaryIdAttribute": primary_id,
        "PrimaryNameAttribute": primary_name,
        "LogicalCollectionName": collection,
        "DisplayName": {"UserLocalizedLabel": {"Label": display_name or logical_name}},
    }


def lookup_body(logical_name: str, targets: list[str], label: str | None = None) -> dict[str, Any]:
    """Build a LookupAttributeMetadata response body."""
    return {
        "LogicalName": logical_name,
        "Targets": targets,
        "DisplayName": {"UserLocalizedLabel": {"Label": label or logical_name}},
    }


def odata_error(status_code: int, message: str, code: str = "0x80060888") -> httpx.Response:
    """Build an OData error response."""
    return httpx.Response(status_code, json={"error": {"code": code, "message": message}})


class FakeWebApi:
    """In-memory Web API answering metadata and record queries.

    Attributes:
        entities: EntityDefinitions bodies by logical name
        lookups: Lookup attribute bodies by entity logical name
        records: Record lists by collection name
        requests: Relative paths of every request received
    """

    lookup = staticmethod(lookup_body)

    def __init__(self) -> None:
        self.entities: dict[str, dict[str, Any]] = {}
        self.lookups: dict[str, list[dict[str, Any]]] = {}
        self.records: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[str] = []
        self.fail_lookup_lists = False
        self.delay = 0.0

    def add_entity(
        self,
        logical_name: str,
        primary_id: str,
        primary_name: str,
        collection: str,
        lookups: list[dict[str, Any]] | None = None,
    ) -> None:
        self.entities[logical_name] = entity_body(
            logical_name, primary_id, primary_name, collection
        )
        self.lookups[logical_name] = lookups or []

    def count(self, pattern: str) -> int:
        """Count requests whose path contains ``pattern``."""
        return sum(1 for path in self.requests if pattern in path)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.delay:
            await asyncio.sleep(self.delay)
        path = request.url.path.removeprefix(API_PREFIX)
        self.requests.append(path)

        if match := ENTITY_PATH.match(path):
            body = self.entities.get(match["entity"])
            if body is None:
                return odata_error(
                    404, f"Could not find entity with name '{match['entity']}'."
                )
            return httpx.Response(200, json=body)

        if match := LOOKUP_LIST_PATH.match(path):
            if self.fail_lookup_lists:
                return odata_error(500, "Internal error")
            if match["entity"] not in self.entities:
                return odata_error(404, "Entity not found")
            return httpx.Response(200, json={"value": self.lookups[match["entity"]]})

        if match := LOOKUP_PATH.match(path):
            for body in self.lookups.get(match["entity"], []):
                if body["LogicalName"] == match["attribute"]:
                    return httpx.Response(200, json=body)
            return odata_error(404, "Attribute is not a lookup")

        if path in self.records:
            return httpx.Response(200, json={"value": self.records[path]})
        return odata_error(404, f"Resource not found for the segment '{path}'.")


@pytest.fixture
def fake_api() -> FakeWebApi:
    """Fake Web API seeded with the initiative and gantt task entities."""
    api = FakeWebApi()
    api.add_entity(
        "pum_initiative",
        "pum_initiativeid",
        "pum_name",
        "pum_initiatives",
        lookups=[lookup_body("pum_portfolio", ["pum_portfolio"], "Portfolio")],
    )
    api.add_entity(
        "pum_gantttask",
        "pum_gantttaskid",
        "pum_name",
        "pum_gantttasks",
        lookups=[lookup_body("pum_initiative", ["pum_initiative"], "Initiative")],
    )
    api.add_entity("pum_portfolio", "pum_portfolioid", "pum_name", "pum_portfolios")
    return api


@pytest.fixture
def client_config() -> ClientConfig:
    """Client config for tests (no request spacing)."""
    return ClientConfig(base_url="http://testserver", min_delay=0.0)


@pytest.fixture
def web_client(fake_api: FakeWebApi, client_config: ClientConfig) -> WebApiClient:
    """Web API client wired to the fake API."""
    return WebApiClient(client_config, transport=httpx.MockTransport(fake_api.handler))


@pytest.fixture
def cache(web_client: WebApiClient) -> MetadataCache:
    """Metadata cache over the fake API."""
    return MetadataCache(web_client)


@pytest.fixture
def initiative_metadata() -> EntityMetadata:
    """Metadata of the pum_initiative entity."""
    return EntityMetadata(
        logical_name="pum_initiative",
        primary_id_attribute="pum_initiativeid",
        primary_name_attribute="pum_name",
        collection_name="pum_initiatives",
        display_name="Initiative",
    )


@pytest.fixture
def task_metadata() -> EntityMetadata:
    """Metadata of the pum_gantttask entity."""
    return EntityMetadata(
        logical_name="pum_gantttask",
        primary_id_attribute="pum_gantttaskid",
        primary_name_attribute="pum_name",
        collection_name="pum_gantttasks",
        display_name="Gantt Task",
    )

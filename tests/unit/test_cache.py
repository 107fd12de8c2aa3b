"""Tests for the metadata cache."""

import asyncio

import httpx
import pytest

from conftest import FakeWebApi
from lookupscope.core.client import WebApiClient
from lookupscope.core.config import ClientConfig
from lookupscope.exceptions import MetadataFetchError
from lookupscope.metadata.cache import MetadataCache


class TestEntityMetadata:
    """Tests for entity metadata fetching."""

    @pytest.mark.asyncio
    async def test_fetch(self, cache: MetadataCache) -> None:
        """Test fetching an entity's schema descriptor."""
        metadata = await cache.get_entity_metadata("pum_initiative")
        assert metadata.primary_id_attribute == "pum_initiativeid"
        assert metadata.primary_name_attribute == "pum_name"
        assert metadata.collection_name == "pum_initiatives"

    @pytest.mark.asyncio
    async def test_idempotent(self, cache: MetadataCache, fake_api: FakeWebApi) -> None:
        """Repeated calls return the same answer with one request."""
        first = await cache.get_entity_metadata("pum_initiative")
        second = await cache.get_entity_metadata("pum_initiative")
        assert first == second
        assert cache.fetch_count == 1
        assert fake_api.count("EntityDefinitions(LogicalName='pum_initiative')") == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(
        self, cache: MetadataCache, fake_api: FakeWebApi
    ) -> None:
        """Concurrent calls for one uncached entity issue a single request."""
        fake_api.delay = 0.01
        results = await asyncio.gather(
            *(cache.get_entity_metadata("pum_gantttask") for _ in range(5))
        )
        assert all(r == results[0] for r in results)
        assert cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_failures_shared(
        self, cache: MetadataCache, fake_api: FakeWebApi
    ) -> None:
        """Every concurrent caller sees the same failure from one request."""
        fake_api.delay = 0.01
        results = await asyncio.gather(
            *(cache.get_entity_metadata("missing") for _ in range(3)),
            return_exceptions=True,
        )
        assert all(isinstance(r, MetadataFetchError) for r in results)
        assert cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_timed_out_caller_does_not_cancel_others(
        self, cache: MetadataCache, fake_api: FakeWebApi
    ) -> None:
        """A caller's own timeout leaves the shared fetch running for the rest."""
        fake_api.delay = 0.2

        async def impatient() -> None:
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(cache.get_entity_metadata("pum_initiative"), 0.05)

        _, metadata = await asyncio.gather(
            impatient(), cache.get_entity_metadata("pum_initiative")
        )
        assert metadata.primary_id_attribute == "pum_initiativeid"
        assert cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_still_populates_cache(
        self, cache: MetadataCache, fake_api: FakeWebApi
    ) -> None:
        """The fetch completes and is cached even if its only caller gives up."""
        fake_api.delay = 0.05
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(cache.get_entity_metadata("pum_gantttask"), 0.01)
        await asyncio.sleep(0.1)
        assert "pum_gantttask" in cache.cached_entities()
        await cache.get_entity_metadata("pum_gantttask")
        assert cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_not_found(self, cache: MetadataCache) -> None:
        """A 404 raises MetadataFetchError with diagnostics."""
        with pytest.raises(MetadataFetchError) as exc_info:
            await cache.get_entity_metadata("missing")
        error = exc_info.value
        assert error.entity_name == "missing"
        assert error.report is not None
        assert error.report.status_code == 404
        assert error.context["diagnostics"]["status_code"] == 404

    @pytest.mark.asyncio
    async def test_failure_not_cached(self, cache: MetadataCache, fake_api: FakeWebApi) -> None:
        """A failed fetch is retried on the next call."""
        with pytest.raises(MetadataFetchError):
            await cache.get_entity_metadata("late")
        fake_api.add_entity("late", "lateid", "late_name", "lates")
        metadata = await cache.get_entity_metadata("late")
        assert metadata.primary_id_attribute == "lateid"
        assert cache.fetch_count == 2

    @pytest.mark.asyncio
    async def test_missing_fields(self, cache: MetadataCache, fake_api: FakeWebApi) -> None:
        """A body without a primary name attribute is malformed."""
        fake_api.entities["broken"] = {
            "LogicalName": "broken",
            "PrimaryIdAttribute": "brokenid",
            "LogicalCollectionName": "brokens",
        }
        with pytest.raises(MetadataFetchError, match="PrimaryNameAttribute"):
            await cache.get_entity_metadata("broken")
        assert "broken" not in cache.cached_entities()

    @pytest.mark.asyncio
    async def test_non_json_body(self, client_config: ClientConfig) -> None:
        """A success response that is not JSON is malformed."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        cache = MetadataCache(WebApiClient(client_config, transport=transport))
        with pytest.raises(MetadataFetchError, match="not valid JSON"):
            await cache.get_entity_metadata("account")

    @pytest.mark.asyncio
    async def test_transport_error(self, client_config: ClientConfig) -> None:
        """Connection failures surface as MetadataFetchError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        cache = MetadataCache(WebApiClient(client_config, transport=httpx.MockTransport(handler)))
        with pytest.raises(MetadataFetchError, match="request failed"):
            await cache.get_entity_metadata("account")

    @pytest.mark.asyncio
    async def test_get_many_skips_failures(self, cache: MetadataCache) -> None:
        """get_many returns every entity that could be fetched."""
        found = await cache.get_many(["pum_initiative", "missing", "pum_gantttask"])
        assert set(found) == {"pum_initiative", "pum_gantttask"}

    @pytest.mark.asyncio
    async def test_clear(self, cache: MetadataCache) -> None:
        """clear() forgets cached answers."""
        await cache.get_entity_metadata("pum_initiative")
        cache.clear()
        assert cache.cached_entities() == {}
        await cache.get_entity_metadata("pum_initiative")
        assert cache.fetch_count == 2


class TestLookupAttributes:
    """Tests for lookup attribute fetching."""

    @pytest.mark.asyncio
    async def test_single_lookup(self, cache: MetadataCache) -> None:
        """A lookup attribute carries its declared targets."""
        attribute = await cache.get_lookup_attribute("pum_initiative", "pum_portfolio")
        assert attribute is not None
        assert attribute.targets == ["pum_portfolio"]
        assert attribute.data_field_name == "_pum_portfolio_value"

    @pytest.mark.asyncio
    async def test_not_a_lookup_is_none(self, cache: MetadataCache) -> None:
        """An attribute without lookup metadata is None and cached as such."""
        assert await cache.get_lookup_attribute("pum_initiative", "pum_name") is None
        assert await cache.get_lookup_attribute("pum_initiative", "pum_name") is None
        assert cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_zero_targets_distinct_from_unknown(
        self, cache: MetadataCache, fake_api: FakeWebApi
    ) -> None:
        """A lookup with no declared targets is returned with an empty list."""
        fake_api.lookups["pum_initiative"].append(FakeWebApi.lookup("regardingobjectid", []))
        attribute = await cache.get_lookup_attribute("pum_initiative", "regardingobjectid")
        assert attribute is not None
        assert attribute.targets == []

    @pytest.mark.asyncio
    async def test_server_error_is_none(self, client_config: ClientConfig) -> None:
        """Lookup fetch failures degrade to None."""
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="oops"))
        cache = MetadataCache(WebApiClient(client_config, transport=transport))
        assert await cache.get_lookup_attribute("contact", "parentcustomerid") is None

    @pytest.mark.asyncio
    async def test_list_seeds_single_lookups(self, cache: MetadataCache) -> None:
        """The batch listing answers later single-attribute questions."""
        listed = await cache.get_lookup_attributes("pum_gantttask")
        assert listed is not None
        assert [a.logical_name for a in listed] == ["pum_initiative"]
        attribute = await cache.get_lookup_attribute("pum_gantttask", "pum_initiative")
        missing = await cache.get_lookup_attribute("pum_gantttask", "pum_other")
        assert attribute is not None
        assert missing is None
        assert cache.fetch_count == 1

    @pytest.mark.asyncio
    async def test_list_failure_is_none(self, cache: MetadataCache, fake_api: FakeWebApi) -> None:
        """A failed listing returns None rather than an empty list."""
        fake_api.fail_lookup_lists = True
        assert await cache.get_lookup_attributes("pum_initiative") is None

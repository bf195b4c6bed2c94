# tests/test_transfer_service.py
"""
Tests for the TransferService.

Covers:
- Source filtering and transfer summaries
- Validation-only runs
- Connectivity failures
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from tests.conftest import BASE_URL, FakeN8n, make_item
from workflow_transfer.models.item_models import ItemFilter
from workflow_transfer.models.result_models import ItemStatus
from workflow_transfer.models.run_models import RetryPolicy, RunOptions
from workflow_transfer.services.mutations import RenameMutation, TagMutation
from workflow_transfer.services.remote_item_service import RemoteItemService
from workflow_transfer.services.transfer_service import ConnectivityError, TransferService

FAST = RunOptions(retry_policy=RetryPolicy(max_attempts=1, base_delay=0.0, max_delay=0.0))


def _tagged(name, item_id, *tags):
    return make_item(name, item_id, tags=[{"id": f"t-{t}", "name": t} for t in tags])


@pytest.fixture
def instances():
    source = FakeN8n([
        _tagged("Billing", "s1", "prod"),
        _tagged("Reporting", "s2", "prod", "legacy"),
        _tagged("Sandbox", "s3", "dev"),
        _tagged("Existing", "s4", "prod"),
    ])
    target = FakeN8n([_tagged("Existing", "t1", "prod")])
    return source, target


class TestItemFilter:

    def test_empty_filter_keeps_everything(self):
        items = [make_item("A"), "junk"]
        assert ItemFilter().apply(items) == items

    def test_include_and_exclude(self):
        items = [_tagged("A", "1", "prod"), _tagged("B", "2", "prod", "legacy"), _tagged("C", "3", "dev")]
        selected = ItemFilter(tags=["prod"], exclude_tags=["legacy"]).apply(items)
        assert [i["name"] for i in selected] == ["A"]

    def test_ids_and_names_combine(self):
        items = [_tagged("A", "1"), _tagged("B", "2")]
        assert ItemFilter(ids=["1", "2"], names=["B"]).apply(items) == [items[1]]


class TestTransfer:

    @pytest.mark.asyncio
    async def test_transfer_summary(self, instances):
        source, target = instances
        service = TransferService(source.service(), target.service())
        summary = await service.transfer(FAST, ItemFilter(tags=["prod"]))

        assert summary["state"] == "completed"
        assert summary["stats"]["total"] == 3
        assert summary["stats"]["succeeded"] == 2
        assert summary["stats"]["skipped"] == 1
        assert summary["deduplicator"] == "exact"
        assert summary["validators"] == ["schema", "integrity"]
        assert summary["mutation"] == "recreate"
        assert summary["filter"]["tags"] == ["prod"]
        assert summary["target"] == BASE_URL
        statuses = {o["name"]: o["status"] for o in summary["outcomes"]}
        assert statuses["Existing"] == ItemStatus.SKIPPED_DUPLICATE.value
        assert len(target.requests_for("POST", "/api/v1/workflows")) == 2
        await service.close()

    @pytest.mark.asyncio
    async def test_dry_run_leaves_target_untouched(self, instances):
        source, target = instances
        service = TransferService(source.service(), target.service())
        summary = await service.transfer(RunOptions(dry_run=True))

        assert summary["dry_run"] is True
        assert summary["stats"]["dry_run"] == 3
        assert target.requests_for("POST", "/api/v1/workflows") == []

    @pytest.mark.asyncio
    async def test_unreachable_target_raises(self, instances):
        source, _ = instances
        target = RemoteItemService(
            "http://down.test", "key", max_requests_per_second=0,
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"message": "bad key"})),
        )
        service = TransferService(source.service(), target)
        with pytest.raises(ConnectivityError) as exc_info:
            await service.transfer(FAST)
        assert exc_info.value.instance == "target"
        assert exc_info.value.details["success"] is False
        assert source.requests_for("POST", "/api/v1/workflows") == []


class TestInPlaceMutations:

    @pytest.mark.asyncio
    async def test_tag_items_on_one_instance(self):
        fake = FakeN8n([_tagged("Billing", "s1", "prod"), _tagged("Reporting", "s2", "prod")])
        service = fake.service()
        summary = await TransferService(service, service, mutation=TagMutation(["t9"])).transfer(FAST)

        assert [o["status"] for o in summary["outcomes"]] == ["transferred", "transferred"]
        assert len(fake.requests_for("PUT", "/api/v1/workflows/s1/tags")) == 1
        assert len(fake.requests_for("PUT", "/api/v1/workflows/s2/tags")) == 1
        assert fake.workflows["s1"]["tags"] == [{"id": "t-prod"}, {"id": "t9"}]

    @pytest.mark.asyncio
    async def test_rename_item_on_one_instance(self):
        fake = FakeN8n([_tagged("Billing", "s1", "prod"), _tagged("Reporting", "s2", "prod")])
        service = fake.service()
        transfer = TransferService(service, service, mutation=RenameMutation({"s1": "Billing v2"}))
        summary = await transfer.transfer(FAST, ItemFilter(ids=["s1"]))

        outcome = summary["outcomes"][0]
        assert outcome["status"] == "transferred"
        assert outcome["target_id"] == "s1"
        assert fake.workflows["s1"]["name"] == "Billing v2"

    @pytest.mark.asyncio
    async def test_other_item_with_same_identity_is_still_a_duplicate(self):
        fake = FakeN8n([_tagged("Billing", "s1", "prod"), _tagged("Billing", "s2", "prod")])
        service = fake.service()
        summary = await TransferService(service, service, mutation=TagMutation(["t9"])).transfer(FAST)

        assert [o["status"] for o in summary["outcomes"]] == ["skipped-duplicate", "skipped-duplicate"]

    @pytest.mark.asyncio
    async def test_in_place_items_come_from_target(self, instances):
        source, target = instances
        transfer = TransferService(
            source.service(name="source"), target.service(name="target"), mutation=TagMutation(["t9"])
        )
        summary = await transfer.transfer(FAST)

        assert summary["items_from"] == "target"
        assert [o["item_id"] for o in summary["outcomes"]] == ["t1"]
        assert summary["outcomes"][0]["status"] == "transferred"
        assert len(target.requests_for("PUT", "/api/v1/workflows/t1/tags")) == 1
        assert [r for r in source.requests if r.method == "PUT"] == []


class TestValidate:

    @pytest.mark.asyncio
    async def test_reports_invalid_items(self):
        source = FakeN8n([make_item("Good", "g1"), make_item("Empty", "e1", nodes=[])])
        service = TransferService(source.service(), source.service())
        report = await service.validate()

        assert report["total"] == 2
        assert report["valid"] == 1
        assert report["invalid"] == 1
        issue = next(i for i in report["issues"] if i["name"] == "Empty")
        assert issue["severity"] == "error"
        assert "Item has no nodes" in issue["errors"]

    @pytest.mark.asyncio
    async def test_validate_skips_target_check(self):
        source = FakeN8n([make_item("Good", "g1")])
        target = RemoteItemService(
            "http://down.test", "key", max_requests_per_second=0,
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        report = await TransferService(source.service(), target).validate()
        assert report["valid"] == 1

    @pytest.mark.asyncio
    async def test_validate_with_mocked_source(self):
        source = AsyncMock(spec=RemoteItemService)
        source.base_url = BASE_URL
        source.name = "source"
        source.test_connection.return_value = {"success": True, "message": "ok", "url": BASE_URL, "latency_ms": 1.0}
        source.list_items.return_value = [make_item("Good", "g1"), make_item("Untagged", "g2", tags=[])]

        report = await TransferService(source, source).validate(ItemFilter(names=["Untagged"]))

        source.list_items.assert_awaited_once()
        assert report["total"] == 1
        assert report["issues"][0]["severity"] == "warning"
        assert "Item has no tags" in report["issues"][0]["warnings"]

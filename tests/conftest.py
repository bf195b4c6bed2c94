# tests/conftest.py
import json
import os
from typing import Any, Dict, List, Optional

import httpx
import pytest

# Keep tests independent of any developer .env and never rate limit
os.environ.setdefault("MAX_REQUESTS_PER_SECOND", "0")
os.environ.setdefault("REQUEST_TIMEOUT", "5")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from workflow_transfer.services.remote_item_service import RemoteItemService  # noqa: E402

BASE_URL = "http://n8n.test"


def make_item(name: str = "Invoice Sync", item_id: Optional[str] = "wf-1", **overrides) -> Dict[str, Any]:
    """Create a minimal valid workflow item with two connected nodes."""
    item = {
        "id": item_id,
        "name": name,
        "active": False,
        "tags": [{"id": "t1", "name": "finance"}],
        "settings": {"executionOrder": "v1"},
        "nodes": [
            {"id": "n1", "name": "Trigger", "type": "n8n-nodes-base.manualTrigger"},
            {"id": "n2", "name": "HTTP", "type": "n8n-nodes-base.httpRequest"},
        ],
        "connections": {
            "Trigger": {"main": [[{"node": "HTTP", "type": "main", "index": 0}]]},
        },
    }
    if item_id is None:
        del item["id"]
    item.update(overrides)
    return item


class FakeN8n:
    """
    In-memory n8n API behind an ``httpx.MockTransport``.

    ``fail(name, *statuses)`` scripts responses for POST/PUT calls on the
    item named ``name``: statuses are consumed in order and the last one
    repeats; ``200`` means "handle normally".
    """

    def __init__(self, workflows: Optional[List[Dict[str, Any]]] = None, page_size: Optional[int] = None):
        self.workflows: Dict[str, Dict[str, Any]] = {w["id"]: dict(w) for w in workflows or []}
        self.tags: List[Dict[str, Any]] = []
        self.requests: List[httpx.Request] = []
        self.failures: Dict[str, List[int]] = {}
        self.failure_headers: Dict[str, Dict[str, str]] = {}
        self.page_size = page_size
        self._next_id = 1000

    def fail(self, name: str, *statuses: int, headers: Optional[Dict[str, str]] = None) -> None:
        self.failures[name] = list(statuses)
        if headers:
            self.failure_headers[name] = headers

    def requests_for(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def _scripted(self, name: Optional[str]) -> Optional[httpx.Response]:
        statuses = self.failures.get(name)
        if not statuses:
            return None
        status = statuses.pop(0) if len(statuses) > 1 else statuses[0]
        if status == 200:
            return None
        return httpx.Response(
            status,
            json={"message": f"scripted {status}"},
            headers=self.failure_headers.get(name, {}),
        )

    def _new_id(self) -> str:
        self._next_id += 1
        return f"new-{self._next_id}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        body = json.loads(request.content) if request.content else None

        if path == "/api/v1/workflows" and request.method == "GET":
            items = list(self.workflows.values())
            if not self.page_size:
                return httpx.Response(200, json={"data": items, "nextCursor": None})
            offset = int(request.url.params.get("cursor", 0))
            page = items[offset:offset + self.page_size]
            next_offset = offset + self.page_size
            cursor = str(next_offset) if next_offset < len(items) else None
            return httpx.Response(200, json={"data": page, "nextCursor": cursor})

        if path == "/api/v1/workflows" and request.method == "POST":
            scripted = self._scripted(body.get("name"))
            if scripted is not None:
                return scripted
            created = {**body, "id": self._new_id()}
            self.workflows[created["id"]] = created
            return httpx.Response(200, json=created)

        if path == "/api/v1/tags":
            if request.method == "GET":
                return httpx.Response(200, json={"data": self.tags})
            if any(t["name"] == body["name"] for t in self.tags):
                return httpx.Response(409, json={"message": "Tag already exists"})
            tag = {"id": f"tag-{len(self.tags) + 1}", "name": body["name"]}
            self.tags.append(tag)
            return httpx.Response(201, json=tag)

        parts = path.strip("/").split("/")
        if len(parts) >= 4 and parts[:3] == ["api", "v1", "workflows"]:
            workflow = self.workflows.get(parts[3])
            if workflow is None:
                return httpx.Response(404, json={"message": "Not Found"})
            if request.method == "GET":
                return httpx.Response(200, json=workflow)
            scripted = self._scripted(workflow.get("name"))
            if scripted is not None:
                return scripted
            if len(parts) == 5 and parts[4] == "tags":
                workflow["tags"] = [{"id": tag_id} for tag_id in body["tagIds"]]
                return httpx.Response(200, json=workflow["tags"])
            workflow.update(body)
            return httpx.Response(200, json=workflow)

        return httpx.Response(400, json={"message": f"Unhandled {request.method} {path}"})

    def service(self, **kwargs) -> RemoteItemService:
        kwargs.setdefault("max_requests_per_second", 0)
        return RemoteItemService(BASE_URL, "test-api-key", transport=httpx.MockTransport(self.handler), **kwargs)


@pytest.fixture
def fake_n8n():
    return FakeN8n()

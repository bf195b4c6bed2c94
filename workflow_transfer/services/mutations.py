# workflow_transfer/services/mutations.py
"""
Mutation strategies applied to each surviving item.

Each strategy turns one item into one remote call and returns the
service's classified ``MutationResult``. Strategies never modify the item
they are given.

Key Classes:
    - RecreateMutation: create the item on the destination instance
    - RenameMutation: update the item's name in place
    - TagMutation: attach tag ids to the item
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, Optional, Union

from ..core.errors import ErrorCategory
from ..models.result_models import MutationResult
from .remote_item_service import RemoteItemService

# Fields owned by the server; the create and update endpoints reject them
SERVER_OWNED_FIELDS = frozenset({
    "id", "createdAt", "updatedAt", "versionId", "active", "tags",
    "shared", "isArchived", "triggerCount", "homeProject", "meta",
})


def build_payload(item: Mapping) -> Dict[str, Any]:
    """Copy of ``item`` without server-owned fields."""
    return {k: v for k, v in item.items() if k not in SERVER_OWNED_FIELDS}


class ItemMutation(ABC):
    name: str = "base"
    description: str = ""
    # In-place mutations edit items where they already live
    in_place: bool = False

    @abstractmethod
    async def apply(self, service: RemoteItemService, item: Mapping) -> MutationResult:
        ...

    def describe(self, item: Mapping) -> str:
        """Human-readable preview used for dry-run outcomes."""
        return f"Would {self.name} '{item.get('name')}'"

    def get_info(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description}


class RecreateMutation(ItemMutation):
    name = "recreate"
    description = "Create the item on the destination instance"

    async def apply(self, service, item):
        return await service.mutate_item(None, build_payload(item))

    def describe(self, item):
        return f"Would create '{item.get('name')}' on the destination instance"


class RenameMutation(ItemMutation):
    """
    Rename items by id.

    Args:
        names: Mapping of item id to new name, or a callable returning the
            new name (or None to leave the item alone)
    """

    name = "rename"
    description = "Update item names from an id -> name mapping"
    in_place = True

    def __init__(self, names: Union[Mapping, Callable[[Mapping], Optional[str]]]):
        self._names = names

    def new_name(self, item: Mapping) -> Optional[str]:
        if callable(self._names):
            return self._names(item)
        return self._names.get(str(item.get("id")))

    async def apply(self, service, item):
        item_id = item.get("id")
        new_name = self.new_name(item)
        if not item_id or not new_name:
            return MutationResult(
                category=ErrorCategory.INVALID_ARGUMENT,
                message=f"No id or no new name for '{item.get('name')}'",
            )
        payload = build_payload(item)
        payload["name"] = new_name
        return await service.mutate_item(str(item_id), payload)

    def describe(self, item):
        return f"Would rename '{item.get('name')}' to '{self.new_name(item)}'"


class TagMutation(ItemMutation):
    name = "tag"
    description = "Attach tag ids to existing items"
    in_place = True

    def __init__(self, tag_ids: Iterable[str]):
        self.tag_ids = [str(t) for t in tag_ids]
        if not self.tag_ids:
            raise ValueError("TagMutation requires at least one tag id")

    async def apply(self, service, item):
        item_id = item.get("id")
        if not item_id:
            return MutationResult(
                category=ErrorCategory.INVALID_ARGUMENT,
                message=f"Item '{item.get('name')}' has no id to tag",
            )
        existing = [t.get("id") for t in item.get("tags") or [] if isinstance(t, Mapping) and t.get("id")]
        tag_ids = existing + [t for t in self.tag_ids if t not in existing]
        return await service.apply_tags(str(item_id), tag_ids)

    def describe(self, item):
        return f"Would tag '{item.get('name')}' with {', '.join(self.tag_ids)}"

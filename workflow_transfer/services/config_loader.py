# workflow_transfer/services/config_loader.py
"""
Resolves the effective transfer configuration.

Priority: values set in the YAML config file, then environment settings
(``.env`` included), then model defaults.

Usage:
    from workflow_transfer.services.config_loader import load_transfer_config
    config = load_transfer_config("config.yml")
    source = build_service(config.source, "source")
"""

import logging
from typing import List, Optional

from ..config import settings
from ..core.cache_store import CacheStore
from ..models.config_models import InstanceConfig, RunConfig, TransferConfig
from .remote_item_service import RemoteItemService, mask_url

logger = logging.getLogger("workflow_transfer.config_loader")


def load_transfer_config(path: Optional[str] = None) -> TransferConfig:
    """
    Load the YAML config (if any) and fill unset values from settings.

    Raises:
        FileNotFoundError: If an explicit path does not exist
        ValueError: If the file is not valid configuration
    """
    path = path or settings.config_file
    config = TransferConfig.from_yaml(path) if path else TransferConfig()
    if path:
        logger.info(f"Loaded transfer config from {path}")

    source = _fill_instance(config.source, settings.source_n8n_url, settings.source_n8n_api_key)
    target = _fill_instance(config.target, settings.target_n8n_url, settings.target_n8n_api_key)
    run = _fill_run(config.run)
    return TransferConfig(source=source, target=target, run=run)


def _fill_instance(instance: InstanceConfig, url: Optional[str], api_key: Optional[str]) -> InstanceConfig:
    defaults = {
        "url": url,
        "api_key": api_key,
        "timeout": settings.request_timeout,
        "max_requests_per_second": settings.max_requests_per_second,
        "cache_ttl_seconds": settings.cache_ttl_seconds,
    }
    update = {k: v for k, v in defaults.items() if getattr(instance, k) is None}
    return instance.model_copy(update=update)


def _fill_run(run: RunConfig) -> RunConfig:
    explicit = run.model_fields_set
    data = run.model_dump()
    if "concurrency_limit" not in explicit:
        data["concurrency_limit"] = settings.concurrency_limit
    if "rollback_threshold" not in explicit:
        data["rollback_threshold"] = settings.rollback_threshold
    if "retry_policy" not in explicit:
        data["retry_policy"] = {
            "max_attempts": settings.retry_max_attempts,
            "base_delay": settings.retry_base_delay,
            "max_delay": settings.retry_max_delay,
        }
    if run.fuzzy_threshold is None:
        data["fuzzy_threshold"] = settings.fuzzy_threshold
    return RunConfig(**data)


def validate_transfer_config(config: TransferConfig, require_target: bool = True) -> List[str]:
    """
    Check that the instances needed for a run are configured.

    Returns:
        Warnings that do not block a run

    Raises:
        ValueError: Listing every missing URL or API key
    """
    required = [("source", config.source)]
    if require_target:
        required.append(("target", config.target))

    missing = []
    for name, instance in required:
        if not instance.url:
            missing.append(f"{name} URL ({name.upper()}_N8N_URL)")
        if not instance.api_key:
            missing.append(f"{name} API key ({name.upper()}_N8N_API_KEY)")
    if missing:
        raise ValueError("Missing configuration: " + ", ".join(missing))

    warnings = []
    if require_target and config.source.url.rstrip("/") == config.target.url.rstrip("/"):
        warnings.append(f"Source and target point to the same instance ({mask_url(config.source.url)})")
    return warnings


def build_service(instance: InstanceConfig, name: str, **kwargs) -> RemoteItemService:
    """Create a RemoteItemService for one configured instance."""
    return RemoteItemService(
        instance.url,
        instance.api_key,
        name=name,
        timeout=instance.timeout,
        max_requests_per_second=instance.max_requests_per_second,
        cache=CacheStore(ttl_seconds=instance.cache_ttl_seconds)
        if instance.cache_ttl_seconds is not None else None,
        **kwargs,
    )

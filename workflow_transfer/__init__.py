# workflow_transfer/__init__.py
"""
Workflow Transfer - batch mutation engine for n8n workflows.

Deduplicates and validates workflow items, then applies a mutation
(re-create, rename, tag) against a remote n8n instance under bounded
concurrency with classified retries.
"""

__version__ = "1.0.0"
__title__ = "Workflow Transfer"
__description__ = "Deduplicate, validate and transfer n8n workflows in resilient batches"

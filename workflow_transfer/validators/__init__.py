"""Item validators: declared schema and graph integrity."""

from .base import BaseValidator, VALID_PHASES
from .integrity import IntegrityValidator
from .schema import SchemaValidator

__all__ = ["BaseValidator", "IntegrityValidator", "SchemaValidator", "VALID_PHASES"]

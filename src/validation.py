"""
Manifest Validation - JSON schema checks for manifests loaded from files.

Checks the object envelope every managed resource needs before the engine
can key it, and the hub custom resource the policy layer is built from.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

logger = logging.getLogger(__name__)

_NAME = {"type": "string", "minLength": 1, "maxLength": 253}

MANIFEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["apiVersion", "kind", "metadata"],
    "properties": {
        "apiVersion": {"type": "string", "minLength": 1},
        "kind": {"type": "string", "minLength": 1},
        "metadata": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": _NAME,
                "namespace": {"type": "string"},
                "labels": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
                "annotations": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
            },
        },
    },
}

HUB_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["metadata", "spec"],
    "properties": {
        "kind": {"const": "MultiClusterHub"},
        "metadata": {
            "type": "object",
            "required": ["name", "namespace"],
            "properties": {
                "name": _NAME,
                "namespace": _NAME,
                "uid": {"type": "string"},
            },
        },
        "spec": {
            "type": "object",
            "properties": {
                "imagePullSecret": {"type": "string"},
                "imagePullPolicy": {
                    "enum": ["Always", "IfNotPresent", "Never"],
                },
                "availabilityConfig": {"enum": ["High", "Basic"]},
                "nodeSelector": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
                "imageOverrides": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
            },
        },
    },
}


def validate_against_schema(
    document: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a document against a JSON Schema.

    Args:
        document: The document to validate
        schema: The Draft 7 JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        validator = Draft7Validator(schema)
        errors = sorted(
            validator.iter_errors(document), key=lambda e: [str(p) for p in e.path]
        )

        if not errors:
            return True, None

        error_messages = []
        for error in errors:
            path = ".".join(str(p) for p in error.absolute_path) or "(root)"
            error_messages.append(f"{path}: {error.message}")

        return False, "; ".join(error_messages)

    except ValidationError as e:
        return False, f"Validation error: {str(e)}"
    except Exception as e:
        logger.error(f"Unexpected error during validation: {e}")
        return False, f"Validation failed: {str(e)}"


def validate_manifest(manifest: Any) -> Tuple[bool, Optional[str]]:
    """Validate the envelope of a managed resource manifest."""
    if not isinstance(manifest, dict):
        return False, "(root): manifest must be a mapping"
    return validate_against_schema(manifest, MANIFEST_SCHEMA)


def validate_hub(document: Any) -> Tuple[bool, Optional[str]]:
    """Validate a MultiClusterHub custom resource."""
    if not isinstance(document, dict):
        return False, "(root): hub resource must be a mapping"
    return validate_against_schema(document, HUB_SCHEMA)

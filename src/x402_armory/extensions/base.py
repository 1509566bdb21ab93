"""
Extension framework

An extension is a JSON object ``{"info": ..., "schema": ...}`` stored under a
well-known key in a challenge's or payload's ``extensions`` map. ``info``
carries the declared metadata; ``schema`` is a JSON Schema describing it.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

BAZAAR = "bazaar"
SIGN_IN_WITH_X = "sign-in-with-x"
PAYMENT_IDENTIFIER = "payment-identifier"


@dataclass
class ExtensionValidation:
    """Outcome of an extension check"""

    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> "ExtensionValidation":
        return cls(valid=True)

    @classmethod
    def fail(cls, *errors: str) -> "ExtensionValidation":
        return cls(valid=False, errors=list(errors))


def create_extension(info: dict[str, Any], schema: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build an ``{info, schema}`` extension object"""
    return {"info": info, "schema": schema or {"type": "object"}}


def extract_extension(extensions: dict[str, Any] | None, key: str) -> dict[str, Any] | None:
    """Return the extension object stored under *key*, if it is an object"""
    if not isinstance(extensions, dict):
        return None
    extension = extensions.get(key)
    if not isinstance(extension, dict):
        return None
    return extension


def validate_extension(
    extension: Any,
    info_model: type[BaseModel] | None = None,
) -> ExtensionValidation:
    """Check the generic ``{info, schema}`` shape.

    Args:
        extension: Candidate extension object
        info_model: Optional pydantic model the ``info`` block must satisfy
    """
    if not isinstance(extension, dict):
        return ExtensionValidation.fail("Extension must be an object")
    info = extension.get("info")
    if not isinstance(info, dict):
        return ExtensionValidation.fail("Extension must have an 'info' object")
    schema = extension.get("schema")
    if schema is not None and not isinstance(schema, dict):
        return ExtensionValidation.fail("Extension 'schema' must be an object")

    if info_model is not None:
        try:
            info_model.model_validate(info)
        except PydanticValidationError as e:
            return ExtensionValidation.fail(
                *(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            )
    return ExtensionValidation.ok()


def filter_extensions(
    extensions: dict[str, Any] | None,
    supported_keys: Iterable[str],
) -> dict[str, Any]:
    """Keep only the extension keys listed in *supported_keys*"""
    if not extensions:
        return {}
    keys = set(supported_keys)
    return {k: v for k, v in extensions.items() if k in keys}

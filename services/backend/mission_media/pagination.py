"""Opaque continuation tokens for resumable table scans.

A resume key maps attribute names to tagged scalars. On the wire it is the
JSON object ``{"<name>": {"S": "<string>"} | {"N": "<number>"}}`` encoded
as URL-safe base64. This module is the only place that knows the tag
vocabulary; anything outside it is rejected when a token is decoded.
"""

import base64
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from mission_media.errors import InvalidToken

logger = logging.getLogger(__name__)


class StringAttribute(BaseModel):
    """String-typed key attribute, tagged ``S``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: str = Field(..., alias="S", strict=True)


class NumberAttribute(BaseModel):
    """Numeric key attribute, tagged ``N``.

    The number is kept in its decimal string form so no precision is lost
    between the store and the client.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: str = Field(..., alias="N", strict=True)

    @field_validator("value")
    @classmethod
    def validate_decimal(cls, v: str) -> str:
        """Only finite decimal literals are numbers."""
        if v != v.strip():
            raise ValueError("number must not contain surrounding whitespace")
        try:
            number = Decimal(v)
        except InvalidOperation:
            raise ValueError(f"not a number: {v!r}")
        if not number.is_finite():
            raise ValueError(f"number must be finite: {v!r}")
        return v


KeyAttribute = Union[StringAttribute, NumberAttribute]
ResumeKey = dict[str, KeyAttribute]

_resume_key_adapter: TypeAdapter[ResumeKey] = TypeAdapter(ResumeKey)

_URLSAFE_TO_STANDARD = bytes.maketrans(b"-_", b"+/")


def key_attribute(value: Any) -> KeyAttribute:
    """Wrap a plain Python key value in its tagged variant.

    Raises:
        TypeError: If the value is neither a string nor a number.
    """
    if isinstance(value, str):
        return StringAttribute(S=value)
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return NumberAttribute(N=str(value))
    raise TypeError(f"unsupported key attribute type: {type(value).__name__}")


def to_attribute_values(resume_key: ResumeKey) -> dict[str, dict[str, str]]:
    """Convert a resume key to the store's native attribute-value mapping."""
    return {name: attr.model_dump(by_alias=True) for name, attr in resume_key.items()}


def from_attribute_values(raw: Any) -> ResumeKey:
    """Build a resume key from a native attribute-value mapping.

    Raises:
        ValueError: If the mapping is empty or uses an unknown tag.
    """
    resume_key = _resume_key_adapter.validate_python(raw)
    if not resume_key:
        raise ValueError("resume key must contain at least one attribute")
    return resume_key


def encode_cursor(resume_key: ResumeKey) -> str:
    """Serialize a resume key into an opaque, URL-safe token."""
    if not resume_key:
        raise ValueError("cannot encode an empty resume key")
    payload = json.dumps(to_attribute_values(resume_key), separators=(",", ":"), sort_keys=True)
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(token: str) -> ResumeKey:
    """Reconstruct the resume key carried by a token.

    Both the URL-safe and the standard base64 alphabets are accepted.

    Raises:
        InvalidToken: If the token is not base64, not a JSON object, or holds
            an attribute with an unrecognized tag.
    """
    try:
        raw = base64.b64decode(token.encode("ascii").translate(_URLSAFE_TO_STANDARD), validate=True)
    except ValueError as e:
        logger.warning(f"Rejected pagination token, invalid base64: {e}")
        raise InvalidToken()

    try:
        payload = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        logger.warning(f"Rejected pagination token, invalid JSON: {e}")
        raise InvalidToken()

    try:
        return from_attribute_values(payload)
    except (PydanticValidationError, ValueError) as e:
        logger.warning(f"Rejected pagination token, invalid key structure: {e}")
        raise InvalidToken()

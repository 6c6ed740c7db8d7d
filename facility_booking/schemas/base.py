"""
Base schemas shared by request and response models.

Money is held as Decimal everywhere inside the engine and only becomes a JSON
number at the API boundary.
"""
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic_core import core_schema


class StandardizedModel(BaseModel):  # type: ignore[misc]
    """Response base: reads ORM attributes and emits enum values."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)


class StrictModel(BaseModel):  # type: ignore[misc]
    """Request base: unknown fields are rejected."""

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        validate_assignment=True,
    )


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so floats keep their printed value
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


class Money(Decimal):
    """Decimal amount accepted as int, float, string or Decimal; serialized as a float."""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        accepted = core_schema.union_schema(
            [
                core_schema.is_instance_schema(Decimal),
                core_schema.int_schema(strict=True),
                core_schema.float_schema(strict=True),
                core_schema.str_schema(),
            ]
        )
        return core_schema.no_info_after_validator_function(
            _to_decimal,
            accepted,
            serialization=core_schema.plain_serializer_function_ser_schema(
                float, return_schema=core_schema.float_schema()
            ),
        )

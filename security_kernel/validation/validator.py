"""
security_kernel.validation.validator -- one schema, checked at every layer.

Responsibility:
    Runs a pydantic input schema and reports every violation as a
    ``FieldError``, tagged with the layer that ran the check (client form,
    API handler, or just before the database write).

Architecture position:
    Kernel.  Schemas live in ``validation.schemas``; callers pick the layer.

Invariants:
    - ``validate`` never raises for bad input; it returns a result listing
      all violations.
    - ``validate_or_raise`` returns the parsed model, or raises
      InputValidationError carrying the same field errors.
    - Rejected values are never logged, only their field names.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from security_kernel.exceptions import InputValidationError
from security_kernel.logging_config import get_logger

logger = get_logger("validation.validator")

ModelT = TypeVar("ModelT", bound=BaseModel)


class ValidationLayer(str, Enum):
    CLIENT = "client"
    API = "api"
    DATABASE = "database"


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str
    code: str


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: tuple[FieldError, ...]
    layer: ValidationLayer


def _field_errors(exc: SchemaError) -> tuple[FieldError, ...]:
    return tuple(
        FieldError(
            field=".".join(str(part) for part in err["loc"]) or "__root__",
            message=err["msg"],
            code=err["type"],
        )
        for err in exc.errors()
    )


class MultiLayerValidator(Generic[ModelT]):
    def __init__(self, schema: type[ModelT], layer: ValidationLayer = ValidationLayer.API):
        self._schema = schema
        self._layer = layer

    @property
    def layer(self) -> ValidationLayer:
        return self._layer

    def _parse(self, data: Any) -> tuple[ModelT | None, tuple[FieldError, ...]]:
        try:
            return self._schema.model_validate(data), ()
        except SchemaError as exc:
            errors = _field_errors(exc)
            logger.info(
                "input_validation_failed",
                extra={
                    "schema": self._schema.__name__,
                    "layer": self._layer.value,
                    "fields": sorted({e.field for e in errors}),
                },
            )
            return None, errors

    def validate(self, data: Any) -> ValidationResult:
        _, errors = self._parse(data)
        return ValidationResult(valid=not errors, errors=errors, layer=self._layer)

    def validate_or_raise(self, data: Any) -> ModelT:
        """
        Raises:
            InputValidationError: one or more fields failed.
        """
        model, errors = self._parse(data)
        if model is None:
            raise InputValidationError(errors, self._layer.value)
        return model


def validate_request(schema: type[ModelT], data: Any) -> ModelT:
    """API-layer check."""
    return MultiLayerValidator(schema, ValidationLayer.API).validate_or_raise(data)


def validate_before_db(schema: type[ModelT], data: Any) -> ModelT:
    """Last check before a row is written."""
    return MultiLayerValidator(schema, ValidationLayer.DATABASE).validate_or_raise(data)

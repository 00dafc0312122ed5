"""Turn pydantic validation failures into dashboard ValidationErrors."""

from typing import Any, Mapping, TypeVar

import pydantic

from dashboard.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def validate_input(model: type[ModelT], data: Mapping[str, Any]) -> ModelT:
    """Validate ``data`` against ``model``.

    Raises:
        ValidationError: With one message per invalid field.
    """
    try:
        return model.model_validate(dict(data))
    except pydantic.ValidationError as e:
        invalid_fields: dict[str, str] = {}
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "__root__"
            invalid_fields.setdefault(field, error["msg"])
        raise ValidationError(invalid_fields=invalid_fields) from e

"""Validated inputs for core operations.

Request payloads are checked once, here, before any lock is taken or any
storage is touched. Strict types keep ``True`` and ``"5"`` from passing as
amounts.
"""

from typing import Annotated, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from alloctrack.core.errors import InvalidInputError

Identifier = Annotated[str, StringConstraints(strict=True, strip_whitespace=True, min_length=1)]
Name = Annotated[
    str, StringConstraints(strict=True, strip_whitespace=True, min_length=1, max_length=200)
]


class CoreInput(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True)


class AllocationRequest(CoreInput):
    """A user's desired claim on a resource. Zero means release."""

    user_id: Identifier
    resource_id: Identifier
    amount: int = Field(ge=0)


class ResourceCreate(CoreInput):
    name: Name
    total_amount: int = Field(gt=0)


class ResourceUpdate(CoreInput):
    resource_id: Identifier
    name: Name
    total_amount: int = Field(ge=0)


InputT = TypeVar("InputT", bound=CoreInput)


def parse_input(model: type[InputT], **values: object) -> InputT:
    """Build ``model`` from ``values`` or raise ``InvalidInputError``.

    Only the first failing field is reported.
    """
    try:
        return model(**values)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "input"
        raise InvalidInputError(f"Invalid {field}: {error['msg']}", field) from e

from types import MappingProxyType
from typing import Annotated, Any, Mapping

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer


def to_camel(value: str) -> str:
    """Convert snake_case field names to lowerCamelCase for collaborator payloads."""
    if "_" not in value:
        return value
    head, *tail = value.split("_")
    return head + "".join(word.capitalize() for word in tail if word)


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class FrozenCamelModel(CamelModel):
    """CamelModel whose instances cannot be mutated after validation."""

    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, frozen=True
    )


# Read-only view over a validated dict; dumps back to a plain dict.
ReadOnlyMapping = Annotated[
    Mapping[str, Any],
    AfterValidator(lambda value: MappingProxyType(dict(value))),
    PlainSerializer(dict, return_type=dict[str, Any]),
]

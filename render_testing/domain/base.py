"""Base classes for render testing entities and value objects.

Entities are pydantic models: field constraints cover the schema, and each
entity adds ``validate_invariants()`` for cross-field business rules. Both
layers raise ``InvariantViolationError`` so callers only deal with the
domain error taxonomy.
"""

from typing import Annotated, Any, ClassVar, Type, TypeVar
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ValidationError

from render_testing.domain.errors import InvariantViolationError

ModelT = TypeVar("ModelT", bound=BaseModel)
EntityT = TypeVar("EntityT", bound="DomainEntity")


def format_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into a single readable line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def check_url(value: str) -> str:
    """Accept absolute URLs unchanged (``https://``, ``s3://``, ``file:///``...).

    http(s) URLs must also name a host.
    """
    parsed = urlparse(value)
    if not parsed.scheme or not (parsed.netloc or parsed.path):
        raise ValueError(f"Invalid URL: {value!r}")
    if parsed.scheme in ("http", "https") and not parsed.netloc:
        raise ValueError(f"Invalid URL: {value!r}")
    return value


# URL kept as the caller's exact string (no normalization)
UrlStr = Annotated[str, AfterValidator(check_url)]


def coerce_model(model_cls: Type[ModelT], value: Any, entity: str) -> ModelT:
    """Validate a dict (or pass through an instance) as ``model_cls``.

    Raises:
        InvariantViolationError: If the value does not satisfy the schema
    """
    try:
        return model_cls.model_validate(value)
    except ValidationError as e:
        raise InvariantViolationError(entity, format_validation_error(e)) from e


class DomainModel(BaseModel):
    """Schema-validated value object embedded in an entity."""

    model_config = {"extra": "forbid"}


class DomainEntity(DomainModel):
    """Aggregate with identity, invariants and a persisted data layout."""

    entity_name: ClassVar[str] = "entity"

    @classmethod
    def from_data(cls: Type[EntityT], data: dict[str, Any]) -> EntityT:
        """Reconstruct an entity from its persisted layout.

        Validates the schema and re-checks business invariants.

        Raises:
            InvariantViolationError: If the data is not a valid entity
        """
        entity = coerce_model(cls, data, cls.entity_name)
        entity.validate_invariants()
        return entity

    def to_data(self) -> dict[str, Any]:
        """Export a JSON-compatible dict for persistence."""
        return self.model_dump(mode="json")

    def validate_invariants(self) -> None:
        """Check cross-field business rules. Subclasses extend this."""

    def _apply_changes(self: EntityT, changes: dict[str, Any]) -> EntityT:
        """Validate ``changes`` on a candidate copy, then commit them in place.

        A rejected change leaves the receiver untouched.
        """
        data = self.model_dump()
        data.update(changes)
        candidate = type(self).from_data(data)
        for name in type(self).model_fields:
            setattr(self, name, getattr(candidate, name))
        return self

    def _invariant(self, condition: bool, message: str) -> None:
        if not condition:
            raise InvariantViolationError(self.entity_name, message)

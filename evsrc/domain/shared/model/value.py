from pydantic import BaseModel, ConfigDict


class ValueObject(BaseModel):
    model_config = ConfigDict(frozen=True)


class Entity(BaseModel):
    """Mutable model with identity, validated on assignment."""

    model_config = ConfigDict(validate_assignment=True)

import logging
from typing import Any, Dict

import pydantic
from packaging.version import parse
from pydantic.version import VERSION

logger = logging.getLogger(__name__)

version_parsed = parse(str(VERSION))

if version_parsed.major >= 2:
    PydanticVersion = 2
else:
    PydanticVersion = 1
logger.debug(f"Running on Pydantic V{PydanticVersion} ({VERSION})")


BaseModel: type = pydantic.BaseModel
Field = pydantic.Field
PrivateAttr = pydantic.PrivateAttr


if PydanticVersion == 2:
    from pydantic import ConfigDict

    class FrozenModel(BaseModel):
        """Immutable value object; nested models are kept by reference."""

        model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

else:

    class FrozenModel(BaseModel):  # type: ignore[no-redef]
        """Immutable value object; nested models are kept by reference."""

        class Config:
            frozen = True
            arbitrary_types_allowed = True
            copy_on_model_validation = "none"


def rebuild_model(cls: type) -> None:
    """Resolve self-referencing annotations (``Optional["Node"]``)."""
    if PydanticVersion == 1:
        cls.update_forward_refs()
    else:
        cls.model_rebuild()


def model_dump_compat(model: Any, **kwargs) -> Dict[str, Any]:
    # Pydantic V1: .dict(); Pydantic V2: .model_dump()
    if PydanticVersion == 1:
        return model.dict(**kwargs)
    return model.model_dump(**kwargs)


__all__ = [
    "BaseModel",
    "Field",
    "FrozenModel",
    "PrivateAttr",
    "PydanticVersion",
    "model_dump_compat",
    "rebuild_model",
]

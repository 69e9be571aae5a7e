import copy
import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from .pydantic_compat import BaseModel, model_dump_compat

if TYPE_CHECKING:
    from .schema import CollectionSchema

logger = logging.getLogger(__name__)


def sanitize(
    schema: "CollectionSchema",
    data: Optional[Union[Mapping[str, Any], BaseModel]],
    merge_with_defaults: bool = False,
) -> Dict[str, Any]:
    """
    Restrict ``data`` to the fields declared on ``schema``.

    Unknown keys are dropped without raising. With ``merge_with_defaults``
    the schema's defaults fill allowed fields that ``data`` does not carry;
    values supplied by the caller always win. ``data`` is left untouched.
    """
    if data is None:
        data = {}
    elif isinstance(data, BaseModel):
        data = model_dump_compat(data, exclude_unset=True)

    allowed = schema.collection_props
    sanitized = {key: value for key, value in data.items() if key in allowed}

    dropped = [key for key in data if key not in allowed]
    if dropped:
        logger.debug(f"Sanitize: {schema.collection_name} - dropped unknown fields {sorted(map(str, dropped))}")

    if merge_with_defaults:
        for key, value in schema.prop_defaults.items():
            if key in allowed and key not in sanitized:
                sanitized[key] = copy.deepcopy(value)
    return sanitized

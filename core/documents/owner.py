"""Owner-type resolution.

A product row belongs to an owner identified by a short owner type:
"D" for deals, "DYNAMIC_<entityTypeId>" for smart-process items.
"""

import re
from typing import Any, Optional

from core.documents.params import is_blank, to_number
from core.errors import ValidationError


DEAL_OWNER_TYPE = "D"
DEAL_ENTITY_TYPE_ID = 2
SMART_PROCESS_PREFIX = "DYNAMIC_"
DEFAULT_SPA_ENTITY_TYPE_ID = 1068

_SMART_PROCESS_RE = re.compile(r"^DYNAMIC_([1-9]\d*)$")


def build_smart_process_owner(sub_type_id: int) -> str:
    return f"{SMART_PROCESS_PREFIX}{int(sub_type_id)}"


def normalize_owner_type_short(value: Any) -> str:
    """Normalize an explicit owner type ("d", " DYNAMIC_1068 ")."""
    normalized = str(value).strip().upper()
    if normalized == DEAL_OWNER_TYPE or _SMART_PROCESS_RE.match(normalized):
        return normalized
    raise ValidationError("ownerType must be 'D' or 'DYNAMIC_<id>'")


def _sub_type_id(value: Any) -> int:
    number = to_number(value)
    if number is None or number <= 0 or not number.is_integer():
        raise ValidationError("spaTypeId/entityTypeId/smartTypeId must be a positive number")
    return int(number)


def resolve_owner_type_short(
    explicit_type: Optional[Any] = None,
    legacy_type: Optional[Any] = None,
    sub_type_id: Optional[Any] = None,
    default_sub_type_id: int = DEFAULT_SPA_ENTITY_TYPE_ID,
) -> str:
    """Resolve the owner type of an element.

    First match wins:
    1. explicit owner type
    2. smart-process type id -> DYNAMIC_<id>
    3. legacy element type: D -> deal, S -> DYNAMIC_<default_sub_type_id>

    Raises:
        ValidationError: On malformed input or when nothing identifies the owner
    """
    if not is_blank(explicit_type):
        return normalize_owner_type_short(explicit_type)

    if not is_blank(sub_type_id):
        return build_smart_process_owner(_sub_type_id(sub_type_id))

    if not is_blank(legacy_type):
        elem_type = str(legacy_type).strip().upper()
        if elem_type == "D":
            return DEAL_OWNER_TYPE
        if elem_type == "S":
            return build_smart_process_owner(default_sub_type_id)
        raise ValidationError("elemType must be S (smart process) or D (deal)")

    raise ValidationError("elemType is required (S|D) when neither ownerType nor spaTypeId is given")


def entity_type_id_from_owner_short(owner_type: Optional[str]) -> Optional[int]:
    if owner_type == DEAL_OWNER_TYPE:
        return DEAL_ENTITY_TYPE_ID
    match = _SMART_PROCESS_RE.match(owner_type or "")
    return int(match.group(1)) if match else None

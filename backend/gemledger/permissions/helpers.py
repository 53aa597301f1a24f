# Overview: Lookups over the static permission catalog.

from .definitions import PERMISSION_DEFINITIONS

_BY_CODE = {perm[0]: perm for perm in PERMISSION_DEFINITIONS}


def get_all_permission_codes() -> list[str]:
    return list(_BY_CODE)


def get_permission_definition(code: str) -> dict | None:
    perm = _BY_CODE.get(code)
    if perm is None:
        return None
    code, name, description, category = perm
    return {"code": code, "name": name, "description": description, "category": category}


def validate_permission_code(code: str) -> bool:
    return code in _BY_CODE


def group_permissions_by_category() -> dict[str, list[dict]]:
    """Catalog grouped for display, preserving definition order."""
    grouped: dict[str, list[dict]] = {}
    for code in _BY_CODE:
        definition = get_permission_definition(code)
        grouped.setdefault(definition["category"], []).append(definition)
    return grouped

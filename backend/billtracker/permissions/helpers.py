# Overview: Lookups over the permission catalog.

from .definitions import PERMISSION_DEFINITIONS

# code -> (code, name, description, category)
_BY_CODE = {perm[0]: perm for perm in PERMISSION_DEFINITIONS}


def get_all_permission_codes():
    return list(_BY_CODE)


def get_all_modules():
    """Prefixes that accept a "module:*" grant, e.g. "expenses"."""
    return sorted({code.split(":", 1)[0] for code in _BY_CODE})


def get_permissions_by_category(category):
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permission_definition(code):
    perm = _BY_CODE.get(code)
    if perm is None:
        return None
    code, name, description, category = perm
    return {"code": code, "name": name, "description": description, "category": category}


def validate_permission_code(code):
    """True for "*", "module:*" with a known module, or an exact catalog code."""
    if code == "*":
        return True
    if code.endswith(":*"):
        return code[:-2] in get_all_modules()
    return code in _BY_CODE

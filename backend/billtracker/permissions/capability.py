# Overview: Permission value type with module wildcard matching.

from __future__ import annotations

from dataclasses import dataclass

WILDCARD = "*"


@dataclass(frozen=True)
class Permission:
    """
    A capability of the form module:action.

    "expenses:*" grants every expenses action; "*" grants everything.
    Matching is exact otherwise: "expenses:create" does not grant
    "expenses:create-direct".
    """
    module: str
    action: str

    @classmethod
    def parse(cls, code: str) -> "Permission":
        if not isinstance(code, str) or not code.strip():
            raise ValueError("Permission code must be a non-empty string")
        code = code.strip()
        if code == WILDCARD:
            return cls(WILDCARD, WILDCARD)
        module, sep, action = code.partition(":")
        if not sep or not module or not action:
            raise ValueError(f"Permission code must look like 'module:action': {code!r}")
        return cls(module, action)

    def __str__(self) -> str:
        if self.module == WILDCARD:
            return WILDCARD
        return f"{self.module}:{self.action}"

    def grants(self, required: "Permission") -> bool:
        if self.module == WILDCARD:
            return True
        if self.module != required.module:
            return False
        return self.action == WILDCARD or self.action == required.action


def grants_any(granted_codes, required_code: str) -> bool:
    """True when any of the stored codes grants the required one. Bad codes are ignored."""
    required = Permission.parse(required_code)
    for code in granted_codes or ():
        try:
            if Permission.parse(code).grants(required):
                return True
        except ValueError:
            continue
    return False

# Overview: Utility functions for permission lookups and validation.

from .definitions import PERMISSION_DEFINITIONS


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permission_definition(code):
    """Full definition for a permission code, or None."""
    for code_, name, description, category in PERMISSION_DEFINITIONS:
        if code_ == code:
            return {
                "code": code_,
                "name": name,
                "description": description,
                "category": category,
            }
    return None


def validate_permission_code(code):
    return code in get_all_permission_codes()

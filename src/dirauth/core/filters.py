"""
DirAuth Search Filters

Search-filter templates and RFC 4515 value escaping.

Every value spliced into a filter goes through escape_filter_value, so a
login such as ``*)(objectClass=*`` matches literally instead of widening
the search.
"""

from __future__ import annotations

from ldap3.utils.conv import escape_filter_chars

SEARCH_BY_SAM_ACCOUNT_NAME = "(sAMAccountName=%s)"
SEARCH_GROUP_BY_GROUP_CN = "(&(objectCategory=group)(cn={0}))"

MEMBER_OF = "memberOf"
ATTRIBUTES_FOR_SEARCH = [MEMBER_OF]


def escape_filter_value(value: str) -> str:
    """
    Escape filter metacharacters in an assertion value.

    ``\\``, ``*``, ``(``, ``)`` and NUL become ``\\5c``, ``\\2a``,
    ``\\28``, ``\\29`` and ``\\00``.
    """
    return escape_filter_chars(value)


def principal_filter(login: str) -> str:
    """Filter matching the account whose sAMAccountName is login."""
    return SEARCH_BY_SAM_ACCOUNT_NAME % escape_filter_value(login)


def group_filter(group_cn: str) -> str:
    """Filter matching the group object whose cn is group_cn."""
    return SEARCH_GROUP_BY_GROUP_CN.format(escape_filter_value(group_cn))

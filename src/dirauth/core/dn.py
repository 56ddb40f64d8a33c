"""
DirAuth Distinguished Names

Helpers for the DNs returned in ``memberOf``.
"""

from __future__ import annotations

import re
from typing import List, Tuple

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import parse_dn

from dirauth.core.exceptions import ProtocolError

_COMMON_NAME = re.compile(r"CN=([^,]+),")


def extract_common_name(distinguished_name: str) -> str:
    """
    Return the value of the first ``CN=...,`` component.

    Matching is case-sensitive and needs a trailing comma, so a bare
    ``CN=x`` with no parent yields "".

    Examples:
        "CN=mathematicians,dc=example,dc=com" -> "mathematicians"
        "ou=people,dc=example,dc=com" -> ""
    """
    match = _COMMON_NAME.search(distinguished_name)
    return match.group(1) if match else ""


def validate_dn(distinguished_name: str) -> List[Tuple[str, str, str]]:
    """
    Parse a DN, raising ProtocolError if it is malformed.

    An empty DN is the root DSE and is accepted.

    Returns:
        List of (attribute, value, separator) components
    """
    if not distinguished_name:
        return []
    try:
        return parse_dn(distinguished_name)
    except LDAPInvalidDnError as e:
        raise ProtocolError(f"Invalid distinguished name {distinguished_name!r}: {e}") from e

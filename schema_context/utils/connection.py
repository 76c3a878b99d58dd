"""
Connection string helpers
"""

import re
from typing import Optional

_CREDENTIALS_PATTERN = re.compile(r'^(?P<scheme>[\w.+-]+://)(?P<user>[^:/@]*):(?P<password>[^@]*)@')


def sanitize_connection_string(connection_string: Optional[str]) -> str:
    """Mask the password of a URL-style connection string"""
    if not connection_string:
        return ''
    return _CREDENTIALS_PATTERN.sub(r'\g<scheme>\g<user>:***@', connection_string, count=1)

from __future__ import annotations

import re
from typing import Optional

_EMAIL_MASK = re.compile(r"^(.{2})(.*)(@.*)$")


def mask_email(email: Optional[str]) -> str:
    """Keep the first two characters and the domain: ``ab***@gmail.com``."""
    if not email:
        return ""
    return _EMAIL_MASK.sub(r"\1***\3", email)


def email_domain(email: str) -> str:
    """Lower-cased domain of `local@domain`, or "" when the address has no local part."""
    local, sep, domain = email.strip().partition("@")
    if not sep or not local or "@" in domain:
        return ""
    return domain.lower()

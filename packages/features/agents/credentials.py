from __future__ import annotations

import re
import secrets
import string


AGENT_CODE_PREFIX = "AGT-"
AGENT_CODE_RE = re.compile(r"^AGT-\d{6}$")

PASSWORD_SYMBOLS = "@#$%&*_-+!"
MIN_PASSWORD_LENGTH = 8


def generate_agent_code() -> str:
    """AGT- plus a fixed-width 6 digit suffix (100000-999999)."""
    return f"{AGENT_CODE_PREFIX}{100000 + secrets.randbelow(900000)}"


def generate_password(length: int = 12) -> str:
    """Generate a temporary password with upper, lower, digit and symbol."""
    length = max(MIN_PASSWORD_LENGTH, int(length or 12))
    alphabet = string.ascii_letters + string.digits
    pw = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(PASSWORD_SYMBOLS),
    ]
    for _ in range(length - len(pw)):
        pw.append(secrets.choice(alphabet + PASSWORD_SYMBOLS))
    secrets.SystemRandom().shuffle(pw)
    return "".join(pw)


def password_is_complex(pw: str) -> bool:
    pw = pw or ""
    return (
        len(pw) >= MIN_PASSWORD_LENGTH
        and any(c.isupper() for c in pw)
        and any(c.islower() for c in pw)
        and any(c.isdigit() for c in pw)
        and any(c in PASSWORD_SYMBOLS for c in pw)
    )

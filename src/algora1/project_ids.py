"""Project identifier rules and collision auto-suffixing."""

from __future__ import annotations

import re
import secrets
import string
from typing import Optional

MAX_PROJECT_ID_LENGTH = 30
SUFFIX_LENGTH = 6
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_ALLOWED = re.compile(r"^[a-z0-9-]+$")

PROJECT_ID_REQUIREMENTS = (
    "Lowercase",
    "Alphanumeric + dashes only",
    f"Max length {MAX_PROJECT_ID_LENGTH}",
    "Cannot start/end with dash",
)


def project_id_problem(project_id: str) -> Optional[str]:
    """Explain why ``project_id`` is unacceptable.

    Args:
        project_id: Candidate identifier, already stripped of whitespace.

    Returns:
        The first rule violated, or None if the identifier is valid.
    """
    if not project_id:
        return "Project ID cannot be empty."
    if len(project_id) > MAX_PROJECT_ID_LENGTH:
        return (
            f"Project ID too long ({len(project_id)}). "
            f"Max length is {MAX_PROJECT_ID_LENGTH}."
        )
    if any(c.isupper() for c in project_id):
        return "Project ID must be lowercase."
    if not _ALLOWED.match(project_id):
        return "Project ID may only contain lowercase letters, numbers, and dashes."
    if project_id.startswith("-") or project_id.endswith("-"):
        return "Project ID cannot start or end with a dash."
    return None


def is_valid_project_id(project_id: str) -> bool:
    return project_id_problem(project_id) is None


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def auto_suffix_project_id(base: str, suffix: Optional[str] = None) -> str:
    """Append ``-<6 random chars>`` to ``base``, truncating to fit.

    The result always ends in ``-`` + six lowercase alphanumerics and is at
    most 30 characters. Dashes left dangling at the end of a truncated base
    are dropped so the candidate never holds ``--``.

    Args:
        base: The identifier that collided.
        suffix: Fixed suffix for tests; random when omitted.

    Returns:
        A new candidate identifier.
    """
    suf = suffix or random_suffix()
    max_base = MAX_PROJECT_ID_LENGTH - 1 - len(suf)
    trimmed = base[:max_base].rstrip("-")
    if not trimmed:
        # A leading dash is invalid, so a base of only dashes gets a letter.
        trimmed = "p"
    return f"{trimmed}-{suf}"

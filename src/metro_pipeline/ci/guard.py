"""Generation-time check for credential-like words in CI templates."""
from __future__ import annotations

import re
from collections.abc import Iterable

from metro_pipeline.errors import TemplateSecurityError

SENSITIVE_TERMS: tuple[str, ...] = ("password", "secret", "token")

_SENSITIVE = re.compile("|".join(SENSITIVE_TERMS), re.IGNORECASE)


def find_sensitive_terms(text: str, placeholders: Iterable[str] = ()) -> list[str]:
    """Return every sensitive term in *text* outside *placeholders*.

    Placeholders are removed longest first, so a placeholder containing
    a shorter one is masked as a whole.
    """
    masked = text
    for placeholder in sorted(set(placeholders), key=len, reverse=True):
        if placeholder:
            masked = masked.replace(placeholder, "")
    return [match.group(0) for match in _SENSITIVE.finditer(masked)]


def ensure_no_sensitive_terms(
    text: str, placeholders: Iterable[str] = (), provider: str = "template"
) -> str:
    """Return *text* unchanged, or raise if it leaks a sensitive term.

    Raises
    ------
    TemplateSecurityError
        On the first ``password``, ``secret`` or ``token`` found outside
        the declared placeholders.
    """
    found = find_sensitive_terms(text, placeholders)
    if found:
        raise TemplateSecurityError(found[0], provider)
    return text

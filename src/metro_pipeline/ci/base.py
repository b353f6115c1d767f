"""Abstract base class for CI providers.

Each provider (GitHub Actions, GitLab CI, Jenkins) implements
``CITemplate`` and renders a ``CITemplateOptions`` into configuration
text.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from metro_pipeline.ci.guard import ensure_no_sensitive_terms
from metro_pipeline.ci.options import CITemplateOptions


class CITemplate(ABC):
    """Abstract base class for CI configuration generators.

    Subclasses implement :attr:`name`, :attr:`output_path`,
    :meth:`placeholders` and :meth:`_render`.

    The contract for :meth:`render` is:

    * **Deterministic**: identical options produce byte-identical text,
      with no timestamps or random identifiers.
    * **Pure**: no file I/O and no environment lookups.
    * **Guarded**: the text is checked for credential-like words before
      it is returned.

    Templates hold no per-instance state; ``indent_spaces`` is a class
    constant.
    """

    indent_spaces: int = 2

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider name, e.g. ``"github"``."""

    @property
    @abstractmethod
    def output_path(self) -> str:
        """Conventional path of the generated file, relative to the repo root."""

    @abstractmethod
    def placeholders(self, options: CITemplateOptions) -> tuple[str, ...]:
        """Declared variable references allowed to contain sensitive words."""

    @abstractmethod
    def _render(self, options: CITemplateOptions) -> list[str]:
        """Return the configuration as a list of lines."""

    def render(self, options: CITemplateOptions | None = None) -> str:
        """Render *options* (defaults when ``None``) to configuration text.

        Raises
        ------
        TemplateSecurityError
            If the text contains ``password``, ``secret`` or ``token``
            outside :meth:`placeholders`.
        """
        opts = options if options is not None else CITemplateOptions()
        text = "\n".join(self._render(opts)).rstrip("\n") + "\n"
        return ensure_no_sensitive_terms(text, self.placeholders(opts), self.name)

    def _indent(self, text: str, level: int = 1) -> str:
        """Indent *text* by ``level`` indentation units.

        Blank lines are left empty (no trailing whitespace).
        """
        prefix = " " * (self.indent_spaces * level)
        return "\n".join(
            prefix + line if line.strip() else "" for line in text.splitlines()
        )

    def _lines(self, level: int, *lines: str) -> list[str]:
        """Return *lines* indented by *level*."""
        return [self._indent(line, level) for line in lines]


def quoted_list(values: tuple[str, ...]) -> str:
    """Render *values* as a single-quoted flow list, ``['a', 'b']``."""
    return "[" + ", ".join(f"'{v}'" for v in values) + "]"

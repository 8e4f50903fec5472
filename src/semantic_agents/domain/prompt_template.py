"""Prompt Templates - Jinja rendering for agent prompts.

Build a prompt from a Jinja template and variables set fluently or taken from
a mapping / Pydantic model. ``AutonomousAgent.run`` accepts a PromptTemplate
directly and renders it before the first model call.

Example:
    >>> template = PromptTemplate("Hello {{ user }}!").with_variable("user", "Ada")
    >>> template.render()
    'Hello Ada!'
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import jinja2
from pydantic import BaseModel, ConfigDict

from .errors import PromptTemplateError

_ENVIRONMENT = jinja2.Environment(
    autoescape=False,
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
)


class PromptTemplate(BaseModel):
    """Immutable template source plus the variables to render it with."""

    source: str
    variables: dict[str, Any] = {}

    model_config = ConfigDict(frozen=True)

    def __init__(self, source: str, variables: Mapping[str, Any] | None = None, **data: Any) -> None:
        super().__init__(source=source, variables=dict(variables or {}), **data)

    @classmethod
    def from_file(cls, path: Path | str) -> PromptTemplate:
        try:
            source = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise PromptTemplateError(f"Cannot read template '{path}': {e}") from e
        return cls(source)

    def with_variable(self, key: str, value: Any) -> PromptTemplate:
        return self.model_copy(update={"variables": {**self.variables, key: value}})

    def with_variables(self, values: Mapping[str, Any] | BaseModel) -> PromptTemplate:
        """Merge variables from a mapping or the fields of a Pydantic model."""
        if isinstance(values, BaseModel):
            values = values.model_dump()
        return self.model_copy(update={"variables": {**self.variables, **values}})

    def render(self) -> str:
        try:
            return _ENVIRONMENT.from_string(self.source).render(**self.variables)
        except jinja2.TemplateError as e:
            raise PromptTemplateError(f"Cannot render template: {e}") from e


__all__ = ["PromptTemplate"]

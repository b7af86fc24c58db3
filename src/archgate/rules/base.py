"""Rule contract and the violation record every rule produces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archgate.graph.component_graph import Component, ComponentGraph

MAX_NAME_LENGTH: int = 100
MAX_DESCRIPTION_LENGTH: int = 500


@dataclass(frozen=True)
class Violation:
    """A single rule violation."""

    rule_name: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    severity: str = "error"
    suggestion: str | None = None
    related_file: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Return the camelCase shape consumed by the formatters; ``None`` fields are omitted."""
        raw: dict[str, object | None] = {
            "ruleName": self.rule_name,
            "severity": self.severity,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "message": self.message,
            "suggestion": self.suggestion,
            "relatedFile": self.related_file,
        }
        return {key: value for key, value in raw.items() if value is not None}


class Rule(ABC):
    """Base class for architecture rules.

    Subclasses hold an immutable configuration object exposing ``name``,
    ``description`` and ``layer`` and implement :meth:`validate`.
    """

    __slots__ = ("_config",)

    def __init__(self, config: object) -> None:
        object.__setattr__(self, "_config", config)

    def __setattr__(self, name: str, value: object) -> None:
        msg = f"{type(self).__name__} is immutable; cannot set {name!r}"
        raise AttributeError(msg)

    @property
    def config(self) -> object:
        return self._config

    @property
    def name(self) -> str:
        name = getattr(self._config, "name", None)
        return name[:MAX_NAME_LENGTH] if isinstance(name, str) else "unnamed"

    @property
    def description(self) -> str:
        desc = getattr(self._config, "description", None)
        return desc[:MAX_DESCRIPTION_LENGTH] if isinstance(desc, str) else ""

    @property
    def layer(self) -> str | tuple[str, ...] | None:
        return getattr(self._config, "layer", None)

    @property
    def layers(self) -> tuple[object, ...]:
        """Layer patterns as a tuple; a single pattern becomes a 1-tuple."""
        layer = self.layer
        if isinstance(layer, tuple):
            return layer
        return (layer,)

    @abstractmethod
    def validate(self, file: Component, graph: ComponentGraph) -> list[Violation]:
        """Check *file* against this rule and return its violations (empty when it passes)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, layer={self.layer!r})"

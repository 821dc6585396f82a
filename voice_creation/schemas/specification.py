"""
Project Specification Schema

The canonical project description agreed during the voice conversation.
It's the contract between:
- Spec Extractor (produces this from the assistant's YAML block)
- Code Generation Orchestrator (consumes this to prompt the model)

A Specification only exists when every required field is present. There is
no partially filled instance: incomplete input raises SpecificationIncomplete.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

import yaml


REQUIRED_FIELDS = (
    "project_name",
    "project_description",
    "users",
    "goal",
    "features",
    "tech_stack",
    "ui_style",
)

SEQUENCE_FIELDS = ("users", "goal", "features")
TEXT_FIELDS = ("project_name", "project_description", "ui_style")


class SpecificationIncomplete(ValueError):
    """Raised when a mapping lacks one or more required fields."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Specification is missing: {', '.join(missing)}")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "\n".join(_as_text(v) for v in value if v is not None)
    if isinstance(value, Mapping):
        return ", ".join(f"{k}: {_as_text(v)}" for k, v in value.items())
    return str(value).strip()


def _as_sequence(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    if isinstance(value, Mapping):
        return tuple(f"{k}: {_as_text(v)}" for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_as_text(v) for v in value if v is not None)
    return (str(value),)


def missing_fields(data: Mapping[str, Any]) -> list[str]:
    """
    List the required fields absent from ``data``.

    A key that is present with an empty value still counts as present;
    ``tech_stack`` additionally needs to be a mapping with a ``frontend`` key.
    """
    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if "tech_stack" not in missing:
        tech_stack = data.get("tech_stack")
        if not isinstance(tech_stack, Mapping) or "frontend" not in tech_stack:
            missing.append("tech_stack.frontend")
    return missing


@dataclass(frozen=True)
class Specification:
    """
    Approved project specification.

    Immutable once built; the orchestrator only ever reads it.
    """
    project_name: str
    project_description: str
    users: tuple[str, ...]
    goal: tuple[str, ...]
    features: tuple[str, ...]
    tech_stack: Mapping[str, str]
    ui_style: str

    @property
    def frontend(self) -> str:
        return self.tech_stack.get("frontend", "")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON/YAML serialization."""
        return {
            "project_name": self.project_name,
            "project_description": self.project_description,
            "users": list(self.users),
            "goal": list(self.goal),
            "features": list(self.features),
            "tech_stack": dict(self.tech_stack),
            "ui_style": self.ui_style,
        }

    def to_yaml(self) -> str:
        """Render the canonical YAML document handed to the code generator."""
        return yaml.safe_dump(
            self.to_dict(),
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
            width=100,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Specification":
        """
        Create from a parsed YAML mapping.

        Raises:
            SpecificationIncomplete: if any required field is absent
        """
        missing = missing_fields(data)
        if missing:
            raise SpecificationIncomplete(missing)

        tech_stack = {
            str(key): _as_text(value)
            for key, value in data["tech_stack"].items()
        }

        return cls(
            project_name=_as_text(data["project_name"]),
            project_description=_as_text(data["project_description"]),
            users=_as_sequence(data["users"]),
            goal=_as_sequence(data["goal"]),
            features=_as_sequence(data["features"]),
            tech_stack=MappingProxyType(tech_stack),
            ui_style=_as_text(data["ui_style"]),
        )

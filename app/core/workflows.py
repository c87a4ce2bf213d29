import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from app.core.exceptions import UnknownFunctionType, WorkflowConfigError


@dataclass(frozen=True)
class WorkflowDescriptor:
    function_identifier: str
    default_params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    node_id: Optional[str] = None


def merge_params(defaults: Mapping[str, Any], overrides: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Return the defaults with caller-supplied keys overriding matching keys."""
    merged = dict(defaults)
    if overrides:
        merged.update(overrides)
    return merged


class WorkflowRegistry:
    """Read-only mapping of function types to remote workflow descriptors."""

    def __init__(self, workflows: Mapping[str, WorkflowDescriptor]):
        self._workflows = MappingProxyType(dict(workflows))

    @classmethod
    def from_dict(cls, raw: Any) -> "WorkflowRegistry":
        if not isinstance(raw, dict):
            raise WorkflowConfigError("Workflow configuration must be a JSON object")

        workflows = {}
        for function_type, entry in raw.items():
            if not isinstance(entry, dict):
                raise WorkflowConfigError(f"Workflow '{function_type}' must be an object")

            function_identifier = entry.get("function")
            if not isinstance(function_identifier, str) or not function_identifier:
                raise WorkflowConfigError(f"Workflow '{function_type}' is missing 'function'")

            params = entry.get("params", {})
            if not isinstance(params, dict):
                raise WorkflowConfigError(f"Workflow '{function_type}' has non-object 'params'")

            node_id = entry.get("nodeId")
            if node_id is not None:
                node_id = str(node_id)

            workflows[function_type] = WorkflowDescriptor(
                function_identifier=function_identifier,
                default_params=MappingProxyType(dict(params)),
                node_id=node_id,
            )
        return cls(workflows)

    @classmethod
    def load(cls, path: str) -> "WorkflowRegistry":
        """Load the registry from a JSON file; any failure is fatal to startup."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError as e:
            raise WorkflowConfigError(f"Workflow file not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise WorkflowConfigError(f"Failed to read workflow file {path}: {e}") from e

        registry = cls.from_dict(raw)
        logging.info(f"Loaded {len(registry)} workflows from {path}: {', '.join(registry.function_types())}")
        return registry

    def lookup(self, function_type: str) -> WorkflowDescriptor:
        try:
            return self._workflows[function_type]
        except KeyError:
            raise UnknownFunctionType(function_type) from None

    def function_types(self) -> list[str]:
        return sorted(self._workflows)

    def __len__(self) -> int:
        return len(self._workflows)

    def __contains__(self, function_type: object) -> bool:
        return function_type in self._workflows

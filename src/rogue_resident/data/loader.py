from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, List, Optional

import yaml
from jsonschema import Draft202012Validator
from jsonschema import ValidationError as SchemaError

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DATA_PACKAGE = "rogue_resident.data"
SCHEMA_PACKAGE = "rogue_resident.data.schemas"


class DataValidationError(ConfigurationError):
    """Raised when bundled or user supplied game data fails schema validation."""

    def __init__(self, message: str, errors: Optional[List[SchemaError]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_human(self) -> str:
        parts = [str(self)]
        for e in self.errors:
            path = "/".join(str(p) for p in e.path) or "<root>"
            parts.append(f" - at {path}: {e.message}")
        return "\n".join(parts)


@dataclass(frozen=True)
class SchemaInfo:
    name: str
    uri: str
    schema: Dict[str, Any]


class SchemaRegistry:
    """Registry for the bundled JSON Schemas.

    A schema's name is its filename without the ".schema.json" suffix.
    """

    def __init__(self, package: str = SCHEMA_PACKAGE) -> None:
        self._package = package
        self._schemas: Dict[str, SchemaInfo] = {}
        self._load_all()

    def _load_all(self) -> None:
        for entry in resources.files(self._package).iterdir():
            if not entry.name.endswith(".schema.json"):
                continue
            name = entry.name[: -len(".schema.json")]
            with entry.open("rb") as fh:
                schema = json.load(fh)
            uri = schema.get("$id") or f"resource://{self._package}/{entry.name}"
            self._schemas[name] = SchemaInfo(name=name, uri=uri, schema=schema)
            logger.debug("Registered schema '%s' (uri=%s)", name, uri)

    def get(self, name: str) -> Optional[SchemaInfo]:
        return self._schemas.get(name)

    def names(self) -> List[str]:
        return sorted(self._schemas)

    def make_validator(self, name: str) -> Draft202012Validator:
        info = self.get(name)
        if not info:
            raise KeyError(f"Schema not found: {name}")
        return Draft202012Validator(info.schema)


class DataLoader:
    """Reads packaged JSON/YAML resources and validates them against a named schema."""

    def __init__(self, schema_registry: Optional[SchemaRegistry] = None) -> None:
        self.schemas = schema_registry or SchemaRegistry()

    def validate_data(self, data: Any, schema: str) -> None:
        try:
            validator = self.schemas.make_validator(schema)
        except KeyError as e:
            raise DataValidationError(f"Unknown schema: {schema}") from e
        errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
        if errors:
            err = DataValidationError(f"Data validation failed for schema '{schema}'", errors)
            logger.error(err.to_human())
            raise err

    def load_resource(self, filename: str, *, schema: Optional[str] = None) -> Any:
        """Load ``filename`` from the data package, parsing YAML or JSON by extension."""
        text = resources.files(DATA_PACKAGE).joinpath(filename).read_text(encoding="utf-8")
        logger.debug("Loading data resource %s", filename)
        data = yaml.safe_load(text) if filename.endswith((".yaml", ".yml")) else json.loads(text)
        if schema:
            self.validate_data(data, schema)
        return data


@lru_cache(maxsize=1)
def default_loader() -> DataLoader:
    return DataLoader()


__all__ = ["DataLoader", "DataValidationError", "SchemaRegistry", "default_loader"]

from __future__ import annotations

import json
import logging
from copy import deepcopy
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from jsonschema import Draft202012Validator, exceptions as js_exceptions, validators

logger = logging.getLogger(__name__)

DATA_PACKAGE = "warband.data"
SCHEMA_PACKAGE = "warband.data.schemas"


# ---------------------------
# Exceptions
# ---------------------------

class ContentError(Exception):
    """Base error for static content issues."""


class ContentFileNotFoundError(ContentError):
    def __init__(self, source: Union[str, Path]):
        self.source = str(source)
        super().__init__(f"Content file not found: {self.source}")


class ContentParseError(ContentError):
    def __init__(self, source: Union[str, Path], message: str, lineno: Optional[int] = None, colno: Optional[int] = None):
        self.source = str(source)
        self.message = message
        self.lineno = lineno
        self.colno = colno
        location = f" (line {lineno}, column {colno})" if lineno is not None and colno is not None else ""
        super().__init__(f"Failed to parse JSON at {self.source}{location}: {message}")


class ContentSchemaError(ContentError):
    def __init__(self, source: Union[str, Path], errors: Sequence[js_exceptions.ValidationError]):
        self.source = str(source)
        self.errors = list(errors)
        super().__init__(_format_schema_errors(self.source, self.errors))


class ContentReferenceError(ContentError):
    """Raised when one table references an id that another table does not define."""


class ContentValueError(ContentError):
    """Raised when an entry passes its schema but is rejected by its model."""

    def __init__(self, key: Any, source: Union[str, Path], message: str):
        self.key = key
        self.source = str(source)
        super().__init__(f"Invalid entry '{key}' in {self.source}: {message}")


class DuplicateIdError(ContentError):
    def __init__(self, key: Any, source: Union[str, Path]):
        self.key = key
        self.source = str(source)
        super().__init__(f"Duplicate id '{key}' encountered while loading {self.source}")


# ---------------------------
# Utilities
# ---------------------------

JsonObject = Dict[str, Any]


def _extend_with_default(validator_class):
    """Extend a jsonschema validator to set defaults onto instances.

    Missing properties that declare a 'default' in the schema are injected
    before the remaining property validation runs.
    """

    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        if not isinstance(instance, dict):
            for error in validate_properties(validator, properties, instance, schema):
                yield error
            return

        for prop, subschema in properties.items():
            if "default" in subschema and prop not in instance:
                instance[prop] = deepcopy(subschema["default"])
        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultingValidator = _extend_with_default(Draft202012Validator)


def _format_schema_errors(source: str, errors: Sequence[js_exceptions.ValidationError]) -> str:
    """Create a readable, multi-line error message from jsonschema errors."""
    lines = [f"Schema validation failed for {source}:"]

    # Group required property errors for a concise listing
    missing_by_path: Dict[str, List[str]] = {}
    other_msgs: List[str] = []

    for err in errors:
        where = ".".join(str(p) for p in err.absolute_path) or "$"
        if err.validator == "required" and isinstance(err.message, str) and err.message.count("'") >= 2:
            # message like: "'id' is a required property"
            missing_by_path.setdefault(where, []).append(err.message.split("'")[1])
        else:
            other_msgs.append(f" - At {where}: {err.message}")

    for loc, props in sorted(missing_by_path.items()):
        props_list = ", ".join(sorted(set(props)))
        loc_display = "root" if loc == "$" else loc
        lines.append(f" - Missing required keys at {loc_display}: {props_list}")

    lines.extend(other_msgs)
    return "\n".join(lines)


def parse_json_text(text: str, source: Union[str, Path]) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ContentParseError(source, e.msg, e.lineno, e.colno) from e


def validate_document(source: Union[str, Path], data: Any, schema: Optional[Mapping[str, Any]]) -> Any:
    """Validate ``data`` against ``schema`` in place, applying schema defaults.

    Returns the (possibly default-filled) data. Raises ContentSchemaError.
    """
    if not schema:
        return data
    if not isinstance(data, (dict, list)):
        raise ContentSchemaError(source, [js_exceptions.ValidationError("Root must be object or array")])
    validator = DefaultingValidator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        raise ContentSchemaError(source, errors)
    return data


@lru_cache(maxsize=None)
def _load_schema_text(name: str) -> str:
    resource = resources.files(SCHEMA_PACKAGE).joinpath(f"{name}.schema.json")
    if not resource.is_file():
        raise ContentFileNotFoundError(f"{SCHEMA_PACKAGE}/{name}.schema.json")
    return resource.read_text(encoding="utf-8")


def load_schema(name: str) -> JsonObject:
    """Return a fresh copy of a bundled schema by name (filename without '.schema.json')."""
    return parse_json_text(_load_schema_text(name), f"{SCHEMA_PACKAGE}/{name}.schema.json")


# ---------------------------
# Public API
# ---------------------------

def load_json_file(path: Union[str, Path], *, schema: Optional[Mapping[str, Any]] = None) -> Any:
    """Load a JSON file from disk and validate it against ``schema``.

    Raises ContentError subclasses on failure.
    """
    p = Path(path)
    if not p.exists():
        raise ContentFileNotFoundError(p)
    data = parse_json_text(p.read_text(encoding="utf-8"), p)
    return validate_document(p, data, schema)


def load_json_resource(name: str, *, schema: Optional[Mapping[str, Any]] = None) -> Any:
    """Load a JSON document bundled in the ``warband.data`` package."""
    resource = resources.files(DATA_PACKAGE).joinpath(name)
    source = f"{DATA_PACKAGE}/{name}"
    if not resource.is_file():
        raise ContentFileNotFoundError(source)
    logger.debug("Loading bundled content: %s", source)
    data = parse_json_text(resource.read_text(encoding="utf-8"), source)
    return validate_document(source, data, schema)


def index_by_id(items: Iterable[Mapping[str, Any]], source: Union[str, Path], *, key: str = "id") -> Dict[str, Mapping[str, Any]]:
    """Index a list of objects by ``key``, rejecting duplicates."""
    indexed: Dict[str, Mapping[str, Any]] = {}
    for obj in items:
        ident = obj[key]
        if ident in indexed:
            raise DuplicateIdError(ident, source)
        indexed[ident] = obj
    return indexed


__all__ = [
    "ContentError",
    "ContentFileNotFoundError",
    "ContentParseError",
    "ContentSchemaError",
    "ContentReferenceError",
    "ContentValueError",
    "DuplicateIdError",
    "load_json_file",
    "load_json_resource",
    "load_schema",
    "validate_document",
    "index_by_id",
]

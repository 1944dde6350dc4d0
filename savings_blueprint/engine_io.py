"""
I/O helpers for schemas and message construction.

PURPOSE: Central place for JSON schema validation and message formatting used by the
         recommendation pipeline, the catalog loader and the CLI.
CONTEXT: Schemas live inside the package (savings_blueprint/schemas) so validation works
         regardless of the caller's working directory.
"""

from __future__ import annotations

import json
import pathlib
from functools import lru_cache
from typing import Any, Dict

from jsonschema import Draft7Validator, ValidationError

SCHEMA_DIR = pathlib.Path(__file__).resolve().parent / "schemas"


# -------------------- Schema loading utilities -------------------- #

@lru_cache(maxsize=64)
def _load_json_cached(abs_path: str) -> Dict[str, Any]:
    """
    Read and parse a JSON file, caching it to avoid repeated disk I/O.

    parameters:
    - abs_path: str – full absolute path to the file.

    returns:
    - dict – parsed JSON content.
    """
    p = pathlib.Path(abs_path)
    text = p.read_text(encoding="utf-8")
    return json.loads(text)


def load_schema(path: str) -> Dict[str, Any]:
    """
    Load a JSON schema by file name, relative path or absolute path (with caching).

    parameters:
    - path: str – e.g. "catalog.schema.json" or "schemas/catalog.schema.json".

    returns:
    - dict – schema as a Python dictionary.

    raises:
    - FileNotFoundError – if the file cannot be located.
    - json.JSONDecodeError – if the file is not valid JSON.

    notes:
    - Bare names are looked up in the packaged schema directory first, then relative to
      the current working directory.
    """
    p = pathlib.Path(path)
    candidates = [p, SCHEMA_DIR / p.name, pathlib.Path.cwd().joinpath(path)]
    for c in candidates:
        if c.exists():
            return _load_json_cached(str(c.resolve()))
    raise FileNotFoundError(f"Schema not found at: {path}")


# -------------------- Validation helpers -------------------- #

def validate_with_schema(instance: Dict[str, Any], schema: Dict[str, Any]) -> None:
    """
    Validate a given instance against a provided schema.

    raises:
    - ValidationError – if instance fails to meet schema requirements.
    """
    Draft7Validator(schema).validate(instance)


def validate_catalog(catalog: Dict[str, Any]) -> None:
    """Validate raw catalog data (limits, vehicles, profiles) before it is frozen."""
    validate_with_schema(catalog, load_schema("catalog.schema.json"))


def validate_request(payload: Dict[str, Any]) -> None:
    """
    Validate the structure of a recommendation request.
    Only shape is checked here; individual answer values are defaulted later.
    """
    validate_with_schema(payload, load_schema("recommendation_request.schema.json"))


def validate_recommendation(output: Dict[str, Any]) -> None:
    """
    Validate the final pipeline output to confirm it matches the defined schema.
    """
    validate_with_schema(output, load_schema("recommendation.schema.json"))


# -------------------- Message construction helpers -------------------- #

def make_ok_message(content: str) -> Dict[str, str]:
    """
    Create a basic assistant-style message (role='assistant').
    Used for explanatory text attached to a recommendation.
    """
    return {"role": "assistant", "content": str(content)}


def make_system_message(content: str) -> Dict[str, str]:
    """
    Create a system message (role='system') for diagnostics such as configuration errors.
    """
    return {"role": "system", "content": str(content)}


def error_to_string(err: Exception) -> str:
    """
    Convert exceptions into readable strings for user-facing error messages.

    parameters:
    - err: Exception – the caught exception.

    returns:
    - str – descriptive message with a JSON path if it is a ValidationError.
    """
    if isinstance(err, ValidationError):
        # Include JSON path context (e.g. $.answers.age)
        path = "$" + "".join(f"[{repr(p)}]" if isinstance(p, int) else f".{p}" for p in err.path)
        return f"{err.message} at {path}"
    return f"{type(err).__name__}: {err}"


# -------------------- Public exports -------------------- #

__all__ = [
    "load_schema",
    "validate_with_schema",
    "validate_catalog",
    "validate_request",
    "validate_recommendation",
    "make_ok_message",
    "make_system_message",
    "error_to_string",
]

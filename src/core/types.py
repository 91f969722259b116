"""Type aliases for dynamic data structures throughout the application.

DTE payloads arrive as JSON objects whose shape depends on the document
type; they are carried as plain dictionaries and validated against the
pydantic schema in ``src.pipeline.documents`` when structure matters.
"""

from typing import Any

# JSON-compatible type that represents any valid JSON value
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# A DTE as exchanged with callers, the signer and the authority
type DocumentPayload = dict[str, Any]

# Context dictionary for logging additional information
type LogContext = dict[str, Any]

# Context dictionary for error details and debugging information
type ErrorContext = dict[str, Any]

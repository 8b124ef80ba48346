"""Typed decoding of query strings, form bodies and JSON bodies.

Populates a user-defined frozen dataclass from request data, or raises a
classified ``DecodeFailure``. Used by the dispatcher when a handler
parameter is annotated with a dataclass.

Source selection:

- ``Annotated[Params, QUERY]`` / ``FORM`` / ``JSON`` pins the source.
- A bare dataclass annotation reads the query string for GET/HEAD and
  the body otherwise (JSON when the Content-Type says so, form
  otherwise).

Failure taxonomy (``DecodeFailureKind``):

- ``MISSING_CONTENT_TYPE``: body sent without the expected Content-Type
- ``BODY_SYNTAX``: bytes are not valid JSON / UTF-8
- ``BODY_DESERIALIZATION``: well-formed data of the wrong shape
  (missing field, wrong type, non-integer where an integer is expected)
- ``BODY_READ``: the body could not be read (disconnect, too large)
- ``OTHER``: anything else raised while building the record

The taxonomy is open: code that matches on ``kind`` must keep a default
arm so a kind added later is still handled.

Query and form values arrive as strings and are coerced to the field's
annotation. JSON values are checked, not coerced: ``"1"`` is not an
``int`` and ``1`` is not a ``str``.
"""

import dataclasses
import json as json_module
import logging
import re
import types
import typing
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any, get_args, get_origin
from urllib.parse import parse_qsl

from wren.config import AppConfig
from wren.errors import WrenError
from wren.http.request import BodyReadError, Request
from wren.http.response import Redirect, Response
from wren.static import StaticMount
from wren.templating.returns import Template

logger = logging.getLogger("wren.decoding")


class Source(StrEnum):
    """Where a record is decoded from."""

    QUERY = "query"
    FORM = "form"
    JSON = "json"


QUERY = Source.QUERY
FORM = Source.FORM
JSON = Source.JSON

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Dataclasses the dispatcher supplies itself or that handlers return
_FRAMEWORK_TYPES: frozenset[type] = frozenset(
    {AppConfig, Request, Response, Redirect, Template, StaticMount}
)


class DecodeFailureKind(StrEnum):
    """Classification of a decode failure. Not exhaustive; always keep a default arm."""

    MISSING_CONTENT_TYPE = "missing-content-type"
    BODY_DESERIALIZATION = "body-deserialization-error"
    BODY_SYNTAX = "body-syntax-error"
    BODY_READ = "body-read-error"
    OTHER = "other"


_DEFAULT_STATUS: dict[DecodeFailureKind, int] = {
    DecodeFailureKind.MISSING_CONTENT_TYPE: 415,
    DecodeFailureKind.BODY_DESERIALIZATION: 422,
    DecodeFailureKind.BODY_SYNTAX: 400,
    DecodeFailureKind.BODY_READ: 400,
}


class DecodeFailure(WrenError):
    """Request data could not be decoded into the target record.

    Attributes:
        kind: The failure classification.
        source: Where decoding was attempted.
        detail: Human-readable description, for logs.
        status: HTTP status used when the failure reaches the dispatcher.
    """

    def __init__(
        self,
        kind: DecodeFailureKind,
        detail: str,
        *,
        source: Source,
        status: int | None = None,
    ) -> None:
        super().__init__(detail)
        self.kind = kind
        self.source = source
        self.detail = detail
        if status is None:
            # Query strings have no body; a bad value there is a plain 400
            status = 400 if source is Source.QUERY else _DEFAULT_STATUS.get(kind, 400)
        self.status = status

    def __repr__(self) -> str:
        return f"DecodeFailure({self.kind.value!r}, {self.detail!r}, source={self.source.value!r})"


# =============================================================================
# Field introspection
# =============================================================================


@dataclass(frozen=True, slots=True)
class _FieldSpec:
    name: str
    target: Any
    optional: bool
    has_default: bool


def _field_specs(cls: type) -> list[_FieldSpec]:
    """Resolve a dataclass's fields to their runtime annotations."""
    hints = typing.get_type_hints(cls)
    specs: list[_FieldSpec] = []
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        target = hints.get(f.name, f.type)
        optional = False
        if get_origin(target) in (types.UnionType, typing.Union):
            args = [a for a in get_args(target) if a is not type(None)]
            optional = len(args) != len(get_args(target))
            target = args[0] if len(args) == 1 else Any
        has_default = (
            f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
        )
        specs.append(_FieldSpec(f.name, target, optional, has_default))
    return specs


# =============================================================================
# Value conversion
# =============================================================================

_INT_TEXT = re.compile(r"[+-]?[0-9]+")
_FLOAT_TEXT = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})


class _Mismatch(Exception):
    """Internal: a single field failed conversion."""


def _from_text(value: str, spec: _FieldSpec) -> Any:
    """Coerce a query/form string to the field type."""
    target = spec.target
    if target is str:
        return value
    if value == "" and spec.optional:
        return None
    if target is int:
        if not _INT_TEXT.fullmatch(value):
            raise _Mismatch(f"expected an integer, got {value!r}")
        return int(value)
    if target is float:
        if not _FLOAT_TEXT.fullmatch(value):
            raise _Mismatch(f"expected a number, got {value!r}")
        return float(value)
    if target is bool:
        lowered = value.lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise _Mismatch(f"expected a boolean, got {value!r}")
    return value


def _from_json(value: Any, spec: _FieldSpec) -> Any:
    """Type-check a parsed JSON value against the field type."""
    target = spec.target
    if value is None:
        if spec.optional:
            return None
        raise _Mismatch("expected a value, got null")
    if target is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _Mismatch(f"expected an integer, got {_json_type(value)}")
        return value
    if target is float:
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise _Mismatch(f"expected a number, got {_json_type(value)}")
        return float(value)
    if target is str:
        if not isinstance(value, str):
            raise _Mismatch(f"expected a string, got {_json_type(value)}")
        return value
    if target is bool:
        if not isinstance(value, bool):
            raise _Mismatch(f"expected a boolean, got {_json_type(value)}")
        return value
    return value


def _json_type(value: Any) -> str:
    match value:
        case bool():
            return "boolean"
        case int() | float():
            return "number"
        case str():
            return "string"
        case list():
            return "array"
        case dict():
            return "object"
        case _:
            return type(value).__name__


def _build[T](
    cls: type[T],
    data: Mapping[str, Any],
    source: Source,
    convert: Callable[[Any, _FieldSpec], Any],
) -> T:
    """Build *cls* from *data*, collecting every field error into one failure."""
    kwargs: dict[str, Any] = {}
    problems: list[str] = []

    for spec in _field_specs(cls):
        if spec.name not in data:
            if spec.has_default:
                continue
            if spec.optional:
                kwargs[spec.name] = None
                continue
            problems.append(f"{spec.name}: missing field")
            continue
        try:
            kwargs[spec.name] = convert(data[spec.name], spec)
        except _Mismatch as exc:
            problems.append(f"{spec.name}: {exc}")

    if problems:
        raise DecodeFailure(
            DecodeFailureKind.BODY_DESERIALIZATION,
            "; ".join(problems),
            source=source,
        )

    try:
        return cls(**kwargs)
    except Exception as exc:
        raise DecodeFailure(
            DecodeFailureKind.OTHER,
            f"{cls.__name__} rejected the decoded values: {exc}",
            source=source,
        ) from exc


# =============================================================================
# Public decoders
# =============================================================================


def decode_query[T](cls: type[T], query: Mapping[str, str]) -> T:
    """Decode a query mapping into *cls*.

    Unknown keys are ignored. Raises ``DecodeFailure`` with kind
    ``BODY_DESERIALIZATION`` (status 400) when a required key is missing
    or a value cannot be coerced.
    """
    return _build(cls, query, Source.QUERY, _from_text)


async def decode_form[T](cls: type[T], request: Request) -> T:
    """Decode an ``application/x-www-form-urlencoded`` body into *cls*."""
    if request.media_type != FORM_CONTENT_TYPE:
        raise DecodeFailure(
            DecodeFailureKind.MISSING_CONTENT_TYPE,
            f"Expected Content-Type {FORM_CONTENT_TYPE!r}, got {request.content_type!r}",
            source=Source.FORM,
        )
    raw = await _read_body(request, Source.FORM)
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeFailure(
            DecodeFailureKind.BODY_SYNTAX,
            f"Form body is not valid UTF-8: {exc}",
            source=Source.FORM,
        ) from exc

    data: dict[str, str] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        data.setdefault(key, value)
    return _build(cls, data, Source.FORM, _from_text)


async def decode_json[T](cls: type[T], request: Request) -> T:
    """Decode a JSON body into *cls*.

    The Content-Type is checked before the body is read, so a malformed
    body sent without ``application/json`` is still ``MISSING_CONTENT_TYPE``.
    """
    if not is_json_content_type(request.media_type):
        raise DecodeFailure(
            DecodeFailureKind.MISSING_CONTENT_TYPE,
            f"Expected request with `Content-Type: application/json`, got {request.content_type!r}",
            source=Source.JSON,
        )
    raw = await _read_body(request, Source.JSON)
    try:
        payload = json_module.loads(raw)
    except (json_module.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeFailure(
            DecodeFailureKind.BODY_SYNTAX,
            f"Failed to parse the request body as JSON: {exc}",
            source=Source.JSON,
        ) from exc

    if not isinstance(payload, dict):
        raise DecodeFailure(
            DecodeFailureKind.BODY_DESERIALIZATION,
            f"expected a JSON object, got {_json_type(payload)}",
            source=Source.JSON,
        )
    return _build(cls, payload, Source.JSON, _from_json)


async def decode[T](cls: type[T], request: Request, source: Source | None = None) -> T:
    """Decode *cls* from *request*, logging the outcome.

    When *source* is ``None`` it is inferred from the method and
    Content-Type (see ``infer_source``).
    """
    source = Source(source) if source is not None else infer_source(request)
    try:
        match source:
            case Source.QUERY:
                result = decode_query(cls, request.query)
            case Source.FORM:
                result = await decode_form(cls, request)
            case Source.JSON:
                result = await decode_json(cls, request)
    except DecodeFailure as failure:
        logger.info(
            "decode %s %s failed for %s: %s (%s)",
            request.method,
            request.path,
            cls.__name__,
            failure.kind.value,
            failure.detail,
        )
        raise
    logger.debug("decoded %s from %s: %r", cls.__name__, source.value, result)
    return result


def infer_source(request: Request) -> Source:
    """Pick a source from the request: query for GET/HEAD, else by Content-Type."""
    if request.method in ("GET", "HEAD"):
        return Source.QUERY
    if is_json_content_type(request.media_type):
        return Source.JSON
    return Source.FORM


def is_json_content_type(media_type: str) -> bool:
    """``application/json`` or any ``application/*+json``."""
    return media_type == "application/json" or (
        media_type.startswith("application/") and media_type.endswith("+json")
    )


async def _read_body(request: Request, source: Source) -> bytes:
    try:
        return await request.body()
    except BodyReadError as exc:
        raise DecodeFailure(
            DecodeFailureKind.BODY_READ, str(exc), source=source, status=exc.status
        ) from exc


# =============================================================================
# Handler parameter binding
# =============================================================================


@dataclass(frozen=True, slots=True)
class DecodeTarget:
    """How a handler parameter is filled from the request.

    ``accepts_failure`` is set for ``T | DecodeFailure`` annotations: the
    handler receives the failure instead of the dispatcher rejecting.
    """

    cls: type
    source: Source | None
    accepts_failure: bool


def decode_target(annotation: Any) -> DecodeTarget | None:
    """Return the ``DecodeTarget`` for a parameter annotation, or ``None``.

    Recognizes::

        Params
        Annotated[Params, JSON]
        Params | DecodeFailure
        Annotated[Params | DecodeFailure, JSON]
    """
    source: Source | None = None
    if get_origin(annotation) is Annotated:
        annotation, *metadata = get_args(annotation)
        source = next((m for m in metadata if isinstance(m, Source)), None)

    accepts_failure = False
    if get_origin(annotation) in (types.UnionType, typing.Union):
        args = get_args(annotation)
        if DecodeFailure in args:
            accepts_failure = True
            rest = [a for a in args if a is not DecodeFailure]
            annotation = rest[0] if len(rest) == 1 else None

    if not is_decodable(annotation):
        return None
    return DecodeTarget(cls=annotation, source=source, accepts_failure=accepts_failure)


def is_decodable(annotation: Any) -> bool:
    """True if *annotation* is a dataclass type that handlers may receive decoded.

    Wren's own dataclasses (``Request``, ``Response`` ...) are never decoded.
    """
    if not isinstance(annotation, type) or not dataclasses.is_dataclass(annotation):
        return False
    return annotation not in _FRAMEWORK_TYPES

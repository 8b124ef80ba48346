"""Tests for wren.decoding: typed decoding of query, form and JSON data."""

import json
from dataclasses import dataclass, make_dataclass
from typing import Annotated

import pytest

from wren.config import AppConfig
from wren.decoding import (
    FORM,
    JSON,
    QUERY,
    DecodeFailure,
    DecodeFailureKind,
    Source,
    decode,
    decode_form,
    decode_json,
    decode_query,
    decode_target,
    infer_source,
    is_decodable,
    is_json_content_type,
)
from wren.http.query import QueryParams
from wren.http.request import Request
from wren.http.response import Redirect, Response
from wren.static import StaticMount
from wren.templating.returns import Template


@dataclass(frozen=True, slots=True)
class Params:
    foo: int
    bar: str
    third: int | None = None


@dataclass(frozen=True, slots=True)
class Submission:
    name: str
    email: str


@dataclass(frozen=True, slots=True)
class Measurement:
    value: float
    enabled: bool = False


@dataclass(frozen=True, slots=True)
class Positive:
    amount: int

    def __post_init__(self) -> None:
        if self.amount <= 0:
            msg = "amount must be positive"
            raise ValueError(msg)


def _request(
    method: str = "POST",
    *,
    body: bytes = b"",
    content_type: str | None = None,
    query: bytes = b"",
    disconnect: bool = False,
    max_body_size: int | None = None,
) -> Request:
    headers = []
    if content_type is not None:
        headers.append((b"content-type", content_type.encode("latin-1")))
    if disconnect:
        messages = [{"type": "http.request", "body": body[:1], "more_body": True}]
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    async def receive():
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    scope = {
        "type": "http",
        "method": method,
        "path": "/",
        "query_string": query,
        "headers": headers,
    }
    return Request.from_asgi(scope, receive, max_body_size=max_body_size)


def _json_request(payload, content_type: str = "application/json") -> Request:
    return _request(body=json.dumps(payload).encode(), content_type=content_type)


# =============================================================================
# Query
# =============================================================================


class TestDecodeQuery:
    def test_coerces_and_ignores_unknown_keys(self) -> None:
        result = decode_query(Params, {"foo": "1", "bar": "x", "extra": "y"})
        assert result == Params(foo=1, bar="x", third=None)

    def test_optional_present(self) -> None:
        assert decode_query(Params, {"foo": "-2", "bar": "", "third": "3"}).third == 3

    def test_empty_optional_is_none(self) -> None:
        assert decode_query(Params, {"foo": "1", "bar": "x", "third": ""}).third is None

    def test_missing_required(self) -> None:
        with pytest.raises(DecodeFailure) as exc_info:
            decode_query(Params, {"bar": "x"})
        failure = exc_info.value
        assert failure.kind is DecodeFailureKind.BODY_DESERIALIZATION
        assert failure.source is Source.QUERY
        assert failure.status == 400
        assert "foo: missing field" in failure.detail

    @pytest.mark.parametrize("raw", ["abc", "1.5", "", " 1", "1e3", "5\n", "\u0663", "1_000"])
    def test_non_integer(self, raw: str) -> None:
        with pytest.raises(DecodeFailure) as exc_info:
            decode_query(Params, {"foo": raw, "bar": "x"})
        assert exc_info.value.kind is DecodeFailureKind.BODY_DESERIALIZATION
        assert exc_info.value.status == 400

    def test_collects_every_problem(self) -> None:
        with pytest.raises(DecodeFailure) as exc_info:
            decode_query(Params, {"third": "x"})
        detail = exc_info.value.detail
        assert "foo" in detail
        assert "bar" in detail
        assert "third" in detail

    def test_float_and_bool(self) -> None:
        result = decode_query(Measurement, {"value": "2.5", "enabled": "on"})
        assert result == Measurement(value=2.5, enabled=True)

    @pytest.mark.parametrize("raw", ["2.5\n", " 2.5", "inf", "nan", "1_0", "\u0663.5"])
    def test_non_number(self, raw: str) -> None:
        with pytest.raises(DecodeFailure) as exc_info:
            decode_query(Measurement, {"value": raw})
        assert exc_info.value.kind is DecodeFailureKind.BODY_DESERIALIZATION

    @pytest.mark.parametrize(("raw", "expected"), [("-2", -2.0), (".5", 0.5), ("1e3", 1000.0)])
    def test_number_forms(self, raw: str, expected: float) -> None:
        assert decode_query(Measurement, {"value": raw}).value == expected

    def test_invalid_bool(self) -> None:
        with pytest.raises(DecodeFailure):
            decode_query(Measurement, {"value": "1", "enabled": "maybe"})

    def test_accepts_query_params_mapping(self) -> None:
        query = QueryParams(b"foo=1&foo=2&bar=x")
        assert decode_query(Params, query).foo == 1

    def test_constructor_error_is_other(self) -> None:
        with pytest.raises(DecodeFailure) as exc_info:
            decode_query(Positive, {"amount": "-1"})
        assert exc_info.value.kind is DecodeFailureKind.OTHER
        assert exc_info.value.status == 400
        assert "amount must be positive" in exc_info.value.detail


# =============================================================================
# Form
# =============================================================================


class TestDecodeForm:
    async def test_success(self) -> None:
        request = _request(
            body=b"name=a+b&email=c%40d&extra=1",
            content_type="application/x-www-form-urlencoded",
        )
        assert await decode_form(Submission, request) == Submission(name="a b", email="c@d")

    async def test_content_type_parameters_allowed(self) -> None:
        request = _request(
            body=b"name=a&email=b",
            content_type="application/x-www-form-urlencoded; charset=utf-8",
        )
        assert (await decode_form(Submission, request)).name == "a"

    async def test_first_value_wins(self) -> None:
        request = _request(
            body=b"name=first&name=second&email=b",
            content_type="application/x-www-form-urlencoded",
        )
        assert (await decode_form(Submission, request)).name == "first"

    async def test_wrong_content_type(self) -> None:
        request = _request(body=b"name=a&email=b", content_type="text/plain")
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_form(Submission, request)
        assert exc_info.value.kind is DecodeFailureKind.MISSING_CONTENT_TYPE
        assert exc_info.value.status == 415

    async def test_missing_field(self) -> None:
        request = _request(body=b"name=a", content_type="application/x-www-form-urlencoded")
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_form(Submission, request)
        assert exc_info.value.kind is DecodeFailureKind.BODY_DESERIALIZATION
        assert exc_info.value.status == 422

    async def test_invalid_utf8(self) -> None:
        request = _request(
            body=b"name=\xff&email=b", content_type="application/x-www-form-urlencoded"
        )
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_form(Submission, request)
        assert exc_info.value.kind is DecodeFailureKind.BODY_SYNTAX
        assert exc_info.value.status == 400


# =============================================================================
# JSON
# =============================================================================


class TestDecodeJson:
    async def test_success(self) -> None:
        request = _json_request({"name": "a", "email": "b", "extra": [1, 2]})
        assert await decode_json(Submission, request) == Submission(name="a", email="b")

    async def test_vendor_json_content_type(self) -> None:
        request = _json_request({"name": "a", "email": "b"}, "application/vnd.api+json")
        assert (await decode_json(Submission, request)).email == "b"

    async def test_missing_content_type_wins_over_bad_body(self) -> None:
        request = _request(body=b"{not json")
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_json(Submission, request)
        assert exc_info.value.kind is DecodeFailureKind.MISSING_CONTENT_TYPE
        assert exc_info.value.status == 415

    async def test_syntax_error(self) -> None:
        request = _request(body=b'{"name": "a",', content_type="application/json")
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_json(Submission, request)
        assert exc_info.value.kind is DecodeFailureKind.BODY_SYNTAX
        assert exc_info.value.status == 400

    async def test_invalid_utf8_is_syntax(self) -> None:
        request = _request(body=b'{"name": "\xff"}', content_type="application/json")
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_json(Submission, request)
        assert exc_info.value.kind is DecodeFailureKind.BODY_SYNTAX

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "a"},
            {"name": 1, "email": "b"},
            {"name": None, "email": "b"},
            ["a", "b"],
            "a string",
        ],
    )
    async def test_wrong_shape_is_deserialization(self, payload) -> None:
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_json(Submission, _json_request(payload))
        assert exc_info.value.kind is DecodeFailureKind.BODY_DESERIALIZATION
        assert exc_info.value.status == 422

    @pytest.mark.parametrize("foo", ["1", True, 1.5])
    async def test_int_is_strict(self, foo) -> None:
        with pytest.raises(DecodeFailure):
            await decode_json(Params, _json_request({"foo": foo, "bar": "x"}))

    async def test_float_accepts_int(self) -> None:
        result = await decode_json(Measurement, _json_request({"value": 3}))
        assert result.value == 3.0

    async def test_bool_accepts_only_booleans(self) -> None:
        with pytest.raises(DecodeFailure):
            await decode_json(Measurement, _json_request({"value": 1.0, "enabled": 1}))

    async def test_null_optional(self) -> None:
        result = await decode_json(Params, _json_request({"foo": 1, "bar": "x", "third": None}))
        assert result.third is None

    async def test_disconnect_is_body_read(self) -> None:
        request = _request(body=b'{"name": "a"}', content_type="application/json", disconnect=True)
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_json(Submission, request)
        assert exc_info.value.kind is DecodeFailureKind.BODY_READ
        assert exc_info.value.status == 400

    async def test_oversize_body_is_413(self) -> None:
        request = _request(
            body=json.dumps({"name": "a" * 100, "email": "b"}).encode(),
            content_type="application/json",
            max_body_size=16,
        )
        with pytest.raises(DecodeFailure) as exc_info:
            await decode_json(Submission, request)
        assert exc_info.value.kind is DecodeFailureKind.BODY_READ
        assert exc_info.value.status == 413


# =============================================================================
# Dispatch on source
# =============================================================================


class TestDecode:
    async def test_infers_query_for_get(self) -> None:
        request = _request("GET", query=b"foo=1&bar=x")
        assert infer_source(request) is QUERY
        assert (await decode(Params, request)).foo == 1

    async def test_infers_json_from_content_type(self) -> None:
        request = _json_request({"name": "a", "email": "b"})
        assert infer_source(request) is JSON
        assert (await decode(Submission, request)).name == "a"

    async def test_infers_form_otherwise(self) -> None:
        request = _request(body=b"name=a&email=b")
        assert infer_source(request) is FORM

    async def test_explicit_source(self) -> None:
        request = _request("POST", query=b"foo=1&bar=x")
        assert (await decode(Params, request, QUERY)).bar == "x"

    async def test_failure_is_logged(self, caplog) -> None:
        caplog.set_level("INFO", logger="wren.decoding")
        with pytest.raises(DecodeFailure):
            await decode(Submission, _request(body=b"{}"), JSON)
        assert any("missing-content-type" in r.getMessage() for r in caplog.records)


class TestDecodeTarget:
    def test_bare_dataclass(self) -> None:
        target = decode_target(Params)
        assert target is not None
        assert target.cls is Params
        assert target.source is None
        assert target.accepts_failure is False

    def test_annotated_source(self) -> None:
        target = decode_target(Annotated[Submission, JSON])
        assert target is not None
        assert target.source is JSON

    def test_accepts_failure(self) -> None:
        target = decode_target(Annotated[Submission | DecodeFailure, JSON])
        assert target is not None
        assert target.cls is Submission
        assert target.accepts_failure is True

    def test_not_decodable(self) -> None:
        assert decode_target(str) is None
        assert decode_target(int | None) is None
        assert decode_target(Request) is None

    def test_is_decodable(self) -> None:
        assert is_decodable(Params) is True
        assert is_decodable(Params(foo=1, bar="x")) is False
        assert is_decodable(Response) is False

    def test_framework_types_are_not_decodable(self) -> None:
        for cls in (AppConfig, Request, Response, Redirect, Template, StaticMount):
            assert is_decodable(cls) is False, cls

    @pytest.mark.parametrize("module", ["wren.plugins.forms", "wren_extras", "wrenlib"])
    def test_user_dataclass_in_similar_module_is_decodable(self, module: str) -> None:
        cls = make_dataclass("Extra", [("x", int)], module=module)
        assert is_decodable(cls) is True
        assert decode_query(cls, {"x": "3"}).x == 3


class TestHelpers:
    @pytest.mark.parametrize(
        ("media_type", "expected"),
        [
            ("application/json", True),
            ("application/ld+json", True),
            ("text/json", False),
            ("", False),
        ],
    )
    def test_is_json_content_type(self, media_type: str, expected: bool) -> None:
        assert is_json_content_type(media_type) is expected

    def test_failure_status_override(self) -> None:
        failure = DecodeFailure(DecodeFailureKind.BODY_READ, "gone", source=JSON, status=413)
        assert failure.status == 413
        assert "body-read-error" in repr(failure)

"""Tests for the engine wire codec and request builders."""

from __future__ import annotations

import json

import pytest

from qixclient.qix.protocol import (
    GLOBAL_HANDLE,
    INVALID_JSON,
    INVALID_PROTOCOL,
    DecodeFailure,
    DecodeFailureKind,
    Method,
    RpcError,
    Success,
    build_clear_all,
    build_evaluate,
    build_get_all_sheets,
    build_get_field,
    build_get_hypercube_data,
    build_get_object,
    build_get_objects,
    build_open_doc,
    build_select_values,
    decode_reply,
    encode_request,
    page_window,
)
from qixclient.utils.exceptions import EncodingError


class TestEncodeRequest:
    def test_envelope_fields(self) -> None:
        frame = encode_request("OpenDoc", GLOBAL_HANDLE, [{"qDocName": "app-1"}], 1)
        assert json.loads(frame) == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "OpenDoc",
            "handle": -1,
            "params": [{"qDocName": "app-1"}],
        }

    def test_method_enum_is_sent_by_value(self) -> None:
        frame = encode_request(Method.GET_LAYOUT, 3, [], 7)
        data = json.loads(frame)
        assert data["method"] == "GetLayout"
        assert data["handle"] == 3
        assert data["params"] == []

    def test_params_tuple_becomes_list(self) -> None:
        data = json.loads(encode_request("Evaluate", 1, ("Sum(Sales)",), 2))
        assert data["params"] == ["Sum(Sales)"]

    def test_non_ascii_kept_verbatim(self) -> None:
        frame = encode_request("GetField", 1, ["Région"], 4)
        assert "Région" in frame

    def test_unserializable_param_raises_encoding_error(self) -> None:
        with pytest.raises(EncodingError) as exc_info:
            encode_request("GetField", 1, [object()], 5)
        assert exc_info.value.code == "ENCODING_ERROR"
        assert "GetField" in exc_info.value.message

    def test_nan_param_raises_encoding_error(self) -> None:
        with pytest.raises(EncodingError):
            encode_request("SelectValues", 1, [float("nan")], 6)


class TestDecodeReply:
    def test_success(self) -> None:
        reply = decode_reply('{"jsonrpc":"2.0","id":1,"result":{"qReturn":{"qHandle":1}}}')
        assert reply == Success(id=1, result={"qReturn": {"qHandle": 1}})

    def test_success_without_result_has_none(self) -> None:
        reply = decode_reply('{"jsonrpc":"2.0","id":2}')
        assert isinstance(reply, Success)
        assert reply.result is None

    def test_bytes_frame(self) -> None:
        reply = decode_reply(b'{"jsonrpc":"2.0","id":3,"result":{}}')
        assert reply == Success(id=3, result={})

    def test_error_with_parameter(self) -> None:
        reply = decode_reply(
            '{"jsonrpc":"2.0","id":4,"error":{"code":-32602,"message":"Invalid params","parameter":"qId"}}'
        )
        assert reply == RpcError(id=4, code=-32602, message="Invalid params", parameter="qId")

    def test_error_wins_over_result(self) -> None:
        reply = decode_reply('{"jsonrpc":"2.0","id":5,"result":{},"error":{"code":1,"message":"x"}}')
        assert isinstance(reply, RpcError)
        assert reply.code == 1

    def test_malformed_json(self) -> None:
        assert decode_reply("{not json") == INVALID_JSON
        assert decode_reply("") == INVALID_JSON

    def test_non_object_is_invalid_protocol(self) -> None:
        assert decode_reply("[1, 2]") == INVALID_PROTOCOL
        assert decode_reply("42") == INVALID_PROTOCOL

    def test_missing_version_keeps_id(self) -> None:
        reply = decode_reply('{"id":9,"result":{}}')
        assert reply == DecodeFailure(DecodeFailureKind.INVALID_PROTOCOL, id=9)

    def test_notification_without_id(self) -> None:
        reply = decode_reply('{"jsonrpc":"2.0","method":"OnConnected","params":{"qSessionState":"SESSION_CREATED"}}')
        assert reply == INVALID_PROTOCOL
        assert reply.id is None

    def test_boolean_id_is_invalid_protocol(self) -> None:
        assert decode_reply('{"jsonrpc":"2.0","id":true,"result":{}}') == INVALID_PROTOCOL
        assert decode_reply('{"jsonrpc":"2.0","id":false,"error":{"code":1,"message":"x"}}') == INVALID_PROTOCOL


class TestBuilders:
    def test_open_doc(self) -> None:
        assert build_open_doc("app-1") == [{"qDocName": "app-1"}]

    def test_get_object(self) -> None:
        assert build_get_object("abc") == [{"qId": "abc"}]

    def test_get_objects_filters_by_type(self) -> None:
        params = build_get_objects(("sheet",))
        assert params[0]["qOptions"]["qTypes"] == ["sheet"]

    def test_hypercube_default_window(self) -> None:
        assert build_get_hypercube_data() == [
            "/qHyperCubeDef",
            [{"qTop": 0, "qLeft": 0, "qHeight": 1000, "qWidth": 100}],
        ]

    def test_hypercube_pages_accept_plain_and_wire_keys(self) -> None:
        params = build_get_hypercube_data("/qHyperCubeDef", [{"top": 10, "height": 5}, {"qTop": 15, "qWidth": 3}])
        assert params[1] == [
            {"qTop": 10, "qLeft": 0, "qHeight": 5, "qWidth": 100},
            {"qTop": 15, "qLeft": 0, "qHeight": 1000, "qWidth": 3},
        ]

    def test_page_window(self) -> None:
        assert page_window(top=20, height=10) == {"qTop": 20, "qLeft": 0, "qHeight": 10, "qWidth": 100}

    def test_select_values_text_and_numbers(self) -> None:
        assert build_select_values(["Sweden", 2024, 1.5]) == [
            [
                {"qText": "Sweden"},
                {"qIsNumeric": True, "qNumber": 2024},
                {"qIsNumeric": True, "qNumber": 1.5},
            ],
            False,
        ]

    def test_select_values_bool_is_text(self) -> None:
        assert build_select_values([True], toggle=True) == [[{"qText": "True"}], True]

    def test_simple_builders(self) -> None:
        assert build_get_all_sheets() == []
        assert build_get_field("Country") == ["Country"]
        assert build_clear_all() == [False]
        assert build_evaluate("Sum(Sales)") == ["Sum(Sales)"]


def test_dotted_method_names_pass_through() -> None:
    frame = encode_request("Global.OpenDoc", 0, [{"qDocName": "app-123"}], 1)
    assert json.loads(frame) == {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "Global.OpenDoc",
        "handle": 0,
        "params": [{"qDocName": "app-123"}],
    }


@pytest.mark.parametrize("request_id,result", [(1, {}), (7, {"qReturn": {"qHandle": 3}}), (42, [1, "a", None])])
def test_success_reply_keeps_id_and_result(request_id, result) -> None:
    frame = json.dumps({"jsonrpc": "2.0", "id": request_id, "result": result})
    assert decode_reply(frame) == Success(id=request_id, result=result)

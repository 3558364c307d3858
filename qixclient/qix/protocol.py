"""JSON-RPC envelope codec for the Qlik engine (QIX) protocol.

Request::

    {"jsonrpc": "2.0", "id": 1, "method": "OpenDoc", "handle": -1, "params": [...]}

Replies share the request ``id`` and carry either ``result`` or ``error``.
Decoding never raises: it returns one of ``Success``, ``RpcError`` or
``DecodeFailure``.

Handles: ``-1`` addresses the Global object; document and generic-object
handles are integers handed out by the engine and threaded through later calls.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field

from qixclient.utils.exceptions import EncodingError

JSONRPC_VERSION = "2.0"
GLOBAL_HANDLE = -1

DEFAULT_HYPERCUBE_PATH = "/qHyperCubeDef"
DEFAULT_PAGE_TOP = 0
DEFAULT_PAGE_LEFT = 0
DEFAULT_PAGE_HEIGHT = 1000
DEFAULT_PAGE_WIDTH = 100


class Method(str, Enum):
    """Engine methods used by the document façade."""

    OPEN_DOC = "OpenDoc"
    GET_ALL_SHEETS = "GetAllSheets"
    GET_OBJECTS = "GetObjects"
    GET_OBJECT = "GetObject"
    GET_LAYOUT = "GetLayout"
    GET_HYPERCUBE_DATA = "GetHyperCubeData"
    GET_FIELD = "GetField"
    SELECT_VALUES = "SelectValues"
    CLEAR_ALL = "ClearAll"
    EVALUATE = "Evaluate"


class RequestMessage(BaseModel):
    """Outbound call envelope."""

    jsonrpc: str = JSONRPC_VERSION
    id: int
    method: str
    handle: int
    params: list[Any] = Field(default_factory=list)


@dataclass(frozen=True)
class Success:
    id: Any
    result: Any


@dataclass(frozen=True)
class RpcError:
    """Well-formed error envelope: the engine understood and rejected the call."""

    id: Any
    code: int | None
    message: str
    parameter: str | None = None


class DecodeFailureKind(str, Enum):
    INVALID_JSON = "invalid_json"
    INVALID_PROTOCOL = "invalid_protocol"


@dataclass(frozen=True)
class DecodeFailure:
    """Frame that is not a usable reply.

    ``id`` is set only when the frame parsed as a JSON object carrying an
    integer id, so the session can hand the failure to that caller.
    """

    kind: DecodeFailureKind
    id: int | None = None


Reply = Union[Success, RpcError, DecodeFailure]

INVALID_JSON = DecodeFailure(DecodeFailureKind.INVALID_JSON)
INVALID_PROTOCOL = DecodeFailure(DecodeFailureKind.INVALID_PROTOCOL)


def method_name(method: "str | Method") -> str:
    return method.value if isinstance(method, Method) else str(method)


def encode_request(method: "str | Method", handle: int, params: Sequence[Any], request_id: int) -> str:
    """Serialize one call into its JSON text frame.

    Raises:
        EncodingError: a param is not JSON-representable (objects, sets, NaN...).
    """
    name = method_name(method)
    message = RequestMessage(id=request_id, method=name, handle=handle, params=list(params))
    try:
        return json.dumps(
            message.model_dump(),
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as exc:
        raise EncodingError(name, str(exc)) from exc


def decode_reply(frame: str | bytes) -> Reply:
    """Decode one inbound frame into a reply variant."""
    try:
        data = json.loads(frame)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
        return INVALID_JSON

    if not isinstance(data, dict):
        return INVALID_PROTOCOL

    reply_id = data.get("id")
    if data.get("jsonrpc") != JSONRPC_VERSION or "id" not in data:
        if isinstance(reply_id, int) and not isinstance(reply_id, bool):
            return DecodeFailure(DecodeFailureKind.INVALID_PROTOCOL, id=reply_id)
        return INVALID_PROTOCOL
    if isinstance(reply_id, bool):
        return INVALID_PROTOCOL

    error = data.get("error")
    if error is not None:
        if not isinstance(error, dict):
            return RpcError(id=reply_id, code=None, message=str(error))
        parameter = error.get("parameter")
        return RpcError(
            id=reply_id,
            code=error.get("code"),
            message=str(error.get("message") or ""),
            parameter=str(parameter) if parameter is not None else None,
        )
    return Success(id=reply_id, result=data.get("result"))


# Request builders


def build_open_doc(document_id: str) -> list[dict[str, Any]]:
    return [{"qDocName": document_id}]


def build_get_all_sheets() -> list[Any]:
    return []


def build_get_objects(types: Sequence[str] = ("sheet",)) -> list[dict[str, Any]]:
    """Engine-native object listing filtered by type (used for sheets)."""
    return [
        {
            "qOptions": {
                "qTypes": list(types),
                "qIncludeSessionObjects": False,
                "qData": {},
            }
        }
    ]


def build_get_object(object_id: str) -> list[dict[str, Any]]:
    return [{"qId": object_id}]


def build_get_layout() -> list[Any]:
    return []


def page_window(
    top: int = DEFAULT_PAGE_TOP,
    left: int = DEFAULT_PAGE_LEFT,
    height: int = DEFAULT_PAGE_HEIGHT,
    width: int = DEFAULT_PAGE_WIDTH,
) -> dict[str, int]:
    return {"qTop": top, "qLeft": left, "qHeight": height, "qWidth": width}


def _normalize_page(page: Mapping[str, Any]) -> dict[str, int]:
    # Accept both wire keys (qTop) and plain keys (top); missing fields take defaults.
    def pick(wire: str, plain: str, default: int) -> int:
        value = page.get(wire, page.get(plain))
        return default if value is None else int(value)

    return page_window(
        top=pick("qTop", "top", DEFAULT_PAGE_TOP),
        left=pick("qLeft", "left", DEFAULT_PAGE_LEFT),
        height=pick("qHeight", "height", DEFAULT_PAGE_HEIGHT),
        width=pick("qWidth", "width", DEFAULT_PAGE_WIDTH),
    )


def build_get_hypercube_data(
    path: str = DEFAULT_HYPERCUBE_PATH,
    pages: Sequence[Mapping[str, Any]] | None = None,
) -> list[Any]:
    """Params for GetHyperCubeData; no pages means one default window."""
    if not pages:
        return [path, [page_window()]]
    return [path, [_normalize_page(page) for page in pages]]


def build_get_field(field_name: str) -> list[str]:
    return [field_name]


def build_select_values(values: Sequence[Any], toggle: bool = False) -> list[Any]:
    """Params for Field.SelectValues; numbers select by numeric value."""
    field_values = []
    for value in values:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            field_values.append({"qIsNumeric": True, "qNumber": value})
        else:
            field_values.append({"qText": str(value)})
    return [field_values, toggle]


def build_clear_all(locked_also: bool = False) -> list[bool]:
    return [locked_also]


def build_evaluate(expression: str) -> list[str]:
    return [expression]

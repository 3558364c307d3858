"""Engine client: wire codec, result extractors, session and document façade."""

from qixclient.qix.document import Document, open_document, require_handle, unwrap_reply
from qixclient.qix.protocol import (
    GLOBAL_HANDLE,
    DecodeFailure,
    DecodeFailureKind,
    Method,
    Reply,
    RpcError,
    Success,
    decode_reply,
    encode_request,
)
from qixclient.qix.session import Session, SessionState, call, connect, disconnect

__all__ = [
    "GLOBAL_HANDLE",
    "DecodeFailure",
    "DecodeFailureKind",
    "Document",
    "Method",
    "Reply",
    "RpcError",
    "Session",
    "SessionState",
    "Success",
    "call",
    "connect",
    "decode_reply",
    "disconnect",
    "encode_request",
    "open_document",
    "require_handle",
    "unwrap_reply",
]

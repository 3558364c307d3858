"""High-level operations on one opened engine document.

Every method is a short composition of ``Session.call`` and the extractors;
the façade holds no state beyond the session and the document handle.

    async with open_document("app-id", config) as doc:
        sheets = await doc.list_sheets()
        objects = await doc.list_objects(sheets[0]["id"])
        data = await doc.get_hypercube_data(objects[0]["id"])
        # {"headers": [...], "rows": [{"text": [...], "values": [...]}], ...}
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from loguru import logger

from qixclient.config.schema import Config
from qixclient.qix import extractors
from qixclient.qix.protocol import (
    GLOBAL_HANDLE,
    DecodeFailure,
    Method,
    RpcError,
    build_clear_all,
    build_evaluate,
    build_get_field,
    build_get_hypercube_data,
    build_get_layout,
    build_get_object,
    build_get_objects,
    build_open_doc,
    build_select_values,
    method_name,
    page_window,
)
from qixclient.qix.session import Session, connect
from qixclient.utils.exceptions import EngineError, ExtractionError, ProtocolError, ValidationError


def unwrap_reply(reply: Any, method: str | Method) -> Any:
    """Return a Success's result; raise for the other reply variants."""
    name = method_name(method)
    if isinstance(reply, RpcError):
        raise EngineError(name, reply.code, reply.message, parameter=reply.parameter, request_id=reply.id)
    if isinstance(reply, DecodeFailure):
        raise ProtocolError(name, reply.kind.value)
    return reply.result


def require_handle(result: Any, method: str | Method) -> int:
    handle = extractors.extract_handle(result)
    if isinstance(handle, extractors.NoHandleFound):
        raise ExtractionError("handle", method_name(method))
    return handle


def _positive(value: int | None, default: int, field: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{field} must be a positive integer, got {value!r}", field=field)
    return value


class Document:
    """An opened document bound to its session."""

    def __init__(self, session: Session, handle: int, document_id: str | None = None):
        self.session = session
        self.handle = handle
        self.document_id = document_id or session.document_id

    @classmethod
    async def open(
        cls,
        session: Session,
        document_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> "Document":
        """OpenDoc on the Global handle and wrap the returned handle."""
        doc_id = document_id or session.document_id
        result = await cls._call(session, Method.OPEN_DOC, GLOBAL_HANDLE, build_open_doc(doc_id), timeout)
        handle = require_handle(result, Method.OPEN_DOC)
        logger.debug(f"Opened document {doc_id} as handle {handle}")
        return cls(session, handle, doc_id)

    @staticmethod
    async def _call(
        session: Session,
        method: Method,
        handle: int,
        params: Sequence[Any],
        timeout: float | None,
    ) -> Any:
        reply = await session.call(method, handle, params, timeout=timeout)
        return unwrap_reply(reply, method)

    @property
    def _engine(self):
        return self.session.config.engine

    async def list_sheets(self, *, timeout: float | None = None) -> list[dict[str, Any]]:
        """Sheets as ``{"id", "title", "raw"}``."""
        result = await self._call(self.session, Method.GET_OBJECTS, self.handle, build_get_objects(("sheet",)), timeout)
        return [extractors.sheet_view(node) for node in extractors.extract_sheets(result)]

    async def get_object(self, object_id: str, *, timeout: float | None = None) -> int:
        result = await self._call(self.session, Method.GET_OBJECT, self.handle, build_get_object(object_id), timeout)
        return require_handle(result, Method.GET_OBJECT)

    async def get_layout(self, object_handle: int, *, timeout: float | None = None) -> dict[str, Any]:
        """Layout of an already fetched object, ``qLayout`` unwrapped."""
        result = await self._call(self.session, Method.GET_LAYOUT, object_handle, build_get_layout(), timeout)
        return extractors.extract_layout(result)

    async def describe_object(self, object_id: str, *, timeout: float | None = None) -> dict[str, Any]:
        """``{"object_id", "object_type", "raw"}`` for an object id."""
        object_handle = await self.get_object(object_id, timeout=timeout)
        return extractors.layout_view(await self.get_layout(object_handle, timeout=timeout))

    async def list_objects(self, sheet_id: str, *, timeout: float | None = None) -> list[dict[str, Any]]:
        """Child objects of a sheet as ``{"id", "type", "raw"}``."""
        sheet_handle = await self.get_object(sheet_id, timeout=timeout)
        layout = await self.get_layout(sheet_handle, timeout=timeout)
        return [extractors.child_view(node) for node in extractors.extract_child_objects(layout)]

    async def fetch_hypercube_pages(
        self,
        object_handle: int,
        pages: Sequence[Mapping[str, Any]] | None = None,
        *,
        path: str | None = None,
        timeout: float | None = None,
    ) -> list[list[dict[str, Any]]]:
        """One GetHyperCubeData over the given windows, rows concatenated."""
        params = build_get_hypercube_data(path or self._engine.hypercube_path, pages)
        result = await self._call(self.session, Method.GET_HYPERCUBE_DATA, object_handle, params, timeout)
        return extractors.extract_hypercube_data(result)

    async def get_hypercube_data(
        self,
        object_id: str,
        *,
        page_size: int | None = None,
        max_rows: int | None = None,
        path: str | None = None,
        raw: bool = False,
        timeout: float | None = None,
    ) -> dict[str, Any] | list[list[dict[str, Any]]]:
        """Page through an object's hypercube.

        Stops at the first empty or short page, or once ``max_rows`` rows are
        in. Returns raw rows when ``raw`` is set, otherwise the formatted
        ``{"headers", "rows", "total_rows", "truncated"}`` mapping.
        """
        page_size = _positive(page_size, self._engine.page_height, "page_size")
        max_rows = _positive(max_rows, self._engine.max_rows, "max_rows")
        width = self._engine.page_width

        object_handle = await self.get_object(object_id, timeout=timeout)
        layout = await self.get_layout(object_handle, timeout=timeout)

        rows: list[list[dict[str, Any]]] = []
        exhausted = False
        while len(rows) < max_rows:
            height = min(page_size, max_rows - len(rows))
            window = page_window(top=len(rows), height=height, width=width)
            page = await self.fetch_hypercube_pages(object_handle, [window], path=path, timeout=timeout)
            rows.extend(page)
            if len(page) < height:
                exhausted = True
                break

        if raw:
            return rows
        total = extractors.hypercube_row_count(layout)
        if total is not None:
            truncated = total > len(rows)
        else:
            truncated = not exhausted
        return extractors.format_hypercube_data(rows, layout, truncated=truncated)

    async def stream_hypercube_data(
        self,
        object_id: str,
        *,
        page_size: int | None = None,
        path: str | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[list[list[dict[str, Any]]]]:
        """Yield one page of raw rows at a time until a page comes back empty."""
        page_size = _positive(page_size, self._engine.page_height, "page_size")
        object_handle = await self.get_object(object_id, timeout=timeout)
        top = 0
        while True:
            window = page_window(top=top, height=page_size, width=self._engine.page_width)
            page = await self.fetch_hypercube_pages(object_handle, [window], path=path, timeout=timeout)
            if not page:
                return
            yield page
            top += len(page)

    async def select_values(
        self,
        field_name: str,
        values: Sequence[Any],
        *,
        toggle: bool = False,
        timeout: float | None = None,
    ) -> bool:
        """Select ``values`` in ``field_name``; returns the engine's success flag."""
        field_result = await self._call(self.session, Method.GET_FIELD, self.handle, build_get_field(field_name), timeout)
        field_handle = require_handle(field_result, Method.GET_FIELD)
        result = await self._call(
            self.session, Method.SELECT_VALUES, field_handle, build_select_values(values, toggle), timeout
        )
        return extractors.extract_success_flag(result)

    async def clear_selections(self, *, locked_also: bool = False, timeout: float | None = None) -> bool:
        result = await self._call(self.session, Method.CLEAR_ALL, self.handle, build_clear_all(locked_also), timeout)
        return extractors.extract_success_flag(result)

    async def evaluate(self, expression: str, *, timeout: float | None = None) -> Any:
        result = await self._call(self.session, Method.EVALUATE, self.handle, build_evaluate(expression), timeout)
        return extractors.extract_evaluation(result)


@asynccontextmanager
async def open_document(
    document_id: str,
    config: Config | None,
    *,
    timeout: float | None = None,
    call_timeout: float | None = None,
) -> AsyncIterator[Document]:
    """Connect, open ``document_id`` and disconnect on exit."""
    session = await connect(document_id, config, timeout=timeout, call_timeout=call_timeout)
    try:
        yield await Document.open(session)
    finally:
        await session.disconnect()

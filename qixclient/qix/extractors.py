"""Typed accessors for the engine's schema-free result trees.

Every extractor accepts whatever ``Success.result`` held (possibly ``None``)
and never raises on absent fields: missing lists come back empty and a
missing handle comes back as ``NO_HANDLE``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class NoHandleFound:
    """The result carried no ``qReturn.qHandle``."""

    reason: str = "no handle in result"


NO_HANDLE = NoHandleFound()


def _get_path(node: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def extract_handle(result: Any) -> int | NoHandleFound:
    """Handle from an OpenDoc / GetObject / GetField result."""
    handle = _get_path(result, "qReturn", "qHandle")
    if isinstance(handle, int) and not isinstance(handle, bool):
        return handle
    return NO_HANDLE


def extract_sheets(result: Any) -> list[dict[str, Any]]:
    """Sheet nodes from ``qList``, unmodified."""
    return _as_list(_get_path(result, "qList"))


def extract_layout(result: Any) -> dict[str, Any]:
    """Unwrap ``qLayout``; a bare layout is passed through."""
    if not isinstance(result, dict):
        return {}
    layout = result.get("qLayout")
    if isinstance(layout, dict):
        return layout
    return result


def extract_child_objects(result: Any) -> list[dict[str, Any]]:
    """Child items listed under a layout's ``qChildList``."""
    return _as_list(_get_path(extract_layout(result), "qChildList", "qItems"))


def extract_hypercube_data(result: Any) -> list[list[dict[str, Any]]]:
    """Rows of every returned data page, concatenated in page order."""
    rows: list[list[dict[str, Any]]] = []
    for page in _as_list(_get_path(result, "qDataPages")):
        rows.extend(_as_list(_get_path(page, "qMatrix")))
    return rows


def extract_evaluation(result: Any) -> Any:
    """Scalar from an Evaluate / EvaluateEx result."""
    if isinstance(result, dict):
        if "qReturn" in result:
            return result["qReturn"]
        value = result.get("qValue")
        if isinstance(value, dict):
            num = numeric_value(value)
            return num if num is not None else value.get("qText")
        return value
    return result


def extract_success_flag(result: Any) -> bool:
    """Boolean ``qReturn`` of Select*/Clear* calls; absent means success."""
    flag = _get_path(result, "qReturn")
    return flag if isinstance(flag, bool) else True


# Views


def sheet_view(node: dict[str, Any]) -> dict[str, Any]:
    title = _get_path(node, "qMeta", "title") or _get_path(node, "qData", "title") or ""
    return {"id": _get_path(node, "qInfo", "qId"), "title": title, "raw": node}


def child_view(node: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": _get_path(node, "qInfo", "qId"),
        "type": _get_path(node, "qInfo", "qType"),
        "raw": node,
    }


def layout_view(layout: dict[str, Any]) -> dict[str, Any]:
    return {
        "object_id": _get_path(layout, "qInfo", "qId"),
        "object_type": _get_path(layout, "qInfo", "qType"),
        "raw": layout,
    }


# Hypercube formatting


def numeric_value(cell: Any) -> float | int | None:
    num = _get_path(cell, "qNum")
    if isinstance(num, bool) or not isinstance(num, (int, float)):
        return None
    if isinstance(num, float) and math.isnan(num):
        return None
    return num


def cell_text(cell: Any) -> str:
    text = _get_path(cell, "qText")
    if isinstance(text, str):
        return text
    num = numeric_value(cell)
    return "" if num is None else str(num)


def hypercube_headers(layout: Any) -> tuple[list[str], int]:
    """Dimension titles then measure titles, plus the dimension count."""
    hypercube = _get_path(extract_layout(layout), "qHyperCube")
    dimensions = _as_list(_get_path(hypercube, "qDimensionInfo"))
    measures = _as_list(_get_path(hypercube, "qMeasureInfo"))
    headers: list[str] = []
    for dim in dimensions:
        title = _get_path(dim, "qFallbackTitle")
        if not title:
            group = _as_list(_get_path(dim, "qGroupFieldDefs"))
            title = group[0] if group else ""
        headers.append(str(title))
    for measure in measures:
        headers.append(str(_get_path(measure, "qFallbackTitle") or "Measure"))
    return headers, len(dimensions)


def hypercube_row_count(layout: Any) -> int | None:
    """Total rows the engine reports for the cube (``qSize.qcy``), if any."""
    count = _get_path(extract_layout(layout), "qHyperCube", "qSize", "qcy")
    if isinstance(count, int) and not isinstance(count, bool):
        return count
    return None


def format_hypercube_data(
    rows: list[list[dict[str, Any]]],
    layout: Any,
    *,
    truncated: bool = False,
) -> dict[str, Any]:
    """Zip row cells against the layout's titles.

    Each row has ``text`` (display text per cell) and ``values`` (same, except
    measure cells exposing a number carry that number instead).
    """
    headers, dimension_count = hypercube_headers(layout)
    formatted = []
    for row in rows:
        text = [cell_text(cell) for cell in row]
        values: list[Any] = list(text)
        for position, cell in enumerate(row):
            if position < dimension_count:
                continue
            num = numeric_value(cell)
            if num is not None:
                values[position] = num
        formatted.append({"text": text, "values": values})
    return {
        "headers": headers,
        "rows": formatted,
        "total_rows": len(rows),
        "truncated": truncated,
    }

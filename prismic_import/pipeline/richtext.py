"""Generic traversal of Prismic rich text.

Rich text is a list of element dicts tagged by ``type``. Some elements carry
a ``spans`` list of inline ranges, also tagged by ``type``. Rewrite functions
return one value to keep/replace, a list of values to insert, or ``None`` to
remove.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any

RichText = list[dict[str, Any]]
Rewrite = Callable[[dict[str, Any]], Any]


def _identity(value: Any) -> Any:
    return value


def _as_list(value: Any) -> list[Any]:
    values = value if isinstance(value, (list, tuple)) else [value]
    return [v for v in values if v is not None]


def map_rich_text(
    *,
    element: Rewrite = _identity,
    span: Rewrite = _identity,
) -> Callable[[Sequence[dict[str, Any]]], RichText]:
    """Build a content mapper applying ``span`` then ``element`` rewrites."""

    def _map(content: Sequence[dict[str, Any]]) -> RichText:
        out: RichText = []
        for el in content:
            # Only elements that already have spans get them rewritten
            if "spans" in el and el["spans"] is not None:
                spans = [s for sp in el["spans"] for s in _as_list(span(sp))]
                el = {**el, "spans": spans}
            out.extend(_as_list(element(el)))
        return out

    return _map


def _image_url(el: dict[str, Any]) -> Any:
    return el.get("url") if el.get("type") == "image" else None


_collect_image_urls = map_rich_text(element=_image_url)


def find_assets_in_rich_text(content: Iterable[dict[str, Any]] | None) -> list[str]:
    """Return the ``url`` of every image element, in document order."""
    if not content:
        return []
    return [str(url) for url in _collect_image_urls(list(content))]

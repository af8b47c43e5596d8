"""Unit tests for the rich text mapper: pure functions, no I/O."""

from __future__ import annotations

import copy

from prismic_import.pipeline.richtext import find_assets_in_rich_text, map_rich_text

CONTENT = [
    {"type": "heading1", "text": "Chapter one", "spans": []},
    {
        "type": "paragraph",
        "text": "Read the next chapter",
        "spans": [
            {"type": "strong", "start": 0, "end": 4},
            {"type": "hyperlink", "start": 9, "end": 21, "data": {"url": "two.html"}},
        ],
    },
    {"type": "image", "url": "img/cover.png", "alt": "cover"},
]


class TestMapRichText:
    def test_default_is_identity(self):
        assert map_rich_text()(CONTENT) == CONTENT

    def test_does_not_mutate_input(self):
        before = copy.deepcopy(CONTENT)
        map_rich_text(
            element=lambda el: {**el, "seen": True},
            span=lambda sp: {**sp, "seen": True},
        )(CONTENT)
        assert CONTENT == before

    def test_element_removal(self):
        out = map_rich_text(element=lambda el: None if el["type"] == "image" else el)(CONTENT)
        assert [el["type"] for el in out] == ["heading1", "paragraph"]

    def test_element_insertion_keeps_order(self):
        def _add_divider(el):
            if el["type"] == "heading1":
                return [el, {"type": "paragraph", "text": "---"}]
            return el

        out = map_rich_text(element=_add_divider)(CONTENT)
        assert [el.get("text") for el in out][:3] == ["Chapter one", "---", "Read the next chapter"]
        assert len(out) == len(CONTENT) + 1

    def test_span_rewrite_runs_before_element(self):
        seen_spans: list[list[dict]] = []

        def _element(el):
            if "spans" in el:
                seen_spans.append(el["spans"])
            return el

        map_rich_text(
            element=_element,
            span=lambda sp: None if sp["type"] == "strong" else sp,
        )(CONTENT)
        assert [s["type"] for s in seen_spans[1]] == ["hyperlink"]

    def test_elements_without_spans_never_gain_them(self):
        out = map_rich_text(span=lambda sp: [sp, sp])(CONTENT)
        assert "spans" not in out[2]
        assert len(out[1]["spans"]) == 4

    def test_empty_content(self):
        assert map_rich_text()([]) == []


class TestFindAssetsInRichText:
    def test_collects_image_urls_in_order(self):
        content = [*CONTENT, {"type": "image", "url": "https://cdn.test/b.jpg"}]
        assert find_assets_in_rich_text(content) == ["img/cover.png", "https://cdn.test/b.jpg"]

    def test_none_content(self):
        assert find_assets_in_rich_text(None) == []

"""Test decorative filtering, the bounds audit and auto-scaling."""

import copy

import pytest

from slideshot.config import Thresholds
from slideshot.errors import EmptyInputError
from slideshot.models import Box, DrawingPrimitive, DrawingStyles, ParsedElement, SideBorder
from slideshot.postprocess import (
    audit_bounds,
    auto_scale,
    calculate_scale,
    content_envelope,
    decorative_reason,
    filter_decorative,
    is_light_gray,
    violated_edges,
)

SLIDE_W, SLIDE_H = 13.333, 7.5


def primitive(id, type="rect", box=(0, 0, 1, 1), children=None, text=None, tag="div", **kwargs):
    return DrawingPrimitive(id=id, type=type, position=Box(*box), children=children or [],
                            text=text, tag_name=tag, **kwargs)


def text_leaves(primitives):
    return sorted(p.id for root in primitives for p in root.iter_tree() if p.has_text())


class TestFilterDecorative:

    def test_hard_oversized_wrapper_is_removed_and_child_hoisted(self):
        paragraph = primitive("p1", "text", box=(0, 0, 5.2, 0.3), text="hi", tag="p")
        wrapper = primitive("wrap", box=(0, 0, 20.83, 20.83), children=[paragraph])
        result = filter_decorative([wrapper], SLIDE_W, SLIDE_H)
        assert result == [paragraph]
        assert result[0].type == "text"
        assert result[0].text == "hi"

    def test_wrapper_over_one_and_a_half_slides(self):
        child = primitive("c", box=(1, 1, 2, 2))
        wrapper = primitive("wrap", box=(0, 0, SLIDE_W * 1.6, 5), children=[child])
        assert filter_decorative([wrapper], SLIDE_W, SLIDE_H) == [child]

    def test_childless_shape_between_limits_is_kept(self):
        shape = primitive("big", box=(0, 0, SLIDE_W * 1.6, 5))
        assert filter_decorative([shape], SLIDE_W, SLIDE_H) == [shape]

    def test_document_wrappers_are_always_removed(self):
        child = primitive("c")
        body = primitive("body", box=(0, 0, 1, 1), children=[child], tag="body")
        html = primitive("html", box=(0, 0, 1, 1), children=[body], tag="html")
        assert filter_decorative([html], SLIDE_W, SLIDE_H) == [child]

    def test_hoisted_children_keep_their_position_in_sibling_order(self):
        first = primitive("first")
        inner = [primitive("a"), primitive("b")]
        wrapper = primitive("wrap", box=(0, 0, 30, 30), children=inner)
        last = primitive("last")
        result = filter_decorative([first, wrapper, last], SLIDE_W, SLIDE_H)
        assert [p.id for p in result] == ["first", "a", "b", "last"]

    def test_nested_wrappers_collapse(self):
        leaf = primitive("leaf", "text", text="deep", tag="p")
        middle = primitive("middle", box=(0, 0, 30, 30), children=[leaf])
        outer = primitive("outer", box=(0, 0, 40, 40), children=[middle])
        assert filter_decorative([outer], SLIDE_W, SLIDE_H) == [leaf]

    def test_text_bearing_leaves_survive(self):
        tree = primitive("root", box=(0, 0, 30, 30), children=[
            primitive("t1", "text", text="one", tag="p"),
            primitive("card", box=(0, 0, 25, 25), children=[primitive("t2", "text", text="two", tag="p")]),
            primitive("huge-title", "text", box=(0, 0, 30, 2), text="big", tag="h1"),
        ])
        before = text_leaves([copy.deepcopy(tree)])
        after = text_leaves(filter_decorative([tree], SLIDE_W, SLIDE_H))
        assert after == before

    def test_tables_are_never_removed(self):
        table = primitive("t", "table", box=(0, 0, 30, 30))
        assert filter_decorative([table], SLIDE_W, SLIDE_H) == [table]

    def test_light_gray_backdrop_is_removed(self):
        card = primitive("card", box=(1, 1, 3, 2), styles=DrawingStyles(fill="FFFFFF"))
        backdrop = primitive("bg", "roundRect", box=(0, 0, SLIDE_W, SLIDE_H), corner_radius_px=600,
                             styles=DrawingStyles(fill="F0F0F0"), children=[card])
        removed = []
        assert filter_decorative([backdrop], SLIDE_W, SLIDE_H, removed=removed) == [card]
        assert removed[0][0].id == "bg"
        assert "backdrop" in removed[0][1]
        assert backdrop.type == "skip"

    def test_colored_backdrop_is_kept(self):
        backdrop = primitive("bg", "roundRect", box=(0, 0, SLIDE_W, SLIDE_H), corner_radius_px=600,
                             styles=DrawingStyles(fill="3498DB"))
        assert filter_decorative([backdrop], SLIDE_W, SLIDE_H) == [backdrop]

    def test_filter_is_idempotent(self):
        tree = primitive("root", box=(0, 0, 30, 30), children=[
            primitive("t1", "text", text="one", tag="p"),
            primitive("box", box=(1, 1, 2, 2)),
        ])
        once = filter_decorative([tree], SLIDE_W, SLIDE_H)
        snapshot = copy.deepcopy(once)
        assert filter_decorative(once, SLIDE_W, SLIDE_H) == snapshot

    def test_everything_removed_raises(self):
        with pytest.raises(EmptyInputError):
            filter_decorative([primitive("huge", box=(0, 0, 40, 40))], SLIDE_W, SLIDE_H)

    def test_custom_thresholds(self):
        shape = primitive("wide", box=(0, 0, SLIDE_W * 2.5, 1))
        assert decorative_reason(shape, SLIDE_W, SLIDE_H, Thresholds()) is not None
        assert decorative_reason(shape, SLIDE_W, SLIDE_H, Thresholds(hard_oversize_factor=3.0)) is None


@pytest.mark.parametrize("hex_color, expected", [
    ("F0F0F0", True),
    ("E9ECEF", True),
    ("FFFFFF", True),
    ("C8C8C8", True),
    ("C0C0C0", False),
    ("FFE4E1", False),
    ("3498DB", False),
    (None, False),
])
def test_is_light_gray(hex_color, expected):
    assert is_light_gray(hex_color, Thresholds()) is expected


class TestBoundsAudit:

    @pytest.mark.parametrize("box, edges", [
        ((0, 0, 13.333, 7.5), []),
        ((-0.5, 0, 1, 1), ["left"]),
        ((0, -1, 1, 1), ["top"]),
        ((13, 0, 1, 1), ["right"]),
        ((0, 7, 1, 1), ["bottom"]),
        ((-1, -1, 20, 20), ["left", "top", "right", "bottom"]),
        ((13.34, 0, 0, 0), []),
    ])
    def test_violated_edges(self, box, edges):
        assert violated_edges(Box(*box), SLIDE_W, SLIDE_H) == edges

    def test_audit_reports_nested_elements(self):
        inner = ParsedElement(id="inner", tag_name="span", position=Box(12, 7, 2, 1))
        outer = ParsedElement(id="outer", tag_name="div", position=Box(0, 0, 2, 2), children=[inner])
        violations = audit_bounds([outer], SLIDE_W, SLIDE_H)
        assert len(violations) == 1
        assert violations[0].id == "inner"
        assert violations[0].edges == ["right", "bottom"]
        assert "span#inner" in violations[0].describe()

    def test_audit_does_not_modify_tree(self):
        element = ParsedElement(id="e", tag_name="div", position=Box(-2, 0, 1, 1))
        audit_bounds([element], SLIDE_W, SLIDE_H)
        assert element.position == Box(-2, 0, 1, 1)


class TestAutoScale:

    def test_calculate_scale_overflow(self):
        assert calculate_scale(20, 10, SLIDE_W, SLIDE_H) == pytest.approx(0.667, abs=0.001)

    def test_calculate_scale_fits(self):
        assert calculate_scale(10, 5, SLIDE_W, SLIDE_H) == 1
        assert calculate_scale(SLIDE_W, SLIDE_H, SLIDE_W, SLIDE_H) == 1

    def test_calculate_scale_clamps_to_minimum(self):
        assert calculate_scale(100, 100, SLIDE_W, SLIDE_H) == 0.5
        assert calculate_scale(100, 100, SLIDE_W, SLIDE_H, min_scale=0.25) == 0.25

    def test_content_envelope(self):
        tree = [primitive("a", box=(1, 1, 2, 2), children=[primitive("b", box=(4, 0.5, 1, 1))])]
        assert content_envelope(tree) == Box(1, 0.5, 4, 2.5)
        assert content_envelope([]) is None

    def test_fitting_content_is_untouched(self):
        tree = [primitive("a", box=(1, 1, 2, 2), styles=DrawingStyles(font_size=18), text="x")]
        before = copy.deepcopy(tree)
        assert auto_scale(tree, SLIDE_W, SLIDE_H) == 1
        assert tree == before

    def test_overflowing_content_scales_uniformly(self):
        left = primitive("left", box=(0, 0, 10, 5), styles=DrawingStyles(font_size=24), text="Title")
        right = primitive("right", box=(10, 5, 10, 5))
        scale = auto_scale([left, right], SLIDE_W, SLIDE_H)
        assert scale == pytest.approx(SLIDE_W / 20)
        assert left.position.x == pytest.approx(0)
        assert left.position.width == pytest.approx(10 * scale)
        assert right.position.x == pytest.approx(10 * scale)
        assert right.position.bottom == pytest.approx(10 * scale)
        assert left.styles.font_size == pytest.approx(round(24 * scale, 1))
        assert not violated_edges(content_envelope([left, right]), SLIDE_W, SLIDE_H)

    def test_scaling_is_about_envelope_origin(self):
        shape = primitive("s", box=(2, 1, 30, 10))
        scale = auto_scale([shape], SLIDE_W, SLIDE_H)
        assert shape.position.x == pytest.approx(2)
        assert shape.position.y == pytest.approx(1)
        assert shape.position.width == pytest.approx(30 * scale)

    def test_font_floor(self):
        tiny = primitive("t", "text", box=(0, 0, 40, 40), text="fine print", styles=DrawingStyles(font_size=8))
        auto_scale([tiny], SLIDE_W, SLIDE_H)
        assert tiny.styles.font_size == 6.0

    def test_text_without_font_size_uses_default(self):
        label = primitive("l", "text", box=(0, 0, 20, 10), text="label")
        scale = auto_scale([label], SLIDE_W, SLIDE_H)
        assert label.styles.font_size == pytest.approx(round(14 * scale, 1))

    def test_side_borders_follow_their_shape(self):
        border = SideBorder("bottom", "FF0000", 3.0, x1=0, y1=10, x2=20, y2=10)
        shape = primitive("card", box=(0, 0, 20, 10), styles=DrawingStyles(side_borders=[border]))
        scale = auto_scale([shape], SLIDE_W, SLIDE_H)
        assert border.x2 == pytest.approx(shape.position.right)
        assert border.y1 == pytest.approx(10 * scale)

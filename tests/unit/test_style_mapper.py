"""Test CSS to drawing-attribute mapping."""

import pytest

from slideshot.models import Box, DrawingPrimitive, ParsedElement
from slideshot.style_mapper import (
    StyleMapper,
    convert_border_style,
    convert_border_width,
    convert_font_family,
    convert_font_size,
    convert_text_align,
    is_bold,
    map_borders,
    map_cell_styles,
    map_styles,
    parse_gradient,
)


def element(styles, box=(1, 1, 2, 1), tag="div"):
    return ParsedElement(id="el", tag_name=tag, styles=styles, position=Box(*box))


def border(width="4px", style="solid", color="red", sides=("top", "right", "bottom", "left")):
    styles = {}
    for side in sides:
        styles[f"border-{side}-width"] = width
        styles[f"border-{side}-style"] = style
        styles[f"border-{side}-color"] = color
    return styles


@pytest.mark.parametrize("css, points", [
    ("16px", 12.0),
    ("32px", 24.0),
    ("13px", 10.0),
    ("", None),
    ("auto", None),
])
def test_convert_font_size(css, points):
    assert convert_font_size(css) == points


@pytest.mark.parametrize("css, points", [
    ("1px", 1.0),
    ("0.5px", 1.0),
    ("4px", 3.0),
    ("8px", 6.0),
])
def test_convert_border_width_has_1pt_floor(css, points):
    assert convert_border_width(css) == points


@pytest.mark.parametrize("css, align", [
    ("center", "center"),
    ("start", "left"),
    ("end", "right"),
    ("-webkit-center", "center"),
    ("justify", "justify"),
    ("inherit", "left"),
    (None, "left"),
])
def test_convert_text_align(css, align):
    assert convert_text_align(css) == align


def test_convert_font_family_takes_first_family():
    assert convert_font_family('"Helvetica Neue", Arial, sans-serif') == "Helvetica Neue"
    assert convert_font_family("") is None


@pytest.mark.parametrize("weight, bold", [("700", True), ("600", True), ("500", False), ("bold", True), ("normal", False)])
def test_is_bold(weight, bold):
    assert is_bold(weight) is bold


def test_convert_border_style():
    assert convert_border_style("dashed") == "dash"
    assert convert_border_style("dotted") == "dot"
    assert convert_border_style("double") == "solid"


class TestGradients:

    def test_linear_direction_keyword(self):
        gradient = parse_gradient("linear-gradient(to right, red, blue)")
        assert gradient.kind == "linear"
        assert gradient.angle_degrees == 90
        assert [(s.color, s.position) for s in gradient.stops] == [("FF0000", 0), ("0000FF", 100)]

    def test_linear_explicit_angle_and_even_stops(self):
        gradient = parse_gradient("linear-gradient(135deg, #667eea 0%, rgb(255, 255, 255) 20%, #764ba2 100%)")
        assert gradient.angle_degrees == 135
        assert [s.color for s in gradient.stops] == ["667EEA", "FFFFFF", "764BA2"]
        assert [s.position for s in gradient.stops] == [0, 50, 100]

    def test_turn_units(self):
        assert parse_gradient("linear-gradient(0.25turn, red, blue)").angle_degrees == pytest.approx(90)

    def test_default_angle_is_zero(self):
        assert parse_gradient("linear-gradient(red, blue)").angle_degrees == 0

    def test_radial(self):
        gradient = parse_gradient("radial-gradient(circle, #fff, #000)")
        assert gradient.kind == "radial"
        assert len(gradient.stops) == 2

    def test_not_a_gradient(self):
        assert parse_gradient("url(bg.png)") is None
        assert parse_gradient(None) is None


class TestBorders:

    def test_single_side_stays_single_side(self):
        line, sides = map_borders(border(sides=("bottom",)), Box(1, 1, 2, 1))
        assert line is None
        assert len(sides) == 1
        bottom = sides[0]
        assert bottom.side == "bottom"
        assert bottom.color == "FF0000"
        assert bottom.width == 3.0
        assert (bottom.x1, bottom.y1, bottom.x2, bottom.y2) == (1, 2, 3, 2)

    def test_uniform_border_is_one_outline(self):
        line, sides = map_borders(border(width="2px", style="dashed", color="#333"), Box(0, 0, 1, 1))
        assert sides == []
        assert line.color == "333333"
        assert line.dash_type == "dash"
        assert line.width == 2.0

    def test_mixed_sides_stay_independent(self):
        styles = border(sides=("top", "right", "bottom"))
        styles.update(border(color="blue", sides=("left",)))
        line, sides = map_borders(styles, Box(0, 0, 1, 1))
        assert line is None
        assert [s.side for s in sides] == ["top", "right", "bottom", "left"]
        assert sides[3].color == "0000FF"

    def test_invisible_sides_are_ignored(self):
        styles = border(sides=("top",))
        styles.update(border(style="none", sides=("bottom",)))
        styles.update(border(color="transparent", sides=("left",)))
        styles.update(border(width="0", sides=("right",)))
        _, sides = map_borders(styles, Box(0, 0, 1, 1))
        assert [s.side for s in sides] == ["top"]


class TestMapStyles:

    def test_scenario_bottom_border_only(self):
        styles = map_styles(element(border(sides=("bottom",))))
        assert styles.line is None
        assert [s.side for s in styles.side_borders] == ["bottom"]

    def test_fill_text_and_font(self):
        styles = map_styles(element({
            "background-color": "#f8f9fa",
            "color": "rgb(33, 37, 41)",
            "font-size": "24px",
            "font-family": "Georgia, serif",
            "font-weight": "700",
            "font-style": "italic",
            "text-decoration": "underline",
            "text-align": "center",
        }))
        assert styles.fill == "F8F9FA"
        assert styles.fill_opacity is None
        assert styles.color == "212529"
        assert styles.font_size == 18.0
        assert styles.font_face == "Georgia"
        assert styles.bold and styles.italic and styles.underline
        assert styles.align == "center"

    def test_alpha_background_sets_opacity(self):
        styles = map_styles(element({"background-color": "rgba(255, 0, 0, 0.5)"}))
        assert styles.fill == "FF0000"
        assert styles.fill_opacity == 0.5

    def test_element_opacity_applies_to_fill(self):
        styles = map_styles(element({"background-color": "red", "opacity": "0.3"}))
        assert styles.fill_opacity == 0.3

    def test_background_alpha_and_element_opacity_compound(self):
        styles = map_styles(element({"background-color": "rgba(0, 0, 255, 0.5)", "opacity": "0.5"}))
        assert styles.fill_opacity == 0.25

    def test_transparent_background_has_no_fill(self):
        assert map_styles(element({"background-color": "transparent"})).fill is None

    def test_background_shorthand_gradient(self):
        styles = map_styles(element({"background": "linear-gradient(to bottom, #fff, #000)"}))
        assert styles.gradient.angle_degrees == 180
        assert styles.fill is None

    def test_triangle_fill_is_border_color(self):
        styles = border(width="50px", color="transparent")
        styles["border-bottom-color"] = "#e74c3c"
        mapped = map_styles(element(styles, box=(0, 0, 1, 1)), "triangle")
        assert mapped.fill == "E74C3C"
        assert mapped.line is None
        assert mapped.side_borders == []

    def test_line_gets_default_stroke(self):
        mapped = map_styles(element({}, tag="hr"), "line")
        assert mapped.line.color == "808080"
        assert mapped.line.width == 1.0

    def test_line_uses_visible_border(self):
        mapped = map_styles(element(border(width="2px", color="#123456", sides=("top",)), tag="hr"), "line")
        assert mapped.line.color == "123456"
        assert mapped.side_borders == []


def test_cell_styles_use_top_border_as_line():
    cell = element(border(color="#dee2e6", width="1px", sides=("top", "bottom")))
    cell.styles["background"] = "linear-gradient(red, blue)"
    styles = map_cell_styles(cell)
    assert styles.line.color == "DEE2E6"
    assert styles.side_borders == []
    assert styles.gradient is None


def test_style_mapper_walks_both_trees():
    child = ParsedElement(id="c", tag_name="p", styles={"color": "blue"}, position=Box(0, 0, 1, 1))
    parent = ParsedElement(id="p", tag_name="div", styles={"background-color": "red"},
                           position=Box(0, 0, 2, 2), children=[child])
    child_primitive = DrawingPrimitive(id="c", type="text", position=Box(0, 0, 1, 1))
    parent_primitive = DrawingPrimitive(id="p", type="rect", position=Box(0, 0, 2, 2), children=[child_primitive])

    StyleMapper().apply([parent], [parent_primitive])
    assert parent_primitive.styles.fill == "FF0000"
    assert child_primitive.styles.color == "0000FF"

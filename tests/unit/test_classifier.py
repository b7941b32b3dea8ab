"""Test shape classification and table extraction."""

import logging

import pytest

from slideshot.classifier import (
    ShapeClassifier,
    build_native_table,
    content_size,
    corner_radius_px,
    determine_shape_type,
    is_table_like_structure,
)
from slideshot.config import Thresholds
from slideshot.layout_engine import FallbackLayoutEngine
from slideshot.models import Box, ParsedElement


def element(tag, styles=None, text="", children=None, box=(0, 0, 1, 1), id="el"):
    return ParsedElement(
        id=id,
        tag_name=tag,
        text_content=text,
        styles=styles or {},
        position=Box(*box),
        children=children or [],
    )


def grid(rows, cols, cell_tag="div"):
    return element("div", children=[
        element("div", children=[
            element(cell_tag, text=f"r{r}c{c}", id=f"cell-{r}-{c}") for c in range(cols)
        ], id=f"row-{r}") for r in range(rows)
    ], box=(0, 0, 6, 3), id="grid")


class TestDetermineShapeType:

    def test_regular_grid_is_table(self):
        assert determine_shape_type(grid(3, 3)) == "table"

    def test_irregular_grid_is_not_table(self):
        container = grid(2, 3)
        container.children[1].children.pop()
        assert not is_table_like_structure(container)
        assert determine_shape_type(container) == "rect"

    def test_single_column_is_not_table(self):
        assert determine_shape_type(grid(3, 1)) == "rect"

    def test_native_table(self):
        assert determine_shape_type(element("table")) == "table"

    @pytest.mark.parametrize("tag", ["h1", "h3", "p", "span", "a", "label"])
    def test_text_tags(self, tag):
        assert determine_shape_type(element(tag, text="x")) == "text"

    def test_hr_is_line(self):
        assert determine_shape_type(element("hr")) == "line"

    def test_circle_needs_equal_sides(self):
        styles = {"border-radius": "50%"}
        assert determine_shape_type(element("div", styles, box=(0, 0, 1.04, 1.04))) == "ellipse"
        assert determine_shape_type(element("div", styles, box=(0, 0, 1.04, 0.52))) == "roundRect"

    def test_rounded_corners(self):
        assert determine_shape_type(element("div", {"border-radius": "8px"})) == "roundRect"
        assert determine_shape_type(element("div", {"border-radius": "0"})) == "rect"

    def test_default_is_rect(self):
        assert determine_shape_type(element("section")) == "rect"
        assert determine_shape_type(element("custom-widget")) == "rect"

    def test_span_cells_still_form_a_table(self):
        assert determine_shape_type(grid(2, 2, cell_tag="span")) == "table"

    def test_classification_is_deterministic(self):
        candidates = [grid(3, 3), element("hr"), element("div", {"border-radius": "50%"}), element("p")]
        first = [determine_shape_type(c) for c in candidates]
        assert first == [determine_shape_type(c) for c in candidates]

    def test_thresholds_are_configurable(self):
        loose = Thresholds(ellipse_tolerance=1.0)
        candidate = element("div", {"border-radius": "50%"}, box=(0, 0, 1.5, 1.0))
        assert determine_shape_type(candidate) == "roundRect"
        assert determine_shape_type(candidate, loose) == "ellipse"


def triangle_styles(visible_side="bottom", color="#e74c3c"):
    styles = {}
    for side in ("top", "right", "bottom", "left"):
        styles[f"border-{side}-width"] = "50px"
        styles[f"border-{side}-style"] = "solid"
        styles[f"border-{side}-color"] = color if side == visible_side else "transparent"
    return styles


class TestTriangles:

    @pytest.mark.parametrize("side, rotation", [
        ("bottom", 0.0),
        ("left", 90.0),
        ("top", 180.0),
        ("right", 270.0),
    ])
    def test_border_trick_direction(self, side, rotation):
        # border-box of a zero-size element with 50px borders
        triangle = element("div", triangle_styles(side), box=(0, 0, 100 / 96, 100 / 96))
        primitive = ShapeClassifier().classify_element(triangle)
        assert primitive.type == "triangle"
        assert primitive.rotation == rotation

    def test_content_size_excludes_borders(self):
        triangle = element("div", triangle_styles(), box=(0, 0, 100 / 96, 100 / 96))
        width, height = content_size(triangle)
        assert width == pytest.approx(0)
        assert height == pytest.approx(0)

    def test_two_colored_sides_is_not_triangle(self):
        styles = triangle_styles()
        styles["border-top-color"] = "blue"
        assert determine_shape_type(element("div", styles, box=(0, 0, 100 / 96, 100 / 96))) == "rect"

    def test_background_disqualifies_triangle(self):
        styles = triangle_styles()
        styles["background-color"] = "red"
        assert determine_shape_type(element("div", styles, box=(0, 0, 100 / 96, 100 / 96))) == "rect"

    def test_from_fallback_layout(self):
        html = (
            '<div style="width:0; height:0; border-left:50px solid transparent; '
            'border-right:50px solid transparent; border-top:80px solid #333"></div>'
        )
        parsed = FallbackLayoutEngine().parse(html)
        primitive = ShapeClassifier().classify(parsed)[0]
        assert primitive.type == "triangle"
        assert primitive.rotation == 180.0
        assert primitive.reason == "border triangle pointing down"


class TestTables:

    def test_pseudo_table_dimensions(self):
        primitive = ShapeClassifier().classify_element(grid(3, 3))
        assert primitive.type == "table"
        assert primitive.table_data.num_cols == 3
        assert len(primitive.table_data.rows) == 3
        assert primitive.children == []
        assert primitive.table_data.rows[1].cells[2].text == "r1c2"

    def test_pseudo_table_header_row(self):
        data = ShapeClassifier().classify_element(grid(3, 2)).table_data
        assert all(cell.is_header for cell in data.rows[0].cells)
        assert not any(cell.is_header for cell in data.rows[1].cells)

    def test_pseudo_table_label_cells_are_headers(self):
        container = grid(2, 2)
        container.children[1].children[0].tag_name = "label"
        data = ShapeClassifier().classify_element(container).table_data
        assert data.rows[1].cells[0].is_header
        assert not data.rows[1].cells[1].is_header

    def test_cell_text_includes_descendants(self):
        container = grid(2, 2)
        container.children[1].children[1].children = [element("strong", text="bold")]
        data = ShapeClassifier().classify_element(container).table_data
        assert data.rows[1].cells[1].text == "r1c1 bold"

    def test_native_table_with_thead(self):
        table = element("table", children=[
            element("thead", children=[element("tr", children=[element("th", text="A"), element("th", text="B")])]),
            element("tbody", children=[
                element("tr", children=[element("td", text="1"), element("td", text="2")]),
                element("tr", children=[element("td", text="3"), element("td", text="4")]),
            ]),
        ])
        data = build_native_table(table)
        assert data.num_cols == 2
        assert [cell.text for cell in data.rows[0].cells] == ["A", "B"]
        assert data.rows[0].cells[0].is_header
        assert not data.rows[2].cells[1].is_header
        assert data.rows[2].cells[1].text == "4"

    def test_native_table_without_thead_pads_short_rows(self):
        table = element("table", children=[
            element("tr", children=[element("td", text=t) for t in ("a", "b", "c")]),
            element("tr", children=[element("td", text=t) for t in ("d", "e")]),
        ])
        data = build_native_table(table)
        assert data.num_cols == 3
        assert data.rows[0].cells[0].is_header
        assert [cell.text for cell in data.rows[1].cells] == ["d", "e", ""]

    def test_empty_native_table_falls_back_to_rect(self):
        primitive = ShapeClassifier().classify_element(element("table"))
        assert primitive.type == "rect"
        assert primitive.table_data is None


class TestClassifyTree:

    def test_tree_shape_is_preserved(self):
        tree = element("div", children=[element("p", text="a", id="p1"), element("section", id="s1")], id="root")
        primitive = ShapeClassifier().classify([tree])[0]
        assert primitive.id == "root"
        assert [child.id for child in primitive.children] == ["p1", "s1"]
        assert [child.type for child in primitive.children] == ["text", "rect"]
        assert primitive.source_position == tree.position

    def test_inline_runs_merge_into_paragraph(self):
        paragraph = element("p", text="Hello", children=[element("b", text="bold"), element("em", text="world")])
        primitive = ShapeClassifier().classify_element(paragraph)
        assert primitive.text == "Hello bold world"
        assert primitive.children == []

    def test_block_children_are_not_merged(self):
        paragraph = element("p", text="Lead", children=[element("div", text="block")])
        primitive = ShapeClassifier().classify_element(paragraph)
        assert primitive.text == "Lead"
        assert len(primitive.children) == 1

    def test_text_on_shape_is_kept_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="slideshot.classifier"):
            primitive = ShapeClassifier().classify_element(element("div", text="Card title"))
        assert primitive.type == "rect"
        assert primitive.text == "Card title"
        assert "text may be lost" in caplog.text

    def test_whitespace_text_is_none(self):
        assert ShapeClassifier().classify_element(element("div", text="   ")).text is None


@pytest.mark.parametrize("radius, box, expected", [
    ("8px", (0, 0, 1, 1), 8),
    ("50%", (0, 0, 2, 1), 48),
    ("", (0, 0, 1, 1), 0),
    ("600px 10px", (0, 0, 1, 1), 600),
])
def test_corner_radius_px(radius, box, expected):
    styles = {"border-radius": radius} if radius else {}
    assert corner_radius_px(element("div", styles, box=box)) == pytest.approx(expected)

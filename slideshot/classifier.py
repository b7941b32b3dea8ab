"""
Shape classification: decides which native primitive each element becomes.

The decision is a pure function of the element's tag, box and style map.
Checks run in a fixed order and the first match wins:

    table -> text -> line -> ellipse -> roundRect -> triangle -> rect
"""
import logging
import re
from typing import List, Optional, Tuple

from .config import Thresholds
from .css_utils import INLINE_TAGS, PX_PER_INCH, font_weight_value, parse_color, parse_length
from .models import DrawingPrimitive, ParsedElement, TableCell, TableData, TableRow
from .style_mapper import map_cell_styles

logger = logging.getLogger(__name__)

TEXT_TAG_RE = re.compile(r"^(h[1-6]|p|span|a|label)$")
NATIVE_TABLE_PARTS = ("table", "thead", "tbody", "tfoot", "tr", "th", "td")
TABLE_LIKE_CELL_MARKERS = ("label", "value", "cell")
HEADER_CELL_MARKERS = ("label", "header", "th")

# Visible border side -> direction the triangle points
TRIANGLE_DIRECTIONS = {"top": "down", "right": "left", "bottom": "up", "left": "right"}
# Rotation of an upward-pointing isosceles triangle for each direction
DIRECTION_ROTATIONS = {"up": 0.0, "right": 90.0, "down": 180.0, "left": 270.0}


def is_native_table(element: ParsedElement) -> bool:
    return element.tag_name == "table"


def is_table_like_structure(element: ParsedElement) -> bool:
    """
    A container of >=2 rows that all have the same number (>=2) of cells.

    Table-like cell markers make the match explicit, but a perfectly
    regular grid is accepted on its own.
    """
    if element.tag_name in NATIVE_TABLE_PARTS:
        return False
    rows = element.children
    if len(rows) < 2:
        return False
    num_cols = len(rows[0].children)
    if num_cols < 2 or any(len(row.children) != num_cols for row in rows):
        return False

    has_cell_markers = any(
        marker in cell.tag_name for row in rows for cell in row.children for marker in TABLE_LIKE_CELL_MARKERS
    )
    if has_cell_markers:
        logger.debug(f"Table-like structure for {element.id}: {len(rows)} rows x {num_cols} columns (cell markers)")
    else:
        logger.debug(f"Regular grid for {element.id}: {len(rows)} rows x {num_cols} columns")
    return True


def is_circle(element: ParsedElement, thresholds: Thresholds) -> bool:
    radius = element.style("border-radius")
    if "50%" not in radius:
        return False
    return abs(element.position.width - element.position.height) < thresholds.ellipse_tolerance


def corner_radius_px(element: ParsedElement) -> float:
    """First border-radius value in px.  Percentages resolve against the shorter side."""
    radius = element.style("border-radius").strip()
    if not radius:
        return 0.0
    first = radius.split()[0]
    if first.endswith("%"):
        shorter = min(element.position.width, element.position.height) * PX_PER_INCH
        return parse_length(first, reference_px=shorter)
    return parse_length(first)


def has_rounded_corners(element: ParsedElement) -> bool:
    radius = element.style("border-radius").strip()
    return bool(radius) and parse_length(radius.split()[0]) > 0


def visible_triangle_side(element: ParsedElement) -> Optional[Tuple[str, str]]:
    """
    Return ``(side, color)`` of the single solid, colored border side that
    makes up a CSS triangle, or ``None``.
    """
    visible = []
    for side in TRIANGLE_DIRECTIONS:
        width = element.style(f"border-{side}-width") or element.style("border-width")
        style = (element.style(f"border-{side}-style") or element.style("border-style")).lower()
        color = element.style(f"border-{side}-color") or element.style("border-color")
        parsed = parse_color(color)
        if parse_length(width) > 0 and style == "solid" and parsed is not None:
            visible.append((side, parsed[0]))
    if len(visible) != 1:
        return None
    return visible[0]


def _edge_inches(element: ParsedElement, side: str) -> float:
    px = parse_length(element.style(f"padding-{side}"))
    style = (element.style(f"border-{side}-style") or element.style("border-style", "none")).lower()
    if style not in ("none", "hidden"):
        px += parse_length(element.style(f"border-{side}-width") or element.style("border-width"))
    return px / PX_PER_INCH


def content_size(element: ParsedElement) -> Tuple[float, float]:
    """Width and height inside the borders and padding, in inches."""
    box = element.position
    width = box.width - _edge_inches(element, "left") - _edge_inches(element, "right")
    height = box.height - _edge_inches(element, "top") - _edge_inches(element, "bottom")
    return max(0.0, width), max(0.0, height)


def is_triangle(element: ParsedElement, thresholds: Thresholds) -> bool:
    # Geometry is border-box, so the zero-size content box is what marks the trick
    width, height = content_size(element)
    if width >= thresholds.triangle_max_size or height >= thresholds.triangle_max_size:
        return False
    if parse_color(element.style("background-color")) is not None:
        return False
    return visible_triangle_side(element) is not None


def determine_shape_type(element: ParsedElement, thresholds: Optional[Thresholds] = None) -> str:
    """Classify one element; always returns a primitive type."""
    thresholds = thresholds or Thresholds()
    if is_native_table(element) or is_table_like_structure(element):
        return "table"
    if TEXT_TAG_RE.match(element.tag_name):
        return "text"
    if element.tag_name == "hr":
        return "line"
    if is_circle(element, thresholds):
        return "ellipse"
    if has_rounded_corners(element):
        return "roundRect"
    if is_triangle(element, thresholds):
        return "triangle"
    return "rect"


def classification_reason(element: ParsedElement, shape_type: str) -> str:
    if shape_type == "table":
        return "native HTML table" if is_native_table(element) else "table-like structure"
    if shape_type == "text":
        return "text tag"
    if shape_type == "line":
        return "hr tag"
    if shape_type == "ellipse":
        return "border-radius: 50% with equal dimensions"
    if shape_type == "roundRect":
        return f"border-radius: {element.style('border-radius')}"
    if shape_type == "triangle":
        side = visible_triangle_side(element)
        return f"border triangle pointing {TRIANGLE_DIRECTIONS[side[0]]}" if side else "border triangle"
    return "default rectangle"


# ---------------------------------------------------------------------------
# Table data
# ---------------------------------------------------------------------------

def _cell(element: ParsedElement, is_header: bool) -> TableCell:
    return TableCell(text=element.descendant_text(), is_header=is_header, styles=map_cell_styles(element))


def _pad_rows(rows: List[TableRow]) -> TableData:
    num_cols = max((len(row.cells) for row in rows), default=0)
    for row in rows:
        header = row.cells[0].is_header if row.cells else False
        while len(row.cells) < num_cols:
            row.cells.append(TableCell(text="", is_header=header))
    return TableData(rows=rows, num_cols=num_cols)


def _native_row_cells(tr: ParsedElement, is_header: bool) -> List[TableCell]:
    return [_cell(cell, is_header or cell.tag_name == "th") for cell in tr.children if cell.tag_name in ("th", "td")]


def build_native_table(table: ParsedElement) -> Optional[TableData]:
    """
    Rows from ``thead``/``tbody``/``tfoot`` and bare ``tr`` children.

    ``thead`` rows are headers.  Without a ``thead`` the first row is.
    """
    head_rows, body_rows = [], []
    for child in table.children:
        if child.tag_name == "thead":
            head_rows.extend(tr for tr in child.children if tr.tag_name == "tr")
        elif child.tag_name in ("tbody", "tfoot"):
            body_rows.extend(tr for tr in child.children if tr.tag_name == "tr")
        elif child.tag_name == "tr":
            body_rows.append(child)

    rows = []
    for tr in head_rows:
        cells = _native_row_cells(tr, True)
        if cells:
            rows.append(TableRow(cells))
    for tr in body_rows:
        cells = _native_row_cells(tr, not rows)
        if cells:
            rows.append(TableRow(cells))

    if not rows:
        return None
    return _pad_rows(rows)


def is_header_cell(cell: ParsedElement) -> bool:
    if any(marker in cell.tag_name for marker in HEADER_CELL_MARKERS):
        return True
    return font_weight_value(cell.style("font-weight")) >= 600


def build_pseudo_table(container: ParsedElement) -> Optional[TableData]:
    """Each child is a row and each grandchild a cell.  The first row is the header."""
    rows = []
    for index, row in enumerate(container.children):
        cells = [_cell(cell, index == 0 or is_header_cell(cell)) for cell in row.children]
        if cells:
            rows.append(TableRow(cells))
    if not rows:
        return None
    return _pad_rows(rows)


def build_table_data(element: ParsedElement) -> Optional[TableData]:
    if is_native_table(element):
        return build_native_table(element)
    return build_pseudo_table(element)


# ---------------------------------------------------------------------------
# Tree classification
# ---------------------------------------------------------------------------

class ShapeClassifier:
    """Classifies a parsed element tree into a drawing primitive tree."""

    def __init__(self, thresholds: Optional[Thresholds] = None, debug: bool = False):
        self.thresholds = thresholds or Thresholds()
        self.debug = debug

    def classify(self, elements: List[ParsedElement]) -> List[DrawingPrimitive]:
        return [self.classify_element(element) for element in elements]

    def classify_element(self, element: ParsedElement) -> DrawingPrimitive:
        shape_type = determine_shape_type(element, self.thresholds)
        reason = classification_reason(element, shape_type)
        primitive = DrawingPrimitive(
            id=element.id,
            type=shape_type,
            position=element.position.copy(),
            tag_name=element.tag_name,
            reason=reason,
            source_position=element.position.copy(),
            corner_radius_px=corner_radius_px(element),
        )
        if shape_type == "triangle":
            side = visible_triangle_side(element)
            primitive.rotation = DIRECTION_ROTATIONS[TRIANGLE_DIRECTIONS[side[0]]]

        if shape_type == "table":
            primitive.table_data = build_table_data(element)
            if primitive.table_data is None:
                # Structure matched but yielded no cells
                primitive.type = "rect"
                primitive.reason = "empty table"
            else:
                logger.debug(
                    f"Table {element.id}: {len(primitive.table_data.rows)} rows, "
                    f"{primitive.table_data.num_cols} columns"
                )
                return primitive

        text = element.text_content.strip()
        if shape_type == "text" and element.children and all(
            child.tag_name in INLINE_TAGS and not child.children for child in element.children
        ):
            # Inline runs (<b>, <em>, ...) merge into the paragraph text
            text = element.descendant_text()
        else:
            primitive.children = self.classify(element.children)
        primitive.text = text or None

        if text and shape_type not in ("text", "table"):
            logger.warning(
                f"⚠️ {element.id} <{element.tag_name}> classified as {shape_type} carries text "
                f"'{text[:40]}'; text may be lost without an overlay"
            )
        if self.debug:
            logger.debug(f"{element.id} <{element.tag_name}> → {primitive.type} ({primitive.reason})")
        return primitive

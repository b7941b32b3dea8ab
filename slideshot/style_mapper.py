"""
CSS to PowerPoint drawing-attribute mapping.

Everything here is a pure function of the element's style map and box:
colors become 6-digit hex, px sizes become points, gradients become a
stop list with an angle, and borders become either one outline or a list
of per-side line segments.
"""
import logging
import re
from typing import Dict, List, Optional, Tuple

from .css_utils import (
    SIDES,
    font_weight_value,
    parse_color,
    parse_length,
    px_to_pt,
    split_top_level,
)
from .models import (
    Box,
    DrawingPrimitive,
    DrawingStyles,
    GradientFill,
    GradientStop,
    LineStyle,
    ParsedElement,
    SideBorder,
)

logger = logging.getLogger(__name__)

# CSS "to <side>" keywords → degrees (0 = to top, clockwise)
DIRECTION_ANGLES = {
    "to top": 0,
    "to top right": 45,
    "to right top": 45,
    "to right": 90,
    "to bottom right": 135,
    "to right bottom": 135,
    "to bottom": 180,
    "to bottom left": 225,
    "to left bottom": 225,
    "to left": 270,
    "to top left": 315,
    "to left top": 315,
}

_GRADIENT_RE = re.compile(r"(repeating-)?(linear|radial)-gradient\(", re.IGNORECASE)
_ANGLE_RE = re.compile(r"^\s*(-?\d*\.?\d+)(deg|turn|rad|grad)\s*$", re.IGNORECASE)
_COLOR_TOKEN_RE = re.compile(
    r"rgba?\([^)]*\)|#[0-9a-fA-F]{3,8}\b|\b(?:black|white|red|green|blue|yellow|cyan|magenta|"
    r"gray|grey|silver|orange|purple|navy|transparent)\b",
    re.IGNORECASE,
)

TEXT_ALIGNMENTS = ("left", "center", "right", "justify")


def convert_color(css_color: Optional[str]) -> Optional[str]:
    parsed = parse_color(css_color)
    return parsed[0] if parsed else None


def convert_font_size(font_size: Optional[str]) -> Optional[float]:
    px = parse_length(font_size)
    if px <= 0:
        return None
    return float(round(px_to_pt(px)))


def convert_font_family(font_family: Optional[str]) -> Optional[str]:
    if not font_family:
        return None
    first = font_family.split(",")[0].replace('"', "").replace("'", "").strip()
    return first or None


def is_bold(font_weight: Optional[str]) -> bool:
    return font_weight_value(font_weight) >= 600


def convert_text_align(text_align: Optional[str]) -> str:
    align = (text_align or "").strip().lower()
    if align in ("start", "-webkit-left"):
        return "left"
    if align in ("end", "-webkit-right"):
        return "right"
    if align == "-webkit-center":
        return "center"
    return align if align in TEXT_ALIGNMENTS else "left"


def convert_border_width(width: Optional[str]) -> float:
    """Border width in points, never thinner than 1pt."""
    return float(max(1, round(px_to_pt(parse_length(width)))))


def convert_border_style(border_style: Optional[str]) -> str:
    style = (border_style or "").strip().lower()
    if style == "dashed":
        return "dash"
    if style == "dotted":
        return "dot"
    return "solid"


# ---------------------------------------------------------------------------
# Gradients
# ---------------------------------------------------------------------------

def _gradient_arguments(value: str) -> Optional[Tuple[str, str]]:
    """Return ``(kind, inner_arguments)`` of the first gradient function in ``value``."""
    match = _GRADIENT_RE.search(value)
    if not match:
        return None
    start = match.end()
    depth = 1
    for index in range(start, len(value)):
        if value[index] == "(":
            depth += 1
        elif value[index] == ")":
            depth -= 1
            if depth == 0:
                return match.group(2).lower(), value[start:index]
    return match.group(2).lower(), value[start:]


def _parse_angle(token: str) -> Optional[float]:
    token = token.strip().lower()
    if token in DIRECTION_ANGLES:
        return float(DIRECTION_ANGLES[token])
    match = _ANGLE_RE.match(token)
    if not match:
        return None
    number, unit = float(match.group(1)), match.group(2).lower()
    if unit == "turn":
        number *= 360
    elif unit == "rad":
        number = number * 180 / 3.141592653589793
    elif unit == "grad":
        number *= 0.9
    return number % 360


def parse_gradient(value: Optional[str]) -> Optional[GradientFill]:
    """
    Parse a CSS linear or radial gradient.

    Stops are spaced evenly along the stop list; the literal stop
    percentages in the source are ignored.  Linear gradients without an
    explicit angle or direction default to 0 degrees.
    """
    if not value or "gradient(" not in value.lower():
        return None
    parsed = _gradient_arguments(value)
    if parsed is None:
        return None
    kind, arguments = parsed

    angle = 0.0
    if kind == "linear":
        parts = split_top_level(arguments, ",")
        if parts:
            explicit = _parse_angle(parts[0])
            if explicit is not None:
                angle = explicit

    colors = []
    for token in _COLOR_TOKEN_RE.findall(arguments):
        hex_color = convert_color(token)
        if hex_color:
            colors.append(hex_color)
    if not colors:
        return None

    count = len(colors)
    stops = [
        GradientStop(color=color, position=(index / (count - 1) * 100) if count > 1 else 0.0)
        for index, color in enumerate(colors)
    ]
    return GradientFill(kind=kind, stops=stops, angle_degrees=angle)


# ---------------------------------------------------------------------------
# Borders
# ---------------------------------------------------------------------------

def _side_border(styles: Dict[str, str], side: str) -> Optional[Tuple[float, str, str]]:
    """Return ``(width_px, style, color)`` for a visible border side, else ``None``."""
    width = styles.get(f"border-{side}-width") or styles.get("border-width")
    style = (styles.get(f"border-{side}-style") or styles.get("border-style") or "").lower()
    color = styles.get(f"border-{side}-color") or styles.get("border-color") or styles.get("color") or "black"

    width_px = parse_length(width)
    if width_px <= 0 or not style or style in ("none", "hidden"):
        return None
    hex_color = convert_color(color)
    if hex_color is None:
        return None
    return width_px, style, hex_color


def visible_border_sides(styles: Dict[str, str]) -> Dict[str, Tuple[float, str, str]]:
    sides = {}
    for side in SIDES:
        border = _side_border(styles, side)
        if border is not None:
            sides[side] = border
    return sides


def side_segment(box: Box, side: str) -> Tuple[float, float, float, float]:
    """End points of one edge of ``box``."""
    if side == "top":
        return box.x, box.y, box.right, box.y
    if side == "right":
        return box.right, box.y, box.right, box.bottom
    if side == "bottom":
        return box.x, box.bottom, box.right, box.bottom
    return box.x, box.y, box.x, box.bottom


def map_borders(styles: Dict[str, str], box: Box) -> Tuple[Optional[LineStyle], List[SideBorder]]:
    """
    Map CSS borders to either a single outline (all four sides identical)
    or independent per-side segments.
    """
    sides = visible_border_sides(styles)
    if not sides:
        return None, []

    values = list(sides.values())
    if len(sides) == 4 and all(value == values[0] for value in values):
        width_px, style, color = values[0]
        return LineStyle(color=color, width=convert_border_width(f"{width_px}px"),
                         dash_type=convert_border_style(style)), []

    segments = []
    for side in SIDES:
        if side not in sides:
            continue
        width_px, style, color = sides[side]
        x1, y1, x2, y2 = side_segment(box, side)
        segments.append(SideBorder(
            side=side,
            color=color,
            width=convert_border_width(f"{width_px}px"),
            dash_type=convert_border_style(style),
            x1=x1, y1=y1, x2=x2, y2=y2,
        ))
    return None, segments


# ---------------------------------------------------------------------------
# Element mapping
# ---------------------------------------------------------------------------

def _background(styles: Dict[str, str]):
    """Return ``(solid_hex, alpha, gradient)`` from the background properties."""
    gradient = None
    for name in ("background-image", "background"):
        if "gradient(" in styles.get(name, "").lower():
            gradient = parse_gradient(styles[name])
            if gradient:
                break

    color = parse_color(styles.get("background-color"))
    if color is None and not gradient and styles.get("background"):
        for token in _COLOR_TOKEN_RE.findall(styles["background"]):
            color = parse_color(token)
            if color:
                break
    if color is None:
        return None, 1.0, gradient
    return color[0], color[1], gradient


def map_styles(element: ParsedElement, shape_type: str = "rect", box: Optional[Box] = None) -> DrawingStyles:
    """Translate an element's style map into drawing attributes."""
    styles = element.styles
    box = box or element.position
    result = DrawingStyles()

    fill, alpha, gradient = _background(styles)
    result.fill = fill
    result.gradient = gradient

    opacity = 1.0
    if styles.get("opacity"):
        try:
            opacity = float(styles["opacity"])
        except ValueError:
            opacity = 1.0
    combined = alpha * opacity
    if combined < 1:
        result.fill_opacity = round(max(combined, 0.0), 3)

    result.color = convert_color(styles.get("color"))
    result.font_size = convert_font_size(styles.get("font-size"))
    result.font_face = convert_font_family(styles.get("font-family"))
    result.bold = is_bold(styles.get("font-weight"))
    result.italic = styles.get("font-style", "").lower() in ("italic", "oblique")
    result.underline = "underline" in styles.get("text-decoration", "").lower()
    if styles.get("text-align"):
        result.align = convert_text_align(styles["text-align"])

    if shape_type == "triangle":
        # The triangle is drawn by its one visible border
        sides = visible_border_sides(styles)
        if sides:
            result.fill = next(iter(sides.values()))[2]
        return result

    line, side_borders = map_borders(styles, box)
    if shape_type == "line":
        if line is None and side_borders:
            first = side_borders[0]
            line = LineStyle(color=first.color, width=first.width, dash_type=first.dash_type)
            side_borders = []
        if line is None:
            line = LineStyle(color=result.color or "808080", width=1.0)
    result.line = line
    result.side_borders = side_borders
    return result


def map_cell_styles(cell: ParsedElement) -> DrawingStyles:
    """Styles for a table cell: a top (or uniform) border becomes the cell line."""
    result = map_styles(cell, "rect")
    if result.line is None and result.side_borders:
        top = next((border for border in result.side_borders if border.side == "top"), result.side_borders[0])
        result.line = LineStyle(color=top.color, width=top.width, dash_type=top.dash_type)
    result.side_borders = []
    result.gradient = None
    return result


class StyleMapper:
    """Applies :func:`map_styles` across a parsed tree and its classified twin."""

    def apply(self, parsed: List[ParsedElement], primitives: List[DrawingPrimitive]):
        for element, primitive in zip(parsed, primitives):
            primitive.styles = map_styles(element, primitive.type, primitive.position)
            if primitive.children and not primitive.is_table():
                self.apply(element.children, primitive.children)

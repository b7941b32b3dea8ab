"""
Post-processing passes over the classified primitive tree.

  * decorative filtering removes page chrome and oversized wrappers and
    hoists their children;
  * the bounds audit reports elements outside the slide;
  * auto-scale shrinks everything uniformly when the content overflows.

Each pass is independent and can run on its own.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import DEFAULT_FONT_PT, Thresholds
from .css_utils import parse_color
from .errors import EmptyInputError
from .models import Box, DrawingPrimitive, ParsedElement

logger = logging.getLogger(__name__)

DOCUMENT_WRAPPER_TAGS = ("html", "body")

# Tolerance for floating point edges, in inches
BOUNDS_EPSILON = 0.01


# ---------------------------------------------------------------------------
# Decorative filtering
# ---------------------------------------------------------------------------

def is_light_gray(hex_color: Optional[str], thresholds: Thresholds) -> bool:
    parsed = parse_color(f"#{hex_color}") if hex_color else None
    if parsed is None:
        return False
    channels = [int(parsed[0][i:i + 2], 16) for i in (0, 2, 4)]
    return min(channels) >= thresholds.light_gray_min and max(channels) - min(channels) <= thresholds.light_gray_spread


def decorative_reason(primitive: DrawingPrimitive, slide_width: float, slide_height: float,
                      thresholds: Thresholds) -> Optional[str]:
    """Why ``primitive`` should be removed, or ``None`` to keep it."""
    if primitive.tag_name in DOCUMENT_WRAPPER_TAGS:
        return f"document wrapper <{primitive.tag_name}>"

    box = primitive.position
    width_ratio = box.width / slide_width
    height_ratio = box.height / slide_height

    if primitive.has_text() and primitive.type != "table":
        if max(width_ratio, height_ratio) > thresholds.oversize_factor:
            logger.warning(
                f"⚠️ {primitive.id} <{primitive.tag_name}> is {width_ratio:.1f}x{height_ratio:.1f} slide size "
                f"but carries text; kept"
            )
        return None
    if primitive.is_table():
        return None

    if width_ratio >= thresholds.hard_oversize_factor or height_ratio >= thresholds.hard_oversize_factor:
        return f"exceeds slide by {max(width_ratio, height_ratio):.1f}x"
    # Below the hard limit only wrappers go; a childless shape is kept and left to auto-scale
    if primitive.children and (
        width_ratio > thresholds.oversize_factor or height_ratio > thresholds.oversize_factor
    ):
        return f"wrapper {max(width_ratio, height_ratio):.1f}x slide size"
    if (
        primitive.corner_radius_px > thresholds.decorative_radius_px
        and width_ratio >= thresholds.backdrop_coverage
        and height_ratio >= thresholds.backdrop_coverage
        and is_light_gray(primitive.styles.fill, thresholds)
    ):
        return f"decorative backdrop (radius {primitive.corner_radius_px:.0f}px)"
    return None


def filter_decorative(primitives: List[DrawingPrimitive], slide_width: float, slide_height: float,
                      thresholds: Optional[Thresholds] = None,
                      removed: Optional[List[Tuple[DrawingPrimitive, str]]] = None) -> List[DrawingPrimitive]:
    """
    Remove decorative wrappers, splicing their children into their place.

    Children are filtered before their parent is evaluated.  Removed nodes
    are appended to ``removed`` as ``(primitive, reason)`` when given.

    Raises:
        EmptyInputError: nothing is left to draw.
    """
    thresholds = thresholds or Thresholds()
    removed = removed if removed is not None else []
    kept = _filter_level(primitives, slide_width, slide_height, thresholds, removed)
    if not kept:
        raise EmptyInputError("No elements left after filtering decorative wrappers")
    return kept


def _filter_level(primitives, slide_width, slide_height, thresholds, removed):
    result = []
    for primitive in primitives:
        primitive.children = _filter_level(primitive.children, slide_width, slide_height, thresholds, removed)
        reason = decorative_reason(primitive, slide_width, slide_height, thresholds)
        if reason is None:
            result.append(primitive)
            continue
        primitive.type = "skip"
        removed.append((primitive, reason))
        logger.debug(f"🧹 Removed {primitive.id} <{primitive.tag_name}>: {reason}")
        result.extend(primitive.children)
        primitive.children = []
    return result


# ---------------------------------------------------------------------------
# Bounds audit
# ---------------------------------------------------------------------------

@dataclass
class BoundsViolation:
    id: str
    tag_name: str
    position: Box
    edges: List[str] = field(default_factory=list)

    def describe(self) -> str:
        return f"{self.tag_name}#{self.id} outside slide ({', '.join(self.edges)}) at {self.position.describe()}"


def violated_edges(box: Box, slide_width: float, slide_height: float) -> List[str]:
    edges = []
    if box.x < -BOUNDS_EPSILON:
        edges.append("left")
    if box.y < -BOUNDS_EPSILON:
        edges.append("top")
    if box.right > slide_width + BOUNDS_EPSILON:
        edges.append("right")
    if box.bottom > slide_height + BOUNDS_EPSILON:
        edges.append("bottom")
    return edges


def audit_bounds(elements: List[ParsedElement], slide_width: float, slide_height: float) -> List[BoundsViolation]:
    """Report every element (at any depth) whose box leaves the slide."""
    violations = []
    for root in elements:
        for element in root.iter_tree():
            edges = violated_edges(element.position, slide_width, slide_height)
            if edges:
                violations.append(BoundsViolation(element.id, element.tag_name, element.position.copy(), edges))
    return violations


# ---------------------------------------------------------------------------
# Auto-scale
# ---------------------------------------------------------------------------

def content_envelope(primitives: List[DrawingPrimitive]) -> Optional[Box]:
    """Union of every primitive box.  Tables count as one box."""
    boxes = [p.position for root in primitives for p in root.iter_tree() if p.type != "skip"]
    if not boxes:
        return None
    left = min(b.x for b in boxes)
    top = min(b.y for b in boxes)
    right = max(b.right for b in boxes)
    bottom = max(b.bottom for b in boxes)
    return Box(left, top, right - left, bottom - top)


def calculate_scale(content_width: float, content_height: float, slide_width: float, slide_height: float,
                    min_scale: float = 0.5) -> float:
    """Uniform shrink factor in ``[min_scale, 1]``; exactly 1 when the content fits."""
    if content_width <= slide_width and content_height <= slide_height:
        return 1
    ratios = [1.0]
    if content_width > 0:
        ratios.append(slide_width / content_width)
    if content_height > 0:
        ratios.append(slide_height / content_height)
    return max(min_scale, min(ratios))


def _scale_font(size: Optional[float], scale: float, min_font: float) -> float:
    return max(min_font, round((size or DEFAULT_FONT_PT) * scale, 1))


def scale_primitive(primitive: DrawingPrimitive, origin_x: float, origin_y: float, scale: float,
                    min_font: float):
    box = primitive.position
    primitive.position = Box(
        origin_x + (box.x - origin_x) * scale,
        origin_y + (box.y - origin_y) * scale,
        box.width * scale,
        box.height * scale,
    )
    styles = primitive.styles
    for border in styles.side_borders:
        border.x1 = origin_x + (border.x1 - origin_x) * scale
        border.y1 = origin_y + (border.y1 - origin_y) * scale
        border.x2 = origin_x + (border.x2 - origin_x) * scale
        border.y2 = origin_y + (border.y2 - origin_y) * scale
    if primitive.has_text() or styles.font_size is not None:
        styles.font_size = _scale_font(styles.font_size, scale, min_font)
    if primitive.table_data:
        for row in primitive.table_data.rows:
            for cell in row.cells:
                cell.styles.font_size = _scale_font(cell.styles.font_size, scale, min_font)


def auto_scale(primitives: List[DrawingPrimitive], slide_width: float, slide_height: float,
               thresholds: Optional[Thresholds] = None) -> float:
    """
    Shrink the whole tree when its envelope overflows the slide.

    Positions scale about the envelope's own top-left corner.  Returns the
    applied scale (1 when nothing changed).
    """
    thresholds = thresholds or Thresholds()
    envelope = content_envelope(primitives)
    if envelope is None:
        return 1
    scale = calculate_scale(envelope.width, envelope.height, slide_width, slide_height, thresholds.min_scale)
    if scale >= 1:
        return 1

    logger.info(
        f"📏 Content {envelope.width:.2f}\"x{envelope.height:.2f}\" exceeds slide "
        f"{slide_width:.2f}\"x{slide_height:.2f}\"; scaling by {scale:.3f}"
    )
    for root in primitives:
        for primitive in root.iter_tree():
            scale_primitive(primitive, envelope.x, envelope.y, scale, thresholds.min_font_pt)

    scaled = content_envelope(primitives)
    if violated_edges(scaled, slide_width, slide_height):
        logger.warning(f"⚠️ Content still overflows the slide after scaling: {scaled.describe()}")
    return scale

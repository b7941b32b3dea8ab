#!/usr/bin/env python3
"""
Fallback layout engine.

Approximates block/inline flow and static/relative/absolute/fixed
positioning without a real rendering engine, producing an absolute box
per element.  Used only when the headless browser geometry source is
unavailable; results are a plausible layout, not a pixel-exact one.

Known approximations:
  * percentages resolve against a fixed 1000px reference width;
  * ``right``/``bottom`` on absolutely positioned elements assume a
    960x720px container, since the real containing block is unknown;
  * inline content never wraps.
"""

import itertools
import logging
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from .config import DEFAULT_SLIDE_HEIGHT, DEFAULT_SLIDE_WIDTH
from .css_utils import (
    PX_PER_INCH,
    SKIP_TAGS,
    StyleExtractor,
    direct_text,
    parse_declarations,
    parse_length,
    px_to_inches,
)
from .models import Box, LayoutContext, ParsedElement

logger = logging.getLogger(__name__)

# Default element sizes in px, used when neither an explicit nor a
# computed size is available.
DEFAULT_WIDTHS = {
    "h1": 600, "h2": 500, "h3": 400, "h4": 350, "h5": 300, "h6": 250,
    "p": 500, "span": 200, "div": 400, "button": 150,
}
DEFAULT_HEIGHTS = {
    "h1": 60, "h2": 50, "h3": 40, "h4": 35, "h5": 30, "h6": 25,
    "p": 30, "span": 20, "div": 200, "button": 40, "hr": 2,
}
FALLBACK_WIDTH = 400
FALLBACK_HEIGHT = 100

# Assumed containing block for absolute right/bottom offsets.
ASSUMED_CONTAINER_WIDTH = 960
ASSUMED_CONTAINER_HEIGHT = 720

INLINE_DISPLAYS = ("inline", "inline-block", "inline-flex", "inline-table", "table-cell")
HORIZONTAL_CONTAINERS = ("flex", "inline-flex")


class LayoutStack:
    """
    Stack of layout contexts, one per container being flowed.

    The bottom entry is the document root and is never popped.
    """

    def __init__(self, root: Optional[LayoutContext] = None):
        self._contexts: List[LayoutContext] = [
            root or LayoutContext(0, 0, 0, 0, is_positioning_context=True)
        ]

    def __len__(self):
        return len(self._contexts)

    @property
    def current(self) -> LayoutContext:
        return self._contexts[-1]

    @property
    def root(self) -> LayoutContext:
        return self._contexts[0]

    def push(self, context: LayoutContext):
        self._contexts.append(context)

    def pop(self) -> Optional[LayoutContext]:
        if len(self._contexts) > 1:
            return self._contexts.pop()
        return None

    def nearest_positioning_context(self) -> LayoutContext:
        for context in reversed(self._contexts):
            if context.is_positioning_context:
                return context
        return self._contexts[0]


def default_width(tag_name: str) -> float:
    return DEFAULT_WIDTHS.get(tag_name, FALLBACK_WIDTH)


def default_height(tag_name: str) -> float:
    return DEFAULT_HEIGHTS.get(tag_name, FALLBACK_HEIGHT)


def _explicit_px(value: Optional[str]) -> Optional[float]:
    """A numeric CSS length in px, or ``None`` for missing/``auto``/unparseable values."""
    if not value:
        return None
    value = value.strip()
    if not value or not (value[0].isdigit() or value[0] in ".+-"):
        return None
    px = parse_length(value)
    # negative sizes are invalid CSS and ignored
    return px if px >= 0 else None


def _edge_sum(styles: Dict[str, str], first: str, second: str) -> float:
    """Padding plus visible border width on two opposite sides."""
    total = 0.0
    for side in (first, second):
        total += parse_length(styles.get(f"padding-{side}"))
        if styles.get(f"border-{side}-style", "none").lower() not in ("none", "hidden"):
            total += parse_length(styles.get(f"border-{side}-width"))
    return total


def _has_offset(styles: Dict[str, str], name: str) -> bool:
    value = styles.get(name)
    return bool(value) and value.strip().lower() != "auto"


class FallbackLayoutEngine:
    """
    Lays out an HTML fragment into a ParsedElement tree.

    The engine only holds configuration; every call to :meth:`parse`
    creates its own layout stack, id counter and style extractor, so one
    instance can serve concurrent conversions.
    """

    def __init__(self, slide_width: float = DEFAULT_SLIDE_WIDTH, slide_height: float = DEFAULT_SLIDE_HEIGHT,
                 debug: bool = False):
        self.slide_width = slide_width
        self.slide_height = slide_height
        self.debug = debug

    @property
    def slide_width_px(self) -> float:
        return self.slide_width * PX_PER_INCH

    @property
    def slide_height_px(self) -> float:
        return self.slide_height * PX_PER_INCH

    def parse(self, html: str) -> List[ParsedElement]:
        """Parse ``html`` and return the laid-out top-level elements."""
        if not html or not html.strip():
            return []

        soup = BeautifulSoup(html, "html.parser")
        extractor = StyleExtractor(soup)
        root = soup.body or soup.find("html") or soup
        root_styles = extractor.compute(root) if root is not soup else {}

        stack = LayoutStack()
        ids = itertools.count()
        elements = self._layout_children(root, root_styles, stack, extractor, ids)

        if self.debug:
            total = sum(1 for el in elements for _ in el.iter_tree())
            logger.debug(f"📐 Fallback layout produced {total} elements ({len(elements)} top-level)")
        return elements

    def _layout_children(self, parent: Tag, parent_styles: Dict[str, str], stack: LayoutStack,
                         extractor: StyleExtractor, ids) -> List[ParsedElement]:
        children = []
        for node in parent.children:
            if not isinstance(node, Tag) or node.name.lower() in SKIP_TAGS:
                continue
            parsed = self._layout_element(node, parent_styles, stack, extractor, ids)
            if parsed is not None:
                children.append(parsed)
        return children

    def _layout_element(self, element: Tag, parent_styles: Dict[str, str], stack: LayoutStack,
                        extractor: StyleExtractor, ids) -> Optional[ParsedElement]:
        styles = extractor.compute(element, parent_styles)
        if styles.get("display", "").lower() == "none":
            return None

        tag_name = element.name.lower()
        left, top, width, height = self.calculate_position(element, styles, parent_styles, stack)

        parsed = ParsedElement(
            id=f"el-{next(ids)}",
            tag_name=tag_name,
            text_content=direct_text(element),
            styles=styles,
            position=Box(px_to_inches(left), px_to_inches(top), px_to_inches(width), px_to_inches(height)),
        )

        if any(isinstance(child, Tag) for child in element.children):
            # Children flow inside this element's content box
            position = styles.get("position", "static").lower()
            stack.push(LayoutContext(
                origin_x=left + parse_length(styles.get("padding-left")),
                origin_y=top + parse_length(styles.get("padding-top")),
                is_positioning_context=position != "static",
            ))
            try:
                parsed.children = self._layout_children(element, styles, stack, extractor, ids)
            finally:
                stack.pop()

        return parsed

    def resolve_size(self, element: Tag, styles: Dict[str, str]):
        """
        Border-box width/height in px: inline style, then computed style,
        then tag defaults.  Explicit content-box sizes grow by padding and
        border, so a zero-size element with wide borders keeps its border box.
        """
        tag_name = element.name.lower()
        inline = parse_declarations(element.get("style"))
        content_box = styles.get("box-sizing", "content-box").lower() != "border-box"

        width = _explicit_px(inline.get("width"))
        if width is None:
            width = _explicit_px(styles.get("width"))
        if width is None:
            max_width = parse_length(inline.get("max-width")) or parse_length(styles.get("max-width"))
            width = max_width or default_width(tag_name)
        elif content_box:
            width += _edge_sum(styles, "left", "right")

        height = _explicit_px(inline.get("height"))
        if height is None:
            height = _explicit_px(styles.get("height"))
        if height is None:
            height = default_height(tag_name)
        elif content_box:
            height += _edge_sum(styles, "top", "bottom")
        return width, height

    def calculate_position(self, element: Tag, styles: Dict[str, str], parent_styles: Dict[str, str],
                           stack: LayoutStack):
        """Return ``(left, top, width, height)`` in px document coordinates."""
        width, height = self.resolve_size(element, styles)
        margin_top = parse_length(styles.get("margin-top"))
        margin_bottom = parse_length(styles.get("margin-bottom"))
        margin_left = parse_length(styles.get("margin-left"))
        margin_right = parse_length(styles.get("margin-right"))

        position = styles.get("position", "static").lower()
        left = top = 0.0

        if position == "fixed":
            if _has_offset(styles, "left"):
                left = parse_length(styles["left"])
            elif _has_offset(styles, "right"):
                left = self.slide_width_px - width - parse_length(styles["right"])
            if _has_offset(styles, "top"):
                top = parse_length(styles["top"])
            elif _has_offset(styles, "bottom"):
                top = self.slide_height_px - height - parse_length(styles["bottom"])

        elif position == "absolute":
            anchor = stack.nearest_positioning_context()
            if _has_offset(styles, "left"):
                left = anchor.origin_x + parse_length(styles["left"])
            elif _has_offset(styles, "right"):
                left = anchor.origin_x + ASSUMED_CONTAINER_WIDTH - width - parse_length(styles["right"])
            else:
                left = anchor.origin_x
            if _has_offset(styles, "top"):
                top = anchor.origin_y + parse_length(styles["top"])
            elif _has_offset(styles, "bottom"):
                top = anchor.origin_y + ASSUMED_CONTAINER_HEIGHT - height - parse_length(styles["bottom"])
            else:
                top = anchor.origin_y

        else:
            context = stack.current
            if self._is_inline_level(styles, parent_styles):
                left = context.origin_x + context.cumulative_x + margin_left
                top = context.origin_y + context.cumulative_y
                context.cumulative_x += margin_left + width + margin_right
            else:
                left = context.origin_x + margin_left
                top = context.origin_y + context.cumulative_y + margin_top
                context.cumulative_y += margin_top + height + margin_bottom
                context.cumulative_x = 0

            if position in ("relative", "sticky"):
                if _has_offset(styles, "left"):
                    left += parse_length(styles["left"])
                elif _has_offset(styles, "right"):
                    left -= parse_length(styles["right"])
                if _has_offset(styles, "top"):
                    top += parse_length(styles["top"])
                elif _has_offset(styles, "bottom"):
                    top -= parse_length(styles["bottom"])

        return left, top, width, height

    @staticmethod
    def _is_inline_level(styles: Dict[str, str], parent_styles: Dict[str, str]) -> bool:
        display = styles.get("display", "block").lower()
        if display in INLINE_DISPLAYS:
            return True
        parent_display = parent_styles.get("display", "").lower()
        direction = parent_styles.get("flex-direction", "row").lower()
        return parent_display in HORIZONTAL_CONTAINERS and not direction.startswith("column")

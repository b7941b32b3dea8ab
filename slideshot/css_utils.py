"""
CSS utilities shared by the layout engine, classifier and style mapper.

Covers value parsing (lengths, colors), shorthand expansion and the
style extractor that resolves a flat per-element style map from the
user-agent defaults, inherited values, ``<style>`` rules and inline
``style`` attributes.
"""
import logging
import re
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString
from soupsieve import SelectorSyntaxError

logger = logging.getLogger(__name__)

PX_PER_INCH = 96
PX_TO_PT = 0.75
# Percentages resolve against this width; the fallback engine has no real
# containing block to measure.
PERCENT_REFERENCE_PX = 1000
DEFAULT_FONT_SIZE_PX = 16

SIDES = ("top", "right", "bottom", "left")

NAMED_COLORS = {
    "black": "000000",
    "white": "FFFFFF",
    "red": "FF0000",
    "green": "00FF00",
    "blue": "0000FF",
    "yellow": "FFFF00",
    "cyan": "00FFFF",
    "magenta": "FF00FF",
    "gray": "808080",
    "grey": "808080",
    "silver": "C0C0C0",
    "orange": "FFA500",
    "purple": "800080",
    "navy": "000080",
}

TRANSPARENT_VALUES = ("transparent", "rgba(0, 0, 0, 0)", "none", "initial", "inherit", "currentcolor")

INHERITED_PROPERTIES = (
    "color", "font-family", "font-size", "font-weight", "font-style", "text-align", "visibility",
)

INLINE_TAGS = {
    "span", "a", "b", "strong", "em", "i", "u", "label", "code", "small", "sub", "sup",
    "mark", "abbr", "img", "br", "s", "del", "ins", "kbd", "q", "time",
}
INLINE_BLOCK_TAGS = {"button", "input", "select", "textarea"}

SKIP_TAGS = {"script", "style", "meta", "link", "title", "head", "noscript", "template"}

_UA_DISPLAY = {
    "table": "table",
    "thead": "table-header-group",
    "tbody": "table-row-group",
    "tfoot": "table-footer-group",
    "tr": "table-row",
    "td": "table-cell",
    "th": "table-cell",
    "li": "list-item",
}

_UA_FONT_SIZES = {
    "h1": "32px", "h2": "24px", "h3": "18.72px", "h4": "16px", "h5": "13.28px", "h6": "10.72px",
}

_BOLD_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6", "th", "b", "strong"}
_ITALIC_TAGS = {"em", "i"}

_NUMBER_RE = re.compile(r"^\s*(-?\d*\.?\d+)\s*([a-z%]*)\s*$", re.IGNORECASE)
_RGB_RE = re.compile(
    r"rgba?\(\s*(\d+(?:\.\d+)?)\s*[,\s]\s*(\d+(?:\.\d+)?)\s*[,\s]\s*(\d+(?:\.\d+)?)"
    r"(?:\s*[,/]\s*(\d*\.?\d+)(%?))?\s*\)",
    re.IGNORECASE,
)
_HEX_RE = re.compile(r"#([0-9a-f]{3,8})\b", re.IGNORECASE)
_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_AT_BLOCK_RE = re.compile(r"@[^{;]+\{(?:[^{}]*\{[^{}]*\})*[^{}]*\}", re.DOTALL)
_AT_STATEMENT_RE = re.compile(r"@[^{;]+;")
_RULE_RE = re.compile(r"([^{}]+)\{([^{}]*)\}")


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------

def parse_length(value: Optional[str], reference_px: float = PERCENT_REFERENCE_PX,
                 font_size_px: float = DEFAULT_FONT_SIZE_PX) -> float:
    """Parse a CSS length to px.  Unparseable values (``auto``, ``calc()``) give 0."""
    if not value:
        return 0.0
    match = _NUMBER_RE.match(str(value).replace("!important", ""))
    if not match:
        return 0.0
    number = float(match.group(1))
    unit = match.group(2).lower()
    if unit in ("", "px"):
        return number
    if unit == "%":
        return number / 100 * reference_px
    if unit == "pt":
        return number / PX_TO_PT
    if unit in ("em", "rem"):
        return number * font_size_px
    if unit == "in":
        return number * PX_PER_INCH
    if unit == "cm":
        return number * PX_PER_INCH / 2.54
    if unit == "mm":
        return number * PX_PER_INCH / 25.4
    if unit == "vw":
        return number / 100 * reference_px
    return 0.0


def px_to_inches(px: float) -> float:
    return px / PX_PER_INCH


def px_to_pt(px: float) -> float:
    return px * PX_TO_PT


def parse_color(value: Optional[str]) -> Optional[Tuple[str, float]]:
    """
    Parse a CSS color into ``(HEX, alpha)``.

    ``HEX`` is six uppercase hex digits without ``#``.  Fully transparent,
    unknown and empty values return ``None``.
    """
    if not value:
        return None
    value = value.strip()
    lowered = value.lower()
    if lowered in TRANSPARENT_VALUES:
        return None

    rgb_match = _RGB_RE.search(value)
    if rgb_match:
        r, g, b = (min(255, int(float(rgb_match.group(i)))) for i in (1, 2, 3))
        alpha = 1.0
        if rgb_match.group(4):
            alpha = float(rgb_match.group(4))
            if rgb_match.group(5) == "%":
                alpha /= 100
        if alpha <= 0:
            return None
        return f"{r:02X}{g:02X}{b:02X}", min(alpha, 1.0)

    hex_match = _HEX_RE.match(value)
    if hex_match:
        digits = hex_match.group(1)
        alpha = 1.0
        if len(digits) in (3, 4):
            if len(digits) == 4:
                alpha = int(digits[3] * 2, 16) / 255
            digits = "".join(c * 2 for c in digits[:3])
        elif len(digits) == 8:
            alpha = int(digits[6:8], 16) / 255
            digits = digits[:6]
        elif len(digits) != 6:
            return None
        if alpha <= 0:
            return None
        return digits.upper(), alpha

    named = NAMED_COLORS.get(lowered)
    if named:
        return named, 1.0
    return None


def color_hex(value: Optional[str]) -> Optional[str]:
    """Return only the hex triplet of a CSS color, or ``None``."""
    parsed = parse_color(value)
    return parsed[0] if parsed else None


def is_transparent(value: Optional[str]) -> bool:
    return parse_color(value) is None


def split_css_values(value: str) -> List[str]:
    """Split on top-level whitespace, keeping ``rgb(...)`` style groups intact."""
    parts, depth, current = [], 0, ""
    for char in value.strip():
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char.isspace() and depth == 0:
            if current:
                parts.append(current)
                current = ""
            continue
        current += char
    if current:
        parts.append(current)
    return parts


def split_top_level(value: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside parentheses."""
    parts, depth, current = [], 0, ""
    for char in value:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == separator and depth == 0:
            parts.append(current.strip())
            current = ""
            continue
        current += char
    if current.strip():
        parts.append(current.strip())
    return parts


def font_weight_value(weight: Optional[str]) -> int:
    if not weight:
        return 400
    weight = weight.strip().lower()
    if weight in ("bold", "bolder"):
        return 700
    if weight in ("normal", "lighter"):
        return 400
    try:
        return int(float(weight))
    except ValueError:
        return 400


# ---------------------------------------------------------------------------
# Shorthand expansion
# ---------------------------------------------------------------------------

_BORDER_STYLES = {"none", "hidden", "dotted", "dashed", "solid", "double", "groove", "ridge", "inset", "outset"}
_BORDER_WIDTH_KEYWORDS = {"thin": "1px", "medium": "3px", "thick": "5px"}


def _box_values(values: List[str]) -> Dict[str, str]:
    """Map 1-4 CSS box values onto top/right/bottom/left."""
    if not values:
        return {}
    if len(values) == 1:
        values = values * 4
    elif len(values) == 2:
        values = [values[0], values[1], values[0], values[1]]
    elif len(values) == 3:
        values = [values[0], values[1], values[2], values[1]]
    return dict(zip(SIDES, values[:4]))


def _parse_border_shorthand(value: str) -> Dict[str, str]:
    width, style, color = None, None, None
    for token in split_css_values(value):
        lowered = token.lower()
        if lowered in _BORDER_STYLES:
            style = lowered
        elif lowered in _BORDER_WIDTH_KEYWORDS:
            width = _BORDER_WIDTH_KEYWORDS[lowered]
        elif _NUMBER_RE.match(lowered):
            width = token
        else:
            color = token
    result = {}
    if width is not None:
        result["width"] = width
    if style is not None:
        result["style"] = style
        if width is None and style not in ("none", "hidden"):
            result["width"] = "3px"
    if color is not None:
        result["color"] = color
    return result


def expand_declaration(prop: str, value: str) -> Dict[str, str]:
    """Expand one declaration into longhand properties (shorthands kept too)."""
    prop = prop.strip().lower()
    value = value.replace("!important", "").strip()
    if not prop or not value:
        return {}

    expanded = {prop: value}

    if prop in ("margin", "padding"):
        for side, side_value in _box_values(split_css_values(value)).items():
            expanded[f"{prop}-{side}"] = side_value
    elif prop == "border":
        parts = _parse_border_shorthand(value)
        for side in SIDES:
            for key, part in parts.items():
                expanded[f"border-{side}-{key}"] = part
        for key, part in parts.items():
            expanded[f"border-{key}"] = part
    elif prop in tuple(f"border-{side}" for side in SIDES):
        for key, part in _parse_border_shorthand(value).items():
            expanded[f"{prop}-{key}"] = part
    elif prop in ("border-width", "border-style", "border-color"):
        key = prop.split("-")[1]
        for side, side_value in _box_values(split_css_values(value)).items():
            if key == "width":
                side_value = _BORDER_WIDTH_KEYWORDS.get(side_value.lower(), side_value)
            expanded[f"border-{side}-{key}"] = side_value
    elif prop == "border-radius":
        first = split_css_values(value.split("/")[0])
        expanded[prop] = first[0] if first else value
    elif prop == "background":
        if "gradient(" in value.lower():
            expanded["background-image"] = value
        else:
            for token in split_css_values(value):
                if parse_color(token) is not None or token.lower() == "transparent":
                    expanded["background-color"] = token
                    break
    elif prop == "font":
        # only the size and family are recoverable reliably
        match = re.search(r"(\d*\.?\d+(?:px|pt|em|rem|%))(?:/\S+)?\s+(.+)$", value)
        if match:
            expanded["font-size"] = match.group(1)
            expanded["font-family"] = match.group(2)
    return expanded


def parse_declarations(style_text: Optional[str]) -> Dict[str, str]:
    """Parse a ``prop: value; ...`` block into an expanded style map."""
    styles: Dict[str, str] = {}
    if not style_text:
        return styles
    for declaration in split_top_level(style_text, ";"):
        if ":" not in declaration:
            continue
        prop, value = declaration.split(":", 1)
        styles.update(expand_declaration(prop, value))
    return styles


def selector_specificity(selector: str) -> Tuple[int, int, int]:
    """Approximate (ids, classes/attributes/pseudo-classes, types) specificity."""
    stripped = re.sub(r"\[[^\]]*\]", " [] ", selector)
    ids = len(re.findall(r"#[\w-]+", stripped))
    classes = len(re.findall(r"\.[\w-]+", stripped)) + stripped.count("[]")
    classes += len(re.findall(r"(?<!:):[\w-]+", stripped))
    types = len(re.findall(r"(?:^|[\s>+~])([a-zA-Z][\w-]*)", stripped))
    return ids, classes, types


# ---------------------------------------------------------------------------
# Style extraction
# ---------------------------------------------------------------------------

class StyleExtractor:
    """
    Resolves per-element style maps for a parsed document.

    Stylesheet rules are matched once at construction with BeautifulSoup's
    CSS selector engine; ``compute`` then layers user-agent defaults,
    inherited values, matched rules and the inline ``style`` attribute.
    """

    def __init__(self, soup: BeautifulSoup):
        self.soup = soup
        self._matches: Dict[int, List[Tuple[Tuple[int, int, int], int, Dict[str, str]]]] = {}
        self._collect_rules()

    def _collect_rules(self):
        order = 0
        for style_tag in self.soup.find_all("style"):
            css = _COMMENT_RE.sub("", style_tag.get_text())
            css = _AT_BLOCK_RE.sub("", css)
            css = _AT_STATEMENT_RE.sub("", css)
            for selector_group, body in _RULE_RE.findall(css):
                declarations = parse_declarations(body)
                if not declarations:
                    continue
                for selector in split_top_level(selector_group, ","):
                    if "::" in selector or not selector:
                        continue
                    try:
                        matched = self.soup.select(selector)
                    except (SelectorSyntaxError, NotImplementedError, ValueError) as e:
                        logger.debug(f"Skipping unsupported selector '{selector}': {e}")
                        continue
                    specificity = selector_specificity(selector)
                    for element in matched:
                        self._matches.setdefault(id(element), []).append((specificity, order, declarations))
                    order += 1
        if self._matches:
            logger.debug(f"Stylesheet rules matched {len(self._matches)} elements")

    def user_agent_defaults(self, tag_name: str) -> Dict[str, str]:
        defaults = {"position": "static"}
        if tag_name in INLINE_TAGS:
            defaults["display"] = "inline"
        elif tag_name in INLINE_BLOCK_TAGS:
            defaults["display"] = "inline-block"
        else:
            defaults["display"] = _UA_DISPLAY.get(tag_name, "block")
        if tag_name in _UA_FONT_SIZES:
            defaults["font-size"] = _UA_FONT_SIZES[tag_name]
        if tag_name in _BOLD_TAGS:
            defaults["font-weight"] = "700"
        if tag_name in _ITALIC_TAGS:
            defaults["font-style"] = "italic"
        if tag_name == "th":
            defaults["text-align"] = "center"
        return defaults

    def compute(self, element: Tag, parent_styles: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Return the resolved style map for ``element``."""
        parent_styles = parent_styles or {}
        styles: Dict[str, str] = {
            prop: parent_styles[prop] for prop in INHERITED_PROPERTIES if prop in parent_styles
        }
        styles.update(self.user_agent_defaults(element.name.lower()))

        for _specificity, _order, declarations in sorted(
            self._matches.get(id(element), []), key=lambda match: (match[0], match[1])
        ):
            styles.update(declarations)
        styles.update(parse_declarations(element.get("style")))

        for prop in INHERITED_PROPERTIES:
            if styles.get(prop) == "inherit":
                if prop in parent_styles:
                    styles[prop] = parent_styles[prop]
                else:
                    styles.pop(prop)

        parent_font_px = parse_length(parent_styles.get("font-size")) or DEFAULT_FONT_SIZE_PX
        font_size = styles.get("font-size")
        if font_size and not font_size.strip().lower().endswith("px"):
            reference = parent_font_px
            if font_size.strip().endswith("%"):
                resolved = parse_length(font_size, reference_px=reference)
            else:
                resolved = parse_length(font_size, font_size_px=reference)
            if resolved:
                styles["font-size"] = f"{resolved:g}px"
        return styles


def direct_text(element: Tag) -> str:
    """Concatenate the element's own text nodes (not its descendants')."""
    parts = []
    for node in element.children:
        # comments, doctypes and CDATA are PreformattedString subclasses
        if not isinstance(node, NavigableString) or isinstance(node, PreformattedString):
            continue
        text = str(node).strip()
        if text:
            parts.append(" ".join(text.split()))
    return " ".join(parts)

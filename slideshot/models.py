"""
Data models for the HTML to PowerPoint conversion pipeline.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

# Primitive types a classified element can become.  ``skip`` marks a
# removed decorative wrapper whose children are hoisted into its parent.
SHAPE_TYPES = ("rect", "roundRect", "ellipse", "triangle", "line", "text", "table", "skip")

LOG_LEVELS = ("info", "success", "warning", "error", "element")


@dataclass
class Box:
    """Axis-aligned bounding box in inches."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self):
        return self.x + self.width

    @property
    def bottom(self):
        return self.y + self.height

    def copy(self) -> "Box":
        return Box(self.x, self.y, self.width, self.height)

    def describe(self) -> str:
        return f'x:{self.x:.2f}" y:{self.y:.2f}" w:{self.width:.2f}" h:{self.height:.2f}"'

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "Box":
        data = data or {}
        return cls(
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
            width=float(data.get("width") or 0),
            height=float(data.get("height") or 0),
        )


@dataclass
class ParsedElement:
    """
    One DOM element with its resolved box and style map.

    Produced either by the fallback layout engine or adapted from the
    browser geometry source.  ``text_content`` holds the element's own
    text nodes only, never descendant text.
    """
    id: str
    tag_name: str
    text_content: str = ""
    styles: Dict[str, str] = field(default_factory=dict)
    position: Box = field(default_factory=Box)
    children: List["ParsedElement"] = field(default_factory=list)

    def style(self, name: str, default: str = "") -> str:
        return self.styles.get(name) or default

    def iter_tree(self):
        """Yield this element and every descendant in document order."""
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def descendant_text(self) -> str:
        """Own text plus all descendant text, space-joined."""
        parts = [part for part in (el.text_content.strip() for el in self.iter_tree()) if part]
        return " ".join(parts)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedElement":
        """
        Build an element tree from the geometry source's dictionary shape
        (``id, tagName, textContent, position, styles, children``).
        """
        return cls(
            id=str(data.get("id", "")),
            tag_name=str(data.get("tagName", "")).lower(),
            text_content=data.get("textContent") or "",
            styles={k: str(v) for k, v in (data.get("styles") or {}).items() if v not in (None, "")},
            position=Box.from_dict(data.get("position")),
            children=[cls.from_dict(child) for child in data.get("children") or []],
        )


@dataclass
class LayoutContext:
    """Flow state for one container being laid out (coordinates in px)."""
    origin_x: float = 0.0
    origin_y: float = 0.0
    cumulative_x: float = 0.0
    cumulative_y: float = 0.0
    is_positioning_context: bool = False


@dataclass
class GradientStop:
    color: str
    position: float  # percent along the gradient, 0-100


@dataclass
class GradientFill:
    kind: str  # "linear" or "radial"
    stops: List[GradientStop] = field(default_factory=list)
    angle_degrees: float = 0.0


@dataclass
class LineStyle:
    color: str
    width: float  # points
    dash_type: str = "solid"  # solid / dash / dot


@dataclass
class SideBorder:
    """One edge of a non-uniform border, drawn as its own line."""
    side: str  # top / right / bottom / left
    color: str
    width: float
    dash_type: str = "solid"
    x1: float = 0.0
    y1: float = 0.0
    x2: float = 0.0
    y2: float = 0.0


@dataclass
class DrawingStyles:
    """Native drawing attributes.  Colors are 6-digit uppercase hex without '#'."""
    fill: Optional[str] = None
    gradient: Optional[GradientFill] = None
    fill_opacity: Optional[float] = None
    line: Optional[LineStyle] = None
    side_borders: List[SideBorder] = field(default_factory=list)
    font_face: Optional[str] = None
    font_size: Optional[float] = None
    color: Optional[str] = None
    bold: bool = False
    italic: bool = False
    underline: bool = False
    align: Optional[str] = None
    valign: Optional[str] = None


@dataclass
class TableCell:
    text: str = ""
    is_header: bool = False
    styles: DrawingStyles = field(default_factory=DrawingStyles)


@dataclass
class TableRow:
    cells: List[TableCell] = field(default_factory=list)


@dataclass
class TableData:
    rows: List[TableRow] = field(default_factory=list)
    num_cols: int = 0


@dataclass
class DrawingPrimitive:
    """
    A classified element: one native shape, text box, line or table.

    ``table_data`` is only meaningful for ``type == "table"``, and a table
    never owns ``children``.
    """
    id: str
    type: str
    position: Box
    styles: DrawingStyles = field(default_factory=DrawingStyles)
    text: Optional[str] = None
    table_data: Optional[TableData] = None
    children: List["DrawingPrimitive"] = field(default_factory=list)
    tag_name: str = ""
    reason: str = ""
    source_position: Optional[Box] = None
    corner_radius_px: float = 0.0
    rotation: float = 0.0  # degrees clockwise

    def iter_tree(self):
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    def is_table(self) -> bool:
        return self.type == "table"


@dataclass
class ElementDiagnostics:
    id: str
    tag: str
    text: str
    html_position: str
    pptx_position: str
    pptx_type: str
    status: str = "ok"  # ok / warning / error
    issue: Optional[str] = None


@dataclass
class ConversionLog:
    level: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    element: Optional[ElementDiagnostics] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "level": self.level,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.element is not None:
            data["elementData"] = {
                "id": self.element.id,
                "tag": self.element.tag,
                "text": self.element.text,
                "htmlPosition": self.element.html_position,
                "pptxPosition": self.element.pptx_position,
                "pptxType": self.element.pptx_type,
                "status": self.element.status,
                "issue": self.element.issue,
            }
        return data

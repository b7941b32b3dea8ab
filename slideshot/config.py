"""
Conversion options and the tunable heuristic thresholds.

The threshold defaults were tuned against real-world slide markup; they are
heuristics, so every one of them can be overridden per run.
"""
from dataclasses import dataclass, field, fields
from typing import Any, Dict

DEFAULT_SLIDE_WIDTH = 13.333  # inches (16:9 widescreen)
DEFAULT_SLIDE_HEIGHT = 7.5
DEFAULT_FONT_PT = 14.0  # text with no font size


@dataclass
class Thresholds:
    triangle_max_size: float = 0.05  # inches, both sides below this
    ellipse_tolerance: float = 0.1  # inches, |w - h| below this
    decorative_radius_px: float = 500.0
    oversize_factor: float = 1.5  # wrapper larger than slide by this much
    hard_oversize_factor: float = 2.0  # anything larger than this is removed
    backdrop_coverage: float = 0.9  # fraction of slide a backdrop must cover
    light_gray_min: int = 200  # every RGB channel at least this
    light_gray_spread: int = 24  # max channel difference for "gray"
    min_scale: float = 0.5
    min_font_pt: float = 6.0
    tiny_element: float = 0.1  # inches

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Thresholds":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})


# camelCase keys accepted from request payloads
_OPTION_ALIASES = {
    "slideWidth": "slide_width",
    "slideHeight": "slide_height",
    "preferAccurateGeometry": "prefer_accurate_geometry",
    "useBrowserLayout": "prefer_accurate_geometry",
    "preserveImages": "preserve_images",
    "optimizeShapes": "optimize_shapes",
    "mergeTextBoxes": "merge_text_boxes",
    "browserTimeout": "browser_timeout",
}


@dataclass
class ConversionOptions:
    """
    Per-run configuration.

    ``preserve_images``, ``optimize_shapes`` and ``merge_text_boxes`` are
    accepted for API compatibility and currently have no effect.
    """
    slide_width: float = DEFAULT_SLIDE_WIDTH
    slide_height: float = DEFAULT_SLIDE_HEIGHT
    prefer_accurate_geometry: bool = True
    preserve_images: bool = True
    optimize_shapes: bool = True
    merge_text_boxes: bool = False
    browser_timeout: float = 30.0
    thresholds: Thresholds = field(default_factory=Thresholds)

    def __post_init__(self):
        if self.slide_width <= 0 or self.slide_height <= 0:
            raise ValueError(
                f"Slide dimensions must be positive, got {self.slide_width}x{self.slide_height}"
            )

    @property
    def slide_width_px(self) -> int:
        return int(round(self.slide_width * 96))

    @property
    def slide_height_px(self) -> int:
        return int(round(self.slide_height * 96))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversionOptions":
        """Create options from a request payload (camelCase or snake_case keys)."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (data or {}).items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known or value is None:
                continue
            if name == "thresholds" and isinstance(value, dict):
                value = Thresholds.from_dict(value)
            kwargs[name] = value
        return cls(**kwargs)

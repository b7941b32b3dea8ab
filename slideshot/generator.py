#!/usr/bin/env python3
"""
Conversion pipeline that ties together geometry, classification, styling,
post-processing and the PowerPoint renderer.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .classifier import ShapeClassifier
from .config import DEFAULT_SLIDE_HEIGHT, DEFAULT_SLIDE_WIDTH, ConversionOptions
from .errors import ConversionError, EmptyInputError, GeometrySourceUnavailable
from .layout_engine import FallbackLayoutEngine
from .layout_parser import BrowserLayoutCollector
from .models import ConversionLog, DrawingPrimitive, ElementDiagnostics, ParsedElement
from .postprocess import audit_bounds, auto_scale, filter_decorative, violated_edges
from .pptx_renderer import PPTXRenderer
from .style_mapper import StyleMapper

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "element": logging.DEBUG,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

TEXT_PREVIEW_LENGTH = 50
# Primitive types that cannot show text, even with an overlay
TEXTLESS_TYPES = ("triangle", "line")


@dataclass
class ConversionResult:
    pptx_bytes: bytes
    logs: List[ConversionLog] = field(default_factory=list)
    elements: List[DrawingPrimitive] = field(default_factory=list)
    used_browser_layout: bool = False

    def logs_as_dicts(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.logs]


class RunLog:
    """Per-run log stream, mirrored to the module logger."""

    def __init__(self):
        self.entries: List[ConversionLog] = []

    def add(self, level: str, message: str, element: Optional[ElementDiagnostics] = None):
        self.entries.append(ConversionLog(level=level, message=message, element=element))
        logger.log(_LOG_LEVELS.get(level, logging.INFO), message)

    def info(self, message: str):
        self.add("info", message)

    def success(self, message: str):
        self.add("success", message)

    def warning(self, message: str):
        self.add("warning", message)

    def error(self, message: str):
        self.add("error", message)


def count_primitives(primitives: List[DrawingPrimitive]) -> int:
    return sum(1 for root in primitives for _ in root.iter_tree())


def _text_preview(text: Optional[str]) -> str:
    text = text or ""
    if len(text) > TEXT_PREVIEW_LENGTH:
        return text[:TEXT_PREVIEW_LENGTH] + "..."
    return text


def diagnose_element(primitive: DrawingPrimitive, slide_width: float, slide_height: float,
                     tiny_element: float = 0.1) -> ElementDiagnostics:
    """Compare a primitive's source box with its final box and grade it."""
    final = primitive.position
    source = primitive.source_position or final
    status, issue = "ok", None

    if primitive.has_text() and primitive.type in TEXTLESS_TYPES:
        status, issue = "warning", f'Text "{_text_preview(primitive.text)}" may be lost in {primitive.type}'
    if final.width < tiny_element or final.height < tiny_element:
        status, issue = "warning", f'Element is too small (< {tiny_element}")'
    edges = violated_edges(final, slide_width, slide_height)
    if edges:
        status, issue = "error", f"Element outside slide ({', '.join(edges)})"

    return ElementDiagnostics(
        id=primitive.id,
        tag=primitive.tag_name,
        text=_text_preview(primitive.text),
        html_position=source.describe(),
        pptx_position=final.describe(),
        pptx_type=primitive.type,
        status=status,
        issue=issue,
    )


class ConversionPipeline:
    """
    Converts one HTML fragment into a single-slide PowerPoint file.

    The pipeline object only holds configuration and the optional geometry
    collector; every call to :meth:`convert` keeps its state (log, trees)
    local, so one instance may serve concurrent conversions.
    """

    def __init__(self, options: Optional[ConversionOptions] = None, collector=None, debug: bool = False):
        self.options = options or ConversionOptions()
        self.debug = debug
        self.collector = collector

    def _browser_collector(self):
        if self.collector is not None:
            return self.collector
        return BrowserLayoutCollector(
            self.options.slide_width,
            self.options.slide_height,
            timeout=self.options.browser_timeout,
            debug=self.debug,
        )

    async def collect_geometry(self, html: str, log: RunLog):
        """Return ``(elements, used_browser_layout)``."""
        options = self.options
        if options.prefer_accurate_geometry:
            log.info("Collecting layout with headless Chromium...")
            try:
                elements = await self._browser_collector().collect_layout(html)
                log.success(f"✅ Browser layout: {len(elements)} root elements with exact positions")
                return elements, True
            except GeometrySourceUnavailable as e:
                log.warning(f"⚠️ Browser layout unavailable ({e}); using the fallback layout engine")

        engine = FallbackLayoutEngine(options.slide_width, options.slide_height, debug=self.debug)
        elements = engine.parse(html)
        log.success(f"Parsed {len(elements)} root elements with the fallback layout engine")
        return elements, False

    async def convert(self, html: str) -> ConversionResult:
        """
        Run the whole pipeline.

        Raises:
            EmptyInputError: nothing renderable in ``html``.
            ConversionError: any other fatal failure; ``exc.logs`` holds the run log.
        """
        log = RunLog()
        options = self.options
        log.info("Starting HTML parsing...")

        try:
            elements, used_browser = await self.collect_geometry(html, log)
            if not elements:
                raise EmptyInputError("Input contains no renderable elements")

            for violation in audit_bounds(elements, options.slide_width, options.slide_height):
                log.warning(f"⚠️ {violation.describe()}")

            primitives = self.classify(elements)
            log.success(f"Classified {count_primitives(primitives)} PowerPoint elements")

            removed = []
            primitives = filter_decorative(primitives, options.slide_width, options.slide_height,
                                           options.thresholds, removed)
            for primitive, reason in removed:
                log.info(f"🧹 Removed {primitive.tag_name}#{primitive.id}: {reason}")

            scale = auto_scale(primitives, options.slide_width, options.slide_height, options.thresholds)
            if scale < 1:
                log.warning(f"📏 Content exceeded the slide; scaled to {scale:.0%}")

            log.info("📊 Element transformations:")
            for root in primitives:
                for primitive in root.iter_tree():
                    diagnostics = diagnose_element(primitive, options.slide_width, options.slide_height,
                                                   options.thresholds.tiny_element)
                    log.add("element", f"{primitive.tag_name}#{primitive.id} → {primitive.type}", diagnostics)

            log.info("Generating PowerPoint file...")
            renderer = PPTXRenderer(options.slide_width, options.slide_height, debug=self.debug)
            pptx_bytes = renderer.render(primitives)
            log.success("PowerPoint generation complete!")
        except ConversionError as e:
            log.error(f"Conversion failed: {e}")
            e.logs = log.entries
            raise
        except Exception as e:
            log.error(f"Conversion failed: {e}")
            raise ConversionError(str(e), logs=log.entries) from e

        return ConversionResult(
            pptx_bytes=pptx_bytes,
            logs=log.entries,
            elements=primitives,
            used_browser_layout=used_browser,
        )

    def classify(self, elements: List[ParsedElement]) -> List[DrawingPrimitive]:
        """Classify the parsed tree and map every element's styles."""
        primitives = ShapeClassifier(self.options.thresholds, debug=self.debug).classify(elements)
        StyleMapper().apply(elements, primitives)
        return primitives

    def convert_sync(self, html: str) -> ConversionResult:
        return asyncio.run(self.convert(html))


def save(result: ConversionResult, output_path: Union[str, Path], log_path: Union[str, Path, None] = None) -> Path:
    """Write the presentation (and optionally the run log as JSON) to disk."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.pptx_bytes)
    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.write_text(json.dumps(result.logs_as_dicts(), indent=2, ensure_ascii=False), encoding="utf-8")
    return output_path


def main():
    """Command-line entry point."""
    import argparse
    import sys

    def _build_parser() -> argparse.ArgumentParser:
        p = argparse.ArgumentParser(prog="slideshot", description="Convert HTML/CSS to an editable PPTX slide.")
        p.add_argument("html", type=Path, help="HTML file to convert")
        p.add_argument("--output", "-o", type=Path, help="Destination PPTX path (default: input name with .pptx)")
        p.add_argument("--slide-width", type=float, default=DEFAULT_SLIDE_WIDTH, help="Slide width in inches")
        p.add_argument("--slide-height", type=float, default=DEFAULT_SLIDE_HEIGHT,
                       help="Slide height in inches")
        p.add_argument("--no-browser", action="store_true", help="Skip headless Chromium and use the fallback layout")
        p.add_argument("--log-json", type=Path, help="Also write the conversion log as JSON")
        p.add_argument("--debug", action="store_true", help="Enable verbose logging")
        return p

    async def _convert_async(args):
        html_path: Path = args.html
        if not html_path.exists():
            logger.error(f"HTML file '{html_path}' not found")
            sys.exit(1)

        options = ConversionOptions(
            slide_width=args.slide_width,
            slide_height=args.slide_height,
            prefer_accurate_geometry=not args.no_browser,
        )
        pipeline = ConversionPipeline(options, debug=args.debug)
        try:
            result = await pipeline.convert(html_path.read_text(encoding="utf-8"))
        except ConversionError as e:
            logger.error(f"❌ {e}")
            sys.exit(1)

        output_path = save(result, args.output or html_path.with_suffix(".pptx"), args.log_json)
        logger.info("✅ Presentation written to %s", output_path)

    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format="%(levelname)s  %(message)s")

    asyncio.run(_convert_async(args))


if __name__ == "__main__":
    main()

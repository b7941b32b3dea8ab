#!/usr/bin/env python3
"""
Browser geometry source: measures HTML in headless Chromium.

Puppeteer renders the markup at slide size and a page script walks the
DOM, returning each element's bounding box (in inches) and computed
style map.  The output has the same shape as the fallback layout engine's
so the rest of the pipeline does not care which one produced it.
"""

import asyncio
import logging
from typing import Any, Dict, List

from pyppeteer import launch

from .config import DEFAULT_SLIDE_HEIGHT, DEFAULT_SLIDE_WIDTH
from .css_utils import PX_PER_INCH
from .errors import GeometrySourceUnavailable
from .models import ParsedElement

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--allow-file-access-from-files",
]

# Computed style properties copied into each element's style map.
COLLECTED_PROPERTIES = [
    "background-color", "background-image", "color",
    "font-size", "font-family", "font-weight", "font-style", "text-align",
    "width", "height", "border-radius",
    "border-top-width", "border-right-width", "border-bottom-width", "border-left-width",
    "border-top-style", "border-right-style", "border-bottom-style", "border-left-style",
    "border-top-color", "border-right-color", "border-bottom-color", "border-left-color",
    "padding-top", "padding-right", "padding-bottom", "padding-left",
    "margin-top", "margin-right", "margin-bottom", "margin-left",
    "display", "position", "top", "left", "right", "bottom",
    "opacity", "transform",
]

COLLECT_LAYOUT_SCRIPT = """
(properties) => {
    let counter = 0;
    const skipTags = ["script", "style", "meta", "link", "title", "head", "noscript", "template"];

    function directText(element) {
        const parts = [];
        for (const node of element.childNodes) {
            if (node.nodeType === 3) {
                const text = node.textContent.trim().replace(/\\s+/g, " ");
                if (text) parts.push(text);
            }
        }
        return parts.join(" ");
    }

    function collect(element) {
        const tagName = element.tagName.toLowerCase();
        if (skipTags.includes(tagName)) return null;
        const style = window.getComputedStyle(element);
        if (style.display === "none" || style.visibility === "hidden") return null;

        const rect = element.getBoundingClientRect();
        const styles = {};
        for (const name of properties) {
            const value = style.getPropertyValue(name);
            if (value) styles[name] = value;
        }
        const data = {
            id: "el-" + (counter++),
            tagName: tagName,
            textContent: directText(element),
            position: {
                x: rect.left / 96,
                y: rect.top / 96,
                width: rect.width / 96,
                height: rect.height / 96,
            },
            styles: styles,
            children: [],
        };
        for (const child of element.children) {
            const childData = collect(child);
            if (childData) data.children.push(childData);
        }
        return data;
    }

    if (!document.body) throw new Error("document.body is null");
    const body = collect(document.body);
    return body ? body.children : [];
}
"""


def wrap_document(html: str, width_px: int, height_px: int) -> str:
    """Wrap a fragment in a full document with a zero-margin, slide-sized body."""
    if "<!doctype" in html.lower():
        return html
    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<style>
body {{ margin: 0; padding: 0; width: {width_px}px; height: {height_px}px; overflow: hidden; }}
</style>
</head>
<body>{html}</body>
</html>"""


def elements_from_layout_data(layout_data: List[Dict[str, Any]]) -> List[ParsedElement]:
    """Adapt the page script's output into ParsedElement trees."""
    return [ParsedElement.from_dict(item) for item in layout_data or []]


class BrowserLayoutCollector:
    """
    Collects precise element geometry from headless Chromium.

    By default a browser is launched and closed for every call.  A caller
    that pools browsers can pass one in; the collector then only opens and
    closes its own page and never closes the shared browser.
    """

    def __init__(self, slide_width: float = DEFAULT_SLIDE_WIDTH, slide_height: float = DEFAULT_SLIDE_HEIGHT,
                 *, timeout: float = 30.0, browser=None, debug: bool = False):
        self.slide_width = slide_width
        self.slide_height = slide_height
        self.timeout = timeout
        self.debug = debug
        self._browser = browser

    @property
    def viewport(self) -> Dict[str, int]:
        return {
            "width": int(round(self.slide_width * PX_PER_INCH)),
            "height": int(round(self.slide_height * PX_PER_INCH)),
            "deviceScaleFactor": 1,
        }

    async def collect_layout(self, html: str) -> List[ParsedElement]:
        """
        Measure ``html`` and return the top-level elements.

        Raises:
            GeometrySourceUnavailable: the browser could not be launched,
                timed out, or the page script failed.
        """
        try:
            layout_data = await asyncio.wait_for(self._collect(html), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise GeometrySourceUnavailable(f"Browser layout timed out after {self.timeout:g}s") from e
        except Exception as e:
            raise GeometrySourceUnavailable(f"Browser layout failed: {e}") from e

        elements = elements_from_layout_data(layout_data)
        if self.debug:
            total = sum(1 for el in elements for _ in el.iter_tree())
            logger.info(f"🌐 Browser layout collected {total} elements")
        return elements

    async def _collect(self, html: str) -> List[Dict[str, Any]]:
        owns_browser = self._browser is None
        browser = self._browser
        page = None
        try:
            if owns_browser:
                logger.debug("Launching headless Chromium...")
                browser = await launch(
                    headless=True,
                    args=BROWSER_ARGS,
                    handleSIGINT=False,
                    handleSIGTERM=False,
                    handleSIGHUP=False,
                )
            page = await browser.newPage()
            await page.setViewport(self.viewport)
            viewport = self.viewport
            await page.setContent(wrap_document(html, viewport["width"], viewport["height"]))
            return await page.evaluate(COLLECT_LAYOUT_SCRIPT, COLLECTED_PROPERTIES)
        finally:
            # Release on every exit path, including cancellation and a failed page close
            try:
                if page is not None:
                    await page.close()
            finally:
                if owns_browser and browser is not None:
                    await browser.close()

#!/usr/bin/env python3
"""
PowerPoint renderer: writes classified drawing primitives as native,
editable shapes, text boxes, lines and tables on a single slide.
"""

import io
import logging
from typing import List, Optional

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.dml import MSO_LINE_DASH_STYLE
from pptx.enum.shapes import MSO_CONNECTOR, MSO_SHAPE
from pptx.enum.text import MSO_ANCHOR, PP_ALIGN
from pptx.oxml import parse_xml
from pptx.oxml.ns import nsdecls, qn
from pptx.util import Inches, Pt

from .config import DEFAULT_FONT_PT, DEFAULT_SLIDE_HEIGHT, DEFAULT_SLIDE_WIDTH
from .css_utils import PX_PER_INCH
from .errors import EmitterError
from .models import Box, DrawingPrimitive, DrawingStyles, GradientFill, LineStyle, TableCell, TableData

logger = logging.getLogger(__name__)

BLANK_LAYOUT_INDEX = 6

SHAPE_MAP = {
    "rect": MSO_SHAPE.RECTANGLE,
    "roundRect": MSO_SHAPE.ROUNDED_RECTANGLE,
    "ellipse": MSO_SHAPE.OVAL,
    "triangle": MSO_SHAPE.ISOSCELES_TRIANGLE,
}

ALIGN_MAP = {
    "left": PP_ALIGN.LEFT,
    "center": PP_ALIGN.CENTER,
    "right": PP_ALIGN.RIGHT,
    "justify": PP_ALIGN.JUSTIFY,
}

VALIGN_MAP = {
    "top": MSO_ANCHOR.TOP,
    "middle": MSO_ANCHOR.MIDDLE,
    "bottom": MSO_ANCHOR.BOTTOM,
}

DASH_MAP = {
    "solid": MSO_LINE_DASH_STYLE.SOLID,
    "dash": MSO_LINE_DASH_STYLE.DASH,
    "dot": MSO_LINE_DASH_STYLE.ROUND_DOT,
}

# XML preset names for table cell borders
DASH_PRESETS = {"solid": "solid", "dash": "dash", "dot": "sysDot"}

TEXT_COLOR = "000000"
OVERLAY_TEXT_COLOR = "FFFFFF"
HEADER_FILL = "6C757D"
HEADER_TEXT_COLOR = "FFFFFF"
TABLE_BORDER = LineStyle(color="EEF2F6", width=1.0)
FALLBACK_CELL_FONT_PT = 10.0
ROUND_RECT_MAX_ADJUSTMENT = 0.5


def _rgb(hex_color: str) -> RGBColor:
    return RGBColor.from_string(hex_color.upper())


class PPTXRenderer:
    """
    Renders a primitive tree onto one blank slide.

    Parents are drawn before their children so nesting maps onto z-order.
    A table that python-pptx cannot build is drawn as a grid of text boxes
    instead; any other failure aborts the render with EmitterError.
    """

    def __init__(self, slide_width: float = DEFAULT_SLIDE_WIDTH, slide_height: float = DEFAULT_SLIDE_HEIGHT,
                 debug: bool = False):
        self.slide_width = slide_width
        self.slide_height = slide_height
        self.debug = debug

    def render(self, primitives: List[DrawingPrimitive]) -> bytes:
        """Build the presentation and return it serialized."""
        try:
            prs = Presentation()
            prs.slide_width = Inches(self.slide_width)
            prs.slide_height = Inches(self.slide_height)
            slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT_INDEX])

            count = 0
            for primitive in primitives:
                count += self._add_tree(slide, primitive)

            buffer = io.BytesIO()
            prs.save(buffer)
        except EmitterError:
            raise
        except Exception as e:
            raise EmitterError(f"Failed to write presentation: {e}") from e

        if self.debug:
            logger.debug(f"✅ Rendered {count} primitives")
        return buffer.getvalue()

    def _add_tree(self, slide, primitive: DrawingPrimitive) -> int:
        count = 0
        if primitive.type != "skip":
            self._add_primitive(slide, primitive)
            count = 1
        for child in primitive.children:
            count += self._add_tree(slide, child)
        return count

    def _add_primitive(self, slide, primitive: DrawingPrimitive):
        if self.debug:
            logger.debug(f"Adding {primitive.type} {primitive.id} at {primitive.position.describe()}")

        if primitive.type == "text":
            self._add_text_box(slide, primitive)
        elif primitive.type == "line":
            self._add_line(slide, primitive)
        elif primitive.type == "table":
            self._add_table(slide, primitive)
        else:
            self._add_shape(slide, primitive)
            if primitive.has_text() and primitive.type != "triangle":
                self._add_text_overlay(slide, primitive)

        for border in primitive.styles.side_borders:
            self._add_connector(slide, border.x1, border.y1, border.x2, border.y2,
                                LineStyle(border.color, border.width, border.dash_type))

    # ------------------------------------------------------------------
    # Shapes
    # ------------------------------------------------------------------

    def _add_shape(self, slide, primitive: DrawingPrimitive):
        box = primitive.position
        shape = slide.shapes.add_shape(
            SHAPE_MAP.get(primitive.type, MSO_SHAPE.RECTANGLE),
            Inches(box.x), Inches(box.y), Inches(box.width), Inches(box.height),
        )
        if primitive.type == "roundRect":
            shorter_px = min(box.width, box.height) * PX_PER_INCH
            if shorter_px > 0 and primitive.corner_radius_px > 0:
                shape.adjustments[0] = min(ROUND_RECT_MAX_ADJUSTMENT, primitive.corner_radius_px / shorter_px)
        if primitive.rotation:
            shape.rotation = primitive.rotation

        self._apply_fill(shape, primitive.styles)
        self._apply_line(shape.line, primitive.styles.line)
        return shape

    def _apply_fill(self, shape, styles: DrawingStyles):
        if styles.gradient and styles.gradient.stops:
            self._apply_gradient(shape, styles.gradient)
            return
        if not styles.fill:
            shape.fill.background()
            return
        shape.fill.solid()
        shape.fill.fore_color.rgb = _rgb(styles.fill)
        if styles.fill_opacity is not None:
            solid = shape._element.spPr.find(qn("a:solidFill"))
            color = solid.find(qn("a:srgbClr")) if solid is not None else None
            if color is not None:
                color.append(parse_xml(f'<a:alpha {nsdecls("a")} val="{int(styles.fill_opacity * 100000)}"/>'))

    def _apply_gradient(self, shape, gradient: GradientFill):
        if len(gradient.stops) == 1:
            shape.fill.solid()
            shape.fill.fore_color.rgb = _rgb(gradient.stops[0].color)
            return

        fill = shape.fill
        fill.gradient()
        grad_fill = shape._element.spPr.find(qn("a:gradFill"))
        gs_list = grad_fill.find(qn("a:gsLst"))
        for stop in list(gs_list):
            gs_list.remove(stop)
        for stop in gradient.stops:
            gs_list.append(parse_xml(
                f'<a:gs {nsdecls("a")} pos="{int(round(stop.position * 1000))}">'
                f'<a:srgbClr val="{stop.color}"/></a:gs>'
            ))

        if gradient.kind == "radial":
            linear = grad_fill.find(qn("a:lin"))
            if linear is not None:
                grad_fill.remove(linear)
            grad_fill.append(parse_xml(
                f'<a:path {nsdecls("a")} path="circle">'
                f'<a:fillToRect l="50000" t="50000" r="50000" b="50000"/></a:path>'
            ))
        else:
            # CSS measures clockwise from "to top"; python-pptx counter-clockwise from "to right"
            fill.gradient_angle = (90 - gradient.angle_degrees) % 360

    def _apply_line(self, line, style: Optional[LineStyle]):
        if style is None:
            line.fill.background()
            return
        line.color.rgb = _rgb(style.color)
        line.width = Pt(style.width)
        line.dash_style = DASH_MAP.get(style.dash_type, MSO_LINE_DASH_STYLE.SOLID)

    def _add_line(self, slide, primitive: DrawingPrimitive):
        box = primitive.position
        self._add_connector(slide, box.x, box.y, box.right, box.y, primitive.styles.line or TABLE_BORDER)

    def _add_connector(self, slide, x1: float, y1: float, x2: float, y2: float, style: LineStyle):
        connector = slide.shapes.add_connector(
            MSO_CONNECTOR.STRAIGHT, Inches(x1), Inches(y1), Inches(x2), Inches(y2)
        )
        self._apply_line(connector.line, style)
        return connector

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def _write_text(self, text_frame, text: str, styles: DrawingStyles, default_color: str,
                    default_align: str, default_valign: str, default_size: float = DEFAULT_FONT_PT):
        text_frame.word_wrap = True
        text_frame.vertical_anchor = VALIGN_MAP.get(styles.valign or default_valign, MSO_ANCHOR.TOP)
        paragraph = text_frame.paragraphs[0]
        paragraph.alignment = ALIGN_MAP.get(styles.align or default_align, PP_ALIGN.LEFT)
        run = paragraph.add_run()
        run.text = text
        font = run.font
        font.size = Pt(styles.font_size or default_size)
        font.color.rgb = _rgb(styles.color or default_color)
        font.bold = styles.bold
        font.italic = styles.italic
        font.underline = styles.underline
        if styles.font_face:
            font.name = styles.font_face

    def _add_text_box(self, slide, primitive: DrawingPrimitive):
        box = primitive.position
        textbox = slide.shapes.add_textbox(Inches(box.x), Inches(box.y), Inches(box.width), Inches(box.height))
        styles = primitive.styles
        if styles.fill or styles.gradient:
            self._apply_fill(textbox, styles)
        if styles.line:
            self._apply_line(textbox.line, styles.line)
        if primitive.has_text():
            self._write_text(textbox.text_frame, primitive.text, styles, TEXT_COLOR, "left", "top")
        return textbox

    def _add_text_overlay(self, slide, primitive: DrawingPrimitive):
        box = primitive.position
        textbox = slide.shapes.add_textbox(Inches(box.x), Inches(box.y), Inches(box.width), Inches(box.height))
        self._write_text(textbox.text_frame, primitive.text, primitive.styles, OVERLAY_TEXT_COLOR, "center", "middle")
        return textbox

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _add_table(self, slide, primitive: DrawingPrimitive):
        data = primitive.table_data
        if data is None or not data.rows or data.num_cols == 0:
            logger.warning(f"⚠️ Table {primitive.id} has no cells; drawn as a rectangle")
            self._add_shape(slide, primitive)
            return
        try:
            self._add_native_table(slide, primitive)
        except Exception as e:
            logger.warning(f"⚠️ Native table failed for {primitive.id} ({e}); falling back to text boxes")
            self._add_table_as_textboxes(slide, primitive)

    @staticmethod
    def _cell_colors(cell: TableCell):
        """Return ``(fill, text_color)`` with the header defaults applied."""
        if cell.is_header and not cell.styles.fill:
            return HEADER_FILL, HEADER_TEXT_COLOR
        return cell.styles.fill, cell.styles.color or TEXT_COLOR

    def _add_native_table(self, slide, primitive: DrawingPrimitive):
        data = primitive.table_data
        box = primitive.position
        rows, cols = len(data.rows), data.num_cols

        graphic_frame = slide.shapes.add_table(
            rows, cols, Inches(box.x), Inches(box.y), Inches(box.width), Inches(box.height)
        )
        try:
            self._fill_native_table(graphic_frame.table, data, box)
        except Exception:
            # Leave no half-styled table behind for the text box fallback to draw over
            frame_element = graphic_frame._element
            frame_element.getparent().remove(frame_element)
            raise

        if self.debug:
            logger.debug(f"📊 Table {primitive.id}: {rows} rows x {cols} columns")
        return graphic_frame

    def _fill_native_table(self, table, data: TableData, box: Box):
        cols = data.num_cols
        table.first_row = False
        table.horz_banding = False

        column_width = Inches(box.width / cols)
        for column in table.columns:
            column.width = column_width

        for row_idx, row in enumerate(data.rows):
            for col_idx, cell_data in enumerate(row.cells[:cols]):
                cell = table.cell(row_idx, col_idx)
                fill, color = self._cell_colors(cell_data)
                if fill:
                    cell.fill.solid()
                    cell.fill.fore_color.rgb = _rgb(fill)
                else:
                    cell.fill.background()

                styles = cell_data.styles
                text_frame = cell.text_frame
                text_frame.word_wrap = True
                paragraph = text_frame.paragraphs[0]
                paragraph.alignment = ALIGN_MAP.get(styles.align or "left", PP_ALIGN.LEFT)
                run = paragraph.add_run()
                run.text = cell_data.text
                if styles.font_size:
                    run.font.size = Pt(styles.font_size)
                if styles.font_face:
                    run.font.name = styles.font_face
                run.font.color.rgb = _rgb(color)
                run.font.bold = styles.bold or cell_data.is_header
                run.font.italic = styles.italic
                cell.vertical_anchor = MSO_ANCHOR.MIDDLE

                self._apply_cell_border(cell, styles.line or TABLE_BORDER)

    @staticmethod
    def _apply_cell_border(cell, style: LineStyle):
        """Set all four cell borders through raw XML; python-pptx has no cell border API."""
        width_emu = int(Pt(style.width))
        dash = DASH_PRESETS.get(style.dash_type, "solid")
        tc_pr = cell._tc.get_or_add_tcPr()
        for side in ("a:lnB", "a:lnT", "a:lnR", "a:lnL"):
            existing = tc_pr.find(qn(side))
            if existing is not None:
                tc_pr.remove(existing)
            tag = side.split(":")[1]
            # Inserting in reverse leaves lnL, lnR, lnT, lnB ahead of the cell fill
            tc_pr.insert(0, parse_xml(
                f'<a:{tag} w="{width_emu}" {nsdecls("a")}>'
                f'<a:solidFill><a:srgbClr val="{style.color}"/></a:solidFill>'
                f'<a:prstDash val="{dash}"/>'
                f'</a:{tag}>'
            ))

    def _add_table_as_textboxes(self, slide, primitive: DrawingPrimitive):
        data = primitive.table_data
        box = primitive.position
        column_width = box.width / data.num_cols
        row_height = box.height / len(data.rows)

        for row_idx, row in enumerate(data.rows):
            for col_idx, cell_data in enumerate(row.cells):
                cell_box = Box(box.x + col_idx * column_width, box.y + row_idx * row_height, column_width, row_height)
                textbox = slide.shapes.add_textbox(
                    Inches(cell_box.x), Inches(cell_box.y), Inches(cell_box.width), Inches(cell_box.height)
                )
                fill, color = self._cell_colors(cell_data)
                textbox.fill.solid()
                textbox.fill.fore_color.rgb = _rgb(fill or "FFFFFF")
                styles = DrawingStyles(
                    font_size=cell_data.styles.font_size,
                    font_face=cell_data.styles.font_face,
                    color=color,
                    bold=cell_data.styles.bold or cell_data.is_header,
                    italic=cell_data.styles.italic,
                    align=cell_data.styles.align,
                )
                self._write_text(textbox.text_frame, cell_data.text, styles, TEXT_COLOR, "left", "middle",
                                 default_size=FALLBACK_CELL_FONT_PT)

"""
Render Surface – drawing capability consumed by the layout engine.

``RenderSurface`` is the protocol the layout code depends on.
``ReportLabSurface`` implements it on a ReportLab canvas, flipping
ReportLab's bottom-up coordinates so callers work from the top of the
page, and buffering pages so per-page chrome ("Page i of N") can be
drawn once the total page count is known.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Callable, Protocol

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from insuredocs.config import LINE_HEIGHT_RATIO
from insuredocs.services.layout_service import Align, PageGeometry

logger = logging.getLogger(__name__)


class SetupError(RuntimeError):
    """A font or image asset could not be loaded."""


class RenderSurface(Protocol):
    geometry: PageGeometry

    @property
    def page_number(self) -> int: ...

    def register_font(self, name: str, path: str | Path) -> None: ...

    def measure_text_height(
        self, text: str, font: str, font_size: float, width: float
    ) -> float: ...

    def measure_text_width(self, text: str, font: str, font_size: float) -> float: ...

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        *,
        font: str,
        font_size: float,
        width: float | None = None,
        align: Align = "left",
        underline: bool = False,
        color: str | None = None,
    ) -> float: ...

    def draw_line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        *,
        line_width: float | None = None,
        color: str | None = None,
    ) -> None: ...

    def draw_rect(self, x: float, y: float, width: float, height: float) -> None: ...

    def draw_image(
        self, path: str | Path, x: float, y: float, width: float
    ) -> float: ...

    def draw_qr(self, value: str, x: float, y: float, size: float) -> None: ...

    def new_page(self) -> None: ...


# Called once per buffered page at finalize time with (page_number, page_count)
PageDecorator = Callable[[int, int], None]


class _BufferedCanvas(canvas.Canvas):
    """Canvas that holds every page until ``finish`` so totals are known."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict] = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def finish(self, decorate: PageDecorator | None = None) -> None:
        self._saved_page_states.append(dict(self.__dict__))
        total = len(self._saved_page_states)
        for number, state in enumerate(self._saved_page_states, start=1):
            self.__dict__.update(state)
            if decorate is not None:
                decorate(number, total)
            super().showPage()
        super().save()


class ReportLabSurface:
    """RenderSurface backed by an in-memory ReportLab canvas."""

    def __init__(self, geometry: PageGeometry, *, line_height_ratio: float = LINE_HEIGHT_RATIO):
        self.geometry = geometry
        self._line_height_ratio = line_height_ratio
        self._buffer = io.BytesIO()
        self._canvas = _BufferedCanvas(
            self._buffer, pagesize=(geometry.width, geometry.height)
        )
        self._page_number = 1
        self._finalized = False

    @property
    def page_number(self) -> int:
        return self._page_number

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def register_font(self, name: str, path: str | Path) -> None:
        font_path = Path(path)
        if not font_path.is_file():
            raise SetupError(f"Font file not found: {font_path}")
        try:
            pdfmetrics.registerFont(TTFont(name, str(font_path)))
        except TTFError as exc:
            raise SetupError(f"Cannot load font {font_path}: {exc}") from exc

    def set_metadata(
        self,
        *,
        title: str = "",
        author: str = "",
        subject: str = "",
        keywords: str = "",
        creator: str = "",
    ) -> None:
        self._canvas.setTitle(title)
        self._canvas.setAuthor(author)
        self._canvas.setSubject(subject)
        self._canvas.setKeywords(keywords)
        self._canvas.setCreator(creator)

    # ------------------------------------------------------------------
    # Measurement
    # ------------------------------------------------------------------

    def _check_font(self, font: str) -> None:
        try:
            pdfmetrics.getFont(font)
        except (KeyError, ValueError, OSError) as exc:
            raise SetupError(f"Font '{font}' is not registered") from exc

    def _leading(self, font_size: float) -> float:
        return font_size * self._line_height_ratio

    def wrap(self, text: str, font: str, font_size: float, width: float | None) -> list[str]:
        """Split *text* into the lines ``draw_text`` will emit."""
        self._check_font(font)
        if not text or not text.strip():
            return []
        if width is None:
            return text.split("\n")
        return simpleSplit(text, font, font_size, width)

    def measure_text_height(
        self, text: str, font: str, font_size: float, width: float
    ) -> float:
        return len(self.wrap(text, font, font_size, width)) * self._leading(font_size)

    def measure_text_width(self, text: str, font: str, font_size: float) -> float:
        self._check_font(font)
        return pdfmetrics.stringWidth(text, font, font_size)

    # ------------------------------------------------------------------
    # Drawing (y measured from the top of the page)
    # ------------------------------------------------------------------

    def _flip(self, y: float) -> float:
        return self.geometry.height - y

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        *,
        font: str,
        font_size: float,
        width: float | None = None,
        align: Align = "left",
        underline: bool = False,
        color: str | None = None,
    ) -> float:
        lines = self.wrap(text, font, font_size, width)
        leading = self._leading(font_size)
        ascent = pdfmetrics.getAscent(font, font_size)
        c = self._canvas
        c.setFont(font, font_size)
        c.setFillColor(colors.HexColor(color) if color else colors.black)

        for index, line in enumerate(lines):
            baseline = self._flip(y + index * leading + ascent)
            line_width = pdfmetrics.stringWidth(line, font, font_size)
            if align == "center" and width is not None:
                start = x + (width - line_width) / 2
            elif align == "right" and width is not None:
                start = x + width - line_width
            else:
                start = x
            c.drawString(start, baseline, line)
            if underline:
                c.setLineWidth(max(font_size / 15, 0.5))
                c.line(start, baseline - 1.5, start + line_width, baseline - 1.5)

        c.setFillColor(colors.black)
        return len(lines) * leading

    def draw_line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        *,
        line_width: float | None = None,
        color: str | None = None,
    ) -> None:
        c = self._canvas
        c.saveState()
        c.setStrokeColor(colors.HexColor(color) if color else colors.black)
        c.setLineCap(0)
        c.setLineWidth(line_width if line_width is not None else 1)
        c.line(x1, self._flip(y1), x2, self._flip(y2))
        c.restoreState()

    def draw_rect(self, x: float, y: float, width: float, height: float) -> None:
        c = self._canvas
        c.saveState()
        c.setStrokeColor(colors.black)
        c.setLineWidth(1)
        c.rect(x, self._flip(y + height), width, height, stroke=1, fill=0)
        c.restoreState()

    def draw_image(self, path: str | Path, x: float, y: float, width: float) -> float:
        """Draw an image scaled to *width*; returns the drawn height."""
        try:
            reader = ImageReader(str(path))
            img_w, img_h = reader.getSize()
        except OSError as exc:
            raise SetupError(f"Cannot load image {path}: {exc}") from exc
        height = width * img_h / img_w
        self._canvas.drawImage(
            reader, x, self._flip(y + height), width=width, height=height, mask="auto"
        )
        return height

    def draw_qr(self, value: str, x: float, y: float, size: float) -> None:
        widget = QrCodeWidget(value, barBorder=0)
        x1, y1, x2, y2 = widget.getBounds()
        drawing = Drawing(
            size, size, transform=[size / (x2 - x1), 0, 0, size / (y2 - y1), 0, 0]
        )
        drawing.add(widget)
        renderPDF.draw(drawing, self._canvas, x, self._flip(y + size))

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def new_page(self) -> None:
        self._canvas.showPage()
        self._page_number += 1

    def finalize(self, decorate: PageDecorator | None = None) -> bytes:
        """Close the document and return the PDF bytes."""
        if not self._finalized:
            self._canvas.finish(decorate)
            self._finalized = True
            logger.debug("Finalized PDF with %d page(s)", self._page_number)
        return self._buffer.getvalue()

"""
Shared fixtures — a recording render surface with predictable metrics.
"""

import math

import pytest

from insuredocs.services.layout_service import LayoutService, PageGeometry


class FakeSurface:
    """
    RenderSurface that records every drawing call.

    Characters are ``font_size / 2`` wide and lines ``font_size * 1.2``
    tall, so measured heights are easy to predict.
    """

    def __init__(self, geometry: PageGeometry):
        self.geometry = geometry
        self.page_number = 1
        self.ops = []
        self.fonts = {}
        self.finalized_pages = []

    # -- setup ---------------------------------------------------------

    def register_font(self, name, path):
        self.fonts[name] = path

    def set_metadata(self, **kwargs):
        self.metadata = kwargs

    # -- measurement ---------------------------------------------------

    def wrap(self, text, font, font_size, width):
        if not text or not text.strip():
            return []
        paragraphs = text.split("\n")
        if width is None:
            return paragraphs
        per_line = max(1, int(width // (font_size / 2)))
        lines = []
        for para in paragraphs:
            chunks = max(1, math.ceil(len(para) / per_line))
            lines.extend(para[i * per_line:(i + 1) * per_line] for i in range(chunks))
        return lines

    def measure_text_height(self, text, font, font_size, width):
        return len(self.wrap(text, font, font_size, width)) * font_size * 1.2

    def measure_text_width(self, text, font, font_size):
        return len(text) * font_size / 2

    # -- drawing -------------------------------------------------------

    def _record(self, kind, **fields):
        self.ops.append({"kind": kind, "page": self.page_number, **fields})

    def draw_text(self, text, x, y, *, font, font_size, width=None, align="left",
                  underline=False, color=None):
        height = len(self.wrap(text, font, font_size, width)) * font_size * 1.2
        self._record("text", text=text, x=x, y=y, font=font, font_size=font_size,
                     width=width, align=align, height=height)
        return height

    def draw_line(self, x1, y1, x2, y2, *, line_width=None, color=None):
        self._record("line", x1=x1, y1=y1, x2=x2, y2=y2)

    def draw_rect(self, x, y, width, height):
        self._record("rect", x=x, y=y, width=width, height=height)

    def draw_image(self, path, x, y, width):
        self._record("image", path=path, x=x, y=y, width=width)
        return width

    def draw_qr(self, value, x, y, size):
        self._record("qr", value=value, x=x, y=y, size=size)

    def new_page(self):
        self.page_number += 1
        self._record("new_page")

    def finalize(self, decorate=None):
        for page in range(1, self.page_number + 1):
            self.finalized_pages.append(page)
            if decorate is not None:
                decorate(page, self.page_number)
        return b"%PDF-fake"

    # -- queries -------------------------------------------------------

    def of_kind(self, kind, page=None):
        return [
            op for op in self.ops
            if op["kind"] == kind and (page is None or op["page"] == page)
        ]

    def texts(self, page=None):
        return [op["text"] for op in self.of_kind("text", page)]

    def vertical_lines(self, page=None):
        return [op for op in self.of_kind("line", page) if op["x1"] == op["x2"]]

    def horizontal_lines(self, page=None):
        return [op for op in self.of_kind("line", page) if op["y1"] == op["y2"]]


@pytest.fixture
def geometry():
    # 595 x 842 with 20pt side margins: 555pt usable width
    return PageGeometry(595, 842, 20, 20, 20, 40)


@pytest.fixture
def surface(geometry):
    return FakeSurface(geometry)


@pytest.fixture
def layout(surface):
    return LayoutService(surface)


@pytest.fixture
def layout_factory():
    """Builds a recording layout for any page geometry."""
    def make(page_geometry):
        return LayoutService(FakeSurface(page_geometry))
    return make

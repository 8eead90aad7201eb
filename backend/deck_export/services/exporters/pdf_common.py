"""ReportLab building blocks shared by the PDF renderers.

- `pdf_styles()`: paragraph styles
- `PDFDocumentBuilder`: BaseDocTemplate with branded header and page-numbered footer
- `markdown_flowables()`: lightweight markdown -> flowables (headings, lists, paragraphs)
- `image_flowable()`: embedded image scaled to fit, or None if it cannot be decoded
"""
import re
from io import BytesIO
from typing import Any, Dict, List, Optional

from reportlab.lib import colors as rl_colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import BaseDocTemplate, Frame, Image as RLImage, PageTemplate, Paragraph, Spacer

from deck_export.config import settings
from deck_export.utils.logging import logger

PDF_COLORS = {
    "primary": rl_colors.HexColor("#1E3A8A"),
    "accent": rl_colors.HexColor("#3B82F6"),
    "dark": rl_colors.HexColor("#1F2937"),
    "muted": rl_colors.HexColor("#64748B"),
    "light": rl_colors.HexColor("#F1F5F9"),
    "excellent": rl_colors.HexColor("#10B981"),
    "good": rl_colors.HexColor("#3B82F6"),
    "fair": rl_colors.HexColor("#F59E0B"),
    "poor": rl_colors.HexColor("#EF4444"),
}


def pdf_styles() -> Dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "DocTitle": ParagraphStyle(
            "DocTitle", parent=base["Heading1"], fontSize=28, leading=34,
            textColor=PDF_COLORS["primary"], alignment=TA_CENTER, spaceAfter=16,
        ),
        "DocSubtitle": ParagraphStyle(
            "DocSubtitle", parent=base["Normal"], fontSize=14, leading=18,
            textColor=PDF_COLORS["muted"], alignment=TA_CENTER, spaceAfter=12,
        ),
        "SlideTitle": ParagraphStyle(
            "SlideTitle", parent=base["Heading1"], fontSize=22, leading=26,
            textColor=PDF_COLORS["primary"], spaceAfter=14,
        ),
        "SectionHeading": ParagraphStyle(
            "SectionHeading", parent=base["Heading1"], fontSize=16, leading=20,
            textColor=PDF_COLORS["primary"], spaceBefore=16, spaceAfter=8,
        ),
        "SubsectionHeading": ParagraphStyle(
            "SubsectionHeading", parent=base["Heading2"], fontSize=13, leading=16,
            textColor=PDF_COLORS["dark"], spaceBefore=10, spaceAfter=6,
        ),
        "BodyText": ParagraphStyle(
            "BodyText", parent=base["Normal"], fontSize=11, leading=15,
            textColor=PDF_COLORS["dark"], alignment=TA_LEFT, spaceAfter=6,
        ),
        "BulletText": ParagraphStyle(
            "BulletText", parent=base["Normal"], fontSize=11, leading=14,
            textColor=PDF_COLORS["dark"], leftIndent=20, bulletIndent=8, spaceAfter=3,
        ),
        "SmallText": ParagraphStyle(
            "SmallText", parent=base["Normal"], fontSize=9, leading=11, textColor=PDF_COLORS["muted"],
        ),
        "TocEntry": ParagraphStyle(
            "TocEntry", parent=base["Normal"], fontSize=12, leading=18, leftIndent=12,
        ),
    }


def escape_xml(text: Any) -> str:
    """Escape text for ReportLab's paragraph markup."""
    if text is None:
        return ""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def inline_markup(text: str) -> str:
    """**bold**, *italic* and `code` -> ReportLab tags, on escaped text."""
    text = escape_xml(text)
    text = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", text)
    text = re.sub(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)", r"<i>\1</i>", text)
    text = re.sub(r"`([^`]+)`", r'<font face="Courier">\1</font>', text)
    return text


def markdown_flowables(content: str, styles: Dict[str, ParagraphStyle]) -> List[Any]:
    """Convert a markdown string into paragraphs, headings and bullets."""
    flowables: List[Any] = []
    if not content:
        return flowables

    paragraph: List[str] = []

    def flush():
        if paragraph:
            flowables.append(Paragraph(inline_markup(" ".join(paragraph)), styles["BodyText"]))
            paragraph.clear()

    for raw in content.splitlines():
        line = raw.strip()
        if not line:
            flush()
            continue
        if line.startswith("#"):
            flush()
            level = len(line) - len(line.lstrip("#"))
            style = styles["SectionHeading"] if level <= 2 else styles["SubsectionHeading"]
            flowables.append(Paragraph(inline_markup(line.lstrip("#").strip()), style))
        elif line.startswith(("- ", "* ")):
            flush()
            flowables.append(Paragraph(inline_markup(line[2:].strip()), styles["BulletText"], bulletText="•"))
        elif re.match(r"^\d+\.\s", line):
            flush()
            number, _, rest = line.partition(" ")
            flowables.append(Paragraph(inline_markup(rest.strip()), styles["BulletText"], bulletText=number))
        elif line in ("---", "***", "___"):
            flush()
            flowables.append(Spacer(1, 8))
        else:
            paragraph.append(line)
    flush()
    return flowables


def image_flowable(data: bytes, max_width: float, max_height: float) -> Optional[RLImage]:
    """Image scaled to fit the box, keeping aspect ratio; None if the bytes are not a usable image."""
    try:
        reader = ImageReader(BytesIO(data))
        width, height = reader.getSize()
    except Exception as e:
        logger.warning(f"⚠️ Could not decode embedded image for PDF: {e}")
        return None
    if not width or not height:
        return None
    scale = min(max_width / width, max_height / height, 1.0)
    return RLImage(BytesIO(data), width=width * scale, height=height * scale)


class PDFDocumentBuilder:
    """
    Platypus document with a branded header and page-numbered footer.

    Builds into memory and returns the PDF bytes. Documents are built with
    `invariant=1`, so the same flowables always produce the same bytes.
    """

    def __init__(self, title: str, pagesize, subtitle: Optional[str] = None):
        self.title = title
        self.subtitle = subtitle
        self.pagesize = pagesize
        self.page_width, self.page_height = pagesize
        self.left_margin = 0.6 * inch
        self.right_margin = 0.6 * inch
        self.top_margin = 0.9 * inch
        self.bottom_margin = 0.7 * inch

    @property
    def frame_width(self) -> float:
        return self.page_width - self.left_margin - self.right_margin

    @property
    def frame_height(self) -> float:
        return self.page_height - self.top_margin - self.bottom_margin

    def _draw_header_footer(self, canvas_obj: canvas.Canvas, doc):
        canvas_obj.saveState()

        # Header: brand on the left, document title on the right
        canvas_obj.setStrokeColor(PDF_COLORS["accent"])
        canvas_obj.setLineWidth(2)
        header_y = self.page_height - 0.6 * inch
        canvas_obj.line(self.left_margin, header_y, self.page_width - self.right_margin, header_y)
        canvas_obj.setFillColor(PDF_COLORS["primary"])
        canvas_obj.setFont("Helvetica-Bold", 12)
        canvas_obj.drawString(self.left_margin, header_y + 8, settings.brand_name)
        canvas_obj.setFont("Helvetica", 9)
        canvas_obj.setFillColor(PDF_COLORS["muted"])
        canvas_obj.drawRightString(self.page_width - self.right_margin, header_y + 8, self.title[:90])

        # Footer: page number
        canvas_obj.setFont("Helvetica", 9)
        canvas_obj.drawCentredString(self.page_width / 2, 0.4 * inch, f"Page {doc.page}")
        if self.subtitle:
            canvas_obj.drawString(self.left_margin, 0.4 * inch, self.subtitle[:60])

        canvas_obj.restoreState()

    def build(self, elements: List[Any], compress: bool = True) -> bytes:
        buffer = BytesIO()
        doc = BaseDocTemplate(
            buffer,
            pagesize=self.pagesize,
            leftMargin=self.left_margin,
            rightMargin=self.right_margin,
            topMargin=self.top_margin,
            bottomMargin=self.bottom_margin,
            title=self.title,
            author=settings.brand_name,
            invariant=1,
            pageCompression=1 if compress else 0,
        )
        frame = Frame(
            self.left_margin, self.bottom_margin, self.frame_width, self.frame_height, id="normal",
        )
        doc.addPageTemplates([PageTemplate(id="branded", frames=[frame], onPage=self._draw_header_footer)])
        doc.build(elements)
        return buffer.getvalue()

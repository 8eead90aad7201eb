"""Landscape A4 slide deck PDF (ReportLab), one page per slide."""
import base64

from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import PageBreak, Paragraph, Spacer, Table, TableStyle

from deck_export.config import settings
from deck_export.models import PresentationSlide, SlideType
from deck_export.services.exporters import sprint_analysis as analysis
from deck_export.services.exporters.base_renderer import BaseRenderer, RenderContext, display_date
from deck_export.services.exporters.pdf_common import (
    PDF_COLORS, PDFDocumentBuilder, escape_xml, image_flowable, markdown_flowables, pdf_styles,
)


def key_value_table(rows, col_widths):
    # Plain string cells are drawn verbatim, no markup parsing
    table = Table([[str(k), str(v)] for k, v in rows], colWidths=col_widths)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 11),
        ("TEXTCOLOR", (0, 0), (0, -1), PDF_COLORS["primary"]),
        ("BACKGROUND", (0, 0), (-1, -1), PDF_COLORS["light"]),
        ("LINEBELOW", (0, 0), (-1, -2), 0.5, PDF_COLORS["muted"]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]))
    return table


class PDFRenderer(BaseRenderer):
    format = "pdf"
    media_type = "application/pdf"
    extension = "pdf"
    file_prefix = "Sprint_Review"
    label = "PDF"

    def begin(self, ctx: RenderContext):
        p = ctx.presentation
        ctx.state["builder"] = PDFDocumentBuilder(
            p.title, landscape(A4), subtitle=f"Sprint: {p.metadata.sprint_name}",
        )
        ctx.state["styles"] = styles = pdf_styles()
        ctx.parts.extend([
            Spacer(1, 120),
            Paragraph(escape_xml(p.title), styles["DocTitle"]),
            Paragraph(f"Sprint: {escape_xml(p.metadata.sprint_name)}", styles["DocSubtitle"]),
            Paragraph(escape_xml(display_date(p.created_at)), styles["DocSubtitle"]),
            Paragraph(f"{ctx.slide_count} slides", styles["DocSubtitle"]),
        ])

    def slide_handlers(self):
        return {
            SlideType.TITLE.value: self.render_title_slide,
            SlideType.METRICS.value: self.render_metrics_slide,
            SlideType.DEMO_STORY.value: self.render_demo_story_slide,
            SlideType.CORPORATE.value: self.render_corporate_slide,
            SlideType.QA.value: self.render_qa_slide,
        }

    def wrap_slide(self, ctx: RenderContext, slide: PresentationSlide, number: int, body):
        styles = ctx.state["styles"]
        ctx.parts.append(PageBreak())
        if slide.type != SlideType.CORPORATE.value:
            ctx.parts.append(Paragraph(escape_xml(slide.title), styles["SlideTitle"]))
        ctx.parts.extend(body)

    # ---------- slide bodies (lists of flowables) ----------

    def render_title_slide(self, ctx, slide):
        styles = ctx.state["styles"]
        return [
            Spacer(1, 80),
            Paragraph(f"Welcome to the {escape_xml(settings.brand_name)} Presentation", styles["DocSubtitle"]),
        ]

    def render_metrics_slide(self, ctx, slide):
        styles = ctx.state["styles"]
        metrics = ctx.sprint_metrics
        if metrics is None:
            return [Paragraph("No metrics available", styles["BodyText"])]

        rows = [
            ("Completed Points", f"{metrics.completed_total_points:g} / {metrics.estimated_points:g}"),
            ("Velocity", f"{analysis.velocity(metrics):.1f}%"),
            ("Test Coverage", f"{metrics.test_coverage:g}%"),
            ("Planned Items", str(metrics.planned_items)),
            ("Quality Score", f"{analysis.quality_score(metrics):.1f}%"),
        ]
        width = ctx.state["builder"].frame_width
        flowables = [key_value_table(rows, [width * 0.4, width * 0.3])]
        if metrics.quality_checklist:
            flowables.append(Paragraph("Quality Checklist", styles["SubsectionHeading"]))
            for item, status in metrics.quality_checklist.items():
                flowables.append(Paragraph(
                    f"<b>{escape_xml(item)}:</b> {escape_xml(status.upper())}", styles["BulletText"], bulletText="•",
                ))
        return flowables

    def render_demo_story_slide(self, ctx, slide):
        styles = ctx.state["styles"]
        issue = analysis.find_issue(ctx.all_issues, slide.story_id)
        if issue is None:
            return [Paragraph("Story not found", styles["BodyText"])]

        width = ctx.state["builder"].frame_width
        points = f"{issue.story_points:g}" if issue.story_points is not None else "Not estimated"
        flowables = [
            Paragraph(f"{escape_xml(issue.key)}: {escape_xml(issue.summary)}", styles["SubsectionHeading"]),
            key_value_table(
                [("Assignee", issue.assignee or "Unassigned"), ("Story Points", points), ("Status", issue.status)],
                [width * 0.25, width * 0.5],
            ),
            Spacer(1, 10),
        ]
        if isinstance(slide.content, str):
            flowables.extend(markdown_flowables(slide.content, styles))
        return flowables

    async def render_corporate_slide(self, ctx, slide):
        styles = ctx.state["styles"]
        url = slide.corporate_slide_url
        if not url:
            return [Paragraph("No corporate slide image available", styles["BodyText"])]

        builder = ctx.state["builder"]
        encoded = await ctx.embedder.embed_image(url)
        if encoded:
            image = image_flowable(base64.b64decode(encoded), builder.frame_width, builder.frame_height - 10)
            if image is not None:
                return [image]

        link = escape_xml(url)
        return [
            Paragraph(escape_xml(slide.title), styles["SlideTitle"]),
            Paragraph(f'Corporate slide: <link href="{link}" color="blue">{link}</link>', styles["BodyText"]),
        ]

    def render_qa_slide(self, ctx, slide):
        styles = ctx.state["styles"]
        return [
            Spacer(1, 60),
            Paragraph("Questions &amp; Discussion", styles["DocTitle"]),
            Paragraph("Thank you for your attention!", styles["DocSubtitle"]),
        ]

    def render_default_slide(self, ctx, slide):
        return markdown_flowables(slide.content_text(), ctx.state["styles"])

    def finish(self, ctx: RenderContext) -> bytes:
        return ctx.state["builder"].build(ctx.parts, compress=ctx.options.quality != "high")

"""Advanced sprint review digest: a portrait A4 report (ReportLab).

Sections, in order: cover, table of contents, executive summary, demo
stories (with screenshots), presentation highlights, sprint analysis with a
key-metrics table, strategic insights from the upcoming sprint, and action
items. Screenshots come from `options.additional_data["demoStoryScreenshots"]`
as `{storyId: "data:image/...;base64,..."}`; anything that is not a decodable
image is skipped.
"""
import base64
import binascii
from typing import Any, Dict, List, Optional

from reportlab.lib.pagesizes import A4
from reportlab.platypus import KeepTogether, PageBreak, Paragraph, Spacer, Table, TableStyle

from deck_export.models import PresentationSlide, SlideType
from deck_export.services.exporters import sprint_analysis as analysis
from deck_export.services.exporters.base_renderer import BaseRenderer, RenderContext, display_date
from deck_export.services.exporters.pdf_common import (
    PDF_COLORS, PDFDocumentBuilder, escape_xml, image_flowable, markdown_flowables, pdf_styles,
)
from deck_export.utils.logging import logger

SCREENSHOTS_KEY = "demoStoryScreenshots"

SECTIONS = [
    "Executive Summary",
    "Demo Stories",
    "Presentation Highlights",
    "Sprint Performance Analysis",
    "Strategic Insights",
    "Action Items & Recommendations",
]


def decode_screenshot(data: Any) -> Optional[bytes]:
    """Bytes of a `data:image/...;base64,` screenshot, or None if it is not one."""
    if not isinstance(data, str) or not data.startswith("data:image/"):
        return None
    header, _, payload = data.partition(",")
    if ";base64" not in header or not payload:
        return None
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None


def _band_color(score: float):
    return PDF_COLORS[analysis.status_band(score, 90, 80, 60)]


class AdvancedDigestRenderer(BaseRenderer):
    format = "advanced-digest"
    media_type = "application/pdf"
    extension = "pdf"
    file_prefix = "Advanced_Sprint_Review_Digest"
    label = "Advanced digest"

    def begin(self, ctx: RenderContext):
        p = ctx.presentation
        builder = PDFDocumentBuilder(f"Sprint Review Digest - {p.metadata.sprint_name}", A4, subtitle=p.title)
        styles = pdf_styles()
        screenshots = ctx.options.additional_data.get(SCREENSHOTS_KEY) or {}
        ctx.state.update(
            builder=builder,
            styles=styles,
            screenshots=screenshots if isinstance(screenshots, dict) else {},
            highlights=[],
            demo_count=0,
        )

        ctx.parts.extend([
            Spacer(1, 150),
            Paragraph("Sprint Review Digest", styles["DocTitle"]),
            Paragraph(escape_xml(p.metadata.sprint_name), styles["DocSubtitle"]),
            Paragraph(escape_xml(display_date(p.created_at)), styles["DocSubtitle"]),
            PageBreak(),
            Paragraph("Table of Contents", styles["SectionHeading"]),
        ])
        ctx.parts.extend(
            Paragraph(f"{n}. {escape_xml(title)}", styles["TocEntry"]) for n, title in enumerate(SECTIONS, start=1)
        )
        ctx.parts.append(PageBreak())
        ctx.parts.extend(self._executive_summary(ctx))
        ctx.parts.append(Paragraph("Demo Stories", styles["SectionHeading"]))

    def slide_handlers(self):
        return {
            SlideType.DEMO_STORY.value: self.render_demo_story_slide,
            SlideType.TITLE.value: self.render_title_slide,
            SlideType.CORPORATE.value: self.render_corporate_slide,
        }

    # ---------- slides ----------

    def render_demo_story_slide(self, ctx, slide):
        styles = ctx.state["styles"]
        builder = ctx.state["builder"]
        issue = analysis.find_issue(ctx.all_issues, slide.story_id)
        heading = f"{issue.key}: {issue.summary}" if issue else slide.title

        flowables: List[Any] = [Paragraph(escape_xml(heading), styles["SubsectionHeading"])]
        if issue is not None:
            points = f"{issue.story_points:g}" if issue.story_points is not None else "Not estimated"
            flowables.append(Paragraph(
                f"<b>Assignee:</b> {escape_xml(issue.assignee or 'Unassigned')} &nbsp; "
                f"<b>Points:</b> {escape_xml(points)} &nbsp; <b>Status:</b> {escape_xml(issue.status)}",
                styles["SmallText"],
            ))
        flowables.extend(markdown_flowables(slide.content_text(), styles))

        screenshot = self._screenshot(ctx, slide)
        if screenshot is not None:
            image = image_flowable(screenshot, builder.frame_width, builder.frame_height * 0.45)
            if image is not None:
                flowables.extend([Spacer(1, 6), image])
        ctx.state["demo_count"] += 1
        return flowables

    def render_title_slide(self, ctx, slide):
        ctx.state["highlights"].append(f"Opening: {slide.title}")

    def render_corporate_slide(self, ctx, slide):
        ctx.state["highlights"].append(f"Corporate update: {slide.title}")

    def render_default_slide(self, ctx, slide):
        text = " ".join(slide.content_text().split())
        if len(text) > 200:
            text = text[:197].rstrip() + "..."
        ctx.state["highlights"].append(f"{slide.title}: {text}" if text else slide.title)

    def wrap_slide(self, ctx: RenderContext, slide: PresentationSlide, number: int, body):
        if body:
            ctx.parts.append(KeepTogether(body[:3]))
            ctx.parts.extend(body[3:])
            ctx.parts.append(Spacer(1, 12))

    def _screenshot(self, ctx: RenderContext, slide: PresentationSlide) -> Optional[bytes]:
        if not slide.story_id:
            return None
        raw = ctx.state["screenshots"].get(slide.story_id)
        if raw is None:
            return None
        data = decode_screenshot(raw)
        if data is None:
            logger.warning(f"⚠️ Skipping invalid screenshot for story {slide.story_id}")
        return data

    # ---------- sections ----------

    def _executive_summary(self, ctx: RenderContext) -> List[Any]:
        styles = ctx.state["styles"]
        metrics = ctx.sprint_metrics
        issues = ctx.all_issues
        done = analysis.completed_issues(issues)

        if metrics is None:
            delivery = "Sprint metrics were not provided."
        else:
            delivery = (
                f"{metrics.completed_total_points:g} story points completed "
                f"({round(analysis.velocity(metrics))}% of target), "
                f"{metrics.test_coverage:g}% test coverage."
            )
        return [
            Paragraph("Executive Summary", styles["SectionHeading"]),
            Paragraph(escape_xml(delivery), styles["BodyText"]),
            Paragraph(
                f"{round(analysis.completion_rate(issues))}% completion rate with "
                f"{len(done)} of {len(issues)} issues completed.",
                styles["BodyText"],
            ),
        ]

    def _key_metrics_table(self, ctx: RenderContext) -> Table:
        metrics = ctx.sprint_metrics
        values = [
            ("Velocity", round(analysis.velocity(metrics))),
            ("Completion", round(analysis.completion_rate(ctx.all_issues))),
            ("Quality", round(analysis.quality_score(metrics))),
            ("Test Coverage", round(metrics.test_coverage)),
        ]
        table = Table(
            [[f"{v}%" for _, v in values], [label for label, _ in values]],
            colWidths=[ctx.state["builder"].frame_width / len(values)] * len(values),
        )
        style = [
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, 0), 18),
            ("FONTSIZE", (0, 1), (-1, 1), 9),
            ("TEXTCOLOR", (0, 1), (-1, 1), PDF_COLORS["muted"]),
            ("BACKGROUND", (0, 0), (-1, -1), PDF_COLORS["light"]),
            ("BOX", (0, 0), (-1, -1), 1, PDF_COLORS["primary"]),
            ("TOPPADDING", (0, 0), (-1, 0), 10),
            ("BOTTOMPADDING", (0, 1), (-1, 1), 10),
        ]
        style.extend(("TEXTCOLOR", (i, 0), (i, 0), _band_color(v)) for i, (_, v) in enumerate(values))
        table.setStyle(TableStyle(style))
        return table

    def _breakdown_table(self, groups: List[analysis.GroupSummary], first_header: str) -> Table:
        rows = [[first_header, "Completed", "Total", "Points"]]
        rows.extend([g.name, str(g.completed), str(g.total), f"{g.points:g}"] for g in groups)
        table = Table(rows, hAlign="LEFT")
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("BACKGROUND", (0, 0), (-1, 0), PDF_COLORS["primary"]),
            ("TEXTCOLOR", (0, 0), (-1, 0), PDF_COLORS["light"]),
            ("GRID", (0, 0), (-1, -1), 0.5, PDF_COLORS["muted"]),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
        ]))
        return table

    def _sprint_analysis(self, ctx: RenderContext) -> List[Any]:
        styles = ctx.state["styles"]
        flowables: List[Any] = [Paragraph("Sprint Performance Analysis", styles["SectionHeading"])]
        if ctx.sprint_metrics is None:
            flowables.append(Paragraph("Sprint metrics were not provided.", styles["BodyText"]))
        else:
            flowables.extend([self._key_metrics_table(ctx), Spacer(1, 12)])
        epics = analysis.epic_breakdown(ctx.all_issues)
        if epics:
            flowables.extend([
                Paragraph("Epic Breakdown", styles["SubsectionHeading"]),
                self._breakdown_table(epics, "Epic"),
            ])
        team = analysis.assignee_breakdown(ctx.all_issues)
        if team:
            flowables.extend([
                Paragraph("Team Performance", styles["SubsectionHeading"]),
                self._breakdown_table(team, "Assignee"),
            ])
        return flowables

    def _strategic_insights(self, ctx: RenderContext) -> List[Any]:
        styles = ctx.state["styles"]
        upcoming = ctx.upcoming_issues
        flowables: List[Any] = [Paragraph("Strategic Insights", styles["SectionHeading"])]
        if not upcoming:
            flowables.append(Paragraph("No upcoming work has been planned yet.", styles["BodyText"]))
            return flowables

        capacity = analysis.story_points(upcoming)
        flowables.append(Paragraph(
            f"{len(upcoming)} issues planned for the next sprint, {capacity:g} story points in total.",
            styles["BodyText"],
        ))
        for group in analysis.epic_breakdown(upcoming):
            flowables.append(Paragraph(
                f"<b>{escape_xml(group.name)}:</b> {group.total} issues ({group.points:g} points)",
                styles["BulletText"], bulletText="•",
            ))
        return flowables

    def _action_items(self, ctx: RenderContext) -> List[Any]:
        styles = ctx.state["styles"]
        flowables: List[Any] = [Paragraph(escape_xml(SECTIONS[-1]), styles["SectionHeading"])]
        for n, rec in enumerate(analysis.recommendations(ctx.sprint_metrics, ctx.all_issues), start=1):
            flowables.append(Paragraph(escape_xml(rec), styles["BulletText"], bulletText=f"{n}."))
        carried = [i for i in ctx.all_issues if not i.is_completed]
        if carried:
            flowables.append(Paragraph("Carry-over work", styles["SubsectionHeading"]))
            for issue in carried:
                flowables.append(Paragraph(
                    f"{escape_xml(issue.key)}: {escape_xml(issue.summary)} ({escape_xml(issue.status)})",
                    styles["BulletText"], bulletText="•",
                ))
        return flowables

    def finish(self, ctx: RenderContext) -> bytes:
        styles = ctx.state["styles"]
        if ctx.state["demo_count"] == 0:
            ctx.parts.append(Paragraph("No demo stories in this presentation.", styles["BodyText"]))

        ctx.parts.append(Paragraph("Presentation Highlights", styles["SectionHeading"]))
        highlights = ctx.state["highlights"] or ["No additional slides."]
        ctx.parts.extend(Paragraph(escape_xml(h), styles["BulletText"], bulletText="•") for h in highlights)

        ctx.parts.append(PageBreak())
        ctx.parts.extend(self._sprint_analysis(ctx))
        ctx.parts.extend(self._strategic_insights(ctx))
        ctx.parts.extend(self._action_items(ctx))
        return ctx.state["builder"].build(ctx.parts, compress=ctx.options.quality != "high")

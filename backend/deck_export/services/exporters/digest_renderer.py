"""Sprint review digest: a compact portrait A4 handout (ReportLab).

Header with a sprint overview table, then four sections: sprint summary
(from the summary slide titled "...overview..."), demo stories, next sprint
preview (from the summary slide titled "...upcoming...") and sprint metrics
with quality checklist and epic tables. Other slide types are not shown.
"""
from typing import Any, List, Optional

from reportlab.lib.pagesizes import A4
from reportlab.platypus import KeepTogether, Paragraph, Spacer, Table, TableStyle

from deck_export.models import SlideType
from deck_export.services.exporters import sprint_analysis as analysis
from deck_export.services.exporters.base_renderer import BaseRenderer, RenderContext, display_date
from deck_export.services.exporters.pdf_common import (
    PDF_COLORS, PDFDocumentBuilder, escape_xml, markdown_flowables, pdf_styles,
)

SECTIONS = ["Sprint Summary", "Demo Stories", "Next Sprint Preview", "Sprint Metrics"]

TEST_COVERAGE_TARGET = 80


def status_text(ratio: float) -> str:
    """Achieved/target ratio -> label shown in the metrics table."""
    if ratio >= 0.9:
        return "Excellent"
    if ratio >= 0.75:
        return "Good"
    if ratio >= 0.6:
        return "Fair"
    return "Needs Improvement"


def sprint_health(metrics, issues) -> float:
    """Percent delivered: completed vs estimated points, else completed vs total issue points."""
    if metrics is not None and metrics.estimated_points:
        return metrics.completed_total_points / metrics.estimated_points * 100
    total = analysis.story_points(issues)
    done = analysis.story_points(analysis.completed_issues(issues))
    return done / total * 100 if total else 0.0


def _table(rows: List[List[str]], col_widths=None) -> Table:
    table = Table(rows, colWidths=col_widths, hAlign="LEFT")
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BACKGROUND", (0, 0), (-1, 0), PDF_COLORS["primary"]),
        ("TEXTCOLOR", (0, 0), (-1, 0), PDF_COLORS["light"]),
        ("GRID", (0, 0), (-1, -1), 0.5, PDF_COLORS["muted"]),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return table


class DigestRenderer(BaseRenderer):
    format = "digest"
    media_type = "application/pdf"
    extension = "pdf"
    file_prefix = "Sprint_Review_Digest"
    label = "Digest"

    def begin(self, ctx: RenderContext):
        p = ctx.presentation
        styles = pdf_styles()
        builder = PDFDocumentBuilder(f"Sprint Review Digest - {p.metadata.sprint_name}", A4, subtitle=p.title)
        ctx.state.update(builder=builder, styles=styles, overview=None, upcoming=None, demos=[])

        ctx.parts.extend([
            Paragraph("Sprint Review Digest", styles["DocTitle"]),
            Paragraph(f"<b>Sprint:</b> {escape_xml(p.metadata.sprint_name)}", styles["BodyText"]),
            Paragraph(f"<b>Sprint Period:</b> {escape_xml(display_date(p.created_at))}", styles["BodyText"]),
            Spacer(1, 8),
            Paragraph("Sprint Overview", styles["SubsectionHeading"]),
            _table([
                ["Story Count", "Story Points", "Sprint Health"],
                [
                    str(len(ctx.all_issues)),
                    f"{analysis.story_points(ctx.all_issues):g}",
                    f"{round(sprint_health(ctx.sprint_metrics, ctx.all_issues))}%",
                ],
            ]),
            Spacer(1, 8),
            Paragraph("Contents", styles["SubsectionHeading"]),
        ])
        ctx.parts.extend(
            Paragraph(f"{n}. {escape_xml(title)}", styles["TocEntry"]) for n, title in enumerate(SECTIONS, start=1)
        )

    def slide_handlers(self):
        return {
            SlideType.SUMMARY.value: self.render_summary_slide,
            SlideType.DEMO_STORY.value: self.render_demo_story_slide,
        }

    # ---------- slides ----------

    def render_summary_slide(self, ctx, slide):
        title = slide.title.lower()
        # First matching slide wins for each section
        if "overview" in title and ctx.state["overview"] is None:
            ctx.state["overview"] = slide.content_text()
        elif "upcoming" in title and ctx.state["upcoming"] is None:
            ctx.state["upcoming"] = slide.content_text()

    def render_demo_story_slide(self, ctx, slide):
        styles = ctx.state["styles"]
        issue = analysis.find_issue(ctx.all_issues, slide.story_id)
        heading = f"{issue.key}: {issue.summary}" if issue else slide.title
        flowables: List[Any] = [Paragraph(escape_xml(heading), styles["SubsectionHeading"])]
        if issue is not None:
            points = f"{issue.story_points:g}" if issue.story_points is not None else "Not estimated"
            flowables.append(Paragraph(
                f"{escape_xml(issue.assignee or 'Unassigned')} | {escape_xml(points)} points | "
                f"{escape_xml(issue.status)}",
                styles["SmallText"],
            ))
        flowables.extend(markdown_flowables(slide.content_text(), styles))
        ctx.state["demos"].append(flowables)

    def render_default_slide(self, ctx, slide):
        """Title, metrics, corporate and custom slides have no place in the digest."""

    def wrap_slide(self, ctx, slide, number, body):
        # Handlers collect into ctx.state; sections are laid out in finish()
        pass

    # ---------- sections ----------

    def _text_section(self, ctx: RenderContext, title: str, text: Optional[str], empty: str) -> List[Any]:
        styles = ctx.state["styles"]
        flowables: List[Any] = [Paragraph(title, styles["SectionHeading"])]
        body = markdown_flowables(text or "", styles)
        return flowables + (body or [Paragraph(empty, styles["BodyText"])])

    def _demo_section(self, ctx: RenderContext) -> List[Any]:
        styles = ctx.state["styles"]
        flowables: List[Any] = [Paragraph("Demo Stories", styles["SectionHeading"])]
        if not ctx.state["demos"]:
            return flowables + [Paragraph("No demo stories available", styles["BodyText"])]
        for demo in ctx.state["demos"]:
            flowables.extend([KeepTogether(demo), Spacer(1, 8)])
        return flowables

    def _metrics_section(self, ctx: RenderContext) -> List[Any]:
        styles = ctx.state["styles"]
        metrics = ctx.sprint_metrics
        flowables: List[Any] = [Paragraph("Sprint Metrics", styles["SectionHeading"])]

        if metrics is None:
            flowables.append(Paragraph("Sprint metrics were not provided.", styles["BodyText"]))
        else:
            velocity = analysis.velocity(metrics)
            flowables.append(_table([
                ["Metric", "Value", "Target", "Status"],
                ["Completed Story Points", f"{metrics.completed_total_points:g}",
                 f"{metrics.estimated_points:g}", status_text(velocity / 100)],
                ["Velocity Achievement", f"{round(velocity)}%", "100%", status_text(velocity / 100)],
                ["Test Coverage", f"{metrics.test_coverage:g}%", f"{TEST_COVERAGE_TARGET}%",
                 status_text(metrics.test_coverage / TEST_COVERAGE_TARGET)],
                ["Planned Items", str(metrics.planned_items), "N/A", "N/A"],
            ]))
            if metrics.quality_checklist:
                flowables.extend([
                    Paragraph("Quality Checklist", styles["SubsectionHeading"]),
                    _table([["Item", "Status"]] + [
                        [item, status.upper()] for item, status in metrics.quality_checklist.items()
                    ]),
                ])

        epics = analysis.epic_breakdown(ctx.all_issues)
        if epics:
            rows = [["Epic", "Completed", "Total", "Points", "Completion %"]]
            rows.extend(
                [g.name, str(g.completed), str(g.total), f"{g.points:g}",
                 f"{round(g.completed / g.total * 100) if g.total else 0}%"]
                for g in epics
            )
            flowables.extend([Paragraph("Epic Progress", styles["SubsectionHeading"]), _table(rows)])
        return flowables

    def finish(self, ctx: RenderContext) -> bytes:
        ctx.parts.extend(self._text_section(
            ctx, "Sprint Summary", ctx.state["overview"], "No sprint summary available",
        ))
        ctx.parts.extend(self._demo_section(ctx))
        ctx.parts.extend(self._text_section(
            ctx, "Next Sprint Preview", ctx.state["upcoming"], "No upcoming sprint information available",
        ))
        ctx.parts.extend(self._metrics_section(ctx))
        return ctx.state["builder"].build(ctx.parts, compress=ctx.options.quality != "high")

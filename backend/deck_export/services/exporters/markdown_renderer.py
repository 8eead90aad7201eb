"""Structured Markdown export with YAML front matter.

Aimed at downstream indexing (RAG, wikis): metadata up front, then an
executive summary, sprint overview, the slides themselves, a detailed issue
breakdown and metrics analysis.
"""
import json
from typing import Dict, List, Optional

from deck_export.config import settings
from deck_export.models import Issue, PresentationSlide, SlideType, SprintMetrics
from deck_export.services.exporters import sprint_analysis as analysis
from deck_export.services.exporters.base_renderer import BaseRenderer, RenderContext, display_date

PERFORMANCE_LABELS = {"excellent": "Excellent", "good": "Good", "fair": "Fair", "poor": "Needs Improvement"}


def _yaml_str(value) -> str:
    # JSON strings are valid YAML double-quoted scalars
    return json.dumps("" if value is None else str(value), ensure_ascii=False)


def _num(value) -> str:
    """Render 8.0 as 8 and keep real fractions."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_issue_list(issues: List[Issue]) -> str:
    if not issues:
        return "No issues in this category.\n"
    return "".join(
        f"- **{i.key}:** {i.summary} ({_num(i.story_points or 0)} points, {i.status})\n" for i in issues
    )


def format_quality_checklist(checklist: Dict[str, str]) -> str:
    if not checklist:
        return "No quality checklist recorded.\n"
    return "".join(
        f"- {analysis.QUALITY_ICONS.get(status, '➖')} **{item}:** {status.upper()}\n"
        for item, status in checklist.items()
    )


def format_groups(groups: List[analysis.GroupSummary], with_points: bool = True) -> str:
    if not groups:
        return "No data available.\n"
    lines = []
    for g in groups:
        line = f"- **{g.name}:** {g.completed}/{g.total} issues"
        if with_points:
            line += f" ({_num(g.points)} points)"
        lines.append(line + "\n")
    return "".join(lines)


class MarkdownRenderer(BaseRenderer):
    format = "markdown"
    media_type = "text/markdown"
    extension = "md"
    file_prefix = "Sprint_Review"
    label = "Markdown"

    def begin(self, ctx: RenderContext):
        ctx.parts.append(self._front_matter(ctx))
        ctx.parts.append(self._executive_summary(ctx))
        ctx.parts.append(self._sprint_overview(ctx))
        ctx.parts.append("## Presentation Content\n\n")

    def slide_handlers(self):
        return {
            SlideType.TITLE.value: self.render_title_slide,
            SlideType.SUMMARY.value: self.render_summary_slide,
            SlideType.METRICS.value: self.render_metrics_slide,
            SlideType.DEMO_STORY.value: self.render_demo_story_slide,
            SlideType.CORPORATE.value: self.render_corporate_slide,
        }

    def wrap_slide(self, ctx: RenderContext, slide: PresentationSlide, number: int, body: str):
        ctx.parts.append(f"### Slide {number}: {slide.title}\n\n{body}\n---\n\n")

    # ---------- slide bodies ----------

    def render_title_slide(self, ctx, slide):
        return f"**Slide Type:** Title Slide\n\n{slide.title}\n\nWelcome to the {settings.brand_name} Presentation.\n"

    def render_summary_slide(self, ctx, slide):
        return f"**Slide Type:** Summary Slide\n\n{slide.content_text()}\n"

    def render_metrics_slide(self, ctx, slide):
        metrics = ctx.sprint_metrics
        if metrics is None:
            return "**Slide Type:** Metrics Slide\n\nNo metrics available for this sprint.\n"
        return (
            "**Slide Type:** Metrics Slide\n\n"
            "#### Key Performance Indicators\n"
            f"- **Completed Story Points:** {_num(metrics.completed_total_points)}/{_num(metrics.estimated_points)}\n"
            f"- **Velocity Achievement:** {analysis.velocity(metrics):.1f}%\n"
            f"- **Test Coverage:** {_num(metrics.test_coverage)}%\n"
            f"- **Planned Items:** {metrics.planned_items}\n\n"
            "#### Quality Metrics\n"
            f"{format_quality_checklist(metrics.quality_checklist)}"
        )

    def render_demo_story_slide(self, ctx, slide):
        issue = analysis.find_issue(ctx.all_issues, slide.story_id)
        if issue is None:
            return "**Slide Type:** Demo Story Slide\n\nStory not found.\n"

        content = slide.content if isinstance(slide.content, str) else "No content available"
        details = [
            f"- **Issue Key:** {issue.key}",
            f"- **Summary:** {issue.summary}",
            f"- **Assignee:** {issue.assignee or 'Unassigned'}",
            f"- **Story Points:** {_num(issue.story_points) if issue.story_points is not None else 'Not estimated'}",
            f"- **Status:** {issue.status}",
            f"- **Epic:** {issue.epic_name or 'No epic'}",
        ]
        if issue.release_notes:
            details.append(f"- **Release Notes:** {issue.release_notes}")
        return (
            "**Slide Type:** Demo Story Slide\n\n"
            "#### Story Details\n" + "\n".join(details) + "\n\n"
            f"#### Story Content\n{content}\n"
        )

    def render_corporate_slide(self, ctx, slide):
        if slide.corporate_slide_url:
            return f"**Slide Type:** Corporate Slide\n\n![Corporate slide]({slide.corporate_slide_url})\n"
        return "**Slide Type:** Corporate Slide\n\nNo corporate slide image available\n"

    def render_default_slide(self, ctx, slide):
        return f"**Slide Type:** Custom Slide\n\n{slide.content_text()}\n"

    # ---------- document sections ----------

    def _front_matter(self, ctx: RenderContext) -> str:
        p = ctx.presentation
        m: Optional[SprintMetrics] = ctx.sprint_metrics
        lines = [
            "---",
            f"title: {_yaml_str(p.title)}",
            f"sprint: {_yaml_str(p.metadata.sprint_name)}",
            f"created: {_yaml_str(p.created_at)}",
            f"total_slides: {ctx.slide_count}",
            f"demo_stories_count: {p.metadata.demo_stories_count}",
            f"custom_slides_count: {p.metadata.custom_slides_count}",
            f"has_metrics: {'true' if p.metadata.has_metrics else 'false'}",
            f"sprint_number: {_yaml_str(m.sprint_number if m and m.sprint_number else 'N/A')}",
            f"completed_points: {_num(m.completed_total_points) if m else 0}",
            f"estimated_points: {_num(m.estimated_points) if m else 0}",
            f"test_coverage: {_num(m.test_coverage) if m else 0}",
            'format: "markdown"',
            'version: "1.0"',
            "---",
            "",
            f"# {p.title}",
            "",
            f"**Generated:** {display_date(p.created_at)}  ",
            f"**Sprint:** {p.metadata.sprint_name}  ",
            f"**Total Slides:** {ctx.slide_count}",
            "",
            "---",
            "",
        ]
        return "\n".join(lines) + "\n"

    def _executive_summary(self, ctx: RenderContext) -> str:
        issues = ctx.all_issues
        metrics = ctx.sprint_metrics
        done = analysis.completed_issues(issues)
        impact = analysis.business_impact(issues)

        if metrics is None:
            performance = "No metrics available for this sprint."
        else:
            vel = analysis.velocity(metrics)
            performance = (
                f"- **Performance Status:** {PERFORMANCE_LABELS[analysis.status_band(vel)]}\n"
                f"- **Velocity:** {vel:.1f}%\n"
                f"- **Test Coverage:** {_num(metrics.test_coverage)}%\n"
                f"- **Quality Score:** {analysis.quality_score(metrics):.1f}%"
            )

        return (
            "## Executive Summary\n\n"
            "### Key Metrics\n"
            f"- **Sprint Velocity:** {analysis.velocity(metrics):.1f}% "
            f"({_num(analysis.story_points(done))}/{_num(analysis.story_points(issues))} story points)\n"
            f"- **Completed Issues:** {len(done)}/{len(issues)} ({analysis.completion_rate(issues):.1f}%)\n"
            f"- **Test Coverage:** {_num(metrics.test_coverage) if metrics else 0}%\n"
            f"- **Demo Stories:** {ctx.presentation.metadata.demo_stories_count}\n\n"
            f"### Sprint Performance\n{performance}\n\n"
            "### Business Impact\n"
            f"- **High-Value Deliverables:** {impact['high_value_deliverables']} issues\n"
            f"- **User Stories Completed:** {impact['stories_completed']}\n"
            f"- **Bug Fixes:** {impact['bug_fixes']}\n"
            f"- **Technical Debt:** {impact['technical_debt']}\n\n"
            "---\n\n"
        )

    def _sprint_overview(self, ctx: RenderContext) -> str:
        issues = ctx.all_issues
        return (
            "## Sprint Overview\n\n"
            f"### Epic Breakdown\n{format_groups(analysis.epic_breakdown(issues))}\n"
            f"### Issue Type Distribution\n{format_groups(analysis.issue_type_breakdown(issues), with_points=False)}\n"
            f"### Team Performance\n{format_groups(analysis.assignee_breakdown(issues))}\n"
            "---\n\n"
        )

    def _issue_breakdown(self, ctx: RenderContext) -> str:
        done = analysis.completed_issues(ctx.all_issues)
        open_issues = [i for i in ctx.all_issues if not i.is_completed]
        return (
            "## Detailed Issue Breakdown\n\n"
            f"### Completed Issues\n{format_issue_list(done)}\n"
            f"### In Progress Issues\n{format_issue_list(open_issues)}\n"
            f"### Upcoming Issues\n{format_issue_list(ctx.upcoming_issues)}\n"
        )

    def _metrics_analysis(self, ctx: RenderContext) -> str:
        metrics = ctx.sprint_metrics
        quality = analysis.quality_score(metrics)
        if quality >= 80:
            quality_status = "Excellent - High standards maintained"
        elif quality >= 60:
            quality_status = "Good - Minor improvements needed"
        else:
            quality_status = "Needs Improvement - Focus on quality required"

        recs = "\n".join(f"- {rec}" for rec in analysis.recommendations(metrics, ctx.all_issues))
        return (
            "## Metrics Analysis\n\n"
            "### Velocity Analysis\n"
            f"- **Target Velocity:** {_num(metrics.estimated_points)} story points\n"
            f"- **Actual Velocity:** {_num(metrics.completed_total_points)} story points\n"
            f"- **Velocity Achievement:** {analysis.velocity(metrics):.1f}%\n"
            f"- **Efficiency Score:** {analysis.efficiency_score(metrics, ctx.all_issues):.1f}%\n\n"
            "### Quality Analysis\n"
            f"- **Overall Quality Score:** {quality:.1f}%\n"
            f"- **Test Coverage:** {_num(metrics.test_coverage)}%\n"
            f"- **Quality Status:** {quality_status}\n\n"
            f"### Recommendations\n{recs}\n\n"
        )

    def finish(self, ctx: RenderContext) -> str:
        ctx.parts.append(self._issue_breakdown(ctx))
        if ctx.sprint_metrics is not None:
            ctx.parts.append(self._metrics_analysis(ctx))
        ctx.parts.append(
            "## Document Information\n\n"
            f"This document was automatically generated by the {settings.brand_name} Deck Generator.\n\n"
            f"**Document ID:** {ctx.presentation.id}  \n"
            f"**Created:** {ctx.presentation.created_at}  \n"
            "**Version:** 1.0\n\n"
            "---\n\n"
            f"*End of {settings.brand_name} Document*\n"
        )
        return "".join(ctx.parts)

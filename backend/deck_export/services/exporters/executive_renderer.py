"""One-page executive summary (HTML).

Metric cards with status bands, business impact and recommendations, plus a
short highlight per slide.
"""
from deck_export.config import settings
from deck_export.models import PresentationSlide, SlideType
from deck_export.services.exporters import sprint_analysis as analysis
from deck_export.services.exporters.base_renderer import BaseRenderer, RenderContext, display_date
from deck_export.services.exporters.html_renderer import esc

HIGHLIGHT_CHARS = 220

EXECUTIVE_CSS = """
* { margin: 0; padding: 0; box-sizing: border-box; }
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #1f2937; background: #f8fafc; }
.container { max-width: 1000px; margin: 0 auto; background: white; min-height: 100vh; }
.header { background: linear-gradient(135deg, #1e3a8a 0%, #3b82f6 100%); color: white; padding: 2.5rem 2rem; text-align: center; }
.header h1 { font-size: 2.25rem; margin-bottom: 0.5rem; }
.subtitle { opacity: 0.9; }
.content { padding: 2rem; }
.section { margin-bottom: 2.5rem; }
.section h2 { color: #1e3a8a; border-bottom: 2px solid #e2e8f0; padding-bottom: 0.5rem; margin-bottom: 1.25rem; }
.metrics-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 1.25rem; }
.metric-card { background: #f8fafc; border: 1px solid #e2e8f0; border-radius: 10px; padding: 1.5rem; text-align: center; }
.metric-value { font-size: 2.25rem; font-weight: 700; color: #1e3a8a; }
.metric-label { color: #64748b; margin-bottom: 0.5rem; }
.metric-status { display: inline-block; padding: 0.2rem 0.75rem; border-radius: 999px; font-size: 0.75rem; font-weight: 600; color: white; }
.status-excellent { background: #10b981; }
.status-good { background: #3b82f6; }
.status-fair { background: #f59e0b; }
.status-poor { background: #ef4444; }
.impact-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 1rem; }
.impact-item { background: #f1f5f9; border-radius: 8px; padding: 1rem; }
.impact-item h3 { font-size: 0.95rem; color: #475569; }
.impact-value { font-size: 1.75rem; font-weight: 700; color: #1e3a8a; }
.recommendations ul, .highlights ul { padding-left: 1.5rem; }
.recommendations li, .highlights li { margin-bottom: 0.5rem; }
.footer { text-align: center; color: #64748b; font-size: 0.85rem; padding: 1.5rem; border-top: 1px solid #e2e8f0; }
"""


def _excerpt(text: str, limit: int = HIGHLIGHT_CHARS) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


class ExecutiveRenderer(BaseRenderer):
    format = "executive"
    media_type = "text/html"
    extension = "html"
    file_prefix = "Executive_Summary"
    label = "Executive summary"

    def slide_handlers(self):
        return {
            SlideType.METRICS.value: self.render_metrics_slide,
            SlideType.DEMO_STORY.value: self.render_demo_story_slide,
            SlideType.CORPORATE.value: self.render_corporate_slide,
            SlideType.QA.value: self.render_qa_slide,
        }

    # ---------- per-slide highlights ----------

    def render_metrics_slide(self, ctx, slide):
        metrics = ctx.sprint_metrics
        if metrics is None:
            return "Sprint metrics not provided"
        return (
            f"{metrics.completed_total_points:g} of {metrics.estimated_points:g} points delivered, "
            f"{metrics.test_coverage:g}% test coverage"
        )

    def render_demo_story_slide(self, ctx, slide):
        issue = analysis.find_issue(ctx.all_issues, slide.story_id)
        if issue is None:
            return _excerpt(slide.content_text()) or "Demo story"
        return f"Demo: {issue.key} {issue.summary} ({issue.status})"

    def render_corporate_slide(self, ctx, slide):
        return "Corporate update"

    def render_qa_slide(self, ctx, slide):
        return "Questions and discussion"

    def render_default_slide(self, ctx, slide):
        return _excerpt(slide.content_text())

    def wrap_slide(self, ctx: RenderContext, slide: PresentationSlide, number: int, body: str):
        detail = f": {esc(body)}" if body else ""
        ctx.parts.append(f"<li><strong>{esc(slide.title)}</strong>{detail}</li>")

    # ---------- document ----------

    def _metric_cards(self, ctx: RenderContext) -> str:
        m = analysis.executive_metrics(ctx.sprint_metrics, ctx.all_issues)
        cards = [
            ("Sprint Velocity", m.velocity, m.velocity_status),
            ("Quality Score", m.quality_score, m.quality_status),
            ("Completion Rate", m.completion_rate, m.completion_status),
            ("Overall Efficiency", m.efficiency_score, m.efficiency_status),
        ]
        return "".join(
            '<div class="metric-card">'
            f'<div class="metric-value">{value}%</div>'
            f'<div class="metric-label">{label}</div>'
            f'<div class="metric-status status-{status}">{status.upper()}</div>'
            "</div>"
            for label, value, status in cards
        )

    def _impact_items(self, ctx: RenderContext) -> str:
        impact = analysis.business_impact(ctx.all_issues)
        items = [
            ("High-Value Deliverables", impact["high_value_deliverables"],
             f"{impact['high_value_percentage']}% of delivered points"),
            ("User Stories Completed", impact["stories_completed"], "New capabilities"),
            ("Bug Fixes", impact["bug_fixes"], "Quality improvements"),
            ("Technical Debt", impact["technical_debt"], "Platform health"),
        ]
        return "".join(
            f'<div class="impact-item"><h3>{label}</h3><div class="impact-value">{value}</div><p>{note}</p></div>'
            for label, value, note in items
        )

    def finish(self, ctx: RenderContext) -> str:
        p = ctx.presentation
        recs = "".join(f"<li>{esc(r)}</li>" for r in analysis.recommendations(ctx.sprint_metrics, ctx.all_issues))
        highlights = "".join(ctx.parts) or "<li>No slides</li>"
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Executive Summary - {esc(p.title)}</title>
<style>{EXECUTIVE_CSS}</style>
</head>
<body>
<div class="container">
<div class="header">
<h1>Executive Summary</h1>
<div class="subtitle">{esc(p.metadata.sprint_name)} - {esc(display_date(p.created_at))}</div>
</div>
<div class="content">
<div class="section">
<h2>Key Performance Indicators</h2>
<div class="metrics-grid">{self._metric_cards(ctx)}</div>
</div>
<div class="section">
<h2>Business Impact</h2>
<div class="impact-grid">{self._impact_items(ctx)}</div>
</div>
<div class="section">
<h2>Strategic Recommendations</h2>
<div class="recommendations"><h3>Key Actions for Next Sprint</h3><ul>{recs}</ul></div>
</div>
<div class="section">
<h2>Presentation Highlights</h2>
<div class="highlights"><ul>{highlights}</ul></div>
</div>
</div>
<div class="footer">
<p>Generated by {esc(settings.brand_name)} Deck Generator</p>
<p>{esc(p.title)}</p>
</div>
</div>
</body>
</html>
"""

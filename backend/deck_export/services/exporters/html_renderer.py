"""Self-contained interactive HTML deck.

One file with inline CSS and JavaScript: slides are shown one at a time and
navigated with buttons or the keyboard (ArrowRight/Space, ArrowLeft,
Home/End). Corporate slide images are embedded as data URIs; if an image
cannot be fetched the slide keeps an <img> pointing at the original URL.
"""
import html
from typing import Dict, Optional

import markdown

from deck_export.config import settings
from deck_export.models import PresentationSlide, SlideType, SprintMetrics
from deck_export.services.exporters.base_renderer import BaseRenderer, RenderContext, display_date
from deck_export.services.exporters.sprint_analysis import find_issue


def esc(value) -> str:
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def markdown_to_html(text: str) -> str:
    """Markdown -> HTML with any raw HTML in the source escaped first."""
    if not text:
        return ""
    return markdown.markdown(html.escape(text, quote=False), extensions=["extra", "sane_lists"])


HTML_CSS = """
* { margin: 0; padding: 0; box-sizing: border-box; }
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; background: #f8fafc; }
.presentation-container { max-width: 1200px; margin: 0 auto; background: white; box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1); min-height: 100vh; display: flex; flex-direction: column; }
.presentation-header { background: linear-gradient(135deg, #1e3a8a 0%, #3b82f6 100%); color: white; padding: 2rem; }
.presentation-header h1 { font-size: 2rem; font-weight: 700; margin-bottom: 0.5rem; }
.presentation-meta span { margin-right: 1.5rem; opacity: 0.9; }
.presentation-navigation { display: flex; justify-content: center; padding: 1rem; border-bottom: 1px solid #e2e8f0; }
.nav-button { background: #3b82f6; color: white; border: none; padding: 0.5rem 1.25rem; border-radius: 6px; cursor: pointer; margin: 0 1rem; }
.nav-button:disabled { background: #cbd5e1; cursor: not-allowed; }
.slides-container { flex: 1; padding: 2rem; }
.slide { display: none; min-height: 60vh; }
.slide.active { display: block; }
.slide-title { font-size: 1.75rem; font-weight: 600; color: #1e3a8a; margin-bottom: 1.5rem; border-bottom: 2px solid #3b82f6; padding-bottom: 0.5rem; }
.title-slide { text-align: center; padding-top: 15vh; }
.title-slide h2 { font-size: 2.5rem; color: #1e3a8a; }
.markdown-content p, .markdown-content ul, .markdown-content ol { margin-bottom: 1rem; }
.markdown-content ul, .markdown-content ol { padding-left: 1.5rem; }
.metrics-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 1.5rem; }
.metric-card { background: #f1f5f9; border-radius: 8px; padding: 1.5rem; text-align: center; }
.metric-value { font-size: 2rem; font-weight: 700; color: #1e3a8a; }
.metric-label { color: #64748b; }
.story-details p { margin-bottom: 0.25rem; }
.corporate-slide { text-align: center; }
.corporate-slide img { max-width: 100%; max-height: 70vh; object-fit: contain; }
.qa-slide { text-align: center; }
.qa-slide ul { list-style: none; }
.presentation-footer { padding: 1rem 2rem; border-top: 1px solid #e2e8f0; color: #64748b; font-size: 0.875rem; display: flex; justify-content: space-between; }
@media print { .slide { display: block; page-break-after: always; } .presentation-navigation { display: none; } }
"""

HTML_JS = """
let currentSlideIndex = 0;
const slides = document.querySelectorAll('.slide');
const totalSlides = slides.length;

function showSlide(index) {
    if (index < 0 || index >= totalSlides) return;
    slides.forEach(function(slide) { slide.classList.remove('active'); });
    slides[index].classList.add('active');
    currentSlideIndex = index;
    updateNavigation();
}

function nextSlide() { showSlide(currentSlideIndex + 1); }
function prevSlide() { showSlide(currentSlideIndex - 1); }

function updateNavigation() {
    const prevBtn = document.getElementById('prev-btn');
    const nextBtn = document.getElementById('next-btn');
    if (prevBtn) prevBtn.disabled = currentSlideIndex === 0;
    if (nextBtn) nextBtn.disabled = currentSlideIndex === totalSlides - 1;
    document.querySelectorAll('.current-page').forEach(function(el) { el.textContent = currentSlideIndex + 1; });
}

document.addEventListener('keydown', function(e) {
    switch (e.key) {
        case 'ArrowRight':
        case ' ':
            e.preventDefault();
            nextSlide();
            break;
        case 'ArrowLeft':
            e.preventDefault();
            prevSlide();
            break;
        case 'Home':
            e.preventDefault();
            showSlide(0);
            break;
        case 'End':
            e.preventDefault();
            showSlide(totalSlides - 1);
            break;
    }
});

if (totalSlides > 0) showSlide(0);
"""


class HTMLRenderer(BaseRenderer):
    format = "html"
    media_type = "text/html"
    extension = "html"
    file_prefix = "Sprint_Review"
    label = "HTML"

    def slide_handlers(self):
        return {
            SlideType.TITLE.value: self.render_title_slide,
            SlideType.SUMMARY.value: self.render_summary_slide,
            SlideType.METRICS.value: self.render_metrics_slide,
            SlideType.DEMO_STORY.value: self.render_demo_story_slide,
            SlideType.CORPORATE.value: self.render_corporate_slide,
            SlideType.QA.value: self.render_qa_slide,
        }

    # ---------- slide bodies ----------

    def render_title_slide(self, ctx: RenderContext, slide: PresentationSlide) -> str:
        return (
            '<div class="title-slide">'
            f"<h2>{esc(slide.title)}</h2>"
            f"<p>Welcome to the {esc(settings.brand_name)} Presentation</p>"
            "</div>"
        )

    def render_summary_slide(self, ctx: RenderContext, slide: PresentationSlide) -> str:
        return f'<div class="summary-slide"><div class="markdown-content">{markdown_to_html(slide.content_text())}</div></div>'

    def render_metrics_slide(self, ctx: RenderContext, slide: PresentationSlide) -> str:
        return metrics_grid(ctx.sprint_metrics)

    def render_demo_story_slide(self, ctx: RenderContext, slide: PresentationSlide) -> str:
        issue = find_issue(ctx.all_issues, slide.story_id)
        if issue is None:
            return "<p>Story not found</p>"

        content = markdown_to_html(slide.content) if isinstance(slide.content, str) else "No content available"
        points = issue.story_points if issue.story_points is not None else "Not estimated"
        return (
            '<div class="demo-story-slide">'
            f"<h3>{esc(issue.key)}: {esc(issue.summary)}</h3>"
            '<div class="story-details">'
            f"<p><strong>Assignee:</strong> {esc(issue.assignee or 'Unassigned')}</p>"
            f"<p><strong>Story Points:</strong> {esc(points)}</p>"
            f"<p><strong>Status:</strong> {esc(issue.status)}</p>"
            "</div>"
            f'<div class="story-content markdown-content">{content}</div>'
            "</div>"
        )

    async def render_corporate_slide(self, ctx: RenderContext, slide: PresentationSlide) -> str:
        if not slide.corporate_slide_url:
            return "<p>No corporate slide image available</p>"

        src = await ctx.embedder.data_uri(slide.corporate_slide_url) or slide.corporate_slide_url
        return f'<div class="corporate-slide"><img src="{esc(src)}" alt="Corporate slide" /></div>'

    def render_qa_slide(self, ctx: RenderContext, slide: PresentationSlide) -> str:
        return (
            '<div class="qa-slide">'
            "<h2>Questions &amp; Discussion</h2>"
            "<p>Thank you for your attention!</p>"
            "<p><strong>Next Steps:</strong></p>"
            "<ul><li>Sprint retrospective</li><li>Upcoming sprint planning</li>"
            "<li>Continuous improvement initiatives</li></ul>"
            "</div>"
        )

    def render_default_slide(self, ctx: RenderContext, slide: PresentationSlide) -> str:
        return f'<div class="default-slide"><div class="markdown-content">{markdown_to_html(slide.content_text())}</div></div>'

    # ---------- document ----------

    def wrap_slide(self, ctx: RenderContext, slide: PresentationSlide, number: int, body: str):
        ctx.parts.append(
            f'<section class="slide" id="slide-{number - 1}" data-slide-type="{esc(slide.type)}">'
            f'<div class="slide-title">{esc(slide.title)}</div>'
            f'<div class="slide-content">{body}</div>'
            "</section>"
        )

    def finish(self, ctx: RenderContext) -> str:
        presentation = ctx.presentation
        slides_html = "".join(ctx.parts)
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{esc(presentation.title)}</title>
<style>{ctx.embedder.embed_css(HTML_CSS)}</style>
</head>
<body>
<div class="presentation-container">
<header class="presentation-header">
<h1>{esc(presentation.title)}</h1>
<div class="presentation-meta">
<span>Sprint: {esc(presentation.metadata.sprint_name)}</span>
<span>Generated: {esc(display_date(presentation.created_at))}</span>
<span>Slides: {ctx.slide_count}</span>
</div>
</header>
<nav class="presentation-navigation">
<button id="prev-btn" class="nav-button" onclick="prevSlide()">Previous</button>
<span class="slide-indicator"><span class="current-page">1</span> / <span class="total-pages">{ctx.slide_count}</span></span>
<button id="next-btn" class="nav-button" onclick="nextSlide()">Next</button>
</nav>
<main class="slides-container">
{slides_html}
</main>
<footer class="presentation-footer">
<span>Generated by {esc(settings.brand_name)} Deck Generator</span>
<span class="page-info">Page <span class="current-page">1</span> of <span class="total-pages">{ctx.slide_count}</span></span>
</footer>
</div>
<script>{HTML_JS}</script>
</body>
</html>
"""


def metrics_grid(metrics: Optional[SprintMetrics]) -> str:
    if metrics is None:
        return "<p>No metrics available</p>"

    cards: Dict[str, str] = {
        "Completed Points": esc(metrics.completed_total_points),
        "Test Coverage": f"{esc(metrics.test_coverage)}%",
        "Planned Items": esc(metrics.planned_items),
        "Estimated Points": esc(metrics.estimated_points),
    }
    items = "".join(
        f'<div class="metric-card"><div class="metric-value">{value}</div><div class="metric-label">{label}</div></div>'
        for label, value in cards.items()
    )
    return f'<div class="metrics-slide"><div class="metrics-grid">{items}</div></div>'

"""
Editorial renderers: ArticleBody, FAQ, Checklist/StepByStep, AuthorBio,
CitationBlock, LastUpdated, TrustBadges, MedicalDisclaimer.

FAQ structured data is produced by the assembler (see
assembler.derive_page_metadata), not here.
"""

from blockpage.model import BlockEnvelope, RenderContext
from blockpage.renderers.markup import escape, render_markdown, safe_url

DEFAULT_MEDICAL_DISCLAIMER = (
    "This content is for informational purposes only and is not a substitute for "
    "professional medical advice, diagnosis, or treatment. Always seek the advice of "
    "your physician or other qualified health provider."
)

_FRESHNESS = {
    "stale": ("freshness-red", "Needs update"),
    "review-pending": ("freshness-yellow", "Review pending"),
}


def render_article_body(block: BlockEnvelope, ctx: RenderContext) -> str:
    content = block.content
    title = content.get("title")
    title_html = f"<h1>{escape(title)}</h1>" if title else ""
    return f'<article class="article-body">{title_html}{render_markdown(content.get("markdown"))}</article>'


def render_faq(block: BlockEnvelope, ctx: RenderContext) -> str:
    items = block.content.get("items") or []
    if not items:
        return ""
    open_first = block.config.get("openFirst") is True
    heading = block.content.get("heading") or "Frequently Asked Questions"

    entries = []
    for i, item in enumerate(items):
        is_open = " open" if i == 0 and open_first else ""
        entries.append(
            f'<details class="faq-item"{is_open}>'
            f'<summary class="faq-question">{escape(item.get("question"))}</summary>'
            f'<div class="faq-answer">{render_markdown(item.get("answer"))}</div>'
            f"</details>"
        )
    return f'<section class="faq-section"><h2>{escape(heading)}</h2><div class="faq-list">{"".join(entries)}</div></section>'


def render_checklist(block: BlockEnvelope, ctx: RenderContext) -> str:
    """Shared by Checklist and StepByStep."""
    steps = block.content.get("steps") or []
    if not steps:
        return ""
    interactive = block.config.get("interactive") is not False
    show_progress = block.config.get("showProgress") is not False

    items = []
    for i, step in enumerate(steps):
        marker = (
            f'<input type="checkbox" id="check-{escape(block.id)}-{i}" class="checklist-checkbox">'
            if interactive
            else f'<span class="checklist-number">{i + 1}</span>'
        )
        items.append(
            f'<li class="checklist-item"><label for="check-{escape(block.id)}-{i}">{marker}'
            f'<div class="checklist-content"><h3>{escape(step.get("heading"))}</h3>'
            f'<div>{render_markdown(step.get("body"))}</div></div></label></li>'
        )

    progress = (
        f'<div class="checklist-progress">0 of {len(steps)} completed</div>' if show_progress else ""
    )
    return f'<section class="checklist-section">{progress}<ol class="checklist-list">{"".join(items)}</ol></section>'


def render_author_bio(block: BlockEnvelope, ctx: RenderContext) -> str:
    content = block.content
    name = content.get("name")
    if not name:
        return ""
    title = content.get("title")
    title_html = f'<span class="author-title">{escape(title)}</span>' if title else ""
    return f'<aside class="author-bio"><h3>{escape(name)}</h3>{title_html}<p>{escape(content.get("bio"))}</p></aside>'


def render_citation_block(block: BlockEnvelope, ctx: RenderContext) -> str:
    sources = block.content.get("sources") or []
    if not sources:
        return ""

    items = []
    for s in sources:
        href = f' href="{safe_url(s["url"])}" rel="nofollow noopener" target="_blank"' if s.get("url") else ""
        publisher = f" &mdash; {escape(s['publisher'])}" if s.get("publisher") else ""
        retrieved = f" <small>(Retrieved {escape(s['retrievedAt'])})</small>" if s.get("retrievedAt") else ""
        usage = f' <span class="data-usage">{escape(s["usage"])}</span>' if s.get("usage") else ""
        items.append(f'<li class="data-source-item"><a{href}>{escape(s.get("title"))}</a>{publisher}{retrieved}{usage}</li>')

    return f'<section class="data-sources"><h2>Data Sources</h2><ul>{"".join(items)}</ul></section>'


def render_last_updated(block: BlockEnvelope, ctx: RenderContext) -> str:
    content = block.content
    updated = content.get("date") or ctx.updated_at
    if not updated:
        return ""
    css_class, label = _FRESHNESS.get(content.get("status"), ("freshness-green", None))
    label = label or f"Verified {updated}"
    reviewer = content.get("reviewedBy")
    reviewer_html = f'<span class="reviewed-by">Reviewed by {escape(reviewer)}</span>' if reviewer else ""
    return f'<div class="freshness-badge {css_class}"><span class="freshness-dot"></span>{escape(label)}</div>{reviewer_html}'


def render_trust_badges(block: BlockEnvelope, ctx: RenderContext) -> str:
    badges = block.content.get("badges") or []
    if not badges:
        return ""
    items = []
    for b in badges:
        desc = b.get("description")
        desc_html = f"<p>{escape(desc)}</p>" if desc else ""
        tooltip = f' data-tooltip="{escape(desc)}"' if desc else ""
        items.append(f'<div class="trust-badge"{tooltip}><strong>{escape(b.get("label"))}</strong>{desc_html}</div>')
    return f'<section class="trust-badges"><div class="trust-badges-row">{"".join(items)}</div></section>'


def render_medical_disclaimer(block: BlockEnvelope, ctx: RenderContext) -> str:
    text = block.content.get("disclaimerText") or DEFAULT_MEDICAL_DISCLAIMER
    html = f'<div class="medical-disclaimer" role="alert"><strong>Medical Disclaimer:</strong> {escape(text)}</div>'
    if block.config.get("showDoctorCta") is not False:
        html += (
            '<div class="cta-doctor"><h2>Talk to Your Doctor</h2>'
            "<p>The information on this page is not a substitute for professional medical guidance. "
            "Please consult a qualified healthcare provider before making any health-related decisions.</p></div>"
        )
    return html

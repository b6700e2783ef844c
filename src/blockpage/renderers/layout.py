"""
Structural renderers: Header, Footer, Sidebar, Hero, CTABanner, ScrollCTA.
"""

from dataclasses import replace
from datetime import date

from blockpage.model import BlockEnvelope, BlockType, RenderContext
from blockpage.registry import Renderer, RendererRegistry
from blockpage.renderers.markup import attr, escape, render_markdown, safe_url


def _variant(block: BlockEnvelope, default: str) -> str:
    return str(block.variant or block.config.get("variant") or default)


def _nav_links(links) -> str:
    return " ".join(
        f'<a href="{safe_url(link.get("href"))}">{escape(link.get("label"))}</a>'
        for link in links or []
    )


def render_header(block: BlockEnvelope, ctx: RenderContext) -> str:
    content = block.content
    variant = _variant(block, "topbar")
    sticky = ' data-sticky="true"' if block.config.get("sticky") else ""
    site_name = content.get("siteName") or ctx.site_title
    links = _nav_links(content.get("navLinks"))
    nav = f"<nav>{links}</nav>" if links else ""

    return (
        f'<header class="header header--{escape(variant)}"{sticky}>'
        f'<div class="site-container"><a href="/" class="logo">{escape(site_name)}</a>{nav}</div>'
        f"</header>"
    )


def render_footer(block: BlockEnvelope, ctx: RenderContext) -> str:
    content = block.content
    variant = _variant(block, "minimal")
    site_name = content.get("siteName") or ctx.site_title
    year = content.get("copyrightYear") or date.today().year
    inner = ""

    columns = content.get("columns") or []
    if variant == "multi-column" and columns:
        cols = []
        for col in columns:
            links = "".join(
                f'<li><a href="{safe_url(link.get("href"))}">{escape(link.get("label"))}</a></li>'
                for link in col.get("links") or []
            )
            cols.append(f'<div class="footer-col"><h4>{escape(col.get("title"))}</h4><ul>{links}</ul></div>')
        inner = f'<div class="footer-columns">{"".join(cols)}</div>'

    endpoint = content.get("newsletterEndpoint")
    if variant == "newsletter" and endpoint:
        headline = content.get("newsletterHeadline") or "Stay updated"
        inner += (
            f'<div class="footer-newsletter"><h4>{escape(headline)}</h4>'
            f'<form action="{safe_url(endpoint)}" method="POST" class="newsletter-form">'
            f'<input type="email" name="email" placeholder="your@email.com" required>'
            f'<button type="submit">Subscribe</button></form></div>'
        )

    disclaimer = content.get("disclaimerText")
    if disclaimer:
        inner += f'<div class="footer-disclaimer">{escape(disclaimer)}</div>'

    return (
        f'<footer class="footer footer--{escape(variant)}"><div class="site-container">{inner}'
        f"<p>&copy; {escape(year)} {escape(site_name)}. All rights reserved.</p></div></footer>"
    )


def render_sidebar(block: BlockEnvelope, ctx: RenderContext) -> str:
    sections = block.content.get("sections") or []
    if not sections:
        return ""
    inner = "".join(
        f'<div class="sidebar-section"><h4>{escape(s.get("title"))}</h4>'
        f'{render_markdown(s.get("body") or s.get("html"))}</div>'
        for s in sections
    )
    return f'<aside class="sidebar">{inner}</aside>'


def render_hero(block: BlockEnvelope, ctx: RenderContext) -> str:
    content = block.content
    variant = _variant(block, "centered")
    heading = content.get("heading") or ctx.page_title or ctx.site_title
    badge = content.get("badge")
    subheading = content.get("subheading")
    cta_text = content.get("ctaText")
    cta_url = content.get("ctaUrl")

    parts = []
    if badge:
        parts.append(f'<span class="hero-badge">{escape(badge)}</span>')
    parts.append(f"<h1>{escape(heading)}</h1>")
    if subheading:
        parts.append(f'<p class="hero-sub">{escape(subheading)}</p>')
    if cta_text and cta_url:
        parts.append(f'<a href="{safe_url(cta_url)}" class="cta-button hero-cta">{escape(cta_text)}</a>')

    return f'<section class="hero hero--{escape(variant)}"><div class="site-container">{"".join(parts)}</div></section>'


def render_cta_banner(block: BlockEnvelope, ctx: RenderContext) -> str:
    content = block.content
    text = content.get("text")
    if not text:
        return ""
    label = content.get("buttonLabel") or "Learn More"
    url = safe_url(content.get("buttonUrl"))
    style = str(block.config.get("style") or "bar")

    if block.config.get("trigger") == "scroll":
        return (
            f'<div class="scroll-cta scroll-cta-{escape(style)}" role="complementary"'
            f' aria-label="Call to action" data-trigger="scroll" hidden>'
            f'<div class="scroll-cta-inner"><p class="scroll-cta-text">{escape(text)}</p>'
            f'<a href="{url}" class="scroll-cta-btn">{escape(label)}</a>'
            f'<button class="scroll-cta-dismiss" aria-label="Dismiss" type="button">&times;</button>'
            f"</div></div>"
        )

    return (
        f'<section class="cta-section cta-section--{escape(style)}"{attr("data-trigger", block.config.get("trigger"))}>'
        f'<div class="site-container"><p class="cta-text">{escape(text)}</p>'
        f'<a href="{url}" class="cta-button">{escape(label)}</a></div></section>'
    )


def make_scroll_cta(registry: RendererRegistry) -> Renderer:
    """ScrollCTA is a CTABanner with trigger=scroll, dispatched through the registry."""
    def render_scroll_cta(block: BlockEnvelope, ctx: RenderContext) -> str:
        delegated = replace(
            block,
            type=BlockType.CTA_BANNER.value,
            config={**block.config, "trigger": "scroll"},
        )
        return registry.render(delegated, ctx)

    return render_scroll_cta

"""
Page Assembler

Turns an ordered block sequence into one complete HTML document.

Assembly is a single linear classification pass followed by one
concurrent render pass:

    blocks → classify_blocks() → PageLayout
           → RendererRegistry.render_all()
           → document shell + derive_page_metadata()

LAYOUT RULES:
    - One Header, always first; one Footer, always last. The first
      occurrence wins, later ones are dropped with a warning.
    - At most one Sidebar. When present the main column and the sidebar
      share a layout-wrap; config.position picks the side (default right).
    - Hero, CTABanner and ScrollCTA are full-width. They render above the
      main column when they come before the first main-column block, and
      below it otherwise.
    - Every other block keeps its relative order inside <main>.

IMPORTANT:
    Page metadata (title, Open Graph, JSON-LD) is derived by a pure
    function so it can be tested without rendering any block.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from blockpage.model import BlockEnvelope, BlockType, PageDefinition, RenderContext
from blockpage.registry import RendererRegistry
from blockpage.renderers import build_default_registry
from blockpage.renderers.markup import attr, escape, ld_json

logger = logging.getLogger(__name__)

FULL_WIDTH_TYPES = frozenset({BlockType.HERO, BlockType.CTA_BANNER, BlockType.SCROLL_CTA})

SCHEMA_CONTEXT = "https://schema.org"


# ============================================================================
# LAYOUT CLASSIFICATION
# ============================================================================

@dataclass
class PageLayout:
    """
    Blocks sorted into the regions of the page shell.

    Properties:
        header: The page Header, if any
        footer: The page Footer, if any
        sidebar: The single Sidebar, if any
        before_main: Full-width blocks above the main column
        main: Main-column blocks in authored order
        after_main: Full-width blocks below the main column
        dropped: Extra Header/Footer/Sidebar blocks that were discarded
    """

    header: Optional[BlockEnvelope] = None
    footer: Optional[BlockEnvelope] = None
    sidebar: Optional[BlockEnvelope] = None
    before_main: List[BlockEnvelope] = field(default_factory=list)
    main: List[BlockEnvelope] = field(default_factory=list)
    after_main: List[BlockEnvelope] = field(default_factory=list)
    dropped: List[BlockEnvelope] = field(default_factory=list)

    @property
    def sidebar_position(self) -> str:
        if self.sidebar is None:
            return "right"
        return "left" if self.sidebar.config.get("position") == "left" else "right"

    def blocks(self) -> List[BlockEnvelope]:
        """Every kept block in document order."""
        ordered: List[BlockEnvelope] = []
        if self.header:
            ordered.append(self.header)
        ordered.extend(self.before_main)
        if self.sidebar and self.sidebar_position == "left":
            ordered.append(self.sidebar)
        ordered.extend(self.main)
        if self.sidebar and self.sidebar_position == "right":
            ordered.append(self.sidebar)
        ordered.extend(self.after_main)
        if self.footer:
            ordered.append(self.footer)
        return ordered


def classify_blocks(blocks: Sequence[BlockEnvelope]) -> PageLayout:
    """Sort blocks into page regions in one pass."""
    layout = PageLayout()
    seen_main = False

    for block in blocks:
        block_type = block.block_type

        if block_type in (BlockType.HEADER, BlockType.FOOTER, BlockType.SIDEBAR):
            slot = block_type.name.lower()
            if getattr(layout, slot) is None:
                setattr(layout, slot, block)
            else:
                logger.warning("Dropping extra %s block %s", block.type, block.id)
                layout.dropped.append(block)
            continue

        if block_type in FULL_WIDTH_TYPES:
            if seen_main:
                layout.after_main.append(block)
            else:
                layout.before_main.append(block)
            continue

        seen_main = True
        layout.main.append(block)

    return layout


# ============================================================================
# PAGE METADATA
# ============================================================================

@dataclass(frozen=True)
class Breadcrumb:
    name: str
    url: str


@dataclass
class PageMetadata:
    """
    Everything the document <head> says about the page.

    Properties:
        title: Page title (page title, else site title)
        full_title: "Page | Site" when the two differ, else title
        description: Meta description
        canonical_url: https://domain + route
        page_url: Canonical URL without the trailing slash on the root
        breadcrumbs: Home, plus the current page on non-root routes
        meta_tags: (attribute, key, content) triples for Open Graph and
            Twitter cards, e.g. ("property", "og:title", "Pricing")
        structured_data: JSON-LD objects (WebPage/Article,
            BreadcrumbList, FAQPage)
    """

    title: str
    full_title: str
    description: str
    canonical_url: str
    page_url: str
    breadcrumbs: List[Breadcrumb] = field(default_factory=list)
    meta_tags: List[Tuple[str, str, str]] = field(default_factory=list)
    structured_data: List[Dict[str, Any]] = field(default_factory=list)

    def meta(self, key: str) -> Optional[str]:
        """Content of the first meta tag with this key."""
        for _, name, content in self.meta_tags:
            if name == key:
                return content
        return None

    def structured(self, schema_type: str) -> Optional[Dict[str, Any]]:
        """The first JSON-LD object of the given @type."""
        for item in self.structured_data:
            if item.get("@type") == schema_type:
                return item
        return None


def _is_homepage(ctx: RenderContext) -> bool:
    return ctx.route in ("", "/")


def _open_graph_tags(ctx: RenderContext, title: str, description: str, page_url: str) -> List[Tuple[str, str, str]]:
    tags = [
        ("property", "og:title", title),
        ("property", "og:description", description),
        ("property", "og:url", page_url),
        ("property", "og:type", "website" if _is_homepage(ctx) else "article"),
        ("property", "og:site_name", ctx.domain),
        ("property", "og:locale", "en_US"),
        ("name", "twitter:card", "summary_large_image"),
        ("name", "twitter:title", title),
        ("name", "twitter:description", description),
    ]

    if ctx.og_image_path:
        image_url = f"{ctx.base_url}{ctx.og_image_path}"
        tags.extend([
            ("property", "og:image", image_url),
            ("property", "og:image:width", "1200"),
            ("property", "og:image:height", "630"),
            ("name", "twitter:image", image_url),
        ])

    if ctx.published_at:
        tags.append(("property", "article:published_time", ctx.published_at))
    if ctx.updated_at:
        tags.append(("property", "article:modified_time", ctx.updated_at))

    return tags


def _faq_schema(blocks: Sequence[BlockEnvelope]) -> Optional[Dict[str, Any]]:
    questions = []
    for block in blocks:
        if block.block_type is not BlockType.FAQ:
            continue
        items = block.content.get("items") if isinstance(block.content, Mapping) else block.content
        if not isinstance(items, list):
            if items:
                logger.warning("FAQ block %s has malformed items; leaving it out of structured data", block.id)
            continue
        for item in items:
            if not isinstance(item, Mapping):
                logger.warning("FAQ block %s has a malformed item; skipping it", block.id)
                continue
            if not item.get("question"):
                continue
            questions.append({
                "@type": "Question",
                "name": item["question"],
                "acceptedAnswer": {"@type": "Answer", "text": item.get("answer") or ""},
            })

    if not questions:
        return None
    return {"@context": SCHEMA_CONTEXT, "@type": "FAQPage", "mainEntity": questions}


def derive_page_metadata(blocks: Sequence[BlockEnvelope], ctx: RenderContext) -> PageMetadata:
    """
    Derive titles, URLs, breadcrumbs, Open Graph tags and JSON-LD.

    Pure: reads only the blocks and the context.
    """
    title = ctx.page_title or ctx.site_title
    description = ctx.page_description or ""
    if ctx.page_title and ctx.page_title != ctx.site_title:
        full_title = f"{ctx.page_title} | {ctx.site_title}"
    else:
        full_title = title

    canonical_url = ctx.canonical_url
    page_url = ctx.base_url if _is_homepage(ctx) else canonical_url

    breadcrumbs = [Breadcrumb("Home", f"{ctx.base_url}/")]
    if not _is_homepage(ctx):
        breadcrumbs.append(Breadcrumb(ctx.page_title or ctx.route, canonical_url))

    organization = {"@type": "Organization", "name": ctx.domain}
    page_schema: Dict[str, Any] = {
        "@context": SCHEMA_CONTEXT,
        "@type": "WebPage" if _is_homepage(ctx) else "Article",
        "name": title,
        "headline": title,
        "description": description,
        "url": canonical_url,
        "mainEntityOfPage": {"@type": "WebPage", "@id": canonical_url},
        "inLanguage": "en",
        "author": organization,
        "publisher": organization,
    }
    if ctx.published_at:
        page_schema["datePublished"] = ctx.published_at
    if ctx.updated_at:
        page_schema["dateModified"] = ctx.updated_at

    breadcrumb_schema = {
        "@context": SCHEMA_CONTEXT,
        "@type": "BreadcrumbList",
        "itemListElement": [
            {"@type": "ListItem", "position": i, "name": crumb.name, "item": crumb.url}
            for i, crumb in enumerate(breadcrumbs, start=1)
        ],
    }

    structured_data = [page_schema, breadcrumb_schema]
    faq = _faq_schema(blocks)
    if faq is not None:
        structured_data.append(faq)

    return PageMetadata(
        title=title,
        full_title=full_title,
        description=description,
        canonical_url=canonical_url,
        page_url=page_url,
        breadcrumbs=breadcrumbs,
        meta_tags=_open_graph_tags(ctx, title, description, page_url),
        structured_data=structured_data,
    )


# ============================================================================
# DOCUMENT COMPOSITION
# ============================================================================

def _wrap_structural(block: BlockEnvelope, html: str) -> str:
    return f'<div data-block-id="{escape(block.id)}" data-block-type="{escape(block.type)}">{html}</div>'


def _wrap_section(block: BlockEnvelope, html: str) -> str:
    return (
        f'<section data-block-id="{escape(block.id)}" data-block-type="{escape(block.type)}"'
        f'{attr("data-block-variant", block.variant)} data-animate>{html}</section>'
    )


def _render_head(metadata: PageMetadata, ctx: RenderContext, css_href: str) -> str:
    lines = [
        '<meta charset="UTF-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f'<meta name="description" content="{escape(metadata.description)}">',
        '<meta name="robots" content="index, follow">',
        f"<title>{escape(metadata.full_title)}</title>",
        f'<link rel="canonical" href="{escape(metadata.canonical_url)}">',
    ]
    lines.extend(
        f'<meta {attribute}="{escape(key)}" content="{escape(content)}">'
        for attribute, key, content in metadata.meta_tags
    )
    lines.append(f'<link rel="stylesheet" href="{escape(css_href)}">')
    lines.append('<link rel="icon" href="/favicon.svg" type="image/svg+xml">')
    lines.extend(ld_json(item) for item in metadata.structured_data)
    if ctx.head_scripts:
        lines.append(ctx.head_scripts)
    return "\n  ".join(lines)


def _render_breadcrumbs(metadata: PageMetadata) -> str:
    if len(metadata.breadcrumbs) < 2:
        return ""
    items = []
    for crumb in metadata.breadcrumbs[:-1]:
        items.append(f'<li><a href="{escape(crumb.url)}">{escape(crumb.name)}</a></li>')
    items.append(f'<li aria-current="page">{escape(metadata.breadcrumbs[-1].name)}</li>')
    return f'<nav class="breadcrumbs" aria-label="Breadcrumb"><ol>{"".join(items)}</ol></nav>'


class PageAssembler:
    """
    Composes complete HTML documents from block sequences.

    Usage:
        assembler = PageAssembler(build_default_registry())
        html = assembler.assemble(blocks, ctx)

    Args:
        registry: Renderer table used for every block
        css_href: Stylesheet linked from the document head
        max_workers: Render thread pool size (1 renders sequentially)
        show_breadcrumbs: Render a visible breadcrumb trail above <main>
    """

    def __init__(
        self,
        registry: RendererRegistry,
        css_href: str = "/styles.css",
        max_workers: Optional[int] = None,
        show_breadcrumbs: bool = False,
    ):
        self.registry = registry
        self.css_href = css_href
        self.max_workers = max_workers
        self.show_breadcrumbs = show_breadcrumbs

    def assemble(self, blocks: Sequence[BlockEnvelope], ctx: RenderContext) -> str:
        layout = classify_blocks(blocks)
        ordered = layout.blocks()
        rendered = self.registry.render_all(ordered, ctx, max_workers=self.max_workers)
        html_by_block = {id(block): html for block, html in zip(ordered, rendered)}

        def region(region_blocks: Sequence[BlockEnvelope]) -> str:
            return "\n".join(_wrap_section(b, html_by_block[id(b)]) for b in region_blocks)

        header = _wrap_structural(layout.header, html_by_block[id(layout.header)]) if layout.header else ""
        footer = _wrap_structural(layout.footer, html_by_block[id(layout.footer)]) if layout.footer else ""

        main = f"<main>\n{region(layout.main)}\n</main>"
        if layout.sidebar is not None:
            aside = _wrap_structural(layout.sidebar, html_by_block[id(layout.sidebar)])
            columns = f"{aside}\n{main}" if layout.sidebar_position == "left" else f"{main}\n{aside}"
            body_main = (
                f'<div class="site-container"><div class="layout-wrap layout-wrap--sidebar-{layout.sidebar_position}">\n'
                f"{columns}\n</div></div>"
            )
        else:
            body_main = f'<div class="site-container">\n{main}\n</div>'

        metadata = derive_page_metadata(blocks, ctx)
        breadcrumbs = _render_breadcrumbs(metadata) if self.show_breadcrumbs else ""

        body_parts = [
            header,
            region(layout.before_main),
            breadcrumbs,
            body_main,
            region(layout.after_main),
            footer,
            ctx.body_scripts,
        ]
        body = "\n".join(part for part in body_parts if part)

        return (
            "<!DOCTYPE html>\n"
            '<html lang="en">\n'
            "<head>\n"
            f"  {_render_head(metadata, ctx, self.css_href)}\n"
            "</head>\n"
            f'<body data-theme="{escape(ctx.theme)}" data-skin="{escape(ctx.skin)}">\n'
            f"{body}\n"
            "</body>\n"
            "</html>\n"
        )

    def assemble_definition(self, page: PageDefinition) -> str:
        return self.assemble(page.blocks, page.context)


def assemble_page(
    blocks: Sequence[BlockEnvelope],
    ctx: RenderContext,
    registry: Optional[RendererRegistry] = None,
    css_href: str = "/styles.css",
    max_workers: Optional[int] = None,
) -> str:
    """
    Assemble one page. Never raises for block-level faults.

    When no registry is given the built-in renderers are used.
    """
    if registry is None:
        registry = build_default_registry()
    return PageAssembler(registry, css_href=css_href, max_workers=max_workers).assemble(blocks, ctx)


__all__ = [
    "FULL_WIDTH_TYPES",
    "PageLayout",
    "classify_blocks",
    "Breadcrumb",
    "PageMetadata",
    "derive_page_metadata",
    "PageAssembler",
    "assemble_page",
]

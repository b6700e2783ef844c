"""
Built-in block renderers.

build_default_registry() is the single place where block types are
bound to renderer functions. Types without a built-in renderer are
reported by RendererRegistry.missing_types() and render as
placeholders.
"""

from functools import partial

from blockpage.model import BlockType
from blockpage.registry import RendererRegistry
from blockpage.renderers import content, interactive, layout


def build_default_registry(strict_formulas: bool = False) -> RendererRegistry:
    """
    Build the registry of built-in renderers.

    Args:
        strict_formulas: Fail calculator blocks whose formulas contain
            disallowed characters instead of stripping them.
    """
    registry = RendererRegistry()

    registry.register(BlockType.HEADER, layout.render_header)
    registry.register(BlockType.FOOTER, layout.render_footer)
    registry.register(BlockType.SIDEBAR, layout.render_sidebar)
    registry.register(BlockType.HERO, layout.render_hero)
    registry.register(BlockType.CTA_BANNER, layout.render_cta_banner)
    registry.register(BlockType.SCROLL_CTA, layout.make_scroll_cta(registry))

    registry.register(BlockType.ARTICLE_BODY, content.render_article_body)
    registry.register(BlockType.FAQ, content.render_faq)
    registry.register(BlockType.CHECKLIST, content.render_checklist)
    registry.register(BlockType.STEP_BY_STEP, content.render_checklist)
    registry.register(BlockType.AUTHOR_BIO, content.render_author_bio)
    registry.register(BlockType.CITATION_BLOCK, content.render_citation_block)
    registry.register(BlockType.LAST_UPDATED, content.render_last_updated)
    registry.register(BlockType.TRUST_BADGES, content.render_trust_badges)
    registry.register(BlockType.MEDICAL_DISCLAIMER, content.render_medical_disclaimer)

    registry.register(
        BlockType.QUOTE_CALCULATOR,
        partial(interactive.render_quote_calculator, strict=strict_formulas),
    )
    registry.register(BlockType.LEAD_FORM, interactive.render_lead_form)
    registry.register(BlockType.WIZARD, interactive.render_wizard)

    return registry


__all__ = ["build_default_registry"]

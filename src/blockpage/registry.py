"""
Renderer Registry and per-block dispatch.

A RendererRegistry maps each BlockType to a pure function
(envelope, context) -> html. One registry is built at startup (see
blockpage.renderers.build_default_registry) and passed to the
assembler; tests build their own with fake renderers.

Fault isolation:
    - Unknown or unregistered type → "<!-- unknown block: TYPE -->"
    - Renderer raises              → "<!-- render error: TYPE -->"
Neither case affects other blocks on the page, and placeholders never
carry any part of the block's content.
"""

import html
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence

from blockpage.model import BlockEnvelope, BlockType, RenderContext

logger = logging.getLogger(__name__)

Renderer = Callable[[BlockEnvelope, RenderContext], str]


def unknown_block_placeholder(type_tag: str) -> str:
    return f"<!-- unknown block: {html.escape(str(type_tag))} -->"


def render_error_placeholder(type_tag: str) -> str:
    return f"<!-- render error: {html.escape(str(type_tag))} -->"


class RendererRegistry:
    """
    Explicit BlockType → renderer table.

    Usage:
        registry = RendererRegistry()

        @registry.register(BlockType.FAQ)
        def render_faq(block, ctx):
            ...

        registry.render(block, ctx)
    """

    def __init__(self, renderers: Optional[Dict[BlockType, Renderer]] = None):
        self._renderers: Dict[BlockType, Renderer] = dict(renderers or {})

    def register(self, block_type: BlockType, renderer: Optional[Renderer] = None):
        """
        Register a renderer; usable directly or as a decorator.

        Re-registering a type replaces the previous renderer.
        """
        if renderer is None:
            def decorator(fn: Renderer) -> Renderer:
                self._renderers[block_type] = fn
                return fn
            return decorator

        self._renderers[block_type] = renderer
        return renderer

    def get(self, block_type: BlockType) -> Optional[Renderer]:
        return self._renderers.get(block_type)

    def __contains__(self, block_type: object) -> bool:
        return block_type in self._renderers

    def __len__(self) -> int:
        return len(self._renderers)

    def registered_types(self) -> List[BlockType]:
        return [t for t in BlockType if t in self._renderers]

    def missing_types(self) -> List[BlockType]:
        """Block types with no renderer, in enum order."""
        return [t for t in BlockType if t not in self._renderers]

    def render(self, block: BlockEnvelope, ctx: RenderContext) -> str:
        """
        Render one block. Never raises.

        Returns:
            The renderer's HTML, or a placeholder comment on lookup miss
            or renderer failure.
        """
        block_type = block.block_type
        renderer = self._renderers.get(block_type) if block_type is not None else None

        if renderer is None:
            logger.warning("No renderer for block %s of type %r", block.id, block.type)
            return unknown_block_placeholder(block.type)

        try:
            result = renderer(block, ctx)
        except Exception:
            logger.exception("Renderer failed for block %s of type %s", block.id, block.type)
            return render_error_placeholder(block.type)

        return result or ""

    def render_all(
        self,
        blocks: Sequence[BlockEnvelope],
        ctx: RenderContext,
        max_workers: Optional[int] = None,
    ) -> List[str]:
        """
        Render every block, preserving input order.

        Blocks are independent, so they are rendered on a thread pool.
        max_workers=1 renders sequentially on the calling thread.
        """
        if max_workers == 1 or len(blocks) <= 1:
            return [self.render(block, ctx) for block in blocks]

        results: List[str] = [""] * len(blocks)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(self.render, block, ctx): i
                for i, block in enumerate(blocks)
            }

            for future in as_completed(futures):
                index = futures[future]
                results[index] = future.result()

        return results


__all__ = [
    "Renderer",
    "RendererRegistry",
    "unknown_block_placeholder",
    "render_error_placeholder",
]

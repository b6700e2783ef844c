"""
Tests for the built-in block renderers.

Renderers are pure functions of (envelope, context); these tests check
that author text is escaped, interactive blocks ship inert JSON data,
and blocks with nothing to show render as empty strings.
"""

import json

import pytest
from blockpage.examples import build_example_blocks, build_example_quiz
from blockpage.formulas import FormulaSyntaxError
from blockpage.model import BlockEnvelope, RenderContext
from blockpage.renderers import build_default_registry
from blockpage.renderers.content import render_article_body, render_faq
from blockpage.renderers.interactive import render_lead_form, render_quote_calculator, render_wizard
from blockpage.renderers.layout import render_cta_banner, render_footer, render_header, render_hero, render_sidebar
from blockpage.renderers.markup import json_data, ld_json, render_inline, render_markdown, safe_url
from blockpage.serialization import wizard_to_dict


@pytest.fixture
def ctx():
    return RenderContext(domain="example.com", site_title="Example", route="/pricing", page_title="Pricing")


def _example_block(block_id):
    return next(b for b in build_example_blocks() if b.id == block_id)


def _json_in(html, css_class):
    start_tag = f'<script type="application/json" class="{css_class}">'
    start = html.index(start_tag) + len(start_tag)
    return json.loads(html[start:html.index("</script>", start)])


class TestMarkup:

    @pytest.mark.parametrize("url", ["javascript:alert(1)", "data:text/html,x", "  "])
    def test_unsafe_urls_fall_back(self, url):
        assert safe_url(url) == "#"

    @pytest.mark.parametrize("url", ["https://a.b/c?d=1", "/quote", "#wizard", "mailto:a@b.c", "guides/solar"])
    def test_safe_urls_kept(self, url):
        assert safe_url(url) == url.replace("&", "&amp;")

    def test_markdown_escapes_raw_html(self):
        html = render_markdown("# Title\n\nSome <script>alert(1)</script> text")
        assert "<h2>Title</h2>" in html
        assert "&lt;script&gt;" in html
        assert "<script>" not in html

    def test_markdown_lists(self):
        assert render_markdown("- a\n- b") == "<ul><li>a</li><li>b</li></ul>"
        assert render_markdown("1. a\n2. b") == "<ol><li>a</li><li>b</li></ol>"

    def test_inline_formatting(self):
        assert render_inline("**bold** and *em*") == "<strong>bold</strong> and <em>em</em>"
        assert render_inline("[docs](/docs)") == '<a href="/docs">docs</a>'

    def test_json_data_cannot_close_its_script(self):
        html = json_data({"text": "</script><script>alert(1)</script>"}, "x-data")
        assert html.count("</script>") == 1
        assert "\\u003c/script\\u003e" in html

    def test_ld_json(self):
        assert ld_json({"@type": "FAQPage"}) == '<script type="application/ld+json">{"@type":"FAQPage"}</script>'


class TestLayoutRenderers:

    def test_header_escapes_and_filters_links(self, ctx):
        block = BlockEnvelope(id="h", type="Header", content={
            "siteName": "<b>Acme</b>",
            "navLinks": [{"label": "Bad", "href": "javascript:alert(1)"}, {"label": "Docs", "href": "/docs"}],
        })
        html = render_header(block, ctx)
        assert "&lt;b&gt;Acme&lt;/b&gt;" in html
        assert '<a href="#">Bad</a>' in html
        assert '<a href="/docs">Docs</a>' in html

    def test_header_sticky_and_site_title_fallback(self, ctx):
        html = render_header(BlockEnvelope(id="h", type="Header", config={"sticky": True}), ctx)
        assert 'data-sticky="true"' in html
        assert ">Example</a>" in html

    def test_footer(self, ctx):
        block = BlockEnvelope(id="f", type="Footer", content={"copyrightYear": 2026, "disclaimerText": "Estimates only"})
        html = render_footer(block, ctx)
        assert "&copy; 2026 Example. All rights reserved." in html
        assert '<div class="footer-disclaimer">Estimates only</div>' in html

    def test_hero_heading_falls_back_to_page_title(self, ctx):
        html = render_hero(BlockEnvelope(id="x", type="Hero", variant="split"), ctx)
        assert "<h1>Pricing</h1>" in html
        assert "hero--split" in html

    def test_empty_blocks_render_nothing(self, ctx):
        assert render_sidebar(BlockEnvelope(id="s", type="Sidebar"), ctx) == ""
        assert render_cta_banner(BlockEnvelope(id="c", type="CTABanner"), ctx) == ""
        assert render_faq(BlockEnvelope(id="q", type="FAQ"), ctx) == ""

    def test_scroll_cta_delegates_to_cta_banner(self, ctx):
        registry = build_default_registry()
        html = registry.render(_example_block("sticky-cta"), ctx)
        assert 'data-trigger="scroll"' in html
        assert 'class="scroll-cta scroll-cta-bar"' in html
        assert "Still deciding? Take the quiz." in html

    def test_cta_banner_inline(self, ctx):
        html = render_cta_banner(_example_block("cta"), ctx)
        assert html.startswith('<section class="cta-section cta-section--bar">')
        assert '<a href="/quote" class="cta-button">Talk to an installer</a>' in html


class TestContentRenderers:

    def test_article_body(self, ctx):
        html = render_article_body(_example_block("intro"), ctx)
        assert html.startswith('<article class="article-body">')
        assert "<h3>How it works</h3>" in html
        assert "<li>No sign-up</li>" in html

    def test_faq_open_first(self, ctx):
        block = BlockEnvelope(id="q", type="FAQ", config={"openFirst": True},
                              content={"items": [{"question": "A?", "answer": "a"}, {"question": "B?", "answer": "b"}]})
        html = render_faq(block, ctx)
        assert html.count('<details class="faq-item" open>') == 1
        assert html.count('<details class="faq-item">') == 1
        assert "<h2>Frequently Asked Questions</h2>" in html


class TestQuoteCalculator:

    def test_results_prefilled_from_defaults(self, ctx):
        html = render_quote_calculator(_example_block("calc"), ctx)
        assert 'id="result-total">$17,100.00<' in html
        assert 'id="result-net">$11,970.00<' in html
        assert 'type="range" id="kw" name="kw" class="calc-input" min="2" max="20" step="1" value="6"' in html

    def test_data_carries_sanitized_expressions_only(self, ctx):
        data = _json_in(render_quote_calculator(_example_block("calc"), ctx), "calc-data")
        assert data["inputs"] == ["kw", "cost_per_watt"]
        assert [o["id"] for o in data["outputs"]] == ["total", "credit", "net"]
        assert data["outputs"][0]["expression"] == "kw * 1000 * cost_per_watt"

    def test_stripped_expression(self, ctx):
        block = BlockEnvelope(id="c", type="QuoteCalculator", content={
            "inputs": [{"id": "a", "default": 2}],
            "outputs": [{"id": "x", "label": "X"}, {"id": "y", "label": "Y"}],
            "formula": "({x: a * 3; alert(1), y: '{}'})",
        })
        html = render_quote_calculator(block, ctx)
        data = _json_in(html, "calc-data")
        assert data["outputs"][0]["expression"] == "a * 3 alert(1)"
        assert data["outputs"][1]["expression"] is None
        assert 'id="result-x">—<' in html
        assert 'id="result-y">—<' in html

    def test_strict_mode_raises(self, ctx):
        block = BlockEnvelope(id="c", type="QuoteCalculator", content={
            "inputs": [{"id": "a"}], "outputs": [{"id": "x"}], "formula": "a; b",
        })
        with pytest.raises(FormulaSyntaxError):
            render_quote_calculator(block, ctx, strict=True)
        assert build_default_registry(strict_formulas=True).render(block, ctx) == "<!-- render error: QuoteCalculator -->"

    def test_no_inputs(self, ctx):
        assert render_quote_calculator(BlockEnvelope(id="c", type="QuoteCalculator"), ctx) == ""


class TestLeadForm:

    FIELDS = [{"name": "email", "type": "email", "label": "Email"}, {"name": "notes", "type": "textarea", "required": False}]

    def test_no_action_renders_nothing(self, ctx):
        assert render_lead_form(BlockEnvelope(id="l", type="LeadForm", content={"fields": self.FIELDS}), ctx) == ""
        block = BlockEnvelope(id="l", type="LeadForm", config={"endpoint": "#"}, content={"fields": self.FIELDS})
        assert render_lead_form(block, ctx) == ""

    def test_collect_url_fallback(self):
        ctx = RenderContext(domain="example.com", site_title="Example", route="/quote", collect_url="https://collect.example.com/lead")
        html = render_lead_form(BlockEnvelope(id="l", type="LeadForm", content={"fields": self.FIELDS}), ctx)
        assert 'action="https://collect.example.com/lead"' in html
        assert 'data-route="/quote"' in html
        assert 'type="email" id="email" name="email" placeholder="Email" required autocomplete="email"' in html
        assert '<textarea id="notes" name="notes" placeholder="notes"></textarea>' in html

    def test_endpoint_wins(self, ctx):
        block = BlockEnvelope(id="l", type="LeadForm", config={"endpoint": "/leads", "submitLabel": "Send"},
                              content={"fields": self.FIELDS, "consentText": "OK to call"})
        html = render_lead_form(block, ctx)
        assert 'action="/leads"' in html
        assert "<button type=\"submit\">Send</button>" in html
        assert "OK to call" in html


class TestWizardRenderer:

    def test_steps_and_navigation(self, ctx):
        html = render_wizard(_example_block("wizard"), ctx)
        assert '<div class="wizard-step" data-step-id="home" data-step-index="0">' in html
        assert '<div class="wizard-step" data-step-id="goals" data-step-index="3" hidden>' in html
        assert html.count('class="wizard-next">Next</button>') == 3
        assert 'class="wizard-next">See Results</button>' in html
        assert 'action="/api/leads"' in html

    def test_data_matches_definition(self, ctx):
        block = _example_block("wizard")
        data = _json_in(render_wizard(block, ctx), "wizard-data")
        assert data["steps"] == block.content["steps"]
        assert data["steps"][0]["branches"][0]["condition"] == "owner == 'no' || home_type == 'apartment'"
        assert data["copy"] == {"emptyTitle": "No matching results", "emptyBody": "Please try different answers."}

    def test_quiz_mode(self, ctx):
        block = BlockEnvelope(id="quiz", type="Wizard", content=wizard_to_dict(build_example_quiz()))
        html = render_wizard(block, ctx)
        assert 'data-wizard-mode="quiz"' in html
        assert '<div class="wizard-quiz-score" hidden></div>' in html
        assert 'class="wizard-next">See Score</button>' in html
        assert "wizard-lead-form" not in html

    def test_collect_url_overrides_lead_endpoint(self):
        ctx = RenderContext(domain="example.com", site_title="Example", collect_url="https://c.example.com/in")
        assert 'action="https://c.example.com/in"' in render_wizard(_example_block("wizard"), ctx)

    def test_no_steps(self, ctx):
        assert render_wizard(BlockEnvelope(id="w", type="Wizard", content={"steps": []}), ctx) == ""

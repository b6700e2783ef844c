"""
Example definitions used by the tests, the demo and `blockpage render --example`.

Builds a solar-fit wizard with branching, weighted scoring and lead
capture, a short quiz scored through outcomes, and a landing page that
embeds both next to a quote calculator.
"""
from blockpage.model import (
    BlockEnvelope,
    Branch,
    CallToAction,
    Field,
    FieldType,
    LeadCaptureSpec,
    Option,
    PageDefinition,
    RenderContext,
    ResultRule,
    ResultTemplate,
    ScoreBand,
    ScoreOutcome,
    ScoringMethod,
    ScoringSpec,
    Step,
    WizardDefinition,
    WizardMode,
)
from blockpage.serialization import wizard_to_dict


def _options(*pairs):
    return [Option(value=value, label=label) for value, label in pairs]


def build_example_wizard() -> WizardDefinition:
    """
    Four-step solar suitability wizard.

    Renters and apartment dwellers skip straight to "goals"; heavily
    shaded roofs skip the bill step.
    """
    steps = [
        Step(
            id="home",
            title="About your home",
            fields=[
                Field("home_type", FieldType.RADIO, "Home type",
                      _options(("house", "House"), ("townhouse", "Townhouse"), ("apartment", "Apartment")),
                      required=True),
                Field("owner", FieldType.RADIO, "Do you own it?",
                      _options(("yes", "Yes"), ("no", "No")), required=True),
            ],
            branches=[Branch("owner == 'no' || home_type == 'apartment'", "goals")],
        ),
        Step(
            id="roof",
            title="Your roof",
            description="Age and shading decide how much a panel can produce.",
            fields=[
                Field("roof_age", FieldType.NUMBER, "Roof age (years)", required=True),
                Field("shade", FieldType.RADIO, "Shade during the day",
                      _options(("none", "None"), ("partial", "Partial"), ("heavy", "Heavy")),
                      required=True),
            ],
            branches=[Branch("shade == 'heavy'", "goals")],
        ),
        Step(
            id="bill",
            title="Your energy use",
            fields=[
                Field("monthly_bill", FieldType.NUMBER, "Average monthly bill ($)", required=True),
                Field("extras", FieldType.CHECKBOX, "Also interested in",
                      _options(("battery", "Battery storage"), ("ev_charger", "EV charger"),
                               ("heat_pump", "Heat pump"))),
            ],
        ),
        Step(
            id="goals",
            title="Your goals",
            fields=[
                Field("goal", FieldType.RADIO, "Main goal",
                      _options(("save", "Lower my bills"), ("green", "Cut emissions"), ("backup", "Backup power")),
                      required=True),
            ],
        ),
    ]

    rules = [
        ResultRule(
            condition="owner == 'no' || home_type == 'apartment'",
            title="Community solar is your best fit",
            body="Subscribe to a local solar farm and get bill credits without installing panels.",
            cta=CallToAction(text="Find a community project", url="/community-solar"),
        ),
        ResultRule(
            condition="shade == 'heavy'",
            title="Your roof may be too shaded",
            body="A site survey can tell whether trimming or a ground mount would work.",
        ),
        ResultRule(
            condition="owner == 'yes' && monthly_bill >= 150 && shade != 'heavy'",
            title="Great candidate for rooftop solar",
            body="With your bill, a typical system pays for itself in 7 to 9 years.",
            cta=CallToAction(text="Get a free quote", url="/quote"),
        ),
        ResultRule(
            condition="extras.includes('battery')",
            title="Add battery storage",
            body="Store midday production for the evening peak.",
        ),
    ]

    scoring = ScoringSpec(
        method=ScoringMethod.WEIGHTED,
        weights={"shade": 2, "goal": 1},
        value_map={
            "shade": {"none": 100, "partial": 60, "heavy": 10},
            "goal": {"save": 100, "green": 80, "backup": 60},
        },
        bands=[
            ScoreBand(0, 49, "Low fit"),
            ScoreBand(50, 79, "Good fit"),
            ScoreBand(80, 100, "Excellent fit"),
        ],
    )

    return WizardDefinition(
        steps=steps,
        result_rules=rules,
        result_template=ResultTemplate.RECOMMENDATION,
        mode=WizardMode.WIZARD,
        collect_lead=LeadCaptureSpec(
            fields=["name", "email"],
            consent_text="I agree to be contacted about my solar options.",
            endpoint="/api/leads",
        ),
        scoring=scoring,
    )


def build_example_quiz() -> WizardDefinition:
    """Two-question quiz with no result rules; outcomes come from the score."""
    steps = [
        Step(
            id="q1",
            title="Which direction should panels face in the northern hemisphere?",
            fields=[Field("q1", FieldType.RADIO, "Direction",
                          _options(("north", "North"), ("south", "South")), required=True)],
        ),
        Step(
            id="q2",
            title="What does a solar inverter do?",
            fields=[Field("q2", FieldType.RADIO, "Inverter",
                          _options(("dc_ac", "Converts DC to AC"), ("stores", "Stores energy")),
                          required=True)],
        ),
    ]

    scoring = ScoringSpec(
        method=ScoringMethod.WEIGHTED,
        weights={"q1": 1, "q2": 1},
        value_map={
            "q1": {"south": 100, "north": 0},
            "q2": {"dc_ac": 100, "stores": 0},
        },
        bands=[ScoreBand(0, 49, "Beginner"), ScoreBand(50, 99, "Informed"), ScoreBand(100, 100, "Expert")],
        outcomes=[
            ScoreOutcome(0, 49, "Keep learning", "Our solar basics guide is a good place to start.",
                         CallToAction(text="Read the guide", url="/guides/solar-basics")),
            ScoreOutcome(50, 100, "Nicely done", "You know the essentials of home solar."),
        ],
    )

    return WizardDefinition(
        steps=steps,
        result_template=ResultTemplate.SCORE,
        mode=WizardMode.QUIZ,
        scoring=scoring,
    )


CALCULATOR_FORMULA = (
    "({total: kw * 1000 * cost_per_watt, "
    "credit: kw * 1000 * cost_per_watt * 0.3, "
    "net: kw * 1000 * cost_per_watt * 0.7})"
)


def build_example_blocks() -> list:
    return [
        BlockEnvelope(
            id="footer", type="Footer",
            content={"siteName": "SolarFit", "copyrightYear": 2026,
                     "disclaimerText": "Estimates only. Actual savings vary."},
        ),
        BlockEnvelope(
            id="hero", type="Hero", variant="split",
            content={"heading": "Is solar right for your home?", "subheading": "Answer four questions.",
                     "ctaText": "Start", "ctaUrl": "#wizard"},
        ),
        BlockEnvelope(
            id="header", type="Header", config={"sticky": True},
            content={"siteName": "SolarFit",
                     "navLinks": [{"label": "Guides", "href": "/guides"}, {"label": "Quote", "href": "/quote"}]},
        ),
        BlockEnvelope(
            id="intro", type="ArticleBody",
            content={"markdown": "## How it works\n\nWe compare your roof, bill and goals.\n\n"
                                 "- No sign-up\n- Takes two minutes"},
        ),
        BlockEnvelope(id="wizard", type="Wizard", content=wizard_to_dict(build_example_wizard())),
        BlockEnvelope(
            id="calc", type="QuoteCalculator",
            content={
                "heading": "Estimate your system cost",
                "inputs": [
                    {"id": "kw", "label": "System size", "type": "range", "min": 2, "max": 20,
                     "step": 1, "default": 6, "unit": "kW"},
                    {"id": "cost_per_watt", "label": "Installed cost per watt", "type": "number",
                     "default": 2.85, "unit": "$"},
                ],
                "outputs": [
                    {"id": "total", "label": "System cost", "format": "currency"},
                    {"id": "credit", "label": "Tax credit (30%)", "format": "currency"},
                    {"id": "net", "label": "Net cost", "format": "currency"},
                ],
                "formula": CALCULATOR_FORMULA,
            },
        ),
        BlockEnvelope(
            id="faq", type="FAQ",
            content={"items": [
                {"question": "Do panels work on cloudy days?", "answer": "Yes, at reduced output."},
                {"question": "How long do panels last?", "answer": "Most carry a 25-year warranty."},
            ]},
        ),
        BlockEnvelope(
            id="sidebar", type="Sidebar", config={"position": "right"},
            content={"sections": [{"title": "Quick facts", "body": "- 30% federal tax credit\n- Net metering"}]},
        ),
        BlockEnvelope(
            id="cta", type="CTABanner",
            content={"text": "Ready for a real quote?", "buttonLabel": "Talk to an installer",
                     "buttonUrl": "/quote"},
        ),
        BlockEnvelope(
            id="sticky-cta", type="ScrollCTA",
            content={"text": "Still deciding? Take the quiz.", "buttonLabel": "Take quiz",
                     "buttonUrl": "/solar-quiz"},
        ),
    ]


def build_example_page(domain: str = "solarfit.example", route: str = "/solar-check") -> PageDefinition:
    """Landing page; blocks are deliberately out of layout order."""
    context = RenderContext(
        domain=domain,
        site_title="SolarFit",
        route=route,
        page_title="Solar Check",
        page_description="Find out in two minutes whether rooftop solar fits your home.",
        published_at="2026-03-01",
        updated_at="2026-09-15",
        og_image_path="/og/solar-check.png",
    )
    return PageDefinition(blocks=build_example_blocks(), context=context)


__all__ = [
    "CALCULATOR_FORMULA",
    "build_example_wizard",
    "build_example_quiz",
    "build_example_blocks",
    "build_example_page",
]

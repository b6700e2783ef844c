"""
blockpage: pages assembled from typed content blocks.

Content authors describe a page as an ordered list of block envelopes
and may embed small pieces of logic inside block content: branching
conditions and scoring rules for wizards, arithmetic formulas for
calculators. This package evaluates that logic safely and renders the
page.

ARCHITECTURAL GUARANTEE:
------------------------
Author-supplied text is never executed as code:
    - Conditions go through one tokenizer/parser/evaluator (conditions, evaluator)
    - Formulas are character-filtered and compiled against a node allow-list (formulas)
    - Renderers emit markup and inert JSON data only (renderers)

A fault in one block never aborts the page (registry, assembler).
"""

__version__ = "0.1.0"

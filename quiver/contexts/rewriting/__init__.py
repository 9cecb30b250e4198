"""
Rewriting Context

Responsibilities:
- Builds format-specific prompts (Action+Context+Result, Tech+Impact+Metrics)
- Rewrites bullets through a text generator behind the validation gate
- Scores bullet formatting compliance
- Composes the professional summary

Owns: Prompts, text generator adapters, bullet outcomes
Never: Accepts a rewrite the validation context did not accept
"""

from quiver.contexts.rewriting.formatting import check_formatting
from quiver.contexts.rewriting.generator import TextGenerator, llm_text_generator
from quiver.contexts.rewriting.rewriter import BulletOutcome, BulletRewriter, DocumentRewrite
from quiver.contexts.rewriting.summary import compose_summary

__all__ = [
    "BulletOutcome",
    "BulletRewriter",
    "check_formatting",
    "compose_summary",
    "DocumentRewrite",
    "llm_text_generator",
    "TextGenerator",
]

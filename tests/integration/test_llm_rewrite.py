"""
Integration test for bullet rewriting against a live LLM provider.
Skipped unless an API key is configured.
"""

import os

import pytest
from dotenv import load_dotenv

from quiver.contexts.rewriting.generator import llm_text_generator
from quiver.contexts.rewriting.rewriter import BulletRewriter
from quiver.contexts.validation.extraction import build_allowed_vocabulary
from quiver.contexts.validation.similarity import HashingSimilarityProvider
from quiver.contexts.validation.validator import RewriteValidator
from quiver.utils.llm import get_provider

load_dotenv()

if os.getenv("ANTHROPIC_API_KEY"):
    PROVIDER = "anthropic"
elif os.getenv("OPENAI_API_KEY"):
    PROVIDER = "openai"
else:
    PROVIDER = None

skip_if_no_api_key = pytest.mark.skipif(PROVIDER is None, reason="No LLM API key configured")

BULLET = "Reduced API latency by 40% using Redis caching"


@pytest.mark.integration
@skip_if_no_api_key
def test_live_rewrite_keeps_metrics():
    vocabulary = build_allowed_vocabulary(BULLET, "Backend Engineer working with Python and Redis")
    rewriter = BulletRewriter(
        llm_text_generator(get_provider(PROVIDER)),
        RewriteValidator(HashingSimilarityProvider()),
        vocabulary,
    )

    outcome = rewriter.rewrite_experience_bullet(BULLET, "Backend Engineer")

    assert outcome.final_text
    assert 1 <= outcome.attempts <= 3
    if outcome.accepted:
        assert "40%" in outcome.final_text

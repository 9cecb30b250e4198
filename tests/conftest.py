"""Shared fixtures: in-memory fakes for every pipeline port."""

import copy
import re
import types
from typing import Callable, List, Optional

import numpy as np
import pytest

from quiver.contexts.pipeline.ports import (
    DocumentParser,
    MissingKeyword,
    ParsedDocument,
    PipelinePorts,
    ProjectAnalyzer,
    ProjectReport,
    ProjectVerdict,
    RequirementsScorer,
    ScoreReport,
)
from quiver.contexts.validation.similarity import SimilarityProvider

JOB_DESCRIPTION = (
    "We are hiring a Backend Engineer to build Python services on AWS. "
    "Experience with Kubernetes, Terraform, PostgreSQL and Redis caching is required."
)

_ORIGINAL_BULLET = re.compile(r'Original bullet: "(.*)"')


@pytest.fixture(autouse=True)
def isolated_event_log(tmp_path, monkeypatch):
    """Send Tier 2 pipeline events to a per-test file."""
    events_file = tmp_path / "pipeline_events.log"
    monkeypatch.setattr("quiver.utils.event_logging.PIPELINE_EVENTS_FILE", events_file)
    return events_file


# =============================================================================
# SIMILARITY
# =============================================================================


class FixedSimilarity(SimilarityProvider):
    """Returns the same similarity for every pair."""

    name = "fixed"

    def __init__(self, value: float = 0.9):
        self.value = value

    def embed(self, text: str) -> np.ndarray:
        return np.array([float(len(text)), 1.0])

    def similarity(self, first: np.ndarray, second: np.ndarray) -> float:
        return self.value


class FailingSimilarity(SimilarityProvider):
    name = "failing"

    def embed(self, text: str) -> np.ndarray:
        raise RuntimeError("embedding service unavailable")


# =============================================================================
# GENERATION
# =============================================================================


class ScriptedGenerator:
    """
    TextGenerator fake.

    Returns scripted responses in order (the last one repeats), or, without a
    script, applies transform to the original bullet found in the prompt.
    """

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        transform: Optional[Callable[[str], str]] = None,
    ):
        self.responses = list(responses or [])
        self.transform = transform or (lambda bullet: bullet)
        self.calls: List[tuple] = []

    def __call__(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.responses:
            index = min(len(self.calls) - 1, len(self.responses) - 1)
            return self.responses[index]
        match = _ORIGINAL_BULLET.search(user_prompt)
        return self.transform(match.group(1) if match else "")


# =============================================================================
# PARSER, SCORER, PROJECT ANALYZER
# =============================================================================


class FakeParser(DocumentParser):
    def __init__(self, document: dict, failures: Optional[List[Exception]] = None):
        self.document = document
        self.failures = list(failures or [])
        self.calls = 0

    def parse(self, source) -> ParsedDocument:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return ParsedDocument(document=copy.deepcopy(self.document), confidence=0.9)


class FakeScorer(RequirementsScorer):
    """Scores from a fixed sequence; the last score repeats."""

    def __init__(self, overall_scores=(62.0, 78.0, 92.0), failures: Optional[List[Exception]] = None):
        self.overall_scores = list(overall_scores)
        self.failures = list(failures or [])
        self.calls: List[str] = []

    def score(self, document: dict, document_text: str, requirements_text: str) -> ScoreReport:
        if self.failures:
            raise self.failures.pop(0)
        overall = self.overall_scores[min(len(self.calls), len(self.overall_scores) - 1)]
        self.calls.append(requirements_text)

        missing = []
        if requirements_text:
            missing = [
                MissingKeyword("Kubernetes", "critical"),
                MissingKeyword("Terraform", "important"),
            ]
        return ScoreReport(
            overall=overall,
            tier_scores={
                "skills_keywords": overall - 10,
                "experience": overall,
                "projects": overall - 5,
                "basic_structure": 90.0,
            },
            missing_keywords=missing,
            red_flags=[] if overall >= 90 else ["Missing professional summary"],
            critical_issues=[],
        )


class FakeProjectAnalyzer(ProjectAnalyzer):
    def __init__(self, report: Optional[ProjectReport] = None):
        self.report = report or ProjectReport(
            verdicts=[ProjectVerdict("Queue Monitor", suitable=False, score=0.3, reason="Off target")],
            suggestions=[
                {"title": "Terraform AWS Deployer", "bullets": ["Automated AWS deployments with Terraform"]}
            ],
        )
        self.calls = 0

    def analyze(self, document: dict, requirements_text: str, target_role: str) -> ProjectReport:
        self.calls += 1
        return self.report


# =============================================================================
# DOCUMENTS
# =============================================================================


def make_document(**overrides) -> dict:
    document = {
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "phone": "5551234567",
        "location": "London",
        "linkedin": "",
        "github": "",
        "summary": "",
        "skills": [
            {"category": "Technical Skills", "list": ["Python", "PostgreSQL", "Redis"]},
            {"category": "Soft Skills", "list": ["Mentoring"]},
        ],
        "work_experience": [
            {
                "role": "Backend Engineer",
                "company": "Acme Corp",
                "year": "2019-2023",
                "bullets": [
                    "Reduced API latency by 40% using Redis caching",
                    "Worked on the billing service",
                ],
            }
        ],
        "projects": [
            {"title": "Queue Monitor", "bullets": ["Built a dashboard for queue depth in Python"]}
        ],
        "education": [{"degree": "BSc Computer Science", "school": "State University", "year": "2019"}],
        "certifications": ["AWS Certified Developer"],
    }
    document.update(overrides)
    return document


@pytest.fixture
def document() -> dict:
    return make_document()


@pytest.fixture
def ports(document) -> PipelinePorts:
    return PipelinePorts(
        parser=FakeParser(document),
        scorer=FakeScorer(),
        project_analyzer=FakeProjectAnalyzer(),
        similarity=FixedSimilarity(0.9),
        generator=ScriptedGenerator(),
    )


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: List[float] = []
    return delays.append, delays


@pytest.fixture
def make_doc():
    """Factory for sample documents with keyword overrides."""
    return make_document


@pytest.fixture
def fakes():
    """The fake port classes, for tests that need custom instances."""
    return types.SimpleNamespace(
        FixedSimilarity=FixedSimilarity,
        FailingSimilarity=FailingSimilarity,
        ScriptedGenerator=ScriptedGenerator,
        FakeParser=FakeParser,
        FakeScorer=FakeScorer,
        FakeProjectAnalyzer=FakeProjectAnalyzer,
        JOB_DESCRIPTION=JOB_DESCRIPTION,
    )

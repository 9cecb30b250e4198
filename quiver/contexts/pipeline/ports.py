"""
External collaborators of the pipeline.

Parsing, scoring, and project-suitability analysis live outside this package.
Stages reach them through the abstract ports below; implementations raise the
typed errors from quiver.contexts.pipeline.errors (ParsingFailure,
AnalysisTimeout, ...) so failures are categorized without message matching.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from quiver.contexts.rewriting.generator import TextGenerator
from quiver.contexts.validation.similarity import HashingSimilarityProvider, SimilarityProvider


# =============================================================================
# REPORT TYPES
# =============================================================================


@dataclass
class ParsedDocument:
    """
    Output of a DocumentParser.

    Attributes:
        document: Structured resume dict (name, email, skills, work_experience, ...)
        raw_text: Plain text extracted from the source, if any
        confidence: Parser confidence in [0, 1]
    """

    document: Dict[str, Any]
    raw_text: str = ""
    confidence: float = 0.95


@dataclass
class MissingKeyword:
    keyword: str
    tier: str = "important"  # critical, important, or nice_to_have


@dataclass
class ScoreReport:
    """
    Output of a RequirementsScorer.

    tier_scores maps a tier name (skills_keywords, experience, projects,
    basic_structure, ...) to its percentage.
    """

    overall: float
    tier_scores: Dict[str, float] = field(default_factory=dict)
    missing_keywords: List[MissingKeyword] = field(default_factory=list)
    red_flags: List[str] = field(default_factory=list)
    critical_issues: List[str] = field(default_factory=list)

    def keywords_in_tier(self, tier: str) -> List[str]:
        return [k.keyword for k in self.missing_keywords if k.tier == tier]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreReport":
        return cls(
            overall=data["overall"],
            tier_scores=dict(data.get("tier_scores", {})),
            missing_keywords=[MissingKeyword(**k) for k in data.get("missing_keywords", [])],
            red_flags=list(data.get("red_flags", [])),
            critical_issues=list(data.get("critical_issues", [])),
        )


@dataclass
class ProjectVerdict:
    title: str
    suitable: bool
    score: float = 0.0
    reason: str = ""


@dataclass
class ProjectReport:
    """
    Output of a ProjectAnalyzer.

    suggestions are replacement project dicts (title, bullets, ...) the user
    may adopt.
    """

    verdicts: List[ProjectVerdict] = field(default_factory=list)
    suggestions: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def all_suitable(self) -> bool:
        return all(v.suitable for v in self.verdicts)

    @property
    def unsuitable_titles(self) -> List[str]:
        return [v.title for v in self.verdicts if not v.suitable]

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# PORTS
# =============================================================================


class DocumentParser(ABC):
    """Turns an uploaded resume (bytes or path) into structured data."""

    @abstractmethod
    def parse(self, source: Union[bytes, str, Path]) -> ParsedDocument:
        """Raises ParsingFailure or FileFormatError when the source is unreadable."""


class RequirementsScorer(ABC):
    """Scores a document, optionally against job requirements."""

    @abstractmethod
    def score(self, document: dict, document_text: str, requirements_text: str) -> ScoreReport:
        """
        Score a document.

        Args:
            document: Structured resume dict
            document_text: Plain-text rendering of the document
            requirements_text: Job description (empty for a general analysis)

        Raises:
            AnalysisTimeout: When scoring fails or takes too long
        """


class ProjectAnalyzer(ABC):
    """Judges how well each project suits the target role."""

    @abstractmethod
    def analyze(self, document: dict, requirements_text: str, target_role: str) -> ProjectReport:
        """Raises AnalysisTimeout when analysis fails or takes too long."""


@dataclass
class PipelinePorts:
    """
    Bundle of collaborators a PipelineController runs against.

    generator may be omitted when the run never reaches CONTENT_REWRITING;
    the stage fails with a validation error if it is needed and missing.
    """

    parser: DocumentParser
    scorer: RequirementsScorer
    project_analyzer: ProjectAnalyzer
    similarity: SimilarityProvider = field(default_factory=HashingSimilarityProvider)
    generator: Optional[TextGenerator] = None

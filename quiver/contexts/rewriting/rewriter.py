"""
Validated bullet rewriting.

BulletRewriter asks a TextGenerator for a rewrite of each bullet and routes
every candidate through the validation retry loop. A candidate only replaces
the original when the loop accepts it; salvaged candidates (retries exhausted
on a retry verdict) are returned with accepted=False so the caller can label
them.
"""

import copy
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from quiver.contexts.rewriting.formatting import (
    check_formatting,
    is_well_formatted_experience_bullet,
    is_well_formatted_project_bullet,
)
from quiver.contexts.rewriting.generator import TextGenerator, clean_candidate
from quiver.contexts.rewriting.logger import (
    log_bullet_outcome,
    log_rewrite_summary,
    log_section_start,
)
from quiver.contexts.rewriting.prompts import (
    EXPERIENCE_SYSTEM_PROMPT,
    PROJECT_SYSTEM_PROMPT,
    build_experience_prompt,
    build_project_prompt,
    with_corrections,
)
from quiver.contexts.validation.retry import validate_with_retry
from quiver.contexts.validation.validator import RewriteValidator


@dataclass
class BulletOutcome:
    """
    Result of rewriting a single bullet.

    Attributes:
        original: Bullet before rewriting
        final_text: Text that goes into the document
        accepted: True when a candidate passed validation
        attempts: Generation calls made (0 when skipped)
        reason: How final_text was chosen
        skipped: True when the bullet was empty or already well formed
    """

    original: str
    final_text: str
    accepted: bool
    attempts: int
    reason: str
    skipped: bool = False

    @property
    def changed(self) -> bool:
        return self.final_text != self.original

    @property
    def salvaged(self) -> bool:
        """Changed text that never passed validation."""
        return self.changed and not self.accepted


@dataclass
class DocumentRewrite:
    """All bullet outcomes for one document plus the rewritten copy."""

    document: dict
    outcomes: List[BulletOutcome] = field(default_factory=list)
    section_changes: List[str] = field(default_factory=list)
    formatting: dict = field(default_factory=dict)

    @property
    def salvaged_count(self) -> int:
        return sum(1 for o in self.outcomes if o.salvaged)

    @property
    def changed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.changed)


class BulletRewriter:
    """
    Rewrites bullets through a text generator behind the validation gate.

    The allowed vocabulary is fixed at construction and shared by every bullet
    of the run.

    Example:
        vocabulary = build_allowed_vocabulary(document_text, job_description)
        rewriter = BulletRewriter(generator, validator, vocabulary, job_description)
        outcome = rewriter.rewrite_experience_bullet(bullet, role="Backend Engineer")
    """

    def __init__(
        self,
        generator: TextGenerator,
        validator: RewriteValidator,
        allowed_vocabulary: Iterable[str],
        requirements_text: str = "",
    ):
        self.generator = generator
        self.validator = validator
        self.allowed_vocabulary = frozenset(allowed_vocabulary)
        self.requirements_text = requirements_text or ""

    def rewrite_experience_bullet(self, bullet: str, role: str = "") -> BulletOutcome:
        if not bullet.strip() or is_well_formatted_experience_bullet(bullet):
            return self._skip(bullet)
        base_prompt = build_experience_prompt(bullet, role, self.requirements_text)
        return self._rewrite(bullet, EXPERIENCE_SYSTEM_PROMPT, base_prompt)

    def rewrite_project_bullet(self, bullet: str, title: str = "") -> BulletOutcome:
        if not bullet.strip() or is_well_formatted_project_bullet(bullet):
            return self._skip(bullet)
        base_prompt = build_project_prompt(bullet, title, self.requirements_text)
        return self._rewrite(bullet, PROJECT_SYSTEM_PROMPT, base_prompt)

    @staticmethod
    def _skip(bullet: str) -> BulletOutcome:
        outcome = BulletOutcome(
            original=bullet,
            final_text=bullet,
            accepted=True,
            attempts=0,
            reason="Already well formed",
            skipped=True,
        )
        log_bullet_outcome(outcome)
        return outcome

    def _rewrite(self, bullet: str, system_prompt: str, base_prompt: str) -> BulletOutcome:
        def generate(corrective_prompt: str, attempt: int) -> str:
            user_prompt = with_corrections(base_prompt, corrective_prompt)
            return clean_candidate(self.generator(system_prompt, user_prompt)) or bullet

        result = validate_with_retry(self.validator, bullet, generate, self.allowed_vocabulary)
        outcome = BulletOutcome(
            original=bullet,
            final_text=result.final_text,
            accepted=result.success,
            attempts=result.attempts,
            reason=result.reason,
        )
        log_bullet_outcome(outcome)
        return outcome

    def rewrite_bullets(
        self, bullets: List[str], heading: str, project: bool = False
    ) -> List[BulletOutcome]:
        """Rewrite the bullets of one experience entry or project, in order."""
        log_section_start("project" if project else "experience", heading, len(bullets))
        rewrite = self.rewrite_project_bullet if project else self.rewrite_experience_bullet
        return [rewrite(bullet, heading) for bullet in bullets]

    def rewrite_document(self, document: dict) -> DocumentRewrite:
        """
        Rewrite every experience and project bullet of a document.

        The input document is not modified.

        Returns:
            DocumentRewrite with the rewritten deep copy, per-bullet outcomes,
            per-section change descriptions, and formatting compliance
        """
        rewritten = copy.deepcopy(document)
        result = DocumentRewrite(document=rewritten)

        sections: List[Tuple[str, str, bool]] = [
            ("work_experience", "role", False),
            ("projects", "title", True),
        ]
        for section_key, heading_key, is_project in sections:
            for entry in rewritten.get(section_key) or []:
                heading = entry.get(heading_key) or ""
                outcomes = self.rewrite_bullets(entry.get("bullets") or [], heading, is_project)
                entry["bullets"] = [o.final_text for o in outcomes]
                result.outcomes.extend(outcomes)

                changed = [o for o in outcomes if o.changed]
                if changed:
                    salvaged = sum(1 for o in changed if o.salvaged)
                    note = f"{heading}: {len(changed)} bullets improved"
                    if salvaged:
                        note += f" ({salvaged} kept unvalidated)"
                    result.section_changes.append(note)

        result.formatting = check_formatting(rewritten)
        log_rewrite_summary(
            result.changed_count,
            result.salvaged_count,
            len(result.outcomes),
            result.formatting["compliance_score"],
        )
        return result

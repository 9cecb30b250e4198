"""
Bullet formatting heuristics.

Experience bullets follow Action+Context+Result: they open with a strong
action verb, run 12-25 words, and carry a number or an impact statement.
Project bullets follow Tech+Impact+Metrics: they name a technology, carry an
impact statement, and run 10-20 words.
"""

import re
from typing import List

ACTION_VERBS = (
    "Developed",
    "Built",
    "Implemented",
    "Led",
    "Managed",
    "Created",
    "Designed",
    "Optimized",
    "Improved",
    "Delivered",
    "Achieved",
    "Established",
)

IMPACT_WORDS = (
    "improve",
    "increase",
    "reduce",
    "enhance",
    "optimize",
    "streamline",
    "boost",
    "accelerate",
    "deliver",
    "achieve",
    "result",
    "impact",
)

COMMON_TECHNOLOGIES = (
    "JavaScript",
    "Python",
    "Java",
    "React",
    "Node.js",
    "Angular",
    "Vue.js",
    "HTML",
    "CSS",
    "SQL",
    "MongoDB",
    "PostgreSQL",
    "AWS",
    "Docker",
    "Kubernetes",
    "Git",
    "REST",
    "GraphQL",
    "TypeScript",
    "Express",
    "Django",
    "Flask",
)

EXPERIENCE_WORD_RANGE = (12, 25)
PROJECT_WORD_RANGE = (10, 20)

_DIGIT = re.compile(r"\d")
_CAPITALIZED = re.compile(r"\b[A-Z][a-z]*(?:\.[a-z]+)?\b")


def has_impact_statement(bullet: str) -> bool:
    lowered = bullet.lower()
    return any(word in lowered for word in IMPACT_WORDS)


def extract_technologies(bullet: str, requirements_text: str = "") -> List[str]:
    """
    Technologies mentioned in a bullet (at most three).

    Candidates are the common technology list plus capitalized words of the
    requirements text.
    """
    candidates = list(COMMON_TECHNOLOGIES) + _CAPITALIZED.findall(requirements_text)
    lowered = bullet.lower()
    return [tech for tech in candidates if tech.lower() in lowered][:3]


def _word_count(bullet: str) -> int:
    return len(bullet.split())


def is_well_formatted_experience_bullet(bullet: str) -> bool:
    low, high = EXPERIENCE_WORD_RANGE
    starts_with_action = bullet.startswith(ACTION_VERBS)
    proper_length = low <= _word_count(bullet) <= high
    return starts_with_action and proper_length and (
        bool(_DIGIT.search(bullet)) or has_impact_statement(bullet)
    )


def is_well_formatted_project_bullet(bullet: str) -> bool:
    low, high = PROJECT_WORD_RANGE
    return (
        bool(extract_technologies(bullet))
        and has_impact_statement(bullet)
        and low <= _word_count(bullet) <= high
    )


def check_formatting(document: dict) -> dict:
    """
    Score bullet formatting compliance across a document.

    Args:
        document: Structured resume dict

    Returns:
        {"compliance_score": int percent, "issues": first five issues, "strengths": [...]}
        A document without bullets scores 100.
    """
    issues = []
    total = 0
    compliant = 0

    for entry in document.get("work_experience") or []:
        for bullet in entry.get("bullets") or []:
            total += 1
            if is_well_formatted_experience_bullet(bullet):
                compliant += 1
            else:
                issues.append(f'Work experience bullet needs improvement: "{bullet[:50]}..."')

    for project in document.get("projects") or []:
        for bullet in project.get("bullets") or []:
            total += 1
            if is_well_formatted_project_bullet(bullet):
                compliant += 1
            else:
                issues.append(f'Project bullet needs improvement: "{bullet[:50]}..."')

    score = int(compliant * 100 / total + 0.5) if total else 100

    strengths = []
    if score >= 80:
        strengths.append("Excellent bullet point formatting compliance")
    elif score >= 60:
        strengths.append("Good bullet point structure with room for improvement")

    return {"compliance_score": score, "issues": issues[:5], "strengths": strengths}


def summarize_improvements(bullet_changes: List[str], compliance_score: int) -> List[str]:
    """Human-readable summary of a rewrite run."""
    if not bullet_changes:
        return ["No bullet point improvements needed - formatting already optimal"]

    summary = [f"Improved {len(bullet_changes)} sections for better ATS optimization"]
    if compliance_score >= 90:
        summary.append("Excellent formatting compliance achieved (90%+)")
    elif compliance_score >= 80:
        summary.append("Good formatting compliance achieved (80%+)")
    else:
        summary.append(f"Formatting compliance: {compliance_score}% - consider further improvements")
    return summary

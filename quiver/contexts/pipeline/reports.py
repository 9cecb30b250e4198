"""
Score interpretation for the analysis and output stages.

Turns ScoreReports into prioritized gaps, recommendations, improvement
summaries, and the final before/after comparison.
"""

from typing import Dict, List, Optional

from quiver.contexts.pipeline.ports import ScoreReport

REQUIREMENTS_ANALYSIS = "requirements_analysis"
GENERAL_ANALYSIS = "general_analysis"

TARGET_SCORE = 90

EXPORT_OPTIONS = [
    {"format": "PDF", "description": "ATS-optimized PDF format", "recommended": True},
    {"format": "DOCX", "description": "Microsoft Word format", "recommended": False},
    {"format": "TXT", "description": "Plain text format", "recommended": False},
]


def _tier_label(tier: str) -> str:
    return tier.replace("_", " ", 1)


def _round2(value: float) -> float:
    return round(value * 100) / 100


def prioritize_gaps(report: ScoreReport) -> Dict[str, List[str]]:
    """
    Sort issues into high, medium, and low priority.

    High: critical keywords, red flags, tiers under 60%.
    Medium: tiers under 80%, important keywords, critical issues.
    Low: a decent score (70-85) with room to grow.
    """
    high, medium, low = [], [], []

    critical = report.keywords_in_tier("critical")[:10]
    if critical:
        high.append(f"Missing {len(critical)} critical keywords: {', '.join(critical[:5])}")

    high.extend(f"Red flag: {flag}" for flag in report.red_flags)

    for tier, percentage in report.tier_scores.items():
        if percentage < 60:
            high.append(f"Low {_tier_label(tier)} score: {percentage}%")
        elif percentage < 80:
            medium.append(f"Moderate {_tier_label(tier)} score: {percentage}%")

    important = report.keywords_in_tier("important")[:15]
    if important:
        medium.append(f"Missing {len(important)} important keywords")

    medium.extend(f"Critical issue: {issue}" for issue in report.critical_issues)

    if 70 < report.overall < 85:
        low.append("Resume is good but could be optimized further")

    return {"high": high, "medium": medium, "low": low}


def general_recommendations(report: ScoreReport) -> List[str]:
    recommendations = []
    if report.overall < 70:
        recommendations.append("Focus on improving overall resume quality and structure")
    if report.tier_scores.get("skills_keywords", 100) < 75:
        recommendations.append("Expand technical skills section with industry-relevant keywords")
    if report.tier_scores.get("experience", 100) < 75:
        recommendations.append("Strengthen work experience with quantified achievements")
    if report.red_flags:
        recommendations.append("Fix formatting and structural issues")
    return recommendations


def actionable_recommendations(report: ScoreReport, analysis_type: str) -> List[str]:
    recommendations = []

    if analysis_type == REQUIREMENTS_ANALYSIS:
        critical_count = len(report.keywords_in_tier("critical"))
        if critical_count:
            recommendations.append(f"Add {critical_count} critical keywords to improve ATS matching")
        if report.overall < 70:
            recommendations.append("Resume needs significant optimization to match job requirements")
        elif report.overall < 85:
            recommendations.append("Resume is good but needs fine-tuning for better job alignment")
    else:
        if report.overall < 60:
            recommendations.append("Resume needs comprehensive improvement across multiple areas")
        elif report.overall < 80:
            recommendations.append("Resume has good foundation but needs optimization")

    tiers = report.tier_scores
    if tiers.get("skills_keywords", 100) < 70:
        recommendations.append("Enhance skills section with more relevant technical keywords")
    if tiers.get("experience", 100) < 70:
        recommendations.append(
            "Improve work experience bullets with stronger action verbs and quantified results"
        )
    if tiers.get("basic_structure", 100) < 80:
        recommendations.append("Fix basic resume structure and formatting issues")

    if report.red_flags:
        recommendations.append(
            f"Address {len(report.red_flags)} red flag issues for better ATS compatibility"
        )
    return recommendations


def tier_improvements(original: Dict[str, float], new: Dict[str, float]) -> Dict[str, float]:
    return {tier: _round2(new.get(tier, 0) - original.get(tier, 0)) for tier in new}


def score_improvement(original: ScoreReport, new: ScoreReport) -> dict:
    return {
        "overall": _round2(new.overall - original.overall),
        "tier_improvements": tier_improvements(original.tier_scores, new.tier_scores),
    }


def detect_project_improvements(
    modifications: Optional[dict], new: ScoreReport, original: ScoreReport
) -> List[str]:
    """Improvements attributable to the project changes made in PROJECT_ANALYSIS."""
    if not modifications:
        return []

    improvements = []
    gain = new.tier_scores.get("projects", 0) - original.tier_scores.get("projects", 0)
    if gain > 0:
        improvements.append(f"Projects tier score improved by {gain:.1f}%")

    gain = new.tier_scores.get("skills_keywords", 0) - original.tier_scores.get("skills_keywords", 0)
    if gain > 0:
        improvements.append(
            f"Skills & Keywords score improved by {gain:.1f}% from better project alignment"
        )

    if len(new.red_flags) < len(original.red_flags):
        improvements.append(
            f"Reduced red flags from {len(original.red_flags)} to {len(new.red_flags)}"
        )

    if modifications.get("added_projects"):
        improvements.append(f"Added {len(modifications['added_projects'])} JD-aligned projects")
    if modifications.get("replaced_projects"):
        improvements.append(
            f"Replaced {len(modifications['replaced_projects'])} projects with better alternatives"
        )
    return improvements


def updated_recommendations(new: ScoreReport, improvement: dict, analysis_type: str) -> List[str]:
    recommendations = []

    if new.overall >= 90:
        recommendations.append("Excellent! Your resume is now highly optimized for ATS systems")
    elif new.overall >= 80:
        recommendations.append(
            "Great progress! Your resume is well-optimized with room for minor improvements"
        )
    elif new.overall >= 70:
        recommendations.append("Good improvement! Continue optimizing to reach the 90%+ target score")
    else:
        recommendations.append("Resume needs further optimization to reach competitive ATS scores")

    overall = improvement["overall"]
    if overall > 10:
        recommendations.append(
            "Significant improvement achieved! The changes have substantially enhanced your resume"
        )
    elif overall > 5:
        recommendations.append(
            "Good improvement! The modifications have positively impacted your ATS score"
        )
    elif overall > 0:
        recommendations.append(
            "Modest improvement achieved. Consider additional optimizations for better results"
        )
    elif overall < 0:
        recommendations.append(
            "Score decreased. Review recent changes and consider reverting problematic modifications"
        )

    if analysis_type == REQUIREMENTS_ANALYSIS:
        critical_count = len(new.keywords_in_tier("critical"))
        if critical_count:
            recommendations.append(
                f"Still missing {critical_count} critical keywords - focus on bullet point optimization"
            )

    for tier, percentage in new.tier_scores.items():
        if percentage < 70:
            label = _tier_label(tier).title()
            recommendations.append(f"{label} needs improvement ({percentage}%) - focus on this area next")

    return recommendations


def before_after_comparison(original: ScoreReport, final: ScoreReport) -> dict:
    return {
        "original_score": original.overall,
        "final_score": final.overall,
        "overall_improvement": _round2(final.overall - original.overall),
        "tier_improvements": tier_improvements(original.tier_scores, final.tier_scores),
        "red_flags_reduced": len(original.red_flags) - len(final.red_flags),
    }


def user_action_recommendations(final: ScoreReport) -> List[str]:
    if final.overall >= TARGET_SCORE:
        return []
    recommendations = [
        "Consider adding more quantified achievements to work experience bullets",
        "Review and enhance project descriptions with technical details",
        "Ensure all sections are complete and well-formatted",
    ]
    if final.red_flags:
        recommendations.append(f"Address remaining issues: {', '.join(final.red_flags[:2])}")
    return recommendations


def _signed(value: float) -> str:
    return f"+{value}" if value > 0 else f"{value}"


def completion_message(target_achieved: bool, improvement: float) -> str:
    if target_achieved:
        return (
            "Congratulations! Your resume has been successfully optimized and achieved "
            f"the 90%+ ATS score target with a {_signed(improvement)}% improvement!"
        )
    return (
        f"Resume optimization completed with a {_signed(improvement)}% score improvement. "
        "Consider the provided recommendations to reach the 90%+ target."
    )

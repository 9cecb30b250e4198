"""
Structured resume helpers used by the pipeline stages.

A document is a plain dict with the keys name, email, phone, location,
linkedin, github, summary, skills [{category, list}], work_experience
[{role, company, year, bullets}], projects [{title, bullets, github_url}],
education [{degree, school, year, cgpa, location}], certifications, and
optionally parsed_text.

All functions here are pure: they return new dicts and never modify their
arguments.
"""

import copy
import re
from typing import Dict, List, Tuple

PLACEHOLDER_NAME = "John Doe"
PLACEHOLDER_EMAIL = "johndoe@example.com"

LIST_SECTIONS = ("work_experience", "projects", "skills", "education")
CONTACT_SECTION = "contact_details:email"

# keyword triggers -> suggested certifications
CERTIFICATION_MAPPINGS = [
    (("aws", "amazon web services"), ["AWS Certified Solutions Architect", "AWS Certified Developer"]),
    (("azure", "microsoft azure"), ["Microsoft Azure Fundamentals", "Azure Solutions Architect"]),
    (("gcp", "google cloud"), ["Google Cloud Professional Cloud Architect"]),
    (("javascript", "react", "node"), ["Meta React Developer Certificate"]),
    (("python",), ["Python Institute PCAP", "Python Institute PCPP"]),
    (("java",), ["Oracle Certified Professional Java SE"]),
    (
        ("data science", "machine learning", "ml"),
        ["Google Data Analytics Certificate", "IBM Data Science Certificate"],
    ),
    (("sql", "database"), ["Microsoft SQL Server Certification", "Oracle Database Certification"]),
    (("security", "cybersecurity"), ["CompTIA Security+", "CISSP"]),
    (
        ("project management", "scrum", "agile"),
        ["PMP", "Certified ScrumMaster", "Agile Certified Practitioner"],
    ),
    (("devops", "docker", "kubernetes"), ["Docker Certified Associate", "Certified Kubernetes Administrator"]),
]
MAX_CERTIFICATION_SUGGESTIONS = 5

REQUIREMENTS_MIN_LENGTH = 50

ATS_PHONE_PATTERN = re.compile(r"^\(\d{3}\) \d{3}-\d{4}$")
DATE_RANGE_PATTERN = re.compile(r"^\d{4}[-–]\d{4}$|^\d{4}[-–]Present$", re.IGNORECASE)
TECH_CATEGORY_WORDS = ("technical", "programming", "technology")


def empty_document() -> dict:
    return {
        "name": "",
        "email": "",
        "phone": "",
        "location": "",
        "linkedin": "",
        "github": "",
        "summary": "",
        "skills": [],
        "work_experience": [],
        "projects": [],
        "education": [],
        "certifications": [],
    }


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def resume_data_to_text(document: dict) -> str:
    """
    Render a document as the plain text handed to scorers.

    Example:
        Name: Ada Lovelace
        Email: ada@example.com

        SKILLS
        Languages: Python, SQL
    """
    lines = []
    for label, key in [
        ("Name", "name"),
        ("Email", "email"),
        ("Phone", "phone"),
        ("Location", "location"),
        ("LinkedIn", "linkedin"),
        ("GitHub", "github"),
    ]:
        if document.get(key):
            lines.append(f"{label}: {document[key]}")

    if document.get("summary"):
        lines.extend(["\nPROFESSIONAL SUMMARY", document["summary"]])

    if document.get("skills"):
        lines.append("\nSKILLS")
        for category in document["skills"]:
            lines.append(f"{category.get('category', '')}: {', '.join(category.get('list') or [])}")

    if document.get("work_experience"):
        lines.append("\nWORK EXPERIENCE")
        for entry in document["work_experience"]:
            lines.append(f"{entry.get('role', '')} at {entry.get('company', '')} ({entry.get('year', '')})")
            lines.extend(f"• {bullet}" for bullet in entry.get("bullets") or [])

    if document.get("projects"):
        lines.append("\nPROJECTS")
        for project in document["projects"]:
            lines.append(project.get("title", ""))
            if project.get("github_url"):
                lines.append(f"GitHub: {project['github_url']}")
            lines.extend(f"• {bullet}" for bullet in project.get("bullets") or [])

    if document.get("education"):
        lines.append("\nEDUCATION")
        for entry in document["education"]:
            lines.append(f"{entry.get('degree', '')} from {entry.get('school', '')} ({entry.get('year', '')})")
            if entry.get("cgpa"):
                lines.append(f"GPA: {entry['cgpa']}")
            if entry.get("location"):
                lines.append(f"Location: {entry['location']}")

    if document.get("certifications"):
        lines.append("\nCERTIFICATIONS")
        for cert in document["certifications"]:
            if isinstance(cert, dict):
                lines.append(f"{cert.get('title', '')}: {cert.get('description', '')}")
            else:
                lines.append(str(cert))

    return "\n".join(lines)


def document_text(document: dict) -> str:
    """Parsed text when the parser kept it, otherwise the rendered document."""
    return document.get("parsed_text") or resume_data_to_text(document)


# =============================================================================
# PARSED DOCUMENT CHECKS
# =============================================================================


def validate_parsed_document(document: dict) -> Tuple[bool, List[str]]:
    """
    Check parsed data for basic completeness.

    Returns:
        (is_valid, warnings). is_valid requires a name and email that are not
        placeholder values; missing sections only add warnings.
    """
    warnings = []
    name = _text(document.get("name"))
    email = _text(document.get("email"))

    if len(name) < 2:
        warnings.append("Name is missing or too short")
    if "@" not in email:
        warnings.append("Valid email address is missing")
    if name == PLACEHOLDER_NAME or email == PLACEHOLDER_EMAIL:
        warnings.append("Placeholder data detected - parsing may have failed")
    if not document.get("work_experience"):
        warnings.append("No work experience found")
    if not document.get("skills"):
        warnings.append("No skills found")
    if not document.get("education"):
        warnings.append("No education found")

    is_valid = bool(name and email) and name != PLACEHOLDER_NAME and email != PLACEHOLDER_EMAIL
    return is_valid, warnings


def identify_missing_sections(document: dict) -> List[str]:
    missing = [section for section in LIST_SECTIONS if not document.get(section)]
    if not document.get("certifications"):
        missing.append("certifications")
    if "@" not in _text(document.get("email")):
        missing.append(CONTACT_SECTION)
    return missing


def certification_suggestions(requirements_text: str, analysis_type: str) -> List[str]:
    """Up to five certifications suggested by keywords in the job description."""
    if analysis_type != "requirements_analysis" or len(requirements_text or "") < REQUIREMENTS_MIN_LENGTH:
        return []

    lowered = requirements_text.lower()
    suggestions = []
    for keywords, certs in CERTIFICATION_MAPPINGS:
        if any(keyword in lowered for keyword in keywords):
            suggestions.extend(cert for cert in certs if cert not in suggestions)
    return suggestions[:MAX_CERTIFICATION_SUGGESTIONS]


# =============================================================================
# MISSING SECTIONS
# =============================================================================


def _check_entries(entries, label: str, rules: List[Tuple[str, str, int]]) -> List[str]:
    errors = []
    for index, entry in enumerate(entries, start=1):
        for key, description, minimum in rules:
            if len(_text(entry.get(key))) < minimum:
                errors.append(
                    f"{label} {index}: {description} is required (minimum {minimum} characters)"
                )
    return errors


def _has_long_item(items, minimum: int) -> bool:
    return isinstance(items, list) and any(len(_text(item)) >= minimum for item in items)


def validate_missing_sections(data: dict, required_sections: List[str]) -> List[str]:
    """
    Validate user-supplied sections against what the document is missing.

    Certifications are optional and never validated.

    Returns:
        List of error messages (empty when valid)
    """
    errors = []
    for section in required_sections:
        if section == "work_experience":
            entries = data.get("work_experience")
            if not isinstance(entries, list) or not entries:
                errors.append("Work experience is required and cannot be empty")
                continue
            errors.extend(
                _check_entries(
                    entries,
                    "Work experience",
                    [("role", "Job title", 2), ("company", "Company name", 2), ("year", "Duration", 4)],
                )
            )

        elif section == "projects":
            entries = data.get("projects")
            if not isinstance(entries, list) or not entries:
                errors.append("Projects section is required and cannot be empty")
                continue
            errors.extend(_check_entries(entries, "Project", [("title", "Title", 3)]))
            for index, project in enumerate(entries, start=1):
                if not _has_long_item(project.get("bullets"), 10):
                    errors.append(
                        f"Project {index}: At least one detailed description is required (minimum 10 characters)"
                    )

        elif section == "skills":
            entries = data.get("skills")
            if not isinstance(entries, list) or not entries:
                errors.append("Skills section is required and cannot be empty")
                continue
            errors.extend(_check_entries(entries, "Skill category", [("category", "Category name", 2)]))
            for index, category in enumerate(entries, start=1):
                if not _has_long_item(category.get("list"), 2):
                    errors.append(
                        f"Skill category {index}: At least one skill is required (minimum 2 characters)"
                    )

        elif section == "education":
            entries = data.get("education")
            if not isinstance(entries, list) or not entries:
                errors.append("Education section is required and cannot be empty")
                continue
            errors.extend(
                _check_entries(
                    entries,
                    "Education",
                    [("degree", "Degree", 2), ("school", "Institution name", 2), ("year", "Year", 4)],
                )
            )

        elif section.startswith("contact_details"):
            contact = data.get("contact_details")
            if not contact:
                errors.append("Contact details are required")
                continue
            if "@" not in _text(contact.get("email")):
                errors.append("Valid email address is required")
            phone = _text(contact.get("phone"))
            if phone and len(phone) < 10:
                errors.append("Phone number must be at least 10 characters if provided")

    return errors


def merge_missing_sections(document: dict, data: dict) -> dict:
    """Append supplied list sections and override supplied contact fields."""
    merged = copy.deepcopy(document)

    for section in LIST_SECTIONS:
        if data.get(section):
            merged[section] = list(merged.get(section) or []) + copy.deepcopy(data[section])

    if data.get("certifications"):
        supplied = [c for c in data["certifications"] if _text(c)]
        merged["certifications"] = list(merged.get("certifications") or []) + supplied

    contact = data.get("contact_details")
    if contact:
        for key in ("phone", "email", "linkedin", "github"):
            merged[key] = contact.get(key) or merged.get(key, "")

    return merged


def missing_sections_changes(data: dict) -> List[str]:
    changes = []
    if data.get("work_experience"):
        changes.append(f"Added {len(data['work_experience'])} work experience entries")
    if data.get("projects"):
        changes.append(f"Added {len(data['projects'])} project entries")
    if data.get("skills"):
        total = sum(len(c.get("list") or []) for c in data["skills"])
        changes.append(f"Added {len(data['skills'])} skill categories with {total} skills")
    if data.get("education"):
        changes.append(f"Added {len(data['education'])} education entries")
    certs = [c for c in data.get("certifications") or [] if _text(c)]
    if certs:
        changes.append(f"Added {len(certs)} certifications")

    contact = data.get("contact_details") or {}
    updated = [
        label
        for key, label in [("phone", "phone"), ("email", "email"), ("linkedin", "LinkedIn"), ("github", "GitHub")]
        if contact.get(key)
    ]
    if updated:
        changes.append(f"Updated contact details: {', '.join(updated)}")

    return changes or ["Missing sections completed"]


# =============================================================================
# PROJECT MODIFICATIONS
# =============================================================================

_PROJECT_LISTS = [
    ("replaced_projects", "Replaced project"),
    ("added_projects", "Added project"),
    ("modified_projects", "Modified project"),
]


def validate_project_modifications(modifications) -> List[str]:
    if not isinstance(modifications, dict):
        return ["Project modifications must be provided as an object"]

    errors = []
    for key, label in _PROJECT_LISTS:
        projects = modifications.get(key)
        if not projects:
            continue
        if not isinstance(projects, list):
            errors.append(f"{label}s must be a list")
            continue
        for index, project in enumerate(projects, start=1):
            if len(_text(project.get("title"))) < 3:
                errors.append(f"{label} {index}: Title is required (minimum 3 characters)")
            if not _has_long_item(project.get("bullets"), 10):
                errors.append(
                    f"{label} {index}: At least one detailed bullet is required (minimum 10 characters)"
                )
    return errors


def _with_clean_bullets(project: dict) -> dict:
    cleaned = copy.deepcopy(project)
    cleaned["bullets"] = [b for b in project.get("bullets") or [] if _text(b)]
    return cleaned


def apply_project_modifications(document: dict, modifications: dict) -> dict:
    """
    Apply removals, additions, replacements, then modifications, in that order.

    Replacements match on original_title and are appended when no project
    has that title. Modifications match on title and merge into the project.
    """
    updated = copy.deepcopy(document)
    projects = list(updated.get("projects") or [])

    removed = modifications.get("removed_project_titles") or []
    if removed:
        projects = [p for p in projects if p.get("title") not in removed]

    projects.extend(_with_clean_bullets(p) for p in modifications.get("added_projects") or [])

    for replacement in modifications.get("replaced_projects") or []:
        new_project = _with_clean_bullets(replacement)
        titles = [p.get("title") for p in projects]
        original_title = replacement.get("original_title")
        if original_title in titles:
            projects[titles.index(original_title)] = new_project
        else:
            projects.append(new_project)

    for modified in modifications.get("modified_projects") or []:
        titles = [p.get("title") for p in projects]
        if modified.get("title") in titles:
            index = titles.index(modified["title"])
            projects[index] = {**projects[index], **_with_clean_bullets(modified)}

    updated["projects"] = projects
    return updated


def project_alignment_scores(projects: List[dict], requirements_text: str) -> List[dict]:
    """
    Keyword-overlap alignment of each project with the job description.

    Score is matches / max(10% of job words, 5), capped at 1. Without a usable
    job description every project scores 0.5.
    """
    if len(requirements_text or "") < REQUIREMENTS_MIN_LENGTH:
        return [{"title": p.get("title", ""), "alignment_score": 0.5} for p in projects]

    requirement_words = [w for w in requirements_text.lower().split() if len(w) > 3]
    vocabulary = set(requirement_words)
    scores = []
    for project in projects:
        project_text = f"{project.get('title', '')} {' '.join(project.get('bullets') or [])}".lower()
        matching = [w for w in project_text.split() if len(w) > 3 and w in vocabulary]
        score = min(len(matching) / max(len(requirement_words) * 0.1, 5), 1)
        scores.append(
            {
                "title": project.get("title", ""),
                "alignment_score": round(score, 2),
                "matching_keywords": matching[:10],
            }
        )
    return scores


def project_modification_changes(modifications: dict) -> List[str]:
    changes = []
    removed = modifications.get("removed_project_titles") or []
    if removed:
        listed = ", ".join(removed[:2]) + ("..." if len(removed) > 2 else "")
        changes.append(f"Removed {len(removed)} projects: {listed}")
    if modifications.get("added_projects"):
        changes.append(f"Added {len(modifications['added_projects'])} new projects")
    if modifications.get("replaced_projects"):
        changes.append(
            f"Replaced {len(modifications['replaced_projects'])} projects with JD-aligned alternatives"
        )
    if modifications.get("modified_projects"):
        changes.append(
            f"Modified {len(modifications['modified_projects'])} existing projects for better alignment"
        )
    return changes or ["Project analysis completed"]


# =============================================================================
# FINAL OPTIMIZATION
# =============================================================================


def integrate_keywords(document: dict, critical: List[str], important: List[str]) -> Tuple[dict, List[str]]:
    """
    Fold missing keywords into the technical skills category.

    Takes the first 5 critical and first 10 important keywords; at most 5 not
    already covered by a listed skill are appended.
    """
    updated = copy.deepcopy(document)
    keywords = list(critical[:5]) + list(important[:10])
    if not keywords:
        return updated, []

    changes = []
    skills = updated.get("skills") or []
    if skills:
        category = next(
            (
                s
                for s in skills
                if any(word in (s.get("category") or "").lower() for word in TECH_CATEGORY_WORDS)
            ),
            skills[0],
        )
        listed = category.setdefault("list", [])
        new_keywords = [
            keyword
            for keyword in keywords
            if not any(keyword.lower() in skill.lower() for skill in listed)
        ][:5]
        if new_keywords:
            listed.extend(new_keywords)
            changes.append(f"Added {len(new_keywords)} critical keywords to skills section")

    changes.append(f"Integrated {len(keywords)} missing keywords for better ATS matching")
    return updated, changes


def apply_ats_formatting(document: dict) -> Tuple[dict, List[str]]:
    """Normalize a 10-digit phone to (xxx) xxx-xxxx and count nonstandard date ranges."""
    formatted = copy.deepcopy(document)
    improvements = 0

    phone = formatted.get("phone") or ""
    if phone and not ATS_PHONE_PATTERN.match(phone):
        digits = re.sub(r"\D", "", phone)
        if len(digits) == 10:
            formatted["phone"] = f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
            improvements += 1

    for entry in formatted.get("work_experience") or []:
        year = entry.get("year")
        if year and not DATE_RANGE_PATTERN.match(year):
            improvements += 1

    changes = []
    if improvements:
        changes.append(f"Applied ATS formatting standards ({improvements} improvements)")
    return formatted, changes


def comprehensive_optimization_gaps(document: dict) -> List[str]:
    """Count content gaps: short summary, thin experience entries, thin projects."""
    count = 0
    if len(document.get("summary") or "") < 100:
        count += 1
    count += sum(
        1
        for entry in document.get("work_experience") or []
        if entry.get("bullets") is not None and len(entry["bullets"]) < 3
    )
    count += sum(
        1
        for project in document.get("projects") or []
        if project.get("bullets") is not None and len(project["bullets"]) < 2
    )
    if count:
        return [f"Applied {count} comprehensive optimization standards"]
    return []


def section_counts(document: dict) -> Dict[str, int]:
    return {
        section: len(document.get(section) or [])
        for section in ("work_experience", "projects", "skills", "education", "certifications")
    }

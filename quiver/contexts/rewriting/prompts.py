"""Prompt templates for bullet rewriting."""

EXPERIENCE_SYSTEM_PROMPT = """You rewrite resume work-experience bullets for ATS optimization.

Format: Action + Context + Result.
- Open with a strong past-tense action verb (Developed, Built, Led, Improved, ...)
- State the context: what system, team, or problem
- End with the result, quantified when the original quantifies it
- 12 to 25 words, one sentence

Hard rules:
- Reproduce every number, percentage, and amount from the original exactly
- Never introduce a technology, tool, or product the original or the job description does not mention
- Return only the rewritten bullet, no quotes, no preamble"""

PROJECT_SYSTEM_PROMPT = """You rewrite resume project bullets for ATS optimization.

Format: Tech + Impact + Metrics.
- Name the technologies the original already names
- State the impact on users, performance, or the team
- Keep every metric of the original
- 10 to 20 words, one sentence

Hard rules:
- Reproduce every number, percentage, and amount from the original exactly
- Never introduce a technology, tool, or product the original or the job description does not mention
- Return only the rewritten bullet, no quotes, no preamble"""


def build_experience_prompt(bullet: str, role: str, requirements_text: str) -> str:
    """User prompt for one work-experience bullet."""
    return (
        f"Role: {role or 'Unspecified'}\n\n"
        f"Target job description:\n{requirements_text.strip() or '(none provided)'}\n\n"
        f'Original bullet: "{bullet}"\n\n'
        "Rewrite this bullet in Action + Context + Result format."
    )


def build_project_prompt(bullet: str, title: str, requirements_text: str) -> str:
    """User prompt for one project bullet."""
    return (
        f"Project: {title or 'Untitled'}\n\n"
        f"Target job description:\n{requirements_text.strip() or '(none provided)'}\n\n"
        f'Original bullet: "{bullet}"\n\n'
        "Rewrite this bullet in Tech + Impact + Metrics format."
    )


def with_corrections(base_prompt: str, corrective_prompt: str) -> str:
    """Append a corrective prompt from the validator to the base prompt."""
    if not corrective_prompt:
        return base_prompt
    return f"{base_prompt}\n\n{corrective_prompt}"

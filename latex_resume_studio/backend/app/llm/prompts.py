# File: backend/app/llm/prompts.py
import re
from typing import Optional

from app.schemas.ai_job import JobMode
from app.schemas.sections import SectionType

MODE_INSTRUCTIONS = {
    JobMode.MINIMAL: """Optimization Level: MINIMAL
- Make only small, targeted changes
- Focus on keyword alignment
- Preserve original phrasing as much as possible
- Change only 10-20% of content""",
    JobMode.BALANCED: """Optimization Level: BALANCED
- Moderate content rewriting
- Reframe bullet points to match job requirements
- Add relevant technical keywords
- Change 30-50% of content""",
    JobMode.AGGRESSIVE: """Optimization Level: AGGRESSIVE
- Extensive content optimization
- Rewrite most descriptions to align with the job
- Maximize keyword density
- Reorder bullet points within the section if beneficial
- Change 50-70% of content""",
}

SECTION_GUIDANCE = {
    SectionType.EXPERIENCE: "Keep every employer, job title and date exactly as written.",
    SectionType.EDUCATION: "Keep institutions, degrees, dates and grades exactly as written.",
    SectionType.PROJECTS: "Keep project names and links exactly as written.",
    SectionType.SKILLS: "Only reorder or regroup skills that are already listed. Do not add new skills.",
    SectionType.ACHIEVEMENTS: "Keep award names, issuers and dates exactly as written.",
    SectionType.OTHER: "This block may contain the name and contact details. Leave personal details untouched.",
}

FENCE_RE = re.compile(r"```[a-zA-Z]*\n?")


def build_system_prompt(section_type: SectionType, mode: JobMode) -> str:
    return f"""You are an expert resume optimization assistant specializing in LaTeX resume tailoring.
You are editing exactly ONE section of a LaTeX resume. Section type: {section_type.value}.

Your task:
- Improve the wording of this section for the target role
- Preserve ALL LaTeX structure, formatting, and commands
- Only modify content (text within LaTeX commands), NEVER change LaTeX syntax
- Keep the section header command (e.g. \\section{{...}}) if one is present

Constraints:
- Output ONLY the LaTeX of this section, nothing before or after it
- Do NOT add explanations or markdown code fences
- Do NOT invent experience, employers, dates, metrics, or skills
- Do NOT remove entries from the section
- Do NOT add "% SECTION:" or "% END SECTION" comment lines
- {SECTION_GUIDANCE[section_type]}

{MODE_INSTRUCTIONS.get(mode, MODE_INSTRUCTIONS[JobMode.BALANCED])}"""


def build_user_prompt(
    section_type: SectionType,
    content: str,
    job_description: Optional[str] = None,
    user_instructions: Optional[str] = None,
) -> str:
    parts = [f"Current {section_type.value} section (LaTeX):\n{content}"]
    if job_description:
        parts.append(f"Target job description:\n{job_description}")
    if user_instructions:
        parts.append(f"Additional instructions from the user:\n{user_instructions}")
    parts.append(f"Return ONLY the rewritten LaTeX for the {section_type.value} section.")
    return "\n\n".join(parts)


def clean_generated_latex(response: str) -> str:
    """Strip markdown code fences the model may have wrapped its answer in."""
    return FENCE_RE.sub("", response).strip()

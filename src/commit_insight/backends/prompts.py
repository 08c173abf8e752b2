"""Prompt construction for the language-model backend.

Each :class:`AnalysisKind` maps to a builder producing the user prompt,
and to :class:`PromptOptions` carrying the system prompt and sampling
parameters. JSON-returning prompts spell out the exact schema the
response validator expects.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Sequence

from ..models import CommitRecord
from .base import AnalysisKind, AnalysisRequest

RAW_JSON_ONLY = (
    "Respond with raw JSON only. No markdown code fences, no commentary: "
    "the response must start with { and end with }."
)

_REVIEWER = "You are a careful senior developer who reviews git commits and suggests improvements."
_SUMMARIZER = "You write short, accurate summaries of a developer's day from their commits."
_PLANNER = "You suggest concrete next development tasks based on recent work."
_QUALITY = "You assess engineering quality from commit history and give practical recommendations."


@dataclass(frozen=True)
class PromptOptions:
    system_prompt: str
    temperature: float
    max_tokens: int


PROMPT_OPTIONS: dict[AnalysisKind, PromptOptions] = {
    AnalysisKind.CATEGORIZE: PromptOptions(_REVIEWER, 0.1, 800),
    AnalysisKind.MESSAGE_QUALITY: PromptOptions(_QUALITY, 0.1, 1500),
    AnalysisKind.CODE_REVIEW: PromptOptions(_QUALITY, 0.1, 1500),
    AnalysisKind.COMMIT_DESCRIPTION: PromptOptions(_REVIEWER, 0.1, 800),
    AnalysisKind.MESSAGE_SUGGESTION: PromptOptions(_REVIEWER, 0.1, 800),
    AnalysisKind.DAILY_SUMMARY: PromptOptions(_SUMMARIZER, 0.2, 1200),
    AnalysisKind.TASK_SUGGESTIONS: PromptOptions(_PLANNER, 0.3, 1000),
}


# ── helpers ───────────────────────────────────────────────────────


def _clip_diff(diff: str, limit: int) -> str:
    if len(diff) <= limit:
        return diff
    return diff[:limit] + "\n... (diff truncated)"


def numbered_commits(commits: Sequence[CommitRecord]) -> str:
    return "\n".join(f"{i}. {c.subject}" for i, c in enumerate(commits, start=1))


def commits_by_category(commits: Sequence[CommitRecord]) -> str:
    groups: dict[str, list[str]] = defaultdict(list)
    for c in commits:
        groups[c.category or "other"].append(c.subject)
    return "\n\n".join(
        f"{category.upper()} ({len(messages)}):\n" + "\n".join(f"- {m}" for m in messages)
        for category, messages in sorted(groups.items())
    )


def commit_header(commit: CommitRecord) -> str:
    lines = [f"SHA: {commit.short_sha}", f"Message: {commit.message}"]
    if commit.author:
        lines.append(f"Author: {commit.author}")
    if commit.date is not None:
        lines.append(f"Date: {commit.date.isoformat()}")
    return "\n".join(lines)


# ── builders ──────────────────────────────────────────────────────


def categorization_prompt(request: AnalysisRequest) -> str:
    return f"""Categorize each of these git commits by the kind of work it represents.

Categories:
- feature: new functionality or enhancements
- bugfix: fixes for errors, bugs or regressions
- refactor: restructuring, cleanup, optimisation
- docs: documentation, READMEs, comments
- test: new or changed tests
- chore: build, dependencies, configuration
- other: anything else

Commits:
{numbered_commits(request.commits)}

{RAW_JSON_ONLY}

Schema:
{{
  "analysis": [
    {{"index": 1, "category": "feature", "confidence": 0.9, "reason": "adds a settings page"}}
  ]
}}"""


def message_quality_prompt(request: AnalysisRequest) -> str:
    return f"""Assess the engineering quality visible in this commit history.

COMMITS BY CATEGORY:
{commits_by_category(request.commits)}

Look for technical debt markers (todo, fixme, hack, temporary, quick fix),
security work, performance work, testing activity or its absence, the
balance between refactoring and features, and how descriptive the messages are.

{RAW_JSON_ONLY}

Schema:
{{
  "qualityScore": 0.75,
  "issues": [
    {{"type": "technical_debt", "severity": "medium",
      "description": "Several commits mention TODOs", "suggestion": "Schedule time to resolve them",
      "commitCount": 3}}
  ],
  "insights": ["Good balance of features and fixes"],
  "recommendations": ["Add tests alongside new features"]
}}

qualityScore is between 0.0 (critical problems) and 1.0 (excellent practices)."""


def code_review_prompt(request: AnalysisRequest) -> str:
    return f"""Review the code changed by this commit.

COMMIT:
{commit_header(request.commit)}

DIFF:
{request.diff}

Check for security problems (auth, input validation, injection, secrets),
quality problems (error handling, edge cases, duplication, naming),
maintainability concerns (complex logic, tight coupling) and performance
problems. Also note good practices.

{RAW_JSON_ONLY}

Schema:
{{
  "severity": "low|medium|high|critical",
  "issues": [
    {{"type": "security|performance|maintainability|quality|bug|style",
      "severity": "low|medium|high|critical", "line": "approximate line or 'multiple'",
      "description": "what is wrong", "suggestion": "how to fix it", "example": "better code, optional"}}
  ],
  "positives": ["good practices in this commit"],
  "overallAssessment": "one or two sentences",
  "recommendedActions": ["specific follow-ups"]
}}

If the change looks good, say so and keep issues empty."""


def commit_description_prompt(request: AnalysisRequest) -> str:
    return f"""Explain what this commit does and propose a better conventional commit message.

COMMIT:
{commit_header(request.commit)}

DIFF:
{_clip_diff(request.diff, 2000)}

Conventional types: feat, fix, docs, style, refactor, test, chore.

{RAW_JSON_ONLY}

Schema:
{{
  "suggestedMessage": "feat(auth): validate tokens in API middleware",
  "description": "what changed, in one or two sentences",
  "analysis": "short assessment of the change",
  "confidence": 0.9,
  "impact": "low|medium|high",
  "quality": "low|medium|high"
}}"""


def message_suggestion_prompt(request: AnalysisRequest) -> str:
    return f"""Suggest a better commit message for this change.

CURRENT MESSAGE: "{request.current_message}"

DIFF:
{_clip_diff(request.diff, 1500)}

Use the conventional commits format type(scope): description with one of
feat, fix, docs, style, refactor, test, chore. Be specific about what
changed and keep it under 50 characters when possible.

Reply with the commit message only."""


def daily_summary_prompt(request: AnalysisRequest) -> str:
    return f"""Write a short, friendly summary of this day's development work.

COMMITS BY CATEGORY:
{commits_by_category(request.commits)}

Two or three sentences covering the main accomplishments and the kinds of
work done. Plain prose, no lists, no markdown."""


def task_suggestions_prompt(request: AnalysisRequest) -> str:
    repositories = sorted({c.repository for c in request.commits if c.repository})
    recent = "\n".join(f"- {c.subject}" for c in request.commits[:10])
    return f"""Based on this recent work, suggest 3-4 concrete tasks for the next working day.

RECENT COMMITS:
{recent}

REPOSITORIES: {", ".join(repositories) or "unknown"}

{RAW_JSON_ONLY}

Every task needs every field:
{{
  "tasks": [
    {{"title": "Add tests for token refresh", "description": "why and what",
      "priority": "low|medium|high|urgent", "category": "feature|bugfix|refactor|test|docs|chore",
      "estimatedTime": "1-2 hours", "basedOn": "the commit or pattern that motivated it",
      "repositories": ["repo-name"], "tags": ["testing"]}}
  ]
}}"""


PROMPT_BUILDERS: dict[AnalysisKind, Callable[[AnalysisRequest], str]] = {
    AnalysisKind.CATEGORIZE: categorization_prompt,
    AnalysisKind.MESSAGE_QUALITY: message_quality_prompt,
    AnalysisKind.CODE_REVIEW: code_review_prompt,
    AnalysisKind.COMMIT_DESCRIPTION: commit_description_prompt,
    AnalysisKind.MESSAGE_SUGGESTION: message_suggestion_prompt,
    AnalysisKind.DAILY_SUMMARY: daily_summary_prompt,
    AnalysisKind.TASK_SUGGESTIONS: task_suggestions_prompt,
}


def build_prompt(request: AnalysisRequest) -> str:
    return PROMPT_BUILDERS[request.kind](request).strip()

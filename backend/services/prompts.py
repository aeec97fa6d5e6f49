"""Prompt templates for the generate (pass 1) and review (pass 2) model calls."""

from __future__ import annotations

import json
from typing import Any

from models.job import ProjectMetadata

GENERATION_PROMPT = """
STRICT USER INSTRUCTION COMPLIANCE

You are a content analyst that selects short clips from a long video transcript.
USER INSTRUCTIONS ARE ABSOLUTE AND OVERRIDE ALL DEFAULT HEURISTICS.

USER'S AI INSTRUCTIONS (MANDATORY):
{ai_prompt}

USER CONTEXT:
{context}

MISSION:
Extract EXACTLY {count} clips that follow the user's instructions above.
If the instructions conflict with viral-content best practice, the user wins.

CANDIDATE SEGMENTS (synthetic timing, heuristic score 0-10):
{segments}

TRANSCRIPT (condensed):
{transcript}

RULES:
- Clips must start and end at natural speech boundaries.
- Use timestamps inside the candidate segment ranges; start_time < end_time.
- Prefer 15-60 second clips unless the user asks otherwise.

Respond with ONLY this JSON object:
{{
    "selected_clips": [
        {{
            "start_time": <float, 2 decimals>,
            "end_time": <float, 2 decimals>,
            "viral_score": <int 1-10>,
            "content_type": "<string>",
            "caption": "<string>",
            "hashtags": ["<string>", ...],
            "hook_line": "<string>",
            "call_to_action": "<string>",
            "platforms": ["<string>", ...],
            "segment_text": "<string>",
            "reasoning": "<string - how this follows the user's instructions>",
            "confidence_score": <float 0.0-1.0>,
            "user_compliance_score": <int 1-10>
        }}
    ]
}}
""".strip()

REVIEW_PROMPT = """
EXPERT REVIEW

You are a senior content strategist independently reviewing clips another
analyst selected. APPROVE clips that are ready, REFINE clips that need
adjustments (return the adjusted clip), REJECT clips that miss the bar.

User requirements:
{context}
User instructions:
{ai_prompt}

Original transcript (truncated): {transcript}...

Clips to review:
{clips}

Review criteria:
1. Speech boundaries: clips start and end at natural breaks.
2. Viral potential: viral_score is accurate.
3. Captions and hashtags are engaging and relevant.
4. Clips fit the target platforms and durations (15-60 seconds).
5. Compliance with the user's instructions.

Every clip carries a "reasoning" string explaining the decision.
Respond with ONLY this JSON object:
{{
    "review_results": {{
        "approved_clips": [<clip>, ...],
        "refined_clips": [<clip>, ...],
        "rejected_clips": [<clip>, ...],
        "review_summary": {{
            "total_reviewed": <int>,
            "approved_count": <int>,
            "refined_count": <int>,
            "rejected_count": <int>,
            "overall_quality_score": <float 0.0-1.0>,
            "recommendations": ["<string>", ...]
        }}
    }}
}}
""".strip()

NO_DIRECTIVES = "No specific AI instructions provided - use standard viral content selection."
NO_CONTEXT = "No specific user requirements provided."


def describe_project(project: ProjectMetadata | None) -> str:
    if project is None:
        return NO_CONTEXT
    parts = []
    if project.project_name:
        parts.append(f"Project: {project.project_name}")
    if project.description:
        parts.append(f"Description: {project.description}")
    if project.target_platforms:
        parts.append(f"Target Platforms: {', '.join(project.target_platforms)}")
    if project.target_duration:
        parts.append(f"Target Duration: {project.target_duration:g}s")
    return "\n".join(parts) if parts else NO_CONTEXT


def build_generation_prompt(
    condensed_transcript: str,
    segments: list[dict[str, Any]],
    count: int,
    project: ProjectMetadata | None,
) -> str:
    ai_prompt = (project.ai_prompt if project else "").strip()
    return GENERATION_PROMPT.format(
        ai_prompt=ai_prompt or NO_DIRECTIVES,
        context=describe_project(project),
        count=count,
        segments=json.dumps(segments, indent=2),
        transcript=condensed_transcript,
    )


def build_review_prompt(
    clips: list[dict[str, Any]],
    transcript_excerpt: str,
    project: ProjectMetadata | None,
) -> str:
    ai_prompt = (project.ai_prompt if project else "").strip()
    return REVIEW_PROMPT.format(
        context=describe_project(project),
        ai_prompt=ai_prompt or NO_DIRECTIVES,
        transcript=transcript_excerpt,
        clips=json.dumps(clips, indent=2),
    )

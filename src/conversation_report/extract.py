"""Report data extraction.

Deterministic stand-in for a model-backed extractor: profile fields come from
the request metadata, narrative fields are derived from the transcript.
"""
from __future__ import annotations

import re
from datetime import date
from typing import List, Optional

from conversation_report.schema import (
    GenerateReportRequest,
    ReportData,
    ResourceEntry,
    ThemeEntry,
)

MAX_THEMES = 3
MAX_QUESTIONS = 3

_SPEAKER = re.compile(r"^\s*([^:\n]{1,40}):\s*(.+)$")


def _transcript_turns(transcript: str) -> List[tuple[str, str]]:
    turns = []
    for line in transcript.splitlines():
        m = _SPEAKER.match(line)
        if m:
            turns.append((m.group(1).strip(), m.group(2).strip()))
        elif line.strip() and turns:
            speaker, text = turns[-1]
            turns[-1] = (speaker, f"{text} {line.strip()}")
    return turns


def _first_sentence(text: str, limit: int = 240) -> str:
    m = re.search(r"(.+?[.!?])(\s|$)", text)
    sentence = m.group(1) if m else text
    return sentence if len(sentence) <= limit else sentence[: limit - 3].rstrip() + "..."


def _format_today(today: Optional[date] = None) -> str:
    d = today or date.today()
    return f"{d.strftime('%B')} {d.day}, {d.year}"


def build_report_data(req: GenerateReportRequest, *, today: Optional[date] = None) -> ReportData:
    name = req.character_name.strip()
    meta = req.character_metadata
    turns = _transcript_turns(req.transcript)

    user_turns = [text for speaker, text in turns if speaker.lower() in ("user", "you")]
    character_turns = [text for speaker, text in turns if speaker.lower() not in ("user", "you")]

    themes = [
        ThemeEntry(
            name=_first_sentence(question, limit=80),
            explanation=f"{name} was asked: {question}",
            quote=_first_sentence(answer),
            context=answer,
        )
        for question, answer in zip(user_turns, character_turns)
    ][:MAX_THEMES]

    questions = [
        f"What stayed with you most from {name}'s answer about \"{t.name}\"?" for t in themes
    ][:MAX_QUESTIONS]

    if turns:
        summary = (
            f"In this session the user spoke with {name} across {len(turns)} exchanges, "
            f"covering {len(themes)} main topic{'s' if len(themes) != 1 else ''}."
        )
    else:
        summary = f"A conversation session with {name}."

    headline = _first_sentence(character_turns[0]) if character_turns else ""

    resources = [
        ResourceEntry(
            topic=f"The life of {name}",
            why_it_matters="Historical context makes the conversation easier to place.",
            where_to_learn_more="A published biography or encyclopedia entry.",
        )
    ]

    return ReportData(
        character_name=name,
        character_tagline=meta.tagline or "",
        character_birth_year=meta.birth_year or "",
        character_death_year=meta.death_year or "",
        character_bio=meta.bio or "",
        character_image_url=req.character_image_url or "",
        character_facts=tuple(meta.facts or ()),
        session_date=req.session_date or _format_today(today),
        session_duration=req.session_duration or "Unknown",
        user_name=req.user_name or "Anonymous",
        session_summary=summary,
        headline_insight=headline,
        themes=tuple(themes),
        resources=tuple(resources),
        reflection_questions=tuple(questions),
    )

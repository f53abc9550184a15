from __future__ import annotations

import logging

from mailcraft.config import settings
from mailcraft.llm.client import LLMClient, LLMClientConfigError, LLMGenerationParams, LLMRateLimitError
from mailcraft.llm.parsing import parse_json_object
from mailcraft.schemas.context import FullContext
from mailcraft.services.context_schema import reconcile_context

logger = logging.getLogger(__name__)

ANALYZE_FAILED_MESSAGE = "Failed to analyze context. Please try again."


class AIResponseError(RuntimeError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


_CONTEXT_PROMPT = """You are a brand strategist. Read the business material below and extract a
structured brand, audience and offer profile. Use only what the material supports;
leave a field empty ("" or []) when it says nothing about it.

Respond with a single JSON object and nothing else, in this shape:
{{
  "brand": {{
    "name": "", "tagline": "", "mission": "",
    "voice_characteristics": [],
    "tone_scale": {{"formal_casual": 5, "serious_humorous": 5, "respectful_irreverent": 5}},
    "dos": [], "donts": [],
    "vocabulary": {{"preferred": [], "avoid": []}}
  }},
  "audience": {{
    "job_titles": [], "industries": [], "company_size": "", "revenue_range": "",
    "goals": [], "values": [], "fears": [], "objections": [], "pain_points": [],
    "desired_transformation": "", "buying_triggers": []
  }},
  "offer": {{
    "product_name": "", "one_liner": "",
    "features_benefits": [{{"feature": "", "benefit": "", "outcome": ""}}],
    "usp": "", "pricing": "", "guarantees": "", "bonuses": [],
    "case_studies": [{{"company": "", "challenge": "", "result": "", "metric": ""}}],
    "testimonials": [{{"quote": "", "author": "", "role": "", "company": ""}}],
    "brand_story": "", "social_proof_stats": [],
    "persona_types": [{{"label": "", "description": ""}}]
  }}
}}

Tone scale values are integers from 1 to 10 (1 = formal / serious / respectful,
10 = casual / humorous / irreverent).

Business material:
{raw_text}
"""


def build_context_prompt(raw_text: str) -> str:
    return _CONTEXT_PROMPT.format(raw_text=raw_text.strip())


def analyze_context(llm: LLMClient, raw_text: str) -> FullContext:
    """Ask the model for a profile of ``raw_text`` and reconcile its reply."""
    if not raw_text or not raw_text.strip():
        raise ValueError("Business description is required.")

    prompt = build_context_prompt(raw_text[: settings.EXTRACTION_MAX_CHARS])
    try:
        reply = llm.generate_text(prompt, LLMGenerationParams(temperature=0.2, json_output=True))
    except (LLMRateLimitError, LLMClientConfigError):
        raise
    except Exception as exc:
        logger.exception("Context analysis call failed")
        raise AIResponseError(ANALYZE_FAILED_MESSAGE) from exc

    try:
        payload = parse_json_object(reply)
    except ValueError as exc:
        logger.warning("Context analysis returned unparseable output", extra={"reply_chars": len(reply or "")})
        raise AIResponseError(ANALYZE_FAILED_MESSAGE) from exc

    return reconcile_context(payload)

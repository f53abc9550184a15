"""Reconcile brand / audience / offer payloads into the internal profile schema.

Profiles reach the backend in three generations:

- v1: the first prompt generation, ``brand{name, voice, mission, keywords}``,
  ``audience{description, painPoints, desires}``, ``offer{name, pitch, details}``;
- v2: the extraction payload, snake_case with nested ``tone_scale`` and
  ``vocabulary`` objects;
- v3: the internal camelCase schema, often partial when it comes back from
  browser storage.

Model output is loosely typed: strings show up where lists are expected and
the other way round, tone values come back as strings, and structured list
items come back as bare strings. Everything is coerced here so the rest of the
code only ever sees ``FullContext``.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from mailcraft.schemas.context import (
    AudienceContext,
    BrandContext,
    CaseStudy,
    FeatureBenefit,
    FullContext,
    OfferContext,
    PersonaType,
    Testimonial,
    ToneScale,
)

_LIST_SPLIT_RE = re.compile(r"[\n,]+")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")
_TONE_DEFAULT = 5


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return bool(value)
    return True


def _lookup(data: Mapping[str, Any], path: str) -> Any:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _first(data: Mapping[str, Any], *paths: str) -> Any:
    """Return the first non-empty value among ``paths`` (dotted paths allowed)."""
    for path in paths:
        value = _lookup(data, path)
        if _is_present(value):
            return value
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(text for text in (_as_text(item) for item in value) if text)
    return ""


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        parts = (_BULLET_RE.sub("", part).strip() for part in _LIST_SPLIT_RE.split(value))
        return [part for part in parts if part]
    if isinstance(value, (list, tuple)):
        items = [_as_text(item) for item in value]
        return [item for item in items if item]
    text = _as_text(value)
    return [text] if text else []


def _as_tone(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return _TONE_DEFAULT
    if not math.isfinite(number):
        return _TONE_DEFAULT
    return max(1, min(10, int(round(number))))


def _as_records(
    value: Any,
    model: type[BaseModel],
    aliases: dict[str, tuple[str, ...]],
) -> list:
    """Coerce a loose list into ``model`` records.

    ``aliases`` maps each model field to the keys it may arrive under; the first
    field also receives bare string items.
    """
    if value is None:
        return []
    if isinstance(value, (str, Mapping)):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []

    primary = next(iter(aliases))
    records = []
    for item in value:
        if isinstance(item, str):
            text = item.strip()
            if text:
                records.append(model(**{primary: text}))
            continue
        if not isinstance(item, Mapping):
            continue
        fields = {name: _as_text(_first(item, *keys)) for name, keys in aliases.items()}
        if any(fields.values()):
            records.append(model(**fields))
    return records


def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, Mapping) else {}


def build_audience_description(audience: AudienceContext | Mapping[str, Any] | None) -> str:
    """Human-readable audience line: ``"<titles> in <industries>"``."""
    if isinstance(audience, AudienceContext):
        titles, industries, description = audience.jobTitles, audience.industries, audience.description
    elif isinstance(audience, Mapping):
        titles = _as_list(_first(audience, "jobTitles", "job_titles"))
        industries = _as_list(audience.get("industries"))
        description = _as_text(audience.get("description"))
    else:
        titles, industries, description = [], [], ""

    titles_text = ", ".join(titles)
    industries_text = ", ".join(industries)
    if titles_text and industries_text:
        return f"{titles_text} in {industries_text}"
    return titles_text or industries_text or description or "Target audience"


def reconcile_brand(data: Mapping[str, Any]) -> BrandContext:
    voice_characteristics = _as_list(_first(data, "voiceCharacteristics", "voice_characteristics"))
    if not voice_characteristics:
        voice_characteristics = _as_list(data.get("voice"))

    tone = _first(data, "toneScale", "tone_scale")
    tone = tone if isinstance(tone, Mapping) else {}

    return BrandContext(
        name=_as_text(_first(data, "name", "brand_name")),
        tagline=_as_text(data.get("tagline")),
        mission=_as_text(data.get("mission")),
        voiceCharacteristics=voice_characteristics,
        toneScale=ToneScale(
            formalCasual=_as_tone(_first(tone, "formalCasual", "formal_casual")),
            seriousHumorous=_as_tone(_first(tone, "seriousHumorous", "serious_humorous")),
            respectfulIrreverent=_as_tone(_first(tone, "respectfulIrreverent", "respectful_irreverent")),
        ),
        dos=_as_list(_first(data, "dos", "do")),
        donts=_as_list(_first(data, "donts", "dont", "don'ts")),
        keywords=_as_list(_first(data, "keywords", "vocabulary.preferred", "preferred_words")),
        avoidWords=_as_list(_first(data, "avoidWords", "avoid_words", "vocabulary.avoid")),
        voice=", ".join(voice_characteristics),
    )


def reconcile_audience(data: Mapping[str, Any]) -> AudienceContext:
    job_titles = _as_list(_first(data, "jobTitles", "job_titles"))
    industries = _as_list(data.get("industries"))
    goals = _as_list(_first(data, "goals", "desires"))

    description = _as_text(data.get("description"))
    if not description and (job_titles or industries):
        description = build_audience_description({"jobTitles": job_titles, "industries": industries})

    return AudienceContext(
        jobTitles=job_titles,
        industries=industries,
        companySize=_as_text(_first(data, "companySize", "company_size")),
        revenueRange=_as_text(_first(data, "revenueRange", "revenue_range")),
        goals=goals,
        values=_as_list(data.get("values")),
        fears=_as_list(data.get("fears")),
        objections=_as_list(data.get("objections")),
        painPoints=_as_list(_first(data, "painPoints", "pain_points")),
        desiredTransformation=_as_text(_first(data, "desiredTransformation", "desired_transformation")),
        buyingTriggers=_as_list(_first(data, "buyingTriggers", "buying_triggers")),
        description=description,
        desires=_as_list(_first(data, "desires", "goals")),
    )


def reconcile_offer(data: Mapping[str, Any]) -> OfferContext:
    usp = _as_text(_first(data, "usp", "details", "unique_selling_proposition"))
    return OfferContext(
        name=_as_text(_first(data, "name", "product_name", "productName")),
        pitch=_as_text(_first(data, "pitch", "one_liner", "oneLiner")),
        featuresBenefits=_as_records(
            _first(data, "featuresBenefits", "features_benefits", "features"),
            FeatureBenefit,
            {"feature": ("feature", "name"), "benefit": ("benefit",), "outcome": ("outcome", "result")},
        ),
        usp=usp,
        pricing=_as_text(data.get("pricing")),
        guarantees=_as_text(_first(data, "guarantees", "guarantee")),
        bonuses=_as_list(data.get("bonuses")),
        caseStudies=_as_records(
            _first(data, "caseStudies", "case_studies"),
            CaseStudy,
            {
                "company": ("company", "client"),
                "challenge": ("challenge", "problem"),
                "result": ("result", "outcome"),
                "metric": ("metric",),
            },
        ),
        testimonials=_as_records(
            data.get("testimonials"),
            Testimonial,
            {"quote": ("quote", "text"), "author": ("author", "name"), "role": ("role", "title"), "company": ("company",)},
        ),
        brandStory=_as_text(_first(data, "brandStory", "brand_story")),
        socialProofStats=_as_list(_first(data, "socialProofStats", "social_proof_stats")),
        personaTypes=_as_records(
            _first(data, "personaTypes", "persona_types"),
            PersonaType,
            {"label": ("label", "name", "type"), "description": ("description",)},
        ),
        details=_as_text(_first(data, "details", "usp")) or usp,
    )


def reconcile_context(payload: Any) -> FullContext:
    """Map any profile payload generation onto ``FullContext`` with safe defaults."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    if not isinstance(payload, Mapping):
        payload = {}
    if not any(key in payload for key in ("brand", "audience", "offer")):
        for wrapper in ("context", "profile", "data"):
            inner = payload.get(wrapper)
            if isinstance(inner, Mapping):
                payload = inner
                break

    is_complete = payload.get("isComplete")
    return FullContext(
        brand=reconcile_brand(_section(payload, "brand")),
        audience=reconcile_audience(_section(payload, "audience")),
        offer=reconcile_offer(_section(payload, "offer")),
        isComplete=is_complete if isinstance(is_complete, bool) else True,
    )


def refresh_compat_fields(context: FullContext, section: str) -> FullContext:
    """Recompute the derived compatibility fields after ``section`` was edited."""
    updated = context.model_copy(deep=True)
    if section == "brand":
        updated.brand.voice = ", ".join(updated.brand.voiceCharacteristics)
    elif section == "audience":
        updated.audience.description = build_audience_description(updated.audience)
        updated.audience.desires = list(updated.audience.goals)
    elif section == "offer":
        updated.offer.details = updated.offer.usp
    else:
        raise ValueError(f"Unknown profile section: {section}")
    return updated


def has_profile_data(brand: BrandContext, audience: AudienceContext, offer: OfferContext) -> bool:
    return bool(
        brand.name
        or brand.tagline
        or brand.mission
        or audience.jobTitles
        or audience.industries
        or audience.description
        or offer.name
        or offer.pitch
        or offer.usp
    )


def context_has_data(context: FullContext) -> bool:
    return has_profile_data(context.brand, context.audience, context.offer)


def to_extraction_payload(context: FullContext) -> dict[str, Any]:
    """Render a profile in the snake_case extraction shape."""
    brand, audience, offer = context.brand, context.audience, context.offer
    return {
        "brand": {
            "name": brand.name,
            "tagline": brand.tagline,
            "mission": brand.mission,
            "voice_characteristics": list(brand.voiceCharacteristics),
            "tone_scale": {
                "formal_casual": brand.toneScale.formalCasual,
                "serious_humorous": brand.toneScale.seriousHumorous,
                "respectful_irreverent": brand.toneScale.respectfulIrreverent,
            },
            "dos": list(brand.dos),
            "donts": list(brand.donts),
            "vocabulary": {"preferred": list(brand.keywords), "avoid": list(brand.avoidWords)},
        },
        "audience": {
            "job_titles": list(audience.jobTitles),
            "industries": list(audience.industries),
            "company_size": audience.companySize,
            "revenue_range": audience.revenueRange,
            "goals": list(audience.goals),
            "values": list(audience.values),
            "fears": list(audience.fears),
            "objections": list(audience.objections),
            "pain_points": list(audience.painPoints),
            "desired_transformation": audience.desiredTransformation,
            "buying_triggers": list(audience.buyingTriggers),
        },
        "offer": {
            "product_name": offer.name,
            "one_liner": offer.pitch,
            "features_benefits": [item.model_dump() for item in offer.featuresBenefits],
            "usp": offer.usp,
            "pricing": offer.pricing,
            "guarantees": offer.guarantees,
            "bonuses": list(offer.bonuses),
            "case_studies": [item.model_dump() for item in offer.caseStudies],
            "testimonials": [item.model_dump() for item in offer.testimonials],
            "brand_story": offer.brandStory,
            "social_proof_stats": list(offer.socialProofStats),
            "persona_types": [item.model_dump() for item in offer.personaTypes],
        },
    }

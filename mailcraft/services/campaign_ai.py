from __future__ import annotations

import logging
import math
import re
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

import orjson

from mailcraft.db.enums import CampaignGoalEnum, CampaignStatusEnum, EmailStatusEnum
from mailcraft.db.models import new_id
from mailcraft.llm.client import LLMClient, LLMClientConfigError, LLMGenerationParams, LLMRateLimitError
from mailcraft.llm.parsing import parse_json_object
from mailcraft.schemas.campaigns import Campaign, Email
from mailcraft.schemas.context import FullContext
from mailcraft.services.context_ai import AIResponseError
from mailcraft.services.context_schema import to_extraction_payload

logger = logging.getLogger(__name__)

GENERATE_FAILED_MESSAGE = "Failed to generate campaign. Please try again."
MIN_EMAILS = 3
MAX_EMAILS = 7

GOAL_LABELS: dict[CampaignGoalEnum, str] = {
    CampaignGoalEnum.welcome: "Welcome Series",
    CampaignGoalEnum.onboarding: "Onboarding",
    CampaignGoalEnum.newsletter: "Newsletter",
    CampaignGoalEnum.nurture: "Nurture Leads",
    CampaignGoalEnum.educational: "Educational Series",
    CampaignGoalEnum.launch: "Product Launch",
    CampaignGoalEnum.announcement: "Announcement",
    CampaignGoalEnum.sales: "Sales Sequence",
    CampaignGoalEnum.seasonal: "Seasonal Promo",
    CampaignGoalEnum.post_purchase: "Post-Purchase",
    CampaignGoalEnum.upsell: "Upsell / Cross-sell",
    CampaignGoalEnum.reactivation: "Re-activation",
    CampaignGoalEnum.reengagement: "Win Back",
    CampaignGoalEnum.custom: "Custom Goal",
}

GOAL_DESCRIPTIONS: dict[CampaignGoalEnum, str] = {
    CampaignGoalEnum.welcome: "Build trust and introduce the brand to new subscribers.",
    CampaignGoalEnum.onboarding: "Help new customers get value quickly and stick around.",
    CampaignGoalEnum.newsletter: "Send regular updates, tips and curated content.",
    CampaignGoalEnum.nurture: "Educate prospects and move them closer to buying.",
    CampaignGoalEnum.educational: "Teach a topic over multiple emails and build authority.",
    CampaignGoalEnum.launch: "Build anticipation and drive sales for a new offer.",
    CampaignGoalEnum.announcement: "Share a new product, feature or company update.",
    CampaignGoalEnum.sales: "Close deals with objection handling and direct calls to action.",
    CampaignGoalEnum.seasonal: "Run a holiday or event-based promotion.",
    CampaignGoalEnum.post_purchase: "Thank buyers, ask for reviews and cross-sell naturally.",
    CampaignGoalEnum.upsell: "Upgrade plans, promote add-ons or complementary products.",
    CampaignGoalEnum.reactivation: "Recover expired trials, lapsed clients or cancellations.",
    CampaignGoalEnum.reengagement: "Re-ignite interest from cold or inactive subscribers.",
    CampaignGoalEnum.custom: "Follow the additional details exactly.",
}

_DAY_RE = re.compile(r"day\s*(\d+)", re.IGNORECASE)
_BODY_SECTIONS = ("hook", "context", "value", "cta")


def goal_label(goal: str) -> str:
    try:
        return GOAL_LABELS[CampaignGoalEnum(goal)]
    except ValueError:
        return str(goal).replace("_", " ").title()


def parse_day_offset(timing: Any) -> int:
    """``None``/``""``/``"immediately"`` -> 0, ``"Day N"`` -> N, ints pass through (floored at 0)."""
    if timing is None or isinstance(timing, bool):
        return 0
    if isinstance(timing, float) and not math.isfinite(timing):
        return 0
    if isinstance(timing, (int, float)):
        return max(0, int(timing))
    if not isinstance(timing, str):
        return 0
    text = timing.strip()
    if not text or text.lower() == "immediately":
        return 0
    if text.isdigit():
        return int(text)
    match = _DAY_RE.search(text)
    return int(match.group(1)) if match else 0


def email_body_text(body: Any) -> str:
    """Plain-text body; older emails store ``{hook, context, value, cta, signOff}`` sections."""
    if isinstance(body, str):
        return body
    if isinstance(body, Mapping):
        parts = [body.get(key) for key in _BODY_SECTIONS]
        parts.append(body.get("signOff") or body.get("signoff"))
        return "\n\n".join(part for part in parts if isinstance(part, str) and part)
    return ""


def _bullets(items: list[str]) -> str:
    return ", ".join(items) if items else "None provided"


def build_campaign_prompt(goal: CampaignGoalEnum, context: FullContext, additional_details: Optional[str]) -> str:
    brand, audience, offer = context.brand, context.audience, context.offer
    tone = brand.toneScale
    brand_line = brand.name or "Unnamed brand"
    if brand.tagline:
        brand_line = f"{brand_line} ({brand.tagline})"
    details = (additional_details or "").strip() or "None"
    features = "; ".join(
        f"{item.feature}: {item.benefit}".strip(": ") for item in offer.featuresBenefits if item.feature or item.benefit
    )
    profile_json = orjson.dumps(to_extraction_payload(context), option=orjson.OPT_INDENT_2).decode()
    return f"""You are an expert email marketing copywriter.
Write an email sequence for the goal "{GOAL_LABELS[goal]}": {GOAL_DESCRIPTIONS[goal]}

Brand: {brand_line}
Mission: {brand.mission or 'Not provided'}
Voice: {_bullets(brand.voiceCharacteristics)}
Tone (1-10): formal/casual {tone.formalCasual}, serious/humorous {tone.seriousHumorous}, respectful/irreverent {tone.respectfulIrreverent}
Do: {_bullets(brand.dos)}
Don't: {_bullets(brand.donts)}
Preferred words: {_bullets(brand.keywords)}
Words to avoid: {_bullets(brand.avoidWords)}

Audience: {audience.description or 'Not provided'}
Pain points: {_bullets(audience.painPoints)}
Goals: {_bullets(audience.goals)}
Objections: {_bullets(audience.objections)}
Desired transformation: {audience.desiredTransformation or 'Not provided'}

Offer: {offer.name or 'Not provided'} - {offer.pitch or 'Not provided'}
Unique selling proposition: {offer.usp or 'Not provided'}
Features and benefits: {features or 'None provided'}
Pricing: {offer.pricing or 'Not provided'}
Guarantees: {offer.guarantees or 'Not provided'}
Social proof: {_bullets(offer.socialProofStats)}

Full profile (JSON):
{profile_json}

Additional details: {details}

Requirements:
- Write between {MIN_EMAILS} and {MAX_EMAILS} emails, as many as the goal needs.
- Match the brand voice and tone, and never use the words to avoid.
- Each body is one plain-text field with line breaks, including the call to action and sign-off.

Respond with a single JSON object and nothing else:
{{"campaign_name": "", "emails": [{{"send_timing": "Immediately or Day N", "type": "", "subject_line": "", "preview_text": "", "body": ""}}]}}
"""


def _first(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def _campaign_name(payload: Mapping[str, Any]) -> str:
    name = _first(payload, "campaign_name", "campaignName", "name")
    if not name and isinstance(payload.get("campaign"), Mapping):
        name = payload["campaign"].get("name")
    return name.strip() if isinstance(name, str) else ""


def parse_campaign_emails(raw_emails: Any, *, stamp: Optional[int] = None) -> list[Email]:
    """Map model email items (snake_case or camelCase) onto ``Email`` records with fresh ids."""
    if not isinstance(raw_emails, list):
        return []
    stamp = stamp if stamp is not None else int(time.time() * 1000)
    emails: list[Email] = []
    for item in raw_emails:
        if not isinstance(item, Mapping):
            continue
        timing = _first(item, "day_offset", "dayOffset", "send_timing", "sendTiming")
        emails.append(
            Email(
                id=f"email-{stamp}-{len(emails)}",
                dayOffset=parse_day_offset(timing),
                type=str(_first(item, "type", "email_type") or "Email"),
                subject=str(_first(item, "subject_line", "subject") or ""),
                previewText=str(_first(item, "preview_text", "previewText") or ""),
                body=email_body_text(item.get("body")),
                status=EmailStatusEnum.draft,
            )
        )
    return emails


def generate_campaign(
    llm: LLMClient,
    goal: CampaignGoalEnum,
    context: FullContext,
    additional_details: Optional[str] = None,
) -> Campaign:
    prompt = build_campaign_prompt(goal, context, additional_details)
    try:
        reply = llm.generate_text(prompt, LLMGenerationParams(temperature=0.7, json_output=True))
    except (LLMRateLimitError, LLMClientConfigError):
        raise
    except Exception as exc:
        logger.exception("Campaign generation call failed", extra={"goal": goal.value})
        raise AIResponseError(GENERATE_FAILED_MESSAGE) from exc

    try:
        payload = parse_json_object(reply)
    except ValueError as exc:
        logger.warning("Campaign generation returned unparseable output", extra={"goal": goal.value})
        raise AIResponseError(GENERATE_FAILED_MESSAGE) from exc

    emails = parse_campaign_emails(payload.get("emails"))
    if not emails:
        logger.warning("Campaign generation returned no emails", extra={"goal": goal.value})
        raise AIResponseError(GENERATE_FAILED_MESSAGE)
    if len(emails) < MIN_EMAILS:
        logger.warning("Campaign generation returned a short sequence", extra={"goal": goal.value, "emails": len(emails)})
    emails = emails[:MAX_EMAILS]

    now = datetime.now(timezone.utc)
    return Campaign(
        id=new_id(),
        name=_campaign_name(payload) or f"{GOAL_LABELS[goal]} Campaign",
        goal=goal.value,
        status=CampaignStatusEnum.draft,
        createdAt=now,
        lastEditedAt=now,
        emails=emails,
    )

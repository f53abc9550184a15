import json
import re

import pytest

from mailcraft.db.enums import CampaignGoalEnum, CampaignStatusEnum, EmailStatusEnum
from mailcraft.llm.client import LLMRateLimitError
from mailcraft.services.campaign_ai import (
    GENERATE_FAILED_MESSAGE,
    email_body_text,
    generate_campaign,
    goal_label,
    parse_day_offset,
)
from mailcraft.services.context_ai import AIResponseError, analyze_context
from mailcraft.services.context_schema import reconcile_context


class StubLLM:
    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    def generate_text(self, prompt, params=None):
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


@pytest.mark.parametrize(
    "timing, expected",
    [
        (None, 0),
        ("", 0),
        ("Immediately", 0),
        ("immediately", 0),
        ("Day 3", 3),
        ("day 10 - morning", 10),
        ("4", 4),
        (2, 2),
        (-5, 0),
        (float("inf"), 0),
        (float("-inf"), 0),
        (float("nan"), 0),
        ("next week", 0),
    ],
)
def test_parse_day_offset(timing, expected):
    assert parse_day_offset(timing) == expected


def test_email_body_text_handles_strings_and_section_objects():
    assert email_body_text("Hello") == "Hello"
    sections = {"hook": "Hook", "context": "", "value": "Value", "cta": "Click", "signOff": "Bye"}
    assert email_body_text(sections) == "Hook\n\nValue\n\nClick\n\nBye"
    assert email_body_text({"hook": "Hi", "signoff": "Cheers"}) == "Hi\n\nCheers"
    assert email_body_text(None) == ""
    assert email_body_text(42) == ""


def test_goal_label_falls_back_for_unknown_goals():
    assert goal_label("post_purchase") == "Post-Purchase"
    assert goal_label("vip_club") == "Vip Club"


def test_generate_campaign_parses_snake_case_reply(profile_payload):
    reply = json.dumps(
        {
            "campaign_name": "Acme Welcome",
            "emails": [
                {"send_timing": "Immediately", "type": "Welcome", "subject_line": "Hi", "preview_text": "p", "body": "B1"},
                {"send_timing": "Day 2", "type": "Value", "subject_line": "Tip", "preview_text": "p2", "body": "B2"},
                {"send_timing": "Day 5", "type": "Offer", "subject_line": "Deal", "preview_text": "p3", "body": {"hook": "H", "cta": "C"}},
            ],
        }
    )
    llm = StubLLM(f"Sure!\n{reply}")
    campaign = generate_campaign(llm, CampaignGoalEnum.welcome, reconcile_context(profile_payload), "Mention the webinar")

    assert campaign.name == "Acme Welcome"
    assert campaign.goal == "welcome"
    assert campaign.status == CampaignStatusEnum.draft
    assert [email.dayOffset for email in campaign.emails] == [0, 2, 5]
    assert campaign.emails[2].body == "H\n\nC"
    assert all(email.status == EmailStatusEnum.draft for email in campaign.emails)
    assert all(re.fullmatch(r"email-\d+-\d", email.id) for email in campaign.emails)
    assert len({email.id for email in campaign.emails}) == 3
    assert "Acme Analytics" in llm.prompts[0]
    assert "Mention the webinar" in llm.prompts[0]
    assert "synergy" in llm.prompts[0]
    assert '"product_name": "Acme Reports"' in llm.prompts[0]


def test_generate_campaign_accepts_camel_case_and_defaults_name(profile_payload):
    reply = json.dumps(
        {
            "emails": [
                {"dayOffset": 0, "subject": "A", "previewText": "a", "body": "x"},
                {"dayOffset": 1, "subject": "B", "previewText": "b", "body": "y"},
                {"dayOffset": 3, "subject": "C", "previewText": "c", "body": "z"},
            ]
        }
    )
    campaign = generate_campaign(StubLLM(reply), CampaignGoalEnum.sales, reconcile_context(profile_payload))
    assert campaign.name == "Sales Sequence Campaign"
    assert campaign.emails[0].type == "Email"
    assert campaign.emails[1].subject == "B"


def test_generate_campaign_caps_sequence_length(profile_payload):
    emails = [{"day_offset": index, "subject_line": f"S{index}", "body": "b"} for index in range(10)]
    campaign = generate_campaign(
        StubLLM(json.dumps({"emails": emails})), CampaignGoalEnum.newsletter, reconcile_context(profile_payload)
    )
    assert len(campaign.emails) == 7


def test_generate_campaign_without_emails_is_an_ai_error(profile_payload):
    with pytest.raises(AIResponseError) as excinfo:
        generate_campaign(StubLLM('{"emails": []}'), CampaignGoalEnum.launch, reconcile_context(profile_payload))
    assert excinfo.value.message == GENERATE_FAILED_MESSAGE


def test_generate_campaign_wraps_provider_failures(profile_payload):
    with pytest.raises(AIResponseError):
        generate_campaign(StubLLM(RuntimeError("boom")), CampaignGoalEnum.launch, reconcile_context(profile_payload))


def test_generate_campaign_lets_rate_limits_through(profile_payload):
    with pytest.raises(LLMRateLimitError):
        generate_campaign(
            StubLLM(LLMRateLimitError("openai")), CampaignGoalEnum.launch, reconcile_context(profile_payload)
        )


def test_analyze_context_reconciles_model_reply(profile_payload):
    llm = StubLLM("```json\n" + json.dumps(profile_payload) + "\n```")
    context = analyze_context(llm, "Acme Analytics sells automated reports to SaaS founders.")
    assert context.brand.name == "Acme Analytics"
    assert context.audience.description == "Founder, Ops Lead in SaaS"
    assert "Acme Analytics sells automated reports" in llm.prompts[0]


def test_analyze_context_rejects_blank_input():
    with pytest.raises(ValueError):
        analyze_context(StubLLM("{}"), "   ")


def test_analyze_context_unparseable_reply_is_an_ai_error():
    with pytest.raises(AIResponseError):
        analyze_context(StubLLM("I cannot help with that."), "Some business")

"""Agent prompt templates."""
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from voice_gateway.services.business.base import BusinessProfile

# Seeded into every new session; replaced by the business prompt on the first turn
BASE_SYSTEM_PROMPT = (
    "You are a friendly phone assistant that helps callers book appointments. "
    "Keep answers short and conversational."
)


def _business_now(profile: BusinessProfile, now: Optional[datetime]) -> datetime:
    try:
        tz = ZoneInfo(profile.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")
    if now is None:
        return datetime.now(tz)
    return now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)


def get_services_text(profile: BusinessProfile) -> str:
    """Format the service list for the model."""
    if not profile.services:
        return "   - (no fixed service list; ask the caller what they need)"
    lines = []
    for service in profile.services:
        price_str = f", ${service.price:.0f}" if service.price is not None else ""
        desc_str = f": {service.description}" if service.description else ""
        lines.append(
            f"   - {service.label} [id: {service.id}] "
            f"({service.duration_minutes} minutes{price_str}){desc_str}"
        )
    return "\n".join(lines)


def get_policies_text(profile: BusinessProfile) -> str:
    """Format business policies for the model."""
    if not profile.policies:
        return "- None provided. Do not make up policies."
    return "\n".join(
        f"- {name.replace('_', ' ').title()}: {rule}" for name, rule in profile.policies.items()
    )


def build_system_prompt(profile: BusinessProfile, now: Optional[datetime] = None) -> str:
    """Generate the system prompt for one turn.

    The result only depends on the profile and the current date in the
    business timezone.
    """
    today = _business_now(profile, now)
    business_type = profile.business_type or "local business"

    return f"""You are a professional phone assistant for {profile.name} ({business_type}).

Today is {today.strftime("%A, %B %d, %Y")} ({today.strftime("%Y-%m-%d")}) in {profile.timezone}.
Always reason about dates and times in {profile.timezone}.

Services you can book:
{get_services_text(profile)}

Policies:
{get_policies_text(profile)}

How to help the caller:
1. Find out which service they want and which day suits them.
2. Call check_availability before proposing any specific time.
3. Offer at most two or three of the returned times.
4. Collect the caller's full name and phone number (email only if they offer it).
5. Call book_appointment only after the caller confirms the exact slot.
6. Confirm the booked service, date, and time in one short sentence.

Rules:
- You are speaking on the phone: answer in one or two short sentences, no lists, no markdown.
- Never invent services, prices, durations, or open times.
- If a tool returns an error or the slot is taken, apologize briefly and offer another option.
- If anything is unclear, ask the caller instead of guessing."""

"""Context Assembler — turns state, action and resources into LLM instructions.

Nothing here decides anything; it only renders what the policy and the
prioritizer already chose.
"""
from typing import List, Optional

from config.settings import settings
from core.prioritizer import is_community_fridge, is_meal_program, is_round_the_clock
from integrations.ollama.prompts import (
    CRISIS_PERMISSION_INSTRUCTION,
    EMERGENCY_FOOTER,
    FALLBACK_BROWSE_HINT,
    FALLBACK_INTRO,
    FALLBACK_NO_RESOURCES_INTRO,
    FALLBACK_SHELTER_INTRO,
    LOCATION_INSTRUCTION,
    NO_RESOURCES_INSTRUCTION,
    PERMISSION_INSTRUCTION,
    PRESENT_OPTIONS_INSTRUCTION,
    PRESENT_RESOURCES_INSTRUCTION,
    SYSTEM_PROMPT,
)
from models.conversation import (
    Action,
    Awaiting,
    ChatMessage,
    ConversationState,
    Intent,
    Role,
    Urgency,
)
from models.resource import Resource

RESOURCE_TYPE_PHRASES = {
    Intent.SHELTER: "shelter options",
    Intent.FOOD: "food options",
    Intent.HEALTH: "health services",
    Intent.LEGAL: "legal aid services",
    Intent.YOUTH: "youth services",
}

RESOURCE_HEADINGS = {
    Intent.SHELTER: "NEAREST SHELTERS",
    Intent.FOOD: "FOOD RESOURCES NEAR YOU",
    Intent.HEALTH: "NEAREST HEALTH RESOURCES",
    Intent.LEGAL: "NEAREST LEGAL RESOURCES",
    Intent.CRISIS: "CRISIS SUPPORT",
}


def resource_type_phrase(state: ConversationState) -> str:
    if state.intent == Intent.FOOD and state.urgency == Urgency.IMMEDIATE:
        return "places where you can get food right now"
    if state.intent == Intent.SHELTER and state.urgency == Urgency.IMMEDIATE:
        return "shelters with space available right now"
    return RESOURCE_TYPE_PHRASES.get(state.intent, "resources")


def build_state_context(state: ConversationState) -> str:
    """Summarize the inferred state for the model. Empty for vague requests."""
    if not state.has_specific_intent and not state.is_crisis:
        return ""

    lines = ["CONVERSATION STATE:", f"- User intent: {state.intent.value}"]
    if state.urgency:
        lines.append(f"- Urgency: {state.urgency.value}")
    if state.is_crisis:
        lines.append(
            "- CRISIS SITUATION: user mentioned suicide/self-harm - handle with "
            "extra care, ask permission first"
        )
    if state.is_adult is True:
        lines.append("- User is an adult - exclude youth-only resources")
    elif state.is_adult is False:
        lines.append("- User is a youth - include youth resources")
    lines.append(f"- Permission granted: {'Yes' if state.permission_granted else 'No'}")
    if state.location:
        lines.append(f"- Location: {state.location.value} ({state.location.kind.value})")
    else:
        lines.append("- Location: not provided yet")
    if state.awaiting != Awaiting.NONE:
        lines.append(f"- Currently awaiting: {state.awaiting.value}")
    return "\n".join(lines)


def format_resource_line(resource: Resource, intent: Intent) -> str:
    line = f"• {resource.name}"
    if resource.phone:
        line += f" - Call {resource.phone}" if intent == Intent.SHELTER else f" - {resource.phone}"
    if resource.address:
        line += f" - {resource.address}"

    if is_round_the_clock(resource):
        line += " (24/7 - available right now)"
    elif intent == Intent.FOOD and is_meal_program(resource):
        line += f" (serves hot meals{f' - {resource.hours}' if resource.hours else ''})"
    elif intent == Intent.FOOD and is_community_fridge(resource):
        line += " (community fridge - take what you need)"
    elif resource.hours:
        line += f" (Hours: {resource.hours})"
    return line


def _urgency_note(state: ConversationState, dashboard_url: str) -> str:
    if state.intent == Intent.SHELTER:
        if state.urgency == Urgency.IMMEDIATE:
            return (
                "For real-time shelter availability and space, check the shelter "
                f"dashboard at {dashboard_url} - it shows which shelters have space right now."
            )
        return "For real-time shelter availability, check the shelter dashboard on our website."
    if state.intent == Intent.FOOD:
        if state.urgency == Urgency.IMMEDIATE:
            return (
                "For immediate food access: 24/7 options and community fridges are "
                "listed first. For a hot meal, check meal programs and community kitchens."
            )
        if state.urgency == Urgency.SOON:
            return (
                "For food today: check meal programs and community kitchens first. "
                "Food banks may require appointments."
            )
    return ""


def format_resources(
    state: ConversationState,
    resources: List[Resource],
    dashboard_url: Optional[str] = None,
) -> str:
    if not resources:
        return ""
    heading = RESOURCE_HEADINGS.get(state.intent, "NEAREST RESOURCES")
    body = "\n".join(format_resource_line(r, state.intent) for r in resources)
    # Resource text comes from the directory, not from us
    block = f"{heading}:\n<resources>\n{body}\n</resources>"
    note = _urgency_note(state, dashboard_url or settings.SHELTER_DASHBOARD_URL)
    return f"{block}\n\n{note}" if note else block


def build_action_instructions(state: ConversationState, action: Action) -> str:
    if action == Action.ASK_PERMISSION:
        if state.is_crisis:
            return CRISIS_PERMISSION_INSTRUCTION
        return PERMISSION_INSTRUCTION.format(resource_type=resource_type_phrase(state))
    if action == Action.ASK_LOCATION:
        return LOCATION_INSTRUCTION
    if action == Action.FETCH_RESOURCES:
        return PRESENT_RESOURCES_INSTRUCTION
    return PRESENT_OPTIONS_INSTRUCTION


def assemble_instructions(
    state: ConversationState,
    action: Action,
    resources: Optional[List[Resource]] = None,
) -> str:
    """Instruction context appended to the system prompt for this turn."""
    parts = [build_state_context(state)]

    if action == Action.FETCH_RESOURCES and not resources:
        parts.append(NO_RESOURCES_INSTRUCTION)
    else:
        parts.append(build_action_instructions(state, action))

    if action == Action.FETCH_RESOURCES and resources:
        parts.append("RESOURCES TO PRESENT:\n" + format_resources(state, resources))

    return "\n\n".join(p for p in parts if p)


def build_completion_messages(
    instruction_context: str,
    transcript: List[ChatMessage],
) -> List[dict]:
    """System prompt plus instructions, followed by the user/assistant turns."""
    system_content = SYSTEM_PROMPT
    if instruction_context:
        system_content += "\n\n" + instruction_context

    messages = [{"role": Role.SYSTEM.value, "content": system_content}]
    for msg in transcript:
        if msg.role == Role.SYSTEM:
            continue
        messages.append({"role": msg.role.value, "content": msg.content})
    return messages


def build_fallback_summary(
    state: ConversationState,
    resources: List[Resource],
    shelter_need: bool = False,
) -> str:
    """Locally rendered reply used when the completion service fails."""
    if shelter_need:
        lines = []
        if state.location is None:
            lines.append(FALLBACK_SHELTER_INTRO)
            lines.append("")
        around_the_clock = [r for r in resources if is_round_the_clock(r)]
        others = [r for r in resources if not is_round_the_clock(r)]
        if around_the_clock:
            lines.append("24/7 Emergency Shelters:")
            lines.extend(format_resource_line(r, Intent.SHELTER) for r in around_the_clock)
        if others:
            if around_the_clock:
                lines.append("")
            lines.append("Other Shelters:")
            lines.extend(format_resource_line(r, Intent.SHELTER) for r in others)
        lines.append("")
        lines.append(EMERGENCY_FOOTER)
        lines.append(
            f"For real-time shelter availability, check the shelter dashboard: "
            f"{settings.SHELTER_DASHBOARD_URL}"
        )
        return "\n".join(lines)

    lines = [FALLBACK_INTRO if resources else FALLBACK_NO_RESOURCES_INTRO, ""]
    if resources:
        lines.extend(format_resource_line(r, state.intent) for r in resources)
        lines.append("")
    lines.append(FALLBACK_BROWSE_HINT)
    lines.append(EMERGENCY_FOOTER)
    return "\n".join(lines)

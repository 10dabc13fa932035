"""Automation templates.

Templates are evaluated in declaration order and the first match wins, so
more specific patterns must come before more general ones. New automation
types are added by appending a template here or by passing a custom list to
PatternMatcher.
"""

import re
from typing import Final

from query_router.models.model_automation import AutomationTemplate, ParamSpec

# Automation types
MESSAGE_SCHEDULE: Final[str] = "message_schedule"
RIDE_REQUEST: Final[str] = "ride_request"
FOOD_ORDER: Final[str] = "food_order"
CALENDAR_EVENT: Final[str] = "calendar_event"
MUSIC_CONTROL: Final[str] = "music_control"
PAYMENT: Final[str] = "payment"

# Time suffix shared by most templates: "at 5pm", "on friday", "tomorrow 9am", "in 2 hours"
_WHEN = r"(?:\s+(?:at|on|tomorrow|in)\s+(.+?))?"

DEFAULT_TEMPLATES: Final[tuple[AutomationTemplate, ...]] = (
    AutomationTemplate(
        type=MESSAGE_SCHEDULE,
        service="whatsapp",
        pattern=re.compile(
            r"\b(?:schedule|send)\s+(?:a\s+)?(?:whatsapp|whats app|wa)\s+(?:message|msg|text)"
            r"\s+(?:to|for)\s+([a-zA-Z\s]+?)" + _WHEN + r'(?:\s+saying\s+"?(.*?)"?)?$',
            re.IGNORECASE,
        ),
        params=(
            ParamSpec("recipient", 1),
            ParamSpec("time", 2, default="now"),
            ParamSpec("content", 3),
        ),
        required_services=("whatsapp",),
        required_params=(("recipient",), ("content",)),
        confirmation_template="Send {{content}} to {{recipient}} on WhatsApp {{time}}",
    ),
    AutomationTemplate(
        type=MESSAGE_SCHEDULE,
        service="gmail",
        pattern=re.compile(
            r"\b(?:schedule|send)\s+(?:a\s+)?(?:email|mail|gmail)\s+(?:to|for)\s+([a-zA-Z\s@.]+?)"
            r'(?:\s+(?:with subject|subject)\s+"?(.*?)"?)?'
            + _WHEN
            + r'(?:\s+saying\s+"?(.*?)"?)?$',
            re.IGNORECASE,
        ),
        params=(
            ParamSpec("recipient", 1),
            ParamSpec("subject", 2),
            ParamSpec("time", 3, default="now"),
            ParamSpec("content", 4),
        ),
        required_services=("gmail",),
        required_params=(("recipient",), ("subject", "content")),
        confirmation_template='Send email to {{recipient}} with subject "{{subject}}" {{time}}',
    ),
    AutomationTemplate(
        type=RIDE_REQUEST,
        service="uber",
        pattern=re.compile(
            r"\b(?:get|book|order|schedule)\s+(?:a\s+)?(?:uber|ride|car|taxi)\s+(?:to|from|between)"
            r"\s+([a-zA-Z0-9\s,.]+?)(?:\s+(?:to|and)\s+([a-zA-Z0-9\s,.]+?))?" + _WHEN + "$",
            re.IGNORECASE,
        ),
        params=(
            ParamSpec("pickup", 1),
            ParamSpec("destination", 2),
            ParamSpec("time", 3, default="now"),
        ),
        required_services=("uber",),
        required_params=(("destination",),),
        confirmation_template="Book an Uber from {{pickup}} to {{destination}} {{time}}",
    ),
    AutomationTemplate(
        type=FOOD_ORDER,
        service="doordash",
        pattern=re.compile(
            r"\b(?:order|get)\s+(?:food|dinner|lunch|breakfast)\s+(?:from)\s+([a-zA-Z0-9\s,.'&]+?)"
            r"(?:\s+(?:with|containing)\s+(.+?))?" + _WHEN + "$",
            re.IGNORECASE,
        ),
        params=(
            ParamSpec("restaurant", 1),
            ParamSpec("items", 2, default="my usual order"),
            ParamSpec("time", 3, default="now"),
        ),
        required_services=("doordash",),
        required_params=(("restaurant",),),
        confirmation_template="Order {{items}} from {{restaurant}} {{time}}",
    ),
    AutomationTemplate(
        type=CALENDAR_EVENT,
        service="google_calendar",
        pattern=re.compile(
            r"\b(?:schedule|create|add)\s+(?:a\s+)?(?:meeting|event|appointment|call)"
            r"\s+(?:with|about|for)\s+([a-zA-Z0-9\s,.]+?)"
            + _WHEN
            + r"(?:\s+(?:for|lasting)\s+(.+?))?$",
            re.IGNORECASE,
        ),
        params=(
            ParamSpec("title", 1),
            ParamSpec("time", 2),
            ParamSpec("duration", 3, default="30 minutes"),
        ),
        required_services=("google_calendar",),
        required_params=(("title",), ("time",)),
        confirmation_template='Schedule "{{title}}" {{time}} for {{duration}}',
    ),
    AutomationTemplate(
        type=MUSIC_CONTROL,
        service="spotify",
        pattern=re.compile(
            # Anchored: "play"/"queue" must open the request, "start" needs a music noun
            r"^\s*(?:(?:please|can you|could you)\s+)?"
            r"(?:(?:play|queue)\s+(?:(?:the\s+)?(?:song|track|artist|album|playlist)\s+)?"
            r"|start\s+(?:(?:the|a|my)\s+)?(?:song|track|album|playlist)\s+)"
            r"\"?([a-zA-Z0-9\s,.'\-&]+?)\"?(?:\s+(?:by|from)\s+([a-zA-Z0-9\s,.'\-&]+?))?$",
            re.IGNORECASE,
        ),
        params=(
            ParamSpec("track", 1),
            ParamSpec("artist", 2),
        ),
        required_services=("spotify",),
        required_params=(("track", "artist"),),
        confirmation_template='Play "{{track}}"{{#artist}} by {{artist}}{{/artist}} on Spotify',
    ),
    AutomationTemplate(
        type=PAYMENT,
        service="venmo",
        pattern=re.compile(
            r"\b(?:send|pay|venmo)\s+(?:a\s+)?(\$?[0-9]+(?:\.[0-9]{2})?)\s+(?:to|for)"
            r"\s+([a-zA-Z\s]+?)(?:\s+(?:for|because|to pay for|to cover)\s+(.+?))?$",
            re.IGNORECASE,
        ),
        params=(
            ParamSpec("amount", 1, strip_chars="$"),
            ParamSpec("recipient", 2),
            ParamSpec("description", 3),
        ),
        required_services=("venmo",),
        required_params=(("amount",), ("recipient",)),
        confirmation_template=(
            'Send ${{amount}} to {{recipient}}{{#description}} for "{{description}}"'
            "{{/description}} via Venmo"
        ),
    ),
)

# First words that suggest an automation request even without a template match
ACTION_WORDS: Final[frozenset[str]] = frozenset(
    {
        "schedule", "send", "book", "order", "create", "add", "play",
        "get", "make", "set", "pay", "venmo", "uber", "whatsapp",
    }
)  # fmt: skip

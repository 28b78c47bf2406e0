"""Tool schemas exposed to the model."""
from typing import Any, Dict, List

CHECK_AVAILABILITY = "check_availability"
BOOK_APPOINTMENT = "book_appointment"

TOOLS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": CHECK_AVAILABILITY,
            "description": "Check open booking slots on one date for a given appointment length.",
            "parameters": {
                "type": "object",
                "properties": {
                    "date": {
                        "type": "string",
                        "description": "Date as YYYY-MM-DD in the business timezone.",
                    },
                    "timezone": {
                        "type": "string",
                        "description": "IANA timezone, e.g. America/Toronto. Defaults to the business timezone.",
                    },
                    "durationMinutes": {
                        "type": "integer",
                        "description": "Appointment length in minutes.",
                    },
                    "serviceId": {
                        "type": "string",
                        "description": "Optional id of the chosen service.",
                    },
                },
                "required": ["date", "durationMinutes"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": BOOK_APPOINTMENT,
            "description": "Book a confirmed slot for the caller. Only call after the caller agrees to the time.",
            "parameters": {
                "type": "object",
                "properties": {
                    "start": {
                        "type": "string",
                        "description": "Start as ISO 8601 datetime in the business timezone.",
                    },
                    "guestName": {
                        "type": "string",
                        "description": "Caller's full name.",
                    },
                    "guestPhone": {
                        "type": "string",
                        "description": "Caller's phone number, E.164 if possible.",
                    },
                    "guestEmail": {
                        "type": "string",
                        "description": "Caller's email, only if they provided one.",
                    },
                    "serviceId": {
                        "type": "string",
                        "description": "Optional id of the chosen service.",
                    },
                },
                "required": ["start", "guestName", "guestPhone"],
            },
        },
    },
]

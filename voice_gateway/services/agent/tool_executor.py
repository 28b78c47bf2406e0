"""Dispatches model tool calls to the booking API."""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from voice_gateway.services.agent.state import ToolCallRequest, ToolResult
from voice_gateway.services.agent.tools import BOOK_APPOINTMENT, CHECK_AVAILABILITY
from voice_gateway.services.booking.client import BookingAPIError, BookingClient
from voice_gateway.services.business.base import BusinessProfile

logger = logging.getLogger(__name__)


class CheckAvailabilityArgs(BaseModel):
    """Arguments of check_availability."""

    model_config = ConfigDict(populate_by_name=True)

    date: str
    timezone: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, alias="durationMinutes", gt=0)
    service_id: Optional[str] = Field(default=None, alias="serviceId")

    @field_validator("date")
    @classmethod
    def _date_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("date must not be empty")
        return value.strip()


class BookAppointmentArgs(BaseModel):
    """Arguments of book_appointment."""

    model_config = ConfigDict(populate_by_name=True)

    start: str
    guest_name: str = Field(alias="guestName")
    guest_phone: str = Field(alias="guestPhone")
    guest_email: Optional[str] = Field(default=None, alias="guestEmail")
    service_id: Optional[str] = Field(default=None, alias="serviceId")

    @field_validator("start", "guest_name", "guest_phone")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class ToolExecutor:
    """
    Executes tool calls and normalizes every outcome into a ToolResult.

    Nothing raised by argument parsing or the booking API escapes: failures
    become ``{"ok": false, "error": ...}`` payloads the model can react to.
    Each request is executed at most once.
    """

    def __init__(self, booking_client: BookingClient, timeout_seconds: float = 10.0):
        self.booking_client = booking_client
        self.timeout_seconds = timeout_seconds

    async def execute(
        self,
        request: ToolCallRequest,
        profile: BusinessProfile,
        credential: Optional[str],
    ) -> ToolResult:
        """Run one tool call."""
        logger.info(
            f"[TOOLS] Executing {request.name} - call_id: {request.id}, "
            f"business: {profile.id}, args: {request.arguments}"
        )

        try:
            raw_args = json.loads(request.arguments or "{}")
        except json.JSONDecodeError as e:
            return self._error(request, f"invalid arguments: not valid JSON ({e.msg})")
        if not isinstance(raw_args, dict):
            return self._error(request, "invalid arguments: expected an object")

        try:
            if request.name == CHECK_AVAILABILITY:
                args = CheckAvailabilityArgs.model_validate(raw_args)
                call = self._check_availability(args, profile, credential)
            elif request.name == BOOK_APPOINTMENT:
                args = BookAppointmentArgs.model_validate(raw_args)
                call = self._book_appointment(args, profile, credential)
            else:
                logger.warning(f"[TOOLS] Unknown tool requested: {request.name}")
                return self._error(request, "unknown tool")
        except ValidationError as e:
            return self._error(request, f"invalid arguments: {self._describe(e)}")

        try:
            payload = await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return self._error(
                request, f"{request.name} timed out after {self.timeout_seconds:g} seconds"
            )
        except BookingAPIError as e:
            return self._error(request, str(e))
        except httpx.HTTPError as e:
            return self._error(request, f"booking service unavailable: {type(e).__name__}")
        except ValueError as e:
            return self._error(request, f"invalid arguments: {str(e)}")
        except Exception as e:
            logger.error(
                f"[TOOLS] Unexpected error in {request.name} - Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return self._error(request, "tool failed")

        result = {"ok": True}
        result.update(payload)
        logger.info(f"[TOOLS] {request.name} succeeded - call_id: {request.id}")
        return ToolResult.from_payload(request, result)

    async def _check_availability(
        self,
        args: CheckAvailabilityArgs,
        profile: BusinessProfile,
        credential: Optional[str],
    ) -> Dict[str, Any]:
        duration = args.duration_minutes
        if duration is None and args.service_id:
            service = profile.get_service(args.service_id)
            if service:
                duration = service.duration_minutes
        if duration is None:
            raise ValueError("durationMinutes is required")

        return await self.booking_client.check_availability(
            credential,
            date=args.date,
            timezone=args.timezone or profile.timezone,
            duration_minutes=duration,
        )

    async def _book_appointment(
        self,
        args: BookAppointmentArgs,
        profile: BusinessProfile,
        credential: Optional[str],
    ) -> Dict[str, Any]:
        if args.service_id and not profile.get_service(args.service_id):
            logger.warning(
                f"[TOOLS] book_appointment with unknown serviceId={args.service_id} "
                f"for business {profile.id}"
            )
        return await self.booking_client.book_appointment(
            credential,
            start=args.start,
            guest_name=args.guest_name,
            guest_phone=args.guest_phone,
            guest_email=args.guest_email,
        )

    @staticmethod
    def _describe(error: ValidationError) -> str:
        parts = []
        for item in error.errors():
            field = ".".join(str(loc) for loc in item.get("loc", ())) or "arguments"
            parts.append(f"{field} {item.get('msg', 'is invalid')}")
        return "; ".join(parts)

    @staticmethod
    def _error(request: ToolCallRequest, reason: str) -> ToolResult:
        logger.warning(f"[TOOLS] {request.name} failed - call_id: {request.id}, error: {reason}")
        return ToolResult.from_payload(request, {"ok": False, "error": reason})

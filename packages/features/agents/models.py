from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")

# Never leave the admin credentials view.
SECRET_COLUMNS = ("password",)


def normalize_aadhaar(value: Union[str, int, None]) -> Optional[str]:
    """Canonical Aadhaar: exactly 12 digits, as a string."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Aadhaar number must be 12 digits.")
    if isinstance(value, int):
        value = str(value)
    digits = re.sub(r"[\s-]", "", str(value))
    if not digits:
        return None
    if not (digits.isdigit() and len(digits) == 12):
        raise ValueError("Aadhaar number must be 12 digits.")
    return digits


def normalize_pan(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    pan = str(value).strip().upper()
    if not pan:
        return None
    if not PAN_RE.match(pan):
        raise ValueError("PAN must look like ABCDE1234F.")
    return pan


def _clean_email(value: str) -> str:
    email = (value or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValueError("A valid email address is required.")
    return email


class AgentProfile(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    pincode: Optional[str] = None
    trade_licence_number: Optional[str] = None
    trade_licence_url: Optional[str] = None
    pan_number: Optional[str] = None
    pan_card_url: Optional[str] = None
    aadhaar_number: Optional[str] = None
    aadhaar_card_url: Optional[str] = None

    @field_validator("pan_number", mode="before")
    @classmethod
    def _pan(cls, v: Any) -> Optional[str]:
        return normalize_pan(v)

    @field_validator("aadhaar_number", mode="before")
    @classmethod
    def _aadhaar(cls, v: Any) -> Optional[str]:
        return normalize_aadhaar(v)


class CreateAgent(AgentProfile):
    company_name: str = Field(..., min_length=1)
    contact_person: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=3)
    commission_rate: float = Field(5.0, ge=0, le=100)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _clean_email(v)


class UpdateAgent(AgentProfile):
    company_name: Optional[str] = Field(None, min_length=1)
    contact_person: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3)
    phone: Optional[str] = Field(None, min_length=3)
    commission_rate: Optional[float] = Field(None, ge=0, le=100)

    @field_validator("email")
    @classmethod
    def _email(cls, v: Optional[str]) -> Optional[str]:
        return _clean_email(v) if v is not None else None


class SetAgentStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    agent_id: str = Field(..., min_length=1, alias="agentId")
    target_status: str = Field(..., min_length=1, alias="targetStatus")


class StatusChangeResult(BaseModel):
    success: bool
    message: str = ""
    agent_code: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    # Only filled on approval, for the one-time credential display.
    password: Optional[str] = None
    http_status: int = 200

    def to_response(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.agent_code:
            out["agentCode"] = self.agent_code
        if self.status:
            out["status"] = self.status
        if self.error:
            out["error"] = self.error
        return out


def public_agent(row: Dict[str, Any]) -> Dict[str, Any]:
    """Agent row without secrets, for lists, detail views and the portal."""
    return {k: v for k, v in (row or {}).items() if k not in SECRET_COLUMNS}

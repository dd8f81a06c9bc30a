"""Auth Pydantic schemas for request / response validation."""


from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from taskdesk.common.constants import HodType


# ── Requests ────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    """Credentials for any role; which fields are required depends on the role."""

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    employee_id: Optional[str] = Field(default=None, alias="employeeId")
    password: str = Field(min_length=1)
    campus: Optional[str] = None
    branch_code: Optional[str] = Field(default=None, alias="branchCode")
    hod_type: Optional[HodType] = Field(default=None, alias="hodType")


# ── Embedded / Shared ──────────────────────────────────────────────

class ViewerProfile(BaseModel):
    """What the task forms need to know about the signed-in user."""

    id: str
    role: str
    name: Optional[str] = None
    email: Optional[str] = None
    employee_id: Optional[str] = None
    campus: Optional[str] = None
    department: Optional[str] = None
    branch_code: Optional[str] = None
    hod_type: Optional[str] = None


# ── Responses ───────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: ViewerProfile


class MeResponse(BaseModel):
    user: ViewerProfile
    permissions: list[str]

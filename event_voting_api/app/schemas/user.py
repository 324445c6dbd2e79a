"""
Pydantic models for user data.

Users are only known here by id, email and display name; credentials
are handled by the authentication collaborator.
"""

from typing import Optional

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    email: str = Field(..., examples=["user@example.com"])
    full_name: Optional[str] = Field(None, examples=["Jane Doe"])


class UserRead(UserCreate):
    id: int

    model_config = {
        "from_attributes": True,
    }

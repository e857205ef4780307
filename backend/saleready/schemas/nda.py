"""
NDA signer validation

Names allow letters (including Nordic and accented), spaces, hyphens and
apostrophes. All text is HTML-escaped after validation.
"""

import html
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NAME_PATTERN = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ\s'\-]+$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def sanitize(value: str) -> str:
    return html.escape(value.strip(), quote=True)


class SignerInfo(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=255)
    company: Optional[str] = Field(None, max_length=100)
    title: Optional[str] = Field(None, max_length=100)

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v):
        v = str(v or "").strip()
        if len(v) >= 2 and not NAME_PATTERN.match(v):
            raise ValueError("Name contains invalid characters")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v):
        v = str(v or "").strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("company", "title", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    def sanitized(self) -> "SignerInfo":
        return SignerInfo.model_construct(
            name=sanitize(self.name),
            email=sanitize(self.email),
            company=sanitize(self.company) if self.company else None,
            title=sanitize(self.title) if self.title else None,
        )


class AcceptNDARequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    share_id: Optional[str] = Field(None, alias="shareId")
    signer_info: Optional[dict] = Field(None, alias="signerInfo")

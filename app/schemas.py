# app/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas, organized by domain. Wire format is camelCase.
# ------------------------------------------------------------
from datetime import datetime
import re
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.services.window_guard import naive_utc


_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_SCRIPT_TAG_RE = re.compile(r"<\s*/?\s*script", re.IGNORECASE)


def _sanitize_single_line_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise TypeError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if any(ch in {"\n", "\r"} for ch in cleaned):
        raise ValueError("Value must be a single line of text")
    if _SCRIPT_TAG_RE.search(cleaned):
        raise ValueError("Script tags are not allowed")
    return cleaned


def _sanitize_multiline_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise TypeError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if _SCRIPT_TAG_RE.search(cleaned):
        raise ValueError("Script tags are not allowed")
    return cleaned


def _sanitize_string_list(value: Sequence[str] | str | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [_sanitize_single_line_text(str(item)) for item in value]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============================================================
# Users
# ============================================================

class SignupRequest(ApiModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    role: Literal["creator", "contestee"] = "contestee"

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _sanitize_single_line_text(value)


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserRead(ApiModel):
    id: str
    name: str
    email: str
    role: str


class TokenRead(ApiModel):
    token: str


# ============================================================
# Contests
# ============================================================

class ContestCreate(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=10000)
    start_time: datetime
    end_time: datetime

    @field_validator("title", mode="before")
    @classmethod
    def _clean_title(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Optional[str]) -> str:
        return _sanitize_multiline_text(value, allow_empty=True) or ""

    @model_validator(mode="after")
    def _check_window(self):
        # same normalization the route applies before storing; naive values are UTC
        if naive_utc(self.start_time) >= naive_utc(self.end_time):
            raise ValueError("startTime must be before endTime")
        return self


class ContestRead(ApiModel):
    id: str
    title: str
    description: Optional[str] = None
    creator_id: str
    start_time: datetime
    end_time: datetime


# ============================================================
# MCQ questions
# ============================================================

class McqCreate(ApiModel):
    question_text: str = Field(min_length=1, max_length=5000)
    options: List[str] = Field(min_length=2, max_length=20)
    correct_option_index: int = Field(ge=0)
    points: int = Field(ge=0, le=100000)

    @field_validator("question_text", mode="before")
    @classmethod
    def _clean_question(cls, value: str) -> str:
        return _sanitize_multiline_text(value)

    @field_validator("options", mode="before")
    @classmethod
    def _clean_options(cls, value):
        return _sanitize_string_list(value)

    @model_validator(mode="after")
    def _check_correct_index(self):
        if self.correct_option_index >= len(self.options):
            raise ValueError("correctOptionIndex must point at one of the options")
        return self


class McqRead(ApiModel):
    id: str
    contest_id: str
    question_text: str
    options: List[str]
    points: int
    # filled only for the contest creator
    correct_option_index: Optional[int] = None


class McqSubmit(ApiModel):
    selected_option_index: int = Field(ge=0)


class McqSubmitResult(ApiModel):
    is_correct: bool
    points_earned: int


# ============================================================
# DSA problems
# ============================================================

class TestCaseCreate(ApiModel):
    input: str = Field(default="", max_length=1_000_000)
    expected_output: str = Field(default="", max_length=1_000_000)
    is_hidden: bool = False


class TestCaseRead(ApiModel):
    id: int
    input: str
    expected_output: str
    is_hidden: bool


class DsaProblemCreate(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=20000)
    tags: List[str] = Field(default_factory=list)
    points: int = Field(ge=0, le=100000)
    time_limit: int = Field(default=2000, ge=1, le=60000, description="milliseconds")
    memory_limit: int = Field(default=256, ge=1, le=4096, description="megabytes")
    test_cases: List[TestCaseCreate] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _clean_title(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Optional[str]) -> str:
        return _sanitize_multiline_text(value, allow_empty=True) or ""

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value):
        return _sanitize_string_list(value)


class DsaProblemSummary(ApiModel):
    id: str
    contest_id: str
    title: str
    points: int
    time_limit: int
    memory_limit: int


class DsaProblemRead(DsaProblemSummary):
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    test_cases: List[TestCaseRead] = Field(default_factory=list)


class DsaSubmit(ApiModel):
    code: str = Field(min_length=1, max_length=200_000)
    language: str = Field(min_length=1, max_length=32)

    @field_validator("language", mode="before")
    @classmethod
    def _clean_language(cls, value: str) -> str:
        return _sanitize_single_line_text(value)


class DsaSubmitResult(ApiModel):
    status: str
    points_earned: int
    test_cases_passed: int
    total_test_cases: int


# ============================================================
# Leaderboard
# ============================================================

class LeaderboardRow(ApiModel):
    user_id: int
    name: str
    total_points: int
    rank: int

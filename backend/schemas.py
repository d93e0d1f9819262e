# =============================================================================
# CropGenesis Backend
# schemas.py - Request Schemas
#
# Pydantic models describing every request body and query string the API
# accepts. The validate_request decorator validates incoming data against
# these models and hands the typed payload to the route handler, so the
# validation rules and the handler input have one definition.
# =============================================================================

import re
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from constants import (
    LANGUAGE_CODES,
    SOIL_TYPES,
    IRRIGATION_METHODS,
    SEASONS,
    LAND_SIZE_MIN,
    LAND_SIZE_MAX,
    MAX_NOTES_CHARS,
    MAX_PLAN_QUESTION_CHARS,
    MAX_DIAGNOSIS_QUESTION_CHARS,
    MAX_TAGS,
    MAX_TAG_CHARS,
    HISTORY_FILTERS
)

PHONE_PATTERN = re.compile(r'^[0-9]{10}$')
MIN_PASSWORD_LENGTH = 6

# Passwords are taken verbatim, surrounding spaces included
Password = Annotated[str, StringConstraints(strip_whitespace=False)]


class RequestSchema(BaseModel):
    """Base for request schemas: trims strings and accepts camelCase keys."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra='ignore'
    )


# =============================================================================
# Shared field checks
# =============================================================================

def check_length(value, field_label, min_length, max_length):
    if value is None or not (min_length <= len(value) <= max_length):
        raise ValueError(
            f'{field_label} must be between {min_length} and {max_length} characters'
        )
    return value


def check_phone(value):
    if not isinstance(value, str) or not PHONE_PATTERN.match(value.strip()):
        raise ValueError('Phone must be a valid 10-digit number')
    return value.strip()


def check_language(value):
    if value is None:
        return value
    if value not in LANGUAGE_CODES:
        raise ValueError('Invalid language code')
    return value


def check_identifier(value, label):
    """Accept a positive integer id given as int or digit string."""
    if isinstance(value, bool):
        raise ValueError(f'Invalid {label} ID')
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValueError(f'Invalid {label} ID')
        value = int(value)
    if not isinstance(value, int) or value < 1:
        raise ValueError(f'Invalid {label} ID')
    return value


# =============================================================================
# Authentication
# =============================================================================

class RegisterRequest(RequestSchema):
    name: str
    phone: str
    location: str
    password: Password
    language: Optional[str] = 'en'

    @field_validator('name')
    @classmethod
    def validate_name(cls, value):
        return check_length(value, 'Name', 2, 100)

    @field_validator('phone', mode='before')
    @classmethod
    def validate_phone(cls, value):
        return check_phone(value)

    @field_validator('location')
    @classmethod
    def validate_location(cls, value):
        return check_length(value, 'Location', 2, 200)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError('Password must be at least 6 characters long')
        return value

    @field_validator('language')
    @classmethod
    def validate_language(cls, value):
        return check_language(value) or 'en'


class LoginRequest(RequestSchema):
    phone: str
    password: Password

    @field_validator('phone', mode='before')
    @classmethod
    def validate_phone(cls, value):
        return check_phone(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        if not value:
            raise ValueError('Password is required')
        return value


class ChangePasswordRequest(RequestSchema):
    current_password: Password = Field(alias='currentPassword')
    new_password: Password = Field(alias='newPassword')

    @field_validator('current_password')
    @classmethod
    def validate_current_password(cls, value):
        if not value:
            raise ValueError('Current password is required')
        return value

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value):
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError('New password must be at least 6 characters long')
        return value


class UpdateProfileRequest(RequestSchema):
    name: Optional[str] = None
    location: Optional[str] = None
    language: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value):
        return value if value is None else check_length(value, 'Name', 2, 100)

    @field_validator('location')
    @classmethod
    def validate_location(cls, value):
        return value if value is None else check_length(value, 'Location', 2, 200)

    @field_validator('language')
    @classmethod
    def validate_language(cls, value):
        return check_language(value)


# =============================================================================
# Crop Plans
# =============================================================================

class CropPlanRequest(RequestSchema):
    soil_type: str = Field(alias='soilType')
    land_size: float = Field(alias='landSize')
    irrigation: str
    season: str
    preferred_language: Optional[str] = Field(default=None, alias='preferredLanguage')
    additional_notes: str = Field(default='', alias='additionalNotes')
    tags: List[str] = Field(default_factory=list)

    @field_validator('soil_type', mode='before')
    @classmethod
    def validate_soil_type(cls, value):
        if not isinstance(value, str) or value.strip().lower() not in SOIL_TYPES:
            raise ValueError('Invalid soil type')
        return value.strip().lower()

    @field_validator('land_size', mode='before')
    @classmethod
    def validate_land_size(cls, value):
        message = f'Land size must be between {LAND_SIZE_MIN} and {LAND_SIZE_MAX} acres'
        if isinstance(value, bool):
            raise ValueError(message)
        try:
            size = float(value)
        except (TypeError, ValueError):
            raise ValueError(message)
        if not (LAND_SIZE_MIN <= size <= LAND_SIZE_MAX):
            raise ValueError(message)
        return size

    @field_validator('irrigation', mode='before')
    @classmethod
    def validate_irrigation(cls, value):
        if not isinstance(value, str) or value.strip().lower() not in IRRIGATION_METHODS:
            raise ValueError('Invalid irrigation method')
        return value.strip().lower()

    @field_validator('season', mode='before')
    @classmethod
    def validate_season(cls, value):
        if not isinstance(value, str) or value.strip().lower() not in SEASONS:
            raise ValueError('Invalid season')
        return value.strip().lower()

    @field_validator('preferred_language', mode='before')
    @classmethod
    def validate_preferred_language(cls, value):
        if value in (None, ''):
            return None
        return check_language(value)

    @field_validator('additional_notes', mode='before')
    @classmethod
    def validate_additional_notes(cls, value):
        if value is None:
            return ''
        if not isinstance(value, str):
            raise ValueError('Additional notes must be text')
        if len(value) > MAX_NOTES_CHARS:
            raise ValueError('Additional notes cannot exceed 1000 characters')
        return value

    @field_validator('tags', mode='before')
    @classmethod
    def validate_tags(cls, value):
        if value in (None, ''):
            return []
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, list):
            raise ValueError('Tags must be a list of strings')
        tags = [str(tag).strip() for tag in value if str(tag).strip()]
        if len(tags) > MAX_TAGS:
            raise ValueError(f'At most {MAX_TAGS} tags are allowed')
        if any(len(tag) > MAX_TAG_CHARS for tag in tags):
            raise ValueError(f'Tags cannot exceed {MAX_TAG_CHARS} characters')
        return tags


class PlanFollowUpRequest(RequestSchema):
    plan_id: int = Field(alias='planId')
    question: str

    @field_validator('plan_id', mode='before')
    @classmethod
    def validate_plan_id(cls, value):
        return check_identifier(value, 'plan')

    @field_validator('question')
    @classmethod
    def validate_question(cls, value):
        return check_length(value, 'Question', 1, MAX_PLAN_QUESTION_CHARS)


# =============================================================================
# Diagnoses
# =============================================================================

class DiagnosisFollowUpRequest(RequestSchema):
    diagnosis_id: int = Field(alias='diagnosisId')
    question: str

    @field_validator('diagnosis_id', mode='before')
    @classmethod
    def validate_diagnosis_id(cls, value):
        return check_identifier(value, 'diagnosis')

    @field_validator('question')
    @classmethod
    def validate_question(cls, value):
        return check_length(value, 'Question', 1, MAX_DIAGNOSIS_QUESTION_CHARS)


# =============================================================================
# Listing & History
# =============================================================================

class PaginationQuery(RequestSchema):
    page: int = 1
    limit: int = 10

    @field_validator('page', mode='before')
    @classmethod
    def validate_page(cls, value):
        try:
            page = int(value)
        except (TypeError, ValueError):
            raise ValueError('Page must be a positive integer')
        if page < 1:
            raise ValueError('Page must be a positive integer')
        return page

    @field_validator('limit', mode='before')
    @classmethod
    def validate_limit(cls, value):
        try:
            limit = int(value)
        except (TypeError, ValueError):
            raise ValueError('Limit must be between 1 and 50')
        if not (1 <= limit <= 50):
            raise ValueError('Limit must be between 1 and 50')
        return limit


class HistoryQuery(PaginationQuery):
    limit: int = 20
    type: Optional[str] = None

    @field_validator('type', mode='before')
    @classmethod
    def validate_type(cls, value):
        if value in (None, '', 'all'):
            return None
        if value not in HISTORY_FILTERS:
            raise ValueError('Type must be "crop-plans" or "diagnoses"')
        return value


class ClearHistoryRequest(RequestSchema):
    type: Optional[str] = None

    @field_validator('type', mode='before')
    @classmethod
    def validate_type(cls, value):
        if value in (None, '', 'all'):
            return None
        if value not in HISTORY_FILTERS:
            raise ValueError('Type must be "crop-plans" or "diagnoses"')
        return value

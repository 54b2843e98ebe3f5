# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Any, Mapping, Type, TypeVar

import pydantic
from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator

from memberauth.errors import ValidationError, ValidationFailure

NAME_MAX = 50
PASSWORD_MAX = 20

_M = TypeVar("_M", bound=BaseModel)


def _check_email(value: str) -> str:
    """Syntax check only; the address is kept exactly as submitted."""
    if "<" in value or ">" in value:
        raise ValueError("display-name form is not an email address")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(str(e)) from e
    return value


class SignupForm(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    email: str
    name: str = Field(min_length=1, max_length=NAME_MAX)
    # No minimum length beyond non-empty.
    password: str = Field(min_length=1, max_length=PASSWORD_MAX)

    @field_validator("email")
    @classmethod
    def email_syntax(cls, value: str) -> str:
        return _check_email(value)


class LoginForm(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    email: str
    password: str = ""

    @field_validator("email")
    @classmethod
    def email_syntax(cls, value: str) -> str:
        return _check_email(value)


def _failure_for(err: Mapping[str, Any]) -> ValidationFailure:
    kind = str(err.get("type") or "")
    if kind in {"missing", "string_too_short"}:
        return ValidationFailure.MISSING
    if kind == "string_too_long":
        return ValidationFailure.TOO_LONG
    if kind == "value_error" and tuple(err.get("loc") or ()) == ("email",):
        return ValidationFailure.INVALID_EMAIL
    return ValidationFailure.INVALID


def _parse(model: Type[_M], data: Mapping[str, Any]) -> _M:
    # Empty strings count as missing, the same as an absent field.
    cleaned = {k: v for k, v in data.items() if v not in (None, "")}
    try:
        return model.model_validate(cleaned)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc") or ("",)
        raise ValidationError(_failure_for(first), field=str(loc[0])) from e


def parse_signup(data: Mapping[str, Any]) -> SignupForm:
    return _parse(SignupForm, data)


def parse_login(data: Mapping[str, Any]) -> LoginForm:
    return _parse(LoginForm, data)

from __future__ import annotations

import os
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlmodel import Session, select

from itinerary_cli.db import DEFAULT_SETTINGS, USER_ID_SETTING
from itinerary_cli.models import Settings

ALLOWED_SETTING_KEYS: set[str] = {
    "timezone",
    "plan_limit",
    "day_warning_min",
    "default_duration_min",
    USER_ID_SETTING,
}

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_POSITIVE_INT_KEYS: set[str] = {"plan_limit", "day_warning_min"}
_INT_RANGE_KEYS: dict[str, tuple[int, int]] = {
    "default_duration_min": (5, 720),
}


class PrincipalError(RuntimeError):
    """Raised when no current user can be resolved."""


def is_valid_uuid(value: str) -> bool:
    return bool(UUID_PATTERN.fullmatch(value))


def validate_setting(key: str, value: str) -> None:
    if key not in ALLOWED_SETTING_KEYS:
        allowed = ", ".join(sorted(ALLOWED_SETTING_KEYS))
        raise ValueError(f"Unknown setting key: {key}. Allowed keys: {allowed}.")

    if key == "timezone":
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Invalid timezone '{value}'. Expected a valid IANA timezone.") from exc
        return

    if key == USER_ID_SETTING:
        if not is_valid_uuid(value):
            raise ValueError(f"Invalid value for {key}: must be a UUID v4.")
        return

    if key in _POSITIVE_INT_KEYS:
        parsed = _parse_int(value, key)
        if parsed < 1:
            raise ValueError(f"Invalid value for {key}: must be an integer >= 1.")
        return

    if key in _INT_RANGE_KEYS:
        min_value, max_value = _INT_RANGE_KEYS[key]
        parsed = _parse_int(value, key)
        if parsed < min_value or parsed > max_value:
            raise ValueError(
                f"Invalid value for {key}: must be an integer between {min_value} and {max_value}."
            )
        return


def _parse_int(value: str, key: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {key}: must be an integer.") from exc


def list_settings(session: Session) -> list[Settings]:
    return session.exec(select(Settings).order_by(Settings.key)).all()


def upsert_setting(session: Session, key: str, value: str) -> Settings:
    validate_setting(key, value)

    setting = session.get(Settings, key)
    if setting is None:
        setting = Settings(key=key, value=value)
        session.add(setting)
    else:
        setting.value = value

    session.commit()
    session.refresh(setting)
    return setting


def get_int_setting(session: Session, key: str) -> int:
    """Read an integer setting, falling back to DEFAULT_SETTINGS when unset or corrupt."""
    setting = session.get(Settings, key)
    raw = setting.value if setting is not None else DEFAULT_SETTINGS[key]
    try:
        return int(raw)
    except ValueError:
        return int(DEFAULT_SETTINGS[key])


def get_current_user_id(session: Session) -> str:
    """Resolve the acting principal: ITIN_USER_ID first, then the seeded setting."""
    env_user_id = os.getenv("ITIN_USER_ID")
    if env_user_id:
        return env_user_id.strip()

    setting = session.get(Settings, USER_ID_SETTING)
    if setting is None:
        raise PrincipalError("No current user. Run 'itin init' or set ITIN_USER_ID.")
    return setting.value


def get_user_timezone(session: Session) -> ZoneInfo:
    """Display timezone from settings; an unset or unknown name falls back to the default."""
    setting = session.get(Settings, "timezone")
    timezone_name = setting.value if setting is not None else DEFAULT_SETTINGS["timezone"]
    try:
        return ZoneInfo(timezone_name)
    except ZoneInfoNotFoundError:
        return ZoneInfo(DEFAULT_SETTINGS["timezone"])

from __future__ import annotations

import os
import time
from dataclasses import dataclass, fields
from typing import Mapping


@dataclass(frozen=True)
class AttachmentTimeouts:
    # Tuned against the live composer.
    ui_timeout_s: float
    settle_s: float
    anchor_poll_s: float
    visible_poll_s: float
    readiness_poll_s: float
    disabled_retry_s: float
    input_stable_s: float
    user_turn_poll_s: float
    user_turn_missing_poll_s: float


_PROFILE_DEFAULTS: dict[str, AttachmentTimeouts] = {
    "default": AttachmentTimeouts(
        ui_timeout_s=12.0,
        settle_s=0.25,
        anchor_poll_s=0.2,
        visible_poll_s=0.2,
        readiness_poll_s=0.25,
        disabled_retry_s=0.5,
        input_stable_s=1.5,
        user_turn_poll_s=0.25,
        user_turn_missing_poll_s=0.2,
    ),
    # Headless / remote Chrome renders chips noticeably later.
    "slow": AttachmentTimeouts(
        ui_timeout_s=30.0,
        settle_s=0.5,
        anchor_poll_s=0.3,
        visible_poll_s=0.3,
        readiness_poll_s=0.4,
        disabled_retry_s=0.8,
        input_stable_s=2.5,
        user_turn_poll_s=0.4,
        user_turn_missing_poll_s=0.3,
    ),
}

DEFAULT_TIMEOUTS = _PROFILE_DEFAULTS["default"]


def _coerce_profile(raw: str | None) -> str:
    if not isinstance(raw, str) or not raw.strip():
        return "default"
    value = raw.strip().lower()
    return value if value in _PROFILE_DEFAULTS else "default"


def _env_float(env: Mapping[str, str], *keys: str, fallback: float) -> float:
    for key in keys:
        raw = env.get(key)
        if raw is None:
            continue
        try:
            return float(raw)
        except ValueError:
            continue
    return float(fallback)


def resolve_attachment_timeouts(*, profile: str | None = None, env: Mapping[str, str] | None = None) -> AttachmentTimeouts:
    """Profile defaults with per-field CHAT_ATTACH_<FIELD> overrides (e.g. CHAT_ATTACH_UI_TIMEOUT_S)."""
    env_map = os.environ if env is None else env
    name = _coerce_profile(profile if profile is not None else env_map.get("CHAT_ATTACH_TIMEOUT_PROFILE"))
    base = _PROFILE_DEFAULTS[name]
    values = {
        f.name: _env_float(env_map, f"CHAT_ATTACH_{f.name.upper()}", fallback=getattr(base, f.name))
        for f in fields(AttachmentTimeouts)
    }
    return AttachmentTimeouts(**values)


class Clock:
    """Wall clock used by every polling loop; tests substitute a fake one."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


SYSTEM_CLOCK = Clock()


@dataclass(frozen=True)
class Deadline:
    clock: Clock
    at: float

    @classmethod
    def after(cls, timeout: float, clock: Clock | None = None) -> Deadline:
        clk = clock or SYSTEM_CLOCK
        return cls(clock=clk, at=clk.now() + max(0.0, float(timeout)))

    def expired(self) -> bool:
        return self.clock.now() >= self.at

    def remaining(self) -> float:
        return max(0.0, self.at - self.clock.now())

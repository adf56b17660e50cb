from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TARGET_HINT = "chatgpt.com"


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


@dataclass
class BrowserConfig:
    host: str = "127.0.0.1"
    cdp_port: int = 9222
    target_url_hint: str = DEFAULT_TARGET_HINT
    cdp_timeout: float = 5.0
    artifact_dir: str | None = None

    @property
    def http_base(self) -> str:
        return f"http://{self.host}:{self.cdp_port}"

    @staticmethod
    def normalize_hint(raw: str | None) -> str:
        hint = (raw or "").strip().lower()
        if hint in {"*", "any", "first"}:
            return ""
        return hint

    @classmethod
    def from_env(cls) -> BrowserConfig:
        host = (os.environ.get("CHAT_BROWSER_HOST") or "127.0.0.1").strip() or "127.0.0.1"
        port = int(os.environ.get("CHAT_BROWSER_PORT", "9222"))
        hint_raw = os.environ.get("CHAT_BROWSER_TARGET")
        hint = DEFAULT_TARGET_HINT if hint_raw is None else cls.normalize_hint(hint_raw)
        timeout = float(os.environ.get("CHAT_BROWSER_CDP_TIMEOUT", "5"))
        artifact_raw = (os.environ.get("CHAT_BROWSER_ARTIFACT_DIR") or "").strip()
        return cls(
            host=host,
            cdp_port=port,
            target_url_hint=hint,
            cdp_timeout=timeout,
            artifact_dir=expand_path(artifact_raw) if artifact_raw else None,
        )

    def matches_target(self, url: str) -> bool:
        if not self.target_url_hint:
            return True
        return self.target_url_hint in (url or "").lower()

"""Artifact store for postmortem payloads (DOM failure captures).

Keeps log lines short while preserving the full capture on disk.
"""

from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_ID_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]{0,127}$")


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _make_id(prefix: str) -> str:
    suffix = f"{int(time.time() * 1000)}_{os.getpid()}"
    safe_prefix = re.sub(r"[^a-zA-Z0-9_-]+", "_", (prefix or "artifact")).strip("_") or "artifact"
    return f"{safe_prefix}_{suffix}"[:128]


@dataclass(frozen=True)
class ArtifactRef:
    id: str
    kind: str
    bytes: int
    created_at: str
    path: str


class ArtifactStore:
    def __init__(self, base_dir: Path | str) -> None:
        self.base_dir = Path(base_dir).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _validate_id(self, artifact_id: str) -> str:
        if not _ID_RE.match(artifact_id or ""):
            raise ValueError("invalid artifact id")
        return artifact_id

    def put_json(self, *, kind: str, obj: Any) -> ArtifactRef:
        artifact_id = self._validate_id(_make_id(kind))
        path = self.base_dir / f"{artifact_id}.json"
        payload = json.dumps(
            {"kind": kind, "createdAt": _now_iso(), "data": obj},
            ensure_ascii=False,
            indent=2,
            default=str,
        )
        path.write_text(payload, encoding="utf-8")
        return ArtifactRef(
            id=artifact_id,
            kind=kind,
            bytes=len(payload.encode("utf-8")),
            created_at=_now_iso(),
            path=str(path),
        )

    def get_json(self, artifact_id: str) -> Any:
        path = self.base_dir / f"{self._validate_id(artifact_id)}.json"
        return json.loads(path.read_text(encoding="utf-8"))

from __future__ import annotations
import uuid
from dataclasses import dataclass, replace
from typing import Dict

SESSION_ID_HEADER = "Helicone-Session-Id"
SESSION_PATH_HEADER = "Helicone-Session-Path"
SESSION_NAME_HEADER = "Helicone-Session-Name"


def _join_path(base: str, segment: str) -> str:
    base = "/" + (base or "").strip("/")
    segment = (segment or "").strip("/")
    if not segment:
        return base
    return f"{base.rstrip('/')}/{segment}"


@dataclass(frozen=True)
class HeliconeSession:
    """
    Correlation identifiers Helicone uses to group calls into one session.
    Values are opaque strings; `path` is hierarchical ("/a/b/c").
    """
    session_id: str
    path: str
    name: str

    @classmethod
    def new(cls, name: str, path: str = "/") -> "HeliconeSession":
        return cls(session_id=str(uuid.uuid4()), path=_join_path(path, ""), name=name)

    def child(self, segment: str) -> "HeliconeSession":
        return replace(self, path=_join_path(self.path, segment))

    def at(self, path: str) -> "HeliconeSession":
        return replace(self, path=_join_path(path, ""))

    def headers(self) -> Dict[str, str]:
        return {
            SESSION_ID_HEADER: self.session_id,
            SESSION_PATH_HEADER: self.path,
            SESSION_NAME_HEADER: self.name,
        }

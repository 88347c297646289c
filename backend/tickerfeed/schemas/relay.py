from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

# raw: target URL is URL-encoded into a query parameter
# path: target URL is appended verbatim as a path suffix
# wrapped: like raw, but the body is a JSON envelope with a "contents" string
RelayKind = Literal["raw", "path", "wrapped"]


class RelayDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: RelayKind
    base_url: str

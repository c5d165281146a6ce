"""Settings for saved-state logging."""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .serializers import Sizer, get_sizer


class StateSizeSettings(BaseModel):
    """Configuration used by :func:`statesize.lifecycle.start_logging`."""

    model_config = ConfigDict(frozen=True)

    tag: str = Field(default="statesize", min_length=1, description="Logger name for reports")
    priority: int = Field(default=logging.DEBUG, ge=0, description="stdlib logging level")
    depth: int = Field(default=-1, description="Breakdown depth, negative for unlimited")
    wire_format: Literal["msgpack", "json"] = Field(
        default="json", description="Encoding whose size is reported"
    )
    threshold_bytes: int = Field(
        default=0, ge=0, description="Only log state at least this large"
    )

    def sizer(self) -> Sizer:
        """Return the size primitive for the configured wire format."""
        return get_sizer(self.wire_format)

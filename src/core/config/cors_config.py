"""
CORS configuration for the dashboard that drives the agent API.
"""

from dataclasses import dataclass, field


@dataclass
class CORSConfig:
    """Origins, headers and methods the agent API accepts cross-origin."""

    origins: list[str]
    headers: list[str] = field(default_factory=lambda: ["*"])
    methods: list[str] = field(default_factory=lambda: ["GET", "POST", "PATCH", "OPTIONS"])
    allow_credentials: bool = True

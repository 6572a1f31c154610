import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_URL = "https://api.zero.inc"


@dataclass
class Config:
    """Configuration for the Zero CRM server."""
    api_key: Optional[str] = os.getenv("ZERO_API_KEY")
    api_url: str = os.getenv("ZERO_API_URL", DEFAULT_API_URL)

    # Workspace picked on first use when several are available
    workspace_name: Optional[str] = os.getenv("ZERO_WORKSPACE_NAME")

    # HTTP transport
    timeout_seconds: float = float(os.getenv("ZERO_TIMEOUT_SECONDS", "30"))

    log_level: str = os.getenv("ZERO_LOG_LEVEL", "INFO")

    @classmethod
    def from_env(cls) -> "Config":
        return cls()

    def validate(self) -> List[str]:
        """Return the names of required settings that are missing."""
        missing = []
        if not self.api_key:
            missing.append("ZERO_API_KEY")
        return missing

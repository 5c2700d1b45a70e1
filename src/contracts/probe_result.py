from typing import Optional

from pydantic import BaseModel


class ProbeResult(BaseModel):
    """
    Outcome of a single health probe against a backend.
    """

    healthy: bool
    status_code: Optional[int] = None
    elapsed: float = 0.0
    error: Optional[str] = None

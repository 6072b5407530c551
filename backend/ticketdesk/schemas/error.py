"""Error body shared by every non-2xx JSON response."""
from typing import Optional

from pydantic import BaseModel


class ErrorOut(BaseModel):
    message: str
    errors: Optional[list[str]] = None

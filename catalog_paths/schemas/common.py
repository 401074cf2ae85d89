from typing import Optional

from pydantic import BaseModel


class HealthStatus(BaseModel):
    status: str
    database: str
    cache_backend: Optional[str] = None

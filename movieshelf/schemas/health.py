# movieshelf/schemas/health.py

from pydantic import BaseModel


class HealthOut(BaseModel):
    status: str
    uptimeSeconds: float
    timestamp: str

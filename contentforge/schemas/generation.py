from pydantic import BaseModel, Field
from typing import Optional, List, Dict


class GenerationRequest(BaseModel):
    """One call to the upstream generator."""
    topic: str
    platform: str
    tone: str = "professional"
    reference_body: Optional[str] = None


class GeneratedVariant(BaseModel):
    platform: str
    text: str
    attempt: int = Field(..., description="1-based attempt index within the platform")
    char_count: int
    over_limit: bool = False


class AttemptDiagnostic(BaseModel):
    attempt: int
    error: str


class DegradedPlatform(BaseModel):
    """Why a platform's attempts mostly failed."""
    platform: str
    attempts: int
    failures: int
    threshold: int
    diagnostics: List[AttemptDiagnostic] = Field(default_factory=list)


class BatchResult(BaseModel):
    topic: str
    redundancy: int
    variants: Dict[str, List[GeneratedVariant]] = Field(default_factory=dict)
    degraded: Dict[str, DegradedPlatform] = Field(default_factory=dict)

    def is_degraded(self, platform: str) -> bool:
        return platform in self.degraded

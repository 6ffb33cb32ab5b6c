from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class CaptureTarget:
    """The page and selector a run captures."""
    url: str
    selector: str


@dataclass
class ElementCaptureResult:
    """Output of a single capture tier (browser or fallback)."""
    images: List[bytes] = field(default_factory=list)
    error: Optional[str] = None
    diagnostic_png: Optional[bytes] = None
    raw_html: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def count(self) -> int:
        return len(self.images)


@dataclass
class CaptureResult:
    """Outcome of a capture run as reported to the caller."""
    succeeded: bool
    count: int = 0
    source: Optional[str] = None

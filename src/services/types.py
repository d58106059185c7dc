from dataclasses import dataclass
from typing import Literal, Optional


@dataclass
class FetchedContent:
    source: Literal["social", "website"]
    url: str
    title: Optional[str]
    text: str
    image_url: Optional[str]

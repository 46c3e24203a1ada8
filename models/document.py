"""Document structure models: outline chapters and text chunks."""

from dataclasses import dataclass, field


@dataclass
class TextRange:
    """Half-open character span [start, end) into the document text."""
    start: int = 0
    end: int = 0

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


@dataclass
class ChapterInfo:
    """One resolved section of a document outline."""
    index: int = 0
    title: str = ""
    summary: str = ""
    start_page: int = 1
    end_page: int = 1
    estimated_tokens: int = 0
    text_range: TextRange = field(default_factory=TextRange)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "title": self.title,
            "summary": self.summary,
            "startPage": self.start_page,
            "endPage": self.end_page,
            "estimatedTokens": self.estimated_tokens,
            "textRange": self.text_range.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChapterInfo":
        rng = data.get("textRange") or {}
        return cls(
            index=int(data.get("index", 0)),
            title=data.get("title", ""),
            summary=data.get("summary", ""),
            start_page=int(data.get("startPage", 1)),
            end_page=int(data.get("endPage", 1)),
            estimated_tokens=int(data.get("estimatedTokens", 0)),
            text_range=TextRange(start=int(rng.get("start", 0)), end=int(rng.get("end", 0))),
        )


@dataclass
class DocumentOutline:
    """Resolved chapter structure of a document. Never has zero chapters once built."""
    total_pages: int = 0
    total_tokens: int = 0
    chapters: list[ChapterInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalPages": self.total_pages,
            "totalTokens": self.total_tokens,
            "chapters": [c.to_dict() for c in self.chapters],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentOutline":
        return cls(
            total_pages=int(data.get("totalPages", 0)),
            total_tokens=int(data.get("totalTokens", 0)),
            chapters=[ChapterInfo.from_dict(c) for c in data.get("chapters", [])],
        )


@dataclass
class TextChunk:
    """A bounded, possibly overlapping slice of text sent as one LLM generation unit."""
    index: int = 0
    text: str = ""
    token_count: int = 0
    start_offset: int = 0
    end_offset: int = 0

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "text": self.text,
            "tokenCount": self.token_count,
            "startOffset": self.start_offset,
            "endOffset": self.end_offset,
        }

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

UNSPECIFIED = "<unspecified>"


@dataclass(frozen=True, slots=True)
class DocumentMetadata:
    title: str = UNSPECIFIED
    author: str = UNSPECIFIED
    published: str = UNSPECIFIED
    description: str = UNSPECIFIED
    subjects: str = UNSPECIFIED

    def merged_with(self, found: "DocumentMetadata") -> "DocumentMetadata":
        """Take every non-empty field from ``found``, keep ours otherwise."""
        return replace(
            self,
            title=found.title or self.title,
            author=found.author or self.author,
            published=found.published or self.published,
            description=found.description or self.description,
            subjects=found.subjects or self.subjects,
        )


@dataclass(frozen=True, slots=True)
class PageImage:
    id: str
    filename: str
    width: str
    height: str
    format: str


@dataclass(slots=True)
class ManifestData:
    copyright: str
    iiif_url: str
    metadata: DocumentMetadata
    pages: list[PageImage] = field(default_factory=list)
    url: str = ""

    def template_context(self) -> dict[str, Any]:
        return {
            "Copyright": self.copyright,
            "URL": self.url,
            "IIIFUrl": self.iiif_url,
            "Metadata": {
                "Title": self.metadata.title,
                "Author": self.metadata.author,
                "Published": self.metadata.published,
                "Description": self.metadata.description,
                "Subjects": self.metadata.subjects,
            },
            "Pages": [
                {
                    "Id": page.id,
                    "Filename": page.filename,
                    "Width": page.width,
                    "Height": page.height,
                    "Format": page.format,
                }
                for page in self.pages
            ],
        }

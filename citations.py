"""Turn assistant message content into answer text plus cited source files."""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


def _get_field(obj, field_name: str):
    if isinstance(obj, dict):
        return obj.get(field_name)
    return getattr(obj, field_name, None)


@dataclass(frozen=True)
class FileCitationAnnotation:
    file_id: str
    quote: str = ""


@dataclass(frozen=True)
class TextPart:
    value: str
    annotations: tuple[FileCitationAnnotation, ...] = ()


@dataclass(frozen=True)
class OtherPart:
    type: str | None = None


ContentPart = TextPart | OtherPart


@dataclass(frozen=True)
class Citation:
    file_id: str
    quote: str = ""
    filename: str | None = None

    @property
    def display_name(self) -> str:
        return self.filename or self.file_id


@dataclass(frozen=True)
class Answer:
    text: str = ""
    citations: list[Citation] = field(default_factory=list)


def _get_file_citation(annotation):
    file_citation = _get_field(annotation, "file_citation")
    if file_citation:
        return file_citation
    if _get_field(annotation, "type") == "file_citation":
        return annotation
    return None


def parse_annotation(raw) -> FileCitationAnnotation | None:
    """Return the file citation carried by ``raw``, or None for other annotations."""
    file_citation = _get_file_citation(raw)
    if not file_citation:
        return None
    file_id = _get_field(file_citation, "file_id")
    if not file_id:
        return None
    return FileCitationAnnotation(file_id=file_id, quote=_get_field(file_citation, "quote") or "")


def parse_content_part(raw) -> ContentPart:
    """Map an SDK content block (object or dict) onto TextPart or OtherPart."""
    if isinstance(raw, (TextPart, OtherPart)):
        return raw
    part_type = _get_field(raw, "type")
    text = _get_field(raw, "text")
    if part_type not in (None, "text") or text is None:
        return OtherPart(type=part_type)

    if isinstance(text, str):
        return TextPart(value=text)
    value = _get_field(text, "value")
    if not isinstance(value, str):
        return OtherPart(type=part_type)
    annotations = []
    for raw_annotation in _get_field(text, "annotations") or []:
        annotation = parse_annotation(raw_annotation)
        if annotation is not None:
            annotations.append(annotation)
    return TextPart(value=value, annotations=tuple(annotations))


def dedupe_citations(citations: Iterable[Citation]) -> list[Citation]:
    """Keep the first citation per file id, in first-seen order."""
    seen: dict[str, Citation] = {}
    for citation in citations:
        if citation.file_id not in seen:
            seen[citation.file_id] = citation
    return list(seen.values())


def extract_answer(content) -> Answer:
    """Join the text parts of a message and collect its deduplicated citations."""
    segments: list[str] = []
    citations: list[Citation] = []

    for raw in content or []:
        part = parse_content_part(raw)
        if isinstance(part, OtherPart):
            logger.debug("Skipping non-text content part: %s", part.type)
            continue
        if not part.value:
            continue
        segments.append(part.value)
        for annotation in part.annotations:
            citations.append(Citation(file_id=annotation.file_id, quote=annotation.quote))

    return Answer(text="\n\n".join(segments), citations=dedupe_citations(citations))


def resolve_filenames(citations: Iterable[Citation], lookup: Callable[[str], str]) -> list[Citation]:
    """Attach filenames from ``lookup``; a failed lookup leaves the raw file id for display."""
    resolved = []
    for citation in citations:
        try:
            filename = lookup(citation.file_id)
        except Exception as e:
            logger.warning("Could not resolve filename for %s: %s", citation.file_id, e)
            filename = None
        resolved.append(replace(citation, filename=filename or None))
    return resolved

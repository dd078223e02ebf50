"""Virtual contiguous-text view over the text runs of one archive part.

Word splits visually contiguous text into runs for reasons unrelated to
content (spell-check boundaries, revision ids, incremental edits). The index
concatenates every <w:t> text in reading order into ``combined_text`` and
keeps the mapping back to the physical elements, so searches work on the
logical text and edits are projected onto exactly the affected runs.

Pattern searches never cross a paragraph boundary: each match lies inside
the text of one <w:p>, and word-boundary guards see the paragraph edge as
the end of the text. Values inserted with ``protect=True`` are recorded as
protected spans; later searches on the same part skip any match touching
them, so text written by one pass is never rewritten by another.

Every edit returns a fresh index; offsets of an index are never reused after
the markup they describe has changed.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from itertools import groupby

from core.utils.docx_xml import (
    TEXT_ELEMENT_RE,
    decode_part,
    escape_text,
    find_enclosing_run,
    paragraph_boundaries,
    parse_part,
    render_text_element,
    run_holds_only_text,
    run_open_positions,
    unescape_text,
)


@dataclass(frozen=True)
class Span:
    """Half-open range in combined-text coordinates."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end <= self.start:
            raise ValueError(f"Invalid span: {self.start}..{self.end}")


@dataclass(frozen=True)
class Segment:
    """One <w:t> element, its owning run and its text."""

    index: int
    element_start: int
    element_end: int
    attrs: str
    raw: str
    text: str
    text_start: int
    run_start: int | None
    run_end: int | None
    paragraph: int

    @property
    def text_end(self) -> int:
        return self.text_start + len(self.text)

    def raw_offset(self, offset: int) -> int:
        """Map an offset in ``text`` to the same position in the escaped ``raw``."""

        if "&" not in self.raw:
            return offset
        raw_position = 0
        for _ in range(offset):
            if self.raw[raw_position] == "&":
                raw_position = self.raw.index(";", raw_position) + 1
            else:
                raw_position += 1
        return raw_position


@dataclass(frozen=True)
class TextMatch:
    """A pattern match inside one paragraph, in combined-text coordinates.

    ``group`` is the number of the last matched group, as in re.Match.lastindex.
    """

    span: Span
    text: str
    group: int | None


class RunTextIndex:
    """Combined-text index over a WordprocessingML part."""

    def __init__(self, xml: str, *, part: str = "", protected: tuple[Span, ...] = ()) -> None:
        self._xml = xml
        self._part = part
        self._segments = _build_segments(xml)
        self._combined_text = "".join(segment.text for segment in self._segments)
        self._lookup = [segment for segment in self._segments if segment.text]
        self._lookup_starts = [segment.text_start for segment in self._lookup]
        self._paragraphs = _paragraph_ranges(self._segments)
        self._paragraph_ends = [end for _, end in self._paragraphs]
        self._protected = protected

    @classmethod
    def from_part(cls, data: bytes, part: str) -> RunTextIndex:
        """Build an index from raw part bytes, validating well-formedness first."""

        parse_part(data, part)
        return cls(decode_part(data, part), part=part)

    @property
    def xml(self) -> str:
        return self._xml

    @property
    def part(self) -> str:
        return self._part

    @property
    def segments(self) -> list[Segment]:
        return list(self._segments)

    @property
    def combined_text(self) -> str:
        return self._combined_text

    @property
    def protected(self) -> tuple[Span, ...]:
        return self._protected

    def to_bytes(self) -> bytes:
        return self._xml.encode("utf-8")

    def with_xml(self, xml: str) -> RunTextIndex:
        """Return an index over formatting-only edits; text and protection carry over."""

        index = RunTextIndex(xml, part=self._part, protected=self._protected)
        if index.combined_text != self._combined_text:
            raise ValueError(f"Markup edit changed the text of part {self._part}")
        return index

    def find_all(self, search_text: str) -> list[Span]:
        """Return non-overlapping occurrences of search_text, left to right."""

        if not search_text:
            return []
        return self.find_pattern(re.compile(re.escape(search_text)))

    def find_pattern(self, pattern: re.Pattern[str], start: int = 0) -> list[Span]:
        """Return non-overlapping, non-empty matches from start on, left to right."""

        spans: list[Span] = []
        while True:
            found = self.search(pattern, start)
            if found is None:
                return spans
            spans.append(found.span)
            start = found.span.end

    def search(self, pattern: re.Pattern[str], position: int = 0) -> TextMatch | None:
        """Return the leftmost non-empty match starting at or after position.

        Each paragraph is searched on its own text, so a match never spans
        two paragraphs. Matches touching a protected span are passed over.
        """

        first = bisect_right(self._paragraph_ends, position)
        for start, end in self._paragraphs[first:]:
            text = self._combined_text[start:end]
            offset = max(position - start, 0)
            while offset <= len(text):
                found = pattern.search(text, offset)
                if found is None:
                    break
                span_start = start + found.start()
                span_end = start + found.end()
                if span_end > span_start and not self._is_protected(span_start, span_end):
                    return TextMatch(
                        span=Span(span_start, span_end),
                        text=found.group(0),
                        group=found.lastindex,
                    )
                offset = found.start() + 1
        return None

    def replace_span(
        self,
        span: Span,
        replacement: str,
        *,
        key: str | None = None,
        protect: bool = False,
    ) -> RunTextIndex:
        """Replace combined text in span, touching only the runs it covers.

        Same run: the run text becomes prefix + replacement + suffix.
        Across runs: the first run keeps its prefix and receives the whole
        replacement, interior runs are emptied (their run properties stay),
        the last run keeps only its suffix. With ``protect`` the inserted
        text becomes a protected span.

        Raises ReplacementEncodingError (tagged with ``key``) when the
        replacement cannot be written as XML text.
        """

        if span.end > len(self._combined_text):
            raise ValueError(f"Span {span.start}..{span.end} exceeds combined text")

        escaped = escape_text(replacement, key=key)
        first = self._segment_at(span.start)
        last = self._segment_at(span.end - 1)
        prefix = first.raw[: first.raw_offset(span.start - first.text_start)]
        suffix = last.raw[last.raw_offset(span.end - last.text_start) :]

        protected = self._shift_protected(span.start, span.end, len(replacement))
        if protect and replacement:
            protected = (*protected, Span(span.start, span.start + len(replacement)))

        if first.index == last.index:
            return self._with_raw_texts({first.index: prefix + escaped + suffix}, protected)

        edits = {first.index: prefix + escaped}
        for segment in self._segments[first.index + 1 : last.index]:
            edits[segment.index] = ""
        edits[last.index] = suffix
        return self._with_raw_texts(edits, protected)

    def set_segment_text(
        self, segment_index: int, text: str, *, key: str | None = None
    ) -> RunTextIndex:
        """Overwrite the text of one segment outright."""

        if not 0 <= segment_index < len(self._segments):
            raise IndexError(f"Segment {segment_index} out of range")
        segment = self._segments[segment_index]
        protected = self._shift_protected(segment.text_start, segment.text_end, len(text))
        return self._with_raw_texts({segment_index: escape_text(text, key=key)}, protected)

    def merge_segments(self, first_index: int, last_index: int) -> RunTextIndex:
        """Move the text of segments first..last into the first segment's run.

        Trailing runs that hold nothing but their text are removed; any other
        trailing run keeps its structure with its text emptied. Combined text
        is unchanged.
        """

        segments = self._segments[first_index : last_index + 1]
        if len(segments) < 2:
            return self

        removals: list[tuple[int, int]] = []
        edits = {first_index: "".join(segment.raw for segment in segments)}
        for segment in segments[1:]:
            if self._is_removable_run(segment):
                assert segment.run_start is not None and segment.run_end is not None
                removals.append((segment.run_start, segment.run_end))
            else:
                edits[segment.index] = ""
        return self._with_raw_texts(edits, self._protected, removals=removals)

    def _segment_at(self, position: int) -> Segment:
        slot = bisect_right(self._lookup_starts, position) - 1
        if slot >= 0:
            segment = self._lookup[slot]
            if segment.text_start <= position < segment.text_end:
                return segment
        raise ValueError(f"Position {position} is outside combined text")

    def _is_protected(self, start: int, end: int) -> bool:
        return any(span.start < end and start < span.end for span in self._protected)

    def _shift_protected(self, start: int, end: int, length: int) -> tuple[Span, ...]:
        """Protected spans after start..end is replaced by length characters.

        Spans before the edit stay, spans behind it move, spans it touches are dropped.
        """

        delta = length - (end - start)
        kept: list[Span] = []
        for span in self._protected:
            if span.end <= start:
                kept.append(span)
            elif span.start >= end:
                kept.append(Span(span.start + delta, span.end + delta))
        return tuple(kept)

    def _is_removable_run(self, segment: Segment) -> bool:
        if segment.run_start is None or segment.run_end is None:
            return False
        shares_run = any(
            other.run_start == segment.run_start and other.index != segment.index
            for other in self._segments
        )
        if shares_run:
            return False
        return run_holds_only_text(self._xml[segment.run_start : segment.run_end])

    def _with_raw_texts(
        self,
        edits: dict[int, str],
        protected: tuple[Span, ...],
        removals: list[tuple[int, int]] | None = None,
    ) -> RunTextIndex:
        changes: list[tuple[int, int, str]] = []
        for segment_index, raw in edits.items():
            segment = self._segments[segment_index]
            changes.append(
                (
                    segment.element_start,
                    segment.element_end,
                    render_text_element(segment.attrs, raw),
                )
            )
        for start, end in removals or []:
            changes.append((start, end, ""))

        xml = self._xml
        for start, end, replacement in sorted(changes, key=lambda item: item[0], reverse=True):
            xml = xml[:start] + replacement + xml[end:]
        return RunTextIndex(xml, part=self._part, protected=protected)


def _build_segments(xml: str) -> list[Segment]:
    run_starts = run_open_positions(xml)
    boundaries = paragraph_boundaries(xml)
    segments: list[Segment] = []
    cursor = 0
    for match in TEXT_ELEMENT_RE.finditer(xml):
        raw = match.group("text") or ""
        text = unescape_text(raw)
        run_range = find_enclosing_run(xml, run_starts, match.start(), match.end())
        segments.append(
            Segment(
                index=len(segments),
                element_start=match.start(),
                element_end=match.end(),
                attrs=match.group("attrs") or "",
                raw=raw,
                text=text,
                text_start=cursor,
                run_start=run_range[0] if run_range else None,
                run_end=run_range[1] if run_range else None,
                paragraph=bisect_right(boundaries, match.start()),
            )
        )
        cursor += len(text)
    return segments


def _paragraph_ranges(segments: list[Segment]) -> list[tuple[int, int]]:
    """Combined-text (start, end) of each paragraph that holds text."""

    ranges: list[tuple[int, int]] = []
    for _, group in groupby(segments, key=lambda segment: segment.paragraph):
        members = list(group)
        start, end = members[0].text_start, members[-1].text_end
        if end > start:
            ranges.append((start, end))
    return ranges

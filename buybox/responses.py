"""Best-effort parsers that turn free-text completions into structured fields.

Remote engines are asked for one of three answer shapes:

- **sections**  upper-case section headers (``ARCHETYPE ANALYSIS`` ...) followed
  by prose, scanned line by line;
- **markdown**  a two-part report (``Part 1: ... Thesis`` / ``Part 2: ...
  Buybox``) with a ``| Criterion | Your Target Profile | Rationale |`` table;
- **json**      a single JSON object, optionally inside a code fence.

Parsing is deliberately shallow.  Anything that cannot be recognized raises
``ResponseParseError``; engines turn that into a low-confidence fallback
result instead of failing the request.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from buybox.report import parse_buybox_table
from buybox.schemas import BuyboxRow, IndustryMatch
from buybox.scorer import ARCHETYPES

MAX_INDUSTRIES = 5


class ResponseParseError(Exception):
    """Completion text did not contain the expected structure."""


@dataclass
class ParsedResponse:
    archetype_key: str
    composite_score: float | None = None
    archetype_confidence: float | None = None
    overall_confidence: float | None = None
    industries: list[IndustryMatch] = field(default_factory=list)
    narrative: str | None = None
    buybox_rows: list[BuyboxRow] = field(default_factory=list)
    sections: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Shared extractors
# ---------------------------------------------------------------------------

_SCORE_RE = re.compile(
    r"(\d+\.?\d*)\s*/\s*5|(\d+\.?\d*)\s*out of\s*5|score.*?(\d+\.?\d*)", re.IGNORECASE,
)
_CONFIDENCE_RE = re.compile(
    r"(\d+)%|confidence.*?(\d+\.?\d*)|(\d+\.?\d*)\s*confidence", re.IGNORECASE,
)
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)
_HEADER_MARKUP = "#*0123456789. \t"

# Display name as it may appear in prose -> canonical industry key
INDUSTRY_ALIASES: tuple[tuple[str, str], ...] = (
    ("technology", "technology"),
    ("healthcare", "healthcare"),
    ("finance", "finance"),
    ("education", "education"),
    ("retail", "retail"),
    ("ecommerce", "ecommerce"),
    ("e-commerce", "ecommerce"),
    ("service", "service"),
    ("manufacturing", "manufacturing"),
    ("real estate", "real_estate"),
    ("real_estate", "real_estate"),
)


def _first_group(match: re.Match[str] | None) -> float | None:
    if not match:
        return None
    for group in match.groups():
        if group:
            return float(group)
    return None


def extract_score(text: str) -> float | None:
    """First ``N/5``-style score in *text*, clamped to 1..5."""
    value = _first_group(_SCORE_RE.search(text or ""))
    if value is None:
        return None
    return max(1.0, min(5.0, value))


def extract_confidence(text: str) -> float | None:
    """First percentage or confidence figure in *text*, as a 0..1 fraction."""
    value = _first_group(_CONFIDENCE_RE.search(text or ""))
    if value is None:
        return None
    if value > 1:
        value /= 100
    return max(0.0, min(1.0, value))


def find_archetype(text: str) -> str | None:
    """Competency key of the earliest archetype title mentioned in *text*."""
    lowered = (text or "").lower()
    best: tuple[int, str] | None = None
    for key, profile in ARCHETYPES.items():
        needle = profile.title.lower().removeprefix("the ")
        pos = lowered.find(needle)
        if pos >= 0 and (best is None or pos < best[0]):
            best = (pos, key)
    return best[1] if best else None


def find_industries(text: str) -> list[IndustryMatch]:
    """Known industries named in *text*, ranked by first mention."""
    lowered = (text or "").lower()
    positions: dict[str, int] = {}
    for alias, key in INDUSTRY_ALIASES:
        pos = lowered.find(alias)
        if pos >= 0 and (key not in positions or pos < positions[key]):
            positions[key] = pos
    ranked = sorted(positions, key=positions.__getitem__)[:MAX_INDUSTRIES]
    return [
        IndustryMatch(
            industry=industry,
            relevance_score=10 - i * 2,
            confidence=round(0.9 - i * 0.1, 2),
        )
        for i, industry in enumerate(ranked)
    ]


def extract_sections(text: str, headers: tuple[str, ...]) -> dict[str, str]:
    """Split *text* into sections keyed by the header a line starts with.

    Headers match case-sensitively at the start of a line, after any markdown
    ``#``/``*`` markup or list numbering, so prose that mentions a section by
    name stays where it is.  Text on the header line after the header itself
    (``PRIMARY ARCHETYPE: ...``) belongs to that section.
    """
    sections: dict[str, str] = {}
    current = ""
    for line in (text or "").splitlines():
        stripped = line.strip()
        bare = stripped.lstrip(_HEADER_MARKUP)
        header = next((h for h in headers if bare.startswith(h)), None)
        if header:
            current = header
            rest = bare[len(header):].strip(" :*#-")
            sections[current] = rest + "\n" if rest else ""
        elif current and stripped:
            sections[current] += stripped + "\n"
    return sections


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class ResponseAdapter:
    """Turn completion text into a ``ParsedResponse`` or raise ``ResponseParseError``."""

    def parse(self, text: str) -> ParsedResponse:
        raise NotImplementedError


class SectionedResponseAdapter(ResponseAdapter):
    """Upper-case section headers followed by prose."""

    def __init__(
        self,
        headers: tuple[str, ...],
        archetype_section: str,
        industry_section: str,
        confidence_section: str,
        thesis_section: str,
        buybox_section: str | None = None,
    ):
        self.headers = headers
        self.archetype_section = archetype_section
        self.industry_section = industry_section
        self.confidence_section = confidence_section
        self.thesis_section = thesis_section
        self.buybox_section = buybox_section

    def parse(self, text: str) -> ParsedResponse:
        sections = extract_sections(text, self.headers)
        if not sections:
            raise ResponseParseError("no recognized section headers")
        archetype_text = sections.get(self.archetype_section, "")
        key = find_archetype(archetype_text)
        if key is None:
            raise ResponseParseError(f"no archetype named in {self.archetype_section}")
        buybox_rows: list[BuyboxRow] = []
        if self.buybox_section:
            buybox_rows = parse_buybox_table(sections.get(self.buybox_section, ""))
        if not buybox_rows:
            buybox_rows = parse_buybox_table(text)
        thesis = sections.get(self.thesis_section, "").strip() or None
        return ParsedResponse(
            archetype_key=key,
            composite_score=extract_score(archetype_text),
            archetype_confidence=extract_confidence(archetype_text),
            overall_confidence=extract_confidence(sections.get(self.confidence_section, "")),
            industries=find_industries(sections.get(self.industry_section, "")),
            narrative=thesis,
            buybox_rows=buybox_rows,
            sections=sections,
        )


class MarkdownReportAdapter(ResponseAdapter):
    """Two-part markdown report: thesis prose, then a buybox table."""

    _PART1_RE = re.compile(r"part\s*1\b[^\n]*\n", re.IGNORECASE)
    _PART2_RE = re.compile(r"part\s*2\b[^\n]*\n", re.IGNORECASE)

    def parse(self, text: str) -> ParsedResponse:
        text = text or ""
        start = self._PART1_RE.search(text)
        end = self._PART2_RE.search(text)
        if start:
            thesis = text[start.end(): end.start() if end and end.start() > start.end() else len(text)]
        elif end:
            thesis = text[: end.start()]
        else:
            lines = text.splitlines()
            first_row = next((i for i, line in enumerate(lines) if line.lstrip().startswith("|")), len(lines))
            thesis = "\n".join(lines[:first_row])
        # drop leftover heading markers from the thesis body
        thesis = "\n".join(
            line for line in thesis.strip().splitlines() if not line.lstrip().startswith("#")
        ).strip()

        rows = parse_buybox_table(text[end.start():] if end else text)
        if not thesis and not rows:
            raise ResponseParseError("no thesis or buybox table found")

        key = None
        for bold in _BOLD_RE.findall(thesis):
            key = find_archetype(bold)
            if key:
                break
        if key is None:
            key = find_archetype(thesis)
        if key is None:
            raise ResponseParseError("no archetype named in thesis")

        industry_text = next((r.target for r in rows if r.criterion.lower().startswith("industr")), "")
        return ParsedResponse(
            archetype_key=key,
            composite_score=extract_score(thesis) if re.search(r"/\s*5|out of\s*5", thesis) else None,
            archetype_confidence=None,
            overall_confidence=extract_confidence(thesis) if "%" in thesis else None,
            industries=find_industries(industry_text or thesis),
            narrative=thesis or None,
            buybox_rows=rows,
        )


class JsonResponseAdapter(ResponseAdapter):
    """A JSON object, bare or inside a code fence."""

    @staticmethod
    def load(text: str) -> dict[str, Any]:
        text = (text or "").strip()
        m = _JSON_FENCE_RE.search(text)
        if m:
            text = m.group(1)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ResponseParseError(f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ResponseParseError("JSON payload is not an object")
        return data

    def parse(self, text: str) -> ParsedResponse:
        data = self.load(text)
        archetype = data.get("archetype")
        label = archetype.get("title", "") if isinstance(archetype, dict) else str(archetype or "")
        key = label if label in ARCHETYPES else find_archetype(label)
        if key is None:
            raise ResponseParseError(f"unknown archetype {label!r}")

        industries: list[IndustryMatch] = []
        for item in data.get("industries") or []:
            name = item.get("industry") if isinstance(item, dict) else item
            found = find_industries(str(name or ""))
            if not found or any(m.industry == found[0].industry for m in industries):
                continue
            conf = item.get("confidence") if isinstance(item, dict) else None
            confidence = _fraction(conf)
            if confidence is None:
                confidence = round(0.9 - len(industries) * 0.1, 2)
            industries.append(IndustryMatch(
                industry=found[0].industry,
                relevance_score=10 - len(industries) * 2,
                confidence=confidence,
            ))
            if len(industries) >= MAX_INDUSTRIES:
                break

        rows = []
        for item in data.get("buybox") or []:
            if isinstance(item, dict) and {"criterion", "target", "rationale"} <= item.keys():
                rows.append(BuyboxRow(
                    criterion=str(item["criterion"]),
                    target=str(item["target"]),
                    rationale=str(item["rationale"]),
                ))

        score = data.get("composite_score")
        return ParsedResponse(
            archetype_key=key,
            composite_score=max(1.0, min(5.0, float(score))) if isinstance(score, (int, float)) else None,
            archetype_confidence=_fraction(data.get("archetype_confidence")),
            overall_confidence=_fraction(data.get("confidence")),
            industries=industries,
            narrative=str(data["thesis"]) if data.get("thesis") else None,
            buybox_rows=rows,
        )


def _fraction(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if value > 1:
        value /= 100
    return max(0.0, min(1.0, value))


# ---------------------------------------------------------------------------
# Known formats
# ---------------------------------------------------------------------------

ANALYST_SECTIONS = (
    "ARCHETYPE ANALYSIS",
    "COMPETENCY BREAKDOWN",
    "INDUSTRY ASSESSMENT",
    "CONFIDENCE EVALUATION",
    "ACQUISITION STRATEGY",
    "FINANCIAL MODELING",
)

ADVISOR_SECTIONS = (
    "PRIMARY ARCHETYPE",
    "COMPETENCY ANALYSIS",
    "TARGET INDUSTRIES",
    "FINANCIAL PARAMETERS",
    "ACQUISITION THESIS",
    "BUYBOX CRITERIA",
    "CONFIDENCE ASSESSMENT",
)


def analyst_adapter() -> SectionedResponseAdapter:
    return SectionedResponseAdapter(
        headers=ANALYST_SECTIONS,
        archetype_section="ARCHETYPE ANALYSIS",
        industry_section="INDUSTRY ASSESSMENT",
        confidence_section="CONFIDENCE EVALUATION",
        thesis_section="ACQUISITION STRATEGY",
    )


def advisor_adapter() -> SectionedResponseAdapter:
    return SectionedResponseAdapter(
        headers=ADVISOR_SECTIONS,
        archetype_section="PRIMARY ARCHETYPE",
        industry_section="TARGET INDUSTRIES",
        confidence_section="CONFIDENCE ASSESSMENT",
        thesis_section="ACQUISITION THESIS",
        buybox_section="BUYBOX CRITERIA",
    )


ADAPTERS: dict[str, Any] = {
    "sections": analyst_adapter,
    "advisor": advisor_adapter,
    "markdown": MarkdownReportAdapter,
    "json": JsonResponseAdapter,
}


def get_adapter(name: str) -> ResponseAdapter:
    try:
        return ADAPTERS[name]()
    except KeyError:
        raise ValueError(f"Unknown response format: {name!r}") from None

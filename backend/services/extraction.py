# =============================================================================
# CropGenesis Backend
# services/extraction.py - Diagnosis Field Extraction
#
# Best-effort parsing of structured fields out of free-text model output.
# Every field has a default; nothing here raises on a missing match.
# =============================================================================

import re
from dataclasses import dataclass, asdict
from typing import Optional

from constants import (
    DEFAULT_DISEASE_NAME, DEFAULT_SEVERITY, DEFAULT_AFFECTED_AREA,
    DEFAULT_TREATMENT_TYPE
)

# Markdown emphasis and headings the model adds despite instructions
_MARKUP = re.compile(r'[*#_`]')

_DISEASE = re.compile(
    r'disease(?:\s+(?:name|identification|identified))?\s*[:\-]\s*([^\n]+)',
    re.IGNORECASE
)
_CONFIDENCE = re.compile(r'confidence[^\n\d]*?(\d{1,3})(?:\.\d+)?\s*%', re.IGNORECASE)
_SEVERITY = re.compile(r'severity[^\n]*?\b(low|medium|moderate|high|critical|severe)\b', re.IGNORECASE)
_AFFECTED = re.compile(
    r'affected(?:\s+(?:area|part|parts))?[^\n]*?'
    r'\b(leaves|leaf|stems?|roots?|fruits?|flowers?|whole[\s-]plant)\b',
    re.IGNORECASE
)
_TREATMENT_TYPE = re.compile(
    r'treatment\s+type[^\n]*?\b(organic|chemical|biological|cultural|mixed)\b',
    re.IGNORECASE
)
_COST = re.compile(
    r'cost[^\n\d]*?(?:₹|rs\.?|inr)?\s*(\d[\d,]*(?:\.\d+)?)',
    re.IGNORECASE
)
_TIME = re.compile(
    r'(?:timeline|treatment\s+time|recovery\s+time|duration)\s*[:\-]\s*([^\n]+)',
    re.IGNORECASE
)
_TREATMENT_START = re.compile(
    r'^[ \t]*(?:\d+\.\s*)?treatment(?:\s+(?:options|plan|recommendations))?[ \t]*(?::|$)',
    re.IGNORECASE | re.MULTILINE
)
_NUMBERED_SECTION = re.compile(r'^[ \t]*\d+\.\s*[A-Za-z][^\n:]{0,60}:', re.MULTILINE)

# Section titles written alone on a line, as the plain-text rules ask for
_SECTION_TITLE = re.compile(
    r'^[ \t]*(?:\d+\.\s*)?(?:disease\s+identification|confidence\s+level|symptoms|'
    r'affected\s+area|severity|cause|treatment\s+options|prevention|timeline|'
    r'cost\s+estimation)[ \t]*:?[ \t]*$',
    re.IGNORECASE | re.MULTILINE
)

# A label with nothing after it; its value is on the next non-empty line
_BARE_LABEL = re.compile(
    r'^[ \t]*(?:\d+\.\s*)?(disease(?:\s+(?:name|identification|identified))?|'
    r'confidence(?:\s+level)?|severity(?:\s+level)?|affected\s+(?:area|parts?)|'
    r'treatment\s+type|(?:cost\s+estimation|estimated\s+cost|cost)|'
    r'timeline|treatment\s+time|recovery\s+time|duration)[ \t]*[:\-]?[ \t]*$',
    re.IGNORECASE
)

SEVERITY_ALIASES = {'moderate': 'medium', 'severe': 'high'}

AFFECTED_AREA_ALIASES = {
    'leaf': 'leaves',
    'stem': 'stems',
    'root': 'roots',
    'fruit': 'fruits',
    'flower': 'flowers'
}

MAX_ESTIMATED_TIME_CHARS = 200


@dataclass
class DiagnosisFields:
    """Structured fields pulled from a diagnosis text."""

    disease_name: str = DEFAULT_DISEASE_NAME
    confidence: Optional[int] = None
    severity: str = DEFAULT_SEVERITY
    affected_area: str = DEFAULT_AFFECTED_AREA
    treatment_type: str = DEFAULT_TREATMENT_TYPE
    estimated_cost: Optional[float] = None
    estimated_time: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def _strip_markup(text):
    return _MARKUP.sub('', text or '')


def _clean_value(value):
    return value.strip().strip('.:;,- ').strip()


def _join_bare_labels(text):
    """
    Rewrite 'Label' + newline + 'value' as 'Label: value'.

    Models asked to put section titles on their own line often write the
    value underneath; the field patterns expect it after the label.
    """
    lines = text.split('\n')
    joined = []
    i = 0
    while i < len(lines):
        match = _BARE_LABEL.match(lines[i])
        if match:
            j = i + 1
            while j < len(lines) and not lines[j].strip():
                j += 1
            if j < len(lines) and not (_BARE_LABEL.match(lines[j]) or _SECTION_TITLE.match(lines[j])):
                joined.append(f'{match.group(1)}: {lines[j].strip()}')
                i = j + 1
                continue
        joined.append(lines[i])
        i += 1
    return '\n'.join(joined)


def _section_end(source, pos):
    """Start of the next numbered or titled section after pos, else None."""
    starts = [
        match.start()
        for match in (_NUMBERED_SECTION.search(source, pos), _SECTION_TITLE.search(source, pos))
        if match
    ]
    return min(starts) if starts else None


def extract_diagnosis_fields(text):
    """
    Extract disease name, confidence, severity, affected area, treatment
    type, estimated cost and estimated time from a diagnosis.

    Args:
        text: Model output (may contain markdown)

    Returns:
        DiagnosisFields: Parsed values, defaults where nothing matched
    """
    fields = DiagnosisFields()
    clean = _join_bare_labels(_strip_markup(text))

    match = _DISEASE.search(clean)
    if match:
        name = _clean_value(match.group(1))
        if name:
            fields.disease_name = name

    match = _CONFIDENCE.search(clean)
    if match:
        fields.confidence = max(0, min(100, int(match.group(1))))

    match = _SEVERITY.search(clean)
    if match:
        severity = match.group(1).lower()
        fields.severity = SEVERITY_ALIASES.get(severity, severity)

    match = _AFFECTED.search(clean)
    if match:
        area = re.sub(r'\s+', '-', match.group(1).lower())
        fields.affected_area = AFFECTED_AREA_ALIASES.get(area, area)

    match = _TREATMENT_TYPE.search(clean)
    if match:
        fields.treatment_type = match.group(1).lower()

    match = _COST.search(clean)
    if match:
        try:
            fields.estimated_cost = float(match.group(1).replace(',', ''))
        except ValueError:
            fields.estimated_cost = None

    match = _TIME.search(clean)
    if match:
        estimated_time = _clean_value(match.group(1))[:MAX_ESTIMATED_TIME_CHARS]
        fields.estimated_time = estimated_time or None

    return fields


def extract_remedy(text):
    """
    Pull the treatment section out of a diagnosis.

    The section runs from the treatment heading up to the next numbered
    section. Without a treatment heading the whole text is the remedy.

    Args:
        text: Model output

    Returns:
        str: Treatment section or the full text
    """
    text = text or ''
    start = _TREATMENT_START.search(text) or _TREATMENT_START.search(_strip_markup(text))
    if not start:
        return text

    source = text if start.string is text else start.string
    end = _section_end(source, start.end())
    section = source[start.start():end if end is not None else len(source)].strip()
    return section or text

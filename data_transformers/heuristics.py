"""
Extraction Heuristics

Best-effort, pure functions over feed titles and descriptions. Every
extractor returns None on a miss; the LLM classifier is the correction
layer, so these only need to be usefully right most of the time.
"""
import re
from typing import Optional, NamedTuple

from constants import AnnouncementType, FeedSource, PriorityLevel


# ============================================================
# FDA
# ============================================================

_FDA_HIGH_PRIORITY_KEYWORDS = ("first", "breakthrough", "class i", "urgent", "immediate", "novel")

_SUFFIX = (
    r"(?:Inc|LLC|Corp|Corporation|Company|Co|Ltd|Limited|plc|PLC|Pharmaceuticals?|Pharma|"
    r"Therapeutics|Sciences|Biosciences|Biotech|Biologics|Laboratories|Labs|Holdings|Medical)\.?"
)
_WORD = r"[A-Z][A-Za-z0-9&'\-]*\.?"

_COMPANY_PATTERNS = (
    # "... recalled by Acme Pharmaceuticals Inc."
    re.compile(r"\b(?:from|by|for)\s+((?:" + _WORD + r",?\s+){0,5}" + _SUFFIX + r"(?:,?\s+" + _SUFFIX + r")*)(?![A-Za-z])"),
    # "Acme Therapeutics Announces ..."
    re.compile(r"((?:" + _WORD + r",?\s+){0,5}" + _SUFFIX + r"(?:,?\s+" + _SUFFIX + r")*)(?![A-Za-z])"),
)

# Leading title words that are never part of a company name
_LEADING_NOISE = {
    "fda", "u.s.", "us", "the", "approves", "approved", "announces", "issues", "recalls", "recall",
    "voluntary", "voluntarily", "nationwide", "warns", "clears", "grants", "statement", "update",
    "alert", "expands", "authorizes", "roundup",
}

_PRODUCT_PATTERNS = (
    re.compile(r"[\"“]([^\"”]+)[\"”]"),
    re.compile(r"(?i:drug|medication|product|device)\s+([A-Z][A-Za-z0-9\-]*(?:\s+[A-Z0-9][A-Za-z0-9\-]*)*)"),
    re.compile(r"(?i:approves?)\s+([A-Z][A-Za-z0-9\-]*(?:\s+[A-Z0-9][A-Za-z0-9\-]*)*)"),
)

_CLASSIFICATION_CODES = (
    ("class iii", "Class III"),
    ("class ii", "Class II"),
    ("class i", "Class I"),
    ("510(k)", "510(k)"),
    ("pma", "PMA"),
    ("breakthrough", "Breakthrough Therapy"),
    ("fast track", "Fast Track"),
)


def categorize_fda(title: str, description: str = "", source: Optional[FeedSource] = None) -> AnnouncementType:
    """Keyword categorization of an FDA announcement."""
    content = f"{title} {description}".lower()

    if "approve" in content and any(k in content for k in ("drug", "medication", "therapeutic")):
        return AnnouncementType.DRUG_APPROVAL
    if any(k in content for k in ("recall", "safety", "warning", "alert")):
        return AnnouncementType.SAFETY_ALERT
    if any(k in content for k in ("device", "510(k)", "clearance")):
        return AnnouncementType.DEVICE_APPROVAL
    if source == FeedSource.FDA_MEDWATCH:
        return AnnouncementType.SAFETY_ALERT
    return AnnouncementType.REGULATORY


def fda_priority(
    title: str,
    description: str,
    announcement_type: AnnouncementType,
    source: Optional[FeedSource] = None,
) -> PriorityLevel:
    """Coarse pre-classification priority for an FDA announcement."""
    content = f"{title} {description}".lower()

    if any(k in content for k in _FDA_HIGH_PRIORITY_KEYWORDS):
        return PriorityLevel.HIGH
    if source == FeedSource.FDA_MEDWATCH:
        return PriorityLevel.HIGH
    if announcement_type in (AnnouncementType.SAFETY_ALERT, AnnouncementType.DRUG_APPROVAL):
        return PriorityLevel.HIGH
    return PriorityLevel.MEDIUM


def _strip_leading_noise(name: str) -> str:
    words = name.split()
    while len(words) > 1 and words[0].lower().rstrip(",") in _LEADING_NOISE:
        words.pop(0)
    return " ".join(words)


def extract_company_name(title: str, description: str = "") -> Optional[str]:
    """Company name ending in a corporate suffix, e.g. 'Acme Pharmaceuticals Inc.'"""
    content = f"{title} {description}"

    for pattern in _COMPANY_PATTERNS:
        match = pattern.search(content)
        if not match:
            continue
        name = _strip_leading_noise(match.group(1).strip().rstrip(","))
        # A bare suffix ("Inc.") is not a name
        if re.fullmatch(_SUFFIX, name):
            continue
        if 2 < len(name) < 100:
            return name
    return None


def extract_product_name(title: str, description: str = "") -> Optional[str]:
    """Product named in quotes, after drug/device keywords, or after 'approves'."""
    content = f"{title} {description}"

    for pattern in _PRODUCT_PATTERNS:
        match = pattern.search(content)
        if not match:
            continue
        name = match.group(1).strip()
        if 2 < len(name) < 100:
            return name
    return None


def extract_classification(title: str, description: str = "") -> Optional[str]:
    """Recall class or regulatory pathway mentioned in the text."""
    content = f"{title} {description}".lower()

    for needle, code in _CLASSIFICATION_CODES:
        if needle == "class i":
            # "class i" must not match inside "class ii" / "class iii"
            if re.search(r"\bclass i\b", content):
                return code
            continue
        if needle in content:
            return code
    return None


# ============================================================
# SEC
# ============================================================

class SECTitle(NamedTuple):
    """Fields recovered from an EDGAR entry title."""
    company_name: Optional[str]
    form_type: str
    ticker: Optional[str]
    cik: Optional[str]


# "8-K - Acme Corp (0000320193) (Filer)"
_EDGAR_TITLE = re.compile(
    r"^\s*(?P<form>[A-Z0-9][A-Z0-9 /\-]*?)\s+-\s+(?P<company>.+?)\s+\((?P<cik>\d{4,10})\)(?:\s+\((?P<role>[^)]+)\))?\s*$"
)
# "ACME CORP - Form 8-K"
_FORM_SUFFIX = re.compile(r"-\s*Form\s+([A-Z0-9\-/]+)", re.IGNORECASE)
_TICKER = re.compile(r"\(([A-Z]{1,5})\)")
_CIK = re.compile(r"CIK=(\d+)", re.IGNORECASE)
_CIK_PATH = re.compile(r"/edgar/data/(\d+)/", re.IGNORECASE)
_ACCESSION_PARAM = re.compile(r"AccessionNumber=([0-9\-]+)", re.IGNORECASE)
_ACCESSION_DASHED = re.compile(r"(\d{10}-\d{2}-\d{6})")


def parse_sec_title(title: str, link: str = "") -> SECTitle:
    """
    Split an EDGAR title into company, form type, ticker and CIK.

    Handles both "8-K - ACME CORP (0000123456) (Filer)" and
    "ACME CORP - Form 8-K" shapes. Form type defaults to "UNKNOWN".
    """
    title = title or ""
    link = link or ""
    company_name = None
    form_type = None
    cik = None

    match = _EDGAR_TITLE.match(title)
    if match:
        form_type = match.group("form").strip()
        company_name = match.group("company").strip()
        cik = match.group("cik")
    else:
        form_match = _FORM_SUFFIX.search(title)
        if form_match:
            form_type = form_match.group(1)
            company_name = re.split(r"\s+-\s*Form", title, maxsplit=1, flags=re.IGNORECASE)[0].strip()

    ticker_match = _TICKER.search(title)
    ticker = ticker_match.group(1) if ticker_match else None

    if cik is None:
        cik_match = _CIK.search(link) or _CIK_PATH.search(link)
        if cik_match:
            cik = cik_match.group(1)

    if not company_name:
        parts = title.split(" - ")
        company_name = parts[0].strip() if parts and parts[0].strip() else None

    return SECTitle(
        company_name=company_name or None,
        form_type=form_type or "UNKNOWN",
        ticker=ticker,
        cik=cik,
    )


def extract_accession_number(*candidates: str) -> Optional[str]:
    """First accession number found in the given link / id strings."""
    for text in candidates:
        if not text:
            continue
        match = _ACCESSION_PARAM.search(text) or _ACCESSION_DASHED.search(text)
        if match:
            return match.group(1)
    return None


def categorize_sec_filing(form_type: str, title: str = "", summary: str = "") -> AnnouncementType:
    """Map a form type (refined by content keywords for 8-K) to a subtype."""
    form = (form_type or "").lower().strip()
    content = f"{title} {summary}".lower()

    if "8-k" in form:
        if "merger" in content or "acquisition" in content:
            return AnnouncementType.MERGER_ACQUISITION
        if any(k in content for k in ("ceo", "cfo", "leadership")):
            return AnnouncementType.LEADERSHIP_CHANGE
        return AnnouncementType.MAJOR_EVENT
    if form in ("4", "4/a"):
        return AnnouncementType.INSIDER_TRADING
    if form.startswith("s-1") or form.startswith("s-3"):
        return AnnouncementType.STOCK_OFFERING
    if "10-q" in form:
        return AnnouncementType.QUARTERLY_REPORT
    if "10-k" in form:
        return AnnouncementType.ANNUAL_REPORT
    if "def 14a" in form or "proxy" in form:
        return AnnouncementType.PROXY_STATEMENT
    return AnnouncementType.OTHER


_SEC_HIGH_TYPES = (
    AnnouncementType.MERGER_ACQUISITION,
    AnnouncementType.LEADERSHIP_CHANGE,
    AnnouncementType.INSIDER_TRADING,
    AnnouncementType.STOCK_OFFERING,
)


def sec_priority(form_type: str, announcement_type: AnnouncementType) -> PriorityLevel:
    """Coarse pre-classification priority for an SEC filing."""
    form = (form_type or "").lower().strip()

    if "8-k" in form or form in ("4", "4/a") or form.startswith("s-1") or form.startswith("s-3"):
        return PriorityLevel.HIGH
    if announcement_type in _SEC_HIGH_TYPES:
        return PriorityLevel.HIGH
    if "10-q" in form or "10-k" in form:
        return PriorityLevel.MEDIUM
    return PriorityLevel.LOW

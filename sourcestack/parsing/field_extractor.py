"""
Candidate field extraction.

Pure functions turning resume text into contact fields and a confidence
score. Patterns run in priority order; the first hit wins.

Emails and profile links are looked for in HTML href/mailto markup first,
then next to a keyword ("email", "linkedin", "github"), then anywhere in the
text.
"""

import re
from typing import List, Optional

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

DEFAULT_COUNTRY_CODE = "91"

# Confidence weights, summed and capped at 1.0
EMAIL_WEIGHT = 0.40
PHONE_WEIGHT = 0.25
NAME_WEIGHT = 0.15
LINKEDIN_WEIGHT = 0.10
GITHUB_WEIGHT = 0.05
NO_OCR_WEIGHT = 0.05

_EMAIL = r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"

EMAIL_MAILTO_PATTERN = re.compile(rf"mailto:\s*({_EMAIL})", re.IGNORECASE)
EMAIL_HREF_PATTERN = re.compile(rf"href=[\"']mailto:({_EMAIL})[\"']", re.IGNORECASE)
EMAIL_KEYWORD_PATTERN = re.compile(
    rf"(?:email|e-mail|mail)[\s:]*.*?(?:href=[\"'])?(?:mailto:)?({_EMAIL})",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(rf"\b{_EMAIL}\b")

PHONE_STRIP_PATTERN = re.compile(r"[\s\-().]")
PHONE_DIGITS_PATTERN = re.compile(r"\d{7,15}")

_LINKEDIN_USER = r"[a-zA-Z0-9\-]+"
LINKEDIN_HREF_PATTERNS = [
    re.compile(rf"href=[\"'](https?://(?:www\.)?linkedin\.com/in/{_LINKEDIN_USER})[\"']", re.IGNORECASE),
    re.compile(rf"href=[\"'](linkedin\.com/in/{_LINKEDIN_USER})[\"']", re.IGNORECASE),
]
LINKEDIN_KEYWORD_PATTERN = re.compile(
    rf"(?:linkedin|linked\s*in)[\s:]*.*?(?:href=[\"'])?(https?://(?:www\.)?linkedin\.com/in/{_LINKEDIN_USER})",
    re.IGNORECASE,
)
LINKEDIN_USER_PATTERNS = [
    re.compile(rf"https?://(?:www\.)?linkedin\.com/in/({_LINKEDIN_USER})", re.IGNORECASE),
    re.compile(rf"linkedin\.com/in/({_LINKEDIN_USER})", re.IGNORECASE),
    re.compile(rf"www\.linkedin\.com/in/({_LINKEDIN_USER})", re.IGNORECASE),
    re.compile(rf"linkedin\.com/profile/view\?id=({_LINKEDIN_USER})", re.IGNORECASE),
]
LINKEDIN_LOOSE_PATTERN = re.compile(r"(?:https?://)?(?:www\.)?linkedin\.com/[^\s<>\"')]+", re.IGNORECASE)

# 1-39 chars, alphanumeric, single inner hyphens only
_GITHUB_USER = r"[a-zA-Z0-9](?:[a-zA-Z0-9]|-(?=[a-zA-Z0-9])){0,38}"
GITHUB_HREF_PATTERNS = [
    re.compile(rf"href=[\"'](https?://(?:www\.)?github\.com/{_GITHUB_USER})[\"']", re.IGNORECASE),
    re.compile(rf"href=[\"'](github\.com/{_GITHUB_USER})[\"']", re.IGNORECASE),
]
GITHUB_KEYWORD_PATTERN = re.compile(
    rf"github[\s:]*.*?(?:href=[\"'])?(https?://(?:www\.)?github\.com/{_GITHUB_USER})",
    re.IGNORECASE,
)
GITHUB_USER_PATTERNS = [
    re.compile(rf"https?://(?:www\.)?github\.com/({_GITHUB_USER})(?![a-zA-Z0-9-])", re.IGNORECASE),
    re.compile(rf"(?:www\.)?github\.com/({_GITHUB_USER})(?![a-zA-Z0-9-])", re.IGNORECASE),
]
GITHUB_LOOSE_PATTERN = re.compile(r"(?:https?://)?(?:www\.)?github\.com/[^\s<>\"')]+", re.IGNORECASE)

NAME_CONTEXT_KEYWORDS = ("email", "phone", "contact", "mobile", "tel")
NAME_HEAD_LINES = 30
NAME_CONTEXT_LINES = 50
NAME_MAX_LENGTH = 50
LEADING_DIGIT_PATTERN = re.compile(r"^\+?\d")


def extract_email(text: str) -> Optional[str]:
    """
    Find the candidate's email address.

    Priority: mailto links, an address near an email keyword, then the first
    bare address anywhere in the text.

    Returns:
        Lower-cased address, or None
    """
    if not text:
        return None

    for pattern in (EMAIL_HREF_PATTERN, EMAIL_MAILTO_PATTERN, EMAIL_KEYWORD_PATTERN):
        match = pattern.search(text)
        if match:
            return match.group(1).lower()

    match = EMAIL_PATTERN.search(text)
    return match.group(0).lower() if match else None


def _format_valid(number: "phonenumbers.PhoneNumber") -> Optional[str]:
    if phonenumbers.is_valid_number(number):
        return phonenumbers.format_number(number, PhoneNumberFormat.E164)
    return None


def normalize_phone(text: str, default_country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """
    Find a valid phone number and format it as E.164.

    A strict international parse is tried first. Failing that, punctuation
    and whitespace are stripped and each 7-15 digit run is tried: a 10-digit
    run gets the default country code, longer runs get a leading '+'.

    Args:
        text: Text that may contain a phone number
        default_country_code: Calling code digits for bare 10-digit numbers

    Returns:
        E.164 number such as '+919876543210', or None
    """
    if not text or not text.strip():
        return None

    try:
        formatted = _format_valid(phonenumbers.parse(text, None))
        if formatted:
            return formatted
    except NumberParseException:
        pass

    compact = PHONE_STRIP_PATTERN.sub("", text)
    for match in PHONE_DIGITS_PATTERN.finditer(compact):
        digits = match.group(0)
        if len(digits) == 10:
            candidate = f"+{default_country_code}{digits}"
        elif len(digits) > 10:
            candidate = f"+{digits}"
        else:
            candidate = digits

        try:
            formatted = _format_valid(phonenumbers.parse(candidate, None))
        except NumberParseException:
            continue
        if formatted:
            return formatted

    return None


def _first_href(patterns: List[re.Pattern], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_linkedin(text: str) -> Optional[str]:
    """
    Find a LinkedIn profile URL.

    Returns:
        URL normalized to https://www.linkedin.com/in/<user> where a username
        is recognizable, otherwise the loosest linkedin.com match, or None
    """
    if not text:
        return None

    url = _first_href(LINKEDIN_HREF_PATTERNS, text)
    if url:
        if not url.lower().startswith("http"):
            return f"https://www.{url}"
        return url

    match = LINKEDIN_KEYWORD_PATTERN.search(text)
    if match:
        return match.group(1)

    for pattern in LINKEDIN_USER_PATTERNS:
        match = pattern.search(text)
        if match:
            return f"https://www.linkedin.com/in/{match.group(1)}"

    match = LINKEDIN_LOOSE_PATTERN.search(text)
    return match.group(0) if match else None


def extract_github(text: str) -> Optional[str]:
    """
    Find a GitHub profile URL.

    Returns:
        URL normalized to https://github.com/<user> where a username is
        recognizable, otherwise the loosest github.com match, or None
    """
    if not text:
        return None

    url = _first_href(GITHUB_HREF_PATTERNS, text)
    if url:
        if not url.lower().startswith("http"):
            return f"https://{url}"
        return url

    match = GITHUB_KEYWORD_PATTERN.search(text)
    if match:
        return match.group(1)

    for pattern in GITHUB_USER_PATTERNS:
        match = pattern.search(text)
        if match:
            return f"https://github.com/{match.group(1)}"

    match = GITHUB_LOOSE_PATTERN.search(text)
    return match.group(0) if match else None


def _looks_like_name(line: str) -> bool:
    if not line or "@" in line or len(line) > NAME_MAX_LENGTH:
        return False
    if LEADING_DIGIT_PATTERN.match(line):
        return False
    words = line.split()
    if not 2 <= len(words) <= 4:
        return False
    return all(word[0].isupper() for word in words)


def guess_name(text: str) -> Optional[str]:
    """
    Guess the candidate's name from the top of the resume.

    Candidate lines are the first 30 lines plus any line directly above a
    contact line ("email", "phone", ...) within the first 50. A name is 2-4
    capitalized words, at most 50 characters, with no '@' or leading digit.
    """
    if not text:
        return None

    lines = [line.strip() for line in text.splitlines()]
    candidates = lines[:NAME_HEAD_LINES]
    for i, line in enumerate(lines[:NAME_CONTEXT_LINES]):
        lowered = line.lower()
        if i > 0 and any(keyword in lowered for keyword in NAME_CONTEXT_KEYWORDS):
            candidates.append(lines[i - 1])

    for line in candidates:
        if _looks_like_name(line):
            return line
    return None


def score_confidence(
    name: Optional[str],
    email: Optional[str],
    phone: Optional[str],
    linkedin: Optional[str],
    github: Optional[str],
    ocr_used: bool,
) -> float:
    """
    Weighted sum of the fields found, clamped to [0, 1].

    Weights: email 0.40, phone 0.25, name 0.15, LinkedIn 0.10, GitHub 0.05,
    plus 0.05 when the text did not come from OCR.
    """
    score = 0.0
    if email:
        score += EMAIL_WEIGHT
    if phone:
        score += PHONE_WEIGHT
    if name:
        score += NAME_WEIGHT
    if linkedin:
        score += LINKEDIN_WEIGHT
    if github:
        score += GITHUB_WEIGHT
    if not ocr_used:
        score += NO_OCR_WEIGHT
    return round(min(1.0, max(0.0, score)), 4)

"""
Counterparty normalization and dictionary matching.

Counterparty names arrive as free text: bank statement memo fields span
several lines, carry contract and invoice references, and mix Latin and
Cyrillic letters typed on the wrong keyboard layout. Matching happens in
two steps:

1. ``clean_counterparty`` reduces the raw text to a display name.
2. ``resolve_counterparty_name`` looks the cleaned name up in a
   ``CounterpartyDictionary`` built from every loaded reference list, by
   normalized form, with the leading organizational form stripped, with all
   organizational forms stripped, and finally by an order-independent token
   signature.

When a dictionary exists but nothing matches, the resolver returns the
NOT_IN_DICTIONARY marker so the gap shows up in reports.
"""

import re
import logging

from .models import CounterpartyDictionary, insert_if_absent

logger = logging.getLogger(__name__)

NOT_IN_DICTIONARY = 'нет в справочнике'

# Latin letters that look like Cyrillic ones
HOMOGRAPHS = str.maketrans({
    'A': 'А', 'B': 'В', 'C': 'С', 'E': 'Е', 'H': 'Н', 'K': 'К',
    'M': 'М', 'O': 'О', 'P': 'Р', 'T': 'Т', 'X': 'Х', 'V': 'В',
    'a': 'а', 'c': 'с', 'e': 'е', 'o': 'о', 'p': 'р', 'x': 'х', 'v': 'в',
})

# A line containing one of these names a legal entity
ORG_MARKERS = [
    'ООО', 'ОАО', 'ЗАО', 'ПАО', 'АО', 'ИП', 'НКО', 'НАО', 'ГБУЗ', 'ГУП',
    'МУП', 'ФГУП', 'БАНК', 'LLC', 'LTD', 'INC',
]

# A line starting with one of these describes the operation, not the party
OPERATION_MARKERS = ['СПИСАНИЕ', 'ПОСТУПЛЕНИЕ', 'ОПЛАТА', 'ПЕРЕВОД', 'ВОЗВРАТ']

# The name ends where any of these begins
STOP_PHRASES = [
    'БЕЗ ДОГОВОРА', 'ОСНОВНОЙ ДОГОВОР', 'СОГЛАШЕНИЕ', 'СПИСАНИЕ',
    'ПОСТУПЛЕНИЕ', 'ОПЛАТА', 'ПЕРЕВОД', 'ВОЗВРАТ',
    'ДОГОВОР №', 'ДОГОВОР N', 'ДОГОВОР ', 'СЧЕТ №', 'СЧЁТ №',
    'АКТ ', 'УПД ', 'НАКЛАДНАЯ', 'ПОСТУПЛЕНИЕ (АКТ',
    ' ОТ ',
]

# Names containing one of these are kept whole
ORG_FORMS = [
    'КОЛЛЕГИЯ АДВОКАТОВ', 'АДВОКАТСКОЕ БЮРО', 'АДВОКАТСКАЯ КОНТОРА',
    'УПРАВЛЯЮЩАЯ КОМПАНИЯ', 'СТРАХОВАЯ КОМПАНИЯ',
    'ООО', 'ОАО', 'ЗАО', 'ПАО', 'АО', 'НКО', 'НАО',
    'БАНК', 'ИП', 'ГБУЗ', 'ГБУ', 'МУП', 'ГУП', 'ФГУП', 'КФХ', 'ФБУЗ',
]

# Person names keep at most this many words
MAX_PERSON_WORDS = 3

# Organizational-form tokens in normalized (lowercase) text
ORG_PREFIXES = [
    'ооо', 'оао', 'зао', 'пао', 'ао', 'ип', 'нко', 'нао',
    'фбуз', 'гбуз', 'фгуп', 'гуп', 'муп', 'кфх', 'банк',
]

SIGNATURE_STOP_TOKENS = frozenset(ORG_PREFIXES + ['и', 'в', 'по', 'на', 'для', 'от', 'с', 'к'])

_RE_LINES = re.compile(r'\r?\n')
_RE_TRAILING_JUNK = re.compile(r'[\s,;.-]+$')
_RE_QUOTES = re.compile(r'["«»\']')
_RE_PUNCTUATION = re.compile(r'[.,;:()]')
_RE_WHITESPACE = re.compile(r'\s+')
_RE_DIGIT = re.compile(r'\d')
_RE_WORD = re.compile(r'^[a-zа-яё-]+$', re.IGNORECASE)


def _pick_line(text):
    lines = [part.strip() for part in _RE_LINES.split(text)]
    lines = [line for line in lines if line]
    if not lines:
        return text

    for line in lines:
        upper_line = line.upper()
        if any(marker in upper_line for marker in ORG_MARKERS):
            return line
    for line in lines:
        upper_line = line.upper()
        if not any(upper_line.startswith(marker) for marker in OPERATION_MARKERS):
            return line
    return lines[0]


def _upper_with_offsets(text):
    """Uppercase text plus, for each uppercase char, its index in the source text."""
    chars = []
    offsets = []
    for i, ch in enumerate(text):
        up = ch.upper()
        # 'ß' -> 'SS': one source char can map to several
        chars.append(up)
        offsets.extend([i] * len(up))
    return ''.join(chars), offsets


def _cut_at_stop_phrase(text):
    upper, offsets = _upper_with_offsets(text)
    cut_pos = len(text)
    for phrase in STOP_PHRASES:
        idx = upper.find(phrase)
        if idx == -1:
            continue
        pos = offsets[idx]
        if 0 < pos < cut_pos:
            cut_pos = pos
    return text[:cut_pos].strip()


def _strip_trailing(text):
    return _RE_TRAILING_JUNK.sub('', text).strip()


def clean_counterparty(raw):
    """
    Reduce a raw counterparty text to a display name.

    Steps:
    1. Fold Latin look-alike letters to Cyrillic
    2. For multi-line text pick the line naming an organization, else the
       first line not starting with an operation word, else the first line;
       runs of whitespace in it collapse to one space
    3. Cut at the earliest stop phrase (contract, invoice, "от" ...) unless
       the phrase starts the text
    4. Strip trailing punctuation
    5. Organization names are returned whole; other names are treated as
       a person and keep at most three words

    Args:
        raw (str): Raw counterparty text

    Returns:
        str: Cleaned name, '' when nothing is left
    """
    if not raw:
        return ''
    s = str(raw).strip()
    if not s:
        return ''

    s = s.translate(HOMOGRAPHS)
    s = _RE_WHITESPACE.sub(' ', _pick_line(s))
    s = _cut_at_stop_phrase(s)
    s = _strip_trailing(s)
    if not s:
        return ''

    upper_cleaned = s.upper()
    if any(form in upper_cleaned for form in ORG_FORMS):
        return s

    words = s.split()
    return _strip_trailing(' '.join(words[:MAX_PERSON_WORDS]))


def normalize_for_match(raw):
    """Lowercase, drop quotes, turn punctuation into spaces and collapse whitespace."""
    s = str(raw or '').lower()
    s = _RE_QUOTES.sub('', s)
    s = _RE_PUNCTUATION.sub(' ', s)
    return _RE_WHITESPACE.sub(' ', s).strip()


def strip_org_prefix(normalized):
    """Drop leading organizational-form tokens ("ооо ромашка" -> "ромашка")."""
    parts = normalized.split()
    idx = 0
    while idx < len(parts) and parts[idx] in ORG_PREFIXES:
        idx += 1
    return ' '.join(parts[idx:]).strip()


def strip_org_tokens(normalized):
    """Drop organizational-form tokens wherever they appear."""
    return ' '.join(token for token in normalized.split() if token not in ORG_PREFIXES).strip()


def build_token_signature(normalized):
    """
    Build an order-independent signature of a normalized name.

    Keeps alphabetic tokens of two or more letters that are neither
    organizational forms nor short stop words, sorted and joined with '|'.

    Args:
        normalized (str): Output of normalize_for_match (optionally stripped)

    Returns:
        str: Signature, '' when no token survives
    """
    if not normalized:
        return ''
    tokens = [
        t for t in (token.strip() for token in normalized.split())
        if t
        and t not in SIGNATURE_STOP_TOKENS
        and len(t) >= 2
        and not _RE_DIGIT.search(t)
        and _RE_WORD.match(t)
    ]
    return '|'.join(sorted(tokens))


def match_keys(name):
    """
    Derive the lookup keys of a counterparty name.

    Args:
        name (str): Raw or display counterparty name

    Returns:
        tuple: (cleaned, normalized, prefix_stripped, org_stripped, signature)
    """
    cleaned = clean_counterparty(name)
    normalized = normalize_for_match(cleaned)
    stripped = strip_org_prefix(normalized)
    org_stripped = strip_org_tokens(normalized)
    signature = build_token_signature(org_stripped or stripped or normalized)
    return cleaned, normalized, stripped, org_stripped, signature


def add_reference(dictionary, display_name):
    """
    Register one counterparty reference entry in a dictionary.

    Every derived key points at the first display name registered for it.

    Args:
        dictionary (CounterpartyDictionary): Dictionary to extend
        display_name (str): Name as written in the reference list
    """
    display_name = (display_name or '').strip()
    if not display_name:
        return
    dictionary.has_references = True

    _, normalized, stripped, org_stripped, signature = match_keys(display_name)
    insert_if_absent(dictionary.exact_map, normalized, display_name)
    insert_if_absent(dictionary.exact_map, stripped, display_name)
    insert_if_absent(dictionary.exact_map, org_stripped, display_name)
    insert_if_absent(dictionary.token_map, signature, display_name)


def build_counterparty_dictionary(sources):
    """
    Build the counterparty dictionary from all ready sources.

    Sources are processed in order, so on key collisions the earlier
    source's display name wins.

    Args:
        sources (list): Objects with ``status`` and ``counterparties`` attributes

    Returns:
        CounterpartyDictionary: Exact and token lookup maps
    """
    dictionary = CounterpartyDictionary()
    for source in sources:
        if source.status != 'ready':
            continue
        for ref in source.counterparties:
            add_reference(dictionary, ref.name)
    logger.debug(
        f"Counterparty dictionary: {len(dictionary.exact_map)} exact keys, "
        f"{len(dictionary.token_map)} signatures"
    )
    return dictionary


def resolve_counterparty_name(raw_counterparty, dictionary):
    """
    Resolve a transaction's raw counterparty to a dictionary display name.

    Args:
        raw_counterparty (str): Counterparty text from the journal
        dictionary (CounterpartyDictionary): Lookup maps

    Returns:
        str: '' for an empty input; the matched display name; the cleaned
            value (or the raw text if cleaning leaves nothing) when no
            reference list was loaded at all; otherwise NOT_IN_DICTIONARY
    """
    raw = str(raw_counterparty or '').strip()
    if not raw:
        return ''

    cleaned, normalized, stripped, org_stripped, signature = match_keys(raw)

    for key in (normalized, stripped, org_stripped):
        if key and key in dictionary.exact_map:
            return dictionary.exact_map[key]

    if signature and signature in dictionary.token_map:
        return dictionary.token_map[signature]

    if not dictionary.has_references:
        # Punctuation-only input cleans to ''; show it as typed instead
        return cleaned or raw

    return NOT_IN_DICTIONARY

"""Term and synonym processing.

Everything here is a pure function of the input text and the static tables
below, so scoring stays reproducible across thousands of evaluation calls.
"""

import re
from typing import Iterable

_CHAR_MAP = str.maketrans(
    {
        "ي": "ی",
        "ى": "ی",
        "ئ": "ی",
        "ك": "ک",
        "أ": "ا",
        "إ": "ا",
        "ٱ": "ا",
        "ؤ": "و",
        "ة": "ه",
        "ۀ": "ه",
        **{chr(0x06F0 + d): str(d) for d in range(10)},  # Persian digits
        **{chr(0x0660 + d): str(d) for d in range(10)},  # Arabic-Indic digits
    }
)

_DIACRITICS_RE = re.compile(r"[\u064B-\u065F\u0670\u0640]")
_INVISIBLE_RE = re.compile(
    r"[\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F-\u009F"
    r"\u200B-\u200F\u202A-\u202E\u2066-\u2069\uFEFF]"
)
# '+' and '-' survive so identifiers like T+1 and T-2 stay intact.
_PUNCT_RE = re.compile(r"[.,/#!$%^&*;:{}=_`~()?؟،؛«»\"'<>\[\]|\\@…]")
_LONE_SIGN_RE = re.compile(r"(?<!\S)[+\-]+(?!\S)")
_WS_RE = re.compile(r"\s+")

_NUMERIC_CODE_RE = re.compile(r"(?<!\d)\d{3,}(?!\d)")
_IDENTIFIER_RE = re.compile(
    r"(?<![A-Za-z0-9])(?:[A-Za-z]+[+\-]\d+|[A-Z]{2,}\d*|[A-Za-z]+\d+)(?![A-Za-z0-9])"
)


def normalize(text: str) -> str:
    """Lower-case, unify letter variants, strip punctuation, collapse spaces."""
    if not text:
        return ""
    text = text.translate(_CHAR_MAP)
    text = _DIACRITICS_RE.sub("", text)
    text = _INVISIBLE_RE.sub(" ", text)
    text = _PUNCT_RE.sub(" ", text.lower())
    text = _LONE_SIGN_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def tokenize(text: str) -> list[str]:
    """Whitespace tokens of the normalized text."""
    normalized = normalize(text)
    return normalized.split() if normalized else []


def contains_phrase(text: str, phrase: str) -> bool:
    """Whole-token phrase containment over normalized text."""
    if not phrase:
        return False
    return f" {phrase} " in f" {text} "


def numeric_codes(text: str) -> list[str]:
    """Numeric codes of 3+ digits, in order of appearance."""
    return _NUMERIC_CODE_RE.findall(normalize(text))


class TermProcessor:
    """Extracts critical terms and expands domain synonyms."""

    # canonical term -> registered synonyms
    DEFAULT_SYNONYMS: dict[str, tuple[str, ...]] = {
        "رمز عبور": ("پسورد", "کلمه عبور", "password", "گذرواژه"),
        "بازنشانی": ("ریست", "reset", "ریستارت"),
        "نام کاربری": ("یوزرنیم", "username", "یوزر"),
        "ورود": ("لاگین", "login", "لاگ این"),
        "سفارش": ("اردر", "order"),
        "تاخیر": ("دیرکرد", "delay", "تعویق"),
        "خطا": ("ارور", "error", "اشکال", "باگ"),
        "ارزش خالص دارایی": ("nav", "ان ای وی"),
        "صندوق": ("فاند", "fund", "etf"),
        "صدور": ("خرید واحد", "issue"),
        "ابطال": ("فروش واحد", "redemption"),
        "کارمزد": ("کمیسیون", "commission", "fee"),
        "تسویه": ("settlement", "پایاپای"),
        "اختیار معامله": ("آپشن", "option"),
        "اپلیکیشن": ("برنامه موبایل", "app", "اپ"),
        "درگاه پرداخت": ("ipg", "شاپرک", "shaparak"),
        "وب سرویس": ("api", "webservice", "web service"),
        "دسترسی": ("مجوز", "permission", "access"),
        "کد معامله گر": ("کد بورسی", "trader code"),
    }

    DOMAIN_KEYWORDS: frozenset[str] = frozenset(
        {
            "رمز", "کد", "nav", "api", "ip", "etf", "ipo", "وام", "سود", "چک",
            "سهم", "پیش", "سبد", "تیکت", "نکول", "ناظر", "کالا", "فیش", "dns",
            "ورود", "خطا", "صدور", "ابطال", "تسویه", "سفارش", "صندوق", "کارمزد",
            "دسترسی", "اکسیر", "رکسار", "exir", "roxar", "t+1", "t+2", "t-1",
        }
    )

    STOP_WORDS: frozenset[str] = frozenset(
        {
            # Persian
            "از", "به", "با", "در", "بر", "برای", "که", "را", "این", "آن", "و",
            "یا", "تا", "هم", "نیز", "اما", "اگر", "چه", "چی", "چرا", "کجا",
            "چطور", "چگونه", "آیا", "است", "هست", "نیست", "بود", "شد", "شود",
            "می", "شده", "کرد", "کنم", "کنیم", "کنید", "کند", "کردن", "دارد",
            "دارم", "داریم", "دارند", "باید", "هر", "همه", "یک", "های", "ها",
            "ای", "من", "ما", "شما", "او", "آنها", "خود", "روی", "پس", "بعد",
            "قبل", "وقتی", "بین", "مثل", "چند", "کدام", "لطفا", "ممنون", "سلام",
            "باشد", "شوند", "بشه", "میشه", "نمیشه", "رو", "اون", "اینکه",
            # English
            "the", "a", "an", "is", "are", "was", "were", "be", "to", "of",
            "in", "for", "on", "with", "and", "or", "but", "what", "which",
            "how", "why", "when", "where", "who", "do", "does", "i", "you",
            "we", "it", "this", "that", "my", "your", "please", "can",
        }
    )

    SYNONYM_SAMPLE_SIZE = 2

    def __init__(
        self,
        synonyms: dict[str, Iterable[str]] | None = None,
        domain_keywords: Iterable[str] | None = None,
        stop_words: Iterable[str] | None = None,
    ):
        """Initialize processor.

        Args:
            synonyms: Canonical term -> synonyms mapping.
            domain_keywords: Short terms that are always critical.
            stop_words: Tokens never treated as content.
        """
        source = synonyms if synonyms is not None else self.DEFAULT_SYNONYMS
        self._synonyms = {
            normalize(canonical): tuple(normalize(s) for s in syns)
            for canonical, syns in source.items()
        }
        self._domain_keywords = frozenset(
            normalize(k) for k in (domain_keywords or self.DOMAIN_KEYWORDS)
        )
        self._stop_words = frozenset(
            normalize(w) for w in (stop_words or self.STOP_WORDS)
        )

    @property
    def stop_words(self) -> frozenset[str]:
        return self._stop_words

    def is_stop_word(self, token: str) -> bool:
        return token in self._stop_words

    def content_tokens(self, text: str, min_length: int = 2) -> list[str]:
        """Normalized non-stop-word tokens, order kept, duplicates kept."""
        return [
            t
            for t in tokenize(text)
            if len(t) >= min_length and t not in self._stop_words
        ]

    def extract_critical_terms(self, query: str) -> set[str]:
        """Terms that must weigh heavily in lexical matching.

        Returns numeric codes (3+ digits), identifier-like tokens (T+1, API,
        PRX12) and normalized tokens that are domain keywords or at least
        four characters long, minus stop words.
        """
        normalized = normalize(query)
        terms: set[str] = set(_NUMERIC_CODE_RE.findall(normalized))

        for match in _IDENTIFIER_RE.findall(query.translate(_CHAR_MAP)):
            terms.add(match.lower())

        for token in normalized.split():
            if token in self._stop_words:
                continue
            if token in self._domain_keywords or len(token) >= 4:
                terms.add(token)

        return terms

    def expand_with_synonyms(self, query: str) -> str:
        """Append canonical terms for any synonym found in the query.

        One-directional: synonym -> canonical. When the canonical term is
        already present, a small fixed sample of its synonyms is appended
        instead so lexical recall works in both directions.
        """
        normalized = normalize(query)
        additions: list[str] = []

        for canonical, synonyms in self._synonyms.items():
            if contains_phrase(normalized, canonical):
                sample = [
                    s for s in synonyms if not contains_phrase(normalized, s)
                ][: self.SYNONYM_SAMPLE_SIZE]
                additions.extend(sample)
            elif any(contains_phrase(normalized, s) for s in synonyms):
                additions.append(canonical)

        if not additions:
            return query

        seen: set[str] = set()
        unique = [a for a in additions if not (a in seen or seen.add(a))]
        return f"{query} {' '.join(unique)}"

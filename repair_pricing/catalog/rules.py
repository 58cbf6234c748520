# repair_pricing/catalog/rules.py
"""Ordered rule tables shared by the catalog loader and the query analyzer.

Every table is a list of (pattern, label) rules evaluated top to bottom;
the first rule whose pattern matches wins. Device rules are generated
most-specific first and carry negative lookaheads, so a bare "iphone 14"
rule can never fire on text that says "iphone 14 pro" or "iphone 14 plus".
"""
from __future__ import annotations
import re
import unicodedata
from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Optional, Pattern, Sequence, Tuple

from repair_pricing.catalog.models import GENERAL, STANDARD, UNKNOWN

__all__ = [
    "Rule", "RuleTable", "ItemMetadata", "normalize_text", "derive_metadata",
    "BRAND_TABLE", "DEVICE_TABLE", "SERVICE_TABLE", "QUALITY_TABLE",
]

# a variant is (suffix regex, suffix label, regex of longer suffixes to exclude)
Variant = Tuple[str, str, Optional[str]]

_BOUNDARY = r"(?<![a-z0-9])"
_WORD_END = r"(?![a-z0-9])"


def normalize_text(text) -> str:
    """Lower-case, strip accents and collapse whitespace."""
    if text is None:
        return ""
    t = unicodedata.normalize("NFKD", str(text))
    t = "".join(c for c in t if not unicodedata.combining(c))
    return re.sub(r"\s+", " ", t.lower()).strip()


@dataclass(frozen=True)
class Rule:
    pattern: Pattern
    label: str  # may reference groups of the pattern, e.g. "iphone \g<1> pro"

    def apply(self, text: str) -> Optional[str]:
        m = self.pattern.search(text)
        if not m:
            return None
        return re.sub(r"\s+", " ", m.expand(self.label)).strip()


class RuleTable:
    """First-match-wins classifier over normalized text."""

    def __init__(self, name: str, rules: Sequence[Rule], default: str):
        self.name = name
        self.rules: Tuple[Rule, ...] = tuple(rules)
        self.default = default

    def match(self, text) -> Optional[str]:
        t = normalize_text(text)
        if not t:
            return None
        for rule in self.rules:
            label = rule.apply(t)
            if label:
                return label
        return None

    def classify(self, text) -> str:
        return self.match(text) or self.default

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"RuleTable({self.name!r}, rules={len(self.rules)}, default={self.default!r})"


def _rule(pattern: str, label: str) -> Rule:
    return Rule(re.compile(pattern), label)


def _keyword_rules(groups: Sequence[Tuple[str, Sequence[str]]]) -> List[Rule]:
    """One rule per label; fragments are regexes anchored at a word start."""
    return [_rule(_BOUNDARY + "(?:" + "|".join(frags) + ")", label) for label, frags in groups]


def _family(prefix: str, label: str, variants: Sequence[Variant],
            number: str = r"(\d{1,2})", sep: str = " ") -> List[Rule]:
    """Rules for a numbered device family, most specific variant first.

    ``number`` must contain exactly one group; the base rule (no suffix)
    comes last and excludes every suffix of the family.
    """
    rules = []
    head = prefix + number + r"(?!\d)"
    model = f"{label}{sep}\\g<1>"
    for suffix, suffix_label, exclude in variants:
        pat = head + r"\s*(?:" + suffix + ")" + _WORD_END
        if exclude:
            pat += r"(?!\s*(?:" + exclude + "))"
        rules.append(_rule(pat, f"{model} {suffix_label}"))
    if variants:
        any_suffix = "|".join("(?:" + s + ")" + _WORD_END for s, _, _ in variants)
        head += r"(?!\s*(?:" + any_suffix + "))"
    rules.append(_rule(head, model))
    return rules


# ---------------- Brand ----------------
BRAND_GROUPS = [
    ("apple", [r"iphone", r"apple", r"ipad"]),
    ("samsung", [r"samsung", r"galaxy"]),
    ("xiaomi", [r"xiaomi", r"redmi", r"poco\s*[xfmc]\d"]),
    ("huawei", [r"huawei"]),
    ("honor", [r"honor\b"]),
    ("motorola", [r"motorola", r"moto\b"]),
    ("nokia", [r"nokia"]),
    ("lg", [r"lg\b"]),
    ("sony", [r"sony", r"xperia"]),
    ("google", [r"google", r"pixel"]),
    ("oneplus", [r"one\s*plus"]),
    ("oppo", [r"oppo\b"]),
    ("vivo", [r"vivo\b"]),
    ("realme", [r"realme"]),
    ("tcl", [r"tcl\b"]),
    ("alcatel", [r"alcatel"]),
    ("zte", [r"zte\b"]),
    ("asus", [r"asus"]),
    ("lenovo", [r"lenovo"]),
    ("blu", [r"blu\b"]),
    ("tecno", [r"tecno\b"]),
    ("infinix", [r"infinix"]),
]

# ---------------- Device ----------------
PLUS = r"plus|\+"

IPHONE_VARIANTS: List[Variant] = [
    (r"pro\s*max", "pro max", None),
    (r"pro", "pro", r"max"),
    (PLUS, "plus", None),
    (r"mini", "mini", None),
]
GALAXY_S_VARIANTS: List[Variant] = [
    (r"ultra", "ultra", None),
    (PLUS, "plus", None),
    (r"fe", "fe", None),
]
GALAXY_NOTE_VARIANTS: List[Variant] = [
    (r"ultra", "ultra", None),
    (PLUS, "plus", None),
]
REDMI_NOTE_VARIANTS: List[Variant] = [
    (r"pro\s*(?:plus|\+)", "pro plus", None),
    (r"pro", "pro", PLUS),
    (r"s", "s", None),
]
XIAOMI_VARIANTS: List[Variant] = [
    (r"t\s*pro", "t pro", None),
    (r"ultra", "ultra", None),
    (r"pro", "pro", None),
    (r"lite", "lite", None),
    (r"t", "t", None),
]
MOTO_VARIANTS: List[Variant] = [
    (r"power", "power", None),
    (PLUS, "plus", None),
    (r"play", "play", None),
    (r"stylus", "stylus", None),
]
PIXEL_VARIANTS: List[Variant] = [
    (r"pro\s*xl", "pro xl", None),
    (r"pro", "pro", r"xl"),
    (r"xl", "xl", None),
    (r"a", "a", None),
]
PRO_LITE_VARIANTS: List[Variant] = [
    (r"pro", "pro", None),
    (r"lite", "lite", None),
]

_SAMSUNG = r"(?:\b(?:samsung\s*)?galaxy\s*|\bsamsung\s*)"

DEVICE_RULES: List[Rule] = [
    # Apple
    *_family(r"\biphone\s*", "iphone", IPHONE_VARIANTS),
    _rule(r"\biphone\s*se\b", "iphone se"),
    _rule(r"\biphone\s*xr\b", "iphone xr"),
    _rule(r"\biphone\s*xs\s*max\b", "iphone xs max"),
    _rule(r"\biphone\s*xs\b(?!\s*max)", "iphone xs"),
    _rule(r"\biphone\s*x" + _WORD_END, "iphone x"),
    # Xiaomi (before Samsung so "redmi note" never reaches the Note family)
    *_family(r"\bredmi\s*note\s*", "redmi note", REDMI_NOTE_VARIANTS),
    *_family(r"\bredmi\s*", "redmi", [(r"c", "c", None), (r"a", "a", None)]),
    *_family(r"\bpoco\s*", "poco", [(r"pro", "pro", None)], number=r"([xfmc]\d)"),
    *_family(r"\bxiaomi\s*(?:mi\s*)?", "xiaomi", XIAOMI_VARIANTS),
    # Samsung, branded forms first so spacing like "galaxy s 23" is accepted
    *_family(_SAMSUNG + r"note\s?", "samsung note", GALAXY_NOTE_VARIANTS),
    *_family(r"\b(?:(?:samsung|galaxy)\s*)*z\s*flip\s?", "samsung z flip", [], number=r"(\d)"),
    *_family(r"\b(?:(?:samsung|galaxy)\s*)*z\s*fold\s?", "samsung z fold", [], number=r"(\d)"),
    *_family(_SAMSUNG + r"s\s?", "samsung s", GALAXY_S_VARIANTS, sep=""),
    *_family(_SAMSUNG + r"a\s?", "samsung a", [(r"s", "s", None)], number=r"(\d{2,3})", sep=""),
    *_family(_BOUNDARY + r"s", "samsung s", GALAXY_S_VARIANTS, sep=""),
    *_family(_BOUNDARY + r"a", "samsung a", [(r"s", "s", None)], number=r"(\d{2,3})", sep=""),
    # Motorola
    *_family(r"\bmoto(?:rola)?\s*edge\s*", "moto edge", [(r"pro", "pro", None), (PLUS, "plus", None)]),
    *_family(r"\bmoto(?:rola)?\s*", "moto", MOTO_VARIANTS, number=r"([ge]\d{1,3})"),
    # Google
    *_family(r"\b(?:google\s*)?pixel\s*", "pixel", PIXEL_VARIANTS),
    # Huawei / Honor
    *_family(r"\b(?:huawei\s*)?mate\s*", "huawei mate", PRO_LITE_VARIANTS, number=r"(\d{2})"),
    *_family(r"(?:\bhuawei\s*)?" + _BOUNDARY + r"p\s?", "huawei p", PRO_LITE_VARIANTS, number=r"(\d{2})", sep=""),
    *_family(r"\bhonor\s*", "honor", PRO_LITE_VARIANTS, number=r"(x?\d{1,3})"),
]

# ---------------- Service ----------------
SERVICE_GROUPS = [
    ("tapa", [r"back\s*glass", r"vidrio\s*trasero", r"tapa\s*trasera"]),
    ("pantalla", [r"pantalla", r"screen", r"display", r"lcd\b", r"oled", r"amoled",
                  r"modulo", r"touch", r"tactil", r"glass", r"vidrio"]),
    ("bateria", [r"bateria", r"battery", r"pila\b"]),
    ("camara", [r"camara", r"camera", r"lente", r"lens\b"]),
    ("altavoz", [r"altavoz", r"speaker", r"parlante", r"auricular"]),
    ("carga", [r"pin\s*de\s*carga", r"puerto\s*de\s*carga", r"charging", r"conector", r"carga"]),
    ("flex", [r"flex", r"cable"]),
    ("tapa", [r"tapa", r"back\s*cover", r"cover", r"carcasa", r"housing"]),
    ("antena", [r"antena", r"wifi", r"senal"]),
    ("boton", [r"boton", r"button"]),
    ("software", [r"software", r"desbloqueo", r"unlock", r"flasheo"]),
]

# ---------------- Quality ----------------
QUALITY_GROUPS = [
    ("original", [r"original", r"oem\b", r"genuin"]),
    ("compatible", [r"compatible", r"generic", r"generico", r"aaa\b", r"comp\b"]),
    ("incell", [r"in-?\s?cell"]),
    ("oled", [r"oled", r"amoled"]),
    ("lcd", [r"lcd\b", r"tft\b"]),
]

BRAND_TABLE = RuleTable("brand", _keyword_rules(BRAND_GROUPS), UNKNOWN)
DEVICE_TABLE = RuleTable("device", DEVICE_RULES, UNKNOWN)
SERVICE_TABLE = RuleTable("service", _keyword_rules(SERVICE_GROUPS), GENERAL)
QUALITY_TABLE = RuleTable("quality", _keyword_rules(QUALITY_GROUPS), STANDARD)


class ItemMetadata(NamedTuple):
    brand: str
    device_model: str
    service_type: str
    quality_tier: str


def derive_metadata(text) -> ItemMetadata:
    """Run all four tables over one product name."""
    device = DEVICE_TABLE.classify(text)
    brand = BRAND_TABLE.classify(text)
    if brand == UNKNOWN and device != UNKNOWN:
        # bare model codes such as "s23" only name the brand through the device label
        brand = BRAND_TABLE.classify(device)
    return ItemMetadata(
        brand=brand,
        device_model=device,
        service_type=SERVICE_TABLE.classify(text),
        quality_tier=QUALITY_TABLE.classify(text),
    )

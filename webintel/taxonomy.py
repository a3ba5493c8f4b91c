"""Canonical label taxonomy.

Every detector maps noisy vendor text through a RuleTable:

1. exact code match (e.g. ASN -> provider)
2. ordered keyword table (case-insensitive substring, first match wins)
3. fallback (fixed label or a function of the cleaned text)

The tables are plain data so precedence can be read (and tested) top to bottom.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

Fallback = Union[str, Callable[[str], str]]


@dataclass(frozen=True)
class Match:
    label: str
    rule: str  # exact|keyword|fallback


@dataclass(frozen=True)
class RuleTable:
    name: str
    exact: Mapping[str, str] = field(default_factory=dict)
    keywords: Sequence[tuple[str, str]] = ()
    fallback: Fallback = "Unknown"

    def match(self, text: str, code: Optional[str] = None) -> Match:
        if code is not None:
            hit = self.exact.get(code.strip().upper())
            if hit is not None:
                return Match(hit, "exact")

        lowered = text.lower()
        for keyword, label in self.keywords:
            if keyword.lower() in lowered:
                return Match(label, "keyword")

        if callable(self.fallback):
            return Match(self.fallback(text), "fallback")
        return Match(self.fallback, "fallback")

    def label(self, text: str, code: Optional[str] = None) -> str:
        return self.match(text, code).label


# CDN / hosting

ASN_PROVIDERS: dict[str, str] = {
    "AS13335": "Cloudflare",
    "AS209242": "Cloudflare",
    "AS54113": "Fastly",
    "AS14618": "Amazon CloudFront",
    "AS16509": "Amazon CloudFront",
    "AS19905": "Amazon CloudFront",
    "AS20940": "Akamai",
    "AS16625": "Akamai",
    "AS19551": "Imperva (Incapsula)",
    "AS18881": "Imperva (Incapsula)",
    "AS396982": "Google Cloud CDN",
    "AS15169": "Google Cloud CDN",
    "AS8075": "Microsoft Azure CDN",
    "AS8068": "Microsoft Azure CDN",
    "AS20473": "Linode",
    "AS21859": "Zenlayer",
    "AS60626": "StackPath",
    "AS18680": "KeyCDN",
    "AS13649": "G-Core Labs",
    "AS14061": "DigitalOcean",
    "AS16276": "OVH",
    "AS35540": "BunnyCDN",
    "AS46606": "Section.io",
    "AS60068": "CDN77",
    "AS54825": "PacketCDN",
    "AS26496": "GoDaddy",
    "AS44273": "HostGator",
    "AS55293": "A2 Hosting",
    "AS32475": "SingleHop",
    "AS30315": "ColoCrossing",
    "AS13768": "Peer1",
    "AS36351": "SoftLayer",
    "AS21502": "Canaca",
    "AS8560": "Ionos",
    "AS22612": "Namecheap",
    "AS7018": "AT&T",
    "AS7922": "Comcast",
    "AS36561": "Sucuri",
    "AS18978": "Enzu",
    "AS62567": "NS1",
    "AS40034": "Confluence",
}

CDN_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("cloudflare", "Cloudflare"),
    ("fastly", "Fastly"),
    ("akamai connected cloud", "Linode"),
    ("akamai", "Akamai"),
    ("cloudfront", "Amazon CloudFront"),
    ("amazon", "Amazon CloudFront"),
    ("aws", "Amazon CloudFront"),
    ("google", "Google Cloud CDN"),
    ("microsoft", "Microsoft Azure CDN"),
    ("azure", "Microsoft Azure CDN"),
    ("incapsula", "Imperva (Incapsula)"),
    ("imperva", "Imperva (Incapsula)"),
    ("sucuri", "Sucuri"),
    ("stackpath", "StackPath"),
    ("edgecast", "Edgecast"),
    ("verizon", "Edgecast"),
    ("cdn77", "CDN77"),
    ("g-core", "G-Core Labs"),
    ("gcore", "G-Core Labs"),
    ("keycdn", "KeyCDN"),
    ("bunny", "BunnyCDN"),
    ("section.io", "Section.io"),
    ("quiccloud", "QuicCloud"),
    ("cdnetworks", "CDNetworks"),
    ("limelight", "Limelight"),
    ("leaseweb", "Leaseweb"),
    ("zenlayer", "Zenlayer"),
    ("linode", "Linode"),
    ("digitalocean", "DigitalOcean"),
    ("ovh", "OVH"),
    ("godaddy", "GoDaddy"),
    ("hostgator", "HostGator"),
    ("a2 hosting", "A2 Hosting"),
    ("singlehop", "SingleHop"),
    ("colocrossing", "ColoCrossing"),
    ("peer1", "Peer1"),
    ("softlayer", "SoftLayer"),
    ("canaca", "Canaca"),
    ("ionos", "Ionos"),
    ("1&1", "Ionos"),
    ("namecheap", "Namecheap"),
    ("ns1", "NS1"),
    ("confluence", "Confluence"),
)

SELF_HOSTED = "Self Hosted"
UNKNOWN = "Unknown"

SELF_HOSTED_KEYWORDS: tuple[str, ...] = (
    "dedicated",
    "private",
    "enterprise",
    "internal",
    "vps",
    "bare metal",
)

_ASN_RE = re.compile(r"\bAS\d+\b", re.IGNORECASE)
_LEGAL_SUFFIX_RE = re.compile(
    r"(?<![\w])(?:L\.?L\.?C\.?|Inc\.?|Ltd\.?|GmbH|S\.A\.?|Co\.|Corp\.?|Corporation|Limited|B\.V\.|PLC)(?![\w])",
    re.IGNORECASE,
)


def extract_asn(org: str) -> Optional[str]:
    m = _ASN_RE.search(org or "")
    return m.group(0).upper() if m else None


def clean_org_name(org: str) -> str:
    """Strip the ASN prefix and legal-entity suffixes from an org string."""
    name = _ASN_RE.sub("", org or "")
    name = _LEGAL_SUFFIX_RE.sub("", name)
    name = re.sub(r"\s*,\s*(?=,|$)", "", name)
    return re.sub(r"\s{2,}", " ", name).strip(" ,")


def _cdn_fallback(name: str) -> str:
    lowered = name.lower()
    if any(k in lowered for k in SELF_HOSTED_KEYWORDS):
        return SELF_HOSTED
    return UNKNOWN


CDN_TABLE = RuleTable(
    name="cdn",
    exact=ASN_PROVIDERS,
    keywords=CDN_KEYWORDS,
    fallback=_cdn_fallback,
)


def normalize_cdn(org: Optional[str], asn: Optional[str] = None) -> Match:
    """Map an ipinfo-style org string ("AS13335 Cloudflare, Inc.") to a provider."""
    if not org or not isinstance(org, str):
        if asn:
            return CDN_TABLE.match("", asn)
        return Match(UNKNOWN, "fallback")
    code = asn or extract_asn(org)
    return CDN_TABLE.match(clean_org_name(org), code)


# WAF / bot manager

NO_WAF_DETECTED = "No WAF detected"
NO_SECURITY = "No security solution detected"

# Bot managers first: their raw names often contain a WAF vendor keyword too
# ("Cloudflare Bot Management" must not collapse to "Cloudflare WAF").
BOT_MANAGER_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("cloudflare bot manage", "Cloudflare Bot Manager"),
    ("datadome", "Datadome Bot Manager"),
    ("kasada", "Kasada Bot Manager"),
    ("akamai bot manage", "Akamai Bot Manager"),
    ("imperva bot manage", "Imperva Bot Manager"),
    ("perimeterx", "PerimeterX Bot Manager"),
    ("f5 bot", "F5 Bot Manager"),
    ("shape security", "F5 Bot Manager"),
    ("human security", "Human Bot Manager"),
    ("human bot", "Human Bot Manager"),
    ("google recaptcha", "Google Bot Manager"),
    ("google bot manage", "Google Bot Manager"),
    ("arkose", "Arkose Bot Manager"),
    ("securityheaders.io", "Basic Bot Manager"),
)

WAF_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("cloudflare", "Cloudflare WAF"),
    ("imperva", "Imperva WAF"),
    ("incapsula", "Imperva WAF"),
    ("kona", "Akamai WAF"),
    ("akamai", "Akamai WAF"),
    ("cloudfront", "AWS WAF"),
    ("amazon", "AWS WAF"),
    ("aws", "AWS WAF"),
    ("azure", "Azure WAF"),
    ("google", "Google Cloud WAF"),
    ("signal sciences", "Fastly WAF"),
    ("fastly", "Fastly WAF"),
    ("edgio", "Edgio WAF"),
    ("edgecast", "Edgio WAF"),
    ("radware", "Radware WAF"),
    ("big-ip", "F5 WAF"),
    ("f5", "F5 WAF"),
    ("fortinet", "FortiWeb WAF"),
    ("fortiweb", "FortiWeb WAF"),
    ("sucuri", "Sucuri WAF"),
    ("stackpath", "StackPath WAF"),
    ("modsecurity", "ModSecurity"),
    ("wordfence", "Wordfence WAF"),
    ("malcare", "Malcare WAF"),
    ("cloudbric", "Cloudbric WAF"),
    ("reblaze", "Reblaze WAF"),
    ("wallarm", "Wallarm WAF"),
    ("sitelock", "SiteLock WAF"),
    ("godaddy", "GoDaddy WAF"),
    ("cachewall", "CacheWall WAF"),
)

_PARENS_RE = re.compile(r"\([^)]*\)")
_VERSION_RE = re.compile(r"\bv?\d+(?:\.\d+)*\b", re.IGNORECASE)
_PRODUCT_SUFFIX_RE = re.compile(
    r"\b(?:inc|llc|corp|corporation|technologies|limited|ltd|gmbh)\b\.?",
    re.IGNORECASE,
)


def clean_product_name(raw: str) -> str:
    """Fallback for unmapped security products: drop asides, versions and legal suffixes."""
    name = _PARENS_RE.sub("", raw)
    name = _VERSION_RE.sub("", name)
    name = _PRODUCT_SUFFIX_RE.sub("", name)
    name = re.sub(r"\s{2,}", " ", name)
    return name.strip(" .,-")


DEFENSE_TABLE = RuleTable(
    name="defense",
    keywords=BOT_MANAGER_KEYWORDS + WAF_KEYWORDS,
    fallback=clean_product_name,
)

# Header-name markers for the passive bot-manager probe.
BOT_MANAGER_HEADERS: tuple[tuple[str, str], ...] = (
    ("x-ak-bms", "Akamai Bot Manager"),
    ("cf-bot-management", "Cloudflare Bot Manager"),
    ("x-shape-sec", "F5 Bot Manager"),
    ("x-bm-datadome", "Datadome Bot Manager"),
    ("x-datadome", "Datadome Bot Manager"),
    ("x-perimeterx", "PerimeterX Bot Manager"),
    ("x-px-", "PerimeterX Bot Manager"),
    ("x-kasada", "Kasada Bot Manager"),
    ("x-kpsdk", "Kasada Bot Manager"),
    ("x-recaptcha", "Google Bot Manager"),
    ("arkose-token", "Arkose Bot Manager"),
)


def normalize_security_product(raw: Optional[str]) -> Optional[str]:
    if not raw or not isinstance(raw, str) or not raw.strip():
        return None
    label = DEFENSE_TABLE.label(raw.strip())
    return label or None


def merge_security_labels(*groups: Sequence[str]) -> str:
    """Ordered, de-duplicated union of labels, or the "nothing found" label."""
    seen: list[str] = []
    for group in groups:
        for label in group:
            if not label or label == NO_WAF_DETECTED or label in seen:
                continue
            seen.append(label)
    return ", ".join(seen) if seen else NO_SECURITY


# Traffic sources

TRAFFIC_SOURCE_TABLE = RuleTable(
    name="traffic_source",
    exact={
        "XRANKS": "XRanks",
        "SIMILARWEB": "Similarweb",
        "SCRAPE": "Similarweb",
    },
    keywords=(
        ("xranks", "XRanks"),
        ("similarweb", "Similarweb"),
        ("semrush", "Semrush"),
        ("siterankdata", "SiteRankData"),
    ),
    fallback=lambda text: text.strip() or "unknown",
)


def source_display_name(source: str) -> str:
    return TRAFFIC_SOURCE_TABLE.label(source, source)

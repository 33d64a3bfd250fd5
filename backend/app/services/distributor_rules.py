"""
Distributor / manufacturer classification rules for pricebook products.

Rules are plain ordered data: each rule is a predicate over the product's
pricebook metadata plus the company name it yields. The first matching rule
wins, so explicit manufacturer mentions sit above section defaults.
"""
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

CROSSROADS = "Crossroads C&I"
IMPRO = "IMPRO"

NEEDS_REVIEW_REASON = "Could not determine distributor from pricebook metadata"


@dataclass(frozen=True)
class PricebookInfo:
    page_name: str = ""
    page_number: str = ""
    group_code: str = ""
    section: str = ""

    @classmethod
    def from_product(cls, row: Dict[str, Any]) -> "PricebookInfo":
        return cls(
            page_name=(row.get("pricebook_page_name") or "").strip(),
            page_number=(row.get("pricebook_page_number") or "").strip(),
            group_code=(row.get("pricebook_group_code") or "").strip(),
            section=(row.get("pricebook_section") or "").strip(),
        )


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[str], bool]
    result: str


def contains_any(*needles: str) -> Callable[[str], bool]:
    return lambda text: any(n in text for n in needles)


def contains_all(*groups: Sequence[str]) -> Callable[[str], bool]:
    """Every group must have at least one needle present."""
    return lambda text: all(any(n in text for n in group) for group in groups)


# ── Manufacturer rules (upper-cased page name) ────────────────────────────────

MANUFACTURER_RULES: Tuple[Rule, ...] = (
    Rule("johns-manville", contains_any("JM ", " JOHNS MANVILLE", "JOHN MANVILLE"), "Johns Manville"),
    Rule("rockwool", contains_any("ROCKWOOL", "ROCK BOARD"), "Rockwool"),
    Rule("armacell", contains_any("ARMACELL", "ARMAFLEX"), "Armacell"),
    Rule("k-flex", contains_any("K-FLEX", "KFLEX"), "K-Flex USA"),
    Rule("dow", contains_all(("DOW",), ("STYROFOAM", "HIGHLOAD", "CAVITYMATE")), "Dow"),
    Rule("foamglas", contains_any("FOAMGLAS", "FOAM GLAS"), "Foamglas"),
    Rule("calsil", contains_any("CALSIL", "CAL SIL", "CALCIUM SILICATE"), "Calcium Silicate"),
    Rule("3m", contains_any("3M"), "3M"),
    Rule("henry", contains_any("HENRY"), "Henry"),
    Rule("nutec", contains_any("NUTEC"), "Nutec"),
    Rule("superwool", contains_any("SUPERWOOL"), "Thermal Ceramics"),
    Rule("aspen", contains_any("ASPEN"), "Aspen Aerogels"),
    Rule("dynair", contains_any("DYNAIR"), "Dynair"),
    Rule("lewco", contains_any("LEWCO"), "Lewco"),
    Rule("buckaroo", contains_any("BUCKAROO"), "Buckaroo Tools"),
    # CCI MW is Rockwool's mineral wool line
    Rule("cci-mw", contains_all(("CCI",), ("MW",)), "Rockwool"),
    Rule("rockwool-lines", contains_any("FABROCK", "COMFORT", "CROSSROCK", "SAFE"), "Rockwool"),
    # section defaults
    Rule("fiberglass-default", contains_any("FIBREGLASS", "FIBERGLASS"), "Johns Manville"),
    Rule("mineral-wool-default", contains_any("MINERAL WOOL", "MIN WOOL", "MIN. WOOL"), "Rockwool"),
)

# IMPRO pricebook sheets are named by group code; every one of them is Armacell stock
IMPRO_GROUP_CODES = frozenset({
    "ELTUA", "ELTUK", "ELTCA", "ELTCK", "ELTLSA", "ELTLSK", "ELRSA", "ELRSK", "ELRSAA", "ELRSAK",
    "IPSA", "IPSK", "APK", "APX", "CWA", "KWAK", "WFA", "ETBLK", "DFO", "DFK", "CHAR DBL",
    "CHAR FDBL", "MPR", "EWR", "MPSR", "MX", "RBR", "FM RHT", "FM RW RHM", "FWR", "FM RP FW",
    "FM CR CUR", "FM AFB", "FM AFBS", "ESLIN", "BASO", "TNS", "ACO", "NS", "POLY", "VENT",
    "ALRLI", "ALRLJ", "CHAR AL", "ALCRB", "ALCRPEI", "ALCRPEJ", "AL90I", "AL90J", "AL45I",
    "AL45J", "ALTI", "ALTJ", "ALCI", "ALCJ", "PP", "SSRL", "SSCRJ", "SSCRI", "SS90I", "SS90J",
    "SS45I", "SS45J", "PVCRL", "PVCCR", "CHAR PVC", "PVCCRSA", "PVC90", "PVC90LR", "PVC9045TVCT",
    "PVC45", "PVCT", "PVCC", "PVCJ", "PVCB", "MEMB", "MEMBB", "SATGTWF", "MEMBRE", "MEMBAK",
    "APPBAK", "COA", "COP", "COPO", "SCP", "BAK100", "BAK200", "BAK700800", "PPOLR", "RG2400",
    "ADHF", "3MF", "ANC", "CLS", "DRI", "RIV", "BAA", "BASS", "RUB", "SEL", "ACCM", "BRO", "PS",
    "ACC", "OUT", "THBMB", "MISC", "AMIA", "CERAB", "PIRPP", "PIRFP", "PIRF", "SMPP", "SMFP",
    "SMF", "FGP", "FGF", "FGFI",
})

GROUP_CODE_MANUFACTURERS: Dict[str, str] = {code: "Armacell" for code in IMPRO_GROUP_CODES}

_CROSSROADS_PAGE_RE = re.compile(r"^\d+\.\d+")


def _impro_code(info: PricebookInfo) -> bool:
    if info.group_code.upper() in IMPRO_GROUP_CODES:
        return True
    # IMPRO page names are the bare sheet code
    name = info.page_name.upper()
    return bool(name) and len(name) < 10 and " " not in name and name in IMPRO_GROUP_CODES


DISTRIBUTOR_RULES: Tuple[Tuple[str, Callable[[PricebookInfo], bool], str], ...] = (
    ("crossroads-page-number", lambda info: bool(_CROSSROADS_PAGE_RE.match(info.page_number)), CROSSROADS),
    ("impro-group-code", _impro_code, IMPRO),
)


@dataclass(frozen=True)
class Classification:
    distributor: Optional[str]
    manufacturer: Optional[str]
    distributor_rule: Optional[str] = None
    manufacturer_rule: Optional[str] = None

    @property
    def needs_review(self) -> bool:
        return self.distributor is None


def first_match(rules: Sequence[Rule], text: str) -> Optional[Rule]:
    for rule in rules:
        if rule.matches(text):
            return rule
    return None


def classify_manufacturer(page_name: Optional[str]) -> Optional[str]:
    if not page_name:
        return None
    rule = first_match(MANUFACTURER_RULES, page_name.upper())
    return rule.result if rule else None


def match_distributor(info: PricebookInfo) -> Tuple[Optional[str], Optional[str]]:
    """(rule name, distributor) of the first matching distributor rule."""
    for rule_name, predicate, result in DISTRIBUTOR_RULES:
        if predicate(info):
            return rule_name, result
    return None, None


def classify_distributor(info: PricebookInfo) -> Optional[str]:
    return match_distributor(info)[1]


def classify(info: PricebookInfo, current_manufacturer: Optional[str] = None) -> Classification:
    """
    Resolve distributor and manufacturer names for one product.

    Manufacturer falls back to the IMPRO group-code table and then to the
    product's current manufacturer.
    """
    distributor_rule, distributor = match_distributor(info)

    rule = first_match(MANUFACTURER_RULES, info.page_name.upper()) if info.page_name else None
    manufacturer = rule.result if rule else None
    manufacturer_rule = rule.name if rule else None
    if manufacturer is None and distributor == IMPRO and info.group_code:
        manufacturer = GROUP_CODE_MANUFACTURERS.get(info.group_code.upper())
        manufacturer_rule = "impro-group-code" if manufacturer else None
    if manufacturer is None and current_manufacturer:
        manufacturer = current_manufacturer
        manufacturer_rule = "existing"

    return Classification(
        distributor=distributor,
        manufacturer=manufacturer,
        distributor_rule=distributor_rule,
        manufacturer_rule=manufacturer_rule,
    )


# ── Supplier entries ──────────────────────────────────────────────────────────

def merge_supplier_entries(entries: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Collapse supplier entries sharing a distributorId into one entry.

    The first entry keeps its position; later duplicates only fill fields the
    first one lacks, and the merged entry is preferred if any duplicate was.
    """
    merged: List[Dict[str, Any]] = []
    by_distributor: Dict[str, Dict[str, Any]] = {}
    for entry in entries or []:
        distributor_id = entry.get("distributorId")
        if not distributor_id:
            merged.append(dict(entry))
            continue
        key = str(distributor_id)
        target = by_distributor.get(key)
        if target is None:
            target = dict(entry)
            by_distributor[key] = target
            merged.append(target)
            continue
        for field_name, value in entry.items():
            if target.get(field_name) is None and value is not None:
                target[field_name] = value
        if entry.get("isPreferred"):
            target["isPreferred"] = True
    return merged


def ensure_supplier_entry(
    entries: List[Dict[str, Any]],
    distributor_id: str,
    manufacturer_id: Optional[str],
    pricing: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Point the resolved distributor's entry at the manufacturer, adding the entry if absent."""
    result = [dict(e) for e in entries]
    for entry in result:
        if str(entry.get("distributorId")) == str(distributor_id):
            if manufacturer_id and str(entry.get("manufacturerId")) != str(manufacturer_id):
                entry["manufacturerId"] = manufacturer_id
            return result
    pricing = pricing or {}
    result.append({
        "distributorId": distributor_id,
        "manufacturerId": manufacturer_id,
        "listPrice": pricing.get("listPrice"),
        "netPrice": pricing.get("netPrice"),
        "discountPercent": pricing.get("discountPercent"),
        "isPreferred": True,
    })
    return result

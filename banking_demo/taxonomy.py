"""
Investment Taxonomy

Static reference lookup of investment types, categories, subtypes and risk
levels. Validation and the public taxonomy endpoint both read from
INVESTMENT_TAXONOMY; nothing else hardcodes these values.
"""

from enum import Enum
from typing import Dict, List, Optional


class InvestmentType(Enum):
    FIXED_INCOME = "fixed-income"
    VARIABLE_INCOME = "variable-income"


class InvestmentCategory(Enum):
    INVESTMENT_FUND = "investment-fund"
    PRIVATE_PENSION = "private-pension"
    STOCK_MARKET = "stock-market"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


TYPE_LABELS = {
    InvestmentType.FIXED_INCOME: "Fixed Income",
    InvestmentType.VARIABLE_INCOME: "Variable Income",
}

CATEGORY_LABELS = {
    InvestmentCategory.INVESTMENT_FUND: "Investment Funds",
    InvestmentCategory.PRIVATE_PENSION: "Private Pension",
    InvestmentCategory.STOCK_MARKET: "Stock Market",
}

RISK_LABELS = {
    RiskLevel.LOW: "Low",
    RiskLevel.MEDIUM: "Medium",
    RiskLevel.HIGH: "High",
}

# type -> category -> allowed subtypes
INVESTMENT_TAXONOMY: Dict[InvestmentType, Dict[InvestmentCategory, List[str]]] = {
    InvestmentType.FIXED_INCOME: {
        InvestmentCategory.INVESTMENT_FUND: [
            "CDB", "LCI", "LCA", "LC", "Tesouro Direto", "Debentures",
        ],
        InvestmentCategory.PRIVATE_PENSION: ["PGBL", "VGBL", "Corporate Pension"],
        InvestmentCategory.STOCK_MARKET: ["Tesouro Direto"],
    },
    InvestmentType.VARIABLE_INCOME: {
        InvestmentCategory.INVESTMENT_FUND: [
            "Equity Funds", "Multimarket Funds", "Currency Funds", "ETFs",
        ],
        InvestmentCategory.PRIVATE_PENSION: ["VGBL Multimarket", "PGBL Multimarket"],
        InvestmentCategory.STOCK_MARKET: ["Stocks", "FIIs", "BDRs", "Options", "Futures"],
    },
}


def parse_enum(enum_cls, value) -> Optional[Enum]:
    """Return the enum member for a raw value, or None if it is not one"""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def allowed_subtypes(investment_type: InvestmentType, category: InvestmentCategory) -> List[str]:
    return list(INVESTMENT_TAXONOMY[investment_type][category])


def is_valid_subtype(investment_type: InvestmentType, category: InvestmentCategory, subtype: str) -> bool:
    return subtype in INVESTMENT_TAXONOMY[investment_type][category]


def describe_taxonomy() -> Dict:
    """Read-only view of the taxonomy for API consumers"""
    return {
        "types": [{"value": t.value, "label": TYPE_LABELS[t]} for t in InvestmentType],
        "categories": [{"value": c.value, "label": CATEGORY_LABELS[c]} for c in InvestmentCategory],
        "subtypes": {
            t.value: {c.value: list(subtypes) for c, subtypes in categories.items()}
            for t, categories in INVESTMENT_TAXONOMY.items()
        },
        "risk_levels": [{"value": r.value, "label": RISK_LABELS[r]} for r in RiskLevel],
    }

"""
System component catalog.

These components are installed by ``ComponentCatalogService.seed_system_components``
and can never be created, edited or deleted through the catalog API.
"""

from decimal import Decimal

SYSTEM_COMPONENTS: tuple[dict, ...] = (
    # Earnings
    {"code": "BASIC", "name": "Basic Salary", "component_type": "earning",
     "category": "regular", "calculation_method": "fixed_amount", "display_order": 1},
    {"code": "ALLOWANCE_OTHER", "name": "Other Allowance", "component_type": "allowance",
     "category": "allowance", "calculation_method": "fixed_amount", "display_order": 5},
    {"code": "ALLOWANCE_DIFF_RATE", "name": "Rate Differential Allowance",
     "component_type": "allowance", "category": "allowance",
     "calculation_method": "fixed_amount", "display_order": 6},
    {"code": "OT_REG", "name": "Regular Overtime", "component_type": "earning",
     "category": "overtime", "calculation_method": "per_hour",
     "ot_multiplier": Decimal("1.25"), "display_order": 10},
    {"code": "OT_HOLIDAY", "name": "Holiday Overtime", "component_type": "earning",
     "category": "overtime", "calculation_method": "per_hour",
     "ot_multiplier": Decimal("1.69"), "display_order": 11},
    {"code": "OT_DOUBLE", "name": "Double Holiday Overtime", "component_type": "earning",
     "category": "overtime", "calculation_method": "per_hour",
     "ot_multiplier": Decimal("3.90"), "display_order": 12},
    {"code": "OT_TRIPLE", "name": "Triple Holiday Overtime", "component_type": "earning",
     "category": "overtime", "calculation_method": "per_hour",
     "ot_multiplier": Decimal("5.07"), "display_order": 13},
    {"code": "HOLIDAY_REG", "name": "Regular Holiday Pay", "component_type": "earning",
     "category": "holiday", "calculation_method": "per_day",
     "ot_multiplier": Decimal("2.00"), "display_order": 20},
    {"code": "HOLIDAY_DOUBLE", "name": "Double Holiday Pay", "component_type": "earning",
     "category": "holiday", "calculation_method": "per_day",
     "ot_multiplier": Decimal("3.00"), "display_order": 21},
    {"code": "HOLIDAY_SPECIAL_WORK", "name": "Special Non-Working Day Pay",
     "component_type": "earning", "category": "holiday", "calculation_method": "per_day",
     "ot_multiplier": Decimal("1.30"), "display_order": 22},
    {"code": "PREMIUM_NIGHT", "name": "Night Differential", "component_type": "earning",
     "category": "regular", "calculation_method": "per_hour",
     "ot_multiplier": Decimal("0.10"), "display_order": 30},
    # Government contributions and tax
    {"code": "SSS", "name": "SSS Contribution", "component_type": "contribution",
     "category": "contribution", "calculation_method": "percentage_of_basic",
     "default_percentage": Decimal("8.00"), "is_taxable": False, "display_order": 50},
    {"code": "PHILHEALTH", "name": "PhilHealth Contribution", "component_type": "contribution",
     "category": "contribution", "calculation_method": "percentage_of_basic",
     "default_percentage": Decimal("2.75"), "is_taxable": False, "display_order": 51},
    {"code": "PAGIBIG", "name": "Pag-IBIG Contribution", "component_type": "contribution",
     "category": "contribution", "calculation_method": "percentage_of_basic",
     "default_percentage": Decimal("1.00"), "is_taxable": False, "display_order": 52},
    {"code": "TAX", "name": "Withholding Tax", "component_type": "tax",
     "category": "tax", "calculation_method": "percentage_of_gross",
     "is_taxable": False, "display_order": 60},
    {"code": "LOAN_DEDUCTION", "name": "Loan Deduction", "component_type": "loan",
     "category": "loan", "calculation_method": "fixed_amount",
     "is_taxable": False, "display_order": 70},
)

SYSTEM_COMPONENT_CODES = frozenset(c["code"] for c in SYSTEM_COMPONENTS)

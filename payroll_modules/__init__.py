"""
Payroll modules: salary profiles, component catalog, recurring allowances
and deductions, loans, and the payroll calculation engine.
"""

"""
FinSent dashboard core
Chart normalization, axis domains and backend readiness polling
"""

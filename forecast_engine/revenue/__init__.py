"""
Month-end revenue (GMV) forecasting: weekly patterns, intra-month projection, AOV drift, ensembling, and coherence checks.
It groups related modules under a stable import path and keeps package boundaries explicit.
"""

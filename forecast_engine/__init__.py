"""
Demand and revenue forecasting engine for custodian dispatch operations.
It groups the model, segmentation, workforce, and month-end revenue subsystems under one import path.
Most functionality lives in the subpackages; `forecast_engine.engine` exposes the call-level entry points.
"""

"""
Menu pipeline package:
- normalization: converts extracted menu prices into the target currency
- orchestrator: per-session state machine sequencing extraction and normalization
"""

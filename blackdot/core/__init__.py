"""
Core logic for blackdot: feature gating and the hook engine.
"""

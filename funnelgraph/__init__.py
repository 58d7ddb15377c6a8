"""
Funnel stage graph: stage store, branch resolution, validation and analytics.
"""

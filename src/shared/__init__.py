"""
Shared Layer - Cross-Cutting Concerns
Error contract, configuration helpers, persistence and observability
"""

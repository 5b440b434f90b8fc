"""
Core domain logic: field normalization, column resolution, tiers and models.
"""

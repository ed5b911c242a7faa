"""
Product categories and their sub-categories.
"""

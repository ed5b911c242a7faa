"""
Employee (admin account) management for super admins.
"""

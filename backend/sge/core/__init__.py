"""
core — configuration, logging, errors, Supabase clients and auth.
"""

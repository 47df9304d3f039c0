"""
services — onboarding, chat and LLM logic plus the Supabase table helpers.
"""

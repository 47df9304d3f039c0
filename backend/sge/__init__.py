"""
sge — Strategic Growth Engine backend.

Multi-tenant FastAPI service: Supabase auth + onboarding, chat backed by an
LLM, and a small dashboard API.
"""

__version__ = "0.1.0"

"""
deps.py - FastAPI dependencies for per-app resources.

Resources are created once in main.py lifespan and stored on app.state.
Routes reach them through these functions so tests can swap them with
app.dependency_overrides (ASGITransport does not run the lifespan).
"""
from fastapi import Request

from backend.agents.payment_agent.store import PaymentStore
from backend.agents.reading_agent.llm_service import GeminiClient


def get_payment_store(request: Request) -> PaymentStore:
    return request.app.state.payment_store


def get_llm_client(request: Request) -> GeminiClient:
    return request.app.state.gemini

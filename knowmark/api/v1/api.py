"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from knowmark.api.v1.endpoints import auth, users

api_router = APIRouter()

# Signup, login, logout
api_router.include_router(auth.router)

# User profile & deletion
api_router.include_router(users.router)

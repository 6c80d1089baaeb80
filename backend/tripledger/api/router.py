"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from tripledger.api.routes import budget, expenses

api_router = APIRouter()

# Include all route modules
api_router.include_router(budget.router)
api_router.include_router(expenses.router)

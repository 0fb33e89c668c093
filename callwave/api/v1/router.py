# callwave/api/v1/router.py
"""Main API router combining all v1 endpoints"""
from fastapi import APIRouter

from callwave.api.v1 import campaigns, batches, conversations, webhooks, stats, whatsapp, pharmacy

api_router = APIRouter()

# Include all routers
api_router.include_router(campaigns.router, prefix="/campaigns", tags=["Campaigns"])
api_router.include_router(batches.router, prefix="/batches", tags=["Batches"])
api_router.include_router(conversations.router, prefix="/conversations", tags=["Conversations"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
api_router.include_router(stats.router, prefix="/stats", tags=["Stats"])
api_router.include_router(whatsapp.router, prefix="/whatsapp", tags=["WhatsApp"])
api_router.include_router(pharmacy.router, prefix="/pharmacy", tags=["Pharmacy"])

"""
dashboard.py — Dashboard Summary Endpoint

GET /api/dashboard/summary returns mocked aggregate metrics for the frontend
dashboard. No database access yet.
"""

from fastapi import APIRouter, Depends

from sge.core.security import CurrentUser, get_current_user

router = APIRouter(
    prefix="/api/dashboard",
    tags=["dashboard"]
)

MOCK_SUMMARY = {
    "totalConversations": 12,
    "activeUsers": 4,
    "messagesCount": 145,
    "growth": 15.5,
    "recentActivity": [
        {"date": "2023-10-25", "count": 20},
        {"date": "2023-10-26", "count": 35},
        {"date": "2023-10-27", "count": 12},
    ],
}


@router.get("/summary")
async def get_summary(user: CurrentUser = Depends(get_current_user)):
    return MOCK_SUMMARY

"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from portal.api.v1.endpoints import attendance, auth, presence, realtime

api_router = APIRouter()

# Auth (sign-in, sign-out, current user)
api_router.include_router(auth.router)

# Attendance state machine, corrections, leave
api_router.include_router(attendance.router)

# Presence heartbeat and live list
api_router.include_router(presence.router)

# Change feed over WebSocket
api_router.include_router(realtime.router)

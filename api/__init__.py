"""
API layer

FastAPI routers, one per resource:
- sessions: open / bet / resolve and the read endpoints
- bettors: per-bettor history
"""

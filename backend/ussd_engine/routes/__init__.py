from ussd_engine.routes.ussd import router as ussd_router
from ussd_engine.routes.admin import router as admin_router

__all__ = ["ussd_router", "admin_router"]

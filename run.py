import uvicorn
import os
from cafe.config import settings

if __name__ == "__main__":
    print("Starting Café Orders API...")

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(
        "cafe.main:app",
        host="0.0.0.0",
        port=port,
        reload=not settings.is_production,
        log_level=settings.LOG_LEVEL.lower()
    )

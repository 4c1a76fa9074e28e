import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Disable reload in production (Railway sets RAILWAY_ENVIRONMENT)
    reload = os.getenv("RAILWAY_ENVIRONMENT") is None and os.getenv("ENVIRONMENT") != "production"

    uvicorn.run(
        "studentcare.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=reload,
        timeout_keep_alive=120,  # Vision extraction can take a while
        timeout_graceful_shutdown=30
    )

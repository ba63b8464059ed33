"""
Run the MarketData Ingest server.
"""
import os

# Load environment
from dotenv import load_dotenv

project_dir = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(project_dir, ".env"))

# Run uvicorn
import uvicorn

from marketdata.core.config import settings

if __name__ == "__main__":
    print("Starting MarketData Ingest Server...")
    print(f"API Docs: http://localhost:{settings.port}/docs")
    print("-" * 50)

    uvicorn.run(
        "marketdata.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )

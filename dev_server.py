#!/usr/bin/env python3
"""
Local development server for the Error Alert Engine.
Evaluates alerts inline (no Celery worker needed) against a local SQLite database.
"""

import os
import sys
from pathlib import Path

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

# Add src to Python path
current_dir = Path(__file__).parent
src_dir = current_dir / "src"
sys.path.insert(0, str(src_dir))

os.environ.setdefault('ENVIRONMENT', 'development')
os.environ.setdefault('DATABASE_URL', 'sqlite:///./error_alerts.db')
os.environ.setdefault('ALERT_EVAL_INLINE', 'true')

if __name__ == "__main__":
    import uvicorn
    from error_alerting.infrastructure.db import Base, engine
    import error_alerting.models.tables  # noqa: F401

    # local convenience; deployed databases are migrated with alembic
    Base.metadata.create_all(engine)

    print("Starting Error Alert Engine API")
    print("Docs: http://localhost:8000/docs")
    print("Health Check: http://localhost:8000/health")
    print("Press Ctrl+C to stop\n")

    uvicorn.run(
        "error_alerting.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )

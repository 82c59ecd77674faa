#!/usr/bin/env python3
"""
FastAPI server runner for the TripForge backend
"""

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "tripforge.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Enable auto-reload for development
        log_level="info"
    )

#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

The payment environment follows STRIPE_SECRET_KEY in backend/.env; use a
sk_test_ key locally.
"""
import os
from pathlib import Path
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn

if __name__ == "__main__":
    print("Starting Borkin payments API")
    print("API docs: http://localhost:8000/docs")

    uvicorn.run("borkin.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")

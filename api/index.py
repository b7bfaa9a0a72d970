"""
Vercel entry point for the Inquiry Analysis API
"""
import os
import sys

# Add parent directory to path
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")

from mangum import Mangum
from src.main import app

# Lambda handler for ASGI app; lifespan wires the pipeline on cold start
handler = Mangum(app, lifespan="auto")

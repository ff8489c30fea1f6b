# middleware.py
import os
from fastapi.middleware.cors import CORSMiddleware


def add_cors_middleware(app):
    # Edge functions are CORS-open; extra origins can be pinned through the environment
    extra_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:8080",
            *extra_origins,
            "*"
        ],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-webhook-secret"],
    )

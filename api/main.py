from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
import sys
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from api.alza_api.alza_api import router as alza_router
import uvicorn

# -------------------------------------------------
# Initialize app once
# -------------------------------------------------
app = FastAPI(
    title="Alza API",
    description="HTTP facade over the Alza.sk client.",
    version="1.0.0",
)

# -------------------------------------------------
# CORS middleware
# -------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -------------------------------------------------
# Routers
# -------------------------------------------------
app.include_router(alza_router, prefix="/alza", tags=["alza"])

if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8001)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from db import create_tables
from routes.fees import fees_routes
from routes.payments import payment_routes
from routes.settings import settings_routes

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Tuition Ledger API",
    description="Installment payments, fee reconciliation and receipt numbering",
    version="1.0.0"
)

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)

# Health check endpoint
@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint to verify server status
    """
    return {
        "status": "healthy",
        "message": "Server is running successfully"
    }

# Register routers
app.include_router(fees_routes.router)
app.include_router(payment_routes.router)
app.include_router(settings_routes.router)

# Create database tables on startup
@app.on_event("startup")
async def on_startup():
    logger.info("Creating database tables...")
    await create_tables()
    logger.info("Database tables created successfully!")

# Root endpoint
@app.get("/", tags=["Root"])
def read_root():
    return {
        "message": "Welcome to Tuition Ledger API",
        "docs": "/docs",
        "health": "/health"
    }

if __name__ == "__main__":
    import uvicorn
    # Run on all IPs (0.0.0.0) to ensure accessibility
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {"status": "healthy", "service": "safemed-api"}


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {"message": "Welcome to SafeMed API", "docs": "/docs", "health": "/health"}

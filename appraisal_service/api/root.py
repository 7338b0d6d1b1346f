from fastapi import APIRouter

router = APIRouter()


@router.get("/")
def root():
    return {
        "name": "Performance Appraisal Service",
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
    }

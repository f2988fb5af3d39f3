from fastapi import APIRouter
from slidecast.api import topics

router = APIRouter()
router.include_router(topics.router, prefix="/topics", tags=["Topics"])

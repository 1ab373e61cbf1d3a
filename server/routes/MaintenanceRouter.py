from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from config.log import get_logger
from database.DB import get_db
from services.ProjectionSynchronizer import reconcile_all
from .dependencies import require_admin

logger = get_logger(__name__)

router = APIRouter()


@router.post('/reconcile')
async def reconcile(admin: dict = Depends(require_admin), db=Depends(get_db)):
    """Rebuild every event and user projection from the registration rows"""
    report = await reconcile_all(db)
    logger.info("Reconciliation requested", admin=admin["user_id"], **report)
    return JSONResponse(content={"message": "Reconciliation complete", "report": report})

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from database.DB import get_db
from helpers.TimeUtils import utcnow
from helpers.TokenAuthenticator import Identity
from services import UserService
from .dependencies import get_current_identity, get_current_user
from .views import profile_view

router = APIRouter()


@router.post('/auth/login')
async def login(identity: Identity = Depends(get_current_identity), db=Depends(get_db)):
    """Exchange a verified bearer credential for the stored user, creating it on first login"""
    user, created = await UserService.login(db, identity)
    return JSONResponse(
        status_code=201 if created else 200,
        content={"message": "Login successful", "user": profile_view(user)}
    )


@router.get('/auth/verify')
async def verify(user: dict = Depends(get_current_user)):
    return JSONResponse(content={"message": "Token valid", "user": profile_view(user)})


@router.post('/auth/logout')
async def logout():
    # Bearer tokens are stateless; the client simply discards its token.
    return JSONResponse(content={"message": "Logout successful"})


@router.get('/health')
async def health_check():
    """Simple health check endpoint"""
    return JSONResponse(content={
        "status": "healthy",
        "message": "Community Volunteer Hub API is running!",
        "timestamp": utcnow().isoformat()
    })

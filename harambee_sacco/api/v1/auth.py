"""POST /api/register and POST /api/login - member self-service"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from harambee_sacco.api.dependencies import get_request_id
from harambee_sacco.api.v1.schemas import LoginRequest, RegisterRequest
from harambee_sacco.domain.exceptions import AuthenticationFailed, Conflict, NotFound, ValidationError
from harambee_sacco.infrastructure.database.session import get_db
from harambee_sacco.services.members import login_member, register_member

router = APIRouter()


@router.post("/register")
async def register(request_body: RegisterRequest, request: Request, db: AsyncSession = Depends(get_db)):
    request_id = get_request_id(request)

    try:
        member = await register_member(
            db,
            first_name=request_body.first_name,
            last_name=request_body.last_name,
            phone=request_body.phone,
            password=request_body.password,
            email=request_body.email,
            id_number=request_body.id_number,
            date_of_birth=request_body.date_of_birth,
            address=request_body.address,
        )
        return {
            "success": True,
            "message": "Registration successful! Welcome to Harambee Sacco.",
            "member": member,
        }

    except (ValidationError, Conflict) as e:
        await db.rollback()
        return JSONResponse(status_code=400, content={"error": str(e)})

    except Exception as e:
        await db.rollback()
        logging.error(f"Registration error: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"error": "Registration failed. Please try again."})


@router.post("/login")
async def login(request_body: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    request_id = get_request_id(request)

    try:
        member = await login_member(
            db,
            password=request_body.password,
            email=request_body.email,
            phone=request_body.phone,
            member_number=request_body.member_number,
        )
        return {"member": member}

    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    except (NotFound, AuthenticationFailed) as e:
        logging.warning(f"Login rejected: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=401, content={"error": str(e)})

    except Exception as e:
        await db.rollback()
        logging.error(f"Login error: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"error": "Login failed. Please try again."})

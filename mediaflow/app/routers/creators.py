from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from mediaflow.app.deps import CurrentUser, get_creator_service, require_admin
from mediaflow.app.domain.errors import DuplicateRecordError, RepositoryError
from mediaflow.app.domain.models import CreatorCandidate, Platform
from mediaflow.app.schemas.extract import CreatorCreateRequest, CreatorResponse
from mediaflow.app.services.creators import CreatorService
from mediaflow.services.errors import InvalidInputError

router = APIRouter(prefix="/creators", tags=["creators"])


@router.post("", response_model=CreatorResponse, status_code=status.HTTP_201_CREATED)
async def register_creator(
    payload: CreatorCreateRequest,
    user: CurrentUser = Depends(require_admin),
    service: CreatorService = Depends(get_creator_service),
) -> CreatorResponse:
    candidate = CreatorCandidate(
        platform=Platform(payload.platform),
        handle=payload.handle.strip(),
        display_name=payload.name.strip(),
        avatar_url=payload.avatarUrl,
        profile_url=payload.profileUrl,
    )
    try:
        creator = await service.register(candidate)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except DuplicateRecordError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except RepositoryError:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return CreatorResponse(id=creator.id, name=creator.name)

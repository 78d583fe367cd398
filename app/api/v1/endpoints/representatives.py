from fastapi import APIRouter, Depends
from app.api.deps import get_representative_repo
from app.core.exceptions import RepresentativeNotFound
from app.repositories.representative_repo import RepresentativeRepository
from app.schemas.representative import RepresentativeCreate, RepresentativeResponse

router = APIRouter()

@router.post("", response_model=RepresentativeResponse)
async def create_representative(
    representative_in: RepresentativeCreate,
    repo: RepresentativeRepository = Depends(get_representative_repo)
):
    representative = await repo.create(representative_in)
    return RepresentativeResponse.model_validate(representative.model_dump())

@router.get("/{representative_id}", response_model=RepresentativeResponse)
async def get_representative(
    representative_id: str,
    repo: RepresentativeRepository = Depends(get_representative_repo)
):
    representative = await repo.get(representative_id)
    if representative is None:
        raise RepresentativeNotFound(representative_id)
    return RepresentativeResponse.model_validate(representative.model_dump())

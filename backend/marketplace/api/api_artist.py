from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.crud_artist import artist as crud_artist
from ..database import get_db
from ..schemas import ArtistProfileResponse, Envelope, ok
from ..utils.errors import NotFoundError

router = APIRouter(tags=["artists"])


@router.get("/{artist_id}", response_model=Envelope[ArtistProfileResponse])
def read_artist_profile(artist_id: int, db: Session = Depends(get_db)):
    """Public artist profile including the aggregated rating."""
    profile = crud_artist.get_profile(db, artist_id)
    if not profile:
        raise NotFoundError("Artist not found")
    return ok(profile)

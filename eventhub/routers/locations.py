from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.schemas import LocationResponse
from eventhub.services import catalog

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("", response_model=list[LocationResponse])
def list_locations(db: Session = Depends(get_db)):
    """Locations with published events, for the listing filter."""
    return catalog.list_locations(db)

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.models import Category
from eventhub.schemas import CategoryResponse

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryResponse])
def list_categories(db: Session = Depends(get_db)):
    """List all event categories."""
    return db.query(Category).order_by(Category.name).all()

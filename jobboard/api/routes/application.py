import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from jobboard.db.models.user import User
from jobboard.db.models.application import Application
from jobboard.core.auth_dependency import get_db, get_current_user_obj
from jobboard.core.application_gate import require_application_slot
from jobboard.services.quota_service import release_application_slot
from jobboard.schemas.application import ApplicationCreate, ApplicationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])


# ✅ CREATE JOB APPLICATION (one daily slot consumed per application)
@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApplicationResponse)
def create_application(
    application_data: ApplicationCreate,
    user: User = Depends(require_application_slot),
    db: Session = Depends(get_db),
):
    try:
        application = Application(
            user_id=user.id,
            job_id=application_data.job_id,
            cover_letter=application_data.cover_letter,
            status="applied",
        )
        db.add(application)
        db.commit()
        db.refresh(application)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create application, releasing slot: user_id={user.id}, error={e}", exc_info=True)
        release_application_slot(db, user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create application"
        )

    logger.info(f"Application created: application_id={application.id}, user_id={user.id}, job_id={application.job_id}")
    return ApplicationResponse.model_validate(application)


# ✅ GET ALL USER APPLICATIONS
@router.get("/my", response_model=list[ApplicationResponse])
def list_my_applications(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    applications = (
        db.query(Application)
        .filter(Application.user_id == user.id)
        .order_by(Application.created_at.desc(), Application.id.desc())
        .all()
    )
    return [ApplicationResponse.model_validate(application) for application in applications]

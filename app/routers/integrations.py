"""
Sales-platform integration settings - tenant admin only.

One credential per (tenant, platform). The secret is shown masked; the webhook URL is
what the admin pastes into the platform's webhook configuration.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.platform_credential import Platform, PlatformCredential
from app.models.user import User
from app.schemas.integrations import IntegrationUpdate, IntegrationResponse
from app.services.credentials import (
    SecretAlreadyInUse,
    disconnect_credential,
    get_credential,
    reveal_secret,
    save_credential,
)
from app.services.encryption import mask_secret
from app.auth.dependencies import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"])


def _webhook_url(platform: Platform) -> str:
    return f"{settings.public_base_url.rstrip('/')}/webhooks/{platform.value}"


def _to_response(platform: Platform, credential: PlatformCredential | None) -> IntegrationResponse:
    if credential is None:
        return IntegrationResponse(
            platform=platform, configured=False, is_active=False, webhook_url=_webhook_url(platform),
        )
    return IntegrationResponse(
        platform=platform,
        configured=credential.secret_hash is not None,
        is_active=credential.is_active,
        secret_masked=mask_secret(reveal_secret(credential)),
        owner_user_id=credential.owner_user_id,
        webhook_url=_webhook_url(platform),
        updated_at=credential.updated_at,
    )


@router.get("/{platform}", response_model=IntegrationResponse)
def get_integration(
    platform: Platform,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    credential = get_credential(db, current_user.tenant_id, platform)
    return _to_response(platform, credential)


@router.put("/{platform}", response_model=IntegrationResponse)
def update_integration(
    platform: Platform,
    data: IntegrationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    if data.owner_user_id is not None:
        owner = db.query(User).filter(
            User.id == data.owner_user_id,
            User.tenant_id == current_user.tenant_id,
        ).first()
        if not owner:
            raise HTTPException(status_code=400, detail="Owner user not found in this account")

    try:
        credential = save_credential(
            db,
            tenant_id=current_user.tenant_id,
            platform=platform,
            secret=data.secret,
            is_active=data.is_active,
            owner_user_id=data.owner_user_id,
        )
    except SecretAlreadyInUse as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    db.refresh(credential)
    return _to_response(platform, credential)


@router.delete("/{platform}", status_code=status.HTTP_204_NO_CONTENT)
def delete_integration(
    platform: Platform,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    if not disconnect_credential(db, current_user.tenant_id, platform):
        raise HTTPException(status_code=404, detail="Integration not configured")
    db.commit()

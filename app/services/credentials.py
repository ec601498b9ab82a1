"""
Tenant credential store.

Resolves "which tenant sent this webhook" from the shared secret alone. Secrets are
indexed by SHA-256 hash (globally unique), so resolution is a single indexed lookup,
never a scan. Lookup failures return None; they never raise.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.models.platform_credential import PlatformCredential, Platform
from app.services.encryption import encrypt_value, decrypt_value, hash_secret

logger = logging.getLogger(__name__)


class SecretAlreadyInUse(Exception):
    """The secret is already bound to a different tenant's credential"""


@dataclass
class ResolvedTenant:
    tenant_id: int
    credential_id: Optional[int]
    owner_user_id: Optional[int]


def resolve_tenant(db: Session, platform: str, presented_secret: Optional[str]) -> Optional[ResolvedTenant]:
    """Return the tenant owning an *active* credential with this secret, or None."""
    if not presented_secret or not presented_secret.strip():
        return None
    try:
        platform_enum = Platform(platform)
    except ValueError:
        return None

    credential = db.query(PlatformCredential).filter(
        PlatformCredential.secret_hash == hash_secret(presented_secret.strip()),
        PlatformCredential.platform == platform_enum,
        PlatformCredential.is_active.is_(True),
    ).first()

    if not credential:
        return None

    return ResolvedTenant(
        tenant_id=credential.tenant_id,
        credential_id=credential.id,
        owner_user_id=credential.owner_user_id,
    )


def get_credential(db: Session, tenant_id: int, platform: Platform) -> Optional[PlatformCredential]:
    return db.query(PlatformCredential).filter(
        PlatformCredential.tenant_id == tenant_id,
        PlatformCredential.platform == platform,
    ).first()


def save_credential(
    db: Session,
    tenant_id: int,
    platform: Platform,
    secret: Optional[str],
    is_active: bool,
    owner_user_id: Optional[int] = None,
) -> PlatformCredential:
    """
    Create or update the single (tenant, platform) credential row.

    A new secret rotates both hash and ciphertext; secret=None keeps the current one.
    Raises SecretAlreadyInUse if another tenant's credential already holds the secret,
    and ValueError when activating a credential that has no secret.
    """
    credential = get_credential(db, tenant_id, platform)
    if credential is None:
        credential = PlatformCredential(tenant_id=tenant_id, platform=platform)
        db.add(credential)

    if secret:
        secret = secret.strip()
        digest = hash_secret(secret)
        holder = db.query(PlatformCredential).filter(PlatformCredential.secret_hash == digest).first()
        if holder is not None and holder.tenant_id != tenant_id:
            raise SecretAlreadyInUse("This secret is already configured for another account")
        credential.secret_hash = digest
        credential.secret_encrypted = encrypt_value(secret)

    if is_active and not credential.secret_hash:
        raise ValueError("Cannot activate an integration without a secret")

    credential.is_active = is_active
    if owner_user_id is not None:
        credential.owner_user_id = owner_user_id

    db.flush()
    logger.info(
        "Saved %s credential for tenant %s (active=%s, rotated=%s)",
        platform.value, tenant_id, is_active, bool(secret),
    )
    return credential


def disconnect_credential(db: Session, tenant_id: int, platform: Platform) -> bool:
    """Deactivate and wipe the secret. Returns False if nothing was configured."""
    credential = get_credential(db, tenant_id, platform)
    if credential is None:
        return False
    credential.is_active = False
    credential.secret_hash = None
    credential.secret_encrypted = None
    db.flush()
    logger.info("Disconnected %s credential for tenant %s", platform.value, tenant_id)
    return True


def reveal_secret(credential: PlatformCredential) -> str:
    return decrypt_value(credential.secret_encrypted or "")

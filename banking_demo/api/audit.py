"""
Audit trail endpoints
"""

from fastapi import APIRouter, Depends

from .auth import BankingSystem, get_banking_system, get_current_account


router = APIRouter()


@router.get("/integrity")
async def verify_audit_integrity(
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    """Verify the hash chain of the audit trail"""
    return system.audit_trail.verify_integrity()

"""
Card endpoints, scoped to the caller's account
"""

from fastapi import APIRouter, Depends, status

from .auth import BankingSystem, get_banking_system, get_current_account
from .responses import card_to_response, http_errors
from .schemas import CardBlockRequest, CreateCardRequest, UpdateCardRequest


router = APIRouter()


def _card_changes(request: UpdateCardRequest) -> dict:
    changes = request.model_dump(exclude_unset=True)
    if "type" in changes:
        changes["card_type"] = changes.pop("type")
    return changes


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_card(
    request: CreateCardRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    with http_errors():
        card = system.card_manager.create_card(
            account_id=account_id,
            card_type=request.type,
            number=request.number,
            due_date=request.due_date,
            functions=request.functions,
            cvc=request.cvc,
            name=request.name,
            payment_date=request.payment_date
        )
    return {"card": card_to_response(card), "message": "Card created successfully"}


@router.get("")
async def list_cards(
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    with http_errors():
        cards = system.card_manager.list_cards(account_id)
    return {"cards": [card_to_response(c) for c in cards], "count": len(cards)}


@router.get("/{card_id}")
async def get_card(
    card_id: str,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    with http_errors():
        card = system.card_manager.get_card(card_id, account_id)
    return {"card": card_to_response(card)}


@router.put("/{card_id}")
async def update_card(
    card_id: str,
    request: UpdateCardRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    with http_errors():
        card = system.card_manager.update_card(card_id, account_id, _card_changes(request))
    return {"card": card_to_response(card), "message": "Card updated successfully"}


@router.patch("/{card_id}/toggle-block")
async def toggle_card_block(
    card_id: str,
    request: CardBlockRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    """Block or unblock a card"""
    with http_errors():
        card = system.card_manager.set_blocked(card_id, account_id, request.is_blocked)
    message = "Card blocked successfully" if card.is_blocked else "Card unblocked successfully"
    return {"card": card_to_response(card), "message": message}


@router.delete("/{card_id}")
async def delete_card(
    card_id: str,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    with http_errors():
        card = system.card_manager.delete_card(card_id, account_id)
    return {"id": card.id, "message": "Card deleted successfully"}

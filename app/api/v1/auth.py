from fastapi import APIRouter, Depends, status

from app.core.dependencies import get_auth_service
from app.services.auth import AuthService
from app.models.auth import NonceRequest, NonceChallenge, SignatureVerify, Token


router = APIRouter()


@router.post(
    "/nonce",
    status_code=status.HTTP_201_CREATED,
    response_model=NonceChallenge,
    summary="Request a sign-in challenge",
    description="Issues a one-time message the wallet must sign."
)
def request_nonce(
    data: NonceRequest,
    service: AuthService = Depends(get_auth_service)
):
    return service.issue_challenge(data.wallet_address)


@router.post(
    "/verify",
    response_model=Token,
    summary="Exchange a signed challenge for an access token"
)
def verify_signature(
    data: SignatureVerify,
    service: AuthService = Depends(get_auth_service)
):
    """
    1. Checks the nonce is known, unexpired and unused.
    2. Recovers the signer of the message and compares it to the wallet.
    3. Consumes the nonce and returns a bearer token.
    """
    return service.verify_signature(data)

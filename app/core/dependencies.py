from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from app.core.errors import UnauthorizedError
from app.db.core import get_session
from app.services.auth import AuthService
from app.services.batch import BatchService
from app.services.company import CompanyService
from app.services.ledger import LedgerClient, build_ledger_client
from app.services.partner import PartnerService
from app.services.plant import PlantService
from app.services.product_template import ProductTemplateService
from app.services.provenance import ProvenanceTreeBuilder
from app.services.token_mint import TokenMintService
from app.services.transfer import TransferService
from app.services.transportation import TransportationService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/verify")


def get_auth_service(session: Session = Depends(get_session)) -> AuthService:
    return AuthService(session)


def get_company_service(session: Session = Depends(get_session)) -> CompanyService:
    return CompanyService(session)


def get_plant_service(session: Session = Depends(get_session)) -> PlantService:
    return PlantService(session)


def get_template_service(session: Session = Depends(get_session)) -> ProductTemplateService:
    return ProductTemplateService(session)


def get_batch_service(session: Session = Depends(get_session)) -> BatchService:
    return BatchService(session)


def get_partner_service(session: Session = Depends(get_session)) -> PartnerService:
    return PartnerService(session)


def get_transportation_service(session: Session = Depends(get_session)) -> TransportationService:
    return TransportationService(session)


def get_provenance_builder(session: Session = Depends(get_session)) -> ProvenanceTreeBuilder:
    return ProvenanceTreeBuilder(session)


def get_ledger_client() -> LedgerClient:
    """A fresh client per request; nothing ledger-related is shared across requests."""
    return build_ledger_client()


def get_token_mint_service(
    session: Session = Depends(get_session),
    ledger: LedgerClient = Depends(get_ledger_client)
) -> TokenMintService:
    return TokenMintService(session, ledger)


def get_transfer_service(session: Session = Depends(get_session)) -> TransferService:
    """Off-chain records only; see get_ledger_transfer_service for ledger access."""
    return TransferService(session)


def get_ledger_transfer_service(
    session: Session = Depends(get_session),
    ledger: LedgerClient = Depends(get_ledger_client)
) -> TransferService:
    return TransferService(session, ledger)


def get_current_address(
    token: str = Depends(oauth2_scheme),
    service: AuthService = Depends(get_auth_service)
) -> str:
    """
    Resolves the caller's wallet address from the bearer token.
    This is the gatekeeper for protected routes.
    """
    token_data = service.decode_token(token)
    if not token_data:
        raise UnauthorizedError("Could not validate credentials")
    return token_data.wallet_address

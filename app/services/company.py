from typing import List, Optional
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, col, or_

from app.core.errors import ConflictError, NotFoundError
from app.db.schema import Company, PartnerRelationship
from app.models.company import CompanyProfile, CompanyUpdate, CompanySearchResult
from app.utils.address import normalize_address


def _escape_like(term: str) -> str:
    """Makes %, _ and the escape character itself match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CompanyService:
    """
    Identity store keyed by the normalized wallet address.
    Gate for template, plant and batch registration.
    """

    def __init__(self, session: Session):
        self.session = session

    def register(self, wallet_address: str, profile: CompanyProfile) -> Company:
        address = normalize_address(wallet_address, "wallet_address")

        if self._find(address):
            raise ConflictError("Company already registered.",
                                wallet_address=address)

        company = Company(
            wallet_address=address,
            **profile.model_dump(exclude_unset=False)
        )

        try:
            self.session.add(company)
            self.session.commit()
            self.session.refresh(company)
        except IntegrityError:
            # Lost the race against a concurrent registration
            self.session.rollback()
            raise ConflictError("Company already registered.",
                                wallet_address=address)

        logger.info(f"Company registered: {address} ({company.company_name})")
        return company

    def lookup(self, wallet_address: str) -> Company:
        address = normalize_address(wallet_address, "wallet_address")
        company = self._find(address)
        if not company:
            raise NotFoundError("Company not registered.",
                                wallet_address=address)
        return company

    def list_companies(self) -> List[Company]:
        return self.session.exec(
            select(Company).order_by(Company.company_name.asc())
        ).all()

    def update_profile(self, wallet_address: str, data: CompanyUpdate) -> Company:
        company = self.lookup(wallet_address)

        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(company, key, value)

        self.session.add(company)
        self.session.commit()
        self.session.refresh(company)
        return company

    def attach_product(self, wallet_address: str, product_id: str) -> Company:
        """
        Appends a template id to the company's owned list.
        Idempotent: a retried call leaves a single entry.
        """
        company = self.lookup(wallet_address)
        product_id = str(product_id)

        if product_id in company.product_template_ids:
            return company

        # Reassign so the JSON column is flagged dirty
        company.product_template_ids = [
            *company.product_template_ids, product_id]
        self.session.add(company)
        self.session.commit()
        self.session.refresh(company)
        return company

    def search(self, excluding: str, term: str, limit: int = 10) -> List[CompanySearchResult]:
        """
        Candidate partners: companies whose name or address contains `term`
        (case-insensitive), other than `excluding` and its existing partners.
        """
        excluding = normalize_address(excluding, "excluding")
        search_fmt = f"%{_escape_like(term.strip())}%"

        already_linked = select(PartnerRelationship.partner_address).where(
            PartnerRelationship.self_address == excluding
        )

        statement = (
            select(Company)
            .where(or_(
                col(Company.company_name).ilike(search_fmt, escape="\\"),
                col(Company.wallet_address).ilike(search_fmt.lower(), escape="\\")
            ))
            .where(Company.wallet_address != excluding)
            .where(col(Company.wallet_address).not_in(already_linked))
            .order_by(Company.company_name.asc())
            .limit(limit)
        )

        return [
            CompanySearchResult(
                wallet_address=c.wallet_address,
                company_name=c.company_name,
                company_type=c.company_type
            ) for c in self.session.exec(statement).all()
        ]

    def _find(self, address: str) -> Optional[Company]:
        return self.session.exec(
            select(Company).where(Company.wallet_address == address)
        ).first()

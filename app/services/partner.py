from typing import List, Optional, Tuple
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, and_

from app.core.config import settings
from app.core.errors import ConflictError, InvalidOperationError, NotFoundError
from app.db.schema import PartnerRelationship, RelationshipKind, PartnerStatus
from app.models.company import CompanySearchResult
from app.models.partner import PartnerProposal, PartnerRepairReport
from app.services.company import CompanyService
from app.utils.address import normalize_address


class PartnerService:
    """
    Bidirectional partner ledger. A partnership is always two edges
    (self -> other with `kind`, other -> self with the inverse kind);
    every write touches both edges in a single commit.
    """

    def __init__(self, session: Session):
        self.session = session

    def propose(self, self_address: str, data: PartnerProposal) -> Tuple[PartnerRelationship, PartnerRelationship]:
        me = normalize_address(self_address, "self_address")
        other = normalize_address(data.partner_address, "partner_address")

        if me == other:
            raise InvalidOperationError("You cannot add yourself as a partner.")

        if self._edge(me, other):
            raise ConflictError("Partner relationship already exists.",
                                partner_address=other)

        outgoing = PartnerRelationship(
            self_address=me,
            partner_address=other,
            relationship_kind=data.relationship_kind,
            company_name=data.company_name,
            contact_email=data.contact_email,
            contact_phone=data.contact_phone,
            notes=data.notes,
        )
        incoming = PartnerRelationship(
            self_address=other,
            partner_address=me,
            relationship_kind=data.relationship_kind.inverse,
        )

        try:
            self.session.add(outgoing)
            self.session.add(incoming)
            self.session.commit()
        except IntegrityError:
            # Either edge existing means the pair (or half of it) is taken
            self.session.rollback()
            raise ConflictError("Partner relationship already exists.",
                                partner_address=other)

        self.session.refresh(outgoing)
        self.session.refresh(incoming)
        logger.info(
            f"Partnership created: {me} -[{outgoing.relationship_kind.value}]-> {other}")
        return outgoing, incoming

    def list_partners(
        self,
        self_address: str,
        kind: Optional[RelationshipKind] = None,
        status: Optional[PartnerStatus] = None
    ) -> List[PartnerRelationship]:
        statement = select(PartnerRelationship).where(
            PartnerRelationship.self_address == normalize_address(self_address)
        )
        if kind:
            statement = statement.where(
                PartnerRelationship.relationship_kind == kind)
        if status:
            statement = statement.where(PartnerRelationship.status == status)

        return self.session.exec(
            statement.order_by(PartnerRelationship.created_at.desc())
        ).all()

    def search(self, excluding: str, term: str, limit: Optional[int] = None) -> List[CompanySearchResult]:
        limit = limit or settings.partner_search_limit
        limit = max(1, min(limit, settings.partner_search_ceiling))
        return CompanyService(self.session).search(excluding, term, limit=limit)

    def deactivate_pair(self, self_address: str, partner_address: str) -> Tuple[PartnerRelationship, PartnerRelationship]:
        outgoing, incoming = self._pair(self_address, partner_address)
        for edge in (outgoing, incoming):
            edge.status = PartnerStatus.INACTIVE
            self.session.add(edge)
        self.session.commit()

        self.session.refresh(outgoing)
        self.session.refresh(incoming)
        logger.info(
            f"Partnership deactivated: {outgoing.self_address} <-> {outgoing.partner_address}")
        return outgoing, incoming

    def remove_pair(self, self_address: str, partner_address: str):
        outgoing, incoming = self._pair(self_address, partner_address)
        me, other = outgoing.self_address, outgoing.partner_address
        self.session.delete(outgoing)
        self.session.delete(incoming)
        self.session.commit()
        logger.info(f"Partnership removed: {me} <-> {other}")

    def repair_half_pairs(self) -> PartnerRepairReport:
        """
        Cleanup job for data written before pairs were transactional:
        every edge without its reverse gets the reverse edge added.
        """
        inspected = len(self.session.exec(select(PartnerRelationship.id)).all())
        reverse = PartnerRelationship.__table__.alias("reverse_edge")
        orphans = self.session.exec(
            select(PartnerRelationship)
            .outerjoin(reverse, and_(
                reverse.c.self_address == PartnerRelationship.partner_address,
                reverse.c.partner_address == PartnerRelationship.self_address
            ))
            .where(reverse.c.id.is_(None))
        ).all()

        for edge in orphans:
            self.session.add(PartnerRelationship(
                self_address=edge.partner_address,
                partner_address=edge.self_address,
                relationship_kind=edge.relationship_kind.inverse,
                status=edge.status,
            ))
            logger.warning(
                f"Half pair repaired: added {edge.partner_address} -> {edge.self_address}")

        self.session.commit()
        return PartnerRepairReport(inspected=inspected, repaired=len(orphans))

    def _pair(self, self_address: str, partner_address: str) -> Tuple[PartnerRelationship, PartnerRelationship]:
        me = normalize_address(self_address, "self_address")
        other = normalize_address(partner_address, "partner_address")

        outgoing = self._edge(me, other)
        incoming = self._edge(other, me)
        if not outgoing or not incoming:
            raise NotFoundError("Partner relationship not found.",
                                partner_address=other)
        return outgoing, incoming

    def _edge(self, self_address: str, partner_address: str) -> Optional[PartnerRelationship]:
        return self.session.exec(
            select(PartnerRelationship).where(
                PartnerRelationship.self_address == self_address,
                PartnerRelationship.partner_address == partner_address
            )
        ).first()

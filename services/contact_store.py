"""
Contact Store - data access for the contacts table

Thin wrapper over one AsyncSession. Holds no business rules; every read
excludes soft-deleted rows.
"""

from typing import Iterable, List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utcnow
from models.contact import Contact, LinkPrecedence


class ContactStore:
    """Point lookups and linkage writes for contacts within one transaction"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_email_or_phone(
        self,
        email: Optional[str],
        phone: Optional[str]
    ) -> List[Contact]:
        """
        Active contacts whose email equals `email` OR whose phone equals `phone`
        A missing identifier contributes no condition; with neither, nothing matches
        """
        conditions = []
        if email:
            conditions.append(Contact.email == email)
        if phone:
            conditions.append(Contact.phone_number == phone)

        if not conditions:
            return []

        query = (
            select(Contact)
            .where(or_(*conditions), Contact.deleted_at.is_(None))
            .order_by(Contact.created_at.asc(), Contact.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_by_ids_or_linked_to(self, ids: Iterable[int]) -> List[Contact]:
        """
        Active contacts whose id is in `ids` or whose linked_id is in `ids`,
        oldest first (created_at, then id)
        """
        ids = sorted(set(ids))
        if not ids:
            return []

        query = (
            select(Contact)
            .where(
                or_(Contact.id.in_(ids), Contact.linked_id.in_(ids)),
                Contact.deleted_at.is_(None)
            )
            .order_by(Contact.created_at.asc(), Contact.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create(
        self,
        email: Optional[str],
        phone: Optional[str],
        link_precedence: LinkPrecedence,
        linked_id: Optional[int] = None
    ) -> Contact:
        """Insert a contact and flush so its id and created_at are assigned"""
        now = utcnow()
        contact = Contact(
            email=email,
            phone_number=phone,
            linked_id=linked_id,
            link_precedence=link_precedence,
            created_at=now,
            updated_at=now
        )

        self.session.add(contact)
        await self.session.flush()
        return contact

    async def update_linkage(
        self,
        contact_id: int,
        link_precedence: LinkPrecedence,
        linked_id: Optional[int]
    ) -> None:
        """Rewrite the precedence and linked id of one contact"""
        await self.session.execute(
            update(Contact)
            .where(Contact.id == contact_id)
            .values(
                link_precedence=link_precedence,
                linked_id=linked_id,
                updated_at=utcnow()
            )
            .execution_options(synchronize_session="fetch")
        )

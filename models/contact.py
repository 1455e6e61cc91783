"""
Contact model for the Contact Identity Resolution service
This module defines the Contact database model for storing customer
contact information and the primary/secondary linkage between records.
Supports soft delete through the deleted_at marker.
"""

import enum

from sqlalchemy import Column, String, Integer, ForeignKey, Index, CheckConstraint, Enum
from .base import BaseModel


class LinkPrecedence(str, enum.Enum):
    """Role of a contact inside its cluster"""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Contact(BaseModel):
    """
    Contact model representing one observed (email, phone number) pair

    Each contact is either 'primary' (the canonical record of its cluster)
    or 'secondary' (linked directly to its cluster's primary). Secondaries
    never point at other secondaries.

    Database Table: contacts
    """
    __tablename__ = "contacts"

    # Contact information fields - at least one must be provided
    phone_number = Column(
        String(20),
        nullable=True,
        index=True,
        comment="Customer phone number as submitted"
    )

    email = Column(
        String(255),
        nullable=True,
        index=True,
        comment="Customer email address"
    )

    # Identity linking fields
    linked_id = Column(
        Integer,
        ForeignKey("contacts.id"),
        nullable=True,
        index=True,
        comment="ID of the primary contact this secondary contact links to"
    )

    link_precedence = Column(
        Enum(
            LinkPrecedence,
            name="link_precedence",
            values_callable=lambda members: [member.value for member in members],
            native_enum=False,
            create_constraint=True,
            length=10,
        ),
        nullable=False,
        default=LinkPrecedence.PRIMARY,
        comment="Either 'primary' (canonical contact) or 'secondary' (linked contact)"
    )

    __table_args__ = (
        CheckConstraint(
            "(phone_number IS NOT NULL) OR (email IS NOT NULL)",
            name="contact_info_required"
        ),
        CheckConstraint(
            "(link_precedence = 'primary' AND linked_id IS NULL) OR "
            "(link_precedence = 'secondary' AND linked_id IS NOT NULL)",
            name="secondary_must_have_linked_id"
        ),
        Index("ix_contact_email_phone", "email", "phone_number"),
        Index("ix_contact_precedence_linked", "link_precedence", "linked_id"),
    )

    def __repr__(self):
        """String representation showing key contact information"""
        contact_info = []
        if self.email:
            contact_info.append(f"email={self.email}")
        if self.phone_number:
            contact_info.append(f"phone={self.phone_number}")

        return (
            f"<Contact(id={self.id}, "
            f"{', '.join(contact_info)}, "
            f"precedence={self.link_precedence})>"
        )

    def is_primary(self) -> bool:
        """Check if this is a primary contact"""
        return self.link_precedence == LinkPrecedence.PRIMARY

    def is_secondary(self) -> bool:
        """Check if this is a secondary contact"""
        return self.link_precedence == LinkPrecedence.SECONDARY

    def primary_id(self) -> int:
        """
        ID of the primary contact of this contact's cluster
        Returns own id for primaries, the linked id for secondaries
        """
        if self.is_primary():
            return self.id
        return self.linked_id

    def to_dict(self):
        """Convert contact to dictionary with formatted timestamps"""
        data = super().to_dict()

        data["link_precedence"] = self.link_precedence.value if self.link_precedence else None
        for field in ("created_at", "updated_at", "deleted_at"):
            if data.get(field):
                data[field] = data[field].isoformat()

        return data

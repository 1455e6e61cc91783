"""
Database models package for the Contact Identity Resolution service
Contains SQLAlchemy models for contact information and linkage
"""

from .base import Base, BaseModel
from .contact import Contact, LinkPrecedence

__all__ = ['Base', 'BaseModel', 'Contact', 'LinkPrecedence']

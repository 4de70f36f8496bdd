"""
Declarative base shared by every billing table.

Import models through listing_billing.models so their tables register here;
this module itself imports nothing from the package.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

"""
Forms API module for the CMS.

Form definitions and submission are public; submissions are rate limited.
Listing and CSV export of submissions need the forms permissions.
"""

from .routes import forms_api

__all__ = ['forms_api']

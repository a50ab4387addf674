"""
Locale API module for the CMS.

Lists the supported locales and lets administrators add, enable, disable
or promote locales.
"""

from .routes import locales_api

__all__ = ['locales_api']

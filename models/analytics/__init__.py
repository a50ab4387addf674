"""
Analytics models: form submissions and A/B variation views.
"""

from .form_submission import FormSubmission
from .variation_view import PostVariationView

__all__ = ['FormSubmission', 'PostVariationView']

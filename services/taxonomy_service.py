"""
Taxonomy Service for the CMS.

CRUD for taxonomies and their (optionally nested) terms, and the assignment
of terms to posts.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models.content.post import Post
from models.content.taxonomy import Taxonomy, TaxonomyTerm
from core.exceptions import CmsError, ConflictError
from core.utils.string import slugify

logger = logging.getLogger(__name__)


class TaxonomyService:
    """
    Provides methods for managing taxonomies, terms and post assignments.
    """

    @staticmethod
    def list_taxonomies(post_type: Optional[str] = None) -> List[Taxonomy]:
        taxonomies = Taxonomy.query.order_by(Taxonomy.name.asc()).all()
        if post_type:
            taxonomies = [t for t in taxonomies if t.allows_post_type(post_type)]
        return taxonomies

    @staticmethod
    def get_taxonomy(taxonomy_id: int) -> Taxonomy:
        return Taxonomy.get_or_404(taxonomy_id, "Taxonomy not found")

    @staticmethod
    def create_taxonomy(name: str, slug: Optional[str] = None, hierarchical: bool = False,
                        post_types: Optional[List[str]] = None) -> Taxonomy:
        """
        Create a taxonomy.

        Raises:
            ConflictError: If the slug is taken
        """
        slug = slugify(slug or name)
        if Taxonomy.query.filter_by(slug=slug).first() is not None:
            raise ConflictError(f"Taxonomy '{slug}' already exists")
        try:
            taxonomy = Taxonomy(name=name, slug=slug, hierarchical=hierarchical, post_types=post_types)
            db.session.add(taxonomy)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create taxonomy %s: %s", slug, e)
            raise
        return taxonomy

    @staticmethod
    def update_taxonomy(taxonomy_id: int, **changes) -> Taxonomy:
        taxonomy = TaxonomyService.get_taxonomy(taxonomy_id)
        if changes.get('slug'):
            changes['slug'] = slugify(changes['slug'])
            clash = Taxonomy.query.filter(Taxonomy.slug == changes['slug'], Taxonomy.id != taxonomy.id).first()
            if clash is not None:
                raise ConflictError(f"Taxonomy '{changes['slug']}' already exists")
        if 'post_types' in changes:
            changes['post_types'] = list(changes['post_types'] or [])
        taxonomy.update(**{k: v for k, v in changes.items() if v is not None})
        return taxonomy

    @staticmethod
    def delete_taxonomy(taxonomy_id: int) -> None:
        TaxonomyService.get_taxonomy(taxonomy_id).delete()

    @staticmethod
    def term_tree(taxonomy: Taxonomy) -> List[Dict[str, Any]]:
        """Terms of a taxonomy as nested dictionaries with ``children``."""
        by_parent: Dict[Optional[int], List[TaxonomyTerm]] = {}
        for term in taxonomy.terms:
            by_parent.setdefault(term.parent_id, []).append(term)

        def build(parent_id: Optional[int]) -> List[Dict[str, Any]]:
            nodes = []
            for term in sorted(by_parent.get(parent_id, []), key=lambda t: (t.order_index, t.name)):
                node = term.to_dict()
                node['children'] = build(term.id)
                nodes.append(node)
            return nodes

        return build(None)

    @staticmethod
    def create_term(taxonomy_id: int, name: str, slug: Optional[str] = None,
                    parent_id: Optional[int] = None, description: Optional[str] = None,
                    order_index: int = 0) -> TaxonomyTerm:
        """
        Add a term to a taxonomy.

        Raises:
            CmsError: 400 for nesting in flat taxonomies or invalid parents
            ConflictError: If the slug is taken in the taxonomy
        """
        taxonomy = TaxonomyService.get_taxonomy(taxonomy_id)
        if parent_id is not None and not taxonomy.hierarchical:
            raise CmsError(f"Taxonomy '{taxonomy.slug}' is not hierarchical", status_code=400)
        slug = slugify(slug or name)
        if TaxonomyTerm.query.filter_by(taxonomy_id=taxonomy.id, slug=slug).first() is not None:
            raise ConflictError(f"Term '{slug}' already exists in {taxonomy.slug}")
        try:
            term = TaxonomyTerm(taxonomy_id=taxonomy.id, name=name, slug=slug, parent_id=parent_id,
                                description=description, order_index=order_index)
        except ValueError as e:
            raise CmsError(str(e), status_code=400)
        try:
            db.session.add(term)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Term '{slug}' already exists in {taxonomy.slug}")
        return term

    @staticmethod
    def update_term(term_id: int, **changes) -> TaxonomyTerm:
        """
        Update a term; re-parenting is validated against cycles.

        Raises:
            CmsError: 400 for invalid parents
        """
        term = TaxonomyTerm.get_or_404(term_id, "Term not found")
        if changes.get('slug'):
            changes['slug'] = slugify(changes['slug'])
        if 'parent_id' in changes and changes['parent_id'] is not None and not term.taxonomy.hierarchical:
            raise CmsError(f"Taxonomy '{term.taxonomy.slug}' is not hierarchical", status_code=400)
        try:
            term.update(**changes)
        except ValueError as e:
            db.session.rollback()
            raise CmsError(str(e), status_code=400)
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("A term with this slug already exists")
        return term

    @staticmethod
    def delete_term(term_id: int) -> None:
        TaxonomyTerm.get_or_404(term_id, "Term not found").delete()

    @staticmethod
    def apply_assignments(post: Post, term_ids: Iterable[int], commit: bool = True) -> List[TaxonomyTerm]:
        """
        Replace the terms assigned to a post.

        Terms of taxonomies that do not apply to the post's type, and unknown
        ids, are ignored.

        Args:
            post: Post
            term_ids: Term ids to assign
            commit: Whether to commit

        Returns:
            List[TaxonomyTerm]: Terms now assigned
        """
        ids = sorted({int(t) for t in term_ids or []})
        terms = TaxonomyTerm.query.filter(TaxonomyTerm.id.in_(ids)).all() if ids else []
        allowed = [term for term in terms if term.taxonomy.allows_post_type(post.type)]
        skipped = set(ids) - {term.id for term in allowed}
        if skipped:
            logger.warning("Ignoring terms %s for %s post %s", sorted(skipped), post.type, post.id)
        try:
            post.terms = allowed
            if commit:
                db.session.commit()
            else:
                db.session.flush()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to assign terms to post %s: %s", post.id, e)
            raise
        return allowed

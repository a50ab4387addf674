"""Taxonomy API routes."""

from flask import Blueprint, request

from api.common import load_json, success
from services.authorization_service import permission_required
from services.taxonomy_service import TaxonomyService
from .schemas import taxonomy_schema, taxonomy_update_schema, term_schema, term_update_schema

taxonomies_api = Blueprint('taxonomies', __name__, url_prefix='/taxonomies')


@taxonomies_api.route('', methods=['GET'])
@permission_required('taxonomies.view')
def list_taxonomies():
    """List taxonomies, optionally only those attached to ``?post_type=``."""
    taxonomies = TaxonomyService.list_taxonomies(request.args.get('post_type'))
    return success([taxonomy.to_dict() for taxonomy in taxonomies])


@taxonomies_api.route('', methods=['POST'])
@permission_required('taxonomies.edit')
def create_taxonomy():
    data = load_json(taxonomy_schema)
    return success(TaxonomyService.create_taxonomy(**data).to_dict(), 201)


@taxonomies_api.route('/<int:taxonomy_id>', methods=['GET'])
@permission_required('taxonomies.view')
def get_taxonomy(taxonomy_id: int):
    return success(TaxonomyService.get_taxonomy(taxonomy_id).to_dict())


@taxonomies_api.route('/<int:taxonomy_id>', methods=['PATCH', 'PUT'])
@permission_required('taxonomies.edit')
def update_taxonomy(taxonomy_id: int):
    data = load_json(taxonomy_update_schema)
    return success(TaxonomyService.update_taxonomy(taxonomy_id, **data).to_dict())


@taxonomies_api.route('/<int:taxonomy_id>', methods=['DELETE'])
@permission_required('taxonomies.delete')
def delete_taxonomy(taxonomy_id: int):
    TaxonomyService.delete_taxonomy(taxonomy_id)
    return success(None, message="Taxonomy deleted")


@taxonomies_api.route('/<int:taxonomy_id>/terms', methods=['GET'])
@permission_required('taxonomies.view')
def list_terms(taxonomy_id: int):
    """
    Terms of a taxonomy.

    Query Parameters:
        tree: ``1`` for nested terms with ``children``
    """
    taxonomy = TaxonomyService.get_taxonomy(taxonomy_id)
    if request.args.get('tree', '').lower() in ('1', 'true', 'yes'):
        return success(TaxonomyService.term_tree(taxonomy))
    terms = sorted(taxonomy.terms, key=lambda t: (t.order_index, t.name))
    return success([term.to_dict() for term in terms])


@taxonomies_api.route('/<int:taxonomy_id>/terms', methods=['POST'])
@permission_required('taxonomies.edit')
def create_term(taxonomy_id: int):
    data = load_json(term_schema)
    return success(TaxonomyService.create_term(taxonomy_id, **data).to_dict(), 201)


@taxonomies_api.route('/terms/<int:term_id>', methods=['PATCH', 'PUT'])
@permission_required('taxonomies.edit')
def update_term(term_id: int):
    data = load_json(term_update_schema)
    return success(TaxonomyService.update_term(term_id, **data).to_dict())


@taxonomies_api.route('/terms/<int:term_id>', methods=['DELETE'])
@permission_required('taxonomies.delete')
def delete_term(term_id: int):
    TaxonomyService.delete_term(term_id)
    return success(None, message="Term deleted")

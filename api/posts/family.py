"""
Translation and A/B variation routes for posts.

Routes are registered on the ``posts`` blueprint.
"""

from flask import g

from api.common import load_json, success
from services.authorization_service import login_required, permission_required
from services.post_service import PostService
from services.translation_service import TranslationService
from services.variation_service import VariationService
from .routes import posts_api
from .schemas import translation_create_schema, variation_create_schema


# Translations

@posts_api.route('/<int:post_id>/translations', methods=['GET'])
@login_required
def list_translations(post_id: int):
    """Every member of the post's translation family with its public path."""
    post = PostService.get_post(post_id)
    return success(TranslationService.list_family(post))


@posts_api.route('/<int:post_id>/translations', methods=['POST'])
@permission_required('posts.translate')
def create_translation(post_id: int):
    """
    Create a draft translation.

    Returns:
        201 CREATED: The translation
        400 BAD REQUEST: Unsupported locale
        409 CONFLICT: Translation or slug already exists
    """
    post = PostService.get_post(post_id)
    data = load_json(translation_create_schema)
    translation = TranslationService.create_translation(post, user=g.user, **data)
    return success(translation.to_dict(), 201)


@posts_api.route('/<int:post_id>/translations/<string:locale>', methods=['DELETE'])
@permission_required('posts.translate', 'posts.delete')
def delete_translation(post_id: int, locale: str):
    post = PostService.get_post(post_id)
    translation = TranslationService.delete_translation(post, locale)
    return success(translation.to_dict(), message="Translation moved to trash")


# Variations

@posts_api.route('/<int:post_id>/variations', methods=['GET'])
@login_required
def list_variations(post_id: int):
    post = PostService.get_post(post_id)
    if not post.ab_group_id:
        return success([post.to_dict()])
    members = VariationService.group_members(post.ab_group_id, post.locale)
    return success([member.to_dict() for member in members])


@posts_api.route('/<int:post_id>/variations', methods=['POST'])
@permission_required('posts.create')
def create_variation(post_id: int):
    """
    Create a variation of a post for its whole translation family.

    Returns:
        201 CREATED: The variation in the post's locale
        400 BAD REQUEST: A/B testing disabled or invalid label
        409 CONFLICT: The label already exists in the group
    """
    post = PostService.get_post(post_id)
    data = load_json(variation_create_schema)
    variation = VariationService.create_variation(post, data['variation'], g.user)
    return success(variation.to_dict(), 201)


@posts_api.route('/<int:post_id>/variation', methods=['DELETE'])
@permission_required('posts.delete')
def delete_variation(post_id: int):
    post = PostService.get_post(post_id)
    return success(VariationService.delete_variation(post, g.user))


@posts_api.route('/<int:post_id>/variations/promote', methods=['POST'])
@permission_required('posts.publish')
def promote_variation(post_id: int):
    """Make this variation the content of the main post and end the test."""
    winner = PostService.get_post(post_id)
    main = VariationService.promote_variation(winner, g.user)
    return success(main.to_dict(include_drafts=True))


@posts_api.route('/<int:post_id>/ab-stats', methods=['GET'])
@login_required
def ab_stats(post_id: int):
    post = PostService.get_post(post_id)
    return success(VariationService.ab_stats(post))

"""
Tests for code-first forms and their submissions.
"""

import csv
import io
from unittest.mock import patch

import pytest

from core.exceptions import CmsError
from extensions import db
from models.analytics.form_submission import FormSubmission
from services.form_service import FormService, form_registry, validate_submission
from services.variation_service import VariationService
from services.webhook_service import WebhookService


class TestFormService:
    """Test suite for FormService."""

    def test_valid_submission(self, app) -> None:
        submission = FormService.submit('contact', {
            'name': '<b>Ann</b>', 'email': 'ann@example.com', 'message': 'Hello', 'extra': 'dropped'
        }, {'ip_address': '203.0.113.7', 'user_agent': 'pytest'})

        assert submission.form_slug == 'contact'
        assert submission.payload == {'name': 'Ann', 'email': 'ann@example.com', 'message': 'Hello'}
        assert submission.ip_address == '203.0.113.7'
        assert submission.post_id is None

    def test_invalid_submission(self, app) -> None:
        with pytest.raises(CmsError) as exc_info:
            FormService.submit('contact', {'name': 'Ann', 'email': 'not-an-email'})

        assert exc_info.value.status_code == 400
        assert exc_info.value.meta['errors'] == {
            'email': 'Enter a valid email address.',
            'message': 'This field is required.',
        }
        assert FormSubmission.query.count() == 0

    def test_optional_fields(self) -> None:
        form = form_registry.get('newsletter')
        assert validate_submission(form, {'email': 'a@example.com', 'name': ''}) == {'email': 'a@example.com'}

    def test_unknown_form(self, app) -> None:
        with pytest.raises(CmsError) as exc_info:
            FormService.submit('survey', {})
        assert exc_info.value.status_code == 404

    def test_variation_attribution(self, make_post, admin_user) -> None:
        original = make_post(title='Signup')
        clone = VariationService.create_variation(original, 'B', admin_user)
        VariationService.record_view(clone)

        submission = FormService.submit('newsletter', {'email': 'b@example.com'}, {'post_id': clone.id})

        assert (submission.ab_group_id, submission.ab_variation) == (original.id, 'B')
        stats = VariationService.ab_stats(original)
        assert stats['B'] == {'views': 1, 'submissions': 1, 'conversion_rate': 100.0}

    def test_submission_webhook(self, app) -> None:
        WebhookService.create_webhook('Leads', 'https://hooks.example.com/leads', events=['form.submitted'])
        with patch('services.webhook_service.requests.post') as mock_post:
            mock_post.return_value.status_code = 200
            mock_post.return_value.text = ''
            FormService.submit('newsletter', {'email': 'c@example.com'})

        assert mock_post.call_args[1]['headers']['X-Webhook-Event'] == 'form.submitted'

    def test_export_csv(self, make_post) -> None:
        post = make_post()
        FormService.submit('contact', {'name': 'Ann', 'email': 'ann@example.com', 'message': 'Hi, there'},
                           {'post_id': post.id})
        FormService.submit('contact', {'name': 'Bob', 'email': 'bob@example.com', 'message': 'Yo'})

        rows = list(csv.reader(io.StringIO(FormService.export_csv('contact'))))

        assert rows[0] == ['id', 'created_at', 'name', 'email', 'message', 'post_id', 'ab_variation']
        assert [row[2:] for row in rows[1:]] == [
            ['Ann', 'ann@example.com', 'Hi, there', str(post.id), ''],
            ['Bob', 'bob@example.com', 'Yo', '', ''],
        ]


class TestFormsApi:
    """Test suite for the form endpoints."""

    def test_list_forms_is_public(self, client) -> None:
        response = client.get('/api/forms')
        assert [f['slug'] for f in response.get_json()['data']] == ['contact', 'newsletter']
        assert client.get('/api/forms/contact').get_json()['data']['fields'][0]['label'] == 'Name'
        assert client.get('/api/forms/survey').status_code == 404

    def test_submit(self, client, make_post) -> None:
        post = make_post()
        response = client.post('/api/forms/newsletter', json={'email': 'd@example.com', 'post_id': post.id})
        assert response.status_code == 201
        body = response.get_json()
        assert body['message'] == 'You are subscribed.'
        assert db.session.get(FormSubmission, body['data']['id']).post_id == post.id

    def test_submit_errors(self, client) -> None:
        response = client.post('/api/forms/newsletter', json={'email': 'nope'})
        assert response.status_code == 400
        assert response.get_json()['meta']['errors'] == {'email': 'Enter a valid email address.'}

        response = client.post('/api/forms/newsletter', json={'email': 'e@example.com', 'post_id': 'x'})
        assert response.status_code == 400

    def test_submissions_need_permission(self, client, admin_headers, editor_headers, translator_headers) -> None:
        FormService.submit('newsletter', {'email': 'f@example.com'})

        response = client.get('/api/forms/newsletter/submissions', headers=editor_headers)
        assert response.status_code == 200
        assert response.get_json()['meta']['total_items'] == 1

        assert client.get('/api/forms/submissions', headers=translator_headers).status_code == 403
        assert client.get('/api/forms/newsletter/export', headers=editor_headers).status_code == 403

        response = client.get('/api/forms/newsletter/export', headers=admin_headers)
        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'newsletter-submissions.csv' in response.headers['Content-Disposition']

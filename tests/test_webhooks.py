"""
Tests for webhook management and delivery.
"""

from unittest.mock import MagicMock, patch

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from core.exceptions import CmsError
from models.communication.webhook import WebhookDelivery
from services.post_service import PostService
from services.webhook_service import (
    EventType, WebhookService, generate_webhook_signature, verify_webhook_signature
)


def _response(status_code=200, text='ok'):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


class TestSignatures:
    """Test suite for webhook signing helpers."""

    def test_signature_round_trip(self) -> None:
        signature = generate_webhook_signature('{"a": 1}', 'secret')
        assert signature.startswith('sha256=')
        assert verify_webhook_signature('{"a": 1}', signature, 'secret')
        assert not verify_webhook_signature('{"a": 2}', signature, 'secret')
        assert not verify_webhook_signature('{"a": 1}', signature, 'other')
        assert not verify_webhook_signature('{"a": 1}', signature, '')

    def test_secret_required(self) -> None:
        with pytest.raises(ValueError):
            generate_webhook_signature('body', '')


class TestWebhookService:
    """Test suite for WebhookService."""

    def test_create_defaults_to_all_events(self, app) -> None:
        webhook = WebhookService.create_webhook('Site', 'https://hooks.example.com/cms')
        assert webhook.events == ['*']
        assert webhook.subscribes_to(EventType.POST_DELETED)

    @pytest.mark.parametrize('url,events', [
        ('ftp://hooks.example.com', None),
        ('not a url', None),
        ('https://hooks.example.com', ['post.exploded']),
    ])
    def test_invalid_webhook(self, app, url, events) -> None:
        with pytest.raises(CmsError) as exc_info:
            WebhookService.create_webhook('Bad', url, events)
        assert exc_info.value.status_code == 400

    def test_signed_delivery(self, app) -> None:
        webhook = WebhookService.create_webhook('Signed', 'https://hooks.example.com/a', secret='topsecret',
                                                headers={'X-Site': 'main'})
        with patch('services.webhook_service.requests.post') as mock_post:
            mock_post.return_value = _response()
            count = WebhookService.dispatch(EventType.POST_CREATED, {'id': 1})

        assert count == 1
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == 'https://hooks.example.com/a'
        headers = kwargs['headers']
        assert headers['X-Webhook-Event'] == 'post.created'
        assert headers['X-Site'] == 'main'
        assert verify_webhook_signature(kwargs['data'], headers['X-Webhook-Signature'], 'topsecret')

        deliveries = WebhookDelivery.query.filter_by(webhook_id=webhook.id).all()
        assert [(d.status, d.attempt, d.response_status) for d in deliveries] == [('success', 1, 200)]
        assert webhook.last_status == 'success'

    def test_unsigned_delivery(self, app) -> None:
        WebhookService.create_webhook('Plain', 'https://hooks.example.com/b')
        with patch('services.webhook_service.requests.post') as mock_post:
            mock_post.return_value = _response()
            WebhookService.dispatch(EventType.POST_UPDATED, {'id': 1})

        assert 'X-Webhook-Signature' not in mock_post.call_args[1]['headers']

    def test_failed_delivery_is_retried(self, app) -> None:
        webhook = WebhookService.create_webhook('Flaky', 'https://hooks.example.com/c')
        with patch('services.webhook_service.requests.post') as mock_post:
            mock_post.side_effect = RequestsConnectionError('refused')
            WebhookService.dispatch(EventType.POST_CREATED, {'id': 1})

        assert mock_post.call_count == 2
        deliveries = WebhookDelivery.query.filter_by(webhook_id=webhook.id) \
            .order_by(WebhookDelivery.attempt).all()
        assert [(d.attempt, d.status) for d in deliveries] == [(1, 'failed'), (2, 'failed')]
        assert 'refused' in deliveries[0].error

    def test_http_error_then_success(self, app) -> None:
        webhook = WebhookService.create_webhook('Recovering', 'https://hooks.example.com/d', max_retries=3)
        with patch('services.webhook_service.requests.post') as mock_post:
            mock_post.side_effect = [_response(500, 'boom'), _response(204, '')]
            WebhookService.dispatch(EventType.POST_CREATED, {'id': 1})

        deliveries = WebhookDelivery.query.filter_by(webhook_id=webhook.id) \
            .order_by(WebhookDelivery.attempt).all()
        assert [(d.status, d.error) for d in deliveries] == [('failed', 'HTTP 500'), ('success', None)]

    def test_dispatch_filters_subscriptions(self, app) -> None:
        WebhookService.create_webhook('Published only', 'https://hooks.example.com/e',
                                      events=[EventType.POST_PUBLISHED])
        WebhookService.create_webhook('Inactive', 'https://hooks.example.com/f', active=False)

        with patch('services.webhook_service.requests.post') as mock_post:
            assert WebhookService.dispatch(EventType.POST_CREATED, {'id': 1}) == 0
            assert WebhookService.dispatch(EventType.POST_PUBLISHED, {'id': 1}) == 1
        assert mock_post.call_count == 1

    def test_dispatch_disabled(self, app) -> None:
        app.config['WEBHOOKS_ENABLED'] = False
        WebhookService.create_webhook('Site', 'https://hooks.example.com/g')
        with patch('services.webhook_service.requests.post') as mock_post:
            assert WebhookService.dispatch(EventType.POST_CREATED, {'id': 1}) == 0
        mock_post.assert_not_called()

    def test_post_lifecycle_events(self, make_post, admin_user) -> None:
        WebhookService.create_webhook('Lifecycle', 'https://hooks.example.com/h',
                                      events=[EventType.POST_PUBLISHED, EventType.POST_UNPUBLISHED])
        post = make_post()

        with patch('services.webhook_service.requests.post') as mock_post:
            mock_post.return_value = _response()
            PostService.save_post(post, admin_user, 'publish', {'status': 'published'})
            PostService.save_post(post, admin_user, 'publish', {'status': 'draft'})

        events = [c[1]['headers']['X-Webhook-Event'] for c in mock_post.call_args_list]
        assert events == ['post.published', 'post.unpublished']


class TestWebhooksApi:
    """Test suite for the webhook endpoints."""

    def test_create_and_list(self, client, admin_headers) -> None:
        response = client.post('/api/webhooks', headers=admin_headers, json={
            'name': 'Deploy', 'url': 'https://hooks.example.com/deploy',
            'events': ['post.published'], 'secret': 's3cret'
        })
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['has_secret'] is True
        assert 'secret' not in data

        response = client.get('/api/webhooks', headers=admin_headers)
        assert [w['name'] for w in response.get_json()['data']] == ['Deploy']

        response = client.get('/api/webhooks/events', headers=admin_headers)
        assert 'form.submitted' in response.get_json()['data']

    def test_validation(self, client, admin_headers) -> None:
        response = client.post('/api/webhooks', headers=admin_headers,
                               json={'name': 'Bad', 'url': 'https://hooks.example.com', 'events': ['nope']})
        assert response.status_code == 400

        response = client.post('/api/webhooks', headers=admin_headers, json={'name': 'No url'})
        assert response.status_code == 400
        assert 'url' in response.get_json()['meta']['errors']

    def test_editor_cannot_manage(self, client, editor_headers) -> None:
        assert client.get('/api/webhooks', headers=editor_headers).status_code == 403

    def test_send_test_and_deliveries(self, client, admin_headers) -> None:
        webhook = WebhookService.create_webhook('Ping', 'https://hooks.example.com/ping')

        with patch('services.webhook_service.requests.post') as mock_post:
            mock_post.return_value = _response()
            response = client.post(f'/api/webhooks/{webhook.id}/test', headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()['data']['event'] == 'webhook.test'
        assert response.get_json()['data']['status'] == 'success'

        response = client.get(f'/api/webhooks/{webhook.id}/deliveries', headers=admin_headers)
        assert len(response.get_json()['data']) == 1

        assert client.post('/api/webhooks/999/test', headers=admin_headers).status_code == 404

    def test_update_and_delete(self, client, admin_headers) -> None:
        webhook = WebhookService.create_webhook('Old', 'https://hooks.example.com/old')

        response = client.patch(f'/api/webhooks/{webhook.id}', headers=admin_headers,
                                json={'name': 'New', 'active': False})
        assert response.get_json()['data']['name'] == 'New'
        assert response.get_json()['data']['active'] is False

        assert client.delete(f'/api/webhooks/{webhook.id}', headers=admin_headers).status_code == 200
        assert client.get(f'/api/webhooks/{webhook.id}', headers=admin_headers).status_code == 404

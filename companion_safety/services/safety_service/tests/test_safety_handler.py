"""Tests for Safety Service HTTP handler."""
import json
import pytest
from unittest.mock import patch


@pytest.fixture
def client():
    """Create Flask test client."""
    from companion_safety.services.safety_service.handler import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


class TestHealthEndpoint:
    def test_health_returns_200(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['service'] == 'safety-service'
        assert 'ruleset_version' in data

    def test_ready_returns_200(self, client):
        response = client.get('/ready')

        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'ready'


class TestClassifyEndpoint:
    def test_ordinary_message(self, client):
        response = client.post('/classify', json={'message': 'Tell me about the garden'})

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['tier'] == 0
        assert data['action'] == 'none'
        assert 'resources' not in data

    def test_tier_one_includes_resources(self, client):
        response = client.post('/classify', json={'message': 'I want to die', 'region': 'UK'})

        data = json.loads(response.data)
        assert data['tier'] == 1
        assert data['action'] == 'show_resources'
        assert data['suggested_response']
        assert data['resources'][0]['name'] == 'Samaritans'

    def test_tier_three_has_no_resources(self, client):
        response = client.post('/classify', json={'message': 'I feel so lonely and nobody understands'})

        data = json.loads(response.data)
        assert data['tier'] == 3
        assert data['action'] == 'log'
        assert len(data['matched_rule_ids']) == 2
        assert 'resources' not in data

    def test_dismissal_flag(self, client):
        response = client.post('/classify', json={'message': 'forget it, I\'m fine'})

        assert json.loads(response.data)['is_dismissing'] is True

    def test_empty_message_is_tier_0(self, client):
        response = client.post('/classify', json={'message': ''})

        assert response.status_code == 200
        assert json.loads(response.data)['tier'] == 0

    def test_missing_body_returns_400(self, client):
        response = client.post('/classify', data='not json', content_type='text/plain')

        assert response.status_code == 400

    def test_missing_message_returns_400(self, client):
        response = client.post('/classify', json={'region': 'US'})

        assert response.status_code == 400

    @patch('companion_safety.services.safety_service.handler.classifier')
    def test_classifier_error_defaults_to_tier_0(self, mock_classifier, client):
        mock_classifier.classify.side_effect = RuntimeError("regex engine failure")

        response = client.post('/classify', json={'message': 'hello'})

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['tier'] == 0
        assert 'error' in data


class TestResourcesEndpoint:
    def test_region_lookup(self, client):
        response = client.get('/resources?region=au')

        data = json.loads(response.data)
        assert data['region'] == 'AU'
        assert data['resources'][0]['name'] == 'Lifeline Australia'

    def test_default_region(self, client):
        response = client.get('/resources')

        data = json.loads(response.data)
        assert data['resources'][0]['phone'] == '988'

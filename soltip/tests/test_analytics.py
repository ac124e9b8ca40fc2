from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.utils import timezone
from rest_framework import status

from soltip.models import Transaction

from .base import APITestCase, TestDataFactory


class DashboardAnalyticsTests(APITestCase):
    url = '/api/v1/analytics/dashboard/'

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(username='alice', circle_wallet_id='wallet-1')
        self.creator = self.user.creator
        self.authenticate(self.user)

    def backdate(self, tx, days):
        Transaction.objects.filter(pk=tx.pk).update(created_at=timezone.now() - timedelta(days=days))

    @patch('soltip.views.get_circle_client')
    def test_dashboard_totals(self, mock_client):
        mock_client.return_value.get_usdc_balance.return_value = Decimal('42')
        TestDataFactory.create_transaction(self.creator, amount='10')
        TestDataFactory.create_transaction(self.creator, amount='20')
        last_week = TestDataFactory.create_transaction(self.creator, amount='15')
        self.backdate(last_week, 10)
        # Not counted: pending, withdrawals, other creators, outside the range
        TestDataFactory.create_transaction(self.creator, amount='99', status='pending')
        TestDataFactory.create_transaction(self.creator, amount='99', type='withdrawal')
        TestDataFactory.create_transaction(TestDataFactory.create_user(username='carol').creator, amount='99')
        self.backdate(TestDataFactory.create_transaction(self.creator, amount='99'), 45)

        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()['data']
        self.assertEqual(data['totalTips'], 3)
        self.assertEqual(data['totalValue'], 45.0)
        self.assertEqual(data['avgTipValue'], 15.0)
        self.assertEqual(data['topToken'], 'USDC')
        self.assertEqual(data['weeklyGrowth'], 100.0)
        self.assertEqual(data['balance'], 42.0)
        self.assertEqual(len(data['monthlyVolume']), 7)
        self.assertEqual(data['monthlyVolume'][-1]['value'], 30.0)
        self.assertEqual(data['monthlyVolume'][-1]['date'], timezone.localdate().isoformat())
        self.assertEqual(len(data['recentTips']), 3)

    @patch('soltip.views.get_circle_client')
    def test_weekly_growth_percentage(self, mock_client):
        mock_client.return_value.get_usdc_balance.return_value = Decimal('0')
        TestDataFactory.create_transaction(self.creator, amount='15')
        self.backdate(TestDataFactory.create_transaction(self.creator, amount='10'), 9)
        data = self.client.get(self.url).json()['data']
        self.assertEqual(data['weeklyGrowth'], 50.0)

    def test_empty_dashboard(self):
        self.creator.circle_wallet_id = None
        self.creator.save()
        data = self.client.get(self.url).json()['data']
        self.assertEqual(data['totalTips'], 0)
        self.assertEqual(data['avgTipValue'], 0)
        self.assertEqual(data['weeklyGrowth'], 0)
        self.assertEqual(data['balance'], 0)
        self.assertEqual(data['recentTips'], [])

    @patch('soltip.views.get_circle_client')
    def test_recent_tips_limited_to_five(self, mock_client):
        mock_client.return_value.get_usdc_balance.return_value = Decimal('0')
        for _ in range(7):
            TestDataFactory.create_transaction(self.creator, amount='1')
        data = self.client.get(self.url).json()['data']
        self.assertEqual(data['totalTips'], 7)
        self.assertEqual(len(data['recentTips']), 5)

    def test_custom_range(self):
        self.creator.circle_wallet_id = None
        self.creator.save()
        self.backdate(TestDataFactory.create_transaction(self.creator, amount='5'), 45)
        start = (timezone.now() - timedelta(days=60)).isoformat()
        data = self.client.get(self.url, {'startDate': start}).json()['data']
        self.assertEqual(data['totalTips'], 1)

    def test_requires_authentication(self):
        self.client.credentials()
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_401_UNAUTHORIZED)

from unittest.mock import patch

from rest_framework import status

from soltip.circle import CircleError
from soltip.seeds import permissions_for_role

from .base import WALLET_A, APITestCase, TestDataFactory


class OnboardingStepTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(email='alice@example.com', status='pending')
        self.creator = self.user.creator
        self.authenticate(self.user)

    def test_username_step(self):
        response = self.client.post('/api/v1/auth/onboarding/username/', {'username': 'Alice'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['nextStep'], 'profile')
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.username, 'alice')

    def test_username_taken(self):
        TestDataFactory.create_user(username='alice')
        response = self.client.post('/api/v1/auth/onboarding/username/', {'username': 'alice'})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_reserved_username(self):
        response = self.client.post('/api/v1/auth/onboarding/username/', {'username': 'wallet'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'][0]['path'], 'username')

    def test_profile_step(self):
        response = self.client.post('/api/v1/auth/onboarding/profile/', {
            'displayName': '  Alice A  ',
            'bio': 'I draw things',
            'socialLinks': {'twitter': 'https://x.com/alice'},
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.display_name, 'Alice A')
        self.assertEqual(self.creator.social_links['twitter'], 'https://x.com/alice')

    def test_profile_requires_display_name(self):
        response = self.client.post('/api/v1/auth/onboarding/profile/', {'displayName': 'A'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_avatar_step_with_urls(self):
        response = self.client.post('/api/v1/auth/onboarding/avatar/', {
            'avatarUrl': 'https://cdn.example.com/a.png',
            'coverImageUrl': 'https://cdn.example.com/c.png',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['user']['avatarUrl'], 'https://cdn.example.com/a.png')

    def test_customization_step_merges(self):
        response = self.client.post('/api/v1/auth/onboarding/customization/', {
            'primaryColor': '#112233',
            'tipOptions': [{'amount': 2, 'label': '$2', 'isDefault': True}],
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.customization['primaryColor'], '#112233')
        self.assertTrue(self.creator.customization['showTipCounter'])
        self.assertEqual(self.creator.current_onboarding_step, 'complete')

    def test_customization_single_default_option(self):
        response = self.client.post('/api/v1/auth/onboarding/customization/', {
            'tipOptions': [{'amount': 1, 'isDefault': True}, {'amount': 2, 'isDefault': True}],
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_steps_never_move_backwards(self):
        self.creator.current_onboarding_step = 'customize'
        self.creator.save()
        self.client.post('/api/v1/auth/onboarding/profile/', {'displayName': 'Alice'})
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.current_onboarding_step, 'customize')

    def test_status(self):
        self.creator.username = 'alice'
        self.creator.display_name = 'Alice'
        self.creator.save()
        response = self.client.get('/api/v1/auth/onboarding/status/')
        data = response.json()['data']
        self.assertFalse(data['onboardingCompleted'])
        self.assertTrue(data['hasUsername'])
        self.assertTrue(data['hasProfile'])
        self.assertFalse(data['hasAvatar'])
        self.assertFalse(data['hasCustomization'])

    def test_requires_authentication(self):
        self.client.credentials()
        response = self.client.get('/api/v1/auth/onboarding/status/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class OnboardingCompleteTests(APITestCase):
    url = '/api/v1/auth/onboarding/complete/'

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(email='alice@example.com', username='alice', status='pending',
                                                permissions=[])
        self.creator = self.user.creator
        self.authenticate(self.user)

    @patch('soltip.views.get_circle_client')
    def test_complete_provisions_wallet(self, mock_client):
        mock_client.return_value.create_wallet.return_value = {
            'id': 'wallet-1', 'address': WALLET_A, 'blockchain': 'SOL-DEVNET',
        }
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_client.return_value.create_wallet.assert_called_once_with(ref_id=self.user.pk)

        self.creator.refresh_from_db()
        self.assertTrue(self.creator.onboarding_completed)
        self.assertEqual(self.creator.status, 'active')
        self.assertEqual(self.creator.circle_wallet_id, 'wallet-1')
        self.assertEqual(self.creator.deposit_wallet_address, WALLET_A)
        self.assertEqual(self.creator.permissions, permissions_for_role('creator'))

    @patch('soltip.views.get_circle_client')
    def test_existing_wallet_is_kept(self, mock_client):
        self.creator.circle_wallet_id = 'wallet-0'
        self.creator.deposit_wallet_address = WALLET_A
        self.creator.save()
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_client.return_value.create_wallet.assert_not_called()

    @patch('soltip.views.get_circle_client')
    def test_wallet_failure_saves_nothing(self, mock_client):
        mock_client.return_value.create_wallet.side_effect = CircleError('boom', status_code=500)
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.json()['code'], 'WALLET_CREATION_FAILED')
        self.creator.refresh_from_db()
        self.assertFalse(self.creator.onboarding_completed)
        self.assertEqual(self.creator.status, 'pending')

    def test_username_required(self):
        self.creator.username = None
        self.creator.save()
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['error'], ['Username is required'])

    @patch('soltip.views.get_circle_client')
    def test_admin_keeps_role(self, mock_client):
        mock_client.return_value.create_wallet.return_value = {'id': 'w-2', 'address': WALLET_A, 'blockchain': 'x'}
        self.creator.role = 'admin'
        self.creator.permissions = permissions_for_role('admin')
        self.creator.save()
        self.client.post(self.url)
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.role, 'admin')
        self.assertIn('users:manage', self.creator.permissions)

    @patch('soltip.views.get_circle_client')
    def test_support_account_becomes_creator(self, mock_client):
        mock_client.return_value.create_wallet.return_value = {'id': 'w-3', 'address': WALLET_A, 'blockchain': 'x'}
        self.creator.role = 'support'
        self.creator.permissions = permissions_for_role('support')
        self.creator.save()
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.creator.refresh_from_db()
        self.assertEqual(self.creator.role, 'creator')
        self.assertTrue(set(permissions_for_role('creator')) <= set(self.creator.permissions))
        self.assertIn('support:view-tickets', self.creator.permissions)

import os
import tempfile
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core import mail
from django.test import override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken

from soltip.tokens import TokenService

from .base import APITestCase, TestDataFactory


class RegisterTests(APITestCase):
    url = '/api/v1/auth/register/'

    def test_register_creates_pending_creator(self):
        response = self.client.post(self.url, {'email': 'Alice@Example.com', 'password': 'strongpass123'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['message'], 'User registered successfully!')
        self.assertEqual(body['data']['user']['email'], 'alice@example.com')
        self.assertEqual(body['data']['user']['status'], 'pending')
        self.assertEqual(body['data']['user']['currentOnboardingStep'], 'username')
        self.assertEqual(body['data']['accessExpiresIn'], '30m')
        self.assertEqual(body['data']['refreshExpiresIn'], '7d')

        self.assertIn('accessToken', response.cookies)
        self.assertIn('refreshToken', response.cookies)
        self.assertTrue(response.cookies['accessToken']['httponly'])
        self.assertEqual(response.cookies['refreshToken']['path'], '/api/v1/auth/')

        creator = User.objects.get(email='alice@example.com').creator
        self.assertIsNotNone(creator.email_verification_token)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(creator.email_verification_token, mail.outbox[0].body)

    def test_duplicate_email_conflict(self):
        TestDataFactory.create_user(email='alice@example.com')
        response = self.client.post(self.url, {'email': 'ALICE@example.com', 'password': 'strongpass123'})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()['message'], 'Email is already in use')

    def test_validation_errors_listed_by_path(self):
        response = self.client.post(self.url, {'email': 'not-an-email', 'password': 'short'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['message'], 'Invalid request data')
        paths = {error['path'] for error in body['error']}
        self.assertEqual(paths, {'email', 'password'})

    def test_registered_user_can_load_profile_with_cookie(self):
        self.client.post(self.url, {'email': 'alice@example.com', 'password': 'strongpass123'})
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['user']['email'], 'alice@example.com')

    def test_register_succeeds_when_dkim_signing_fails(self):
        with tempfile.NamedTemporaryFile('w', suffix='.pem', delete=False) as fh:
            fh.write('not a key')
        self.addCleanup(os.remove, fh.name)

        with override_settings(DKIM_KEY_PATH=fh.name, DKIM_DOMAIN='example.com'):
            response = self.client.post(self.url, {'email': 'alice@example.com', 'password': 'strongpass123'})
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)
            self.assertIn('accessToken', response.cookies)

            response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'alice@example.com'})
            self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.assertTrue(User.objects.filter(email='alice@example.com').exists())
        self.assertEqual(len(mail.outbox), 0)


class LoginTests(APITestCase):
    url = '/api/v1/auth/login/'

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(email='alice@example.com', username='alice')

    def test_login_success(self):
        self.user.creator.failed_login_attempts = 2
        self.user.creator.save()
        response = self.client.post(self.url, {'email': 'alice@example.com', 'password': 'strongpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['message'], 'Login successful!')
        self.assertIn('accessToken', response.cookies)

        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login)
        self.assertEqual(self.user.creator.failed_login_attempts, 0)

    def test_unknown_email(self):
        response = self.client.post(self.url, {'email': 'nobody@example.com', 'password': 'strongpass123'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['message'], 'Invalid email or password')

    def test_wrong_password_counts_and_locks(self):
        for _ in range(5):
            response = self.client.post(self.url, {'email': 'alice@example.com', 'password': 'wrongpass123'})
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        self.user.creator.refresh_from_db()
        self.assertEqual(self.user.creator.status, 'locked')

        response = self.client.post(self.url, {'email': 'alice@example.com', 'password': 'strongpass123'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()['code'], 'ACCOUNT_INACTIVE')

    def test_suspended_account_rejected(self):
        self.user.creator.status = 'suspended'
        self.user.creator.save()
        response = self.client.post(self.url, {'email': 'alice@example.com', 'password': 'strongpass123'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()['code'], 'ACCOUNT_INACTIVE')

    def test_stale_cookie_does_not_block_login(self):
        self.client.cookies['accessToken'] = 'garbage'
        response = self.client.post(self.url, {'email': 'alice@example.com', 'password': 'strongpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class TokenLifecycleTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(email='alice@example.com', username='alice')

    def test_refresh_rotates_cookie_token(self):
        _, refresh = TokenService.issue_tokens(self.user)
        self.client.cookies['refreshToken'] = refresh

        response = self.client.post('/api/v1/auth/refresh/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['message'], 'Tokens refreshed successfully')
        new_refresh = response.cookies['refreshToken'].value
        self.assertNotEqual(new_refresh, refresh)
        self.assertEqual(BlacklistedToken.objects.count(), 1)

        # The old token is single use
        self.client.cookies['refreshToken'] = refresh
        response = self.client.post('/api/v1/auth/refresh/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['message'], 'Invalid refresh token')

    def test_refresh_from_body(self):
        _, refresh = TokenService.issue_tokens(self.user)
        response = self.client.post('/api/v1/auth/refresh/', {'refreshToken': refresh})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_refresh_missing(self):
        response = self.client.post('/api/v1/auth/refresh/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['message'], 'Refresh token not provided')

    def test_invalid_refresh_clears_cookies(self):
        self.client.cookies['refreshToken'] = 'not-a-token'
        response = self.client.post('/api/v1/auth/refresh/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.cookies['refreshToken'].value, '')
        self.assertEqual(response.cookies['accessToken'].value, '')

    def test_logout_blacklists_and_clears(self):
        _, refresh = TokenService.issue_tokens(self.user)
        self.client.cookies['refreshToken'] = refresh
        response = self.client.post('/api/v1/auth/logout/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['message'], 'Logged out successfully')
        self.assertEqual(BlacklistedToken.objects.count(), 1)
        self.assertEqual(response.cookies['accessToken'].value, '')

    def test_access_token_claims(self):
        from rest_framework_simplejwt.tokens import AccessToken
        access, _ = TokenService.issue_tokens(self.user)
        token = AccessToken(access)
        self.assertEqual(int(token['userId']), self.user.pk)
        self.assertEqual(token['role'], 'creator')
        self.assertIn('wallet:withdraw', token['permissions'])

    def test_cleanup_expired_tokens(self):
        TokenService.issue_tokens(self.user)
        from rest_framework_simplejwt.token_blacklist.models import OutstandingToken
        OutstandingToken.objects.update(expires_at=timezone.now() - timedelta(minutes=1))
        self.assertEqual(TokenService.cleanup_expired_tokens(self.user), 1)
        self.assertFalse(OutstandingToken.objects.exists())


class AuthenticationTests(APITestCase):

    def test_missing_credentials(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['message'], 'Authentication required. Please log in.')

    def test_expired_access_with_refresh_cookie(self):
        self.client.cookies['refreshToken'] = 'something'
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['code'], 'TOKEN_EXPIRED')

    def test_invalid_token(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer nope')
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['code'], 'INVALID_TOKEN')

    def test_banned_user_token_rejected(self):
        user = TestDataFactory.create_user(username='alice')
        self.authenticate(user)
        user.creator.status = 'banned'
        user.creator.save()
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('banned', response.json()['message'])

    @patch('soltip.views.get_circle_client')
    def test_me_includes_wallet_balance(self, mock_client):
        mock_client.return_value.get_usdc_balance.return_value = Decimal('12.5')
        user = TestDataFactory.create_user(username='alice', circle_wallet_id='wallet-1')
        self.authenticate(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['data']['user']['balance'], 12.5)
        mock_client.return_value.get_usdc_balance.assert_called_once_with('wallet-1')


class EmailVerificationTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.creator = TestDataFactory.create_user(email='alice@example.com').creator
        self.token = self.creator.issue_email_verification_token()
        self.creator.save()

    def test_verify_email(self):
        response = self.client.get(f'/api/v1/auth/verify-email/{self.token}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.creator.refresh_from_db()
        self.assertTrue(self.creator.email_verified)
        self.assertIsNone(self.creator.email_verification_token)

    def test_expired_token(self):
        self.creator.email_verification_expires = timezone.now() - timedelta(minutes=1)
        self.creator.save()
        response = self.client.get(f'/api/v1/auth/verify-email/{self.token}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PasswordResetTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(email='alice@example.com', username='alice')

    def test_forgot_password_emails_token(self):
        response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'alice@example.com'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.creator.refresh_from_db()
        token = self.user.creator.password_reset_token
        self.assertIsNotNone(token)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(token, mail.outbox[0].body)
        self.assertNotIn('data', response.json())

    def test_forgot_password_unknown_email_same_answer(self):
        known = self.client.post('/api/v1/auth/forgot-password/', {'email': 'alice@example.com'})
        unknown = self.client.post('/api/v1/auth/forgot-password/', {'email': 'ghost@example.com'})
        self.assertEqual(unknown.status_code, status.HTTP_200_OK)
        self.assertEqual(unknown.json(), known.json())
        self.assertEqual(len(mail.outbox), 1)

    def test_reset_password_unlocks_account(self):
        creator = self.user.creator
        creator.status = 'locked'
        creator.failed_login_attempts = 5
        token = creator.issue_password_reset_token()
        creator.save()

        response = self.client.post(f'/api/v1/auth/reset-password/{token}/', {'password': 'brandnewpass1'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.user.refresh_from_db()
        creator.refresh_from_db()
        self.assertTrue(self.user.check_password('brandnewpass1'))
        self.assertEqual(creator.status, 'active')
        self.assertEqual(creator.failed_login_attempts, 0)
        self.assertIsNone(creator.password_reset_token)

    def test_reset_with_unknown_token(self):
        response = self.client.post('/api/v1/auth/reset-password/nope/', {'password': 'brandnewpass1'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CheckUsernameTests(APITestCase):

    def test_available_and_taken(self):
        TestDataFactory.create_user(username='alice')
        taken = self.client.get('/api/v1/auth/check-username/Alice/')
        self.assertFalse(taken.json()['data']['available'])
        free = self.client.get('/api/v1/auth/check-username/carol/')
        self.assertTrue(free.json()['data']['available'])

    def test_invalid_username(self):
        response = self.client.get('/api/v1/auth/check-username/admin/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
